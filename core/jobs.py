from common.jobs import JobRegistry


def build_job_registry() -> JobRegistry:
    """Every background job the dispatch endpoint can run."""
    from question_imports.jobs import register_jobs as register_import_jobs

    registry = JobRegistry()
    register_import_jobs(registry)
    return registry
