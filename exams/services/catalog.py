# exams/services/catalog.py
"""Read-only views over exams, blueprints and practice question sets."""
from __future__ import annotations

from django.db.models import Count, Prefetch

from common.enums import ContentStatus
from common.exceptions import NotFound

from ..models import Blueprint, BlueprintSection, Exam, QuestionSet, Subtest


def serialize_section(section: BlueprintSection, index: int) -> dict:
    return {
        "index": index,
        "id": str(section.id),
        "name": section.display_name,
        "subtest_id": str(section.subtest_id),
        "subtest_code": section.subtest.code,
        "subtest_name": section.subtest.name,
        "question_count": section.question_count,
        "duration_seconds": section.duration_seconds,
        "countdown_seconds": section.countdown_seconds,
    }


def serialize_blueprint(blueprint: Blueprint, sections=None) -> dict:
    if sections is None:
        sections = blueprint.ordered_sections()
    return {
        "id": str(blueprint.id),
        "exam_id": str(blueprint.exam_id),
        "name": blueprint.name,
        "version": blueprint.version,
        "sections": [serialize_section(s, i) for i, s in enumerate(sections)],
        "total_questions": sum(s.question_count for s in sections),
        "total_duration_seconds": sum(s.duration_seconds for s in sections),
    }


def _sections_prefetch():
    return Prefetch(
        "sections",
        queryset=BlueprintSection.objects.select_related("subtest").order_by("sort_order", "created_at"),
    )


def tryout_catalog() -> list[dict]:
    """Active exams, each with its active blueprints and their ordered sections."""
    exams = (
        Exam.objects.filter(is_active=True)
        .prefetch_related(
            Prefetch(
                "blueprints",
                queryset=Blueprint.objects.filter(is_active=True)
                .prefetch_related(_sections_prefetch())
                .order_by("-version"),
            )
        )
        .order_by("name")
    )
    out = []
    for exam in exams:
        out.append({
            "id": str(exam.id),
            "code": exam.code,
            "name": exam.name,
            "type": exam.type,
            "blueprints": [serialize_blueprint(bp, list(bp.sections.all())) for bp in exam.blueprints.all()],
        })
    return out


def blueprint_detail(blueprint_id) -> dict:
    blueprint = (
        Blueprint.objects.select_related("exam")
        .prefetch_related(_sections_prefetch())
        .filter(pk=blueprint_id, is_active=True)
        .first()
    )
    if blueprint is None:
        raise NotFound("Blueprint not found.")
    data = serialize_blueprint(blueprint, list(blueprint.sections.all()))
    data["exam"] = {"id": str(blueprint.exam_id), "code": blueprint.exam.code, "name": blueprint.exam.name}
    return data


def practice_catalog() -> list[dict]:
    """Active exams → active subtests → published question sets with item counts."""
    published_sets = (
        QuestionSet.objects.filter(status=ContentStatus.PUBLISHED)
        .annotate(question_count=Count("items"))
        .order_by("name")
    )
    exams = (
        Exam.objects.filter(is_active=True)
        .prefetch_related(
            Prefetch("subtests", queryset=Subtest.objects.filter(is_active=True).order_by("sort_order", "name")),
            Prefetch("question_sets", queryset=published_sets),
        )
        .order_by("name")
    )

    out = []
    for exam in exams:
        sets_by_subtest = {}
        for qs in exam.question_sets.all():
            sets_by_subtest.setdefault(qs.subtest_id, []).append({
                "id": str(qs.id),
                "name": qs.name,
                "description": qs.description,
                "question_count": qs.question_count,
            })
        out.append({
            "id": str(exam.id),
            "code": exam.code,
            "name": exam.name,
            "subtests": [
                {
                    "id": str(st.id),
                    "code": st.code,
                    "name": st.name,
                    "question_sets": sets_by_subtest.get(st.id, []),
                }
                for st in exam.subtests.all()
            ],
            "general_question_sets": sets_by_subtest.get(None, []),
        })
    return out

