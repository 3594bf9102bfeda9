import logging

logger = logging.getLogger("exam_prep.errors")


def log_server_error(scope, error, user_id=None, attempt_id=None, attempt_item_id=None, **metadata):
    """Log a controller failure with the request context that produced it."""
    context = {
        "scope": scope,
        "user_id": str(user_id) if user_id else None,
        "attempt_id": str(attempt_id) if attempt_id else None,
        "attempt_item_id": str(attempt_item_id) if attempt_item_id else None,
        "metadata": metadata or None,
    }
    logger.error(
        "[%s] %s: %s %s",
        scope,
        type(error).__name__,
        error,
        {k: v for k, v in context.items() if v is not None},
        exc_info=(type(error), error, error.__traceback__),
    )
