import uuid
from typing import Optional


def as_uuid(value) -> Optional[uuid.UUID]:
    """Parse a path/body id; None when it isn't a UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None
