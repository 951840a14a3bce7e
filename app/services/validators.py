import uuid

from app.errors import InvalidAmount, InvalidRequest


def require_text(value, field: str) -> str:
    text = (value or "").strip() if isinstance(value, str) else ""
    if not text:
        raise InvalidRequest(f"{field} is required")
    return text


def parse_uuid(value, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidRequest(f"{field} is not a valid identifier")


def require_positive_points(points) -> int:
    # bool is an int subclass; True must not pass as 1 point.
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidAmount(points=points)
    return points
