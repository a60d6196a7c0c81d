"""
Field-level request rules.

Each rule is an annotated type so request models can declare their
constraints per route: ``RequiredStr``, ``Annotated[str, Field(max_length=..)]``,
``int``, ``ISO8601Date``, ``EmailStr`` and ``one_of(...)``. Failures surface
through FastAPI's ``RequestValidationError`` and are rendered by
``error_handlers`` as ``{"errors": [{"field", "message"}]}`` with status 400.
"""
import re
from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, List, Sequence

from pydantic import AfterValidator, BeforeValidator, TypeAdapter
from pydantic_core import PydanticCustomError

_TAG_RE = re.compile(r"</?[^>]+(>|$)")

# Custom messages for path parameters, keyed by parameter name.
_PATH_MESSAGES = {"page_id": "Invalid page ID"}

_LOCATIONS = ("body", "path", "query", "header")

_BASIC_DATE_RE = re.compile(r"\d{8}")
_EXTENDED_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_DATETIME = TypeAdapter(datetime)


def _strip_required(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
    if value is None or value == "":
        raise PydanticCustomError("required", "Value is required")
    return value


def _parse_iso8601(value: Any) -> Any:
    if isinstance(value, datetime):
        return _utc_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise PydanticCustomError("iso8601", "Invalid date format")
    text = value.strip()
    try:
        if _BASIC_DATE_RE.fullmatch(text):
            return datetime.strptime(text, "%Y%m%d").date()
        if _EXTENDED_DATE_RE.fullmatch(text):
            return date.fromisoformat(text)
        # pydantic reads bare numbers as unix timestamps
        if not _EXTENDED_DATE_RE.match(text):
            raise PydanticCustomError("iso8601", "Invalid date format")
        return _utc_date(_DATETIME.validate_python(text))
    except ValueError:
        raise PydanticCustomError("iso8601", "Invalid date format")


def _utc_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


RequiredStr = Annotated[str, BeforeValidator(_strip_required)]
ISO8601Date = Annotated[date, BeforeValidator(_parse_iso8601)]


# PUBLIC_INTERFACE
def one_of(*choices: str):
    """Build a string type that only admits the given values."""
    allowed = frozenset(choices)
    listing = ", ".join(choices)

    def _check(value: str) -> str:
        if value not in allowed:
            raise PydanticCustomError(
                "one_of", "Value must be one of: {choices}", {"choices": listing}
            )
        return value

    return Annotated[str, AfterValidator(_check)]


# PUBLIC_INTERFACE
def strip_tags(html: str) -> str:
    """Remove anything that looks like a tag. Not an allow-list sanitizer."""
    return _TAG_RE.sub("", html)


# PUBLIC_INTERFACE
def format_display_date(value: Any) -> Any:
    """Render a stored date as MM/D/YYYY (month zero-padded, day not)."""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return f"{value.month:02d}/{value.day}/{value.year}"
    return value


# PUBLIC_INTERFACE
def format_validation_errors(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into ``{field, message}`` pairs."""
    formatted = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        where = loc[0] if loc else ""
        parts = loc[1:] if where in _LOCATIONS and len(loc) > 1 else loc
        field = ".".join(parts) or "body"

        if where == "path" and parts and parts[-1] in _PATH_MESSAGES:
            message = _PATH_MESSAGES[parts[-1]]
        elif err.get("type") == "missing":
            message = "Value is required"
        else:
            message = err.get("msg", "Invalid value")
        formatted.append({"field": field, "message": message})
    return formatted
