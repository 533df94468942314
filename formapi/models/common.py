import re

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

_HTML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        '"': "&quot;",
        "'": "&#x27;",
        "<": "&lt;",
        ">": "&gt;",
        "/": "&#x2F;",
        "\\": "&#x5C;",
        "`": "&#96;",
    }
)

_INT_RE = re.compile(r"^[-+]?[0-9]+$")


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, also accepts snake_case on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def escape_html(value: str) -> str:
    """Replace markup-significant characters with HTML entities."""
    return value.translate(_HTML_ESCAPES)


def parse_int(value, error_type: str, message: str) -> int:
    """Parse an integer from a query-string value; floats and junk are rejected."""
    if isinstance(value, bool):
        raise PydanticCustomError(error_type, message)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    raise PydanticCustomError(error_type, message)
