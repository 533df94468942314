from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Tuple

from pydantic import BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from formapi.models.common import CamelModel, escape_html, parse_int
from formapi.models.field_types import (
    DEFAULT_FORM_STATUS,
    FORM_STATUSES,
    QUERY_STATUSES,
    is_allowed_type,
)

TITLE_MAX_LENGTH = 200
SEARCH_MAX_LENGTH = 100
MAX_PAGE_SIZE = 100
# keeps (page - 1) * MAX_PAGE_SIZE inside a signed 64-bit OFFSET
MAX_PAGE_NUMBER = (2**63 - 1) // MAX_PAGE_SIZE + 1

FIELD_SHAPE_MESSAGE = "Each field must have id, type, and label"
TITLE_LENGTH_MESSAGE = f"Form title must be between 1 and {TITLE_MAX_LENGTH} characters"
STATUS_MESSAGE = "Status must be either draft, published, or closed"

DEFAULT_PAGE_ID = "page-1"
DEFAULT_PAGE_NAME = "Page 1"

SORT_FIELDS = ("createdAt", "updatedAt", "title")
SORT_ORDERS = ("asc", "desc")


def _field_attr(value):
    if not isinstance(value, str) or not value:
        raise PydanticCustomError("field_shape", FIELD_SHAPE_MESSAGE)
    return value


def _field_type(value):
    _field_attr(value)
    if not is_allowed_type(value):
        raise PydanticCustomError(
            "field_type", "Invalid field type: {type}", {"type": value}
        )
    return value


def _page_attr(value):
    if not isinstance(value, str) or not value:
        raise PydanticCustomError("page_shape", "Each page must have id and name")
    return value


def _array(message: str):
    def check(value):
        if not isinstance(value, list):
            raise PydanticCustomError("array", message)
        return value

    return check


def _form_status(value):
    if value not in FORM_STATUSES:
        raise PydanticCustomError("status", STATUS_MESSAGE)
    return value


def _description(value):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PydanticCustomError("description", "Description must be a string")
    return escape_html(value.strip())


def _create_title(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PydanticCustomError("title_required", "Form title is required")
    if not isinstance(value, str):
        raise PydanticCustomError("title_type", "Form title must be a string")
    value = value.strip()
    if len(value) > TITLE_MAX_LENGTH:
        raise PydanticCustomError("title_length", TITLE_LENGTH_MESSAGE)
    return escape_html(value)


def _update_title(value):
    # only runs when the client supplied a title
    if value is None or value == "":
        raise PydanticCustomError("title_empty", "Form title cannot be empty")
    if not isinstance(value, str):
        raise PydanticCustomError("title_type", "Form title must be a string")
    value = value.strip()
    if not value:
        raise PydanticCustomError(
            "title_blank", "Form title cannot be empty or just whitespace"
        )
    if len(value) > TITLE_MAX_LENGTH:
        raise PydanticCustomError("title_length", TITLE_LENGTH_MESSAGE)
    return escape_html(value)


def duplicate_field_id(fields: List["FieldDefinition"]) -> Optional[str]:
    seen = set()
    for f in fields:
        if f.id in seen:
            return f.id
        seen.add(f.id)
    return None


class FieldDefinition(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: Annotated[str, BeforeValidator(_field_attr)] = Field(default=None, validate_default=True)
    type: Annotated[str, BeforeValidator(_field_type)] = Field(default=None, validate_default=True)
    label: Annotated[str, BeforeValidator(_field_attr)] = Field(default=None, validate_default=True)
    placeholder: str = ""
    required: bool = False
    options: Optional[List[str]] = None
    validation: Dict[str, Any] = {}
    visibility_rules: List[Dict[str, Any]] = []

    @model_validator(mode="before")
    @classmethod
    def _object(cls, data):
        if not isinstance(data, dict):
            raise PydanticCustomError("field_shape", FIELD_SHAPE_MESSAGE)
        return data


class Page(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: Annotated[str, BeforeValidator(_page_attr)] = Field(default=None, validate_default=True)
    name: Annotated[str, BeforeValidator(_page_attr)] = Field(default=None, validate_default=True)
    fields: Annotated[List[FieldDefinition], BeforeValidator(_array("Fields must be an array"))] = []
    logic: Dict[str, Any] = {}

    @model_validator(mode="before")
    @classmethod
    def _object(cls, data):
        if not isinstance(data, dict):
            raise PydanticCustomError("page_shape", "Each page must have id and name")
        return data


def default_page(fields: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"id": DEFAULT_PAGE_ID, "name": DEFAULT_PAGE_NAME, "fields": fields, "logic": {}}


def flatten_pages(pages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    fields = []
    for page in pages:
        page_fields = page.get("fields") if isinstance(page, dict) else None
        if isinstance(page_fields, list):
            fields.extend(page_fields)
    return fields


class FormCreate(CamelModel):
    title: Annotated[str, BeforeValidator(_create_title)] = Field(default=None, validate_default=True)
    description: Annotated[str, BeforeValidator(_description)] = ""
    fields: Annotated[Optional[List[FieldDefinition]], BeforeValidator(_array("Fields must be an array"))] = None
    pages: Annotated[Optional[List[Page]], BeforeValidator(_array("Pages must be an array"))] = None
    status: Annotated[str, BeforeValidator(_form_status)] = DEFAULT_FORM_STATUS

    @field_validator("fields")
    @classmethod
    def _unique_field_ids(cls, fields):
        duplicate = duplicate_field_id(fields or [])
        if duplicate is not None:
            raise PydanticCustomError(
                "field_id_duplicate", "Duplicate field id: {id}", {"id": duplicate}
            )
        return fields

    @field_validator("pages")
    @classmethod
    def _unique_page_field_ids(cls, pages):
        duplicate = duplicate_field_id([f for page in pages or [] for f in page.fields])
        if duplicate is not None:
            raise PydanticCustomError(
                "field_id_duplicate", "Duplicate field id: {id}", {"id": duplicate}
            )
        return pages

    def layout(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Return (fields, pages) as stored: pages win, bare fields get one page."""
        if self.pages:
            pages = [p.model_dump(by_alias=True) for p in self.pages]
            return flatten_pages(pages), pages
        fields = [f.model_dump(by_alias=True) for f in self.fields or []]
        return fields, [default_page(fields)]


class FormUpdate(CamelModel):
    title: Annotated[Optional[str], BeforeValidator(_update_title)] = None
    description: Annotated[Optional[str], BeforeValidator(_description)] = None
    # element shape is checked by the update handler, not here
    fields: Annotated[Optional[List[Any]], BeforeValidator(_array("Fields must be an array"))] = None
    pages: Annotated[Optional[List[Any]], BeforeValidator(_array("Pages must be an array"))] = None
    status: Annotated[Optional[str], BeforeValidator(_form_status)] = None


class Form(CamelModel):
    id: str
    title: str
    description: str = ""
    status: str
    fields: List[Dict[str, Any]] = []
    pages: List[Dict[str, Any]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublicForm(CamelModel):
    id: str
    title: str
    description: str = ""
    fields: List[Dict[str, Any]] = []
    pages: List[Dict[str, Any]] = []


def _page_number(value):
    value = parse_int(value, "page", "Page must be a positive integer")
    if not 1 <= value <= MAX_PAGE_NUMBER:
        raise PydanticCustomError("page", "Page must be a positive integer")
    return value


def _limit(value):
    message = f"Limit must be between 1 and {MAX_PAGE_SIZE}"
    value = parse_int(value, "limit", message)
    if not 1 <= value <= MAX_PAGE_SIZE:
        raise PydanticCustomError("limit", message)
    return value


def _query_status(value):
    if value not in QUERY_STATUSES:
        raise PydanticCustomError(
            "status", "Status must be draft, published, closed, or all"
        )
    return value


def _search(value):
    if not isinstance(value, str):
        raise PydanticCustomError("search", "Search term must be a string")
    if len(value) > SEARCH_MAX_LENGTH:
        raise PydanticCustomError(
            "search", f"Search term cannot exceed {SEARCH_MAX_LENGTH} characters"
        )
    return escape_html(value.strip())


def _sort_by(value):
    if value not in SORT_FIELDS:
        raise PydanticCustomError("sort_by", "Sort field must be createdAt, updatedAt, or title")
    return value


def _sort_order(value):
    if value not in SORT_ORDERS:
        raise PydanticCustomError("sort_order", "Sort order must be asc or desc")
    return value


class PageQuery(CamelModel):
    page: Annotated[int, BeforeValidator(_page_number)] = 1
    limit: Annotated[Optional[int], BeforeValidator(_limit)] = None


class FormListQuery(PageQuery):
    status: Annotated[str, BeforeValidator(_query_status)] = "all"
    search: Annotated[str, BeforeValidator(_search)] = ""
    sort_by: Annotated[str, BeforeValidator(_sort_by)] = "updatedAt"
    sort_order: Annotated[str, BeforeValidator(_sort_order)] = "desc"
