"""Request validators for forms, list queries and submissions.

Every ``check_*`` function is pure: it takes already-decoded request data and
returns a :class:`Checked` holding either the parsed value or every problem
found, as ``FieldError`` entries. The ``*_body``/``*_params``/``*_path``
functions wrap them as FastAPI dependencies that stop the request with
:class:`RequestValidationFailed` before any handler code runs.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Generic, List, Mapping, Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from formapi.errors import FieldError, RequestValidationFailed
from formapi.models.form import FormCreate, FormListQuery, FormUpdate
from formapi.models.response import ResponseListQuery, ResponseSubmission

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


@dataclass
class Checked(Generic[T]):
    value: Optional[T] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _path(loc) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def errors_from(exc: ValidationError, location: str) -> List[FieldError]:
    errors = []
    for err in exc.errors():
        message = err["msg"]
        if not err["loc"] and err["type"] == "model_type":
            message = "Request body must be a JSON object"
        errors.append(FieldError(field=_path(err["loc"]) or location, message=message, location=location))
    return errors


def _check(model: Type[M], data: Any, location: str) -> Checked[M]:
    try:
        return Checked(value=model.model_validate(data))
    except ValidationError as e:
        return Checked(errors=errors_from(e, location))


def check_create_form(data: Any) -> Checked[FormCreate]:
    return _check(FormCreate, data, "body")


def check_update_form(data: Any) -> Checked[FormUpdate]:
    return _check(FormUpdate, data, "body")


def check_list_query(params: Mapping[str, Any]) -> Checked[FormListQuery]:
    return _check(FormListQuery, dict(params), "query")


def check_response_list_query(params: Mapping[str, Any]) -> Checked[ResponseListQuery]:
    return _check(ResponseListQuery, dict(params), "query")


def check_submission(data: Any) -> Checked[ResponseSubmission]:
    return _check(ResponseSubmission, data, "body")


def check_object_id(value: Any, field_name: str = "id", message: str = "Invalid form ID format") -> Checked[str]:
    if isinstance(value, str) and OBJECT_ID_RE.match(value):
        return Checked(value=value.lower())
    return Checked(errors=[FieldError(field=field_name, message=message, location="path")])


def _unwrap(checked: Checked[T]) -> T:
    if not checked.ok:
        logger.debug(f"Rejected request: {[e.as_dict() for e in checked.errors]}")
        raise RequestValidationFailed(checked.errors)
    return checked.value


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RequestValidationFailed(
            [FieldError(field="body", message="Request body must be valid JSON")]
        ) from e


async def create_form_body(request: Request) -> FormCreate:
    return _unwrap(check_create_form(await _json_body(request)))


async def update_form_body(request: Request) -> FormUpdate:
    return _unwrap(check_update_form(await _json_body(request)))


async def submission_body(request: Request) -> ResponseSubmission:
    return _unwrap(check_submission(await _json_body(request)))


def list_query_params(request: Request) -> FormListQuery:
    return _unwrap(check_list_query(request.query_params))


def response_list_query_params(request: Request) -> ResponseListQuery:
    return _unwrap(check_response_list_query(request.query_params))


def form_id_path(id: str) -> str:
    return _unwrap(check_object_id(id))


def response_id_path(response_id: str) -> str:
    return _unwrap(
        check_object_id(response_id, field_name="response_id", message="Invalid response ID format")
    )
