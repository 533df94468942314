from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from pydantic import BeforeValidator, Field
from pydantic_core import PydanticCustomError

from formapi.models.common import CamelModel
from formapi.models.form import PageQuery


def _responses(value):
    if not isinstance(value, dict):
        raise PydanticCustomError("responses_type", "Responses must be an object")
    if not value:
        raise PydanticCustomError("responses_empty", "Responses cannot be empty")
    return value


def _email(value):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PydanticCustomError("email_type", "Respondent email must be a string")
    return value.strip()


class ResponseSubmission(CamelModel):
    responses: Annotated[Dict[str, Any], BeforeValidator(_responses)] = Field(default=None, validate_default=True)
    respondent_email: Annotated[str, BeforeValidator(_email)] = ""
    submitted_at: Optional[datetime] = None
    captcha_token: Optional[str] = None


class ResponseRecord(CamelModel):
    id: str
    form_id: str
    submitted_at: datetime
    data: Dict[str, Any]
    submitter_ip: str = Field(default="", alias="submitterIP")
    respondent_email: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ResponseListQuery(PageQuery):
    respondent_email: Annotated[Optional[str], BeforeValidator(_email)] = None
