import logging
from typing import Annotated, Any, Dict, List, Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from formapi import store
from formapi.config import config
from formapi.models.field_types import CHOICE_FIELD_TYPES, is_allowed_type
from formapi.models.form import (
    FieldDefinition,
    Form,
    FormCreate,
    FormListQuery,
    FormUpdate,
    Page,
    PublicForm,
    duplicate_field_id,
    default_page,
    flatten_pages,
)
from formapi.validation import (
    create_form_body,
    form_id_path,
    list_query_params,
    update_form_body,
)

logger = logging.getLogger(__name__)
router = APIRouter()

M = TypeVar("M", bound=BaseModel)


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = (total + limit - 1) // limit
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalCount": total,
        "limit": limit,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }


def check_field_shapes(fields: List[Any]) -> None:
    """Element checks the update validator leaves to the handler."""
    for f in fields:
        if not isinstance(f, dict) or not all(
            isinstance(f.get(key), str) and f.get(key) for key in ("id", "type", "label")
        ):
            raise HTTPException(status_code=400, detail="Fields must have id, type, and label")
        if not is_allowed_type(f["type"]):
            raise HTTPException(status_code=400, detail=f"Invalid field type: {f['type']}")
        if f["type"] in CHOICE_FIELD_TYPES and not f.get("options"):
            raise HTTPException(status_code=400, detail=f"{f['type']} fields need options")


def check_page_shapes(pages: List[Any]) -> None:
    for p in pages:
        if not isinstance(p, dict) or not all(
            isinstance(p.get(key), str) and p.get(key) for key in ("id", "name")
        ):
            raise HTTPException(status_code=400, detail="Pages must have id and name")
        if not isinstance(p.get("fields", []), list):
            raise HTTPException(status_code=400, detail="Fields must be an array")
        check_field_shapes(p.get("fields", []))


def _parse(model: Type[M], value: Any) -> M:
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"]) from e


def _check_unique_ids(fields: List[FieldDefinition]) -> None:
    duplicate = duplicate_field_id(fields)
    if duplicate is not None:
        raise HTTPException(status_code=400, detail=f"Duplicate field id: {duplicate}")


def normalize_fields(fields: List[Any]) -> List[Dict[str, Any]]:
    """Shape-check raw update fields and dump them the way create stores them."""
    check_field_shapes(fields)
    parsed = [_parse(FieldDefinition, f) for f in fields]
    _check_unique_ids(parsed)
    return [f.model_dump(by_alias=True) for f in parsed]


def normalize_pages(pages: List[Any]) -> List[Dict[str, Any]]:
    check_page_shapes(pages)
    parsed = [_parse(Page, p) for p in pages]
    _check_unique_ids([f for page in parsed for f in page.fields])
    return [p.model_dump(by_alias=True) for p in parsed]


async def get_form_or_404(form_id: str) -> Dict[str, Any]:
    form = await store.fetch_form(form_id)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


@router.post("", status_code=201)
async def create_form(form: Annotated[FormCreate, Depends(create_form_body)]):
    fields, pages = form.layout()
    created = await store.insert_form(
        title=form.title,
        description=form.description,
        status=form.status,
        fields=fields,
        pages=pages,
    )
    logger.info(f"Created form {created['id']} with {len(fields)} field(s)")
    return {"message": "Form created successfully", "form": Form.model_validate(created)}


@router.get("", status_code=200)
async def list_forms(query: Annotated[FormListQuery, Depends(list_query_params)]):
    limit = query.limit or config.DEFAULT_PAGE_SIZE
    forms, total = await store.fetch_forms(
        status=query.status,
        search=query.search,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
        offset=(query.page - 1) * limit,
        limit=limit,
    )
    return {
        "forms": [Form.model_validate(f) for f in forms],
        "pagination": pagination(query.page, limit, total),
    }


@router.get("/{id}", response_model=Form, status_code=200)
async def get_form(form_id: Annotated[str, Depends(form_id_path)]):
    return await get_form_or_404(form_id)


@router.get("/{id}/public", response_model=PublicForm, status_code=200)
async def get_public_form(form_id: Annotated[str, Depends(form_id_path)]):
    form = await get_form_or_404(form_id)
    if form["status"] != "published":
        raise HTTPException(status_code=404, detail="Form not found")
    return form


@router.put("/{id}", status_code=200)
async def update_form(
    form_id: Annotated[str, Depends(form_id_path)],
    changes: Annotated[FormUpdate, Depends(update_form_body)],
):
    existing = await get_form_or_404(form_id)
    values = changes.model_dump(exclude_unset=True)

    if "pages" in values:
        values["pages"] = normalize_pages(values["pages"])
        values["fields"] = flatten_pages(values["pages"])
    elif "fields" in values:
        values["fields"] = normalize_fields(values["fields"])
        values["pages"] = [default_page(values["fields"])]

    if values.get("status") == "published" and not values.get("fields", existing["fields"]):
        raise HTTPException(status_code=400, detail="Can't publish form without fields")

    updated = await store.update_form(form_id, values)
    logger.info(f"Updated form {form_id}: {sorted(values)}")
    return {"message": "Form updated successfully", "form": Form.model_validate(updated)}


@router.delete("/{id}", status_code=200)
async def delete_form(form_id: Annotated[str, Depends(form_id_path)]):
    await get_form_or_404(form_id)
    await store.delete_form(form_id)
    logger.info(f"Deleted form {form_id}")
    return {"message": "Form deleted successfully", "form_id": form_id}
