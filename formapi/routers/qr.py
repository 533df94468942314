import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from formapi import store
from formapi.config import config
from formapi.errors import StorageError
from formapi.models.qr import QRLink
from formapi.routers.form import get_form_or_404
from formapi.validation import form_id_path

logger = logging.getLogger(__name__)
router = APIRouter()
redirect_router = APIRouter()

NOT_FOUND_PAGE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; text-align: center; padding: 50px;">
  <h1>{title}</h1>
  <p>{text}</p>
</body>
</html>
"""


@router.post("/{id}/qr", status_code=201)
async def create_qr_link(form_id: Annotated[str, Depends(form_id_path)]):
    await get_form_or_404(form_id)
    existing = await store.fetch_qr_link_for_form(form_id)
    if existing is not None:
        link = QRLink.model_validate(existing)
        return JSONResponse(
            status_code=200,
            content={"message": "QR code already exists", "qr": link.model_dump(mode="json", by_alias=True)},
        )

    created = await store.insert_qr_link(form_id)
    logger.info(f"Created QR link {created['token']} for form {form_id}")
    return {"message": "QR code generated successfully", "qr": QRLink.model_validate(created)}


@router.get("/{id}/qr", response_model=QRLink, status_code=200)
async def get_qr_link(form_id: Annotated[str, Depends(form_id_path)]):
    await get_form_or_404(form_id)
    link = await store.fetch_qr_link_for_form(form_id)
    if link is None:
        raise HTTPException(status_code=404, detail="QR code not found. Please generate one first.")
    return link


@redirect_router.get("/q/{token}", response_class=RedirectResponse)
async def follow_qr_link(token: str):
    link = await store.fetch_qr_link(token)
    if link is None:
        return HTMLResponse(
            NOT_FOUND_PAGE.format(
                title="Invalid QR Code",
                text="This QR code is not valid or has been deleted.",
            ),
            status_code=404,
        )
    if await store.fetch_form(link["form_id"]) is None:
        return HTMLResponse(
            NOT_FOUND_PAGE.format(
                title="Form Not Found",
                text="The form associated with this QR code no longer exists.",
            ),
            status_code=404,
        )

    try:
        await store.record_scan(token)
    except StorageError:
        # a lost scan count must not block the respondent
        logger.warning(f"Could not record scan for QR link {token}")

    return RedirectResponse(f"{config.PUBLIC_FORM_BASE_URL.rstrip('/')}/form/{link['form_id']}", status_code=302)
