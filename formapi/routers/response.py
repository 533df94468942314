import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request

from formapi import store
from formapi.captcha import CaptchaVerifier, get_captcha_verifier
from formapi.config import config
from formapi.logic import first_missing_required
from formapi.models.response import ResponseListQuery, ResponseRecord, ResponseSubmission
from formapi.routers.form import get_form_or_404, pagination
from formapi.validation import (
    form_id_path,
    response_id_path,
    response_list_query_params,
    submission_body,
)

logger = logging.getLogger(__name__)
router = APIRouter()

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@router.post("/{id}/submit", status_code=201)
async def submit_response(
    request: Request,
    form_id: Annotated[str, Depends(form_id_path)],
    submission: Annotated[ResponseSubmission, Depends(submission_body)],
    verifier: Annotated[CaptchaVerifier, Depends(get_captcha_verifier)],
):
    form = await get_form_or_404(form_id)
    if form["status"] != "published":
        raise HTTPException(status_code=400, detail="This form is not accepting responses")

    if config.RECAPTCHA_REQUIRED and not await verifier.verify(submission.captcha_token):
        raise HTTPException(status_code=400, detail="CAPTCHA verification failed")

    email = submission.respondent_email
    if email and not EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Please provide a valid email address")
    if email:
        count = await store.count_responses_for_email(form_id, email)
        if count >= config.MAX_RESPONSES_PER_EMAIL:
            raise HTTPException(status_code=400, detail="You reached the response limit")

    missing = first_missing_required(form["fields"], form["pages"], submission.responses)
    if missing is not None:
        raise HTTPException(status_code=400, detail=f"{missing.get('label')} is required")

    saved = await store.insert_response(
        form_id=form_id,
        data=submission.responses,
        submitted_at=submission.submitted_at,
        submitter_ip=request.client.host if request.client else "",
        respondent_email=email,
    )
    logger.info(f"Stored response {saved['id']} for form {form_id}")
    return {"message": "Response submitted successfully", "response_id": saved["id"]}


@router.get("/{id}/responses", status_code=200)
async def list_responses(
    form_id: Annotated[str, Depends(form_id_path)],
    query: Annotated[ResponseListQuery, Depends(response_list_query_params)],
):
    form = await get_form_or_404(form_id)
    limit = query.limit or config.DEFAULT_PAGE_SIZE
    responses, total = await store.fetch_responses(
        form_id,
        respondent_email=query.respondent_email,
        offset=(query.page - 1) * limit,
        limit=limit,
    )
    return {
        "formTitle": form["title"],
        "responses": [ResponseRecord.model_validate(r) for r in responses],
        "pagination": pagination(query.page, limit, total),
    }


@router.get("/{id}/responses/{response_id}", status_code=200)
async def get_response(
    form_id: Annotated[str, Depends(form_id_path)],
    response_id: Annotated[str, Depends(response_id_path)],
):
    form = await get_form_or_404(form_id)
    response = await store.fetch_response(form_id, response_id)
    if response is None:
        raise HTTPException(status_code=404, detail="Response not found")
    return {
        "formTitle": form["title"],
        "formFields": form["fields"],
        "formPages": form["pages"],
        "response": ResponseRecord.model_validate(response),
    }


@router.delete("/{id}/responses/{response_id}", status_code=200)
async def delete_response(
    form_id: Annotated[str, Depends(form_id_path)],
    response_id: Annotated[str, Depends(response_id_path)],
):
    await get_form_or_404(form_id)
    if await store.fetch_response(form_id, response_id) is None:
        raise HTTPException(status_code=404, detail="Response not found")
    await store.delete_response(form_id, response_id)
    logger.info(f"Deleted response {response_id} from form {form_id}")
    return {"message": "Response deleted successfully", "response_id": response_id}
