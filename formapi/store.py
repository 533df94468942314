"""Persistence for forms, responses and QR links.

Rows come back as plain dicts keyed by column name. Any failure below this
module surfaces as :class:`StorageError`, never as a validation problem.
"""
import datetime
import functools
import logging
import secrets
import time
from typing import Any, Dict, List, Optional, Tuple

import sqlalchemy

from formapi.database import database, form_table, qr_link_table, response_table
from formapi.errors import StorageError

logger = logging.getLogger(__name__)

FORM_SORT_COLUMNS = {
    "createdAt": form_table.c.created_at,
    "updatedAt": form_table.c.updated_at,
    "title": form_table.c.title,
}


def new_object_id() -> str:
    """24 hex chars: seconds since the epoch followed by 8 random bytes."""
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def new_qr_token() -> str:
    return secrets.token_urlsafe(6)


def _like_pattern(term: str) -> str:
    """Case-insensitive substring pattern, with LIKE wildcards in ``term`` matched literally."""
    escaped = term.lower().replace("/", "//").replace("%", "/%").replace("_", "/_")
    return f"%{escaped}%"


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_dict(table: sqlalchemy.Table, row) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {column.name: row[column.name] for column in table.c}


def storage_call(fn):
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"{fn.__name__} failed: {e.__class__.__name__}: {e}")
            raise StorageError(f"{fn.__name__} failed") from e

    return wrapper


async def _count(table: sqlalchemy.Table, *criteria) -> int:
    query = sqlalchemy.select(sqlalchemy.func.count()).select_from(table)
    if criteria:
        query = query.where(*criteria)
    return await database.fetch_val(query)


# Forms


@storage_call
async def insert_form(
    title: str,
    description: str,
    status: str,
    fields: List[Dict[str, Any]],
    pages: List[Dict[str, Any]],
) -> Dict[str, Any]:
    form_id = new_object_id()
    now = _now()
    query = form_table.insert().values(
        id=form_id,
        title=title,
        description=description,
        status=status,
        fields=fields,
        pages=pages,
        created_at=now,
        updated_at=now,
    )
    await database.execute(query)
    return await fetch_form(form_id)


@storage_call
async def fetch_form(form_id: str) -> Optional[Dict[str, Any]]:
    query = form_table.select().where(form_table.c.id == form_id)
    return _as_dict(form_table, await database.fetch_one(query))


@storage_call
async def fetch_forms(
    status: str = "all",
    search: str = "",
    sort_by: str = "updatedAt",
    sort_order: str = "desc",
    offset: int = 0,
    limit: int = 10,
) -> Tuple[List[Dict[str, Any]], int]:
    criteria = []
    if status != "all":
        criteria.append(form_table.c.status == status)
    if search:
        criteria.append(
            sqlalchemy.func.lower(form_table.c.title).like(_like_pattern(search), escape="/")
        )

    column = FORM_SORT_COLUMNS[sort_by]
    order = column.asc() if sort_order == "asc" else column.desc()
    query = form_table.select().order_by(order, form_table.c.id).offset(offset).limit(limit)
    if criteria:
        query = query.where(*criteria)

    rows = await database.fetch_all(query)
    total = await _count(form_table, *criteria)
    return [_as_dict(form_table, row) for row in rows], total


@storage_call
async def update_form(form_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    query = (
        form_table.update()
        .where(form_table.c.id == form_id)
        .values(**values, updated_at=_now())
    )
    await database.execute(query)
    return await fetch_form(form_id)


@storage_call
async def delete_form(form_id: str) -> None:
    """Delete a form together with its responses and QR link."""
    async with database.transaction():
        await database.execute(response_table.delete().where(response_table.c.form_id == form_id))
        await database.execute(qr_link_table.delete().where(qr_link_table.c.form_id == form_id))
        await database.execute(form_table.delete().where(form_table.c.id == form_id))


# Responses


@storage_call
async def insert_response(
    form_id: str,
    data: Dict[str, Any],
    submitted_at: Optional[datetime.datetime] = None,
    submitter_ip: str = "",
    respondent_email: str = "",
) -> Dict[str, Any]:
    response_id = new_object_id()
    now = _now()
    query = response_table.insert().values(
        id=response_id,
        form_id=form_id,
        submitted_at=submitted_at or now,
        data=data,
        submitter_ip=submitter_ip,
        respondent_email=respondent_email,
        created_at=now,
        updated_at=now,
    )
    await database.execute(query)
    return await fetch_response(form_id, response_id)


@storage_call
async def fetch_responses(
    form_id: str,
    respondent_email: Optional[str] = None,
    offset: int = 0,
    limit: int = 10,
) -> Tuple[List[Dict[str, Any]], int]:
    """Newest first, optionally only those from one respondent email."""
    criteria = [response_table.c.form_id == form_id]
    if respondent_email is not None:
        criteria.append(response_table.c.respondent_email == respondent_email)

    query = (
        response_table.select()
        .where(*criteria)
        .order_by(response_table.c.submitted_at.desc(), response_table.c.id.desc())
        .offset(offset)
        .limit(limit)
    )
    rows = await database.fetch_all(query)
    total = await _count(response_table, *criteria)
    return [_as_dict(response_table, row) for row in rows], total


@storage_call
async def count_responses_for_email(form_id: str, respondent_email: str) -> int:
    return await _count(
        response_table,
        response_table.c.form_id == form_id,
        response_table.c.respondent_email == respondent_email,
    )


@storage_call
async def fetch_response(form_id: str, response_id: str) -> Optional[Dict[str, Any]]:
    query = response_table.select().where(
        response_table.c.id == response_id,
        response_table.c.form_id == form_id,
    )
    return _as_dict(response_table, await database.fetch_one(query))


@storage_call
async def delete_response(form_id: str, response_id: str) -> None:
    query = response_table.delete().where(
        response_table.c.id == response_id,
        response_table.c.form_id == form_id,
    )
    await database.execute(query)


# QR links


@storage_call
async def fetch_qr_link_for_form(form_id: str) -> Optional[Dict[str, Any]]:
    query = qr_link_table.select().where(qr_link_table.c.form_id == form_id)
    return _as_dict(qr_link_table, await database.fetch_one(query))


@storage_call
async def fetch_qr_link(token: str) -> Optional[Dict[str, Any]]:
    query = qr_link_table.select().where(qr_link_table.c.token == token)
    return _as_dict(qr_link_table, await database.fetch_one(query))


@storage_call
async def insert_qr_link(form_id: str) -> Dict[str, Any]:
    token = new_qr_token()
    while await fetch_qr_link(token) is not None:
        token = new_qr_token()

    now = _now()
    query = qr_link_table.insert().values(
        id=new_object_id(),
        form_id=form_id,
        token=token,
        scan_count=0,
        created_at=now,
        updated_at=now,
    )
    await database.execute(query)
    return await fetch_qr_link(token)


@storage_call
async def record_scan(token: str) -> None:
    query = (
        qr_link_table.update()
        .where(qr_link_table.c.token == token)
        .values(scan_count=qr_link_table.c.scan_count + 1, updated_at=_now())
    )
    await database.execute(query)
