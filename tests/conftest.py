import os
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient

os.environ["ENV_STATE"] = "test"
from formapi.captcha import get_captcha_verifier  # noqa: E402
from formapi.database import database  # noqa: E402
from formapi.main import app  # noqa: E402


class StubVerifier:
    """Stands in for the reCAPTCHA service; remembers the tokens it saw."""

    def __init__(self, result: bool = True):
        self.result = result
        self.tokens = []

    async def verify(self, token) -> bool:
        self.tokens.append(token)
        return self.result


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def captcha() -> Generator:
    verifier = StubVerifier()
    app.dependency_overrides[get_captcha_verifier] = lambda: verifier
    yield verifier
    app.dependency_overrides.pop(get_captcha_verifier, None)


@pytest.fixture()
async def db() -> AsyncGenerator:
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture()
async def async_client(db, captcha) -> AsyncGenerator:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _create_form(async_client: AsyncClient, **overrides) -> dict:
    body = {
        "title": "Contact Us",
        "fields": [
            {"id": "name", "type": "text", "label": "Name", "required": True},
            {"id": "email", "type": "email", "label": "Email"},
        ],
        "status": "published",
    }
    body.update(overrides)
    response = await async_client.post("/api/forms", json=body)
    assert response.status_code == 201, response.json()
    return response.json()["form"]


@pytest.fixture()
def make_form(async_client: AsyncClient):
    async def make(**overrides) -> dict:
        return await _create_form(async_client, **overrides)

    return make


@pytest.fixture()
async def published_form(make_form) -> dict:
    return await make_form()
