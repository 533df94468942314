import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.anyio

MISSING_ID = "0123456789abcdef01234567"


async def test_create_form(async_client: AsyncClient):
    response = await async_client.post(
        "/api/forms",
        json={
            "title": "Contact Us",
            "fields": [{"id": "f1", "type": "email", "label": "Email"}],
            "status": "draft",
        },
    )
    assert response.status_code == 201
    form = response.json()["form"]
    assert len(form["id"]) == 24
    assert form["title"] == "Contact Us"
    assert form["status"] == "draft"
    assert form["fields"][0]["id"] == "f1"
    assert form["pages"][0]["id"] == "page-1"
    assert form["createdAt"] is not None


async def test_create_form_empty_title_is_rejected(async_client: AsyncClient):
    response = await async_client.post("/api/forms", json={"title": "", "fields": []})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errors"] == [
        {"field": "title", "message": "Form title is required", "location": "body"}
    ]


async def test_create_form_bogus_type_is_rejected(async_client: AsyncClient):
    response = await async_client.post(
        "/api/forms",
        json={"title": "X", "fields": [{"id": "f1", "type": "bogus", "label": "L"}]},
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Invalid field type: bogus"

    listing = await async_client.get("/api/forms")
    assert listing.json()["pagination"]["totalCount"] == 0


async def test_create_form_rejects_malformed_json(async_client: AsyncClient):
    response = await async_client.post(
        "/api/forms", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Request body must be valid JSON"


async def test_get_form(async_client: AsyncClient, published_form):
    response = await async_client.get(f"/api/forms/{published_form['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Contact Us"


async def test_get_form_invalid_id(async_client: AsyncClient):
    response = await async_client.get("/api/forms/not-an-id")
    assert response.status_code == 400
    assert response.json()["errors"] == [
        {"field": "id", "message": "Invalid form ID format", "location": "path"}
    ]


async def test_get_form_missing(async_client: AsyncClient):
    response = await async_client.get(f"/api/forms/{MISSING_ID}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Form not found"


async def test_public_form_only_when_published(async_client: AsyncClient, make_form):
    draft = await make_form(status="draft")
    published = await make_form(title="Open")

    assert (await async_client.get(f"/api/forms/{draft['id']}/public")).status_code == 404
    response = await async_client.get(f"/api/forms/{published['id']}/public")
    assert response.status_code == 200
    assert response.json()["title"] == "Open"
    assert "status" not in response.json()


async def test_update_form_title(async_client: AsyncClient, published_form):
    response = await async_client.put(
        f"/api/forms/{published_form['id']}", json={"title": "  New <title>  "}
    )
    assert response.status_code == 200
    form = response.json()["form"]
    assert form["title"] == "New &lt;title&gt;"
    assert form["fields"] == published_form["fields"]


async def test_update_form_whitespace_title_is_rejected(async_client: AsyncClient, published_form):
    response = await async_client.put(f"/api/forms/{published_form['id']}", json={"title": "   "})
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Form title cannot be empty or just whitespace"


async def test_update_form_replaces_fields(async_client: AsyncClient, published_form):
    response = await async_client.put(
        f"/api/forms/{published_form['id']}",
        json={"fields": [{"id": "age", "type": "number", "label": "Age"}]},
    )
    assert response.status_code == 200
    form = response.json()["form"]
    assert [f["id"] for f in form["fields"]] == ["age"]
    assert form["pages"][0]["fields"] == form["fields"]


@pytest.mark.parametrize(
    "fields, detail",
    [
        ([{"id": "a", "type": "text"}], "Fields must have id, type, and label"),
        ([{"id": "a", "type": "bogus", "label": "A"}], "Invalid field type: bogus"),
        ([{"id": "a", "type": "radio", "label": "A"}], "radio fields need options"),
    ],
)
async def test_update_form_checks_field_shape(async_client: AsyncClient, published_form, fields, detail):
    response = await async_client.put(f"/api/forms/{published_form['id']}", json={"fields": fields})
    assert response.status_code == 400
    assert response.json()["detail"] == detail


async def test_cannot_publish_form_without_fields(async_client: AsyncClient, make_form):
    form = await make_form(fields=[], status="draft")
    response = await async_client.put(f"/api/forms/{form['id']}", json={"status": "published"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Can't publish form without fields"


async def test_update_form_unknown_status(async_client: AsyncClient, published_form):
    response = await async_client.put(f"/api/forms/{published_form['id']}", json={"status": "gone"})
    assert response.status_code == 400


async def test_delete_form(async_client: AsyncClient, published_form):
    form_id = published_form["id"]
    await async_client.post(f"/api/forms/{form_id}/submit", json={"responses": {"name": "Ann"}})

    response = await async_client.delete(f"/api/forms/{form_id}")
    assert response.status_code == 200
    assert response.json()["form_id"] == form_id
    assert (await async_client.get(f"/api/forms/{form_id}")).status_code == 404


async def test_delete_missing_form(async_client: AsyncClient):
    response = await async_client.delete(f"/api/forms/{MISSING_ID}")
    assert response.status_code == 404


async def test_list_forms_pagination(async_client: AsyncClient, make_form):
    for i in range(3):
        await make_form(title=f"Form {i}")

    response = await async_client.get("/api/forms", params={"page": 2, "limit": 2})
    assert response.status_code == 200
    body = response.json()
    assert len(body["forms"]) == 1
    assert body["pagination"] == {
        "currentPage": 2,
        "totalPages": 2,
        "totalCount": 3,
        "limit": 2,
        "hasNextPage": False,
        "hasPreviousPage": True,
    }


async def test_list_forms_filters_and_sorts(async_client: AsyncClient, make_form):
    await make_form(title="Beta survey", status="draft")
    await make_form(title="Alpha survey")
    await make_form(title="Feedback")

    response = await async_client.get(
        "/api/forms", params={"search": "SURVEY", "sortBy": "title", "sortOrder": "asc"}
    )
    assert [f["title"] for f in response.json()["forms"]] == ["Alpha survey", "Beta survey"]

    response = await async_client.get("/api/forms", params={"status": "draft"})
    assert [f["title"] for f in response.json()["forms"]] == ["Beta survey"]


@pytest.mark.parametrize(
    "params",
    [{"page": "0"}, {"limit": "101"}, {"status": "archived"}, {"search": "x" * 101}],
)
async def test_list_forms_rejects_bad_query(async_client: AsyncClient, params):
    response = await async_client.get("/api/forms", params=params)
    assert response.status_code == 400
    assert response.json()["errors"][0]["location"] == "query"


async def test_list_forms_search_matches_wildcards_literally(async_client: AsyncClient, make_form):
    await make_form(title="50% off")
    await make_form(title="500 off")
    await make_form(title="snake_case")
    await make_form(title="snakeXcase")

    response = await async_client.get("/api/forms", params={"search": "0%"})
    assert response.status_code == 200
    assert [f["title"] for f in response.json()["forms"]] == ["50% off"]

    response = await async_client.get("/api/forms", params={"search": "e_c"})
    assert [f["title"] for f in response.json()["forms"]] == ["snake_case"]


async def test_list_forms_search_without_match(async_client: AsyncClient, make_form):
    await make_form(title="Alpha")
    response = await async_client.get("/api/forms", params={"search": "zzz"})
    assert response.status_code == 200
    assert response.json()["forms"] == []
    assert response.json()["pagination"]["totalCount"] == 0


async def test_list_forms_rejects_page_beyond_range(async_client: AsyncClient):
    response = await async_client.get("/api/forms", params={"page": str(10**20)})
    assert response.status_code == 400
    assert response.json()["errors"][0]["message"] == "Page must be a positive integer"


async def test_create_form_with_fully_escaped_title(async_client: AsyncClient, make_form):
    form = await make_form(title="'" * 200)
    assert form["title"] == "&#x27;" * 200


@pytest.mark.parametrize(
    "fields, detail",
    [
        (
            [{"id": "f1", "type": "text", "label": "A"}, {"id": "f1", "type": "text", "label": "B"}],
            "Duplicate field id: f1",
        ),
        ([{"id": 7, "type": "text", "label": "A"}], "Fields must have id, type, and label"),
        ([{"id": "f1", "type": "text", "label": ["A"]}], "Fields must have id, type, and label"),
    ],
)
async def test_update_form_rejects_bad_field_ids(async_client: AsyncClient, published_form, fields, detail):
    form_id = published_form["id"]
    response = await async_client.put(f"/api/forms/{form_id}", json={"fields": fields})
    assert response.status_code == 400
    assert response.json()["detail"] == detail

    stored = await async_client.get(f"/api/forms/{form_id}")
    assert stored.json()["fields"] == published_form["fields"]


async def test_update_form_stores_fields_in_camel_case(async_client: AsyncClient, published_form):
    rules = [{"when": [{"field": "name", "op": "eq", "value": "x"}], "action": "hide"}]
    response = await async_client.put(
        f"/api/forms/{published_form['id']}",
        json={"fields": [{"id": "name", "type": "text", "label": "Name", "visibility_rules": rules}]},
    )
    assert response.status_code == 200
    field = response.json()["form"]["fields"][0]
    assert field["visibilityRules"] == rules
    assert "visibility_rules" not in field


async def test_update_form_pages(async_client: AsyncClient, published_form):
    pages = [
        {"id": "p1", "name": "One", "fields": [{"id": "a", "type": "text", "label": "A"}]},
        {"id": "p2", "name": "Two", "fields": [{"id": "b", "type": "date", "label": "B"}]},
    ]
    response = await async_client.put(f"/api/forms/{published_form['id']}", json={"pages": pages})
    assert response.status_code == 200
    form = response.json()["form"]
    assert [p["id"] for p in form["pages"]] == ["p1", "p2"]
    assert [f["id"] for f in form["fields"]] == ["a", "b"]


@pytest.mark.parametrize(
    "pages, detail",
    [
        ([{"id": "p1"}], "Pages must have id and name"),
        ([{"id": 1, "name": "One"}], "Pages must have id and name"),
        ([{"id": "p1", "name": "One", "fields": {"id": "a"}}], "Fields must be an array"),
        (
            [
                {"id": "p1", "name": "One", "fields": [{"id": "a", "type": "text", "label": "A"}]},
                {"id": "p2", "name": "Two", "fields": [{"id": "a", "type": "text", "label": "B"}]},
            ],
            "Duplicate field id: a",
        ),
    ],
)
async def test_update_form_rejects_bad_pages(async_client: AsyncClient, published_form, pages, detail):
    response = await async_client.put(f"/api/forms/{published_form['id']}", json={"pages": pages})
    assert response.status_code == 400
    assert response.json()["detail"] == detail
