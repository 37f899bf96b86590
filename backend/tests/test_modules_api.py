"""
Course modules API contract: dense positions, explicit 400/404 errors.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from web.main import app

pytestmark = pytest.mark.anyio

BASE = "/api/teaching/courses/course-1/modules"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _seed(client: httpx.AsyncClient, *titles: str) -> list:
    created = []
    for t in titles:
        r = await client.post(BASE, json={"title": t})
        assert r.status_code == 201
        created.append(r.json())
    return created


async def test_health():
    async with _client() as client:
        r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}
    assert r.headers.get("Cache-Control") == "private, no-store"


async def test_create_appends_and_list_is_ordered():
    async with _client() as client:
        a, b, c = await _seed(client, "A", "B", "C")
        assert [a["position"], b["position"], c["position"]] == [1, 2, 3]
        assert a["counts"] == {"lessons": 0, "attachments": 0, "quizzes": 0}
        r = await client.get(BASE)
    assert r.status_code == 200
    assert [m["title"] for m in r.json()] == ["A", "B", "C"]


async def test_list_is_scoped_per_course():
    async with _client() as client:
        await _seed(client, "A")
        r = await client.get("/api/teaching/courses/other/modules")
    assert r.json() == []


@pytest.mark.parametrize("payload", [{}, {"title": "   "}, {"title": "x" * 201}, {"title": 5}])
async def test_create_rejects_invalid_title(payload):
    async with _client() as client:
        r = await client.post(BASE, json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": "invalid_title"}


async def test_create_rejects_long_description():
    async with _client() as client:
        r = await client.post(BASE, json={"title": "A", "description": "d" * 2001})
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_description"


async def test_update_title_and_errors():
    async with _client() as client:
        (a,) = await _seed(client, "A")
        r = await client.patch(f"{BASE}/{a['id']}", json={"title": "  Alpha "})
        assert r.status_code == 200
        assert r.json()["title"] == "Alpha"
        assert r.json()["position"] == 1

        r = await client.patch(f"{BASE}/{a['id']}", json={})
        assert r.status_code == 400 and r.json()["detail"] == "empty_payload"

        r = await client.patch(f"{BASE}/{a['id']}", json={"title": ""})
        assert r.status_code == 400 and r.json()["detail"] == "invalid_title"

        r = await client.patch(f"{BASE}/unknown", json={"title": "x"})
        assert r.status_code == 404
        assert r.json() == {"error": "not_found", "detail": "module_not_found"}

        r = await client.patch(f"/api/teaching/courses/other/modules/{a['id']}", json={"title": "x"})
        assert r.status_code == 404


async def test_delete_resequences_remaining_modules():
    async with _client() as client:
        a, b, c = await _seed(client, "A", "B", "C")
        r = await client.delete(f"{BASE}/{b['id']}")
        assert r.status_code == 204
        r = await client.get(BASE)
        assert [(m["title"], m["position"]) for m in r.json()] == [("A", 1), ("C", 2)]
        r = await client.delete(f"{BASE}/{b['id']}")
        assert r.status_code == 404


async def test_reorder_applies_complete_permutation():
    async with _client() as client:
        a, b, c = await _seed(client, "A", "B", "C")
        ordered = [
            {"id": b["id"], "position": 1},
            {"id": c["id"], "position": 2},
            {"id": a["id"], "position": 3},
        ]
        r = await client.post(f"{BASE}/reorder", json={"ordered_modules": ordered})
        assert r.status_code == 200
        assert [(m["title"], m["position"]) for m in r.json()] == [("B", 1), ("C", 2), ("A", 3)]
        r = await client.get(BASE)
        assert [m["title"] for m in r.json()] == ["B", "C", "A"]


async def test_reorder_contract_errors():
    async with _client() as client:
        a, b, c = await _seed(client, "A", "B", "C")

        async def reorder(body):
            return await client.post(f"{BASE}/reorder", json=body)

        r = await reorder({"ordered_modules": "nope"})
        assert (r.status_code, r.json()["detail"]) == (400, "invalid_ordered_modules")
        r = await reorder({"ordered_modules": []})
        assert (r.status_code, r.json()["detail"]) == (400, "empty_reorder")
        r = await reorder({"ordered_modules": [{"id": a["id"], "position": 1}, {"id": a["id"], "position": 2}]})
        assert (r.status_code, r.json()["detail"]) == (400, "duplicate_module_ids")
        r = await reorder({"ordered_modules": [{"id": a["id"], "position": 1}, {"id": b["id"], "position": 2}]})
        assert (r.status_code, r.json()["detail"]) == (400, "module_mismatch")
        r = await reorder(
            {
                "ordered_modules": [
                    {"id": a["id"], "position": 1},
                    {"id": b["id"], "position": 2},
                    {"id": "ghost", "position": 3},
                ]
            }
        )
        assert r.status_code == 404

        # nothing changed
        r = await client.get(BASE)
        assert [m["title"] for m in r.json()] == ["A", "B", "C"]


async def test_reorder_assigns_positions_from_submitted_list_order():
    async with _client() as client:
        a, b, c = await _seed(client, "A", "B", "C")
        ordered = [
            {"id": c["id"], "position": 7},
            {"id": a["id"], "position": 7},
            {"id": b["id"]},
        ]
        r = await client.post(f"{BASE}/reorder", json={"ordered_modules": ordered})
        assert r.status_code == 200
        assert [(m["title"], m["position"]) for m in r.json()] == [("C", 1), ("A", 2), ("B", 3)]
        r = await client.get(BASE)
        assert [(m["title"], m["position"]) for m in r.json()] == [("C", 1), ("A", 2), ("B", 3)]
