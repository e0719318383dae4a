"""
Integration tests for the task endpoints: CRUD, ownership, listing and stats.
"""

import pytest
from httpx import AsyncClient
from conftest import API

MISSING_ID = "3e1d2c4b-0000-4000-8000-123456789abc"


async def create_task(client: AsyncClient, headers: dict, **fields) -> dict:
    fields.setdefault("title", "Write report")
    response = await client.post(f"{API}/tasks", json=fields, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["task"]


@pytest.mark.asyncio
class TestCreateTask:

    async def test_create_with_defaults(self, client: AsyncClient, auth_headers):
        response = await client.post(f"{API}/tasks", json={"title": "  Buy milk  "}, headers=auth_headers)
        assert response.status_code == 201

        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Task created successfully."

        task = body["data"]["task"]
        assert task["title"] == "Buy milk"
        assert task["description"] == ""
        assert task["status"] == "todo"
        assert task["priority"] == "medium"
        assert task["dueDate"] is None
        assert task["tags"] == []
        assert task["ownerId"]
        assert task["createdAt"]
        assert task["updatedAt"]

    async def test_create_full(self, client: AsyncClient, auth_headers):
        task = await create_task(
            client, auth_headers,
            title="Plan trip",
            description="Book flights",
            status="in-progress",
            priority="high",
            dueDate="2026-12-01",
            tags=[" travel ", "", "family"],
        )
        assert task["status"] == "in-progress"
        assert task["priority"] == "high"
        assert task["dueDate"] == "2026-12-01"
        assert task["tags"] == ["travel", "family"]

    async def test_owner_comes_from_token(self, client: AsyncClient, auth_headers, other_headers):
        me = (await client.get(f"{API}/auth/me", headers=auth_headers)).json()["data"]["user"]
        other = (await client.get(f"{API}/auth/me", headers=other_headers)).json()["data"]["user"]

        task = await create_task(client, auth_headers, ownerId=other["id"])
        assert task["ownerId"] == me["id"]

    @pytest.mark.parametrize("payload,field", [
        ({"title": "   "}, "title"),
        ({}, "title"),
        ({"title": "x" * 201}, "title"),
        ({"title": "ok", "status": "done"}, "status"),
        ({"title": "ok", "priority": "urgent"}, "priority"),
        ({"title": "ok", "tags": ["t"] * 11}, "tags"),
        ({"title": "ok", "tags": ["x" * 31]}, "tags"),
        ({"title": "ok", "description": "d" * 2001}, "description"),
    ])
    async def test_invalid_payload(self, client: AsyncClient, auth_headers, payload, field):
        response = await client.post(f"{API}/tasks", json=payload, headers=auth_headers)
        assert response.status_code == 422

        body = response.json()
        assert body["message"] == "Validation failed"
        assert any(e["field"].startswith(field) for e in body["errors"])

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post(f"{API}/tasks", json={"title": "x"})
        assert response.status_code == 401


@pytest.mark.asyncio
class TestSingleTask:

    async def test_get(self, client: AsyncClient, auth_headers):
        created = await create_task(client, auth_headers)
        response = await client.get(f"{API}/tasks/{created['id']}", headers=auth_headers)
        assert response.status_code == 200

        task = response.json()["data"]["task"]
        for key in ("id", "title", "description", "status", "priority", "dueDate", "tags", "ownerId"):
            assert task[key] == created[key]

    async def test_get_malformed_id(self, client: AsyncClient, auth_headers):
        response = await client.get(f"{API}/tasks/not-a-real-id", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid id: not-a-real-id"

    async def test_get_missing(self, client: AsyncClient, auth_headers):
        response = await client.get(f"{API}/tasks/{MISSING_ID}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Task not found."}

    async def test_other_users_task_is_not_found(self, client: AsyncClient, auth_headers, other_headers):
        created = await create_task(client, auth_headers)
        url = f"{API}/tasks/{created['id']}"

        get = await client.get(url, headers=other_headers)
        put = await client.put(url, json={"title": "Mine now"}, headers=other_headers)
        delete = await client.delete(url, headers=other_headers)
        missing = await client.get(f"{API}/tasks/{MISSING_ID}", headers=other_headers)

        for response in (get, put, delete):
            assert response.status_code == 404
            assert response.json() == missing.json()

        still_there = await client.get(url, headers=auth_headers)
        assert still_there.json()["data"]["task"]["title"] == "Write report"

    async def test_update_partial(self, client: AsyncClient, auth_headers):
        created = await create_task(client, auth_headers, tags=["a"], dueDate="2026-11-01")

        response = await client.put(
            f"{API}/tasks/{created['id']}",
            json={"status": "completed", "tags": ["b", "c"]},
            headers=auth_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Task updated successfully."

        task = body["data"]["task"]
        assert task["status"] == "completed"
        assert task["tags"] == ["b", "c"]
        assert task["title"] == created["title"]
        assert task["dueDate"] == "2026-11-01"

    async def test_update_clears_due_date(self, client: AsyncClient, auth_headers):
        created = await create_task(client, auth_headers, dueDate="2026-11-01")
        response = await client.put(
            f"{API}/tasks/{created['id']}", json={"dueDate": None}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["task"]["dueDate"] is None

    @pytest.mark.parametrize("payload", [{}, {"ownerId": "someone"}, {"color": "red"}])
    async def test_update_without_known_fields(self, client: AsyncClient, auth_headers, payload):
        created = await create_task(client, auth_headers)
        response = await client.put(f"{API}/tasks/{created['id']}", json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "No valid fields provided for update."

        unchanged = await client.get(f"{API}/tasks/{created['id']}", headers=auth_headers)
        assert unchanged.json()["data"]["task"]["title"] == created["title"]
        assert unchanged.json()["data"]["task"]["ownerId"] == created["ownerId"]

    async def test_update_rejects_null_status(self, client: AsyncClient, auth_headers):
        created = await create_task(client, auth_headers)
        response = await client.put(
            f"{API}/tasks/{created['id']}", json={"status": None}, headers=auth_headers
        )
        assert response.status_code == 422

    async def test_update_rejects_blank_title(self, client: AsyncClient, auth_headers):
        created = await create_task(client, auth_headers)
        response = await client.put(
            f"{API}/tasks/{created['id']}", json={"title": "  "}, headers=auth_headers
        )
        assert response.status_code == 422

    async def test_delete(self, client: AsyncClient, auth_headers):
        created = await create_task(client, auth_headers)
        url = f"{API}/tasks/{created['id']}"

        response = await client.delete(url, headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Task deleted successfully.",
            "data": {},
        }

        assert (await client.get(url, headers=auth_headers)).status_code == 404
        assert (await client.delete(url, headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
class TestListTasks:

    async def test_empty(self, client: AsyncClient, auth_headers):
        response = await client.get(f"{API}/tasks", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tasks"] == []
        assert data["pagination"] == {
            "total": 0,
            "page": 1,
            "limit": 20,
            "totalPages": 0,
            "hasNextPage": False,
            "hasPrevPage": False,
        }

    async def test_pages_cover_all_tasks(self, client: AsyncClient, auth_headers):
        for i in range(55):
            await create_task(client, auth_headers, title=f"Task {i}")

        seen = []
        for page in (1, 2, 3):
            response = await client.get(f"{API}/tasks", params={"page": page}, headers=auth_headers)
            data = response.json()["data"]
            seen.extend(t["id"] for t in data["tasks"])

            pagination = data["pagination"]
            assert pagination["total"] == 55
            assert pagination["totalPages"] == 3
            assert pagination["hasNextPage"] is (page < 3)
            assert pagination["hasPrevPage"] is (page > 1)

        assert len(seen) == 55
        assert len(set(seen)) == 55

    @pytest.mark.parametrize("raw,expected", [("500", 100), ("0", 1), ("-5", 1), ("abc", 20)])
    async def test_limit_is_clamped(self, client: AsyncClient, auth_headers, raw, expected):
        response = await client.get(f"{API}/tasks", params={"limit": raw}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["pagination"]["limit"] == expected

    async def test_page_zero_becomes_first_page(self, client: AsyncClient, auth_headers):
        await create_task(client, auth_headers)
        response = await client.get(f"{API}/tasks", params={"page": "0"}, headers=auth_headers)
        pagination = response.json()["data"]["pagination"]
        assert pagination["page"] == 1
        assert len(response.json()["data"]["tasks"]) == 1

    async def test_page_past_end_is_empty(self, client: AsyncClient, auth_headers):
        await create_task(client, auth_headers)
        response = await client.get(f"{API}/tasks", params={"page": "5"}, headers=auth_headers)
        data = response.json()["data"]
        assert data["tasks"] == []
        assert data["pagination"]["total"] == 1

    @pytest.mark.parametrize("page", ["99999999999999999999", "9" * 5000])
    async def test_huge_page_is_an_empty_page(self, client: AsyncClient, auth_headers, page):
        await create_task(client, auth_headers)
        response = await client.get(f"{API}/tasks", params={"page": page}, headers=auth_headers)
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["tasks"] == []
        assert data["pagination"]["total"] == 1
        assert data["pagination"]["hasNextPage"] is False
        assert data["pagination"]["hasPrevPage"] is True

    async def test_only_own_tasks(self, client: AsyncClient, auth_headers, other_headers):
        await create_task(client, auth_headers, title="Mine")
        await create_task(client, other_headers, title="Theirs")

        response = await client.get(f"{API}/tasks", headers=auth_headers)
        titles = [t["title"] for t in response.json()["data"]["tasks"]]
        assert titles == ["Mine"]

    async def test_filters(self, client: AsyncClient, auth_headers):
        await create_task(client, auth_headers, title="a", status="completed", priority="high")
        await create_task(client, auth_headers, title="b", status="completed", priority="low")
        await create_task(client, auth_headers, title="c", status="todo", priority="high")

        response = await client.get(
            f"{API}/tasks", params={"status": "completed", "priority": "high"}, headers=auth_headers
        )
        tasks = response.json()["data"]["tasks"]
        assert [t["title"] for t in tasks] == ["a"]

    @pytest.mark.parametrize("param,value,message", [
        ("status", "done", "Invalid status filter."),
        ("priority", "urgent", "Invalid priority filter."),
    ])
    async def test_invalid_filter(self, client: AsyncClient, auth_headers, param, value, message):
        response = await client.get(f"{API}/tasks", params={param: value}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == message

    async def test_search_matches_tags_case_insensitively(self, client: AsyncClient, auth_headers):
        await create_task(client, auth_headers, title="Shopping", tags=["Groceries"])
        await create_task(client, auth_headers, title="Gym")

        response = await client.get(f"{API}/tasks", params={"search": "grocer"}, headers=auth_headers)
        tasks = response.json()["data"]["tasks"]
        assert [t["title"] for t in tasks] == ["Shopping"]

    async def test_search_without_matches(self, client: AsyncClient, auth_headers):
        await create_task(client, auth_headers, title="Gym")

        response = await client.get(f"{API}/tasks", params={"search": "zzz"}, headers=auth_headers)
        data = response.json()["data"]
        assert data["tasks"] == []
        assert data["pagination"]["total"] == 0
        assert data["pagination"]["totalPages"] == 0

    async def test_sort_by_title(self, client: AsyncClient, auth_headers):
        for title in ("banana", "apple", "cherry"):
            await create_task(client, auth_headers, title=title)

        asc = await client.get(
            f"{API}/tasks", params={"sortBy": "title", "sortOrder": "asc"}, headers=auth_headers
        )
        desc = await client.get(f"{API}/tasks", params={"sortBy": "title"}, headers=auth_headers)

        assert [t["title"] for t in asc.json()["data"]["tasks"]] == ["apple", "banana", "cherry"]
        assert [t["title"] for t in desc.json()["data"]["tasks"]] == ["cherry", "banana", "apple"]

    async def test_unknown_sort_field_is_ignored(self, client: AsyncClient, auth_headers):
        await create_task(client, auth_headers)
        response = await client.get(f"{API}/tasks", params={"sortBy": "password"}, headers=auth_headers)
        assert response.status_code == 200
        assert len(response.json()["data"]["tasks"]) == 1


@pytest.mark.asyncio
class TestTaskStats:

    async def test_empty_stats(self, client: AsyncClient, auth_headers):
        response = await client.get(f"{API}/tasks/stats", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["stats"] == {
            "byStatus": {"todo": 0, "in-progress": 0, "completed": 0},
            "byPriority": {"low": 0, "medium": 0, "high": 0},
            "total": 0,
        }

    async def test_counts(self, client: AsyncClient, auth_headers, other_headers):
        await create_task(client, auth_headers, status="todo", priority="high")
        await create_task(client, auth_headers, status="in-progress", priority="high")
        await create_task(client, auth_headers, status="completed", priority="low")
        await create_task(client, other_headers, status="completed", priority="low")

        response = await client.get(f"{API}/tasks/stats", headers=auth_headers)
        stats = response.json()["data"]["stats"]
        assert stats["byStatus"] == {"todo": 1, "in-progress": 1, "completed": 1}
        assert stats["byPriority"] == {"low": 1, "medium": 0, "high": 2}
        assert stats["total"] == 3
