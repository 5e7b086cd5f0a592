"""Integration tests for the REST chat surface"""
import asyncio

import pytest

from domain.constants import EVENT_TYPE_MESSAGE_CREATED, EVENT_TYPE_READ_RECEIPT, HireStatus


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def messages_url(hire_id: str) -> str:
    return f"/api/hires/{hire_id}/messages"


@pytest.mark.integration
@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, api_client):
        response = await api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "connections": 0}


@pytest.mark.integration
@pytest.mark.asyncio
class TestRestAuthentication:
    """Test credential handling"""

    async def test_missing_token(self, api_client, cast):
        response = await api_client.get(messages_url("h1"))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthenticated"

    async def test_garbage_token(self, api_client, cast):
        response = await api_client.get(messages_url("h1"), headers=auth("not-a-jwt"))
        assert response.status_code == 401

    async def test_token_for_deleted_user(self, api_client, cast, container, token_for):
        token = token_for(cast.stranger)
        await container.db.conn.execute("DELETE FROM users WHERE user_id = ?", (cast.stranger.user_id,))
        await container.db.conn.commit()

        response = await api_client.get(messages_url("h1"), headers=auth(token))
        assert response.status_code == 401


@pytest.mark.integration
@pytest.mark.asyncio
class TestRestAccess:
    """Test who may read and write a hire's chat"""

    async def test_unknown_hire(self, api_client, cast, token_for):
        response = await api_client.get(messages_url("missing"), headers=auth(token_for(cast.buyer)))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    async def test_stranger_is_forbidden(self, api_client, cast, token_for):
        response = await api_client.get(messages_url("h1"), headers=auth(token_for(cast.stranger)))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "not_participant"

    async def test_stranger_learns_nothing_about_pending_hire(self, api_client, cast, token_for):
        response = await api_client.get(messages_url("h2"), headers=auth(token_for(cast.stranger)))
        assert response.json()["error"]["code"] == "not_participant"

    async def test_pending_hire_is_unavailable(self, api_client, cast, token_for):
        response = await api_client.post(
            messages_url("h2"), json={"body": "Hi"}, headers=auth(token_for(cast.buyer))
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "chat_unavailable"

    async def test_admin_can_read(self, api_client, cast, token_for):
        response = await api_client.get(messages_url("h1"), headers=auth(token_for(cast.admin)))
        assert response.status_code == 200

    async def test_status_change_blocks_next_message(self, api_client, cast, container, token_for):
        headers = auth(token_for(cast.buyer))
        first = await api_client.post(messages_url("h1"), json={"body": "Hi"}, headers=headers)
        assert first.status_code == 201

        await container.hire_requests.set_status("h1", HireStatus.CANCELLED)

        second = await api_client.post(messages_url("h1"), json={"body": "Still there?"}, headers=headers)
        assert second.status_code == 403
        assert second.json()["error"]["code"] == "chat_unavailable"

    async def test_unrecognized_status_keeps_chat_locked(self, api_client, cast, container, token_for):
        await container.db.conn.execute("UPDATE hire_requests SET status = 'ON_HOLD' WHERE hire_id = 'h1'")
        await container.db.conn.commit()

        response = await api_client.post(messages_url("h1"), json={"body": "Hi"}, headers=auth(token_for(cast.buyer)))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "chat_unavailable"
        assert (await container.hire_requests.get("h1")).status is HireStatus.UNKNOWN

    async def test_unrecognized_status_still_hides_hire_from_strangers(self, api_client, cast, container, token_for):
        await container.db.conn.execute("UPDATE hire_requests SET status = 'ON_HOLD' WHERE hire_id = 'h1'")
        await container.db.conn.commit()

        response = await api_client.get(messages_url("h1"), headers=auth(token_for(cast.stranger)))
        assert response.json()["error"]["code"] == "not_participant"


@pytest.mark.integration
@pytest.mark.asyncio
class TestRestSendMessage:
    """Test POST /api/hires/{hire_id}/messages"""

    async def test_send_creates_message_and_event(self, api_client, cast, container, token_for):
        response = await api_client.post(
            messages_url("h1"), json={"body": "  Hello Sam  "}, headers=auth(token_for(cast.buyer))
        )

        assert response.status_code == 201
        data = response.json()
        assert data["body"] == "Hello Sam"
        assert data["hireId"] == "h1"
        assert data["sender"] == {"id": cast.buyer.user_id, "name": cast.buyer.name}
        assert data["readBy"] == []

        assert container.event_queue.qsize() == 1
        event = container.event_queue.get_nowait()
        assert event["type"] == EVENT_TYPE_MESSAGE_CREATED
        assert event["message"].id == int(data["id"])

    async def test_max_length_boundary(self, api_client, cast, token_for):
        headers = auth(token_for(cast.student))

        accepted = await api_client.post(messages_url("h1"), json={"body": "x" * 2000}, headers=headers)
        rejected = await api_client.post(messages_url("h1"), json={"body": "x" * 2001}, headers=headers)

        assert accepted.status_code == 201
        assert rejected.status_code == 422
        assert rejected.json()["error"]["code"] == "validation_error"

    async def test_blank_body_rejected(self, api_client, cast, token_for):
        response = await api_client.post(
            messages_url("h1"), json={"body": "   "}, headers=auth(token_for(cast.buyer))
        )
        assert response.status_code == 422

    async def test_missing_body_rejected(self, api_client, cast, token_for):
        response = await api_client.post(messages_url("h1"), json={}, headers=auth(token_for(cast.buyer)))

        assert response.status_code == 422
        assert response.json() == {"error": {"code": "validation_error", "message": "Invalid request: body"}}

    async def test_non_string_body_rejected(self, api_client, cast, container, token_for):
        response = await api_client.post(messages_url("h1"), json={"body": 5}, headers=auth(token_for(cast.buyer)))

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"
        assert container.event_queue.qsize() == 0


@pytest.mark.integration
@pytest.mark.asyncio
class TestRestListMessages:
    """Test GET /api/hires/{hire_id}/messages"""

    async def test_empty_page_without_room(self, api_client, cast, container, token_for):
        response = await api_client.get(messages_url("h1"), headers=auth(token_for(cast.buyer)))

        assert response.status_code == 200
        assert response.json() == {"messages": [], "hasMore": False, "nextCursor": None}
        assert await container.rooms.get_room("h1") is None

    async def test_cursor_pagination(self, api_client, cast, token_for):
        headers = auth(token_for(cast.buyer))
        for body in ("one", "two", "three"):
            await api_client.post(messages_url("h1"), json={"body": body}, headers=headers)

        first = (await api_client.get(messages_url("h1"), params={"limit": 1}, headers=headers)).json()
        assert [m["body"] for m in first["messages"]] == ["three"]
        assert first["hasMore"] is True

        second = (await api_client.get(
            messages_url("h1"), params={"limit": 1, "cursor": first["nextCursor"]}, headers=headers
        )).json()
        assert [m["body"] for m in second["messages"]] == ["two"]
        assert second["hasMore"] is True

        third = (await api_client.get(
            messages_url("h1"), params={"limit": 1, "cursor": second["nextCursor"]}, headers=headers
        )).json()
        assert [m["body"] for m in third["messages"]] == ["one"]
        assert third["hasMore"] is False
        assert third["nextCursor"] is None

    async def test_limit_is_clamped(self, api_client, cast, token_for):
        headers = auth(token_for(cast.buyer))
        for i in range(3):
            await api_client.post(messages_url("h1"), json={"body": f"m{i}"}, headers=headers)

        low = (await api_client.get(messages_url("h1"), params={"limit": 0}, headers=headers)).json()
        high = (await api_client.get(messages_url("h1"), params={"limit": 500}, headers=headers)).json()

        assert len(low["messages"]) == 1
        assert len(high["messages"]) == 3

    @pytest.mark.parametrize("cursor", ["abc", "-1", "0"])
    async def test_malformed_cursor(self, api_client, cast, token_for, cursor):
        response = await api_client.get(
            messages_url("h1"), params={"cursor": cursor}, headers=auth(token_for(cast.buyer))
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    async def test_non_integer_limit(self, api_client, cast, token_for):
        response = await api_client.get(
            messages_url("h1"), params={"limit": "abc"}, headers=auth(token_for(cast.buyer))
        )

        assert response.status_code == 422
        assert response.json() == {"error": {"code": "validation_error", "message": "Invalid request: limit"}}

    async def test_hung_read_returns_internal_error(self, api_client, cast, container, token_for, monkeypatch):
        await container.rooms.get_or_create_room("h1")

        async def hung_page(*args, **kwargs):
            await asyncio.sleep(1.0)

        monkeypatch.setattr(container.settings, "storage_timeout_seconds", 0.1)
        monkeypatch.setattr(container.messages, "list_page", hung_page)
        response = await api_client.get(messages_url("h1"), headers=auth(token_for(cast.buyer)))

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_error"

    async def test_timed_out_send_is_not_stored(self, api_client, cast, container, token_for, monkeypatch):
        conn = container.db.conn
        real_commit = conn.commit
        stalls = []

        async def commit_once_slowly():
            if not stalls:
                stalls.append(True)
                await asyncio.sleep(1.0)
            await real_commit()

        await container.rooms.get_or_create_room("h1")
        monkeypatch.setattr(container.settings, "storage_timeout_seconds", 0.1)
        monkeypatch.setattr(conn, "commit", commit_once_slowly)
        response = await api_client.post(messages_url("h1"), json={"body": "Hello"}, headers=auth(token_for(cast.buyer)))

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_error"
        assert container.event_queue.qsize() == 0
        monkeypatch.undo()
        page = (await api_client.get(messages_url("h1"), headers=auth(token_for(cast.buyer)))).json()
        assert page["messages"] == []


@pytest.mark.integration
@pytest.mark.asyncio
class TestRestMarkRead:
    """Test POST /api/hires/{hire_id}/messages/read"""

    async def test_marks_unread_once(self, api_client, cast, container, token_for):
        for body in ("a", "b"):
            await api_client.post(messages_url("h1"), json={"body": body}, headers=auth(token_for(cast.buyer)))
        await container.consumer.drain()

        student = auth(token_for(cast.student))
        first = await api_client.post(messages_url("h1") + "/read", headers=student)
        second = await api_client.post(messages_url("h1") + "/read", headers=student)

        assert first.json() == {"marked": 2}
        assert second.json() == {"marked": 0}

        events = [container.event_queue.get_nowait() for _ in range(container.event_queue.qsize())]
        assert [e["type"] for e in events] == [EVENT_TYPE_READ_RECEIPT, EVENT_TYPE_READ_RECEIPT]

    async def test_without_room(self, api_client, cast, token_for):
        response = await api_client.post(messages_url("h1") + "/read", headers=auth(token_for(cast.student)))
        assert response.json() == {"marked": 0}

    async def test_read_state_is_visible_in_history(self, api_client, cast, token_for):
        await api_client.post(messages_url("h1"), json={"body": "Hi"}, headers=auth(token_for(cast.buyer)))
        await api_client.post(messages_url("h1") + "/read", headers=auth(token_for(cast.student)))

        page = (await api_client.get(messages_url("h1"), headers=auth(token_for(cast.buyer)))).json()
        assert [r["userId"] for r in page["messages"][0]["readBy"]] == [cast.student.user_id]
