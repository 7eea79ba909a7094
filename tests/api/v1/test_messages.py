"""
Integration tests for Message API endpoints.
"""
from datetime import timedelta

import pytest

from app.models.message import Message
from app.utils.datetime_utils import utc_now


@pytest.fixture
async def direct_conversation(db_session, alice, bob, make_friends):
    from app.services.conversation_service import ConversationService

    await make_friends(alice, bob)
    return await ConversationService(db_session).get_or_create_conversation(alice.id, bob.id)


class TestMessageAPI:
    """Test message API endpoints (authenticated as alice)."""

    async def test_send_message(self, client, alice, direct_conversation, mock_websocket_manager):
        response = await client.post(
            f"/api/v1/conversations/{direct_conversation['id']}/messages",
            json={"content": "Hello!"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["content"] == "Hello!"
        assert data["senderId"] == alice.id
        assert data["messageType"] == "TEXT"
        assert data["status"] == "SENT"
        assert data["sender"]["name"] == "Alice"
        mock_websocket_manager.broadcast_new_message.assert_awaited_once()

    async def test_send_blank_message(self, client, direct_conversation):
        response = await client.post(
            f"/api/v1/conversations/{direct_conversation['id']}/messages",
            json={"content": "   "},
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["extensions"]["code"] == "BAD_REQUEST"

    async def test_send_to_foreign_conversation(self, client, db_session, bob, carol, make_friends):
        from app.services.conversation_service import ConversationService

        await make_friends(bob, carol)
        foreign = await ConversationService(db_session).get_or_create_conversation(bob.id, carol.id)

        response = await client.post(
            f"/api/v1/conversations/{foreign['id']}/messages", json={"content": "Hi"}
        )

        assert response.status_code == 403
        assert response.json()["errors"][0]["extensions"]["code"] == "FORBIDDEN"

    async def test_paginate_with_cursor(self, client, db_session, bob, direct_conversation):
        start = utc_now() - timedelta(hours=1)
        db_session.add_all([
            Message(
                conversation_id=direct_conversation["id"],
                sender_id=bob.id,
                content=f"m{i}",
                created_at=start + timedelta(seconds=i),
            )
            for i in range(25)
        ])
        await db_session.commit()
        url = f"/api/v1/conversations/{direct_conversation['id']}/messages"

        first = (await client.get(url, params={"limit": 20})).json()
        assert len(first["messages"]) == 20
        assert first["hasMore"] is True
        assert first["messages"][0]["content"] == "m24"

        second = (await client.get(url, params={"limit": 20, "cursor": first["nextCursor"]})).json()
        assert [m["content"] for m in second["messages"]] == ["m4", "m3", "m2", "m1", "m0"]
        assert second["nextCursor"] is None
        assert second["hasMore"] is False

    async def test_before_takes_precedence_over_cursor(self, client, db_session, bob, direct_conversation):
        start = utc_now() - timedelta(hours=1)
        db_session.add_all([
            Message(
                conversation_id=direct_conversation["id"],
                sender_id=bob.id,
                content=f"m{i}",
                created_at=start + timedelta(seconds=i),
            )
            for i in range(3)
        ])
        await db_session.commit()
        url = f"/api/v1/conversations/{direct_conversation['id']}/messages"
        first = (await client.get(url, params={"limit": 1})).json()

        response = await client.get(
            url, params={"limit": 5, "before": first["nextCursor"], "cursor": "not base64!"}
        )

        assert response.status_code == 200
        assert [m["content"] for m in response.json()["messages"]] == ["m1", "m0"]

    async def test_limit_is_clamped(self, client, db_session, bob, direct_conversation):
        db_session.add_all([
            Message(conversation_id=direct_conversation["id"], sender_id=bob.id, content=f"m{i}")
            for i in range(3)
        ])
        await db_session.commit()

        response = await client.get(
            f"/api/v1/conversations/{direct_conversation['id']}/messages", params={"limit": 0}
        )

        assert response.status_code == 200
        assert len(response.json()["messages"]) == 1

    async def test_invalid_cursor(self, client, direct_conversation):
        response = await client.get(
            f"/api/v1/conversations/{direct_conversation['id']}/messages",
            params={"cursor": "not base64!"},
        )

        assert response.status_code == 400

    async def test_mark_as_read(self, client, direct_conversation):
        response = await client.post(f"/api/v1/conversations/{direct_conversation['id']}/read")

        assert response.status_code == 200
        assert response.json() == {"data": True}
