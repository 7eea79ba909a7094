"""
WebSocket manager for real-time messaging.
Handles Socket.IO connections, conversation rooms, presence, and broadcasting.
"""
import logging
from typing import Dict, Set, Any

import socketio

from app.config import settings

logger = logging.getLogger(__name__)


def conversation_room(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


class ConnectionManager:
    """
    WebSocket connection manager using Socket.IO.

    Clients authenticate in the handshake with `auth: {token: <session token>}`
    and then join the rooms of the conversations they have open. Event payloads
    use camelCase keys in both directions, like the REST API.
    """

    def __init__(self):
        """Initialize the connection manager."""
        cors_origins = settings.get_allowed_origins_list() if settings.allowed_origins else ["*"]

        self.sio = socketio.AsyncServer(
            async_mode='asgi',
            cors_allowed_origins=cors_origins,
            # socketio/engineio log every packet; the application logger covers real events
            logger=False,
            engineio_logger=False,
            ping_timeout=settings.ws_heartbeat_interval,
            ping_interval=settings.ws_heartbeat_interval // 2,
        )

        # Track connections: {sid: user_id}
        self.connections: Dict[str, str] = {}

        # Track user sessions: {user_id: set of sids}
        self.user_sessions: Dict[str, Set[str]] = {}

        # Track conversation rooms: {conversation_id: set of sids}
        self.conversation_rooms: Dict[str, Set[str]] = {}

        self._setup_handlers()

    async def authenticate(self, token: str | None) -> str | None:
        """Resolve a handshake token to a user ID, or None when it is not a live session."""
        if not token:
            return None

        from app.core.database import AsyncSessionLocal
        from app.services.auth_service import AuthService

        async with AsyncSessionLocal() as db:
            current = await AuthService(db).resolve_session(token)
            return current.user.id if current else None

    async def is_participant(self, conversation_id: str, user_id: str) -> bool:
        from app.core.database import AsyncSessionLocal
        from app.repositories.conversation_repo import ConversationParticipantRepository

        async with AsyncSessionLocal() as db:
            return await ConversationParticipantRepository(db).is_participant(conversation_id, user_id)

    def _register(self, sid: str, user_id: str) -> None:
        self.connections[sid] = user_id
        self.user_sessions.setdefault(user_id, set()).add(sid)

    def _unregister(self, sid: str) -> str | None:
        user_id = self.connections.pop(sid, None)
        if user_id is None:
            return None

        sids = self.user_sessions.get(user_id)
        if sids is not None:
            sids.discard(sid)
            if not sids:
                del self.user_sessions[user_id]

        for conv_id, room_sids in list(self.conversation_rooms.items()):
            room_sids.discard(sid)
            if not room_sids:
                del self.conversation_rooms[conv_id]

        return user_id

    def _setup_handlers(self):
        """Setup Socket.IO event handlers."""
        from app.core.cache import mark_user_online, mark_user_offline

        @self.sio.event
        async def connect(sid, environ, auth):
            """Accept the connection only for a valid session token."""
            token = auth.get('token') if isinstance(auth, dict) else None
            user_id = await self.authenticate(token)

            if not user_id:
                logger.warning("Connection rejected - invalid or missing session token: %s", sid)
                return False

            self._register(sid, user_id)
            await mark_user_online(user_id)
            logger.info("Client connected: %s (user: %s)", sid, user_id)
            return True

        @self.sio.event
        async def disconnect(sid, *args):
            user_id = self._unregister(sid)
            if user_id and user_id not in self.user_sessions:
                await mark_user_offline(user_id)
            logger.info("Client disconnected: %s (user: %s)", sid, user_id)

        @self.sio.event
        async def join_conversation(sid, data):
            """
            Join a conversation room.

            Expected data: {'conversationId': 'uuid'}
            """
            user_id = self.connections.get(sid)
            conversation_id = (data or {}).get('conversationId')

            if not user_id:
                await self.sio.emit('error', {'message': 'Unauthorized'}, to=sid)
                return

            if not conversation_id or not await self.is_participant(conversation_id, user_id):
                logger.warning("User %s tried to join conversation %s without being a participant",
                               user_id, conversation_id)
                await self.sio.emit('error', {'message': 'Not a participant of this conversation'}, to=sid)
                return

            await self.sio.enter_room(sid, conversation_room(conversation_id))
            self.conversation_rooms.setdefault(conversation_id, set()).add(sid)

            await self.sio.emit('joined_conversation', {'conversationId': conversation_id}, to=sid)

        @self.sio.event
        async def leave_conversation(sid, data):
            conversation_id = (data or {}).get('conversationId')
            if not conversation_id:
                return

            await self.sio.leave_room(sid, conversation_room(conversation_id))

            if conversation_id in self.conversation_rooms:
                self.conversation_rooms[conversation_id].discard(sid)
                if not self.conversation_rooms[conversation_id]:
                    del self.conversation_rooms[conversation_id]

            await self.sio.emit('left_conversation', {'conversationId': conversation_id}, to=sid)

        async def relay_typing(sid, data, is_typing: bool):
            user_id = self.connections.get(sid)
            conversation_id = (data or {}).get('conversationId')
            if not user_id or conversation_id not in self.conversation_rooms:
                return
            if sid not in self.conversation_rooms[conversation_id]:
                return

            await self.sio.emit('typing:update', {
                'conversationId': conversation_id,
                'userId': user_id,
                'isTyping': is_typing
            }, room=conversation_room(conversation_id), skip_sid=sid)

        @self.sio.on('typing:start')
        async def typing_start(sid, data):
            await relay_typing(sid, data, True)

        @self.sio.on('typing:stop')
        async def typing_stop(sid, data):
            await relay_typing(sid, data, False)

        @self.sio.event
        async def heartbeat(sid, data=None):
            """Refresh the presence key; clients send this every ws_heartbeat_interval seconds."""
            user_id = self.connections.get(sid)
            if user_id:
                await mark_user_online(user_id)
                return {'ok': True}
            return {'ok': False}

    async def broadcast_new_message(self, conversation_id: str, message_data: Dict[str, Any]):
        """
        Broadcast a new message to the conversation room (sender included).

        Args:
            conversation_id: Conversation ID
            message_data: Serialized message
        """
        await self.sio.emit('message:new', message_data, room=conversation_room(conversation_id))
        logger.debug("Broadcast message %s to conversation %s", message_data.get('id'), conversation_id)

    async def broadcast_participant_changed(
        self,
        conversation_id: str,
        user_id: str,
        action: str,
        actor_id: str | None = None
    ):
        """
        Tell the room that membership changed.

        Args:
            conversation_id: Conversation ID
            user_id: Participant whose membership changed
            action: 'joined', 'removed', 'left' or 'dissolved'
            actor_id: User who caused the change
        """
        await self.sio.emit('participant:changed', {
            'conversationId': conversation_id,
            'userId': user_id,
            'action': action,
            'actorId': actor_id,
        }, room=conversation_room(conversation_id))

    def get_asgi_app(self, fastapi_app):
        """
        Wrap the FastAPI app so Socket.IO serves /socket.io/ and FastAPI the rest.

        Clients connect to: /socket.io/?EIO=4&transport=websocket
        """
        return socketio.ASGIApp(self.sio, fastapi_app)


# Global connection manager instance
connection_manager = ConnectionManager()
