"""
Event gateway: translates real-time events into registry, presence, sync and
execution calls, and fans the results out to room members
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set

from fastapi import WebSocket

from .auth import Authenticator
from .errors import CodeRoomError
from .execution import ExecutionResult, ExecutionScheduler
from .models import (
    CodeChangePayload,
    CreateRoomPayload,
    JoinRoomPayload,
    RunRequestedPayload,
    TypingPayload,
    parse_payload,
)
from .rooms import Broadcast, DocumentSync, PresenceTracker, RoomRegistry
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Anonymous"


class ConnectionState:
    """The only state the gateway keeps: where a live connection currently is"""

    def __init__(self, connection_id: str, default_name: Optional[str] = None):
        self.connection_id = connection_id
        self.default_name = default_name
        self.room: Optional[str] = None
        self.name: Optional[str] = None


Handler = Callable[[ConnectionState, object, object], Awaitable[None]]


class EventGateway:
    """
    Boundary between WebSocket connections and the room/execution core.

    Each handler makes one core call, sends at most one ack to the caller
    and zero or more broadcasts to the room.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        scheduler: ExecutionScheduler,
        connections: Optional[WebSocketManager] = None,
        authenticator: Optional[Authenticator] = None
    ):
        self.registry = registry
        self.presence = PresenceTracker(registry)
        self.sync = DocumentSync(registry)
        self.scheduler = scheduler
        self.connections = connections or WebSocketManager()
        self.authenticator = authenticator
        self._states: Dict[str, ConnectionState] = {}
        self._run_tasks: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Handler] = {
            "createRoom": self._on_create_room,
            "joinRoom": self._on_join_room,
            "leaveRoom": self._on_leave_room,
            "codeChange": self._on_code_change,
            "typing": self._on_typing,
            "runRequested": self._on_run_requested,
        }

    # ---------- connection lifecycle ----------

    async def connect(self, websocket: WebSocket, token: Optional[str] = None) -> str:
        connection_id = await self.connections.connect(websocket)
        default_name = None
        if self.authenticator is not None:
            default_name = self.authenticator.display_name_for(token)
        self._states[connection_id] = ConnectionState(connection_id, default_name)
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Ungraceful or graceful socket close: same effects as leaveRoom"""
        state = self._states.pop(connection_id, None)
        if state is not None:
            await self._depart(state)
        self.connections.disconnect(connection_id)

    def state_for(self, connection_id: str) -> Optional[ConnectionState]:
        return self._states.get(connection_id)

    # ---------- dispatch ----------

    async def handle_message(self, connection_id: str, message: object) -> None:
        """Route one inbound envelope {event, data, ack}"""
        state = self._states.get(connection_id)
        if state is None:
            logger.warning(f"Message from unknown connection {connection_id}")
            return

        if not isinstance(message, dict):
            await self._emit(connection_id, "error", {"error": "Invalid request: message must be an object"})
            return

        event = message.get("event")
        data = message.get("data")
        ack = message.get("ack")

        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.warning(f"[{connection_id}] Unknown event: {event!r}")
            await self._reply(state, ack, {"error": f"Unknown event: {event}"})
            return

        try:
            await handler(state, data, ack)
        except CodeRoomError as e:
            logger.info(f"[{connection_id}] {event} rejected: {e.message}")
            await self._reply(state, ack, {"error": e.message})
        except Exception as e:
            logger.error(f"[{connection_id}] Error handling {event}: {e}", exc_info=True)
            await self._reply(state, ack, {"error": "Internal server error"})

    # ---------- handlers ----------

    async def _on_create_room(self, state: ConnectionState, data, ack) -> None:
        payload = parse_payload(CreateRoomPayload, data)
        name = self._display_name(state, payload.name)
        await self._depart(state)

        code, _ = await self.registry.create_room(state.connection_id, name)
        state.room, state.name = code, name

        await self._reply(state, ack, {"room": code})
        await self._deliver(self.presence.arrived(code, name))

    async def _on_join_room(self, state: ConnectionState, data, ack) -> None:
        payload = parse_payload(JoinRoomPayload, data)
        name = self._display_name(state, payload.name)
        # The current room is left only once the join has succeeded
        document = await self.registry.join_room(payload.room, state.connection_id, name)
        if state.room is not None and state.room != payload.room:
            await self._depart(state)
        state.room, state.name = payload.room, name

        await self._emit(state.connection_id, "init", document.to_payload())
        await self._deliver(self.presence.arrived(payload.room, name))
        await self._reply(state, ack, {"ok": True})

    async def _on_leave_room(self, state: ConnectionState, data, ack) -> None:
        await self._depart(state)

    async def _on_code_change(self, state: ConnectionState, data, ack) -> None:
        payload = parse_payload(CodeChangePayload, data)
        broadcast = await self.sync.apply_change(
            payload.room, state.connection_id, payload.code, payload.language
        )
        await self._deliver([broadcast])

    async def _on_typing(self, state: ConnectionState, data, ack) -> None:
        payload = parse_payload(TypingPayload, data)
        broadcast = await self.presence.typing(
            payload.room, state.connection_id, payload.isTyping, name=payload.name
        )
        await self._deliver([broadcast])

    async def _on_run_requested(self, state: ConnectionState, data, ack) -> None:
        payload = parse_payload(RunRequestedPayload, data)
        room = payload.room or state.room
        task = self.scheduler.submit(payload.language, payload.code, room=room)

        # Completion is delivered from its own task so this connection keeps
        # processing events while the program runs
        finisher = asyncio.create_task(self._finish_run(state, ack, room, task))
        self._run_tasks.add(finisher)
        finisher.add_done_callback(self._run_tasks.discard)

    async def _finish_run(self, state: ConnectionState, ack, room: Optional[str], task) -> None:
        result: ExecutionResult = await task
        payload = result.to_payload()
        if room:
            await self.broadcast(room, "runOutput", payload)
        await self._reply(state, ack, payload)

    # ---------- delivery ----------

    async def broadcast(self, room: str, event: str, data: dict, exclude: Optional[str] = None) -> int:
        """Send an event to every current member of a room"""
        snapshot = self.registry.get(room)
        if snapshot is None:
            return 0
        members = snapshot.members
        return await self.connections.send_many(
            (member.connection_id for member in members),
            {"event": event, "data": data},
            exclude=exclude,
        )

    async def wait_for_runs(self) -> None:
        """Wait for in-flight run completions (used on shutdown and in tests)"""
        if self._run_tasks:
            await asyncio.gather(*list(self._run_tasks), return_exceptions=True)

    async def _deliver(self, broadcasts: Iterable[Broadcast]) -> None:
        for item in broadcasts:
            await self.broadcast(item.room, item.event, item.data, exclude=item.exclude)

    async def _emit(self, connection_id: str, event: str, data: dict) -> bool:
        return await self.connections.send(connection_id, {"event": event, "data": data})

    async def _reply(self, state: ConnectionState, ack, data: dict) -> None:
        if ack is None:
            return
        await self.connections.send(state.connection_id, {"event": "ack", "ack": ack, "data": data})

    async def _depart(self, state: ConnectionState) -> None:
        if state.room is None:
            return
        room = state.room
        state.room = None
        await self._deliver(await self.presence.depart(room, state.connection_id))

    def _display_name(self, state: ConnectionState, requested: Optional[str]) -> str:
        name = (requested or "").strip()
        if name:
            return name
        return state.default_name or DEFAULT_NAME
