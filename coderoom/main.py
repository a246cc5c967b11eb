"""
FastAPI server for collaborative code rooms
Real-time document sync over WebSockets plus sandboxed code execution
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .auth import Authenticator, InMemoryAuthenticator
from .config import Settings
from .errors import CodeRoomError, InvalidRequest, RoomNotFound
from .execution import ExecutionScheduler
from .gateway import EventGateway
from .models import HealthResponse, RunRequest, parse_payload
from .rooms import DEFAULT_TEMPLATES, RoomRegistry

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(
    settings: Optional[Settings] = None,
    scheduler: Optional[ExecutionScheduler] = None,
    authenticator: Optional[Authenticator] = None
) -> FastAPI:
    """
    Build the application and its components

    Args:
        settings: Server settings (read from the environment if omitted)
        scheduler: Execution scheduler override, mainly for tests
        authenticator: Token -> display name resolver
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    registry = RoomRegistry(idle_ttl=settings.room_idle_ttl)
    scheduler = scheduler or ExecutionScheduler.from_settings(settings)
    gateway = EventGateway(
        registry,
        scheduler,
        authenticator=authenticator or InMemoryAuthenticator(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await registry.start_reaper(settings.reaper_interval)
        try:
            yield
        finally:
            await registry.stop_reaper()
            await gateway.wait_for_runs()

    app = FastAPI(
        title="CodeRoom",
        description="Collaborative code editing rooms with multi-language execution",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.scheduler = scheduler
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        # Skip logging for WebSocket upgrade requests
        if request.url.path.startswith("/ws"):
            return await call_next(request)

        logger.info(f"Incoming request: {request.method} {request.url.path}")
        return await call_next(request)

    @app.exception_handler(CodeRoomError)
    async def coderoom_error_handler(request: Request, exc: CodeRoomError):
        status_code = 404 if isinstance(exc, RoomNotFound) else 400
        return JSONResponse(status_code=status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """
        Health check endpoint
        Returns the service status
        """
        return HealthResponse(
            status="ok",
            version=__version__,
            rooms=registry.room_count(),
            activeJobs=len(scheduler.active_jobs()),
        )

    @app.get("/api/languages")
    async def list_languages():
        """Supported languages with their limits and starter template"""
        templates = {language.value: text for language, text in DEFAULT_TEMPLATES.items()}
        languages = []
        for name, policy in scheduler.policies.items():
            languages.append({
                "language": name,
                "compiled": policy.needs_compile,
                "compileTimeout": policy.compile_timeout,
                "runTimeout": policy.run_timeout,
                "outputLimit": policy.output_limit,
                "template": templates.get(name),
            })
        return {"languages": languages}

    @app.get("/api/rooms/{code}")
    async def get_room(code: str):
        """Current document and roster of a room"""
        snapshot = registry.snapshot(code)
        return {
            "room": snapshot.code,
            "code": snapshot.document.content,
            "language": snapshot.document.language.value,
            "users": snapshot.users(),
        }

    @app.post("/api/run")
    async def run_code(request: Request):
        """
        Run code and return its output

        Example:
            POST /api/run
            {"language": "python", "code": "print(1+1)", "room": "ab12cd34"}

            Response:
            {"ok": true, "stdout": "2\\n", "stderr": "", "exitCode": 0, "time": 31, ...}
        """
        try:
            body = await request.json()
        except ValueError:
            # Covers both malformed JSON and bodies that are not valid UTF-8
            raise InvalidRequest("Invalid JSON")

        run_request = parse_payload(RunRequest, body)
        result = await scheduler.run(run_request.language, run_request.code, room=run_request.room)
        payload = result.to_payload()

        if run_request.room:
            delivered = await gateway.broadcast(run_request.room, "runOutput", payload)
            logger.info(f"[{run_request.room}] Broadcast HTTP run output to {delivered} members")

        return payload

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
        """
        Real-time room channel

        Messages are JSON objects: {"event": ..., "data": {...}, "ack": id}
        """
        connection_id = await gateway.connect(websocket, token)
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    logger.info(f"[WebSocket] Client disconnected: {connection_id}")
                    break
                text = frame.get("text")
                if text is None:
                    await websocket.send_json(
                        {"event": "error", "data": {"error": "Invalid request: text frames only"}}
                    )
                    continue
                try:
                    message = json.loads(text)
                except json.JSONDecodeError:
                    await websocket.send_json({"event": "error", "data": {"error": "Invalid JSON"}})
                    continue
                await gateway.handle_message(connection_id, message)
        except WebSocketDisconnect:
            logger.info(f"[WebSocket] Client disconnected: {connection_id}")
        finally:
            await gateway.disconnect(connection_id)

    return app


app = create_app()


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info(f"Starting CodeRoom on port {settings.port}")
    uvicorn.run(
        "coderoom.main:app",
        host=settings.host,
        port=settings.port,
        ws="auto",
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
