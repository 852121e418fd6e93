"""HTTP/WebSocket server for FortiGate ELS address management.

Endpoints exposed:
- GET    /health                     : liveness, no authentication
- GET    /auth/status                : identity forwarded by the auth proxy
- GET    /api/status                 : session state and target (no secret)
- POST   /api/reconnect              : open a fresh management session
- GET    /api/diagnose               : DNS / ping / port checks
- GET    /api/els-objects?type=      : list ELS- address objects
- POST   /api/els-objects            : create or update an address object
- DELETE /api/els-objects/{name}     : delete an address object
- GET    /api/address-groups         : members of ELS-APP
- PUT    /api/address-groups/ELS-APP : replace ELS-APP membership
- WS     /ws                         : push notifications

Every failure is returned as {"success": false, "message": ...}.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .auth import AuthError, Principal, resolve_principal
from .config.settings import AccessPolicy, ConnectionConfig, Settings
from .devices.base import SessionState
from .devices.fortigate import FortiGateSession, NO_CONFIGURATION
from .diagnostics import DiagnosticsProbe
from .errors import ExecError, FortiGateError, NotConnected, TranslationError
from .notifications import Notifier
from .protocol import MANAGED_GROUP, normalize_object_name
from .utils.audit_log import ChangeTracker, setup_audit_logging
from .utils.connection import OperationResult, with_retry
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


# === Request bodies ===

class AddressObjectRequest(BaseModel):
    name: str = Field(min_length=1)
    type: str
    value: str = Field(min_length=1)


class GroupMembersRequest(BaseModel):
    members: list[str]


def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


def _user_label(request: Request) -> str:
    principal = getattr(request.state, "principal", None)
    return principal.email if principal else "anonymous"


# === Dependencies ===

def get_session(request: Request) -> FortiGateSession:
    return request.app.state.session


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_tracker(request: Request) -> ChangeTracker:
    return request.app.state.tracker


def require_principal(request: Request) -> Principal:
    principal = resolve_principal(request.headers, request.app.state.settings, request.app.state.policy)
    request.state.principal = principal
    return principal


def require_connection(
    principal: Principal = Depends(require_principal),
    session: FortiGateSession = Depends(get_session),
) -> FortiGateSession:
    """Fail fast with 503 before touching the appliance."""
    if not session.is_connected:
        raise NotConnected()
    return session


# === Startup connect ===

async def startup_connect(session: FortiGateSession, notifier: Notifier, attempts: int) -> OperationResult:
    """Auto-connect at startup, retrying failed attempts with backoff."""
    if session.config.is_complete and attempts > 1:
        connect = with_retry(max_attempts=attempts, min_wait=2, max_wait=30)(
            session.auto_connect
        )
    else:
        connect = session.auto_connect

    result = await connect()
    if result.success:
        logger.info(result.message)
    else:
        logger.warning(f"Auto-connect failed: {result.message}")
    notifier.publish("connection_status", {"connected": result.success, "message": result.message})
    return result


def _connection_lost_listener(notifier: Notifier):
    def listener(old_state: SessionState, new_state: SessionState) -> None:
        if old_state == SessionState.CONNECTED and new_state == SessionState.DISCONNECTED:
            notifier.publish("connection_status", {
                "connected": False,
                "message": "Connection to the FortiGate was lost",
            })
    return listener


# === Application factory ===

def create_app(
    session: Optional[FortiGateSession] = None,
    settings: Optional[Settings] = None,
    policy: Optional[AccessPolicy] = None,
    notifier: Optional[Notifier] = None,
    probe: Optional[DiagnosticsProbe] = None,
    auto_connect: bool = True,
) -> FastAPI:
    """Build the application around an explicitly owned session."""
    settings = settings or Settings.from_env()
    session = session or FortiGateSession(ConnectionConfig.from_env())
    policy = policy or AccessPolicy.load(settings.access_file)
    notifier = notifier or Notifier()
    probe = probe or DiagnosticsProbe(session.config)

    session.add_state_listener(_connection_lost_listener(notifier))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        connect_task = None
        if auto_connect:
            connect_task = asyncio.create_task(
                startup_connect(session, notifier, settings.connect_attempts)
            )
        try:
            yield
        finally:
            if connect_task is not None and not connect_task.done():
                connect_task.cancel()
            session.disconnect()
            logger.info("Server stopped, FortiGate session closed")

    app = FastAPI(title="FortiGate ELS Manager", lifespan=lifespan)
    app.state.session = session
    app.state.settings = settings
    app.state.policy = policy
    app.state.notifier = notifier
    app.state.probe = probe
    app.state.tracker = ChangeTracker(session.host or "unconfigured")

    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
        return _failure(exc.status_code, str(exc), requiresAuth=exc.status_code == 401)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
        return _failure(400, "Invalid data", errors=errors)

    @app.exception_handler(NotConnected)
    async def handle_not_connected(request: Request, exc: NotConnected) -> JSONResponse:
        return _failure(503, str(exc))

    @app.exception_handler(TranslationError)
    async def handle_translation_error(request: Request, exc: TranslationError) -> JSONResponse:
        logger.info(f"Invalid request from {_user_label(request)}: {exc}")
        return _failure(400, str(exc))

    @app.exception_handler(ExecError)
    async def handle_exec_error(request: Request, exc: ExecError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} for {_user_label(request)} failed: {exc}")
        return _failure(500, "Error communicating with the FortiGate", error=str(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"{request.method} {request.url.path} failed")
        return _failure(500, "Internal server error")


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/auth/status")
    async def auth_status(request: Request) -> dict:
        try:
            principal = require_principal(request)
        except AuthError:
            return {"authenticated": False}
        return {"authenticated": True, "user": principal.to_dict()}

    @app.get("/api/status")
    async def status(
        principal: Principal = Depends(require_principal),
        session: FortiGateSession = Depends(get_session),
    ) -> dict:
        return {
            "success": True,
            "connected": session.is_connected,
            "state": session.state.value,
            "message": session.status_message(),
            "config": session.connection_info() or {},
            "user": principal.to_dict(),
        }

    @app.post("/api/reconnect")
    async def reconnect(
        principal: Principal = Depends(require_principal),
        session: FortiGateSession = Depends(get_session),
        notifier: Notifier = Depends(get_notifier),
    ) -> dict:
        logger.info(f"User {principal.email} requested a reconnect")
        if session.config.is_complete:
            result = await session.connect()
        else:
            result = OperationResult(False, NO_CONFIGURATION)
        notifier.publish("connection_status", {"connected": result.success, "message": result.message})
        return result.to_dict()

    @app.get("/api/diagnose")
    async def diagnose(request: Request, principal: Principal = Depends(require_principal)) -> dict:
        logger.info(f"User {principal.email} ran diagnostics")
        report = await request.app.state.probe.run()
        return {"success": report.success, "data": {"results": report.results}}

    @app.get("/api/els-objects")
    async def list_objects(
        type: Optional[str] = None,
        session: FortiGateSession = Depends(require_connection),
        principal: Principal = Depends(require_principal),
    ) -> dict:
        kind = type if type and type != "all" else None
        objects = await session.list_address_objects(kind)
        logger.info(f"User {principal.email} listed ELS objects (filter: {kind or 'none'})")
        return {
            "success": True,
            "data": {name: obj.to_dict() for name, obj in objects.items()},
            "count": len(objects),
        }

    @app.post("/api/els-objects")
    async def save_object(
        body: AddressObjectRequest,
        session: FortiGateSession = Depends(require_connection),
        principal: Principal = Depends(require_principal),
        notifier: Notifier = Depends(get_notifier),
        tracker: ChangeTracker = Depends(get_tracker),
    ) -> dict:
        full_name = normalize_object_name(body.name)
        parameters = {"name": full_name, "type": body.type, "value": body.value}
        try:
            result = await session.save_address_object(full_name, body.type, body.value)
        except FortiGateError as e:
            tracker.log_change("save_object", parameters, success=False, user=principal.email, error=str(e))
            raise

        tracker.log_change("save_object", parameters, success=True, user=principal.email)
        logger.info(f"User {principal.email} saved object {full_name}")
        notifier.publish("object_updated", {
            "name": full_name,
            "type": body.type,
            "value": body.value.strip(),
            "user": principal.email,
        })
        return result.to_dict()

    @app.delete("/api/els-objects/{name}")
    async def delete_object(
        name: str,
        session: FortiGateSession = Depends(require_connection),
        principal: Principal = Depends(require_principal),
        notifier: Notifier = Depends(get_notifier),
        tracker: ChangeTracker = Depends(get_tracker),
    ) -> dict:
        try:
            result = await session.delete_address_object(name)
        except FortiGateError as e:
            tracker.log_change("delete_object", {"name": name}, success=False, user=principal.email, error=str(e))
            raise

        tracker.log_change("delete_object", {"name": name}, success=True, user=principal.email)
        logger.info(f"User {principal.email} deleted object {name}")
        notifier.publish("object_deleted", {"name": name, "user": principal.email})
        return result.to_dict()

    @app.get("/api/address-groups")
    async def list_groups(
        session: FortiGateSession = Depends(require_connection),
        principal: Principal = Depends(require_principal),
    ) -> dict:
        groups = await session.get_address_groups()
        logger.info(f"User {principal.email} listed address groups")
        return {"success": True, "data": groups}

    @app.put(f"/api/address-groups/{MANAGED_GROUP}")
    async def replace_group(
        body: GroupMembersRequest,
        session: FortiGateSession = Depends(require_connection),
        principal: Principal = Depends(require_principal),
        notifier: Notifier = Depends(get_notifier),
        tracker: ChangeTracker = Depends(get_tracker),
    ) -> dict:
        parameters = {"name": MANAGED_GROUP, "members": body.members}
        try:
            result = await session.replace_group_members(body.members)
        except FortiGateError as e:
            tracker.log_change("replace_group_members", parameters, success=False, user=principal.email, error=str(e))
            raise

        tracker.log_change("replace_group_members", parameters, success=True, user=principal.email)
        logger.info(f"User {principal.email} set {MANAGED_GROUP} to {len(body.members)} members")
        notifier.publish("group_updated", {
            "name": MANAGED_GROUP,
            "members": body.members,
            "user": principal.email,
        })
        return result.to_dict()

    @app.websocket("/ws")
    async def websocket_notifications(websocket: WebSocket):
        state = websocket.app.state
        try:
            principal = resolve_principal(websocket.headers, state.settings, state.policy)
        except AuthError as e:
            logger.info(f"WebSocket rejected: {e}")
            await websocket.close(code=1008)
            return

        await websocket.accept()
        notifier: Notifier = state.notifier
        notifier.subscribe(websocket)
        logger.info(f"WebSocket client connected ({principal.email})")

        session: FortiGateSession = state.session
        await notifier.send(websocket, "connection_status", {
            "connected": session.is_connected,
            "message": session.status_message(),
        })
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            notifier.unsubscribe(websocket)
            logger.info(f"WebSocket client disconnected ({principal.email})")


def main():
    """Run the server with uvicorn."""
    setup_logging()
    setup_audit_logging()
    settings = Settings.from_env()
    app = create_app(settings=settings)
    logger.info(f"Serving on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
