"""FastAPI main application."""

import json
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings, settings as default_settings
from ..core.errors import CellGroupsError, NotLoadedError
from ..core.occupancy import OccupancyManager
from ..dataset.loader import load_dataset
from ..utils.logging import configure_logging
from .hub import AREAS_EVENT, ERROR_EVENT, STATE_EVENT, UPDATE_REQUEST_EVENT, ConnectionHub

logger = structlog.get_logger()


# Request/Response models
class OccupiedUpdateRequest(BaseModel):
    """Request to replace the occupied cells."""

    occupied: Any = Field(default_factory=list, description="Occupied cell identifiers")


class AreaModel(BaseModel):
    """One free group as published to observers."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="NombreArea")
    reference: str = Field(alias="Referencia")
    cells: List[str] = Field(alias="Celdas", description="Members joined into a single string")


class OccupancyStateModel(BaseModel):
    """Current (all, occupied, free) triple."""

    model_config = ConfigDict(populate_by_name=True)

    all_cells: List[str] = Field(alias="todas")
    occupied: List[str] = Field(alias="ocupadas")
    free: List[str] = Field(alias="libres")


class HealthResponse(BaseModel):
    """Service health information."""

    status: str
    loaded: bool
    cells: int
    connections: int


def get_manager(request: Request) -> OccupancyManager:
    return request.app.state.manager


def areas_payload(areas) -> List[dict]:
    return [area.to_payload() for area in areas]


def frame_text(frame: dict) -> Optional[str]:
    """Text of an inbound frame; binary frames are decoded as UTF-8, None if they are not."""
    if frame.get("text") is not None:
        return frame["text"]
    try:
        return (frame.get("bytes") or b"").decode("utf-8")
    except UnicodeDecodeError:
        return None


def handle_socket_message(raw: str, connection_id: str, manager: OccupancyManager, hub: ConnectionHub) -> None:
    """
    Dispatch one inbound websocket frame.

    Frames are JSON objects {"event": ..., "data": ...}. Failures are reported
    to the sending connection only.
    """
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        hub.send_to(connection_id, ERROR_EVENT, {"message": "Invalid JSON message"})
        return

    event = message.get("event") if isinstance(message, dict) else None
    if event != UPDATE_REQUEST_EVENT:
        hub.send_to(connection_id, ERROR_EVENT, {"message": f"Unknown event: {event}"})
        return

    try:
        areas = manager.update(message.get("data"))
    except CellGroupsError as e:
        logger.error("Cell update failed", connection_id=connection_id, error=str(e))
        hub.send_to(connection_id, ERROR_EVENT, {"message": str(e)})
        return

    hub.send_to(connection_id, AREAS_EVENT, areas_payload(areas))


def create_app(
    app_settings: Optional[Settings] = None,
    manager: Optional[OccupancyManager] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        app_settings: Settings to use (module settings by default)
        manager: Pre-built manager; a fresh unloaded one is created otherwise.
                 The dataset is only loaded on startup if the manager is
                 not loaded yet.
    """
    app_settings = app_settings or default_settings
    configure_logging(app_settings.log_level, app_settings.log_format)

    hub = ConnectionHub()
    if manager is None:
        manager = OccupancyManager(
            area_label=app_settings.area_label,
            cell_key=app_settings.cell_key_field,
        )
    manager.set_publisher(hub)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting cell groups service")
        if not manager.loaded:
            await load_dataset(manager, app_settings.data_dir, app_settings.extract_dir)
        logger.info("Service startup complete", loaded=manager.loaded)
        yield
        logger.info("Shutting down cell groups service")

    app = FastAPI(
        title="Cell Groups API",
        description="Occupancy tracking and free-cell grouping over a shapefile grid",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.manager = manager
    app.state.hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint."""
        current = get_manager(request)
        return HealthResponse(
            status="ok",
            loaded=current.loaded,
            cells=len(current.state.all_cells),
            connections=len(request.app.state.hub),
        )

    @app.get("/api/state", response_model=OccupancyStateModel)
    async def get_state(request: Request):
        """Current occupancy triple."""
        return OccupancyStateModel(**get_manager(request).state.to_payload())

    @app.get("/api/groups", response_model=List[AreaModel])
    async def get_groups(request: Request):
        """Areas for the current free cells."""
        try:
            areas = get_manager(request).current_areas()
        except NotLoadedError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return [AreaModel(**payload) for payload in areas_payload(areas)]

    @app.post("/api/cells/occupied", response_model=List[AreaModel])
    async def update_occupied(body: OccupiedUpdateRequest, request: Request):
        """
        Replace the occupied cells.

        Same effect as the websocket update: every connection receives the new
        state, the caller receives the areas.
        """
        try:
            areas = get_manager(request).update(body.occupied)
        except NotLoadedError as e:
            logger.error("Cell update failed", error=str(e))
            raise HTTPException(status_code=503, detail=str(e))
        return [AreaModel(**payload) for payload in areas_payload(areas)]

    @app.websocket("/ws")
    async def cells_socket(websocket: WebSocket):
        """Push channel: state on connect, areas in reply to updates."""
        current, sockets = websocket.app.state.manager, websocket.app.state.hub
        await websocket.accept()
        connection_id = sockets.connect(websocket)
        sockets.send_to(connection_id, STATE_EVENT, current.state.to_payload())

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break

                raw = frame_text(frame)
                if raw is None:
                    sockets.send_to(connection_id, ERROR_EVENT, {"message": "Binary frame is not UTF-8 text"})
                    continue
                handle_socket_message(raw, connection_id, current, sockets)
        except WebSocketDisconnect:
            pass
        finally:
            await sockets.disconnect(connection_id)

    if app_settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=app_settings.static_dir, html=True), name="static")
    else:
        logger.warning("Static directory not found, not serving assets", static_dir=str(app_settings.static_dir))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.api_host, port=default_settings.api_port)
