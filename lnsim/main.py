"""lnsim HTTP service.

Exposes the network registry and lifecycle controller:
- network CRUD and start/stop
- missing image checks against the local image inventory
- per-network change notifications over WebSocket
- Prometheus metrics
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from lnsim.config import Settings, settings
from lnsim.drivers import DockerNodeDriver, NodeDriver
from lnsim.errors import (
    DriverError,
    ImageInventoryError,
    InvalidNameError,
    InvalidTopologyError,
    LifecycleError,
    MissingImagesError,
    NetworkStateError,
    NotFoundError,
    OperationInProgressError,
)
from lnsim.events import NetworkEventBus
from lnsim.images import DockerImageProvider, ImageProvider
from lnsim.lifecycle import LifecycleController
from lnsim.logging_config import setup_logging
from lnsim.metrics import get_metrics
from lnsim.persistence import NetworkStore
from lnsim.registry import NetworkRegistry
from lnsim.schemas import (
    HealthResponse,
    MissingImagesResponse,
    NetworkCreate,
    NetworkEvent,
    NetworkListResponse,
    NetworkOut,
    NodeFailureOut,
    RenameRequest,
    SystemInfo,
)
from lnsim.state import NetworkEventType
from lnsim.system import platform
from lnsim.topology import default_topology

logger = logging.getLogger(__name__)

# Status code per error type; subclasses match their closest listed base
ERROR_STATUS: list[tuple[type[LifecycleError], int]] = [
    (NotFoundError, 404),
    (InvalidNameError, 422),
    (InvalidTopologyError, 422),
    (NetworkStateError, 409),
    (OperationInProgressError, 409),
    (MissingImagesError, 409),
    (DriverError, 502),
    (ImageInventoryError, 503),
]


def _status_for(exc: LifecycleError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_app(
    *,
    registry: NetworkRegistry | None = None,
    driver: NodeDriver | None = None,
    image_provider: ImageProvider | None = None,
    events: NetworkEventBus | None = None,
    store: NetworkStore | None = None,
    config: Settings | None = None,
) -> FastAPI:
    """Build the application; every collaborator can be swapped for tests."""
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        logger.info("Starting lnsim")
        state = app.state
        state.config = config
        state.registry = registry if registry is not None else NetworkRegistry(config)
        state.events = events if events is not None else NetworkEventBus(config.event_queue_size)
        state.image_provider = image_provider if image_provider is not None else DockerImageProvider()
        state.controller = LifecycleController(
            state.registry,
            driver if driver is not None else DockerNodeDriver(),
            events=state.events,
            config=config,
        )
        state.store = None
        if config.persist_networks:
            state.store = store or NetworkStore.in_workspace(config.workspace_path)
            state.registry.load(state.store)
        yield
        if state.store is not None:
            state.registry.save(state.store)
        logger.info("lnsim stopped")

    app = FastAPI(title="lnsim", lifespan=lifespan)

    @app.exception_handler(LifecycleError)
    async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
        status_code = _status_for(exc)
        content: dict = {"detail": str(exc), "error_type": type(exc).__name__}
        if isinstance(exc, DriverError):
            content["failures"] = [
                NodeFailureOut(node_id=f.node_id, node_name=f.node_name, message=f.message).model_dump()
                for f in exc.failures
            ]
            if exc.network is not None:
                content["network"] = NetworkOut.from_network(exc.network).model_dump(mode="json")
        if isinstance(exc, MissingImagesError):
            content["missing"] = sorted(exc.images)
        if status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content=content)

    _register_routes(app)
    return app


# --- Dependencies ---

def get_controller(request: Request) -> LifecycleController:
    return request.app.state.controller


def get_registry(request: Request) -> NetworkRegistry:
    return request.app.state.registry


def get_image_provider(request: Request) -> ImageProvider:
    return request.app.state.image_provider


def _save(request: Request) -> None:
    store = request.app.state.store
    if store is not None:
        request.app.state.registry.save(store)


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health() -> HealthResponse:
        return HealthResponse()

    @app.get("/system")
    def system_info() -> SystemInfo:
        return SystemInfo(platform=platform)

    @app.get("/metrics")
    def metrics() -> Response:
        content, content_type = get_metrics()
        return Response(content=content, media_type=content_type)

    @app.get("/networks")
    def list_networks(registry: NetworkRegistry = Depends(get_registry)) -> NetworkListResponse:
        return NetworkListResponse(
            networks=[NetworkOut.from_network(n) for n in registry.list()]
        )

    @app.post("/networks")
    def create_network(
        payload: NetworkCreate,
        request: Request,
        registry: NetworkRegistry = Depends(get_registry),
    ) -> NetworkOut:
        topology = payload.nodes
        if not topology:
            topology = default_topology(
                payload.bitcoin_nodes, payload.lightning_nodes, request.app.state.config
            )
        network = registry.create(payload.name, topology)
        _save(request)
        return NetworkOut.from_network(network)

    @app.get("/networks/{network_id}")
    def get_network(network_id: int, registry: NetworkRegistry = Depends(get_registry)) -> NetworkOut:
        return NetworkOut.from_network(registry.get(network_id))

    @app.get("/networks/{network_id}/missing-images")
    async def get_missing_images(
        network_id: int,
        controller: LifecycleController = Depends(get_controller),
        provider: ImageProvider = Depends(get_image_provider),
    ) -> MissingImagesResponse:
        missing = await controller.check_images(network_id, provider)
        return MissingImagesResponse(
            network_id=network_id,
            missing=sorted(missing),
            can_start=not missing,
        )

    @app.post("/networks/{network_id}/start")
    async def start_network(
        network_id: int,
        controller: LifecycleController = Depends(get_controller),
        provider: ImageProvider = Depends(get_image_provider),
    ) -> NetworkOut:
        network = await controller.start(network_id, image_provider=provider)
        return NetworkOut.from_network(network)

    @app.post("/networks/{network_id}/stop")
    async def stop_network(
        network_id: int,
        controller: LifecycleController = Depends(get_controller),
    ) -> NetworkOut:
        network = await controller.stop(network_id)
        return NetworkOut.from_network(network)

    @app.put("/networks/{network_id}/name")
    async def rename_network(
        network_id: int,
        payload: RenameRequest,
        request: Request,
        controller: LifecycleController = Depends(get_controller),
    ) -> NetworkOut:
        network = await controller.rename(network_id, payload.name)
        _save(request)
        return NetworkOut.from_network(network)

    @app.delete("/networks/{network_id}")
    async def delete_network(
        network_id: int,
        request: Request,
        controller: LifecycleController = Depends(get_controller),
    ) -> dict[str, str]:
        await controller.remove(network_id)
        _save(request)
        return {"status": "deleted"}

    @app.websocket("/ws/networks/{network_id}/events")
    async def network_events(websocket: WebSocket, network_id: int) -> None:
        await websocket.accept()
        state = websocket.app.state
        network = state.registry.find(network_id)
        if network is None:
            await websocket.send_json({"type": "error", "detail": f"Network {network_id} not found"})
            await websocket.close(code=4404)
            return

        bus: NetworkEventBus = state.events
        with bus.subscription(network_id) as queue:
            await websocket.send_json({
                "type": "snapshot",
                "data": NetworkOut.from_network(network).model_dump(mode="json"),
            })
            forward = asyncio.create_task(_forward_events(websocket, queue))
            receive = asyncio.create_task(_drain_client(websocket))
            done = await _first_completed(forward, receive)

        if forward in done:
            try:
                await websocket.close()
            except RuntimeError:
                logger.debug(f"Event socket for network {network_id} already closed")


async def _first_completed(*tasks: asyncio.Task) -> set[asyncio.Task]:
    """Wait until one task finishes, then cancel the others and wait for them to unwind."""
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    return done


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue[NetworkEvent]) -> None:
    """Send queued events until the network is removed."""
    while True:
        event = await queue.get()
        await websocket.send_json(event.model_dump(mode="json"))
        if event.type == NetworkEventType.NETWORK_REMOVED:
            return


async def _drain_client(websocket: WebSocket) -> None:
    """Consume client messages until it disconnects."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Event socket client disconnected")


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lnsim.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )
