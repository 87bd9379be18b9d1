"""Application factory for creating FastAPI instances."""

from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import AppConfig, get_config, validate_config
from .core.execution_coordinator import ExecutionCoordinator
from .core.executor_registry import ExecutorRegistry, create_default_registry
from .core.logging import setup_logging, get_logger
from .core.middleware import ErrorHandlingMiddleware
from .core.websocket_manager import ConnectionManager
from .storage import WorkflowStore, create_workflow_store
from .api.endpoints import router, ws_router, init_dependencies

logger = get_logger(__name__)


class ApplicationState:
    """Container for application components."""

    def __init__(
        self,
        config: AppConfig,
        store: WorkflowStore,
        registry: ExecutorRegistry,
        coordinator: ExecutionCoordinator,
        connection_manager: ConnectionManager
    ):
        self.config = config
        self.store = store
        self.registry = registry
        self.coordinator = coordinator
        self.connection_manager = connection_manager


def initialize_components(config: AppConfig) -> ApplicationState:
    """Build the store, registry, coordinator and connection manager."""
    store = create_workflow_store(config)
    registry = create_default_registry(timer_max_interval=config.timer_max_interval)
    connection_manager = ConnectionManager()
    coordinator = ExecutionCoordinator(
        registry=registry,
        max_parallel_nodes=config.max_parallel_nodes,
        event_listener=connection_manager.queue_event
    )

    logger.info(
        f"Core components initialized: store={config.store_backend.value}, "
        f"node types={registry.registered_types()}, max parallel nodes={config.max_parallel_nodes}"
    )
    return ApplicationState(config, store, registry, coordinator, connection_manager)


def create_lifespan_handler(state: ApplicationState):
    """Create the application lifespan handler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {state.config.app_name} v{state.config.app_version}")
        state.connection_manager.start_broadcast_processor()

        yield

        logger.info(f"Shutting down {state.config.app_name}")
        await state.connection_manager.stop_broadcast_processor()
        close = getattr(state.store, "close", None)
        if close is not None:
            close()

    return lifespan


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Create and configure a FastAPI application instance."""
    if config is None:
        config = get_config()

    validate_config(config)

    setup_logging(
        level=config.log_level.value,
        log_file=config.log_file,
        log_format=config.log_format,
        structured=config.log_structured,
        max_size=config.log_max_size,
        backup_count=config.log_backup_count
    )

    state = initialize_components(config)
    init_dependencies(
        store=state.store,
        coordinator=state.coordinator,
        registry=state.registry,
        connection_manager=state.connection_manager
    )

    app = FastAPI(
        title=config.app_name,
        description="Workflow automation service: store node graphs and execute them in dependency order",
        version=config.app_version,
        debug=config.debug,
        lifespan=create_lifespan_handler(state)
    )
    app.state.components = state

    app.add_middleware(ErrorHandlingMiddleware)

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
        )

    app.include_router(router)
    app.include_router(ws_router)

    add_health_endpoints(app, state)

    return app


def add_health_endpoints(app: FastAPI, state: ApplicationState) -> None:
    """Add root and health check endpoints to the application."""
    config = state.config

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check():
        """Health check endpoint with component summary."""
        return {
            "status": "healthy",
            "service": config.app_name.lower().replace(" ", "-"),
            "version": config.app_version,
            "store_backend": config.store_backend.value,
            "registered_node_types": state.registry.registered_types(),
            "websocket_connections": state.connection_manager.get_connection_count()
        }
