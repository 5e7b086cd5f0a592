"""Main FastAPI application - hire-scoped chat over REST and WebSocket"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
import uvicorn

from api.errors import register_error_handlers
from api.routes import router as chat_router
from services.container import ChatContainer
from settings import Settings, configure_logging, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, container: ChatContainer | None = None) -> FastAPI:
    """Build the application around a container (one is created if not given)"""
    settings = settings or get_settings()
    container = container or ChatContainer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the database and event consumer, then tear them down"""
        configure_logging(settings.log_level)
        await container.start()
        consumer_task = asyncio.create_task(container.consumer.consume())
        logger.info("Event consumer started")

        yield

        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            pass
        await container.stop()
        logger.info("Application shutdown complete")

    app = FastAPI(title="CollaboTree Chat", lifespan=lifespan)
    app.state.container = container
    register_error_handlers(app)
    app.include_router(chat_router, prefix="/api")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "connections": container.registry.get_connection_count()}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """WebSocket endpoint that delegates to the gateway"""
        await container.gateway.handle_connection(websocket)

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
