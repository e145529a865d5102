import logging

from fastapi import FastAPI

from broker import QueueClient, create_client
from order_service.flow import OrderSubmissionFlow
from order_service.publisher import OrderEventPublisher
from order_service.routes import router
from order_service.store import OrderStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(client: QueueClient = None, store: OrderStore = None) -> FastAPI:
    app = FastAPI(title="OrderService")

    @app.on_event("startup")
    def startup() -> None:
        app.state.client = client or create_client()
        app.state.store = store or OrderStore()
        app.state.store.init()
        publisher = OrderEventPublisher(app.state.client)
        app.state.flow = OrderSubmissionFlow(app.state.store, publisher)

    @app.on_event("shutdown")
    def shutdown() -> None:
        app.state.client.close()
        logger.info("OrderService stopped.")

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from order_service.config import SERVICE_PORT

    uvicorn.run(app, host="0.0.0.0", port=SERVICE_PORT)
