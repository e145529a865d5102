import logging

from fastapi import FastAPI

from broker import QueueClient, create_client
from inventory_service.consumer import StockDeductionConsumer
from inventory_service.routes import router
from inventory_service.store import InventoryStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(client: QueueClient = None, store: InventoryStore = None) -> FastAPI:
    app = FastAPI(title="InventoryService")

    @app.on_event("startup")
    def startup() -> None:
        app.state.client = client or create_client()
        app.state.store = store or InventoryStore()
        app.state.store.init()
        # The worker shares the broker client and the database file with the
        # request handlers, nothing else.
        app.state.consumer = StockDeductionConsumer(
            app.state.client, app.state.store.unit_of_work_factory(),
        )
        app.state.consumer.start()

    @app.on_event("shutdown")
    def shutdown() -> None:
        app.state.consumer.stop()
        app.state.client.close()
        logger.info("InventoryService stopped.")

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from inventory_service.config import SERVICE_PORT

    uvicorn.run(app, host="0.0.0.0", port=SERVICE_PORT)
