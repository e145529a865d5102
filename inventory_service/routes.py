from fastapi import APIRouter, HTTPException, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    return {
        "status": "ok",
        "consumer": "running" if request.app.state.consumer.is_running else "stopped",
    }


@router.get("/api/inventory")
def list_inventory(request: Request) -> list:
    return [p.model_dump(by_alias=True) for p in request.app.state.store.list_products()]


@router.get("/api/inventory/{product_id}")
def get_inventory(product_id: int, request: Request) -> dict:
    product = request.app.state.store.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found in inventory.")
    return product.model_dump(by_alias=True)
