from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from common.errors import PublishFailure
from order_service.models import CreateOrderRequest, OrderCreatedResponse

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/api/orders")
def list_orders(request: Request) -> list:
    return [
        {
            "orderId": o.order_id,
            "customerId": o.customer_id,
            "orderDate": o.order_date.isoformat(),
            "status": o.status,
            "itemCount": len(o.items),
            "total": str(sum((i.quantity * i.unit_price for i in o.items), 0)),
        }
        for o in request.app.state.store.recent_orders()
    ]


@router.get("/api/orders/{order_id}")
def get_order(order_id: int, request: Request) -> dict:
    order = request.app.state.store.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found.")
    return {
        "orderId": order.order_id,
        "customerId": order.customer_id,
        "orderDate": order.order_date.isoformat(),
        "status": order.status,
        "items": [
            {
                "productId": i.product_id,
                "quantity": i.quantity,
                "unitPrice": str(i.unit_price),
                "lineTotal": str(i.quantity * i.unit_price),
            }
            for i in order.items
        ],
    }


@router.post("/api/orders", status_code=201)
def create_order(payload: CreateOrderRequest, request: Request):
    if not payload.items:
        raise HTTPException(status_code=400, detail="Order must contain at least one item.")

    try:
        order = request.app.state.flow.submit(payload.customer_id, payload.items)
    except PublishFailure as exc:
        # The order exists; only the announcement is missing.
        return JSONResponse(status_code=502, content={
            "orderId": exc.order_id,
            "detail": "Order saved but OrderPlaced event could not be published.",
        })

    return OrderCreatedResponse(
        order_id=order.order_id,
        customer_id=order.customer_id,
        status=order.status,
        message="Order created. OrderPlaced event published; inventory will deduct stock shortly.",
    ).model_dump(by_alias=True)
