from checkout.api.routes import maintenance_router, order_router, payment_router, stock_router

__all__ = ["order_router", "payment_router", "stock_router", "maintenance_router"]
