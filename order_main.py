import logging

from core.app import configure_logging, create_app
from routers import order

configure_logging()
logger = logging.getLogger(__name__)

app = create_app("order-service", "Order Service", routers=[order.router])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("order_main:app", host="0.0.0.0", port=3003)
