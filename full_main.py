"""
Every backend router in a single process, for local development.
"""
import logging

from core.app import configure_logging, create_app
from routers import auth, user, order, geo, tracking

configure_logging()
logger = logging.getLogger(__name__)

app = create_app(
    "delivery-backend",
    "Delivery Backend",
    routers=[auth.router, user.router, order.router, geo.router, tracking.router]
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("full_main:app", host="0.0.0.0", port=8000)
