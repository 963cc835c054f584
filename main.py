"""
Public API gateway: forwards /auth, /users, /orders, /geo and /tracking
to the backend services.
"""
import logging

from core.app import configure_logging, create_app
from routers import gateway

configure_logging()
logger = logging.getLogger(__name__)

app = create_app(
    "delivery-api-gateway",
    "Delivery API Gateway",
    routers=[gateway.router],
    create_db=False
)

@app.get("/")
def root():
    """Root endpoint for API health check."""
    return {
        "message": "Welcome to the Delivery API Gateway",
        "status": "healthy",
        "services": list(gateway.PROXIED_SERVICES)
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=3001)
