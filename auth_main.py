"""
Auth service. Also serves /users, which the gateway routes to the same host.
"""
import logging

from core.app import configure_logging, create_app
from routers import auth, user

configure_logging()
logger = logging.getLogger(__name__)

app = create_app("auth-service", "Auth Service", routers=[auth.router, user.router])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("auth_main:app", host="0.0.0.0", port=3002)
