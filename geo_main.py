"""
Geo service: routing, geocoding and live delivery tracking.
"""
import logging

from core.app import configure_logging, create_app
from routers import geo, tracking

configure_logging()
logger = logging.getLogger(__name__)

app = create_app("geo-service", "Geo Service", routers=[geo.router, tracking.router])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("geo_main:app", host="0.0.0.0", port=3004)
