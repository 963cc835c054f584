"""
Standardized API response payloads
"""
from typing import Any, Dict, Optional
from datetime import datetime


def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Create an error response"""
    return {
        "success": False,
        "message": message,
        "error_code": error_code,
        "details": details,
        "timestamp": datetime.utcnow().isoformat()
    }


def health_response(service: str, environment: str, **extra: Any) -> Dict[str, Any]:
    """Create the health payload shared by every service."""
    payload = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "service": service,
        "environment": environment,
    }
    payload.update(extra)
    return payload
