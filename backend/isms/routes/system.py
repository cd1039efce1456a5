# backend/isms/routes/system.py
"""
System health endpoint.

Unauthenticated so load balancers and uptime checks can reach it.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from isms.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Round-trip a trivial query and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return {
        "status": "ok" if healthy else "degraded",
        "checked_at": to_utc_z(utcnow()),
        "checks": {"database": database},
    }, 200 if healthy else 503
