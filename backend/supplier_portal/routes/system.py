# backend/supplier_portal/routes/system.py
"""
System health endpoint.

Reports database reachability, whether the Sienge integration is
configured, and whether document storage is writable.
"""

import os
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Supplier, User
from ..services.sienge_service import IntegrationConfigError, build_client_from_config
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        supplier_count = db.session.query(Supplier).count()
        user_count = db.session.query(User).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "suppliers": supplier_count,
                "users": user_count,
            }
        }
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_integration_health() -> dict:
    """Sienge credentials present. No request is sent."""
    if current_app.extensions.get("sienge_client") is not None:
        return {"status": "healthy", "details": {"client": "injected"}}
    try:
        client = build_client_from_config(current_app.config)
    except IntegrationConfigError as e:
        return {"status": "degraded", "warning": str(e)}
    return {"status": "healthy", "details": {"creditors_url": client.creditors_url}}


def check_storage_health() -> dict:
    if current_app.extensions.get("blob_store") is not None:
        return {"status": "healthy", "details": {"store": "injected"}}
    folder = current_app.config.get("UPLOAD_FOLDER")
    if folder and os.path.isdir(folder) and os.access(folder, os.W_OK):
        return {"status": "healthy", "details": {"upload_folder": folder}}
    if folder and not os.path.exists(folder):
        # Created lazily on the first upload
        return {"status": "degraded", "warning": "Upload folder does not exist yet"}
    return {"status": "unhealthy", "error": "Upload folder is not writable"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (still operational)
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "sienge_integration": check_integration_health(),
        "storage": check_storage_health(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall_status = "unhealthy"
        http_status = 503
    elif "degraded" in statuses:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": checks,
    }

    return response, http_status
