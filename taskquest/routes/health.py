"""Health-check endpoint for deployment verification."""

from __future__ import annotations

import os

from flask import Blueprint, Response, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """Public liveness probe for load balancers and orchestrators."""
    return jsonify(
        {
            "status": "healthy",
            "service": "taskquest",
            "environment": os.getenv("ENVIRONMENT", "unknown"),
        }
    ), 200
