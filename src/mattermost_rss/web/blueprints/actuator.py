"""
Health check endpoint.
"""

from flask import Blueprint, jsonify


class ActuatorBlueprint:
    """Blueprint exposing ``/actuator/health``."""

    def __init__(self):
        self.blueprint = Blueprint("actuator", __name__, url_prefix="/actuator")
        self.blueprint.add_url_rule("/health", view_func=self._health, methods=["GET"])

    def _health(self):
        """Report that the process is up."""
        return jsonify({"status": "UP"}), 200
