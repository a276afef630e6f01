"""Flask application exposing the print manager over local HTTP."""
from __future__ import annotations

from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS

from common.errors import DeviceError, InputError
from transport.dispatcher import PrintService

printer_bp = Blueprint("printer", __name__)


def _service() -> PrintService:
    return current_app.extensions["print_service"]


@printer_bp.route("/", methods=["GET"])
@printer_bp.route("/health", methods=["GET"])
def health_check():
    status = _service().status()
    return jsonify({"status": "ok", "version": status["version"], "printerName": status["printerName"]}), 200


@printer_bp.route("/printers", methods=["GET"])
def list_printers():
    service = _service()
    return jsonify({"printers": service.list_printers(), "configured": service.printer_name}), 200


@printer_bp.route("/print", methods=["POST"])
def print_receipt():
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    # Older clients nest business/sale under "data".
    data = dict(payload.get("data") or {})
    data.update({k: v for k, v in payload.items() if k != "data"})
    if not data.get("sale"):
        return jsonify({"success": False, "error": "Field 'sale' is required"}), 400

    try:
        result = _service().print_ticket(data)
    except InputError as exc:
        return jsonify({"success": False, "error": str(exc)}), 400
    except DeviceError as exc:
        return jsonify({"success": False, "error": str(exc)}), 500

    return jsonify({"success": True, **result}), 200


@printer_bp.route("/print/test", methods=["POST"])
def print_test_page():
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        payload = {}
    try:
        result = _service().print_test_page(payload.get("printerName"))
    except DeviceError as exc:
        return jsonify({"success": False, "error": str(exc)}), 500
    return jsonify({"success": True, **result}), 200


def create_app(service: Optional[PrintService] = None) -> Flask:
    app = Flask(__name__)
    CORS(app)
    app.extensions["print_service"] = service or PrintService()
    app.register_blueprint(printer_bp)
    return app
