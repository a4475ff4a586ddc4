"""
server.py
Payment proxy: keeps the gateway secret key server-side and proxies QR images.
Run: python server.py
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

import config
from payment import GatewayError, OmiseGateway
from qr import QrFetchError, fetch_image, is_svg

logger = logging.getLogger(__name__)


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def create_app(gateway=None, fetch: Callable[[str], tuple[str, bytes]] | None = None) -> Flask:
    app = Flask(__name__)

    if gateway is None:
        gateway = OmiseGateway(
            config.OMISE_SECRET_KEY,
            base_url=config.OMISE_API_URL,
            timeout=config.GATEWAY_TIMEOUT_SECONDS,
        )
    if fetch is None:
        def fetch(url: str) -> tuple[str, bytes]:
            return fetch_image(url, referer=config.OMISE_DASHBOARD_URL, timeout=config.GATEWAY_TIMEOUT_SECONDS)

    CORS(app, resources={r"/api/*": {"origins": "*"}})

    @app.get("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    @app.post("/api/create-payment")
    def create_payment():
        body: dict[str, Any] = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            return _error("JSON object body required", 400)
        amount = body.get("amount")
        currency = body.get("currency")
        source = body.get("source")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            return _error("amount must be a positive integer", 400)
        if not isinstance(currency, str) or not currency.strip():
            return _error("currency must be a non-empty string", 400)
        if not isinstance(source, dict) or not source.get("type"):
            return _error("source.type is required", 400)
        description = body.get("description") or ""
        if not isinstance(description, str):
            return _error("description must be a string", 400)

        try:
            charge = gateway.create_charge(
                amount=amount,
                currency=currency,
                description=description,
                source=source,
            )
        except GatewayError as exc:
            logger.error("Error creating charge: %s", exc)
            return _error("Failed to create payment", 500)
        return jsonify(charge)

    @app.get("/api/check-payment/<charge_id>")
    def check_payment(charge_id: str):
        logger.info("Checking payment status for charge: %s", charge_id)
        try:
            charge = gateway.retrieve_charge(charge_id)
        except GatewayError as exc:
            logger.error("Error retrieving charge %s: %s", charge_id, exc)
            return _error("Failed to check payment status", 502)
        logger.info("Charge %s status: %s", charge_id, charge.get("status"))
        return jsonify(charge)

    @app.get("/api/download-qr")
    def download_qr():
        url = request.args.get("url", "").strip()
        if not url:
            return _error("URL parameter is required", 400)
        if not url.startswith(("https://", "http://")):
            return _error("URL must be http(s)", 400)

        try:
            content_type, data = fetch(url)
        except QrFetchError as exc:
            logger.error("Error downloading QR code: %s", exc)
            return _error("Failed to download QR code", 500)

        if is_svg(content_type):
            mime, filename = "image/svg+xml", "qr-code.svg"
        else:
            mime, filename = content_type or "image/png", "qr-code.png"
        return Response(
            data,
            content_type=mime,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


def main() -> None:
    config.configure_logging()
    if not config.OMISE_SECRET_KEY:
        logger.warning("OMISE_SECRET_KEY is not set; gateway calls will be rejected")
    app = create_app()
    logger.info("Payment server running on port %s", config.PROXY_PORT)
    app.run(host=config.PROXY_HOST, port=config.PROXY_PORT)


if __name__ == "__main__":
    main()
