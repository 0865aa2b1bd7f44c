import logging
import secrets
import sys

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import ConfigError, load_settings, log_setup_hints
from .db import init_db
from .helpers import ValidationError
from .ledger import LedgerError
from .routes import register_blueprints


# ---------------------------
# Template helpers
# ---------------------------
def inr_format(value):
    """Format number in Indian currency style like ₹12,34,567.89"""
    try:
        value = float(value)
    except (ValueError, TypeError):
        return value
    sign = "-" if value < 0 else ""
    int_part, dec_part = f"{abs(value):.2f}".split(".")
    if len(int_part) > 3:
        head, tail = int_part[:-3], int_part[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        int_part = ",".join(groups) + "," + tail
    return f"{sign}₹{int_part}.{dec_part}"


def kg_format(value):
    try:
        return f"{float(value):.3f}"
    except (ValueError, TypeError):
        return value


# ---------------------------
# App factory
# ---------------------------
def create_app(settings=None):
    if settings is None:
        settings = load_settings()

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    init_db(settings)
    CORS(app, origins=settings.cors_origins, supports_credentials=True)

    app.add_template_filter(inr_format, "inr")
    app.add_template_filter(kg_format, "kg")
    register_blueprints(app)

    @app.errorhandler(ValidationError)
    @app.errorhandler(LedgerError)
    def bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def unhandled(e):
        logging.exception("unhandled error: %s", e)
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "message": "Server is running"})

    return app


# ---------------------------
# Entry points
# ---------------------------
def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        settings = load_settings()
    except ConfigError as e:
        log_setup_hints(e)
        sys.exit(1)
    app = create_app(settings)
    logging.info("BloomTrack API listening on port %d", settings.port)
    app.run(host="0.0.0.0", port=settings.port, debug=settings.debug)


def generate_secret():
    """Print a random JWT secret for .env."""
    print(secrets.token_hex(64))


if __name__ == "__main__":
    main()
