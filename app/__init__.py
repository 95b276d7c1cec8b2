"""
Creates and returns main flask app
"""

import os
from dataclasses import dataclass
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from .cdp.config_loader import ChainConfig, load_chain_config
from .cdp.logging_config import setup_logger
from .cdp.metrics import MetricsAggregator
from .cdp.orchestrator import TransactionOrchestrator
from .cdp.routes import cdp

logger = setup_logger()

DEFAULT_CHAIN_ID = 31337


@dataclass
class CdpServices:
    """Components shared by the request handlers of one app."""

    config: ChainConfig
    metrics: MetricsAggregator
    orchestrator: Optional[TransactionOrchestrator] = None


def build_services(config: ChainConfig, notify: bool = True) -> CdpServices:
    """Wire the read and write components for ``config``; writes need a signing key."""
    metrics = MetricsAggregator(config)
    orchestrator = None
    if config.can_sign:
        orchestrator = TransactionOrchestrator(config, reader=metrics.reader, notify=notify)
    else:
        logger.warning("App: SIGNER_PRIVATE_KEY not set, write endpoints are disabled")
    return CdpServices(config=config, metrics=metrics, orchestrator=orchestrator)


def create_app(chain_id: Optional[int] = None, services: Optional[CdpServices] = None):
    """Create Flask app serving the CDP endpoints for one chain"""
    app = Flask(__name__)
    CORS(app)

    if services is None:
        chain_id = chain_id or int(os.environ.get("CHAIN_ID", DEFAULT_CHAIN_ID))
        config = load_chain_config(chain_id)
        services = build_services(config, notify=bool(config.NOTIFICATION_URL))
    app.extensions["cdp"] = services

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy", "chainId": services.config.CHAIN_ID}), 200

    app.register_blueprint(cdp, url_prefix="/cdp")

    logger.info("App: serving chain %s (%s)", services.config.CHAIN_ID, services.config.CHAIN_NAME)
    return app
