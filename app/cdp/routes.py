"""Module for handling API routes"""

from flask import Blueprint, current_app, jsonify, make_response, request
from werkzeug.exceptions import HTTPException
from web3 import Web3

from .exceptions import ConfigError, ParseError
from .fixed_point import from_display, to_display
from .logging_config import setup_logger
from .metrics import project_debt
from .notifications import post_error_notification

logger = setup_logger()

cdp = Blueprint("cdp", __name__)


def _services():
    return current_app.extensions["cdp"]


def _user_arg():
    """Return the ``user`` query argument, or None to fall back to the default account."""
    user = request.args.get("user")
    if user is not None and not Web3.is_address(user):
        raise ConfigError(f"Invalid user address: {user}")
    return user


def _outcome_response(outcome):
    return make_response(jsonify(outcome.to_dict()), 200 if outcome.success else 400)


def _orchestrator():
    orchestrator = _services().orchestrator
    if orchestrator is None:
        raise ConfigError("Writes are disabled: SIGNER_PRIVATE_KEY is not configured")
    return orchestrator


@cdp.errorhandler(ConfigError)
@cdp.errorhandler(ParseError)
def handle_bad_request(error):
    logger.warning("API: %s", error)
    return jsonify({"error": str(error)}), 400


@cdp.errorhandler(Exception)
def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return error
    logger.error("API: unexpected error: %s", error, exc_info=error)
    try:
        post_error_notification(f"API error on {request.path}: {error}", _services().config)
    except Exception as ex:
        logger.error("API: failed to post error notification: %s", ex, exc_info=True)
    return jsonify({"error": "Internal error"}), 500


@cdp.route("/position", methods=["GET"])
def get_position():
    position = _services().metrics.get_position(_user_arg())
    return make_response(jsonify(position.to_dict()))


@cdp.route("/stats", methods=["GET"])
def get_protocol_stats():
    return make_response(jsonify(_services().metrics.get_protocol_stats().to_dict()))


@cdp.route("/prices", methods=["GET"])
def get_token_prices():
    prices = _services().metrics.get_token_prices()
    return make_response(jsonify([price.to_dict() for price in prices]))


@cdp.route("/balances", methods=["GET"])
def get_wallet_balances():
    balances = _services().metrics.get_wallet_balances(_user_arg())
    return make_response(jsonify(balances.to_dict()))


@cdp.route("/maxMintable", methods=["GET"])
def get_max_mintable():
    max_mintable = _services().metrics.get_max_mintable(_user_arg())
    return make_response(jsonify({"maxMintable": to_display(max_mintable)}))


@cdp.route("/projectedDebt", methods=["GET"])
def get_projected_debt():
    """Debt after a prospective mint or burn of ``amount``."""
    action = request.args.get("action", "mint")
    if action not in ("mint", "burn"):
        raise ConfigError(f"Unknown action: {action}")
    change = from_display(request.args.get("amount", "0"))

    position = _services().metrics.get_position(_user_arg())
    projected = project_debt(position.total_debt, change, minting=action == "mint")
    return make_response(jsonify({"currentDebt": to_display(position.total_debt), "projectedDebt": to_display(projected)}))


@cdp.route("/deposit", methods=["POST"])
def deposit():
    body = request.get_json(silent=True) or {}
    logger.info("API: deposit %s %s", body.get("amount"), body.get("token"))
    return _outcome_response(_orchestrator().deposit(str(body.get("token", "")), str(body.get("amount", ""))))


@cdp.route("/withdraw", methods=["POST"])
def withdraw():
    body = request.get_json(silent=True) or {}
    logger.info("API: withdraw %s %s", body.get("amount"), body.get("token"))
    return _outcome_response(_orchestrator().withdraw(str(body.get("token", "")), str(body.get("amount", ""))))


@cdp.route("/mint", methods=["POST"])
def mint():
    body = request.get_json(silent=True) or {}
    logger.info("API: mint %s", body.get("amount"))
    return _outcome_response(_orchestrator().mint(str(body.get("amount", ""))))


@cdp.route("/burn", methods=["POST"])
def burn():
    body = request.get_json(silent=True) or {}
    logger.info("API: burn %s", body.get("amount"))
    return _outcome_response(_orchestrator().burn(str(body.get("amount", ""))))


@cdp.route("/liquidate", methods=["POST"])
def liquidate():
    body = request.get_json(silent=True) or {}
    logger.info("API: liquidate %s of %s on %s", body.get("debtToCover"), body.get("user"), body.get("token"))
    outcome = _orchestrator().liquidate(
        str(body.get("token", "")), str(body.get("user", "")), str(body.get("debtToCover", ""))
    )
    return _outcome_response(outcome)
