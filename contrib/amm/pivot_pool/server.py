# Copyright (c) 2025 The BATHRON 2.0 developers
# Distributed under the MIT software license

"""
Pivot Pool AMM - REST API

Endpoints:
  GET  /health                  - Server status
  GET  /api/pool                - Pool info (reserves, prices, history)
  GET  /api/quote               - Quote a swap (null if no route)
  POST /api/swap                - Execute a swap (simulated)
  POST /api/liquidity           - Add pivot liquidity
  POST /api/reset               - Reset pool to the default seed
  GET  /api/impermanent_loss    - IL for a price ratio
  GET  /amm?action=...          - Single endpoint dispatcher (info, quote,
                                  swap, reset, add_liquidity)

Each browser session gets its own pool, keyed by a random id held in the
signed session cookie.
"""

import logging
import secrets
import time
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, session
from flask_cors import CORS

from .config import ServerConfig
from .pool_types import InvalidAmount, PoolError, ReserveExhausted, WeightMismatch, to_decimal
from .pricing import impermanent_loss
from .service import PoolSession
from .store import PoolStore, open_store

log = logging.getLogger(__name__)

SESSION_FIELD = "pool_id"

ERROR_STATUS = {
    InvalidAmount: 400,
    ReserveExhausted: 409,
    WeightMismatch: 500,
}


def error_response(message: str, kind: str, status: int):
    return jsonify({"error": message, "kind": kind}), status


def create_app(config: Optional[ServerConfig] = None, store: Optional[PoolStore] = None) -> Flask:
    """Build the Flask app. Defaults come from the environment."""
    config = config or ServerConfig.from_env()
    if store is None:
        store = open_store(config.store, config.session_max_age, config.max_sessions)

    app = Flask(__name__)
    app.secret_key = config.secret_key or secrets.token_hex(32)
    app.config["POOL_STORE"] = store
    if config.cors_origins:
        # Cookie sessions only for the configured DEX frontends
        CORS(app, origins=config.cors_origins, supports_credentials=True)
    else:
        CORS(app)

    def pool_session() -> PoolSession:
        if SESSION_FIELD not in session:
            session[SESSION_FIELD] = secrets.token_hex(16)
        return PoolSession(store, session[SESSION_FIELD], config.pool)

    def params() -> Dict[str, Any]:
        """Query args merged with the JSON or form body."""
        data: Dict[str, Any] = dict(request.args.items())
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            data.update(body)
        else:
            data.update(request.form.items())
        return data

    @app.errorhandler(PoolError)
    def handle_pool_error(e):
        status = ERROR_STATUS.get(type(e), 400)
        if status >= 500:
            log.error(f"Pool error: {e}")
        return error_response(str(e), e.kind, status)

    # =========================================================================
    # HEALTH
    # =========================================================================

    @app.route("/health")
    def health():
        return jsonify({"ok": True, "timestamp": int(time.time())})

    # =========================================================================
    # POOL API
    # =========================================================================

    @app.route("/api/pool")
    def api_pool():
        return jsonify(pool_session().info())

    @app.route("/api/quote")
    def api_quote():
        """
        Quote a swap.

        Query: asset_in, amount_in, asset_out
        Returns the quote, or null when the pair has no route.
        """
        data = params()
        quote = pool_session().quote(
            data.get("asset_in", ""), data.get("amount_in", ""), data.get("asset_out", "")
        )
        return jsonify(quote)

    @app.route("/api/swap", methods=["POST"])
    def api_swap():
        """
        Execute a swap.

        Request:
        {
            "asset_in": "TBTC",
            "amount_in": 0.1,
            "asset_out": "KHU"
        }
        """
        data = params()
        result = pool_session().swap(
            data.get("asset_in", ""), data.get("amount_in", ""), data.get("asset_out", "")
        )
        return jsonify(result)

    @app.route("/api/liquidity", methods=["POST"])
    def api_add_liquidity():
        return jsonify(pool_session().add_liquidity(params().get("amount", "")))

    @app.route("/api/reset", methods=["POST"])
    def api_reset():
        return jsonify(pool_session().reset())

    @app.route("/api/impermanent_loss")
    def api_impermanent_loss():
        ratio = to_decimal(request.args.get("price_ratio", ""), "price_ratio")
        il = impermanent_loss(ratio)
        return jsonify({"price_ratio": float(ratio), "il": float(il), "il_pct": float(il * 100)})

    # =========================================================================
    # SINGLE ENDPOINT (?action=)
    # =========================================================================

    @app.route("/amm", methods=["GET", "POST"])
    def amm_action():
        data = params()
        action = data.get("action", "")
        pool = pool_session()

        if action == "info":
            return jsonify(pool.info())
        if action in ("quote", "swap"):
            args = (
                data.get("asset_in", "TBTC"),
                data.get("amount_in", 0),
                data.get("asset_out", "KHU"),
            )
            return jsonify(pool.quote(*args) if action == "quote" else pool.swap(*args))
        if action == "reset":
            return jsonify(pool.reset())
        if action == "add_liquidity":
            return jsonify(pool.add_liquidity(data.get("amount", 0)))

        return error_response(f"Unknown action {action!r}", "UnknownAction", 400)

    return app

