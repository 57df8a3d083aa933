# echoverse/app.py
from __future__ import annotations

import json
import math
import time
import uuid
import logging
import argparse
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, g, jsonify, request
from pydantic import BaseModel, ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from .config import API_DEFAULT_PORT, Settings, configure_logging
from .context import AppContext
from .errors import EchoverseError, PersistenceError, ValidationError
from .models import CreateRealityBody, EnhanceRealityBody, SaveTreeBody

log = logging.getLogger("echoverse.api")

ENHANCEMENT_SENTENCE = (
    " This reality explores themes of personal growth, unexpected opportunities, "
    "and the interconnected nature of our choices."
)

INSIGHTS = [
    "Every decision creates ripple effects we can't predict",
    "Alternative paths often reveal our hidden potential",
    "The road not taken teaches us about who we are",
]


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _new_session() -> str:
    return str(uuid.uuid4())


def _body(model_cls: type[BaseModel]) -> Any:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise ValidationError(f"Invalid {where}: {first.get('msg', 'bad value')}")


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _parse_outcomes(raw: Optional[str], reality_id: str) -> list:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        log.warning("corrupt outcomes JSON on reality %s", reality_id)
        return []
    return parsed if isinstance(parsed, list) else []


def create_app(ctx: Optional[AppContext] = None) -> Flask:
    if ctx is None:
        # gunicorn 'echoverse.app:create_app()' lands here
        settings = Settings.from_env(default_port=API_DEFAULT_PORT)
        configure_logging(settings.log_level)
        ctx = AppContext.build(settings)
    app = Flask(__name__)
    app.extensions["echoverse"] = ctx
    app.json.sort_keys = False

    # ---------- request log ----------

    @app.before_request
    def _start_timer():
        g.rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())[:8]
        g.t0 = time.time()

    @app.after_request
    def _log_request(resp):
        log.info("RID %s %s %s -> %s in %.3fs",
                 g.get("rid", "-"), request.method, request.path,
                 resp.status_code, time.time() - g.get("t0", time.time()))
        resp.headers["X-Request-Id"] = g.get("rid", "")
        return resp

    # ---------- errors ----------

    @app.errorhandler(EchoverseError)
    def _domain_error(e: EchoverseError):
        return jsonify({"error": e.message}), e.status

    @app.errorhandler(404)
    def _not_found(e):
        return jsonify({"error": "Route not found"}), 404

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def _server_error(e: Exception):
        log.exception("RID %s crashed on %s %s", g.get("rid", "-"), request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500

    # ---------- routes ----------

    @app.get("/api/health")
    def health():
        return jsonify({"status": "healthy", "timestamp": _now_utc_iso()})

    @app.post("/api/realities")
    def create_reality():
        body = _body(CreateRealityBody)
        if not body.event.strip():
            raise ValidationError("Event description is required")
        user_session = body.user_session or _new_session()

        log.info("Generating reality for: %r", body.event)
        result = ctx.generator.generate(body.event)
        if result.fallback:
            log.warning("fallback reality served: %s", result.reason)
        reality = result.reality
        reality_id = str(uuid.uuid4())
        outcomes = [o.model_dump() for o in reality.outcomes]

        try:
            ctx.store.insert_reality(
                reality_id=reality_id,
                user_session=user_session,
                title=reality.title,
                description=reality.description,
                original_event=body.event,
                outcomes=outcomes,
                probability_score=reality.probability,
                impact_score=reality.impact,
            )
        except PersistenceError:
            return jsonify({"error": "Failed to save reality"}), 500

        ctx.analytics.record(user_session, "create_reality",
                             {"event": body.event, "realityId": reality_id})

        return jsonify({
            "id": reality_id,
            "userSession": user_session,
            "originalEvent": body.event,
            "title": reality.title,
            "description": reality.description,
            "outcomes": outcomes,
            "probability": reality.probability,
            "impact": reality.impact,
            "fallback": result.fallback,
            "timestamp": _now_utc_iso(),
        })

    @app.get("/api/realities/<user_session>")
    def list_realities(user_session: str):
        limit = _int_arg("limit", 20)
        offset = _int_arg("offset", 0)
        if limit < 0 or offset < 0:
            raise ValidationError("limit and offset must not be negative")
        if limit == 0:
            return jsonify({"realities": [], "count": 0})
        limit = min(limit, ctx.settings.max_page_size)
        try:
            rows = ctx.store.list_realities(user_session, limit=limit, offset=offset)
        except PersistenceError:
            return jsonify({"error": "Failed to fetch realities"}), 500

        realities = []
        for row in rows:
            row["outcomes"] = _parse_outcomes(row.get("outcomes"), row["id"])
            realities.append(row)
        return jsonify({"realities": realities, "count": len(realities)})

    @app.post("/api/trees")
    def save_tree():
        body = _body(SaveTreeBody)
        if body.tree_data is None:
            raise ValidationError("treeData is required")
        user_session = body.user_session or _new_session()
        tree_id = str(uuid.uuid4())
        share_token = ctx.sharing.mint_token(body.make_public)

        try:
            ctx.store.insert_tree(
                tree_id=tree_id,
                user_session=user_session,
                tree_data=body.tree_data,
                share_token=share_token,
            )
        except PersistenceError:
            return jsonify({"error": "Failed to save tree"}), 500

        ctx.analytics.record(user_session, "save_tree",
                             {"treeId": tree_id, "makePublic": body.make_public})

        base = ctx.settings.public_base_url or request.host_url
        return jsonify({
            "treeId": tree_id,
            "userSession": user_session,
            "shareToken": share_token,
            "shareUrl": ctx.sharing.share_url(base, share_token),
        })

    @app.get("/api/trees/share/<share_token>")
    def get_shared_tree(share_token: str):
        try:
            row = ctx.sharing.resolve(share_token)   # NotFoundError -> 404
        except PersistenceError:
            return jsonify({"error": "Failed to fetch tree"}), 500

        return jsonify({
            "id": row["id"],
            "treeData": json.loads(row["tree_data"]),
            "viewCount": row["view_count"],
            "createdAt": row["created_at"],
        })

    @app.get("/api/stats/<user_session>")
    def stats(user_session: str):
        try:
            counts = ctx.store.count_for_session(user_session)
        except PersistenceError:
            return jsonify({"error": "Failed to fetch stats"}), 500
        return jsonify({
            "realitiesCreated": counts["realities"],
            "treesSaved": counts["trees"],
            "totalInteractions": counts["interactions"],
            "diversityScore": diversity_score(counts["realities"], counts["interactions"]),
        })

    @app.post("/api/ai/enhance-reality")
    def enhance_reality():
        body = _body(EnhanceRealityBody)
        reality: Dict[str, Any] = body.reality
        description = reality.get("description") or ""
        enhanced = {
            **reality,
            "enhancedDescription": f"{description}{ENHANCEMENT_SENTENCE}",
            "alternativeOutcomes": [o.model_dump() for o in ctx.generator.generate_outcomes()],
            "insights": list(INSIGHTS),
        }
        if body.user_session:
            ctx.analytics.record(body.user_session, "enhance_reality", {"realityId": reality.get("id")})
        return jsonify(enhanced)

    return app


def diversity_score(reality_count: int, interaction_count: int) -> int:
    return math.floor(reality_count * 1.7 + interaction_count * 0.3)


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="EchoVerse reality API")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    ap.add_argument("--db", default=None, help="SQLite path (default: $DATABASE_PATH)")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args(argv)

    settings = Settings.from_env(default_port=API_DEFAULT_PORT)
    configure_logging(settings.log_level)
    if args.db:
        settings = replace(settings, database_path=args.db)

    app = create_app(AppContext.build(settings))
    log.info("EchoVerse API on port %s (db=%s)", args.port or settings.port, settings.database_path)
    app.run(host=args.host or settings.host, port=args.port or settings.port, debug=args.debug)


if __name__ == "__main__":
    main()
