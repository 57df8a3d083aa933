# echoverse/llm_proxy.py
from __future__ import annotations

import time
import uuid
import logging
import argparse
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import PROXY_DEFAULT_PORT, Settings, configure_logging
from .providers import DEFAULT_PROVIDER, ProviderClient
from .ratelimit import SlidingWindowLimiter

log = logging.getLogger("echoverse.proxy")

MAX_BODY_BYTES = 10 * 1024 * 1024
BATCH_WORKERS = 8


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _client_ip() -> str:
    return request.remote_addr or "unknown"


def create_proxy_app(
    settings: Optional[Settings] = None,
    providers: Optional[ProviderClient] = None,
    limiter: Optional[SlidingWindowLimiter] = None,
) -> Flask:
    settings = settings or Settings.from_env(default_port=PROXY_DEFAULT_PORT)
    providers = providers or ProviderClient(settings)
    limiter = limiter or SlidingWindowLimiter(settings.rate_limit_max, settings.rate_limit_window_s)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_BYTES
    app.json.sort_keys = False

    @app.before_request
    def _gate():
        g.rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())[:8]
        g.t0 = time.time()
        if request.path.startswith("/api/"):
            ip = _client_ip()
            if not limiter.hit(ip):
                log.warning("RID %s rate limited %s", g.rid, ip)
                resp = jsonify({"error": "Too many requests from this IP"})
                resp.status_code = 429
                resp.headers["Retry-After"] = str(limiter.retry_after(ip))
                return resp

    @app.after_request
    def _log_request(resp):
        log.info("RID %s %s %s -> %s in %.3fs",
                 g.get("rid", "-"), request.method, request.path,
                 resp.status_code, time.time() - g.get("t0", time.time()))
        return resp

    @app.errorhandler(404)
    def _not_found(e):
        return jsonify({"error": "Route not found"}), 404

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def _server_error(e: Exception):
        log.exception("RID %s crashed", g.get("rid", "-"))
        return jsonify({"error": "Something went wrong!"}), 500

    @app.get("/api/health")
    def health():
        return jsonify({"status": "OK", "timestamp": _now_utc_iso()})

    @app.post("/api/generate")
    def generate():
        data = request.get_json(force=True, silent=True)
        if not isinstance(data, dict):
            data = {}
        prompt = data.get("prompt")
        if not prompt or not isinstance(prompt, str):
            return jsonify({"error": "Prompt is required"}), 400
        provider = data.get("provider") or DEFAULT_PROVIDER
        options = data.get("options") if isinstance(data.get("options"), dict) else {}

        result = providers.request(provider, prompt, options)
        return jsonify(result), (200 if result["success"] else 500)

    @app.post("/api/batch")
    def batch():
        data = request.get_json(force=True, silent=True)
        if not isinstance(data, dict):
            data = {}
        prompts = data.get("prompts")
        if not isinstance(prompts, list) or not prompts:
            return jsonify({"error": "Prompts array is required"}), 400
        provider = data.get("provider") or DEFAULT_PROVIDER
        options = data.get("options") if isinstance(data.get("options"), dict) else {}

        with ThreadPoolExecutor(max_workers=min(BATCH_WORKERS, len(prompts))) as pool:
            results = list(pool.map(lambda p: providers.request(provider, str(p), options), prompts))

        responses = [{"index": i, **r} for i, r in enumerate(results)]
        failed = sum(1 for r in results if not r["success"])
        if failed:
            log.info("batch of %d via %s: %d failed", len(prompts), provider, failed)
        return jsonify({"responses": responses, "total": len(prompts)})

    @app.get("/api/providers")
    def list_providers():
        return jsonify({"available": providers.available, "default": DEFAULT_PROVIDER})

    return app


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="EchoVerse LLM proxy")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args(argv)

    settings = Settings.from_env(default_port=PROXY_DEFAULT_PORT)
    configure_logging(settings.log_level)
    app = create_proxy_app(settings)
    log.info("EchoVerse LLM proxy on port %s", args.port or settings.port)
    app.run(host=args.host or settings.host, port=args.port or settings.port, debug=args.debug)


if __name__ == "__main__":
    main()
