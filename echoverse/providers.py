"""
Third-party LLM calls for the proxy. Every call returns the same envelope:

    {"success": True,  "data": {...},  "provider": "openai", "timestamp": "..."}
    {"success": False, "error": "...", "provider": "openai", "timestamp": "..."}

Nothing here raises; a failed call is a failed envelope.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import httpx
from openai import OpenAI, OpenAIError

from .config import Settings

log = logging.getLogger("echoverse.providers")

OPENAI_DEFAULT_MODEL = "gpt-3.5-turbo"
ANTHROPIC_DEFAULT_MODEL = "claude-3-sonnet-20240229"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 150
DEFAULT_TEMPERATURE = 0.7

DEFAULT_PROVIDER = "openai"


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _envelope(provider: str, *, data: Any = None, error: Any = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"success": error is None, "provider": provider}
    if error is None:
        out["data"] = data
    else:
        out["error"] = error
    out["timestamp"] = _now_utc_iso()
    return out


def _api_error(e: OpenAIError) -> Any:
    body = getattr(e, "body", None)
    if isinstance(body, dict):
        return body.get("error", body)
    return body or str(e)


class ProviderClient:
    """
    Holds the outbound clients. `openai_factory` and `http` are injectable so
    tests can stub the network.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        openai_factory: Optional[Callable[[], Any]] = None,
        http: Optional[httpx.Client] = None,
    ):
        self.settings = settings
        self._openai_factory = openai_factory or (
            lambda: OpenAI(api_key=settings.openai_api_key, timeout=settings.llm_timeout_s)
        )
        self._openai = None
        self.http = http or httpx.Client(timeout=settings.llm_timeout_s)
        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], Any]] = {
            "openai": self._openai_chat,
            "anthropic": self._anthropic_messages,
        }

    @property
    def available(self) -> list[str]:
        return list(self._handlers)

    def request(self, provider: str, prompt: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        handler = self._handlers.get(provider)
        if handler is None:
            return _envelope(provider, error=f"Unsupported provider: {provider}")
        try:
            return _envelope(provider, data=handler(prompt, options or {}))
        except OpenAIError as e:
            log.warning("openai call failed: %s", type(e).__name__)
            return _envelope(provider, error=_api_error(e))
        except httpx.HTTPStatusError as e:
            log.warning("%s call failed: HTTP %s", provider, e.response.status_code)
            try:
                err = e.response.json().get("error") or str(e)
            except ValueError:
                err = str(e)
            return _envelope(provider, error=err)
        except httpx.HTTPError as e:
            log.warning("%s call failed: %s", provider, type(e).__name__)
            return _envelope(provider, error=str(e) or type(e).__name__)
        except Exception as e:
            # a batch reports this per item instead of failing every prompt
            log.exception("%s call crashed", provider)
            return _envelope(provider, error=str(e) or type(e).__name__)

    # ---------------- providers ----------------

    def _openai_chat(self, prompt: str, options: Dict[str, Any]) -> Any:
        if self._openai is None:
            self._openai = self._openai_factory()
        resp = self._openai.chat.completions.create(
            model=options.get("model") or OPENAI_DEFAULT_MODEL,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=options.get("maxTokens") or DEFAULT_MAX_TOKENS,
            temperature=options.get("temperature") or DEFAULT_TEMPERATURE,
        )
        return resp.model_dump() if hasattr(resp, "model_dump") else resp

    def _anthropic_messages(self, prompt: str, options: Dict[str, Any]) -> Any:
        r = self.http.post(
            ANTHROPIC_URL,
            headers={
                "x-api-key": self.settings.anthropic_api_key or "",
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            json={
                "model": options.get("model") or ANTHROPIC_DEFAULT_MODEL,
                "max_tokens": options.get("maxTokens") or DEFAULT_MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        r.raise_for_status()
        return r.json()
