# echoverse/analytics.py
from __future__ import annotations

import logging
from typing import Any, Optional

from .db import Store
from .errors import AnalyticsError, PersistenceError

log = logging.getLogger("echoverse.analytics")


class AnalyticsSink:
    """Write-only event log. A failed write never reaches the caller."""

    def __init__(self, store: Store):
        self.store = store

    def record(self, user_session: Optional[str], event_type: str, event_data: Any = None) -> bool:
        try:
            self._append(user_session, event_type, event_data)
            return True
        except AnalyticsError as e:
            # don't fail the request if analytics had a hiccup
            log.warning("⚠️ analytics logging failed (%s): %s", event_type, e)
            return False

    def _append(self, user_session: Optional[str], event_type: str, event_data: Any) -> None:
        try:
            self.store.insert_event(user_session, event_type, {} if event_data is None else event_data)
        except (PersistenceError, TypeError, ValueError) as e:
            raise AnalyticsError(str(e)) from e
