# echoverse/sharing.py
from __future__ import annotations

import uuid
import logging
from typing import Any, Callable, Dict, Optional

from .db import Store
from .errors import NotFoundError

log = logging.getLogger("echoverse.sharing")


def _new_token() -> str:
    return str(uuid.uuid4())


class SharingResolver:
    """
    Private trees carry no token. Public trees get one at save time and
    count a view on every successful read. There is no way back to private.
    """

    def __init__(self, store: Store, token_factory: Callable[[], str] = _new_token):
        self.store = store
        self.token_factory = token_factory

    def mint_token(self, make_public: bool) -> Optional[str]:
        return self.token_factory() if make_public else None

    @staticmethod
    def share_url(base_url: str, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return f"{base_url.rstrip('/')}/share/{token}"

    def resolve(self, share_token: str) -> Dict[str, Any]:
        """Return the public tree for `share_token` with its post-increment view count."""
        row = self.store.view_public_tree(share_token)
        if row is None:
            raise NotFoundError("Shared tree not found")
        log.info("shared tree %s viewed (%d views)", row["id"], row["view_count"])
        return row
