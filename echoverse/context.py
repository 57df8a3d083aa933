# echoverse/context.py
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from .analytics import AnalyticsSink
from .config import Settings
from .db import Store
from .generator import NarrativeGenerator
from .sharing import SharingResolver


@dataclass
class AppContext:
    """Everything a request handler may touch. Built once per app."""

    settings: Settings
    store: Store
    generator: NarrativeGenerator
    analytics: AnalyticsSink
    sharing: SharingResolver

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        *,
        store: Optional[Store] = None,
        generator: Optional[NarrativeGenerator] = None,
        rng: Optional[random.Random] = None,
    ) -> "AppContext":
        settings = settings or Settings.from_env()
        store = store or Store(settings.database_path)
        store.bootstrap_schema()
        return cls(
            settings=settings,
            store=store,
            generator=generator or NarrativeGenerator(rng=rng),
            analytics=AnalyticsSink(store),
            sharing=SharingResolver(store),
        )
