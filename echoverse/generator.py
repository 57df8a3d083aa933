"""
Narrative generator
-------------------
Assembles an alternative-reality narrative for a short input phrase by
randomized template substitution. No I/O, no model calls.

    gen = NarrativeGenerator(rng=random.Random(7))
    result = gen.generate("What if I had moved to Tokyo")
    result.reality.title      # "I had moved to Tokyo"
    result.fallback           # False

The random source and id factory are injectable so tests can pin counts and
values. Pool problems are detected once, at construction; a generator built
on broken pools answers every call with the deterministic fallback reality,
tagged ``fallback=True``.
"""
from __future__ import annotations

import re
import uuid
import random
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import GenerationError
from .models import GeneratedReality, Outcome

log = logging.getLogger("echoverse.generator")

_LEADING_IF_RE = re.compile(r"^(what if|if)\s+", re.IGNORECASE)

DESCRIPTION_TEMPLATES = (
    "In this reality, {event} fundamentally changed your life trajectory",
    "The decision to {event} created a cascade of unexpected events",
    "By choosing {event}, you entered a completely different timeline",
    "This alternative where {event} shaped who you became",
)

OUTCOME_EFFECTS = (
    "opened unexpected opportunities",
    "created new challenges to overcome",
    "led to meeting influential people",
    "sparked a passion for learning",
    "resulted in a career pivot",
    "strengthened personal relationships",
    "developed valuable life skills",
    "inspired creative pursuits",
    "built financial independence",
    "fostered personal growth",
)

CONSEQUENCES = (
    "starting a successful business",
    "moving to a dream location",
    "discovering hidden talents",
    "building lasting friendships",
    "overcoming personal fears",
    "achieving work-life balance",
    "contributing to meaningful causes",
    "mastering new technologies",
)

MIN_OUTCOMES, MAX_OUTCOMES = 2, 4


@dataclass(frozen=True)
class TemplatePools:
    descriptions: tuple[str, ...] = DESCRIPTION_TEMPLATES
    effects: tuple[str, ...] = OUTCOME_EFFECTS
    consequences: tuple[str, ...] = CONSEQUENCES

    def problems(self) -> list[str]:
        out = []
        if not self.descriptions:
            out.append("no description templates")
        if not self.effects:
            out.append("no outcome effects")
        if not self.consequences:
            out.append("no consequences")
        for name in ("descriptions", "effects", "consequences"):
            bad = [v for v in (getattr(self, name) or ()) if not isinstance(v, str)]
            if bad:
                out.append(f"non-text {name} entries: {bad!r}")
        for tmpl in self.descriptions:
            if not isinstance(tmpl, str):
                continue
            try:
                tmpl.format(event="x")
            except (AttributeError, KeyError, IndexError, ValueError) as e:
                out.append(f"bad description template {tmpl!r}: {e!r}")
        return out

    def validate(self) -> "TemplatePools":
        issues = self.problems()
        if issues:
            raise GenerationError("; ".join(issues))
        return self


@dataclass(frozen=True)
class GenerationResult:
    reality: GeneratedReality
    fallback: bool = False
    reason: Optional[str] = None


def extract_title(phrase: str) -> str:
    return _LEADING_IF_RE.sub("", phrase.strip()).strip()


def _new_id() -> str:
    return str(uuid.uuid4())


class NarrativeGenerator:
    def __init__(
        self,
        pools: Optional[TemplatePools] = None,
        rng: Optional[random.Random] = None,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.pools = pools or TemplatePools()
        self.rng = rng or random.Random()
        self.id_factory = id_factory
        issues = self.pools.problems()
        self.degraded_reason = "; ".join(issues) if issues else None
        if self.degraded_reason:
            log.error("template pools unusable, serving fallback realities: %s",
                      self.degraded_reason)

    def generate(self, phrase: str) -> GenerationResult:
        phrase = phrase.strip()
        if self.degraded_reason:
            return GenerationResult(self.fallback_reality(phrase), True, self.degraded_reason)

        reality = GeneratedReality(
            title=extract_title(phrase),
            description=self.rng.choice(self.pools.descriptions).format(event=phrase.lower()),
            outcomes=self.generate_outcomes(),
            probability=0.2 + 0.7 * self.rng.random(),   # [0.2, 0.9)
            impact=self.rng.randint(3, 10),
        )
        return GenerationResult(reality)

    def generate_outcomes(self, count: Optional[int] = None) -> list[Outcome]:
        """2-4 outcome branches; effects and consequences are drawn with replacement."""
        if self.degraded_reason:
            return [self._fallback_outcome()]
        if count is None:
            count = self.rng.randint(MIN_OUTCOMES, MAX_OUTCOMES)
        outcomes = []
        for i in range(count):
            effect = self.rng.choice(self.pools.effects)
            consequence = self.rng.choice(self.pools.consequences)
            outcomes.append(Outcome(
                id=self.id_factory(),
                title=f"Path {i + 1}",
                description=f"This decision {effect}, ultimately leading to {consequence}",
                probability=0.1 + 0.8 * self.rng.random(),   # [0.1, 0.9)
                impact=self.rng.randint(1, 10),
                consequences=[consequence],
            ))
        return outcomes

    # ---------------- fallback ----------------

    def _fallback_outcome(self) -> Outcome:
        return Outcome(
            id=self.id_factory(),
            title="Alternative Path",
            description="This path led to unexpected developments",
            probability=0.6,
            impact=7,
            consequences=["significant life changes"],
        )

    def fallback_reality(self, phrase: str) -> GeneratedReality:
        phrase = phrase.strip()
        return GeneratedReality(
            title=extract_title(phrase),
            description=f"A reality where {phrase.lower()} led to profound changes",
            outcomes=[self._fallback_outcome()],
            probability=0.5,
            impact=6,
        )
