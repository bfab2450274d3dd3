from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

MATCH_CONTAINS = "contains"
MATCH_EXACT = "exact"


@dataclass(slots=True, frozen=True)
class TriggerRule:
    match: str
    phrases: tuple[str, ...]
    replies: tuple[str, ...] = field(default_factory=tuple)

    def matches(self, lowered_body: str) -> bool:
        if self.match == MATCH_EXACT:
            trimmed = lowered_body.strip()
            return any(trimmed == phrase for phrase in self.phrases)
        return any(phrase in lowered_body for phrase in self.phrases)


def parse_trigger_rules(raw: Any) -> list[TriggerRule]:
    """Build rules from the persona YAML list; malformed entries are skipped."""
    if not isinstance(raw, list):
        return []
    rules: list[TriggerRule] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        match = str(item.get("match") or MATCH_CONTAINS).strip().lower()
        if match not in (MATCH_CONTAINS, MATCH_EXACT):
            continue
        phrases = tuple(
            str(p).strip().lower() for p in (item.get("phrases") or []) if str(p or "").strip()
        )
        replies = tuple(str(r) for r in (item.get("replies") or []) if str(r or "").strip())
        if not phrases or not replies:
            continue
        rules.append(TriggerRule(match=match, phrases=phrases, replies=replies))
    return rules


def select_trigger_reply(
    body: str,
    rules: Sequence[TriggerRule],
    choice: Callable[[Sequence[str]], str] = random.choice,
) -> str | None:
    lowered = str(body or "").lower()
    for rule in rules:
        if rule.matches(lowered):
            return choice(rule.replies)
    return None
