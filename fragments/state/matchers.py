"""Label selectors used to filter listed records."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from fragments.models.records import Meta


class Matcher(Protocol):
    def match(self, meta: Meta) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class LabelMatcher:
    """Matches records that carry every label in ``labels``.

    Keys and values compare case-insensitively.  A record without labels
    never matches a non-empty selector.
    """

    labels: Mapping[str, str] = field(default_factory=dict)

    def match(self, meta: Meta) -> bool:
        if not self.labels:
            return True
        if not meta.labels:
            return False
        have = {(k.lower(), v.lower()) for k, v in meta.labels.items()}
        return all((k.lower(), v.lower()) in have for k, v in self.labels.items())


def matches_all(meta: Meta, matchers: Sequence[Matcher]) -> bool:
    """True if every matcher matches; true for an empty sequence."""
    return all(m.match(meta) for m in matchers)
