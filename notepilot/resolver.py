"""Map loosely specified document names onto documents in the store."""

from __future__ import annotations

import logging
import posixpath
from collections import Counter
from typing import Callable, Iterable, Optional

from notepilot.documents import DocumentAccessor, normalise_name

__all__ = ["FuzzyResolver", "similarity"]

logger = logging.getLogger(__name__)

SimilarityFn = Callable[[str, str], float]


def similarity(candidate: str, target: str) -> float:
    """Return the shared character multiset ratio of two names.

    The score ignores character order and position, so it is only a rough
    signal; callers compare it against a threshold.
    """

    if not candidate or not target:
        return 0.0
    shared = Counter(candidate) & Counter(target)
    return sum(shared.values()) / max(len(candidate), len(target))


class FuzzyResolver:
    """Resolve a user or model supplied name to a concrete document name.

    Lookup order is exact path, then case-insensitive file name, then the
    best similarity score above ``threshold``. Ties keep the first candidate
    in store order.
    """

    def __init__(
        self,
        store: DocumentAccessor,
        *,
        extension: str = ".md",
        threshold: float = 0.5,
        scorer: SimilarityFn = similarity,
    ) -> None:
        self._store = store
        self._extension = extension
        self._threshold = threshold
        self._scorer = scorer

    @property
    def threshold(self) -> float:
        return self._threshold

    def normalise(self, name: str) -> str:
        return normalise_name(name, self._extension)

    def resolve(self, name: Optional[str]) -> Optional[str]:
        target = self.normalise(name or "")
        if not target:
            return None

        if self._store.exists(target):
            return target

        candidates = self._store.list_documents()
        target_base = posixpath.basename(target).lower()
        for candidate in candidates:
            if posixpath.basename(candidate).lower() == target_base:
                logger.debug("Resolved '%s' to '%s' by file name", name, candidate)
                return candidate

        best, score = self._best_match(target_base, candidates)
        if best is not None and score > self._threshold:
            logger.debug("Resolved '%s' to '%s' with score %.2f", name, best, score)
            return best

        logger.debug("No document resolves for '%s'", name)
        return None

    def _best_match(self, target: str, candidates: Iterable[str]) -> tuple[Optional[str], float]:
        best: Optional[str] = None
        best_score = 0.0
        for candidate in candidates:
            score = self._scorer(posixpath.basename(candidate).lower(), target)
            if score > best_score:
                best, best_score = candidate, score
        return best, best_score
