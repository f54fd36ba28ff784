"""
Symptom extraction against an immutable SymptomDictionary snapshot.

Matching (on normalized text):
1. exact whole-word phrase (canonical name or synonym)
2. optional fuzzy match: difflib ratio of an equal-length word window >= fuzzy_threshold
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from plantdoc.services.diagnosis import SymptomEntry
from plantdoc.services.stores import KnowledgeStores
from plantdoc.utils.text_processing import (
    best_window_ratio,
    contains_phrase,
    normalize_description,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymptomSnapshot:
    """Read-only view of the symptom dictionary, safe for concurrent reads"""
    entries: Tuple[SymptomEntry, ...]
    terms: Tuple[Tuple[str, str], ...]  # (normalized term, symptom id), longest first
    loaded_at: datetime

    @classmethod
    def build(cls, entries: Iterable[SymptomEntry]) -> "SymptomSnapshot":
        entries = tuple(entries)
        terms = set()
        for entry in entries:
            for term in entry.terms():
                key = normalize_description(term)
                if key:
                    terms.add((key, entry.id))
        ordered = tuple(sorted(terms, key=lambda t: (-len(t[0]), t[0], t[1])))
        return cls(entries=entries, terms=ordered, loaded_at=datetime.now(timezone.utc))

    @property
    def by_id(self) -> Dict[str, SymptomEntry]:
        return {e.id: e for e in self.entries}

    def __len__(self):
        return len(self.entries)


class ReferenceContext:
    """
    Read-only reference data handed to the engine explicitly.
    reload() builds a fresh snapshot and swaps the reference in one assignment.
    """

    def __init__(self, stores: KnowledgeStores, snapshot: Optional[SymptomSnapshot] = None):
        self.stores = stores
        self._snapshot = snapshot or SymptomSnapshot.build(())

    @property
    def symptoms(self) -> SymptomSnapshot:
        return self._snapshot

    async def reload(self) -> SymptomSnapshot:
        entries = await self.stores.symptoms.get_all_symptoms()
        snapshot = SymptomSnapshot.build(entries)
        self._snapshot = snapshot
        logger.info(f"✓ Symptom dictionary loaded: {len(snapshot)} symptoms, {len(snapshot.terms)} terms")
        return snapshot


class SymptomExtractor:

    def __init__(self, context: ReferenceContext, fuzzy_threshold: float = 0.0):
        self.context = context
        self.fuzzy_threshold = fuzzy_threshold

    def extract(self, normalized_text: str) -> FrozenSet[str]:
        # normalize() is idempotent, so re-applying keeps "same key -> same symptoms"
        text = normalize_description(normalized_text)
        if not text:
            return frozenset()

        snapshot = self.context.symptoms
        found = set()
        for term, symptom_id in snapshot.terms:
            if symptom_id in found:
                continue
            if contains_phrase(text, term):
                found.add(symptom_id)
            elif self.fuzzy_threshold > 0 and best_window_ratio(text, term) >= self.fuzzy_threshold:
                logger.debug(f"Fuzzy symptom match: '{term}' in '{text[:50]}'")
                found.add(symptom_id)

        if not found:
            logger.debug(f"No symptoms recognized in: {text[:80]}")
        return frozenset(found)
