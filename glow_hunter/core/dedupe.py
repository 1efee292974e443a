"""Run-scoped deduplication of candidate rows by place id or name+address."""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Iterable, List, Optional, Set, Tuple

from glow_hunter.core.models import OutputRow

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Lowercase, strip diacritics and collapse whitespace."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.lower()).strip()


def dedupe_key(place_id: Optional[str], name: Optional[str], address: Optional[str]) -> Optional[str]:
    """Place id when present; otherwise ``name|address``. ``None`` when no identity exists."""
    place_id = (place_id or "").strip()
    if place_id:
        return place_id
    norm_name = normalize_text(name)
    norm_address = normalize_text(address)
    if not norm_name or not norm_address:
        return None
    return f"{norm_name}|{norm_address}"


def row_key(row: OutputRow) -> Optional[str]:
    return dedupe_key(row.place_id, row.name, row.address)


def filter_new(candidates: Iterable[OutputRow], existing_keys: Set[str]) -> Tuple[List[OutputRow], Set[str]]:
    """Keep the first occurrence of each key; ``existing_keys`` is updated in place and returned."""
    accepted: List[OutputRow] = []
    for row in candidates:
        key = row_key(row)
        if key is None:
            logger.debug("Dropping row without identity: %s", row)
            continue
        if key in existing_keys:
            continue
        existing_keys.add(key)
        accepted.append(row)
    return accepted, existing_keys


class Deduplicator:
    """Holds the key set for a single run, seeded from the destination tab."""

    def __init__(self, seed: Iterable[str] = ()) -> None:
        self._keys: Set[str] = {key for key in seed if key}

    def __len__(self) -> int:
        return len(self._keys)

    def is_known_place(self, place_id: Optional[str]) -> bool:
        return bool(place_id) and place_id in self._keys

    def filter_new(self, candidates: Iterable[OutputRow]) -> List[OutputRow]:
        accepted, self._keys = filter_new(candidates, self._keys)
        return accepted
