"""Core data models shared by the search, dedupe and sheets pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class SearchQuery:
    category: str
    city: str
    country: str

    @property
    def text(self) -> str:
        parts = (self.category, self.city, self.country)
        return " ".join(part.strip() for part in parts if part and part.strip())


@dataclass(slots=True)
class RawPlaceRecord:
    """Minimal Text Search result; consumed by the details fetch and as row fallback."""

    place_id: Optional[str]
    name: str = ""
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None


@dataclass(slots=True)
class PlaceDetail:
    """Details enrichment. Every field is always present so row assembly stays positional."""

    place_id: str
    name: str = ""
    address: str = ""
    phone: str = ""
    website: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def empty(cls, place_id: Optional[str]) -> "PlaceDetail":
        return cls(place_id=place_id or "")


@dataclass(slots=True)
class OutputRow:
    """One persisted sheet row. Attribute names match the sheet header names."""

    timestamp: str
    country: str
    city: str
    category: str
    query: str
    name: str = ""
    phone: str = ""
    website: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: str = ""
    place_id: str = ""
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class CategorySummary:
    category: str
    found: int = 0
    added: int = 0
    status: str = "ok"
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"category": self.category, "found": self.found, "added": self.added, "status": self.status}
        if self.error:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class RunSummary:
    sheet_name: str
    per_category: List[CategorySummary] = field(default_factory=list)
    preview: List[OutputRow] = field(default_factory=list, repr=False)

    @property
    def total_found(self) -> int:
        return sum(item.found for item in self.per_category)

    @property
    def total_added(self) -> int:
        return sum(item.added for item in self.per_category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sheetName": self.sheet_name,
            "sheet_name": self.sheet_name,
            "total_found": self.total_found,
            "total_added": self.total_added,
            "per_category": [item.to_dict() for item in self.per_category],
            "results": [row.to_dict() for row in self.preview],
        }
