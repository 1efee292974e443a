"""Utilities for transforming Google Places responses into sheet rows."""

import logging
from dataclasses import fields
from typing import Any, Dict, List, Optional, Sequence

from glow_hunter.core.models import OutputRow, PlaceDetail, RawPlaceRecord, SearchQuery

logger = logging.getLogger(__name__)

_ROW_FIELDS = tuple(f.name for f in fields(OutputRow))
_NUMERIC_FIELDS = {"lat", "lng"}


def _strip(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _location(result: Dict[str, Any]):
    geometry = result.get("geometry")
    if not isinstance(geometry, dict):
        return None, None
    location = geometry.get("location")
    if not isinstance(location, dict):
        return None, None
    return _safe_float(location.get("lat")), _safe_float(location.get("lng"))


def to_raw_record(result: Dict[str, Any]) -> RawPlaceRecord:
    lat, lng = _location(result)
    return RawPlaceRecord(
        place_id=_strip(result.get("place_id")) or None,
        name=_strip(result.get("name")),
        address=_strip(result.get("formatted_address")),
        latitude=lat,
        longitude=lng,
        rating=_safe_float(result.get("rating")),
    )


def pick_phone(result: Dict[str, Any]) -> str:
    """International number first, then the local format, then empty."""
    return _strip(result.get("international_phone_number")) or _strip(result.get("formatted_phone_number"))


def to_place_detail(place_id: str, result: Dict[str, Any]) -> PlaceDetail:
    lat, lng = _location(result)
    return PlaceDetail(
        place_id=_strip(result.get("place_id")) or place_id,
        name=_strip(result.get("name")),
        address=_strip(result.get("formatted_address")),
        phone=pick_phone(result),
        website=_strip(result.get("website")),
        latitude=lat,
        longitude=lng,
    )


def build_output_row(
    query: SearchQuery,
    record: RawPlaceRecord,
    detail: Optional[PlaceDetail],
    *,
    timestamp: str,
    source: str,
) -> OutputRow:
    """Merge details over the search record; search values fill whatever details lack."""
    detail = detail or PlaceDetail.empty(record.place_id)
    lat = detail.latitude if detail.latitude is not None else record.latitude
    lng = detail.longitude if detail.longitude is not None else record.longitude
    return OutputRow(
        timestamp=timestamp,
        country=query.country,
        city=query.city,
        category=query.category,
        query=query.text,
        name=detail.name or record.name,
        phone=detail.phone,
        website=detail.website,
        lat=lat,
        lng=lng,
        address=detail.address or record.address,
        place_id=record.place_id or detail.place_id or "",
        source=source,
    )


def row_to_values(row: OutputRow, header: Sequence[str]) -> List[Any]:
    """Serialize a row in header order; unknown header names become empty cells."""
    values: List[Any] = []
    for name in header:
        value = getattr(row, name, None) if name in _ROW_FIELDS else None
        values.append("" if value is None else value)
    return values


def values_to_row(values: Sequence[Any], header: Sequence[str]) -> OutputRow:
    """Inverse of :func:`row_to_values` for rows read back from a sheet."""
    data: Dict[str, Any] = {name: "" for name in _ROW_FIELDS}
    data["lat"] = None
    data["lng"] = None
    for index, name in enumerate(header):
        if name not in _ROW_FIELDS or index >= len(values):
            continue
        value = values[index]
        if name in _NUMERIC_FIELDS:
            data[name] = _safe_float(value)
        else:
            data[name] = _strip(value)
    return OutputRow(**data)


def row_from_mapping(payload: Dict[str, Any]) -> OutputRow:
    """Build a row from a loose ``{header: value}`` mapping (e.g. an HTTP body)."""
    header = [name for name in _ROW_FIELDS if name in payload]
    return values_to_row([payload[name] for name in header], header)
