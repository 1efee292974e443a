"""Application configuration helpers.

Credentials are only read from the environment (or a local ``.env`` file):
`GOOGLE_API_KEY` is a billable Places key and the service account grants
write access to the spreadsheet, so neither may be hardcoded.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: Tuple[str, ...] = ("barberías", "salones de belleza", "spas")
MIN_PAGE_DELAY_SECONDS = 2.0


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    sheet_id: str
    service_account_info: Dict[str, Any]
    port: int = 10000
    language: str = "es"
    max_pages: int = 5
    page_delay_seconds: float = 2.2
    details_concurrency: int = 5
    append_chunk_size: int = 300
    default_categories: Tuple[str, ...] = DEFAULT_CATEGORIES
    source_label: str = "Glow Places"
    preview_limit: int = 20
    sheet_name_with_country: bool = False


def _get_required_env(name: str) -> str:
    value = (os.getenv(name) or "").strip()
    if not value:
        raise ConfigError(f"{name} must be set in the environment for the hunter to run.")
    return value


def _get_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _load_service_account_info() -> Dict[str, Any]:
    inline = (os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON") or "").strip()
    path = (os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or "").strip()
    if inline:
        source = "GOOGLE_SERVICE_ACCOUNT_JSON"
        raw = inline
    elif path:
        source = path
        try:
            with open(path, "r", encoding="utf-8") as fh:
                raw = fh.read()
        except OSError as exc:
            raise ConfigError(f"Unable to read service account file {path}: {exc}") from exc
    else:
        raise ConfigError(
            "GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_APPLICATION_CREDENTIALS must be set for Sheets access."
        )

    try:
        info = json.loads(raw)
    except ValueError as exc:
        raise ConfigError(f"Service account credentials from {source} are not valid JSON") from exc
    if not isinstance(info, dict) or not info.get("client_email") or not info.get("private_key"):
        raise ConfigError(f"Service account credentials from {source} lack client_email/private_key")
    return info


def _parse_categories(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return DEFAULT_CATEGORIES
    categories = tuple(part.strip() for part in raw.split(",") if part.strip())
    return categories or DEFAULT_CATEGORIES


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load, validate and cache settings; raises ConfigError on the first problem."""
    load_dotenv()

    google_api_key = _get_required_env("GOOGLE_API_KEY")
    sheet_id = _get_required_env("SHEET_ID")
    service_account_info = _load_service_account_info()

    page_delay = _get_float("PAGE_DELAY_SECONDS", 2.2)
    if page_delay < MIN_PAGE_DELAY_SECONDS:
        logger.warning(
            "PAGE_DELAY_SECONDS=%s is below the Places minimum; using %s", page_delay, MIN_PAGE_DELAY_SECONDS
        )
        page_delay = MIN_PAGE_DELAY_SECONDS

    return Settings(
        google_api_key=google_api_key,
        sheet_id=sheet_id,
        service_account_info=service_account_info,
        port=_get_int("PORT", 10000),
        language=(os.getenv("PLACES_LANGUAGE") or "es").strip() or "es",
        max_pages=_get_int("WORKER_MAX_PAGES", 5),
        page_delay_seconds=page_delay,
        details_concurrency=_get_int("DETAILS_CONCURRENCY", 5),
        append_chunk_size=_get_int("APPEND_CHUNK_SIZE", 300),
        default_categories=_parse_categories(os.getenv("DEFAULT_CATEGORIES")),
        source_label=(os.getenv("SOURCE_LABEL") or "Glow Places").strip() or "Glow Places",
        preview_limit=_get_int("PREVIEW_LIMIT", 20, minimum=0),
        sheet_name_with_country=os.getenv("SHEET_NAME_WITH_COUNTRY", "false").lower() in {"1", "true", "yes"},
    )
