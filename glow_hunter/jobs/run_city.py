"""Search, enrich, dedupe and persist every category for one city."""

import argparse
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from glow_hunter.core.concurrency import map_bounded
from glow_hunter.core.config import ConfigError, Settings, get_settings
from glow_hunter.core.dedupe import Deduplicator
from glow_hunter.core.errors import (
    DestinationError,
    RunFailedError,
    UpstreamSearchError,
    ValidationError,
)
from glow_hunter.core.models import CategorySummary, OutputRow, PlaceDetail, RawPlaceRecord, RunSummary, SearchQuery
from glow_hunter.core.sheets import SheetSink, build_client, sheet_name_for
from glow_hunter.etl.transform import build_output_row
from glow_hunter.vendors import google_places

logger = logging.getLogger(__name__)


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_request(
    country: Any,
    city: Any,
    categories: Any = None,
    *,
    default_categories: Sequence[str] = (),
) -> Tuple[str, str, List[str]]:
    """Return trimmed ``(country, city, categories)`` or raise ValidationError."""
    country_value = _clean(country)
    city_value = _clean(city)
    missing = [name for name, value in (("country", country_value), ("city", city_value)) if not value]
    if missing:
        raise ValidationError(f"missing fields: {', '.join(missing)}")

    if categories is None or categories == []:
        categories = list(default_categories)
    elif isinstance(categories, str):
        categories = [categories]
    if not isinstance(categories, (list, tuple)):
        raise ValidationError("categories must be a list of strings")

    cleaned: List[str] = []
    for category in categories:
        value = _clean(category)
        if not value:
            raise ValidationError("categories must be non-empty strings")
        if value not in cleaned:
            cleaned.append(value)
    return country_value, city_value, cleaned


class RunCityOrchestrator:
    """Drives one run: categories are processed in order, one at a time.

    Each category's new rows are appended before the next category starts, so a
    failure part way leaves earlier categories persisted and reported in the summary
    carried by :class:`RunFailedError`.
    """

    def __init__(
        self,
        settings: Settings,
        sink: SheetSink,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings
        self.sink = sink
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(
        self,
        country: Any,
        city: Any,
        categories: Any = None,
        language: Optional[str] = None,
    ) -> RunSummary:
        country, city, categories = validate_request(
            country, city, categories, default_categories=self.settings.default_categories
        )
        language = _clean(language) or self.settings.language
        sheet_name = sheet_name_for(city, country if self.settings.sheet_name_with_country else None)
        summary = RunSummary(sheet_name=sheet_name)
        logger.info("Starting run for city=%s country=%s categories=%s", city, country, categories)

        try:
            self.sink.ensure_destination(sheet_name)
            dedupe = Deduplicator(self.sink.read_existing_keys(sheet_name))
        except DestinationError as exc:
            raise RunFailedError(summary, exc) from exc

        logger.info("Seeded dedupe with %d stored keys from tab %s", len(dedupe), sheet_name)
        timestamp = self._clock().isoformat()
        for position, category in enumerate(categories):
            item = CategorySummary(category=category)
            summary.per_category.append(item)
            query = SearchQuery(category=category, city=city, country=country)
            try:
                rows, item.found = self._collect(query, dedupe, timestamp, language)
                accepted = dedupe.filter_new(rows)
                item.added = self.sink.append_rows(sheet_name, accepted)
            except (UpstreamSearchError, DestinationError) as exc:
                logger.error("Category %s failed: %s", category, exc)
                item.status = "error"
                item.error = str(exc)
                for remaining in categories[position + 1 :]:
                    summary.per_category.append(CategorySummary(category=remaining, status="skipped"))
                raise RunFailedError(summary, exc) from exc

            room = self.settings.preview_limit - len(summary.preview)
            if room > 0:
                summary.preview.extend(accepted[:room])
            logger.info("Category %s: found=%d added=%d", category, item.found, item.added)

        logger.info(
            "Completed run for tab %s: total_found=%d total_added=%d",
            sheet_name,
            summary.total_found,
            summary.total_added,
        )
        return summary

    def _collect(
        self,
        query: SearchQuery,
        dedupe: Deduplicator,
        timestamp: str,
        language: str,
    ) -> Tuple[List[OutputRow], int]:
        settings = self.settings
        records = google_places.search_all(
            query.text,
            settings.google_api_key,
            language=language,
            max_pages=settings.max_pages,
            page_delay=settings.page_delay_seconds,
        )
        # Places already stored are skipped before paying for a details call.
        pending = [record for record in records if not dedupe.is_known_place(record.place_id)]

        def enrich(record: RawPlaceRecord) -> PlaceDetail:
            if not record.place_id:
                return PlaceDetail.empty(None)
            return google_places.fetch_details(record.place_id, settings.google_api_key, language=language)

        details = map_bounded(
            pending,
            settings.details_concurrency,
            enrich,
            default_factory=lambda record: PlaceDetail.empty(record.place_id),
        )
        rows = [
            build_output_row(query, record, detail, timestamp=timestamp, source=settings.source_label)
            for record, detail in zip(pending, details)
        ]
        return rows, len(records)


def build_orchestrator(settings: Settings) -> RunCityOrchestrator:
    sink = SheetSink(build_client(settings), settings.sheet_id, chunk_size=settings.append_chunk_size)
    return RunCityOrchestrator(settings, sink)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Glow Market Hunter for one city")
    parser.add_argument("--country", dest="country", required=True, help="Country name")
    parser.add_argument("--city", dest="city", required=True, help="City name; also the sheet tab name")
    parser.add_argument(
        "--category",
        dest="categories",
        action="append",
        help="Business category to search (repeatable; defaults to the configured list)",
    )
    parser.add_argument("--language", dest="language", help="Places result language, e.g. 'es'")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args()

    try:
        settings = get_settings()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    orchestrator = build_orchestrator(settings)
    try:
        summary = orchestrator.run(args.country, args.city, args.categories, language=args.language)
    except ValidationError as exc:
        logger.error("Invalid arguments: %s", exc)
        raise SystemExit(2) from exc
    except RunFailedError as exc:
        logger.error("Run failed: %s", exc)
        print(json.dumps(exc.summary.to_dict(), ensure_ascii=False, indent=2))
        raise SystemExit(1) from exc

    print(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
