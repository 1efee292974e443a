"""Error taxonomy shared by the search, sheets and orchestration layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from glow_hunter.core.models import RunSummary


class HunterError(RuntimeError):
    """Base class for failures surfaced by a city run."""


class ValidationError(HunterError, ValueError):
    """Raised when a request is missing required fields or carries invalid ones."""


class UpstreamSearchError(HunterError):
    """Raised when Places Text Search returns an unrecoverable status."""

    def __init__(self, status: str, message: Optional[str] = None) -> None:
        self.status = status
        self.message = message or status
        super().__init__(f"Places search failed: status={status} message={self.message}")


class UpstreamDetailError(HunterError):
    """Raised by the low-level details call; always recovered by the fetcher."""

    def __init__(self, place_id: str, status: str, message: Optional[str] = None) -> None:
        self.place_id = place_id
        self.status = status
        self.message = message or status
        super().__init__(f"Place details failed for {place_id}: status={status} message={self.message}")


class DestinationError(HunterError):
    """Raised when the spreadsheet tab cannot be created, read or written."""


class RunFailedError(HunterError):
    """A run stopped part way; ``summary`` reports what was persisted before the failure."""

    def __init__(self, summary: "RunSummary", cause: Exception) -> None:
        self.summary = summary
        self.cause = cause
        super().__init__(str(cause))
