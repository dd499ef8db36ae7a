"""Error kinds raised while fetching and parsing unit calendars."""
from typing import Optional


class ScrapeError(Exception):
    """Base class for all scrape failures."""


class FetchError(ScrapeError):
    """Network failure, transport failure or non-success HTTP response."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FetchTimeout(FetchError):
    """A single fetch did not complete within its timeout."""


class StructureMismatch(ScrapeError):
    """An expected structural relationship is absent from the markup."""


class DateParseError(ScrapeError, ValueError):
    """Text did not match the expected date grammar."""
