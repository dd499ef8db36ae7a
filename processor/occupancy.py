"""Occupancy aggregation across rental units."""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from processor.models import OccupancyRow, UnitAvailability, UnitFailure, Weekday
from scraper.calendar_parser import CalendarParser
from scraper.errors import ScrapeError
from scraper.http_client import PageFetcher

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 14


def window_dates(today: date, window_days: int = DEFAULT_WINDOW_DAYS) -> List[date]:
    """Dates of the reporting window starting at ``today``, ascending."""
    return [today + timedelta(days=offset) for offset in range(window_days)]


def build_occupancy_table(units: Sequence[UnitAvailability],
                          today: Optional[date] = None,
                          window_days: int = DEFAULT_WINDOW_DAYS) -> List[OccupancyRow]:
    """
    Fold unit availability into one row per date of the window.

    Args:
        units: Unit records in the order they were fetched
        today: First date of the window (default: today)
        window_days: Number of days in the window (default: 14)

    Returns:
        One OccupancyRow per date, ascending; unit names keep input order
    """
    start = today or date.today()
    rows = []
    for day in window_dates(start, window_days):
        rows.append(OccupancyRow(
            date=day,
            weekday=Weekday.from_date(day),
            checking_in=tuple(u.unit_name for u in units if day in u.check_ins),
            checking_out=tuple(u.unit_name for u in units if day in u.check_outs),
        ))
    return rows


def aggregate(unit_htmls: Dict[str, str],
              today: Optional[date] = None,
              window_days: int = DEFAULT_WINDOW_DAYS,
              parser: Optional[CalendarParser] = None) -> List[OccupancyRow]:
    """
    Parse already fetched calendar pages and build the occupancy table.

    Units whose page cannot be assembled are left out.

    Args:
        unit_htmls: Calendar HTML keyed by unit URL, in fetch order
    """
    parser = parser or CalendarParser()
    units = []
    for url, html in unit_htmls.items():
        try:
            units.append(parser.assemble(html))
        except ScrapeError as e:
            logger.warning(f"Omitting unit {url}: {e}")
    return build_occupancy_table(units, today=today, window_days=window_days)


class OccupancyAggregator:
    """Discovers units, scrapes their calendars concurrently and aggregates."""

    def __init__(self, fetcher: PageFetcher, parser: Optional[CalendarParser] = None,
                 max_workers: int = 8, calendar_suffix: str = '/calendar'):
        """
        Initialize the aggregator.

        Args:
            fetcher: Page fetcher used for index and calendar pages
            parser: Calendar parser (default: a new CalendarParser)
            max_workers: Upper bound on concurrent unit fetches (default: 8)
            calendar_suffix: Path appended to a unit link to reach its calendar
        """
        self.fetcher = fetcher
        self.parser = parser or CalendarParser()
        self.max_workers = max(1, max_workers)
        self.calendar_suffix = calendar_suffix

    def discover_links(self, index_url: str, unit_link_prefix: str) -> List[str]:
        """
        Fetch the listing index page and return unit links.

        Raises:
            FetchError: If the index page cannot be fetched
        """
        logger.info(f"Fetching listing index {index_url}")
        index_html = self.fetcher.fetch(index_url)
        return self.parser.discover_unit_links(index_html, unit_link_prefix)

    def calendar_url(self, unit_link: str) -> str:
        return f"{unit_link.rstrip('/')}{self.calendar_suffix}"

    def scrape_unit(self, unit_link: str) -> UnitAvailability:
        """
        Fetch and parse one unit's calendar.

        Raises:
            FetchError: If the calendar page cannot be fetched
            StructureMismatch: If the unit name cannot be located
        """
        html = self.fetcher.fetch(self.calendar_url(unit_link))
        return self.parser.assemble(html)

    def _scrape_unit_safely(self, unit_link: str):
        try:
            return self.scrape_unit(unit_link), None
        except ScrapeError as e:
            logger.warning(
                f"Omitting unit {unit_link}: {e}",
                extra={'unit_url': unit_link, 'error_type': type(e).__name__}
            )
            return None, UnitFailure(
                url=unit_link, error_type=type(e).__name__, message=str(e)
            )

    def collect_units(self, links: Sequence[str]
                      ) -> Tuple[List[UnitAvailability], List[UnitFailure]]:
        """
        Scrape every unit concurrently and wait for all of them.

        Each task owns its response and parse state; results are merged here
        after the join, in link order.

        Returns:
            Tuple of (units that parsed, failures)
        """
        if not links:
            return [], []

        workers = min(self.max_workers, len(links))
        logger.info(f"Scraping {len(links)} units with {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self._scrape_unit_safely, links))

        units = [unit for unit, _ in results if unit is not None]
        failures = [failure for _, failure in results if failure is not None]
        logger.info(
            f"Scraped {len(units)} of {len(links)} units, {len(failures)} failed"
        )
        return units, failures
