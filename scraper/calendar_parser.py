"""Parser for unit calendar pages and the listing index page."""
import logging
import re
from datetime import date, datetime
from typing import List, Optional

from bs4.element import Tag

from processor.models import CheckoutMarker, UnitAvailability
from scraper.errors import DateParseError, StructureMismatch
from scraper.navigator import StructuralNavigator, make_soup

logger = logging.getLogger(__name__)

ISO_DATE_PATTERN = re.compile(r'(?P<date>\d{4}-\d{2}-\d{2})')
MONTH_LABEL_PATTERN = re.compile(r'^(?P<month>[A-Za-z]+)\.?(?:\s+(?P<year>\d{4}))?$')


def parse_iso_date(token: str) -> date:
    """Parse a ``YYYY-MM-DD`` token."""
    try:
        return datetime.strptime(token, '%Y-%m-%d').date()
    except ValueError as e:
        raise DateParseError(f"Invalid ISO date {token!r}: {e}") from e


def parse_checkin_date(day_text: str, month_label: str,
                       default_year: Optional[int] = None) -> date:
    """
    Combine a visible day number with its month label.

    Args:
        day_text: Day of month as shown in the cell (e.g. "5" or "05")
        month_label: Month label text (e.g. "November 2024" or "November")
        default_year: Year used when the label carries none (default: current year)

    Returns:
        The reconstructed date

    Raises:
        DateParseError: If the day or the label does not parse
    """
    day = day_text.strip()
    if not day.isdigit():
        raise DateParseError(f"Day text {day_text!r} is not a number")
    if len(day) < 2:
        day = f"0{day}"

    label = ' '.join(month_label.split())
    match = MONTH_LABEL_PATTERN.match(label)
    if not match:
        raise DateParseError(f"Unrecognised month label {month_label!r}")

    year = match.group('year')
    if year is None:
        year = str(default_year if default_year is not None else date.today().year)
    date_string = f"{day} {match.group('month')} {year}"

    for fmt in ('%d %B %Y', '%d %b %Y'):
        try:
            return datetime.strptime(date_string, fmt).date()
        except ValueError:
            continue

    raise DateParseError(f"Could not parse {date_string!r} as day-month-year")


class CalendarParser:
    """Extracts check-in and check-out dates from unit calendar pages."""

    UNIT_NAME_SELECTOR = 'h1 > a'
    MONTH_BLOCK_SELECTOR = 'div.calendar-container'
    CHECKOUT_SELECTOR = 'div.calendar-checkout'
    CHECKIN_SELECTOR = 'div.calendar-checkin'

    def __init__(self, default_year: Optional[int] = None):
        """
        Initialize the parser.

        Args:
            default_year: Year assumed for month labels without one
                (default: the current year at parse time)
        """
        self.default_year = default_year
        self.navigator = StructuralNavigator()

    def discover_unit_links(self, index_html: str, unit_link_prefix: str) -> List[str]:
        """
        Extract links to unit detail pages from the listing index page.

        Duplicates are kept in document order. An index without matching
        links yields an empty list.
        """
        soup = make_soup(index_html)
        links = []
        for anchor in soup.find_all('a', href=True):
            href = anchor['href']
            if href.startswith(unit_link_prefix):
                links.append(href)
        logger.info(f"Discovered {len(links)} unit links")
        return links

    def resolve_month_label(self, month_block: Tag) -> str:
        """
        Read the month label of a month block.

        The label is the text reached from the block's first child, then
        that child's next sibling, then its first child.

        Raises:
            StructureMismatch: If the path does not resolve to non-empty text
        """
        nav = self.navigator
        header = nav.next_sibling(nav.first_child(month_block))
        label = nav.text(nav.first_child(header))
        if not label:
            raise StructureMismatch(f"Empty month label under {nav.describe(header)}")
        return label

    def extract_checkouts(self, month_block: Tag) -> List[CheckoutMarker]:
        """
        Find checkout cells and read their date from the previous sibling's link.

        Cells whose sibling is missing, has no link, or whose link carries no
        ISO date are skipped.
        """
        markers = []
        for cell in month_block.select(self.CHECKOUT_SELECTOR):
            try:
                href = self.navigator.attribute(
                    self.navigator.previous_sibling(cell), 'href'
                )
            except StructureMismatch as e:
                logger.debug(f"Skipping checkout cell: {e}")
                continue

            match = ISO_DATE_PATTERN.search(href)
            if not match:
                logger.debug(f"Skipping checkout cell, no date in link {href!r}")
                continue
            markers.append(CheckoutMarker(date_token=match.group('date'), href=href))
        return markers

    def extract_checkins(self, month_block: Tag) -> List[str]:
        """
        Find checkin cells and read the day number from the next sibling.

        Returns day numbers left-padded to two digits. Cells without a
        readable sibling are skipped.
        """
        days = []
        for cell in month_block.select(self.CHECKIN_SELECTOR):
            try:
                day_cell = self.navigator.next_sibling(cell)
                day = self.navigator.text(self.navigator.first_child(day_cell))
            except StructureMismatch as e:
                logger.debug(f"Skipping checkin cell: {e}")
                continue
            if not day:
                continue
            if len(day) < 2:
                day = f"0{day}"
            days.append(day)
        return days

    def parse_unit_name(self, soup) -> str:
        """
        Read the unit display name from the first anchor in the page heading.

        Raises:
            StructureMismatch: If the heading anchor or its text is missing
        """
        anchor = soup.select_one(self.UNIT_NAME_SELECTOR)
        if anchor is None:
            raise StructureMismatch(
                f"No element matches {self.UNIT_NAME_SELECTOR!r}, unit name unknown"
            )
        name = self.navigator.text(self.navigator.first_child(anchor))
        if not name:
            raise StructureMismatch("Unit name heading is empty")
        return name

    def assemble(self, unit_calendar_html: str) -> UnitAvailability:
        """
        Build one unit's availability from its calendar page.

        Months with an unresolvable label are skipped and cells with
        unparsable dates are dropped; the rest of the page still counts.

        Raises:
            StructureMismatch: If the unit name cannot be located
        """
        soup = make_soup(unit_calendar_html)
        unit_name = self.parse_unit_name(soup)

        check_ins = []
        check_outs = []
        month_blocks = soup.select(self.MONTH_BLOCK_SELECTOR)

        for index, month_block in enumerate(month_blocks):
            try:
                month_label = self.resolve_month_label(month_block)
            except StructureMismatch as e:
                logger.warning(
                    f"Skipping month block {index} for '{unit_name}': {e}"
                )
                continue

            for marker in self.extract_checkouts(month_block):
                try:
                    check_outs.append(parse_iso_date(marker.date_token))
                except DateParseError as e:
                    logger.debug(f"Dropping checkout for '{unit_name}': {e}")

            for day in self.extract_checkins(month_block):
                try:
                    check_ins.append(
                        parse_checkin_date(day, month_label, self.default_year)
                    )
                except DateParseError as e:
                    logger.debug(f"Dropping checkin for '{unit_name}': {e}")

        logger.info(
            f"Parsed '{unit_name}': {len(month_blocks)} months, "
            f"{len(check_ins)} check-ins, {len(check_outs)} check-outs"
        )
        return UnitAvailability(
            unit_name=unit_name,
            check_ins=frozenset(check_ins),
            check_outs=frozenset(check_outs),
        )
