"""Unit tests for occupancy aggregation."""
from datetime import date
from unittest.mock import Mock

import pytest

from processor.models import OccupancyRow, UnitAvailability, UnitFailure, Weekday
from processor.occupancy import (
    OccupancyAggregator,
    aggregate,
    build_occupancy_table,
    window_dates,
)
from scraper.calendar_parser import CalendarParser
from scraper.errors import FetchError, FetchTimeout

TODAY = date(2024, 11, 1)

REJECTED_PAGE = '<h1><a href="#">B</a></h1><![foo[ x ]]>'


def calendar_page(name, check_in_day=None, check_out_token=None):
    """Build a minimal one-month calendar page."""
    cells = ''
    if check_out_token:
        cells += f'<a href="/book/{check_out_token}"></a><div class="calendar-checkout">x</div>'
    if check_in_day:
        cells += f'<div class="calendar-checkin"></div><div>{check_in_day}</div>'
    return f"""
    <h1><a href="#">{name}</a></h1>
    <div class="calendar-container">
        <div class="calendar-nav"></div><div class="calendar-title">November 2024</div>
        {cells}
    </div>
    """


class TestBuildOccupancyTable:
    """Test cases for the occupancy fold."""
    
    def test_window_has_fourteen_ascending_rows(self):
        """Test window dates and weekdays for 2024-11-01."""
        rows = build_occupancy_table([], today=TODAY)
        
        assert len(rows) == 14
        assert [row.date for row in rows] == window_dates(TODAY)
        assert rows[0].date == date(2024, 11, 1)
        assert rows[-1].date == date(2024, 11, 14)
        assert rows[0].weekday == Weekday.FRI
        assert rows[2].weekday == Weekday.SUN
        assert rows[3].weekday == Weekday.MON
        assert all(row.weekday == Weekday.from_date(row.date) for row in rows)
    
    def test_check_in_and_check_out_on_same_date(self):
        """Test that names land in the right column for their date."""
        units = [
            UnitAvailability('A', check_ins=frozenset({date(2024, 11, 5)})),
            UnitAvailability('B', check_outs=frozenset({date(2024, 11, 5)})),
        ]
        
        rows = build_occupancy_table(units, today=TODAY)
        row = rows[4]
        
        assert row == OccupancyRow(
            date=date(2024, 11, 5),
            weekday=Weekday.TUE,
            checking_in=('A',),
            checking_out=('B',),
        )
        assert all(not r.checking_in and not r.checking_out for r in rows if r is not row)
    
    def test_unit_order_is_preserved(self):
        """Test that names follow the order units were fetched in."""
        day = date(2024, 11, 3)
        units = [
            UnitAvailability('Zephyr', check_ins=frozenset({day})),
            UnitAvailability('Anchor', check_ins=frozenset({day}), check_outs=frozenset({day})),
            UnitAvailability('Moss', check_ins=frozenset({day})),
        ]
        
        row = build_occupancy_table(units, today=TODAY)[2]
        
        assert row.checking_in == ('Zephyr', 'Anchor', 'Moss')
        assert row.checking_out == ('Anchor',)
    
    def test_dates_outside_window_are_ignored(self):
        """Test that past and far-future dates do not appear."""
        units = [
            UnitAvailability(
                'A',
                check_ins=frozenset({date(2024, 10, 31), date(2024, 11, 15)}),
                check_outs=frozenset({date(2025, 11, 1)}),
            )
        ]
        
        rows = build_occupancy_table(units, today=TODAY)
        
        assert all(not r.checking_in and not r.checking_out for r in rows)
    
    def test_custom_window_length(self):
        """Test an overridden window length."""
        assert len(build_occupancy_table([], today=TODAY, window_days=7)) == 7
        assert build_occupancy_table([], today=TODAY, window_days=0) == []
    
    def test_defaults_to_today(self):
        """Test that the window starts today when no date is given."""
        assert build_occupancy_table([])[0].date == date.today()


class TestAggregate:
    """Test cases for aggregating fetched calendar pages."""
    
    def test_aggregate_pages(self):
        """Test parsing pages in mapping order and folding them."""
        unit_htmls = {
            'https://site/houses/a': calendar_page('A', check_in_day='5'),
            'https://site/houses/b': calendar_page('B', check_out_token='2024-11-05'),
        }
        
        rows = aggregate(unit_htmls, today=TODAY, parser=CalendarParser(default_year=2024))
        
        assert rows[4].checking_in == ('A',)
        assert rows[4].checking_out == ('B',)
    
    def test_rejected_markup_is_omitted(self):
        """Test that markup the HTML parser rejects only loses that unit."""
        unit_htmls = {
            'https://site/houses/a': calendar_page('A', check_in_day='5'),
            'https://site/houses/b': REJECTED_PAGE,
        }
        
        rows = aggregate(unit_htmls, today=TODAY)
        
        assert rows[4].checking_in == ('A',)
    
    def test_unit_without_name_is_omitted(self):
        """Test that one broken page does not affect the others."""
        unit_htmls = {
            'https://site/houses/a': calendar_page('A', check_in_day='5'),
            'https://site/houses/broken': '<html><body>maintenance</body></html>',
            'https://site/houses/c': calendar_page('C', check_in_day='5'),
        }
        
        rows = aggregate(unit_htmls, today=TODAY)
        
        assert rows[4].checking_in == ('A', 'C')


class TestOccupancyAggregator:
    """Test cases for the concurrent scrape."""
    
    @pytest.fixture
    def pages(self):
        return {
            'https://site/houses/a/calendar': calendar_page('A', check_in_day='5'),
            'https://site/houses/b/calendar': calendar_page('B', check_out_token='2024-11-05'),
            'https://site/houses/c/calendar': '<html><body>no heading</body></html>',
        }
    
    @pytest.fixture
    def fetcher(self, pages):
        def fetch(url):
            if url == 'https://site/houses/d/calendar':
                raise FetchTimeout(f"Timed out fetching {url}", url=url)
            if url not in pages:
                raise FetchError(f"Failed to fetch {url}", url=url)
            return pages[url]
        
        mock_fetcher = Mock()
        mock_fetcher.fetch.side_effect = fetch
        return mock_fetcher
    
    def test_calendar_url(self, fetcher):
        """Test that the calendar suffix is appended once."""
        aggregator = OccupancyAggregator(fetcher)
        
        assert aggregator.calendar_url('https://site/houses/a') == 'https://site/houses/a/calendar'
        assert aggregator.calendar_url('https://site/houses/a/') == 'https://site/houses/a/calendar'
    
    def test_collect_units_isolates_failures(self, fetcher):
        """Test that failed units are omitted and the rest keep link order."""
        aggregator = OccupancyAggregator(fetcher, max_workers=4)
        links = [
            'https://site/houses/d',
            'https://site/houses/b',
            'https://site/houses/c',
            'https://site/houses/a',
            'https://site/houses/missing',
        ]
        
        units, failures = aggregator.collect_units(links)
        
        assert [unit.unit_name for unit in units] == ['B', 'A']
        assert [(f.url, f.error_type) for f in failures] == [
            ('https://site/houses/d', 'FetchTimeout'),
            ('https://site/houses/c', 'StructureMismatch'),
            ('https://site/houses/missing', 'FetchError'),
        ]
        assert all(isinstance(f, UnitFailure) for f in failures)
    
    def test_duplicate_links_are_fetched_again(self, fetcher):
        """Test that redundant links produce redundant fetches."""
        aggregator = OccupancyAggregator(fetcher, max_workers=2)
        
        units, failures = aggregator.collect_units(['https://site/houses/a'] * 2)
        
        assert [unit.unit_name for unit in units] == ['A', 'A']
        assert failures == []
    
    def test_rejected_markup_fails_only_that_unit(self):
        """Test that a page the HTML parser rejects is reported, not raised."""
        pages = {
            'https://site/houses/a/calendar': calendar_page('A', check_in_day='5'),
            'https://site/houses/b/calendar': REJECTED_PAGE,
        }
        fetcher = Mock()
        fetcher.fetch.side_effect = lambda url: pages[url]
        aggregator = OccupancyAggregator(fetcher, max_workers=2)
        
        units, failures = aggregator.collect_units(
            ['https://site/houses/a', 'https://site/houses/b/']
        )
        
        assert [unit.unit_name for unit in units] == ['A']
        assert [(f.url, f.error_type) for f in failures] == [
            ('https://site/houses/b/', 'StructureMismatch'),
        ]
    
    def test_collect_units_without_links(self, fetcher):
        """Test that no links means no work."""
        aggregator = OccupancyAggregator(fetcher)
        
        assert aggregator.collect_units([]) == ([], [])
        fetcher.fetch.assert_not_called()
    
    def test_discover_links(self):
        """Test fetching and filtering the listing index."""
        fetcher = Mock()
        fetcher.fetch.return_value = """
        <a href="https://site/houses/a">A</a>
        <a href="https://site/contact">Contact</a>
        """
        aggregator = OccupancyAggregator(fetcher)
        
        links = aggregator.discover_links('https://site/houses', 'https://site/houses/')
        
        assert links == ['https://site/houses/a']
        fetcher.fetch.assert_called_once_with('https://site/houses')
    
    def test_discover_links_propagates_fetch_error(self):
        """Test that an unreachable index is reported to the caller."""
        fetcher = Mock()
        fetcher.fetch.side_effect = FetchError('down', url='https://site/houses')
        aggregator = OccupancyAggregator(fetcher)
        
        with pytest.raises(FetchError):
            aggregator.discover_links('https://site/houses', 'https://site/houses/')
