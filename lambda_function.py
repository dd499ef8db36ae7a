"""AWS Lambda handler for the rental occupancy report."""
import json
import logging
import os
import time
from datetime import date, datetime
from typing import Dict, Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from presentation.renderers import render_html_table, serialize_rows, serialize_units
from processor.occupancy import OccupancyAggregator, build_occupancy_table
from scraper.calendar_parser import CalendarParser
from scraper.errors import ScrapeError
from scraper.http_client import PageFetcher

DEFAULT_BASE_URL = 'https://www.mendocinovacations.com'
DEFAULT_TIMEZONE = 'America/Los_Angeles'
RESPONSE_FORMATS = ('html', 'json', 'rows')
EXTRA_FIELDS = ('unit_url', 'error_type', 'units_total', 'units_failed',
                'duration_seconds', 'base_url', 'window_days')


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""
    
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }
        
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        
        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _int_setting(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid value {raw!r} for {name}, using {default}"
        )
        return default


def load_settings() -> Dict[str, Any]:
    """Read configuration from environment variables."""
    response_format = os.environ.get('RESPONSE_FORMAT', 'html').lower()
    if response_format not in RESPONSE_FORMATS:
        response_format = 'html'
    return {
        'base_url': os.environ.get('BASE_URL', DEFAULT_BASE_URL).rstrip('/'),
        'index_path': os.environ.get('INDEX_PATH', '/houses'),
        'unit_path_prefix': os.environ.get('UNIT_PATH_PREFIX', '/houses/'),
        'calendar_suffix': os.environ.get('CALENDAR_SUFFIX', '/calendar'),
        'window_days': _int_setting('WINDOW_DAYS', 14),
        'timeout_seconds': _int_setting('TIMEOUT_SECONDS', 30),
        'max_retries': _int_setting('MAX_RETRIES', 3),
        'max_workers': _int_setting('MAX_WORKERS', 8),
        'response_format': response_format,
        'log_level': os.environ.get('LOG_LEVEL', 'INFO'),
        'timezone': os.environ.get('TIMEZONE', DEFAULT_TIMEZONE),
    }


def local_today(timezone_name: str, now: Optional[datetime] = None) -> date:
    """
    Current date in the site's time zone.

    Args:
        timezone_name: IANA zone name, e.g. "America/Los_Angeles"
        now: Aware datetime to convert (default: the current time)

    Returns:
        The local calendar date; UTC when the zone is unknown
    """
    try:
        zone = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logging.getLogger(__name__).warning(
            f"Unknown time zone {timezone_name!r}, using UTC"
        )
        zone = ZoneInfo('UTC')
    if now is None:
        return datetime.now(zone).date()
    return now.astimezone(zone).date()


def _error_response(status_code: int, message: str, error: Exception,
                    duration: float) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps({
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__,
            'duration_seconds': round(duration, 2)
        })
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Scrape every unit calendar and return the occupancy report.
    
    Every invocation re-scrapes the site; nothing is cached.
    
    Args:
        event: API Gateway or function URL event payload (unused)
        context: Lambda context object
        
    Returns:
        Response dict with statusCode, headers and an HTML or JSON body
    """
    settings = load_settings()
    
    setup_logging(settings['log_level'])
    logger = logging.getLogger(__name__)
    
    start_time = time.time()
    logger.info(
        "Occupancy scrape started",
        extra={
            'base_url': settings['base_url'],
            'window_days': settings['window_days']
        }
    )
    
    try:
        fetcher = PageFetcher(
            timeout=settings['timeout_seconds'],
            max_retries=settings['max_retries']
        )
        aggregator = OccupancyAggregator(
            fetcher=fetcher,
            parser=CalendarParser(),
            max_workers=settings['max_workers'],
            calendar_suffix=settings['calendar_suffix']
        )
        
        base_url = settings['base_url']
        try:
            links = aggregator.discover_links(
                f"{base_url}{settings['index_path']}",
                f"{base_url}{settings['unit_path_prefix']}"
            )
        except ScrapeError as e:
            logger.error(
                f"Failed to fetch listing index: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response(
                502, 'Failed to fetch listing index', e, time.time() - start_time
            )
        
        units, failures = aggregator.collect_units(links)
        duration = time.time() - start_time
        
        if links and not units:
            logger.error(
                "No unit calendars could be processed",
                extra={'units_total': len(links), 'units_failed': len(failures)}
            )
            return {
                'statusCode': 502,
                'headers': {'Content-Type': 'application/json'},
                'body': json.dumps({
                    'message': 'No unit calendars could be processed',
                    'errors': [
                        {'url': f.url, 'error_type': f.error_type, 'error': f.message}
                        for f in failures
                    ],
                    'duration_seconds': round(duration, 2)
                })
            }
        
        logger.info(
            "Occupancy scrape completed",
            extra={
                'units_total': len(links),
                'units_failed': len(failures),
                'duration_seconds': round(duration, 2)
            }
        )
        
        if settings['response_format'] == 'json':
            return {
                'statusCode': 200,
                'headers': {'Content-Type': 'application/json'},
                'body': serialize_units(units)
            }
        
        rows = build_occupancy_table(
            units,
            today=local_today(settings['timezone']),
            window_days=settings['window_days']
        )
        if settings['response_format'] == 'rows':
            return {
                'statusCode': 200,
                'headers': {'Content-Type': 'application/json'},
                'body': serialize_rows(rows)
            }
        
        return {
            'statusCode': 200,
            'headers': {'Content-Type': 'text/html; charset=utf-8'},
            'body': render_html_table(rows)
        }
        
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Occupancy scrape failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Occupancy scrape failed', e, duration)
