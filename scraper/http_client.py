"""HTTP fetching for listing and calendar pages."""
import logging
import time

import requests

from scraper.errors import FetchError, FetchTimeout

logger = logging.getLogger(__name__)


class PageFetcher:
    """Fetches page HTML with a per-request timeout and bounded retry."""

    USER_AGENT = 'Mozilla/5.0 (compatible; occupancy-scraper/1.0)'

    def __init__(self, timeout: int = 30, max_retries: int = 3,
                 base_delay: float = 1.0):
        """
        Initialize the fetcher.

        Holds no connection state, so one instance can serve every worker
        thread.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts per URL for transient failures (default: 3)
            base_delay: First backoff delay in seconds, doubled per attempt
        """
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay

    def fetch(self, url: str) -> str:
        """
        Fetch a page and return its body.

        Connection errors, timeouts and 5xx responses are retried with
        exponential backoff. Other 4xx responses fail immediately.

        Args:
            url: Absolute URL to fetch

        Returns:
            Response body as text

        Raises:
            FetchTimeout: If the last attempt timed out
            FetchError: On any other network failure or non-success status
        """
        for attempt in range(self.max_retries):
            try:
                logger.debug(
                    f"Fetching {url} (attempt {attempt + 1}/{self.max_retries})"
                )
                response = requests.get(
                    url,
                    headers={'User-Agent': self.USER_AGENT},
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if not self._is_transient(e) or attempt == self.max_retries - 1:
                    if attempt > 0:
                        logger.error(
                            f"All {attempt + 1} attempts for {url} failed. Last error: {e}"
                        )
                    raise self._translate(e, url) from e

                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    f"Request to {url} failed (attempt {attempt + 1}/{self.max_retries}): "
                    f"{e}. Retrying in {delay} seconds..."
                )
                time.sleep(delay)

    @staticmethod
    def _is_transient(error: requests.RequestException) -> bool:
        if isinstance(error, (requests.ConnectionError, requests.Timeout)):
            return True
        response = getattr(error, 'response', None)
        return response is not None and response.status_code >= 500

    @staticmethod
    def _translate(error: requests.RequestException, url: str) -> FetchError:
        if isinstance(error, requests.Timeout):
            return FetchTimeout(f"Timed out fetching {url}: {error}", url=url)
        return FetchError(f"Failed to fetch {url}: {error}", url=url)
