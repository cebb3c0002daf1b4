"""Client for the room booking feed."""
import logging
import time
from typing import List

import requests

logger = logging.getLogger(__name__)


class BookingFeedClient:
    """Fetches raw series items from the booking feed."""

    SUBJECT_PREFIX = 'subject_'

    def __init__(self, base_url: str, timeout: int = 30):
        """
        Initialize the feed client.

        Args:
            base_url: Booking feed endpoint
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.base_url = base_url
        self.timeout = timeout

    def fetch_series(self, target_date: str) -> List[dict]:
        """
        Fetch raw series items for one date.

        Args:
            target_date: Date to fetch (YYYY-MM-DD)

        Returns:
            List of raw series dictionaries

        Raises:
            requests.RequestException: If all retry attempts fail
            ValueError: If the response is not a recognized document
        """
        logger.info(f"Fetching booking feed for {target_date}")
        payload = self._fetch_json(target_date)
        items = self._flatten(payload)
        logger.info(f"Successfully fetched {len(items)} series items")
        return items

    def _fetch_json(self, target_date: str):
        params = {'date': target_date}

        max_retries = 3
        base_delay = 1  # seconds

        for attempt in range(max_retries):
            try:
                logger.info(f"Fetching booking feed (attempt {attempt + 1}/{max_retries})")
                response = requests.get(
                    self.base_url,
                    params=params,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                if attempt < max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise

    def _flatten(self, payload) -> List[dict]:
        """
        Normalize a feed document into a flat list of series items.

        An availability document groups items under subjects; each item is
        merged with its subject's fields, prefixed ``subject_``.
        """
        if isinstance(payload, list):
            return [item for item in payload if isinstance(item, dict)]

        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected booking feed payload type: {type(payload).__name__}")

        items = []
        for subject in payload.get('subjects') or []:
            subject_items = subject.get('items') if isinstance(subject, dict) else None
            if not isinstance(subject_items, list):
                continue
            subject_data = {
                f"{self.SUBJECT_PREFIX}{key}": value
                for key, value in subject.items()
                if key != 'items'
            }
            for item in subject_items:
                if isinstance(item, dict):
                    items.append({**item, **subject_data})
        return items
