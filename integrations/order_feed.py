"""
Active orders feed integration.

Fetches the live snapshot of open sales orders. The feed answers with a
one-element envelope:

    [ { "data": [ {order row}, ... ] } ]

Anything else is a hard failure. No retries are made here; the caller
decides what to do with a failed fetch.
"""

from typing import Any, Optional, Protocol
import requests
import structlog
from pydantic import ValidationError as PydanticValidationError

from models.order import Order
from exceptions import FeedUnavailableError, FeedFormatError

logger = structlog.get_logger(__name__)


class OrderSource(Protocol):
    """Anything that can produce a feed snapshot."""

    def fetch_raw(self) -> list[dict]:
        ...

    def fetch(self) -> list[Order]:
        ...


def unwrap_envelope(payload: Any) -> list[dict]:
    """
    Extract order rows from the feed envelope.

    Raises:
        FeedFormatError: If the payload is not [ { "data": [...] } ]
    """
    if not isinstance(payload, list) or not payload:
        raise FeedFormatError(
            "Order feed must return a non-empty list",
            details={"type": type(payload).__name__}
        )
    first = payload[0]
    if not isinstance(first, dict) or not isinstance(first.get("data"), list):
        raise FeedFormatError("Order feed envelope has no 'data' array")
    rows = first["data"]
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise FeedFormatError(
                "Order feed row is not an object",
                details={"index": index}
            )
    return rows


def parse_orders(rows: list[dict]) -> list[Order]:
    """
    Validate feed rows into Order models.

    Raises:
        FeedFormatError: If any row lacks an order id or product code
    """
    orders = []
    for index, row in enumerate(rows):
        try:
            orders.append(Order.model_validate(row))
        except PydanticValidationError as e:
            raise FeedFormatError(
                "Order feed row failed validation",
                details={"index": index, "errors": e.errors(include_url=False, include_context=False)}
            ) from e
    return orders


class OrderFeedClient:
    """HTTP client for the active orders feed."""

    def __init__(self, url: str, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_raw(self) -> list[dict]:
        """
        Fetch the feed rows as returned by the service.

        Raises:
            FeedUnavailableError: Network error, timeout or HTTP error status
            FeedFormatError: Body is not JSON or not the expected envelope
        """
        logger.info("fetching_order_feed", url=self.url)

        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error("order_feed_http_error", status_code=status, error=str(e))
            raise FeedUnavailableError(
                f"Order feed answered with HTTP {status}",
                details={"status_code": status}
            ) from e
        except requests.RequestException as e:
            logger.error("order_feed_unreachable", error=str(e), error_type=type(e).__name__)
            raise FeedUnavailableError(f"Order feed unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("order_feed_invalid_json", error=str(e))
            raise FeedFormatError("Order feed did not return JSON") from e

        rows = unwrap_envelope(payload)
        logger.info("order_feed_fetched", rows=len(rows))
        return rows

    def fetch(self) -> list[Order]:
        """Fetch and validate the feed snapshot."""
        return parse_orders(self.fetch_raw())

    def close(self) -> None:
        self.session.close()


class StaticOrderSource:
    """Fixed feed snapshot, for tests and offline runs."""

    def __init__(self, rows: list[dict]):
        self.rows = rows

    def fetch_raw(self) -> list[dict]:
        return list(self.rows)

    def fetch(self) -> list[Order]:
        return parse_orders(self.rows)
