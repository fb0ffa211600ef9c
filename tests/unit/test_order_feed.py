"""
Unit tests for the order feed client.

The HTTP session is mocked; no network access.

Run: pytest tests/unit/test_order_feed.py -v
"""

import pytest
import requests
from unittest.mock import MagicMock

from integrations.order_feed import (
    OrderFeedClient,
    StaticOrderSource,
    unwrap_envelope,
    parse_orders,
)
from exceptions import FeedUnavailableError, FeedFormatError
from tests.factories import OrderFactory


FEED_URL = "https://feed.example.com/orders"


def make_client(payload=None, json_error=None, get_error=None, status_error=None):
    """OrderFeedClient over a mocked requests session."""
    response = MagicMock()
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload

    session = MagicMock()
    if get_error is not None:
        session.get.side_effect = get_error
    else:
        session.get.return_value = response

    return OrderFeedClient(FEED_URL, timeout=5, session=session), session


class TestFetch:
    """Tests for OrderFeedClient.fetch_raw() and fetch()."""

    def test_fetch_unwraps_envelope(self):
        rows = [OrderFactory.create(order_id=1, standard_id="S1")]
        client, session = make_client(payload=OrderFactory.envelope(rows))

        result = client.fetch_raw()

        assert result == rows
        session.get.assert_called_once_with(FEED_URL, timeout=5)

    def test_fetch_parses_orders(self):
        rows = [
            OrderFactory.create(order_id=1, standard_id="S1", assigned=4),
            OrderFactory.create(order_id=2, standard_id="S2"),
        ]
        client, _ = make_client(payload=OrderFactory.envelope(rows))

        orders = client.fetch()

        assert [o.order_id for o in orders] == [1, 2]
        assert orders[0].assigned_qty == 4

    def test_empty_data_is_valid(self):
        client, _ = make_client(payload=OrderFactory.envelope([]))

        assert client.fetch() == []

    def test_http_error_status(self):
        error_response = MagicMock(status_code=503)
        client, _ = make_client(status_error=requests.HTTPError("503", response=error_response))

        with pytest.raises(FeedUnavailableError) as exc_info:
            client.fetch_raw()

        assert exc_info.value.details["status_code"] == 503
        assert exc_info.value.code == "ORDER_FEED_ERROR"

    def test_connection_error(self):
        client, _ = make_client(get_error=requests.ConnectionError("refused"))

        with pytest.raises(FeedUnavailableError):
            client.fetch_raw()

    def test_timeout(self):
        client, _ = make_client(get_error=requests.Timeout("slow"))

        with pytest.raises(FeedUnavailableError):
            client.fetch_raw()

    def test_invalid_json(self):
        client, _ = make_client(json_error=ValueError("no json"))

        with pytest.raises(FeedFormatError):
            client.fetch_raw()

    def test_close_closes_session(self):
        client, session = make_client(payload=[])

        client.close()

        session.close.assert_called_once()


class TestEnvelope:
    """Tests for unwrap_envelope()."""

    @pytest.mark.parametrize("payload", [
        [],
        {},
        {"data": []},
        [{"rows": []}],
        [{"data": "nope"}],
        ["text"],
    ])
    def test_malformed_envelopes(self, payload):
        with pytest.raises(FeedFormatError):
            unwrap_envelope(payload)

    def test_non_object_row(self):
        with pytest.raises(FeedFormatError) as exc_info:
            unwrap_envelope([{"data": [OrderFactory.create(), 7]}])

        assert exc_info.value.details["index"] == 1

    def test_extra_envelope_items_ignored(self):
        rows = [OrderFactory.create(order_id=3, standard_id="S1")]

        assert unwrap_envelope([{"data": rows}, {"data": []}]) == rows


class TestParseOrders:
    """Tests for parse_orders()."""

    def test_missing_order_id_rejected(self):
        with pytest.raises(FeedFormatError) as exc_info:
            parse_orders([{"codigo_producto": "S1"}])

        assert exc_info.value.details["index"] == 0

    def test_english_field_names_accepted(self):
        orders = parse_orders([{"order_id": 9, "standard_id": "S9", "requested_qty": 3}])

        assert orders[0].line.as_key() == "9-S9"
        assert orders[0].requested_qty == 3


def test_static_source_returns_copies():
    rows = [OrderFactory.create(order_id=1, standard_id="S1")]
    source = StaticOrderSource(rows)

    raw = source.fetch_raw()
    raw.append({})

    assert len(source.rows) == 1
    assert source.fetch()[0].order_id == 1
