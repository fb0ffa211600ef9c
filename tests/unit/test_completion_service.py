"""
Unit tests for the completion classifier.

Run: pytest tests/unit/test_completion_service.py -v
"""

import pytest

from models.order import Order, PackingStatus
from services.completion_service import (
    CompletionPolicy,
    classify,
    classify_all,
    being_packed_lines,
    is_finished,
)
from tests.factories import OrderFactory, BoardFactory


def make_order(**kwargs) -> Order:
    return Order.model_validate(OrderFactory.create(**kwargs))


class TestOrderCoercion:
    """Tests for feed row parsing."""

    def test_missing_quantities_default_to_zero(self):
        """Absent quantity fields should read as 0."""
        order = Order.model_validate({"id_marketer_order": 1, "codigo_producto": "X"})

        assert order.requested_qty == 0
        assert order.assigned_qty == 0
        assert order.shipped_qty == 0
        assert order.boxes_per_pallet == 0

    def test_non_numeric_quantities_default_to_zero(self):
        """Garbage in quantity fields should read as 0."""
        order = Order.model_validate({
            "id_marketer_order": 1,
            "codigo_producto": "X",
            "cantidad_solicitada": "n/a",
            "cantidad_asignada": None,
            "cantidad_despachada": "",
        })

        assert order.requested_qty == 0
        assert order.assigned_qty == 0
        assert order.shipped_qty == 0

    def test_numeric_strings_are_parsed(self):
        """Quantities sent as strings should be parsed."""
        order = Order.model_validate({
            "id_marketer_order": "12",
            "codigo_producto": 345,
            "cantidad_solicitada": "12.5",
        })

        assert order.order_id == 12
        assert order.standard_id == "345"
        assert order.requested_qty == 12.5

    @pytest.mark.parametrize("state", ["cerrada", "CERRADA", "closed", " Cerrado "])
    def test_closed_states(self, state):
        """Closed lifecycle values are recognised case-insensitively."""
        assert make_order(state=state).is_closed is True

    def test_open_state_is_not_closed(self):
        assert make_order(state="abierta").is_closed is False


class TestClassifyRatioPolicy:
    """Tests for classify() with the default RATIO policy."""

    def test_any_shipment_is_shipped(self):
        """Rule 1: shipped quantity > 0 wins over everything."""
        order = make_order(requested=10, assigned=10, shipped=1)

        assert classify(order, is_being_packed=True) == PackingStatus.SHIPPED

    def test_assigned_covering_requested_is_done(self):
        """Order A from the scenario: requested=10, assigned=10 -> done."""
        order = make_order(requested=10, assigned=10, boxes_per_pallet=1)

        assert classify(order) == PackingStatus.DONE

    def test_shipped_without_assignment_is_shipped(self):
        """Order B from the scenario: requested=10, assigned=0, shipped=10 -> shipped."""
        order = make_order(requested=10, assigned=0, shipped=10)

        assert classify(order) == PackingStatus.SHIPPED

    def test_done_wins_over_being_packed(self):
        """Rule 2 comes before rule 3."""
        order = make_order(requested=10, assigned=12)

        assert classify(order, is_being_packed=True) == PackingStatus.DONE

    def test_zero_requested_is_never_done(self):
        """An order line with nothing requested cannot be done."""
        order = make_order(requested=0, assigned=5)

        assert classify(order) == PackingStatus.PARTIALLY

    def test_zero_boxes_per_pallet_defaults_to_one(self):
        """Missing boxes per pallet must not divide by zero."""
        order = make_order(requested=10, assigned=10, boxes_per_pallet=0)

        assert classify(order) == PackingStatus.DONE

    def test_being_packed(self):
        """Rule 3: head of a running outfeed."""
        order = make_order(requested=10, assigned=4)

        assert classify(order, is_being_packed=True) == PackingStatus.BEING_PACKED

    def test_partially(self):
        """Rule 4: something assigned but not enough."""
        order = make_order(requested=10, assigned=4)

        assert classify(order) == PackingStatus.PARTIALLY

    def test_pending(self):
        """Rule 5: nothing assigned, nothing shipped."""
        order = make_order(requested=10)

        assert classify(order) == PackingStatus.PENDING


class TestClassifyStrictPolicy:
    """Tests for classify() with the STRICT policy."""

    def test_partial_shipment_is_not_shipped(self):
        """Only a shipment matching the request counts as shipped."""
        order = make_order(requested=10, assigned=2, shipped=3)

        assert classify(order, policy=CompletionPolicy.STRICT) == PackingStatus.PARTIALLY

    def test_full_shipment_is_shipped(self):
        """Shipped pallets equal to requested pallets (2 decimals)."""
        order = make_order(requested=100, shipped=100.001, boxes_per_pallet=3)

        assert classify(order, policy=CompletionPolicy.STRICT) == PackingStatus.SHIPPED

    def test_assigned_covering_requested_is_done(self):
        order = make_order(requested=10, assigned=10)

        assert classify(order, policy=CompletionPolicy.STRICT) == PackingStatus.DONE

    def test_zero_requested_zero_shipped_is_pending(self):
        """0 == 0 must not count as a full shipment."""
        order = make_order(requested=0, shipped=0)

        assert classify(order, policy=CompletionPolicy.STRICT) == PackingStatus.PENDING


class TestBeingPacked:
    """Tests for being_packed_lines() and classify_all()."""

    def test_only_head_of_running_outfeed(self):
        """Sequence 1 of a RUNNING outfeed is being packed; others are not."""
        board = BoardFactory.create(
            outfeeds={1: "RUNNING", 2: "PAUSED"},
            queues={
                1: [("A001", 5, "S1"), ("A002", 6, "S1")],
                2: [("B001", 7, "S1")],
            },
        )

        lines = {line.as_key() for line in being_packed_lines(board)}

        assert lines == {"5-S1"}

    def test_classify_all_uses_queue_position(self):
        board = BoardFactory.create(
            outfeeds={1: "RUNNING"},
            queues={1: [("A001", 5, "S1"), ("A002", 6, "S1")]},
        )
        orders = [
            make_order(order_id=5, standard_id="S1", assigned=1),
            make_order(order_id=6, standard_id="S1", assigned=1),
        ]

        statuses = {line.as_key(): status for line, status in classify_all(orders, board).items()}

        assert statuses == {
            "5-S1": PackingStatus.BEING_PACKED,
            "6-S1": PackingStatus.PARTIALLY,
        }

    def test_is_finished(self):
        assert is_finished(PackingStatus.DONE) is True
        assert is_finished(PackingStatus.SHIPPED) is True
        assert is_finished(PackingStatus.BEING_PACKED) is False
        assert is_finished(PackingStatus.PENDING) is False
