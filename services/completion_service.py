"""
Completion classifier.

Derives the packing status of an order line from its feed quantities and
from whether it is currently at the head of a running outfeed.
"""

from enum import Enum
import structlog

from models.order import Order, LineKey, PackingStatus
from models.planning import PlanningSnapshot, OutfeedStatus

logger = structlog.get_logger(__name__)


FINISHED_STATUSES = {PackingStatus.DONE, PackingStatus.SHIPPED}


class CompletionPolicy(str, Enum):
    """
    How "done" and "shipped" are judged.

    RATIO: any shipment marks the line shipped; assigned pallets covering
        requested pallets marks it done.
    STRICT: the line is shipped only when shipped pallets equal requested
        pallets (2 decimals); done when assigned >= requested.

    The shipped rule is policy-dependent too: under STRICT a partly shipped
    line is not shipped and falls through to the remaining rules.
    """
    RATIO = "RATIO"
    STRICT = "STRICT"


def _pallets(qty: float, boxes_per_pallet: float) -> float:
    return qty / (boxes_per_pallet or 1)


def classify(
    order: Order,
    is_being_packed: bool = False,
    policy: CompletionPolicy = CompletionPolicy.RATIO
) -> PackingStatus:
    """
    Classify one order line. First matching rule wins:

    1. shipped
    2. done
    3. being_packed (head of a RUNNING outfeed)
    4. partially (something assigned)
    5. pending

    Args:
        order: Feed row
        is_being_packed: Line sits at sequence 1 of a running outfeed
        policy: Done/shipped rule set

    Returns:
        PackingStatus
    """
    requested = order.requested_qty
    assigned = order.assigned_qty
    shipped = order.shipped_qty
    bpp = order.boxes_per_pallet or 1

    if policy == CompletionPolicy.STRICT:
        if requested > 0 and round(_pallets(shipped, bpp), 2) == round(_pallets(requested, bpp), 2):
            return PackingStatus.SHIPPED
        if requested > 0 and assigned >= requested:
            return PackingStatus.DONE
    else:
        if shipped > 0:
            return PackingStatus.SHIPPED
        if requested > 0 and _pallets(assigned, bpp) >= _pallets(requested, bpp):
            return PackingStatus.DONE

    if is_being_packed:
        return PackingStatus.BEING_PACKED
    if assigned > 0:
        return PackingStatus.PARTIALLY
    return PackingStatus.PENDING


def is_finished(status: PackingStatus) -> bool:
    """Done or shipped."""
    return status in FINISHED_STATUSES


def being_packed_lines(snapshot: PlanningSnapshot) -> set[LineKey]:
    """Lines at sequence 1 of an outfeed whose status is RUNNING."""
    result = set()
    for outfeed_id, entries in snapshot.queues.items():
        outfeed = snapshot.outfeeds.get(outfeed_id)
        if outfeed is None or outfeed.status != OutfeedStatus.RUNNING:
            continue
        for entry in entries:
            if entry.sequence == 1:
                result.add(entry.line)
    return result


def classify_all(
    orders: list[Order],
    snapshot: PlanningSnapshot,
    policy: CompletionPolicy = CompletionPolicy.RATIO
) -> dict[LineKey, PackingStatus]:
    """
    Classify every feed row against the current queues.

    Returns:
        Mapping line -> status. A line listed twice keeps its last row.
    """
    packing = being_packed_lines(snapshot)
    statuses = {
        order.line: classify(order, order.line in packing, policy)
        for order in orders
    }
    logger.debug(
        "orders_classified",
        count=len(statuses),
        being_packed=len(packing),
        policy=policy.value
    )
    return statuses
