"""
Reconciliation: core planning logic.

Re-derives the board from a fresh feed snapshot:

    E. drop loads, line assignments and queue entries the feed no longer knows
    B. retire finished tags at the head of every outfeed
    C. release loads (letter or priority only) and finished line assignments
    D. re-pack load priorities to 1..N

Everything runs on an in-memory PlanningSnapshot; the caller commits it.
"""

from collections import defaultdict
from typing import Optional
import structlog

from models.order import Order, LineKey, PackingStatus
from models.planning import PlanningSnapshot, ReconcileSummary
from services import queue_service
from services.completion_service import (
    CompletionPolicy,
    classify_all,
    is_finished,
)

logger = structlog.get_logger(__name__)


def repack_priorities(
    priorities: dict[str, int],
    keep: Optional[set[str]] = None
) -> dict[str, int]:
    """
    Dense 1..N ranks in the previous relative order.

    Args:
        priorities: load name -> rank (gaps and ties allowed)
        keep: Only these load names survive (all when None)

    Returns:
        New mapping; tied loads keep their input order
    """
    remaining = sorted(
        (item for item in priorities.items() if keep is None or item[0] in keep),
        key=lambda item: item[1]
    )
    return {name: index for index, (name, _) in enumerate(remaining, start=1)}


def advance_queues(
    snapshot: PlanningSnapshot,
    orders: list[Order],
    policy: CompletionPolicy
) -> list[str]:
    """
    Retire finished tags sitting at sequence 1.

    A retired tag leaves every outfeed at once. Repeats until no head is
    finished, since retiring one head exposes the next.

    Returns:
        Retired tags in retirement order
    """
    retired = []
    while True:
        statuses = classify_all(orders, snapshot, policy)
        finished_heads = []
        for outfeed_id in sorted(snapshot.queues):
            entry = queue_service.head(snapshot, outfeed_id)
            if entry is None or entry.tag in finished_heads:
                continue
            status = statuses.get(entry.line)
            if status is not None and is_finished(status):
                finished_heads.append(entry.tag)

        if not finished_heads:
            return retired

        for tag in finished_heads:
            affected = queue_service.remove(snapshot, tag)
            logger.info("tag_retired", tag=tag, outfeed_ids=affected)
        retired.extend(finished_heads)


def release_loads(
    snapshot: PlanningSnapshot,
    orders: list[Order],
    statuses: dict[LineKey, PackingStatus]
) -> tuple[list[str], list[str]]:
    """
    Decide load releases.

    A load with any shipped row, or whose rows are all closed, loses its
    letter (every Load with that name is deleted). Otherwise, a load whose
    rows are all done/shipped keeps its letter but loses its priority.

    Returns:
        (released_letters, released_priorities)
    """
    members: dict[str, list[Order]] = defaultdict(list)
    for order in orders:
        load_name = snapshot.loads.get(order.order_id)
        if load_name:
            members[load_name].append(order)

    released_letters = []
    released_priorities = []
    for load_name in sorted(members):
        rows = members[load_name]
        if any(o.shipped_qty > 0 for o in rows) or all(o.is_closed for o in rows):
            released_letters.append(load_name)
        elif all(is_finished(statuses[o.line]) for o in rows):
            released_priorities.append(load_name)

    if released_letters:
        doomed = set(released_letters)
        snapshot.loads = {
            order_id: name for order_id, name in snapshot.loads.items()
            if name not in doomed
        }
        logger.info("loads_released", loads=released_letters)

    if released_priorities:
        logger.info("load_priorities_released", loads=released_priorities)

    return released_letters, released_priorities


def release_finished_lines(
    snapshot: PlanningSnapshot,
    statuses: dict[LineKey, PackingStatus]
) -> int:
    """Drop line assignments whose line is done or shipped."""
    finished = [
        line for line in snapshot.lines
        if line in statuses and is_finished(statuses[line])
    ]
    for line in finished:
        del snapshot.lines[line]
    return len(finished)


def remove_orphans(
    snapshot: PlanningSnapshot,
    orders: list[Order]
) -> tuple[int, int, list[str]]:
    """
    Drop everything that references orders missing from the feed.

    Returns:
        (loads_removed, line_assignments_removed, queue_tags_removed)
    """
    live_lines = {o.line for o in orders}
    live_orders = {o.order_id for o in orders}

    orphan_loads = [order_id for order_id in snapshot.loads if order_id not in live_orders]
    for order_id in orphan_loads:
        del snapshot.loads[order_id]

    orphan_lines = [line for line in snapshot.lines if line not in live_lines]
    for line in orphan_lines:
        del snapshot.lines[line]

    orphan_tags = sorted({
        entry.tag
        for entry in queue_service.iter_entries(snapshot)
        if entry.line not in live_lines
    })
    for tag in orphan_tags:
        queue_service.remove(snapshot, tag)

    if orphan_loads or orphan_lines or orphan_tags:
        logger.info(
            "orphans_removed",
            loads=len(orphan_loads),
            line_assignments=len(orphan_lines),
            queue_tags=orphan_tags
        )
    return len(orphan_loads), len(orphan_lines), orphan_tags


def reconcile_snapshot(
    snapshot: PlanningSnapshot,
    orders: list[Order],
    policy: CompletionPolicy = CompletionPolicy.RATIO
) -> ReconcileSummary:
    """
    Run one reconciliation pass over a working snapshot (mutated in place).

    Args:
        snapshot: Working copy of the board
        orders: Fresh feed snapshot
        policy: Completion policy for classification

    Returns:
        ReconcileSummary of what changed
    """
    logger.info(
        "reconcile_pass_started",
        orders=len(orders),
        loads=len(snapshot.loads),
        outfeeds=len(snapshot.queues)
    )

    # E. orphan cleanup first: an orphan at a queue head can't be classified
    orphan_loads, orphan_lines, orphan_tags = remove_orphans(snapshot, orders)

    # B. queue advancement
    retired = advance_queues(snapshot, orders, policy)

    # C. load release, against the advanced queues
    statuses = classify_all(orders, snapshot, policy)
    released_letters, released_priorities = release_loads(snapshot, orders, statuses)
    finished_lines = release_finished_lines(snapshot, statuses)

    # D. priority resequencing
    keep = snapshot.used_load_names() - set(released_priorities)
    snapshot.priorities = repack_priorities(snapshot.priorities, keep)

    summary = ReconcileSummary(
        orders_seen=len(orders),
        retired_tags=retired,
        released_loads=released_letters,
        released_priorities=released_priorities,
        removed_line_assignments=finished_lines,
        orphan_loads_removed=orphan_loads,
        orphan_line_assignments_removed=orphan_lines,
        orphan_queue_tags=orphan_tags,
    )
    logger.info("reconcile_pass_completed", **summary.model_dump(include={
        "retired_tags", "released_loads", "released_priorities", "removed_line_assignments"
    }))
    return summary
