"""
Planning board persistence.

The board lives in five Supabase tables (loads, line_assignments,
load_priorities, outfeeds, outfeed_queue) plus a one-row revision counter.
Services never write rows one by one: they read a full snapshot, change a
working copy, and the store sends the difference to the
apply_planning_delta Postgres function, which applies it in a single
transaction and rejects it if the board moved on in the meantime.

See migrations/001_planning_board.sql for the schema and the function.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional
import structlog

from models.order import LineKey
from models.planning import PlanningSnapshot, Outfeed, QueueEntry
from exceptions import AppError, StoreError, StoreConflictError

logger = structlog.get_logger(__name__)


REVISION_ROW_ID = 1
APPLY_DELTA_FUNCTION = "apply_planning_delta"
CONFLICT_MARKER = "revision_conflict"


def compute_delta(original: PlanningSnapshot, updated: PlanningSnapshot) -> dict[str, Any]:
    """
    Difference between two snapshots, shaped for apply_planning_delta.

    Loads and line assignments are diffed row by row. Priorities are
    rewritten wholesale when they changed. Queues are rewritten per
    outfeed, only for outfeeds whose queue changed.

    Returns:
        Delta dict; every list empty (and priorities None) means no-op
    """
    loads_upsert = [
        {"order_id": order_id, "load_name": name}
        for order_id, name in sorted(updated.loads.items())
        if original.loads.get(order_id) != name
    ]
    loads_delete = sorted(order_id for order_id in original.loads if order_id not in updated.loads)

    lines_replace = [
        {"order_id": line.order_id, "standard_id": line.standard_id, "line_names": list(names)}
        for line, names in sorted(updated.lines.items(), key=lambda item: item[0].as_key())
        if original.lines.get(line) != names
    ]
    lines_delete = [
        {"order_id": line.order_id, "standard_id": line.standard_id}
        for line in sorted(original.lines, key=lambda k: k.as_key())
        if line not in updated.lines
    ]

    priorities = None
    if original.priorities != updated.priorities:
        priorities = [
            {"load_name": name, "priority_order": rank}
            for name, rank in sorted(updated.priorities.items(), key=lambda item: item[1])
        ]

    outfeed_status = [
        {"id": outfeed.id, "status": outfeed.status.value}
        for outfeed_id, outfeed in sorted(updated.outfeeds.items())
        if outfeed_id in original.outfeeds and original.outfeeds[outfeed_id].status != outfeed.status
    ]

    queues_replace = []
    for outfeed_id in sorted(set(original.queues) | set(updated.queues)):
        before = _queue_rows(original.queues.get(outfeed_id, []))
        after = _queue_rows(updated.queues.get(outfeed_id, []))
        if before != after:
            queues_replace.append({"outfeed_id": outfeed_id, "entries": after})

    return {
        "loads_upsert": loads_upsert,
        "loads_delete": loads_delete,
        "lines_replace": lines_replace,
        "lines_delete": lines_delete,
        "priorities": priorities,
        "outfeed_status": outfeed_status,
        "queues_replace": queues_replace,
    }


def _queue_rows(entries: list[QueueEntry]) -> list[dict]:
    return [
        {
            "tag": e.tag,
            "order_id": e.order_id,
            "standard_id": e.standard_id,
            "sequence": e.sequence,
        }
        for e in sorted(entries, key=lambda e: e.sequence)
    ]


def is_empty_delta(delta: dict[str, Any]) -> bool:
    # priorities == [] means "clear them all", which is a change
    if delta["priorities"] is not None:
        return False
    return all(not value for key, value in delta.items() if key != "priorities")


class PlanningStore:
    """
    Transactional access to the planning board.

    Subclasses implement load_snapshot() and commit(). Use transaction():

        with store.transaction("plan_order") as board:
            queue_service.append(board, ...)

    The working copy is committed when the block exits cleanly and simply
    dropped when it raises, so nothing is ever half written.
    """

    def load_snapshot(self) -> PlanningSnapshot:
        raise NotImplementedError

    def commit(self, original: PlanningSnapshot, updated: PlanningSnapshot) -> int:
        """Persist updated atomically; return the new revision."""
        raise NotImplementedError

    def close(self) -> None:
        """Release resources held by the store."""

    @contextmanager
    def transaction(self, operation: str) -> Iterator[PlanningSnapshot]:
        logger.debug("transaction_started", operation=operation)
        try:
            original = self.load_snapshot()
        except AppError:
            raise
        except Exception as e:
            logger.error("snapshot_load_failed", operation=operation, error=str(e))
            raise StoreError("select", str(e)) from e

        working = original.copy()
        try:
            yield working
        except AppError as e:
            logger.warning("transaction_rolled_back", operation=operation, error_code=e.code)
            raise
        except Exception as e:
            logger.error(
                "transaction_rolled_back",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__
            )
            raise StoreError(operation, str(e)) from e

        try:
            working.revision = self.commit(original, working)
        except AppError:
            raise
        except Exception as e:
            logger.error("transaction_commit_failed", operation=operation, error=str(e))
            raise StoreError("commit", str(e)) from e

        logger.debug("transaction_committed", operation=operation, revision=working.revision)


class SupabasePlanningStore(PlanningStore):
    """Planning board stored in Supabase (Postgres)."""

    def __init__(self, client):
        self.db = client

    def load_snapshot(self) -> PlanningSnapshot:
        """
        Read every board table.

        Returns:
            PlanningSnapshot with the current revision

        Raises:
            StoreError: If any read fails
        """
        try:
            revision_rows = (
                self.db.table("planning_revision")
                .select("revision")
                .eq("id", REVISION_ROW_ID)
                .execute()
            ).data
            loads_rows = self.db.table("loads").select("order_id, load_name").execute().data
            lines_rows = (
                self.db.table("line_assignments")
                .select("order_id, standard_id, line_name")
                .execute()
            ).data
            priority_rows = (
                self.db.table("load_priorities")
                .select("load_name, priority_order")
                .order("priority_order")
                .execute()
            ).data
            outfeed_rows = self.db.table("outfeeds").select("id, name, status").order("id").execute().data
            queue_rows = (
                self.db.table("outfeed_queue")
                .select("outfeed_id, tag, order_id, standard_id, sequence")
                .order("outfeed_id")
                .order("sequence")
                .execute()
            ).data
        except Exception as e:
            logger.error("load_snapshot_failed", error=str(e))
            raise StoreError("select", str(e)) from e

        snapshot = PlanningSnapshot(
            revision=int(revision_rows[0]["revision"]) if revision_rows else 0
        )
        for row in loads_rows:
            snapshot.loads[int(row["order_id"])] = row["load_name"]
        for row in lines_rows:
            line = LineKey(order_id=int(row["order_id"]), standard_id=str(row["standard_id"]))
            snapshot.lines.setdefault(line, []).append(row["line_name"])
        for row in priority_rows:
            snapshot.priorities[row["load_name"]] = int(row["priority_order"])
        for row in outfeed_rows:
            outfeed = Outfeed(**row)
            snapshot.outfeeds[outfeed.id] = outfeed
            snapshot.queues.setdefault(outfeed.id, [])
        for row in queue_rows:
            entry = QueueEntry(**row)
            snapshot.queues.setdefault(entry.outfeed_id, []).append(entry)

        logger.debug(
            "snapshot_loaded",
            revision=snapshot.revision,
            loads=len(snapshot.loads),
            line_assignments=len(snapshot.lines),
            outfeeds=len(snapshot.outfeeds),
            queued=len(queue_rows)
        )
        return snapshot

    def commit(self, original: PlanningSnapshot, updated: PlanningSnapshot) -> int:
        """
        Send the snapshot difference to apply_planning_delta.

        Raises:
            StoreConflictError: Board revision moved since the snapshot
            StoreError: Any other failure (nothing was written)
        """
        delta = compute_delta(original, updated)
        if is_empty_delta(delta):
            logger.debug("commit_skipped_no_changes", revision=original.revision)
            return original.revision

        try:
            result = self.db.rpc(
                APPLY_DELTA_FUNCTION,
                {"p_expected_revision": original.revision, "p_delta": delta}
            ).execute()
        except Exception as e:
            if CONFLICT_MARKER in str(e):
                logger.warning("commit_conflict", expected_revision=original.revision)
                raise StoreConflictError(original.revision) from e
            logger.error("commit_failed", error=str(e))
            raise StoreError("commit", str(e)) from e

        revision = _as_revision(result.data, original.revision + 1)
        logger.info(
            "board_committed",
            revision=revision,
            loads_upserted=len(delta["loads_upsert"]),
            loads_deleted=len(delta["loads_delete"]),
            queues_rewritten=len(delta["queues_replace"])
        )
        return revision

    def close(self) -> None:
        # supabase-py keeps no pooled connections that need closing; drop the reference
        self.db = None
        logger.info("planning_store_closed")


def _as_revision(data: Any, fallback: int) -> int:
    """rpc() returns a scalar, or a list/dict wrapping it depending on version."""
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = next(iter(data.values()), None)
    try:
        return int(data)
    except (TypeError, ValueError):
        return fallback
