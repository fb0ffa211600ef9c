"""
Queue sequencer.

Maintains the per-outfeed queues of a PlanningSnapshot in memory. Every
function leaves each touched outfeed with sequences exactly 1..N. Nothing
here talks to the store; callers commit the snapshot.
"""

import re
from typing import Iterable, Optional
import structlog

from models.order import LineKey
from models.planning import PlanningSnapshot, QueueEntry
from exceptions import ValidationError

logger = structlog.get_logger(__name__)

TAG_DIGITS = 3


def resequence(entries: list[QueueEntry]) -> list[QueueEntry]:
    """Re-pack sequences to 1..N keeping the prior order."""
    entries.sort(key=lambda e: e.sequence)
    for position, entry in enumerate(entries, start=1):
        if entry.sequence != position:
            entry.sequence = position
    return entries


def iter_entries(snapshot: PlanningSnapshot) -> Iterable[QueueEntry]:
    for entries in snapshot.queues.values():
        yield from entries


def find_tag(snapshot: PlanningSnapshot, line: LineKey) -> Optional[str]:
    """Tag already used by a line in any queue, if any."""
    for entry in iter_entries(snapshot):
        if entry.order_id == line.order_id and entry.standard_id == line.standard_id:
            return entry.tag
    return None


def find_line(snapshot: PlanningSnapshot, tag: str) -> Optional[LineKey]:
    """Line behind a tag, looked up in any queue."""
    for entry in iter_entries(snapshot):
        if entry.tag == tag:
            return entry.line
    return None


def next_tag(snapshot: PlanningSnapshot, load_name: str) -> str:
    """
    Next free tag for a load.

    Scans every queue for tags made of the load name followed only by
    digits and returns load name + (highest number + 1), zero padded.
    """
    pattern = re.compile(rf"^{re.escape(load_name)}(\d+)$")
    highest = 0
    for entry in iter_entries(snapshot):
        match = pattern.match(entry.tag)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{load_name}{highest + 1:0{TAG_DIGITS}d}"


def resolve_tag(snapshot: PlanningSnapshot, line: LineKey, load_name: str) -> str:
    """Reuse the line's tag or generate the next one for its load."""
    return find_tag(snapshot, line) or next_tag(snapshot, load_name)


def has_tag(snapshot: PlanningSnapshot, outfeed_id: int, tag: str) -> bool:
    return any(e.tag == tag for e in snapshot.queues.get(outfeed_id, []))


def append(snapshot: PlanningSnapshot, outfeed_id: int, tag: str, line: LineKey) -> QueueEntry:
    """Queue a tag at the end of an outfeed."""
    entries = resequence(snapshot.queue(outfeed_id))
    entry = QueueEntry(
        outfeed_id=outfeed_id,
        tag=tag,
        order_id=line.order_id,
        standard_id=line.standard_id,
        sequence=len(entries) + 1,
    )
    entries.append(entry)
    logger.debug("queue_appended", outfeed_id=outfeed_id, tag=tag, sequence=entry.sequence)
    return entry


def prepend(snapshot: PlanningSnapshot, outfeed_id: int, tag: str, line: LineKey) -> QueueEntry:
    """Queue a tag at the head of an outfeed, pushing everything down one."""
    entries = resequence(snapshot.queue(outfeed_id))
    for existing in entries:
        existing.sequence += 1
    entry = QueueEntry(
        outfeed_id=outfeed_id,
        tag=tag,
        order_id=line.order_id,
        standard_id=line.standard_id,
        sequence=1,
    )
    entries.insert(0, entry)
    logger.debug("queue_prepended", outfeed_id=outfeed_id, tag=tag)
    return entry


def remove(snapshot: PlanningSnapshot, tag: str, outfeed_id: Optional[int] = None) -> list[int]:
    """
    Remove a tag from one outfeed, or from every outfeed carrying it.

    Args:
        snapshot: Working snapshot
        tag: Tag to drop
        outfeed_id: Restrict to this outfeed

    Returns:
        Ids of the outfeeds that lost an entry (already renumbered)
    """
    targets = [outfeed_id] if outfeed_id is not None else list(snapshot.queues)
    affected = []
    for target in targets:
        entries = snapshot.queues.get(target)
        if not entries:
            continue
        kept = [e for e in entries if e.tag != tag]
        if len(kept) == len(entries):
            continue
        snapshot.queues[target] = resequence(kept)
        affected.append(target)

    logger.debug("queue_tag_removed", tag=tag, outfeed_ids=affected)
    return affected


def reorder_and_move(
    snapshot: PlanningSnapshot,
    from_outfeed_id: Optional[int],
    to_outfeed_id: int,
    moved_tag: str,
    ordered_tags: list[str]
) -> None:
    """
    Apply a drag-and-drop on the board.

    If the tag changed outfeeds it is removed from the source first. The
    destination then follows ordered_tags (1-based); destination entries
    missing from the list keep their relative order after the listed ones.

    Raises:
        ValidationError: Duplicate tags, moved tag not in the list, or a
            tag with no known line
    """
    if len(set(ordered_tags)) != len(ordered_tags):
        raise ValidationError(
            "ordered_tags contains duplicates",
            code="DUPLICATE_TAGS",
            details={"ordered_tags": ordered_tags}
        )
    if moved_tag not in ordered_tags:
        raise ValidationError(
            "moved_tag must appear in ordered_tags",
            code="MOVED_TAG_NOT_IN_ORDER",
            details={"moved_tag": moved_tag}
        )

    # Resolve lines before anything is deleted
    lines = {}
    for tag in ordered_tags:
        line = find_line(snapshot, tag)
        if line is None:
            raise ValidationError(
                f"Unknown tag {tag}",
                code="UNKNOWN_TAG",
                details={"tag": tag}
            )
        lines[tag] = line

    if from_outfeed_id is not None and from_outfeed_id != to_outfeed_id:
        remove(snapshot, moved_tag, from_outfeed_id)

    existing = {e.tag: e for e in snapshot.queue(to_outfeed_id)}
    position = {tag: index for index, tag in enumerate(ordered_tags, start=1)}
    leftovers = [e for e in snapshot.queue(to_outfeed_id) if e.tag not in position]

    rebuilt = []
    for tag in ordered_tags:
        entry = existing.get(tag)
        if entry is None:
            entry = QueueEntry(
                outfeed_id=to_outfeed_id,
                tag=tag,
                order_id=lines[tag].order_id,
                standard_id=lines[tag].standard_id,
                sequence=position[tag],
            )
        else:
            entry.sequence = position[tag]
        rebuilt.append(entry)

    offset = len(rebuilt)
    for index, entry in enumerate(leftovers, start=1):
        entry.sequence = offset + index
        rebuilt.append(entry)

    snapshot.queues[to_outfeed_id] = rebuilt
    logger.debug(
        "queue_reordered",
        from_outfeed_id=from_outfeed_id,
        to_outfeed_id=to_outfeed_id,
        moved_tag=moved_tag,
        size=len(rebuilt)
    )


def head(snapshot: PlanningSnapshot, outfeed_id: int) -> Optional[QueueEntry]:
    """Entry at sequence 1, if the queue is not empty."""
    entries = snapshot.queues.get(outfeed_id) or []
    return min(entries, key=lambda e: e.sequence) if entries else None
