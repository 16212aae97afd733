"""
Manual override handling.

User corrections are keyed by bar timestamp and always win over computed
points. The override set itself is persisted by an external collaborator;
the helpers here only convert to and from its key-value records and build
new mappings, never mutating the one passed in.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Sequence, Tuple, Union

from .types import MANUAL_TAG, Bar, OverrideAction, PointKind, WavePoint

logger = logging.getLogger(__name__)

OverrideSet = Mapping[int, OverrideAction]


@dataclass(frozen=True)
class ManualOverride:
    """Single user correction at a bar timestamp."""
    timestamp: int
    action: OverrideAction


@dataclass(frozen=True)
class OverrideSummary:
    """Counts of overrides by action."""
    total: int
    highs: int
    lows: int
    removed: int


def apply_overrides(
    zigzag: Sequence[WavePoint],
    overrides: OverrideSet,
    bars: Sequence[Bar],
) -> Tuple[WavePoint, ...]:
    """
    Merge manual overrides into a zigzag.

    Points whose timestamp is marked REMOVED are dropped. Each ADD_HIGH or
    ADD_LOW override replaces whatever point sits at its bar index with a
    manual point priced at the bar's high or low. Overrides that match no
    bar are ignored. The result is sorted by bar index and may contain
    adjacent points of the same kind.

    Args:
        zigzag: Computed zigzag points.
        overrides: Mapping of bar timestamp to action.
        bars: Bar sequence used for timestamp to index lookup.

    Returns:
        Corrected point sequence.
    """
    if not overrides:
        return tuple(zigzag)

    removed = {ts for ts, action in overrides.items() if action is OverrideAction.REMOVED}
    points = [p for p in zigzag if p.timestamp not in removed]

    index_by_timestamp = {bar.timestamp: i for i, bar in enumerate(bars)}
    for timestamp, action in overrides.items():
        if action is OverrideAction.REMOVED:
            continue
        index = index_by_timestamp.get(timestamp)
        if index is None:
            logger.debug(f"Override at {timestamp} matches no bar; skipped")
            continue
        bar = bars[index]
        if action is OverrideAction.ADD_HIGH:
            point = WavePoint(bar.timestamp, bar.high, PointKind.HIGH, index, MANUAL_TAG)
        else:
            point = WavePoint(bar.timestamp, bar.low, PointKind.LOW, index, MANUAL_TAG)
        points = [p for p in points if p.source_index != index] + [point]

    points.sort(key=lambda p: (p.source_index if p.source_index is not None else -1, p.timestamp))
    logger.debug(f"Applied {len(overrides)} overrides: {len(zigzag)} -> {len(points)} points")
    return tuple(points)


def override_set(corrections: Iterable[ManualOverride]) -> Dict[int, OverrideAction]:
    """Build an override set; a later correction at a timestamp wins."""
    return {c.timestamp: c.action for c in corrections}


def parse_override_records(records: Mapping[Union[str, int], str]) -> Dict[int, OverrideAction]:
    """
    Convert persisted key-value records into a typed override set.

    Keys are bar timestamps (str or int), values 'high', 'low' or
    'removed'. Malformed entries are logged and skipped.
    """
    overrides = {}
    for key, value in records.items():
        try:
            timestamp = int(key)
            action = OverrideAction(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed override record {key!r}: {value!r}")
            continue
        overrides[timestamp] = action
    return overrides


def override_records(overrides: OverrideSet) -> Dict[str, str]:
    """Convert an override set into persistable key-value records."""
    return {str(ts): action.value for ts, action in sorted(overrides.items())}


def with_override(overrides: OverrideSet, timestamp: int, action: OverrideAction) -> Dict[int, OverrideAction]:
    """Return a new override set with the action recorded at timestamp."""
    updated = dict(overrides)
    updated[timestamp] = action
    return updated


def with_removal(overrides: OverrideSet, timestamp: int) -> Dict[int, OverrideAction]:
    """Return a new override set marking the point at timestamp as removed."""
    return with_override(overrides, timestamp, OverrideAction.REMOVED)


def without_override(overrides: OverrideSet, timestamp: int) -> Dict[int, OverrideAction]:
    """Return a new override set with any correction at timestamp cleared."""
    return {ts: action for ts, action in overrides.items() if ts != timestamp}


def summarize_overrides(overrides: OverrideSet) -> OverrideSummary:
    actions = list(overrides.values())
    return OverrideSummary(
        total=len(actions),
        highs=actions.count(OverrideAction.ADD_HIGH),
        lows=actions.count(OverrideAction.ADD_LOW),
        removed=actions.count(OverrideAction.REMOVED),
    )
