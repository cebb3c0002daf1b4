"""Room name canonicalization, venue lookup and divisible-room handling."""
import logging
import re
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from processor.models import Event, Venue

logger = logging.getLogger(__name__)

COMBINE = 'COMBINE'
UNCOMBINE = 'UNCOMBINE'

# (first half, second half) -> merged display label
COMBINABLE_ROOM_PAIRS = {
    ('GH 1420', 'GH 1430'): 'GH 1420&30',
    ('GH 2410A', 'GH 2410B'): 'GH 2410A&B',
    ('GH 2420A', 'GH 2420B'): 'GH 2420A&B',
    ('GH 2430A', 'GH 2430B'): 'GH 2430A&B',
}

# Rooms whose partition is physically moved between events; room -> mode
TRANSFORM_ROOM_MODES = {
    'GH 1420&30': COMBINE,
    'GH 1420': UNCOMBINE,
    'GH 1430': UNCOMBINE,
}

_COMBINED_PATTERN = re.compile(r'K(GH\d+[A-Z]?(?:&[A-Z])?)')
_LOWER_LEVEL_PATTERN = re.compile(r'K(GHL\d+)')


def parse_room_name(raw_name: Optional[str]) -> str:
    """
    Canonicalize an upstream space name into the display format.

    ``KGH1110 (70)`` becomes ``GH 1110``, ``KGHL110`` becomes ``GH L110`` and
    lettered or combined suffixes are preserved (``KGH2410A&B`` becomes
    ``GH 2410A&B``). Names that do not follow the building pattern are
    returned trimmed.

    Args:
        raw_name: Raw subject or space name

    Returns:
        Canonical room name, or an empty string for empty input
    """
    if not raw_name:
        return ''

    match = _COMBINED_PATTERN.search(raw_name)
    if match:
        return re.sub(r'^GH(\d+)', r'GH \1', match.group(1))

    match = _LOWER_LEVEL_PATTERN.search(raw_name)
    if match:
        return re.sub(r'^GH(L\d+)', r'GH \1', match.group(1))

    return raw_name.strip()


def _venue_key(name: str) -> str:
    return re.sub(r'\s+', '', name).casefold()


class VenueResolver:
    """Case and whitespace insensitive lookup of venue IDs by name or spelling."""

    def __init__(self, venues: Iterable[Venue]):
        self._ids: Dict[str, int] = {}
        for venue in venues:
            for name in (venue.name, venue.spelling):
                if name and name.strip():
                    self._ids.setdefault(_venue_key(name), venue.id)

    def resolve(self, room_name: str) -> Optional[int]:
        if not room_name:
            return None
        venue_id = self._ids.get(_venue_key(room_name))
        if venue_id is None:
            logger.debug(f"No venue matches room '{room_name}'")
        return venue_id


def merge_adjacent_room_events(events: List[Event]) -> List[Event]:
    """
    Collapse half-room events that share date, name and start time.

    When both halves of a registered pair are booked for the same
    (date, event_name, start_time), they are replaced by a single event
    carrying the combined room label and the first half's identity. Lone
    halves pass through unchanged.
    """
    groups: Dict[tuple, List[Event]] = {}
    for event in events:
        key = (event.date, event.event_name, event.start_time)
        groups.setdefault(key, []).append(event)

    merged: List[Event] = []
    for group in groups.values():
        if len(group) == 1:
            merged.append(group[0])
            continue

        consumed = set()
        for (first_room, second_room), combined_room in COMBINABLE_ROOM_PAIRS.items():
            first = next((e for e in group if e.room_name == first_room), None)
            second = next((e for e in group if e.room_name == second_room), None)
            if first is None or second is None:
                continue
            merged.append(replace(first, room_name=combined_room))
            consumed.add(id(first))
            consumed.add(id(second))
            logger.debug(
                f"Merged events {first.id} and {second.id} into '{combined_room}'"
            )

        merged.extend(event for event in group if id(event) not in consumed)

    return merged


def compute_transforms(events: List[Event]) -> Dict[int, str]:
    """
    Mark the events at which a divisible room changes configuration.

    The first event of the day in the room family gets its own mode; after
    that only events whose mode differs from the previous event are marked.

    Returns:
        Mapping of event ID to COMBINE/UNCOMBINE
    """
    relevant = [
        (event.date, event.start_time, event.id, TRANSFORM_ROOM_MODES[event.room_name])
        for event in events
        if event.room_name in TRANSFORM_ROOM_MODES
    ]
    if not relevant:
        return {}

    relevant.sort(key=lambda entry: (entry[0], entry[1], entry[2]))

    plan = {relevant[0][2]: relevant[0][3]}
    for previous, current in zip(relevant, relevant[1:]):
        if previous[3] != current[3]:
            plan[current[2]] = current[3]
    return plan
