"""Event processor for normalizing raw booking series into events."""
import logging
import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from processor import raw_fields
from processor.identity import compose_event_key, generate_id
from processor.models import Event, Resource, Series, Venue
from processor.rooms import (
    VenueResolver,
    compute_transforms,
    merge_adjacent_room_events,
    parse_room_name,
)
from processor.timeutils import local_start, split_iso_datetime

logger = logging.getLogger(__name__)

PRIVATE_PLACEHOLDER_NAMES = {'(Private)', 'Closed'}


class EventProcessor:
    """Processor for normalizing raw booking series into canonical events."""

    def __init__(self, venues: Optional[Iterable[Venue]] = None):
        """
        Initialize the processor.

        Args:
            venues: Venue directory rows used to resolve room names
        """
        self.venue_resolver = VenueResolver(venues or [])

    def process_series(
        self,
        raw_series: List[dict],
        target_date: Optional[str] = None
    ) -> Tuple[List[Series], List[Event]]:
        """
        Normalize raw series items into series rows and events.

        Args:
            raw_series: Raw series items from the booking feed
            target_date: When given, only reservations on this date
                (YYYY-MM-DD) become events

        Returns:
            Tuple of (series rows, events)
        """
        unique_series = self.deduplicate_series(raw_series)

        series_rows = []
        events = []
        kept = 0
        for item in unique_series:
            try:
                if not self._is_valid_series(item):
                    continue
                kept += 1
                series_row = self._make_series_row(item)
                if series_row is None:
                    continue
                series_rows.append(series_row)
                events.extend(self._explode_series(item, target_date))
            except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as e:
                logger.warning(
                    f"Failed to process series {item.get('itemId')!r}: {e}"
                )
                continue

        logger.info(
            f"Kept {kept} of {len(unique_series)} unique series after filtering"
        )

        events = self._deduplicate_events(events)
        events = merge_adjacent_room_events(events)
        for event in events:
            event.venue_id = self.venue_resolver.resolve(event.room_name)

        transforms = compute_transforms(events)
        for event in events:
            event.transform = transforms.get(event.id)

        events.sort(key=lambda e: (e.date, e.start_time, e.room_name, e.id))
        logger.info(
            f"Processed {len(events)} events from {len(series_rows)} series"
        )
        return series_rows, events

    def deduplicate_series(self, raw_series: List[dict]) -> List[dict]:
        """
        Keep one raw item per series ID.

        The same series can appear once per room it is listed under; the copy
        carrying the most reservations wins.
        """
        kept: Dict[object, dict] = {}
        order = []
        for item in raw_series:
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object series item: {item!r}")
                continue
            series_id = raw_fields.as_int(item.get('itemId'))
            key = series_id if series_id is not None else item.get('itemId')
            if key not in kept:
                kept[key] = item
                order.append(key)
                continue

            current = kept[key]
            if len(raw_fields.reservations_of(item)) > len(raw_fields.reservations_of(current)):
                discarded, kept[key] = current, item
            else:
                discarded = item
            logger.warning(
                f"Duplicate series {key!r}: discarded copy listed under "
                f"'{discarded.get('subject_itemName')}' with "
                f"{len(raw_fields.reservations_of(discarded))} reservations"
            )

        return [kept[key] for key in order]

    def _is_valid_series(self, item: dict) -> bool:
        """
        Check whether a raw series should produce events.

        Args:
            item: Raw series item

        Returns:
            True if valid, False otherwise
        """
        series_id = raw_fields.as_int(item.get('itemId'))
        secondary_id = raw_fields.as_int(item.get('itemId2'))
        name = item.get('itemName')

        if series_id == 0 and name in PRIVATE_PLACEHOLDER_NAMES:
            logger.debug(f"Skipping private placeholder '{name}'")
            return False

        if not series_id or not secondary_id:
            logger.warning(
                f"Series {item.get('itemId')!r} missing required identifier "
                f"(itemId2={item.get('itemId2')!r})"
            )
            return False

        subject_name = item.get('subject_itemName')
        if isinstance(subject_name, str) and '&' in subject_name:
            logger.debug(
                f"Skipping series {series_id} listed under combined room "
                f"'{subject_name}'"
            )
            return False

        if raw_fields.get_event_type(item) == 'KEC' and not raw_fields.is_academic_session(item):
            logger.debug(f"Skipping non-academic KEC series {series_id}")
            return False

        return True

    def _make_series_row(self, item: dict) -> Optional[Series]:
        series_id = raw_fields.as_int(item.get('itemId'))
        dates = sorted(
            date for date, _ in (
                split_iso_datetime(rsv.get('reservation_start_dt'))
                for rsv in raw_fields.reservations_of(item)
            )
            if date
        )
        if not dates:
            logger.warning(f"Series {series_id} has no dated reservations")
            return None

        return Series(
            id=series_id,
            series_name=item.get('itemName') or '',
            series_type=raw_fields.get_event_type(item) or '',
            total_events=len(raw_fields.reservations_of(item)),
            first_date=dates[0],
            last_date=dates[-1],
        )

    def _explode_series(self, item: dict, target_date: Optional[str]) -> List[Event]:
        """Create one event per (reservation, space) pair of a series."""
        series_id = raw_fields.as_int(item['itemId'])
        positions = self.compute_series_positions(item)
        event_type = raw_fields.get_event_type(item)
        organization = raw_fields.get_organization(item)
        instructors = raw_fields.get_instructor_names(item)
        lecture_title = raw_fields.get_lecture_title(item)
        now = int(time.time())

        events = []
        for rsv in raw_fields.reservations_of(item):
            reservation_id = raw_fields.as_int(rsv.get('reservation_id'))
            start_date, start_time = split_iso_datetime(
                rsv.get('event_start_dt') or rsv.get('reservation_start_dt')
            )
            _, end_time = split_iso_datetime(
                rsv.get('event_end_dt') or rsv.get('reservation_end_dt')
            )
            if reservation_id is None or not (start_date and start_time and end_time):
                logger.warning(
                    f"Skipping reservation {rsv.get('reservation_id')!r} of "
                    f"series {series_id}: missing id, date or times"
                )
                continue
            if target_date and start_date != target_date:
                continue

            resources = self._parse_resources(rsv)
            for space_key, raw_room in self._spaces_of(item, rsv):
                events.append(Event(
                    id=generate_id(*compose_event_key(series_id, reservation_id, space_key)),
                    date=start_date,
                    start_time=start_time,
                    end_time=end_time,
                    event_name=item.get('itemName') or '',
                    event_type=event_type,
                    room_name=parse_room_name(raw_room),
                    series_id=series_id,
                    reservation_id=reservation_id,
                    resources=list(resources),
                    series_position=positions.get(reservation_id),
                    organization=organization,
                    instructor_names=instructors,
                    lecture_title=lecture_title,
                    updated_at=now,
                ))
        return events

    def _spaces_of(self, item: dict, rsv: dict) -> List[Tuple[str, str]]:
        """
        List (space key, raw room name) for a reservation.

        Falls back to the availability subject the series was listed under
        when the reservation carries no space assignments.
        """
        spaces = []
        for space_rsv in raw_fields.as_list(rsv.get('space_reservation')):
            if not isinstance(space_rsv, dict):
                continue
            space = raw_fields.as_dict(space_rsv.get('space'))
            name = raw_fields.as_str(space.get('space_name'))
            space_id = raw_fields.as_int(space_rsv.get('space_id'))
            if name is None and space_id is None:
                continue
            key = str(space_id) if space_id is not None else name.casefold()
            spaces.append((key, name or ''))

        if spaces:
            return spaces

        subject_id = raw_fields.as_int(item.get('subject_itemId'))
        subject_name = raw_fields.as_str(item.get('subject_itemName')) or ''
        key = str(subject_id) if subject_id is not None else subject_name.casefold()
        return [(key, subject_name)]

    def _parse_resources(self, rsv: dict) -> List[Resource]:
        resources = []
        for resource_rsv in raw_fields.as_list(rsv.get('resource_reservation')):
            if not isinstance(resource_rsv, dict):
                continue
            resource = raw_fields.as_dict(resource_rsv.get('resource'))
            name = raw_fields.as_str(resource.get('resource_name'))
            if not name:
                continue
            instruction = resource_rsv.get('resource_instructions')
            resources.append(Resource(
                item_name=name,
                quantity=raw_fields.as_int(resource_rsv.get('quantity')),
                instruction=instruction if isinstance(instruction, str) else None,
            ))
        return resources

    def compute_series_positions(self, item: dict) -> Dict[int, int]:
        """
        Compute each reservation's 1-based chronological position in its series.

        Returns:
            Mapping of reservation ID to position
        """
        dated = []
        for rsv in raw_fields.reservations_of(item):
            reservation_id = raw_fields.as_int(rsv.get('reservation_id'))
            date, start = split_iso_datetime(
                rsv.get('event_start_dt') or rsv.get('reservation_start_dt')
            )
            if reservation_id is None or not date:
                continue
            dated.append((date, start or '', reservation_id))

        dated.sort()
        return {reservation_id: index + 1 for index, (_, _, reservation_id) in enumerate(dated)}

    def _deduplicate_events(self, events: List[Event]) -> List[Event]:
        """Resolve ID collisions: the event with more resources wins."""
        kept: Dict[int, Event] = {}
        for event in events:
            existing = kept.get(event.id)
            if existing is None:
                kept[event.id] = event
                continue
            winner = event if len(event.resources) > len(existing.resources) else existing
            loser = existing if winner is event else event
            kept[event.id] = winner
            logger.warning(
                f"Event ID collision {event.id}: dropped reservation "
                f"{loser.reservation_id} of series {loser.series_id} in "
                f"'{loser.room_name}'"
            )
        return list(kept.values())

    def partition_events_by_start(
        self,
        events: List[Event],
        now: datetime,
        tz: ZoneInfo
    ) -> Tuple[List[Event], List[Event]]:
        """
        Split events into those not yet started and those already started.

        Args:
            events: Normalized events
            now: Reference time (aware)
            tz: Zone the wall-clock times are interpreted in

        Returns:
            Tuple of (future events, started events)
        """
        future_events, started_events = [], []
        for event in events:
            try:
                started = local_start(event.date, event.start_time, tz) <= now
            except ValueError as e:
                # left as stored rather than rewritten from a bad record
                logger.error(f"Cannot schedule event {event.id}: {e}")
                started = True
            if started:
                started_events.append(event)
            else:
                future_events.append(event)
        return future_events, started_events
