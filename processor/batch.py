"""Build the full set of rows one sync run reconciles for a target date."""
import logging
from typing import Iterable, List, Optional

from processor import raw_fields
from processor.action_rules import make_actions
from processor.enrichment import enrich_event
from processor.models import (
    Event,
    Faculty,
    ResourceEvent,
    Series,
    SeriesFaculty,
    SyncBatch,
)
from processor.qc_rules import make_qc_items

logger = logging.getLogger(__name__)


def _normalize_quantity(value: Optional[int]) -> int:
    if value is None or value <= 0:
        return 1
    return int(value)


def make_resource_event_rows(events: Iterable[Event]) -> List[ResourceEvent]:
    """Link each event to its distinct resources."""
    rows = []
    seen = set()
    for event in events:
        for resource in event.resources:
            pair = (event.id, resource.item_name)
            if pair in seen:
                continue
            seen.add(pair)
            instructions = resource.instruction.strip() if resource.instruction else None
            rows.append(ResourceEvent(
                event_id=event.id,
                resource_id=resource.item_name,
                quantity=_normalize_quantity(resource.quantity),
                instructions=instructions or None,
            ))
    return rows


def make_series_faculty_rows(
    raw_series: Iterable[dict],
    series_rows: Iterable[Series],
    faculty: Iterable[Faculty]
) -> List[SeriesFaculty]:
    """Link series to faculty whose directory name matches a listed instructor."""
    allowed = {series.id for series in series_rows}
    faculty_by_name = {
        member.twentyfivelive_name.strip(): member.id
        for member in faculty
        if member.twentyfivelive_name and member.twentyfivelive_name.strip()
    }

    rows = []
    seen = set()
    for item in raw_series:
        if not isinstance(item, dict):
            continue
        series_id = raw_fields.as_int(item.get('itemId'))
        if series_id not in allowed:
            continue
        for name in raw_fields.get_instructor_names(item) or []:
            faculty_id = faculty_by_name.get(name.strip())
            if faculty_id is None or (series_id, faculty_id) in seen:
                continue
            seen.add((series_id, faculty_id))
            rows.append(SeriesFaculty(series=series_id, faculty=faculty_id))
    return rows


def build_sync_batch(
    target_date: str,
    series_rows: List[Series],
    future_events: List[Event],
    started_events: List[Event],
    raw_series: Optional[List[dict]] = None,
    faculty: Optional[List[Faculty]] = None
) -> SyncBatch:
    """
    Derive every row a run writes for ``target_date``.

    Events that already started are protected: they are neither rewritten
    nor deleted. An event whose times cannot be scheduled is logged and
    protected the same way.

    Args:
        target_date: Date being synchronized (YYYY-MM-DD)
        series_rows: Series the events belong to
        future_events: Events not started yet
        started_events: Events already under way or finished
        raw_series: Raw series items, used for faculty links
        faculty: Faculty directory

    Returns:
        SyncBatch ready for reconciliation
    """
    batch = SyncBatch(
        target_date=target_date,
        series=list(series_rows),
        protected_event_ids={event.id for event in started_events},
    )

    for event in future_events:
        enriched = enrich_event(event)
        try:
            actions = make_actions(enriched)
            qc_items = [item for action in actions for item in make_qc_items(action, enriched)]
        except ValueError as e:
            logger.error(
                f"Cannot derive actions for event {event.id} "
                f"(series {event.series_id}, reservation {event.reservation_id}): {e}"
            )
            batch.protected_event_ids.add(event.id)
            continue

        batch.events.append(event)
        batch.enriched_events.append(enriched)
        batch.actions.extend(actions)
        batch.qc_items.extend(qc_items)

    batch.resource_events = make_resource_event_rows(batch.events)
    batch.resource_names = sorted({row.resource_id for row in batch.resource_events})
    batch.series_faculty = make_series_faculty_rows(
        raw_series or [], batch.series, faculty or []
    )

    logger.info(
        f"Derived {len(batch.events)} events, {len(batch.actions)} actions and "
        f"{len(batch.qc_items)} QC items for {target_date} "
        f"({len(batch.protected_event_ids)} protected)"
    )
    return batch
