"""Rules that turn enriched events into operator actions."""
from typing import Callable, List, Tuple

from processor.enrichment import find_resource
from processor.identity import compose_action_key, generate_id
from processor.models import Action, EnrichedEvent
from processor.timeutils import adjust_time_by_minutes, format_seconds, parse_time_to_seconds

CONFIG = 'CONFIG'
STAFF_ASSISTANCE = 'STAFF ASSISTANCE'
CAPTURE_QC = 'CAPTURE QC'

SET = 'Set'
STRIKE = 'Strike'
SESSION_SETUP = 'Session Setup'

STAFF_ASSISTANCE_RESOURCE = 'Staff Assistance'

SETUP_LEAD_MINUTES = 7.5
CAPTURE_QC_INTERVAL_SECONDS = 30 * 60


def make_action(enriched: EnrichedEvent, action_type: str, sub_type, start_time: str) -> Action:
    event_id = enriched.event.id
    return Action(
        id=generate_id(*compose_action_key(event_id, action_type, sub_type or start_time)),
        type=action_type,
        sub_type=sub_type,
        start_time=start_time,
        event=event_id,
    )


def needs_config(enriched: EnrichedEvent) -> bool:
    av = enriched.av_config
    return (
        av.lapels > 1
        or av.handhelds >= 1
        or bool(enriched.other_hardware)
        or enriched.event.transform is not None
    )


def emit_config(enriched: EnrichedEvent) -> List[Action]:
    """Set and Strike always travel together."""
    start = adjust_time_by_minutes(enriched.event.start_time, -SETUP_LEAD_MINUTES)
    return [
        make_action(enriched, CONFIG, SET, start),
        make_action(enriched, CONFIG, STRIKE, start),
    ]


def needs_staff_assistance(enriched: EnrichedEvent) -> bool:
    return (
        enriched.hybrid is not None
        or find_resource(enriched.event, STAFF_ASSISTANCE_RESOURCE) is not None
    )


def emit_staff_assistance(enriched: EnrichedEvent) -> List[Action]:
    start = adjust_time_by_minutes(enriched.event.start_time, -SETUP_LEAD_MINUTES)
    return [make_action(enriched, STAFF_ASSISTANCE, SESSION_SETUP, start)]


def needs_capture_qc(enriched: EnrichedEvent) -> bool:
    return enriched.recording is not None


def emit_capture_qc(enriched: EnrichedEvent) -> List[Action]:
    """One check per whole interval that fits between start and end."""
    start = parse_time_to_seconds(enriched.event.start_time)
    end = parse_time_to_seconds(enriched.event.end_time)
    duration = end - start
    if duration <= 0:
        return []

    return [
        make_action(
            enriched,
            CAPTURE_QC,
            None,
            format_seconds(start + index * CAPTURE_QC_INTERVAL_SECONDS),
        )
        for index in range(duration // CAPTURE_QC_INTERVAL_SECONDS)
    ]


ACTION_RULES: List[Tuple[Callable[[EnrichedEvent], bool], Callable[[EnrichedEvent], List[Action]]]] = [
    (needs_config, emit_config),
    (needs_staff_assistance, emit_staff_assistance),
    (needs_capture_qc, emit_capture_qc),
]


def make_actions(enriched: EnrichedEvent) -> List[Action]:
    """
    Evaluate every action rule against one enriched event.

    Raises:
        ValueError: If the event's times are malformed
    """
    actions = []
    for predicate, emit in ACTION_RULES:
        if predicate(enriched):
            actions.extend(emit(enriched))
    return actions
