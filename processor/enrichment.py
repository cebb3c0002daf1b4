"""Derive per-event configuration sub-records from resource descriptors."""
import re
from typing import List, Optional

from processor.models import (
    AVConfig,
    EnrichedEvent,
    Event,
    HybridConfig,
    OtherHardware,
    Recording,
    Resource,
)

WEB_CONFERENCE = 'Web Conference'
LAPEL = 'Lapel'
HANDHELD = 'Handheld'
RECORDING = 'Recording'

LAPTOP = 'Laptop'
SURFACE_HUB = 'KSM-KGH-AV-Surface Hub'
POLLING_CLICKERS = 'KSM-KGH-AV-SRS Clickers (polling)'
OTHER_HARDWARE_MARKERS = (LAPTOP, SURFACE_HUB, POLLING_CLICKERS)

MAX_LAPELS = 2
MAX_HANDHELDS = 2
DEFAULT_LAPELS = 1

MEETING_LINK_BASE = 'https://northwestern.zoom.us/j/'

_MEETING_ID = re.compile(r'Meeting ID:\s*([\d ]+)', re.IGNORECASE)
_MEETING_LINK = re.compile(
    r'Meeting LINK:\s*(https://northwestern\.zoom\.us/(?:j|s)/\d+)', re.IGNORECASE
)
_MEETING_ID_LINE = re.compile(r'^[ \t]*Meeting\s+ID:[ \t]*[\d \t]+$', re.IGNORECASE | re.MULTILINE)
_MEETING_LINK_LINE = re.compile(
    r'^[ \t]*Meeting\s+LINK:[ \t]*https://northwestern\.zoom\.us/(?:j|s)/\d+[ \t]*$',
    re.IGNORECASE | re.MULTILINE,
)


def find_resource(event: Event, marker: str) -> Optional[Resource]:
    return next((r for r in event.resources if marker in r.item_name), None)


def parse_meeting_details(instruction: str) -> tuple[Optional[int], Optional[str]]:
    """
    Extract the meeting ID and link from web conference instructions.

    A bare meeting ID yields a canonical join link when no link is given.
    """
    id_match = _MEETING_ID.search(instruction)
    meeting_id_digits = re.sub(r'\s+', '', id_match.group(1)) if id_match else ''
    meeting_id = int(meeting_id_digits) if meeting_id_digits else None

    link_match = _MEETING_LINK.search(instruction)
    if link_match:
        meeting_link = link_match.group(1)
    elif meeting_id_digits:
        meeting_link = f"{MEETING_LINK_BASE}{meeting_id_digits}"
    else:
        meeting_link = None
    return meeting_id, meeting_link


def strip_meeting_details(instruction: Optional[str]) -> Optional[str]:
    """Remove the meeting ID/link lines shown elsewhere to operators."""
    if not instruction:
        return None
    cleaned = _MEETING_LINK_LINE.sub('', _MEETING_ID_LINE.sub('', instruction)).strip()
    return cleaned or None


def compute_hybrid(event: Event) -> Optional[HybridConfig]:
    resource = find_resource(event, WEB_CONFERENCE)
    if resource is None:
        return None
    meeting_id, meeting_link = parse_meeting_details(resource.instruction or '')
    return HybridConfig(
        event=event.id,
        meeting_id=meeting_id,
        meeting_link=meeting_link,
        instructions=strip_meeting_details(resource.instruction),
    )


def compute_av_config(event: Event) -> AVConfig:
    """Every room has AV; microphone counts are capped at the operational limit."""
    lapel = find_resource(event, LAPEL)
    handheld = find_resource(event, HANDHELD)

    lapels = min(lapel.quantity or 0, MAX_LAPELS) if lapel else 0
    handhelds = min(handheld.quantity or 0, MAX_HANDHELDS) if handheld else 0

    return AVConfig(
        event=event.id,
        handhelds=max(handhelds, 0),
        lapels=lapels if lapels > 0 else DEFAULT_LAPELS,
    )


def compute_other_hardware(event: Event) -> List[OtherHardware]:
    rows = []
    seen = set()
    for resource in event.resources:
        if not any(marker in resource.item_name for marker in OTHER_HARDWARE_MARKERS):
            continue
        # one row per (event, hardware kind)
        if resource.item_name in seen:
            continue
        seen.add(resource.item_name)
        rows.append(OtherHardware(
            event=event.id,
            other_hardware_dict=resource.item_name,
            quantity=resource.quantity or 1,
            instructions=resource.instruction,
        ))
    return rows


def compute_recording(event: Event) -> Optional[Recording]:
    resource = find_resource(event, RECORDING)
    if resource is None:
        return None
    return Recording(event=event.id, type=resource.item_name, instructions=resource.instruction)


def is_first_lecture(event: Event) -> bool:
    return event.event_type == 'Lecture' and event.series_position == 1


def enrich_event(event: Event) -> EnrichedEvent:
    return EnrichedEvent(
        event=event,
        av_config=compute_av_config(event),
        other_hardware=compute_other_hardware(event),
        hybrid=compute_hybrid(event),
        recording=compute_recording(event),
        first_lecture=is_first_lecture(event),
    )
