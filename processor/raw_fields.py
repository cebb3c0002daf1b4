"""Accessors for loosely shaped upstream booking records."""
import re
from typing import Any, List, Optional

ACADEMIC_SESSION_MARKERS = {
    '<p>Academic Session</p>',
    '<p>Academic session</p>',
    '<p>Class Session</p>',
    '<p>Class session</p>',
}
KEC_ORGANIZATIONS = {
    'Kellogg Executive Education Programs',
    'Kellogg Executive MBA Program',
}
CMC_ORGANIZATION = 'RES CMC, KSM'

DETAIL_PANEL_TYPE = 11
INSTRUCTOR_PANEL_TYPES = (12, 13)


def as_list(value: Any) -> list:
    """Upstream nests either a single object or an array; always return a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def as_int(value: Any) -> Optional[int]:
    """Coerce numbers and numeric strings to int; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError):
            # inf and nan
            return None
    return None


def as_dict(value: Any) -> dict:
    """Return the value when it is an object, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def as_str(value: Any) -> Optional[str]:
    """Return a stripped non-empty string, or None."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _item(items: Any, index: int) -> dict:
    items = as_list(items)
    if index < len(items):
        return as_dict(items[index])
    return {}


def _panels(raw: dict) -> List[dict]:
    defn = as_dict(as_dict(raw.get('itemDetails')).get('defn'))
    return [panel for panel in as_list(defn.get('panel')) if isinstance(panel, dict)]


def reservations_of(raw: dict) -> List[dict]:
    """Flatten every reservation across all profiles of a raw series item."""
    occur = as_dict(as_dict(raw.get('itemDetails')).get('occur'))
    reservations = []
    for profile in as_list(occur.get('prof')):
        if not isinstance(profile, dict):
            continue
        for rsv in as_list(profile.get('rsv')):
            if isinstance(rsv, dict):
                reservations.append(rsv)
    return reservations


def get_organization(raw: dict) -> Optional[str]:
    for panel in _panels(raw):
        if panel.get('typeId') == DETAIL_PANEL_TYPE:
            organization = _item(_item(panel.get('item'), 6).get('item'), 0).get('itemName')
            if organization:
                return organization
    return None


def get_event_type(raw: dict) -> Optional[str]:
    """Resolve the event type, folding executive-education and CMC programs."""
    for panel in _panels(raw):
        if panel.get('typeId') != DETAIL_PANEL_TYPE:
            continue
        items = panel.get('item')
        program = _item(_item(items, 6).get('item'), 0).get('itemName')
        if program in KEC_ORGANIZATIONS:
            return 'KEC'
        cmc_program = _item(_item(items, 8).get('item'), 0).get('itemName')
        if cmc_program == CMC_ORGANIZATION:
            return 'CMC'
        event_type = _item(items, 2).get('itemName')
        if event_type:
            return event_type
    return None


def get_lecture_title(raw: dict) -> Optional[str]:
    for panel in _panels(raw):
        if panel.get('typeId') == DETAIL_PANEL_TYPE:
            title = _item(panel.get('item'), 1).get('itemName')
            if title:
                return title
    return None


def _clean_instructor_text(text: Any) -> Optional[List[str]]:
    if not isinstance(text, str):
        return None
    cleaned = re.sub(r'^Instructors:\s*', '', text).strip()
    if (
        len(cleaned) <= 2
        or len(cleaned) >= 100
        or cleaned.startswith('<')
        or '{' in cleaned
        or '}' in cleaned
    ):
        return None
    names = [name.strip() for name in cleaned.split('; ') if name.strip()]
    return names or None


def get_instructor_names(raw: dict) -> Optional[List[str]]:
    for panel in _panels(raw):
        type_id = panel.get('typeId')
        if type_id == INSTRUCTOR_PANEL_TYPES[0]:
            text = _item(panel.get('item'), 0).get('itemName')
        elif type_id == INSTRUCTOR_PANEL_TYPES[1]:
            text = _item(_item(panel.get('item'), 0).get('item'), 0).get('itemName')
        else:
            continue
        names = _clean_instructor_text(text)
        if names:
            return names
    return None


def is_academic_session(raw: dict) -> bool:
    """KEC series only count when their definition marks them as class sessions."""
    panels = _panels(raw)
    if len(panels) < 2:
        return False
    marker = _item(panels[1].get('item'), 0).get('itemName')
    return marker in ACADEMIC_SESSION_MARKERS
