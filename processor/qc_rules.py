"""Rules mapping actions to QC checklist dictionary entries."""
from typing import Callable, Dict, List, Optional, Tuple

from processor.action_rules import CAPTURE_QC, CONFIG, SESSION_SETUP, SET, STAFF_ASSISTANCE, STRIKE
from processor.enrichment import POLLING_CLICKERS, SURFACE_HUB
from processor.models import Action, EnrichedEvent, QcItem
from processor.rooms import COMBINE, UNCOMBINE

Rule = Tuple[Callable[[EnrichedEvent], bool], int]

# Hardware dictionary entry -> (Set QC item, Strike QC item)
HARDWARE_QC_ITEMS = {
    SURFACE_HUB: (13, 19),
    POLLING_CLICKERS: (14, 20),
    'KSM-KGH-AV-Laptop': (15, 21),
}


def _has_hardware(kind: str) -> Callable[[EnrichedEvent], bool]:
    return lambda e: any(hw.other_hardware_dict == kind for hw in e.other_hardware)


def _lapels_over_one(e: EnrichedEvent) -> bool:
    return e.av_config.lapels > 1


def _one_handheld(e: EnrichedEvent) -> bool:
    return e.av_config.handhelds == 1


def _several_handhelds(e: EnrichedEvent) -> bool:
    return e.av_config.handhelds > 1


CAPTURE_QC_BASE_ITEMS = [1, 4, 7]

CAPTURE_QC_RULES: List[Rule] = [
    (lambda e: bool(e.av_config.left_source), 2),
    (lambda e: bool(e.av_config.right_source), 3),
    (lambda e: bool(e.av_config.center_source), 5),
    (
        lambda e: e.first_lecture and not (
            e.recording and 'canvas' in (e.recording.type or '').lower()
        ),
        6,
    ),
]

CONFIG_SET_RULES: List[Rule] = [
    (lambda e: e.event.transform == COMBINE, 8),
    (lambda e: e.event.transform == UNCOMBINE, 9),
    (_lapels_over_one, 10),
    (_one_handheld, 11),
    (_several_handhelds, 12),
] + [(_has_hardware(kind), set_item) for kind, (set_item, _) in HARDWARE_QC_ITEMS.items()]

CONFIG_STRIKE_RULES: List[Rule] = [
    (_lapels_over_one, 16),
    (_one_handheld, 17),
    (_several_handhelds, 18),
] + [(_has_hardware(kind), strike_item) for kind, (_, strike_item) in HARDWARE_QC_ITEMS.items()]

SESSION_SETUP_RULES: List[Rule] = [
    (lambda e: bool(e.av_config.left_source), 22),
    (lambda e: bool(e.av_config.right_source), 23),
    (lambda e: bool(e.av_config.center_source), 24),
    (lambda e: e.first_lecture, 25),
    (lambda e: e.hybrid is not None, 26),
    (lambda e: e.av_config.handhelds > 0 or e.av_config.lapels > 0, 27),
]

# (type, sub type) -> (unconditional items, conditional rules)
QC_RULES: Dict[Tuple[str, Optional[str]], Tuple[List[int], List[Rule]]] = {
    (CAPTURE_QC, None): (CAPTURE_QC_BASE_ITEMS, CAPTURE_QC_RULES),
    (CONFIG, SET): ([], CONFIG_SET_RULES),
    (CONFIG, STRIKE): ([], CONFIG_STRIKE_RULES),
    (STAFF_ASSISTANCE, SESSION_SETUP): ([], SESSION_SETUP_RULES),
}


def make_qc_items(action: Action, enriched: EnrichedEvent) -> List[QcItem]:
    """Return the QC checklist rows an action should carry."""
    base_items, rules = QC_RULES.get((action.type, action.sub_type), ([], []))
    dict_ids = list(base_items)
    for predicate, dict_id in rules:
        if predicate(enriched) and dict_id not in dict_ids:
            dict_ids.append(dict_id)
    return [QcItem(action=action.id, qc_item_dict=dict_id) for dict_id in dict_ids]


def make_qc_items_for_actions(
    actions: List[Action],
    enriched_events: List[EnrichedEvent]
) -> List[QcItem]:
    by_event = {enriched.event.id: enriched for enriched in enriched_events}
    qc_items = []
    for action in actions:
        enriched = by_event.get(action.event)
        if enriched is None:
            continue
        qc_items.extend(make_qc_items(action, enriched))
    return qc_items
