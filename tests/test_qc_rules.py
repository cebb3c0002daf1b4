"""Unit tests for the QC item rules engine."""
from processor.action_rules import CAPTURE_QC, CONFIG, SESSION_SETUP, SET, STAFF_ASSISTANCE, STRIKE, make_action
from processor.enrichment import POLLING_CLICKERS, SURFACE_HUB, enrich_event
from processor.models import Event, Resource
from processor.qc_rules import make_qc_items, make_qc_items_for_actions
from processor.rooms import COMBINE, UNCOMBINE


def make_enriched(resources=(), transform=None, series_position=2):
    event = Event(
        id=42,
        date='2025-03-10',
        start_time='09:00:00',
        end_time='10:00:00',
        event_name='Finance 430',
        event_type='Lecture',
        room_name='GH 1420',
        series_id=101,
        reservation_id=9001,
        resources=list(resources),
        series_position=series_position,
        transform=transform,
    )
    return enrich_event(event)


def dict_ids(action_type, sub_type, enriched, start='08:52:30'):
    action = make_action(enriched, action_type, sub_type, start)
    return [item.qc_item_dict for item in make_qc_items(action, enriched)]


class TestCaptureQcItems:
    """Test cases for recording check items."""

    def test_base_items(self):
        enriched = make_enriched([Resource('Recording - Zoom', 1, None)])

        assert dict_ids(CAPTURE_QC, None, enriched, start='09:00:00') == [1, 4, 7]

    def test_source_items(self):
        enriched = make_enriched([Resource('Recording - Zoom', 1, None)])
        enriched.av_config.left_source = 'PC'
        enriched.av_config.center_source = 'Doc Cam'

        assert dict_ids(CAPTURE_QC, None, enriched) == [1, 4, 7, 2, 5]

    def test_first_lecture_adds_item(self):
        enriched = make_enriched([Resource('Recording - Zoom', 1, None)], series_position=1)

        assert 6 in dict_ids(CAPTURE_QC, None, enriched)

    def test_first_lecture_canvas_recording_excluded(self):
        enriched = make_enriched([Resource('Recording - CANVAS', 1, None)], series_position=1)

        assert 6 not in dict_ids(CAPTURE_QC, None, enriched)


class TestConfigItems:
    """Test cases for setup and strike checklists."""

    def test_transform_items_on_set_only(self):
        assert dict_ids(CONFIG, SET, make_enriched(transform=COMBINE)) == [8]
        assert dict_ids(CONFIG, SET, make_enriched(transform=UNCOMBINE)) == [9]
        assert dict_ids(CONFIG, STRIKE, make_enriched(transform=COMBINE)) == []

    def test_microphone_items(self):
        enriched = make_enriched([
            Resource('Lapel Microphone', 2, None),
            Resource('Handheld Microphone', 1, None),
        ])

        assert dict_ids(CONFIG, SET, enriched) == [10, 11]
        assert dict_ids(CONFIG, STRIKE, enriched) == [16, 17]

    def test_several_handhelds(self):
        enriched = make_enriched([Resource('Handheld Microphone', 2, None)])

        assert dict_ids(CONFIG, SET, enriched) == [12]
        assert dict_ids(CONFIG, STRIKE, enriched) == [18]

    def test_hardware_items(self):
        enriched = make_enriched([
            Resource(SURFACE_HUB, 1, None),
            Resource(POLLING_CLICKERS, 30, None),
            Resource('KSM-KGH-AV-Laptop', 1, None),
        ])

        assert dict_ids(CONFIG, SET, enriched) == [13, 14, 15]
        assert dict_ids(CONFIG, STRIKE, enriched) == [19, 20, 21]

    def test_set_and_strike_ids_disjoint(self):
        enriched = make_enriched([
            Resource('Lapel Microphone', 2, None),
            Resource('Handheld Microphone', 2, None),
            Resource(SURFACE_HUB, 1, None),
        ], transform=COMBINE)

        assert not set(dict_ids(CONFIG, SET, enriched)) & set(dict_ids(CONFIG, STRIKE, enriched))


def test_session_setup_items():
    enriched = make_enriched(
        [Resource('Web Conference', 1, 'Meeting ID: 123'), Resource('Handheld Microphone', 1, None)],
        series_position=1,
    )

    assert dict_ids(STAFF_ASSISTANCE, SESSION_SETUP, enriched) == [25, 26, 27]


def test_qc_items_keyed_by_action():
    enriched = make_enriched([Resource('Recording - Zoom', 1, None)])
    action = make_action(enriched, CAPTURE_QC, None, '09:00:00')

    items = make_qc_items(action, enriched)

    assert {item.action for item in items} == {action.id}
    assert len({item.qc_item_dict for item in items}) == len(items)


def test_qc_items_for_actions_skips_unknown_events():
    enriched = make_enriched([Resource('Recording - Zoom', 1, None)])
    action = make_action(enriched, CAPTURE_QC, None, '09:00:00')
    orphan = make_action(make_enriched(), CAPTURE_QC, None, '09:30:00')
    orphan.event = 7

    items = make_qc_items_for_actions([action, orphan], [enriched])

    assert [item.qc_item_dict for item in items] == [1, 4, 7]
