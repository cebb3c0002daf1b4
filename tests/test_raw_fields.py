"""Unit tests for raw feed field coercion."""
import pytest

from processor import raw_fields


@pytest.mark.parametrize('value', ['inf', '-inf', 'nan', float('inf'), float('nan'), '1e400'])
def test_as_int_rejects_non_finite(value):
    assert raw_fields.as_int(value) is None


@pytest.mark.parametrize('value, expected', [(3, 3), ('4', 4), (' 2.0 ', 2), (1.9, 1), (True, None), ('two', None), (None, None)])
def test_as_int(value, expected):
    assert raw_fields.as_int(value) == expected


def test_reservations_of_ignores_non_object_nesting(raw_series_factory):
    raw = raw_series_factory()
    raw['itemDetails'] = 'n/a'

    assert raw_fields.reservations_of(raw) == []
    assert raw_fields.get_event_type(raw) is None
    assert raw_fields.get_instructor_names(raw) is None


def test_panel_lookups_skip_non_object_items(raw_series_factory):
    raw = raw_series_factory()
    raw['itemDetails']['defn']['panel'][0]['item'] = ['x', 'y', 'Lecture']

    assert raw_fields.get_event_type(raw) is None
    assert raw_fields.get_organization(raw) is None
    assert raw_fields.get_instructor_names(raw) == ['Jane Doe', 'John Roe']
