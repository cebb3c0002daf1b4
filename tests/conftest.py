"""Shared fixtures for building raw booking feed items."""
import pytest


def make_reservation(
    reservation_id,
    date='2025-03-10',
    start='09:00:00',
    end='10:00:00',
    resources=(),
    space=None
):
    """
    Build a raw reservation.

    Args:
        resources: Iterable of (resource name, quantity, instructions)
        space: Optional (space id, space name) assignment
    """
    rsv = {
        'reservation_id': reservation_id,
        'reservation_start_dt': f'{date}T{start}-05:00',
        'reservation_end_dt': f'{date}T{end}-05:00',
        'resource_reservation': [
            {
                'resource': {'resource_name': name},
                'quantity': quantity,
                'resource_instructions': instructions,
            }
            for name, quantity, instructions in resources
        ],
    }
    if space is not None:
        space_id, space_name = space
        rsv['space_reservation'] = {
            'space_id': space_id,
            'space': {'space_name': space_name},
        }
    return rsv


def make_raw_series(
    series_id=101,
    name='Finance 430',
    room='KGH1420 (60)',
    room_id=77,
    reservations=None,
    event_type='Lecture',
    organization='Kellogg School of Management',
    instructors='Instructors: Jane Doe; John Roe',
    item_id2=5001
):
    """Build a raw series item as the feed client returns it."""
    if reservations is None:
        reservations = [make_reservation(9001)]
    detail_items = [
        {},
        {'itemName': f'{name} lecture'},
        {'itemName': event_type},
        {},
        {},
        {},
        {'item': [{'itemName': organization}]},
    ]
    return {
        'itemId': series_id,
        'itemId2': item_id2,
        'itemName': name,
        'subject_itemId': room_id,
        'subject_itemName': room,
        'itemDetails': {
            'defn': {
                'panel': [
                    {'typeId': 11, 'item': detail_items},
                    {'typeId': 12, 'item': [{'itemName': instructors}]},
                ]
            },
            'occur': {'prof': {'rsv': reservations}},
        },
    }


@pytest.fixture
def raw_series_factory():
    return make_raw_series


@pytest.fixture
def reservation_factory():
    return make_reservation
