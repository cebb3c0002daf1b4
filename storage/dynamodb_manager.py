"""DynamoDB manager for reconciling derived rows with stored state."""
import logging
import time
from typing import Dict, Iterable, List, Optional, Set

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from processor.models import (
    Action,
    AVConfig,
    Event,
    Faculty,
    HybridConfig,
    OtherHardware,
    QcItem,
    Recording,
    ResourceEvent,
    Series,
    SeriesFaculty,
    SyncBatch,
    SyncResult,
    Venue,
)
from storage.schema import TABLE_SCHEMAS, table_name

logger = logging.getLogger(__name__)

ACTION_SOURCE = '25Live'
ADDED = 'added'
UPDATED = 'updated'
UNCHANGED = 'unchanged'


def _new_counts() -> Dict[str, int]:
    return {ADDED: 0, UPDATED: 0, UNCHANGED: 0, 'deleted': 0}


class DynamoDBManager:
    """Manager for DynamoDB operations."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit
    EVENT_VOLATILE_FIELDS = {'updated_at'}
    ACTION_RULE_FIELDS = ('type', 'sub_type', 'start_time', 'event', 'source')

    def __init__(self, table_prefix: str, dynamodb=None):
        """
        Initialize DynamoDB resource and table references.

        Args:
            table_prefix: Prefix shared by every table name
            dynamodb: Optional boto3 DynamoDB resource
        """
        self.table_prefix = table_prefix
        self.dynamodb = dynamodb or boto3.resource('dynamodb')
        self.tables = {
            name: self.dynamodb.Table(table_name(table_prefix, name))
            for name in TABLE_SCHEMAS
        }
        logger.info(f"Initialized DynamoDBManager for table prefix: {table_prefix}")

    # Directory reads

    def get_venues(self) -> List[Venue]:
        """Read the venue directory."""
        venues = []
        for item in self._scan('venues'):
            try:
                venues.append(Venue(
                    id=int(item['id']),
                    name=item['name'],
                    spelling=item.get('spelling'),
                ))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed venue row {item!r}: {e}")
        logger.info(f"Loaded {len(venues)} venues")
        return venues

    def get_faculty(self) -> List[Faculty]:
        """Read faculty directory entries that carry a booking-system name."""
        faculty = []
        for item in self._scan('faculty'):
            name = item.get('twentyfivelive_name')
            if not name:
                continue
            faculty.append(Faculty(id=int(item['id']), twentyfivelive_name=name))
        logger.info(f"Loaded {len(faculty)} faculty members")
        return faculty

    def get_events_for_date(self, date: str) -> Dict[int, dict]:
        """
        Retrieve stored events for one date using the date index.

        Returns:
            Dictionary mapping event ID to stored item
        """
        items = self._query('events', IndexName='date-index',
                            KeyConditionExpression=Key('date').eq(date))
        return {int(item['id']): item for item in items}

    # Sync

    def sync_batch(self, batch: SyncBatch) -> SyncResult:
        """
        Reconcile storage with one run's derived rows.

        Steps run in dependency order (series, events, event sub-records and
        links, actions, QC items). Errors propagate: every step is idempotent,
        so a failed run is retried in full.

        Args:
            batch: Rows derived for the target date

        Returns:
            SyncResult with totals and per-table counts
        """
        logger.info(
            f"Starting sync for {batch.target_date} with {len(batch.events)} events"
        )
        tables: Dict[str, Dict[str, int]] = {}
        event_ids = [event.id for event in batch.events]

        def record(name: str, counts: Dict[str, int]) -> None:
            merged = tables.setdefault(name, _new_counts())
            for key, value in counts.items():
                merged[key] += value

        record('series', self.save_series(batch.series))
        record('events', self.save_events(
            batch.events, batch.target_date, batch.protected_event_ids, tables
        ))
        record('event-av-config', self.save_av_configs(
            [enriched.av_config for enriched in batch.enriched_events]
        ))
        record('event-hybrid', self.save_single_rows(
            'event-hybrid',
            [self._hybrid_to_item(e.hybrid) for e in batch.enriched_events if e.hybrid],
            event_ids,
        ))
        record('event-recording', self.save_single_rows(
            'event-recording',
            [self._recording_to_item(e.recording) for e in batch.enriched_events if e.recording],
            event_ids,
        ))
        record('event-other-hardware', self.save_child_rows(
            'event-other-hardware',
            [self._other_hardware_to_item(hw)
             for e in batch.enriched_events for hw in e.other_hardware],
            event_ids,
        ))
        record('resources-dict', self.ensure_resources(batch.resource_names))
        record('resource-events', self.save_child_rows(
            'resource-events',
            [self._resource_event_to_item(row) for row in batch.resource_events],
            event_ids,
        ))
        record('series-faculty', self.save_child_rows(
            'series-faculty',
            [self._series_faculty_to_item(row) for row in batch.series_faculty],
            [series.id for series in batch.series],
        ))
        record('actions', self.save_actions(batch.actions, event_ids, tables))
        record('qc-items', self.save_qc_items(
            batch.qc_items, [action.id for action in batch.actions]
        ))

        result = SyncResult(
            added=sum(counts[ADDED] for counts in tables.values()),
            updated=sum(counts[UPDATED] for counts in tables.values()),
            deleted=sum(counts['deleted'] for counts in tables.values()),
            errors=[],
            tables=tables,
        )
        logger.info(
            f"Sync complete: {result.added} added, {result.updated} updated, "
            f"{result.deleted} deleted"
        )
        return result

    def save_series(self, series_rows: List[Series]) -> Dict[str, int]:
        """Upsert series headers; every field is derived."""
        counts = _new_counts()
        for series in series_rows:
            counts[self._upsert('series', self._series_to_item(series))] += 1
        logger.info(f"Series: {counts[ADDED]} added, {counts[UPDATED]} updated")
        return counts

    def save_events(
        self,
        events: List[Event],
        date: str,
        protected_ids: Iterable[int] = (),
        tables: Optional[Dict[str, Dict[str, int]]] = None
    ) -> Dict[str, int]:
        """
        Synchronize the events of one date.

        Events in the run are added or rewritten when their content changed.
        Stored events for the date that are neither in the run nor protected
        are deleted together with everything derived from them.

        Args:
            events: Events produced by this run
            date: Target date (YYYY-MM-DD)
            protected_ids: Event IDs that must not be deleted
            tables: Per-table counts to record cascaded deletions in

        Returns:
            Counts for the events table
        """
        counts = _new_counts()
        existing_events = self.get_events_for_date(date)
        new_items = {event.id: self._event_to_item(event) for event in events}
        keep_ids = set(new_items) | set(protected_ids)

        items_to_add = [
            item for event_id, item in new_items.items()
            if event_id not in existing_events
        ]
        items_to_update = [
            item for event_id, item in new_items.items()
            if event_id in existing_events
            and self._items_differ(item, existing_events[event_id], self.EVENT_VOLATILE_FIELDS)
        ]
        event_ids_to_delete = [
            event_id for event_id in existing_events
            if event_id not in keep_ids
        ]

        logger.info(
            f"Event sync plan for {date}: {len(items_to_add)} to add, "
            f"{len(items_to_update)} to update, "
            f"{len(event_ids_to_delete)} to delete"
        )

        for event_id in event_ids_to_delete:
            self.delete_event_cascade(event_id, tables)
        counts['deleted'] = len(event_ids_to_delete)

        self._batch_write('events', items_to_add + items_to_update)
        counts[ADDED] = len(items_to_add)
        counts[UPDATED] = len(items_to_update)
        counts[UNCHANGED] = len(new_items) - len(items_to_add) - len(items_to_update)
        return counts

    def delete_event_cascade(
        self,
        event_id: int,
        tables: Optional[Dict[str, Dict[str, int]]] = None
    ) -> None:
        """
        Delete an event after its QC items, actions and sub-records.

        Args:
            event_id: Event to delete
            tables: Per-table counts to record deletions in
        """
        tables = tables if tables is not None else {}

        def record(name: str, count: int) -> None:
            tables.setdefault(name, _new_counts())['deleted'] += count

        actions = self._query('actions', IndexName='event-index',
                              KeyConditionExpression=Key('event').eq(event_id))
        for action in actions:
            record('qc-items', self._delete_qc_items_for_action(int(action['id'])))
        self._batch_delete('actions', [{'id': action['id']} for action in actions])
        record('actions', len(actions))

        for name in ('event-hybrid', 'event-av-config', 'event-recording'):
            if self._delete_item(name, {'event': event_id}):
                record(name, 1)
        for name in ('event-other-hardware', 'resource-events'):
            children = self._query_children(name, event_id)
            self._batch_delete(name, [self._key_of(name, child) for child in children])
            record(name, len(children))

        self._delete_item('events', {'id': event_id})
        logger.info(f"Deleted orphaned event {event_id} with {len(actions)} actions")

    def save_av_configs(self, av_configs: List[AVConfig]) -> Dict[str, int]:
        """Upsert every AV config field; operators edit these elsewhere."""
        counts = _new_counts()
        for av_config in av_configs:
            counts[self._upsert('event-av-config', self._av_config_to_item(av_config))] += 1
        return counts

    def save_single_rows(
        self,
        name: str,
        items: List[dict],
        event_ids: Iterable[int]
    ) -> Dict[str, int]:
        """
        Upsert at-most-one-per-event rows and delete them for events that lost them.

        Args:
            name: Logical table name keyed by ``event``
            items: Rows present in this run
            event_ids: Events in scope for this run
        """
        counts = _new_counts()
        present = set()
        for item in items:
            counts[self._upsert(name, item)] += 1
            present.add(item['event'])

        for event_id in event_ids:
            if event_id not in present and self._delete_item(name, {'event': event_id}):
                counts['deleted'] += 1
        return counts

    def save_child_rows(
        self,
        name: str,
        items: List[dict],
        parent_ids: Iterable[int]
    ) -> Dict[str, int]:
        """
        Make the children of each parent match exactly the given rows.

        Args:
            name: Logical table name with (parent HASH, child RANGE) keys
            items: Rows present in this run
            parent_ids: Parents in scope for this run
        """
        counts = _new_counts()
        parent_attr = self._key_attrs(name)[0]
        wanted = set()
        for item in items:
            counts[self._upsert(name, item)] += 1
            wanted.add(self._key_tuple(name, item))

        for parent_id in parent_ids:
            stale = [
                self._key_of(name, child)
                for child in self._query(name, KeyConditionExpression=Key(parent_attr).eq(parent_id))
                if self._key_tuple(name, child) not in wanted
            ]
            self._batch_delete(name, stale)
            counts['deleted'] += len(stale)
        return counts

    def ensure_resources(self, resource_names: List[str]) -> Dict[str, int]:
        """Add unseen resource names to the resource dictionary; existing entries are left alone."""
        counts = _new_counts()
        for name in resource_names:
            item = {'id': name, 'name': name, 'is_av': False}
            if self._insert_if_absent('resources-dict', item, 'id'):
                counts[ADDED] += 1
        return counts

    def save_actions(
        self,
        actions: List[Action],
        event_ids: Iterable[int],
        tables: Optional[Dict[str, Dict[str, int]]] = None
    ) -> Dict[str, int]:
        """
        Upsert actions without touching operator-owned fields, then drop stale ones.

        Only the rules-owned fields are written on conflict; ``status`` and
        ``created_at`` are set only when the action is new. Stored actions
        from this source that belong to in-scope events but were not derived
        in this run are deleted along with their QC items.

        Args:
            actions: Actions derived in this run
            event_ids: Events in scope for cleanup
            tables: Per-table counts to record cascaded QC deletions in

        Returns:
            Counts for the actions table
        """
        counts = _new_counts()
        now = int(time.time())
        for action in actions:
            counts[self._upsert_action(action, now)] += 1

        current_ids = {action.id for action in actions}
        qc_deleted = 0
        for event_id in event_ids:
            stored = self._query('actions', IndexName='event-index',
                                 KeyConditionExpression=Key('event').eq(event_id))
            stale = [
                item for item in stored
                if item.get('source') == ACTION_SOURCE and int(item['id']) not in current_ids
            ]
            for item in stale:
                qc_deleted += self._delete_qc_items_for_action(int(item['id']))
            self._batch_delete('actions', [{'id': item['id']} for item in stale])
            counts['deleted'] += len(stale)

        if tables is not None and qc_deleted:
            tables.setdefault('qc-items', _new_counts())['deleted'] += qc_deleted
        logger.info(
            f"Actions: {counts[ADDED]} added, {counts[UPDATED]} updated, "
            f"{counts['deleted']} deleted"
        )
        return counts

    def save_qc_items(self, qc_items: List[QcItem], action_ids: Iterable[int]) -> Dict[str, int]:
        """
        Insert missing QC items and delete pairs the rules no longer produce.

        Existing items are never rewritten, preserving operator input.

        Args:
            qc_items: QC items derived in this run
            action_ids: Actions whose checklists are authoritative in this run
        """
        counts = _new_counts()
        now = int(time.time())
        wanted = set()
        for qc_item in qc_items:
            wanted.add((qc_item.action, qc_item.qc_item_dict))
            item = {
                'action': qc_item.action,
                'qc_item_dict': qc_item.qc_item_dict,
                'status': None,
                'sn_ticket': None,
                'waived': None,
                'waived_reason': None,
                'fail_mode': None,
                'created_at': now,
            }
            if self._insert_if_absent('qc-items', item, 'action'):
                counts[ADDED] += 1

        for action_id in set(action_ids):
            stale = [
                self._key_of('qc-items', item)
                for item in self._query('qc-items', KeyConditionExpression=Key('action').eq(action_id))
                if (int(item['action']), int(item['qc_item_dict'])) not in wanted
            ]
            self._batch_delete('qc-items', stale)
            counts['deleted'] += len(stale)

        logger.info(f"QC items: {counts[ADDED]} added, {counts['deleted']} deleted")
        return counts

    # Low-level helpers

    def _upsert(self, name: str, item: dict) -> str:
        """Put an item and report whether it was new, changed or identical."""
        response = self.tables[name].put_item(Item=item, ReturnValues='ALL_OLD')
        old = response.get('Attributes')
        if not old:
            return ADDED
        return UPDATED if self._items_differ(item, old) else UNCHANGED

    def _upsert_action(self, action: Action, now: int) -> str:
        response = self.tables['actions'].update_item(
            Key={'id': action.id},
            UpdateExpression=(
                'SET #type = :type, sub_type = :sub_type, start_time = :start_time, '
                '#event = :event, #source = :source, '
                '#status = if_not_exists(#status, :status), '
                'created_at = if_not_exists(created_at, :now)'
            ),
            ExpressionAttributeNames={
                '#type': 'type',
                '#event': 'event',
                '#source': 'source',
                '#status': 'status',
            },
            ExpressionAttributeValues={
                ':type': action.type,
                ':sub_type': action.sub_type,
                ':start_time': action.start_time,
                ':event': action.event,
                ':source': action.source,
                ':status': action.status,
                ':now': now,
            },
            ReturnValues='ALL_OLD',
        )
        old = response.get('Attributes')
        if not old:
            return ADDED
        new_fields = {field: getattr(action, field) for field in self.ACTION_RULE_FIELDS}
        old_fields = {field: old.get(field) for field in self.ACTION_RULE_FIELDS}
        return UPDATED if self._items_differ(new_fields, old_fields) else UNCHANGED

    def _insert_if_absent(self, name: str, item: dict, key_attr: str) -> bool:
        try:
            self.tables[name].put_item(
                Item=item,
                ConditionExpression='attribute_not_exists(#key)',
                ExpressionAttributeNames={'#key': key_attr},
            )
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                return False
            logger.error(f"Error inserting into {name}: {e}")
            raise

    def _delete_item(self, name: str, key: dict) -> bool:
        response = self.tables[name].delete_item(Key=key, ReturnValues='ALL_OLD')
        return bool(response.get('Attributes'))

    def _delete_qc_items_for_action(self, action_id: int) -> int:
        items = self._query('qc-items', KeyConditionExpression=Key('action').eq(action_id))
        self._batch_delete('qc-items', [self._key_of('qc-items', item) for item in items])
        return len(items)

    def _query_children(self, name: str, parent_id: int) -> List[dict]:
        parent_attr = self._key_attrs(name)[0]
        return self._query(name, KeyConditionExpression=Key(parent_attr).eq(parent_id))

    def _scan(self, name: str) -> List[dict]:
        table = self.tables[name]
        try:
            response = table.scan()
            items = response.get('Items', [])
            while 'LastEvaluatedKey' in response:
                response = table.scan(ExclusiveStartKey=response['LastEvaluatedKey'])
                items.extend(response.get('Items', []))
            return items
        except ClientError as e:
            logger.error(f"Error scanning {table.name}: {e}")
            raise

    def _query(self, name: str, **kwargs) -> List[dict]:
        table = self.tables[name]
        try:
            response = table.query(**kwargs)
            items = response.get('Items', [])
            while 'LastEvaluatedKey' in response:
                response = table.query(ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs)
                items.extend(response.get('Items', []))
            return items
        except ClientError as e:
            logger.error(f"Error querying {table.name}: {e}")
            raise

    def _batch_write(self, name: str, items: List[dict]) -> int:
        """
        Write items in batches of 25.

        Returns:
            Count of written items
        """
        if not items:
            return 0

        table = self.tables[name]
        for i in range(0, len(items), self.BATCH_SIZE):
            batch = items[i:i + self.BATCH_SIZE]
            try:
                with table.batch_writer() as writer:
                    for item in batch:
                        writer.put_item(Item=item)
            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.BATCH_SIZE + 1} to {table.name}: {e}"
                )
                raise
        return len(items)

    def _batch_delete(self, name: str, keys: List[dict]) -> int:
        """
        Delete items by key in batches of 25.

        Returns:
            Count of deleted keys
        """
        if not keys:
            return 0

        table = self.tables[name]
        for i in range(0, len(keys), self.BATCH_SIZE):
            batch = keys[i:i + self.BATCH_SIZE]
            try:
                with table.batch_writer() as writer:
                    for key in batch:
                        writer.delete_item(Key=key)
            except ClientError as e:
                logger.error(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1} from {table.name}: {e}"
                )
                raise
        return len(keys)

    def _key_attrs(self, name: str) -> List[str]:
        return [attr for attr, _ in TABLE_SCHEMAS[name]['keys']]

    def _key_of(self, name: str, item: dict) -> dict:
        return {attr: item[attr] for attr in self._key_attrs(name)}

    def _key_tuple(self, name: str, item: dict) -> tuple:
        # stored numbers come back as Decimal
        return tuple(
            int(item[attr]) if TABLE_SCHEMAS[name]['attributes'][attr] == 'N' else item[attr]
            for attr in self._key_attrs(name)
        )

    def _items_differ(self, new_item: dict, old_item: dict, ignore: Set[str] = frozenset()) -> bool:
        """
        Compare a new item with a stored one.

        Stored numbers come back as Decimal, which compare equal to ints.
        """
        keys = (set(new_item) | set(old_item)) - set(ignore)
        return any(new_item.get(key) != old_item.get(key) for key in keys)

    # Item conversion

    def _series_to_item(self, series: Series) -> dict:
        return {
            'id': series.id,
            'series_name': series.series_name,
            'series_type': series.series_type,
            'total_events': series.total_events,
            'first_date': series.first_date,
            'last_date': series.last_date,
        }

    def _event_to_item(self, event: Event) -> dict:
        """
        Convert an Event to a DynamoDB item.

        Args:
            event: Event object

        Returns:
            DynamoDB item dictionary
        """
        return {
            'id': event.id,
            'date': event.date,
            'start_time': event.start_time,
            'end_time': event.end_time,
            'event_name': event.event_name,
            'event_type': event.event_type,
            'room_name': event.room_name,
            'venue': event.venue_id,
            'series': event.series_id,
            'reservation_id': event.reservation_id,
            'series_pos': event.series_position,
            'transform': event.transform,
            'resources': [
                {
                    'item_name': resource.item_name,
                    'quantity': resource.quantity,
                    'instruction': resource.instruction,
                }
                for resource in event.resources
            ],
            'organization': event.organization,
            'instructor_names': event.instructor_names,
            'lecture_title': event.lecture_title,
            'updated_at': event.updated_at,
        }

    def _hybrid_to_item(self, hybrid: HybridConfig) -> dict:
        return {
            'event': hybrid.event,
            'meeting_id': hybrid.meeting_id,
            'meeting_link': hybrid.meeting_link,
            'instructions': hybrid.instructions,
        }

    def _av_config_to_item(self, av_config: AVConfig) -> dict:
        return {
            'event': av_config.event,
            'handhelds': av_config.handhelds,
            'lapels': av_config.lapels,
            'left_source': av_config.left_source,
            'right_source': av_config.right_source,
            'center_source': av_config.center_source,
            'left_device': av_config.left_device,
            'right_device': av_config.right_device,
            'center_device': av_config.center_device,
            'clicker': av_config.clicker,
        }

    def _other_hardware_to_item(self, hardware: OtherHardware) -> dict:
        return {
            'event': hardware.event,
            'other_hardware_dict': hardware.other_hardware_dict,
            'quantity': hardware.quantity,
            'instructions': hardware.instructions,
        }

    def _recording_to_item(self, recording: Recording) -> dict:
        return {
            'event': recording.event,
            'type': recording.type,
            'instructions': recording.instructions,
        }

    def _resource_event_to_item(self, row: ResourceEvent) -> dict:
        return {
            'event_id': row.event_id,
            'resource_id': row.resource_id,
            'quantity': row.quantity,
            'instructions': row.instructions,
        }

    def _series_faculty_to_item(self, row: SeriesFaculty) -> dict:
        return {'series': row.series, 'faculty': row.faculty}
