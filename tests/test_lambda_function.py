"""Integration tests for Lambda handler."""
import json
import logging
import os
from datetime import datetime
from unittest.mock import Mock, patch
from zoneinfo import ZoneInfo

import pytest

from lambda_function import JsonFormatter, lambda_handler, resolve_target_date, setup_logging
from processor.models import Event, Resource, Series, SyncResult


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'TABLE_PREFIX': 'test-room-ops',
        'LOG_LEVEL': 'INFO',
        'FEED_URL': 'https://bookings.example.edu/feed',
        'TIMEOUT_SECONDS': '30',
        'LOCAL_TIMEZONE': 'America/Chicago'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.memory_limit_in_mb = 512
    context.invoked_function_arn = 'arn:aws:lambda:us-east-1:123456789012:function:test-function'
    context.aws_request_id = 'test-request-id'
    return context


@pytest.fixture
def sample_series():
    return [Series(101, 'Finance 430', 'Lecture', 10, '2030-01-07', '2030-03-11')]


@pytest.fixture
def sample_events():
    """Create sample normalized events."""
    return [
        Event(
            id=1,
            date='2030-01-15',
            start_time='09:00:00',
            end_time='10:30:00',
            event_name='Finance 430',
            event_type='Lecture',
            room_name='GH 1110',
            series_id=101,
            reservation_id=9001,
            resources=[Resource('Recording - Zoom', 1, None)],
        ),
        Event(
            id=2,
            date='2030-01-15',
            start_time='13:00:00',
            end_time='14:00:00',
            event_name='Finance 430',
            event_type='Lecture',
            room_name='GH 2110',
            series_id=101,
            reservation_id=9002,
        ),
    ]


def wire_mocks(mock_client_class, mock_processor_class, mock_dynamodb_class,
               raw_series, series_rows, events, sync_result=None):
    mock_client = Mock()
    mock_client.fetch_series.return_value = raw_series
    mock_client_class.return_value = mock_client

    mock_processor = Mock()
    mock_processor.process_series.return_value = (series_rows, events)
    mock_processor.partition_events_by_start.return_value = (events, [])
    mock_processor_class.return_value = mock_processor

    mock_dynamodb = Mock()
    mock_dynamodb.get_venues.return_value = []
    mock_dynamodb.get_faculty.return_value = []
    mock_dynamodb.sync_batch.return_value = sync_result or SyncResult(
        added=12,
        updated=0,
        deleted=0,
        errors=[],
        tables={'events': {'added': 2, 'updated': 0, 'unchanged': 0, 'deleted': 0}}
    )
    mock_dynamodb_class.return_value = mock_dynamodb
    return mock_client, mock_processor, mock_dynamodb


class TestLambdaHandler:
    """Test cases for Lambda handler."""

    @patch('lambda_function.DynamoDBManager')
    @patch('lambda_function.EventProcessor')
    @patch('lambda_function.BookingFeedClient')
    def test_successful_sync(
        self,
        mock_client_class,
        mock_processor_class,
        mock_dynamodb_class,
        mock_env,
        mock_context,
        sample_series,
        sample_events
    ):
        """Test successful end-to-end sync process."""
        raw_series = [{'itemId': 101}]
        mock_client, mock_processor, mock_dynamodb = wire_mocks(
            mock_client_class, mock_processor_class, mock_dynamodb_class,
            raw_series, sample_series, sample_events
        )

        response = lambda_handler({'date': '2030-01-15'}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'Sync completed successfully'
        assert body['target_date'] == '2030-01-15'
        stats = body['statistics']
        assert stats['raw_series_fetched'] == 1
        assert stats['series_processed'] == 1
        assert stats['events_processed'] == 2
        # three capture checks for the 90 minute recorded event
        assert stats['actions_derived'] == 3
        assert stats['rows_added'] == 12
        assert stats['tables']['events']['added'] == 2
        assert 'duration_seconds' in stats

        mock_client_class.assert_called_once_with(
            base_url='https://bookings.example.edu/feed', timeout=30
        )
        mock_dynamodb_class.assert_called_once_with(table_prefix='test-room-ops')
        mock_client.fetch_series.assert_called_once_with('2030-01-15')
        mock_processor.process_series.assert_called_once_with(raw_series, target_date='2030-01-15')
        batch = mock_dynamodb.sync_batch.call_args.args[0]
        assert batch.target_date == '2030-01-15'
        assert [e.id for e in batch.events] == [1, 2]

    @patch('lambda_function.DynamoDBManager')
    @patch('lambda_function.EventProcessor')
    @patch('lambda_function.BookingFeedClient')
    def test_feed_fetch_failure(
        self,
        mock_client_class,
        mock_processor_class,
        mock_dynamodb_class,
        mock_env,
        mock_context
    ):
        """Test error handling for feed fetch failures."""
        mock_client = Mock()
        mock_client.fetch_series.side_effect = Exception('Network error')
        mock_client_class.return_value = mock_client

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Failed to fetch booking feed'
        assert 'Network error' in body['error']
        assert body['error_type'] == 'Exception'
        assert 'duration_seconds' in body
        assert not mock_dynamodb_class.return_value.sync_batch.called
        assert not mock_processor_class.called

    @patch('lambda_function.DynamoDBManager')
    @patch('lambda_function.EventProcessor')
    @patch('lambda_function.BookingFeedClient')
    def test_dynamodb_sync_failure(
        self,
        mock_client_class,
        mock_processor_class,
        mock_dynamodb_class,
        mock_env,
        mock_context,
        sample_series,
        sample_events
    ):
        """Test error handling for DynamoDB sync failures."""
        _, _, mock_dynamodb = wire_mocks(
            mock_client_class, mock_processor_class, mock_dynamodb_class,
            [{'itemId': 101}], sample_series, sample_events
        )
        mock_dynamodb.sync_batch.side_effect = Exception('DynamoDB error')

        response = lambda_handler({'date': '2030-01-15'}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Failed to sync with DynamoDB'
        assert 'DynamoDB error' in body['error']
        assert body['note'] == 'Previous events remain in DynamoDB'

    @patch('lambda_function.DynamoDBManager')
    @patch('lambda_function.EventProcessor')
    @patch('lambda_function.BookingFeedClient')
    def test_invalid_date_payload(
        self,
        mock_client_class,
        mock_processor_class,
        mock_dynamodb_class,
        mock_env,
        mock_context
    ):
        """An unparseable target date is rejected before any work."""
        response = lambda_handler({'date': '2030-13-45'}, mock_context)

        assert response['statusCode'] == 400
        body = json.loads(response['body'])
        assert body['message'] == 'Invalid target date'
        assert not mock_client_class.called

    @patch('lambda_function.DynamoDBManager')
    @patch('lambda_function.EventProcessor')
    @patch('lambda_function.BookingFeedClient')
    def test_non_object_payload(
        self,
        mock_client_class,
        mock_processor_class,
        mock_dynamodb_class,
        mock_env,
        mock_context
    ):
        """A list payload is rejected as a bad request."""
        response = lambda_handler(['2030-01-15'], mock_context)

        assert response['statusCode'] == 400
        body = json.loads(response['body'])
        assert body['message'] == 'Invalid target date'
        assert body['error_type'] == 'ValueError'
        assert not mock_client_class.called

    @patch('lambda_function.DynamoDBManager')
    @patch('lambda_function.EventProcessor')
    @patch('lambda_function.BookingFeedClient')
    @patch('lambda_function.setup_logging')
    def test_logging_output(
        self,
        mock_setup_logging,
        mock_client_class,
        mock_processor_class,
        mock_dynamodb_class,
        mock_env,
        mock_context,
        sample_series,
        sample_events,
        caplog
    ):
        """Test that logging output is generated correctly."""
        wire_mocks(
            mock_client_class, mock_processor_class, mock_dynamodb_class,
            [{'itemId': 101}], sample_series, sample_events
        )

        with caplog.at_level(logging.INFO, logger='lambda_function'):
            response = lambda_handler({'offset': 1}, mock_context)

        assert response['statusCode'] == 200
        log_messages = [record.message for record in caplog.records]
        assert any('Lambda execution started' in msg for msg in log_messages)
        assert any('Fetching series from booking feed' in msg for msg in log_messages)
        assert any('Synchronizing with DynamoDB' in msg for msg in log_messages)
        assert any('Lambda execution completed successfully' in msg for msg in log_messages)


class TestResolveTargetDate:
    """Test cases for target date resolution."""

    now = datetime(2030, 1, 15, 23, 30, tzinfo=ZoneInfo('America/Chicago'))

    def test_defaults_to_today(self):
        assert resolve_target_date({}, self.now) == '2030-01-15'
        assert resolve_target_date(None, self.now) == '2030-01-15'

    def test_offset(self):
        assert resolve_target_date({'offset': 1}, self.now) == '2030-01-16'
        assert resolve_target_date({'offset': '-2'}, self.now) == '2030-01-13'

    def test_explicit_date_wins(self):
        assert resolve_target_date({'date': '2030-02-01', 'offset': 3}, self.now) == '2030-02-01'

    @pytest.mark.parametrize('payload', [{'date': 'tomorrow'}, {'offset': 'soon'}, ['2030-01-15'], '2030-01-15'])
    def test_invalid_payload(self, payload):
        with pytest.raises(ValueError):
            resolve_target_date(payload, self.now)


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_installs_json_formatter(self):
        setup_logging('ERROR')
        root_logger = logging.getLogger()
        assert root_logger.level == logging.ERROR
        assert isinstance(root_logger.handlers[0].formatter, JsonFormatter)

    def test_json_formatter_output(self):
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'hello %s', ('world',), None)

        payload = json.loads(JsonFormatter().format(record))

        assert payload['message'] == 'hello world'
        assert payload['level'] == 'INFO'
        assert payload['logger'] == 'x'
