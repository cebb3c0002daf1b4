"""AWS Lambda handler for Room Booking Sync."""
import json
import logging
import os
import time
from datetime import date, datetime, timedelta
from typing import Dict, Any
from zoneinfo import ZoneInfo

from scraper.booking_feed import BookingFeedClient
from processor.batch import build_sync_batch
from processor.event_processor import EventProcessor
from storage.dynamodb_manager import DynamoDBManager


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def resolve_target_date(payload: Dict[str, Any], now: datetime) -> str:
    """
    Pick the date a run synchronizes.

    Args:
        payload: Invocation payload; ``date`` (YYYY-MM-DD) wins over ``offset`` (days)
        now: Current time in the local zone

    Returns:
        Target date as YYYY-MM-DD

    Raises:
        ValueError: If the payload is not an object or its date or offset is malformed
    """
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValueError(f"Invalid payload: {payload!r}")
    if payload.get('date'):
        return date.fromisoformat(str(payload['date'])).isoformat()
    offset = int(payload.get('offset', 0))
    return (now.date() + timedelta(days=offset)).isoformat()


def _error_response(status_code: int, message: str, error: Exception,
                    start_time: float, **extra) -> Dict[str, Any]:
    duration = time.time() - start_time
    body = {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
    }
    body.update(extra)
    body['duration_seconds'] = round(duration, 2)
    return {'statusCode': status_code, 'body': json.dumps(body)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for Room Booking Sync.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    # Read configuration from environment variables
    table_prefix = os.environ.get('TABLE_PREFIX', 'room-ops')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    feed_url = os.environ.get('FEED_URL', 'http://localhost:8080/bookings')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    local_timezone = os.environ.get('LOCAL_TIMEZONE', 'America/Chicago')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'table_prefix': table_prefix,
            'feed_url': feed_url,
            'timeout_seconds': timeout_seconds
        }
    )

    try:
        tz = ZoneInfo(local_timezone)
        now = datetime.now(tz)

        try:
            target_date = resolve_target_date(event, now)
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid invocation payload: {e}")
            return _error_response(400, 'Invalid target date', e, start_time)
        logger.info(f"Target date: {target_date}")

        client = BookingFeedClient(base_url=feed_url, timeout=timeout_seconds)
        dynamodb_manager = DynamoDBManager(table_prefix=table_prefix)

        try:
            logger.info("Fetching series from booking feed")
            raw_series = client.fetch_series(target_date)
            logger.info(f"Fetched {len(raw_series)} raw series from booking feed")
        except Exception as e:
            logger.error(
                f"Failed to fetch booking feed after retries: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response(500, 'Failed to fetch booking feed', e, start_time)

        venues = dynamodb_manager.get_venues()
        faculty = dynamodb_manager.get_faculty()
        processor = EventProcessor(venues=venues)

        logger.info("Processing and validating series")
        series_rows, events = processor.process_series(raw_series, target_date=target_date)
        future_events, started_events = processor.partition_events_by_start(events, now, tz)
        logger.info(
            f"Processed {len(events)} events "
            f"({len(started_events)} already started)"
        )

        batch = build_sync_batch(
            target_date,
            series_rows,
            future_events,
            started_events,
            raw_series=raw_series,
            faculty=faculty,
        )

        try:
            logger.info("Synchronizing with DynamoDB")
            sync_result = dynamodb_manager.sync_batch(batch)
        except Exception as e:
            # Stored rows are left as they were; the next run retries in full
            logger.error(
                f"Error during DynamoDB sync operation: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response(
                500, 'Failed to sync with DynamoDB', e, start_time,
                note='Previous events remain in DynamoDB'
            )

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'rows_added': sync_result.added,
                'rows_updated': sync_result.updated,
                'rows_deleted': sync_result.deleted,
                'errors': sync_result.errors
            }
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Sync completed successfully',
                'target_date': target_date,
                'statistics': {
                    'raw_series_fetched': len(raw_series),
                    'series_processed': len(series_rows),
                    'events_processed': len(events),
                    'events_protected': len(batch.protected_event_ids),
                    'actions_derived': len(batch.actions),
                    'qc_items_derived': len(batch.qc_items),
                    'rows_added': sync_result.added,
                    'rows_updated': sync_result.updated,
                    'rows_deleted': sync_result.deleted,
                    'tables': sync_result.tables,
                    'duration_seconds': round(duration, 2)
                },
                'errors': sync_result.errors
            })
        }

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Sync failed', e, start_time)
