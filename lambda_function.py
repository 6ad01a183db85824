"""AWS Lambda handlers for the natural-language calendar service."""
import json
import logging
import os
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from event_parser.event_parser import EventParser
from event_parser.models import CalendarEvent, DeleteScope
from export.ics_export import generate_filename, generate_ics
from notifications.reminder import ReminderDispatcher
from scheduling.conflict import check_conflict, format_conflict_message
from scheduling.recurrence import expand_recurring_events
from storage.dynamodb_manager import DynamoDBManager

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRIBUTES = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

INVALID_INPUT_MESSAGE = '请输入日程描述'
API_ERROR_MESSAGE = '服务暂时不可用，请稍后重试'


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


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


logger = logging.getLogger(__name__)


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json; charset=utf-8'},
        'body': json.dumps(body, ensure_ascii=False)
    }


def _error(status_code: int, code: str, message: str, **details) -> Dict[str, Any]:
    error = {'code': code, 'message': message}
    error.update(details)
    return _response(status_code, {'success': False, 'error': error})


def _request_line(event: Dict[str, Any]) -> Tuple[str, str]:
    """Return (method, path) for REST (v1) and HTTP (v2) API events."""
    http = event.get('requestContext', {}).get('http', {})
    method = event.get('httpMethod') or http.get('method') or 'POST'
    path = event.get('path') or event.get('rawPath') or '/parse-event'
    return method.upper(), path.rstrip('/') or '/'


def _json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    body = event.get('body')
    if not body:
        return {}
    if not isinstance(body, dict):
        body = json.loads(body)
    if not isinstance(body, dict):
        raise TypeError(f"Request body must be a JSON object, got {type(body).__name__}")
    return body


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = value.strip()
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value).replace(tzinfo=None)


def parse_event_request(
    payload: Dict[str, Any],
    parser: Optional[EventParser] = None
) -> Tuple[int, Dict[str, Any]]:
    """
    Validate a parse request and run the parser.

    Args:
        payload: Request body with ``text`` and optional ``referenceTime``
        parser: EventParser to use (default: a new one)

    Returns:
        Tuple of (HTTP status, discriminated result body)
    """
    text = payload.get('text')
    if not isinstance(text, str) or not text.strip():
        return 400, {
            'success': False,
            'error': {'code': 'INVALID_INPUT', 'message': INVALID_INPUT_MESSAGE}
        }

    parser = parser or EventParser()
    try:
        reference_time = payload.get('referenceTime')
        if reference_time is not None:
            reference_time = _parse_datetime(str(reference_time))
    except ValueError:
        return 400, {
            'success': False,
            'error': {'code': 'INVALID_INPUT', 'message': 'referenceTime 不是有效的 ISO 8601 时间'}
        }

    try:
        parsed = parser.parse(text, reference_time)
    except Exception as e:
        logger.error(
            f"Parse event error: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return 500, {
            'success': False,
            'error': {'code': 'API_ERROR', 'message': API_ERROR_MESSAGE}
        }

    return 200, {'success': True, 'data': parsed.to_dict()}


def _list_events(manager: DynamoDBManager, params: Dict[str, Any], expand_days: int):
    try:
        range_start = _parse_datetime(params.get('start')) or datetime.combine(
            datetime.now().date(), datetime.min.time()
        )
        range_end = _parse_datetime(params.get('end')) or range_start + timedelta(days=expand_days)
    except ValueError as e:
        return _error(400, 'INVALID_INPUT', str(e))

    stored = list(manager.get_all_events().values())
    occurrences = expand_recurring_events(stored, range_start, range_end)
    occurrences.sort(key=lambda occurrence: occurrence.start)

    logger.info(
        f"Expanded {len(stored)} stored events into {len(occurrences)} occurrences",
        extra={'range_start': range_start.isoformat(), 'range_end': range_end.isoformat()}
    )
    return _response(200, {
        'success': True,
        'data': [occurrence.to_dict() for occurrence in occurrences]
    })


def _create_event(manager: DynamoDBManager, payload: Dict[str, Any]):
    data = payload.get('event') or {}
    now = datetime.now()
    try:
        candidate = CalendarEvent.from_dict({
            **data,
            'createdAt': now.isoformat(),
            'updatedAt': now.isoformat(),
            'reminder': payload.get('reminder', data.get('reminder')),
        })
    except (KeyError, ValueError, TypeError) as e:
        return _error(400, 'INVALID_INPUT', f'日程数据无效: {e}')

    day_start = datetime.combine(candidate.start.date(), datetime.min.time())
    existing = [
        occurrence
        for occurrence in expand_recurring_events(
            list(manager.get_all_events().values()), day_start, candidate.end
        )
        if (occurrence.original_event_id or occurrence.id) != candidate.id
    ]
    result = check_conflict(candidate, existing)

    if result.has_conflict and not payload.get('force'):
        logger.info(
            f"Event {candidate.id} conflicts with {len(result.conflicts)} events"
        )
        return _error(
            409,
            'CONFLICT',
            format_conflict_message(result.conflicts),
            conflicts=[conflict.to_dict() for conflict in result.conflicts]
        )

    manager.save_event(candidate)
    return _response(201, {'success': True, 'data': candidate.to_dict()})


def _delete_event(manager: DynamoDBManager, event_id: str, params: Dict[str, Any]):
    try:
        scope = DeleteScope(params.get('scope') or DeleteScope.ALL.value)
        instance_start = _parse_datetime(params.get('instanceStart'))
    except ValueError as e:
        return _error(400, 'INVALID_INPUT', str(e))

    if not manager.delete_event(event_id, scope=scope, instance_start=instance_start):
        return _error(404, 'NOT_FOUND', f'日程 {event_id} 不存在')
    return _response(200, {'success': True, 'data': {'id': event_id, 'scope': scope.value}})


def _export_events(manager: DynamoDBManager) -> Dict[str, Any]:
    content = generate_ics(list(manager.get_all_events().values()))
    return {
        'statusCode': 200,
        'headers': {
            'Content-Type': 'text/calendar; charset=utf-8',
            'Content-Disposition': f'attachment; filename="{generate_filename()}"'
        },
        'body': content
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler for the calendar HTTP API.

    Routes:
        POST /parse-event          parse a phrase into ParsedEventData
        GET /events                stored events expanded over a window
        POST /events               store an event unless it conflicts
        DELETE /events/{id}        delete an event or part of a series
        GET /events/export         all events as an .ics file

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'calendar-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    expand_days = int(os.environ.get('EXPAND_DAYS', '42'))

    setup_logging(log_level)

    start_time = time.time()
    method, path = _request_line(event)
    logger.info(
        f"Request started: {method} {path}",
        extra={'table_name': table_name}
    )

    try:
        payload = _json_body(event) if method in ('POST', 'PUT') else {}
    except (ValueError, TypeError):
        return _error(400, 'INVALID_INPUT', '请求体不是有效的 JSON')
    params = event.get('queryStringParameters') or {}

    try:
        if path.endswith('/parse-event') and method == 'POST':
            status_code, body = parse_event_request(payload)
            response = _response(status_code, body)
        elif path.endswith('/events/export') and method == 'GET':
            response = _export_events(DynamoDBManager(table_name=table_name))
        elif path.endswith('/events') and method == 'GET':
            response = _list_events(DynamoDBManager(table_name=table_name), params, expand_days)
        elif path.endswith('/events') and method == 'POST':
            response = _create_event(DynamoDBManager(table_name=table_name), payload)
        elif '/events/' in path and method == 'DELETE':
            event_id = path.rsplit('/', 1)[-1]
            response = _delete_event(DynamoDBManager(table_name=table_name), event_id, params)
        else:
            response = _error(404, 'NOT_FOUND', f'未知的接口: {method} {path}')

    except Exception as e:
        logger.error(
            f"Request failed: {e}",
            extra={
                'duration_seconds': round(time.time() - start_time, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error(500, 'API_ERROR', API_ERROR_MESSAGE)

    logger.info(
        f"Request completed: {method} {path}",
        extra={
            'status_code': response['statusCode'],
            'duration_seconds': round(time.time() - start_time, 2)
        }
    )
    return response


def reminder_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Scheduled handler sending reminders for events starting soon.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and number of reminders sent
    """
    table_name = os.environ.get('TABLE_NAME', 'calendar-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    webhook_url = os.environ.get('REMINDER_WEBHOOK_URL')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    window_seconds = int(os.environ.get('REMINDER_WINDOW_SECONDS', '60'))

    setup_logging(log_level)

    if not webhook_url:
        logger.warning("REMINDER_WEBHOOK_URL is not set, skipping reminders")
        return {
            'statusCode': 200,
            'body': json.dumps({'message': 'Reminder webhook not configured', 'sent': 0})
        }

    try:
        manager = DynamoDBManager(table_name=table_name)
        dispatcher = ReminderDispatcher(
            webhook_url,
            timeout=timeout_seconds,
            window_seconds=window_seconds
        )

        now = datetime.now()
        occurrences = expand_recurring_events(
            list(manager.get_all_events().values()),
            now - timedelta(hours=1),
            now + timedelta(days=1)
        )
        # Each reminder falls in exactly one schedule window, so the store
        # only has to dedupe occurrences within this run
        notified: Dict[str, datetime] = {}
        sent = dispatcher.check_and_send(occurrences, now, notified)

    except Exception as e:
        logger.error(
            f"Reminder run failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Reminder run failed',
                'error': str(e),
                'error_type': type(e).__name__
            })
        }

    return {
        'statusCode': 200,
        'body': json.dumps({'message': 'Reminders processed', 'sent': sent})
    }
