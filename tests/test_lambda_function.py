"""Integration tests for Lambda handlers."""
import json
import logging
import os
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

import pytest

from event_parser.models import CalendarEvent, DeleteScope, EventType
from lambda_function import JsonFormatter, lambda_handler, parse_event_request, reminder_handler, setup_logging


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'TABLE_NAME': 'test-calendar-events',
        'LOG_LEVEL': 'INFO',
        'EXPAND_DAYS': '42',
        'TIMEOUT_SECONDS': '30'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.memory_limit_in_mb = 256
    context.invoked_function_arn = 'arn:aws:lambda:us-east-1:123456789012:function:test-function'
    context.aws_request_id = 'test-request-id'
    return context


@pytest.fixture
def stored_event():
    """Create a stored event occupying 15:00-16:00."""
    start = datetime(2024, 1, 2, 15, 0)
    return CalendarEvent(
        id='evt_stored01',
        title='周会',
        start=start,
        end=start + timedelta(hours=1),
        type=EventType.MEETING,
        created_at=datetime(2024, 1, 1),
        updated_at=datetime(2024, 1, 1)
    )


@pytest.fixture
def mock_manager(stored_event):
    """Patch DynamoDBManager with a mock holding one stored event."""
    with patch('lambda_function.DynamoDBManager') as mock_class:
        manager = Mock()
        manager.get_all_events.return_value = {stored_event.id: stored_event}
        mock_class.return_value = manager
        yield manager


def api_event(method, path, body=None, params=None):
    event = {'httpMethod': method, 'path': path}
    if body is not None:
        event['body'] = json.dumps(body, ensure_ascii=False)
    if params is not None:
        event['queryStringParameters'] = params
    return event


def new_event_payload(start, end, **extra):
    payload = {
        'event': {
            'id': 'evt_new00001',
            'title': '讨论项目',
            'start': start.isoformat(),
            'end': end.isoformat(),
            'type': 'meeting'
        }
    }
    payload.update(extra)
    return payload


class TestParseEvent:
    """Test cases for the parse endpoint."""

    def test_parse_success(self, mock_env, mock_context):
        event = api_event('POST', '/parse-event', {
            'text': '明天下午3点开会',
            'referenceTime': '2024-01-01T00:00:00'
        })

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['success'] is True
        assert body['data']['start'] == '2024-01-02T15:00:00'
        assert body['data']['end'] == '2024-01-02T16:00:00'
        assert body['data']['type'] == 'meeting'
        assert body['data']['meta']['rawInput'] == '明天下午3点开会'

    def test_http_api_v2_event(self, mock_env, mock_context):
        event = {
            'rawPath': '/parse-event',
            'requestContext': {'http': {'method': 'POST'}},
            'body': json.dumps({'text': '明天开会', 'referenceTime': '2024-01-01T00:00:00Z'})
        }

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 200
        assert json.loads(response['body'])['data']['start'] == '2024-01-02T14:00:00'

    @pytest.mark.parametrize('payload', [{}, {'text': ''}, {'text': '   '}, {'text': 42}])
    def test_blank_text_is_rejected(self, payload):
        status, body = parse_event_request(payload)

        assert status == 400
        assert body == {
            'success': False,
            'error': {'code': 'INVALID_INPUT', 'message': '请输入日程描述'}
        }

    def test_invalid_reference_time(self):
        status, body = parse_event_request({'text': '明天开会', 'referenceTime': 'not-a-date'})

        assert status == 400
        assert body['error']['code'] == 'INVALID_INPUT'

    def test_parser_failure_returns_api_error(self):
        parser = Mock()
        parser.parse.side_effect = RuntimeError('boom')

        status, body = parse_event_request({'text': '明天开会'}, parser=parser)

        assert status == 500
        assert body == {
            'success': False,
            'error': {'code': 'API_ERROR', 'message': '服务暂时不可用，请稍后重试'}
        }

    def test_invalid_json_body(self, mock_env, mock_context):
        event = {'httpMethod': 'POST', 'path': '/parse-event', 'body': '{not json'}

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 400

    @pytest.mark.parametrize('body', ['null', '[1]', '"x"', '42'])
    def test_non_object_json_body(self, body, mock_env, mock_context):
        event = {'httpMethod': 'POST', 'path': '/parse-event', 'body': body}

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 400
        assert json.loads(response['body'])['error']['code'] == 'INVALID_INPUT'


class TestEventsApi:
    """Test cases for the stored-event endpoints."""

    def test_list_events(self, mock_env, mock_context, mock_manager):
        event = api_event('GET', '/events', params={
            'start': '2024-01-01T00:00:00',
            'end': '2024-01-07T00:00:00'
        })

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 200
        data = json.loads(response['body'])['data']
        assert [item['id'] for item in data] == ['evt_stored01']
        assert data[0]['color'] == '#3b82f6'

    @pytest.mark.parametrize('params', [{'start': 'garbage'}, {'end': '2024-13-01'}])
    def test_list_events_invalid_range(self, params, mock_env, mock_context, mock_manager):
        response = lambda_handler(api_event('GET', '/events', params=params), mock_context)

        assert response['statusCode'] == 400
        assert json.loads(response['body'])['error']['code'] == 'INVALID_INPUT'
        mock_manager.get_all_events.assert_not_called()

    def test_create_event_conflict(self, mock_env, mock_context, mock_manager):
        payload = new_event_payload(datetime(2024, 1, 2, 15, 30), datetime(2024, 1, 2, 16, 30))

        response = lambda_handler(api_event('POST', '/events', payload), mock_context)

        assert response['statusCode'] == 409
        error = json.loads(response['body'])['error']
        assert error['code'] == 'CONFLICT'
        assert error['message'] == '与「周会」时间冲突'
        assert [conflict['id'] for conflict in error['conflicts']] == ['evt_stored01']
        mock_manager.save_event.assert_not_called()

    def test_create_event_force(self, mock_env, mock_context, mock_manager):
        payload = new_event_payload(
            datetime(2024, 1, 2, 15, 30), datetime(2024, 1, 2, 16, 30), force=True
        )

        response = lambda_handler(api_event('POST', '/events', payload), mock_context)

        assert response['statusCode'] == 201
        saved = mock_manager.save_event.call_args[0][0]
        assert saved.id == 'evt_new00001'
        assert saved.type == EventType.MEETING

    def test_create_event_without_conflict(self, mock_env, mock_context, mock_manager):
        payload = new_event_payload(
            datetime(2024, 1, 2, 16, 0), datetime(2024, 1, 2, 17, 0), reminder=15
        )

        response = lambda_handler(api_event('POST', '/events', payload), mock_context)

        assert response['statusCode'] == 201
        assert mock_manager.save_event.call_args[0][0].reminder == 15

    def test_create_event_invalid(self, mock_env, mock_context, mock_manager):
        response = lambda_handler(api_event('POST', '/events', {'event': {'title': 'x'}}), mock_context)

        assert response['statusCode'] == 400
        mock_manager.save_event.assert_not_called()

    def test_delete_event(self, mock_env, mock_context, mock_manager):
        mock_manager.delete_event.return_value = True
        event = api_event('DELETE', '/events/evt_stored01', params={
            'scope': 'future',
            'instanceStart': '2024-01-09T15:00:00'
        })

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 200
        mock_manager.delete_event.assert_called_once_with(
            'evt_stored01',
            scope=DeleteScope.FUTURE,
            instance_start=datetime(2024, 1, 9, 15, 0)
        )

    def test_delete_missing_event(self, mock_env, mock_context, mock_manager):
        mock_manager.delete_event.return_value = False

        response = lambda_handler(api_event('DELETE', '/events/evt_missing'), mock_context)

        assert response['statusCode'] == 404
        assert json.loads(response['body'])['error']['code'] == 'NOT_FOUND'

    def test_delete_invalid_scope(self, mock_env, mock_context, mock_manager):
        event = api_event('DELETE', '/events/evt_stored01', params={'scope': 'sometimes'})

        response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 400
        mock_manager.delete_event.assert_not_called()

    def test_export_events(self, mock_env, mock_context, mock_manager):
        response = lambda_handler(api_event('GET', '/events/export'), mock_context)

        assert response['statusCode'] == 200
        assert response['headers']['Content-Type'].startswith('text/calendar')
        assert '.ics"' in response['headers']['Content-Disposition']
        assert 'UID:evt_stored01@ai-calendar' in response['body']

    def test_unknown_route(self, mock_env, mock_context):
        response = lambda_handler(api_event('GET', '/nowhere'), mock_context)

        assert response['statusCode'] == 404

    def test_storage_failure_returns_api_error(self, mock_env, mock_context, mock_manager):
        mock_manager.get_all_events.side_effect = Exception('DynamoDB error')

        response = lambda_handler(api_event('GET', '/events'), mock_context)

        assert response['statusCode'] == 500
        assert json.loads(response['body'])['error']['code'] == 'API_ERROR'

    @patch('lambda_function.setup_logging')
    def test_logging_output(self, mock_setup_logging, mock_env, mock_context, caplog):
        """Test that request logging is generated correctly."""
        event = api_event('POST', '/parse-event', {'text': '明天开会'})

        with caplog.at_level(logging.INFO, logger='lambda_function'):
            response = lambda_handler(event, mock_context)

        assert response['statusCode'] == 200
        log_messages = [record.message for record in caplog.records]
        assert any('Request started: POST /parse-event' in msg for msg in log_messages)
        assert any('Request completed: POST /parse-event' in msg for msg in log_messages)
        mock_setup_logging.assert_called_once_with('INFO')


class TestReminderHandler:
    """Test cases for the scheduled reminder handler."""

    def test_without_webhook(self, mock_env, mock_context):
        with patch.dict(os.environ, {'REMINDER_WEBHOOK_URL': ''}):
            response = reminder_handler({}, mock_context)

        assert response['statusCode'] == 200
        assert json.loads(response['body'])['sent'] == 0

    @patch('lambda_function.ReminderDispatcher')
    def test_sends_due_reminders(self, mock_dispatcher_class, mock_env, mock_context, mock_manager):
        mock_dispatcher = Mock()
        mock_dispatcher.check_and_send.return_value = 2
        mock_dispatcher_class.return_value = mock_dispatcher

        with patch.dict(os.environ, {
            'REMINDER_WEBHOOK_URL': 'https://hooks.example.com/reminders',
            'REMINDER_WINDOW_SECONDS': '300'
        }):
            response = reminder_handler({}, mock_context)

        assert response['statusCode'] == 200
        assert json.loads(response['body'])['sent'] == 2
        mock_dispatcher_class.assert_called_once_with(
            'https://hooks.example.com/reminders',
            timeout=30,
            window_seconds=300
        )
        mock_dispatcher.check_and_send.assert_called_once()

    @patch('lambda_function.ReminderDispatcher')
    def test_failure(self, mock_dispatcher_class, mock_env, mock_context, mock_manager):
        mock_manager.get_all_events.side_effect = Exception('DynamoDB error')

        with patch.dict(os.environ, {'REMINDER_WEBHOOK_URL': 'https://hooks.example.com/reminders'}):
            response = reminder_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert 'DynamoDB error' in body['error']
        assert body['error_type'] == 'Exception'


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        """Test logging setup with DEBUG level."""
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_unknown_level(self):
        setup_logging('CHATTY')
        assert logging.getLogger().level == logging.INFO

    def test_json_formatter_includes_extra_fields(self):
        record = logging.LogRecord('test', logging.INFO, __file__, 1, '解析完成', None, None)
        record.event_id = 'evt_12345678'

        data = json.loads(JsonFormatter().format(record))

        assert data['message'] == '解析完成'
        assert data['level'] == 'INFO'
        assert data['event_id'] == 'evt_12345678'
