"""Integration tests for Lambda handler."""
import json
import logging
import os
from unittest.mock import Mock, patch

import pytest

from config import Settings
from lambda_function import build_service, is_http_event, lambda_handler, run_task, setup_logging
from matchmaking.models import DispatchResult
from matchmaking.result import Success, query_failed
from operations.event_service import EventService


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'ATTENDEES_TABLE': 'test-event-attendees',
        'SCHEDULE_TABLE': 'test-event-schedule',
        'EVENTBRITE_TOKEN': 'test-token',
        'EVENTBRITE_ORG': '123',
        'LOG_LEVEL': 'INFO',
        'TIMEOUT_SECONDS': '30',
        'ALLOWED_ORIGIN': 'https://example.com',
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
def mock_service():
    service = Mock()
    service.send_results_for_recent_events.return_value = Success(
        DispatchResult(sent=4, failed=1, skipped=2, errors=['Failed to send'])
    )
    service.run_due_jobs.return_value = Success(DispatchResult(sent=3))
    service.schedule_reminders.return_value = Success(2)
    return service


class TestBuildService:

    @patch('lambda_function.Mailer')
    @patch('lambda_function.ScheduleStore')
    @patch('lambda_function.AttendeeStore')
    @patch('lambda_function.EventbriteClient')
    def test_wires_collaborators(
        self,
        mock_client_class,
        mock_attendee_store_class,
        mock_schedule_store_class,
        mock_mailer_class
    ):
        settings = Settings(
            eventbrite_token='token',
            eventbrite_org='123',
            attendees_table='attendees',
            schedule_table='schedule',
            email_send_delay_seconds=2,
            aws_region='eu-west-1'
        )

        service = build_service(settings)

        assert isinstance(service, EventService)
        mock_client_class.assert_called_once_with(token='token', organization_id='123', timeout=30)
        mock_attendee_store_class.assert_called_once_with('attendees', region_name='eu-west-1')
        mock_schedule_store_class.assert_called_once_with('schedule', region_name='eu-west-1')
        mock_mailer_class.assert_called_once_with(send_delay_seconds=2, region_name='eu-west-1')
        assert service.store is mock_attendee_store_class.return_value


class TestRunTask:

    def test_schedule_reminders(self, mock_service):
        assert run_task(mock_service, 'schedule-reminders') == {'jobs_scheduled': 2}

    def test_send_match_results(self, mock_service):
        assert run_task(mock_service, 'send-match-results') == {
            'emails_sent': 4,
            'emails_failed': 1,
            'recipients_skipped': 2,
            'errors': ['Failed to send'],
        }

    def test_run_due_jobs(self, mock_service):
        assert run_task(mock_service, 'run-due-jobs')['emails_sent'] == 3

    def test_failure_is_reported(self, mock_service):
        mock_service.run_due_jobs.return_value = query_failed('Error loading scheduled jobs.')

        assert run_task(mock_service, 'run-due-jobs') == {'error': 'Error loading scheduled jobs.'}

    def test_unknown_task(self, mock_service):
        with pytest.raises(ValueError):
            run_task(mock_service, 'make-coffee')


def test_is_http_event():
    assert is_http_event({'httpMethod': 'GET', 'path': '/events'})
    assert is_http_event({'requestContext': {'http': {'method': 'GET'}}, 'rawPath': '/events'})
    assert not is_http_event({'task': 'run-due-jobs'})


class TestLambdaHandler:
    """Test cases for Lambda handler."""

    @patch('lambda_function.build_service')
    def test_successful_task(self, mock_build_service, mock_service, mock_env, mock_context):
        mock_build_service.return_value = mock_service

        response = lambda_handler({'task': 'send-match-results'}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'Task send-match-results completed'
        assert body['statistics']['emails_sent'] == 4
        assert body['statistics']['recipients_skipped'] == 2
        assert 'duration_seconds' in body['statistics']

        settings = mock_build_service.call_args[0][0]
        assert settings.attendees_table == 'test-event-attendees'
        assert settings.eventbrite_org == '123'

    @patch('lambda_function.build_service')
    def test_task_failure_result(self, mock_build_service, mock_service, mock_env, mock_context):
        mock_service.schedule_reminders.return_value = query_failed(
            'Error fetching events from Eventbrite.'
        )
        mock_build_service.return_value = mock_service

        response = lambda_handler({'task': 'schedule-reminders'}, mock_context)

        assert response['statusCode'] == 502
        body = json.loads(response['body'])
        assert body['error'] == 'Error fetching events from Eventbrite.'

    @patch('lambda_function.build_service')
    def test_task_exception(self, mock_build_service, mock_service, mock_env, mock_context):
        mock_service.run_due_jobs.side_effect = Exception('DynamoDB unavailable')
        mock_build_service.return_value = mock_service

        response = lambda_handler({'task': 'run-due-jobs'}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Task run-due-jobs failed'
        assert body['error'] == 'DynamoDB unavailable'
        assert body['error_type'] == 'Exception'

    @patch('lambda_function.build_service')
    def test_unknown_task(self, mock_build_service, mock_service, mock_env, mock_context):
        mock_build_service.return_value = mock_service

        response = lambda_handler({'task': 'make-coffee'}, mock_context)

        assert response['statusCode'] == 500
        assert json.loads(response['body'])['error_type'] == 'ValueError'

    @patch('lambda_function.build_service')
    def test_http_event_is_routed(self, mock_build_service, mock_service, mock_env, mock_context):
        mock_service.list_open_events.return_value = Success([])
        mock_build_service.return_value = mock_service

        response = lambda_handler({'httpMethod': 'GET', 'path': '/events'}, mock_context)

        assert response['statusCode'] == 200
        assert response['headers']['Access-Control-Allow-Origin'] == 'https://example.com'
        assert json.loads(response['body']) == {'events': []}

    @patch('lambda_function.build_service')
    @patch('lambda_function.setup_logging')
    def test_logging_output(
        self,
        mock_setup_logging,
        mock_build_service,
        mock_service,
        mock_env,
        mock_context,
        caplog
    ):
        """Test that logging output is generated correctly."""
        mock_build_service.return_value = mock_service

        with caplog.at_level(logging.INFO, logger='lambda_function'):
            response = lambda_handler({'task': 'run-due-jobs'}, mock_context)

        assert response['statusCode'] == 200
        log_messages = [record.message for record in caplog.records]
        assert any('Lambda execution started' in msg for msg in log_messages)
        assert any('Lambda execution completed successfully' in msg for msg in log_messages)


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_unknown_level_falls_back_to_info(self):
        setup_logging('VERBOSE')
        assert logging.getLogger().level == logging.INFO

    def test_json_output(self, capsys):
        setup_logging('INFO')

        logging.getLogger('test').info('hello')

        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record['message'] == 'hello'
        assert record['level'] == 'INFO'
        assert record['logger'] == 'test'
