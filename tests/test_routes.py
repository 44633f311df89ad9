"""Tests for gateway.routes module."""
import base64
import json
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from gateway.routes import Router
from matchmaking.models import Attendee, DispatchResult, Gender, PublicAttendee, TicketingEvent
from matchmaking.result import ErrorKind, Failure, Success
from operations.event_service import AdminParticipantView, ParticipantView


def _proxy_event(method, path, body=None, **extra):
    """API Gateway REST (payload 1.0) proxy event."""
    event = {'httpMethod': method, 'path': path, 'body': json.dumps(body) if body is not None else None}
    event.update(extra)
    return event


def _http_api_event(method, path, body=None):
    """API Gateway HTTP API (payload 2.0) event."""
    return {
        'rawPath': path,
        'requestContext': {'http': {'method': method, 'path': path}},
        'body': json.dumps(body) if body is not None else None,
    }


def _body(response):
    return json.loads(response['body'])


def _event() -> TicketingEvent:
    return TicketingEvent(
        event_id='evt-1',
        name='Speed Dating',
        start_utc=datetime(2024, 3, 9, 23, tzinfo=timezone.utc),
        end_utc=datetime(2024, 3, 10, 1, tzinfo=timezone.utc),
        start_local='2024-03-09T19:00:00'
    )


def _bob(**kwargs) -> Attendee:
    return Attendee('Bob', 'Test', 'bob@example.com', Gender.MALE, id=1, **kwargs)


PARTICIPANT_BODY = {
    'eventId': 'evt-1',
    'firstName': 'Bob',
    'lastName': 'Test',
    'email': 'bob@example.com',
}

ADMIN_BODY = {'username': 'admin@example.com', 'password': 'secret', 'eventId': 'evt-1'}


@pytest.fixture
def service():
    mock_service = Mock()
    mock_service.authenticate_admin.return_value = True
    return mock_service


@pytest.fixture
def router(service):
    return Router(service, allowed_origin='https://example.com')


class TestRouting:

    def test_options_preflight(self, router):
        response = router.handle(_proxy_event('OPTIONS', '/match'))

        assert response['statusCode'] == 204
        assert response['headers']['Access-Control-Allow-Origin'] == 'https://example.com'
        assert response['body'] == ''

    def test_unknown_route(self, router):
        response = router.handle(_proxy_event('GET', '/nowhere'))

        assert response['statusCode'] == 404

    def test_http_api_payload(self, router, service):
        service.list_open_events.return_value = Success([_event()])

        response = router.handle(_http_api_event('GET', '/events/'))

        assert response['statusCode'] == 200
        assert _body(response) == {
            'events': [{'id': 'evt-1', 'name': 'Speed Dating', 'start': '2024-03-09T19:00:00'}]
        }

    def test_base64_body(self, router, service):
        service.send_contact_query.return_value = Success(None)
        raw = json.dumps({'name': 'Bob', 'email': 'bob@example.com', 'message': 'Hi'})

        response = router.handle({
            'httpMethod': 'POST',
            'path': '/contact',
            'isBase64Encoded': True,
            'body': base64.b64encode(raw.encode()).decode(),
        })

        assert response['statusCode'] == 200
        service.send_contact_query.assert_called_once_with('Bob', 'bob@example.com', 'Hi')

    def test_malformed_json(self, router):
        response = router.handle({'httpMethod': 'POST', 'path': '/contact', 'body': '{nope'})

        assert response['statusCode'] == 400

    def test_malformed_base64_body(self, router, service):
        response = router.handle({'httpMethod': 'POST', 'path': '/contact', 'body': 'abc', 'isBase64Encoded': True})

        assert response['statusCode'] == 400
        service.send_contact_query.assert_not_called()

    def test_non_utf8_body(self, router, service):
        body = base64.b64encode(b'\xff\xfe').decode()

        response = router.handle({'httpMethod': 'POST', 'path': '/contact', 'body': body, 'isBase64Encoded': True})

        assert response['statusCode'] == 400
        service.send_contact_query.assert_not_called()

    def test_missing_field(self, router):
        response = router.handle(_proxy_event('POST', '/contact', {'name': 'Bob'}))

        assert response['statusCode'] == 400
        assert _body(response) == {'error': 'Missing field: email'}

    def test_unexpected_error(self, router, service):
        service.list_open_events.side_effect = RuntimeError('boom')

        response = router.handle(_proxy_event('GET', '/events'))

        assert response['statusCode'] == 500
        assert _body(response) == {'error': 'Internal error.'}

    @pytest.mark.parametrize('kind,status', [
        (ErrorKind.INVALID, 400),
        (ErrorKind.NOT_FOUND, 404),
        (ErrorKind.CLOSED, 409),
        (ErrorKind.QUERY_FAILED, 502),
    ])
    def test_failure_status(self, router, service, kind, status):
        service.send_contact_query.return_value = Failure(kind, 'Nope.')

        response = router.handle(_proxy_event('POST', '/contact', {
            'name': 'Bob', 'email': 'bob@example.com', 'message': 'Hi'
        }))

        assert response['statusCode'] == status
        assert _body(response) == {'error': 'Nope.'}


class TestEventParticipants:

    def test_attendee_view_with_previous_info(self, router, service):
        service.get_event_participants.return_value = Success(ParticipantView(
            is_admin=False,
            attendees=[PublicAttendee(id=1, name='Ann')],
            previous_submission=_bob(interests=[1], notes='Hi')
        ))

        response = router.handle(_proxy_event('POST', '/event-participants', PARTICIPANT_BODY))

        body = _body(response)
        assert response['statusCode'] == 200
        assert body['attendees'] == [{'id': 1, 'name': 'Ann'}]
        assert body['previousInfo']['interests'] == [1]
        assert body['previousInfo']['notes'] == 'Hi'
        service.get_event_participants.assert_called_once_with(
            'evt-1', 'Bob', 'Test', 'bob@example.com'
        )

    def test_attendee_view_without_submission(self, router, service):
        service.get_event_participants.return_value = Success(ParticipantView(
            is_admin=False, attendees=[]
        ))

        response = router.handle(_proxy_event('POST', '/event-participants', PARTICIPANT_BODY))

        assert 'previousInfo' not in _body(response)

    def test_admin_view(self, router, service):
        service.get_event_participants.return_value = Success(ParticipantView(
            is_admin=True, attendees=[_bob()]
        ))

        response = router.handle(_proxy_event('POST', '/event-participants', PARTICIPANT_BODY))

        attendee = _body(response)['attendees'][0]
        assert attendee['email'] == 'bob@example.com'
        assert attendee['gender'] == 'Male'
        assert attendee['interests'] is None

    def test_not_found(self, router, service):
        service.get_event_participants.return_value = Failure(
            ErrorKind.NOT_FOUND, 'Participant is not present in Eventbrite.'
        )

        response = router.handle(_proxy_event('POST', '/event-participants', PARTICIPANT_BODY))

        assert response['statusCode'] == 404


class TestMatch:

    def test_builds_submission(self, router, service):
        service.submit_match_form.return_value = Success(None)

        response = router.handle(_proxy_event('POST', '/match', {
            **PARTICIPANT_BODY,
            'matches': [1, '2'],
            'cellPhone': '555-0100',
            'sendContactToNonMutual': True,
        }))

        assert response['statusCode'] == 200
        submission = service.submit_match_form.call_args[0][0]
        assert submission.selections == [1, '2']
        assert submission.cell_phone == '555-0100'
        assert submission.send_contact_to_non_mutual is True
        assert submission.notes == ''

    def test_closed(self, router, service):
        service.submit_match_form.return_value = Failure(
            ErrorKind.CLOSED, 'Submissions for this event are now closed.'
        )

        response = router.handle(_proxy_event('POST', '/match', PARTICIPANT_BODY))

        assert response['statusCode'] == 409


class TestAdmin:

    def test_login_lists_all_events(self, router, service):
        service.list_all_events.return_value = Success([_event()])

        response = router.handle(_proxy_event('POST', '/admin/login', ADMIN_BODY))

        assert response['statusCode'] == 200
        assert [event['id'] for event in _body(response)['events']] == ['evt-1']
        service.authenticate_admin.assert_called_once_with('admin@example.com', 'secret')

    def test_bad_credentials(self, router, service):
        service.authenticate_admin.return_value = False

        response = router.handle(_proxy_event('POST', '/admin/send-results', ADMIN_BODY))

        assert response['statusCode'] == 403
        assert _body(response) == {'error': 'Incorrect username or password.'}
        service.send_results_for_event.assert_not_called()

    def test_admin_event_participants(self, router, service):
        service.get_admin_event_participants.return_value = Success(AdminParticipantView(
            public_attendees=[PublicAttendee(id=1, name='Ann')],
            admin_attendees=[_bob()]
        ))

        response = router.handle(_proxy_event('POST', '/admin/event-participants', ADMIN_BODY))

        body = _body(response)
        assert body['public_attendees'] == [{'id': 1, 'name': 'Ann'}]
        assert body['admin_attendees'][0]['firstName'] == 'Bob'

    def test_send_results(self, router, service):
        service.send_results_for_event.return_value = Success(
            DispatchResult(sent=3, failed=1, skipped=2, errors=['x'])
        )

        response = router.handle(_proxy_event('POST', '/admin/send-results', ADMIN_BODY))

        assert _body(response) == {'sent': 3, 'failed': 1, 'skipped': 2, 'errors': ['x']}
        service.send_results_for_event.assert_called_once_with('evt-1')
