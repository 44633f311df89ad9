"""API Gateway proxy routing for the public and admin endpoints."""
import base64
import binascii
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from matchmaking.models import Attendee, MatchFormSubmission, PublicAttendee, TicketingEvent
from matchmaking.result import ErrorKind, Failure

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.INVALID: 400,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CLOSED: 409,
    ErrorKind.QUERY_FAILED: 502,
}


class BadRequest(Exception):
    """Request body is not the JSON object the route expects."""


def attendee_to_dict(attendee: Attendee) -> Dict[str, Any]:
    return {
        'id': attendee.id,
        'firstName': attendee.first_name,
        'lastName': attendee.last_name,
        'email': attendee.email,
        'gender': attendee.gender.value,
        'inAttendance': attendee.in_attendance,
        'interests': attendee.interests,
        'notes': attendee.notes,
        'feedback': attendee.feedback,
        'referralInfo': attendee.referral_info,
        'websiteFeedback': attendee.website_feedback,
        'cellPhone': attendee.cell_phone,
        'sendContactToNonMutual': attendee.send_contact_to_non_mutual,
    }


def public_attendee_to_dict(attendee: PublicAttendee) -> Dict[str, Any]:
    return {'id': attendee.id, 'name': attendee.name}


def event_to_dict(event: TicketingEvent) -> Dict[str, Any]:
    return {'id': event.event_id, 'name': event.name, 'start': event.start_local}


def previous_info(attendee: Attendee) -> Dict[str, Any]:
    """Earlier submission, used to prefill the match form."""
    return {
        'notes': attendee.notes or '',
        'feedback': attendee.feedback or '',
        'cellPhone': attendee.cell_phone or '',
        'interests': attendee.interests or [],
        'referralInfo': attendee.referral_info or '',
        'websiteFeedback': attendee.website_feedback or '',
        'sendContactToNonMutual': attendee.send_contact_to_non_mutual,
    }


class Router:
    """Dispatches API Gateway proxy events to EventService operations."""

    def __init__(self, service, allowed_origin: str = '*'):
        self.service = service
        self.allowed_origin = allowed_origin
        self.routes: Dict[Tuple[str, str], Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            ('GET', '/events'): self.events,
            ('POST', '/contact'): self.contact,
            ('POST', '/admin/login'): self.admin_login,
            ('POST', '/admin/event-participants'): self.admin_event_participants,
            ('POST', '/admin/send-results'): self.admin_send_results,
            ('POST', '/event-participants'): self.event_participants,
            ('POST', '/match'): self.match,
        }

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Route an API Gateway proxy event (payload version 1.0 or 2.0).

        Returns:
            Proxy response dict with statusCode, headers and body
        """
        method, path = self._method_and_path(event)
        if method == 'OPTIONS':
            return self._response(204, None)

        handler = self.routes.get((method, path.rstrip('/') or '/'))
        if handler is None:
            return self._response(404, {'error': f"No route for {method} {path}"})

        try:
            body = self._parse_body(event)
            return handler(body)
        except BadRequest as e:
            return self._response(400, {'error': str(e)})
        except Exception as e:
            logger.error(
                f"Unknown error in {path} endpoint: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return self._response(500, {'error': 'Internal error.'})

    # Public endpoints

    def events(self, body: Dict[str, Any]) -> Dict[str, Any]:
        result = self.service.list_open_events()
        if not result.ok:
            return self._failure(result)
        return self._response(200, {'events': [event_to_dict(e) for e in result.value]})

    def contact(self, body: Dict[str, Any]) -> Dict[str, Any]:
        result = self.service.send_contact_query(
            _field(body, 'name'), _field(body, 'email'), _field(body, 'message')
        )
        if not result.ok:
            return self._failure(result)
        return self._response(200, {})

    def event_participants(self, body: Dict[str, Any]) -> Dict[str, Any]:
        result = self.service.get_event_participants(
            _field(body, 'eventId'),
            _field(body, 'firstName'),
            _field(body, 'lastName'),
            _field(body, 'email')
        )
        if not result.ok:
            return self._failure(result)

        view = result.value
        if view.is_admin:
            return self._response(200, {'attendees': [attendee_to_dict(a) for a in view.attendees]})

        payload = {'attendees': [public_attendee_to_dict(a) for a in view.attendees]}
        if view.previous_submission is not None:
            payload['previousInfo'] = previous_info(view.previous_submission)
        return self._response(200, payload)

    def match(self, body: Dict[str, Any]) -> Dict[str, Any]:
        submission = MatchFormSubmission(
            event_id=_field(body, 'eventId'),
            first_name=_field(body, 'firstName'),
            last_name=_field(body, 'lastName'),
            email=_field(body, 'email'),
            selections=body.get('matches', []),
            notes=body.get('notes') or '',
            feedback=body.get('feedback') or '',
            referral_info=body.get('referralInfo') or '',
            cell_phone=body.get('cellPhone') or '',
            website_feedback=body.get('websiteFeedback') or '',
            send_contact_to_non_mutual=bool(body.get('sendContactToNonMutual', False))
        )
        result = self.service.submit_match_form(submission)
        if not result.ok:
            return self._failure(result)
        return self._response(200, {})

    # Admin endpoints

    def admin_login(self, body: Dict[str, Any]) -> Dict[str, Any]:
        denied = self._authenticate(body)
        if denied:
            return denied
        result = self.service.list_all_events()
        if not result.ok:
            return self._failure(result)
        return self._response(200, {'events': [event_to_dict(e) for e in result.value]})

    def admin_event_participants(self, body: Dict[str, Any]) -> Dict[str, Any]:
        denied = self._authenticate(body)
        if denied:
            return denied
        result = self.service.get_admin_event_participants(_field(body, 'eventId'))
        if not result.ok:
            return self._failure(result)
        return self._response(200, {
            'public_attendees': [public_attendee_to_dict(a) for a in result.value.public_attendees],
            'admin_attendees': [attendee_to_dict(a) for a in result.value.admin_attendees],
        })

    def admin_send_results(self, body: Dict[str, Any]) -> Dict[str, Any]:
        denied = self._authenticate(body)
        if denied:
            return denied
        result = self.service.send_results_for_event(_field(body, 'eventId'))
        if not result.ok:
            return self._failure(result)
        dispatch = result.value
        return self._response(200, {
            'sent': dispatch.sent,
            'failed': dispatch.failed,
            'skipped': dispatch.skipped,
            'errors': dispatch.errors,
        })

    # Helpers

    def _authenticate(self, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.service.authenticate_admin(body.get('username', ''), body.get('password', '')):
            return None
        return self._failure(Failure(ErrorKind.UNAUTHORIZED, 'Incorrect username or password.'))

    def _failure(self, failure: Failure) -> Dict[str, Any]:
        return self._response(ERROR_STATUS.get(failure.kind, 500), {'error': failure.message})

    def _response(self, status_code: int, body: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            'statusCode': status_code,
            'headers': {
                'Content-Type': 'application/json',
                'Access-Control-Allow-Origin': self.allowed_origin,
                'Access-Control-Allow-Headers': 'Content-Type',
                'Access-Control-Allow-Methods': 'GET,POST,OPTIONS',
            },
            'body': json.dumps(body) if body is not None else '',
        }

    @staticmethod
    def _method_and_path(event: Dict[str, Any]) -> Tuple[str, str]:
        if 'httpMethod' in event:
            return event['httpMethod'].upper(), event.get('path', '/')
        http = event.get('requestContext', {}).get('http', {})
        return http.get('method', 'GET').upper(), event.get('rawPath', http.get('path', '/'))

    @staticmethod
    def _parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
        raw = event.get('body')
        if not raw:
            return {}
        if event.get('isBase64Encoded'):
            try:
                raw = base64.b64decode(raw).decode('utf-8')
            except (binascii.Error, UnicodeDecodeError) as e:
                raise BadRequest(f"Malformed base64 body: {e}") from e
        try:
            body = json.loads(raw)
        except json.JSONDecodeError as e:
            raise BadRequest(f"Malformed JSON body: {e}") from e
        if not isinstance(body, dict):
            raise BadRequest('Request body must be a JSON object')
        return body


def _field(body: Dict[str, Any], name: str) -> str:
    value = body.get(name)
    if not isinstance(value, str):
        raise BadRequest(f"Missing field: {name}")
    return value
