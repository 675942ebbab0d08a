from django.db import DatabaseError
from django.test import SimpleTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .errors import IneligibleOperationError, NotFoundError, StoreUnavailableError, ValidationError
from .responses import result_response
from .results import ErrorKind, OperationResult, guarded


class GuardedTests(SimpleTestCase):
    def test_plain_value_is_wrapped(self):
        result = guarded("op")(lambda: 42)()
        self.assertTrue(result.ok)
        self.assertEqual(result.value, 42)

    def test_result_passes_through(self):
        refused = OperationResult.ineligible('EVENT_FULL')
        self.assertIs(guarded("op")(lambda: refused)(), refused)

    def test_errors_are_classified(self):
        def raising(exc):
            def op():
                raise exc
            return guarded("op")(op)()

        self.assertEqual(raising(ValidationError("bad", reason='INVALID_RATING')).error_kind, ErrorKind.VALIDATION)
        missing = raising(NotFoundError("gone"))
        self.assertEqual((missing.error_kind, missing.reason), (ErrorKind.NOT_FOUND, 'NOT_FOUND'))
        self.assertEqual(raising(IneligibleOperationError("no", reason='EVENT_FULL')).reason, 'EVENT_FULL')
        with self.assertLogs('core.results', level='ERROR'):
            outage = raising(DatabaseError("connection refused"))
        self.assertEqual(outage.error_kind, ErrorKind.STORE_UNAVAILABLE)

        with self.assertLogs('core.results', level='ERROR'):
            limited = raising(StoreUnavailableError("quota", reason='RATE_LIMITED'))
        self.assertEqual((limited.error_kind, limited.reason), (ErrorKind.STORE_UNAVAILABLE, 'RATE_LIMITED'))


class ResultResponseTests(SimpleTestCase):
    def test_status_codes(self):
        cases = [
            (OperationResult.failure(ErrorKind.VALIDATION, "x", 'INVALID_RATING'), 400),
            (OperationResult.failure(ErrorKind.NOT_FOUND, "x", 'NOT_FOUND'), 404),
            (OperationResult.ineligible('EVENT_FULL'), 409),
            (OperationResult.ineligible('NOT_ORGANIZER'), 403),
            (OperationResult.failure(ErrorKind.STORE_UNAVAILABLE, "x"), 503),
        ]
        for result, code in cases:
            self.assertEqual(result_response(result).status_code, code)

    def test_error_body(self):
        response = result_response(OperationResult.ineligible('EVENT_FULL', "Event is full"))
        self.assertEqual(response.data, {'error': "Event is full", 'reason': 'EVENT_FULL'})

    def test_success_render(self):
        response = result_response(OperationResult.success(2), lambda v: {'n': v * 2}, status.HTTP_201_CREATED)
        self.assertEqual((response.status_code, response.data), (201, {'n': 4}))


class HealthTests(APITestCase):
    def test_health_is_public(self):
        response = self.client.get(reverse('core:health'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ok')
