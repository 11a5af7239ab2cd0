from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated

from .exceptions import (
    GENERIC_ERROR_MESSAGE,
    InsufficientTokens,
    NotFoundError,
    ValidationError,
    exception_handler,
)


class ExceptionHandlerTest(SimpleTestCase):
    """Test cases for the DRF exception handler"""

    def test_domain_errors_keep_their_code(self):
        cases = [
            (ValidationError("bad kind"), status.HTTP_400_BAD_REQUEST, 'VALIDATION_ERROR'),
            (NotFoundError(), status.HTTP_404_NOT_FOUND, 'NOT_FOUND'),
            (InsufficientTokens(), status.HTTP_402_PAYMENT_REQUIRED, 'INSUFFICIENT_TOKENS'),
        ]
        for exc, expected_status, expected_code in cases:
            response = exception_handler(exc, {})
            self.assertEqual(response.status_code, expected_status)
            self.assertEqual(response.data['code'], expected_code)
            self.assertEqual(response.data['message'], exc.message)

    def test_drf_exceptions_use_default_handling(self):
        response = exception_handler(NotAuthenticated(), {})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertNotIn('code', response.data)

    def test_unexpected_error_is_hidden(self):
        with self.assertLogs('core.exceptions', level='ERROR'):
            response = exception_handler(RuntimeError("relation members_member does not exist"), {})

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'code': 'INTERNAL_ERROR', 'message': GENERIC_ERROR_MESSAGE})
