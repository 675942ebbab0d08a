from rest_framework import status
from rest_framework.response import Response

from .results import ErrorKind, OperationResult

# Ineligibility caused by who the caller is, not by the state of the target
FORBIDDEN_REASONS = {'NOT_ORGANIZER', 'NOT_OWNER', 'NOT_AUTHOR', 'NOT_INVITEE', 'NOT_PARTICIPANT'}

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INELIGIBLE: status.HTTP_409_CONFLICT,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(result: OperationResult) -> Response:
    code = _STATUS_BY_KIND[result.error_kind]
    if result.error_kind == ErrorKind.INELIGIBLE and result.reason in FORBIDDEN_REASONS:
        code = status.HTTP_403_FORBIDDEN
    return Response({'error': result.message, 'reason': result.reason}, status=code)


def result_response(result: OperationResult, render=None, success_status=status.HTTP_200_OK) -> Response:
    """
    Turns an OperationResult into a DRF Response. render(value) builds the
    success body; without it the value is returned as-is.
    """
    if not result.ok:
        return error_response(result)
    body = render(result.value) if render else result.value
    return Response(body, status=success_status)
