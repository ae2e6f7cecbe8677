from rest_framework import status
from rest_framework.response import Response


def success_response(data=None, message='', status_code=status.HTTP_200_OK):
    """
    Success envelope. Failures are rendered by
    apps.core.exceptions.envelope_exception_handler.
    """
    return Response(
        {'success': True, 'data': data, 'message': message},
        status=status_code,
    )


def created_response(data=None, message=''):
    return success_response(data, message, status.HTTP_201_CREATED)
