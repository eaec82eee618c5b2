import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Base for every error the engine reports back to a caller."""
    code = 'error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed.'

    def __init__(self, message=None, **detail):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def as_dict(self):
        data = {'detail': self.message, 'code': self.code}
        data.update(self.detail)
        return data


class ValidationError(LifecycleError):
    code = 'invalid'
    default_message = 'Invalid input.'


class DuplicateRegistration(ValidationError):
    code = 'duplicate'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Donor is already registered for this camp.'


class CapacityExceeded(LifecycleError):
    code = 'full'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Camp is full.'


class EligibilityBlocked(LifecycleError):
    code = 'ineligible'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Donor is not eligible to donate.'


class InvalidTransition(LifecycleError):
    code = 'invalid_transition'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Transition not allowed.'


class OverFulfillment(LifecycleError):
    code = 'over_fulfillment'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Dispatch exceeds what is requested or available.'


class NotPermitted(LifecycleError):
    code = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You are not allowed to perform this action.'


class ConcurrentUpdate(LifecycleError):
    code = 'conflict'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Record changed while processing; try again.'


def lifecycle_exception_handler(exc, context):
    if isinstance(exc, LifecycleError):
        view = context.get('view')
        logger.warning("%s rejected (%s): %s", view.__class__.__name__ if view else 'call', exc.code, exc.message)
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)
