# common/exceptions.py
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.exceptions import ValidationError  # noqa: F401  (re-exported)


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class Unauthorized(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required."
    default_code = "unauthorized"


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have access to this resource."
    default_code = "forbidden"


class Conflict(APIException):
    status_code = 409
    default_detail = "Conflict"
    default_code = "conflict"


class InvalidMode(Conflict):
    default_detail = "Attempt mode does not allow this operation."
    default_code = "invalid_mode"


class MissingBlueprint(Conflict):
    default_detail = "Blueprint not found for this attempt."
    default_code = "missing_blueprint"


class QueueDispatchError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Failed to enqueue job."
    default_code = "queue_dispatch_error"


class StorageError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Storage operation failed."
    default_code = "storage_error"
