# Exception Handlers
#
# The exceptions are caught by the route handlers in router.py and formatted as
# {
#      "error": "Expected array of updates"
# }
# with the status_code of the exception as http status.
#
from http import HTTPStatus
import traceback

from .craft_init import log


class CraftError(Exception):
    """
    Base class of the errors that are returned to the client
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = ""

    def __init__(self, message="", status_code=None):
        """
        :param message: Message to be returned in the (json) body
        :param status_code: HTTP Status code
        """
        Exception.__init__(self, message)
        if status_code is not None:
            self.status_code = status_code
        self.message = str(message)

    def __str__(self):
        return self.message


class ValidationError(CraftError):
    """
    This exception is raised when the request body doesn't have the expected shape
    Always send back the message to the client in the response
    """

    status_code = HTTPStatus.BAD_REQUEST.value

    def __init__(self, message="", status_code=HTTPStatus.BAD_REQUEST.value):
        CraftError.__init__(self, message, status_code)
        log.warning("ValidationError: %s", message)


class NotFoundError(CraftError):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value

    def __init__(self, message="Not found", status_code=HTTPStatus.NOT_FOUND.value):
        CraftError.__init__(self, message, status_code)
        log.info("Not found: %s", message)


class OperationError(CraftError):
    """
    This exception is raised when a data accessor call or a hook failed,
    the message of the underlying exception is passed through.
    Mutating operations report it as a client error (400), reads as a server error (500)
    """

    def __init__(self, message, status_code=HTTPStatus.INTERNAL_SERVER_ERROR.value):
        CraftError.__init__(self, message, status_code)
        if self.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR.value:
            log.error("OperationError: %s", message)
            log.debug(traceback.format_exc(120))
        else:
            log.warning("OperationError: %s", message)


class UnknownOperatorError(CraftError):
    """
    Raised while translating a query string when a `{op}-{value}` filter uses an unknown operator.
    The query translator catches it and returns a filter that matches nothing,
    it never reaches the client.
    """

    status_code = HTTPStatus.BAD_REQUEST.value

    def __init__(self, operator=""):
        CraftError.__init__(self, f"Unknown filter operator '{operator}'")
        self.operator = operator


class ConfigError(CraftError):
    """
    Invalid craft configuration (options or config file)
    """

    def __init__(self, message):
        CraftError.__init__(self, message)
        log.error("ConfigError: %s", message)
