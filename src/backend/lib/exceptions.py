from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

from litestar import Response, status_codes
from litestar.exceptions import InternalServerException

if TYPE_CHECKING:
    from typing import Any, ClassVar

    from litestar import Request
    from litestar.exceptions import HTTPException


__all__ = (
    "ApplicationError",
    "ClientError",
    "ConfigurationError",
    "FatalDependencyError",
    "HTTPError",
    "InternalServerError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "RetriesExhaustedError",
    "ServiceUnavailableError",
    "http_error_to_http_response",
    "litestar_http_exc_to_http_response",
)


class ApplicationError(Exception):
    """Base error class for all application errors."""


class ConfigurationError(ApplicationError):
    """Raised when the service configuration cannot be loaded or is invalid."""


class RetriesExhaustedError(ApplicationError):
    """Raised when a dependency exhausted its connection attempts.

    Parameters
    ----------
    name : str
        Name of the dependency, e.g. ``"database"``.
    attempts : int
        Number of attempts that were made.
    last_error : BaseException, optional
        The error raised by the final attempt.
    """

    name: str
    attempts: int
    last_error: BaseException | None

    def __init__(
        self, name: str, attempts: int, last_error: BaseException | None = None
    ) -> None:
        self.name = name
        self.attempts = attempts
        self.last_error = last_error

        msg = f"Failed to connect to {name} after {attempts} attempts."
        if last_error is not None:
            msg = f"{msg} Last error: {last_error}"
        super().__init__(msg)


class FatalDependencyError(RetriesExhaustedError):
    """Raised when the required dependency cannot be acquired.

    The process must terminate; there is no degraded mode for it.
    """


class InvalidStateTransitionError(ApplicationError):
    """Raised when the service lifecycle is asked to skip or reverse a state."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot transition service state from {current} to {target}.")


class HTTPError(ApplicationError):
    """Error rendered as an RFC 9457 problem details response.

    Subclasses pin the status code and may supply a generic detail through
    the ``default_status_code`` and ``default_detail`` class attributes.

    Parameters
    ----------
    *args : Any
        Positional arguments passed to ``ApplicationError``. When ``detail``
        is omitted the first one is used as the detail.
    status_code : int, optional
        The HTTP status code (the default is ``default_status_code``).
    detail : str, optional
        Explanation of this occurrence (the default is ``default_detail``).
    title : str, optional
        Summary of the problem type. The status phrase is used when omitted.
    headers : dict[str, str], optional
        Extra response headers.
    **extension : Any
        Extension members merged into the problem details object.
    """

    media_type: ClassVar[str] = "application/problem+json"
    default_status_code: ClassVar[int] = status_codes.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: ClassVar[str | None] = None

    status_code: int
    detail: str | None
    title: str | None
    headers: dict[str, str] | None
    extension: dict[str, Any]

    def __init__(
        self,
        *args: Any,
        status_code: int | None = None,
        detail: str | None = None,
        title: str | None = None,
        headers: dict[str, str] | None = None,
        **extension: Any,
    ) -> None:
        self.status_code = status_code or self.default_status_code
        self.detail = detail or (str(args[0]) if args else self.default_detail)
        self.title = title or HTTPStatus(self.status_code).phrase
        self.headers = headers
        self.extension = extension

        super().__init__(*args)

    def problem_details(self, instance: str) -> dict[str, Any]:
        """Return the problem details object for the request at ``instance``."""
        details: dict[str, Any] = {"status": self.status_code, "title": self.title}
        if self.detail is not None:
            details["detail"] = self.detail
        details["instance"] = instance
        return details | self.extension

    def to_response(self, request: Request[Any, Any, Any]) -> Response[dict[str, Any]]:
        """Render the error for ``request``."""
        return Response(
            content=self.problem_details(str(request.url)),
            headers=self.headers,
            media_type=self.media_type,
            status_code=self.status_code,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.status_code}, {self.detail!r})"


class ClientError(HTTPError):
    """Raised when a client side error occurs."""

    default_status_code = status_codes.HTTP_400_BAD_REQUEST


class NotFoundError(ClientError):
    """Raised when we cannot find the requested resource."""

    default_status_code = status_codes.HTTP_404_NOT_FOUND


class InternalServerError(HTTPError):
    """Raised when a request failed for a reason the client must not see."""

    default_status_code = status_codes.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = (
        "Something went wrong on our end. Please contact support if the issue persists."
    )


class ServiceUnavailableError(HTTPError):
    """Raised when a dependency needed to serve the request is not available."""

    default_status_code = status_codes.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The service is temporarily unable to handle the request."


def http_error_to_http_response(
    request: Request[Any, Any, Any], error: HTTPError
) -> Response[dict[str, Any]]:
    """Render an application ``HTTPError``."""
    return error.to_response(request)


def litestar_http_exc_to_http_response(
    request: Request[Any, Any, Any], exception: HTTPException
) -> Response[dict[str, Any]]:
    """Render a Litestar ``HTTPException`` as problem details.

    Unhandled server errors get the generic ``InternalServerError`` detail;
    the original message only reaches the logs.

    Parameters
    ----------
    request : Request[Any, Any, Any]
        The incoming request.
    exception : HTTPException
        The exception raised by Litestar or a route handler.
    """
    error: HTTPError
    if isinstance(exception, InternalServerException):
        error = InternalServerError(headers=exception.headers)
    else:
        error = HTTPError(
            status_code=exception.status_code,
            detail=exception.detail or None,
            headers=exception.headers,
        )

    return error.to_response(request)
