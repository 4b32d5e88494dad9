"""Exception types raised by the JMAP mail client, and helpers to classify them."""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from datetime import timedelta


class JmapClientError(Exception):
    """Base class for every error raised by this package."""


class _FixedMessageError(JmapClientError):
    """An error with a fixed message, optionally followed by a detail."""

    message = ""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)


class NoAccountsError(_FixedMessageError):
    message = "no accounts found in session"


class EmailNotFoundError(_FixedMessageError):
    message = "email not found"


class ContactNotFoundError(_FixedMessageError):
    message = "contact not found"


class ThreadNotFoundError(_FixedMessageError):
    message = "thread not found"


class MailboxNotFoundError(_FixedMessageError):
    message = "mailbox not found"


class ContactsNotEnabledError(_FixedMessageError):
    message = "contacts API not enabled for this account"


class CalendarsNotEnabledError(_FixedMessageError):
    message = "calendars API not enabled for this account"


class EventNotFoundError(_FixedMessageError):
    message = "calendar event not found"


class NoIdentitiesError(_FixedMessageError):
    message = "no sending identities found"


class FromAddressNotVerifiedError(_FixedMessageError):
    message = "from address not verified for sending"


class NoDraftsMailboxError(_FixedMessageError):
    message = "drafts mailbox not found"


class NoSentMailboxError(_FixedMessageError):
    message = "sent mailbox not found"


class NoTrashMailboxError(_FixedMessageError):
    message = "trash mailbox not found"


class NoBodyError(_FixedMessageError):
    message = "either text or HTML body must be provided"


class QuotaNotEnabledError(_FixedMessageError):
    message = "quota API not enabled for this account"


class ValidationError(JmapClientError):
    """Invalid input, optionally tied to a named field."""

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)


def _trim_number(value: float, places: int) -> str:
    return f"{value:.{places}f}".rstrip("0").rstrip(".")


def _format_duration(duration: timedelta) -> str:
    micros = duration // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros == 0:
        return "0s"
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim_number(micros / 1000, 3)}ms"
    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    text = sign
    if hours:
        text += f"{hours}h"
    if hours or minutes:
        text += f"{minutes}m"
    return text + f"{_trim_number(rest / 1_000_000, 6) or '0'}s"


class RateLimitError(JmapClientError):
    """The server asked the client to slow down."""

    def __init__(self, retry_after: timedelta = timedelta(0)) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limited, retry after {_format_duration(retry_after)}")


class CircuitBreakerError(JmapClientError):
    """Requests are refused while the circuit breaker is open."""

    def __init__(self) -> None:
        super().__init__("circuit breaker open: service temporarily unavailable")


class AuthError(JmapClientError):
    """Authentication with the server failed."""

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(f"authentication error: {message}")


class JMAPError(JmapClientError):
    """A protocol-level error response such as invalidArguments or serverFail."""

    def __init__(self, error_type: str, description: str = "") -> None:
        self.error_type = error_type
        self.description = description
        if description:
            text = f"JMAP error ({error_type}): {description}"
        else:
            text = f"JMAP error: {error_type}"
        super().__init__(text)


class NotFoundError(JmapClientError):
    """A named resource could not be found."""

    def __init__(self, resource: str, resource_id: str = "") -> None:
        self.resource = resource
        self.resource_id = resource_id
        if resource_id:
            text = f"{resource} not found: {resource_id}"
        else:
            text = f"{resource} not found"
        super().__init__(text)


class RequestContextError(JmapClientError):
    """Wraps an error with the JMAP method that produced it."""

    def __init__(self, method: str, err: BaseException) -> None:
        self.method = method
        self.err = err
        super().__init__(f"{method}: {err}")
        self.__cause__ = err


class InvalidFromAddressError(JmapClientError):
    """A From address that cannot be used for sending."""

    def __init__(
        self,
        attempted_address: str,
        available_identities: Sequence[str] = (),
        is_masked_email: bool = False,
    ) -> None:
        self.attempted_address = attempted_address
        self.available_identities = list(available_identities)
        self.is_masked_email = is_masked_email
        quoted = json.dumps(attempted_address, ensure_ascii=False)
        if is_masked_email:
            text = (
                f"cannot send from masked email {quoted}: "
                "it is not configured as a sending identity"
            )
        else:
            text = f"from address {quoted} not verified for sending"
        super().__init__(text)


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__


def _chain_has(err: BaseException | None, types: type | tuple[type, ...]) -> bool:
    return any(isinstance(link, types) for link in _chain(err))


def is_validation_error(err: BaseException | None) -> bool:
    """Whether err or any error it wraps is a ValidationError."""
    return _chain_has(err, ValidationError)


def is_rate_limit_error(err: BaseException | None) -> bool:
    """Whether err or any error it wraps is a RateLimitError."""
    return _chain_has(err, RateLimitError)


def is_circuit_breaker_error(err: BaseException | None) -> bool:
    """Whether err or any error it wraps is a CircuitBreakerError."""
    return _chain_has(err, CircuitBreakerError)


def is_auth_error(err: BaseException | None) -> bool:
    """Whether err or any error it wraps is an AuthError."""
    return _chain_has(err, AuthError)


def is_jmap_error(err: BaseException | None) -> bool:
    """Whether err or any error it wraps is a JMAPError."""
    return _chain_has(err, JMAPError)


def is_not_found_error(err: BaseException | None) -> bool:
    """Whether err or any error it wraps signals a missing resource."""
    return _chain_has(
        err,
        (
            NotFoundError,
            EmailNotFoundError,
            ContactNotFoundError,
            ThreadNotFoundError,
            MailboxNotFoundError,
            EventNotFoundError,
        ),
    )


def is_invalid_from_address_error(err: BaseException | None) -> bool:
    """Whether err or any error it wraps is an InvalidFromAddressError."""
    return _chain_has(err, InvalidFromAddressError)