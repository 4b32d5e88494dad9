"""JMAP request and response shapes, the transport interface, and response decoding."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol, runtime_checkable

from .errors import JMAPError, JmapClientError


@dataclass
class Session:
    """The parts of a JMAP session the services rely on."""

    account_id: str
    capabilities: dict[str, Any] = field(default_factory=dict)
    api_url: str = ""
    upload_url: str = ""
    download_url: str = ""


class MethodCall(NamedTuple):
    """One method invocation: name, arguments and client call id."""

    name: str
    arguments: dict[str, Any]
    call_id: str


@dataclass
class Request:
    """A JMAP API request."""

    using: list[str]
    method_calls: list[MethodCall]

    def to_dict(self) -> dict[str, Any]:
        """Return the request in its JSON wire shape."""
        return {
            "using": list(self.using),
            "methodCalls": [list(call) for call in self.method_calls],
        }


@dataclass
class Response:
    """A JMAP API response; each method response is [name, arguments, call id]."""

    method_responses: list[list[Any]] = field(default_factory=list)
    session_state: str = ""


@runtime_checkable
class Transport(Protocol):
    """Something that can fetch the session and carry API requests."""

    def get_session(self) -> Session:
        """Return the current JMAP session."""
        ...

    def make_request(self, request: Request) -> Response:
        """Send request to the API endpoint and return the decoded response."""
        ...


class ServiceBase:
    """Shared plumbing for the service clients."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def _session(self) -> Session:
        return self.transport.get_session()

    def _call(self, using: Iterable[str], *calls: MethodCall) -> Response:
        return self.transport.make_request(Request(using=list(using), method_calls=list(calls)))

    @staticmethod
    def _result(response: Response, index: int = 0) -> dict[str, Any]:
        """Return the arguments of one method response, which must be an object."""
        try:
            payload = response.method_responses[index][1]
        except (IndexError, TypeError):
            raise JmapClientError("unexpected response format") from None
        if not isinstance(payload, dict):
            raise JmapClientError("unexpected response format")
        return payload


def parse_jmap_error(payload: Any) -> JmapClientError:
    """Build the exception for an "error" method response payload."""
    if payload is None:
        return JmapClientError("API error: empty response")
    if isinstance(payload, dict):
        error_type = payload.get("type")
        description = payload.get("description")
        inner = JMAPError(
            error_type if isinstance(error_type, str) else "",
            description if isinstance(description, str) else "",
        )
        outer = JmapClientError(f"API error: {inner}")
        outer.__cause__ = inner
        return outer
    return JmapClientError(f"API error: {payload}")


def decode_method_response(response: Response | None, index: int) -> dict[str, Any]:
    """Return the arguments of the method response at index, raising on errors."""
    if response is None or index < 0 or len(response.method_responses) <= index:
        raise JmapClientError("empty response from server")
    entry = response.method_responses[index]
    name = entry[0] if entry else None
    if not isinstance(name, str):
        raise JmapClientError("invalid response format")
    payload = entry[1] if len(entry) > 1 else None
    if name == "error":
        raise parse_jmap_error(payload)
    if not isinstance(payload, dict):
        raise JmapClientError("failed to parse response")
    return payload