"""Masked e-mail aliases: listing, creation, state changes and domain matching."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from .errors import JmapClientError, NotFoundError, ValidationError
from .protocol import MethodCall, Response, ServiceBase

MASKED_EMAIL_NAMESPACE = "https://www.fastmail.com/dev/maskedemail"

_USING = ["urn:ietf:params:jmap:core", MASKED_EMAIL_NAMESPACE]
_PROPERTIES = [
    "id",
    "email",
    "forDomain",
    "state",
    "description",
    "createdAt",
    "lastMessageAt",
]

_TIMESTAMP = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"([Zz]|[+-]\d{2}:\d{2})$"
)


class MaskedEmailState(str, Enum):
    """The lifecycle state of a masked e-mail alias."""

    PENDING = "pending"
    ENABLED = "enabled"
    DISABLED = "disabled"
    DELETED = "deleted"


@dataclass
class MaskedEmail:
    """A masked e-mail alias. Unknown states are kept as plain strings."""

    id: str
    email: str
    state: MaskedEmailState | str
    for_domain: str = ""
    description: str = ""
    created_at: datetime | None = None
    last_message_at: datetime | None = None


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _parse_timestamp(value: Any, key: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise JmapClientError(f"failed to parse response: {key} is not a string")
    match = _TIMESTAMP.match(value)
    if match is None:
        raise JmapClientError(f"failed to parse response: invalid timestamp {_quote(value)}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micros = int((fraction or "0")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * offset)
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tz
        )
    except ValueError as exc:
        raise JmapClientError(f"failed to parse response: {exc}") from exc


def _parse_text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise JmapClientError(f"failed to parse response: {key} is not a string")
    return value


def _parse_state(raw: str) -> MaskedEmailState | str:
    try:
        return MaskedEmailState(raw)
    except ValueError:
        return raw


def parse_masked_email(data: Any) -> MaskedEmail:
    """Build a MaskedEmail from its JSON object, raising on mistyped fields."""
    if not isinstance(data, dict):
        raise JmapClientError("failed to parse response: masked email is not an object")
    return MaskedEmail(
        id=_parse_text(data, "id"),
        email=_parse_text(data, "email"),
        state=_parse_state(_parse_text(data, "state")),
        for_domain=_parse_text(data, "forDomain"),
        description=_parse_text(data, "description"),
        created_at=_parse_timestamp(data.get("createdAt"), "createdAt"),
        last_message_at=_parse_timestamp(data.get("lastMessageAt"), "lastMessageAt"),
    )


def normalize_domain(value: str) -> str:
    """Turn a URL or bare domain into a canonical "<scheme>://<host>" origin."""
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError("domain cannot be empty")
    if "://" not in trimmed:
        trimmed = "https://" + trimmed

    try:
        parts = urlsplit(trimmed)
        parts.port  # validates the port
    except ValueError as exc:
        raise ValidationError(f"failed to parse domain {_quote(value)}: {exc}") from exc

    host = parts.hostname or ""
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in host):
        raise ValidationError(f"failed to parse domain {_quote(value)}: invalid character in host")
    if not host:
        raise ValidationError(f"invalid domain {_quote(value)}: missing host")

    scheme = parts.scheme.lower() or "https"
    host = host.lower()
    if host.endswith("."):
        host = host[:-1]
    return f"{scheme}://{host}"


def domains_match(a: str, b: str) -> bool:
    """Whether two domains denote the same origin."""
    try:
        return normalize_domain(a) == normalize_domain(b)
    except ValidationError:
        return a.strip().lower().rstrip("/") == b.strip().lower().rstrip("/")


def looks_like_email(value: str) -> bool:
    """Whether value has the rough shape of an e-mail address."""
    return value.count("@") == 1 and " " not in value and "\t" not in value


def _first_payload(response: Response, check_error: bool = True) -> Any:
    if not response.method_responses:
        raise JmapClientError("empty response from server")
    entry = response.method_responses[0]
    if check_error:
        name = entry[0] if entry else None
        if not isinstance(name, str):
            raise JmapClientError("invalid response format")
        if name == "error":
            payload = entry[1] if len(entry) > 1 else None
            raise JmapClientError(f"API error: {payload}")
    return entry[1] if len(entry) > 1 else None


def _object_field(payload: Any, key: str) -> dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise JmapClientError("failed to parse response: result is not an object")
    value = payload.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise JmapClientError(f"failed to parse response: {key} is not an object")
    return value


class MaskedEmailClient(ServiceBase):
    """Manages masked e-mail aliases."""

    def _set(self, arguments: dict[str, Any]) -> Response:
        session = self._session()
        return self._call(
            _USING,
            MethodCall("MaskedEmail/set", {"accountId": session.account_id, **arguments}, "0"),
        )

    def get_masked_emails(self) -> list[MaskedEmail]:
        """Return every masked e-mail alias of the account."""
        session = self._session()
        response = self._call(
            _USING,
            MethodCall(
                "MaskedEmail/get",
                {"accountId": session.account_id, "properties": list(_PROPERTIES)},
                "0",
            ),
        )
        payload = _first_payload(response)
        if payload is None:
            return []
        if not isinstance(payload, dict):
            raise JmapClientError("failed to parse response: result is not an object")
        items = payload.get("list")
        if items is None:
            return []
        if not isinstance(items, list):
            raise JmapClientError("failed to parse response: list is not an array")
        return [parse_masked_email(item) for item in items]

    def get_masked_email_by_email(self, email: str) -> MaskedEmail:
        """Return the alias with exactly this address."""
        for alias in self.get_masked_emails():
            if alias.email == email:
                return alias
        raise NotFoundError("masked email", email)

    def get_masked_emails_for_domain(self, domain: str) -> list[MaskedEmail]:
        """Return the aliases for domain that have not been deleted."""
        normalized = normalize_domain(domain)
        return [
            alias
            for alias in self.get_masked_emails()
            if alias.state != MaskedEmailState.DELETED
            and domains_match(alias.for_domain, normalized)
        ]

    def create_masked_email(self, domain: str, description: str = "") -> MaskedEmail:
        """Create an alias for domain and return it."""
        normalized = normalize_domain(domain)
        new: dict[str, Any] = {"forDomain": normalized}
        if description:
            new["description"] = description
        payload = _first_payload(self._set({"create": {"new": new}}))
        created = _object_field(payload, "created")
        if "new" not in created:
            raise JmapClientError("failed to create masked email")
        return parse_masked_email(created["new"])

    def update_masked_email_state(self, masked_id: str, state: MaskedEmailState | str) -> None:
        """Change the state of the alias with this id."""
        value = state.value if isinstance(state, MaskedEmailState) else state
        payload = _first_payload(self._set({"update": {masked_id: {"state": value}}}))
        if masked_id not in _object_field(payload, "updated"):
            raise JmapClientError("failed to update masked email")

    def update_masked_email_description(self, masked_id: str, description: str) -> None:
        """Change the description of the alias with this id."""
        payload = _first_payload(
            self._set({"update": {masked_id: {"description": description}}}),
            check_error=False,
        )
        if masked_id not in _object_field(payload, "updated"):
            raise JmapClientError("failed to update masked email description")