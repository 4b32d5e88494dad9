"""Mail data types and the parsing and formatting of JMAP mail objects."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from .errors import JmapClientError
from .helpers import get_bool, get_int, get_string


@dataclass
class Mailbox:
    """A mailbox (folder)."""

    id: str
    name: str
    role: str = ""
    total_emails: int = 0
    unread_emails: int = 0
    total_threads: int = 0
    unread_threads: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Mailbox":
        return cls(
            id=get_string(data, "id"),
            name=get_string(data, "name"),
            role=get_string(data, "role"),
            total_emails=get_int(data, "totalEmails"),
            unread_emails=get_int(data, "unreadEmails"),
            total_threads=get_int(data, "totalThreads"),
            unread_threads=get_int(data, "unreadThreads"),
        )


@dataclass
class EmailAddress:
    """An address with an optional display name."""

    email: str
    name: str = ""


@dataclass
class BodyPart:
    """A reference to one body part."""

    part_id: str
    type: str = ""


@dataclass
class Attachment:
    """An attachment of a message."""

    part_id: str = ""
    blob_id: str = ""
    name: str = ""
    type: str = ""
    size: int = 0


@dataclass
class Email:
    """A message as returned by Email/get; body values map part ids to text."""

    id: str = ""
    thread_id: str = ""
    subject: str = ""
    from_: list[EmailAddress] = field(default_factory=list)
    to: list[EmailAddress] = field(default_factory=list)
    cc: list[EmailAddress] = field(default_factory=list)
    bcc: list[EmailAddress] = field(default_factory=list)
    reply_to: list[EmailAddress] = field(default_factory=list)
    received_at: str = ""
    preview: str = ""
    has_attachment: bool = False
    keywords: dict[str, bool] = field(default_factory=dict)
    mailbox_ids: dict[str, bool] = field(default_factory=dict)
    body_values: dict[str, str] = field(default_factory=dict)
    text_body: list[BodyPart] = field(default_factory=list)
    html_body: list[BodyPart] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    message_id: list[str] = field(default_factory=list)
    in_reply_to: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)


@dataclass
class Identity:
    """A sending identity."""

    id: str
    email: str
    name: str = ""
    may_delete: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Identity":
        return cls(
            id=get_string(data, "id"),
            email=get_string(data, "email"),
            name=get_string(data, "name"),
            may_delete=get_bool(data, "mayDelete"),
        )


@dataclass
class AttachmentOpts:
    """An uploaded blob to attach to an outgoing message."""

    blob_id: str
    name: str
    type: str


@dataclass
class SendEmailOpts:
    """What to put in an outgoing message or draft."""

    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    subject: str = ""
    text_body: str = ""
    html_body: str = ""
    from_address: str = ""
    mailbox_id: str = ""
    in_reply_to: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    attachments: list[AttachmentOpts] = field(default_factory=list)


@dataclass
class BulkResult:
    """Outcome of a bulk update: ids that succeeded and id -> error for failures."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


@dataclass
class SearchSnippet:
    """Highlighted search context for one message."""

    email_id: str
    subject: str = ""
    preview: str = ""


@dataclass
class CreateMailboxOpts:
    """A new mailbox; an empty parent id puts it at the root."""

    name: str
    parent_id: str = ""


@dataclass
class ForwardEmailOpts:
    """Recipients, optional sender and optional note for a forward."""

    to: list[str] = field(default_factory=list)
    from_address: str = ""
    body: str = ""


class ForwardFromSource(str, Enum):
    """How the From address of a forward was chosen."""

    EXPLICIT = "explicit"
    MASKED = "masked"
    DEFAULT = "default"


@dataclass
class ImportEmailOpts:
    """A raw message blob to import into mailboxes."""

    blob_id: str = ""
    mailbox_ids: dict[str, bool] = field(default_factory=dict)
    keywords: dict[str, bool] = field(default_factory=dict)
    received_at: str = ""


def parse_addresses(items: Iterable[Any]) -> list[EmailAddress]:
    """Parse a list of address objects, skipping anything that is not an object."""
    return [
        EmailAddress(email=get_string(item, "email"), name=get_string(item, "name"))
        for item in items
        if isinstance(item, dict)
    ]


def parse_body_parts(items: Iterable[Any]) -> list[BodyPart]:
    """Parse a list of body part objects, skipping anything that is not an object."""
    return [
        BodyPart(part_id=get_string(item, "partId"), type=get_string(item, "type"))
        for item in items
        if isinstance(item, dict)
    ]


def parse_string_array(items: Iterable[Any]) -> list[str]:
    """Keep only the strings of a list."""
    return [item for item in items if isinstance(item, str)]


def parse_attachment(data: dict[str, Any]) -> Attachment:
    """Parse one attachment object."""
    return Attachment(
        part_id=get_string(data, "partId"),
        blob_id=get_string(data, "blobId"),
        name=get_string(data, "name"),
        type=get_string(data, "type"),
        size=get_int(data, "size"),
    )


def _bool_map(value: Any) -> dict[str, bool]:
    if not isinstance(value, dict):
        return {}
    return {key: flag for key, flag in value.items() if isinstance(flag, bool)}


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    return value if isinstance(value, list) else []


def parse_email(data: dict[str, Any]) -> Email:
    """Parse an Email object, ignoring fields of the wrong type."""
    body_values_raw = data.get("bodyValues")
    body_values: dict[str, str] = {}
    if isinstance(body_values_raw, dict):
        body_values = {
            part_id: get_string(value, "value")
            for part_id, value in body_values_raw.items()
            if isinstance(value, dict)
        }
    return Email(
        id=get_string(data, "id"),
        thread_id=get_string(data, "threadId"),
        subject=get_string(data, "subject"),
        received_at=get_string(data, "receivedAt"),
        preview=get_string(data, "preview"),
        has_attachment=get_bool(data, "hasAttachment"),
        from_=parse_addresses(_list(data, "from")),
        to=parse_addresses(_list(data, "to")),
        cc=parse_addresses(_list(data, "cc")),
        bcc=parse_addresses(_list(data, "bcc")),
        reply_to=parse_addresses(_list(data, "replyTo")),
        message_id=parse_string_array(_list(data, "messageId")),
        in_reply_to=parse_string_array(_list(data, "inReplyTo")),
        references=parse_string_array(_list(data, "references")),
        keywords=_bool_map(data.get("keywords")),
        mailbox_ids=_bool_map(data.get("mailboxIds")),
        body_values=body_values,
        text_body=parse_body_parts(_list(data, "textBody")),
        html_body=parse_body_parts(_list(data, "htmlBody")),
        attachments=[
            parse_attachment(item) for item in _list(data, "attachments") if isinstance(item, dict)
        ],
    )


def _payload(method_response: Sequence[Any]) -> Any:
    return method_response[1] if len(method_response) > 1 else None


def parse_email_list(method_response: Sequence[Any]) -> list[Email]:
    """Parse the emails of an Email/get method response."""
    result = _payload(method_response)
    if not isinstance(result, dict):
        raise JmapClientError("unexpected response format")
    items = result.get("list")
    if not isinstance(items, list):
        raise JmapClientError("unexpected list format")
    return [parse_email(item) for item in items if isinstance(item, dict)]


def _type_name(value: Any) -> str:
    return "nil" if value is None else type(value).__name__


def parse_search_snippets(method_response: Sequence[Any]) -> list[SearchSnippet]:
    """Parse the snippets of a SearchSnippet/get method response."""
    result = _payload(method_response)
    if not isinstance(result, dict):
        raise JmapClientError(
            f"invalid SearchSnippet/get response: expected map, got {_type_name(result)}"
        )
    items = result.get("list")
    if not isinstance(items, list):
        raise JmapClientError(
            f"invalid SearchSnippet/get response: expected list array, got {_type_name(items)}"
        )
    return [
        SearchSnippet(
            email_id=get_string(item, "emailId"),
            subject=get_string(item, "subject"),
            preview=get_string(item, "preview"),
        )
        for item in items
        if isinstance(item, dict)
    ]


def _describe_set_error(info: Any) -> str:
    if not isinstance(info, dict):
        return "unknown error"
    error_type = get_string(info, "type")
    description = get_string(info, "description")
    if error_type and description:
        return f"{error_type}: {description}"
    return error_type or description or "unknown error"


def parse_bulk_update_result(result: dict[str, Any]) -> BulkResult:
    """Split the updated and notUpdated parts of a /set response."""
    updated = result.get("updated")
    not_updated = result.get("notUpdated")
    return BulkResult(
        succeeded=list(updated) if isinstance(updated, dict) else [],
        failed=(
            {key: _describe_set_error(info) for key, info in not_updated.items()}
            if isinstance(not_updated, dict)
            else {}
        ),
    )


def format_address_list(addresses: Iterable[EmailAddress]) -> str:
    """Join addresses as "Name <email>" or bare email, comma separated."""
    return ", ".join(
        f"{addr.name} <{addr.email}>" if addr.name else addr.email for addr in addresses
    )


_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)
_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _parse_rfc3339(value: str) -> datetime | None:
    match = _RFC3339.match(value)
    if match is None:
        return None
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    if zone == "Z":
        tz = timezone.utc
    else:
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        if hours > 23 or minutes > 59:
            return None
        offset = timedelta(hours=hours, minutes=minutes)
        tz = timezone(-offset if zone[0] == "-" else offset)
    micros = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tz
        )
    except ValueError:
        return None


def _format_rfc1123z(moment: datetime) -> str:
    return (
        f"{_DAYS[moment.weekday()]}, {moment.day:02d} {_MONTHS[moment.month - 1]} "
        f"{moment.year:04d} {moment:%H:%M:%S} {moment:%z}"
    )


def _escape_html(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("'", "&#39;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&#34;")
    )


def _first_body(parts: Iterable[BodyPart], values: dict[str, str]) -> str:
    return next((values[part.part_id] for part in parts if part.part_id in values), "")


_QUOTE_DIV = '<div style="border-left: 2px solid #ccc; padding-left: 10px; margin-left: 5px;">\n'


def build_forward_body(original: Email, prepend_body: str = "") -> tuple[str, str]:
    """Return the (text, html) bodies for forwarding original; html is "" without HTML."""
    received = _parse_rfc3339(original.received_at)
    date_text = _format_rfc1123z(received) if received else original.received_at

    header = (
        "---------- Forwarded message ---------\n"
        f"From: {format_address_list(original.from_)}\n"
        f"Date: {date_text}\n"
        f"Subject: {original.subject}\n"
        f"To: {format_address_list(original.to)}\n"
    )
    if original.cc:
        header += f"Cc: {format_address_list(original.cc)}\n"
    header += "\n"

    original_text = _first_body(original.text_body, original.body_values)
    original_html = _first_body(original.html_body, original.body_values)

    if prepend_body:
        text_body = prepend_body + "\n\n" + header + original_text
    else:
        text_body = header + original_text

    html_body = ""
    if original_html:
        html_header = header.replace("\n", "<br>\n")
        quoted = (
            _QUOTE_DIV
            + '<p style="color: #666;">'
            + html_header
            + "</p>\n"
            + original_html
            + "\n</div>"
        )
        if prepend_body:
            note = _escape_html(prepend_body).replace("\n", "<br>")
            html_body = "<p>" + note + "</p><br>\n" + quoted
        else:
            html_body = quoted

    return text_body, html_body