"""Reading, searching, moving, flagging and importing messages."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from .errors import (
    EmailNotFoundError,
    JmapClientError,
    NoTrashMailboxError,
    ThreadNotFoundError,
    ValidationError,
)
from .helpers import get_string
from .models import (
    Attachment,
    BulkResult,
    Email,
    ImportEmailOpts,
    SearchSnippet,
    parse_attachment,
    parse_bulk_update_result,
    parse_email,
    parse_email_list,
    parse_search_snippets,
)
from .account import MailboxClient
from .protocol import MethodCall, Response

_MAIL_USING = ["urn:ietf:params:jmap:core", "urn:ietf:params:jmap:mail"]

_MAILBOX_LIST_PROPERTIES = [
    "id",
    "subject",
    "from",
    "to",
    "receivedAt",
    "preview",
    "hasAttachment",
    "keywords",
    "threadId",
]

_SEARCH_LIST_PROPERTIES = [
    "id",
    "subject",
    "from",
    "to",
    "cc",
    "receivedAt",
    "preview",
    "hasAttachment",
    "keywords",
    "threadId",
]

_FULL_PROPERTIES = [
    "id",
    "subject",
    "from",
    "to",
    "cc",
    "bcc",
    "replyTo",
    "receivedAt",
    "textBody",
    "htmlBody",
    "attachments",
    "bodyValues",
    "keywords",
    "threadId",
    "messageId",
    "inReplyTo",
    "references",
]

_NEWEST_FIRST = [{"property": "receivedAt", "isAscending": False}]
_QUERY_IDS = {"resultOf": "query", "name": "Email/query", "path": "/ids"}


def _entry(response: Response, index: int) -> Sequence[Any]:
    try:
        return response.method_responses[index]
    except IndexError:
        raise JmapClientError("unexpected response format") from None


def _sub_object(result: dict[str, Any], key: str) -> dict[str, Any]:
    value = result.get(key)
    return value if isinstance(value, dict) else {}


class MessageClient(MailboxClient):
    """Operations on individual messages and batches of them."""

    def _query_calls(
        self, account_id: str, filter_: dict[str, Any], limit: int, properties: list[str]
    ) -> list[MethodCall]:
        return [
            MethodCall(
                "Email/query",
                {
                    "accountId": account_id,
                    "filter": filter_,
                    "sort": _NEWEST_FIRST,
                    "limit": limit,
                },
                "query",
            ),
            MethodCall(
                "Email/get",
                {
                    "accountId": account_id,
                    "#ids": dict(_QUERY_IDS),
                    "properties": list(properties),
                },
                "emails",
            ),
        ]

    def _email_set(self, arguments: dict[str, Any], call_id: str) -> dict[str, Any]:
        session = self._session()
        response = self._call(
            _MAIL_USING,
            MethodCall("Email/set", {"accountId": session.account_id, **arguments}, call_id),
        )
        return self._result(response)

    def _trash_id(self) -> str:
        for mailbox in self.get_mailboxes():
            if mailbox.role == "trash":
                return mailbox.id
        raise NoTrashMailboxError()

    def _bulk_update(self, patches: dict[str, Any], call_id: str) -> BulkResult:
        return parse_bulk_update_result(self._email_set({"update": patches}, call_id))

    def get_emails(self, mailbox_id: str = "", limit: int = 50) -> list[Email]:
        """Return the newest messages, optionally limited to one mailbox."""
        session = self._session()
        filter_: dict[str, Any] = {"inMailbox": mailbox_id} if mailbox_id else {}
        response = self._call(
            _MAIL_USING,
            *self._query_calls(session.account_id, filter_, limit, _MAILBOX_LIST_PROPERTIES),
        )
        return parse_email_list(_entry(response, 1))

    def get_email_by_id(self, email_id: str) -> Email:
        """Return one message with its bodies, attachments and threading headers."""
        session = self._session()
        response = self._call(
            _MAIL_USING,
            MethodCall(
                "Email/get",
                {
                    "accountId": session.account_id,
                    "ids": [email_id],
                    "properties": list(_FULL_PROPERTIES),
                    "bodyProperties": ["partId", "blobId", "type", "size"],
                    "fetchTextBodyValues": True,
                    "fetchHTMLBodyValues": True,
                },
                "email",
            ),
        )
        result = self._result(response)

        not_found = result.get("notFound")
        if isinstance(not_found, list) and not_found:
            raise EmailNotFoundError(email_id)

        items = result.get("list")
        if not isinstance(items, list) or not items:
            raise JmapClientError(f"email with ID '{email_id}' not found or not accessible")
        data = items[0]
        if not isinstance(data, dict):
            raise JmapClientError("unexpected email format")
        return parse_email(data)

    def search_emails(self, query: str, limit: int = 50) -> list[Email]:
        """Return the newest messages matching a full-text query."""
        session = self._session()
        filter_: dict[str, Any] = {"text": query} if query else {}
        response = self._call(
            _MAIL_USING,
            *self._query_calls(session.account_id, filter_, limit, _SEARCH_LIST_PROPERTIES),
        )
        return parse_email_list(_entry(response, 1))

    def search_emails_with_snippets(
        self, query: str, limit: int = 50
    ) -> tuple[list[Email], list[SearchSnippet]]:
        """Search and also return highlighted snippets for the matches."""
        session = self._session()
        filter_: dict[str, Any] = {"text": query} if query else {}
        calls = self._query_calls(session.account_id, filter_, limit, _SEARCH_LIST_PROPERTIES)
        calls.append(
            MethodCall(
                "SearchSnippet/get",
                {
                    "accountId": session.account_id,
                    "filter": filter_,
                    "#emailIds": dict(_QUERY_IDS),
                },
                "snippets",
            )
        )
        response = self._call(_MAIL_USING, *calls)
        emails = parse_email_list(_entry(response, 1))
        snippets = parse_search_snippets(_entry(response, 2))
        return emails, snippets

    def delete_email(self, email_id: str) -> None:
        """Move a message to the trash mailbox."""
        self._session()
        trash_id = self._trash_id()
        result = self._email_set(
            {"update": {email_id: {"mailboxIds": {trash_id: True}}}}, "moveToTrash"
        )
        if email_id in _sub_object(result, "notUpdated"):
            raise JmapClientError("failed to delete email")

    def delete_emails(self, email_ids: Iterable[str]) -> BulkResult:
        """Move several messages to the trash mailbox in one request."""
        ids = list(email_ids)
        if not ids:
            return BulkResult()
        self._session()
        trash_id = self._trash_id()
        patches = {email_id: {"mailboxIds": {trash_id: True}} for email_id in ids}
        return self._bulk_update(patches, "moveToTrash")

    def move_email(self, email_id: str, target_mailbox_id: str) -> None:
        """Put a message in the target mailbox only, removing it from all others."""
        result = self._email_set(
            {"update": {email_id: {"mailboxIds": {target_mailbox_id: True}}}}, "moveEmail"
        )
        if email_id in _sub_object(result, "notUpdated"):
            raise JmapClientError("failed to move email")

    def move_emails(self, email_ids: Iterable[str], target_mailbox_id: str) -> BulkResult:
        """Move several messages to the target mailbox in one request."""
        ids = list(email_ids)
        if not ids:
            return BulkResult()
        patches = {email_id: {"mailboxIds": {target_mailbox_id: True}} for email_id in ids}
        return self._bulk_update(patches, "moveEmails")

    def mark_email_read(self, email_id: str, read: bool = True) -> None:
        """Set or clear the $seen keyword of a message, leaving other keywords alone."""
        result = self._email_set(
            {"update": {email_id: {"keywords/$seen": True if read else None}}}, "updateEmail"
        )
        if email_id in _sub_object(result, "notUpdated"):
            state = "read" if read else "unread"
            raise JmapClientError(f"failed to mark email as {state}")

    def mark_emails_read(self, email_ids: Iterable[str], read: bool = True) -> BulkResult:
        """Set or clear $seen on several messages in one request."""
        ids = list(email_ids)
        if not ids:
            return BulkResult()
        seen = True if read else None
        patches = {email_id: {"keywords/$seen": seen} for email_id in ids}
        return self._bulk_update(patches, "markRead")

    def _thread_of(self, account_id: str, maybe_email_id: str) -> str | None:
        try:
            response = self._call(
                _MAIL_USING,
                MethodCall(
                    "Email/get",
                    {
                        "accountId": account_id,
                        "ids": [maybe_email_id],
                        "properties": ["threadId"],
                    },
                    "checkEmail",
                ),
            )
        except (JmapClientError, OSError):
            return None
        entries = response.method_responses
        if not entries or len(entries[0]) < 2 or not isinstance(entries[0][1], dict):
            return None
        items = entries[0][1].get("list")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None
        thread_id = items[0].get("threadId")
        return thread_id if isinstance(thread_id, str) else None

    def get_thread(self, thread_id: str) -> list[Email]:
        """Return every message of a thread; a message id may stand in for the thread id."""
        session = self._session()
        actual = self._thread_of(session.account_id, thread_id) or thread_id

        response = self._call(
            _MAIL_USING,
            MethodCall(
                "Thread/get",
                {"accountId": session.account_id, "ids": [actual]},
                "getThread",
            ),
            MethodCall(
                "Email/get",
                {
                    "accountId": session.account_id,
                    "#ids": {
                        "resultOf": "getThread",
                        "name": "Thread/get",
                        "path": "/list/*/emailIds",
                    },
                    "properties": list(_SEARCH_LIST_PROPERTIES),
                },
                "emails",
            ),
        )
        thread_result = self._result(response)
        not_found = thread_result.get("notFound")
        if isinstance(not_found, list) and not_found:
            raise ThreadNotFoundError(actual)
        return parse_email_list(_entry(response, 1))

    def get_email_attachments(self, email_id: str) -> list[Attachment]:
        """Return the attachments of a message, or an empty list."""
        session = self._session()
        response = self._call(
            _MAIL_USING,
            MethodCall(
                "Email/get",
                {
                    "accountId": session.account_id,
                    "ids": [email_id],
                    "properties": ["attachments"],
                },
                "getAttachments",
            ),
        )
        result = self._result(response)
        items = result.get("list")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return []
        attachments = items[0].get("attachments")
        if not isinstance(attachments, list):
            return []
        return [parse_attachment(item) for item in attachments if isinstance(item, dict)]

    def get_thread_message_counts(self, thread_ids: Iterable[str]) -> dict[str, int]:
        """Return the number of messages in each thread, fetched in one request."""
        unique = list(dict.fromkeys(tid for tid in thread_ids if tid))
        if not unique:
            return {}
        session = self._session()
        response = self._call(
            _MAIL_USING,
            MethodCall("Thread/get", {"accountId": session.account_id, "ids": unique}, "threads"),
        )
        result = self._result(response)
        counts: dict[str, int] = {}
        items = result.get("list")
        if isinstance(items, list):
            for thread in items:
                if not isinstance(thread, dict):
                    continue
                email_ids = thread.get("emailIds")
                if isinstance(email_ids, list):
                    counts[get_string(thread, "id")] = len(email_ids)
        return counts

    def import_email(self, opts: ImportEmailOpts) -> str:
        """Import an uploaded RFC 5322 message blob and return the new message id."""
        if not opts.blob_id:
            raise ValidationError("blobId is required")
        if not opts.mailbox_ids:
            raise ValidationError("at least one mailbox is required")

        session = self._session()
        email_obj: dict[str, Any] = {
            "blobId": opts.blob_id,
            "mailboxIds": dict(opts.mailbox_ids),
        }
        if opts.keywords:
            email_obj["keywords"] = dict(opts.keywords)
        if opts.received_at:
            email_obj["receivedAt"] = opts.received_at

        response = self._call(
            _MAIL_USING,
            MethodCall(
                "Email/import",
                {"accountId": session.account_id, "emails": {"import1": email_obj}},
                "importEmail",
            ),
        )
        result = self._result(response)

        not_created = _sub_object(result, "notCreated")
        if "import1" in not_created:
            raise JmapClientError(f"failed to import email: {not_created['import1']}")

        created = _sub_object(result, "created").get("import1")
        if isinstance(created, dict):
            new_id = created.get("id")
            if isinstance(new_id, str):
                return new_id
        raise JmapClientError("email imported but ID not returned")