"""Mailbox and sending-identity management."""

from __future__ import annotations

from typing import Any

from .errors import JmapClientError, MailboxNotFoundError, ValidationError
from .helpers import get_string
from .models import CreateMailboxOpts, Identity, Mailbox
from .protocol import MethodCall, Response, ServiceBase

_MAIL_USING = ["urn:ietf:params:jmap:core", "urn:ietf:params:jmap:mail"]
_SUBMISSION_USING = ["urn:ietf:params:jmap:core", "urn:ietf:params:jmap:submission"]


def _list_of_objects(result: dict[str, Any]) -> list[dict[str, Any]]:
    items = result.get("list")
    if not isinstance(items, list):
        raise JmapClientError("unexpected list format")
    return [item for item in items if isinstance(item, dict)]


def _sub_object(result: dict[str, Any], key: str) -> dict[str, Any]:
    value = result.get(key)
    return value if isinstance(value, dict) else {}


class MailboxClient(ServiceBase):
    """Lists, finds, creates, renames and deletes mailboxes."""

    def _mailbox_set(self, arguments: dict[str, Any], call_id: str) -> dict[str, Any]:
        session = self._session()
        response: Response = self._call(
            _MAIL_USING,
            MethodCall("Mailbox/set", {"accountId": session.account_id, **arguments}, call_id),
        )
        return self._result(response)

    def get_mailboxes(self) -> list[Mailbox]:
        """Return every mailbox of the account."""
        session = self._session()
        response = self._call(
            _MAIL_USING,
            MethodCall("Mailbox/get", {"accountId": session.account_id}, "mailboxes"),
        )
        return [Mailbox.from_dict(item) for item in _list_of_objects(self._result(response))]

    def get_mailbox_by_name(self, name: str) -> Mailbox:
        """Return the first mailbox whose name or role matches name, ignoring case."""
        wanted = name.lower()
        for mailbox in self.get_mailboxes():
            if mailbox.name.lower() == wanted or mailbox.role.lower() == wanted:
                return mailbox
        raise MailboxNotFoundError(name)

    def resolve_mailbox_id(self, id_or_name: str) -> str:
        """Return the id of the mailbox named by a name, a role or an id."""
        if not id_or_name:
            raise ValidationError("mailbox identifier cannot be empty")
        try:
            return self.get_mailbox_by_name(id_or_name).id
        except MailboxNotFoundError:
            pass

        try:
            mailboxes = self.get_mailboxes()
        except JmapClientError as exc:
            raise JmapClientError(f"fetching mailboxes: {exc}") from exc

        if any(mailbox.id == id_or_name for mailbox in mailboxes):
            return id_or_name
        raise MailboxNotFoundError(id_or_name)

    def create_mailbox(self, opts: CreateMailboxOpts) -> Mailbox:
        """Create a mailbox and return it with its new id."""
        if not opts.name:
            raise ValidationError("mailbox name is required")
        new: dict[str, Any] = {"name": opts.name}
        if opts.parent_id:
            new["parentId"] = opts.parent_id

        result = self._mailbox_set({"create": {"new": new}}, "createMailbox")
        not_created = _sub_object(result, "notCreated")
        if "new" in not_created:
            raise JmapClientError(f"failed to create mailbox: {not_created['new']}")
        created = _sub_object(result, "created").get("new")
        if isinstance(created, dict):
            return Mailbox(id=get_string(created, "id"), name=opts.name)
        raise JmapClientError("mailbox created but ID not returned")

    def delete_mailbox(self, mailbox_id: str) -> None:
        """Delete a mailbox; the messages in it are kept."""
        result = self._mailbox_set(
            {"destroy": [mailbox_id], "onDestroyRemoveEmails": False},
            "deleteMailbox",
        )
        not_destroyed = _sub_object(result, "notDestroyed")
        if mailbox_id in not_destroyed:
            raise JmapClientError(f"failed to delete mailbox: {not_destroyed[mailbox_id]}")

    def rename_mailbox(self, mailbox_id: str, new_name: str) -> None:
        """Give a mailbox a new name."""
        if not new_name:
            raise ValidationError("new name is required")
        result = self._mailbox_set(
            {"update": {mailbox_id: {"name": new_name}}},
            "renameMailbox",
        )
        not_updated = _sub_object(result, "notUpdated")
        if mailbox_id in not_updated:
            raise JmapClientError(f"failed to rename mailbox: {not_updated[mailbox_id]}")


class IdentityClient(ServiceBase):
    """Lists, creates and deletes sending identities."""

    def _identity_set(self, arguments: dict[str, Any], call_id: str) -> dict[str, Any]:
        session = self._session()
        response = self._call(
            _SUBMISSION_USING,
            MethodCall("Identity/set", {"accountId": session.account_id, **arguments}, call_id),
        )
        return self._result(response)

    def get_identities(self) -> list[Identity]:
        """Return the sending identities of the account."""
        session = self._session()
        response = self._call(
            _SUBMISSION_USING,
            MethodCall("Identity/get", {"accountId": session.account_id}, "identities"),
        )
        return [Identity.from_dict(item) for item in _list_of_objects(self._result(response))]

    def create_identity(self, email: str) -> str:
        """Create a sending identity for email and return its id."""
        result = self._identity_set(
            {"create": {"new": {"email": email, "name": ""}}},
            "createIdentity",
        )
        not_created = _sub_object(result, "notCreated")
        if "new" in not_created:
            raise JmapClientError(f"failed to create identity: {not_created['new']}")
        created = _sub_object(result, "created").get("new")
        if isinstance(created, dict):
            return get_string(created, "id")
        raise JmapClientError("identity creation returned unexpected result")

    def delete_identity(self, identity_id: str) -> None:
        """Delete the sending identity with this id."""
        result = self._identity_set({"destroy": [identity_id]}, "destroyIdentity")
        not_destroyed = _sub_object(result, "notDestroyed")
        if identity_id in not_destroyed:
            raise JmapClientError(f"failed to delete identity: {not_destroyed[identity_id]}")