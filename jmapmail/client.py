"""The full mail client: drafts, sending, replies and forwards."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from .account import IdentityClient
from .errors import (
    InvalidFromAddressError,
    JmapClientError,
    NoBodyError,
    NoDraftsMailboxError,
    NoIdentitiesError,
    NoSentMailboxError,
    ValidationError,
)
from .maskedemail import MASKED_EMAIL_NAMESPACE, MaskedEmailClient, MaskedEmailState
from .messages import MessageClient
from .models import (
    AttachmentOpts,
    Email,
    ForwardEmailOpts,
    ForwardFromSource,
    Identity,
    Mailbox,
    SendEmailOpts,
    build_forward_body,
)
from .protocol import MethodCall
from .quota import QuotaClient

_log = logging.getLogger(__name__)

_MAIL_USING = ["urn:ietf:params:jmap:core", "urn:ietf:params:jmap:mail"]
_SUBMISSION_USING = [
    "urn:ietf:params:jmap:core",
    "urn:ietf:params:jmap:mail",
    "urn:ietf:params:jmap:submission",
]
_USABLE_MASKED_STATES = (MaskedEmailState.ENABLED, MaskedEmailState.PENDING)


def _addresses(emails: list[str]) -> list[dict[str, str]]:
    return [{"email": address} for address in emails]


def _default_identity(identities: list[Identity]) -> Identity:
    return next((identity for identity in identities if not identity.may_delete), identities[0])


def _sub_object(result: dict[str, Any], key: str) -> dict[str, Any]:
    value = result.get(key)
    return value if isinstance(value, dict) else {}


def _email_object(
    opts: SendEmailOpts, mailbox_id: str, from_email: str, *, always_to: bool
) -> dict[str, Any]:
    email_obj: dict[str, Any] = {
        "mailboxIds": {mailbox_id: True},
        "keywords": {"$draft": True},
        "from": [{"email": from_email}],
        "subject": opts.subject,
    }
    if opts.to or always_to:
        email_obj["to"] = _addresses(opts.to)
    if opts.cc:
        email_obj["cc"] = _addresses(opts.cc)
    if opts.bcc:
        email_obj["bcc"] = _addresses(opts.bcc)

    body_values: dict[str, dict[str, str]] = {}
    if opts.text_body:
        email_obj["textBody"] = [{"partId": "text", "type": "text/plain"}]
        body_values["text"] = {"value": opts.text_body}
    if opts.html_body:
        email_obj["htmlBody"] = [{"partId": "html", "type": "text/html"}]
        body_values["html"] = {"value": opts.html_body}
    email_obj["bodyValues"] = body_values

    if opts.attachments:
        email_obj["attachments"] = [
            {
                "blobId": att.blob_id,
                "name": att.name,
                "type": att.type,
                "disposition": "attachment",
            }
            for att in opts.attachments
        ]
    return email_obj


class Client(MessageClient, IdentityClient, MaskedEmailClient, QuotaClient):
    """Every mail, identity, masked e-mail and quota operation over one transport."""

    def _find_masked_email_recipient(self, email: Email) -> str:
        """Return the first To or Cc address that is a usable masked e-mail, or ""."""
        try:
            aliases = self.get_masked_emails()
        except (JmapClientError, OSError):
            return ""
        masked = {
            alias.email.lower() for alias in aliases if alias.state in _USABLE_MASKED_STATES
        }
        for address in [*email.to, *email.cc]:
            if address.email.lower() in masked:
                return address.email
        return ""

    def _mailbox_with_role(self, mailboxes: list[Mailbox], role: str) -> Mailbox | None:
        return next((mailbox for mailbox in mailboxes if mailbox.role == role), None)

    def save_draft(self, opts: SendEmailOpts) -> str:
        """Save a message in the drafts mailbox without sending it; return its id."""
        session = self._session()

        from_email = opts.from_address
        if not from_email:
            identities = self.get_identities()
            if not identities:
                raise NoIdentitiesError()
            from_email = _default_identity(identities).email

        drafts = self._mailbox_with_role(self.get_mailboxes(), "drafts")
        if drafts is None:
            raise NoDraftsMailboxError()

        email_obj = _email_object(opts, drafts.id, from_email, always_to=False)
        if opts.in_reply_to:
            email_obj["inReplyTo"] = list(opts.in_reply_to)
        if opts.references:
            email_obj["references"] = list(opts.references)

        response = self._call(
            _MAIL_USING,
            MethodCall(
                "Email/set",
                {"accountId": session.account_id, "create": {"draft": email_obj}},
                "createDraft",
            ),
        )
        result = self._result(response)

        not_created = _sub_object(result, "notCreated")
        if "draft" in not_created:
            raise JmapClientError(f"failed to create draft: {not_created['draft']}")

        draft = _sub_object(result, "created").get("draft")
        if isinstance(draft, dict) and isinstance(draft.get("id"), str):
            return draft["id"]
        raise JmapClientError("draft created but ID not returned")

    def send_email(self, opts: SendEmailOpts) -> str:
        """Send a message and return the submission id ("unknown" if none came back)."""
        session = self._session()
        identities = self.get_identities()
        if not identities:
            raise NoIdentitiesError()
        default = _default_identity(identities)

        auth_id = ""
        auth_email = ""
        send_from = ""
        envelope_from = ""
        is_masked = False
        temp_identity_id = ""

        if opts.from_address:
            wanted = opts.from_address.lower()
            match = next((i for i in identities if i.email.lower() == wanted), None)
            if match is not None:
                auth_id = match.id
                auth_email = send_from = envelope_from = match.email
            else:
                try:
                    aliases = self.get_masked_emails()
                except (JmapClientError, OSError):
                    aliases = []
                for alias in aliases:
                    if alias.email.lower() == wanted and alias.state in _USABLE_MASKED_STATES:
                        is_masked = True
                        send_from = alias.email
                        envelope_from = ""
                        try:
                            masked_id = self.create_identity(alias.email)
                        except (JmapClientError, OSError):
                            masked_id = ""
                        if masked_id:
                            auth_id = masked_id
                            auth_email = alias.email
                            temp_identity_id = masked_id
                        else:
                            auth_id = default.id
                            auth_email = default.email
                        break
            if not auth_id:
                raise InvalidFromAddressError(
                    opts.from_address,
                    [identity.email for identity in identities],
                    is_masked_email=False,
                )
        else:
            auth_id = default.id
            auth_email = send_from = envelope_from = default.email

        try:
            return self._submit(
                session.account_id,
                opts,
                auth_id=auth_id,
                auth_email=auth_email,
                send_from=send_from,
                envelope_from=envelope_from,
                is_masked=is_masked,
            )
        finally:
            if temp_identity_id:
                try:
                    self.delete_identity(temp_identity_id)
                except (JmapClientError, OSError) as exc:
                    _log.debug(
                        "failed to delete temporary identity %s: %s", temp_identity_id, exc
                    )

    def _submit(
        self,
        account_id: str,
        opts: SendEmailOpts,
        *,
        auth_id: str,
        auth_email: str,
        send_from: str,
        envelope_from: str,
        is_masked: bool,
    ) -> str:
        mailboxes = self.get_mailboxes()
        drafts = sent = None
        for mailbox in mailboxes:
            if mailbox.role == "drafts":
                drafts = mailbox
            if mailbox.role == "sent":
                sent = mailbox
        if drafts is None:
            raise NoDraftsMailboxError()
        if sent is None:
            raise NoSentMailboxError()
        if not opts.text_body and not opts.html_body:
            raise NoBodyError()

        email_obj = _email_object(
            opts, opts.mailbox_id or drafts.id, send_from, always_to=True
        )
        if auth_email and auth_email.lower() != send_from.lower():
            email_obj["sender"] = [{"email": auth_email}]

        submission: dict[str, Any] = {"emailId": "#draft", "identityId": auth_id}
        if envelope_from:
            submission["envelope"] = {
                "mailFrom": {"email": envelope_from},
                "rcptTo": _addresses(opts.to),
            }

        using = list(_SUBMISSION_USING)
        if is_masked:
            using.append(MASKED_EMAIL_NAMESPACE)

        response = self._call(
            using,
            MethodCall(
                "Email/set",
                {"accountId": account_id, "create": {"draft": email_obj}},
                "createEmail",
            ),
            MethodCall(
                "EmailSubmission/set",
                {
                    "accountId": account_id,
                    "create": {"submission": submission},
                    "onSuccessUpdateEmail": {
                        "#submission": {
                            "mailboxIds": {sent.id: True},
                            "keywords": {"$seen": True},
                        }
                    },
                },
                "submitEmail",
            ),
        )

        email_result = self._result(response, 0)
        not_created = _sub_object(email_result, "notCreated")
        if "draft" in not_created:
            raise JmapClientError(f"failed to create email: {not_created['draft']}")

        submission_result = self._result(response, 1)
        not_submitted = _sub_object(submission_result, "notCreated")
        if "submission" in not_submitted:
            raise JmapClientError(f"failed to submit email: {not_submitted['submission']}")

        created = _sub_object(submission_result, "created").get("submission")
        if isinstance(created, dict) and isinstance(created.get("id"), str):
            return created["id"]
        return "unknown"

    def create_reply_draft(self, reply_to_id: str, opts: SendEmailOpts) -> str:
        """Save a draft threaded as a reply to the message with reply_to_id."""
        try:
            original = self.get_email_by_id(reply_to_id)
        except JmapClientError as exc:
            raise JmapClientError(f"failed to fetch original email: {exc}") from exc

        draft = replace(
            opts,
            to=list(opts.to),
            in_reply_to=list(opts.in_reply_to),
            references=list(opts.references),
        )
        if original.message_id:
            draft.in_reply_to = list(original.message_id)
        refs = [*original.references, *original.message_id]
        if refs:
            draft.references = refs

        if not draft.to:
            source = original.reply_to or original.from_
            draft.to = [address.email for address in source]

        if not draft.subject and original.subject:
            subject = original.subject
            if not subject.lower().startswith("re:"):
                subject = "Re: " + subject
            draft.subject = subject

        if not draft.from_address:
            masked = self._find_masked_email_recipient(original)
            if masked:
                draft.from_address = masked

        return self.save_draft(draft)

    def resolve_forward_from(
        self, original: Email, opts: ForwardEmailOpts
    ) -> tuple[str, ForwardFromSource]:
        """Return the From address a forward would use and how it was chosen."""
        if opts.from_address:
            return opts.from_address, ForwardFromSource.EXPLICIT
        masked = self._find_masked_email_recipient(original)
        if masked:
            return masked, ForwardFromSource.MASKED
        identities = self.get_identities()
        if not identities:
            raise NoIdentitiesError()
        return _default_identity(identities).email, ForwardFromSource.DEFAULT

    def forward_email(self, original: Email, opts: ForwardEmailOpts) -> str:
        """Forward original with its attachments to new recipients."""
        if not opts.to:
            raise ValidationError("at least one recipient is required")

        from_address = opts.from_address or self._find_masked_email_recipient(original)

        subject = original.subject
        if not subject.lower().startswith("fwd:"):
            subject = "Fwd: " + subject

        text_body, html_body = build_forward_body(original, opts.body)
        attachments = [
            AttachmentOpts(blob_id=att.blob_id, name=att.name, type=att.type)
            for att in original.attachments
        ]
        return self.send_email(
            SendEmailOpts(
                to=list(opts.to),
                subject=subject,
                text_body=text_body,
                html_body=html_body,
                from_address=from_address,
                attachments=attachments,
            )
        )