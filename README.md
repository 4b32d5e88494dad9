# jmapmail

A small, dependency-free library for working with mail accounts over JMAP.
It builds JMAP requests, hands them to a transport you provide, and turns the
responses into plain Python dataclasses.

## What it covers

- **Mailboxes** (`jmapmail.account.MailboxClient`): `get_mailboxes`,
  `get_mailbox_by_name` (matches the name or the role, such as `inbox`,
  `sent`, `drafts` or `trash`, ignoring case), `resolve_mailbox_id` (accepts
  a name, a role or an ID), `create_mailbox`, `rename_mailbox` and
  `delete_mailbox`.
- **Identities** (`jmapmail.account.IdentityClient`): `get_identities`,
  `create_identity` and `delete_identity`.
- **Messages** (`jmapmail.messages.MessageClient`): `get_emails` (newest
  first, optionally in one mailbox), `search_emails`,
  `search_emails_with_snippets`, `get_email_by_id` (with bodies, attachments
  and threading headers), `get_thread` (a message ID may stand in for the
  thread ID), `get_email_attachments`, `move_email`, `delete_email` (moves to
  the trash mailbox), `mark_email_read`, their bulk forms `move_emails`,
  `delete_emails` and `mark_emails_read` (which return a `BulkResult` with
  the IDs that succeeded and an error text for each that failed),
  `get_thread_message_counts` and `import_email`.
- **Composing** (`jmapmail.client.Client`): `save_draft`, `send_email`,
  `create_reply_draft` (threads the draft onto an existing message, fills in
  recipients and a `Re:` subject when they are missing) and `forward_email`
  (adds a `Fwd:` subject, a quoted header and the original attachments).
  `Client` also carries every operation listed above and below.
- **Masked emails** (`jmapmail.maskedemail.MaskedEmailClient`):
  `get_masked_emails`, `get_masked_email_by_email`,
  `get_masked_emails_for_domain` (skips deleted aliases),
  `create_masked_email`, `update_masked_email_state` (see
  `MaskedEmailState`) and `update_masked_email_description`.
- **Quotas** (`jmapmail.quota.QuotaClient`): `get_quotas`, available when the
  session lists the `urn:ietf:params:jmap:quota` capability; otherwise it
  raises `QuotaNotEnabledError`.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Connecting

You give every client a `jmapmail.protocol.Transport`, an object with two
methods:

- `get_session()` returns a `Session` holding the account ID and the
  capabilities (and, if you like, the API, upload and download URLs);
- `make_request(request)` sends a `Request` (its wire form is
  `request.to_dict()`) and returns the server's reply as a `Response`, whose
  `method_responses` are `[name, arguments, call id]` lists.

Any HTTP library can sit behind these two methods. With a transport in hand:

```python
from jmapmail.client import Client
from jmapmail.models import SendEmailOpts

client = Client(transport)

for mailbox in client.get_mailboxes():
    print(mailbox.name, mailbox.unread_emails)

submission_id = client.send_email(
    SendEmailOpts(
        to=["friend@example.com"],
        subject="Hello",
        text_body="Just saying hi.",
    )
)
```

`send_email` returns the submission ID, or `"unknown"` when the server does
not return one.

## Choosing the sender

Without `from_address`, `send_email` and `save_draft` use the account's
primary identity (the first one that cannot be deleted, else the first one).

`create_reply_draft` and `forward_email`, when no sender is given, look at the
To and Cc addresses of the original message; if one of them is an enabled or
pending masked email, the reply or forward is sent from it.
`resolve_forward_from` tells you which address a forward would use and why,
as a `ForwardFromSource` (`EXPLICIT`, `MASKED` or `DEFAULT`).

When `send_email` is asked to send from a masked email that is not one of
your identities, it creates a temporary identity for that address, uses it
for the submission and deletes it afterwards. If the identity cannot be
created, the primary identity authorises the message and is named in its
`Sender` header. An address that is neither an identity nor a usable masked
email raises `InvalidFromAddressError`, which lists the identities you could
use instead.

## Errors

Failures are raised as exceptions from `jmapmail.errors`, all derived from
`JmapClientError`. Missing things have their own types
(`MailboxNotFoundError`, `EmailNotFoundError`, `ThreadNotFoundError`,
`NotFoundError`, `NoDraftsMailboxError`, `NoSentMailboxError`,
`NoTrashMailboxError`, `NoIdentitiesError`, ...), bad input raises
`ValidationError`, and an "error" method response decoded with
`jmapmail.protocol.decode_method_response` carries a `JMAPError` as its
cause. Helpers such as `is_not_found_error`, `is_jmap_error` and
`is_invalid_from_address_error` look through wrapped causes.

## Helpers

`jmapmail.maskedemail` offers `normalize_domain` (turns `Example.COM` or
`https://example.com/path` into `https://example.com`), `domains_match` and
`looks_like_email`. `jmapmail.models` has the parsers for JMAP mail objects
(`parse_email`, `parse_email_list`, `parse_search_snippets`, ...),
`format_address_list` and `build_forward_body`, which returns the text and
HTML bodies used when forwarding.

## What it does not do

- It makes no network connections: there is no built-in HTTP transport and
  no session discovery or authentication. You supply the `Transport`.
- It does not upload or download blobs. `import_email` and attachments on
  outgoing messages take blob IDs that you must upload some other way.
- It has no command-line tool, and no contacts or calendar support.