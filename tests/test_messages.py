import pytest

from jmapmail.errors import (
    EmailNotFoundError,
    JmapClientError,
    NoTrashMailboxError,
    ThreadNotFoundError,
    ValidationError,
)
from jmapmail.messages import MessageClient
from jmapmail.models import Attachment, BulkResult, ImportEmailOpts, SearchSnippet
from jmapmail.protocol import Response, Session


class FakeTransport:
    def __init__(self, *responses):
        self.session = Session(account_id="acc123")
        self.responses = list(responses)
        self.requests = []

    def get_session(self):
        return self.session

    def make_request(self, request):
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def resp(*entries):
    return Response(method_responses=[list(entry) for entry in entries])


def mailboxes_response(with_trash=True):
    items = [{"id": "mb-inbox", "name": "Inbox", "role": "inbox"}]
    if with_trash:
        items.append({"id": "mb-trash", "name": "Trash", "role": "trash"})
    return resp(["Mailbox/get", {"list": items}, "mailboxes"])


def client_with(*responses):
    transport = FakeTransport(*responses)
    return MessageClient(transport), transport


EMAIL_LIST = {
    "list": [
        {"id": "email1", "subject": "First", "receivedAt": "2025-01-15T10:00:00Z"},
        "invalid",
        {"id": "email2", "subject": "Second", "receivedAt": "2025-01-15T11:00:00Z"},
    ]
}


def test_get_emails_filters_by_mailbox_and_parses_list():
    client, transport = client_with(
        resp(["Email/query", {"ids": []}, "query"], ["Email/get", EMAIL_LIST, "emails"])
    )
    emails = client.get_emails("mb-inbox", 10)
    assert [e.id for e in emails] == ["email1", "email2"]
    query = transport.requests[0].method_calls[0]
    assert query.name == "Email/query"
    assert query.arguments["filter"] == {"inMailbox": "mb-inbox"}
    assert query.arguments["limit"] == 10
    assert query.arguments["accountId"] == "acc123"
    get = transport.requests[0].method_calls[1]
    assert "cc" not in get.arguments["properties"]


def test_get_emails_without_mailbox_uses_empty_filter():
    client, transport = client_with(
        resp(["Email/query", {}, "query"], ["Email/get", {"list": []}, "emails"])
    )
    assert client.get_emails("", 5) == []
    assert transport.requests[0].method_calls[0].arguments["filter"] == {}


def test_get_emails_bad_list_raises():
    client, _ = client_with(
        resp(["Email/query", {}, "query"], ["Email/get", {"list": "nope"}, "emails"])
    )
    with pytest.raises(JmapClientError, match="unexpected list format"):
        client.get_emails("", 5)


def test_get_email_by_id_parses_email():
    client, transport = client_with(
        resp(
            [
                "Email/get",
                {"list": [{"id": "e1", "subject": "Hi", "messageId": ["<m1@example.com>"]}]},
                "email",
            ]
        )
    )
    email = client.get_email_by_id("e1")
    assert email.subject == "Hi"
    assert email.message_id == ["<m1@example.com>"]
    args = transport.requests[0].method_calls[0].arguments
    assert args["ids"] == ["e1"]
    assert args["fetchHTMLBodyValues"] is True


def test_get_email_by_id_not_found():
    client, _ = client_with(resp(["Email/get", {"list": [], "notFound": ["e1"]}, "email"]))
    with pytest.raises(EmailNotFoundError) as info:
        client.get_email_by_id("e1")
    assert str(info.value) == "email not found: e1"


def test_get_email_by_id_empty_list():
    client, _ = client_with(resp(["Email/get", {"list": []}, "email"]))
    with pytest.raises(JmapClientError) as info:
        client.get_email_by_id("e1")
    assert str(info.value) == "email with ID 'e1' not found or not accessible"


def test_search_emails_sets_text_filter():
    client, transport = client_with(
        resp(["Email/query", {}, "query"], ["Email/get", EMAIL_LIST, "emails"])
    )
    emails = client.search_emails("invoice", 20)
    assert len(emails) == 2
    args = transport.requests[0].method_calls[0].arguments
    assert args["filter"] == {"text": "invoice"}
    assert args["sort"] == [{"property": "receivedAt", "isAscending": False}]


def test_search_emails_with_snippets():
    client, transport = client_with(
        resp(
            ["Email/query", {}, "query"],
            ["Email/get", EMAIL_LIST, "emails"],
            [
                "SearchSnippet/get",
                {"list": [{"emailId": "email1", "subject": "<em>First</em>"}]},
                "snippets",
            ],
        )
    )
    emails, snippets = client.search_emails_with_snippets("first", 5)
    assert [e.id for e in emails] == ["email1", "email2"]
    assert snippets == [SearchSnippet(email_id="email1", subject="<em>First</em>", preview="")]
    snippet_call = transport.requests[0].method_calls[2]
    assert snippet_call.arguments["filter"] == {"text": "first"}


def test_search_emails_with_snippets_bad_snippets_raises():
    client, _ = client_with(
        resp(
            ["Email/query", {}, "query"],
            ["Email/get", EMAIL_LIST, "emails"],
            ["SearchSnippet/get", "bad", "snippets"],
        )
    )
    with pytest.raises(JmapClientError, match="invalid SearchSnippet/get response"):
        client.search_emails_with_snippets("x", 5)


def test_delete_email_moves_to_trash():
    client, transport = client_with(
        mailboxes_response(), resp(["Email/set", {"updated": {"e1": None}}, "moveToTrash"])
    )
    client.delete_email("e1")
    update = transport.requests[1].method_calls[0].arguments["update"]
    assert update == {"e1": {"mailboxIds": {"mb-trash": True}}}


def test_delete_email_without_trash():
    client, _ = client_with(mailboxes_response(with_trash=False))
    with pytest.raises(NoTrashMailboxError):
        client.delete_email("e1")


def test_delete_email_not_updated():
    client, _ = client_with(
        mailboxes_response(),
        resp(["Email/set", {"notUpdated": {"e1": {"type": "notFound"}}}, "moveToTrash"]),
    )
    with pytest.raises(JmapClientError, match="failed to delete email"):
        client.delete_email("e1")


def test_delete_emails_empty_makes_no_request():
    client, transport = client_with()
    assert client.delete_emails([]) == BulkResult()
    assert transport.requests == []


def test_delete_emails_partial_failure():
    client, transport = client_with(
        mailboxes_response(),
        resp(
            [
                "Email/set",
                {
                    "updated": {"e1": None},
                    "notUpdated": {"e2": {"type": "notFound", "description": "gone"}},
                },
                "moveToTrash",
            ]
        ),
    )
    result = client.delete_emails(["e1", "e2"])
    assert result.succeeded == ["e1"]
    assert result.failed == {"e2": "notFound: gone"}
    assert set(transport.requests[1].method_calls[0].arguments["update"]) == {"e1", "e2"}


def test_move_email_failure():
    client, _ = client_with(resp(["Email/set", {"notUpdated": {"e1": {}}}, "moveEmail"]))
    with pytest.raises(JmapClientError, match="failed to move email"):
        client.move_email("e1", "mb-archive")


def test_move_emails_success():
    client, transport = client_with(
        resp(["Email/set", {"updated": {"e1": None, "e2": None}}, "moveEmails"])
    )
    result = client.move_emails(["e1", "e2"], "mb-archive")
    assert sorted(result.succeeded) == ["e1", "e2"]
    assert result.failed == {}
    update = transport.requests[0].method_calls[0].arguments["update"]
    assert update["e2"] == {"mailboxIds": {"mb-archive": True}}


def test_move_emails_empty():
    client, transport = client_with()
    assert client.move_emails([], "mb") == BulkResult()
    assert transport.requests == []


def test_mark_email_read_patches_seen():
    client, transport = client_with(resp(["Email/set", {"updated": {"e1": None}}, "updateEmail"]))
    client.mark_email_read("e1", True)
    assert transport.requests[0].method_calls[0].arguments["update"] == {
        "e1": {"keywords/$seen": True}
    }


def test_mark_email_unread_failure_message():
    client, transport = client_with(
        resp(["Email/set", {"notUpdated": {"e1": {}}}, "updateEmail"])
    )
    with pytest.raises(JmapClientError, match="failed to mark email as unread"):
        client.mark_email_read("e1", False)
    assert transport.requests[0].method_calls[0].arguments["update"] == {
        "e1": {"keywords/$seen": None}
    }


def test_mark_emails_read_bulk():
    client, _ = client_with(
        resp(["Email/set", {"updated": {"e1": None}, "notUpdated": {"e2": "x"}}, "markRead"])
    )
    result = client.mark_emails_read(["e1", "e2"], True)
    assert result.succeeded == ["e1"]
    assert result.failed == {"e2": "unknown error"}


def test_get_thread_resolves_email_id():
    client, transport = client_with(
        resp(["Email/get", {"list": [{"threadId": "t1"}]}, "checkEmail"]),
        resp(
            ["Thread/get", {"list": [{"id": "t1", "emailIds": ["email1"]}]}, "getThread"],
            ["Email/get", EMAIL_LIST, "emails"],
        ),
    )
    emails = client.get_thread("email1")
    assert [e.id for e in emails] == ["email1", "email2"]
    assert transport.requests[1].method_calls[0].arguments["ids"] == ["t1"]


def test_get_thread_ignores_failed_lookup():
    client, transport = client_with(
        JmapClientError("network"),
        resp(
            ["Thread/get", {"list": []}, "getThread"],
            ["Email/get", {"list": []}, "emails"],
        ),
    )
    assert client.get_thread("t9") == []
    assert transport.requests[1].method_calls[0].arguments["ids"] == ["t9"]


def test_get_thread_not_found():
    client, _ = client_with(
        resp(["Email/get", {"list": []}, "checkEmail"]),
        resp(
            ["Thread/get", {"list": [], "notFound": ["t9"]}, "getThread"],
            ["Email/get", {"list": []}, "emails"],
        ),
    )
    with pytest.raises(ThreadNotFoundError) as info:
        client.get_thread("t9")
    assert str(info.value) == "thread not found: t9"


def test_get_email_attachments():
    client, _ = client_with(
        resp(
            [
                "Email/get",
                {
                    "list": [
                        {
                            "attachments": [
                                {
                                    "partId": "att-1",
                                    "blobId": "blob-1",
                                    "name": "doc.pdf",
                                    "type": "application/pdf",
                                    "size": 1024.0,
                                },
                                "junk",
                            ]
                        }
                    ]
                },
                "getAttachments",
            ]
        )
    )
    assert client.get_email_attachments("e1") == [
        Attachment(
            part_id="att-1", blob_id="blob-1", name="doc.pdf", type="application/pdf", size=1024
        )
    ]


def test_get_email_attachments_empty():
    client, _ = client_with(resp(["Email/get", {"list": []}, "getAttachments"]))
    assert client.get_email_attachments("e1") == []


def test_get_thread_message_counts_dedupes():
    client, transport = client_with(
        resp(
            [
                "Thread/get",
                {
                    "list": [
                        {"id": "t1", "emailIds": ["a", "b", "c"]},
                        {"id": "t2", "emailIds": ["d"]},
                    ]
                },
                "threads",
            ]
        )
    )
    counts = client.get_thread_message_counts(["t1", "", "t2", "t1"])
    assert counts == {"t1": 3, "t2": 1}
    assert transport.requests[0].method_calls[0].arguments["ids"] == ["t1", "t2"]


def test_get_thread_message_counts_empty():
    client, transport = client_with()
    assert client.get_thread_message_counts(["", ""]) == {}
    assert transport.requests == []


def import_response(payload):
    return resp(["Email/import", payload, "importEmail"])


@pytest.mark.parametrize(
    "opts, payload, want_id",
    [
        (
            ImportEmailOpts(blob_id="blob123", mailbox_ids={"inbox": True}),
            {"accountId": "acc123", "created": {"import1": {"id": "email456"}}},
            "email456",
        ),
        (
            ImportEmailOpts(
                blob_id="blob123", mailbox_ids={"inbox": True}, keywords={"$seen": True}
            ),
            {"accountId": "acc123", "created": {"import1": {"id": "email789"}}},
            "email789",
        ),
        (
            ImportEmailOpts(
                blob_id="blob123",
                mailbox_ids={"inbox": True},
                received_at="2024-01-15T10:30:00Z",
            ),
            {"accountId": "acc123", "created": {"import1": {"id": "email999"}}},
            "email999",
        ),
        (
            ImportEmailOpts(
                blob_id="blob123",
                mailbox_ids={"inbox": True, "archive": True},
                keywords={"$seen": True, "$flagged": True},
                received_at="2024-01-15T10:30:00Z",
            ),
            {"accountId": "acc123", "created": {"import1": {"id": "email111"}}},
            "email111",
        ),
    ],
)
def test_import_email_success(opts, payload, want_id):
    client, transport = client_with(import_response(payload))
    assert client.import_email(opts) == want_id
    email_obj = transport.requests[0].method_calls[0].arguments["emails"]["import1"]
    assert email_obj["blobId"] == "blob123"
    assert email_obj["mailboxIds"] == opts.mailbox_ids
    assert ("keywords" in email_obj) == bool(opts.keywords)
    assert ("receivedAt" in email_obj) == bool(opts.received_at)


@pytest.mark.parametrize(
    "opts",
    [
        ImportEmailOpts(mailbox_ids={"inbox": True}),
        ImportEmailOpts(blob_id="blob123"),
        ImportEmailOpts(blob_id="blob123", mailbox_ids={}),
    ],
)
def test_import_email_validation(opts):
    client, transport = client_with()
    with pytest.raises(ValidationError):
        client.import_email(opts)
    assert transport.requests == []


@pytest.mark.parametrize(
    "payload",
    [
        {"notCreated": {"import1": {"type": "invalidEmail", "description": "Email is invalid"}}},
        {"notCreated": {"import1": {"type": "blobNotFound", "description": "Blob not found"}}},
        {"notCreated": {"import1": {"type": "invalidMailboxes", "description": "Mailbox"}}},
        "not a map",
        {"accountId": "acc123"},
        {"accountId": "acc123", "created": {}},
        {"accountId": "acc123", "created": {"import1": {}}},
    ],
)
def test_import_email_server_errors(payload):
    client, _ = client_with(import_response(payload))
    with pytest.raises(JmapClientError):
        client.import_email(ImportEmailOpts(blob_id="blob123", mailbox_ids={"inbox": True}))


def test_import_email_not_created_message():
    client, _ = client_with(
        import_response({"notCreated": {"import1": {"type": "blobNotFound"}}})
    )
    with pytest.raises(JmapClientError, match="failed to import email"):
        client.import_email(ImportEmailOpts(blob_id="b", mailbox_ids={"inbox": True}))