from datetime import datetime, timezone

import pytest

from jmapmail.errors import JmapClientError, ValidationError, is_not_found_error
from jmapmail.maskedemail import (
    MASKED_EMAIL_NAMESPACE,
    MaskedEmail,
    MaskedEmailClient,
    MaskedEmailState,
    domains_match,
    looks_like_email,
    normalize_domain,
    parse_masked_email,
)
from jmapmail.protocol import Request, Response, Session


class FakeTransport:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[Request] = []

    def get_session(self):
        return Session(account_id="acc123")

    def make_request(self, request):
        self.requests.append(request)
        return self.responses.pop(0)


def get_response(items):
    return Response(method_responses=[["MaskedEmail/get", {"list": items}, "0"]])


def set_response(payload):
    return Response(method_responses=[["MaskedEmail/set", payload, "0"]])


ALIASES = [
    {"id": "m1", "email": "one@example.com", "state": "enabled", "forDomain": "https://shop.example.com"},
    {"id": "m2", "email": "two@example.com", "state": "deleted", "forDomain": "https://shop.example.com"},
    {"id": "m3", "email": "three@example.com", "state": "pending", "forDomain": "https://other.example.com"},
]


@pytest.mark.parametrize(
    "value, expected",
    [
        ("example.com", "https://example.com"),
        ("  example.com  ", "https://example.com"),
        ("HTTP://Example.COM./path?q=1", "http://example.com"),
        ("https://example.com:8443/login", "https://example.com"),
    ],
)
def test_normalize_domain(value, expected):
    assert normalize_domain(value) == expected


@pytest.mark.parametrize("value", ["", "   ", "https://", "https://example.com:abc"])
def test_normalize_domain_rejects(value):
    with pytest.raises(ValidationError):
        normalize_domain(value)


def test_normalize_domain_is_idempotent():
    once = normalize_domain("Shop.Example.com/")
    assert normalize_domain(once) == once


def test_domains_match():
    assert domains_match("example.com", "https://EXAMPLE.com/")
    assert not domains_match("a.example.com", "b.example.com")
    assert not domains_match("http://example.com", "https://example.com")
    assert domains_match(" ", "")


def test_looks_like_email():
    assert looks_like_email("user@example.com")
    assert not looks_like_email("example.com")
    assert not looks_like_email("a@b@example.com")
    assert not looks_like_email("user name@example.com")
    assert not looks_like_email("user\t@example.com")


def test_parse_masked_email_fields():
    alias = parse_masked_email(
        {
            "id": "m1",
            "email": "one@example.com",
            "state": "enabled",
            "forDomain": "https://shop.example.com",
            "description": "shop",
            "createdAt": "2024-01-15T10:30:00Z",
            "lastMessageAt": None,
        }
    )
    assert alias == MaskedEmail(
        id="m1",
        email="one@example.com",
        state=MaskedEmailState.ENABLED,
        for_domain="https://shop.example.com",
        description="shop",
        created_at=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
        last_message_at=None,
    )


def test_parse_masked_email_keeps_unknown_state():
    alias = parse_masked_email({"id": "m9", "state": "other"})
    assert alias.state == "other"
    assert alias.created_at is None


@pytest.mark.parametrize(
    "data",
    [{"id": 5}, {"createdAt": "yesterday"}, "not an object"],
)
def test_parse_masked_email_rejects_bad_input(data):
    with pytest.raises(JmapClientError):
        parse_masked_email(data)


def test_get_masked_emails_request_and_result():
    transport = FakeTransport(get_response(ALIASES))
    aliases = MaskedEmailClient(transport).get_masked_emails()
    assert [a.id for a in aliases] == ["m1", "m2", "m3"]
    request = transport.requests[0]
    assert MASKED_EMAIL_NAMESPACE in request.using
    call = request.method_calls[0]
    assert call.name == "MaskedEmail/get"
    assert call.arguments["accountId"] == "acc123"
    assert "forDomain" in call.arguments["properties"]


def test_get_masked_emails_error_response():
    transport = FakeTransport(
        Response(method_responses=[["error", {"type": "serverFail"}, "0"]])
    )
    with pytest.raises(JmapClientError, match="API error"):
        MaskedEmailClient(transport).get_masked_emails()


def test_get_masked_emails_empty_response():
    with pytest.raises(JmapClientError, match="empty response from server"):
        MaskedEmailClient(FakeTransport(Response())).get_masked_emails()


def test_get_masked_email_by_email():
    client = MaskedEmailClient(FakeTransport(get_response(ALIASES)))
    assert client.get_masked_email_by_email("three@example.com").id == "m3"


def test_get_masked_email_by_email_missing():
    client = MaskedEmailClient(FakeTransport(get_response(ALIASES)))
    with pytest.raises(JmapClientError) as info:
        client.get_masked_email_by_email("none@example.com")
    assert is_not_found_error(info.value)
    assert str(info.value) == "masked email not found: none@example.com"


def test_get_masked_emails_for_domain_skips_deleted():
    client = MaskedEmailClient(FakeTransport(get_response(ALIASES)))
    found = client.get_masked_emails_for_domain("SHOP.example.com")
    assert [a.id for a in found] == ["m1"]


def test_get_masked_emails_for_domain_rejects_empty_without_request():
    transport = FakeTransport()
    with pytest.raises(ValidationError):
        MaskedEmailClient(transport).get_masked_emails_for_domain("  ")
    assert transport.requests == []


def test_create_masked_email():
    transport = FakeTransport(
        set_response({"created": {"new": {"id": "m7", "email": "new@example.com", "state": "pending"}}})
    )
    alias = MaskedEmailClient(transport).create_masked_email("Shop.Example.com", "")
    assert alias.id == "m7"
    assert alias.state is MaskedEmailState.PENDING
    call = transport.requests[0].method_calls[0]
    assert call.name == "MaskedEmail/set"
    assert call.arguments["create"] == {"new": {"forDomain": "https://shop.example.com"}}


def test_create_masked_email_with_description():
    transport = FakeTransport(set_response({"created": {"new": {"id": "m7"}}}))
    MaskedEmailClient(transport).create_masked_email("example.com", "notes")
    new = transport.requests[0].method_calls[0].arguments["create"]["new"]
    assert new["description"] == "notes"


def test_create_masked_email_not_created():
    transport = FakeTransport(set_response({"notCreated": {"new": {"type": "invalid"}}}))
    with pytest.raises(JmapClientError, match="failed to create masked email"):
        MaskedEmailClient(transport).create_masked_email("example.com", "")


def test_update_masked_email_state():
    transport = FakeTransport(set_response({"updated": {"m1": None}}))
    MaskedEmailClient(transport).update_masked_email_state("m1", MaskedEmailState.DISABLED)
    update = transport.requests[0].method_calls[0].arguments["update"]
    assert update == {"m1": {"state": "disabled"}}


def test_update_masked_email_state_failure():
    transport = FakeTransport(set_response({"notUpdated": {"m1": {}}}))
    with pytest.raises(JmapClientError, match="failed to update masked email"):
        MaskedEmailClient(transport).update_masked_email_state("m1", MaskedEmailState.ENABLED)


def test_update_masked_email_description():
    transport = FakeTransport(set_response({"updated": {"m1": {}}}))
    MaskedEmailClient(transport).update_masked_email_description("m1", "shop")
    update = transport.requests[0].method_calls[0].arguments["update"]
    assert update == {"m1": {"description": "shop"}}


def test_update_masked_email_description_failure():
    transport = FakeTransport(set_response({"updated": {}}))
    with pytest.raises(JmapClientError, match="failed to update masked email description"):
        MaskedEmailClient(transport).update_masked_email_description("m1", "shop")