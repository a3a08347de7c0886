"""
Tests for email provider adapters
"""
import json
import smtplib
from unittest.mock import MagicMock, patch

import httpx
import pytest
import resend as resend_module
from resend.exceptions import ResendError

from genie_gateway.core.errors import (
    CredentialsNotConfiguredError,
    ProviderAuthError,
    ProviderError,
    SMTPAuthError,
    SMTPQuotaError,
    ValidationFailedError,
)
from genie_gateway.domain.models.email import Contact, OutboundEmail
from genie_gateway.infrastructure.providers import ProviderFactory, ProviderType
from genie_gateway.infrastructure.providers.email import (
    GmailSMTPProvider,
    KitProvider,
    ResendProvider,
    SMTPProvider,
    ZohoCampaignsProvider,
)

GMAIL = {"email": "me@gmail.com", "appPassword": "abcd efgh ijkl mnop"}


def message(**kwargs):
    defaults = dict(to="a@b.com", subject="Hi", html="<p>Hello</p>")
    defaults.update(kwargs)
    return OutboundEmail(**defaults)


def recording_transport(responses):
    """MockTransport answering by path; records every request."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        for suffix, response in responses.items():
            if request.url.path.endswith(suffix):
                return httpx.Response(response.status_code, content=response.content, headers=response.headers)
        return httpx.Response(404, json={"message": "unexpected path"})

    return httpx.MockTransport(handler), calls


@pytest.fixture
def smtp_server():
    """Patch smtplib.SMTP; yields the server object used inside `with`."""
    with patch("genie_gateway.infrastructure.providers.email.smtp.smtplib.SMTP") as smtp_cls:
        server = MagicMock()
        server.__enter__.return_value = server
        smtp_cls.return_value = server
        server.smtp_cls = smtp_cls
        yield server


class TestProviderRegistry:

    def test_all_email_providers_registered(self):
        names = set(ProviderFactory.list_providers(ProviderType.EMAIL))

        assert names == {"gmail", "zoho_mail_smtp", "zoho_campaigns", "kit", "resend"}

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            ProviderFactory.create("mailchimp")

    def test_create_passes_credentials(self):
        provider = ProviderFactory.create("gmail", GMAIL)

        assert isinstance(provider, GmailSMTPProvider)
        assert provider.credentials["email"] == "me@gmail.com"


class TestGmailSMTPProvider:

    @pytest.mark.asyncio
    async def test_missing_credentials(self, smtp_server):
        """Raised before any connection attempt"""
        provider = GmailSMTPProvider(credentials={})

        with pytest.raises(CredentialsNotConfiguredError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.message.startswith("Gmail SMTP credentials not configured")
        smtp_server.smtp_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_uses_starttls_and_strips_password_spaces(self, smtp_server):
        provider = GmailSMTPProvider(credentials=GMAIL)

        result = await provider.send_email(message())

        smtp_server.smtp_cls.assert_called_once_with("smtp.gmail.com", 587, timeout=30)
        smtp_server.starttls.assert_called_once()
        smtp_server.login.assert_called_once_with("me@gmail.com", "abcdefghijklmnop")
        from_address, recipients, _ = smtp_server.sendmail.call_args[0]
        assert from_address == "me@gmail.com"
        assert recipients == ["a@b.com"]
        assert result.provider == "gmail"
        assert result.message_id

    @pytest.mark.asyncio
    async def test_auth_failure(self, smtp_server):
        smtp_server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        provider = GmailSMTPProvider(credentials=GMAIL)

        with pytest.raises(SMTPAuthError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_550_is_quota(self, smtp_server):
        smtp_server.sendmail.side_effect = smtplib.SMTPDataError(550, b"Daily user sending quota exceeded")
        provider = GmailSMTPProvider(credentials=GMAIL)

        with pytest.raises(SMTPQuotaError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_connection_failure_is_provider_error(self, smtp_server):
        smtp_server.smtp_cls.side_effect = OSError("connection refused")
        provider = GmailSMTPProvider(credentials=GMAIL)

        with pytest.raises(ProviderError) as exc_info:
            await provider.send_email(message())

        assert "connection refused" in exc_info.value.message


class TestSMTPProvider:

    @pytest.mark.asyncio
    async def test_incomplete_configuration(self, smtp_server):
        provider = SMTPProvider(credentials={"smtpEmail": "me@zoho.com"})

        with pytest.raises(CredentialsNotConfiguredError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.message == SMTPProvider.INCOMPLETE_MESSAGE

    @pytest.mark.asyncio
    async def test_implicit_tls_port(self):
        provider = SMTPProvider(credentials={
            "smtpEmail": "me@zoho.com", "smtpPassword": "pw", "smtpPort": "465",
        })
        with patch("genie_gateway.infrastructure.providers.email.smtp.smtplib.SMTP_SSL") as smtp_ssl:
            server = MagicMock()
            server.__enter__.return_value = server
            smtp_ssl.return_value = server

            await provider.send_email(message())

        assert smtp_ssl.call_args[0] == ("smtp.zoho.com", 465)
        server.login.assert_called_once_with("me@zoho.com", "pw")

    @pytest.mark.asyncio
    async def test_failed_starttls_closes_connection(self, smtp_server):
        smtp_server.starttls.side_effect = smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")
        provider = SMTPProvider(credentials={"smtpEmail": "me@zoho.com", "smtpPassword": "pw"})

        with pytest.raises(ProviderError):
            await provider.send_email(message())

        smtp_server.close.assert_called_once()
        smtp_server.login.assert_not_called()


class TestZohoCampaignsProvider:

    CREDS = {"clientId": "c", "clientSecret": "s", "accessToken": "tok"}

    @pytest.mark.asyncio
    async def test_quick_campaign_send(self):
        transport, calls = recording_transport({
            "/quickcampaign": httpx.Response(200, json={"status": "success", "campaign_key": "ck-1"}),
        })
        provider = ZohoCampaignsProvider(credentials=self.CREDS, transport=transport)

        result = await provider.send_email(message())

        assert result.message_id == "ck-1"
        assert calls[0].headers["Authorization"] == "Zoho-oauthtoken tok"
        assert calls[0].url.host == "campaigns.zoho.com"
        assert json.loads(calls[0].content)["recipients"] == "a@b.com"

    @pytest.mark.asyncio
    async def test_401_is_auth_error(self):
        transport, _ = recording_transport({
            "/quickcampaign": httpx.Response(401, json={"message": "Invalid OAuth token"}),
        })
        provider = ZohoCampaignsProvider(credentials=self.CREDS, transport=transport)

        with pytest.raises(ProviderAuthError):
            await provider.send_email(message())

    @pytest.mark.asyncio
    async def test_invalid_token_code_is_auth_error(self):
        """Zoho sometimes reports a dead token with HTTP 200"""
        transport, _ = recording_transport({
            "/quickcampaign": httpx.Response(200, json={"status": "error", "code": "1007"}),
        })
        provider = ZohoCampaignsProvider(credentials=self.CREDS, transport=transport)

        with pytest.raises(ProviderAuthError):
            await provider.send_email(message())

    @pytest.mark.asyncio
    async def test_upstream_error_keeps_status(self):
        transport, _ = recording_transport({
            "/quickcampaign": httpx.Response(400, json={"status": "error", "message": "Invalid recipients"}),
        })
        provider = ZohoCampaignsProvider(credentials=self.CREDS, transport=transport)

        with pytest.raises(ProviderError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.message == "Invalid recipients"
        assert exc_info.value.upstream_status == 400

    @pytest.mark.asyncio
    async def test_no_access_token(self):
        transport, calls = recording_transport({})
        provider = ZohoCampaignsProvider(credentials={"clientId": "c"}, transport=transport)

        with pytest.raises(CredentialsNotConfiguredError):
            await provider.send_email(message())
        assert calls == []

    @pytest.mark.asyncio
    async def test_eu_domain(self):
        transport, calls = recording_transport({
            "/getorganizationdetails": httpx.Response(200, json={
                "status": "success", "organization_name": "Acme",
            }),
        })
        provider = ZohoCampaignsProvider(credentials={**self.CREDS, "domain": "eu"}, transport=transport)

        result = await provider.test_connection()

        assert result.success
        assert result.details["organizationName"] == "Acme"
        assert calls[0].url.host == "campaigns.zoho.eu"

    @pytest.mark.asyncio
    async def test_add_contact_subscribes_to_list(self):
        transport, calls = recording_transport({
            "/listsubscribe": httpx.Response(200, json={"status": "success", "message": "added"}),
        })
        provider = ZohoCampaignsProvider(credentials=self.CREDS, transport=transport)

        await provider.add_contact("list-9", Contact(email="ann@x.com", first_name="Ann", company="Acme"))

        body = json.loads(calls[0].content)
        assert calls[0].url.path == "/api/v1.1/json/listsubscribe"
        assert body["listkey"] == "list-9"
        assert json.loads(body["contactinfo"]) == [{
            "Contact Email": "ann@x.com", "First Name": "Ann", "Last Name": "", "Company": "Acme",
        }]

    @pytest.mark.asyncio
    async def test_add_contact_needs_list_key(self):
        transport, calls = recording_transport({})
        provider = ZohoCampaignsProvider(credentials=self.CREDS, transport=transport)

        with pytest.raises(ValidationFailedError):
            await provider.add_contact(None, Contact(email="ann@x.com"))
        assert calls == []


def kit_transport():
    """Kit API stand-in: every POST /tags creates a new tag id."""
    calls = []
    tag_ids = iter(range(500, 600))

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        path = request.url.path
        if path == "/v4/tags":
            return httpx.Response(201, json={"tag": {"id": next(tag_ids), "name": json.loads(request.content)["name"]}})
        if path.endswith("/subscribers"):
            return httpx.Response(201, json={"subscriber": {"id": 7}})
        if path == "/v4/broadcasts":
            return httpx.Response(201, json={"broadcast": {"id": 99}})
        return httpx.Response(404, json={"message": "unexpected path"})

    return httpx.MockTransport(handler), calls


def broadcast_tags(calls):
    return [
        json.loads(c.content)["subscriber_filter"][0]["all"][0]["ids"]
        for c in calls if c.url.path == "/v4/broadcasts"
    ]


class TestKitProvider:

    CREDS = {"apiKey": "kit_key", "tagId": "42"}

    @pytest.mark.asyncio
    async def test_send_targets_a_tag_of_its_own(self):
        transport, calls = kit_transport()
        provider = KitProvider(credentials=self.CREDS, transport=transport)

        result = await provider.send_email(message())

        paths = [c.url.path for c in calls]
        assert paths == [
            "/v4/subscribers", "/v4/tags", "/v4/tags/500/subscribers",
            "/v4/tags/42/subscribers", "/v4/broadcasts",
        ]
        assert all(c.headers["X-Kit-Api-Key"] == "kit_key" for c in calls)
        assert json.loads(calls[1].content)["name"].startswith("genie-send-")
        assert broadcast_tags(calls) == [[500]]
        assert result.message_id == "99"

    @pytest.mark.asyncio
    async def test_consecutive_sends_reach_only_their_recipient(self):
        """Earlier recipients are never in a later broadcast's audience"""
        transport, calls = kit_transport()
        provider = KitProvider(credentials=self.CREDS, transport=transport)

        await provider.send_email(message(to="first@x.com"))
        await provider.send_email(message(to="second@x.com"))

        first, second = broadcast_tags(calls)
        assert set(first).isdisjoint(second)
        tagged = {
            c.url.path.split("/")[3]: json.loads(c.content)["email_address"]
            for c in calls if c.url.path.startswith("/v4/tags/")
        }
        assert tagged[str(first[0])] == "first@x.com"
        assert tagged[str(second[0])] == "second@x.com"

    @pytest.mark.asyncio
    async def test_send_without_tenant_tag(self):
        transport, calls = kit_transport()
        provider = KitProvider(credentials={"apiKey": "kit_key"}, transport=transport)

        await provider.send_email(message())

        assert [c.url.path for c in calls] == [
            "/v4/subscribers", "/v4/tags", "/v4/tags/500/subscribers", "/v4/broadcasts",
        ]

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        transport, calls = kit_transport()
        provider = KitProvider(credentials={"tagId": "42"}, transport=transport)

        with pytest.raises(CredentialsNotConfiguredError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.message == KitProvider.NOT_CONFIGURED_MESSAGE
        assert calls == []

    @pytest.mark.asyncio
    async def test_add_contact_tags_subscriber(self):
        transport, calls = kit_transport()
        provider = KitProvider(credentials={"apiKey": "kit_key"}, transport=transport)

        result = await provider.add_contact("77", Contact(email="ann@x.com", first_name="Ann"))

        assert [c.url.path for c in calls] == ["/v4/subscribers", "/v4/tags/77/subscribers"]
        assert json.loads(calls[0].content) == {"email_address": "ann@x.com", "first_name": "Ann"}
        assert result["tagId"] == "77"

    @pytest.mark.asyncio
    async def test_api_error(self):
        transport, _ = recording_transport({
            "/subscribers": httpx.Response(422, json={"errors": ["Email address is invalid"]}),
        })
        provider = KitProvider(credentials=self.CREDS, transport=transport)

        with pytest.raises(ProviderError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.message == "Email address is invalid"


@pytest.fixture
def resend_sdk():
    """Patch the resend SDK calls; records the API key active during each call."""
    keys = []
    module = "genie_gateway.infrastructure.providers.email.resend.resend"
    with patch(f"{module}.Emails.send") as send, patch(f"{module}.Domains.list") as list_domains:
        def remember_key(*args, **kwargs):
            keys.append(resend_module.api_key)
            return send.return_value

        send.side_effect = remember_key
        send.keys = keys
        yield send, list_domains


class TestResendProvider:

    CREDS = {"apiKey": "re_123", "fromEmail": "news@acme.com", "fromName": "Acme"}

    @pytest.mark.asyncio
    async def test_send(self, resend_sdk):
        send, _ = resend_sdk
        send.return_value = {"id": "email-1"}
        provider = ResendProvider(credentials=self.CREDS)

        result = await provider.send_email(message())

        params = send.call_args[0][0]
        assert send.keys == ["re_123"]
        assert params["from"] == "Acme <news@acme.com>"
        assert params["to"] == ["a@b.com"]
        assert params["text"] == "Hello"
        assert result.message_id == "email-1"

    @pytest.mark.asyncio
    async def test_sdk_error_keeps_status(self, resend_sdk):
        send, _ = resend_sdk
        send.side_effect = ResendError(
            code=422, error_type="validation_error", message="Invalid `from` field", suggested_action="",
        )
        provider = ResendProvider(credentials=self.CREDS)

        with pytest.raises(ProviderError) as exc_info:
            await provider.send_email(message())

        assert exc_info.value.message == "Invalid `from` field"
        assert exc_info.value.upstream_status == 422

    @pytest.mark.asyncio
    async def test_missing_sender(self, resend_sdk):
        send, _ = resend_sdk
        provider = ResendProvider(credentials={"apiKey": "re_123"})

        with pytest.raises(CredentialsNotConfiguredError):
            await provider.send_email(message())
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_connection_lists_domains(self, resend_sdk):
        _, list_domains = resend_sdk
        list_domains.return_value = {"data": [{"name": "acme.com"}]}
        provider = ResendProvider(credentials=self.CREDS)

        result = await provider.test_connection()

        assert result.success
        assert result.details == {"domains": ["acme.com"]}

    @pytest.mark.asyncio
    async def test_connection_rejected_key(self, resend_sdk):
        _, list_domains = resend_sdk
        list_domains.side_effect = ResendError(
            code=401, error_type="validation_error", message="API key is invalid", suggested_action="",
        )

        result = await ResendProvider(credentials=self.CREDS).test_connection()

        assert result.success is False
        assert result.error == "API key is invalid"
