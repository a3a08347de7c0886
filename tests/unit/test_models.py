"""
Tests for domain models
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from genie_gateway.domain.models import (
    Appointment,
    Campaign,
    CampaignJob,
    CampaignStatus,
    IntegrationCredential,
    JobStatus,
    LeadSearchData,
    LeadSearchRequest,
    LeadSearchResult,
    OutboundEmail,
    SendEmailRequest,
    SendResult,
)
from genie_gateway.domain.models.lead import ConnectionTestResult, normalize_domain


class TestSendEmailRequest:

    def test_to_and_email_are_interchangeable(self):
        """Either 'to' or 'email' names the recipient"""
        request = SendEmailRequest(email="a@b.com", subject="Hi", content="<p>x</p>", tenantId="T1")

        assert request.recipient == "a@b.com"
        assert request.missing_fields() == []

    def test_missing_fields_listed(self):
        request = SendEmailRequest(subject="Hi")

        assert request.missing_fields() == ["to", "content", "tenantId"]

    def test_outbound_plain_text_strips_tags(self):
        request = SendEmailRequest(to="a@b.com", subject="Hi", content="<p>Hello <b>Jane</b></p>", tenantId="T1")
        message = OutboundEmail.from_request(request)

        assert message.plain_text == "Hello Jane"

    def test_send_result_envelope(self):
        result = SendResult(message_id="m-1", provider="gmail", to="a@b.com", subject="Hi", from_address="me")

        assert result.to_dict() == {
            "success": True,
            "messageId": "m-1",
            "provider": "gmail",
            "from": "me",
            "to": "a@b.com",
            "subject": "Hi",
        }


class TestLeadSearchModels:

    def test_string_null_names_are_absent(self):
        """The frontend sends the literal string 'null' for blank names"""
        data = LeadSearchData(firstName="null", lastName="Doe", domain="acme.com")

        assert data.has_person_name is False

    def test_clean_domain(self):
        assert normalize_domain("https://www.acme.com/") == "acme.com"
        assert LeadSearchData(domain="http://acme.io").clean_domain == "acme.io"

    def test_request_completeness(self):
        assert LeadSearchRequest(provider="hunter", apiKey="k", searchData={}).is_complete()
        assert not LeadSearchRequest(provider="hunter", apiKey="k").is_complete()

    def test_failed_result_always_has_error(self):
        result = LeadSearchResult.failed("hunter", "")

        assert result.to_dict() == {"success": False, "provider": "hunter", "error": "Unknown provider error"}

    def test_connection_result_shapes(self):
        ok = ConnectionTestResult(success=True, message="ok", credits=10).to_dict()
        bad = ConnectionTestResult(success=False).to_dict()

        assert ok == {"success": True, "message": "ok", "credits": 10}
        assert bad == {"success": False, "error": "Connection failed"}


class TestIntegrationCredential:

    def _credential(self, expires_at):
        return IntegrationCredential(
            tenant_id="T1",
            provider="zoho_campaigns",
            data={"accessToken": "old", "refreshToken": "r", "expiresAt": expires_at},
            version=3,
        )

    def test_is_expired(self):
        past = (datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat()
        future = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()

        assert self._credential(past).is_expired()
        assert not self._credential(future).is_expired()

    def test_no_expiry_is_not_expired(self):
        credential = IntegrationCredential(tenant_id="T1", provider="hunter", data={"apiKey": "k"})

        assert not credential.is_expired()
        assert credential.api_key == "k"

    def test_z_suffix_parsed(self):
        credential = self._credential("2020-01-01T00:00:00Z")

        assert credential.expires_at == datetime(2020, 1, 1, tzinfo=timezone.utc)

    def test_with_tokens_bumps_version_and_keeps_refresh_token(self):
        credential = self._credential("2020-01-01T00:00:00Z")
        new_expiry = datetime(2030, 1, 1, tzinfo=timezone.utc)

        updated = credential.with_tokens("new", new_expiry)

        assert updated.access_token == "new"
        assert updated.refresh_token == "r"
        assert updated.version == 4
        assert credential.access_token == "old"


class TestCampaign:

    def _campaign(self, **kwargs):
        defaults = dict(tenant_id="T1", name="Launch", subject="Hi", email_content="<p>x</p>")
        defaults.update(kwargs)
        return Campaign(**defaults)

    def test_merge_sent_only_grows(self):
        """sent_emails is a monotonically growing, de-duplicated set"""
        campaign = self._campaign(sent_emails=["a@x.com"])

        campaign.merge_sent(["B@x.com", "a@x.com", "b@x.com"])
        campaign.merge_sent([])

        assert campaign.sent_emails == ["a@x.com", "b@x.com"]

    def test_remaining_skips_sent_and_duplicates(self):
        campaign = self._campaign(sent_emails=["a@x.com"])
        recipients = [{"email": "A@x.com"}, {"email": "c@x.com"}, {"email": "c@x.com"}, {"email": ""}]

        assert campaign.remaining(recipients) == [{"email": "c@x.com"}]

    def test_status_machine(self):
        campaign = self._campaign()

        campaign.transition(CampaignStatus.SENDING)
        campaign.transition(CampaignStatus.PAUSED)
        campaign.transition(CampaignStatus.SENDING)
        campaign.transition(CampaignStatus.SENT)

        assert campaign.is_terminal
        with pytest.raises(ValueError):
            campaign.transition(CampaignStatus.SENDING)

    def test_draft_cannot_jump_to_sent(self):
        assert not self._campaign().can_transition(CampaignStatus.SENT)

    def test_job_active_statuses(self):
        job = CampaignJob(tenant_id="T1", campaign_id="c1", provider="gmail")

        assert job.is_active
        job.status = JobStatus.CANCELLED
        assert not job.is_active


class TestAppointment:

    def test_end_must_follow_start(self):
        start = datetime(2026, 1, 1, 10, tzinfo=timezone.utc)

        with pytest.raises(ValidationError):
            Appointment(tenant_id="T1", client_name="Jane", email="j@x.com", start_time=start, end_time=start)
