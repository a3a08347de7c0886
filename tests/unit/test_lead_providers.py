"""
Tests for lead enrichment adapters and LeadSearchService
"""
import json

import httpx
import pytest

from genie_gateway.core.errors import ValidationFailedError
from genie_gateway.domain.models.lead import LeadSearchData
from genie_gateway.infrastructure.providers.lead import (
    HunterProvider,
    ProspeoProvider,
    VoilaNorbertProvider,
)
from genie_gateway.services.lead_search_service import LeadSearchService


def transport_for(handler):
    calls = []

    def record(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    return httpx.MockTransport(record), calls


class TestProspeoProvider:

    @pytest.mark.asyncio
    async def test_named_person_found(self):
        """Jane Doe at Acme -> normalized result with upstream confidence"""
        transport, calls = transport_for(
            lambda r: httpx.Response(200, json={"email": "jane@acme.com", "confidence": 90})
        )
        provider = ProspeoProvider(credentials={"apiKey": "pk"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", company="Acme"))

        assert result.to_dict()["success"] is True
        assert result.provider == "prospeo"
        assert result.data["email"] == "jane@acme.com"
        assert result.data["confidence"] == 90
        assert calls[0].headers["X-KEY"] == "pk"
        assert json.loads(calls[0].content)["company"] == "Acme"

    @pytest.mark.asyncio
    async def test_no_result_code_mapped(self):
        transport, _ = transport_for(
            lambda r: httpx.Response(200, json={"error": True, "message": "NO_RESULT"})
        )
        provider = ProspeoProvider(credentials={"apiKey": "pk"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", domain="acme.com"))

        assert result.success is False
        assert result.error == "No email found for this person"

    @pytest.mark.asyncio
    async def test_non_2xx_becomes_failed_result(self):
        transport, _ = transport_for(lambda r: httpx.Response(401, json={"error": "Invalid API key"}))
        provider = ProspeoProvider(credentials={"apiKey": "bad"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", domain="acme.com"))

        assert result.success is False
        assert result.error == "Invalid API key"

    @pytest.mark.asyncio
    async def test_domain_only_tries_common_names(self):
        """'null' names fall back to email-count plus a couple of common names"""
        def handler(request):
            if request.url.path == "/email-count":
                return httpx.Response(200, json={"response": {"count": 12}})
            body = json.loads(request.content)
            if body["first_name"] == "John":
                return httpx.Response(200, json={"response": {"email": "john@acme.com"}})
            return httpx.Response(200, json={"error": True, "message": "NO_RESULT"})

        transport, calls = transport_for(handler)
        provider = ProspeoProvider(credentials={"apiKey": "pk"}, transport=transport)

        result = await provider.find_contact(
            LeadSearchData(firstName="null", lastName="null", domain="https://www.acme.com")
        )

        assert result.success is True
        assert [c["email"] for c in result.data["contacts"]] == ["john@acme.com"]
        assert json.loads(calls[0].content) == {"domain": "acme.com"}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_domain_without_emails(self):
        transport, _ = transport_for(lambda r: httpx.Response(200, json={"response": {"count": 0}}))
        provider = ProspeoProvider(credentials={"apiKey": "pk"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(domain="empty.io"))

        assert result.error == "No emails found in database for domain: empty.io"

    @pytest.mark.asyncio
    async def test_connection(self):
        transport, _ = transport_for(lambda r: httpx.Response(200, json={
            "error": False, "response": {"remaining_credits": 75},
        }))
        provider = ProspeoProvider(credentials={"apiKey": "pk"}, transport=transport)

        result = await provider.test_connection()

        assert result.to_dict() == {
            "success": True, "message": "Prospeo.io connection successful!", "credits": 75,
        }


class TestHunterProvider:

    @pytest.mark.asyncio
    async def test_email_finder(self):
        transport, calls = transport_for(lambda r: httpx.Response(200, json={
            "data": {"email": "jane@acme.com", "score": 91},
            "meta": {"requests": {"left": 40}},
        }))
        provider = HunterProvider(credentials={"apiKey": "hk"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", domain="acme.com"))

        assert result.data["email"] == "jane@acme.com"
        assert result.data["confidence"] == 91
        assert result.data["credits_remaining"] == 40
        assert calls[0].url.params["api_key"] == "hk"
        assert calls[0].url.params["domain"] == "acme.com"

    @pytest.mark.asyncio
    async def test_error_details_surface(self):
        transport, _ = transport_for(lambda r: httpx.Response(401, json={
            "errors": [{"id": "authentication_failed", "details": "No user found for the API key supplied"}],
        }))
        provider = HunterProvider(credentials={"apiKey": "bad"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", domain="acme.com"))

        assert result.success is False
        assert result.error == "No user found for the API key supplied"

    @pytest.mark.asyncio
    async def test_account_credits(self):
        transport, _ = transport_for(lambda r: httpx.Response(200, json={
            "data": {"requests": {"searches": {"available": 25}}},
        }))
        provider = HunterProvider(credentials={"apiKey": "hk"}, transport=transport)

        result = await provider.test_connection()

        assert result.success
        assert result.credits == 25


class TestVoilaNorbertProvider:

    @pytest.mark.asyncio
    async def test_found(self):
        transport, calls = transport_for(lambda r: httpx.Response(200, json={
            "email": {"email": "jane@acme.com", "score": 80},
            "account": {"search_left": 9},
        }))
        provider = VoilaNorbertProvider(credentials={"apiKey": "vk"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", domain="acme.com"))

        assert result.data["email"] == "jane@acme.com"
        assert json.loads(calls[0].content) == {"name": "Jane Doe", "domain": "acme.com"}

    @pytest.mark.asyncio
    async def test_valid_key_no_match_is_success(self):
        transport, _ = transport_for(lambda r: httpx.Response(200, json={"account": {"search_left": 9}}))
        provider = VoilaNorbertProvider(credentials={"apiKey": "vk"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", domain="acme.com"))

        assert result.success is True
        assert result.data["email"] is None

    @pytest.mark.asyncio
    async def test_status_messages(self):
        transport, _ = transport_for(lambda r: httpx.Response(429, json={}))
        provider = VoilaNorbertProvider(credentials={"apiKey": "vk"}, transport=transport)

        result = await provider.find_contact(LeadSearchData(firstName="Jane", lastName="Doe", domain="acme.com"))

        assert result.error == "Rate limit exceeded - please try again later"


class TestLeadSearchService:

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            await LeadSearchService().search("gmail", "k", LeadSearchData())

        assert exc_info.value.message == "Invalid provider"

    @pytest.mark.asyncio
    async def test_api_key_forwarded(self):
        transport, calls = transport_for(lambda r: httpx.Response(200, json={"credits": 100}))
        service = LeadSearchService(transport=transport)

        result = await service.test_account("voilanorbert", "vk")

        assert result.success
        assert calls[0].headers["X-API-KEY"] == "vk"
