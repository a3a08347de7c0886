"""
Tests for LeadService
"""
import pytest

from genie_gateway.core.errors import NotFoundError, ValidationFailedError
from genie_gateway.domain.models.lead import LeadSearchData
from genie_gateway.services.lead_service import LeadService, decode_csv


@pytest.fixture
def service(fake_supabase):
    return LeadService(fake_supabase)


class TestLeadCrud:

    @pytest.mark.asyncio
    async def test_create_normalizes_email(self, service):
        lead = await service.create_lead("T1", {"email": " Jane@Acme.COM ", "first_name": "Jane"})

        assert lead.email == "jane@acme.com"
        assert lead.source == "manual"

    @pytest.mark.asyncio
    async def test_needs_email_or_phone(self, service):
        with pytest.raises(ValidationFailedError):
            await service.create_lead("T1", {"first_name": "Nobody"})

    @pytest.mark.asyncio
    async def test_soft_delete_hides_lead(self, service, fake_supabase):
        lead = await service.create_lead("T1", {"email": "a@x.com"})

        await service.delete_lead("T1", lead.id)

        assert fake_supabase.rows("leads")[0]["deleted_at"] is not None
        assert await service.list_leads("T1") == []
        with pytest.raises(NotFoundError):
            await service.get_lead("T1", lead.id)

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_read(self, service):
        lead = await service.create_lead("T1", {"email": "a@x.com"})

        with pytest.raises(NotFoundError):
            await service.get_lead("T2", lead.id)

    @pytest.mark.asyncio
    async def test_update_ignores_unknown_fields(self, service):
        lead = await service.create_lead("T1", {"email": "a@x.com"})

        updated = await service.update_lead("T1", lead.id, {"company": "Acme", "tenant_id": "T2"})

        assert updated.company == "Acme"
        assert updated.tenant_id == "T1"

    @pytest.mark.asyncio
    async def test_tags_merge_and_filter(self, service):
        lead = await service.create_lead("T1", {"email": "a@x.com", "tags": ["vip"]})
        await service.create_lead("T1", {"email": "b@x.com"})

        tagged = await service.add_tags("T1", lead.id, ["vip", " webinar ", ""])

        assert tagged.tags == ["vip", "webinar"]
        assert [l.email for l in await service.list_leads("T1", tag="webinar")] == ["a@x.com"]


class TestCsvImport:

    @pytest.mark.asyncio
    async def test_header_aliases_and_duplicates(self, service):
        await service.create_lead("T1", {"email": "existing@x.com"})
        text = (
            "First Name,Last Name,E-mail,Company Name,Tags\n"
            "Ann,Lee,ann@x.com,Acme,vip;beta\n"
            "Dup,One,EXISTING@x.com,,\n"
            "Ann,Again,ann@x.com,,\n"
            "Bad,Email,not-an-email,,\n"
            ",,,,\n"
        )

        result = await service.import_csv("T1", text)

        assert result.total_rows == 5
        assert result.imported == 1
        assert result.duplicates_skipped == 2
        assert result.failed == 2
        assert [e.row for e in result.errors] == [5, 6]
        ann = [l for l in await service.list_leads("T1") if l.email == "ann@x.com"][0]
        assert ann.company == "Acme"
        assert ann.tags == ["vip", "beta"]
        assert ann.source == "csv_import"

    @pytest.mark.asyncio
    async def test_requires_contact_column(self, service):
        with pytest.raises(ValidationFailedError) as exc_info:
            await service.import_csv("T1", "name,city\nAnn,Paris\n")

        assert "email or phone column" in exc_info.value.message

    def test_decode_bom_and_latin1(self):
        assert decode_csv("\ufeffemail\n".encode("utf-8")) == "email\n"
        assert decode_csv("caf\xe9".encode("latin-1")) == "caf\xe9"


class TestSaveEnrichment:

    @pytest.mark.asyncio
    async def test_single_result(self, service):
        leads = await service.save_enrichment(
            "T1", "prospeo", {"email": "jane@acme.com", "confidence": 90},
            LeadSearchData(firstName="Jane", lastName="Doe", company="Acme"),
        )

        assert len(leads) == 1
        assert leads[0].source == "prospeo"
        assert leads[0].score == 90
        assert leads[0].company == "Acme"

    @pytest.mark.asyncio
    async def test_domain_contacts(self, service):
        leads = await service.save_enrichment("T1", "prospeo", {"contacts": [
            {"email": "john@acme.com", "first_name": "John", "company": "acme.com"},
            {"email": None},
        ]})

        assert [l.email for l in leads] == ["john@acme.com"]

    @pytest.mark.asyncio
    async def test_nothing_to_save(self, service):
        with pytest.raises(ValidationFailedError):
            await service.save_enrichment("T1", "voilanorbert", {"email": None, "confidence": 0})
