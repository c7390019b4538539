"""Tests for the Tango tool shapers."""

import pytest

from capture_mcp.exceptions import APIError, ValidationError
from capture_mcp.tools.tango import DESCRIPTION_MAX_CHARS, TangoTools, shape_contract
from tests.utils.upstream_stub import TANGO_HOST, TANGO_TEST_KEY


pytestmark = pytest.mark.fast


CONTRACTS = [
    {"piid": "C1", "vendor_name": "Acme Corp", "award_amount": 50_000, "agency_code": "9700"},
    {"piid": "C2", "vendor_name": "ACME Federal", "award_amount": 2_000_000, "agency_code": "9700"},
    {"piid": "C3", "vendor_name": "Globex", "total_dollars_obligated": 75_000, "agency_code": "7000"},
]


@pytest.fixture
def tango(gateway, capture_config):
    return TangoTools(gateway, capture_config)


class TestSearchContracts:
    @pytest.mark.asyncio
    async def test_key_sent_as_header(self, tango, upstream):
        upstream.add("GET", TANGO_HOST, "/contracts/search", json={"results": [], "total": 0})

        await tango.search_contracts({"query": "cloud"}, TANGO_TEST_KEY)

        request = upstream.calls(TANGO_HOST)[0]
        assert request.headers["X-API-Key"] == TANGO_TEST_KEY
        assert "api_key" not in request.url.params
        assert request.url.params["q"] == "cloud"

    @pytest.mark.asyncio
    async def test_missing_key(self, tango, upstream):
        with pytest.raises(ValidationError, match="TANGO_API_KEY"):
            await tango.search_contracts({}, None)
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_without_post_filters(self, tango, upstream):
        upstream.add("GET", TANGO_HOST, "/contracts/search", json={"results": CONTRACTS, "total": 3})

        result = await tango.search_contracts({"agency": "9700"}, TANGO_TEST_KEY)

        assert result["post_filtered"] is False
        assert "note" not in result
        assert result["returned"] == 3
        assert result["filters"] == {"limit": 10, "offset": 0, "agency": "9700"}

    @pytest.mark.asyncio
    async def test_vendor_name_and_amount_post_filter(self, tango, upstream):
        upstream.add("GET", TANGO_HOST, "/contracts/search", json={"results": CONTRACTS, "count": 3})

        result = await tango.search_contracts(
            {"vendor_name": "acme", "award_amount_max": 1_000_000}, TANGO_TEST_KEY
        )

        assert [c["contract_id"] for c in result["contracts"]] == ["C1"]
        assert result["total"] == 3
        assert result["returned"] == 1
        assert result["post_filtered"] is True
        assert result["client_side_filters"] == {
            "name_contains": "acme",
            "award_amount_min": None,
            "award_amount_max": 1_000_000.0,
        }
        assert "returned page only" in result["note"]
        assert "vendor_name" not in upstream.calls(TANGO_HOST)[0].url.params

    @pytest.mark.asyncio
    async def test_amount_min_uses_obligated_fallback(self, tango, upstream):
        upstream.add("GET", TANGO_HOST, "/contracts/search", json={"results": CONTRACTS})

        result = await tango.search_contracts({"award_amount_min": 60_000}, TANGO_TEST_KEY)

        assert [c["contract_id"] for c in result["contracts"]] == ["C2", "C3"]

    @pytest.mark.asyncio
    async def test_invalid_amount(self, tango):
        with pytest.raises(ValidationError, match="award_amount_min must be a number"):
            await tango.search_contracts({"award_amount_min": "lots"}, TANGO_TEST_KEY)

    def test_shape_contract_fallbacks(self):
        shaped = shape_contract({"contract_id": "X", "title": "T", "date_signed": "2024-01-02", "status": "open"})

        assert shaped["contract_id"] == "X"
        assert shaped["title"] == "T"
        assert shaped["award_date"] == "2024-01-02"
        assert shaped["status"] == "open"


class TestSearchGrants:
    @pytest.mark.asyncio
    async def test_recipient_post_filter(self, tango, upstream):
        upstream.add(
            "GET",
            TANGO_HOST,
            "/grants/search",
            json={
                "results": [
                    {"fain": "G1", "recipient_name": "State University", "award_amount": 10},
                    {"fain": "G2", "recipient_name": "City Hospital", "total_funding_amount": 20},
                ]
            },
        )

        result = await tango.search_grants({"recipient_name": "university"}, TANGO_TEST_KEY)

        assert [g["grant_id"] for g in result["grants"]] == ["G1"]
        assert result["post_filtered"] is True


class TestVendorProfile:
    @pytest.mark.asyncio
    async def test_include_flags(self, tango, upstream):
        upstream.add(
            "GET",
            TANGO_HOST,
            "/vendors/ABC123",
            json={"uei": "ABC123", "name": "Acme", "recent_contracts": [{"piid": "C1"}], "total_contracts": 4},
        )

        result = await tango.get_vendor_profile({"uei": "ABC123", "include_contracts": "true"}, TANGO_TEST_KEY)

        params = upstream.calls(TANGO_HOST)[0].url.params
        assert params["include_contracts"] == "true"
        assert params["include_grants"] == "false"
        assert result["legal_business_name"] == "Acme"
        assert result["recent_contracts"] == [{"piid": "C1"}]
        assert "recent_grants" not in result
        assert result["performance_summary"]["total_contracts"] == 4
        assert result["performance_summary"]["total_grant_value"] == 0

    @pytest.mark.asyncio
    async def test_requires_uei(self, tango, upstream):
        with pytest.raises(ValidationError, match="UEI is required"):
            await tango.get_vendor_profile({}, TANGO_TEST_KEY)
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_uei_is_escaped_into_one_segment(self, tango, upstream):
        with pytest.raises(APIError, match="API Error 404"):
            await tango.get_vendor_profile({"uei": "ABC/../contracts/search?limit=100"}, TANGO_TEST_KEY)

        path = upstream.requests[0].url.raw_path.split(b"?")[0]
        assert path == b"/v1/vendors/ABC%2F..%2Fcontracts%2Fsearch%3Flimit%3D100"
        assert "limit" not in upstream.requests[0].url.params

    @pytest.mark.asyncio
    async def test_non_object_body_is_an_error(self, tango, upstream):
        upstream.add("GET", TANGO_HOST, "/vendors/ABC123", json=["ABC123"])

        with pytest.raises(APIError, match="expected a JSON object, got list"):
            await tango.get_vendor_profile({"uei": "ABC123"}, TANGO_TEST_KEY)


class TestSearchOpportunities:
    @pytest.mark.asyncio
    async def test_description_truncated(self, tango, upstream):
        upstream.add(
            "GET",
            TANGO_HOST,
            "/opportunities/search",
            json={
                "results": [{"notice_id": "N1", "description": "x" * 2000, "due_date": "2024-05-01"}],
                "total": 1,
            },
        )

        result = await tango.search_opportunities({"naics_code": "541512"}, TANGO_TEST_KEY)

        opportunity = result["opportunities"][0]
        assert opportunity["opportunity_id"] == "N1"
        assert len(opportunity["description"]) == DESCRIPTION_MAX_CHARS
        assert opportunity["response_deadline"] == "2024-05-01"
        assert result["filters"]["naics_code"] == "541512"


class TestSpendingSummaryTool:
    @pytest.mark.asyncio
    async def test_invalid_group_by(self, tango, upstream):
        with pytest.raises(ValidationError, match="group_by must be one of"):
            await tango.get_spending_summary({"group_by": "color"}, TANGO_TEST_KEY)
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_groups_by_agency_with_fiscal_year(self, tango, upstream):
        upstream.add("GET", TANGO_HOST, "/contracts/search", json={"results": CONTRACTS})

        result = await tango.get_spending_summary({"fiscal_year": 2024}, TANGO_TEST_KEY)

        params = upstream.calls(TANGO_HOST)[0].url.params
        assert params["date_from"] == "2023-10-01"
        assert params["date_to"] == "2024-09-30"
        assert params["limit"] == "100"
        assert result["group_by"] == "agency"
        assert result["record_count"] == 3
        assert result["total_obligated"] == 2_125_000
        assert [g["key"] for g in result["groups"]] == ["9700", "7000"]
        assert "one page" in result["note"]

    @pytest.mark.asyncio
    async def test_no_fiscal_year_sends_no_window(self, tango, upstream):
        upstream.add("GET", TANGO_HOST, "/contracts/search", json={"results": []})

        result = await tango.get_spending_summary({"group_by": "TOTAL"}, TANGO_TEST_KEY)

        assert "date_from" not in upstream.calls(TANGO_HOST)[0].url.params
        assert result["groups"] == []
        assert result["total_obligated"] == 0
