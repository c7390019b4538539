"""MCP server exposing the procurement tools over stdio or streamable HTTP.

Tool functions here are thin typed declarations: their signatures and
docstrings become the tool schemas, and every one of them forwards to
`ToolRegistry.call_tool`, which owns sanitization, key resolution and error
shaping.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_headers
from loguru import logger

from .config.loader import get_config
from .gateway import ApiFamily, RequestGateway
from .tools.registry import ToolGroup, ToolName, ToolRegistry


SERVER_NAME = "capture-mcp"

# Per-request key headers accepted on the HTTP transport
SAM_KEY_HEADER = "x-sam-api-key"
TANGO_KEY_HEADER = "x-tango-api-key"


def request_key_overrides() -> dict[str, str | None]:
    """API keys supplied as HTTP headers on the current request, if any."""
    headers = get_http_headers()
    return {
        ApiFamily.REGISTRY.value: headers.get(SAM_KEY_HEADER) or None,
        ApiFamily.AGGREGATOR.value: headers.get(TANGO_KEY_HEADER) or None,
    }


def _present(**kwargs: Any) -> dict[str, Any]:
    return {key: value for key, value in kwargs.items() if value is not None}


def _sam_tools(call: Callable[..., Any]) -> list[Callable[..., Any]]:
    async def search_sam_entities(
        query: str | None = None,
        state: str | None = None,
        naics: str | None = None,
        uei: str | None = None,
        limit: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Search for federal entities/businesses registered in SAM.gov by name, location, or business codes.

        Args:
            query: Entity name to search (e.g., 'Boeing', 'Acme Corp')
            state: State/province filter (e.g., 'VA', 'CA')
            naics: NAICS industry code filter
            uei: Unique Entity Identifier to search for specific entity
            limit: Number of results to return (default: 10, max: 50)
            api_key: SAM.gov API key (optional if SAM_GOV_API_KEY env var is set)
        """
        return await call(
            ToolName.SEARCH_SAM_ENTITIES,
            _present(query=query, state=state, naics=naics, uei=uei, limit=limit, api_key=api_key),
        )

    async def get_sam_opportunities(
        posted_from: str,
        posted_to: str,
        keyword: str | None = None,
        set_aside: str | None = None,
        state: str | None = None,
        limit: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Fetch federal contract opportunities from SAM.gov by date range, keywords, or set-aside types.

        Args:
            posted_from: Start date for opportunities (MM/dd/yyyy format, required)
            posted_to: End date for opportunities (MM/dd/yyyy format, required)
            keyword: Keyword to search in opportunity titles/descriptions
            set_aside: Set-aside type filter (e.g., 'WOSB', 'SDVOSB', 'SBA')
            state: State filter for opportunity location
            limit: Number of results (default: 10, max: 50)
            api_key: SAM.gov API key (optional if SAM_GOV_API_KEY env var is set)
        """
        return await call(
            ToolName.GET_SAM_OPPORTUNITIES,
            _present(
                posted_from=posted_from,
                posted_to=posted_to,
                keyword=keyword,
                set_aside=set_aside,
                state=state,
                limit=limit,
                api_key=api_key,
            ),
        )

    async def get_sam_entity_details(uei: str, api_key: str | None = None) -> dict:
        """Get comprehensive details for a specific entity using their UEI.

        Returns registration info, business types and contact details.

        Args:
            uei: Unique Entity Identifier (required)
            api_key: SAM.gov API key (optional if SAM_GOV_API_KEY env var is set)
        """
        return await call(ToolName.GET_SAM_ENTITY_DETAILS, _present(uei=uei, api_key=api_key))

    async def check_sam_exclusions(
        uei: str | None = None,
        entity_name: str | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Check if an entity is excluded from federal contracting.

        Args:
            uei: Unique Entity Identifier to check
            entity_name: Entity name to check for exclusions
            api_key: SAM.gov API key (optional if SAM_GOV_API_KEY env var is set)
        """
        return await call(
            ToolName.CHECK_SAM_EXCLUSIONS, _present(uei=uei, entity_name=entity_name, api_key=api_key)
        )

    return [search_sam_entities, get_sam_opportunities, get_sam_entity_details, check_sam_exclusions]


def _spending_tools(call: Callable[..., Any]) -> list[Callable[..., Any]]:
    async def get_usaspending_awards(
        agency_code: str,
        fiscal_year: int | None = None,
        limit: int | None = None,
    ) -> dict:
        """Get federal awards data for a specific agency and fiscal year.

        Args:
            agency_code: 3-digit agency code (e.g., '075' for HHS, '097' for DOD)
            fiscal_year: Fiscal year (e.g., 2024)
            limit: Number of top awards to return (default: 10)
        """
        return await call(
            ToolName.GET_USASPENDING_AWARDS,
            _present(agency_code=agency_code, fiscal_year=fiscal_year, limit=limit),
        )

    async def get_usaspending_spending_by_category(
        agency_code: str,
        fiscal_year: int | None = None,
    ) -> dict:
        """Get spending breakdown by award category (contracts, grants, loans, etc.) for an agency.

        Args:
            agency_code: 3-digit agency code (e.g., '075' for HHS)
            fiscal_year: Fiscal year (e.g., 2024)
        """
        return await call(
            ToolName.GET_USASPENDING_SPENDING_BY_CATEGORY,
            _present(agency_code=agency_code, fiscal_year=fiscal_year),
        )

    async def get_usaspending_budgetary_resources(
        agency_code: str,
        fiscal_year: int | None = None,
    ) -> dict:
        """Get budgetary resources and obligations for an agency in a fiscal year.

        Args:
            agency_code: 3-digit agency code (e.g., '075' for HHS)
            fiscal_year: Fiscal year (e.g., 2024)
        """
        return await call(
            ToolName.GET_USASPENDING_BUDGETARY_RESOURCES,
            _present(agency_code=agency_code, fiscal_year=fiscal_year),
        )

    async def search_usaspending_awards_by_recipient(
        recipient_name: str,
        fiscal_year: int | None = None,
        min_amount: float | None = None,
        max_amount: float | None = None,
        award_types: list[str] | None = None,
        limit: int | None = None,
    ) -> dict:
        """Search for federal awards by recipient name, with optional time period and amount filters.

        Args:
            recipient_name: Name of recipient to search (e.g., 'Boeing', 'Johns Hopkins')
            fiscal_year: Fiscal year to search (e.g., 2024)
            min_amount: Minimum award amount filter
            max_amount: Maximum award amount filter
            award_types: Award type codes to filter (e.g., ['A', 'B'] for contracts)
            limit: Number of results (default: 10, max: 100)
        """
        return await call(
            ToolName.SEARCH_USASPENDING_AWARDS_BY_RECIPIENT,
            _present(
                recipient_name=recipient_name,
                fiscal_year=fiscal_year,
                min_amount=min_amount,
                max_amount=max_amount,
                award_types=award_types,
                limit=limit,
            ),
        )

    return [
        get_usaspending_awards,
        get_usaspending_spending_by_category,
        get_usaspending_budgetary_resources,
        search_usaspending_awards_by_recipient,
    ]


def _join_tools(call: Callable[..., Any]) -> list[Callable[..., Any]]:
    async def get_entity_and_awards(
        uei: str,
        fiscal_year: int | None = None,
        award_limit: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Join SAM.gov entity details with their USASpending.gov award history.

        Awards are matched on the entity's legal business name.

        Args:
            uei: Unique Entity Identifier (required)
            fiscal_year: Fiscal year for awards (default: 2024)
            award_limit: Max number of awards to return (default: 10)
            api_key: SAM.gov API key (optional if SAM_GOV_API_KEY env var is set)
        """
        return await call(
            ToolName.GET_ENTITY_AND_AWARDS,
            _present(uei=uei, fiscal_year=fiscal_year, award_limit=award_limit, api_key=api_key),
        )

    async def get_opportunity_spending_context(
        opportunity_id: str | None = None,
        solicitation_number: str | None = None,
        fiscal_year: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Join a recent SAM.gov opportunity with spending context from awards under the same NAICS code.

        Helps assess market size and typical award amounts for similar work.

        Args:
            opportunity_id: SAM.gov opportunity/notice ID
            solicitation_number: Solicitation number (alternative to opportunity_id)
            fiscal_year: Fiscal year for spending context (default: 2024)
            api_key: SAM.gov API key (optional if SAM_GOV_API_KEY env var is set)
        """
        return await call(
            ToolName.GET_OPPORTUNITY_SPENDING_CONTEXT,
            _present(
                opportunity_id=opportunity_id,
                solicitation_number=solicitation_number,
                fiscal_year=fiscal_year,
                api_key=api_key,
            ),
        )

    return [get_entity_and_awards, get_opportunity_spending_context]


def _aggregator_tools(call: Callable[..., Any]) -> list[Callable[..., Any]]:
    async def search_tango_contracts(
        query: str | None = None,
        vendor_name: str | None = None,
        vendor_uei: str | None = None,
        agency: str | None = None,
        naics_code: str | None = None,
        psc_code: str | None = None,
        award_amount_min: float | None = None,
        award_amount_max: float | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        set_aside: str | None = None,
        limit: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Search federal contracts through Tango's unified API.

        Vendor name and award amount filters apply to the returned page only.

        Args:
            query: Search query for contract description or title
            vendor_name: Vendor/contractor name filter
            vendor_uei: Vendor Unique Entity Identifier (UEI)
            agency: Awarding agency name or code
            naics_code: NAICS industry classification code
            psc_code: Product/Service Code (PSC)
            award_amount_min: Minimum contract award amount
            award_amount_max: Maximum contract award amount
            date_from: Start date for contract awards (YYYY-MM-DD format)
            date_to: End date for contract awards (YYYY-MM-DD format)
            set_aside: Set-aside type (e.g., 'SBA', 'WOSB', 'SDVOSB', '8A')
            limit: Number of results to return (default: 10, max: 100)
            api_key: Tango API key (optional if TANGO_API_KEY env var is set)
        """
        return await call(
            ToolName.SEARCH_TANGO_CONTRACTS,
            _present(
                query=query,
                vendor_name=vendor_name,
                vendor_uei=vendor_uei,
                agency=agency,
                naics_code=naics_code,
                psc_code=psc_code,
                award_amount_min=award_amount_min,
                award_amount_max=award_amount_max,
                date_from=date_from,
                date_to=date_to,
                set_aside=set_aside,
                limit=limit,
                api_key=api_key,
            ),
        )

    async def search_tango_grants(
        query: str | None = None,
        recipient_name: str | None = None,
        recipient_uei: str | None = None,
        agency: str | None = None,
        cfda_number: str | None = None,
        award_amount_min: float | None = None,
        award_amount_max: float | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Search federal grants and financial assistance awards through Tango's unified API.

        Args:
            query: Search query for grant description or title
            recipient_name: Grant recipient organization name
            recipient_uei: Recipient Unique Entity Identifier (UEI)
            agency: Awarding agency name or code
            cfda_number: Catalog of Federal Domestic Assistance (CFDA) number
            award_amount_min: Minimum grant award amount
            award_amount_max: Maximum grant award amount
            date_from: Start date for grant awards (YYYY-MM-DD format)
            date_to: End date for grant awards (YYYY-MM-DD format)
            limit: Number of results to return (default: 10, max: 100)
            api_key: Tango API key (optional if TANGO_API_KEY env var is set)
        """
        return await call(
            ToolName.SEARCH_TANGO_GRANTS,
            _present(
                query=query,
                recipient_name=recipient_name,
                recipient_uei=recipient_uei,
                agency=agency,
                cfda_number=cfda_number,
                award_amount_min=award_amount_min,
                award_amount_max=award_amount_max,
                date_from=date_from,
                date_to=date_to,
                limit=limit,
                api_key=api_key,
            ),
        )

    async def get_tango_vendor_profile(
        uei: str,
        include_contracts: bool = False,
        include_grants: bool = False,
        api_key: str | None = None,
    ) -> dict:
        """Get a vendor/entity profile from Tango's consolidated database.

        Args:
            uei: Unique Entity Identifier (UEI) - required
            include_contracts: Include recent contract history (default: false)
            include_grants: Include recent grant history (default: false)
            api_key: Tango API key (optional if TANGO_API_KEY env var is set)
        """
        return await call(
            ToolName.GET_TANGO_VENDOR_PROFILE,
            _present(
                uei=uei,
                include_contracts=include_contracts,
                include_grants=include_grants,
                api_key=api_key,
            ),
        )

    async def search_tango_opportunities(
        query: str | None = None,
        agency: str | None = None,
        naics_code: str | None = None,
        set_aside: str | None = None,
        posted_from: str | None = None,
        posted_to: str | None = None,
        response_deadline_from: str | None = None,
        status: str | None = None,
        limit: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Search federal contract opportunities through Tango's unified API.

        Args:
            query: Search query for opportunity title or description
            agency: Agency name or code
            naics_code: NAICS industry classification code
            set_aside: Set-aside type filter
            posted_from: Start date for opportunities (YYYY-MM-DD format)
            posted_to: End date for opportunities (YYYY-MM-DD format)
            response_deadline_from: Minimum response deadline (YYYY-MM-DD format)
            status: Opportunity status (e.g., 'active', 'closed', 'forecasted')
            limit: Number of results to return (default: 10, max: 100)
            api_key: Tango API key (optional if TANGO_API_KEY env var is set)
        """
        return await call(
            ToolName.SEARCH_TANGO_OPPORTUNITIES,
            _present(
                query=query,
                agency=agency,
                naics_code=naics_code,
                set_aside=set_aside,
                posted_from=posted_from,
                posted_to=posted_to,
                response_deadline_from=response_deadline_from,
                status=status,
                limit=limit,
                api_key=api_key,
            ),
        )

    async def get_tango_spending_summary(
        agency: str | None = None,
        vendor_uei: str | None = None,
        fiscal_year: int | None = None,
        group_by: str = "agency",
        limit: int | None = None,
        api_key: str | None = None,
    ) -> dict:
        """Summarize contract spending grouped by agency, vendor, NAICS, PSC or month.

        Totals cover one page of contract records (up to 100).

        Args:
            agency: Agency name or code for spending summary
            vendor_uei: Vendor UEI for spending summary
            fiscal_year: Fiscal year for summary (e.g., 2024)
            group_by: Group spending by dimension: 'agency', 'vendor', 'naics', 'psc', 'month' or 'total'
            limit: Number of contract records to summarize (default and max: 100)
            api_key: Tango API key (optional if TANGO_API_KEY env var is set)
        """
        return await call(
            ToolName.GET_TANGO_SPENDING_SUMMARY,
            _present(
                agency=agency,
                vendor_uei=vendor_uei,
                fiscal_year=fiscal_year,
                group_by=group_by,
                limit=limit,
                api_key=api_key,
            ),
        )

    return [
        search_tango_contracts,
        search_tango_grants,
        get_tango_vendor_profile,
        search_tango_opportunities,
        get_tango_spending_summary,
    ]


GROUP_DECLARATIONS: dict[ToolGroup, Callable[[Callable[..., Any]], list[Callable[..., Any]]]] = {
    ToolGroup.SAM: _sam_tools,
    ToolGroup.SPENDING: _spending_tools,
    ToolGroup.JOIN: _join_tools,
    ToolGroup.AGGREGATOR: _aggregator_tools,
}


def create_server(registry: ToolRegistry, *, register_all: bool = False) -> FastMCP:
    """Build the FastMCP server for a registry.

    Args:
        registry: Registry that executes every tool call
        register_all: Declare every tool group even when no key is configured.
            Used for HTTP, where keys may arrive as per-request headers.

    Returns:
        Configured FastMCP instance
    """
    server = FastMCP(SERVER_NAME)

    async def call(tool: ToolName, args: dict[str, Any]) -> dict[str, Any]:
        return await registry.call_tool(tool.value, args, api_key_overrides=request_key_overrides())

    groups = list(ToolGroup) if register_all else registry.enabled_groups()
    for group in groups:
        for fn in GROUP_DECLARATIONS[group](call):
            server.tool()(fn)

    logger.info(f"MCP server '{SERVER_NAME}' declares tool groups: {', '.join(g.value for g in groups)}")
    return server


def run_server(
    transport: str = "stdio",
    host: str = "127.0.0.1",
    port: int = 8000,
    registry: ToolRegistry | None = None,
) -> None:
    """Build the server (and a registry, if none is given), then serve until interrupted.

    The registry's gateway is closed when serving stops, however it stops.
    """
    if registry is None:
        config = get_config()
        registry = ToolRegistry(RequestGateway(config), config)
    server = create_server(registry, register_all=transport == "http")

    transport_kwargs: dict[str, Any] = {"host": host, "port": port} if transport == "http" else {}

    async def serve() -> None:
        try:
            await server.run_async(transport=transport, **transport_kwargs)
        finally:
            await registry.gateway.aclose()
            logger.info(f"{SERVER_NAME} stopped; upstream connections closed")

    logger.info(f"Starting {SERVER_NAME} on {transport} transport")
    asyncio.run(serve())


__all__ = ["create_server", "request_key_overrides", "run_server"]
