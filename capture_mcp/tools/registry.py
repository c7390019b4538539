"""Tool registry: the closed set of tools and their dispatch.

Every tool name maps to a `ToolGroup`, and every group to the API family whose
key it needs (if any). `ToolRegistry.call_tool` is the single entry point the
transport layer uses; it sanitizes arguments once, resolves the API key and
turns `CaptureMCPError` into the ``{"error", "details"}`` result shape.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any

from loguru import logger

from ..config.schemas import CaptureConfig
from ..exceptions import CaptureMCPError, ToolNotFoundError
from ..gateway import ApiFamily, RequestGateway
from ..utils.logging_config import log_with_context
from ..utils.sanitization import sanitize_input
from .joins import JoinEngine
from .sam_gov import SamGovTools
from .tango import TangoTools
from .usaspending import USAspendingTools


ToolHandler = Callable[[dict[str, Any], "str | None"], Awaitable[dict[str, Any]]]


class ToolName(str, Enum):
    """Every tool the server can expose."""

    SEARCH_SAM_ENTITIES = "search_sam_entities"
    GET_SAM_OPPORTUNITIES = "get_sam_opportunities"
    GET_SAM_ENTITY_DETAILS = "get_sam_entity_details"
    CHECK_SAM_EXCLUSIONS = "check_sam_exclusions"

    GET_USASPENDING_AWARDS = "get_usaspending_awards"
    GET_USASPENDING_SPENDING_BY_CATEGORY = "get_usaspending_spending_by_category"
    GET_USASPENDING_BUDGETARY_RESOURCES = "get_usaspending_budgetary_resources"
    SEARCH_USASPENDING_AWARDS_BY_RECIPIENT = "search_usaspending_awards_by_recipient"

    GET_ENTITY_AND_AWARDS = "get_entity_and_awards"
    GET_OPPORTUNITY_SPENDING_CONTEXT = "get_opportunity_spending_context"

    SEARCH_TANGO_CONTRACTS = "search_tango_contracts"
    SEARCH_TANGO_GRANTS = "search_tango_grants"
    GET_TANGO_VENDOR_PROFILE = "get_tango_vendor_profile"
    SEARCH_TANGO_OPPORTUNITIES = "search_tango_opportunities"
    GET_TANGO_SPENDING_SUMMARY = "get_tango_spending_summary"


class ToolGroup(str, Enum):
    SAM = "sam"
    SPENDING = "spending"
    JOIN = "join"
    AGGREGATOR = "aggregator"


# API family whose key a group needs; None means no key
GROUP_KEY_FAMILY: dict[ToolGroup, ApiFamily | None] = {
    ToolGroup.SAM: ApiFamily.REGISTRY,
    ToolGroup.SPENDING: None,
    ToolGroup.JOIN: ApiFamily.REGISTRY,
    ToolGroup.AGGREGATOR: ApiFamily.AGGREGATOR,
}

TOOL_GROUPS: dict[ToolName, ToolGroup] = {
    ToolName.SEARCH_SAM_ENTITIES: ToolGroup.SAM,
    ToolName.GET_SAM_OPPORTUNITIES: ToolGroup.SAM,
    ToolName.GET_SAM_ENTITY_DETAILS: ToolGroup.SAM,
    ToolName.CHECK_SAM_EXCLUSIONS: ToolGroup.SAM,
    ToolName.GET_USASPENDING_AWARDS: ToolGroup.SPENDING,
    ToolName.GET_USASPENDING_SPENDING_BY_CATEGORY: ToolGroup.SPENDING,
    ToolName.GET_USASPENDING_BUDGETARY_RESOURCES: ToolGroup.SPENDING,
    ToolName.SEARCH_USASPENDING_AWARDS_BY_RECIPIENT: ToolGroup.SPENDING,
    ToolName.GET_ENTITY_AND_AWARDS: ToolGroup.JOIN,
    ToolName.GET_OPPORTUNITY_SPENDING_CONTEXT: ToolGroup.JOIN,
    ToolName.SEARCH_TANGO_CONTRACTS: ToolGroup.AGGREGATOR,
    ToolName.SEARCH_TANGO_GRANTS: ToolGroup.AGGREGATOR,
    ToolName.GET_TANGO_VENDOR_PROFILE: ToolGroup.AGGREGATOR,
    ToolName.SEARCH_TANGO_OPPORTUNITIES: ToolGroup.AGGREGATOR,
    ToolName.GET_TANGO_SPENDING_SUMMARY: ToolGroup.AGGREGATOR,
}


class ToolRegistry:
    """Owns the shapers and dispatches tool calls to them."""

    def __init__(self, gateway: RequestGateway, config: CaptureConfig):
        self.gateway = gateway
        self.config = config
        self.sam = SamGovTools(gateway, config)
        self.spending = USAspendingTools(gateway, config)
        self.tango = TangoTools(gateway, config)
        self.joins = JoinEngine(gateway, config)

        self._handlers: dict[ToolName, ToolHandler] = {
            ToolName.SEARCH_SAM_ENTITIES: self.sam.search_entities,
            ToolName.GET_SAM_OPPORTUNITIES: self.sam.get_opportunities,
            ToolName.GET_SAM_ENTITY_DETAILS: self.sam.get_entity_details,
            ToolName.CHECK_SAM_EXCLUSIONS: self.sam.check_exclusions,
            ToolName.GET_USASPENDING_AWARDS: self.spending.get_agency_awards,
            ToolName.GET_USASPENDING_SPENDING_BY_CATEGORY: self.spending.get_spending_by_category,
            ToolName.GET_USASPENDING_BUDGETARY_RESOURCES: self.spending.get_budgetary_resources,
            ToolName.SEARCH_USASPENDING_AWARDS_BY_RECIPIENT: self.spending.search_awards_by_recipient,
            ToolName.GET_ENTITY_AND_AWARDS: self.joins.get_entity_and_awards,
            ToolName.GET_OPPORTUNITY_SPENDING_CONTEXT: self.joins.get_opportunity_spending_context,
            ToolName.SEARCH_TANGO_CONTRACTS: self.tango.search_contracts,
            ToolName.SEARCH_TANGO_GRANTS: self.tango.search_grants,
            ToolName.GET_TANGO_VENDOR_PROFILE: self.tango.get_vendor_profile,
            ToolName.SEARCH_TANGO_OPPORTUNITIES: self.tango.search_opportunities,
            ToolName.GET_TANGO_SPENDING_SUMMARY: self.tango.get_spending_summary,
        }
        missing = set(ToolName) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Tools without handlers: {sorted(t.value for t in missing)}")

        logger.info(f"Initialized ToolRegistry with {len(self._handlers)} tools")

    def resolve_api_key(
        self,
        family: ApiFamily | None,
        explicit: str | None = None,
        overrides: Mapping[str, str | None] | None = None,
    ) -> str | None:
        """Resolve a key: explicit argument, then transport override, then environment."""
        if family is None:
            return None
        if explicit:
            return explicit
        override = (overrides or {}).get(family.value)
        if override:
            return override
        return self.gateway.upstreams[family].resolve_api_key()

    def enabled_groups(self, api_key_overrides: Mapping[str, str | None] | None = None) -> list[ToolGroup]:
        return [
            group
            for group, family in GROUP_KEY_FAMILY.items()
            if family is None or self.resolve_api_key(family, overrides=api_key_overrides)
        ]

    def enabled_tools(self, api_key_overrides: Mapping[str, str | None] | None = None) -> list[ToolName]:
        """Tools whose required key (if any) can currently be resolved."""
        groups = set(self.enabled_groups(api_key_overrides))
        return [tool for tool in ToolName if TOOL_GROUPS[tool] in groups]

    def _resolve_tool(self, name: str, api_key_overrides: Mapping[str, str | None] | None) -> ToolName:
        try:
            tool = ToolName(name)
        except ValueError:
            raise ToolNotFoundError(name) from None
        if tool not in self.enabled_tools(api_key_overrides):
            raise ToolNotFoundError(name)
        return tool

    async def call_tool(
        self,
        name: str,
        raw_args: Mapping[str, Any] | None = None,
        api_key_overrides: Mapping[str, str | None] | None = None,
    ) -> dict[str, Any]:
        """Dispatch one tool call and return its JSON-serializable result.

        Args:
            name: Tool name
            raw_args: Caller arguments, sanitized here before anything reads them
            api_key_overrides: Keys supplied by the transport, by family value
                (``"sam"``, ``"aggregator"``)

        Returns:
            The tool's result, or ``{"error": ..., "details": ...}``
        """
        request_id = str(uuid.uuid4())[:8]
        with log_with_context(tool=name, request_id=request_id) as log:
            try:
                tool = self._resolve_tool(name, api_key_overrides)
                args = sanitize_input(dict(raw_args or {}), strict=self.config.tools.strict_sanitization)
                explicit_key = args.pop("api_key", None)
                api_key = self.resolve_api_key(
                    GROUP_KEY_FAMILY[TOOL_GROUPS[tool]],
                    explicit=explicit_key if isinstance(explicit_key, str) else None,
                    overrides=api_key_overrides,
                )

                log.debug(f"Dispatching {tool.value} with arguments {sorted(args)}")
                result = await self._handlers[tool](args, api_key)
            except CaptureMCPError as e:
                log.bind(error=e.to_dict()).warning(f"Tool {name} failed: {e.message}")
                details = dict(e.details)
                if e.retryable:
                    details["retryable"] = True
                return {"error": e.message, "details": details}

            if "error" in result:
                log.info(f"Tool {name} returned an error result: {result['error']}")
            return result


__all__ = ["GROUP_KEY_FAMILY", "TOOL_GROUPS", "ToolGroup", "ToolName", "ToolRegistry"]
