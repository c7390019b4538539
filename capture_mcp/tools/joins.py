"""Cross-API joins between SAM.gov and USAspending.

No upstream offers these combinations directly, so each join runs two gated
calls in sequence: the second request is built from data extracted from the
first (a legal business name or a NAICS code).

Joins are all-or-nothing. A stage that fails, or answers with something other
than a JSON object, raises `APIError` internally and the whole join comes back
as ``{"error": "Join operation failed: ...", "partial_data": None, "details":
...}``; first-stage data is never returned on its own.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

from loguru import logger

from ..config.schemas import CaptureConfig
from ..exceptions import APIError, ValidationError
from ..gateway import ApiFamily, RequestGateway
from ..models.api import ApiResponse
from ..utils.date_utils import trailing_window
from .base import ToolShaper, clamp_limit, to_amount
from .sam_gov import ENTITIES_ENDPOINT, OPPORTUNITIES_ENDPOINT, SEARCH_SECTIONS
from .usaspending import (
    CONTRACT_AWARD_TYPE_CODES,
    SPENDING_BY_AWARD_ENDPOINT,
    spending_by_award_request,
    time_period_filter,
)


ENTITY_AWARD_FIELDS = [
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Awarding Agency",
    "Award Type",
    "Start Date",
    "End Date",
    "Description",
]

MARKET_AWARD_FIELDS = [
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Awarding Agency",
    "Award Type",
]

NAME_JOIN_LIMITATION = (
    "Awards are matched by free-text search on the legal business name. "
    "Other recipients with similar names may be included and awards recorded "
    "under a different name may be missed."
)

OPPORTUNITY_SEARCH_SUGGESTION = (
    "Try using get_sam_opportunities with a broader date range first"
)


def _entity_profile(entity: dict[str, Any]) -> dict[str, Any]:
    registration = entity.get("entityRegistration") or {}
    address = registration.get("physicalAddress") or {}
    business_types = (registration.get("businessTypes") or {}).get("businessTypeList")
    return {
        "uei": registration.get("ueiSAM"),
        "name": registration.get("legalBusinessName"),
        "duns": registration.get("duns"),
        "registrationStatus": registration.get("registrationStatus"),
        "businessTypes": (
            [bt.get("businessTypeCode") for bt in business_types]
            if business_types is not None
            else None
        ),
        "primaryNaics": ((entity.get("coreData") or {}).get("naicsInformation") or {}).get(
            "primaryNaics"
        ),
        "address": {
            "street": address.get("addressLine1"),
            "city": address.get("city"),
            "state": address.get("stateOrProvinceCode"),
            "zipCode": address.get("zipCode"),
        },
    }


def _opportunity_details(opp: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": opp.get("noticeId"),
        "title": opp.get("title"),
        "solicitationNumber": opp.get("solicitationNumber"),
        "department": opp.get("department"),
        "office": opp.get("office"),
        "postedDate": opp.get("postedDate"),
        "responseDeadLine": opp.get("responseDeadLine"),
        "naicsCode": opp.get("naicsCode"),
        "setAside": opp.get("typeOfSetAsideDescription"),
        "type": opp.get("type"),
    }


def classify_award_scale(average: float, small_ceiling: float, medium_ceiling: float) -> str:
    """Bucket an average award amount into a contract-size label.

    Examples:
        >>> classify_award_scale(50_000, 100_000, 1_000_000)
        'Small contract opportunity'
        >>> classify_award_scale(1_000_000, 100_000, 1_000_000)
        'Large contract opportunity'
    """
    if average < small_ceiling:
        return "Small contract opportunity"
    if average < medium_ceiling:
        return "Medium contract opportunity"
    return "Large contract opportunity"


class JoinEngine(ToolShaper):
    """Runs the SAM.gov -> USAspending join operations.

    The SAM.gov key gates both joins; USAspending needs none.
    """

    family = ApiFamily.REGISTRY
    component = "tools.joins"
    key_env_hint = "SAM_GOV_API_KEY"

    def __init__(
        self,
        gateway: RequestGateway,
        config: CaptureConfig,
        today: Callable[[], date] | None = None,
    ):
        super().__init__(gateway, config)
        self.spending_upstream = gateway.upstreams[ApiFamily.SPENDING]
        self._today = today or date.today

    def _require_success(self, response: ApiResponse, family: ApiFamily, endpoint: str) -> dict[str, Any]:
        try:
            return self.body(response, endpoint, family)
        except APIError as exc:
            raise APIError(
                f"{family.label} error: {exc.message}",
                api_name=family.value,
                details=dict(exc.details),
                status_code=exc.status_code,
                retryable=exc.retryable,
                cause=exc,
            ) from exc

    @staticmethod
    def _failed(exc: APIError) -> dict[str, Any]:
        logger.warning(f"Join aborted: {exc.message}")
        return {
            "error": f"Join operation failed: {exc.message}",
            "partial_data": None,
            "details": exc.details,
        }

    async def get_entity_and_awards(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """SAM.gov entity profile joined with its USAspending award history."""
        api_key = self.require_api_key(api_key)
        uei = self.require(args, "uei", "UEI is required")
        fiscal_year = self.fiscal_year(args)
        award_limit = clamp_limit(
            args.get("award_limit"),
            self.defaults.default_limit,
            self.spending_upstream.max_page_size,
        )

        try:
            sam_data = self._require_success(
                await self.gateway.get(
                    ApiFamily.REGISTRY,
                    ENTITIES_ENDPOINT,
                    {"ueiSAM": uei, "includeSections": SEARCH_SECTIONS},
                    api_key=api_key,
                ),
                ApiFamily.REGISTRY,
                ENTITIES_ENDPOINT,
            )

            entity_list = sam_data.get("entityData") or []
            if not entity_list:
                return {"error": "Entity not found in SAM.gov", "partial_data": None}

            entity = _entity_profile(entity_list[0])
            if not entity["name"]:
                return {
                    "error": "Entity has no legal business name to search awards by",
                    "partial_data": None,
                }

            filters = {
                "recipient_search_text": [entity["name"]],
                "time_period": time_period_filter(fiscal_year),
            }
            spending_data = self._require_success(
                await self.gateway.post(
                    ApiFamily.SPENDING,
                    SPENDING_BY_AWARD_ENDPOINT,
                    spending_by_award_request(filters, ENTITY_AWARD_FIELDS, award_limit),
                ),
                ApiFamily.SPENDING,
                SPENDING_BY_AWARD_ENDPOINT,
            )
        except APIError as exc:
            return self._failed(exc)

        results = spending_data.get("results") or []
        awards = [
            {
                "id": award.get("Award ID"),
                "amount": award.get("Award Amount"),
                "agency": award.get("Awarding Agency"),
                "type": award.get("Award Type"),
                "start_date": award.get("Start Date"),
                "end_date": award.get("End Date"),
                "description": award.get("Description"),
            }
            for award in results
        ]

        return {
            "entity": entity,
            "awards": {
                "fiscal_year": fiscal_year,
                "total_amount": sum(to_amount(award["amount"]) for award in awards),
                "award_count": (spending_data.get("page_metadata") or {}).get("total") or len(awards),
                "awards_shown": len(awards),
                "awards": awards,
            },
            "data_sources": {
                "sam_gov": "Entity registration and business details",
                "usaspending_gov": "Federal award and spending history",
            },
            "joined_on": "Entity legal business name (UEI used for SAM lookup)",
            "limitations": NAME_JOIN_LIMITATION,
        }

    async def get_opportunity_spending_context(
        self, args: dict[str, Any], api_key: str | None
    ) -> dict[str, Any]:
        """A recent SAM.gov opportunity with USAspending history for its NAICS code."""
        api_key = self.require_api_key(api_key)
        opportunity_id = args.get("opportunity_id") or None
        solicitation_number = args.get("solicitation_number") or None
        if not opportunity_id and not solicitation_number:
            raise ValidationError(
                "Either opportunity_id or solicitation_number is required",
                fields=["opportunity_id", "solicitation_number"],
                component=self.component,
            )
        fiscal_year = self.fiscal_year(args)
        lookup_days = self.defaults.opportunity_lookup_days

        posted_from, posted_to = trailing_window(self._today(), lookup_days)
        sam_params: dict[str, Any] = {
            "postedFrom": posted_from,
            "postedTo": posted_to,
            "limit": self.defaults.opportunity_lookup_limit,
            "solnum": solicitation_number,
        }

        try:
            sam_data = self._require_success(
                await self.gateway.get(
                    ApiFamily.REGISTRY, OPPORTUNITIES_ENDPOINT, sam_params, api_key=api_key
                ),
                ApiFamily.REGISTRY,
                OPPORTUNITIES_ENDPOINT,
            )

            opportunity = next(
                (
                    opp
                    for opp in sam_data.get("opportunitiesData") or []
                    if (opportunity_id and opp.get("noticeId") == opportunity_id)
                    or (solicitation_number and opp.get("solicitationNumber") == solicitation_number)
                ),
                None,
            )
            if opportunity is None:
                return {
                    "error": (
                        f"Opportunity not found. It may be older than {lookup_days} days "
                        "or the ID/solicitation number is incorrect."
                    ),
                    "suggestion": OPPORTUNITY_SEARCH_SUGGESTION,
                }

            naics_code = opportunity.get("naicsCode")
            spending_context: dict[str, Any] = {
                "naics_code": naics_code,
                "similar_awards": [],
                "average_award_amount": 0,
                "total_spending": 0,
                "award_count": 0,
            }

            if naics_code:
                filters = {
                    "naics_codes": [naics_code],
                    "time_period": time_period_filter(fiscal_year),
                    "award_type_codes": CONTRACT_AWARD_TYPE_CODES,
                }
                spending_data = self._require_success(
                    await self.gateway.post(
                        ApiFamily.SPENDING,
                        SPENDING_BY_AWARD_ENDPOINT,
                        spending_by_award_request(
                            filters, MARKET_AWARD_FIELDS, self.defaults.market_sample_size
                        ),
                    ),
                    ApiFamily.SPENDING,
                    SPENDING_BY_AWARD_ENDPOINT,
                )
                spending_context = self._market_context(naics_code, spending_data)
        except APIError as exc:
            return self._failed(exc)

        average = spending_context["average_award_amount"]
        return {
            "opportunity": _opportunity_details(opportunity),
            "spending_context": spending_context,
            "market_analysis": {
                "similar_work_volume": spending_context["award_count"],
                "typical_award_range": (
                    {
                        "average": average,
                        "suggestion": classify_award_scale(
                            average,
                            self.defaults.small_award_ceiling,
                            self.defaults.medium_award_ceiling,
                        ),
                    }
                    if average > 0
                    else None
                ),
            },
            "data_sources": {
                "sam_gov": "Opportunity details and NAICS classification",
                "usaspending_gov": "Historical spending for similar work (same NAICS code)",
            },
            "joined_on": f"NAICS code {naics_code}",
            "fiscal_year": fiscal_year,
        }

    def _market_context(self, naics_code: str, spending_data: dict[str, Any]) -> dict[str, Any]:
        awards = spending_data.get("results") or []
        amounts = [amount for amount in (to_amount(a.get("Award Amount")) for a in awards) if amount > 0]
        total = sum(amounts)

        return {
            "naics_code": naics_code,
            "similar_awards": [
                {
                    "recipient": award.get("Recipient Name"),
                    "amount": award.get("Award Amount"),
                    "agency": award.get("Awarding Agency"),
                    "type": award.get("Award Type"),
                }
                for award in awards[: self.defaults.market_sample_shown]
            ],
            "average_award_amount": total / len(amounts) if amounts else 0,
            "total_spending": total,
            "award_count": (spending_data.get("page_metadata") or {}).get("total") or len(awards),
        }


__all__ = ["JoinEngine", "classify_award_scale"]
