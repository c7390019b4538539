"""USAspending.gov award, category, budget and recipient tools.

USAspending is public (no API key) but is paced the slowest of all families,
so every operation here issues exactly one request.
"""

from __future__ import annotations

from typing import Any

from ..gateway import ApiFamily
from ..utils.date_utils import fiscal_year_window
from .base import ToolShaper, path_segment, to_amount


SPENDING_BY_AWARD_ENDPOINT = "/search/spending_by_award/"

RECIPIENT_SEARCH_FIELDS = [
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Awarding Agency",
    "Awarding Sub Agency",
    "Award Type",
    "Start Date",
    "End Date",
    "Description",
]

# Upper bound sent when only a minimum award amount is requested
MAX_AWARD_AMOUNT = 999_999_999_999

CONTRACT_AWARD_TYPE_CODES = ["A", "B", "C", "D"]


def spending_by_award_request(
    filters: dict[str, Any],
    fields: list[str],
    limit: int,
) -> dict[str, Any]:
    """Build a /search/spending_by_award/ body sorted by amount, largest first."""
    return {
        "filters": filters,
        "fields": fields,
        "sort": "Award Amount",
        "order": "desc",
        "limit": limit,
    }


def time_period_filter(fiscal_year: int) -> list[dict[str, str]]:
    start, end = fiscal_year_window(fiscal_year)
    return [{"start_date": start, "end_date": end}]


class USAspendingTools(ToolShaper):
    """Shapes USAspending API v2 agency and award-search responses."""

    family = ApiFamily.SPENDING
    component = "tools.usaspending"

    async def get_agency_awards(self, args: dict[str, Any], api_key: str | None = None) -> dict[str, Any]:
        """Award summary for a toptier agency code in one fiscal year."""
        agency_code = self.require(args, "agency_code", "Agency code is required")
        fiscal_year = self.fiscal_year(args)
        limit = self.limit(args)

        endpoint = f"/agency/{path_segment(agency_code, 'agency_code')}/awards/"
        response = await self.gateway.get(self.family, endpoint, {"fiscal_year": fiscal_year, "limit": limit})
        data = self.body(response, endpoint)
        awards = (data.get("results") or [])[:limit]

        return {
            "agency_code": agency_code,
            "fiscal_year": fiscal_year,
            "total_obligations": data.get("total_obligated_amount"),
            "total_awards": data.get("award_count"),
            "awards_summary": [
                {
                    "id": award.get("generated_unique_award_id"),
                    "recipient": award.get("recipient_name"),
                    "amount": award.get("obligated_amount"),
                    "agency": award.get("awarding_agency_name"),
                    "description": award.get("description"),
                    "award_type": award.get("type_description"),
                    "start_date": award.get("period_of_performance_start_date"),
                    "end_date": award.get("period_of_performance_current_end_date"),
                }
                for award in awards
            ],
        }

    async def get_spending_by_category(
        self, args: dict[str, Any], api_key: str | None = None
    ) -> dict[str, Any]:
        """Agency obligations broken down by award category."""
        agency_code = self.require(args, "agency_code", "Agency code is required")
        fiscal_year = self.fiscal_year(args)

        endpoint = f"/agency/{path_segment(agency_code, 'agency_code')}/obligations_by_award_category/"
        response = await self.gateway.get(self.family, endpoint, {"fiscal_year": fiscal_year})
        data = self.body(response, endpoint)
        return {
            "agency_code": agency_code,
            "fiscal_year": fiscal_year,
            "total_obligations": data.get("total_obligated_amount"),
            "spending_by_category": [
                {
                    "category": category.get("category"),
                    "category_name": category.get("category_name"),
                    "obligated_amount": category.get("obligated_amount"),
                    "percentage": category.get("percentage_of_total"),
                }
                for category in data.get("results") or []
            ],
        }

    async def get_budgetary_resources(
        self, args: dict[str, Any], api_key: str | None = None
    ) -> dict[str, Any]:
        """Budget authority, obligations and outlays for an agency."""
        agency_code = self.require(args, "agency_code", "Agency code is required")
        fiscal_year = self.fiscal_year(args)

        endpoint = f"/agency/{path_segment(agency_code, 'agency_code')}/budgetary_resources/"
        response = await self.gateway.get(self.family, endpoint, {"fiscal_year": fiscal_year})
        data = self.body(response, endpoint)
        return {
            "agency_code": agency_code,
            "fiscal_year": fiscal_year,
            "agency_name": data.get("agency_name"),
            "total_budgetary_resources": data.get("total_budgetary_resources"),
            "total_obligations": data.get("total_obligations"),
            "total_outlays": data.get("total_outlays"),
            "unobligated_balance": data.get("unobligated_balance"),
            "budget_authority": data.get("budget_authority"),
        }

    async def search_awards_by_recipient(
        self, args: dict[str, Any], api_key: str | None = None
    ) -> dict[str, Any]:
        """Free-text recipient search with optional FY, amount and type filters."""
        recipient_name = self.require(args, "recipient_name", "Recipient name is required")
        fiscal_year = self.fiscal_year(args, default=False)
        min_amount = args.get("min_amount")
        max_amount = args.get("max_amount")
        award_types = args.get("award_types")
        limit = self.limit(args)

        filters: dict[str, Any] = {"recipient_search_text": [recipient_name]}
        if fiscal_year:
            filters["time_period"] = time_period_filter(fiscal_year)
        if min_amount or max_amount:
            filters["award_amounts"] = [
                {
                    "lower_bound": min_amount or 0,
                    "upper_bound": max_amount or MAX_AWARD_AMOUNT,
                }
            ]
        if isinstance(award_types, list) and award_types:
            filters["award_type_codes"] = award_types

        response = await self.gateway.post(
            self.family,
            SPENDING_BY_AWARD_ENDPOINT,
            spending_by_award_request(filters, RECIPIENT_SEARCH_FIELDS, limit),
        )
        data = self.body(response, SPENDING_BY_AWARD_ENDPOINT)
        awards = [
            {
                "id": award.get("Award ID"),
                "recipient": award.get("Recipient Name"),
                "amount": award.get("Award Amount"),
                "awarding_agency": award.get("Awarding Agency"),
                "awarding_sub_agency": award.get("Awarding Sub Agency"),
                "award_type": award.get("Award Type"),
                "start_date": award.get("Start Date"),
                "end_date": award.get("End Date"),
                "description": award.get("Description"),
            }
            for award in data.get("results") or []
        ]

        return {
            "recipient_name": recipient_name,
            "fiscal_year": fiscal_year,
            "total_results": (data.get("page_metadata") or {}).get("total") or 0,
            "awards": awards,
            "search_summary": {
                "total_amount": sum(to_amount(award["amount"]) for award in awards),
                "award_count": len(awards),
                "amount_range": {"min": min_amount, "max": max_amount},
                "award_types": award_types,
            },
        }


__all__ = [
    "CONTRACT_AWARD_TYPE_CODES",
    "SPENDING_BY_AWARD_ENDPOINT",
    "USAspendingTools",
    "spending_by_award_request",
    "time_period_filter",
]
