"""Tango (unified federal procurement aggregator) tools.

Tango authenticates with an ``X-API-Key`` header. Some filters callers expect
(vendor/recipient name substring, award amount range) are not reliable
server-side query parameters, so they are applied to the returned page here.
That post-filtering only ever sees the page Tango returned, and results that
used it say so.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..exceptions import ErrorCode, ValidationError
from ..gateway import ApiFamily
from ..utils.date_utils import fiscal_year_window
from .base import ToolShaper, clamp_limit, first_present, path_segment, to_amount, to_bool
from .spending_summary import GroupBy, group_spending, normalize_contract


CONTRACTS_ENDPOINT = "/contracts/search"
GRANTS_ENDPOINT = "/grants/search"
OPPORTUNITIES_ENDPOINT = "/opportunities/search"

DESCRIPTION_MAX_CHARS = 500

POST_FILTER_NOTE = (
    "Name and award-amount filters were applied client-side to the returned page only; "
    "matching records beyond this page are not included."
)
SUMMARY_NOTE = (
    "Totals are computed client-side from one page of contract records "
    "and do not cover the full result set."
)


def _optional_amount(args: dict[str, Any], field: str) -> float | None:
    value = args.get(field)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field} must be a number, got {value!r}",
            field=field,
            status_code=ErrorCode.VALIDATION_FAILED,
        ) from exc


def _matches_post_filters(
    name: str | None,
    amount: float,
    name_filter: str | None,
    amount_min: float | None,
    amount_max: float | None,
) -> bool:
    if name_filter and name_filter.lower() not in (name or "").lower():
        return False
    if amount_min is not None and amount < amount_min:
        return False
    if amount_max is not None and amount > amount_max:
        return False
    return True


def shape_contract(contract: dict[str, Any]) -> dict[str, Any]:
    return {
        "contract_id": first_present(contract.get("piid"), contract.get("contract_id")),
        "title": first_present(contract.get("description"), contract.get("title")),
        "vendor": {
            "name": contract.get("vendor_name"),
            "uei": contract.get("vendor_uei"),
            "duns": contract.get("vendor_duns"),
        },
        "agency": {
            "name": contract.get("agency_name"),
            "code": contract.get("agency_code"),
            "office": contract.get("office_name"),
        },
        "award_amount": first_present(
            contract.get("award_amount"), contract.get("total_dollars_obligated")
        ),
        "award_date": first_present(contract.get("award_date"), contract.get("date_signed")),
        "naics_code": contract.get("naics_code"),
        "naics_description": contract.get("naics_description"),
        "psc_code": contract.get("psc_code"),
        "psc_description": contract.get("psc_description"),
        "set_aside": contract.get("type_of_set_aside"),
        "place_of_performance": {
            "city": contract.get("pop_city"),
            "state": contract.get("pop_state_code"),
            "country": contract.get("pop_country_code"),
        },
        "status": first_present(contract.get("contract_status"), contract.get("status")),
    }


def shape_grant(grant: dict[str, Any]) -> dict[str, Any]:
    return {
        "grant_id": first_present(grant.get("fain"), grant.get("grant_id")),
        "title": first_present(
            grant.get("description"), grant.get("title"), grant.get("project_title")
        ),
        "recipient": {
            "name": grant.get("recipient_name"),
            "uei": grant.get("recipient_uei"),
            "duns": grant.get("recipient_duns"),
            "type": grant.get("recipient_type"),
        },
        "agency": {
            "name": grant.get("agency_name"),
            "code": grant.get("agency_code"),
            "office": grant.get("office_name"),
        },
        "award_amount": first_present(
            grant.get("award_amount"), grant.get("total_funding_amount")
        ),
        "award_date": first_present(grant.get("award_date"), grant.get("date_signed")),
        "cfda": {"number": grant.get("cfda_number"), "title": grant.get("cfda_title")},
        "place_of_performance": {
            "city": grant.get("pop_city"),
            "state": grant.get("pop_state_code"),
            "country": grant.get("pop_country_code"),
        },
        "status": first_present(grant.get("grant_status"), grant.get("status")),
        "period_of_performance": {
            "start": grant.get("period_start_date"),
            "end": grant.get("period_end_date"),
        },
    }


def shape_tango_opportunity(opp: dict[str, Any]) -> dict[str, Any]:
    description = opp.get("description")
    return {
        "opportunity_id": first_present(opp.get("notice_id"), opp.get("opportunity_id")),
        "solicitation_number": opp.get("solicitation_number"),
        "title": opp.get("title"),
        "type": first_present(opp.get("opportunity_type"), opp.get("type")),
        "status": opp.get("status"),
        "agency": {
            "name": opp.get("agency_name"),
            "code": opp.get("agency_code"),
            "office": opp.get("office_name"),
        },
        "posted_date": first_present(opp.get("posted_date"), opp.get("date_posted")),
        "response_deadline": first_present(opp.get("response_deadline"), opp.get("due_date")),
        "naics_code": opp.get("naics_code"),
        "set_aside": first_present(opp.get("set_aside_type"), opp.get("set_aside")),
        "place_of_performance": {
            "city": opp.get("pop_city"),
            "state": opp.get("pop_state"),
            "zip": opp.get("pop_zip"),
        },
        "description": description[:DESCRIPTION_MAX_CHARS] if isinstance(description, str) else None,
        "link": first_present(opp.get("url"), opp.get("link")),
    }


def _total(data: dict[str, Any]) -> int:
    return first_present(data.get("total"), data.get("count")) or 0


class TangoTools(ToolShaper):
    """Shapes Tango contract, grant, vendor, opportunity and spending data."""

    family = ApiFamily.AGGREGATOR
    component = "tools.tango"
    key_env_hint = "TANGO_API_KEY"

    async def _search_with_post_filter(
        self,
        endpoint: str,
        params: dict[str, Any],
        api_key: str,
        result_key: str,
        shaper: Callable[[dict[str, Any]], dict[str, Any]],
        name_field: str,
        name_filter: str | None,
        amount_min: float | None,
        amount_max: float | None,
    ) -> dict[str, Any]:
        response = await self.gateway.get(self.family, endpoint, params, api_key=api_key)
        data = self.body(response, endpoint)
        raw_results = data.get("results") or []
        post_filtered = bool(name_filter) or amount_min is not None or amount_max is not None

        shaped = []
        for raw in raw_results:
            record = shaper(raw)
            if post_filtered and not _matches_post_filters(
                raw.get(name_field),
                to_amount(record["award_amount"]),
                name_filter,
                amount_min,
                amount_max,
            ):
                continue
            shaped.append(record)

        result: dict[str, Any] = {
            "total": _total(data),
            "returned": len(shaped),
            result_key: shaped,
            "filters": {key: value for key, value in params.items() if value is not None},
            "limit": params["limit"],
            "post_filtered": post_filtered,
        }
        if post_filtered:
            result["client_side_filters"] = {
                "name_contains": name_filter,
                "award_amount_min": amount_min,
                "award_amount_max": amount_max,
            }
            result["note"] = POST_FILTER_NOTE
        return result

    async def search_contracts(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Search federal contracts across agencies."""
        api_key = self.require_api_key(api_key)
        amount_min = _optional_amount(args, "award_amount_min")
        amount_max = _optional_amount(args, "award_amount_max")

        params: dict[str, Any] = {
            "limit": self.limit(args),
            "offset": 0,
            "q": args.get("query") or None,
            "vendor_uei": args.get("vendor_uei") or None,
            "agency": args.get("agency") or None,
            "naics_code": args.get("naics_code") or None,
            "psc_code": args.get("psc_code") or None,
            "date_from": args.get("date_from") or None,
            "date_to": args.get("date_to") or None,
            "set_aside": args.get("set_aside") or None,
        }

        return await self._search_with_post_filter(
            CONTRACTS_ENDPOINT,
            params,
            api_key,
            "contracts",
            shape_contract,
            name_field="vendor_name",
            name_filter=args.get("vendor_name") or None,
            amount_min=amount_min,
            amount_max=amount_max,
        )

    async def search_grants(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Search federal grants and financial assistance awards."""
        api_key = self.require_api_key(api_key)
        amount_min = _optional_amount(args, "award_amount_min")
        amount_max = _optional_amount(args, "award_amount_max")

        params: dict[str, Any] = {
            "limit": self.limit(args),
            "offset": 0,
            "q": args.get("query") or None,
            "recipient_uei": args.get("recipient_uei") or None,
            "agency": args.get("agency") or None,
            "cfda_number": args.get("cfda_number") or None,
            "date_from": args.get("date_from") or None,
            "date_to": args.get("date_to") or None,
        }

        return await self._search_with_post_filter(
            GRANTS_ENDPOINT,
            params,
            api_key,
            "grants",
            shape_grant,
            name_field="recipient_name",
            name_filter=args.get("recipient_name") or None,
            amount_min=amount_min,
            amount_max=amount_max,
        )

    async def get_vendor_profile(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Vendor registration, classification and performance summary by UEI."""
        api_key = self.require_api_key(api_key)
        uei = self.require(args, "uei", "UEI is required")
        include_contracts = to_bool(args.get("include_contracts", False))
        include_grants = to_bool(args.get("include_grants", False))

        params = {
            "include_contracts": "true" if include_contracts else "false",
            "include_grants": "true" if include_grants else "false",
        }
        endpoint = f"/vendors/{path_segment(uei, 'uei')}"
        response = await self.gateway.get(self.family, endpoint, params, api_key=api_key)
        vendor = self.body(response, endpoint)
        profile: dict[str, Any] = {
            "uei": vendor.get("uei"),
            "legal_business_name": first_present(vendor.get("legal_business_name"), vendor.get("name")),
            "duns": vendor.get("duns"),
            "cage_code": vendor.get("cage_code"),
            "registration": {
                "status": vendor.get("registration_status"),
                "activation_date": vendor.get("activation_date"),
                "expiration_date": vendor.get("expiration_date"),
            },
            "business_types": first_present(vendor.get("business_types"), vendor.get("business_type_list")),
            "address": {
                "physical": vendor.get("physical_address"),
                "mailing": vendor.get("mailing_address"),
            },
            "contacts": first_present(vendor.get("points_of_contact"), vendor.get("contacts")),
            "naics_codes": vendor.get("naics_codes"),
            "psc_codes": vendor.get("psc_codes"),
            "certifications": vendor.get("certifications"),
            "performance_summary": {
                "total_contracts": vendor.get("total_contracts") or 0,
                "total_contract_value": vendor.get("total_contract_value") or 0,
                "total_grants": vendor.get("total_grants") or 0,
                "total_grant_value": vendor.get("total_grant_value") or 0,
            },
        }
        if include_contracts:
            profile["recent_contracts"] = vendor.get("recent_contracts")
        if include_grants:
            profile["recent_grants"] = vendor.get("recent_grants")
        return profile

    async def search_opportunities(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Search open and recent solicitations."""
        api_key = self.require_api_key(api_key)
        params: dict[str, Any] = {
            "limit": self.limit(args),
            "offset": 0,
            "q": args.get("query") or None,
            "agency": args.get("agency") or None,
            "naics_code": args.get("naics_code") or None,
            "set_aside": args.get("set_aside") or None,
            "posted_from": args.get("posted_from") or None,
            "posted_to": args.get("posted_to") or None,
            "response_deadline_from": args.get("response_deadline_from") or None,
            "status": args.get("status") or None,
        }

        response = await self.gateway.get(self.family, OPPORTUNITIES_ENDPOINT, params, api_key=api_key)
        data = self.body(response, OPPORTUNITIES_ENDPOINT)
        return {
            "total": _total(data),
            "opportunities": [shape_tango_opportunity(o) for o in data.get("results") or []],
            "filters": {key: value for key, value in params.items() if value is not None},
            "limit": params["limit"],
        }

    async def get_spending_summary(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Group one page of contract spending by agency, vendor, NAICS, PSC or month."""
        api_key = self.require_api_key(api_key)
        raw_group_by = str(args.get("group_by") or GroupBy.AGENCY.value).lower()
        try:
            group_by = GroupBy(raw_group_by)
        except ValueError as exc:
            raise ValidationError(
                f"group_by must be one of {', '.join(g.value for g in GroupBy)}, got {raw_group_by!r}",
                field="group_by",
                component=self.component,
                status_code=ErrorCode.VALIDATION_FAILED,
            ) from exc

        fiscal_year = self.fiscal_year(args, default=False)
        date_from = date_to = None
        if fiscal_year:
            date_from, date_to = fiscal_year_window(fiscal_year)

        params: dict[str, Any] = {
            "limit": clamp_limit(args.get("limit"), self.upstream.max_page_size, self.upstream.max_page_size),
            "offset": 0,
            "agency": args.get("agency") or None,
            "vendor_uei": args.get("vendor_uei") or None,
            "date_from": date_from,
            "date_to": date_to,
        }

        response = await self.gateway.get(self.family, CONTRACTS_ENDPOINT, params, api_key=api_key)
        data = self.body(response, CONTRACTS_ENDPOINT)
        records = [normalize_contract(raw) for raw in data.get("results") or []]
        groups = group_spending(records, group_by)

        return {
            "group_by": group_by.value,
            "fiscal_year": fiscal_year,
            "total_obligated": sum(group["total_obligated"] for group in groups),
            "record_count": len(records),
            "groups": groups,
            "filters": {key: value for key, value in params.items() if value is not None},
            "note": SUMMARY_NOTE,
        }


__all__ = [
    "TangoTools",
    "shape_contract",
    "shape_grant",
    "shape_tango_opportunity",
]
