"""SAM.gov entity, opportunity and exclusion tools.

All four operations go through the registry family of the gateway
(`ApiFamily.REGISTRY`) and authenticate with an ``api_key`` query parameter.
"""

from __future__ import annotations

from typing import Any

from ..exceptions import ValidationError
from ..gateway import ApiFamily
from .base import ToolShaper


ENTITIES_ENDPOINT = "/entity-information/v4/entities"
EXCLUSIONS_ENDPOINT = "/entity-information/v4/exclusions"
OPPORTUNITIES_ENDPOINT = "/opportunities/v2/search"

SEARCH_SECTIONS = "entityRegistration,coreData"
DETAIL_SECTIONS = "entityRegistration,coreData,assertions,pointsOfContact"

EXCLUSION_PAGE_SIZE = 10


def _business_type_codes(registration: dict[str, Any]) -> list[str] | None:
    types = (registration.get("businessTypes") or {}).get("businessTypeList")
    if types is None:
        return None
    return [bt.get("businessTypeCode") for bt in types]


def shape_entity_summary(entity: dict[str, Any]) -> dict[str, Any]:
    """Compact entity record used by search results and the entity/awards join."""
    registration = entity.get("entityRegistration") or {}
    address = registration.get("physicalAddress") or {}
    return {
        "uei": registration.get("ueiSAM"),
        "name": registration.get("legalBusinessName"),
        "duns": registration.get("duns"),
        "address": {
            "street": address.get("addressLine1"),
            "city": address.get("city"),
            "state": address.get("stateOrProvinceCode"),
            "zipCode": address.get("zipCode"),
            "country": address.get("countryCode"),
        },
        "businessTypes": _business_type_codes(registration),
        "registrationStatus": registration.get("registrationStatus"),
        "activationDate": registration.get("activationDate"),
        "expirationDate": registration.get("expirationDate"),
    }


def shape_opportunity(opp: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": opp.get("noticeId"),
        "title": opp.get("title"),
        "solicitationNumber": opp.get("solicitationNumber"),
        "department": opp.get("department"),
        "subTier": opp.get("subTier"),
        "office": opp.get("office"),
        "postedDate": opp.get("postedDate"),
        "type": opp.get("type"),
        "baseType": opp.get("baseType"),
        "setAside": opp.get("typeOfSetAsideDescription"),
        "responseDeadLine": opp.get("responseDeadLine"),
        "naicsCode": opp.get("naicsCode"),
        "classificationCode": opp.get("classificationCode"),
        "active": opp.get("active"),
        "links": {"self": opp.get("uiLink")},
    }


class SamGovTools(ToolShaper):
    """Shapes SAM.gov Entity Management, Opportunities and Exclusions responses."""

    family = ApiFamily.REGISTRY
    component = "tools.sam_gov"
    key_env_hint = "SAM_GOV_API_KEY"

    async def search_entities(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Search registered entities by name, UEI, state or NAICS."""
        api_key = self.require_api_key(api_key)
        limit = self.limit(args)

        params: dict[str, Any] = {
            "includeSections": SEARCH_SECTIONS,
            "page": 1,
            "size": limit,
            "ueiSAM": args.get("uei") or None,
            "entityName": args.get("query") or None,
            "stateProvince": args.get("state") or None,
            "naicsCode": args.get("naics") or None,
        }

        response = await self.gateway.get(self.family, ENTITIES_ENDPOINT, params, api_key=api_key)
        data = self.body(response, ENTITIES_ENDPOINT)
        entities = [shape_entity_summary(e) for e in data.get("entityData") or []]

        return {
            "total": data.get("totalRecords") or 0,
            "entities": entities,
            "page": 1,
            "limit": limit,
        }

    async def get_opportunities(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Fetch contract opportunities posted inside a date range."""
        api_key = self.require_api_key(api_key)
        posted_from = args.get("posted_from")
        posted_to = args.get("posted_to")
        if not posted_from or not posted_to:
            raise ValidationError(
                "Both posted_from and posted_to dates are required",
                fields=["posted_from", "posted_to"],
                component=self.component,
            )
        limit = self.limit(args)

        params: dict[str, Any] = {
            "postedFrom": posted_from,
            "postedTo": posted_to,
            "limit": limit,
            "offset": 0,
            "title": args.get("keyword") or None,
            "typeOfSetAside": args.get("set_aside") or None,
            "state": args.get("state") or None,
        }

        response = await self.gateway.get(
            self.family, OPPORTUNITIES_ENDPOINT, params, api_key=api_key
        )
        data = self.body(response, OPPORTUNITIES_ENDPOINT)
        opportunities = [shape_opportunity(o) for o in data.get("opportunitiesData") or []]

        return {
            "total": data.get("totalRecords") or 0,
            "opportunities": opportunities,
            "dateRange": {"from": posted_from, "to": posted_to},
            "limit": limit,
        }

    async def get_entity_details(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Full registration, core data and contacts for one UEI."""
        api_key = self.require_api_key(api_key)
        uei = self.require(args, "uei", "UEI is required")

        params = {"ueiSAM": uei, "includeSections": DETAIL_SECTIONS}
        response = await self.gateway.get(self.family, ENTITIES_ENDPOINT, params, api_key=api_key)
        entity_list = self.body(response, ENTITIES_ENDPOINT).get("entityData") or []
        if not entity_list:
            return {"error": "Entity not found"}

        entity = entity_list[0]
        registration = entity.get("entityRegistration") or {}
        core = entity.get("coreData") or {}
        business_types = (registration.get("businessTypes") or {}).get("businessTypeList")

        return {
            "uei": registration.get("ueiSAM"),
            "registration": {
                "legalBusinessName": registration.get("legalBusinessName"),
                "duns": registration.get("duns"),
                "registrationStatus": registration.get("registrationStatus"),
                "registrationDate": registration.get("registrationDate"),
                "activationDate": registration.get("activationDate"),
                "expirationDate": registration.get("expirationDate"),
                "lastUpdateDate": registration.get("lastUpdateDate"),
            },
            "coreData": {
                "entityStructure": (core.get("entityInformation") or {}).get("entityStructureCode"),
                "businessTypes": (
                    [
                        {"code": bt.get("businessTypeCode"), "description": bt.get("businessTypeDesc")}
                        for bt in business_types
                    ]
                    if business_types is not None
                    else None
                ),
                "primaryNaics": (core.get("naicsInformation") or {}).get("primaryNaics"),
            },
            "address": {
                "physical": registration.get("physicalAddress"),
                "mailing": registration.get("mailingAddress"),
            },
            "pointsOfContact": [
                {
                    "type": poc.get("contactType"),
                    "firstName": poc.get("firstName"),
                    "lastName": poc.get("lastName"),
                    "title": poc.get("title"),
                    "email": poc.get("email"),
                    "phone": poc.get("phone"),
                }
                for poc in entity.get("pointsOfContact") or []
            ],
        }

    async def check_exclusions(self, args: dict[str, Any], api_key: str | None) -> dict[str, Any]:
        """Check the SAM.gov exclusion list for a UEI and/or name."""
        api_key = self.require_api_key(api_key)
        uei = args.get("uei") or None
        entity_name = args.get("entity_name") or None

        params: dict[str, Any] = {
            "page": 1,
            "size": EXCLUSION_PAGE_SIZE,
            "ueiSAM": uei,
            "entityName": entity_name,
        }

        response = await self.gateway.get(self.family, EXCLUSIONS_ENDPOINT, params, api_key=api_key)
        data = self.body(response, EXCLUSIONS_ENDPOINT)
        exclusions = [
            {
                "uei": excl.get("ueiSAM"),
                "name": excl.get("entityName"),
                "exclusionType": excl.get("exclusionType"),
                "classification": excl.get("classification"),
                "exclusionProgram": excl.get("exclusionProgram"),
                "excludingAgency": excl.get("excludingAgency"),
                "ctCode": excl.get("ctCode"),
                "activationDate": excl.get("activationDate"),
                "terminationDate": excl.get("terminationDate"),
                "recordStatus": excl.get("recordStatus"),
            }
            for excl in data.get("exclusionDetails") or []
        ]

        return {
            "total": data.get("totalRecords") or 0,
            "excluded": len(exclusions) > 0,
            "exclusions": exclusions,
            "searchCriteria": {"uei": uei, "entity_name": entity_name},
        }
