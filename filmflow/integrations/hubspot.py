"""
Filmflow HubSpot CRM

Lead capture: upsert a contact and open a deal associated with it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from filmflow.core.config import CRMConfig
from filmflow.core.env_loader import get_hubspot_api_key
from filmflow.core.exceptions import CRMError, MissingCredential
from filmflow.core.logging_config import get_logger

logger = get_logger("integrations.hubspot")

CONTACTS_PATH = "/crm/v3/objects/contacts"
CONTACT_SEARCH_PATH = "/crm/v3/objects/contacts/search"
DEALS_PATH = "/crm/v3/objects/deals"

# HubSpot-defined deal -> contact association
DEAL_TO_CONTACT_ASSOCIATION = 3


@dataclass
class LeadContact:
    """A demo request or inbound lead."""
    email: str
    first_name: str
    last_name: str
    company_name: str
    phone_number: str = ""
    job_title: str = ""
    use_case: str = ""

    def to_properties(self) -> Dict[str, str]:
        properties = {
            "email": self.email,
            "firstname": self.first_name,
            "lastname": self.last_name,
            "phone": self.phone_number or "",
            "company": self.company_name,
            "jobtitle": self.job_title or "",
            "lifecyclestage": "lead",
        }
        if self.use_case:
            properties["hs_content_membership_notes"] = self.use_case
        return properties


@dataclass
class LeadResult:
    contact_id: str
    deal_id: str


class HubSpotCRM:
    """HubSpot-backed CRM collaborator."""

    name = "hubspot"

    def __init__(
        self,
        api_key: str = None,
        config: CRMConfig = None,
        client: httpx.AsyncClient = None,
    ):
        """
        Initialize the CRM client.

        Args:
            api_key: Private app token; read from the environment if omitted
            config: CRM settings (base URL, timeout, deal close window)
            client: Optional preconfigured httpx client (tests pass a MockTransport)
        """
        self.config = config or CRMConfig()
        self.api_key = api_key or get_hubspot_api_key()
        if not self.api_key:
            raise MissingCredential(self.name, ["HUBSPOT_API_KEY", "HUBSPOT_ACCESS_TOKEN"])
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> Dict[str, Any]:
        url = f"{self.config.base_url}{path}"
        try:
            response = await self._client.request(method, url, json=body, headers=self._get_headers())
        except httpx.HTTPError as e:
            raise CRMError(f"{method} {path}: {e}")

        if response.is_error:
            raise CRMError(
                f"{method} {path} returned {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.json()

    async def upsert_contact(self, contact: LeadContact) -> str:
        """
        Create the contact, or update it when the email already exists.

        Returns:
            HubSpot contact id
        """
        body = {"properties": contact.to_properties()}
        try:
            created = await self._request("POST", CONTACTS_PATH, body)
            return str(created["id"])
        except CRMError as e:
            if e.status_code != 409:
                raise

        logger.info(f"Contact {contact.email} already exists, updating")
        search = await self._request("POST", CONTACT_SEARCH_PATH, {
            "filterGroups": [{
                "filters": [{"propertyName": "email", "operator": "EQ", "value": contact.email}]
            }]
        })
        results = search.get("results") or []
        if not results:
            raise CRMError(f"Contact {contact.email} reported as duplicate but not found", status_code=409)

        contact_id = str(results[0]["id"])
        await self._request("PATCH", f"{CONTACTS_PATH}/{contact_id}", body)
        return contact_id

    async def create_deal(self, contact_id: str, contact: LeadContact) -> str:
        close_date = datetime.now(timezone.utc) + timedelta(days=self.config.deal_close_days)
        deal = await self._request("POST", DEALS_PATH, {
            "properties": {
                "dealname": f"Demo Request - {contact.company_name}",
                "dealstage": "appointmentscheduled",
                "pipeline": "default",
                "amount": "0",
                "closedate": close_date.isoformat(),
            },
            "associations": [{
                "to": {"id": contact_id},
                "types": [{
                    "associationCategory": "HUBSPOT_DEFINED",
                    "associationTypeId": DEAL_TO_CONTACT_ASSOCIATION,
                }],
            }],
        })
        return str(deal["id"])

    async def submit_lead(self, contact: LeadContact) -> LeadResult:
        """
        Upsert the contact and open a deal for it.

        Raises:
            CRMError: If HubSpot rejects any request
        """
        contact_id = await self.upsert_contact(contact)
        deal_id = await self.create_deal(contact_id, contact)
        logger.info(f"Lead submitted: contact {contact_id}, deal {deal_id}")
        return LeadResult(contact_id=contact_id, deal_id=deal_id)

    async def aclose(self) -> None:
        await self._client.aclose()


async def submit_lead_safely(crm: Optional[HubSpotCRM], contact: LeadContact) -> Optional[LeadResult]:
    """Fire-and-forget submission: CRM failures are logged, never raised."""
    if crm is None:
        logger.info(f"CRM disabled, lead for {contact.email} not synced")
        return None
    try:
        return await crm.submit_lead(contact)
    except CRMError as e:
        logger.error(f"CRM lead submission failed for {contact.email}: {e}")
        return None
