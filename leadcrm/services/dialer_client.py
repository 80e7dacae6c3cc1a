import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from leadcrm.core.config import settings
from leadcrm.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

_CREATE_PLAYBOOK = """
mutation CreatePlaybook($payload: PlaybookInput!) {
  createPlaybook(payload: $payload) { _id name status }
}
"""

_GET_PLAYBOOK = """
query GetPlaybook($id: ID!) {
  playbook(id: $id) { _id name status }
}
"""

_UPDATE_PLAYBOOK = """
mutation UpdatePlaybook($id: ID!, $payload: PlaybookInput!) {
  updatePlaybook(id: $id, payload: $payload) { _id name status }
}
"""

_START_PLAYBOOK = """
mutation StartPlaybook($id: ID!) { startPlaybook(id: $id) }
"""

_STOP_PLAYBOOK = """
mutation StopPlaybook($id: ID!) { stopPlaybook(id: $id) }
"""

_CREATE_CONTACT = """
mutation CreateContact($properties: [KeyValueInput!]!, $module: ID) {
  createContact(properties: $properties, module: $module) { _id }
}
"""

_DELETE_CONTACTS = """
mutation DeleteContacts($module: ID, $filter: JSON, $all: Boolean) {
  deleteContacts(module: $module, filter: $filter, all: $all)
}
"""


def normalize_phone(phone: str) -> str:
    """Dialer numbers carry no leading ``+``."""
    return phone.strip().lstrip("+")


class DialerClient:
    """GraphQL client for the outbound dialer platform.

    Every call is a single POST authenticated by the static ``apikey``
    header.  Transport failures, non-2xx answers and GraphQL ``errors``
    payloads all surface as :class:`ExternalServiceError`; nothing is
    retried.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        module_id: Optional[str] = None,
        company_tag: Optional[str] = None,
    ) -> None:
        self._base_url = (base_url if base_url is not None else settings.DIALER_API_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.DIALER_API_KEY
        self._timeout = timeout if timeout is not None else settings.DIALER_TIMEOUT_SECONDS
        self._module_id = module_id if module_id is not None else settings.DIALER_CONTACT_MODULE_ID
        self._company_tag = company_tag if company_tag is not None else settings.DIALER_COMPANY_TAG

    async def _execute(self, path: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        if not self._base_url or not self._api_key:
            raise ExternalServiceError("Dialer API is not configured")

        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    json={"query": query, "variables": variables},
                    headers={"apikey": self._api_key},
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.error("Dialer request timed out: %s", url)
            raise ExternalServiceError("Dialer API timed out")
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Dialer returned %s for %s: %s",
                exc.response.status_code,
                url,
                exc.response.text,
            )
            raise ExternalServiceError(
                f"Dialer API error {exc.response.status_code}: {exc.response.text}"
            )
        except httpx.HTTPError as exc:
            logger.error("Dialer unreachable: %s (%s)", url, exc)
            raise ExternalServiceError("Dialer API unavailable")

        payload = response.json()
        errors = payload.get("errors") or []
        if errors:
            messages = ", ".join(str(err.get("message", err)) for err in errors)
            logger.error("Dialer returned errors for %s: %s", url, messages)
            raise ExternalServiceError(f"Dialer API returned errors: {messages}")
        return payload.get("data") or {}

    def _phone_rules(self, phone_numbers: Iterable[str]) -> Dict[str, Any]:
        return {
            "filters": {
                "and": [
                    {
                        "or": [
                            {"key": "phoneNumber", "condition": "IS", "value": normalize_phone(p)}
                            for p in phone_numbers
                        ]
                    },
                    {"key": "company", "condition": "IS", "value": self._company_tag},
                ]
            },
            "type": "Native",
        }

    # ------------------------------------------------------------------
    # Playbooks
    # ------------------------------------------------------------------

    async def create_playbook(
        self, name: str, phone_numbers: Iterable[str] = ()
    ) -> Dict[str, Any]:
        data = await self._execute(
            "/playbook/create",
            _CREATE_PLAYBOOK,
            {"payload": {"name": name, "rules": self._phone_rules(phone_numbers)}},
        )
        playbook = data.get("createPlaybook")
        if not playbook or not playbook.get("_id"):
            raise ExternalServiceError("Dialer did not return a playbook id")
        return playbook

    async def get_playbook(self, playbook_id: str) -> Optional[Dict[str, Any]]:
        data = await self._execute("/playbook/get", _GET_PLAYBOOK, {"id": playbook_id})
        return data.get("playbook")

    async def update_playbook(
        self, playbook_id: str, name: str, phone_numbers: Iterable[str]
    ) -> Dict[str, Any]:
        """Replace the playbook's contact rules with *phone_numbers*."""
        data = await self._execute(
            "/playbook/append",
            _UPDATE_PLAYBOOK,
            {
                "id": playbook_id,
                "payload": {"name": name, "rules": self._phone_rules(phone_numbers)},
            },
        )
        return data.get("updatePlaybook") or {}

    async def start_playbook(self, playbook_id: str) -> bool:
        await self._execute("/playbook/start", _START_PLAYBOOK, {"id": playbook_id})
        return True

    async def stop_playbook(self, playbook_id: str) -> bool:
        await self._execute("/playbook/stop", _STOP_PLAYBOOK, {"id": playbook_id})
        return True

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def create_contact(
        self,
        first_name: str,
        last_name: str,
        phone_number: str,
        data_source: str,
    ) -> Dict[str, Any]:
        properties: List[Dict[str, str]] = [
            {"key": "company", "value": self._company_tag},
            {"key": "dataSource", "value": data_source},
            {"key": "firstName", "value": first_name},
            {"key": "lastName", "value": last_name},
            {"key": "phoneNumber", "value": normalize_phone(phone_number)},
        ]
        data = await self._execute(
            "/playbook/contacts/create",
            _CREATE_CONTACT,
            {"module": self._module_id or None, "properties": properties},
        )
        contact = data.get("createContact")
        if not contact or not contact.get("_id"):
            raise ExternalServiceError("No contact ID returned from dialer")
        return contact

    async def delete_contacts(self, phone_numbers: Iterable[str]) -> Any:
        phone_numbers = list(phone_numbers)
        if not phone_numbers:
            return None
        rules = self._phone_rules(phone_numbers)
        data = await self._execute(
            "/playbook/contacts/delete",
            _DELETE_CONTACTS,
            {"module": self._module_id or None, "filter": rules["filters"], "all": False},
        )
        return data.get("deleteContacts")
