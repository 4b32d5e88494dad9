"""Storage and resource quotas (the JMAP quota extension)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import JmapClientError, QuotaNotEnabledError
from .helpers import get_int, get_string
from .protocol import MethodCall, ServiceBase

_QUOTA_CAPABILITY = "urn:ietf:params:jmap:quota"


@dataclass
class Quota:
    """One quota; a limit of 0 means unlimited."""

    id: str
    name: str
    used: int
    limit: int
    scope: str
    resource_type: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Quota":
        return cls(
            id=get_string(data, "id"),
            name=get_string(data, "name"),
            description=get_string(data, "description"),
            used=get_int(data, "used"),
            limit=get_int(data, "limit"),
            scope=get_string(data, "scope"),
            resource_type=get_string(data, "resourceType"),
        )


class QuotaClient(ServiceBase):
    """Reads account quotas."""

    def get_quotas(self) -> list[Quota]:
        """Return every quota of the account."""
        session = self._session()
        if _QUOTA_CAPABILITY not in session.capabilities:
            raise QuotaNotEnabledError()

        response = self._call(
            ["urn:ietf:params:jmap:core", _QUOTA_CAPABILITY],
            MethodCall("Quota/get", {"accountId": session.account_id}, "q0"),
        )
        if not response.method_responses:
            raise JmapClientError("no method responses received")

        result = self._result(response)
        error_type = result.get("type")
        if isinstance(error_type, str):
            description = get_string(result, "description")
            raise JmapClientError(f"quota error: {error_type} - {description}")

        items = result.get("list")
        if not isinstance(items, list):
            raise JmapClientError("no quota list found in response")
        return [Quota.from_dict(item) for item in items if isinstance(item, dict)]