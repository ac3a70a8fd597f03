"""HTTP client for the telephony vendor's autocall REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .config import DEFAULT_VENDOR_BASE_URL, Settings
from .formatting import normalize_phone_number


logger = logging.getLogger("autocall.vendor")


class VendorError(Exception):
    """Base class for failures talking to the vendor API."""


class VendorConfigurationError(VendorError):
    """Raised when the vendor credential has not been configured."""


class VendorAPIError(VendorError):
    """Raised when the vendor rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VendorTimeoutError(VendorError):
    """Raised when the vendor does not answer within the configured timeout."""


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("Vendor API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "msg", "description"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def _format_timeout(seconds: float) -> str:
    return f"{seconds:g}"


class VendorClient:
    """Forward requests to the vendor using the server-held bearer credential.

    One instance is created per application and shares a single
    :class:`httpx.AsyncClient`; call :meth:`aclose` on shutdown.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_VENDOR_BASE_URL,
        token: Optional[str] = None,
        *,
        autocall_token: Optional[str] = None,
        timeout: float = 90.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._token = (token or "").strip() or None
        self._autocall_token = (autocall_token or "").strip() or self._token
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        if self._token is None:
            logger.warning("Vendor API token is not configured; vendor requests will fail")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "VendorClient":
        return cls(
            settings.vendor_base_url,
            settings.vendor_token,
            autocall_token=settings.vendor_autocall_token,
            timeout=settings.vendor_timeout,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return self._token is not None

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _token_for(self, path: str) -> str:
        if self._token is None:
            raise VendorConfigurationError("Vendor API token is not configured")
        if path.startswith("/autocall"):
            return self._autocall_token or self._token
        return self._token

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body."""

        if not path.startswith("/"):
            path = "/" + path
        headers = {"Authorization": f"Bearer {self._token_for(path)}"}

        logger.info("Vendor request %s %s", method, path)
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json if method != "GET" else None,
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            logger.error("Vendor request %s %s timed out", method, path)
            raise VendorTimeoutError(
                f"Vendor API request timed out after {_format_timeout(self._timeout)} seconds"
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Vendor request %s %s failed: %s", method, path, exc)
            raise VendorAPIError(f"Failed to contact vendor API: {exc}") from exc

        if response.status_code >= 400:
            default = f"Vendor API error: {response.status_code} {response.reason_phrase}".strip()
            try:
                parsed: object = response.json()
            except ValueError:
                parsed = response.text
            message = _extract_error_message(parsed, default)
            logger.error(
                "Vendor request %s %s returned %s: %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise VendorAPIError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise VendorAPIError("Vendor API returned an invalid response") from exc

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------
    async def list_campaigns(self, max_items: int = 50, pos: int = 0) -> Any:
        return await self.request("GET", "/autocall/", params={"max": max_items, "pos": pos})

    async def get_campaign(self, campaign_id: str) -> Any:
        return await self.request("GET", "/autocall-outline/", params={"autocall": campaign_id})

    async def create_campaign(self, payload: Dict[str, Any]) -> Any:
        return await self.request("POST", "/autocall/", json=payload)

    async def update_campaign(self, campaign_id: str, payload: Dict[str, Any]) -> Any:
        return await self.request("PUT", f"/autocall/{campaign_id}", json=payload)

    async def delete_campaign(self, campaign_id: str) -> Any:
        return await self.request("DELETE", f"/autocall/{campaign_id}")

    async def start_campaign(self, campaign_id: str) -> Any:
        return await self.request("GET", f"/autocall/{campaign_id}/start")

    async def stop_campaign(self, campaign_id: str) -> Any:
        return await self.request("GET", f"/autocall/{campaign_id}/stop")

    # ------------------------------------------------------------------
    # Outbound lines
    # ------------------------------------------------------------------
    async def list_lines(self) -> Any:
        return await self.request("GET", "/autocall-outline/")

    async def select_line(self, campaign_id: int, line_id: int, selected: bool = True) -> Any:
        body = {"autocall": campaign_id, "id": line_id, "selected": selected}
        return await self.request("PATCH", "/autocall-outline/", json=body)

    async def list_phone_lines(self) -> Any:
        return await self.request("GET", "/lines/")

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------
    async def list_campaign_operators(self, campaign_id: str) -> Any:
        return await self.request("GET", "/autocall-operator/", params={"autocall": campaign_id})

    async def assign_operators(self, campaign_id: str, operator_ids: Sequence[int]) -> Any:
        return await self.request(
            "POST",
            "/autocall-operator/",
            params={"autocall": campaign_id},
            json={"operators": list(operator_ids)},
        )

    async def unassign_operator(self, campaign_id: str, operator_id: str) -> Any:
        return await self.request(
            "DELETE",
            f"/autocall-operator/{operator_id}/",
            params={"autocall": campaign_id},
        )

    async def unassign_operators(
        self, campaign_id: str, operator_ids: Sequence[object]
    ) -> List[Dict[str, Any]]:
        """Unassign each operator in turn, collecting per-operator outcomes."""

        results: List[Dict[str, Any]] = []
        for operator_id in operator_ids:
            try:
                response = await self.unassign_operator(campaign_id, str(operator_id))
            except VendorConfigurationError:
                raise
            except VendorError as exc:
                results.append({"operatorId": operator_id, "success": False, "error": str(exc)})
            else:
                results.append({"operatorId": operator_id, "success": True, "response": response})
        return results

    async def list_employees(self) -> Any:
        return await self.request("GET", "/employees/")

    async def list_employee_extensions(self) -> Any:
        return await self.request("GET", "/employees/empExt")

    # ------------------------------------------------------------------
    # Numbers and results
    # ------------------------------------------------------------------
    async def list_numbers(self, campaign_id: str, max_items: int = 1000, pos: int = 0) -> Any:
        return await self.request(
            "GET",
            "/autocall-number/",
            params={"autocall": campaign_id, "max": max_items, "pos": pos},
        )

    async def upload_numbers(self, campaign_id: str, numbers: Sequence[object]) -> Dict[str, Any]:
        """Upload numbers one request at a time; the vendor accepts a single number per call."""

        results: List[Dict[str, Any]] = []
        for raw_number in numbers:
            phone_number = normalize_phone_number(raw_number)
            if phone_number is None:
                results.append({"number": raw_number, "success": False, "error": "Invalid phone number"})
                continue
            try:
                response = await self.request(
                    "POST",
                    "/autocall-number/",
                    json={"autocall": campaign_id, "number": phone_number, "comment": ""},
                )
            except VendorConfigurationError:
                raise
            except VendorError as exc:
                logger.warning("Failed to upload number to campaign %s: %s", campaign_id, exc)
                results.append({"number": raw_number, "success": False, "error": str(exc)})
            else:
                results.append({"number": raw_number, "success": True, "response": response})

        success_count = sum(1 for result in results if result["success"])
        return {
            "success": success_count > 0,
            "totalCount": len(results),
            "successCount": success_count,
            "failureCount": len(results) - success_count,
            "results": results,
        }

    async def list_call_results(self, campaign_id: str, max_items: int = 100, pos: int = 0) -> Any:
        return await self.request(
            "GET",
            f"/autocall/{campaign_id}/results",
            params={"max": max_items, "pos": pos},
        )

    async def get_call_report(self, campaign_id: str) -> Any:
        return await self.request("GET", f"/autocall/report/{campaign_id}")


__all__ = [
    "VendorAPIError",
    "VendorClient",
    "VendorConfigurationError",
    "VendorError",
    "VendorTimeoutError",
]
