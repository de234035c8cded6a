from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from tourbooking.schemas import (
    BookingSubmitRequest,
    BookingSubmitResponse,
    FlashSaleItemPayload,
    MemberPayload,
    OtpRequestResponse,
    OtpVerifyResponse,
    SalesAgent,
    TourDetailPayload,
)
from tourbooking.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong, please try again"
NETWORK_ERROR_MESSAGE = "Unable to reach the booking server"


class TourApiError(RuntimeError):
    """Raised when catalog data needed to open a booking form cannot be loaded."""


class TourApiClient:
    """Wrapper around the remote tour API used by the booking form."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.tour_api_base_url.rstrip("/"),
            timeout=self.settings.tour_api_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send a request and always return a ``{"success": ...}`` envelope.

        Error statuses keep the server's ``message`` when it sent one; transport
        failures become a generic network error envelope.
        """

        try:
            response = await self._client.request(method, path, json=json, headers=self._headers(token))
        except httpx.HTTPError as error:
            logger.warning(
                "Tour API request failed",
                extra={"method": method, "path": path, "error": str(error)},
            )
            return {"success": False, "message": NETWORK_ERROR_MESSAGE, "error": "network_error"}

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}

        if response.is_error:
            logger.warning(
                "Tour API returned an error",
                extra={"method": method, "path": path, "status": response.status_code},
            )
            return {
                "success": False,
                "message": data.get("message") or GENERIC_ERROR_MESSAGE,
                "errors": data.get("errors"),
                "error": data.get("error"),
            }

        data.setdefault("success", True)
        return data

    async def get_tour(self, slug: str) -> TourDetailPayload:
        body = await self._request("GET", f"/web/tours/{slug}")
        if not body.get("success"):
            raise TourApiError(body.get("message") or "Tour not found")
        try:
            return TourDetailPayload.model_validate(body.get("data") or body.get("tour") or {})
        except ValidationError as exc:
            raise TourApiError("Tour payload is malformed") from exc

    async def get_flash_sale_item(self, item_id: int) -> FlashSaleItemPayload:
        body = await self._request("GET", f"/web/flash-sales/items/{item_id}")
        if not body.get("success"):
            raise TourApiError(body.get("message") or "Flash sale item not found")
        try:
            return FlashSaleItemPayload.model_validate(body.get("data") or {})
        except ValidationError as exc:
            raise TourApiError("Flash sale payload is malformed") from exc

    async def get_member(self, token: str) -> Optional[MemberPayload]:
        body = await self._request("GET", "/web/me", token=token)
        member = body.get("member") if body.get("success") else None
        if not member:
            return None
        return MemberPayload.model_validate(member)

    async def request_otp(self, phone: str) -> OtpRequestResponse:
        body = await self._request("POST", "/web/bookings/request-otp", json={"phone": phone})
        return OtpRequestResponse.model_validate(body)

    async def verify_otp(self, otp_request_id: int, code: str) -> OtpVerifyResponse:
        body = await self._request(
            "POST",
            "/web/bookings/verify-otp",
            json={"otp_request_id": otp_request_id, "otp": code},
        )
        return OtpVerifyResponse.model_validate(body)

    async def submit_booking(self, payload: BookingSubmitRequest, token: Optional[str] = None) -> BookingSubmitResponse:
        return await self._submit("/web/bookings", payload, token)

    async def submit_flash_sale(self, payload: BookingSubmitRequest, token: Optional[str] = None) -> BookingSubmitResponse:
        return await self._submit("/web/bookings/flash-sale", payload, token)

    async def _submit(self, path: str, payload: BookingSubmitRequest, token: Optional[str]) -> BookingSubmitResponse:
        body = await self._request("POST", path, json=payload.to_wire(), token=token)
        try:
            return BookingSubmitResponse.model_validate(body)
        except ValidationError:
            logger.warning("Unexpected booking response", extra={"path": path})
            return BookingSubmitResponse(success=False, message=GENERIC_ERROR_MESSAGE)

    async def list_sales_agents(self) -> List[SalesAgent]:
        body = await self._request("GET", "/web/sales")
        if not body.get("success"):
            logger.warning("Sales agent list unavailable", extra={"reason": body.get("message")})
            return []
        agents: List[SalesAgent] = []
        for row in body.get("data") or []:
            try:
                agents.append(SalesAgent.model_validate(row))
            except ValidationError:
                continue
        return agents


_tour_api_client: TourApiClient | None = None


def get_tour_api_client() -> TourApiClient:
    global _tour_api_client
    if not _tour_api_client:
        _tour_api_client = TourApiClient()
    return _tour_api_client
