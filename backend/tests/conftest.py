from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from tourbooking.models import Offer, SaleStatus, TravelPeriod
from tourbooking.schemas import (
    BookingResultPayload,
    BookingSubmitRequest,
    BookingSubmitResponse,
    FlashSaleItemPayload,
    MemberPayload,
    OtpRequestResponse,
    OtpVerifyResponse,
    PeriodPayload,
    SalesAgent,
    TourDetailPayload,
)
from tourbooking.services.tour_api_client import TourApiClient, TourApiError
from tourbooking.utils.config import Settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_offer(**overrides: Any) -> Offer:
    values: Dict[str, Any] = {"net_price_adult": Decimal("20000"), "price_child_bed": Decimal("15000")}
    values.update(overrides)
    return Offer(**values)


def make_period(period_id: int = 11, offer: Optional[Offer] = None, **overrides: Any) -> TravelPeriod:
    values: Dict[str, Any] = {
        "id": period_id,
        "start_date": date(2026, 12, 1),
        "end_date": date(2026, 12, 5),
        "capacity": 30,
        "booked": 12,
        "sale_status": SaleStatus.AVAILABLE,
        "offer": offer,
    }
    values.update(overrides)
    return TravelPeriod(**values)


class DummyTourApi(TourApiClient):
    """Scripted stand-in for the remote tour API; records every call."""

    def __init__(self) -> None:
        self.settings = Settings()
        self.calls: List[tuple[str, Any]] = []
        self.member: Optional[MemberPayload] = None
        self.otp_response = OtpRequestResponse(success=True, otp_request_id=501, expires_in=300, debug_otp="123456")
        self.verify_response = OtpVerifyResponse(success=True)
        self.submit_response = BookingSubmitResponse(
            success=True,
            booking=BookingResultPayload(
                booking_code="BK-1001",
                status_label="Pending confirmation",
                total_amount=Decimal("55000"),
                tour_title="Hokkaido Snow Festival",
                period="01 Dec - 05 Dec 26",
            ),
        )
        self.tour = TourDetailPayload(
            id=7,
            title="Hokkaido Snow Festival",
            slug="hokkaido-snow",
            periods=[
                PeriodPayload(
                    id=10,
                    start_date=date(2026, 11, 1),
                    end_date=date(2026, 11, 5),
                    capacity=20,
                    booked=20,
                    sale_status=SaleStatus.SOLD_OUT,
                    offer={"net_price_adult": "19000"},
                ),
                PeriodPayload(
                    id=11,
                    start_date=date(2026, 12, 1),
                    end_date=date(2026, 12, 5),
                    capacity=30,
                    booked=12,
                    offer={"net_price_adult": "20000", "price_child": "15000", "price_single": "6000"},
                ),
                PeriodPayload(
                    id=12,
                    start_date=date(2027, 1, 10),
                    end_date=date(2027, 1, 14),
                    capacity=30,
                    booked=0,
                    offer=None,
                ),
            ],
        )
        self.flash_item = FlashSaleItemPayload(
            flash_sale_item_id=88,
            tour_title="Seoul Autumn Leaves",
            flash_price=Decimal("9999"),
            original_price=Decimal("15999"),
            period_start_date=date(2026, 11, 20),
            period_end_date=date(2026, 11, 24),
            quantity_limit=10,
            quantity_sold=4,
        )

    async def get_tour(self, slug: str) -> TourDetailPayload:
        self.calls.append(("get_tour", slug))
        if slug != self.tour.slug:
            raise TourApiError("Tour not found")
        return self.tour

    async def get_flash_sale_item(self, item_id: int) -> FlashSaleItemPayload:
        self.calls.append(("get_flash_sale_item", item_id))
        return self.flash_item

    async def get_member(self, token: str) -> Optional[MemberPayload]:
        self.calls.append(("get_member", token))
        return self.member

    async def request_otp(self, phone: str) -> OtpRequestResponse:
        self.calls.append(("request_otp", phone))
        return self.otp_response

    async def verify_otp(self, otp_request_id: int, code: str) -> OtpVerifyResponse:
        self.calls.append(("verify_otp", (otp_request_id, code)))
        return self.verify_response

    async def submit_booking(self, payload: BookingSubmitRequest, token: Optional[str] = None) -> BookingSubmitResponse:
        self.calls.append(("submit_booking", payload))
        return self.submit_response

    async def submit_flash_sale(self, payload: BookingSubmitRequest, token: Optional[str] = None) -> BookingSubmitResponse:
        self.calls.append(("submit_flash_sale", payload))
        return self.submit_response

    async def list_sales_agents(self) -> List[SalesAgent]:
        self.calls.append(("list_sales_agents", None))
        return [SalesAgent(code="S01", name="Nok")]

    def called(self, name: str) -> List[Any]:
        return [args for call, args in self.calls if call == name]


@pytest.fixture
def tour_api() -> DummyTourApi:
    return DummyTourApi()
