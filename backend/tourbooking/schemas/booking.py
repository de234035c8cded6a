from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from tourbooking.models import BookingResult, FlashSaleItem, Offer, SaleStatus, TravelPeriod


# Upstream tour API shapes


class OfferPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    net_price_adult: Decimal
    price_single: Optional[Decimal] = None
    discount_single: Optional[Decimal] = None
    price_child: Optional[Decimal] = None
    discount_child_bed: Optional[Decimal] = None
    price_child_nobed: Optional[Decimal] = None
    discount_child_nobed: Optional[Decimal] = None
    price_infant: Optional[Decimal] = None
    discount_infant: Optional[Decimal] = None

    def to_model(self) -> Offer:
        return Offer(
            net_price_adult=self.net_price_adult,
            price_single=self.price_single,
            discount_single=self.discount_single or Decimal("0"),
            price_child_bed=self.price_child,
            discount_child_bed=self.discount_child_bed or Decimal("0"),
            price_child_nobed=self.price_child_nobed,
            discount_child_nobed=self.discount_child_nobed or Decimal("0"),
            price_infant=self.price_infant,
            discount_infant=self.discount_infant or Decimal("0"),
        )


class PeriodPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    start_date: date
    end_date: date
    capacity: int = 0
    booked: int = 0
    sale_status: SaleStatus = SaleStatus.AVAILABLE
    offer: Optional[OfferPayload] = None

    @field_validator("sale_status", mode="before")
    @classmethod
    def _known_status(cls, value: Any) -> Any:
        # Unrecognised labels stay bookable; only closed and sold-out periods are hidden.
        if isinstance(value, SaleStatus):
            return value
        if value is None:
            return SaleStatus.AVAILABLE
        normalized = str(value).strip().lower()
        if normalized in {status.value for status in SaleStatus}:
            return normalized
        return SaleStatus.AVAILABLE

    def to_model(self) -> TravelPeriod:
        return TravelPeriod(
            id=self.id,
            start_date=self.start_date,
            end_date=self.end_date,
            capacity=self.capacity,
            booked=self.booked,
            sale_status=self.sale_status,
            offer=self.offer.to_model() if self.offer else None,
        )


class TourDetailPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    slug: Optional[str] = None
    periods: List[PeriodPayload] = Field(default_factory=list)


class FlashSaleItemPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    flash_sale_item_id: int = Field(validation_alias=AliasChoices("flash_sale_item_id", "id"))
    tour_title: str
    flash_price: Decimal
    original_price: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("original_price_snapshot", "original_price")
    )
    period_start_date: date
    period_end_date: date
    quantity_limit: Optional[int] = None
    quantity_sold: int = 0

    def to_model(self) -> FlashSaleItem:
        return FlashSaleItem(
            flash_sale_item_id=self.flash_sale_item_id,
            tour_title=self.tour_title,
            flash_price=self.flash_price,
            original_price=self.original_price,
            period_start_date=self.period_start_date,
            period_end_date=self.period_end_date,
            quantity_limit=self.quantity_limit,
            quantity_sold=self.quantity_sold,
        )


class MemberPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""


class SalesAgent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: str
    name: str = ""


class OtpRequestResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    otp_request_id: Optional[int] = None
    expires_in: Optional[int] = Field(None, validation_alias=AliasChoices("expires_in", "expires_in_seconds"))
    debug_otp: Optional[str] = Field(None, validation_alias=AliasChoices("debug_otp", "debug_code"))
    message: Optional[str] = None


class OtpVerifyResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    message: Optional[str] = None


class BookingResultPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    booking_code: str
    status_label: str = ""
    total_amount: Decimal = Decimal("0")
    tour_title: str = ""
    period: str = ""

    def to_model(self) -> BookingResult:
        return BookingResult(
            booking_code=self.booking_code,
            status_label=self.status_label,
            total_amount=self.total_amount,
            tour_title=self.tour_title,
            period=self.period,
        )


class BookingSubmitResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    booking: Optional[BookingResultPayload] = None
    message: Optional[str] = None


class SubmitContact(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str


class SubmitPassengers(BaseModel):
    adult: int
    adult_single: int = 0
    child_with_bed: int = 0
    child_without_bed: int = 0
    infant: int = 0


class SubmitRooms(BaseModel):
    triple: int = 0
    twin: int = 0
    double: int = 0
    single: int = 0


class BookingSubmitRequest(BaseModel):
    tour_id: Optional[int] = None
    period_id: Optional[int] = None
    flash_sale_item_id: Optional[int] = None
    contact: SubmitContact
    passengers: SubmitPassengers
    rooms: SubmitRooms
    sales_code: Optional[str] = None
    special_request: Optional[str] = None
    consent_terms: bool = True
    otp_request_id: Optional[int] = None
    otp_verified: Optional[bool] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# Booking form HTTP surface


class OpenDraftRequest(BaseModel):
    tour_slug: Optional[str] = None
    period_id: Optional[int] = None
    flash_sale_item_id: Optional[int] = None

    @model_validator(mode="after")
    def _one_target(self) -> "OpenDraftRequest":
        if bool(self.tour_slug) == (self.flash_sale_item_id is not None):
            raise ValueError("Provide either tour_slug or flash_sale_item_id")
        return self


class PeriodSelection(BaseModel):
    period_id: int


class PassengerUpdate(BaseModel):
    adult: Optional[int] = Field(None, ge=0)
    adult_single: Optional[int] = Field(None, ge=0)
    child_with_bed: Optional[int] = Field(None, ge=0)
    child_without_bed: Optional[int] = Field(None, ge=0)
    infant: Optional[int] = Field(None, ge=0)


class RoomUpdate(BaseModel):
    triple: Optional[int] = Field(None, ge=0)
    twin: Optional[int] = Field(None, ge=0)
    double: Optional[int] = Field(None, ge=0)
    single: Optional[int] = Field(None, ge=0)


class ContactUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    sales_code: Optional[str] = None
    special_request: Optional[str] = None
    consent_terms: Optional[bool] = None


class OtpVerifyRequest(BaseModel):
    code: str
