from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class SaleStatus(str, Enum):
    AVAILABLE = "available"
    BOOKING = "booking"
    CLOSED = "closed"
    SOLD_OUT = "sold_out"

    @property
    def bookable(self) -> bool:
        return self in (SaleStatus.AVAILABLE, SaleStatus.BOOKING)


class PassengerCategory(str, Enum):
    ADULT = "adult"
    ADULT_SINGLE = "adult_single"
    CHILD_WITH_BED = "child_with_bed"
    CHILD_WITHOUT_BED = "child_without_bed"
    INFANT = "infant"


class RoomType(str, Enum):
    TRIPLE = "triple"
    TWIN = "twin"
    DOUBLE = "double"
    SINGLE = "single"


class VerificationStep(str, Enum):
    IDLE = "idle"
    OTP_SENT = "otp_sent"
    OTP_VERIFIED = "otp_verified"


class SubmissionStatus(str, Enum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUCCESS = "success"


class BookingKind(str, Enum):
    TOUR = "tour"
    FLASH_SALE = "flash_sale"


@dataclass(frozen=True)
class Offer:
    """
    Confirmed price terms of a travel period.

    ``net_price_adult`` already has the adult discount applied. Every other
    category is quoted as a gross price plus a discount; a missing or zero
    price means the category has no confirmed pricing.
    """

    net_price_adult: Decimal
    price_single: Optional[Decimal] = None
    discount_single: Decimal = Decimal("0")
    price_child_bed: Optional[Decimal] = None
    discount_child_bed: Decimal = Decimal("0")
    price_child_nobed: Optional[Decimal] = None
    discount_child_nobed: Decimal = Decimal("0")
    price_infant: Optional[Decimal] = None
    discount_infant: Decimal = Decimal("0")


@dataclass(frozen=True)
class TravelPeriod:
    id: int
    start_date: date
    end_date: date
    capacity: int
    booked: int
    sale_status: SaleStatus = SaleStatus.AVAILABLE
    offer: Optional[Offer] = None

    @property
    def available(self) -> int:
        return max(self.capacity - self.booked, 0)

    @property
    def label(self) -> str:
        return f"{self.start_date:%d %b} - {self.end_date:%d %b %y}"


@dataclass(frozen=True)
class FlashSaleItem:
    flash_sale_item_id: int
    tour_title: str
    flash_price: Decimal
    period_start_date: date
    period_end_date: date
    original_price: Optional[Decimal] = None
    quantity_limit: Optional[int] = None
    quantity_sold: int = 0

    @property
    def stock_remaining(self) -> Optional[int]:
        if not self.quantity_limit:
            return None
        return max(0, self.quantity_limit - self.quantity_sold)

    @property
    def label(self) -> str:
        return f"{self.period_start_date:%d %b} - {self.period_end_date:%d %b %y}"


@dataclass(frozen=True)
class PassengerQuantities:
    """Traveler counts. ``adult_single`` is the part of ``adult`` that sleeps alone."""

    adult: int = 1
    adult_single: int = 0
    child_with_bed: int = 0
    child_without_bed: int = 0
    infant: int = 0

    def __post_init__(self) -> None:
        if self.adult < 1:
            raise ValueError("At least one adult is required")
        for category in PassengerCategory:
            if self.count(category) < 0:
                raise ValueError(f"{category.value} must be >= 0")
        if self.adult_single > self.adult:
            raise ValueError("adult_single cannot exceed adult")

    def count(self, category: PassengerCategory) -> int:
        return getattr(self, category.value)

    @property
    def travelers(self) -> int:
        # Infants share a bed and do not count towards room capacity.
        return self.adult + self.child_with_bed + self.child_without_bed


@dataclass(frozen=True)
class RoomQuantities:
    triple: int = 0
    twin: int = 0
    double: int = 0
    single: int = 0

    def __post_init__(self) -> None:
        for room_type in RoomType:
            if self.count(room_type) < 0:
                raise ValueError(f"{room_type.value} must be >= 0")

    def count(self, room_type: RoomType) -> int:
        return getattr(self, room_type.value)

    @property
    def total(self) -> int:
        return sum(self.count(room_type) for room_type in RoomType)


@dataclass(frozen=True)
class ContactInfo:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""

    REQUIRED = ("first_name", "last_name", "email", "phone")

    def first_missing(self) -> Optional[str]:
        for name in self.REQUIRED:
            if not getattr(self, name).strip():
                return name
        return None

    def stripped(self) -> "ContactInfo":
        return ContactInfo(
            first_name=self.first_name.strip(),
            last_name=self.last_name.strip(),
            email=self.email.strip(),
            phone=self.phone.strip(),
        )


@dataclass(frozen=True)
class VerificationState:
    step: VerificationStep = VerificationStep.IDLE
    request_id: Optional[int] = None
    expires_in: int = 0
    remaining_seconds: int = 0
    debug_code: Optional[str] = None
    error: Optional[str] = None

    @property
    def can_resend(self) -> bool:
        return self.step == VerificationStep.OTP_SENT and self.remaining_seconds <= 0


@dataclass(frozen=True)
class BookingResult:
    booking_code: str
    status_label: str
    total_amount: Decimal
    tour_title: str
    period: str


@dataclass(frozen=True)
class BookingDraft:
    draft_id: str
    kind: BookingKind
    tour_title: str
    tour_id: Optional[int] = None
    periods: tuple[TravelPeriod, ...] = ()
    selected_period_id: Optional[int] = None
    flash_sale_item: Optional[FlashSaleItem] = None
    passengers: PassengerQuantities = field(default_factory=PassengerQuantities)
    rooms: RoomQuantities = field(default_factory=RoomQuantities)
    contact: ContactInfo = field(default_factory=ContactInfo)
    sales_code: str = ""
    special_request: str = ""
    consent_terms: bool = False
    authenticated: bool = False
    verification: VerificationState = field(default_factory=VerificationState)
    status: SubmissionStatus = SubmissionStatus.EDITING
    error: Optional[str] = None
    result: Optional[BookingResult] = None

    @property
    def selected_period(self) -> Optional[TravelPeriod]:
        if self.selected_period_id is None:
            return None
        return next((p for p in self.periods if p.id == self.selected_period_id), None)

    @property
    def bookable_periods(self) -> tuple[TravelPeriod, ...]:
        return tuple(p for p in self.periods if p.sale_status.bookable)

    @property
    def is_verified(self) -> bool:
        return self.authenticated or self.verification.step == VerificationStep.OTP_VERIFIED
