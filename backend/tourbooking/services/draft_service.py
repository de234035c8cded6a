from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional

from tourbooking.models import (
    BookingDraft,
    BookingKind,
    ContactInfo,
    FlashSaleItem,
    PassengerCategory,
    PassengerQuantities,
    RoomQuantities,
    RoomType,
    SubmissionStatus,
    TravelPeriod,
    VerificationState,
    VerificationStep,
)
from tourbooking.schemas import MemberPayload
from tourbooking.services.pricing_service import PricingBreakdown, PricingPolicy


class DraftValidationError(ValueError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class DraftLockedError(RuntimeError):
    """The draft is submitting or already booked and cannot change."""


@dataclass(frozen=True)
class Stepper:
    minimum: int
    maximum: int
    disabled: bool


def new_tour_draft(
    draft_id: str,
    tour_id: int,
    tour_title: str,
    periods: tuple[TravelPeriod, ...],
    period_id: Optional[int] = None,
    member: Optional[MemberPayload] = None,
) -> BookingDraft:
    draft = BookingDraft(
        draft_id=draft_id,
        kind=BookingKind.TOUR,
        tour_id=tour_id,
        tour_title=tour_title,
        periods=periods,
    )
    bookable = draft.bookable_periods
    selected = None
    if period_id is not None and any(p.id == period_id for p in bookable):
        selected = period_id
    elif bookable:
        selected = bookable[0].id
    return _with_member(replace(draft, selected_period_id=selected), member)


def new_flash_sale_draft(
    draft_id: str,
    item: FlashSaleItem,
    member: Optional[MemberPayload] = None,
) -> BookingDraft:
    draft = BookingDraft(
        draft_id=draft_id,
        kind=BookingKind.FLASH_SALE,
        tour_title=item.tour_title,
        flash_sale_item=item,
    )
    return _with_member(draft, member)


def _with_member(draft: BookingDraft, member: Optional[MemberPayload]) -> BookingDraft:
    if member is None:
        return draft
    return replace(
        draft,
        authenticated=True,
        contact=ContactInfo(
            first_name=member.first_name,
            last_name=member.last_name,
            email=member.email,
            phone=member.phone,
        ),
        verification=VerificationState(step=VerificationStep.OTP_VERIFIED),
    )


def ensure_editable(draft: BookingDraft) -> None:
    if draft.status == SubmissionStatus.SUBMITTING:
        raise DraftLockedError("Booking is being submitted")
    if draft.status == SubmissionStatus.SUCCESS:
        raise DraftLockedError("Booking is already confirmed")


def select_period(draft: BookingDraft, period_id: int) -> BookingDraft:
    ensure_editable(draft)
    if draft.kind != BookingKind.TOUR:
        raise DraftValidationError("period_id", "Flash sale bookings have a fixed period")
    period = next((p for p in draft.periods if p.id == period_id), None)
    if period is None:
        raise DraftValidationError("period_id", "Travel period not found")
    if not period.sale_status.bookable:
        raise DraftValidationError("period_id", "Travel period is not open for booking")
    return replace(draft, selected_period_id=period_id, error=None)


def passenger_stepper(
    category: PassengerCategory,
    passengers: PassengerQuantities,
    pricing: PricingBreakdown,
    policy: PricingPolicy,
) -> Stepper:
    if category == PassengerCategory.ADULT:
        return Stepper(1, policy.max_quantity, not pricing.adult.has_price)
    if category == PassengerCategory.ADULT_SINGLE:
        return Stepper(0, passengers.adult, not pricing.single.has_price)
    line = getattr(pricing, category.value)
    return Stepper(0, policy.max_quantity, not line.has_price)


def room_stepper(room_type: RoomType, pricing: PricingBreakdown, policy: PricingPolicy) -> Stepper:
    return Stepper(0, policy.max_quantity, not getattr(pricing, room_type.value).has_price)


def _clamp(value: int, stepper: Stepper) -> int:
    return max(stepper.minimum, min(value, stepper.maximum))


def set_passenger_counts(
    draft: BookingDraft,
    counts: Dict[PassengerCategory, int],
    pricing: PricingBreakdown,
    policy: PricingPolicy,
) -> BookingDraft:
    """
    Apply stepper edits. Values are clamped to the stepper bounds; raising a
    category that has no confirmed price is refused, lowering it is allowed.
    """

    ensure_editable(draft)
    values = {category: draft.passengers.count(category) for category in PassengerCategory}
    for category in (
        PassengerCategory.ADULT,
        PassengerCategory.CHILD_WITH_BED,
        PassengerCategory.CHILD_WITHOUT_BED,
        PassengerCategory.INFANT,
        PassengerCategory.ADULT_SINGLE,
    ):
        if category not in counts:
            continue
        stepper = passenger_stepper(
            category,
            PassengerQuantities(adult=values[PassengerCategory.ADULT]),
            pricing,
            policy,
        )
        requested = counts[category]
        if stepper.disabled and requested > values[category]:
            raise DraftValidationError(category.value, "Price not available, please contact sales")
        values[category] = _clamp(requested, stepper)

    values[PassengerCategory.ADULT_SINGLE] = min(
        values[PassengerCategory.ADULT_SINGLE], values[PassengerCategory.ADULT]
    )
    passengers = PassengerQuantities(**{category.value: value for category, value in values.items()})
    return replace(draft, passengers=passengers, error=None)


def set_room_counts(
    draft: BookingDraft,
    counts: Dict[RoomType, int],
    pricing: PricingBreakdown,
    policy: PricingPolicy,
) -> BookingDraft:
    ensure_editable(draft)
    values = {room_type: draft.rooms.count(room_type) for room_type in RoomType}
    for room_type, requested in counts.items():
        stepper = room_stepper(room_type, pricing, policy)
        if stepper.disabled and requested > values[room_type]:
            raise DraftValidationError(room_type.value, "Price not available, please contact sales")
        values[room_type] = _clamp(requested, stepper)
    rooms = RoomQuantities(**{room_type.value: value for room_type, value in values.items()})
    return replace(draft, rooms=rooms, error=None)


def update_details(
    draft: BookingDraft,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    sales_code: Optional[str] = None,
    special_request: Optional[str] = None,
    consent_terms: Optional[bool] = None,
) -> BookingDraft:
    """Edit contact fields. The caller resets verification when the phone changes."""

    ensure_editable(draft)
    if phone is not None and draft.authenticated and phone != draft.contact.phone:
        raise DraftValidationError("phone", "Member phone number cannot be changed here")

    contact = draft.contact
    contact = ContactInfo(
        first_name=contact.first_name if first_name is None else first_name,
        last_name=contact.last_name if last_name is None else last_name,
        email=contact.email if email is None else email,
        phone=contact.phone if phone is None else phone,
    )
    return replace(
        draft,
        contact=contact,
        sales_code=draft.sales_code if sales_code is None else sales_code,
        special_request=draft.special_request if special_request is None else special_request,
        consent_terms=draft.consent_terms if consent_terms is None else consent_terms,
        error=None,
    )
