from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Optional

from tourbooking.models import (
    BookingDraft,
    BookingKind,
    BookingResult,
    ContactInfo,
    Offer,
    PassengerCategory,
    PassengerQuantities,
    RoomQuantities,
    RoomType,
    SubmissionStatus,
    VerificationState,
    VerificationStep,
)
from tourbooking.schemas import BookingSubmitRequest, SubmitContact, SubmitPassengers, SubmitRooms
from tourbooking.services import draft_service
from tourbooking.services.capacity_service import CapacityReport, overage_message, validate_rooms
from tourbooking.services.draft_service import DraftValidationError
from tourbooking.services.pricing_service import (
    PricingBreakdown,
    PricingPolicy,
    compute_totals,
    offer_from_flash_sale,
    resolve_offer,
)
from tourbooking.services.tour_api_client import GENERIC_ERROR_MESSAGE, NETWORK_ERROR_MESSAGE, TourApiClient
from tourbooking.services.verification_service import (
    PHONE_CHANGED_MESSAGE,
    VerificationError,
    VerificationGate,
    countdown_ticked,
)

logger = logging.getLogger(__name__)

Publisher = Callable[[str, Dict[str, Any]], Awaitable[None]]

CONTACT_FIELD_MESSAGES = {
    "first_name": "Please enter the contact's first name",
    "last_name": "Please enter the contact's last name",
    "email": "Please enter an email address",
    "phone": "Please enter a phone number",
}


def draft_offer(draft: BookingDraft) -> Optional[Offer]:
    if draft.kind == BookingKind.FLASH_SALE:
        return offer_from_flash_sale(draft.flash_sale_item) if draft.flash_sale_item else None
    return resolve_offer(draft.periods, draft.selected_period_id)


def check_submittable(draft: BookingDraft, capacity: CapacityReport) -> None:
    """Raise ``DraftValidationError`` for the first failing pre-submit rule."""

    if draft.kind == BookingKind.TOUR:
        if draft.selected_period is None:
            raise DraftValidationError("period_id", "Please select a travel period")
        if draft_offer(draft) is None:
            raise DraftValidationError("period_id", "This period has no confirmed price, please contact sales")
    elif draft.flash_sale_item is None:
        raise DraftValidationError("flash_sale_item_id", "Flash sale item is missing")

    missing = draft.contact.first_missing()
    if missing:
        raise DraftValidationError(missing, CONTACT_FIELD_MESSAGES[missing])

    if not draft.is_verified:
        raise DraftValidationError("otp", "Please verify your phone number first")

    if not draft.consent_terms:
        raise DraftValidationError("consent_terms", "Please accept the terms and conditions")

    if capacity.is_over_capacity:
        raise DraftValidationError("rooms", overage_message(capacity))


def build_submit_payload(draft: BookingDraft) -> BookingSubmitRequest:
    contact = draft.contact.stripped()
    passengers = draft.passengers
    rooms = draft.rooms
    guest_verified = not draft.authenticated and draft.verification.step == VerificationStep.OTP_VERIFIED

    return BookingSubmitRequest(
        tour_id=draft.tour_id if draft.kind == BookingKind.TOUR else None,
        period_id=draft.selected_period_id if draft.kind == BookingKind.TOUR else None,
        flash_sale_item_id=draft.flash_sale_item.flash_sale_item_id if draft.flash_sale_item else None,
        contact=SubmitContact(
            first_name=contact.first_name,
            last_name=contact.last_name,
            email=contact.email,
            phone=contact.phone,
        ),
        passengers=SubmitPassengers(**{c.value: passengers.count(c) for c in PassengerCategory}),
        rooms=SubmitRooms(**{r.value: rooms.count(r) for r in RoomType}),
        sales_code=draft.sales_code.strip() or None,
        special_request=draft.special_request.strip() or None,
        consent_terms=True,
        otp_request_id=draft.verification.request_id if guest_verified else None,
        otp_verified=True if guest_verified else None,
    )


def submission_started(draft: BookingDraft) -> BookingDraft:
    draft_service.ensure_editable(draft)
    return replace(draft, status=SubmissionStatus.SUBMITTING, error=None)


def submission_succeeded(draft: BookingDraft, result: BookingResult) -> BookingDraft:
    # The form content is discarded; only the confirmation remains.
    return replace(
        draft,
        passengers=PassengerQuantities(),
        rooms=RoomQuantities(),
        contact=ContactInfo(),
        sales_code="",
        special_request="",
        consent_terms=False,
        verification=VerificationState(),
        status=SubmissionStatus.SUCCESS,
        error=None,
        result=result,
    )


def submission_failed(draft: BookingDraft, message: str) -> BookingDraft:
    return replace(draft, status=SubmissionStatus.EDITING, error=message)


def validation_failed(draft: BookingDraft, message: str) -> BookingDraft:
    return replace(draft, error=message)


class SubmissionController:
    """Owns one booking draft and drives it from editing to a confirmed booking."""

    def __init__(
        self,
        draft: BookingDraft,
        client: TourApiClient,
        gate: VerificationGate | None = None,
        policy: PricingPolicy | None = None,
        publish: Publisher | None = None,
        token: Optional[str] = None,
    ) -> None:
        self._draft = draft
        self.client = client
        self.gate = gate or VerificationGate(client)
        self.policy = policy or PricingPolicy()
        self._publish = publish
        self._token = token
        self._phone_edits = 0

    @property
    def draft(self) -> BookingDraft:
        return self._draft

    @property
    def draft_id(self) -> str:
        return self._draft.draft_id

    @property
    def pricing(self) -> PricingBreakdown:
        return compute_totals(draft_offer(self._draft), self._draft.passengers, self._draft.rooms, self.policy)

    @property
    def capacity(self) -> CapacityReport:
        return validate_rooms(self._draft.passengers, self._draft.rooms)

    async def _emit(self, event: Dict[str, Any]) -> None:
        if self._publish is not None:
            await self._publish(self.draft_id, event)

    def select_period(self, period_id: int) -> BookingDraft:
        self._draft = draft_service.select_period(self._draft, period_id)
        return self._draft

    def set_passengers(self, counts: Dict[PassengerCategory, int]) -> BookingDraft:
        self._draft = draft_service.set_passenger_counts(self._draft, counts, self.pricing, self.policy)
        return self._draft

    def set_rooms(self, counts: Dict[RoomType, int]) -> BookingDraft:
        self._draft = draft_service.set_room_counts(self._draft, counts, self.pricing, self.policy)
        return self._draft

    def update_details(self, **fields: Any) -> BookingDraft:
        previous_phone = self._draft.contact.phone
        draft = draft_service.update_details(self._draft, **fields)
        if draft.contact.phone != previous_phone and not draft.authenticated:
            self._phone_edits += 1
            draft = replace(draft, verification=self.gate.phone_changed(draft.verification))
        self._draft = draft
        return self._draft

    def _phone_unchanged_since(self, edits: int) -> Callable[[], bool]:
        return lambda: self._phone_edits == edits

    async def _on_tick(self, remaining: int) -> None:
        self._draft = replace(self._draft, verification=countdown_ticked(self._draft.verification, remaining))
        await self._emit({"type": "otp.countdown", "remaining_seconds": remaining})

    def _ensure_guest(self) -> None:
        draft_service.ensure_editable(self._draft)
        if self._draft.authenticated:
            raise VerificationError("Members do not need phone verification")

    async def request_otp(self) -> BookingDraft:
        self._ensure_guest()
        if self._draft.verification.step == VerificationStep.OTP_VERIFIED:
            raise VerificationError("Phone number is already verified")
        edits = self._phone_edits
        state = await self.gate.request_otp(
            self._draft.verification,
            self._draft.contact.phone,
            self._on_tick,
            is_current=self._phone_unchanged_since(edits),
        )
        if self._phone_edits != edits:
            # The phone edit already reset verification; keep that state.
            raise VerificationError(state.error or PHONE_CHANGED_MESSAGE)
        self._draft = replace(self._draft, verification=state)
        if state.error:
            raise VerificationError(state.error)
        await self._emit({"type": "otp.sent", "expires_in": state.expires_in})
        return self._draft

    async def verify_otp(self, code: str) -> BookingDraft:
        self._ensure_guest()
        edits = self._phone_edits
        state = await self.gate.verify(
            self._draft.verification,
            code,
            is_current=self._phone_unchanged_since(edits),
        )
        if self._phone_edits != edits:
            raise VerificationError(state.error or PHONE_CHANGED_MESSAGE)
        self._draft = replace(self._draft, verification=state)
        if state.error:
            raise VerificationError(state.error)
        await self._emit({"type": "otp.verified"})
        return self._draft

    async def submit(self) -> BookingDraft:
        draft_service.ensure_editable(self._draft)
        try:
            check_submittable(self._draft, self.capacity)
        except DraftValidationError as exc:
            self._draft = validation_failed(self._draft, exc.message)
            raise

        payload = build_submit_payload(self._draft)
        self._draft = submission_started(self._draft)
        await self._emit({"type": "submit.started"})

        try:
            if self._draft.kind == BookingKind.FLASH_SALE:
                response = await self.client.submit_flash_sale(payload, token=self._token)
            else:
                response = await self.client.submit_booking(payload, token=self._token)
        except Exception:
            self._draft = submission_failed(self._draft, NETWORK_ERROR_MESSAGE)
            raise

        if not response.success or response.booking is None:
            message = response.message or GENERIC_ERROR_MESSAGE
            logger.warning(
                "Booking submission failed",
                extra={"draft_id": self.draft_id, "period_id": payload.period_id, "reason": message},
            )
            self._draft = submission_failed(self._draft, message)
            await self._emit({"type": "submit.failed", "message": message})
            return self._draft

        result = response.booking.to_model()
        self.gate.close()
        self._draft = submission_succeeded(self._draft, result)
        logger.info(
            "Booking created",
            extra={"draft_id": self.draft_id, "booking_code": result.booking_code},
        )
        await self._emit({"type": "submit.succeeded", "booking_code": result.booking_code})
        return self._draft

    def close(self) -> None:
        self.gate.close()
