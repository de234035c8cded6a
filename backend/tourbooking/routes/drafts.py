from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from tourbooking.models import PassengerCategory, RoomType, SubmissionStatus
from tourbooking.schemas import (
    ContactUpdate,
    OpenDraftRequest,
    OtpVerifyRequest,
    PassengerUpdate,
    PeriodSelection,
    RoomUpdate,
)
from tourbooking.services import draft_service
from tourbooking.services.draft_service import DraftLockedError, DraftValidationError
from tourbooking.services.pricing_service import PricingLine, PricingPolicy, get_pricing_policy
from tourbooking.services.submission_service import SubmissionController
from tourbooking.services.tour_api_client import TourApiClient, TourApiError, get_tour_api_client
from tourbooking.services.verification_service import VerificationError, VerificationGate
from tourbooking.stores.draft_store import draft_store
from tourbooking.stores.event_bus import event_bus
from tourbooking.utils.config import get_settings

router = APIRouter(prefix="/drafts", tags=["drafts"])
logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _get_controller(draft_id: str) -> SubmissionController:
    controller = draft_store.get(draft_id)
    if not controller:
        raise HTTPException(status_code=404, detail="Draft not found")
    return controller


def _serialize_line(line: PricingLine) -> Dict[str, Any]:
    return {
        "category": line.category,
        "quantity": line.quantity,
        "unit_price": str(line.unit_price),
        "subtotal": str(line.subtotal),
        "has_price": line.has_price,
    }


def _serialize_draft(controller: SubmissionController) -> Dict[str, Any]:
    draft = controller.draft
    pricing = controller.pricing
    capacity = controller.capacity
    policy = controller.policy
    period = draft.selected_period
    item = draft.flash_sale_item
    verification = draft.verification

    passenger_rows = []
    for category in PassengerCategory:
        stepper = draft_service.passenger_stepper(category, draft.passengers, pricing, policy)
        line = pricing.single if category == PassengerCategory.ADULT_SINGLE else getattr(pricing, category.value)
        passenger_rows.append(
            {
                "category": category.value,
                "quantity": draft.passengers.count(category),
                "has_price": line.has_price,
                "unit_price": str(line.unit_price) if category != PassengerCategory.ADULT_SINGLE else None,
                "subtotal": str(line.subtotal) if category != PassengerCategory.ADULT_SINGLE else None,
                "stepper": {"min": stepper.minimum, "max": stepper.maximum, "disabled": stepper.disabled},
            }
        )

    room_rows = []
    for room_type in RoomType:
        stepper = draft_service.room_stepper(room_type, pricing, policy)
        row = _serialize_line(getattr(pricing, room_type.value))
        row["stepper"] = {"min": stepper.minimum, "max": stepper.maximum, "disabled": stepper.disabled}
        room_rows.append(row)

    return {
        "draft_id": draft.draft_id,
        "kind": draft.kind.value,
        "status": draft.status.value,
        "error": draft.error,
        "tour": {"id": draft.tour_id, "title": draft.tour_title},
        "periods": [
            {
                "id": p.id,
                "label": p.label,
                "start_date": p.start_date.isoformat(),
                "end_date": p.end_date.isoformat(),
                "sale_status": p.sale_status.value,
                "net_price_adult": str(p.offer.net_price_adult) if p.offer else None,
                "available": p.available,
            }
            for p in draft.bookable_periods
        ],
        "selected_period": {
            "id": period.id,
            "label": period.label,
            "capacity": period.capacity,
            "booked": period.booked,
            "available": period.available,
        } if period else None,
        "flash_sale_item": {
            "id": item.flash_sale_item_id,
            "label": item.label,
            "flash_price": str(item.flash_price),
            "original_price": str(item.original_price) if item.original_price is not None else None,
            "stock_remaining": item.stock_remaining,
        } if item else None,
        "passengers": passenger_rows,
        "rooms": room_rows,
        "pricing": {
            "currency": get_settings().currency,
            "grand_total": str(pricing.grand_total),
        },
        "capacity": {
            "total_rooms": capacity.total_rooms,
            "total_passengers": capacity.total_passengers,
            "is_over_capacity": capacity.is_over_capacity,
            "overage": capacity.overage,
        },
        "contact": {
            "first_name": draft.contact.first_name,
            "last_name": draft.contact.last_name,
            "email": draft.contact.email,
            "phone": draft.contact.phone,
            "phone_locked": draft.authenticated,
        },
        "sales_code": draft.sales_code,
        "special_request": draft.special_request,
        "consent_terms": draft.consent_terms,
        "authenticated": draft.authenticated,
        "verification": {
            "step": verification.step.value,
            "otp_request_id": verification.request_id,
            "remaining_seconds": verification.remaining_seconds,
            "can_resend": verification.can_resend,
            "debug_code": verification.debug_code,
            "error": verification.error,
        },
        "booking": {
            "booking_code": draft.result.booking_code,
            "status_label": draft.result.status_label,
            "total_amount": str(draft.result.total_amount),
            "tour_title": draft.result.tour_title,
            "period": draft.result.period,
        } if draft.result else None,
    }


async def _sweep_idle_drafts() -> None:
    for controller in draft_store.evict_idle(get_settings().draft_idle_ttl):
        await event_bus.close(controller.draft_id)
        logger.info("Idle draft evicted", extra={"draft_id": controller.draft_id})


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_draft(
    payload: OpenDraftRequest,
    authorization: Optional[str] = Header(None),
    client: TourApiClient = Depends(get_tour_api_client),
    policy: PricingPolicy = Depends(get_pricing_policy),
) -> Dict[str, Any]:
    await _sweep_idle_drafts()
    token = _bearer_token(authorization)
    member = await client.get_member(token) if token else None
    draft_id = uuid.uuid4().hex

    try:
        if payload.flash_sale_item_id is not None:
            item = await client.get_flash_sale_item(payload.flash_sale_item_id)
            draft = draft_service.new_flash_sale_draft(draft_id, item.to_model(), member=member)
        else:
            tour = await client.get_tour(payload.tour_slug or "")
            draft = draft_service.new_tour_draft(
                draft_id,
                tour_id=tour.id,
                tour_title=tour.title,
                periods=tuple(p.to_model() for p in tour.periods),
                period_id=payload.period_id,
                member=member,
            )
    except TourApiError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    controller = SubmissionController(
        draft,
        client=client,
        gate=VerificationGate(client),
        policy=policy,
        publish=event_bus.publish,
        token=token,
    )
    draft_store.add(controller)
    logger.info(
        "Draft opened",
        extra={
            "draft_id": draft_id,
            "kind": draft.kind.value,
            "authenticated": draft.authenticated,
            "open_drafts": len(draft_store),
        },
    )
    return {"draft": _serialize_draft(controller)}


@router.get("/{draft_id}")
async def get_draft(draft_id: str) -> Dict[str, Any]:
    return {"draft": _serialize_draft(_get_controller(draft_id))}


@router.put("/{draft_id}/period")
async def select_period(draft_id: str, payload: PeriodSelection) -> Dict[str, Any]:
    controller = _get_controller(draft_id)
    try:
        controller.select_period(payload.period_id)
    except DraftLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DraftValidationError as exc:
        raise HTTPException(status_code=400, detail={"field": exc.field, "message": exc.message}) from exc
    return {"draft": _serialize_draft(controller)}


@router.patch("/{draft_id}/passengers")
async def update_passengers(draft_id: str, payload: PassengerUpdate) -> Dict[str, Any]:
    controller = _get_controller(draft_id)
    counts = {PassengerCategory(key): value for key, value in payload.model_dump(exclude_none=True).items()}
    try:
        controller.set_passengers(counts)
    except DraftLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DraftValidationError as exc:
        raise HTTPException(status_code=422, detail={"field": exc.field, "message": exc.message}) from exc
    return {"draft": _serialize_draft(controller)}


@router.patch("/{draft_id}/rooms")
async def update_rooms(draft_id: str, payload: RoomUpdate) -> Dict[str, Any]:
    controller = _get_controller(draft_id)
    counts = {RoomType(key): value for key, value in payload.model_dump(exclude_none=True).items()}
    try:
        controller.set_rooms(counts)
    except DraftLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DraftValidationError as exc:
        raise HTTPException(status_code=422, detail={"field": exc.field, "message": exc.message}) from exc
    return {"draft": _serialize_draft(controller)}


@router.patch("/{draft_id}/contact")
async def update_contact(draft_id: str, payload: ContactUpdate) -> Dict[str, Any]:
    controller = _get_controller(draft_id)
    previous_step = controller.draft.verification.step
    try:
        controller.update_details(**payload.model_dump(exclude_none=True))
    except DraftLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DraftValidationError as exc:
        raise HTTPException(status_code=422, detail={"field": exc.field, "message": exc.message}) from exc
    if controller.draft.verification.step != previous_step:
        await event_bus.publish(draft_id, {"type": "otp.reset"})
    return {"draft": _serialize_draft(controller)}


@router.post("/{draft_id}/otp/request")
async def request_otp(draft_id: str) -> Dict[str, Any]:
    controller = _get_controller(draft_id)
    try:
        await controller.request_otp()
    except DraftLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except VerificationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"draft": _serialize_draft(controller)}


@router.post("/{draft_id}/otp/verify")
async def verify_otp(draft_id: str, payload: OtpVerifyRequest) -> Dict[str, Any]:
    controller = _get_controller(draft_id)
    try:
        await controller.verify_otp(payload.code)
    except DraftLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except VerificationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"draft": _serialize_draft(controller)}


@router.post("/{draft_id}/submit")
async def submit_draft(draft_id: str) -> Dict[str, Any]:
    controller = _get_controller(draft_id)
    try:
        await controller.submit()
    except DraftLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DraftValidationError as exc:
        raise HTTPException(status_code=422, detail={"field": exc.field, "message": exc.message}) from exc
    body = {"draft": _serialize_draft(controller)}
    if controller.draft.status == SubmissionStatus.SUCCESS:
        # The confirmation is returned once; the form itself is gone.
        draft_store.discard(draft_id)
        await event_bus.close(draft_id)
    return body


@router.delete("/{draft_id}")
async def close_draft(draft_id: str) -> Dict[str, str]:
    controller = draft_store.discard(draft_id)
    if not controller:
        raise HTTPException(status_code=404, detail="Draft not found")
    listeners = event_bus.listener_count(draft_id)
    await event_bus.close(draft_id)
    logger.info(
        "Draft closed",
        extra={"draft_id": draft_id, "status": controller.draft.status.value, "listeners": listeners},
    )
    return {"status": "closed"}
