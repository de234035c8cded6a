from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from typing import Awaitable, Callable, Optional

from tourbooking.models import VerificationState, VerificationStep
from tourbooking.services.tour_api_client import TourApiClient
from tourbooking.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], Awaitable[None]]
CurrentCheck = Callable[[], bool]

PHONE_CHANGED_MESSAGE = "Phone number changed, please request a new code"


class VerificationError(ValueError):
    """OTP request or verification was rejected."""


# State transitions. Each returns a new state and never touches the network.


def otp_sent(state: VerificationState, request_id: int, expires_in: int, debug_code: Optional[str] = None) -> VerificationState:
    return VerificationState(
        step=VerificationStep.OTP_SENT,
        request_id=request_id,
        expires_in=expires_in,
        remaining_seconds=expires_in,
        debug_code=debug_code,
    )


def otp_request_failed(state: VerificationState, message: str) -> VerificationState:
    return replace(state, error=message)


def otp_verified(state: VerificationState) -> VerificationState:
    if state.step != VerificationStep.OTP_SENT or state.request_id is None:
        raise VerificationError("Request a verification code first")
    return replace(state, step=VerificationStep.OTP_VERIFIED, remaining_seconds=0, error=None)


def otp_verify_failed(state: VerificationState, message: str) -> VerificationState:
    return replace(state, error=message)


def phone_edited(state: VerificationState) -> VerificationState:
    # A code (or a verification) only ever applies to the number it was sent to.
    if state.step == VerificationStep.IDLE:
        return replace(state, error=None)
    return VerificationState()


def countdown_ticked(state: VerificationState, remaining: int) -> VerificationState:
    if state.step != VerificationStep.OTP_SENT:
        return state
    return replace(state, remaining_seconds=max(remaining, 0))


class Countdown:
    """Cancellable one-second ticker; the owner must cancel it on every exit."""

    def __init__(self, interval: float = 1.0) -> None:
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, seconds: int, on_tick: TickCallback) -> None:
        self.cancel()
        if seconds <= 0:
            return
        self._task = asyncio.create_task(self._run(seconds, on_tick))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, seconds: int, on_tick: TickCallback) -> None:
        remaining = seconds
        while remaining > 0:
            await asyncio.sleep(self.interval)
            remaining -= 1
            await on_tick(remaining)


class VerificationGate:
    """Phone verification for guests: request a code, then verify it."""

    def __init__(
        self,
        client: TourApiClient,
        settings: Settings | None = None,
        countdown: Countdown | None = None,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self.countdown = countdown or Countdown()

    def phone_is_valid(self, phone: str) -> bool:
        return len(re.sub(r"\D", "", phone or "")) >= self.settings.otp_min_phone_digits

    async def request_otp(
        self,
        state: VerificationState,
        phone: str,
        on_tick: TickCallback,
        is_current: CurrentCheck | None = None,
    ) -> VerificationState:
        """
        Ask the server to text a code to ``phone``. When ``is_current`` reports
        that the phone changed while the request was in flight, the response is
        dropped and no countdown is started.
        """

        if state.step == VerificationStep.OTP_VERIFIED:
            return state
        if not self.phone_is_valid(phone):
            return otp_request_failed(state, "Please enter a valid phone number")

        response = await self.client.request_otp(phone.strip())
        if is_current is not None and not is_current():
            logger.info("OTP response dropped after phone change", extra={"otp_request_id": response.otp_request_id})
            return otp_request_failed(phone_edited(state), PHONE_CHANGED_MESSAGE)
        if not response.success or response.otp_request_id is None:
            logger.info("OTP request rejected", extra={"reason": response.message})
            return otp_request_failed(state, response.message or "Unable to send the verification code")

        expires_in = response.expires_in or self.settings.otp_default_expires_in
        self.countdown.start(expires_in, on_tick)
        logger.info(
            "OTP sent",
            extra={"otp_request_id": response.otp_request_id, "expires_in": expires_in},
        )
        return otp_sent(state, response.otp_request_id, expires_in, response.debug_otp)

    async def verify(
        self,
        state: VerificationState,
        code: str,
        is_current: CurrentCheck | None = None,
    ) -> VerificationState:
        if state.step != VerificationStep.OTP_SENT or state.request_id is None:
            return otp_verify_failed(state, "Request a verification code first")
        code = (code or "").strip()
        if len(code) != self.settings.otp_code_length or not code.isdigit():
            return otp_verify_failed(state, f"Enter the {self.settings.otp_code_length}-digit code")

        # Visual expiry does not block verification; the server decides.
        response = await self.client.verify_otp(state.request_id, code)
        if is_current is not None and not is_current():
            # The code was sent to the previous number.
            logger.info("OTP verification dropped after phone change", extra={"otp_request_id": state.request_id})
            return otp_verify_failed(phone_edited(state), PHONE_CHANGED_MESSAGE)
        if not response.success:
            logger.info("OTP verification rejected", extra={"otp_request_id": state.request_id})
            return otp_verify_failed(state, response.message or "Invalid verification code")

        self.countdown.cancel()
        logger.info("OTP verified", extra={"otp_request_id": state.request_id})
        return otp_verified(state)

    def phone_changed(self, state: VerificationState) -> VerificationState:
        if state.step != VerificationStep.IDLE:
            self.countdown.cancel()
        return phone_edited(state)

    def close(self) -> None:
        self.countdown.cancel()
