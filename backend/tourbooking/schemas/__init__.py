from .booking import (
    BookingResultPayload,
    BookingSubmitRequest,
    BookingSubmitResponse,
    ContactUpdate,
    FlashSaleItemPayload,
    MemberPayload,
    OfferPayload,
    OpenDraftRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
    PassengerUpdate,
    PeriodPayload,
    PeriodSelection,
    RoomUpdate,
    SalesAgent,
    SubmitContact,
    SubmitPassengers,
    SubmitRooms,
    TourDetailPayload,
)

__all__ = [
    "OfferPayload",
    "PeriodPayload",
    "TourDetailPayload",
    "FlashSaleItemPayload",
    "MemberPayload",
    "SalesAgent",
    "OtpRequestResponse",
    "OtpVerifyResponse",
    "BookingResultPayload",
    "BookingSubmitResponse",
    "SubmitContact",
    "SubmitPassengers",
    "SubmitRooms",
    "BookingSubmitRequest",
    "OpenDraftRequest",
    "PeriodSelection",
    "PassengerUpdate",
    "RoomUpdate",
    "ContactUpdate",
    "OtpVerifyRequest",
]
