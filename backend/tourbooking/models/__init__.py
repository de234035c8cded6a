from .booking import (
    BookingDraft,
    BookingKind,
    BookingResult,
    ContactInfo,
    FlashSaleItem,
    Offer,
    PassengerCategory,
    PassengerQuantities,
    RoomQuantities,
    RoomType,
    SaleStatus,
    SubmissionStatus,
    TravelPeriod,
    VerificationState,
    VerificationStep,
)

__all__ = [
    "Offer",
    "TravelPeriod",
    "FlashSaleItem",
    "SaleStatus",
    "PassengerCategory",
    "PassengerQuantities",
    "RoomType",
    "RoomQuantities",
    "ContactInfo",
    "VerificationStep",
    "VerificationState",
    "SubmissionStatus",
    "BookingKind",
    "BookingResult",
    "BookingDraft",
]
