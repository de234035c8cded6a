from __future__ import annotations

from dataclasses import dataclass

from tourbooking.models import PassengerQuantities, RoomQuantities


@dataclass(frozen=True)
class CapacityReport:
    total_rooms: int
    total_passengers: int

    @property
    def is_over_capacity(self) -> bool:
        return self.total_rooms > self.total_passengers

    @property
    def overage(self) -> int:
        return max(self.total_rooms - self.total_passengers, 0)


def validate_rooms(passengers: PassengerQuantities, rooms: RoomQuantities) -> CapacityReport:
    return CapacityReport(total_rooms=rooms.total, total_passengers=passengers.travelers)


def overage_message(report: CapacityReport) -> str:
    return f"Rooms exceed travelers by {report.overage}"
