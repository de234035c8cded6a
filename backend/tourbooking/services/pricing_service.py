from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, Optional

from tourbooking.models import (
    FlashSaleItem,
    Offer,
    PassengerQuantities,
    RoomQuantities,
    RoomType,
    TravelPeriod,
)
from tourbooking.utils.config import Settings, get_settings

ZERO = Decimal("0")


class InfantPolicy(str, Enum):
    BILLED = "billed"
    FREE = "free"


@dataclass(frozen=True)
class PricingPolicy:
    """
    Business rules that are not part of an offer.

    - infant_policy: whether infants are charged the offer's infant price
    - room_type_prices: per-room price for triple/twin/double rooms; missing
      entries are bundled into the adult fare (priced at zero)
    - max_quantity: stepper ceiling for every category
    """

    infant_policy: InfantPolicy = InfantPolicy.BILLED
    room_type_prices: Dict[RoomType, Decimal] = field(default_factory=dict)
    max_quantity: int = 99

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingPolicy":
        prices: Dict[RoomType, Decimal] = {}
        for key, value in settings.room_type_prices.items():
            room_type = RoomType(key.strip().lower())
            if room_type == RoomType.SINGLE:
                raise ValueError("single room pricing comes from the offer supplement")
            price = Decimal(str(value))
            if price < 0:
                raise ValueError(f"{room_type.value} room price must be >= 0")
            prices[room_type] = price
        return cls(
            infant_policy=InfantPolicy(settings.infant_policy.strip().lower()),
            room_type_prices=prices,
            max_quantity=settings.max_quantity,
        )

    def room_price(self, room_type: RoomType) -> Decimal:
        return self.room_type_prices.get(room_type, ZERO)


@dataclass(frozen=True)
class PricingLine:
    category: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    has_price: bool


@dataclass(frozen=True)
class PricingBreakdown:
    adult: PricingLine
    child_with_bed: PricingLine
    child_without_bed: PricingLine
    infant: PricingLine
    triple: PricingLine
    twin: PricingLine
    double: PricingLine
    single: PricingLine
    grand_total: Decimal

    @property
    def passenger_lines(self) -> tuple[PricingLine, ...]:
        return (self.adult, self.child_with_bed, self.child_without_bed, self.infant)

    @property
    def room_lines(self) -> tuple[PricingLine, ...]:
        return (self.triple, self.twin, self.double, self.single)

    @property
    def lines(self) -> tuple[PricingLine, ...]:
        return self.passenger_lines + self.room_lines


def resolve_offer(periods: Iterable[TravelPeriod], selected_id: Optional[int]) -> Optional[Offer]:
    if selected_id is None:
        return None
    for period in periods:
        if period.id == selected_id:
            return period.offer
    return None


def offer_from_flash_sale(item: FlashSaleItem) -> Offer:
    # Flash sales sell a single flat fare; every other category goes to sales.
    return Offer(net_price_adult=item.flash_price)


def _priced(price: Optional[Decimal]) -> bool:
    return price is not None and price > 0


def _net(price: Optional[Decimal], discount: Decimal) -> Decimal:
    if not _priced(price):
        return ZERO
    return max(price - (discount or ZERO), ZERO)


def _line(category: str, quantity: int, unit_price: Decimal, has_price: bool) -> PricingLine:
    if not has_price:
        return PricingLine(category=category, quantity=quantity, unit_price=ZERO, subtotal=ZERO, has_price=False)
    return PricingLine(
        category=category,
        quantity=quantity,
        unit_price=unit_price,
        subtotal=unit_price * quantity,
        has_price=True,
    )


def compute_totals(
    offer: Optional[Offer],
    passengers: PassengerQuantities,
    rooms: RoomQuantities,
    policy: Optional[PricingPolicy] = None,
) -> PricingBreakdown:
    policy = policy or PricingPolicy()
    available = offer is not None

    if offer is None:
        adult = _line("adult", passengers.adult, ZERO, False)
        child_bed = _line("child_with_bed", passengers.child_with_bed, ZERO, False)
        child_nobed = _line("child_without_bed", passengers.child_without_bed, ZERO, False)
        infant = _line("infant", passengers.infant, ZERO, False)
        single = _line("single", rooms.single, ZERO, False)
    else:
        adult = _line("adult", passengers.adult, offer.net_price_adult, _priced(offer.net_price_adult))
        child_bed = _line(
            "child_with_bed",
            passengers.child_with_bed,
            _net(offer.price_child_bed, offer.discount_child_bed),
            _priced(offer.price_child_bed),
        )
        child_nobed = _line(
            "child_without_bed",
            passengers.child_without_bed,
            _net(offer.price_child_nobed, offer.discount_child_nobed),
            _priced(offer.price_child_nobed),
        )
        if policy.infant_policy == InfantPolicy.FREE:
            infant = _line("infant", passengers.infant, ZERO, True)
        else:
            infant = _line(
                "infant",
                passengers.infant,
                _net(offer.price_infant, offer.discount_infant),
                _priced(offer.price_infant),
            )
        single = _line(
            "single",
            rooms.single,
            _net(offer.price_single, offer.discount_single),
            _priced(offer.price_single),
        )

    room_lines = {
        room_type: _line(room_type.value, rooms.count(room_type), policy.room_price(room_type), available)
        for room_type in (RoomType.TRIPLE, RoomType.TWIN, RoomType.DOUBLE)
    }

    lines = (
        adult,
        child_bed,
        child_nobed,
        infant,
        room_lines[RoomType.TRIPLE],
        room_lines[RoomType.TWIN],
        room_lines[RoomType.DOUBLE],
        single,
    )
    grand_total = sum((line.subtotal for line in lines), ZERO)

    return PricingBreakdown(
        adult=adult,
        child_with_bed=child_bed,
        child_without_bed=child_nobed,
        infant=infant,
        triple=room_lines[RoomType.TRIPLE],
        twin=room_lines[RoomType.TWIN],
        double=room_lines[RoomType.DOUBLE],
        single=single,
        grand_total=grand_total,
    )


def get_pricing_policy() -> PricingPolicy:
    return PricingPolicy.from_settings(get_settings())
