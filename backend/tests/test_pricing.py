from datetime import date
from decimal import Decimal
from itertools import product

from tourbooking.models import FlashSaleItem, PassengerQuantities, RoomQuantities, RoomType
from tourbooking.services import pricing_service
from tourbooking.services.pricing_service import InfantPolicy, PricingPolicy, compute_totals
from tourbooking.utils.config import Settings

from conftest import make_offer, make_period


def test_no_offer_prices_nothing():
    breakdown = compute_totals(None, PassengerQuantities(adult=2), RoomQuantities(twin=1))

    assert breakdown.grand_total == 0
    assert all(line.subtotal == 0 for line in breakdown.lines)
    assert not any(line.has_price for line in breakdown.lines)


def test_adult_and_child_with_bed_totals():
    breakdown = compute_totals(
        make_offer(),
        PassengerQuantities(adult=2, child_with_bed=1),
        RoomQuantities(twin=1, triple=1),
    )

    assert breakdown.adult.subtotal == 40000
    assert breakdown.child_with_bed.subtotal == 15000
    assert breakdown.twin.subtotal == 0
    assert breakdown.triple.subtotal == 0
    assert breakdown.grand_total == 55000


def test_child_discount_is_subtracted_from_category_price():
    offer = make_offer(price_child_nobed=Decimal("12000"), discount_child_nobed=Decimal("2000"))

    breakdown = compute_totals(offer, PassengerQuantities(adult=1, child_without_bed=2), RoomQuantities())

    assert breakdown.child_without_bed.unit_price == 10000
    assert breakdown.child_without_bed.subtotal == 20000


def test_missing_category_price_is_contact_sales():
    breakdown = compute_totals(
        make_offer(price_child_bed=None),
        PassengerQuantities(adult=1, child_with_bed=2),
        RoomQuantities(),
    )

    assert breakdown.child_with_bed.has_price is False
    assert breakdown.child_with_bed.subtotal == 0
    assert breakdown.grand_total == 20000


def test_zero_category_price_is_contact_sales():
    breakdown = compute_totals(make_offer(price_infant=Decimal("0")), PassengerQuantities(infant=1), RoomQuantities())

    assert breakdown.infant.has_price is False


def test_single_room_supplement_uses_room_count():
    offer = make_offer(price_single=Decimal("6000"), discount_single=Decimal("1000"))

    breakdown = compute_totals(offer, PassengerQuantities(adult=2, adult_single=2), RoomQuantities(single=2))

    assert breakdown.single.unit_price == 5000
    assert breakdown.single.subtotal == 10000
    assert breakdown.grand_total == 40000 + 10000


def test_discount_larger_than_price_never_goes_negative():
    offer = make_offer(price_child_bed=Decimal("1000"), discount_child_bed=Decimal("5000"))

    breakdown = compute_totals(offer, PassengerQuantities(child_with_bed=3), RoomQuantities())

    assert breakdown.child_with_bed.subtotal == 0
    assert breakdown.grand_total >= 0


def test_infants_billed_by_default_when_priced():
    offer = make_offer(price_infant=Decimal("3000"), discount_infant=Decimal("500"))

    breakdown = compute_totals(offer, PassengerQuantities(adult=1, infant=2), RoomQuantities())

    assert breakdown.infant.subtotal == 5000
    assert breakdown.grand_total == 25000


def test_free_infant_policy():
    offer = make_offer(price_infant=Decimal("3000"))
    policy = PricingPolicy(infant_policy=InfantPolicy.FREE)

    breakdown = compute_totals(offer, PassengerQuantities(adult=1, infant=2), RoomQuantities(), policy)

    assert breakdown.infant.has_price is True
    assert breakdown.infant.subtotal == 0
    assert breakdown.grand_total == 20000


def test_room_type_price_table():
    policy = PricingPolicy(room_type_prices={RoomType.TRIPLE: Decimal("500")})

    breakdown = compute_totals(make_offer(), PassengerQuantities(adult=3), RoomQuantities(triple=1, twin=1), policy)

    assert breakdown.triple.subtotal == 500
    assert breakdown.twin.subtotal == 0
    assert breakdown.grand_total == 60500


def test_policy_from_settings():
    settings = Settings(INFANT_POLICY="free", ROOM_TYPE_PRICES={"twin": 250}, MAX_QUANTITY=20)

    policy = PricingPolicy.from_settings(settings)

    assert policy.infant_policy == InfantPolicy.FREE
    assert policy.room_price(RoomType.TWIN) == Decimal("250")
    assert policy.room_price(RoomType.DOUBLE) == 0
    assert policy.max_quantity == 20


def test_policy_rejects_single_room_price():
    settings = Settings(ROOM_TYPE_PRICES={"single": 100})

    try:
        PricingPolicy.from_settings(settings)
        assert False, "Expected ValueError"
    except ValueError:
        assert True


def test_grand_total_is_sum_of_lines():
    offer = make_offer(
        price_child_nobed=Decimal("11000"),
        price_infant=Decimal("2500"),
        price_single=Decimal("4000"),
    )
    for adult, child, infant, single in product(range(1, 4), range(0, 3), range(0, 2), range(0, 3)):
        breakdown = compute_totals(
            offer,
            PassengerQuantities(adult=adult, child_with_bed=child, child_without_bed=child, infant=infant),
            RoomQuantities(single=single, twin=1),
        )
        assert breakdown.grand_total == sum(line.subtotal for line in breakdown.lines)
        assert breakdown.grand_total >= 0


def test_same_inputs_same_breakdown():
    args = (make_offer(), PassengerQuantities(adult=2), RoomQuantities(double=1))

    assert compute_totals(*args) == compute_totals(*args)


def test_resolve_offer():
    offer = make_offer()
    periods = [make_period(1, offer=offer), make_period(2, offer=None)]

    assert pricing_service.resolve_offer(periods, 1) is offer
    assert pricing_service.resolve_offer(periods, 2) is None
    assert pricing_service.resolve_offer(periods, 99) is None
    assert pricing_service.resolve_offer(periods, None) is None


def test_flash_sale_offer_is_flat_adult_fare():
    item = FlashSaleItem(
        flash_sale_item_id=1,
        tour_title="Seoul",
        flash_price=Decimal("9999"),
        period_start_date=date(2026, 11, 20),
        period_end_date=date(2026, 11, 24),
    )

    breakdown = compute_totals(
        pricing_service.offer_from_flash_sale(item),
        PassengerQuantities(adult=2, child_with_bed=1),
        RoomQuantities(twin=1),
    )

    assert breakdown.adult.subtotal == 19998
    assert breakdown.child_with_bed.has_price is False
    assert breakdown.single.has_price is False
    assert breakdown.grand_total == 19998
