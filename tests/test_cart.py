# tests/test_cart.py
import pytest

from app.core.exceptions import (
    AlreadyConsumed, DuplicateInCart, InsufficientStock, InvalidQuantity, InvalidUnit,
    NoMatchFound, TooManyWeighedItems
)
from app.modules.sales.schemas import Reading, UnitOfMeasure

from conftest import reading_row


def reading(reading_id, weight=0.5, product_id=1, **kwargs) -> Reading:
    return Reading.model_validate(reading_row(reading_id, 0, weight=weight, product_id=product_id, **kwargs))


# ==================== ÍTEMS MANUALES ====================

def test_add_manual_in_base_unit(cart, products):
    item = cart.add_manual(products[4], 3)

    assert item.unit == UnitOfMeasure.unidades
    assert item.subtotal == 4500
    assert cart.total == 4500


def test_add_manual_converts_price_to_chosen_unit(cart, products):
    item = cart.add_manual(products[1], 250, UnitOfMeasure.gramos)

    assert item.unit_price == pytest.approx(4.5)
    assert item.subtotal == 1125
    assert cart.quantity_in_cart(products[1]) == pytest.approx(0.25)


def test_add_manual_kg_of_product_priced_by_gram(cart, products):
    item = cart.add_manual(products[3], 0.5, UnitOfMeasure.kg)

    assert item.unit_price == pytest.approx(5200)
    assert item.subtotal == 2600
    assert cart.quantity_in_cart(products[3]) == pytest.approx(500)


@pytest.mark.parametrize("quantity", [0, -1, float("nan")])
def test_add_manual_rejects_invalid_quantity(cart, products, quantity):
    with pytest.raises(InvalidQuantity):
        cart.add_manual(products[1], quantity)
    assert cart.items == []


def test_add_manual_rejects_weight_unit_for_unit_product(cart, products):
    with pytest.raises(InvalidUnit):
        cart.add_manual(products[4], 1, UnitOfMeasure.kg)


def test_stock_check_counts_what_is_already_in_cart(cart, products):
    cart.add_manual(products[2], 4)

    with pytest.raises(InsufficientStock) as exc_info:
        cart.add_manual(products[2], 1500, UnitOfMeasure.gramos)

    error = exc_info.value
    assert error.context["available"] == 5
    assert error.context["in_cart"] == 4
    assert error.context["requested"] == pytest.approx(1.5)
    assert "Salame Milano" in error.message
    assert len(cart.items) == 1


def test_total_follows_every_mutation(cart, products):
    first = cart.add_manual(products[4], 2)
    cart.add_manual(products[1], 1)
    assert cart.total == 7500

    cart.remove(first.line_id)
    assert cart.total == 4500

    cart.clear()
    assert cart.total == 0


# ==================== ÍTEMS PESADOS ====================

def test_add_from_reading_prices_by_kg(cart):
    item = cart.add_from_reading(reading(1, weight=0.5))

    assert item.product_name == "Jamón Crudo"
    assert item.quantity == 0.5
    assert item.unit == UnitOfMeasure.kg
    assert item.subtotal == 2250
    assert item.reading_id == 1


def test_add_from_reading_of_gram_product(cart):
    item = cart.add_from_reading(reading(1, weight=0.3, product_id=3))

    assert item.unit_price == pytest.approx(5200)
    assert item.subtotal == 1560


def test_only_one_weighed_item_per_cart(cart):
    cart.add_from_reading(reading(1))

    with pytest.raises(TooManyWeighedItems):
        cart.add_from_reading(reading(2, product_id=2))

    assert [i.reading_id for i in cart.items] == [1]


def test_same_reading_twice_is_duplicate(cart):
    cart.add_from_reading(reading(1))

    with pytest.raises(DuplicateInCart):
        cart.add_from_reading(reading(1))


def test_consumed_reading_is_rejected_first(cart):
    cart.add_from_reading(reading(1))

    with pytest.raises(AlreadyConsumed):
        cart.add_from_reading(reading(1, used=True))
    with pytest.raises(AlreadyConsumed):
        cart.add_from_reading(reading(2, sale_id=4))


def test_removing_weighed_item_frees_the_slot(cart):
    item = cart.add_from_reading(reading(1))
    cart.remove(item.line_id)

    cart.add_from_reading(reading(2, product_id=2))

    assert cart.weighed_item.reading_id == 2


def test_reading_without_product_cannot_be_added(cart):
    with pytest.raises(NoMatchFound):
        cart.add_from_reading(reading(1, product_id=None))


def test_reading_of_unit_product_is_invalid(cart):
    with pytest.raises(InvalidUnit):
        cart.add_from_reading(reading(1, product_id=4))


def test_reading_over_stock_is_rejected(cart, products):
    cart.add_manual(products[2], 4.8)

    with pytest.raises(InsufficientStock):
        cart.add_from_reading(reading(1, weight=0.5, product_id=2))
    assert cart.weighed_item is None
