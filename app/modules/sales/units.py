# app/modules/sales/units.py
from typing import List

from app.core.exceptions import InvalidUnit
from .schemas import UnitOfMeasure

# gramos por unidad de peso
_GRAMS = {
    UnitOfMeasure.kg: 1000.0,
    UnitOfMeasure.gramos: 1.0,
}

_PRECISION = 6


def allowed_units(base_unit: UnitOfMeasure) -> List[UnitOfMeasure]:
    """Unidades en las que se puede vender un producto según su unidad base"""
    if base_unit == UnitOfMeasure.unidades:
        return [UnitOfMeasure.unidades]
    return [UnitOfMeasure.kg, UnitOfMeasure.gramos]


def convert_quantity(quantity: float, from_unit: UnitOfMeasure, to_unit: UnitOfMeasure) -> float:
    if from_unit == to_unit:
        return quantity
    if from_unit not in _GRAMS or to_unit not in _GRAMS:
        raise InvalidUnit(
            f"No se puede convertir de {from_unit.value} a {to_unit.value}",
            from_unit=from_unit.value,
            to_unit=to_unit.value,
        )
    return round(quantity * _GRAMS[from_unit] / _GRAMS[to_unit], _PRECISION)


def convert_price(price: float, base_unit: UnitOfMeasure, unit: UnitOfMeasure) -> float:
    """Precio por ``base_unit`` expresado por ``unit`` (4500/kg -> 4.5/gramo)"""
    return round(price * convert_quantity(1.0, unit, base_unit), _PRECISION)


def weight_in_unit(weight_kg: float, unit: UnitOfMeasure) -> float:
    """Peso leído por la balanza (siempre en kg) expresado en ``unit``"""
    if unit == UnitOfMeasure.unidades:
        raise InvalidUnit(
            "No se puede asociar un producto cuya unidad de medida es \"unidades\" a una lectura de balanza",
            unit=unit.value,
        )
    return convert_quantity(weight_kg, UnitOfMeasure.kg, unit)


def money(amount: float) -> float:
    return round(amount, 2)
