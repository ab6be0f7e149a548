"""Денежная арифметика в минимальных единицах валюты.

Суммы внутри клиента хранятся целыми числами (центы, сатанги), в ``Decimal``
они превращаются только на границе отображения.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from .config import settings

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Приводит число или строку сервера к Decimal без потери точности float"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_minor_units(value: Number, exponent: Optional[int] = None) -> int:
    exponent = settings.currency_minor_units if exponent is None else exponent
    scaled = to_decimal(value) * (Decimal(10) ** exponent)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(minor: int, exponent: Optional[int] = None) -> Decimal:
    exponent = settings.currency_minor_units if exponent is None else exponent
    quantum = Decimal(1).scaleb(-exponent)
    return (Decimal(minor) * quantum).quantize(quantum)
