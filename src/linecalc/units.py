"""Units, quantities and values.

A Quantity is a Decimal magnitude with an optional Unit. Units compare by
name and kind only; there is no conversion between kinds.
"""

from decimal import ROUND_HALF_EVEN, Decimal, localcontext
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .settings import DEFAULT_SETTINGS, EngineSettings


class UnitKind(str, Enum):
    SCALAR = "scalar"
    LENGTH = "length"
    MASS = "mass"
    CURRENCY = "currency"
    PERCENT = "percent"


class Unit(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: UnitKind
    to_base_factor: Decimal | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Unit):
            return NotImplemented
        return (self.name, self.kind) == (other.name, other.kind)

    def __hash__(self) -> int:
        return hash((self.name, self.kind))

    @property
    def is_currency(self) -> bool:
        return self.kind == UnitKind.CURRENCY


USD = Unit(name="$", kind=UnitKind.CURRENCY)
EUR = Unit(name="€", kind=UnitKind.CURRENCY)
GBP = Unit(name="£", kind=UnitKind.CURRENCY)
JPY = Unit(name="¥", kind=UnitKind.CURRENCY)
PERCENT = Unit(name="%", kind=UnitKind.PERCENT)

CURRENCIES = {unit.name: unit for unit in (USD, EUR, GBP, JPY)}


def currency_for_symbol(symbol: str) -> Unit | None:
    return CURRENCIES.get(symbol)


def is_currency(unit: Unit | None) -> bool:
    return unit is not None and unit.is_currency


class Quantity(BaseModel):
    model_config = ConfigDict(frozen=True)

    magnitude: Decimal
    unit: Unit | None = None

    @classmethod
    def scalar(cls, magnitude: Decimal | int | str) -> "Quantity":
        return cls(magnitude=Decimal(magnitude))

    @property
    def is_scalar(self) -> bool:
        return self.unit is None


class Value(BaseModel):
    """Result of evaluating a line. Currently always a quantity."""

    model_config = ConfigDict(frozen=True)

    quantity: Quantity

    @classmethod
    def of(cls, magnitude: Decimal | int | str, unit: Unit | None = None) -> "Value":
        return cls(quantity=Quantity(magnitude=Decimal(magnitude), unit=unit))

    @property
    def as_decimal(self) -> Decimal:
        return self.quantity.magnitude

    @property
    def unit(self) -> Unit | None:
        return self.quantity.unit

    def display(self, settings: EngineSettings = DEFAULT_SETTINGS) -> str:
        formatted = format_decimal(self.quantity.magnitude, settings)
        unit = self.quantity.unit
        if unit is None:
            return formatted
        if unit.kind == UnitKind.CURRENCY:
            return f"{unit.name}{formatted}"
        if unit.kind == UnitKind.PERCENT:
            return f"{formatted}%"
        return f"{formatted} {unit.name}"


def format_decimal(value: Decimal, settings: EngineSettings = DEFAULT_SETTINGS) -> str:
    """Round half-even to `fraction_digits` places and trim trailing zeros."""
    digits = settings.fraction_digits
    with localcontext() as ctx:
        ctx.prec = max(28, value.adjusted() + digits + 2)
        rounded = value.quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_EVEN)

    if rounded.is_zero():
        rounded = abs(rounded)

    text = f"{rounded:,f}" if settings.use_grouping else f"{rounded:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
