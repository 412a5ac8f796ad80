"""
Charge Calculator - chargeable amount from competing weight and volume metrics

Pure functions, all arithmetic in ``Decimal``:

    volumetric_weight = length * width * height / 5000
    effective_weight  = max(weight, volumetric_weight)      # selects the tier
    chargeable_total  = max(weight * rate_per_kg, volumetric_weight * rate_per_volume)
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

from parcelhub.core.exceptions import InvalidDimensionsError
from parcelhub.core.validation import AmountValidator

# cm³ per kg of volumetric weight
VOLUMETRIC_DIVISOR = Decimal("5000")

CENT = Decimal("0.01")
MEASURE_PRECISION = Decimal("0.001")
VOLUME_PRECISION = Decimal("0.0001")

# Largest values the shipment columns can store: Numeric(12, 3) and Numeric(12, 4)
MAX_MEASURE = Decimal("999999999.999")
MAX_VOLUMETRIC_WEIGHT = Decimal("99999999.9999")

Number = Union[Decimal, int, str, float]


@dataclass(frozen=True)
class ParcelMeasure:
    """Validated measurements and the weights derived from them"""
    weight: Decimal
    length: Decimal
    width: Decimal
    height: Decimal
    volumetric_weight: Decimal
    effective_weight: Decimal


def _positive(field: str, value: Any) -> Decimal:
    """Parse a measurement and round it to the stored precision"""
    parsed = AmountValidator.to_decimal(value)
    if parsed is None or parsed <= 0:
        raise InvalidDimensionsError(field, value)
    if parsed > MAX_MEASURE:
        raise InvalidDimensionsError(field, value, f"{field} must not exceed {MAX_MEASURE}")
    rounded = parsed.quantize(MEASURE_PRECISION, rounding=ROUND_HALF_UP)
    if rounded <= 0:
        raise InvalidDimensionsError(field, value)
    return rounded


def volumetric_weight(length: Decimal, width: Decimal, height: Decimal) -> Decimal:
    """Volumetric weight in kg, kept at four decimals"""
    return (length * width * height / VOLUMETRIC_DIVISOR).quantize(
        VOLUME_PRECISION, rounding=ROUND_HALF_UP
    )


def measure(weight: Number, length: Number, width: Number, height: Number) -> ParcelMeasure:
    """
    Validate a parcel's measurements and derive its volumetric and effective weight.

    Values are rounded half-up to three decimals first, so the stored
    measurements are exactly the ones the charge is computed from.

    Raises:
        InvalidDimensionsError: a value is missing, non-numeric, not positive,
            or the parcel is too large to record
    """
    w = _positive("weight", weight)
    l_ = _positive("length", length)
    wd = _positive("width", width)
    h = _positive("height", height)
    try:
        vol = volumetric_weight(l_, wd, h)
    except InvalidOperation:
        vol = None
    if vol is None or vol > MAX_VOLUMETRIC_WEIGHT:
        raise InvalidDimensionsError(
            "volume",
            f"{l_}x{wd}x{h}",
            f"Parcel volume exceeds the largest volumetric weight of {MAX_VOLUMETRIC_WEIGHT} kg",
        )
    return ParcelMeasure(
        weight=w,
        length=l_,
        width=wd,
        height=h,
        volumetric_weight=vol,
        effective_weight=max(w, vol),
    )


def charge(parcel: ParcelMeasure, rate_per_kg: Number, rate_per_volume: Number) -> Decimal:
    """Chargeable total rounded half-up to the cent"""
    per_kg = Decimal(str(rate_per_kg))
    per_volume = Decimal(str(rate_per_volume))
    weight_cost = parcel.weight * per_kg
    volume_cost = parcel.volumetric_weight * per_volume
    return max(weight_cost, volume_cost).quantize(CENT, rounding=ROUND_HALF_UP)
