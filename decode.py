"""Decode BLE notification packets into weight and impedance readings."""

import logging
import math
from dataclasses import dataclass
from enum import Enum

from bytereader import read_int16_le, read_uint16_le, read_uint32_le
from candidates import (
    IMPEDANCE16_RANGE_OHM,
    IMPEDANCE32_RANGE_OHM,
    WEIGHT_RANGE_KG,
    in_range,
    scan_candidates,
)

log = logging.getLogger(__name__)

LB_TO_KG = 0.45359237

# Resolution of the standard Weight Measurement characteristic
SI_WEIGHT_RESOLUTION = 0.005
IMPERIAL_WEIGHT_RESOLUTION = 0.01

# Tried in order against a bare 16-bit word at offset 0
DIRECT_WEIGHT_SCALES = (0.01, 0.1, 1.0, 0.005)

# Standard-format weights are accepted in (0, 500) kg, open interval
STANDARD_WEIGHT_MAX_KG = 500.0


class Source(Enum):
    """Characteristic a notification arrived on."""
    WEIGHT = "weight"
    BIA = "bia"
    VENDOR = "vendor"


@dataclass(frozen=True)
class Measurement:
    """Partial reading recovered from a single notification."""
    weight_kg: float | None = None
    impedance_ohm: float | None = None


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def decode_standard_weight(data: bytes) -> float | None:
    """Decode the Bluetooth SIG Weight Measurement format.

    - Bytes 0-1: Flags (bit 0 set = imperial units)
    - Bytes 2-3: Weight, 0.005 kg or 0.01 lb resolution
    """
    flags = read_uint16_le(data, 0)
    raw = read_uint16_le(data, 2)
    if flags is None or raw is None:
        return None

    if flags & 0x01:
        weight_kg = raw * IMPERIAL_WEIGHT_RESOLUTION * LB_TO_KG
    else:
        weight_kg = raw * SI_WEIGHT_RESOLUTION

    if 0 < weight_kg < STANDARD_WEIGHT_MAX_KG:
        return weight_kg
    return None


def decode_direct_weight(data: bytes) -> float | None:
    """Decode a bare 16-bit weight at offset 0, first plausible scale wins."""
    raw = read_uint16_le(data, 0)
    if raw is None:
        return None
    for scale in DIRECT_WEIGHT_SCALES:
        weight_kg = raw * scale
        if in_range(weight_kg, WEIGHT_RANGE_KG):
            return weight_kg
    return None


def decode_wide_weight(data: bytes) -> float | None:
    """Decode a 32-bit weight in grams at offset 0."""
    raw = read_uint32_le(data, 0)
    if raw is None:
        return None
    weight_kg = raw / 1000
    if in_range(weight_kg, WEIGHT_RANGE_KG):
        return weight_kg
    return None


def decode_weight(data: bytes, standard: bool = True) -> float | None:
    """Try the weight formats in priority order.

    The standard format is only tried when ``standard`` is set, i.e. when the
    packet came from the Weight Measurement characteristic or a vendor packet
    is being re-decoded as a fallback.
    """
    if len(data) < 2:
        return None

    if standard and len(data) >= 4:
        weight_kg = decode_standard_weight(data)
        if weight_kg is not None:
            return weight_kg

    weight_kg = decode_direct_weight(data)
    if weight_kg is not None:
        return weight_kg

    if len(data) >= 4:
        return decode_wide_weight(data)
    return None


def decode_impedance(data: bytes) -> float | None:
    """Decode impedance from the BIA characteristic.

    Tries an unsigned 16-bit word, an unsigned 32-bit word and a signed 16-bit
    word at offset 0, then the first plausible unsigned 16-bit word anywhere.
    """
    if len(data) < 2:
        return None

    impedance = read_uint16_le(data, 0)
    if impedance is not None and in_range(impedance, IMPEDANCE16_RANGE_OHM):
        return float(impedance)

    impedance = read_uint32_le(data, 0)
    if impedance is not None and in_range(impedance, IMPEDANCE32_RANGE_OHM):
        return float(impedance)

    impedance = read_int16_le(data, 0)
    if impedance is not None and in_range(impedance, IMPEDANCE16_RANGE_OHM):
        return float(impedance)

    for offset in range(len(data) - 1):
        impedance = read_uint16_le(data, offset)
        if impedance is not None and in_range(impedance, IMPEDANCE16_RANGE_OHM):
            return float(impedance)
    return None


def decode_vendor(data: bytes) -> Measurement | None:
    """Decode a packet from an undocumented vendor characteristic.

    The first weight candidate and the first impedance candidate inside the
    16-bit band are used; wider 32-bit values are left to the fallback.
    Fields the scan did not recover are retried with the strict decoders.
    """
    weight_kg = None
    impedance_ohm = None

    for candidate in scan_candidates(data):
        if weight_kg is None and not candidate.kind.is_impedance:
            weight_kg = round(candidate.value, 2)
        elif (
            impedance_ohm is None
            and candidate.kind.is_impedance
            and in_range(candidate.value, IMPEDANCE16_RANGE_OHM)
        ):
            impedance_ohm = float(_round_half_up(candidate.value))
        if weight_kg is not None and impedance_ohm is not None:
            break

    if weight_kg is None:
        fallback = decode_weight(data)
        if fallback is not None:
            weight_kg = round(fallback, 2)
    if impedance_ohm is None:
        fallback = decode_impedance(data)
        if fallback is not None:
            impedance_ohm = float(_round_half_up(fallback))

    if weight_kg is None and impedance_ohm is None:
        return None
    return Measurement(weight_kg=weight_kg, impedance_ohm=impedance_ohm)


def decode_notification(source: Source, data: bytes) -> Measurement | None:
    """Decode one notification; None means no reading, not an error."""
    data = bytes(data)
    log.debug("%s packet (%d bytes): %s", source.value, len(data), data.hex(" "))

    if source is Source.WEIGHT:
        weight_kg = decode_weight(data)
        measurement = Measurement(weight_kg=weight_kg) if weight_kg is not None else None
    elif source is Source.BIA:
        impedance_ohm = decode_impedance(data)
        measurement = Measurement(impedance_ohm=impedance_ohm) if impedance_ohm is not None else None
    else:
        measurement = decode_vendor(data)

    if measurement is None:
        log.info("No reading in %s packet %s", source.value, data.hex(" ") or "<empty>")
    return measurement
