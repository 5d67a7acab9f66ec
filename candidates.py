"""Brute-force field scan for vendor packets with no known layout.

Every offset/width/scale guess is emitted as a tagged Candidate and kept only
if the decoded value is physically plausible. Picking between survivors is the
decoder's job; this module never ranks them.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from bytereader import read_int16_le, read_uint16_le, read_uint32_le

log = logging.getLogger(__name__)

# Only the first bytes of a packet are searched
SCAN_WINDOW = 12

WEIGHT_RANGE_KG = (10.0, 300.0)
IMPEDANCE16_RANGE_OHM = (150, 3000)
IMPEDANCE32_RANGE_OHM = (150, 300000)

WEIGHT_DIVISORS = (10, 100)


class CandidateKind(Enum):
    WEIGHT = "weight"
    IMPEDANCE16 = "impedance16"
    IMPEDANCE32 = "impedance32"
    IMPEDANCE_S16 = "impedance_s16"

    @property
    def is_impedance(self) -> bool:
        return self is not CandidateKind.WEIGHT


@dataclass(frozen=True)
class Candidate:
    """One plausible reading of a field at a given offset."""
    kind: CandidateKind
    offset: int
    raw_value: int
    value: float
    scale: int = 1


def in_range(value: float, bounds: tuple[float, float]) -> bool:
    """Closed-interval plausibility check."""
    low, high = bounds
    return low <= value <= high


def _offsets(length: int, width: int) -> range:
    return range(max(0, min(SCAN_WINDOW, length - width + 1)))


def _weight_candidates(data: bytes) -> list[Candidate]:
    found = []
    for offset in _offsets(len(data), 2):
        raw = read_uint16_le(data, offset)
        if raw is None:
            continue
        for divisor in WEIGHT_DIVISORS:
            value = raw / divisor
            if in_range(value, WEIGHT_RANGE_KG):
                found.append(Candidate(CandidateKind.WEIGHT, offset, raw, value, divisor))
    return found


def _impedance_candidates(data: bytes) -> list[Candidate]:
    found = []
    for offset in _offsets(len(data), 2):
        raw = read_uint16_le(data, offset)
        if raw is not None and in_range(raw, IMPEDANCE16_RANGE_OHM):
            found.append(Candidate(CandidateKind.IMPEDANCE16, offset, raw, float(raw)))

    for offset in _offsets(len(data), 4):
        raw = read_uint32_le(data, offset)
        if raw is not None and in_range(raw, IMPEDANCE32_RANGE_OHM):
            found.append(Candidate(CandidateKind.IMPEDANCE32, offset, raw, float(raw)))

    # Some firmwares send impedance as a signed word
    for offset in _offsets(len(data), 2):
        raw = read_int16_le(data, offset)
        if raw is not None and in_range(raw, IMPEDANCE16_RANGE_OHM):
            found.append(Candidate(CandidateKind.IMPEDANCE_S16, offset, raw, float(raw)))
    return found


def scan_candidates(data: bytes) -> list[Candidate]:
    """Return all plausible weight and impedance candidates in scan order.

    Weight candidates come first (both divisors per offset, /10 before /100),
    followed by unsigned 16-bit, unsigned 32-bit and signed 16-bit impedance
    candidates. Duplicates of (kind, offset, value) are dropped.
    """
    seen = set()
    unique = []
    for candidate in _weight_candidates(data) + _impedance_candidates(data):
        key = (candidate.kind, candidate.offset, candidate.value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)

    log.debug("Packet %s: %d candidates", data.hex(" "), len(unique))
    for candidate in unique:
        log.debug(
            "  %s offset=%d raw=%d scale=/%d value=%.2f",
            candidate.kind.value,
            candidate.offset,
            candidate.raw_value,
            candidate.scale,
            candidate.value,
        )
    return unique
