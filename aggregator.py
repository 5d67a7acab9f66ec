"""Merge partial readings into the last known measurement of a session."""

import logging
from dataclasses import dataclass

from candidates import IMPEDANCE16_RANGE_OHM, in_range
from composition import ImpedanceSource, Sex, UserProfile, round_half_up
from decode import Measurement

log = logging.getLogger(__name__)

# Used when neither a measured nor a plausible estimated impedance exists
PLACEHOLDER_IMPEDANCE_OHM = 500.0

ESTIMATE_SEX_FACTOR = {Sex.MALE: 0.8, Sex.FEMALE: 0.75}


@dataclass(frozen=True)
class AggregateState:
    """Last known weight and impedance of a session."""
    weight_kg: float | None = None
    impedance_ohm: float | None = None
    impedance_source: ImpedanceSource = ImpedanceSource.DEFAULT

    @property
    def has_weight(self) -> bool:
        return self.weight_kg is not None and self.weight_kg > 0


def estimate_impedance(height_cm: float, weight_kg: float | None, sex: Sex) -> float | None:
    """Crude impedance surrogate from height and weight.

    Returns None when weight is unknown. The result is usually far below the
    measured impedance range and must be range-checked before use.
    """
    if not weight_kg or weight_kg <= 0:
        return None
    height_m = height_cm / 100
    return height_m * height_m * 1000 / (weight_kg * ESTIMATE_SEX_FACTOR[sex])


class ReadingAggregator:
    """Holds the running measurement for one connection."""

    def __init__(self) -> None:
        self._state = AggregateState()
        self._measured_impedance: float | None = None

    @property
    def state(self) -> AggregateState:
        return self._state

    def update(self, measurement: Measurement, profile: UserProfile) -> AggregateState:
        """Merge a partial measurement and fill in impedance if none was measured."""
        weight_kg = self._state.weight_kg
        if measurement.weight_kg is not None:
            weight_kg = measurement.weight_kg
        if measurement.impedance_ohm is not None:
            self._measured_impedance = measurement.impedance_ohm

        if self._measured_impedance is not None:
            impedance_ohm = self._measured_impedance
            source = ImpedanceSource.MEASURED
        else:
            impedance_ohm, source = self._fallback_impedance(weight_kg, profile)

        # Replace in one step so readers never see a half-merged state
        self._state = AggregateState(
            weight_kg=weight_kg,
            impedance_ohm=impedance_ohm,
            impedance_source=source,
        )
        return self._state

    def reset(self) -> None:
        self._state = AggregateState()
        self._measured_impedance = None

    @staticmethod
    def _fallback_impedance(
        weight_kg: float | None, profile: UserProfile
    ) -> tuple[float, ImpedanceSource]:
        estimate = estimate_impedance(profile.height_cm, weight_kg, profile.sex)
        if estimate is None:
            return PLACEHOLDER_IMPEDANCE_OHM, ImpedanceSource.DEFAULT

        estimate = float(round_half_up(estimate))
        if in_range(estimate, IMPEDANCE16_RANGE_OHM):
            log.info("Using estimated impedance: %.0f ohm", estimate)
            return estimate, ImpedanceSource.ESTIMATED

        log.warning(
            "Estimated impedance %.0f ohm outside %d-%d ohm, using default %.0f ohm",
            estimate,
            *IMPEDANCE16_RANGE_OHM,
            PLACEHOLDER_IMPEDANCE_OHM,
        )
        return PLACEHOLDER_IMPEDANCE_OHM, ImpedanceSource.DEFAULT
