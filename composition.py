"""Calculate body composition from weight, impedance and the user profile.

The formula bank is an approximate reconstruction of the vendor app's
arithmetic. Coefficients live in the tables below so they can be replaced
once validated against real device output; the rounding rules are exact.
"""

import math
from dataclasses import dataclass, asdict
from enum import Enum


class Sex(Enum):
    MALE = "male"
    FEMALE = "female"


class UnitSystem(Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"


class BodyType(Enum):
    STANDARD = "standard"
    ATHLETE = "athlete"


class ImpedanceSource(Enum):
    """Where the impedance fed to the formulas came from."""
    MEASURED = "measured"
    ESTIMATED = "estimated"
    DEFAULT = "default"


@dataclass(frozen=True)
class UserProfile:
    """User settings needed for body composition."""
    age: int
    height_cm: float
    sex: Sex
    unit_system: UnitSystem = UnitSystem.METRIC
    body_type: BodyType = BodyType.STANDARD

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        return cls(
            age=int(data.get("age", 30)),
            height_cm=float(data.get("height_cm", 170)),
            sex=Sex(data.get("sex") or data.get("gender") or "male"),
            unit_system=UnitSystem(data.get("units") or "metric"),
            body_type=BodyType(data.get("body_type") or "standard"),
        )

    def snapshot(self) -> dict:
        """Plain-value copy for log records."""
        return {
            "age": self.age,
            "height_cm": self.height_cm,
            "sex": self.sex.value,
            "units": self.unit_system.value,
            "body_type": self.body_type.value,
        }


@dataclass(frozen=True)
class BodyComposition:
    """Calculated body composition metrics."""
    weight_kg: float
    bmi: float
    body_fat_pct: float
    fat_mass_kg: float
    lean_mass_kg: float
    muscle_pct: float
    muscle_mass_kg: float
    bone_mass_kg: float
    body_water_pct: float
    visceral_fat: float
    bmr_kcal: int
    metabolic_age: int
    impedance_ohm: float
    impedance_source: ImpedanceSource

    def to_dict(self) -> dict:
        data = asdict(self)
        data["impedance_source"] = self.impedance_source.value
        return data


# Body fat: 1.20 * (impedance index / 1000) + 0.23 * age + offset
FAT_IMPEDANCE_COEFF = 1.20
FAT_AGE_COEFF = 0.23
FAT_OFFSET = {Sex.MALE: -16.2, Sex.FEMALE: -5.4}
# (age limit, factor) pairs, first limit above the age wins
FAT_AGE_SEX_FACTORS = {
    Sex.MALE: ((30, 0.98), (50, 1.0), (math.inf, 1.02)),
    Sex.FEMALE: ((30, 0.95), (50, 0.97), (math.inf, 1.0)),
}

# Fat mass is carried up when the remainder exceeds this (observed 33/100)
FAT_MASS_CARRY_THRESHOLD = 0.33
FAT_PCT_DIVISOR = 100.0

MUSCLE_BASELINE_PCT = {Sex.MALE: 45.0, Sex.FEMALE: 40.0}
MUSCLE_AGE_SLOPE = 0.003
MUSCLE_AGE_FLOOR = 0.7

BONE_FFM_FRACTION = 0.045
BONE_AGE_SLOPE = 0.005
BONE_AGE_FLOOR = 0.7
BONE_SEX_FACTOR = {Sex.MALE: 1.1, Sex.FEMALE: 1.0}

WATER_FFM_FRACTION = 0.73
WATER_IMPEDANCE_REFERENCE = 1000.0
WATER_IMPEDANCE_BAND = (0.8, 1.2)
WATER_AGE_SLOPE = 0.002
WATER_AGE_FLOOR = 0.9
WATER_SEX_FACTOR = {Sex.MALE: 1.0, Sex.FEMALE: 0.95}

# (bmi, age, impedance/1000) coefficients
VISCERAL_COEFFICIENTS = {
    Sex.MALE: (0.4, 0.1, 0.2),
    Sex.FEMALE: (0.35, 0.08, 0.15),
}

# Shared by the age, weight and body-type factors
AGE_REFERENCE_YEARS = 20
WEIGHT_REFERENCE_KG = 70.0
WEIGHT_FACTOR_BAND = (0.8, 1.2)
BODY_TYPE_MULTIPLIER = {BodyType.STANDARD: 1.0, BodyType.ATHLETE: 1.1}

MIFFLIN_OFFSET = {Sex.MALE: 5.0, Sex.FEMALE: -161.0}

# Reference profile for metabolic age
METABOLIC_REFERENCE_WEIGHT_KG = 70.0
METABOLIC_REFERENCE_HEIGHT_CM = 170.0
METABOLIC_BMR_WEIGHT = 5.0
METABOLIC_FAT_REFERENCE_PCT = 15.0
METABOLIC_FAT_WEIGHT = 0.1
METABOLIC_MUSCLE_REFERENCE_PCT = 40.0
METABOLIC_MUSCLE_WEIGHT = -0.05

METRIC_BANDS = {
    "weight_kg": (0.0, 500.0),
    "bmi": (0.0, 100.0),
    "body_fat_input_pct": (5.0, 60.0),
    "body_fat_pct": (0.0, 60.0),
    "muscle_pct": (20.0, 60.0),
    "bone_mass_kg": (1.0, 30.0),
    "body_water_pct": (30.0, 75.0),
    "visceral_fat": (1.0, 30.0),
    "bmr_kcal": (800, 3000),
    "metabolic_age": (18, 80),
}


def clamp(value, low, high):
    """Pin value into [low, high]."""
    if value < low:
        return low
    if value > high:
        return high
    return value


def _band(value, name: str):
    low, high = METRIC_BANDS[name]
    return clamp(value, low, high)


def _truncate(value: float) -> int:
    # Toward zero: ceiling for negatives, floor for positives
    return math.ceil(value) if value < 0 else math.floor(value)


def round1_strict_half_up(value: float) -> float:
    """Round to one decimal; a remainder of exactly .5 does not carry.

    >>> round1_strict_half_up(2.25)
    2.2
    >>> round1_strict_half_up(2.26)
    2.3
    """
    scaled = value * 10.0
    int_part = _truncate(scaled)
    carry = 1 if scaled - int_part > 0.5 else 0
    return (int_part + carry) / 10.0


def round_int_with_threshold(value: float, threshold: float) -> int:
    """Truncate to an integer, carrying one only if the remainder exceeds threshold."""
    int_part = _truncate(value)
    # Compare at decimal precision so 14.33 has a remainder of 0.33, not 0.33000000000000007
    remainder = round(value - int_part, 9)
    carry = 1 if remainder > threshold else 0
    return int_part + carry


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_bmi(weight_kg: float, height_cm: float) -> float:
    height_m = height_cm / 100
    if height_m <= 0:
        return 0.0
    return weight_kg / (height_m * height_m)


def _age_sex_factor(age: int, sex: Sex) -> float:
    for limit, factor in FAT_AGE_SEX_FACTORS[sex]:
        if age < limit:
            return factor
    return 1.0


def _weight_factor(weight_kg: float) -> float:
    low, high = WEIGHT_FACTOR_BAND
    return min(high, max(low, weight_kg / WEIGHT_REFERENCE_KG))


def estimate_body_fat_pct(impedance_ohm: float, profile: UserProfile) -> float:
    """Body fat percentage from the height-normalised impedance, before rounding."""
    height_m = profile.height_cm / 100
    impedance_index = impedance_ohm / (height_m * height_m) if height_m > 0 else 0.0
    raw = (
        FAT_IMPEDANCE_COEFF * (impedance_index / 1000)
        + FAT_AGE_COEFF * profile.age
        + FAT_OFFSET[profile.sex]
    )
    raw *= _age_sex_factor(profile.age, profile.sex)
    return _band(raw, "body_fat_input_pct")


def fat_free_mass(weight_kg: float, body_fat_pct: float) -> float:
    """Weight minus fat mass, using the vendor's fixed-point carry rules.

    The percentage is first rounded to one decimal (strict half-up). Fat mass
    is truncated to whole kilograms; the 0.33 carry only applies when the
    percentage was already an exact tenth.
    """
    scaled = body_fat_pct * 10.0
    scaled_int = math.trunc(scaled)
    scaled_frac = scaled - scaled_int
    rounded_pct = (scaled_int + 1 if scaled_frac > 0.5 else scaled_int) / 10.0

    fat_mass = weight_kg * rounded_pct / FAT_PCT_DIVISOR
    if scaled_frac == 0.0:
        fat_mass_int = round_int_with_threshold(fat_mass, FAT_MASS_CARRY_THRESHOLD)
    else:
        fat_mass_int = math.trunc(fat_mass)
    return weight_kg - fat_mass_int


def muscle_percent(weight_kg: float, profile: UserProfile) -> float:
    age_factor = max(MUSCLE_AGE_FLOOR, 1.0 - (profile.age - AGE_REFERENCE_YEARS) * MUSCLE_AGE_SLOPE)
    raw = (
        MUSCLE_BASELINE_PCT[profile.sex]
        * age_factor
        * BODY_TYPE_MULTIPLIER[profile.body_type]
        * _weight_factor(weight_kg)
    )
    return _band(round1_strict_half_up(raw), "muscle_pct")


def bone_mass(weight_kg: float, ffm_kg: float, profile: UserProfile) -> float:
    age_factor = max(BONE_AGE_FLOOR, 1.0 - (profile.age - AGE_REFERENCE_YEARS) * BONE_AGE_SLOPE)
    raw = (
        ffm_kg
        * BONE_FFM_FRACTION
        * age_factor
        * BONE_SEX_FACTOR[profile.sex]
        * _weight_factor(weight_kg)
    )
    return _band(round1_strict_half_up(raw), "bone_mass_kg")


def body_water_pct(weight_kg: float, ffm_kg: float, impedance_ohm: float, profile: UserProfile) -> float:
    low, high = WATER_IMPEDANCE_BAND
    if impedance_ohm > 0:
        impedance_factor = clamp(WATER_IMPEDANCE_REFERENCE / impedance_ohm, low, high)
    else:
        impedance_factor = high
    age_factor = max(WATER_AGE_FLOOR, 1.0 - (profile.age - AGE_REFERENCE_YEARS) * WATER_AGE_SLOPE)
    water_kg = ffm_kg * WATER_FFM_FRACTION * impedance_factor * age_factor * WATER_SEX_FACTOR[profile.sex]
    pct = water_kg / weight_kg * 100.0 if weight_kg > 0 else 0.0
    return _band(round1_strict_half_up(pct), "body_water_pct")


def visceral_fat_index(bmi: float, impedance_ohm: float, profile: UserProfile) -> float:
    bmi_coeff, age_coeff, impedance_coeff = VISCERAL_COEFFICIENTS[profile.sex]
    raw = bmi * bmi_coeff + profile.age * age_coeff - (impedance_ohm / 1000) * impedance_coeff
    return _band(round1_strict_half_up(raw), "visceral_fat")


def calculate_bmr(
    weight_kg: float,
    height_cm: float,
    age: int,
    sex: Sex,
    body_type: BodyType = BodyType.STANDARD,
) -> int:
    """BMR (Mifflin-St Jeor) with the body-type multiplier."""
    bmr = 10 * weight_kg + 6.25 * height_cm - 5 * age + MIFFLIN_OFFSET[sex]
    bmr *= BODY_TYPE_MULTIPLIER[body_type]
    return round_half_up(_band(bmr, "bmr_kcal"))


def metabolic_age(
    weight_kg: float,
    body_fat_pct: float,
    muscle_pct: float,
    profile: UserProfile,
) -> int:
    reference = calculate_bmr(
        METABOLIC_REFERENCE_WEIGHT_KG, METABOLIC_REFERENCE_HEIGHT_CM, profile.age, profile.sex
    )
    actual = calculate_bmr(weight_kg, profile.height_cm, profile.age, profile.sex, profile.body_type)
    ratio = actual / reference if reference > 0 else 1.0

    age = (
        profile.age
        + (ratio - 1) * METABOLIC_BMR_WEIGHT
        + (body_fat_pct - METABOLIC_FAT_REFERENCE_PCT) * METABOLIC_FAT_WEIGHT
        + (muscle_pct - METABOLIC_MUSCLE_REFERENCE_PCT) * METABOLIC_MUSCLE_WEIGHT
    )
    return round_half_up(_band(age, "metabolic_age"))


def calculate_body_composition(
    weight_kg: float,
    impedance_ohm: float,
    profile: UserProfile,
    impedance_source: ImpedanceSource = ImpedanceSource.MEASURED,
) -> BodyComposition:
    """Calculate every display metric for one reading."""
    weight_kg = _band(weight_kg, "weight_kg")
    bmi = calculate_bmi(weight_kg, profile.height_cm)

    fat_input_pct = estimate_body_fat_pct(impedance_ohm, profile)
    ffm = fat_free_mass(weight_kg, fat_input_pct)
    fat_mass_kg = max(0.0, weight_kg - ffm)
    body_fat = fat_mass_kg / weight_kg * 100.0 if weight_kg > 0 else 0.0

    muscle_pct = muscle_percent(weight_kg, profile)

    return BodyComposition(
        weight_kg=round1_strict_half_up(weight_kg),
        bmi=round1_strict_half_up(_band(bmi, "bmi")),
        body_fat_pct=_band(round1_strict_half_up(body_fat), "body_fat_pct"),
        fat_mass_kg=round1_strict_half_up(fat_mass_kg),
        lean_mass_kg=round1_strict_half_up(max(0.0, ffm)),
        muscle_pct=muscle_pct,
        muscle_mass_kg=round1_strict_half_up(muscle_pct / 100.0 * weight_kg),
        bone_mass_kg=bone_mass(weight_kg, ffm, profile),
        body_water_pct=body_water_pct(weight_kg, ffm, impedance_ohm, profile),
        visceral_fat=visceral_fat_index(bmi, impedance_ohm, profile),
        bmr_kcal=calculate_bmr(weight_kg, profile.height_cm, profile.age, profile.sex, profile.body_type),
        metabolic_age=metabolic_age(weight_kg, fat_input_pct, muscle_pct, profile),
        impedance_ohm=impedance_ohm,
        impedance_source=impedance_source,
    )
