"""BLE daemon for the smart scale - logs readings and body composition."""

import asyncio
import logging

from bleak.exc import BleakError

import config
import db
from aggregator import AggregateState
from composition import BodyComposition, UserProfile
from session import ScaleSession

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
log = logging.getLogger(__name__)


def load_profile() -> UserProfile:
    """Read the profile fresh so edits to config.PROFILE apply to the next reading."""
    return UserProfile.from_dict(config.PROFILE)


def report(composition: BodyComposition | None, state: AggregateState) -> None:
    """Log the composition for one aggregated reading."""
    if composition is None:
        log.info("Impedance %.0f ohm, no weight yet", state.impedance_ohm)
        return
    log.info(
        "Weight %.1f kg | BMI %.1f | fat %.1f%% | muscle %.1f kg | bone %.1f kg | "
        "water %.1f%% | visceral %.1f | BMR %d kcal | metabolic age %d (%s impedance)",
        composition.weight_kg,
        composition.bmi,
        composition.body_fat_pct,
        composition.muscle_mass_kg,
        composition.bone_mass_kg,
        composition.body_water_pct,
        composition.visceral_fat,
        composition.bmr_kcal,
        composition.metabolic_age,
        composition.impedance_source.value,
    )


async def main() -> None:
    """Connect to the scale and log readings until disconnected."""
    log.info("Initializing database...")
    db.init_db()

    disconnected = asyncio.Event()

    def on_status(status: str) -> None:
        if status == "Disconnected":
            disconnected.set()

    session = ScaleSession(
        profile_provider=load_profile,
        on_result=report,
        on_status=on_status,
        on_log_record=db.save_log_record,
    )

    try:
        await session.connect()
    except (BleakError, asyncio.TimeoutError) as err:
        log.error("Could not connect to '%s': %s", config.SCALE_NAME, err)
        raise

    try:
        await disconnected.wait()
    finally:
        await session.disconnect()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Stopped")
