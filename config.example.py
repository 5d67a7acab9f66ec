from pathlib import Path

# Base directory (where this file lives)
BASE_DIR = Path(__file__).parent

# User profile for body composition calculations
# Copy this file to config.py and update with your values
PROFILE = {
    "height_cm": 170,         # Your height in centimeters
    "age": 30,                # Your age in years
    "gender": "male",         # "male" or "female"
    "units": "metric",        # "metric" or "imperial"
    "body_type": "standard",  # "standard" or "athlete"
}

# BLE settings
SCALE_NAME = "MY_SCALE"
WEIGHT_MEASUREMENT_UUID = "00002a9d-0000-1000-8000-00805f9b34fb"
BIA_MEASUREMENT_UUID = "0000ffb2-0000-1000-8000-00805f9b34fb"
VENDOR_NOTIFY_UUIDS = (
    "0000ffb1-0000-1000-8000-00805f9b34fb",
    "0000ffb3-0000-1000-8000-00805f9b34fb",
    "0000ffb4-0000-1000-8000-00805f9b34fb",
)
CONNECT_TIMEOUT_SECONDS = 20

# Hint the user to step on the scale after this long without data
DATA_TIMEOUT_SECONDS = 10

# Measurement log (stored alongside code), newest entries kept
DATABASE_PATH = BASE_DIR / "measurements.db"
LOG_RETENTION = 100

# Dashboard
DASHBOARD_HOST = "0.0.0.0"
DASHBOARD_PORT = 5000
