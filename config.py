from pathlib import Path

# Base directory (where this file lives)
BASE_DIR = Path(__file__).parent

# User profile for body composition calculations
PROFILE = {
    "height_cm": 170,
    "age": 30,
    "gender": "male",
    "units": "metric",
    "body_type": "standard",
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
DATA_TIMEOUT_SECONDS = 10

# Database (stored alongside code)
DATABASE_PATH = BASE_DIR / "measurements.db"
LOG_RETENTION = 100

# Dashboard
DASHBOARD_HOST = "0.0.0.0"
DASHBOARD_PORT = 5000
