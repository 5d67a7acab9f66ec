"""Flask JSON API over the measurement log."""

from flask import Flask, jsonify, request

import config
import db
from composition import ImpedanceSource, UserProfile, calculate_body_composition

app = Flask(__name__)


def profile_for(record: dict) -> UserProfile:
    """Profile snapshot stored with the reading, gaps filled from config."""
    stored = {key: value for key, value in (record.get("profile") or {}).items() if value is not None}
    return UserProfile.from_dict({**config.PROFILE, **stored})


def composition_for(record: dict) -> dict | None:
    """Recompute body composition for a logged reading with its stored profile."""
    if not record.get("weight_kg"):
        return None
    profile = profile_for(record)
    composition = calculate_body_composition(
        weight_kg=record["weight_kg"],
        impedance_ohm=record["impedance_ohm"],
        profile=profile,
        impedance_source=ImpedanceSource(record.get("impedance_source") or "default"),
    )
    return composition.to_dict()


@app.route("/api/latest")
def latest():
    """Return the latest reading and its body composition."""
    record = db.get_latest_log_record()
    if not record:
        return jsonify({"error": "No readings yet"}), 404
    return jsonify({"reading": record, "composition": composition_for(record)})


@app.route("/api/log")
def log_records():
    """Return recent log records, newest first."""
    limit_param = request.args.get("limit")
    limit = int(limit_param) if limit_param and limit_param.isdigit() else 10
    limit = min(limit, config.LOG_RETENTION)
    return jsonify(db.get_log_records(limit=limit))


@app.route("/api/profile")
def profile():
    """Return the profile used for body composition."""
    return jsonify(UserProfile.from_dict(config.PROFILE).snapshot())


if __name__ == "__main__":
    db.init_db()
    app.run(host=config.DASHBOARD_HOST, port=config.DASHBOARD_PORT)
