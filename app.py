from __future__ import annotations

import json
import logging
import math
from typing import Mapping

from flask import Flask, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from readings_upload import UploadValidationError, parse_readings_upload
from tariff_split.config import DEFAULT_REVERSE_EPSILON, MAX_UPLOAD_MB
from tariff_split.costs import compute_bill, compute_units_from_bill
from tariff_split.models import BillOptions, MeterReading, SplitResult, TariffConfig, TariffConfigError
from tariff_split.reporting import build_split_report, format_user_lines, summarize_split
from tariff_split.split import split_bill
from tariff_split.tariffs import default_tariff, read_tariff_from_mapping, tariff_to_mapping

logger = logging.getLogger(__name__)

app = Flask(__name__, static_folder=None)
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_MB * 1024 * 1024
app.config["REVERSE_EPSILON"] = DEFAULT_REVERSE_EPSILON
app.config.from_prefixed_env("TARIFF_SPLIT")


@app.get("/api/tariff")
def tariff() -> object:
    return jsonify(tariff_to_mapping(default_tariff()))


@app.post("/api/bill")
def bill() -> object:
    payload = _json_payload()
    try:
        tariff_config = _parse_tariff(payload)
        units = _parse_float_field(payload, "units", minimum=0.0)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    breakdown = compute_bill(units, tariff_config)
    return jsonify(
        {
            "units": units,
            "energy_cost": round(breakdown.energy_cost, 2),
            "total_subject_to_vat": round(breakdown.total_subject_to_vat, 2),
            "vat_amount": round(breakdown.vat_amount, 2),
            "total_payable": round(breakdown.total_payable, 2),
        }
    )


@app.post("/api/units")
def units() -> object:
    payload = _json_payload()
    try:
        tariff_config = _parse_tariff(payload)
        bill_amount = _parse_float_field(payload, "bill", minimum=0.0)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    breakdown = compute_units_from_bill(
        bill_amount,
        tariff_config,
        epsilon=float(app.config["REVERSE_EPSILON"]),
    )
    return jsonify(
        {
            "bill": bill_amount,
            "total_units": round(breakdown.total_units, 2),
            "energy_cost": round(breakdown.energy_cost, 2),
            "vat_amount": round(breakdown.vat_amount, 2),
        }
    )


@app.post("/api/split")
def split() -> object:
    payload = _json_payload()
    try:
        tariff_config = _parse_tariff(payload)
        main_meter = _parse_meter(payload.get("main_meter"), "main meter")
        raw_meters = payload.get("meters")
        if not isinstance(raw_meters, list):
            raise ValueError("Field meters must be a list.")
        meters = [
            _parse_meter(item, f"meter {index}")
            for index, item in enumerate(raw_meters, start=1)
        ]
        options = _parse_options(payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    result = split_bill(main_meter, meters, tariff_config, options)
    return jsonify(_split_response(result))


@app.post("/api/split/upload")
def split_upload() -> object:
    if "file" not in request.files:
        return jsonify({"error": "No file received."}), 400
    file = request.files["file"]
    if not file.filename:
        return jsonify({"error": "File name is missing."}), 400

    try:
        options = _parse_options(request.form)
        tariff_config = _parse_tariff(_form_tariff(request.form))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        parsed = parse_readings_upload(file.read(), file.filename)
    except UploadValidationError as exc:
        return jsonify({"error": "Upload validation failed.", "details": exc.user_messages()}), 422

    result = split_bill(parsed.main_meter, parsed.meters, tariff_config, options)
    return jsonify(_split_response(result))


@app.errorhandler(RequestEntityTooLarge)
def handle_file_too_large(_: RequestEntityTooLarge) -> object:
    return (
        jsonify({"error": f"File is too large. At most {MAX_UPLOAD_MB} MB allowed."}),
        413,
    )


def _json_payload() -> dict[str, object]:
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return {}


def _parse_tariff(payload: Mapping[str, object]) -> TariffConfig:
    raw = payload.get("tariff")
    if raw is None:
        return default_tariff()
    if not isinstance(raw, dict):
        raise ValueError("Field tariff must be an object.")
    try:
        return read_tariff_from_mapping(raw)
    except TariffConfigError as exc:
        raise ValueError(f"Tariff is invalid: {exc}") from exc


def _form_tariff(form: Mapping[str, str]) -> dict[str, object]:
    raw = (form.get("tariff") or "").strip()
    if not raw:
        return {}
    try:
        return {"tariff": json.loads(raw)}
    except json.JSONDecodeError as exc:
        raise ValueError("Field tariff must be a JSON object.") from exc


def _parse_meter(raw: object, label: str) -> MeterReading:
    if not isinstance(raw, dict):
        raise ValueError(f"Reading for {label} must be an object.")
    return MeterReading(
        previous=_parse_float_field(raw, "previous", default=0.0),
        current=_parse_float_field(raw, "current", default=0.0),
        name=str(raw.get("name") or ""),
        meter_no=str(raw.get("meter_no") or ""),
    )


def _parse_options(data: Mapping[str, object]) -> BillOptions:
    return BillOptions(
        include_bkash_fee=_parse_bool_field(data, "include_bkash_fee"),
        include_late_fee=_parse_bool_field(data, "include_late_fee"),
    )


def _parse_float_field(
    data: Mapping[str, object],
    name: str,
    *,
    default: float | None = None,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    raw = data.get(name)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if default is None:
            raise ValueError(f"Value for {name.replace('_', ' ')} is required.")
        return default
    if isinstance(raw, bool):
        raise ValueError(f"Value for {name.replace('_', ' ')} is invalid.")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Value for {name.replace('_', ' ')} is invalid.") from exc
    if not math.isfinite(value):
        raise ValueError(f"Value for {name.replace('_', ' ')} must be finite.")
    _validate_range(name, value, minimum, maximum)
    return value


def _parse_bool_field(data: Mapping[str, object], name: str) -> bool:
    raw = data.get(name)
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in {"1", "true", "yes", "on"}:
        return True
    if isinstance(raw, str) and raw.strip().lower() in {"", "0", "false", "no", "off"}:
        return False
    raise ValueError(f"Value for {name.replace('_', ' ')} is invalid.")


def _validate_range(
    name: str, value: float, minimum: float | None, maximum: float | None
) -> None:
    if minimum is not None and value < minimum:
        raise ValueError(f"Value for {name.replace('_', ' ')} must be at least {minimum}.")
    if maximum is not None and value > maximum:
        raise ValueError(f"Value for {name.replace('_', ' ')} must be at most {maximum}.")


def _split_response(result: SplitResult) -> dict[str, object]:
    report = build_split_report(result)
    if not report.is_reconciled:
        logger.warning(
            "Rounded user total %s drifts %.2f from collection %.2f.",
            report.rounded_total,
            report.rounding_drift,
            report.total_collection,
        )
    return {
        "summary": summarize_split(result, report),
        "users": format_user_lines(report.lines),
    }


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=5000, debug=True)
