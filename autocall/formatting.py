"""Translation between frontend payloads and vendor request/response formats."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .shapes import Record, as_records


_NON_DIGITS = re.compile(r"\D")

_CAMPAIGN_STATES = {0: "paused", 1: "active"}

# Numeric fields of the vendor's create-campaign request and their defaults.
_CAMPAIGN_INT_FIELDS = {
    "cooldown": 60,
    "strategy": 1,
    "isRoboCall": 0,
    "maxConnections": 1,
    "distributor": 0,
    "defaultInTree": 1,
    "outLineId": 0,
    "treeId": 0,
    "userId": 0,
}


def _coerce_int(name: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer") from exc


def build_campaign_payload(body: Mapping[str, Any]) -> Dict[str, Any]:
    """Map the simplified frontend campaign form onto the vendor's request body."""

    payload: Dict[str, Any] = {
        "name": str(body.get("name") or ""),
        "description": str(body.get("description") or ""),
        "type": str(body.get("type") or "predict"),
    }
    for field_name, default in _CAMPAIGN_INT_FIELDS.items():
        payload[field_name] = _coerce_int(field_name, body.get(field_name), default)
    return payload


def _campaign_record(raw: Any) -> Record:
    if not isinstance(raw, dict):
        return {}
    data = raw.get("data")
    if isinstance(data, dict) and isinstance(data.get("autocall"), dict):
        return data["autocall"]
    if isinstance(raw.get("autocall"), dict):
        return raw["autocall"]
    return raw


def format_campaign(raw: Any) -> Dict[str, Any]:
    campaign = _campaign_record(raw)
    state = campaign.get("state")
    created_at = (
        campaign.get("created_at")
        or campaign.get("createdAt")
        or datetime.now(timezone.utc).isoformat()
    )
    return {
        "id": campaign.get("id") or campaign.get("autocallId") or "",
        "name": campaign.get("name") or "",
        "type": campaign.get("type") or "default",
        "status": _CAMPAIGN_STATES.get(state, "unknown") if isinstance(state, int) else "unknown",
        "createdAt": created_at,
    }


def _matches_id(record: Record, campaign_id: str) -> bool:
    return str(record.get("id")) == str(campaign_id)


def unwrap_campaign(raw: Any, campaign_id: str) -> Record:
    """Pick the record for ``campaign_id`` out of a campaign detail response."""

    if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
        return raw["data"]

    records = as_records(raw)
    if records:
        for record in records:
            if _matches_id(record, campaign_id):
                return record
        return records[0]

    return raw if isinstance(raw, dict) else {}


def _as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _rate(part: int, total: int) -> str:
    if total <= 0:
        return "0%"
    # Half-up: 12.5 -> 13.
    return f"{math.floor(part * 100 / total + 0.5)}%"


def _format_call(call: Record) -> Dict[str, Any]:
    answered = _as_int(call.get("clientAnswerTime")) > 0
    return {
        "phoneNumber": call.get("number") or call.get("phone") or call.get("phoneNumber") or "Unknown",
        "status": "answered" if answered else "missed",
        "duration": _as_int(call.get("duration")),
        "timestamp": call.get("time") or "",
        "operator": (
            call.get("operator")
            or call.get("operatorName")
            or call.get("sipClientOperator")
            or "Auto"
        ),
    }


def format_report(raw: Any) -> Dict[str, Any]:
    """Summarise a vendor call report into totals, rates and a call list."""

    data: Mapping[str, Any] = raw if isinstance(raw, dict) else {}
    if isinstance(data.get("data"), dict):
        data = data["data"]

    stats = data.get("statistic") or data.get("stats") or {}
    if not isinstance(stats, dict):
        stats = {}

    calls = data.get("calls")
    if not isinstance(calls, list):
        calls = []
    call_records: List[Record] = [call for call in calls if isinstance(call, dict)]

    total = _as_int(stats.get("all") or data.get("total") or data.get("numbersTotal") or len(call_records))
    answered = _as_int(stats.get("answered") or data.get("answered") or data.get("numbersSuccess"))
    missed = _as_int(stats.get("notAnswered") or data.get("missed") or data.get("numbersFailed"))
    active = _as_int(stats.get("activeCall"))

    return {
        "totalCalls": total,
        "answeredCalls": answered,
        "missedCalls": missed,
        "activeCalls": active,
        "successRate": _rate(answered, total),
        "missedRate": _rate(missed, total),
        "activeRate": _rate(active, total),
        "averageDuration": data.get("avgDuration") or data.get("averageDuration") or "0s",
        "averageAnswerTime": data.get("avgAnswerTime") or data.get("averageAnswerTime") or "0s",
        "calls": [_format_call(call) for call in call_records],
    }


def normalize_phone_number(value: Any) -> Optional[int]:
    """Strip formatting from a phone number; ``None`` when no digits remain."""

    digits = _NON_DIGITS.sub("", str(value))
    if not digits:
        return None
    return int(digits)


__all__ = [
    "build_campaign_payload",
    "format_campaign",
    "format_report",
    "normalize_phone_number",
    "unwrap_campaign",
]
