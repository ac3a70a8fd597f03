from __future__ import annotations

import pytest

from autocall.formatting import (
    build_campaign_payload,
    format_campaign,
    format_report,
    normalize_phone_number,
    unwrap_campaign,
)


def test_build_campaign_payload_applies_defaults() -> None:
    payload = build_campaign_payload({"name": "Spring promo"})

    assert payload == {
        "name": "Spring promo",
        "description": "",
        "type": "predict",
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


def test_build_campaign_payload_coerces_numeric_strings() -> None:
    payload = build_campaign_payload({"name": "X", "cooldown": "30", "maxConnections": 4, "type": "progressive"})

    assert payload["cooldown"] == 30
    assert payload["maxConnections"] == 4
    assert payload["type"] == "progressive"


def test_build_campaign_payload_rejects_non_numeric_values() -> None:
    with pytest.raises(ValueError, match="cooldown must be an integer"):
        build_campaign_payload({"name": "X", "cooldown": "soon"})


@pytest.mark.parametrize(
    "raw",
    [
        {"id": 7, "name": "Promo", "type": "predict", "state": 1, "created_at": "2024-01-01"},
        {"autocall": {"id": 7, "name": "Promo", "type": "predict", "state": 1, "created_at": "2024-01-01"}},
        {"data": {"autocall": {"id": 7, "name": "Promo", "type": "predict", "state": 1, "created_at": "2024-01-01"}}},
    ],
)
def test_format_campaign_unwraps_envelopes(raw) -> None:
    assert format_campaign(raw) == {
        "id": 7,
        "name": "Promo",
        "type": "predict",
        "status": "active",
        "createdAt": "2024-01-01",
    }


def test_format_campaign_maps_status_codes() -> None:
    assert format_campaign({"state": 0})["status"] == "paused"
    assert format_campaign({"state": 5})["status"] == "unknown"
    assert format_campaign({})["status"] == "unknown"


def test_format_campaign_fills_defaults() -> None:
    formatted = format_campaign({"autocallId": 9})

    assert formatted["id"] == 9
    assert formatted["name"] == ""
    assert formatted["type"] == "default"
    assert formatted["createdAt"]


def test_unwrap_campaign_prefers_data_object() -> None:
    assert unwrap_campaign({"data": {"id": 3}}, "3") == {"id": 3}


def test_unwrap_campaign_picks_matching_record_from_list() -> None:
    raw = {"data": [{"id": 1}, {"id": 3, "name": "mine"}]}

    assert unwrap_campaign(raw, "3") == {"id": 3, "name": "mine"}
    assert unwrap_campaign(raw, "99") == {"id": 1}


def test_unwrap_campaign_falls_back_to_raw() -> None:
    assert unwrap_campaign({"id": 3, "name": "solo"}, "3") == {"id": 3, "name": "solo"}
    assert unwrap_campaign(None, "3") == {}


def test_format_report_computes_rates_and_calls() -> None:
    raw = {
        "data": {
            "statistic": {"all": 10, "answered": 6, "notAnswered": 3, "activeCall": 1},
            "avgDuration": "42s",
            "calls": [
                {"number": "79001234567", "clientAnswerTime": 5, "duration": "31", "time": "10:00", "operator": "Anna"},
                {"phone": "79007654321", "clientAnswerTime": 0},
                "garbage",
            ],
        }
    }

    report = format_report(raw)

    assert report["totalCalls"] == 10
    assert report["answeredCalls"] == 6
    assert report["missedCalls"] == 3
    assert report["activeCalls"] == 1
    assert report["successRate"] == "60%"
    assert report["missedRate"] == "30%"
    assert report["activeRate"] == "10%"
    assert report["averageDuration"] == "42s"
    assert report["averageAnswerTime"] == "0s"
    assert report["calls"] == [
        {"phoneNumber": "79001234567", "status": "answered", "duration": 31, "timestamp": "10:00", "operator": "Anna"},
        {"phoneNumber": "79007654321", "status": "missed", "duration": 0, "timestamp": "", "operator": "Auto"},
    ]


def test_format_report_handles_empty_payload() -> None:
    report = format_report({})

    assert report["totalCalls"] == 0
    assert report["successRate"] == "0%"
    assert report["calls"] == []


def test_format_report_uses_top_level_fallbacks() -> None:
    report = format_report({"numbersTotal": 4, "numbersSuccess": 1, "numbersFailed": 3})

    assert report["totalCalls"] == 4
    assert report["successRate"] == "25%"
    assert report["missedRate"] == "75%"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("+7 (900) 123-45-67", 79001234567),
        (79001234567, 79001234567),
        ("no digits", None),
        ("", None),
    ],
)
def test_normalize_phone_number(value, expected) -> None:
    assert normalize_phone_number(value) == expected


def test_report_rates_round_half_up() -> None:
    report = format_report({"statistic": {"all": 8, "answered": 1, "notAnswered": 3}})

    assert report["successRate"] == "13%"
    assert report["missedRate"] == "38%"
