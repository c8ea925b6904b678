import copy

import pytest

from court_booking_agent.errors import ConfigurationError
from court_booking_agent.settings import DEFAULT_HTTP_SETTINGS, build_http_settings, deep_merge
from helpers import MEMBER_URL, make_config


def test_deep_merge_recurses_into_mappings_and_replaces_lists():
    base = {"a": {"b": 1, "c": [1, 2]}, "d": "x"}
    override = {"a": {"c": [3], "e": {"f": True}}, "d": None}
    merged = deep_merge(base, override)
    assert merged == {"a": {"b": 1, "c": [3], "e": {"f": True}}, "d": None}


def test_deep_merge_does_not_mutate_inputs():
    snapshot = copy.deepcopy(DEFAULT_HTTP_SETTINGS)
    override = {"selectors": {"unavailable_classes": ["full"]}, "endpoints": {"login": {"encoding": "json"}}}
    merged = deep_merge(DEFAULT_HTTP_SETTINGS, override)
    merged["endpoints"]["finalize"]["fields"]["court"] = "changed"
    assert DEFAULT_HTTP_SETTINGS == snapshot
    assert override == {"selectors": {"unavailable_classes": ["full"]}, "endpoints": {"login": {"encoding": "json"}}}


def test_deep_merge_ignores_non_mapping_override():
    assert deep_merge({"a": 1}, None) == {"a": 1}


def test_build_http_settings_defaults(config):
    settings = build_http_settings(config)
    assert settings.mode == "live"
    assert settings.base_url == MEMBER_URL
    assert settings.endpoints.login.username_field == "email"
    assert settings.endpoints.finalize.fields.partner == "idplayer_{position}"
    assert settings.selectors.reservation_form[0] == "form#formReservation"
    assert settings.html_headers()["User-Agent"] == settings.user_agent


def test_build_http_settings_applies_overrides():
    config = make_config(
        http={
            "mode": "mock",
            "base_url": "https://api.example.com/",
            "selectors": {"unavailable_classes": ["full"]},
            "endpoints": {"finalize": {"fields": {"partner": "joueur{number}"}}},
            "mock_data": {"available_slots": [{"court_id": 12, "hour": "10:00"}]},
        }
    )
    settings = build_http_settings(config)
    assert settings.mode == "mock"
    assert settings.base_url == "https://api.example.com/"
    assert settings.selectors.unavailable_classes == ["full"]
    assert settings.selectors.court == ".bloccourt"
    assert settings.endpoints.finalize.fields.partner == "joueur{number}"
    assert settings.endpoints.finalize.fields.court == "idcourt"
    assert settings.mock_data.available_slots[0].court_id == "12"


def test_build_http_settings_rejects_invalid_values():
    config = make_config(http={"mode": "turbo"})
    with pytest.raises(ConfigurationError):
        build_http_settings(config)


@pytest.mark.parametrize(
    "http",
    [
        {"selectors": {"court": "div[["}},
        {"selectors": {"slot_button": ""}},
        {"selectors": {"court_name": "h3:nth-child("}},
        {"selectors": {"reservation_form": ["form#ok", "form[action="]}},
        {"endpoints": {"login": {"form_selector": "form >"}}},
    ],
)
def test_build_http_settings_rejects_malformed_selectors(http):
    with pytest.raises(ConfigurationError) as excinfo:
        build_http_settings(make_config(http=http))
    assert "selector" in str(excinfo.value)


def test_blank_optional_selectors_are_allowed():
    config = make_config(
        http={
            "selectors": {"court_name": "", "reservation_form": []},
            "endpoints": {"login": {"form_selector": None}},
        }
    )
    settings = build_http_settings(config)
    assert settings.selectors.court_name == ""
    assert settings.endpoints.login.form_selector is None
