"""Effective HTTP settings: defaults, deep merge and validation."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional

import soupsieve
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import BookingConfig
from .errors import ConfigurationError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36"
)

DEFAULT_HTTP_SETTINGS: Dict[str, Any] = {
    "mode": "live",
    "user_agent": DEFAULT_USER_AGENT,
    "timeout_seconds": 30.0,
    "request_headers": {
        "html": {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": "fr-FR,fr;q=0.9,en-US;q=0.8,en;q=0.7",
        },
    },
    "endpoints": {
        "login": {
            "method": "POST",
            "fetch_initial_page": True,
            "form_selector": "form",
            "username_field": "email",
            "password_field": "pass",
            "encoding": "form",
        },
        "reservation_page": {
            "path": "reservation.html",
            "method": "GET",
            "date_format": "DD/MM/YYYY",
            "date_query_param": "date",
        },
        "finalize": {
            "method": "POST",
            "encoding": "form",
            "fields": {
                "court": "idcourt",
                "slot": "idhoraire",
                "hour": "heure",
                "date": "date",
                "test_mode": "test",
                "partner": "idplayer_{position}",
            },
        },
    },
    "selectors": {
        "reservation_form": [
            "form#formReservation",
            "form#reservation-form",
            'form[action*="reservation"]',
            'form[name="formReservation"]',
        ],
        "court": ".bloccourt",
        "court_id_attr": "data-idcourt",
        "court_name": ".blocCourt_title, .blocCourt_top h3, .court-name",
        "slot_button": ".blocCourt_container_btn-creneau button.btn_creneau",
        "slot_id_attr": "idhoraire",
        "unavailable_classes": ["disabled", "btn_creneau__indispo"],
    },
    "mock_data": None,
}


def deep_merge(base: Mapping[str, Any], override: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Mapping values merge recursively; lists and scalars replace wholesale.
    Neither argument is mutated.
    """
    result: Dict[str, Any] = {key: _copy(value) for key, value in base.items()}
    if not isinstance(override, Mapping):
        return result
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = _copy(value)
    return result


def _copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return deep_merge(value, None)
    if isinstance(value, list):
        return list(value)
    return value


def check_selector(selector: Optional[str], *, required: bool = False) -> Optional[str]:
    """Reject CSS selectors soupsieve cannot compile.

    Blank optional selectors are skipped at extraction time and pass through.
    """
    if not selector:
        if required:
            raise ValueError("a CSS selector is required")
        return selector
    try:
        soupsieve.compile(selector)
    except soupsieve.SelectorSyntaxError as exc:
        raise ValueError(f"invalid CSS selector {selector!r}: {exc}") from exc
    return selector


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)


class LoginEndpoint(_Frozen):
    url: Optional[str] = None
    method: str = "POST"
    fetch_initial_page: bool = True
    form_selector: Optional[str] = "form"
    username_field: str = "email"
    password_field: str = "pass"
    static_fields: Dict[str, Any] = Field(default_factory=dict)
    encoding: Literal["form", "json"] = "form"

    @field_validator("form_selector")
    @classmethod
    def valid_form_selector(cls, value: Optional[str]) -> Optional[str]:
        return check_selector(value)


class ReservationPageEndpoint(_Frozen):
    url: Optional[str] = None
    path: str = "reservation.html"
    method: str = "GET"
    date_format: str = "DD/MM/YYYY"
    date_query_param: Optional[str] = "date"
    data_endpoint: Optional[str] = None
    data_method: str = "GET"
    data_date_format: Optional[str] = None
    data_date_param: Optional[str] = None
    data_static_params: Dict[str, Any] = Field(default_factory=dict)
    data_headers: Optional[Dict[str, str]] = None
    data_response_type: Literal["json", "html"] = "json"


class FinalizeFields(_Frozen):
    court: Optional[str] = None
    slot: Optional[str] = None
    hour: Optional[str] = None
    date: Optional[str] = None
    test_mode: Optional[str] = None
    partner: Optional[str] = None


class FinalizeEndpoint(_Frozen):
    url: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = "POST"
    encoding: Literal["form", "json"] = "form"
    headers: Dict[str, str] = Field(default_factory=dict)
    fields: FinalizeFields = Field(default_factory=FinalizeFields)


class Endpoints(_Frozen):
    login: LoginEndpoint = Field(default_factory=LoginEndpoint)
    reservation_page: ReservationPageEndpoint = Field(default_factory=ReservationPageEndpoint)
    finalize: FinalizeEndpoint = Field(default_factory=FinalizeEndpoint)


class Selectors(_Frozen):
    reservation_form: List[str] = Field(default_factory=list)
    court: str = ".bloccourt"
    court_id_attr: Optional[str] = "data-idcourt"
    court_name: Optional[str] = None
    slot_button: str = "button"
    slot_id_attr: Optional[str] = None
    unavailable_classes: List[str] = Field(default_factory=list)

    @field_validator("court", "slot_button")
    @classmethod
    def required_selector(cls, value: str) -> str:
        return check_selector(value, required=True)

    @field_validator("court_name")
    @classmethod
    def optional_selector(cls, value: Optional[str]) -> Optional[str]:
        return check_selector(value)

    @field_validator("reservation_form")
    @classmethod
    def form_selectors(cls, value: List[str]) -> List[str]:
        return [check_selector(selector) for selector in value]


class MockSlot(_Frozen):
    court_id: Optional[str] = None
    court_name: Optional[str] = None
    hour: str
    slot_id: Optional[str] = None


class MockData(_Frozen):
    available_slots: List[MockSlot] = Field(default_factory=list)
    on_success_message: Optional[str] = None


class HttpSettings(_Frozen):
    """Immutable effective settings threaded through one run."""

    mode: Literal["live", "mock"] = "live"
    base_url: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0
    request_headers: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    endpoints: Endpoints = Field(default_factory=Endpoints)
    selectors: Selectors = Field(default_factory=Selectors)
    mock_data: Optional[MockData] = None

    def html_headers(self) -> Dict[str, str]:
        return {**self.request_headers.get("html", {}), "User-Agent": self.user_agent}


def build_http_settings(config: BookingConfig) -> HttpSettings:
    """Merge the configured overrides over the defaults once per run."""
    merged = deep_merge(DEFAULT_HTTP_SETTINGS, config.http)
    merged["base_url"] = merged.get("base_url") or config.member_url
    try:
        return HttpSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid HTTP settings: {exc}") from exc
