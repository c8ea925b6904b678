"""Cookie-bearing HTTP session performing login, fetch and submit."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urljoin

import httpx
import structlog

from .config import BookingConfig
from .date_window import TargetDate
from .errors import ConfigurationError, NetworkError, SessionStateError
from .extraction import extract_form, extract_slots, extract_slots_from_payload
from .models import FormSnapshot, ReservationContext, Selection, Slot
from .run_log import RunLogger
from .settings import HttpSettings

LOGGER = structlog.get_logger(__name__)

DEFAULT_FINALIZE_PATH = "reservation.html"
JSON_ACCEPT = {"Accept": "application/json, text/javascript, */*;q=0.1"}


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CONTEXT_FETCHED = "context_fetched"
    SUBMITTED = "submitted"


def _drop_none(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _stringify(payload: Mapping[str, Any]) -> Dict[str, str]:
    return {key: str(value) for key, value in _drop_none(payload).items()}


def partner_field_name(template: str, position: int) -> str:
    return (
        template.replace("{position}", str(position))
        .replace("{index}", str(position))
        .replace("{number}", str(position + 1))
    )


class ReservationSession:
    """One authenticated session against the reservation site.

    Operations must run in order: ``login``, ``fetch_context``, ``submit``.
    """

    def __init__(
        self,
        config: BookingConfig,
        settings: HttpSettings,
        log: RunLogger,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self._settings = settings
        self._log = log
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=10,
            headers={"User-Agent": settings.user_agent},
            timeout=settings.timeout_seconds,
        )
        self.state = SessionState.UNAUTHENTICATED

    async def __aenter__(self) -> "ReservationSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    @property
    def base_url(self) -> str:
        base = self._settings.base_url or self._config.member_url
        if not base:
            raise ConfigurationError("member_url (or http.base_url) is required in live mode")
        return base

    def _require(self, expected: SessionState, operation: str) -> None:
        if self.state is not expected:
            raise SessionStateError(f"{operation} called in state {self.state.value}, expected {expected.value}")

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        LOGGER.info("session.request", operation=operation, method=method, url=url)
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            LOGGER.error("session.transport_failed", operation=operation, error=type(exc).__name__)
            raise NetworkError(operation, f"{type(exc).__name__}: {exc}") from exc
        if not 200 <= response.status_code < 400:
            LOGGER.error("session.bad_status", operation=operation, status_code=response.status_code)
            raise NetworkError(operation, f"unexpected status from {url}", status_code=response.status_code)
        return response

    async def login(self) -> None:
        """Post the credentials; completion of the response counts as success."""
        self._require(SessionState.UNAUTHENTICATED, "login")
        endpoint = self._settings.endpoints.login
        login_url = endpoint.url or self._config.login_url
        if not login_url:
            raise ConfigurationError("login_url is required in live mode")

        self._log("step", "Authenticating over HTTP...")
        payload: Dict[str, Any] = {}
        if endpoint.fetch_initial_page:
            response = await self._request("login", "GET", login_url, headers=self._settings.html_headers())
            payload.update(extract_form(response.text, endpoint.form_selector).fields)

        password = self._config.password.get_secret_value() if self._config.password else None
        payload[endpoint.username_field] = self._config.username
        payload[endpoint.password_field] = password
        payload.update(endpoint.static_fields)

        method = (endpoint.method or "POST").upper()
        if endpoint.encoding == "json":
            await self._request("login", method, login_url, json=_drop_none(payload))
        else:
            await self._request("login", method, login_url, data=_stringify(payload))

        self.state = SessionState.AUTHENTICATED
        self._log("success", "HTTP login completed.", {"cookies": len(self._client.cookies)})

    async def fetch_context(self, target: TargetDate) -> ReservationContext:
        """Load the reservation page, falling back to the data endpoint once."""
        self._require(SessionState.AUTHENTICATED, "fetch_context")
        page = self._settings.endpoints.reservation_page
        url = page.url or urljoin(self.base_url, page.path)
        params = {page.date_query_param: target.request} if page.date_query_param else None

        self._log("step", f"Loading slots for {target.display}...")
        response = await self._request(
            "fetch-context",
            (page.method or "GET").upper(),
            url,
            params=params,
            headers=self._settings.html_headers(),
        )
        form, slots = extract_slots(response.text, self._config, self._settings, self._log)
        if not form.fields and form.action is None:
            self._log("warning", "No reservation form found on the page.")

        if not slots and page.data_endpoint:
            slots = await self._fetch_data_endpoint(target)

        self.state = SessionState.CONTEXT_FETCHED
        self._log("info", f"{len(slots)} available slot(s) retrieved.")
        return ReservationContext(form=form, slots=slots, target=target)

    async def _fetch_data_endpoint(self, target: TargetDate) -> List[Slot]:
        page = self._settings.endpoints.reservation_page
        url = urljoin(self.base_url, page.data_endpoint)
        date_param = page.data_date_param or page.date_query_param or "date"
        params = _stringify({**page.data_static_params, date_param: target.data_endpoint})
        method = (page.data_method or "GET").upper()

        self._log("info", "No slot in the page content, querying the data endpoint.")
        if method == "GET":
            response = await self._request(
                "data-endpoint", "GET", url, params=params, headers=page.data_headers or JSON_ACCEPT
            )
        else:
            response = await self._request(
                "data-endpoint", method, url, data=params, headers=page.data_headers or {}
            )

        if page.data_response_type == "html":
            _, slots = extract_slots(response.text, self._config, self._settings, self._log)
            return slots
        try:
            payload = response.json()
        except ValueError:
            self._log("warning", "Data endpoint returned a non-JSON body; no slot extracted.")
            return []
        return extract_slots_from_payload(payload, self._config)

    def _submission_url(self, form: FormSnapshot) -> str:
        finalize = self._settings.endpoints.finalize
        return (
            finalize.url
            or (urljoin(self.base_url, form.action) if form.action else None)
            or (urljoin(self.base_url, finalize.path) if finalize.path else None)
            or urljoin(self.base_url, DEFAULT_FINALIZE_PATH)
        )

    def build_submission(self, context: ReservationContext, selection: Selection) -> Dict[str, Any]:
        """Form fields overlaid with the chosen slot, date and partners."""
        fields = self._settings.endpoints.finalize.fields
        slot = selection.slot
        payload: Dict[str, Any] = dict(context.form.fields)
        if fields.court:
            payload[fields.court] = slot.court_id
        if fields.slot and slot.slot_id:
            payload[fields.slot] = slot.slot_id
        if fields.hour:
            payload[fields.hour] = slot.hour
        if fields.date:
            payload[fields.date] = context.target.request
        if fields.test_mode and self._config.test_mode:
            payload[fields.test_mode] = "1"
        if fields.partner:
            for partner in self._config.partners:
                payload[partner_field_name(fields.partner, partner.position)] = partner.player_id
        return payload

    async def submit(self, context: ReservationContext, selection: Selection) -> Optional[httpx.Response]:
        """Send the reservation; in test mode nothing is written."""
        self._require(SessionState.CONTEXT_FETCHED, "submit")
        finalize = self._settings.endpoints.finalize
        url = self._submission_url(context.form)
        method = (finalize.method or context.form.method or "POST").upper()
        payload = self.build_submission(context, selection)

        self._log("step", "Sending the reservation form...")
        if self._config.test_mode:
            self.state = SessionState.SUBMITTED
            self._log("info", "Test mode enabled, the final HTTP call is skipped.", {"url": url, "method": method})
            return None

        if method == "GET":
            response = await self._request("submit", "GET", url, params=_stringify(payload), headers=finalize.headers)
        elif finalize.encoding == "json":
            response = await self._request("submit", method, url, json=_drop_none(payload), headers=finalize.headers)
        else:
            response = await self._request("submit", method, url, data=_stringify(payload), headers=finalize.headers)

        self.state = SessionState.SUBMITTED
        self._log("success", "HTTP reservation sent.")
        return response
