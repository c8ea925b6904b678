"""Markup and payload parsing into forms and candidate slots."""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import structlog
from bs4 import BeautifulSoup, Tag

from .config import BookingConfig
from .models import FormSnapshot, Slot, SlotSource
from .run_log import RunLogger
from .settings import HttpSettings, Selectors

LOGGER = structlog.get_logger(__name__)

Document = Union[str, bytes, BeautifulSoup, None]

SLOT_ID_FALLBACK_ATTRS = ("idhoraire", "id-horaire", "id", "value", "creneau", "slot", "idcreneau")

PAYLOAD_CONTAINERS = ("slots", "disponibilites", "result")
COURT_ID_KEYS = ("courtId", "court_id", "idcourt", "idCourt", "idTerrain", "terrain", "id_terrain")
HOUR_KEYS = ("hour", "heure", "creneau", "time")
SLOT_ID_KEYS = ("slotId", "slot_id", "idHoraire", "idhoraire", "idcreneau", "id_creneau")
AVAILABILITY_KEYS = ("available", "disponible", "isAvailable")
COURT_NAME_KEYS = ("courtName", "nomCourt")


def first_match(strategies: Iterable[Callable[[], Any]]) -> Optional[Any]:
    """Return the first non-empty result from an ordered list of lookups."""
    for strategy in strategies:
        value = strategy()
        if value is not None and value != "":
            return value
    return None


def normalise_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""
    return re.sub(r"\s+", " ", text or "").strip()


def parse_document(document: Document) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return BeautifulSoup(document or "", "html.parser")


def element_attributes(element: Tag) -> Dict[str, str]:
    """Attributes of ``element`` plus ``data-`` stripped aliases."""
    attributes: Dict[str, str] = {}
    for key, value in element.attrs.items():
        text = " ".join(value) if isinstance(value, list) else str(value)
        attributes[key] = text
        if key.startswith("data-"):
            attributes[key[5:]] = text
    return attributes


def _attribute_lookup(attributes: Mapping[str, str], name: Optional[str]) -> Callable[[], Optional[str]]:
    def lookup() -> Optional[str]:
        if not name:
            return None
        return attributes.get(name) or attributes.get(f"data-{name}")

    return lookup


def _select_first_form(soup: BeautifulSoup, form_selectors: Union[str, Sequence[str], None]) -> Optional[Tag]:
    if isinstance(form_selectors, str):
        form_selectors = [form_selectors]

    def by_selector(selector: str) -> Callable[[], Optional[Tag]]:
        return lambda: soup.select_one(selector)

    strategies = [by_selector(selector) for selector in form_selectors or [] if selector]
    strategies.append(lambda: soup.find("form"))
    return first_match(strategies)


def _field_value(element: Tag) -> Optional[str]:
    """Value a browser would submit for ``element``, or ``None`` to omit it."""
    if element.name == "select":
        selected = element.find("option", selected=True)
        if selected is None:
            return None
        value = selected.get("value")
        return value if value is not None else selected.get_text().strip()
    input_type = (element.get("type") or "").lower()
    if input_type in ("checkbox", "radio"):
        if not element.has_attr("checked"):
            return None
        value = element.get("value")
        return value if value is not None else "on"
    value = element.get("value")
    return value if value is not None else ""


def extract_form(document: Document, form_selectors: Union[str, Sequence[str], None]) -> FormSnapshot:
    """Harvest the primary form's action, method and field values."""
    soup = parse_document(document)
    form = _select_first_form(soup, form_selectors)
    if form is None:
        LOGGER.debug("extract.form_missing")
        return FormSnapshot(action=None, method="POST", fields={})

    fields: Dict[str, str] = {}
    for element in form.find_all(["input", "select", "textarea"]):
        name = element.get("name")
        if not name:
            continue
        value = _field_value(element)
        if value is not None:
            fields[name] = value

    return FormSnapshot(
        action=form.get("action") or None,
        method=(form.get("method") or "POST").upper(),
        fields=fields,
    )


def _is_unavailable(button: Tag, selectors: Selectors) -> bool:
    if button.has_attr("disabled"):
        return True
    classes = set(button.get("class") or [])
    return any(cls in classes for cls in selectors.unavailable_classes)


def _court_id(attributes: Mapping[str, str], selectors: Selectors) -> Optional[str]:
    configured = selectors.court_id_attr or ""
    stripped = configured[5:] if configured.startswith("data-") else configured
    return first_match(
        [
            lambda: attributes.get(configured) if configured else None,
            lambda: attributes.get(stripped) if stripped else None,
            lambda: attributes.get("idcourt"),
            lambda: attributes.get("id"),
        ]
    )


def _court_name(court: Tag, court_id: Optional[str], config: BookingConfig, selectors: Selectors) -> str:
    def from_markup() -> Optional[str]:
        if not selectors.court_name:
            return None
        node = court.select_one(selectors.court_name)
        return normalise_whitespace(node.get_text()) if node is not None else None

    return first_match(
        [
            lambda: config.courts.label_for(court_id),
            from_markup,
            lambda: court_id,
            lambda: "unknown",
        ]
    )


def _slot_id(attributes: Mapping[str, str], selectors: Selectors) -> Optional[str]:
    names = [selectors.slot_id_attr, *SLOT_ID_FALLBACK_ATTRS]
    return first_match(_attribute_lookup(attributes, name) for name in names)


def extract_slots(
    document: Document,
    config: BookingConfig,
    settings: HttpSettings,
    log: Optional[RunLogger] = None,
) -> Tuple[FormSnapshot, List[Slot]]:
    """Parse the reservation page into its form snapshot and available slots."""
    if not document:
        return FormSnapshot(), []

    soup = parse_document(document)
    selectors = settings.selectors
    form = extract_form(soup, selectors.reservation_form)
    slots: List[Slot] = []

    courts = soup.select(selectors.court)
    if not courts:
        LOGGER.warning("extract.courts_missing", selector=selectors.court)
        if log is not None:
            log("warning", f"No court block matched selector {selectors.court!r}.")

    for court in courts:
        court_attributes = element_attributes(court)
        court_id = _court_id(court_attributes, selectors)
        court_name = _court_name(court, court_id, config, selectors)

        for button in court.select(selectors.slot_button):
            if _is_unavailable(button, selectors):
                continue
            text = normalise_whitespace(button.get_text())
            if not text:
                continue
            button_attributes = element_attributes(button)
            slots.append(
                Slot(
                    court_id=str(court_id) if court_id else None,
                    court_name=court_name,
                    hour=text,
                    slot_id=_slot_id(button_attributes, selectors),
                    source=SlotSource.CONTENT,
                    raw=button_attributes,
                )
            )

    return form, slots


def _first_key(item: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def _payload_entries(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for container in PAYLOAD_CONTAINERS:
            entries = payload.get(container)
            if isinstance(entries, list):
                return entries
    return []


def extract_slots_from_payload(payload: Any, config: BookingConfig) -> List[Slot]:
    """Parse a structured data-endpoint payload into slots."""
    slots: List[Slot] = []
    for item in _payload_entries(payload):
        if not isinstance(item, Mapping):
            continue
        available = _first_key(item, AVAILABILITY_KEYS)
        if available is False or available == 0 or available == "0":
            continue
        court_id = _first_key(item, COURT_ID_KEYS)
        hour = _first_key(item, HOUR_KEYS)
        if court_id in (None, "") or hour in (None, ""):
            continue
        court_id = str(court_id)
        slot_id = _first_key(item, SLOT_ID_KEYS)
        court_name = first_match(
            [
                lambda: config.courts.label_for(court_id),
                lambda: _first_key(item, COURT_NAME_KEYS),
                lambda: f"Court {court_id}",
            ]
        )
        slots.append(
            Slot(
                court_id=court_id,
                court_name=str(court_name),
                hour=str(hour),
                slot_id=str(slot_id) if slot_id not in (None, "") else None,
                source=SlotSource.DATA_ENDPOINT,
                raw=dict(item),
            )
        )
    return slots
