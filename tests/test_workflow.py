from datetime import date

import pytest

from court_booking_agent.errors import ConfigurationError, NoEligibleSlotError
from court_booking_agent.models import SlotSource
from court_booking_agent.run_log import RecordingRunLogger
from court_booking_agent.settings import build_http_settings
from court_booking_agent.workflow import mock_slots, run
from helpers import make_config

MOCK_HTTP = {
    "mode": "mock",
    "mock_data": {
        "available_slots": [
            {"court_id": "1455", "hour": "14:00"},
            {"court_id": "1692", "hour": "16:00"},
            {"court_id": "1456", "court_name": "Annexe", "hour": "18:00", "slot_id": "m-3"},
        ],
        "on_success_message": "Mock reservation recorded.",
    },
}


@pytest.mark.asyncio
async def test_live_run_books_best_slot(site, config):
    recorder = RecordingRunLogger()
    outcome = await run(config, recorder, client=site.client())

    assert outcome.target.iso == "2026-10-26"
    assert outcome.selection.slot.court_id == "1455"
    assert outcome.selection.slot.hour == "14h00"
    assert outcome.submitted is True
    assert outcome.details == {"mode": "live", "test_mode": False, "status_code": 200}
    assert recorder.messages()[0] == "Target reservation date: 26/10/2026"
    assert "Selected slot: 14h00 on ADN Family (court 1455)." in recorder.messages("success")
    assert recorder.messages("success")[-1] == "HTTP workflow finished."
    assert len(site.sent("POST", "/membre/reservation.html")) == 1


@pytest.mark.asyncio
async def test_live_run_in_test_mode_does_not_submit(site):
    config = make_config(test_mode=True)
    outcome = await run(config, RecordingRunLogger(), client=site.client())
    assert outcome.submitted is False
    assert outcome.details == {"mode": "live", "test_mode": True}
    assert site.sent("POST", "/membre/reservation.html") == []


@pytest.mark.asyncio
async def test_live_run_prefers_listed_court_when_enabled(site):
    config = make_config(
        use_court_preferences=True,
        courts={"names": {}, "preferences": ["1456", "1455"]},
        hour_preferences=["14:00", "18:00"],
    )
    outcome = await run(config, RecordingRunLogger(), client=site.client())
    assert outcome.selection.slot.court_id == "1456"
    assert outcome.selection.slot.hour == "18:00"
    assert outcome.selection.court_score == 0


@pytest.mark.asyncio
async def test_live_run_without_eligible_slot_never_submits(site):
    config = make_config(hour_preferences=["08:00"])
    with pytest.raises(NoEligibleSlotError) as excinfo:
        await run(config, RecordingRunLogger(), client=site.client())
    assert excinfo.value.mock is False
    assert excinfo.value.candidates == 2
    assert excinfo.value.target_date == "2026-10-26"
    assert site.sent("POST", "/membre/reservation.html") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["login_url", "member_url", "username", "password"])
async def test_live_run_requires_credentials_and_urls(site, missing):
    config = make_config(**{missing: None})
    with pytest.raises(ConfigurationError) as excinfo:
        await run(config, RecordingRunLogger(), client=site.client())
    assert missing in str(excinfo.value)
    assert site.requests == []


@pytest.mark.asyncio
async def test_mock_run_picks_preferred_hour_without_network(site):
    config = make_config(hour_preferences=["18:00"], http=MOCK_HTTP, login_url=None, password=None)
    recorder = RecordingRunLogger()
    outcome = await run(config, recorder, client=site.client())

    assert outcome.selection.slot.hour == "18:00"
    assert outcome.selection.slot.slot_id == "m-3"
    assert outcome.selection.slot.source is SlotSource.MOCK
    assert outcome.submitted is False
    assert outcome.details == {"mode": "mock"}
    assert "Simulation: slot 18:00 selected on Annexe." in recorder.messages("success")
    assert "Mock reservation recorded." in recorder.messages("info")
    assert site.requests == []


@pytest.mark.asyncio
async def test_mock_run_order_does_not_change_winner():
    reversed_http = {
        "mode": "mock",
        "mock_data": {"available_slots": list(reversed(MOCK_HTTP["mock_data"]["available_slots"]))},
    }
    config = make_config(hour_preferences=["18:00"], http=reversed_http)
    outcome = await run(config, RecordingRunLogger())
    assert outcome.selection.slot.court_id == "1456"


@pytest.mark.asyncio
async def test_mock_run_without_match_reports_mock_failure():
    config = make_config(hour_preferences=["09:00"], http=MOCK_HTTP)
    with pytest.raises(NoEligibleSlotError) as excinfo:
        await run(config, RecordingRunLogger())
    assert excinfo.value.mock is True
    assert str(excinfo.value).startswith("Mock mode: no eligible slot for 2026-10-26")


@pytest.mark.asyncio
async def test_fallback_winner_is_announced():
    http = {"mode": "mock", "mock_data": {"available_slots": [{"court_id": "1455", "hour": "14h20"}]}}
    config = make_config(hour_preferences=["14:00"], http=http)
    recorder = RecordingRunLogger()
    outcome = await run(config, recorder)

    assert outcome.selection.slot.fallback is True
    assert outcome.selection.slot.difference_minutes == 20
    assert any("20 minutes from 14:00" in message for message in recorder.messages("warning"))


@pytest.mark.asyncio
async def test_run_uses_advance_from_given_day():
    config = make_config(reservation_date=None, booking_advance=2, hour_preferences=["18:00"], http=MOCK_HTTP)
    outcome = await run(config, RecordingRunLogger(), today=date(2026, 12, 30))
    assert outcome.target.iso == "2027-01-01"


def test_mock_slots_fall_back_to_configured_court_names():
    config = make_config(http=MOCK_HTTP)
    slots = mock_slots(config, build_http_settings(config))
    assert [slot.court_name for slot in slots] == ["ADN Family", "AU P'TIT DOLMEN", "Annexe"]


@pytest.mark.asyncio
async def test_malformed_selector_fails_before_any_request(site):
    config = make_config(http={"selectors": {"court": "div[["}})
    with pytest.raises(ConfigurationError):
        await run(config, RecordingRunLogger(), client=site.client())
    assert site.requests == []


@pytest.mark.asyncio
async def test_out_of_range_advance_is_a_configuration_error():
    config = make_config(reservation_date=None, booking_advance="1e9", http=MOCK_HTTP)
    with pytest.raises(ConfigurationError):
        await run(config, RecordingRunLogger(), today=date(2026, 10, 19))
