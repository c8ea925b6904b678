import httpx
import pytest

from court_booking_agent.settings import build_http_settings
from helpers import LOGIN_PAGE, RESERVATION_PAGE, FakeSite, make_config


@pytest.fixture()
def config():
    return make_config()


@pytest.fixture()
def settings(config):
    return build_http_settings(config)


@pytest.fixture()
def site() -> FakeSite:
    fake = FakeSite()
    fake.html("GET", "/connexion", LOGIN_PAGE)
    fake.add(
        "POST",
        "/connexion",
        lambda request: httpx.Response(200, text="welcome", headers={"Set-Cookie": "PHPSESSID=abc123; Path=/"}),
    )
    fake.html("GET", "/membre/reservation.html", RESERVATION_PAGE)
    fake.html("POST", "/membre/reservation.html", "<p>Reservation confirmed</p>")
    return fake
