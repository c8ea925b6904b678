import json
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qs

import httpx

from court_booking_agent.config import BookingConfig

LOGIN_URL = "https://club.example.com/connexion"
MEMBER_URL = "https://club.example.com/membre/"

LOGIN_PAGE = """
<html><body>
  <form action="/connexion" method="post">
    <input type="hidden" name="token" value="login-token">
    <input type="text" name="email">
    <input type="password" name="pass">
  </form>
</body></html>
"""

RESERVATION_PAGE = """
<html><body>
<form id="formReservation" action="reservation.html?action=book" method="post">
  <input type="hidden" name="csrf" value="tok-1">
  <input type="checkbox" name="cgv" checked>
  <input type="checkbox" name="newsletter" value="yes">
  <select name="duree">
    <option value="60">1h</option>
    <option value="90" selected>1h30</option>
  </select>
  <textarea name="comment">ignored body</textarea>
</form>
<div class="bloccourt" data-idcourt="1455">
  <div class="blocCourt_top"><h3>  Central   Court </h3></div>
  <div class="blocCourt_container_btn-creneau">
    <button class="btn_creneau" data-idhoraire="h-1">14h00</button>
    <button class="btn_creneau btn_creneau__indispo" data-idhoraire="h-2">15h00</button>
    <button class="btn_creneau" disabled data-idhoraire="h-3">16h00</button>
    <button class="btn_creneau" data-idhoraire="h-4">   </button>
  </div>
</div>
<div class="bloccourt" id="1456">
  <h3 class="court-name">Court B</h3>
  <div class="blocCourt_container_btn-creneau">
    <button class="btn_creneau" value="v-9">18:00</button>
  </div>
</div>
</body></html>
"""

EMPTY_RESERVATION_PAGE = """
<html><body>
<form id="formReservation" action="reservation.html" method="post">
  <input type="hidden" name="csrf" value="tok-2">
</form>
<p>Loading...</p>
</body></html>
"""


def make_config(**overrides) -> BookingConfig:
    data = {
        "login_url": LOGIN_URL,
        "member_url": MEMBER_URL,
        "username": "player@example.com",
        "password": "s3cret",
        "courts": {
            "names": {"1455": "ADN Family", "1456": "Agence Donibane", "1692": "AU P'TIT DOLMEN"},
            "preferences": ["1455", "1456"],
        },
        "use_court_preferences": False,
        "hour_preferences": ["14:00", "16:00", "18:00"],
        "reservation_date": "2026-10-26",
        "partners": [
            {"position": 0, "player_id": "148146", "player_name": "Partner 1"},
            {"position": 1, "player_id": "148147", "player_name": "Partner 2"},
        ],
        "test_mode": False,
    }
    data.update(overrides)
    return BookingConfig.model_validate(data)


class FakeSite:
    """Routes requests to canned responses and records what was sent."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, path)] = handler

    def html(self, method: str, path: str, body: str, status_code: int = 200, headers: Optional[dict] = None) -> None:
        self.add(method, path, lambda request: httpx.Response(status_code, text=body, headers=headers or {}))

    def json(self, method: str, path: str, payload, status_code: int = 200) -> None:
        self.add(method, path, lambda request: httpx.Response(status_code, json=payload))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, text="not found")
        return route(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=True)

    def sent(self, method: str, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.method == method and request.url.path == path]


def form_body(request: httpx.Request) -> Dict[str, str]:
    return {key: values[-1] for key, values in parse_qs(request.content.decode(), keep_blank_values=True).items()}


def json_body(request: httpx.Request):
    return json.loads(request.content.decode())


