import asyncio
import copy
import json
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock, patch

import httpx
import pytest

AUTH_TOKEN = "AbCdEfGh0123"
NEW_AUTH_TOKEN = "NeWtOkEn4567"

DEVICE_INFO: Dict[str, Any] = {
    "name": "Shapes 1A2B",
    "serialNo": "S19124C8036",
    "manufacturer": "Nanoleaf",
    "firmwareVersion": "9.2.4",
    "hardwareVersion": "1.0-1",
    "model": "NL42",
    "state": {
        "on": {"value": True},
        "brightness": {"value": 60, "max": 100, "min": 0},
        "hue": {"value": 200, "max": 360, "min": 0},
        "sat": {"value": 80, "max": 100, "min": 0},
        "ct": {"value": 4000, "max": 6500, "min": 1200},
        "colorMode": "effect",
    },
    "effects": {
        "select": "Northern Lights",
        "effectsList": ["Northern Lights", "Forest"],
    },
    "panelLayout": {
        "layout": {
            "numPanels": 3,
            "sideLength": 134,
            "positionData": [
                {"panelId": 11, "x": 0, "y": 0, "o": 0, "shapeType": 7},
                {"panelId": 22, "x": 150, "y": 0, "o": 60, "shapeType": 7},
                {"panelId": 99, "x": 75, "y": -50, "o": 0, "shapeType": 12},
            ],
        },
        "globalOrientation": {"value": 0, "max": 360, "min": 0},
    },
}


def device_info(
    name: Optional[str] = None,
    model: Optional[str] = None,
    effect: Optional[str] = None,
    on: Optional[bool] = None,
) -> Dict[str, Any]:
    """A copy of the device JSON with a few fields replaced."""
    info = copy.deepcopy(DEVICE_INFO)
    if name is not None:
        info["name"] = name
    if model is not None:
        info["model"] = model
    if effect is not None:
        info["effects"]["select"] = effect
    if on is not None:
        info["state"]["on"]["value"] = on
    return info


class MockDeviceAPI:
    """Answers the HTTP API of the devices added to it.

    Hosts that were not added refuse the connection.
    """

    def __init__(self) -> None:
        self.devices: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.requests: List[Tuple[str, str, str, Any]] = []
        self.pairing = True
        self.transport = httpx.MockTransport(self.handler)

    def add(
        self, ip: str, auth_token: str = AUTH_TOKEN, **kwargs: Any
    ) -> Dict[str, Any]:
        info = device_info(**kwargs)
        self.devices[ip] = info
        self.tokens[ip] = auth_token
        return info

    def writes(self, ip: Optional[str] = None) -> List[Tuple[str, str, Any]]:
        """The PUT and POST requests, in order."""
        return [
            (method, path, body)
            for host, method, path, body in self.requests
            if method != "GET" and (ip is None or host == ip)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host not in self.devices:
            raise httpx.ConnectError("Connection refused", request=request)
        body = json.loads(request.content) if request.content else None
        token, _, path = request.url.path[len("/api/v1/") :].partition("/")
        path = f"/{path}"
        if token == "new" and request.method == "POST":
            self.requests.append((host, "POST", "/new", body))
            if not self.pairing:
                return httpx.Response(403)
            return httpx.Response(200, json={"auth_token": NEW_AUTH_TOKEN})
        if token != self.tokens[host]:
            return httpx.Response(401)
        self.requests.append((host, request.method, path, body))
        if request.method != "GET":
            return httpx.Response(204)
        info = self.devices[host]
        if path == "/":
            return httpx.Response(200, json=info)
        if path == "/effects/effectsList":
            return httpx.Response(200, json=info["effects"]["effectsList"])
        if path == "/effects/select":
            return httpx.Response(200, json=info["effects"]["select"])
        return httpx.Response(404)


@pytest.fixture
def mock_api() -> MockDeviceAPI:
    """Fixture for a network of mocked devices."""
    return MockDeviceAPI()


@pytest.fixture
async def mock_datagram_endpoint():
    """Fixture to mock the UDP streaming endpoint."""
    loop = asyncio.get_running_loop()
    endpoints = []

    async def _mock_create_datagram_endpoint(func, remote_addr=None, **kwargs):
        await asyncio.sleep(0)
        transport = MagicMock()
        transport.is_closing.return_value = False
        protocol = func()
        protocol.connection_made(transport)
        endpoints.append((remote_addr, transport, protocol))
        return transport, protocol

    with patch.object(
        loop, "create_datagram_endpoint", _mock_create_datagram_endpoint
    ):
        yield endpoints
