import asyncio
import logging
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient
import pytest

from nanoleaf_gateway.aiodevice import AIONanoleafDevice
from nanoleaf_gateway.exceptions import PairingNotActiveError
from nanoleaf_gateway.gateway import create_app
from nanoleaf_gateway.registry import DeviceRegistry
from nanoleaf_gateway.rest import create_rest_api

from conftest import AUTH_TOKEN, NEW_AUTH_TOKEN

IP_ADDRESS = "192.168.1.20"
OTHER_IP_ADDRESS = "192.168.1.21"
UNREACHABLE_IP_ADDRESS = "192.168.1.99"


@pytest.fixture
def registry(mock_api):
    """Fixture for a registry whose devices talk to the mocked network."""
    return DeviceRegistry(transport=mock_api.transport)


@pytest.fixture
def client(registry):
    with TestClient(create_rest_api(registry)) as client:
        yield client


def test_not_configured(client):
    response = client.post("/device/on")
    assert response.status_code == 400
    assert response.json()["error"].startswith("No devices registered.")


def test_turn_on_is_accepted(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    registry.register(IP_ADDRESS, AUTH_TOKEN, "desk")
    response = client.post("/device/on")
    assert response.status_code == 202
    assert response.json() == {"message": "Device turning on"}
    assert mock_api.writes() == [("PUT", "/state", {"on": {"value": True}})]


def test_device_selection(client, registry, mock_api):
    mock_api.add(IP_ADDRESS, effect="*Solid*")
    registry.register(IP_ADDRESS, AUTH_TOKEN, "desk")
    registry.register(OTHER_IP_ADDRESS, AUTH_TOKEN, "shelf")

    response = client.put("/device/brightness", json={"brightness": 30})
    assert response.status_code == 400
    assert response.json() == {
        "error": "Multiple devices registered. Specify which device: desk, shelf"
    }

    response = client.put("/device/brightness?device=kitchen", json={"brightness": 30})
    assert response.status_code == 400
    assert response.json() == {
        "error": 'Device "kitchen" not found. Available: desk, shelf'
    }

    response = client.put("/device/brightness?device=Desk", json={"brightness": 30})
    assert response.status_code == 202
    assert response.json() == {"message": "Brightness set to 30%"}
    assert mock_api.writes(IP_ADDRESS) == [
        ("PUT", "/state", {"brightness": {"value": 30}})
    ]

    response = client.put(
        f"/device/hue?device={IP_ADDRESS}", json={"hue": 120}
    )
    assert response.status_code == 202
    assert mock_api.writes(IP_ADDRESS)[-1] == ("PUT", "/state", {"hue": {"value": 120}})


def test_invalid_bodies(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    registry.register(IP_ADDRESS, AUTH_TOKEN)

    response = client.put("/device/brightness", json={})
    assert response.status_code == 400
    assert "brightness" in response.json()["error"]

    response = client.put("/device/color", json={"color": "notacolor"})
    assert response.status_code == 400
    assert response.json() == {"error": 'Invalid color: "notacolor"'}

    response = client.put("/device/effects", json={"effectName": ""})
    assert response.status_code == 400

    response = client.put("/device/panels/colors", json={"panels": []})
    assert response.status_code == 400
    assert mock_api.writes() == []


def test_set_color_and_state(client, registry, mock_api):
    mock_api.add(IP_ADDRESS, effect="*Static*")
    registry.register(IP_ADDRESS, AUTH_TOKEN)

    response = client.put("/device/color", json={"color": "#00ff00"})
    assert response.status_code == 202
    assert response.json() == {"message": "Color set to #00ff00"}
    assert mock_api.writes()[-1][2] == {
        "on": {"value": True},
        "hue": {"value": 120},
        "sat": {"value": 100},
        "brightness": {"value": 100},
    }

    response = client.put("/device/state", json={"color": "blue", "brightness": 20})
    assert response.status_code == 202
    assert mock_api.writes()[-1][2] == {
        "hue": {"value": 240},
        "sat": {"value": 100},
        "brightness": {"value": 20},
    }


def test_panels(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    registry.register(IP_ADDRESS, AUTH_TOKEN)

    response = client.get("/device/panels")
    assert response.status_code == 200
    layout = response.json()
    assert layout["numPanels"] == 3
    assert [p["panelId"] for p in layout["positions"]] == [11, 22, 99]
    assert layout["bounds"]["width"] == 150

    response = client.put(
        "/device/panels/colors",
        json={"panels": [{"panelId": 22, "r": 0, "g": 0, "b": 300}]},
    )
    assert response.status_code == 202
    assert response.json() == {"message": "Set colors for 1 panels"}
    assert mock_api.writes()[-1][2]["write"]["animData"] == "1 22 1 0 0 255 0 1"

    response = client.put("/device/panels/solid", json={"r": 1, "g": 2, "b": 3})
    assert response.status_code == 202
    assert (
        mock_api.writes()[-1][2]["write"]["animData"]
        == "2 11 1 1 2 3 0 1 22 1 1 2 3 0 1"
    )


def test_effects(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    registry.register(IP_ADDRESS, AUTH_TOKEN)
    assert client.get("/device/effects").json() == {
        "effects": ["Northern Lights", "Forest"]
    }
    assert client.get("/device/effects/current").json() == {
        "effect": "Northern Lights"
    }
    response = client.put("/device/effects", json={"effectName": "Forest"})
    assert response.status_code == 202
    assert mock_api.writes() == [("PUT", "/effects", {"select": "Forest"})]


def test_unreachable_device(client, registry):
    registry.register(UNREACHABLE_IP_ADDRESS, AUTH_TOKEN)
    response = client.get("/device")
    assert response.status_code == 502
    assert response.json()["error"].startswith(
        f"{UNREACHABLE_IP_ADDRESS}: GET / failed"
    )


def test_streaming_start_unreachable_channel(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    registry.register(IP_ADDRESS, AUTH_TOKEN)
    with patch.object(
        asyncio.BaseEventLoop,
        "create_datagram_endpoint",
        AsyncMock(side_effect=OSError(101, "Network is unreachable")),
    ):
        response = client.post("/device/streaming/start")
    assert response.status_code == 502
    assert response.json()["error"].startswith(
        f"{IP_ADDRESS}: Could not open streaming channel to port 60222"
    )


def test_background_failure_is_logged(client, registry, caplog):
    registry.register(UNREACHABLE_IP_ADDRESS, AUTH_TOKEN)
    with caplog.at_level(logging.ERROR, logger="nanoleaf_gateway"):
        response = client.post("/device/identify")
    assert response.status_code == 202
    assert f"{UNREACHABLE_IP_ADDRESS}: async_identify failed" in caplog.text


def test_device_info(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    registry.register(IP_ADDRESS, AUTH_TOKEN)
    response = client.get("/device")
    assert response.status_code == 200
    assert response.json()["name"] == "Shapes 1A2B"
    assert response.json()["panelLayout"]["layout"]["numPanels"] == 3


def test_manage_devices(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    mock_api.add(OTHER_IP_ADDRESS, on=False)

    response = client.post(
        "/devices", json={"ip": IP_ADDRESS, "authToken": AUTH_TOKEN}
    )
    assert response.status_code == 201
    assert response.json() == {
        "alias": "Shapes 1A2B",
        "ip": IP_ADDRESS,
        "name": "Shapes 1A2B",
        "model": "NL42",
    }

    response = client.post(
        "/devices",
        json={"ip": OTHER_IP_ADDRESS, "authToken": AUTH_TOKEN, "alias": "shapes 1a2b"},
    )
    assert response.status_code == 409

    response = client.post(
        "/devices",
        json={"ip": OTHER_IP_ADDRESS, "authToken": AUTH_TOKEN, "alias": "shelf"},
    )
    assert response.status_code == 201

    response = client.post(
        "/devices", json={"ip": UNREACHABLE_IP_ADDRESS, "authToken": AUTH_TOKEN}
    )
    assert response.status_code == 502

    response = client.get("/devices")
    assert response.status_code == 200
    assert [
        (device["alias"], device["status"]) for device in response.json()["devices"]
    ] == [("Shapes 1A2B", "on"), ("shelf", "off")]

    response = client.delete("/devices/attic")
    assert response.status_code == 404
    assert response.json() == {"error": 'Device "attic" not found'}

    response = client.delete("/devices/SHELF")
    assert response.status_code == 200
    assert registry.aliases == ["Shapes 1A2B"]


def test_streaming_routes(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    entry = registry.register(IP_ADDRESS, AUTH_TOKEN)
    with patch.object(
        entry.device, "async_initialize_streaming", AsyncMock()
    ) as mock_init, patch.object(
        entry.device, "async_stream_colors", AsyncMock()
    ) as mock_stream:
        response = client.post("/device/streaming/start")
        assert response.status_code == 200
        assert response.json() == {"message": "Streaming mode initialized"}
        mock_init.assert_awaited_once()

        response = client.post(
            "/device/streaming/panels",
            json={"panels": [{"panelId": 11, "r": 255, "g": 0, "b": 0}]},
        )
        assert response.status_code == 202
        mock_stream.assert_awaited_once_with({11: (255, 0, 0)})

    response = client.post("/device/streaming/stop")
    assert response.status_code == 200
    assert response.json() == {"message": "Streaming mode stopped"}


def test_auth_token(client):
    with patch.object(
        AIONanoleafDevice,
        "async_create_auth_token",
        AsyncMock(side_effect=PairingNotActiveError(IP_ADDRESS)),
    ):
        response = client.post("/auth-token", json={"ip": IP_ADDRESS})
    assert response.status_code == 403
    assert "Pairing mode not active" in response.json()["error"]

    with patch.object(
        AIONanoleafDevice,
        "async_create_auth_token",
        AsyncMock(return_value=NEW_AUTH_TOKEN),
    ):
        response = client.post("/auth-token", json={"ip": IP_ADDRESS})
    assert response.status_code == 200
    assert response.json() == {"authToken": NEW_AUTH_TOKEN}


def test_test_connection(client, registry, mock_api):
    mock_api.add(IP_ADDRESS)
    mock_api.add(OTHER_IP_ADDRESS, name="Lines 0F0F")
    registry.register(IP_ADDRESS, AUTH_TOKEN, "desk")

    response = client.post("/test-connection")
    assert response.status_code == 200
    assert response.json()["alias"] == "desk"
    assert response.json()["panels"] == 3

    response = client.post(
        "/test-connection", json={"ip": OTHER_IP_ADDRESS, "authToken": AUTH_TOKEN}
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Lines 0F0F"
    assert len(registry) == 1


def test_discover(client):
    with patch("nanoleaf_gateway.rest.AIONanoleafScanner") as mock_scanner:
        scanner = mock_scanner.return_value
        scanner.async_scan_subnet = AsyncMock(return_value=[{"ip": "10.0.0.5"}])
        scanner.async_discover_mdns = AsyncMock(
            return_value=[{"ip": "10.0.0.6", "name": "Shapes 1A2B", "id": "X1"}]
        )
        response = client.post(
            "/discover", json={"method": "scan", "subnet": "10.0.0"}
        )
        assert response.status_code == 200
        assert response.json() == {"devices": [{"ip": "10.0.0.5"}]}
        scanner.async_scan_subnet.assert_awaited_once_with("10.0.0")

        response = client.post("/discover")
        assert response.status_code == 200
        assert response.json()["devices"][0]["id"] == "X1"

    response = client.post("/discover", json={"method": "scan", "subnet": "10"})
    assert response.status_code == 400
    response = client.post("/discover", json={"method": "broadcast"})
    assert response.status_code == 400


def test_gateway_app(mock_api):
    mock_api.add(IP_ADDRESS)
    registry = DeviceRegistry(transport=mock_api.transport)
    registry.register(IP_ADDRESS, AUTH_TOKEN)
    with TestClient(create_app(registry)) as client:
        # the alias is upgraded to the hardware name on startup
        assert registry.aliases == ["Shapes 1A2B"]
        response = client.get("/api/openapi.json")
        assert response.status_code == 200
        assert "/device/brightness" in response.json()["paths"]
        assert client.get("/api/docs").status_code == 200
        assert client.get("/api/devices").json()["devices"][0]["status"] == "on"
