import asyncio
import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from nanoleaf_gateway.aiodevice import AIONanoleafDevice
from nanoleaf_gateway.aioscanner import AIONanoleafScanner
from nanoleaf_gateway.const import StreamingVersion
from nanoleaf_gateway.exceptions import (
    DuplicateAliasError,
    ErrorKind,
    InvalidInputError,
    NanoleafConnectionError,
    PairingNotActiveError,
)
from nanoleaf_gateway.protocol import ProtocolHTTP
from nanoleaf_gateway.registry import DeviceRegistry
from nanoleaf_gateway.schemas import PanelColor
from nanoleaf_gateway.tools import (
    PAIRING_INSTRUCTIONS,
    TOOL_NAMES,
    NanoleafTools,
    create_tool_server,
)
from nanoleaf_gateway.utils import HSBColor, RGBColor, hsb_to_rgb

from conftest import AUTH_TOKEN, NEW_AUTH_TOKEN

IP_ADDRESS = "192.168.1.20"
OTHER_IP_ADDRESS = "192.168.1.21"
UNREACHABLE_IP_ADDRESS = "192.168.1.99"

logging.getLogger("nanoleaf_gateway").setLevel(logging.DEBUG)


def _gets(mock_api, path="/"):
    return [
        request
        for request in mock_api.requests
        if request[1] == "GET" and request[2] == path
    ]


@pytest.mark.asyncio
async def test_state_write_freezes_animated_effect(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_set_brightness(40)

    current = hsb_to_rgb(HSBColor(200, 80, 60))
    assert mock_api.writes() == [
        (
            "PUT",
            "/effects",
            ProtocolHTTP().construct_static_panels({11: current, 22: current}),
        ),
        ("PUT", "/state", {"brightness": {"value": 40}}),
    ]
    await device.async_stop()


@pytest.mark.asyncio
async def test_state_write_in_static_mode(mock_api):
    mock_api.add(IP_ADDRESS, effect="*Static*")
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_set_brightness(40)
    assert mock_api.writes() == [("PUT", "/state", {"brightness": {"value": 40}})]

    mock_api.devices[IP_ADDRESS]["effects"]["select"] = "*Solid*"
    await device.async_set_saturation(10)
    assert mock_api.writes()[-1] == ("PUT", "/state", {"sat": {"value": 10}})
    assert len(mock_api.writes()) == 2


@pytest.mark.asyncio
async def test_state_values_are_clamped(mock_api):
    mock_api.add(IP_ADDRESS, effect="*Solid*")
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)

    await device.async_set_hue(400)
    await device.async_set_color_temperature(100)
    await device.async_set_brightness(-5)
    await device.async_set_brightness(49.5)
    await device.async_set_state(on=False, hue=12.4, ct=9000)
    assert [body for _, _, body in mock_api.writes()] == [
        {"hue": {"value": 360}},
        {"ct": {"value": 1200}},
        {"brightness": {"value": 0}},
        {"brightness": {"value": 50}},
        {"on": {"value": False}, "hue": {"value": 12}, "ct": {"value": 6500}},
    ]


@pytest.mark.asyncio
async def test_empty_state_write_is_skipped(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_set_state()
    assert mock_api.writes() == []
    assert _gets(mock_api) == []


@pytest.mark.asyncio
async def test_turn_on_off_skip_reconcile(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_turn_on()
    await device.async_turn_off()
    assert mock_api.writes() == [
        ("PUT", "/state", {"on": {"value": True}}),
        ("PUT", "/state", {"on": {"value": False}}),
    ]
    assert _gets(mock_api) == []


@pytest.mark.asyncio
async def test_set_color_skips_controllers(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)

    await device.async_set_color(RGBColor(255, 0, 0))
    assert mock_api.writes() == [
        (
            "PUT",
            "/effects",
            {
                "write": {
                    "command": "display",
                    "animType": "static",
                    "animData": "2 11 1 255 0 0 0 1 22 1 255 0 0 0 1",
                    "loop": False,
                    "palette": [],
                }
            },
        )
    ]

    # the panel ids are only fetched once
    await device.async_set_color(RGBColor(0, 0, 255))
    assert len(_gets(mock_api)) == 1

    device.invalidate_panel_cache()
    await device.async_set_color(RGBColor(0, 0, 255))
    assert len(_gets(mock_api)) == 2


@pytest.mark.asyncio
async def test_set_panel_colors(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_set_panel_colors({22: RGBColor(0, 255, 0)})
    assert mock_api.writes()[0][2]["write"]["animData"] == "1 22 1 0 255 0 0 1"
    assert _gets(mock_api) == []


@pytest.mark.asyncio
async def test_effects(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    assert await device.async_list_effects() == ["Northern Lights", "Forest"]
    assert await device.async_get_current_effect() == "Northern Lights"
    await device.async_set_effect("Forest")
    assert mock_api.writes() == [("PUT", "/effects", {"select": "Forest"})]


@pytest.mark.asyncio
async def test_create_animation_adds_then_selects(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_create_animation(
        "Sunset", "fade", [HSBColor(30, 100, 100), HSBColor(300, 100, 100)]
    )
    writes = mock_api.writes()
    assert len(writes) == 2
    add = writes[0][2]["write"]
    assert add["command"] == "add"
    assert add["animName"] == "Sunset"
    assert add["palette"][1] == {
        "hue": 300,
        "saturation": 100,
        "brightness": 100,
        "probability": 50,
    }
    assert writes[1] == ("PUT", "/effects", {"select": "Sunset"})

    await device.async_delete_animation("Sunset")
    assert mock_api.writes()[-1] == (
        "PUT",
        "/effects",
        {"write": {"command": "delete", "animName": "Sunset"}},
    )

    with pytest.raises(InvalidInputError):
        await device.async_display_animation("sparkle", [HSBColor(0, 0, 100)])
    assert len(mock_api.writes()) == 3


@pytest.mark.asyncio
async def test_identify_and_test_connection(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_identify()
    assert mock_api.writes() == [("PUT", "/identify", {})]
    assert await device.async_test_connection() == {
        "name": "Shapes 1A2B",
        "model": "NL42",
        "firmwareVersion": "9.2.4",
        "panels": 3,
        "power": "on",
        "brightness": 60,
    }


@pytest.mark.asyncio
async def test_connection_errors(mock_api):
    device = AIONanoleafDevice(
        UNREACHABLE_IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport
    )
    with pytest.raises(NanoleafConnectionError) as exc_info:
        await device.async_get_info()
    assert exc_info.value.kind is ErrorKind.CONNECTIVITY
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, "wrong", transport=mock_api.transport)
    with pytest.raises(NanoleafConnectionError) as exc_info:
        await device.async_turn_on()
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
    assert IP_ADDRESS in str(exc_info.value)


@pytest.mark.asyncio
async def test_info_must_be_an_object(mock_api):
    mock_api.add(IP_ADDRESS)
    mock_api.devices[IP_ADDRESS] = ["Shapes 1A2B"]
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    with pytest.raises(NanoleafConnectionError) as exc_info:
        await device.async_get_info()
    assert str(exc_info.value) == f"{IP_ADDRESS}: GET / returned list, not an object"


@pytest.mark.asyncio
async def test_streaming_v2(mock_api, mock_datagram_endpoint):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    assert not device.streaming_active
    assert device.streaming_version is None

    await device.async_initialize_streaming()
    assert device.streaming_active
    assert device.streaming_version is StreamingVersion.V2
    assert device.panel_ids == [11, 22, 99]
    assert mock_api.writes() == [
        (
            "PUT",
            "/effects",
            {
                "write": {
                    "command": "display",
                    "animType": "extControl",
                    "extControlVersion": "v2",
                }
            },
        )
    ]
    remote_addr, transport, _ = mock_datagram_endpoint[0]
    assert remote_addr == (IP_ADDRESS, 60222)

    await device.async_stream_colors({11: RGBColor(255, 0, 0), 22: (0, 0, 255)})
    transport.sendto.assert_called_once_with(
        bytearray(
            [0, 2, 0, 11, 255, 0, 0, 0, 0, 1, 0, 22, 0, 0, 255, 0, 0, 1]
        )
    )
    assert len(mock_datagram_endpoint) == 1


@pytest.mark.asyncio
async def test_streaming_v1_for_light_panels(mock_api, mock_datagram_endpoint):
    mock_api.add(IP_ADDRESS, model="NL22")
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_stream_colors([(11, RGBColor(1, 2, 3))])
    assert device.streaming_version is StreamingVersion.V1
    remote_addr, transport, _ = mock_datagram_endpoint[0]
    assert remote_addr == (IP_ADDRESS, 60221)
    assert mock_api.writes()[0][2]["write"]["extControlVersion"] == "v1"
    transport.sendto.assert_called_once_with(bytearray([1, 11, 1, 1, 2, 3, 0, 1]))

    with pytest.raises(InvalidInputError):
        await device.async_stream_colors({256: RGBColor(1, 2, 3)})
    assert transport.sendto.call_count == 1


@pytest.mark.asyncio
async def test_streaming_rejects_panel_ids_before_ext_control(
    mock_api, mock_datagram_endpoint
):
    mock_api.add(IP_ADDRESS, model="NL22")
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    with pytest.raises(InvalidInputError):
        await device.async_stream_colors({300: RGBColor(1, 2, 3)})
    assert mock_api.writes() == []
    assert mock_datagram_endpoint == []
    assert not device.streaming_active


@pytest.mark.asyncio
async def test_streaming_channel_errors(mock_api):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    loop = asyncio.get_running_loop()
    unreachable = OSError(101, "Network is unreachable")
    with patch.object(
        loop, "create_datagram_endpoint", AsyncMock(side_effect=unreachable)
    ):
        with pytest.raises(NanoleafConnectionError) as exc_info:
            await device.async_initialize_streaming()
    assert exc_info.value.kind is ErrorKind.CONNECTIVITY
    assert exc_info.value.__cause__ is unreachable
    assert not device.streaming_active


@pytest.mark.asyncio
async def test_streaming_send_errors(mock_api, mock_datagram_endpoint):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_initialize_streaming()
    _, transport, _ = mock_datagram_endpoint[0]
    transport.sendto.side_effect = OSError(101, "Network is unreachable")
    with pytest.raises(NanoleafConnectionError) as exc_info:
        await device.async_stream_colors({11: RGBColor(1, 2, 3)})
    assert isinstance(exc_info.value.__cause__, OSError)


@pytest.mark.asyncio
async def test_stream_solid_color_includes_controllers(
    mock_api, mock_datagram_endpoint
):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await device.async_stream_solid_color(RGBColor(0, 255, 0))
    _, transport, _ = mock_datagram_endpoint[0]
    frame = transport.sendto.call_args[0][0]
    assert len(frame) == 2 + 8 * 3
    assert frame[0:2] == bytearray([0, 3])
    assert frame[18:20] == bytearray([0, 99])


@pytest.mark.asyncio
async def test_streaming_initializes_once(mock_api, mock_datagram_endpoint):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    await asyncio.gather(
        device.async_stream_colors({11: RGBColor(255, 0, 0)}),
        device.async_stream_colors({22: RGBColor(0, 255, 0)}),
    )
    assert len(mock_datagram_endpoint) == 1
    assert len(mock_api.writes()) == 1
    _, transport, _ = mock_datagram_endpoint[0]
    assert transport.sendto.call_count == 2


@pytest.mark.asyncio
async def test_stop_streaming(mock_api, mock_datagram_endpoint):
    mock_api.add(IP_ADDRESS)
    device = AIONanoleafDevice(IP_ADDRESS, AUTH_TOKEN, transport=mock_api.transport)
    # nothing to close yet
    await device.async_stop_streaming()
    assert mock_datagram_endpoint == []

    await device.async_initialize_streaming()
    _, transport, _ = mock_datagram_endpoint[0]
    await device.async_stop_streaming()
    transport.close.assert_called_once()
    assert not device.streaming_active

    # the next frame opens a new channel
    await device.async_stream_colors({11: RGBColor(1, 1, 1)})
    assert len(mock_datagram_endpoint) == 2
    assert device.streaming_active

    # initializing again replaces the open channel
    await device.async_initialize_streaming()
    _, second_transport, _ = mock_datagram_endpoint[1]
    second_transport.close.assert_called_once()
    assert len(mock_datagram_endpoint) == 3

    await device.async_stop()
    assert not device.streaming_active


@pytest.mark.asyncio
async def test_create_auth_token(mock_api):
    mock_api.add(IP_ADDRESS)
    auth_token = await AIONanoleafDevice.async_create_auth_token(
        IP_ADDRESS, transport=mock_api.transport
    )
    assert auth_token == NEW_AUTH_TOKEN
    assert mock_api.writes() == [("POST", "/new", {})]

    mock_api.pairing = False
    with pytest.raises(PairingNotActiveError) as exc_info:
        await AIONanoleafDevice.async_create_auth_token(
            IP_ADDRESS, transport=mock_api.transport
        )
    assert exc_info.value.kind is ErrorKind.PAIRING_NOT_ACTIVE
    assert exc_info.value.ipaddr == IP_ADDRESS

    with pytest.raises(NanoleafConnectionError):
        await AIONanoleafDevice.async_create_auth_token(
            UNREACHABLE_IP_ADDRESS, transport=mock_api.transport
        )


@pytest.mark.asyncio
async def test_refresh_names(mock_api):
    mock_api.add(IP_ADDRESS)
    mock_api.add(OTHER_IP_ADDRESS)
    registry = DeviceRegistry(transport=mock_api.transport)
    registry.register(IP_ADDRESS, AUTH_TOKEN)
    registry.register(OTHER_IP_ADDRESS, AUTH_TOKEN)
    registry.register(UNREACHABLE_IP_ADDRESS, AUTH_TOKEN)
    registry.register("192.168.1.22", AUTH_TOKEN, "desk")
    mock_api.add("192.168.1.22", name="Canvas 77AA", model="NL29")

    await registry.async_refresh_names()
    assert registry.aliases == [
        OTHER_IP_ADDRESS,
        UNREACHABLE_IP_ADDRESS,
        "desk",
        "Shapes 1A2B",
    ]
    assert registry.resolve("shapes 1a2b").ip == IP_ADDRESS
    # the second device has the same hardware name and keeps its address
    other = registry.resolve(OTHER_IP_ADDRESS)
    assert other.alias == OTHER_IP_ADDRESS
    assert other.name == "Shapes 1A2B"
    assert registry.resolve(UNREACHABLE_IP_ADDRESS).name is None
    desk = registry.resolve("desk")
    assert desk.name == "Canvas 77AA"
    assert desk.model == "NL29"

    # a later refresh leaves upgraded aliases alone
    await registry.async_refresh_names()
    assert registry.resolve(IP_ADDRESS).alias == "Shapes 1A2B"
    await registry.async_stop()


@pytest.mark.asyncio
async def test_list_status(mock_api):
    mock_api.add(IP_ADDRESS)
    mock_api.add(OTHER_IP_ADDRESS, on=False)
    registry = DeviceRegistry(transport=mock_api.transport)
    registry.register(IP_ADDRESS, AUTH_TOKEN, "desk")
    registry.register(OTHER_IP_ADDRESS, AUTH_TOKEN, "shelf")
    registry.register(UNREACHABLE_IP_ADDRESS, AUTH_TOKEN, "attic")
    assert await registry.async_list_status() == [
        {
            "alias": "desk",
            "ip": IP_ADDRESS,
            "name": None,
            "model": None,
            "status": "on",
        },
        {
            "alias": "shelf",
            "ip": OTHER_IP_ADDRESS,
            "name": None,
            "model": None,
            "status": "off",
        },
        {
            "alias": "attic",
            "ip": UNREACHABLE_IP_ADDRESS,
            "name": None,
            "model": None,
            "status": "unreachable",
        },
    ]


@pytest.mark.asyncio
async def test_register_verified(mock_api):
    mock_api.add(IP_ADDRESS)
    mock_api.add(OTHER_IP_ADDRESS, name="Lines 0F0F", model="NL59")
    registry = DeviceRegistry(transport=mock_api.transport)

    entry = await registry.async_register_verified(IP_ADDRESS, AUTH_TOKEN)
    assert entry.alias == "Shapes 1A2B"
    assert entry.model == "NL42"

    entry = await registry.async_register_verified(
        OTHER_IP_ADDRESS, AUTH_TOKEN, "Shelf"
    )
    assert entry.alias == "Shelf"
    assert entry.name == "Lines 0F0F"

    with pytest.raises(DuplicateAliasError) as exc_info:
        await registry.async_register_verified(OTHER_IP_ADDRESS, AUTH_TOKEN, "shelf")
    assert exc_info.value.kind is ErrorKind.DUPLICATE_ALIAS

    with pytest.raises(NanoleafConnectionError):
        await registry.async_register_verified(UNREACHABLE_IP_ADDRESS, AUTH_TOKEN)
    assert registry.aliases == ["Shapes 1A2B", "Shelf"]

    assert (await registry.async_check_credentials(OTHER_IP_ADDRESS, AUTH_TOKEN))[
        "model"
    ] == "NL59"
    assert len(registry) == 2


@pytest.mark.asyncio
async def test_remove_closes_connection(mock_api):
    registry = DeviceRegistry(transport=mock_api.transport)
    entry = registry.register(IP_ADDRESS, AUTH_TOKEN, "desk")
    with patch.object(entry.device, "async_stop", AsyncMock()) as mock_stop:
        assert registry.remove("desk")
        await asyncio.sleep(0)
    mock_stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_scan_subnet(mock_api):
    mock_api.add("10.0.0.7")
    mock_api.add("10.0.0.3")
    scanner = AIONanoleafScanner(transport=mock_api.transport)
    assert await scanner.async_scan_subnet("10.0.0") == [
        {"ip": "10.0.0.3"},
        {"ip": "10.0.0.7"},
    ]
    assert scanner.found_devices == [{"ip": "10.0.0.3"}, {"ip": "10.0.0.7"}]

    with pytest.raises(InvalidInputError):
        await scanner.async_scan_subnet("10.0")
    with pytest.raises(InvalidInputError):
        await scanner.async_scan_subnet("300.0.0")


@pytest.mark.asyncio
async def test_tools(mock_api):
    mock_api.add(IP_ADDRESS, effect="*Solid*")
    registry = DeviceRegistry(transport=mock_api.transport)
    tools = NanoleafTools(registry)

    assert (await tools.turn_on()).startswith("Error: No devices registered.")
    assert (await tools.list_devices()).startswith("No devices registered.")

    registry.register(IP_ADDRESS, AUTH_TOKEN, "desk")
    assert await tools.turn_on() == "Nanoleaf turned on"
    assert await tools.set_brightness(40) == "Brightness set to 40%"
    assert await tools.set_color("red", device="DESK") == "Color set to red"
    assert mock_api.writes()[-1] == (
        "PUT",
        "/state",
        {
            "on": {"value": True},
            "brightness": {"value": 100},
            "hue": {"value": 0},
            "sat": {"value": 100},
        },
    )
    assert await tools.set_color("bogus") == 'Error: Invalid color: "bogus"'
    assert (
        await tools.set_panel_colors([PanelColor(panelId=11, r=255, g=0, b=0)])
        == "Set colors for 1 panels"
    )
    assert await tools.list_devices() == (
        f"Registered devices (1):\n  desk - {IP_ADDRESS} [on]"
    )
    assert "Connection successful!" in await tools.test_connection()
    assert await tools.remove_device("attic") == 'Error: Device "attic" not found'

    registry.register(OTHER_IP_ADDRESS, AUTH_TOKEN, "shelf")
    assert await tools.identify() == (
        "Error: Multiple devices registered. Specify which device: desk, shelf"
    )
    assert await tools.turn_off(device="kitchen") == (
        'Error: Device "kitchen" not found. Available: desk, shelf'
    )
    # shelf was never added to the network
    assert (await tools.get_current_effect(device="shelf")).startswith(
        f"Error: {OTHER_IP_ADDRESS}: GET /effects/select failed"
    )


@pytest.mark.asyncio
async def test_pairing_tool_instructions():
    tools = NanoleafTools(DeviceRegistry())
    with patch.object(
        AIONanoleafDevice,
        "async_create_auth_token",
        AsyncMock(side_effect=PairingNotActiveError(IP_ADDRESS)),
    ):
        assert await tools.create_auth_token(IP_ADDRESS) == PAIRING_INSTRUCTIONS
    with patch.object(
        AIONanoleafDevice,
        "async_create_auth_token",
        AsyncMock(return_value=NEW_AUTH_TOKEN),
    ):
        result = await tools.create_auth_token(IP_ADDRESS)
    assert f"Your new auth token: {NEW_AUTH_TOKEN}" in result
    assert f"{IP_ADDRESS}:{NEW_AUTH_TOKEN}" in result


@pytest.mark.asyncio
async def test_tool_server_lists_every_tool():
    server = create_tool_server(DeviceRegistry())
    tools = await server.list_tools()
    assert sorted(tool.name for tool in tools) == sorted(TOOL_NAMES)
    set_brightness = next(tool for tool in tools if tool.name == "set_brightness")
    assert "brightness" in set_brightness.inputSchema["properties"]
    assert "self" not in set_brightness.inputSchema["properties"]
