import unittest

import pytest

from nanoleaf_gateway.config import (
    DeviceEntry,
    GatewayConfig,
    parse_device_entry,
    parse_devices,
)
from nanoleaf_gateway.const import PLUGIN_UUIDS, StreamingVersion
from nanoleaf_gateway.exceptions import (
    AmbiguousSelectionError,
    DeviceNotFoundError,
    ErrorKind,
    InvalidInputError,
    NotConfiguredError,
)
from nanoleaf_gateway.gateway import create_registry, parse_args
from nanoleaf_gateway.models import DeviceInfo, PanelLayout
from nanoleaf_gateway.protocol import (
    ProtocolHTTP,
    ProtocolStreamingV1,
    ProtocolStreamingV2,
    streaming_protocol,
    streaming_version_for_model,
)
from nanoleaf_gateway.registry import DeviceRegistry
from nanoleaf_gateway.utils import (
    HSBColor,
    RGBColor,
    color_object_to_rgb,
    color_tuple_to_string,
    get_color_names_list,
    hsb_to_rgb,
    parse_color,
    rgb_to_hsb,
)

from conftest import device_info


class TestColorModel(unittest.TestCase):
    def test_hsb_to_rgb(self):
        assert hsb_to_rgb(HSBColor(0, 100, 100)) == (255, 0, 0)
        assert hsb_to_rgb(HSBColor(120, 100, 100)) == (0, 255, 0)
        assert hsb_to_rgb(HSBColor(240, 100, 100)) == (0, 0, 255)
        assert hsb_to_rgb(HSBColor(30, 100, 100)) == (255, 128, 0)
        assert hsb_to_rgb(HSBColor(0, 0, 50)) == (128, 128, 128)
        assert hsb_to_rgb(HSBColor(200, 0, 0)) == (0, 0, 0)
        # 360 is the same hue as 0
        assert hsb_to_rgb(HSBColor(360, 100, 100)) == (255, 0, 0)

    def test_rgb_to_hsb(self):
        assert rgb_to_hsb(RGBColor(255, 0, 0)) == (0, 100, 100)
        assert rgb_to_hsb(RGBColor(0, 255, 255)) == (180, 100, 100)
        assert rgb_to_hsb(RGBColor(255, 0, 255)) == (300, 100, 100)
        assert rgb_to_hsb(RGBColor(128, 128, 128)) == (0, 0, 50)
        assert rgb_to_hsb(RGBColor(255, 128, 0)) == (30, 100, 100)
        assert rgb_to_hsb(RGBColor(0, 0, 0)) == (0, 0, 0)
        # 359.5 rounds up to 360 and wraps
        assert rgb_to_hsb(RGBColor(255, 0, 2)) == (0, 100, 100)

    def test_round_trip(self):
        # integer hue, saturation and brightness lose up to 3 steps per channel
        worst = 0
        for r in range(0, 256, 5):
            for g in range(0, 256, 5):
                for b in range(0, 256, 5):
                    result = hsb_to_rgb(rgb_to_hsb(RGBColor(r, g, b)))
                    worst = max(
                        worst, abs(r - result.r), abs(g - result.g), abs(b - result.b)
                    )
        assert worst <= 3
        assert hsb_to_rgb(rgb_to_hsb(RGBColor(0, 165, 185))) == (0, 168, 186)

        for rgb in ((255, 0, 0), (0, 255, 255), (255, 255, 255), (0, 0, 0)):
            assert hsb_to_rgb(rgb_to_hsb(RGBColor(*rgb))) == rgb

    def test_ranges(self):
        for hue in range(0, 361, 15):
            for saturation in range(0, 101, 25):
                for brightness in range(0, 101, 25):
                    rgb = hsb_to_rgb(HSBColor(hue, saturation, brightness))
                    assert all(0 <= channel <= 255 for channel in rgb)
                    hsb = rgb_to_hsb(rgb)
                    assert 0 <= hsb.hue < 360
                    assert 0 <= hsb.saturation <= 100
                    assert 0 <= hsb.brightness <= 100

    def test_color_object_to_rgb(self):
        assert color_object_to_rgb("red") == (255, 0, 0)
        assert color_object_to_rgb("green") == (0, 128, 0)
        assert color_object_to_rgb("Blue") == (0, 0, 255)
        assert color_object_to_rgb((0, 255, 0)) == (0, 255, 0)
        assert color_object_to_rgb((300, -4, 12.4)) == (255, 0, 12)
        assert color_object_to_rgb(set()) is None
        assert color_object_to_rgb("") is None
        assert color_object_to_rgb("#ff00ff") == (255, 0, 255)
        assert color_object_to_rgb("#f0f") == (255, 0, 255)
        assert color_object_to_rgb("00ff88") == (0, 255, 136)
        assert color_object_to_rgb("(255,0,255)") == (255, 0, 255)
        assert color_object_to_rgb("10, 20, 30") == (10, 20, 30)
        assert color_object_to_rgb("rgb(0, 0, 255)") == (0, 0, 255)
        assert color_object_to_rgb("rgba(255, 0, 0, 0.5)") == (255, 0, 0)
        assert color_object_to_rgb("rgb(100%, 0%, 0%)") == (255, 0, 0)
        assert color_object_to_rgb("hsl(120, 100%, 50%)") == (0, 255, 0)
        assert color_object_to_rgb("notacolor") is None

    def test_parse_color(self):
        assert parse_color("red") == (0, 100, 100)
        assert parse_color("#00ff00") == (120, 100, 100)
        assert parse_color("rgb(0, 0, 255)") == (240, 100, 100)
        assert parse_color("white") == (0, 0, 100)
        assert parse_color("orange") == (39, 100, 100)
        assert parse_color("bogus") is None

    def test_get_color_names_list(self):
        names = get_color_names_list()
        assert len(names) > 120
        assert "springgreen" in names
        assert "yellow" in names

    def test_color_tuple_to_string(self):
        assert color_tuple_to_string(RGBColor(255, 0, 0)) == "red"
        assert color_tuple_to_string(RGBColor(0, 128, 0)) == "green"
        assert color_tuple_to_string(RGBColor(3, 2, 1)) == "(3, 2, 1)"


class TestStreamingCodec(unittest.TestCase):
    def test_version_for_model(self):
        assert streaming_version_for_model("NL22") is StreamingVersion.V1
        assert streaming_version_for_model("NL42") is StreamingVersion.V2
        assert streaming_version_for_model("NL29") is StreamingVersion.V2
        assert streaming_version_for_model(None) is StreamingVersion.V2

    def test_ports(self):
        assert ProtocolStreamingV1().port == 60221
        assert ProtocolStreamingV2().port == 60222
        assert streaming_protocol(StreamingVersion.V1).name == "v1"
        assert streaming_protocol(StreamingVersion.V2).name == "v2"

    def test_v1_frame(self):
        protocol = ProtocolStreamingV1()
        frame = protocol.construct_frame({7: RGBColor(1, 2, 3), 200: RGBColor(4, 5, 6)})
        assert frame == bytearray([2, 7, 1, 1, 2, 3, 0, 1, 200, 1, 4, 5, 6, 0, 1])
        assert protocol.decode_panel_count(frame) == 2

    def test_v2_frame(self):
        protocol = ProtocolStreamingV2()
        frame = protocol.construct_frame([(0x1234, RGBColor(1, 2, 3))])
        assert frame == bytearray([0, 1, 0x12, 0x34, 1, 2, 3, 0, 0, 1])
        assert protocol.decode_panel_count(frame) == 1

    def test_frame_lengths(self):
        for protocol in (ProtocolStreamingV1(), ProtocolStreamingV2()):
            for count in (0, 1, 5, 30):
                colors = {panel_id: RGBColor(255, 0, 0) for panel_id in range(count)}
                frame = protocol.construct_frame(colors)
                assert len(frame) == protocol.frame_length(count)
                assert protocol.decode_panel_count(frame) == count
        assert ProtocolStreamingV1().frame_length(3) == 1 + 7 * 3
        assert ProtocolStreamingV2().frame_length(3) == 2 + 8 * 3

    def test_v2_large_panel_count(self):
        protocol = ProtocolStreamingV2()
        colors = {panel_id: RGBColor(0, 0, 0) for panel_id in range(300)}
        frame = protocol.construct_frame(colors)
        assert frame[0:2] == bytearray([1, 44])
        assert protocol.decode_panel_count(frame) == 300

    def test_panel_id_out_of_range(self):
        with pytest.raises(InvalidInputError):
            ProtocolStreamingV1().construct_frame({256: RGBColor(1, 2, 3)})
        with pytest.raises(InvalidInputError):
            ProtocolStreamingV2().construct_frame({0x10000: RGBColor(1, 2, 3)})
        assert ProtocolStreamingV2().construct_frame({256: RGBColor(1, 2, 3)})

    def test_too_many_panels(self):
        colors = [(1, RGBColor(1, 2, 3))] * 256
        with pytest.raises(InvalidInputError):
            ProtocolStreamingV1().construct_frame(colors)

    def test_colors_are_clamped(self):
        frame = ProtocolStreamingV1().construct_frame([(1, (300, -1, 12.6))])
        assert frame == bytearray([1, 1, 1, 255, 0, 13, 0, 1])


class TestProtocolHTTP(unittest.TestCase):
    def setUp(self):
        self.protocol = ProtocolHTTP()

    def test_state_change_is_sparse(self):
        assert self.protocol.construct_state_change(brightness=40) == {
            "brightness": {"value": 40}
        }
        assert self.protocol.construct_state_change(on=False, hue=0, ct=2700) == {
            "on": {"value": False},
            "hue": {"value": 0},
            "ct": {"value": 2700},
        }
        assert self.protocol.construct_state_change(saturation=5) == {
            "sat": {"value": 5}
        }
        assert self.protocol.construct_state_change() == {}

    def test_static_panels(self):
        body = self.protocol.construct_static_panels(
            {11: RGBColor(255, 0, 0), 22: RGBColor(0, 0, 255)}
        )
        assert body == {
            "write": {
                "command": "display",
                "animType": "static",
                "animData": "2 11 1 255 0 0 0 1 22 1 0 0 255 0 1",
                "loop": False,
                "palette": [],
            }
        }

    def test_ext_control(self):
        assert self.protocol.construct_ext_control(StreamingVersion.V1) == {
            "write": {
                "command": "display",
                "animType": "extControl",
                "extControlVersion": "v1",
            }
        }

    def test_add_animation(self):
        palette = [HSBColor(0, 100, 100), HSBColor(120, 100, 80), HSBColor(240, 50, 60)]
        body = self.protocol.construct_add_animation(
            "Sunset", "flow", palette, speed="fast", direction="left", brightness=50
        )
        write = body["write"]
        assert write["command"] == "add"
        assert write["animName"] == "Sunset"
        assert write["animType"] == "plugin"
        assert write["pluginUuid"] == PLUGIN_UUIDS["flow"]
        assert write["loop"] is True
        assert write["palette"] == [
            {"hue": 0, "saturation": 100, "brightness": 50, "probability": 33},
            {"hue": 120, "saturation": 100, "brightness": 40, "probability": 33},
            {"hue": 240, "saturation": 50, "brightness": 30, "probability": 33},
        ]
        assert write["pluginOptions"] == [
            {"name": "linDirection", "value": "left"},
            {"name": "transTime", "value": 10},
        ]

    def test_plugin_options_by_style(self):
        palette = [HSBColor(0, 100, 100)]
        wheel = self.protocol.construct_display_animation("wheel", palette)["write"]
        assert wheel["command"] == "display"
        assert wheel["pluginOptions"] == [
            {"name": "rotDirection", "value": "cw"},
            {"name": "transTime", "value": 25},
        ]
        wheel = self.protocol.construct_display_animation(
            "wheel", palette, direction="left"
        )["write"]
        assert wheel["pluginOptions"][0] == {"name": "rotDirection", "value": "ccw"}
        fade = self.protocol.construct_display_animation(
            "fade", palette, speed="very_slow"
        )["write"]
        assert fade["pluginOptions"] == [
            {"name": "transTime", "value": 100},
            {"name": "delayTime", "value": 100},
        ]
        assert fade["palette"][0]["probability"] == 100

    def test_invalid_animation(self):
        palette = [HSBColor(0, 100, 100)]
        with pytest.raises(InvalidInputError):
            self.protocol.construct_display_animation("sparkle", palette)
        with pytest.raises(InvalidInputError):
            self.protocol.construct_display_animation("fade", palette, speed="warp")
        with pytest.raises(InvalidInputError):
            self.protocol.construct_display_animation("fade", [])

    def test_delete_animation(self):
        assert self.protocol.construct_delete_animation("Sunset") == {
            "write": {"command": "delete", "animName": "Sunset"}
        }


class TestModels(unittest.TestCase):
    def test_device_info(self):
        info = DeviceInfo.from_dict(device_info())
        assert info.name == "Shapes 1A2B"
        assert info.model == "NL42"
        assert info.firmware_version == "9.2.4"
        assert info.state.is_on
        assert info.state.hsb == (200, 80, 60)
        assert info.effects_list == ["Northern Lights", "Forest"]
        assert not info.static_mode
        assert info.layout.panel_ids == [11, 22, 99]
        assert info.layout.light_panel_ids == [11, 22]

    def test_static_mode(self):
        assert DeviceInfo.from_dict(device_info(effect="*Solid*")).static_mode
        assert DeviceInfo.from_dict(device_info(effect="*Static*")).static_mode
        assert not DeviceInfo.from_dict(device_info(effect="Forest")).static_mode

    def test_layout_bounds(self):
        layout = DeviceInfo.from_dict(device_info()).layout
        assert layout.bounds.as_dict() == {
            "minX": 0,
            "maxX": 150,
            "minY": -50,
            "maxY": 0,
            "width": 150,
            "height": 50,
        }
        assert layout.as_dict()["positions"][2] == {
            "panelId": 99,
            "x": 75,
            "y": -50,
            "o": 0,
            "shapeType": 12,
        }

    def test_empty_layout(self):
        layout = PanelLayout.from_dict({})
        assert layout.num_panels == 0
        assert layout.positions == []
        assert layout.bounds.as_dict() == {
            "minX": 0,
            "maxX": 0,
            "minY": 0,
            "maxY": 0,
            "width": 0,
            "height": 0,
        }


class TestConfig(unittest.TestCase):
    def test_parse_device_entry(self):
        assert parse_device_entry("192.168.1.20:abc") == DeviceEntry(
            "192.168.1.20", "abc", None
        )
        assert parse_device_entry(" Living Room = 192.168.1.21:def ") == DeviceEntry(
            "192.168.1.21", "def", "Living Room"
        )
        with pytest.raises(InvalidInputError):
            parse_device_entry("192.168.1.20")
        with pytest.raises(InvalidInputError):
            parse_device_entry("desk=:abc")

    def test_parse_devices(self):
        assert parse_devices("desk=192.168.1.20:abc, 192.168.1.21:def,") == [
            DeviceEntry("192.168.1.20", "abc", "desk"),
            DeviceEntry("192.168.1.21", "def", None),
        ]
        assert parse_devices("") == []

    def test_from_env(self):
        config = GatewayConfig.from_env(
            {
                "NANOLEAF_DEVICES": "desk=192.168.1.20:abc",
                "NANOLEAF_IP": "192.168.1.30",
                "NANOLEAF_AUTH_TOKEN": "xyz",
                "PORT": "8080",
                "NANOLEAF_LOG_LEVEL": "debug",
            }
        )
        assert config.devices == [
            DeviceEntry("192.168.1.20", "abc", "desk"),
            DeviceEntry("192.168.1.30", "xyz", None),
        ]
        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.log_level == "debug"

    def test_from_env_defaults(self):
        config = GatewayConfig.from_env({"NANOLEAF_IP": "192.168.1.30"})
        assert config.devices == []
        assert config.host == "0.0.0.0"
        assert config.port == 3101
        assert config.log_level is None

    def test_from_env_bad_port(self):
        with pytest.raises(InvalidInputError):
            GatewayConfig.from_env({"PORT": "http"})


class TestRegistry(unittest.TestCase):
    def test_not_configured(self):
        registry = DeviceRegistry()
        with pytest.raises(NotConfiguredError) as exc_info:
            registry.resolve()
        assert exc_info.value.kind is ErrorKind.NOT_CONFIGURED
        with pytest.raises(NotConfiguredError):
            registry.resolve("desk")

    def test_single_device_fallback(self):
        registry = DeviceRegistry()
        entry = registry.register("192.168.1.20", "abc", "a")
        assert registry.resolve() is entry
        assert registry.resolve("") is entry

        registry.register("192.168.1.21", "def", "b")
        with pytest.raises(AmbiguousSelectionError) as exc_info:
            registry.resolve()
        assert exc_info.value.aliases == ["a", "b"]
        assert "a, b" in str(exc_info.value)

    def test_resolve_alias_and_ip(self):
        registry = DeviceRegistry()
        desk = registry.register("192.168.1.20", "abc", "Desk")
        shelf = registry.register("192.168.1.21", "def", "shelf")
        assert desk.alias == "Desk"
        assert registry.resolve("desk") is desk
        assert registry.resolve("DESK") is desk
        assert registry.resolve("192.168.1.21") is shelf
        with pytest.raises(DeviceNotFoundError) as exc_info:
            registry.resolve("kitchen")
        assert exc_info.value.identifier == "kitchen"
        assert exc_info.value.aliases == ["Desk", "shelf"]
        assert str(exc_info.value) == (
            'Device "kitchen" not found. Available: Desk, shelf'
        )

    def test_alias_defaults_to_ip(self):
        registry = DeviceRegistry()
        entry = registry.register("192.168.1.20", "abc")
        assert entry.alias == "192.168.1.20"
        assert registry.has("192.168.1.20")
        assert entry.device.ipaddr == "192.168.1.20"
        assert entry.device.auth_token == "abc"

    def test_register_replaces_alias(self):
        registry = DeviceRegistry()
        registry.register("192.168.1.20", "abc", "desk")
        entry = registry.register("192.168.1.22", "ghi", "DESK")
        assert len(registry) == 1
        assert registry.resolve("desk") is entry
        assert entry.ip == "192.168.1.22"

    def test_same_ip_twice(self):
        registry = DeviceRegistry()
        registry.register("192.168.1.20", "abc", "desk")
        registry.register("192.168.1.20", "abc", "shelf")
        assert len(registry) == 2
        # the first match wins for an ip lookup
        assert registry.resolve("192.168.1.20").alias == "desk"

    def test_remove(self):
        registry = DeviceRegistry()
        registry.register("192.168.1.20", "abc", "desk")
        assert registry.remove("Desk") is True
        assert registry.remove("desk") is False
        assert len(registry) == 0
        assert list(registry) == []


class TestGateway(unittest.TestCase):
    def test_parse_args(self):
        (options, _) = parse_args(["-d", "-p", "8080", "--host", "127.0.0.1"])
        assert options.debug is True
        assert options.port == 8080
        assert options.host == "127.0.0.1"
        assert options.scan is False
        assert options.pair is None

        (options, _) = parse_args(["--pair", "192.168.1.20"])
        assert options.pair == "192.168.1.20"
        assert options.port is None

    def test_scan_options_are_exclusive(self):
        with pytest.raises(SystemExit):
            parse_args(["--scan", "--scan-subnet", "10.0.0"])

    def test_create_registry(self):
        config = GatewayConfig(
            devices=[
                DeviceEntry("192.168.1.20", "abc", "desk"),
                DeviceEntry("192.168.1.21", "def"),
            ]
        )
        registry = create_registry(config)
        assert registry.aliases == ["desk", "192.168.1.21"]
        assert registry.resolve("192.168.1.20").auth_token == "abc"
