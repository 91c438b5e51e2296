"""Model Context Protocol tools, every tool answers with text."""

import functools
import json
import logging
from typing import Annotated, Any, Awaitable, Callable, List, Literal, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from .aiodevice import AIONanoleafDevice
from .aioscanner import AIONanoleafScanner
from .const import DEFAULT_SUBNET
from .exceptions import InvalidInputError, NanoleafError, PairingNotActiveError
from .registry import DeviceRegistry
from .schemas import DEVICE_DESCRIPTION, PanelColor, panel_colors_from_list
from .utils import HSBColor, RGBColor, clamp_rgb, parse_color

_LOGGER = logging.getLogger(__name__)

PAIRING_INSTRUCTIONS = (
    "Pairing mode not active!\n\n"
    "Please:\n"
    "1. Hold the power button on your Nanoleaf for 5-7 seconds\n"
    "2. Wait until the LED starts flashing\n"
    "3. Run this tool again within 30 seconds"
)

DeviceArg = Annotated[Optional[str], Field(description=DEVICE_DESCRIPTION)]
Channel = Annotated[float, Field(ge=0, le=255)]
Brightness = Annotated[float, Field(ge=0, le=100, description="Brightness (0-100)")]
Hue = Annotated[
    float, Field(ge=0, le=360, description="Hue (0-360, 0=red, 120=green, 240=blue)")
]
Saturation = Annotated[
    float, Field(ge=0, le=100, description="Saturation (0=white, 100=full color)")
]
ColorTemperature = Annotated[
    float,
    Field(ge=1200, le=6500, description="Kelvin, 1200=candlelight, 6500=daylight"),
]
PanelList = Annotated[List[PanelColor], Field(min_length=1)]
Style = Literal["flow", "wheel", "fade", "highlight", "random", "explode"]
Speed = Literal["very_slow", "slow", "medium", "fast", "very_fast"]
Direction = Literal["left", "right"]
Palette = Annotated[
    List[str], Field(min_length=1, description="CSS colors, e.g. red or #00ff88")
]

TOOL_NAMES = (
    "list_devices",
    "add_device",
    "remove_device",
    "get_device_info",
    "get_panel_layout",
    "turn_on",
    "turn_off",
    "set_brightness",
    "set_hue",
    "set_saturation",
    "set_color",
    "set_color_rgb",
    "set_color_temperature",
    "set_state",
    "list_effects",
    "get_current_effect",
    "set_effect",
    "create_animation",
    "display_animation",
    "delete_animation",
    "set_panel_colors",
    "set_solid_color",
    "start_streaming",
    "stream_solid_color",
    "stream_panel_colors",
    "stop_streaming",
    "identify",
    "discover_devices",
    "create_auth_token",
    "test_connection",
)


def _text_errors(
    func: Callable[..., Awaitable[str]]
) -> Callable[..., Awaitable[str]]:
    """Report gateway errors as text instead of raising them."""

    @functools.wraps(func)
    async def _async_wrap(*args: Any, **kwargs: Any) -> str:
        try:
            return await func(*args, **kwargs)
        except PairingNotActiveError:
            return PAIRING_INSTRUCTIONS
        except NanoleafError as ex:
            _LOGGER.debug("%s failed: %s", func.__name__, ex)
            return f"Error: {ex}"

    return _async_wrap


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2)


def _rgb(r: float, g: float, b: float) -> RGBColor:
    return clamp_rgb((r, g, b))


def _parse_color(color: str) -> HSBColor:
    hsb = parse_color(color)
    if hsb is None:
        raise InvalidInputError(f'Invalid color: "{color}"')
    return hsb


def _parse_palette(colors: List[str]) -> List[HSBColor]:
    return [_parse_color(color) for color in colors]


class NanoleafTools:
    """The tool operations, bound to one registry."""

    def __init__(self, registry: DeviceRegistry) -> None:
        self.registry = registry

    def _device(self, device: Optional[str]) -> AIONanoleafDevice:
        return self.registry.resolve(device).device

    @_text_errors
    async def list_devices(self) -> str:
        """List the registered Nanoleaf devices with their power status."""
        devices = await self.registry.async_list_status()
        if not devices:
            return (
                "No devices registered. Use add_device, or discover_devices and "
                "create_auth_token to set one up."
            )
        lines = [f"Registered devices ({len(devices)}):"]
        for summary in devices:
            line = f"  {summary['alias']} - {summary['ip']}"
            if summary["name"]:
                line += f" - {summary['name']}"
            if summary["model"]:
                line += f" ({summary['model']})"
            lines.append(f"{line} [{summary['status']}]")
        return "\n".join(lines)

    @_text_errors
    async def add_device(
        self,
        ip: Annotated[str, Field(description="IP address of the device")],
        auth_token: Annotated[str, Field(description="Auth token of the device")],
        alias: Annotated[
            Optional[str],
            Field(description="Friendly name, defaults to the hardware name"),
        ] = None,
    ) -> str:
        """Register a Nanoleaf device after checking that it answers."""
        entry = await self.registry.async_register_verified(ip, auth_token, alias)
        return f'Device "{entry.alias}" added ({entry.name or ip}, {entry.model})'

    @_text_errors
    async def remove_device(
        self, alias: Annotated[str, Field(description="Alias of the device")]
    ) -> str:
        """Forget a registered device."""
        if self.registry.remove(alias):
            return f'Device "{alias}" removed'
        return f'Error: Device "{alias}" not found'

    @_text_errors
    async def get_device_info(self, device: DeviceArg = None) -> str:
        """Get the name, model, firmware version and current state of a device."""
        info = await self._device(device).async_get_info()
        return _dumps(info.raw)

    @_text_errors
    async def get_panel_layout(self, device: DeviceArg = None) -> str:
        """Get the panel ids and positions of a device."""
        layout = await self._device(device).async_get_panel_layout()
        return _dumps(layout.as_dict())

    @_text_errors
    async def turn_on(self, device: DeviceArg = None) -> str:
        """Turn on the device."""
        await self._device(device).async_turn_on()
        return "Nanoleaf turned on"

    @_text_errors
    async def turn_off(self, device: DeviceArg = None) -> str:
        """Turn off the device."""
        await self._device(device).async_turn_off()
        return "Nanoleaf turned off"

    @_text_errors
    async def set_brightness(
        self, brightness: Brightness, device: DeviceArg = None
    ) -> str:
        """Set the brightness of the device (0-100)."""
        await self._device(device).async_set_brightness(brightness)
        return f"Brightness set to {brightness:g}%"

    @_text_errors
    async def set_hue(self, hue: Hue, device: DeviceArg = None) -> str:
        """Set the hue of the device (0-360 degrees on the color wheel)."""
        await self._device(device).async_set_hue(hue)
        return f"Hue set to {hue:g}"

    @_text_errors
    async def set_saturation(
        self, saturation: Saturation, device: DeviceArg = None
    ) -> str:
        """Set the saturation of the device (0-100)."""
        await self._device(device).async_set_saturation(saturation)
        return f"Saturation set to {saturation:g}%"

    @_text_errors
    async def set_color(
        self,
        color: Annotated[
            str, Field(description="Any CSS color: name, hex, rgb() or hsl()")
        ],
        device: DeviceArg = None,
    ) -> str:
        """Turn the device on and set its color from a CSS color string."""
        hsb = _parse_color(color)
        await self._device(device).async_set_state(
            on=True, hue=hsb.hue, saturation=hsb.saturation, brightness=hsb.brightness
        )
        return f"Color set to {color}"

    @_text_errors
    async def set_color_rgb(
        self, r: Channel, g: Channel, b: Channel, device: DeviceArg = None
    ) -> str:
        """Set every panel to one RGB color (0-255 per channel)."""
        color = _rgb(r, g, b)
        await self._device(device).async_set_color(color)
        return f"Color set to RGB({color.r}, {color.g}, {color.b})"

    @_text_errors
    async def set_color_temperature(
        self, ct: ColorTemperature, device: DeviceArg = None
    ) -> str:
        """Set the color temperature in Kelvin (lower is warmer)."""
        await self._device(device).async_set_color_temperature(ct)
        return f"Color temperature set to {ct:g}K"

    @_text_errors
    async def set_state(
        self,
        on: Optional[bool] = None,
        brightness: Optional[Brightness] = None,
        hue: Optional[Hue] = None,
        saturation: Optional[Saturation] = None,
        ct: Optional[ColorTemperature] = None,
        device: DeviceArg = None,
    ) -> str:
        """Set several state properties at once."""
        await self._device(device).async_set_state(
            on=on, brightness=brightness, hue=hue, saturation=saturation, ct=ct
        )
        return "State updated"

    @_text_errors
    async def list_effects(self, device: DeviceArg = None) -> str:
        """List the effects saved on the device."""
        effects = await self._device(device).async_list_effects()
        return "Available effects:\n" + "\n".join(effects)

    @_text_errors
    async def get_current_effect(self, device: DeviceArg = None) -> str:
        """Get the name of the active effect."""
        effect = await self._device(device).async_get_current_effect()
        return f"Current effect: {effect}"

    @_text_errors
    async def set_effect(
        self,
        effect_name: Annotated[str, Field(description="Name of the effect")],
        device: DeviceArg = None,
    ) -> str:
        """Activate a saved effect by name."""
        await self._device(device).async_set_effect(effect_name)
        return f'Effect "{effect_name}" activated'

    @_text_errors
    async def create_animation(
        self,
        name: Annotated[str, Field(description="Name to save the animation as")],
        style: Style,
        colors: Palette,
        speed: Speed = "medium",
        direction: Direction = "right",
        brightness: Annotated[int, Field(ge=0, le=100)] = 100,
        loop: bool = True,
        device: DeviceArg = None,
    ) -> str:
        """Save a custom animation on the device and activate it."""
        await self._device(device).async_create_animation(
            name, style, _parse_palette(colors), speed, direction, brightness, loop
        )
        return f'Animation "{name}" created and activated'

    @_text_errors
    async def display_animation(
        self,
        style: Style,
        colors: Palette,
        speed: Speed = "medium",
        direction: Direction = "right",
        brightness: Annotated[int, Field(ge=0, le=100)] = 100,
        device: DeviceArg = None,
    ) -> str:
        """Show an animation without saving it."""
        await self._device(device).async_display_animation(
            style, _parse_palette(colors), speed, direction, brightness
        )
        return f"Displaying {style} animation"

    @_text_errors
    async def delete_animation(
        self,
        name: Annotated[str, Field(description="Name of the saved animation")],
        device: DeviceArg = None,
    ) -> str:
        """Delete a saved animation."""
        await self._device(device).async_delete_animation(name)
        return f'Animation "{name}" deleted'

    @_text_errors
    async def set_panel_colors(
        self, panels: PanelList, device: DeviceArg = None
    ) -> str:
        """Set the color of individual panels, the others turn dark."""
        await self._device(device).async_set_panel_colors(
            panel_colors_from_list(panels)
        )
        return f"Set colors for {len(panels)} panels"

    @_text_errors
    async def set_solid_color(
        self, r: Channel, g: Channel, b: Channel, device: DeviceArg = None
    ) -> str:
        """Set all panels to the same RGB color."""
        color = _rgb(r, g, b)
        await self._device(device).async_set_color(color)
        return f"All panels set to RGB({color.r}, {color.g}, {color.b})"

    @_text_errors
    async def start_streaming(self, device: DeviceArg = None) -> str:
        """Switch the device to low latency UDP streaming for per panel control."""
        await self._device(device).async_initialize_streaming()
        return (
            "Streaming mode initialized. Use stream_panel_colors or "
            "stream_solid_color for real-time updates."
        )

    @_text_errors
    async def stream_solid_color(
        self, r: Channel, g: Channel, b: Channel, device: DeviceArg = None
    ) -> str:
        """Stream one color to all panels over UDP."""
        color = _rgb(r, g, b)
        await self._device(device).async_stream_solid_color(color)
        return f"Streamed RGB({color.r}, {color.g}, {color.b}) to all panels"

    @_text_errors
    async def stream_panel_colors(
        self, panels: PanelList, device: DeviceArg = None
    ) -> str:
        """Stream colors to individual panels over UDP."""
        await self._device(device).async_stream_colors(panel_colors_from_list(panels))
        return f"Streamed colors to {len(panels)} panels"

    @_text_errors
    async def stop_streaming(self, device: DeviceArg = None) -> str:
        """Close the UDP streaming channel."""
        await self._device(device).async_stop_streaming()
        return "Streaming mode stopped"

    @_text_errors
    async def identify(self, device: DeviceArg = None) -> str:
        """Flash the panels to find the device."""
        await self._device(device).async_identify()
        return "Device is flashing to identify itself"

    @_text_errors
    async def discover_devices(
        self,
        method: Annotated[
            Literal["mdns", "scan"],
            Field(description="mdns (recommended) or scan (slower, probes a subnet)"),
        ] = "mdns",
        subnet: Annotated[
            Optional[str], Field(description="For scan: the subnet, e.g. 192.168.1")
        ] = None,
    ) -> str:
        """Find Nanoleaf devices on the local network."""
        scanner = AIONanoleafScanner()
        if method == "scan":
            subnet = subnet or DEFAULT_SUBNET
            devices = await scanner.async_scan_subnet(subnet)
            if not devices:
                return (
                    f"No Nanoleaf devices found on subnet {subnet}. "
                    "Try a different subnet or use the mdns method."
                )
        else:
            devices = await scanner.async_discover_mdns()
            if not devices:
                return (
                    "No Nanoleaf devices found via mDNS. Make sure the device is "
                    "powered on and on the same network, or try the scan method."
                )
        return (
            f"Found {len(devices)} Nanoleaf device(s):\n\n{_dumps(devices)}\n\n"
            "Use the IP address with create_auth_token to authenticate."
        )

    @_text_errors
    async def create_auth_token(
        self, ip: Annotated[str, Field(description="IP address of the device")]
    ) -> str:
        """Create an auth token for a device.

        Hold the power button for 5-7 seconds until the LED flashes, then
        call this within 30 seconds.
        """
        auth_token = await AIONanoleafDevice.async_create_auth_token(ip)
        return (
            f"Auth token created successfully!\n\nYour new auth token: {auth_token}\n\n"
            f"Register it with add_device, "
            f"or add {ip}:{auth_token} to NANOLEAF_DEVICES."
        )

    @_text_errors
    async def test_connection(
        self,
        device: DeviceArg = None,
        ip: Annotated[
            Optional[str], Field(description="IP of a device that is not registered")
        ] = None,
        auth_token: Annotated[
            Optional[str], Field(description="Auth token for ip")
        ] = None,
    ) -> str:
        """Check that a device answers with the given or registered credentials."""
        if ip and auth_token:
            summary = await self.registry.async_check_credentials(ip, auth_token)
        else:
            entry = self.registry.resolve(device)
            summary = {"alias": entry.alias}
            summary.update(await entry.device.async_test_connection())
        return f"Connection successful!\n\n{_dumps(summary)}"


def create_tool_server(registry: DeviceRegistry) -> FastMCP:
    """A tool server for registry, served over streamable HTTP."""
    tools = NanoleafTools(registry)
    server = FastMCP("nanoleaf", streamable_http_path="/")
    for name in TOOL_NAMES:
        server.add_tool(getattr(tools, name), name=name)
    return server
