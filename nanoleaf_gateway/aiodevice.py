import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from .aioprotocol import AIONanoleafStreamingProtocol
from .const import (
    API_PATH,
    API_PORT,
    DEFAULT_ANIMATION_SPEED,
    DIRECTION_RIGHT,
    MAX_BRIGHTNESS,
    MAX_HUE,
    MAX_SATURATION,
    MAX_TEMP,
    MIN_BRIGHTNESS,
    MIN_HUE,
    MIN_SATURATION,
    MIN_TEMP,
    REQUEST_TIMEOUT,
    StreamingVersion,
)
from .exceptions import NanoleafConnectionError, PairingNotActiveError
from .models import DeviceInfo, PanelLayout
from .protocol import (
    PanelColors,
    ProtocolHTTP,
    ProtocolStreamingBase,
    panel_items,
    streaming_protocol,
    streaming_version_for_model,
)
from .utils import HSBColor, RGBColor, clamp, hsb_to_rgb, round_half_up

_LOGGER = logging.getLogger(__name__)


def _clamp_int(value: Optional[float], low: int, high: int) -> Optional[int]:
    # None means the field is not written
    if value is None:
        return None
    return int(clamp(round_half_up(value), low, high))


class AIONanoleafDevice:
    """A Nanoleaf light panel device reached over its HTTP control API."""

    def __init__(
        self,
        ipaddr: str,
        auth_token: str,
        port: int = API_PORT,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Init the device, no request is made until the first operation."""
        self.ipaddr = ipaddr
        self.auth_token = auth_token
        self.port = port
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=f"http://{ipaddr}:{port}{API_PATH}/{auth_token}",
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self._protocol = ProtocolHTTP()
        self._light_panel_ids: Optional[List[int]] = None
        self._panel_ids: List[int] = []
        self._streaming_protocol: Optional[ProtocolStreamingBase] = None
        self._aio_protocol: Optional[AIONanoleafStreamingProtocol] = None
        self._write_lock = asyncio.Lock()
        self._streaming_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.ipaddr}>"

    @property
    def streaming_active(self) -> bool:
        return self._aio_protocol is not None and self._aio_protocol.is_open

    @property
    def streaming_version(self) -> Optional[StreamingVersion]:
        if self._streaming_protocol is None:
            return None
        return self._streaming_protocol.version

    @property
    def panel_ids(self) -> List[int]:
        """The last known ids of every panel, controllers included."""
        return list(self._panel_ids)

    async def _async_request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        _LOGGER.debug("%s: %s %s %s", self.ipaddr, method, path, payload)
        try:
            response = await self._client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as ex:
            raise NanoleafConnectionError(
                f"{self.ipaddr}: {method} {path} failed: {ex!r}"
            ) from ex
        return response

    async def _async_get_json(self, path: str) -> Any:
        response = await self._async_request("GET", path)
        try:
            return response.json()
        except ValueError as ex:
            raise NanoleafConnectionError(
                f"{self.ipaddr}: GET {path} returned invalid JSON"
            ) from ex

    async def _async_put_state(self, **fields: Any) -> None:
        await self._async_request(
            "PUT", "/state", self._protocol.construct_state_change(**fields)
        )

    async def _async_put_effects(self, payload: Dict[str, Any]) -> None:
        await self._async_request("PUT", "/effects", payload)

    async def async_get_info(self) -> DeviceInfo:
        """Fetch the full device state."""
        data = await self._async_get_json("/")
        if not isinstance(data, dict):
            raise NanoleafConnectionError(
                f"{self.ipaddr}: GET / returned {type(data).__name__}, not an object"
            )
        return DeviceInfo.from_dict(data)

    async def async_get_panel_layout(self) -> PanelLayout:
        """Fetch the panel positions and their bounding box."""
        info = await self.async_get_info()
        return info.layout

    def invalidate_panel_cache(self) -> None:
        """Forget the light panel ids, the next color write fetches them again."""
        self._light_panel_ids = None

    async def _async_get_light_panel_ids(self) -> List[int]:
        if self._light_panel_ids is None:
            layout = await self.async_get_panel_layout()
            self._light_panel_ids = layout.light_panel_ids
            _LOGGER.debug(
                "%s: Light panel ids: %s", self.ipaddr, self._light_panel_ids
            )
        return self._light_panel_ids

    async def _async_ensure_static_mode(self) -> None:
        """Make state writes visible by freezing an animated effect.

        The firmware ignores state writes while an animated effect is
        selected, so the current color is written as a static effect.
        """
        info = await self.async_get_info()
        if info.static_mode:
            return
        rgb = hsb_to_rgb(info.state.hsb)
        _LOGGER.debug(
            "%s: Effect %s is active, writing %s as static color",
            self.ipaddr,
            info.selected_effect,
            rgb,
        )
        await self._async_set_all_panels_color(rgb)

    async def _async_set_all_panels_color(self, color: RGBColor) -> None:
        ids = await self._async_get_light_panel_ids()
        await self._async_set_panel_colors({panel_id: color for panel_id in ids})

    async def _async_set_panel_colors(self, panel_colors: PanelColors) -> None:
        await self._async_put_effects(
            self._protocol.construct_static_panels(panel_colors)
        )

    async def async_turn_on(self) -> None:
        """Turn on the device."""
        async with self._write_lock:
            await self._async_put_state(on=True)

    async def async_turn_off(self) -> None:
        """Turn off the device."""
        async with self._write_lock:
            await self._async_put_state(on=False)

    async def async_set_brightness(self, brightness: float) -> None:
        """Set the brightness in percent."""
        await self.async_set_state(brightness=brightness)

    async def async_set_hue(self, hue: float) -> None:
        """Set the hue in degrees."""
        await self.async_set_state(hue=hue)

    async def async_set_saturation(self, saturation: float) -> None:
        """Set the saturation in percent."""
        await self.async_set_state(saturation=saturation)

    async def async_set_color_temperature(self, ct: float) -> None:
        """Set the color temperature in Kelvin."""
        await self.async_set_state(ct=ct)

    async def async_set_state(
        self,
        on: Optional[bool] = None,
        brightness: Optional[float] = None,
        hue: Optional[float] = None,
        saturation: Optional[float] = None,
        ct: Optional[float] = None,
    ) -> None:
        """Set any of the state fields, fields left as None are not written."""
        fields = {
            "on": on,
            "brightness": _clamp_int(brightness, MIN_BRIGHTNESS, MAX_BRIGHTNESS),
            "hue": _clamp_int(hue, MIN_HUE, MAX_HUE),
            "saturation": _clamp_int(saturation, MIN_SATURATION, MAX_SATURATION),
            "ct": _clamp_int(ct, MIN_TEMP, MAX_TEMP),
        }
        if all(value is None for value in fields.values()):
            return
        async with self._write_lock:
            await self._async_ensure_static_mode()
            await self._async_put_state(**fields)

    async def async_set_color(self, color: RGBColor) -> None:
        """Set every light panel to one color."""
        async with self._write_lock:
            await self._async_set_all_panels_color(color)

    async def async_set_panel_colors(self, panel_colors: PanelColors) -> None:
        """Set the color of the given panels, the others are left dark."""
        async with self._write_lock:
            await self._async_set_panel_colors(panel_colors)

    async def async_list_effects(self) -> List[str]:
        """The names of the effects saved on the device."""
        return list(await self._async_get_json("/effects/effectsList"))

    async def async_get_current_effect(self) -> str:
        """The name of the selected effect."""
        return str(await self._async_get_json("/effects/select"))

    async def async_set_effect(self, effect: str) -> None:
        """Select a saved effect."""
        async with self._write_lock:
            await self._async_put_effects(
                self._protocol.construct_select_effect(effect)
            )

    async def async_create_animation(
        self,
        name: str,
        style: str,
        palette: List[HSBColor],
        speed: str = DEFAULT_ANIMATION_SPEED,
        direction: str = DIRECTION_RIGHT,
        brightness: int = 100,
        loop: bool = True,
    ) -> None:
        """Save a plugin animation under name and select it."""
        payload = self._protocol.construct_add_animation(
            name, style, palette, speed, direction, brightness, loop
        )
        async with self._write_lock:
            await self._async_put_effects(payload)
            await self._async_put_effects(self._protocol.construct_select_effect(name))

    async def async_display_animation(
        self,
        style: str,
        palette: List[HSBColor],
        speed: str = DEFAULT_ANIMATION_SPEED,
        direction: str = DIRECTION_RIGHT,
        brightness: int = 100,
    ) -> None:
        """Show a plugin animation without saving it."""
        payload = self._protocol.construct_display_animation(
            style, palette, speed, direction, brightness
        )
        async with self._write_lock:
            await self._async_put_effects(payload)

    async def async_delete_animation(self, name: str) -> None:
        """Delete a saved animation."""
        async with self._write_lock:
            await self._async_put_effects(
                self._protocol.construct_delete_animation(name)
            )

    async def async_identify(self) -> None:
        """Flash the panels."""
        async with self._write_lock:
            await self._async_request("PUT", "/identify", {})

    async def async_test_connection(self) -> Dict[str, Union[str, int, None]]:
        """Summarize the device, raises if it cannot be reached."""
        info = await self.async_get_info()
        return {
            "name": info.name,
            "model": info.model,
            "firmwareVersion": info.firmware_version,
            "panels": info.layout.num_panels,
            "power": "on" if info.state.is_on else "off",
            "brightness": int(info.state.brightness.value),
        }

    async def async_initialize_streaming(self) -> None:
        """Switch the device to external control and open the UDP channel."""
        async with self._streaming_lock:
            await self._async_initialize_streaming()

    async def _async_initialize_streaming(
        self, panel_ids: Optional[List[int]] = None
    ) -> None:
        info = await self.async_get_info()
        protocol = streaming_protocol(streaming_version_for_model(info.model))
        if panel_ids is not None:
            # the device must not leave its effect for a frame that cannot be sent
            protocol.validate_panel_ids(panel_ids)
        self._panel_ids = info.layout.panel_ids
        async with self._write_lock:
            await self._async_put_effects(
                self._protocol.construct_ext_control(protocol.version)
            )
        self._async_close_streaming()
        destination = (self.ipaddr, protocol.port)
        loop = asyncio.get_running_loop()
        try:
            _, aio_protocol = await loop.create_datagram_endpoint(
                lambda: AIONanoleafStreamingProtocol(destination),
                remote_addr=destination,
            )
        except OSError as ex:
            raise NanoleafConnectionError(
                f"{self.ipaddr}: Could not open streaming channel to port "
                f"{protocol.port}: {ex!r}"
            ) from ex
        self._streaming_protocol = protocol
        self._aio_protocol = aio_protocol
        _LOGGER.debug(
            "%s: Streaming %s to port %s for model %s",
            self.ipaddr,
            protocol.name,
            protocol.port,
            info.model,
        )

    async def _async_ensure_streaming(self, panel_ids: List[int]) -> None:
        async with self._streaming_lock:
            if not self.streaming_active:
                await self._async_initialize_streaming(panel_ids)

    async def async_stream_colors(self, panel_colors: PanelColors) -> None:
        """Send one frame with the given panel colors."""
        panels = panel_items(panel_colors)
        await self._async_ensure_streaming([panel_id for panel_id, _ in panels])
        assert self._streaming_protocol is not None
        assert self._aio_protocol is not None
        frame = self._streaming_protocol.construct_frame(panels)
        try:
            self._aio_protocol.send(frame)
        except OSError as ex:
            raise NanoleafConnectionError(
                f"{self.ipaddr}: Could not send streaming frame: {ex!r}"
            ) from ex

    async def async_stream_solid_color(self, color: RGBColor) -> None:
        """Send one frame setting every panel to color."""
        if not self._panel_ids:
            layout = await self.async_get_panel_layout()
            self._panel_ids = layout.panel_ids
        await self.async_stream_colors(
            [(panel_id, color) for panel_id in self._panel_ids]
        )

    async def async_stop_streaming(self) -> None:
        """Close the UDP channel, the device stays in external control."""
        self._async_close_streaming()

    def _async_close_streaming(self) -> None:
        if self._aio_protocol is not None:
            self._aio_protocol.close()
            self._aio_protocol = None
        self._streaming_protocol = None

    async def async_stop(self) -> None:
        """Shutdown the connection."""
        self._async_close_streaming()
        await self._client.aclose()

    @classmethod
    async def async_create_auth_token(
        cls,
        ipaddr: str,
        port: int = API_PORT,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> str:
        """Request a new auth token, the device must be in pairing mode."""
        url = f"http://{ipaddr}:{port}{API_PATH}/new"
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            try:
                response = await client.post(url, json={})
                response.raise_for_status()
            except httpx.HTTPStatusError as ex:
                if ex.response.status_code == httpx.codes.FORBIDDEN:
                    raise PairingNotActiveError(ipaddr) from ex
                raise NanoleafConnectionError(
                    f"{ipaddr}: POST {url} failed: {ex!r}"
                ) from ex
            except httpx.HTTPError as ex:
                raise NanoleafConnectionError(
                    f"{ipaddr}: POST {url} failed: {ex!r}"
                ) from ex
            try:
                return str(response.json()["auth_token"])
            except (ValueError, KeyError, TypeError) as ex:
                raise NanoleafConnectionError(
                    f"{ipaddr}: Pairing response did not contain a token"
                ) from ex
