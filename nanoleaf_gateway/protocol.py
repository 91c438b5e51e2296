"""Nanoleaf Protocols."""

from abc import abstractmethod
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .const import (
    ANIMATION_SPEEDS,
    DEFAULT_ANIMATION_SPEED,
    DIRECTION_RIGHT,
    EXT_CONTROL_VERSIONS,
    MODEL_LEGACY_V1,
    PLUGIN_UUIDS,
    STATE_BRIGHTNESS,
    STATE_COLOR_TEMP,
    STATE_HUE,
    STATE_ON,
    STATE_SATURATION,
    STREAMING_PORTS,
    StreamingVersion,
)
from .exceptions import InvalidInputError
from .utils import HSBColor, RGBColor, clamp_rgb, round_half_up

_LOGGER = logging.getLogger(__name__)

PanelColors = Union[Mapping[int, RGBColor], Iterable[Tuple[int, RGBColor]]]

FRAME_COUNT = 1  # one keyframe per panel
WHITE_CHANNEL = 0  # the panels have no white emitter
TRANSITION_TIME = 1  # deciseconds


def panel_items(panel_colors: PanelColors) -> List[Tuple[int, RGBColor]]:
    """Flatten a mapping or iterable of pairs into an ordered list."""
    if isinstance(panel_colors, Mapping):
        items: Iterable[Tuple[int, RGBColor]] = panel_colors.items()
    else:
        items = panel_colors
    return [(int(panel_id), clamp_rgb(color)) for panel_id, color in items]


def streaming_version_for_model(model: Optional[str]) -> StreamingVersion:
    """Light Panels use the first protocol, everything newer the second."""
    if model == MODEL_LEGACY_V1:
        return StreamingVersion.V1
    return StreamingVersion.V2


class ProtocolStreamingBase:
    """The base external control (UDP streaming) protocol."""

    header_length: int
    panel_length: int
    max_panel_id: int

    @property
    @abstractmethod
    def version(self) -> StreamingVersion:
        """The version of the protocol."""

    @property
    def name(self) -> str:
        return EXT_CONTROL_VERSIONS[self.version]

    @property
    def port(self) -> int:
        """The UDP port the device listens on for this version."""
        return STREAMING_PORTS[self.version]

    def frame_length(self, num_panels: int) -> int:
        return self.header_length + self.panel_length * num_panels

    def validate_panel_ids(self, panel_ids: List[int]) -> None:
        """Raise InvalidInputError if the ids do not fit a frame."""
        if len(panel_ids) > self.max_panel_id:
            raise InvalidInputError(
                f"Protocol {self.name} supports a maximum of {self.max_panel_id} panels"
            )
        for panel_id in panel_ids:
            if not 0 <= panel_id <= self.max_panel_id:
                raise InvalidInputError(
                    f"Panel id {panel_id} does not fit protocol {self.name} "
                    f"(0-{self.max_panel_id})"
                )

    def construct_frame(self, panel_colors: PanelColors) -> bytearray:
        """The bytes to send to set the color of one or more panels."""
        panels = panel_items(panel_colors)
        self.validate_panel_ids([panel_id for panel_id, _ in panels])
        msg = self._construct_header(len(panels))
        for panel_id, color in panels:
            msg.extend(self._construct_panel(panel_id, color))
        return msg

    @abstractmethod
    def _construct_header(self, num_panels: int) -> bytearray:
        """The bytes that lead the frame."""

    @abstractmethod
    def _construct_panel(self, panel_id: int, color: RGBColor) -> bytearray:
        """The bytes for a single panel."""

    @abstractmethod
    def decode_panel_count(self, frame: bytes) -> int:
        """Read the panel count back out of a frame."""


class ProtocolStreamingV1(ProtocolStreamingBase):
    """Light Panels.

    nPanels panelId nFrames R G B W transitionTime
    02 | 8f 01 ff 00 00 00 01 | 3a 01 00 ff 00 00 01
    """

    header_length = 1
    panel_length = 7
    max_panel_id = 0xFF

    @property
    def version(self) -> StreamingVersion:
        return StreamingVersion.V1

    def _construct_header(self, num_panels: int) -> bytearray:
        return bytearray([num_panels])

    def _construct_panel(self, panel_id: int, color: RGBColor) -> bytearray:
        r, g, b = color
        return bytearray(
            [panel_id, FRAME_COUNT, r, g, b, WHITE_CHANNEL, TRANSITION_TIME]
        )

    def decode_panel_count(self, frame: bytes) -> int:
        return frame[0]


class ProtocolStreamingV2(ProtocolStreamingBase):
    """Canvas, Shapes, Elements and Lines.

    nPanels(2) panelId(2) R G B W transitionTime(2)
    00 02 | 00 8f ff 00 00 00 00 01 | 1a 3c 00 ff 00 00 00 01
    """

    header_length = 2
    panel_length = 8
    max_panel_id = 0xFFFF

    @property
    def version(self) -> StreamingVersion:
        return StreamingVersion.V2

    def _construct_header(self, num_panels: int) -> bytearray:
        return bytearray([num_panels >> 8, num_panels & 0xFF])

    def _construct_panel(self, panel_id: int, color: RGBColor) -> bytearray:
        r, g, b = color
        return bytearray(
            [
                panel_id >> 8,
                panel_id & 0xFF,
                r,
                g,
                b,
                WHITE_CHANNEL,
                TRANSITION_TIME >> 8,
                TRANSITION_TIME & 0xFF,
            ]
        )

    def decode_panel_count(self, frame: bytes) -> int:
        return (frame[0] << 8) | frame[1]


STREAMING_VERSION_TO_CLS = {
    StreamingVersion.V1: ProtocolStreamingV1,
    StreamingVersion.V2: ProtocolStreamingV2,
}


def streaming_protocol(version: StreamingVersion) -> ProtocolStreamingBase:
    return STREAMING_VERSION_TO_CLS[version]()


class ProtocolHTTP:
    """Builds the JSON bodies of the HTTP control API."""

    def construct_state_change(
        self,
        on: Optional[bool] = None,
        brightness: Optional[int] = None,
        hue: Optional[int] = None,
        saturation: Optional[int] = None,
        ct: Optional[int] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Sparse state body, only the fields that were passed."""
        fields = {
            STATE_ON: on,
            STATE_BRIGHTNESS: brightness,
            STATE_HUE: hue,
            STATE_SATURATION: saturation,
            STATE_COLOR_TEMP: ct,
        }
        return {
            key: {"value": value} for key, value in fields.items() if value is not None
        }

    def construct_select_effect(self, effect: str) -> Dict[str, Any]:
        return {"select": effect}

    def construct_anim_data(self, panel_colors: PanelColors) -> str:
        """The decimal animData of a one frame static animation.

        numPanels; panelId numFrames R G B W transitionTime; ...
        2 12 1 255 0 0 0 1 55 1 0 255 0 0 1
        """
        panels = panel_items(panel_colors)
        parts = [str(len(panels))]
        for panel_id, (r, g, b) in panels:
            parts.append(
                f"{panel_id} {FRAME_COUNT} {r} {g} {b} "
                f"{WHITE_CHANNEL} {TRANSITION_TIME}"
            )
        return " ".join(parts)

    def construct_static_panels(self, panel_colors: PanelColors) -> Dict[str, Any]:
        return {
            "write": {
                "command": "display",
                "animType": "static",
                "animData": self.construct_anim_data(panel_colors),
                "loop": False,
                "palette": [],
            }
        }

    def construct_ext_control(self, version: StreamingVersion) -> Dict[str, Any]:
        return {
            "write": {
                "command": "display",
                "animType": "extControl",
                "extControlVersion": EXT_CONTROL_VERSIONS[version],
            }
        }

    def _construct_plugin_write(
        self,
        style: str,
        palette: List[HSBColor],
        speed: str,
        direction: str,
        brightness: int,
    ) -> Dict[str, Any]:
        if style not in PLUGIN_UUIDS:
            raise InvalidInputError(
                f"Unknown animation style {style}, "
                f"expected one of {', '.join(PLUGIN_UUIDS)}"
            )
        if speed not in ANIMATION_SPEEDS:
            raise InvalidInputError(
                f"Unknown animation speed {speed}, "
                f"expected one of {', '.join(ANIMATION_SPEEDS)}"
            )
        if not palette:
            raise InvalidInputError("An animation needs at least one palette color")
        trans_time, delay_time = ANIMATION_SPEEDS[speed]
        probability = round_half_up(100 / len(palette))
        palette_with_prob = [
            {
                "hue": color.hue,
                "saturation": color.saturation,
                "brightness": round_half_up(color.brightness * brightness / 100),
                "probability": probability,
            }
            for color in palette
        ]
        # flow and wheel take a direction and a single transition time,
        # the others take a transition and a delay time
        plugin_options: List[Dict[str, Union[int, str]]] = []
        if style == "flow":
            plugin_options.append({"name": "linDirection", "value": direction})
            plugin_options.append({"name": "transTime", "value": trans_time})
        elif style == "wheel":
            rot_direction = "cw" if direction == DIRECTION_RIGHT else "ccw"
            plugin_options.append({"name": "rotDirection", "value": rot_direction})
            plugin_options.append({"name": "transTime", "value": trans_time})
        else:
            plugin_options.append({"name": "transTime", "value": trans_time})
            plugin_options.append({"name": "delayTime", "value": delay_time})
        return {
            "animType": "plugin",
            "pluginType": "color",
            "pluginUuid": PLUGIN_UUIDS[style],
            "colorType": "HSB",
            "palette": palette_with_prob,
            "pluginOptions": plugin_options,
        }

    def construct_add_animation(
        self,
        name: str,
        style: str,
        palette: List[HSBColor],
        speed: str = DEFAULT_ANIMATION_SPEED,
        direction: str = DIRECTION_RIGHT,
        brightness: int = 100,
        loop: bool = True,
    ) -> Dict[str, Any]:
        """Save a named plugin animation on the device."""
        write: Dict[str, Any] = {"command": "add", "animName": name}
        write.update(
            self._construct_plugin_write(style, palette, speed, direction, brightness)
        )
        write["loop"] = loop
        return {"write": write}

    def construct_display_animation(
        self,
        style: str,
        palette: List[HSBColor],
        speed: str = DEFAULT_ANIMATION_SPEED,
        direction: str = DIRECTION_RIGHT,
        brightness: int = 100,
    ) -> Dict[str, Any]:
        """Show a plugin animation without saving it."""
        write: Dict[str, Any] = {"command": "display"}
        write.update(
            self._construct_plugin_write(style, palette, speed, direction, brightness)
        )
        write["loop"] = True
        return {"write": write}

    def construct_delete_animation(self, name: str) -> Dict[str, Any]:
        return {"write": {"command": "delete", "animName": name}}
