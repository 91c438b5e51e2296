"""Typed views of the device JSON."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .const import (
    SHAPE_TYPE_CONTROLLER,
    STATE_BRIGHTNESS,
    STATE_COLOR_TEMP,
    STATE_HUE,
    STATE_ON,
    STATE_SATURATION,
    STATIC_EFFECTS,
)
from .utils import HSBColor


@dataclass(frozen=True)
class StateValue:
    value: Union[int, bool]
    min: Optional[int] = None
    max: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StateValue":
        data = data or {}
        return cls(data.get("value", 0), data.get("min"), data.get("max"))


@dataclass(frozen=True)
class DeviceState:
    on: StateValue
    brightness: StateValue
    hue: StateValue
    sat: StateValue
    ct: StateValue
    color_mode: Optional[str]  # hs, ct or effect

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceState":
        return cls(
            on=StateValue.from_dict(data.get(STATE_ON)),
            brightness=StateValue.from_dict(data.get(STATE_BRIGHTNESS)),
            hue=StateValue.from_dict(data.get(STATE_HUE)),
            sat=StateValue.from_dict(data.get(STATE_SATURATION)),
            ct=StateValue.from_dict(data.get(STATE_COLOR_TEMP)),
            color_mode=data.get("colorMode"),
        )

    @property
    def is_on(self) -> bool:
        return bool(self.on.value)

    @property
    def hsb(self) -> HSBColor:
        return HSBColor(
            int(self.hue.value), int(self.sat.value), int(self.brightness.value)
        )


@dataclass(frozen=True)
class PanelPosition:
    panel_id: int
    x: int
    y: int
    o: int  # rotation in degrees
    shape_type: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PanelPosition":
        return cls(
            panel_id=int(data["panelId"]),
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
            o=int(data.get("o", 0)),
            shape_type=int(data.get("shapeType", 0)),
        )

    @property
    def is_controller(self) -> bool:
        return self.shape_type == SHAPE_TYPE_CONTROLLER

    def as_dict(self) -> Dict[str, int]:
        return {
            "panelId": self.panel_id,
            "x": self.x,
            "y": self.y,
            "o": self.o,
            "shapeType": self.shape_type,
        }


@dataclass(frozen=True)
class PanelBounds:
    min_x: int = 0
    max_x: int = 0
    min_y: int = 0
    max_y: int = 0

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    def as_dict(self) -> Dict[str, int]:
        return {
            "minX": self.min_x,
            "maxX": self.max_x,
            "minY": self.min_y,
            "maxY": self.max_y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class PanelLayout:
    num_panels: int
    side_length: int
    positions: List[PanelPosition]
    bounds: PanelBounds

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PanelLayout":
        """Build the layout from the panelLayout.layout object."""
        positions = [PanelPosition.from_dict(p) for p in data.get("positionData", [])]
        if positions:
            xs = [p.x for p in positions]
            ys = [p.y for p in positions]
            bounds = PanelBounds(min(xs), max(xs), min(ys), max(ys))
        else:
            bounds = PanelBounds()
        return cls(
            num_panels=int(data.get("numPanels", len(positions))),
            side_length=int(data.get("sideLength", 0)),
            positions=positions,
            bounds=bounds,
        )

    @property
    def panel_ids(self) -> List[int]:
        return [p.panel_id for p in self.positions]

    @property
    def light_panel_ids(self) -> List[int]:
        """Ids of the panels that emit light."""
        return [p.panel_id for p in self.positions if not p.is_controller]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "numPanels": self.num_panels,
            "sideLength": self.side_length,
            "positions": [p.as_dict() for p in self.positions],
            "bounds": self.bounds.as_dict(),
        }


@dataclass(frozen=True)
class DeviceInfo:
    name: str
    serial_no: Optional[str]
    manufacturer: Optional[str]
    firmware_version: Optional[str]
    hardware_version: Optional[str]
    model: Optional[str]
    state: DeviceState
    effects_list: List[str]
    selected_effect: Optional[str]
    layout: PanelLayout
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceInfo":
        effects = data.get("effects") or {}
        panel_layout = (data.get("panelLayout") or {}).get("layout") or {}
        return cls(
            name=data.get("name") or "",
            serial_no=data.get("serialNo"),
            manufacturer=data.get("manufacturer"),
            firmware_version=data.get("firmwareVersion"),
            hardware_version=data.get("hardwareVersion"),
            model=data.get("model"),
            state=DeviceState.from_dict(data.get("state") or {}),
            effects_list=list(effects.get("effectsList") or []),
            selected_effect=effects.get("select"),
            layout=PanelLayout.from_dict(panel_layout),
            raw=data,
        )

    @property
    def static_mode(self) -> bool:
        """True when the panels reflect the state API directly."""
        return self.selected_effect in STATIC_EFFECTS
