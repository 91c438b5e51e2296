"""Request bodies shared by the REST and tool front-ends."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .utils import RGBColor, clamp_rgb

DEVICE_DESCRIPTION = (
    "Device alias or IP. Optional when only one device is registered."
)


class RGBBody(BaseModel):
    r: float = Field(description="Red (0-255)")
    g: float = Field(description="Green (0-255)")
    b: float = Field(description="Blue (0-255)")

    def to_rgb(self) -> RGBColor:
        return clamp_rgb((self.r, self.g, self.b))


class PanelColor(RGBBody):
    panelId: int = Field(ge=0, description="The panel ID")


class PanelsBody(BaseModel):
    panels: List[PanelColor] = Field(min_length=1)

    def to_panel_colors(self) -> Dict[int, RGBColor]:
        return panel_colors_from_list(self.panels)


def panel_colors_from_list(panels: List[PanelColor]) -> Dict[int, RGBColor]:
    """Later entries win when a panel id repeats."""
    return {panel.panelId: panel.to_rgb() for panel in panels}


class DeviceCreate(BaseModel):
    ip: str
    authToken: str
    alias: Optional[str] = Field(
        None, description="Friendly name (defaults to hardware name)"
    )


class BrightnessBody(BaseModel):
    brightness: float = Field(description="Brightness (0-100)")


class HueBody(BaseModel):
    hue: float = Field(description="Hue (0-360)")


class SaturationBody(BaseModel):
    saturation: float = Field(description="Saturation (0-100)")


class ColorBody(BaseModel):
    color: str = Field(description="Any CSS color string")


class ColorTemperatureBody(BaseModel):
    ct: float = Field(description="Color temperature in Kelvin (1200-6500)")


class StateBody(BaseModel):
    on: Optional[bool] = None
    color: Optional[str] = Field(
        None, description="CSS color, explicit hue/saturation/brightness win"
    )
    brightness: Optional[float] = None
    hue: Optional[float] = None
    saturation: Optional[float] = None
    ct: Optional[float] = None


class EffectBody(BaseModel):
    effectName: str = Field(min_length=1)


class DiscoverBody(BaseModel):
    method: Literal["mdns", "scan"] = "mdns"
    subnet: Optional[str] = None


class AuthTokenBody(BaseModel):
    ip: str


class ConnectionCheckBody(BaseModel):
    device: Optional[str] = Field(None, description="Registered device alias")
    ip: Optional[str] = None
    authToken: Optional[str] = None
