import colorsys
import contextlib
import math
import re
from typing import List, NamedTuple, Optional, Tuple, Union

import webcolors  # type: ignore


class RGBColor(NamedTuple):
    r: int
    g: int
    b: int


class HSBColor(NamedTuple):
    hue: int
    saturation: int
    brightness: int


_RGB_FUNCTION = re.compile(
    r"^rgba?\(\s*([\d.]+%?)\s*,\s*([\d.]+%?)\s*,\s*([\d.]+%?)\s*(?:,\s*[\d.]+%?\s*)?\)$"
)
_HSL_FUNCTION = re.compile(
    r"^hsla?\(\s*([\d.]+)(?:deg)?\s*,"
    r"\s*([\d.]+)%\s*,\s*([\d.]+)%\s*(?:,\s*[\d.]+%?\s*)?\)$"
)
_BARE_HEX = re.compile(r"^(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def round_half_up(value: float) -> int:
    """Round half up, the way the device firmware does."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def hsb_to_rgb(color: HSBColor) -> RGBColor:
    """Convert hue (degrees), saturation and brightness (percent) to RGB."""
    h = color.hue / 360
    s = color.saturation / 100
    v = color.brightness / 100

    i = math.floor(h * 6)
    f = h * 6 - i
    p = v * (1 - s)
    q = v * (1 - f * s)
    t = v * (1 - (1 - f) * s)

    sector = i % 6
    if sector == 0:
        r, g, b = v, t, p
    elif sector == 1:
        r, g, b = q, v, p
    elif sector == 2:
        r, g, b = p, v, t
    elif sector == 3:
        r, g, b = p, q, v
    elif sector == 4:
        r, g, b = t, p, v
    else:
        r, g, b = v, p, q

    return RGBColor(
        round_half_up(r * 255), round_half_up(g * 255), round_half_up(b * 255)
    )


def rgb_to_hsb(color: RGBColor) -> HSBColor:
    """Convert RGB to hue (degrees), saturation and brightness (percent)."""
    r = color.r / 255
    g = color.g / 255
    b = color.b / 255

    max_c = max(r, g, b)
    min_c = min(r, g, b)
    delta = max_c - min_c

    hue = 0.0
    if delta != 0:
        if max_c == r:
            hue = ((g - b) / delta) % 6
        elif max_c == g:
            hue = (b - r) / delta + 2
        else:
            hue = (r - g) / delta + 4
        hue *= 60

    saturation = 0.0 if max_c == 0 else (delta / max_c) * 100
    brightness = max_c * 100

    return HSBColor(
        round_half_up(hue) % 360,
        round_half_up(saturation),
        round_half_up(brightness),
    )


def clamp_rgb(color: Union[RGBColor, Tuple[float, float, float]]) -> RGBColor:
    r, g, b = color
    return RGBColor(
        int(clamp(round_half_up(r), 0, 255)),
        int(clamp(round_half_up(g), 0, 255)),
        int(clamp(round_half_up(b), 0, 255)),
    )


def _channel(value: str) -> int:
    if value.endswith("%"):
        return round_half_up(clamp(float(value[:-1]), 0, 100) * 255 / 100)
    return int(clamp(round_half_up(float(value)), 0, 255))


def color_object_to_rgb(color: Union[Tuple[int, ...], str]) -> Optional[RGBColor]:
    """Convert a color name, web hex, css function or r,g,b string to RGB."""
    # see if it's already a color tuple
    if isinstance(color, tuple) and len(color) == 3:
        return clamp_rgb(color)  # type: ignore[arg-type]

    # can't convert non-string
    if not isinstance(color, str):
        return None
    color = color.strip().lower()
    if not color:
        return None

    # try to convert from an english name
    with contextlib.suppress(ValueError):
        return RGBColor(*webcolors.name_to_rgb(color))

    # try to convert a web hex code, with or without the leading #
    if _BARE_HEX.match(color):
        color = f"#{color}"
    with contextlib.suppress(ValueError):
        return RGBColor(*webcolors.hex_to_rgb(webcolors.normalize_hex(color)))

    match = _RGB_FUNCTION.match(color)
    if match:
        return RGBColor(*(_channel(part) for part in match.groups()))

    match = _HSL_FUNCTION.match(color)
    if match:
        hue, sat, light = (float(part) for part in match.groups())
        r, g, b = colorsys.hls_to_rgb(
            (hue % 360) / 360, clamp(light, 0, 100) / 100, clamp(sat, 0, 100) / 100
        )
        return clamp_rgb((r * 255, g * 255, b * 255))

    # try a bare comma separated triple
    parts = [part.strip() for part in color.strip("()").split(",")]
    if len(parts) == 3:
        with contextlib.suppress(ValueError):
            return RGBColor(*(_channel(part) for part in parts))

    return None


def parse_color(color: str) -> Optional[HSBColor]:
    """Parse any CSS color string into HSB, None if it is not a color."""
    rgb = color_object_to_rgb(color)
    if rgb is None:
        return None
    return rgb_to_hsb(rgb)


def color_tuple_to_string(rgb: RGBColor) -> str:
    # try to convert to an english name
    with contextlib.suppress(ValueError):
        return str(webcolors.rgb_to_name(tuple(rgb)))
    return str(tuple(rgb))


def get_color_names_list() -> List[str]:
    return sorted(webcolors.names(webcolors.CSS3))
