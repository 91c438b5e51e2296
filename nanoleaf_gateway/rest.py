"""REST front-end, mounted under /api."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .aiodevice import AIONanoleafDevice
from .aioscanner import AIONanoleafScanner
from .const import DEFAULT_SUBNET
from .exceptions import ErrorKind, InvalidInputError, NanoleafError
from .registry import DeviceRegistry, RegisteredDevice
from .schemas import (
    DEVICE_DESCRIPTION,
    AuthTokenBody,
    BrightnessBody,
    ColorBody,
    ColorTemperatureBody,
    ConnectionCheckBody,
    DeviceCreate,
    DiscoverBody,
    EffectBody,
    HueBody,
    PanelsBody,
    RGBBody,
    SaturationBody,
    StateBody,
)
from .utils import parse_color

_LOGGER = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.CONNECTIVITY: 502,
    ErrorKind.NOT_CONFIGURED: 400,
    ErrorKind.AMBIGUOUS_SELECTION: 400,
    ErrorKind.NOT_FOUND: 400,
    ErrorKind.PAIRING_NOT_ACTIVE: 403,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.DUPLICATE_ALIAS: 409,
}


async def _async_run_logged(
    ipaddr: str, func: Callable[..., Awaitable[None]], *args: Any, **kwargs: Any
) -> None:
    """Run a command whose result nobody waits for."""
    try:
        await func(*args, **kwargs)
    except NanoleafError as ex:
        _LOGGER.error("%s: %s failed: %s", ipaddr, func.__name__, ex)


def _accepted(message: str) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=202)


def create_rest_api(registry: DeviceRegistry) -> FastAPI:
    """The REST application, with docs at /docs and the schema at /openapi.json."""
    api = FastAPI(
        title="Nanoleaf Gateway",
        description="Control Nanoleaf light panels over HTTP",
        version="1.0.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        redoc_url=None,
    )

    @api.exception_handler(NanoleafError)
    async def _nanoleaf_error(request: Request, ex: NanoleafError) -> JSONResponse:
        return JSONResponse({"error": str(ex)}, status_code=ERROR_STATUS[ex.kind])

    @api.exception_handler(RequestValidationError)
    async def _validation_error(
        request: Request, ex: RequestValidationError
    ) -> JSONResponse:
        messages = [
            f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
            for error in ex.errors()
        ]
        return JSONResponse({"error": "; ".join(messages)}, status_code=400)

    def resolve(
        device: Optional[str] = Query(None, description=DEVICE_DESCRIPTION)
    ) -> RegisteredDevice:
        return registry.resolve(device)

    def fire(
        tasks: BackgroundTasks,
        entry: RegisteredDevice,
        func: Callable[..., Awaitable[None]],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        tasks.add_task(_async_run_logged, entry.ip, func, *args, **kwargs)

    # Device management

    @api.get("/devices", tags=["devices"])
    async def list_devices() -> Dict[str, Any]:
        return {"devices": await registry.async_list_status()}

    @api.post("/devices", status_code=201, tags=["devices"])
    async def add_device(body: DeviceCreate) -> Dict[str, Any]:
        entry = await registry.async_register_verified(
            body.ip, body.authToken, body.alias
        )
        return entry.as_dict()

    @api.delete("/devices/{alias}", tags=["devices"])
    async def remove_device(alias: str) -> JSONResponse:
        if registry.remove(alias):
            return JSONResponse({"message": f'Device "{alias}" removed'})
        return JSONResponse(
            {"error": f'Device "{alias}" not found'}, status_code=404
        )

    # Device info

    @api.get("/device", tags=["device"])
    async def get_device_info(
        entry: RegisteredDevice = Depends(resolve),
    ) -> Dict[str, Any]:
        info = await entry.device.async_get_info()
        return info.raw

    @api.get("/device/panels", tags=["device"])
    async def get_panel_layout(
        entry: RegisteredDevice = Depends(resolve),
    ) -> Dict[str, Any]:
        layout = await entry.device.async_get_panel_layout()
        return layout.as_dict()

    # Power, brightness and color

    @api.post("/device/on", status_code=202, tags=["control"])
    async def turn_on(
        tasks: BackgroundTasks, entry: RegisteredDevice = Depends(resolve)
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_turn_on)
        return _accepted("Device turning on")

    @api.post("/device/off", status_code=202, tags=["control"])
    async def turn_off(
        tasks: BackgroundTasks, entry: RegisteredDevice = Depends(resolve)
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_turn_off)
        return _accepted("Device turning off")

    @api.put("/device/brightness", status_code=202, tags=["control"])
    async def set_brightness(
        body: BrightnessBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_set_brightness, body.brightness)
        return _accepted(f"Brightness set to {body.brightness:g}%")

    @api.put("/device/hue", status_code=202, tags=["control"])
    async def set_hue(
        body: HueBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_set_hue, body.hue)
        return _accepted(f"Hue set to {body.hue:g}")

    @api.put("/device/saturation", status_code=202, tags=["control"])
    async def set_saturation(
        body: SaturationBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_set_saturation, body.saturation)
        return _accepted(f"Saturation set to {body.saturation:g}%")

    @api.put("/device/color", status_code=202, tags=["control"])
    async def set_color(
        body: ColorBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        hsb = parse_color(body.color)
        if hsb is None:
            raise InvalidInputError(f'Invalid color: "{body.color}"')
        fire(
            tasks,
            entry,
            entry.device.async_set_state,
            on=True,
            hue=hsb.hue,
            saturation=hsb.saturation,
            brightness=hsb.brightness,
        )
        return _accepted(f"Color set to {body.color}")

    @api.put("/device/color/rgb", status_code=202, tags=["control"])
    async def set_color_rgb(
        body: RGBBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        color = body.to_rgb()
        fire(tasks, entry, entry.device.async_set_color, color)
        return _accepted(f"Color set to RGB({color.r}, {color.g}, {color.b})")

    @api.put("/device/color/temperature", status_code=202, tags=["control"])
    async def set_color_temperature(
        body: ColorTemperatureBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_set_color_temperature, body.ct)
        return _accepted(f"Color temperature set to {body.ct:g}K")

    @api.put("/device/state", status_code=202, tags=["control"])
    async def set_state(
        body: StateBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        hue, saturation, brightness = body.hue, body.saturation, body.brightness
        if body.color:
            hsb = parse_color(body.color)
            if hsb is None:
                raise InvalidInputError(f'Invalid color: "{body.color}"')
            hue = hsb.hue if hue is None else hue
            saturation = hsb.saturation if saturation is None else saturation
            brightness = hsb.brightness if brightness is None else brightness
        fire(
            tasks,
            entry,
            entry.device.async_set_state,
            on=body.on,
            brightness=brightness,
            hue=hue,
            saturation=saturation,
            ct=body.ct,
        )
        return _accepted("State updated")

    # Effects

    @api.get("/device/effects", tags=["effects"])
    async def list_effects(
        entry: RegisteredDevice = Depends(resolve),
    ) -> Dict[str, Any]:
        return {"effects": await entry.device.async_list_effects()}

    @api.get("/device/effects/current", tags=["effects"])
    async def get_current_effect(
        entry: RegisteredDevice = Depends(resolve),
    ) -> Dict[str, Any]:
        return {"effect": await entry.device.async_get_current_effect()}

    @api.put("/device/effects", status_code=202, tags=["effects"])
    async def set_effect(
        body: EffectBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_set_effect, body.effectName)
        return _accepted(f'Effect "{body.effectName}" activated')

    # Panels

    @api.put("/device/panels/colors", status_code=202, tags=["panels"])
    async def set_panel_colors(
        body: PanelsBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_set_panel_colors, body.to_panel_colors())
        return _accepted(f"Set colors for {len(body.panels)} panels")

    @api.put("/device/panels/solid", status_code=202, tags=["panels"])
    async def set_solid_color(
        body: RGBBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        color = body.to_rgb()
        fire(tasks, entry, entry.device.async_set_color, color)
        return _accepted(f"All panels set to RGB({color.r}, {color.g}, {color.b})")

    # Streaming

    @api.post("/device/streaming/start", tags=["streaming"])
    async def start_streaming(
        entry: RegisteredDevice = Depends(resolve),
    ) -> Dict[str, Any]:
        await entry.device.async_initialize_streaming()
        return {"message": "Streaming mode initialized"}

    @api.post("/device/streaming/stop", tags=["streaming"])
    async def stop_streaming(
        entry: RegisteredDevice = Depends(resolve),
    ) -> Dict[str, Any]:
        await entry.device.async_stop_streaming()
        return {"message": "Streaming mode stopped"}

    @api.post("/device/streaming/solid", status_code=202, tags=["streaming"])
    async def stream_solid_color(
        body: RGBBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        color = body.to_rgb()
        fire(tasks, entry, entry.device.async_stream_solid_color, color)
        return _accepted(f"Streamed RGB({color.r}, {color.g}, {color.b}) to all panels")

    @api.post("/device/streaming/panels", status_code=202, tags=["streaming"])
    async def stream_panel_colors(
        body: PanelsBody,
        tasks: BackgroundTasks,
        entry: RegisteredDevice = Depends(resolve),
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_stream_colors, body.to_panel_colors())
        return _accepted(f"Streamed colors to {len(body.panels)} panels")

    @api.post("/device/identify", status_code=202, tags=["control"])
    async def identify(
        tasks: BackgroundTasks, entry: RegisteredDevice = Depends(resolve)
    ) -> JSONResponse:
        fire(tasks, entry, entry.device.async_identify)
        return _accepted("Device is flashing to identify itself")

    # Discovery and setup

    @api.post("/discover", tags=["setup"])
    async def discover(body: Optional[DiscoverBody] = None) -> Dict[str, Any]:
        body = body or DiscoverBody()
        scanner = AIONanoleafScanner()
        if body.method == "scan":
            devices = await scanner.async_scan_subnet(body.subnet or DEFAULT_SUBNET)
        else:
            devices = await scanner.async_discover_mdns()
        return {"devices": devices}

    @api.post("/auth-token", tags=["setup"])
    async def create_auth_token(body: AuthTokenBody) -> Dict[str, Any]:
        return {"authToken": await AIONanoleafDevice.async_create_auth_token(body.ip)}

    @api.post("/test-connection", tags=["setup"])
    async def test_connection(
        body: Optional[ConnectionCheckBody] = None,
    ) -> Dict[str, Any]:
        body = body or ConnectionCheckBody()
        if body.ip and body.authToken:
            return dict(await registry.async_check_credentials(body.ip, body.authToken))
        entry = registry.resolve(body.device)
        summary: Dict[str, Any] = {"alias": entry.alias}
        summary.update(await entry.device.async_test_connection())
        return summary

    return api
