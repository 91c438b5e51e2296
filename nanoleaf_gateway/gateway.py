#!/usr/bin/env python3

"""Nanoleaf gateway.

Serves a REST API under /api and a Model Context Protocol tool server
under /mcp, both driving the devices of one registry.

Devices are configured with NANOLEAF_DEVICES, a comma separated list of
[alias=]ip:token entries, or added at runtime.
"""

import asyncio
import contextlib
import logging
from optparse import OptionParser, Values
import sys
from typing import Any, AsyncIterator, List, Optional, Tuple

from fastapi import FastAPI
import uvicorn

from .aiodevice import AIONanoleafDevice
from .aioscanner import AIONanoleafScanner, NanoleafDiscovery
from .config import GatewayConfig
from .exceptions import NanoleafError
from .registry import DeviceRegistry
from .rest import create_rest_api
from .tools import create_tool_server
from .utils import get_color_names_list

_LOGGER = logging.getLogger(__name__)


def create_registry(config: GatewayConfig) -> DeviceRegistry:
    registry = DeviceRegistry()
    for entry in config.devices:
        registry.register(entry.ip, entry.auth_token, entry.alias)
    return registry


def _log_devices(registry: DeviceRegistry) -> None:
    if not len(registry):
        _LOGGER.info(
            "No devices configured. Set NANOLEAF_DEVICES or use add_device at runtime."
        )
        return
    _LOGGER.info("Registered devices (%s):", len(registry))
    for entry in registry:
        _LOGGER.info(
            "  %s %s %s %s", entry.alias, entry.ip, entry.name or "", entry.model or ""
        )


def create_app(registry: DeviceRegistry) -> FastAPI:
    """The ASGI application serving both front-ends for registry."""
    tool_server = create_tool_server(registry)
    tool_app = tool_server.streamable_http_app()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await registry.async_refresh_names()
        _log_devices(registry)
        try:
            async with tool_server.session_manager.run():
                yield
        finally:
            await registry.async_stop()

    app = FastAPI(
        title="Nanoleaf Gateway",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.registry = registry
    app.mount("/api", create_rest_api(registry))
    app.mount("/mcp", tool_app)
    return app


def _print_discoveries(discoveries: List[NanoleafDiscovery]) -> None:
    print(f"{len(discoveries)} devices found")
    for found in discoveries:
        print("  {} {}".format(found.get("id") or "Unknown ID", found["ip"]))


def parse_args(argv: Optional[List[str]] = None) -> Tuple[Values, Any]:
    parser = OptionParser()

    parser.description = "A gateway to control Nanoleaf light panels. "
    parser.add_option(
        "",
        "--host",
        dest="host",
        default=None,
        metavar="HOST",
        help="Interface to listen on (default from HOST or 0.0.0.0)",
    )
    parser.add_option(
        "-p",
        "--port",
        dest="port",
        type="int",
        default=None,
        metavar="PORT",
        help="Port to listen on (default from PORT or 3101)",
    )
    parser.add_option(
        "-d",
        "--debug",
        action="store_true",
        dest="debug",
        default=False,
        help="Log at debug level",
    )
    parser.add_option(
        "-s",
        "--scan",
        action="store_true",
        dest="scan",
        default=False,
        help="Search for devices with mdns, print them and exit",
    )
    parser.add_option(
        "",
        "--scan-subnet",
        dest="scan_subnet",
        default=None,
        metavar="SUBNET",
        help="Probe every host of a subnet such as 192.168.1 and exit",
    )
    parser.add_option(
        "",
        "--pair",
        dest="pair",
        default=None,
        metavar="IP",
        help="Create an auth token for the device at IP and exit. "
        + "Hold the power button for 5-7 seconds first.",
    )
    parser.add_option(
        "--listcolors",
        action="store_true",
        dest="listcolors",
        default=False,
        help="List color names",
    )

    parser.usage = "usage: %prog [-dsp] [--host HOST] [--pair IP]"
    (options, args) = parser.parse_args(argv)

    if options.listcolors:
        for c in get_color_names_list():
            print(f"{c}, ")
        print("")
        sys.exit(0)

    if options.scan and options.scan_subnet:
        parser.error("options --scan and --scan-subnet are mutually exclusive")

    return (options, args)


def main() -> None:
    (options, _) = parse_args()
    config = GatewayConfig.from_env()
    level = "DEBUG" if options.debug else (config.log_level or "INFO").upper()
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if options.scan:
        _print_discoveries(asyncio.run(AIONanoleafScanner().async_discover_mdns()))
        sys.exit(0)

    if options.scan_subnet:
        try:
            discoveries = asyncio.run(
                AIONanoleafScanner().async_scan_subnet(options.scan_subnet)
            )
        except NanoleafError as ex:
            print(ex)
            sys.exit(1)
        _print_discoveries(discoveries)
        sys.exit(0)

    if options.pair:
        try:
            auth_token = asyncio.run(
                AIONanoleafDevice.async_create_auth_token(options.pair)
            )
        except NanoleafError as ex:
            print(ex)
            sys.exit(1)
        print(f"Auth token: {auth_token}")
        print(f"NANOLEAF_DEVICES={options.pair}:{auth_token}")
        sys.exit(0)

    app = create_app(create_registry(config))
    uvicorn.run(
        app,
        host=options.host or config.host,
        port=options.port or config.port,
        log_level=level.lower(),
    )


if __name__ == "__main__":
    main()
