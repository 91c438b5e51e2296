"""Nanoleaf Gateway exceptions."""

from enum import Enum
from typing import Iterable, List


class ErrorKind(Enum):
    CONNECTIVITY = "connectivity"
    NOT_CONFIGURED = "not_configured"
    AMBIGUOUS_SELECTION = "ambiguous_selection"
    NOT_FOUND = "not_found"
    PAIRING_NOT_ACTIVE = "pairing_not_active"
    INVALID_INPUT = "invalid_input"
    DUPLICATE_ALIAS = "duplicate_alias"


class NanoleafError(Exception):
    """Base class for every error raised by the gateway."""

    kind: ErrorKind


class NanoleafConnectionError(NanoleafError):
    """The device could not be reached or answered with an error status."""

    kind = ErrorKind.CONNECTIVITY


class PairingNotActiveError(NanoleafError):
    """An auth token was requested while the device was not in pairing mode."""

    kind = ErrorKind.PAIRING_NOT_ACTIVE

    def __init__(self, ipaddr: str) -> None:
        self.ipaddr = ipaddr
        super().__init__(
            f"{ipaddr}: Pairing mode not active. "
            "Hold the power button for 5-7 seconds, then retry."
        )


class InvalidInputError(NanoleafError, ValueError):
    """A caller supplied value that cannot be sent to the device."""

    kind = ErrorKind.INVALID_INPUT


class ResolutionError(NanoleafError):
    """Base class for registry lookups that did not produce a device."""

    def __init__(self, message: str, aliases: Iterable[str] = ()) -> None:
        self.aliases: List[str] = list(aliases)
        super().__init__(message)


class NotConfiguredError(ResolutionError):
    kind = ErrorKind.NOT_CONFIGURED

    def __init__(self) -> None:
        super().__init__(
            "No devices registered. Set NANOLEAF_DEVICES env var or use "
            "add_device / discover_devices + create_auth_token to set up."
        )


class AmbiguousSelectionError(ResolutionError):
    kind = ErrorKind.AMBIGUOUS_SELECTION

    def __init__(self, aliases: Iterable[str]) -> None:
        aliases = list(aliases)
        super().__init__(
            f"Multiple devices registered. Specify which device: {', '.join(aliases)}",
            aliases,
        )


class DeviceNotFoundError(ResolutionError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, identifier: str, aliases: Iterable[str]) -> None:
        self.identifier = identifier
        aliases = list(aliases)
        super().__init__(
            f'Device "{identifier}" not found. Available: {", ".join(aliases)}',
            aliases,
        )


class DuplicateAliasError(NanoleafError):
    kind = ErrorKind.DUPLICATE_ALIAS

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(f'Device "{alias}" already registered')
