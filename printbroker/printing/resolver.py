"""
Printer id resolution.

A job's printer id is either a local spooler destination name or a network
locator such as ``ipp://192.168.1.5``. Both resolve to a protocol, a host and
a destination name that CUPS accepts.

Drivers for auto-provisioning come from the environment:

    PRINTER_DRIVER_<name>="<protocol>:<hostGlob>:<driverPath>"

e.g. ``PRINTER_DRIVER_BROTHER="ipp:192.168.7.*:/usr/share/ppd/brother.ppd"``.
Entries are tried in declaration order; ``*`` in the host glob matches
anything.
"""

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

from printbroker.constants import DEFAULT_PRINTER_PROTOCOL, PRINTER_DRIVER_ENV_PREFIX

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_VALID_NAME_START = re.compile(r"^[A-Za-z_]")


@dataclass(frozen=True)
class ResolvedPrinter:
    """Where a job is printed."""

    protocol: str
    host: str
    normalized_name: str

    @property
    def device_uri(self) -> str:
        return f"{self.protocol}://{self.host}"


def normalize_destination_name(name: str) -> str:
    """
    Turn an arbitrary host or printer string into a valid destination name.

    Characters outside letters, digits, underscore and hyphen become ``_``,
    and a leading ``_`` is added unless the name starts with a letter or
    underscore. Applying it twice gives the same result as applying it once.

    >>> normalize_destination_name("192.168.7.101")
    '_192_168_7_101'
    """
    normalized = _INVALID_NAME_CHARS.sub("_", name)
    if not _VALID_NAME_START.match(normalized):
        normalized = "_" + normalized
    return normalized


def parse_printer_id(
    printer_id: str,
    default_protocol: str = DEFAULT_PRINTER_PROTOCOL,
) -> ResolvedPrinter:
    """
    Split a printer id into protocol and host and derive its destination name.

    - ``protocol://host`` splits at the scheme separator
    - ``host/protocol`` takes the segment after the last ``/`` as protocol
    - anything else is a host on the default protocol

    Args:
        printer_id: The job's printer id.
        default_protocol: Protocol used when the id names none.

    Returns:
        The resolved printer.
    """
    if "://" in printer_id:
        protocol, host = printer_id.split("://", 1)
    elif "/" in printer_id:
        host, protocol = printer_id.rsplit("/", 1)
    else:
        protocol, host = default_protocol, printer_id

    if not protocol:
        protocol = default_protocol

    return ResolvedPrinter(
        protocol=protocol.lower(),
        host=host,
        normalized_name=normalize_destination_name(host),
    )


def _glob_to_regex(host_glob: str) -> re.Pattern:
    parts = [re.escape(part) for part in host_glob.split("*")]
    return re.compile("^" + ".*".join(parts) + "$", re.IGNORECASE)


@dataclass(frozen=True)
class DriverEntry:
    """One PRINTER_DRIVER_* declaration."""

    name: str
    protocol: str
    host_glob: str
    driver_path: str

    def matches(self, protocol: str, host: str) -> bool:
        if self.protocol.lower() != protocol.lower():
            return False
        return _glob_to_regex(self.host_glob).match(host) is not None


class DriverTable:
    """Ordered protocol/host-glob to driver mapping."""

    def __init__(self, entries: list[DriverEntry] | None = None):
        self.entries = list(entries or [])

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "DriverTable":
        """
        Build the table from PRINTER_DRIVER_* variables, in declaration order.

        Malformed values are logged and skipped.
        """
        environ = os.environ if environ is None else environ

        entries = []
        for key, value in environ.items():
            if not key.startswith(PRINTER_DRIVER_ENV_PREFIX):
                continue

            parts = value.split(":", 2)
            if len(parts) != 3 or not all(parts):
                logger.warning(
                    "Ignoring malformed printer driver entry",
                    extra={"variable": key, "value": value}
                )
                continue

            protocol, host_glob, driver_path = parts
            entries.append(
                DriverEntry(
                    name=key[len(PRINTER_DRIVER_ENV_PREFIX):],
                    protocol=protocol,
                    host_glob=host_glob,
                    driver_path=driver_path,
                )
            )

        return cls(entries)

    def find_driver(self, protocol: str, host: str) -> str | None:
        """
        Find the driver for a printer.

        Args:
            protocol: The printer protocol.
            host: The printer host.

        Returns:
            The first matching driver path, or None.
        """
        for entry in self.entries:
            if entry.matches(protocol, host):
                logger.debug(
                    "Matched printer driver",
                    extra={"entry": entry.name, "protocol": protocol, "host": host}
                )
                return entry.driver_path
        return None

    def __len__(self) -> int:
        return len(self.entries)
