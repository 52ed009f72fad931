"""
Print pipeline: fetch a payload and stream it to the spooler.

One run makes at most two submission attempts. The second happens only when
the first failed because the destination was not registered, after the
destination has been provisioned.
"""

import logging
from collections.abc import AsyncIterator

import httpx

from printbroker.config import get_settings
from printbroker.constants import SPAN_PROVISION_PRINTER
from printbroker.exceptions import FetchFailure, PrintFailure, ProvisionFailure
from printbroker.observability.metrics import get_metrics
from printbroker.observability.tracing import get_tracer
from printbroker.printing.resolver import DriverTable, ResolvedPrinter
from printbroker.printing.spooler import CupsSpooler, is_missing_destination
from printbroker.types.job import SpoolResult

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class PrintPipeline:
    """
    Streams job payloads into the spooler and provisions missing destinations.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        spooler: CupsSpooler | None = None,
        drivers: DriverTable | None = None,
        chunk_size: int | None = None,
        default_protocol: str | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            http_client: Client used to download payloads.
            spooler: Spooler command runner.
            drivers: Driver table for provisioning.
            chunk_size: Download chunk size in bytes.
            default_protocol: The protocol eligible for driverless provisioning.
        """
        settings = get_settings()

        self._http = http_client
        self._spooler = spooler or CupsSpooler()
        self._drivers = drivers if drivers is not None else DriverTable.from_environ()
        self._chunk_size = chunk_size or settings.fetch_chunk_size
        self._default_protocol = default_protocol or settings.default_printer_protocol

    async def run(
        self,
        location: str,
        printer: ResolvedPrinter,
        options: str,
    ) -> SpoolResult:
        """
        Print the payload at ``location`` on the printer.

        Args:
            location: URL of the payload.
            printer: Resolved destination.
            options: Spooler options.

        Returns:
            The accepted spooler result.

        Raises:
            FetchFailure: The payload could not be downloaded.
            ProvisionFailure: The destination could not be registered.
            PrintFailure: The spooler rejected the job.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            result = await self._submit(location, printer.normalized_name, options)
            if result.ok:
                return result

            if attempt < MAX_ATTEMPTS and is_missing_destination(result):
                logger.info(
                    "Destination missing, provisioning before retry",
                    extra={"destination": printer.normalized_name, "protocol": printer.protocol}
                )
                await self.provision(printer)
                continue

            raise PrintFailure(
                f"Print command failed (exit {result.returncode}): "
                f"{result.stderr or result.stdout or 'no output'}",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        # Unreachable: the last attempt either returns or raises
        raise PrintFailure("Print attempts exhausted")

    async def provision(self, printer: ResolvedPrinter) -> None:
        """
        Register the printer's destination with the spooler.

        A configured driver is used when one matches; otherwise only the
        default protocol can be provisioned, through driverless auto-detection.

        Raises:
            ProvisionFailure: No way to provision, or lpadmin failed.
        """
        metrics = get_metrics()
        driver = self._drivers.find_driver(printer.protocol, printer.host)

        if driver is not None:
            device_uri = printer.device_uri
        elif printer.protocol == self._default_protocol:
            device_uri = printer.device_uri
            if "/" not in printer.host:
                device_uri += "/ipp/print"
        else:
            metrics.record_provision(printer.protocol, success=False)
            raise ProvisionFailure(
                f"No driver configured for {printer.protocol}://{printer.host} "
                f"and auto-detection only supports {self._default_protocol}"
            )

        with get_tracer().start_as_current_span(SPAN_PROVISION_PRINTER) as span:
            span.set_attribute("destination", printer.normalized_name)
            span.set_attribute("device_uri", device_uri)
            try:
                result = await self._spooler.provision(
                    printer.normalized_name,
                    device_uri,
                    driver_path=driver,
                )
            except OSError as e:
                metrics.record_provision(printer.protocol, success=False)
                raise ProvisionFailure(f"Could not run provisioning command: {e}") from e

        if not result.ok:
            metrics.record_provision(printer.protocol, success=False)
            raise ProvisionFailure(
                f"Provisioning {printer.normalized_name} failed (exit {result.returncode}): "
                f"{result.stderr or result.stdout or 'no output'}"
            )

        metrics.record_provision(printer.protocol, success=True)
        logger.info(
            "Provisioned destination",
            extra={"destination": printer.normalized_name, "device_uri": device_uri, "driver": driver}
        )

    async def _submit(self, location: str, destination: str, options: str) -> SpoolResult:
        try:
            async with self._http.stream("GET", location) as response:
                if not response.is_success:
                    raise FetchFailure(
                        f"Failed to fetch payload: HTTP {response.status_code}"
                    )
                return await self._spooler.submit(
                    destination,
                    options,
                    self._iter_payload(response),
                )
        except httpx.HTTPError as e:
            raise FetchFailure(f"Failed to fetch payload: {e}") from e
        except OSError as e:
            raise PrintFailure(f"Could not run print command: {e}") from e

    async def _iter_payload(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes(self._chunk_size):
                yield chunk
        except httpx.HTTPError as e:
            raise FetchFailure(f"Payload download interrupted: {e}") from e
