"""
CUPS spooler commands.

Payloads are written into ``lp``'s stdin chunk by chunk as they arrive, so a
job never has to fit in memory or on disk.
"""

import asyncio
import logging
import re
import shlex
from collections.abc import AsyncIterator

from printbroker.config import get_settings
from printbroker.types.job import SpoolResult

logger = logging.getLogger(__name__)

# CUPS wording differs across versions and locales:
#   lp: The printer or class does not exist.
#   lp: Unknown destination "foo".
#   lpadmin: No such destination
_MISSING_DESTINATION_RE = re.compile(
    r"(does not exist|unknown destination|no such (destination|printer))",
    re.IGNORECASE,
)


def is_missing_destination(result: SpoolResult) -> bool:
    """
    Decide whether a failed submission means the destination is not registered.

    This is the only place that interprets spooler diagnostics.
    """
    if result.ok:
        return False
    return bool(_MISSING_DESTINATION_RE.search(result.stderr or result.stdout))


class CupsSpooler:
    """Runs ``lp`` and ``lpadmin``."""

    def __init__(
        self,
        lp_command: str | None = None,
        lpadmin_command: str | None = None,
    ):
        settings = get_settings()
        self._lp = shlex.split(lp_command or settings.lp_command)
        self._lpadmin = shlex.split(lpadmin_command or settings.lpadmin_command)

    async def submit(
        self,
        destination: str,
        options: str,
        chunks: AsyncIterator[bytes],
    ) -> SpoolResult:
        """
        Submit a job by streaming chunks into ``lp -d <destination> <options>``.

        A closed stdin (the spooler stopped reading early) is logged and the
        rest of the stream is discarded. Errors raised by the chunk source
        kill the subprocess and propagate.

        Args:
            destination: CUPS destination name.
            options: Extra lp arguments, shell-split.
            chunks: The payload bytes.

        Returns:
            The lp exit status and output.
        """
        cmd = [*self._lp, "-d", destination, *shlex.split(options or "")]
        logger.info("Submitting to spooler", extra={"command": shlex.join(cmd)})

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_task = asyncio.create_task(proc.stdout.read())
        stderr_task = asyncio.create_task(proc.stderr.read())

        try:
            await self._feed(proc, chunks)
        except BaseException:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            await asyncio.gather(stdout_task, stderr_task, return_exceptions=True)
            raise

        returncode = await proc.wait()
        stdout, stderr = await asyncio.gather(stdout_task, stderr_task)

        result = SpoolResult(
            returncode=returncode,
            stdout=stdout.decode(errors="replace").strip(),
            stderr=stderr.decode(errors="replace").strip(),
        )
        if result.ok:
            logger.info("Spooler accepted job", extra={"stdout": result.stdout})
        else:
            logger.warning(
                "Spooler rejected job",
                extra={"returncode": returncode, "stderr": result.stderr}
            )
        return result

    async def _feed(self, proc: asyncio.subprocess.Process, chunks: AsyncIterator[bytes]) -> None:
        stdin = proc.stdin
        written = 0
        try:
            async for chunk in chunks:
                stdin.write(chunk)
                await stdin.drain()
                written += len(chunk)
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning(
                "Spooler closed its input early",
                extra={"bytes_written": written, "error": str(e)}
            )
            return

        stdin.close()
        try:
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            logger.warning(
                "Spooler closed its input early",
                extra={"bytes_written": written}
            )

    async def provision(
        self,
        destination: str,
        device_uri: str,
        driver_path: str | None = None,
    ) -> SpoolResult:
        """
        Register and enable a destination with ``lpadmin``.

        Args:
            destination: Name to register.
            device_uri: Where CUPS sends the jobs.
            driver_path: PPD file; without one the IPP Everywhere model is used.

        Returns:
            The lpadmin exit status and output.
        """
        cmd = [*self._lpadmin, "-p", destination, "-E", "-v", device_uri]
        if driver_path:
            cmd += ["-P", driver_path]
        else:
            cmd += ["-m", "everywhere"]

        logger.info("Provisioning destination", extra={"command": shlex.join(cmd)})

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()

        return SpoolResult(
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace").strip(),
            stderr=stderr.decode(errors="replace").strip(),
        )
