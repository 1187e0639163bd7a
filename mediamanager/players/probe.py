"""
Media length via an auxiliary inspection process (ffprobe by default).

The tool's diagnostic output carries a line like

    Duration: 01:22:19.04, start: 0.000000, bitrate: 2155 kb/s

from which the HH:MM:SS part is extracted as an absolute position.
"""

import asyncio
import logging

from ..lib.config import cfg
from ..lib.time_position import TimePosition, parse_position

log = logging.getLogger(__name__)

DEFAULT_PROBE_COMMAND = ["ffprobe", "-hide_banner"]
DURATION_MARKER = "duration"
PROBE_TIMEOUT = 30  # seconds


def parse_duration(output: str) -> TimePosition:
    """Absolute length from the first "Duration" line, zero when there is none."""
    for line in output.splitlines():
        if DURATION_MARKER in line.lower():
            return parse_position(line, absolute=True)
    return TimePosition(0, absolute=True)


class DurationProbe:
    def __init__(self, command: list[str] | None = None, timeout: float = PROBE_TIMEOUT):
        self.command = list(command or cfg("probe", "command", default=DEFAULT_PROBE_COMMAND))
        self.timeout = timeout

    async def probe(self, path: str) -> TimePosition | None:
        """Run the probe against *path*. None when the tool can't be run."""
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command, path,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            log.warning("Can not run %s: %s", self.command[0], e)
            return None

        try:
            output, _ = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError:
            log.warning("%s timed out on %s", self.command[0], path)
            process.kill()
            await process.wait()
            return None

        length = parse_duration(output.decode(errors="replace"))
        log.debug("Length of %s: %ss", path, length.seconds)
        return length
