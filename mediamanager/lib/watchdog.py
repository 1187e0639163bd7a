"""Systemd notifications for the media manager service.

READY=1 once the HTTP server is listening, WATCHDOG=1 at regular intervals,
STOPPING=1 on shutdown.  Silently no-ops when NOTIFY_SOCKET is unset
(dev mode, tests).

Usage:
    from .lib.watchdog import watchdog_loop
    task = asyncio.create_task(watchdog_loop())
"""

import asyncio
import logging
import os
import socket

log = logging.getLogger(__name__)


def sd_notify(msg: str) -> bool:
    """Send *msg* to the systemd notify socket. Returns False when there is none."""
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    except OSError as e:
        log.debug("sd_notify(%s) failed: %s", msg, e)
        return False
    finally:
        sock.close()
    return True


async def watchdog_loop(interval: int = 20):
    """Send READY=1 then WATCHDOG=1 every *interval* seconds until cancelled."""
    if not sd_notify("READY=1"):
        log.debug("No NOTIFY_SOCKET, watchdog disabled")
        return
    log.info("Watchdog started (interval=%ds)", interval)
    while True:
        sd_notify("WATCHDOG=1")
        await asyncio.sleep(interval)
