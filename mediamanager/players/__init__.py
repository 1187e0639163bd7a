"""
Players: playback backends driven by the command dispatcher.

A backend declares which file extensions it accepts and executes
PlayerCommands against whatever it is currently playing.  The dispatcher
picks, for every command targeting a media, the first registered backend
that accepts the media's extension.

Current backends:
  omx.py    : external player process controlled through its stdin
              (omxplayer by default), position parsed from its output
  probe.py  : media length via an inspection tool (ffprobe by default)

The factory ``create_backends`` reads config.json and returns the backends in
registration order.
"""

import logging

from ..lib.config import cfg
from .base import OPERATIONS, Backend, MediaHandle, PlayerCommand
from .omx import OmxPlayer
from .probe import DurationProbe

log = logging.getLogger(__name__)

__all__ = [
    "OPERATIONS",
    "Backend",
    "DurationProbe",
    "MediaHandle",
    "OmxPlayer",
    "PlayerCommand",
    "create_backends",
]


def create_backends() -> list[Backend]:
    """Create the configured backends, first registered wins on a shared extension.

    config.json either has a single "player" section:
      command     – argv prefix, media path is appended
      extensions  – accepted extensions (default mkv, mp4, avi)

    or a "players" list of such sections, each with an optional "name",
    e.g. omxplayer on HDMI for films and omxplayer on the jack for music.
    """
    probe = DurationProbe()
    sections = cfg("players")
    if not sections:
        return [OmxPlayer(probe=probe)]

    backends: list[Backend] = []
    for i, section in enumerate(sections):
        if not isinstance(section, dict):
            log.warning("players[%d] is not an object, skipped", i)
            continue
        backends.append(OmxPlayer(
            command=section.get("command"),
            extensions=section.get("extensions"),
            probe=probe,
            name=section.get("name") or f"omxplayer-{i}",
        ))
        log.info("Backend %s accepts %s", backends[-1].name,
                 ", ".join(sorted(backends[-1].extensions)))
    return backends
