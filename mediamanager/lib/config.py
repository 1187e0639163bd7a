# mediamanager
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for the media manager.

Loads a single JSON config file.  Search order:
  1. $MEDIAMANAGER_CONFIG             (explicit override)
  2. /etc/mediamanager/config.json    (deployed install)
  3. config.json                      (CWD, handy for local dev)

Media roots can also come from the MEDIA_ROOTS environment variable
("movies:/mnt/movies,music:/mnt/music"), which wins over the file.

Usage:
    from mediamanager.lib.config import cfg

    port     = cfg("server", "port", default=8080)
    command  = cfg("player", "command", default=["omxplayer"])
    roots    = media_roots()
"""

import json
import logging
import os

log = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/mediamanager/config.json",
    "config.json",
]


def _search_paths() -> list[str]:
    explicit = os.environ.get("MEDIAMANAGER_CONFIG")
    return ([explicit] if explicit else []) + _SEARCH_PATHS


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    media = config.get("media") or {}
    if not media.get("roots") and not os.environ.get("MEDIA_ROOTS"):
        log.warning("Config %s: no media.roots, nothing will be browsable", path)
    player = config.get("player") or {}
    command = player.get("command")
    if command is not None and not (isinstance(command, list) and command):
        log.warning("Config %s: player.command must be a non-empty list", path)
    size = (config.get("dispatcher") or {}).get("queue_size")
    if size is not None and (not isinstance(size, int) or size <= 0):
        log.warning("Config %s: dispatcher.queue_size must be a positive integer", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                log.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            log.error("Invalid JSON in %s: %s", path, e)
            continue

    log.warning("No config.json found, using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("server")                    → config["server"]
    cfg("server", "port")            → config["server"]["port"]
    cfg("player", "command", default=[...])  → config["player"]["command"] or [...]
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def parse_roots(value: str) -> dict[str, str]:
    """Parse "name:/path,name2:/path2" into {name: path}.

    Raises ValueError on an entry that isn't name:path.
    """
    roots = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, path = entry.partition(":")
        if not sep or not name or not path:
            raise ValueError(f"roots configuration invalid '{entry}', it must be name:path")
        roots[name] = path
    return roots


def media_roots(override: str | None = None) -> dict[str, str]:
    """Media roots: explicit override > MEDIA_ROOTS env > config file."""
    if override:
        return parse_roots(override)
    env = os.environ.get("MEDIA_ROOTS", "")
    if env.strip():
        return parse_roots(env)
    roots = cfg("media", "roots", default={})
    return dict(roots) if isinstance(roots, dict) else {}


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
