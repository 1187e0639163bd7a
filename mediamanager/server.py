#!/usr/bin/env python3
# mediamanager
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Media manager HTTP service (mediamanager)

Browses the configured media roots and controls playback through the
player dispatcher.

  GET /api/player/{play,pause,stop,forward,backward,bigForward,bigBackward}
        ?media=<id>&<extra args>  : build and dispatch a PlayerCommand
  GET /api/player/status          : what is playing, where
  GET /api/browser/<id>           : index of roots, a directory or a media
  GET /health                     : liveness
  GET /<anything else>            : static files from --www (HTML5 fallback)

Run with:  python -m mediamanager.server --roots movies:/mnt/movies -v
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from aiohttp import web

from .browser import MediaLibrary
from .dispatcher import DEFAULT_QUEUE_SIZE, PlayerDispatcher
from .lib.config import cfg, media_roots, reload_config
from .lib.errors import MediaManagerError
from .lib.watchdog import sd_notify, watchdog_loop
from .players import OPERATIONS, PlayerCommand, create_backends

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
PLAYER_PREFIX = "/api/player"
BROWSER_PREFIX = "/api/browser"


class MediaManager:
    """Owns the library and the dispatcher; its methods are the route handlers."""

    def __init__(self, library: MediaLibrary, dispatcher: PlayerDispatcher,
                 www: str | Path = "."):
        self.library = library
        self.dispatcher = dispatcher
        self.www = Path(www).resolve()
        self._watchdog: asyncio.Task | None = None

    # ── Lifecycle ──

    async def start(self):
        self.dispatcher.start()
        self._watchdog = asyncio.create_task(watchdog_loop())

    async def stop(self):
        sd_notify("STOPPING=1")
        await self.dispatcher.shutdown()
        for backend in self.dispatcher.backends:
            try:
                await backend.close()
            except Exception as e:
                logger.warning("Closing %s failed: %s", backend.name, e)
        if self._watchdog:
            self._watchdog.cancel()
            try:
                await self._watchdog
            except asyncio.CancelledError:
                pass
            self._watchdog = None

    # ── Helpers ──

    @staticmethod
    def failure_response(request: web.Request, error: MediaManagerError) -> web.Response:
        logger.warning("Fail to serve '%s': %s", request.path, error)
        return web.json_response({"error": str(error)}, status=error.status)

    def build_command(self, operation: str, request: web.Request) -> PlayerCommand:
        """PlayerCommand from the query string; "media" becomes the target."""
        target = None
        args = {}
        for key in set(request.query.keys()):
            values = request.query.getall(key)
            if key == "media" and values:
                target = self.library.resolve(values[0])
            else:
                args[key] = values
        return PlayerCommand(operation, target, args)

    # ── Player ──

    def command_handler(self, operation: str):
        async def handle(request: web.Request) -> web.Response:
            try:
                command = self.build_command(operation, request)
                handled = await self.dispatcher.execute(command)
            except MediaManagerError as e:
                return self.failure_response(request, e)
            return web.json_response({"status": "ok" if handled else "ignored",
                                      "command": operation})
        return handle

    async def handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(await self.dispatcher.get_status())

    # ── Browser ──

    async def handle_browse(self, request: web.Request) -> web.Response:
        media_id = request.match_info.get("path", "")
        try:
            listing = self.library.browse(media_id, playable=self.dispatcher.is_playable)
        except MediaManagerError as e:
            return self.failure_response(request, e)
        return web.json_response(listing)

    # ── Static ──

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "OK"})

    async def handle_static(self, request: web.Request) -> web.StreamResponse:
        """Serve www files; unknown extension-less paths get index.html."""
        rel = request.match_info.get("path", "")
        target = (self.www / rel).resolve()
        if not target.is_relative_to(self.www):
            raise web.HTTPNotFound()
        if target.is_dir():
            target = target / "index.html"
        if not target.exists() and not Path(rel).suffix:
            logger.debug("Serve 'index.html' for requested path: '%s'", rel)
            target = self.www / "index.html"
        if target.is_file():
            return web.FileResponse(target)
        raise web.HTTPNotFound()


@web.middleware
async def cors_middleware(request, handler):
    if request.method == "OPTIONS":
        resp = web.Response()
    else:
        resp = await handler(request)
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return resp


def create_app(manager: MediaManager) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app.router.add_get(f"{PLAYER_PREFIX}/status", manager.handle_status)
    for operation in OPERATIONS:
        app.router.add_get(f"{PLAYER_PREFIX}/{operation}", manager.command_handler(operation))
    app.router.add_get(BROWSER_PREFIX, manager.handle_browse)
    app.router.add_get(BROWSER_PREFIX + "/{path:.*}", manager.handle_browse)
    app.router.add_get("/health", manager.handle_health)
    app.router.add_get("/{path:.*}", manager.handle_static)

    async def on_startup(app: web.Application):
        await manager.start()

    async def on_cleanup(app: web.Application):
        await manager.stop()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Media manager designed for Raspberries")
    parser.add_argument("--port", type=int, help=f"HTTP port (default {DEFAULT_PORT})")
    parser.add_argument("--www", help="directory to serve static files from (default: CWD)")
    parser.add_argument("--roots", help="comma separated media roots: name:/path,name2:/path2")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    reload_config()

    try:
        roots = media_roots(args.roots)
    except ValueError as e:
        logger.error("Can not start server: %s", e)
        sys.exit(1)
    if not roots:
        logger.error("Can not start server: media roots must be specified (--roots name:/path,...)")
        sys.exit(1)

    logger.info("Bootstrapping media manager...")
    library = MediaLibrary(roots)
    dispatcher = PlayerDispatcher(
        *create_backends(),
        queue_size=cfg("dispatcher", "queue_size", default=DEFAULT_QUEUE_SIZE))
    manager = MediaManager(library, dispatcher,
                           www=args.www or cfg("server", "www", default="."))

    host = cfg("server", "host", default="0.0.0.0")
    port = args.port or cfg("server", "port", default=DEFAULT_PORT)
    web.run_app(create_app(manager), host=host, port=port, print=lambda msg: logger.info(msg))


if __name__ == "__main__":
    main()
