import pytest
from aiohttp import test_utils as aiohttp_test_utils
from test_utils.player_stubs import RecordingBackend, run

from mediamanager.browser import MediaLibrary
from mediamanager.dispatcher import Lifecycle, PlayerDispatcher
from mediamanager.server import MediaManager, create_app, parse_args


@pytest.fixture
def www(tmp_path):
    root = tmp_path / "www"
    (root / "js").mkdir(parents=True)
    (root / "index.html").write_text("<html>media manager</html>")
    (root / "js" / "app.js").write_text("console.log('app')")
    return root


def serve(media_tree, www, backend):
    """Run *check(client)* against a fresh app; returns the manager for later asserts."""
    manager = MediaManager(MediaLibrary(media_tree), PlayerDispatcher(backend), www=www)

    def runner(check):
        async def scenario():
            server = aiohttp_test_utils.TestServer(create_app(manager))
            async with aiohttp_test_utils.TestClient(server) as client:
                await check(client)

        run(scenario())
        return manager

    return runner


class TestPlayerRoutes:
    def test_play_builds_command(self, media_tree, www):
        backend = RecordingBackend("omx", {"mp4", "mkv"})

        async def check(client):
            resp = await client.get("/api/player/play", params=[
                ("media", "movies/film.mp4"), ("lang", "fr"), ("lang", "en"),
            ])
            assert resp.status == 200
            assert await resp.json() == {"status": "ok", "command": "play"}

        serve(media_tree, www, backend)(check)
        command = backend.received[0]
        assert command.operation == "play"
        assert command.target.local_path().endswith("film.mp4")
        assert dict(command.args) == {"lang": ("fr", "en")}

    def test_every_operation_is_routed(self, media_tree, www):
        backend = RecordingBackend("omx", {"mp4"})

        async def check(client):
            await client.get("/api/player/play?media=movies/film.mp4")
            for op in ("pause", "forward", "backward", "bigForward", "bigBackward", "stop"):
                resp = await client.get(f"/api/player/{op}")
                assert (await resp.json())["status"] == "ok"

        serve(media_tree, www, backend)(check)
        assert backend.operations == [
            "play", "pause", "forward", "backward", "bigForward", "bigBackward", "stop",
        ]

    def test_unresolvable_media(self, media_tree, www):
        backend = RecordingBackend("omx", {"mp4"})

        async def check(client):
            resp = await client.get("/api/player/play?media=movies/missing.mp4")
            assert resp.status == 500
            assert "missing.mp4" in (await resp.json())["error"]

        serve(media_tree, www, backend)(check)
        assert backend.received == []

    def test_nothing_to_act_on_is_ignored(self, media_tree, www):
        async def check(client):
            resp = await client.get("/api/player/pause")
            assert await resp.json() == {"status": "ignored", "command": "pause"}

        serve(media_tree, www, RecordingBackend("omx", {"mp4"}))(check)

    def test_backend_error(self, media_tree, www):
        backend = RecordingBackend("omx", {"mp4"}, failing={"pause"})

        async def check(client):
            await client.get("/api/player/play?media=movies/film.mp4")
            resp = await client.get("/api/player/pause")
            assert resp.status == 500
            assert await resp.json() == {"error": "omx refuses pause"}

        serve(media_tree, www, backend)(check)

    def test_status(self, media_tree, www):
        async def check(client):
            resp = await client.get("/api/player/status")
            assert await resp.json() == {"playing": False}
            await client.get("/api/player/play?media=movies/film.mp4")
            resp = await client.get("/api/player/status")
            assert await resp.json() == {"playing": True, "backend": "omx"}

        serve(media_tree, www, RecordingBackend("omx", {"mp4"}))(check)

    def test_cleanup_stops_dispatcher_and_closes_backends(self, media_tree, www):
        backend = RecordingBackend("omx", {"mp4"})

        async def check(client):
            resp = await client.get("/health")
            assert await resp.json() == {"status": "OK"}
            assert resp.headers["Access-Control-Allow-Origin"] == "*"

        manager = serve(media_tree, www, backend)(check)
        assert manager.dispatcher.lifecycle is Lifecycle.STOPPED
        assert backend.closed


class TestBrowserRoutes:
    def test_index(self, media_tree, www):
        async def check(client):
            resp = await client.get("/api/browser")
            listing = await resp.json()
            assert [c["path"] for c in listing["children"]] == ["movies", "music"]

        serve(media_tree, www, RecordingBackend("omx", {"mp4"}))(check)

    def test_directory_marks_playable_media(self, media_tree, www):
        async def check(client):
            resp = await client.get("/api/browser/movies")
            children = {c["name"]: c for c in (await resp.json())["children"]}
            assert children["film.mp4"]["playable"] is True
            assert children["Other.MKV"]["playable"] is False
            assert children["2019"]["type"] == "dir"

            resp = await client.get("/api/browser/music/song.mp3")
            assert (await resp.json())["playable"] is False

        serve(media_tree, www, RecordingBackend("omx", {"mp4"}))(check)

    def test_unknown_root(self, media_tree, www):
        async def check(client):
            resp = await client.get("/api/browser/tv")
            assert resp.status == 500
            assert "error" in await resp.json()

        serve(media_tree, www, RecordingBackend("omx", {"mp4"}))(check)


class TestStatic:
    def test_files_and_index_fallback(self, media_tree, www):
        async def check(client):
            resp = await client.get("/")
            assert await resp.text() == "<html>media manager</html>"
            resp = await client.get("/js/app.js")
            assert await resp.text() == "console.log('app')"
            resp = await client.get("/movies/2019")
            assert await resp.text() == "<html>media manager</html>"
            resp = await client.get("/js/missing.js")
            assert resp.status == 404

        serve(media_tree, www, RecordingBackend("omx", {"mp4"}))(check)


def test_parse_args():
    args = parse_args(["--port", "9000", "--roots", "movies:/mnt/movies", "-v"])
    assert args.port == 9000
    assert args.roots == "movies:/mnt/movies"
    assert args.verbose
    assert parse_args([]).www is None
