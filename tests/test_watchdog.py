import socket

from test_utils.player_stubs import run

from mediamanager.lib.errors import DispatcherClosed, MediaManagerError, QueueFull
from mediamanager.lib.watchdog import sd_notify, watchdog_loop


def test_no_socket():
    assert sd_notify("READY=1") is False
    assert run(watchdog_loop(interval=0)) is None


def test_sd_notify_sends_datagram(tmp_path, monkeypatch):
    path = str(tmp_path / "notify.sock")
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    sock.bind(path)
    try:
        monkeypatch.setenv("NOTIFY_SOCKET", path)
        assert sd_notify("STOPPING=1") is True
        assert sock.recv(64) == b"STOPPING=1"
    finally:
        sock.close()


def test_error_status_codes():
    assert MediaManagerError("x").status == 500
    assert DispatcherClosed("x").status == 500
    assert QueueFull("x").status == 503
