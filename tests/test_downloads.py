import threading

import pytest

from webdesk.downloads import DownloadManager, create_download_app


def test_issue_then_resolve(tmp_path):
    manager = DownloadManager(9000)
    path = str(tmp_path / "file.txt")

    token = manager.add_file(path)

    assert manager.resolve(token) == path
    assert manager.port == 9000


def test_distinct_tokens_for_distinct_paths():
    manager = DownloadManager(9000)

    first = manager.add_file("/a")
    second = manager.add_file("/b")

    assert first != second
    assert manager.resolve(first) == "/a"
    assert manager.resolve(second) == "/b"


def test_same_path_gets_fresh_tokens():
    manager = DownloadManager(9000)

    first = manager.add_file("/a")
    second = manager.add_file("/a")

    assert first != second
    assert manager.resolve(first) == manager.resolve(second) == "/a"


def test_unknown_token_is_not_found():
    manager = DownloadManager(9000)

    assert manager.resolve("deadbeef") is None


def test_forget_removes_token():
    manager = DownloadManager(9000)
    token = manager.add_file("/a")

    assert manager.forget(token) is True
    assert manager.resolve(token) is None
    assert manager.forget(token) is False


def test_rejects_empty_path():
    with pytest.raises(ValueError):
        DownloadManager(9000).add_file("")


def test_concurrent_issuance():
    manager = DownloadManager(9000)
    issued = {}
    lock = threading.Lock()

    def issue(worker):
        for i in range(200):
            path = f"/w{worker}/{i}"
            token = manager.add_file(path)
            with lock:
                issued[token] = path

    threads = [threading.Thread(target=issue, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(issued) == 1600
    assert len(manager) == 1600
    assert all(manager.resolve(token) == path for token, path in issued.items())


def test_download_server_serves_registered_file(tmp_path):
    target = tmp_path / "report.txt"
    target.write_bytes(b"quarterly numbers")
    manager = DownloadManager(9000)
    token = manager.add_file(str(target))
    client = create_download_app(manager).test_client()

    resp = client.get(f"/{token}")

    assert resp.status_code == 200
    assert resp.data == b"quarterly numbers"
    assert "report.txt" in resp.headers["Content-Disposition"]
    resp.close()


def test_download_server_unknown_token():
    client = create_download_app(DownloadManager(9000)).test_client()

    resp = client.get("/not-a-token")

    assert resp.status_code == 404
    assert resp.get_json() == {"ok": False, "error": "Unknown download link"}


def test_download_server_vanished_file(tmp_path):
    manager = DownloadManager(9000)
    token = manager.add_file(str(tmp_path / "gone.txt"))
    client = create_download_app(manager).test_client()

    resp = client.get(f"/{token}")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "File not found"
