"""
Unit tests for the command-line entry points.
"""

from pathlib import Path

import httpx
import pytest

from printbroker import submit
from printbroker.config import get_settings
from printbroker.reaper import main as reaper_main
from printbroker.worker import main as worker_main


@pytest.fixture
def no_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "")
    get_settings.cache_clear()


class TestWorkerCli:
    """Tests for printbroker-worker."""

    def test_parses_client_and_log_flag(self):
        args = worker_main.build_parser().parse_args(["c1", "--log"])

        assert args.client_id == "c1"
        assert args.log_only is True

    def test_log_flag_defaults_off(self):
        assert worker_main.build_parser().parse_args(["c1"]).log_only is False

    def test_client_id_required(self):
        with pytest.raises(SystemExit):
            worker_main.build_parser().parse_args([])

    def test_missing_database_exits_1(self, no_database, capsys):
        assert worker_main.main(["c1"]) == 1
        assert "DATABASE_URL" in capsys.readouterr().err


class TestReaperCli:
    """Tests for printbroker-reaper."""

    def test_missing_database_exits_1(self, no_database):
        assert reaper_main.main(["--once"]) == 1


class TestSubmitCli:
    """Tests for printbroker-submit."""

    @pytest.fixture
    def document(self, tmp_path: Path) -> Path:
        path = tmp_path / "doc.pdf"
        path.write_bytes(b"%PDF-1.7 test")
        return path

    def test_options_after_separator(self, document: Path):
        args = submit.build_parser().parse_args(
            [str(document), "c1", "office", "--", "-o", "media=A4", "-n", "2"]
        )

        assert args.options == ["-o", "media=A4", "-n", "2"]

    def test_submit_posts_multipart(self, document: Path):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["key"] = request.headers.get("x-api-key")
            captured["body"] = request.read()
            return httpx.Response(201, json={"status": "pending"})

        client = httpx.Client(
            base_url="http://broker",
            headers={"x-api-key": "secret"},
            transport=httpx.MockTransport(handler),
        )

        response = submit.submit(client, document, "c1", "ipp://10.0.0.7", "-o media=A4")

        assert response.status_code == 201
        assert captured["url"] == "http://broker/print"
        assert captured["key"] == "secret"
        assert b'name="clientId"' in captured["body"]
        assert b"-o media=A4" in captured["body"]
        assert b"%PDF-1.7 test" in captured["body"]

    def test_missing_api_key_exits_1(self, document: Path, capsys):
        assert submit.main([str(document), "c1", "office"]) == 1
        assert "API_KEY" in capsys.readouterr().err

    def test_missing_file_exits_1(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys):
        monkeypatch.setenv("API_KEY", "secret")
        get_settings.cache_clear()

        assert submit.main([str(tmp_path / "nope.pdf"), "c1", "office"]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_unreachable_server_exits_1(self, document: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("API_KEY", "secret")
        get_settings.cache_clear()

        assert submit.main([str(document), "c1", "office", "--url", "http://127.0.0.1:9"]) == 1
