"""Unit tests for the command-line interface."""

import json

import pytest
from unittest.mock import MagicMock, patch

from linkscrape import cli
from linkscrape.models import ArticleResult, PreviewResult


class FakeService:
    """Stands in for ScraperService; records what was asked."""

    def __init__(self, preview=None, article=None):
        self.preview = preview or PreviewResult(title="Example Post", description="Hi")
        self.article = article or ArticleResult(title="Story", text_content="Body text")
        self.urls = []
        self.closed = False

    async def get_preview(self, url):
        self.urls.append(url)
        return self.preview

    async def get_reader_content(self, url):
        self.urls.append(url)
        return self.article

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True


@pytest.fixture
def service():
    fake = FakeService()
    with patch.object(cli, "create_scraper_service", lambda config: fake), \
            patch.object(cli, "setup_logging"):
        yield fake


class TestCli:
    """Tests for the preview and reader commands."""

    def test_preview_json(self, service, capsys):
        """Test JSON output for several URLs."""
        cli.main(["preview", "https://a.com", "https://b.com"])

        entries = json.loads(capsys.readouterr().out)
        assert [entry["url"] for entry in entries] == ["https://a.com", "https://b.com"]
        assert entries[0]["title"] == "Example Post"
        assert entries[0]["status"] == "success"
        assert service.closed

    def test_reader_text(self, service, capsys):
        """Test the text printer."""
        cli.main(["reader", "https://a.com/story", "-o", "text"])

        out = capsys.readouterr().out
        assert "Reader view for: https://a.com/story" in out
        assert "Body text" in out

    def test_output_file(self, service, tmp_path, capsys):
        """Test writing JSON to a file."""
        target = tmp_path / "out.json"

        cli.main(["preview", "https://a.com", "-f", str(target)])

        assert json.loads(target.read_text())[0]["title"] == "Example Post"
        assert "Results written to" in capsys.readouterr().out

    def test_all_failed_exits_nonzero(self, service):
        """Test the exit code when nothing succeeded."""
        service.preview = PreviewResult.failed("boom")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["preview", "https://a.com"])

        assert exc_info.value.code == 1

    def test_overrides_applied(self, capsys):
        """Test that --concurrency and --headed reach the config."""
        seen = {}

        def factory(config):
            seen["config"] = config
            return FakeService()

        with patch.object(cli, "create_scraper_service", factory), patch.object(cli, "setup_logging"):
            cli.main(["preview", "https://a.com", "--concurrency", "4", "--headed"])

        assert seen["config"].concurrency == 4
        assert seen["config"].headless is False

    def test_no_command_prints_help(self, capsys):
        """Test the bare invocation."""
        with patch.object(cli, "setup_logging"):
            cli.main([])

        assert "usage" in capsys.readouterr().out.lower()

    def test_log_level_from_environment(self, monkeypatch):
        """Test that LOG_LEVEL applies when --log-level is absent."""
        monkeypatch.setenv("LOG_LEVEL", "warning")
        logging_setup = MagicMock()

        with patch.object(cli, "create_scraper_service", lambda config: FakeService()), \
                patch.object(cli, "setup_logging", logging_setup):
            cli.main(["preview", "https://a.com"])

        assert logging_setup.call_args.kwargs["level"] == "WARNING"

    def test_log_level_flag_wins(self, monkeypatch):
        """Test that the flag overrides LOG_LEVEL."""
        monkeypatch.setenv("LOG_LEVEL", "warning")
        logging_setup = MagicMock()

        with patch.object(cli, "create_scraper_service", lambda config: FakeService()), \
                patch.object(cli, "setup_logging", logging_setup):
            cli.main(["--log-level", "DEBUG", "preview", "https://a.com"])

        assert logging_setup.call_args.kwargs["level"] == "DEBUG"
