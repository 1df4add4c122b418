"""Tests for the command-line interface."""

import json

import pytest

from gsmscrape import cli
from gsmscrape.db import DocumentStore
from gsmscrape.errors import ConfigurationError
from gsmscrape.models import NormalizedSpec, PhoneRecord
from gsmscrape.retry import ResilientChannel
from gsmscrape.transport import ChannelKind, DirectChannel, FailoverChannel


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """No .env file or transport settings leak into CLI tests."""
    for name in ("TRANSPORT", "SCRAPINGBEE_API_KEYS", "DB_PATH", "MAX_BRANDS", "PHONES_PER_BRAND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.chdir(tmp_path)


class TestResolveSettings:
    def test_arguments_override_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_BRANDS", "10")

        args = cli.parse_args(["2", "5", "--threads", "0", "--transport", "proxy", "--no-skip-existing"])
        settings = cli.resolve_settings(args)

        assert settings.max_brands == 2
        assert settings.max_items_per_brand == 5
        assert settings.parallel_threads == 1
        assert settings.transport == "proxy"
        assert settings.skip_existing is False

    def test_environment_used_without_arguments(self, monkeypatch):
        monkeypatch.setenv("MAX_BRANDS", "10")
        assert cli.resolve_settings(cli.parse_args([])).max_brands == 10


class TestBuildChannel:
    def test_direct_is_wrapped_in_retries(self):
        settings = cli.resolve_settings(cli.parse_args([]))

        channel = cli.build_channel(settings)

        assert isinstance(channel, ResilientChannel)
        assert isinstance(channel.inner, DirectChannel)

    def test_render_falls_back_to_direct(self):
        settings = cli.resolve_settings(cli.parse_args(["--transport", "render"]))
        settings.api_keys = ["k1"]

        channel = cli.build_channel(settings)

        assert isinstance(channel, FailoverChannel)
        assert channel.kind is ChannelKind.RENDER_PROXY
        assert [type(c) for c in channel.channels] == [ResilientChannel, ResilientChannel]
        assert isinstance(channel.channels[1].inner, DirectChannel)

    def test_unknown_transport(self):
        settings = cli.resolve_settings(cli.parse_args([]))
        settings.transport = "carrier-pigeon"

        with pytest.raises(ConfigurationError):
            cli.build_channel(settings)


class TestMain:
    """Tests for main() exit codes and info commands."""

    def test_stats(self, tmp_path, capsys):
        db_path = str(tmp_path / "phones.db")
        DocumentStore(db_path).upsert("gsmarena_phone_list", "detail_id", "a-1", {"is_complete": True})

        assert cli.main(["--stats", "--db", db_path, "--no-log-file"]) == 0

        out = capsys.readouterr().out
        assert "gsmarena_phone_list: 1" in out
        assert "1 complete, 0 incomplete" in out

    def test_export_json(self, tmp_path):
        db_path = str(tmp_path / "phones.db")
        DocumentStore(db_path).upsert("gsmarena_phones", "detail_id", "a-1", {"name": "A"})
        out_path = tmp_path / "phones.json"

        assert cli.main(["--export-json", str(out_path), "--db", db_path, "--no-log-file"]) == 0
        assert json.loads(out_path.read_text(encoding="utf-8"))[0]["name"] == "A"

    def test_render_without_keys_is_configuration_error(self, tmp_path, capsys):
        code = cli.main(["--transport", "render", "--db", str(tmp_path / "p.db"), "--no-log-file"])

        assert code == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_show_prints_stored_device(self, tmp_path, capsys):
        db_path = str(tmp_path / "phones.db")
        record = PhoneRecord(
            detail_id="acme_x1-100",
            name="Acme X1",
            brand="Acme",
            url="https://www.gsmarena.com/acme_x1-100.php",
            spec=NormalizedSpec(battery={"battery_type": "Li-Ion 5000 mAh"}),
        )
        DocumentStore(db_path).upsert("gsmarena_phones", "detail_id", "acme_x1-100", record.to_document())

        assert cli.main(["--show", "acme_x1-100", "--db", db_path, "--no-log-file"]) == 0

        out = capsys.readouterr().out
        assert "Acme X1 (Acme)" in out
        assert "battery type: Li-Ion 5000 mAh" in out

    def test_compare_two_stored_devices(self, tmp_path, capsys):
        db_path = str(tmp_path / "phones.db")
        store = DocumentStore(db_path)
        for detail_id, name in (("acme_x1-100", "Acme X1"), ("acme_x2-101", "Acme X2")):
            record = PhoneRecord(detail_id=detail_id, name=name, brand="Acme", url="u")
            store.upsert("gsmarena_phones", "detail_id", detail_id, record.to_document())

        assert cli.main(["--compare", "acme_x1-100", "acme_x2-101", "--db", db_path, "--no-log-file"]) == 0

        out = capsys.readouterr().out
        assert "Acme X1" in out and "Acme X2" in out
        assert "N/A" in out

    def test_show_unknown_device(self, tmp_path, capsys):
        """A detail ID that was never harvested exits 1."""
        code = cli.main(["--show", "nope-1", "--db", str(tmp_path / "p.db"), "--no-log-file"])

        assert code == 1
        assert "no device 'nope-1'" in capsys.readouterr().err
