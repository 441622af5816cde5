"""Unit tests for the command line interface."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from contentsync.cli import main
from contentsync.exceptions import TransientTransportError


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_engine(engine):
    """Make every command use the engine on the in-memory content hub."""
    with patch("contentsync.cli.create_engine", return_value=engine):
        yield engine


def write_asset(tmp_path, relative, content):
    path = tmp_path / "assets" / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        """Test main help command."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("pull", "push", "list", "compare", "delete", "init", "status"):
            assert command in result.output

    def test_pull_help_lists_filters(self, runner):
        result = runner.invoke(main, ["pull", "--help"])
        assert result.exit_code == 0
        assert "--ready" in result.output
        assert "--no-resources" in result.output


class TestConfigCommands:
    """Tests for init and status."""

    @patch("contentsync.cli.config")
    @patch("contentsync.cli.ContentHubClient")
    def test_init_saves_valid_key(self, mock_client_class, mock_config, runner):
        """Test init validates the key and stores it."""
        mock_config.get_config_path.return_value = "/tmp/config.json"

        result = runner.invoke(main, ["init", "--api-key", "secret"])

        assert result.exit_code == 0
        mock_client_class.assert_called_once_with(api_key="secret", api_url=None)
        mock_config.save_api_key.assert_called_once_with("secret", None)

    @patch("contentsync.cli.config")
    @patch("contentsync.cli.ContentHubClient")
    def test_init_invalid_key_cancel(self, mock_client_class, mock_config, runner):
        """Test a rejected key is not stored when the user declines."""
        client = MagicMock()
        client.get_items.side_effect = TransientTransportError("unauthorized", 401)
        mock_client_class.return_value.__enter__.return_value = client

        result = runner.invoke(main, ["init", "--api-key", "bad"], input="n\n")

        assert result.exit_code == 1
        mock_config.save_api_key.assert_not_called()

    @patch("contentsync.cli.config")
    def test_status_without_api_key(self, mock_config, runner, monkeypatch):
        monkeypatch.delenv("CONTENTSYNC_API_KEY", raising=False)
        mock_config.is_configured.return_value = False
        mock_config.api_url = "https://hub.test/api"

        result = runner.invoke(main, ["--json", "status"])

        assert result.exit_code == 1
        assert json.loads(result.output) == {
            "configured": False,
            "api_url": "https://hub.test/api",
        }


class TestPullCommand:
    """Tests for the pull command."""

    def test_pull_all(self, runner, cli_engine, fake_client, tmp_path):
        fake_client.add_item("/css/a.css", b"a")
        fake_client.add_item("/dxdam/b.jpg", b"b")

        result = runner.invoke(
            main, ["--json", "pull", "--all", "--dir", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"pulled": 2, "failed": 0, "resources": 0}
        assert (tmp_path / "assets" / "css" / "a.css").read_bytes() == b"a"

    def test_pull_failure_sets_exit_code(self, runner, cli_engine, fake_client, tmp_path):
        """Test a failed item makes the command exit with 1."""
        fake_client.add_item("/css/a.css", b"a")
        fake_client.pull_failures["/css/a.css"] = TransientTransportError("down")

        result = runner.invoke(main, ["pull", "--all", "--dir", str(tmp_path)])

        assert result.exit_code == 1

    def test_pull_single_item_not_found(self, runner, cli_engine, tmp_path):
        """Test engine errors are reported with exit code 1."""
        result = runner.invoke(
            main, ["pull", "--id", "missing", "--dir", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_pull_manifest(self, runner, cli_engine, fake_client, tmp_path):
        item = fake_client.add_item("/css/a.css", b"a")
        fake_client.add_item("/css/b.css", b"b")
        manifest = tmp_path / "manifest.json"
        manifest.write_text(json.dumps({"assets": {item["id"]: {"path": "/css/a.css"}}}))

        result = runner.invoke(
            main,
            ["--json", "pull", "--manifest", str(manifest), "--dir", str(tmp_path)],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["pulled"] == 1
        assert not (tmp_path / "assets" / "css" / "b.css").exists()


class TestPushCommand:
    """Tests for the push command."""

    def test_push_all(self, runner, cli_engine, fake_client, tmp_path):
        write_asset(tmp_path, "css/a.css", b"a")
        write_asset(tmp_path, "css/b.css", b"b")

        result = runner.invoke(
            main, ["--json", "push", "--all", "--dir", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["pushed"] == 2
        assert sorted(entry["path"] for entry in fake_client.pushed) == [
            "/css/a.css",
            "/css/b.css",
        ]

    def test_push_single_file(self, runner, cli_engine, fake_client, tmp_path):
        write_asset(tmp_path, "css/a.css", b"a")

        result = runner.invoke(
            main, ["push", "--file", "/css/a.css", "--dir", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert fake_client.pushed[0]["path"] == "/css/a.css"


class TestListCommand:
    """Tests for the list command."""

    def test_list_remote(self, runner, cli_engine, fake_client, tmp_path):
        fake_client.add_item("/css/a.css", b"a")
        fake_client.add_item("/dxdam/b.jpg", b"b", status="draft")

        result = runner.invoke(main, ["--json", "list", "--dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == ["/css/a.css", "/dxdam/b_wchdraft.jpg"]

    def test_list_local_web_only(self, runner, cli_engine, tmp_path):
        write_asset(tmp_path, "css/a.css", b"a")
        write_asset(tmp_path, "dxdam/b.jpg", b"b")

        result = runner.invoke(
            main, ["--json", "list", "--local", "--web", "--dir", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == ["/css/a.css"]

    def test_write_manifest(self, runner, cli_engine, fake_client, tmp_path):
        """Test the remote listing can be written to a manifest."""
        item = fake_client.add_item("/css/a.css", b"a")
        fake_client.add_resource("r1", "logo.png", b"PNG")
        manifest = tmp_path / "out" / "manifest.json"

        result = runner.invoke(
            main,
            [
                "--json",
                "list",
                "--write-manifest",
                str(manifest),
                "--dir",
                str(tmp_path),
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(manifest.read_text())
        assert data["assets"][item["id"]]["path"] == "/css/a.css"
        assert data["resources"]["r1"]["path"] == "/r1/logo.png"

    def test_write_manifest_requires_remote(self, runner, cli_engine, tmp_path):
        result = runner.invoke(
            main,
            ["list", "--local", "--write-manifest", str(tmp_path / "m.json")],
        )

        assert result.exit_code == 2


class TestCompareCommand:
    """Tests for the compare command."""

    def test_compare_directories(self, runner, tmp_path):
        """Test differences are counted and make the command exit with 1."""
        write_asset(tmp_path / "source", "css/a.css", b"a")
        write_asset(tmp_path / "target", "css/a.css", b"changed")
        write_asset(tmp_path / "target", "css/b.css", b"b")

        result = runner.invoke(
            main,
            [
                "--json",
                "compare",
                "--source",
                str(tmp_path / "source"),
                "--target",
                str(tmp_path / "target"),
            ],
        )

        assert result.exit_code == 1
        assert json.loads(result.output) == {"diffCount": 2, "totalCount": 2}

    def test_compare_missing_directory(self, runner, tmp_path):
        write_asset(tmp_path / "source", "css/a.css", b"a")

        result = runner.invoke(
            main,
            [
                "compare",
                "--source",
                str(tmp_path / "source"),
                "--target",
                str(tmp_path / "missing"),
            ],
        )

        assert result.exit_code == 1
        assert "not a directory" in result.output


class TestDeleteCommand:
    """Tests for the delete command."""

    def test_delete_remote(self, runner, cli_engine, fake_client, tmp_path):
        fake_client.add_item("/css/a.css", b"a")

        result = runner.invoke(main, ["delete", "/css/a.css", "--dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert fake_client.deleted == ["/css/a.css"]

    def test_delete_local(self, runner, cli_engine, tmp_path):
        path = write_asset(tmp_path, "css/a.css", b"a")

        result = runner.invoke(
            main, ["delete", "/css/a.css", "--local", "--dir", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert not path.exists()

    def test_delete_invalid_path(self, runner, cli_engine, tmp_path):
        result = runner.invoke(
            main, ["delete", "https://example.com/a.css", "--dir", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert "Invalid path" in result.output
