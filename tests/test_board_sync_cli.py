import pytest
import yaml

import board_sync
import config
from config import RunOptions


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for key in config.TOKEN_ENV_VARS + ("DRY_RUN", "LIMIT", "PORT_TRACKER_CACHE_PATH"):
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / ".port_tracker_config.yaml"
    monkeypatch.setattr(config, "USER_CONFIG_PATH", path)
    return path


def test_missing_token_exits_with_config_error(monkeypatch):
    called = []
    monkeypatch.setattr(board_sync, "cmd_sync", lambda *a: called.append(a) or 0)

    assert board_sync.main(["sync"]) == board_sync.EXIT_CONFIG
    assert called == []


def test_invalid_limit_exits_with_config_error(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "tok")
    monkeypatch.setenv("LIMIT", "many")

    assert board_sync.main(["file-issues"]) == board_sync.EXIT_CONFIG


def test_auth_saves_and_clears_token(isolated_env):
    assert board_sync.main(["auth", "--token", "abc"]) == board_sync.EXIT_OK
    assert yaml.safe_load(isolated_env.read_text(encoding="utf-8")) == {"token": "abc"}

    assert board_sync.main(["auth", "--unset"]) == board_sync.EXIT_OK
    assert not isolated_env.exists()

    assert board_sync.main(["auth"]) == board_sync.EXIT_CONFIG


def test_cli_flags_override_environment(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "tok")
    monkeypatch.setenv("LIMIT", "4")
    seen = {}

    def fake_file_issues(args, options, client):
        seen["options"] = options
        return board_sync.EXIT_OK

    monkeypatch.setattr(board_sync, "cmd_file_issues", fake_file_issues)

    assert board_sync.main(["file-issues", "--dry-run", "--limit", "2"]) == board_sync.EXIT_OK
    assert seen["options"].dry_run is True
    assert seen["options"].limit == 2

    board_sync.main(["file-issues"])
    assert seen["options"].dry_run is False
    assert seen["options"].limit == 4


def test_sync_failure_maps_to_exit_code(monkeypatch):
    class FailingService:
        def run(self):
            raise board_sync.GraphQLClientError("boom")

    monkeypatch.setattr(board_sync, "build_sync_service", lambda client, options: FailingService())

    assert board_sync.cmd_sync(None, RunOptions(), client=None) == board_sync.EXIT_FAILED


def test_file_issues_reads_board_then_files(monkeypatch):
    ran = {}

    class FakeBoard:
        def __init__(self, client, target):
            ran["target"] = target

        def fetch_entries(self):
            return ["entry"]

    class FakeFiler:
        def run(self, entries):
            ran["entries"] = entries

    monkeypatch.setattr(board_sync, "GitHubBoard", FakeBoard)
    monkeypatch.setattr(board_sync, "build_followup_filer", lambda client, options: FakeFiler())

    assert board_sync.cmd_file_issues(None, RunOptions(), client=None) == board_sync.EXIT_OK
    assert ran == {"target": board_sync.BOARD, "entries": ["entry"]}


def test_parser_limit_only_on_file_issues():
    parser = board_sync.build_parser()

    assert parser.parse_args(["file-issues", "--limit", "3"]).limit == 3
    with pytest.raises(SystemExit):
        parser.parse_args(["sync", "--limit", "3"])
