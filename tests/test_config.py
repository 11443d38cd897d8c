import logging
from pathlib import Path

from typer.testing import CliRunner

from commitstatus import cli
from commitstatus.config import Settings
from commitstatus.logger import get_log_handlers
from commitstatus.policy import BranchProtectionPolicy, StaticContextResolver
from commitstatus.runtime import make_resolver
from commitstatus.storage import StatusStore


def test_settings_defaults():
    settings = Settings.from_env({})

    assert settings.DB_PATH == Path("commitstatus.sqlite3")
    assert settings.POLICY_FILE is None
    assert settings.BUILD_NUMBER_VAR == "JX_BUILD_NUMBER"
    assert settings.PULL_REQUESTS_ONLY is False
    assert settings.RECONCILE_MAX_ATTEMPTS == 3
    assert settings.DRY_RUN is False
    assert settings.OVERRIDE_LOGGING == logging.WARNING


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "DB_PATH": "/data/cs.sqlite3",
            "POLICY_FILE": "/etc/policy.yml",
            "PULL_REQUESTS_ONLY": "true",
            "RECONCILE_MAX_ATTEMPTS": "0",
            "DRY_RUN": "1",
            "OVERRIDE_LOGGING": "debug",
            "BUILD_NUMBER_VAR": "BUILD_ID",
        }
    )

    assert settings.DB_PATH == Path("/data/cs.sqlite3")
    assert settings.POLICY_FILE == Path("/etc/policy.yml")
    assert settings.PULL_REQUESTS_ONLY is True
    assert settings.RECONCILE_MAX_ATTEMPTS == 1
    assert settings.DRY_RUN is True
    assert settings.OVERRIDE_LOGGING == logging.DEBUG
    assert settings.BUILD_NUMBER_VAR == "BUILD_ID"


def test_make_resolver_follows_policy_file(tmp_path):
    assert isinstance(make_resolver(Settings.from_env({})), StaticContextResolver)

    policy = tmp_path / "policy.yml"
    settings = Settings.from_env({"POLICY_FILE": str(policy)})
    assert isinstance(make_resolver(settings), BranchProtectionPolicy)


def test_no_telegram_handler_without_token():
    logger = logging.getLogger("commitstatus.test")

    assert get_log_handlers(logger, Settings.from_env({})) == []
    assert logger.handlers == []


def test_cli_migrate(tmp_path, monkeypatch):
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.setattr(cli, "SETTINGS", Settings.from_env({"DB_PATH": str(db_path)}))

    result = CliRunner().invoke(cli.app, ["migrate"])

    assert result.exit_code == 0, result.output
    assert "Migrated" in result.output
    assert db_path.exists()


def test_cli_record_activity(tmp_path, monkeypatch):
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.setattr(cli, "SETTINGS", Settings.from_env({"DB_PATH": str(db_path)}))

    result = CliRunner().invoke(
        cli.app, ["record-activity", "jenkins-x-demo-pr-7-1", "uid-1"]
    )

    assert result.exit_code == 0, result.output
    assert StatusStore(db_path).get_activity("jenkins-x-demo-pr-7-1").uid == "uid-1"
