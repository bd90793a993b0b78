"""
Tests for the dsesign command line interface.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from dsesign import __version__
from dsesign.cli import cli
from dsesign.oauth2 import token_credential


@pytest.fixture
def cli_runner():
    return CliRunner()


class TestURLCommands:
    def test_auth_url(self, cli_runner, tmp_path):
        config = tmp_path / "oauth.json"
        config.write_text(
            json.dumps(
                {
                    "integrator_key": "KEY",
                    "redirect_url": "https://www.example.com/token",
                    "is_demo": True,
                }
            )
        )

        result = cli_runner.invoke(cli, ["auth-url", str(config), "--state", "STATE"])

        assert result.exit_code == 0
        assert (
            "https://account-d.docusign.com/oauth/auth?client_id=KEY"
            "&redirect_uri=https%3A%2F%2Fwww.example.com%2Ftoken"
            "&response_type=code&scope=signature&state=STATE"
        ) in result.output

    def test_consent_url(self, cli_runner, tmp_path):
        config = tmp_path / "jwt.json"
        config.write_text(json.dumps({"integrator_key": "KEY", "is_demo": True}))

        result = cli_runner.invoke(
            cli, ["consent-url", str(config), "https://www.docusign.com"]
        )

        assert result.exit_code == 0
        assert "scope=signature%20impersonation" in result.output

    def test_missing_config_exits_with_error(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            cli, ["auth-url", str(tmp_path / "missing.json"), "--state", "S"]
        )

        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert __version__ in result.output


class TestUserInfoCommand:
    def test_renders_accounts(self, cli_runner, server):
        credential = token_credential(
            server.add_access_token(), is_demo=True, client=server.client()
        )

        with patch("dsesign.cli.credential_from_env", return_value=credential):
            result = cli_runner.invoke(cli, ["userinfo"])

        assert result.exit_code == 0
        assert "acct-default" in result.output
        assert "acct-other" in result.output

    def test_no_credential(self, cli_runner):
        with patch("dsesign.cli.credential_from_env", return_value=None):
            result = cli_runner.invoke(cli, ["userinfo"])

        assert result.exit_code == 1
        assert "No credential configured" in result.output

    def test_rejected_token(self, cli_runner, server):
        credential = token_credential("bogus", is_demo=True, client=server.client())

        with patch("dsesign.cli.credential_from_env", return_value=credential):
            result = cli_runner.invoke(cli, ["userinfo"])

        assert result.exit_code == 1
        assert "invalid_token" in result.output

    def test_jwt_config_requires_api_user(self, cli_runner, tmp_path):
        result = cli_runner.invoke(cli, ["userinfo", "--jwt-config", str(tmp_path / "j.json")])

        assert result.exit_code == 1
        assert "--api-user" in result.output
