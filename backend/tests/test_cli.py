"""Tests for the hirebuddy command-line interface."""

import pytest
from typer.testing import CliRunner

from hirebuddy import cli
from hirebuddy.auth.tokens import TokenService

runner = CliRunner()


@pytest.fixture(autouse=True)
def bound_service(monkeypatch, service):
    monkeypatch.setattr(cli, "referral_service", service)
    return service


def _token_line(output: str) -> str:
    return output.strip().splitlines()[-1]


def test_token_for_existing_user(service, referrer):
    result = runner.invoke(cli.app, ["token", referrer.id])

    assert result.exit_code == 0
    user = TokenService(service.database).get_user_from_token(_token_line(result.output))
    assert user.id == referrer.id


def test_token_unknown_user_fails():
    result = runner.invoke(cli.app, ["token", "no-such-user"])

    assert result.exit_code == 1
    assert "No active user" in result.output


def test_token_creates_user_with_email(service):
    user_id = "22222222-2222-2222-2222-222222222222"

    result = runner.invoke(cli.app, ["token", user_id, "--email", "New@Example.com", "--admin"])

    assert result.exit_code == 0
    assert f"user_id={user_id}" in result.output
    assert "email=new@example.com" in result.output


def test_issue_code_and_stats(referrer):
    issued = runner.invoke(cli.app, ["issue-code", referrer.id])
    again = runner.invoke(cli.app, ["issue-code", referrer.id])

    assert issued.exit_code == 0
    assert "(created)" in issued.output
    assert "(existing)" in again.output


def test_expire_runs_sweep(service, referrer, clock):
    code = service.issuer.issue_or_get(referrer.id).code
    service.lifecycle.apply_code(code, "v@example.com")
    clock.advance(days=31)

    result = runner.invoke(cli.app, ["expire"])

    assert result.exit_code == 0
    assert "Expired 1 referral(s)" in result.output
