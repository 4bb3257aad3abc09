from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from applyday.cli.app import app
from applyday.errors import NetworkFailure

runner = CliRunner()


@pytest.fixture
def service(fake_service, monkeypatch):
    monkeypatch.setattr("applyday.cli.app.build_service", lambda: fake_service)
    return fake_service


def test_stats_prints_funnel(service) -> None:
    service.stats = {"total": 12, "rejected": 2, "applied": 10, "interviewed": 4, "offered": 1}

    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["totals"]["rejected"] == 2
    assert [stage["percentage"] for stage in payload["funnel"]] == [100.0, 40.0, 10.0]
    assert payload["funnel"][1]["display"] == "4 (40.0%)"
    assert payload["overall_conversion_pct"] == 10.0


def test_stats_failure_exits_non_zero(service) -> None:
    service.fail["get_stats"] = NetworkFailure("connection refused")

    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 1
    assert "Error loading dashboard: connection refused" in result.output
    assert service.closed


def test_list_prints_records_in_server_order(service) -> None:
    result = runner.invoke(app, ["list"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["count"] == 2
    assert [item["company"] for item in payload["applications"]] == ["Acme", "Globex"]


def test_show_prints_full_description(service) -> None:
    result = runner.invoke(app, ["show", "2"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["job_description"] == "Dashboards and SQL"


def test_show_unknown_id_fails(service) -> None:
    result = runner.invoke(app, ["show", "404"])

    assert result.exit_code == 1
    assert "ERROR:" in result.output


def test_create_adds_record(service) -> None:
    result = runner.invoke(app, ["create", "--company", "Initech", "--job-title", "QA", "--status", "applied"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["created"]["company"] == "Initech"
    assert payload["count"] == 3


def test_update_keeps_omitted_fields(service) -> None:
    result = runner.invoke(app, ["update", "2", "--status", "offered"])

    assert result.exit_code == 0
    updated = json.loads(result.stdout)["updated"]
    assert updated["status"] == "offered"
    assert updated["stage_notes"] == "Second round on Friday"
    assert updated["job_description"] == "Dashboards and SQL"


def test_delete_asks_for_confirmation(service) -> None:
    result = runner.invoke(app, ["delete", "1"], input="n\n")

    assert result.exit_code == 0
    assert "Aborted" in result.output
    assert "delete_application" not in service.calls


def test_delete_with_yes_skips_prompt(service) -> None:
    result = runner.invoke(app, ["delete", "1", "--yes"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"deleted": "1", "count": 1}


def test_commands_close_the_service(service) -> None:
    result = runner.invoke(app, ["list"])

    assert result.exit_code == 0
    assert service.closed


def test_failed_command_still_closes_the_service(service) -> None:
    result = runner.invoke(app, ["show", "404"])

    assert result.exit_code == 1
    assert service.closed
