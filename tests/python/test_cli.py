from __future__ import annotations

import json
from pathlib import Path

import pytest

from travel_approval_portal.cli import main

EMPLOYEES = [
    {"email": "alice@company.example", "name": "Alice", "employee_number": "E1",
     "manager_email": "bob@company.example", "impact_level": "5A"},
    {"email": "bob@company.example", "name": "Bob", "employee_number": "E2",
     "manager_email": "carol@company.example", "impact_level": "4A"},
    {"email": "carol@company.example", "name": "Carol", "employee_number": "E3",
     "manager_email": "dave@company.example", "impact_level": "3A"},
    {"email": "dave@company.example", "name": "Dave", "employee_number": "E4",
     "impact_level": "2A"},
]


def _write_directory(path: Path) -> Path:
    path.write_text(json.dumps({"employees": EMPLOYEES}), encoding="utf-8")
    return path


def test_cli_prints_chain(tmp_path, capsys) -> None:
    directory_path = _write_directory(tmp_path / "employees.json")

    exit_code = main([str(directory_path), "alice@company.example"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert [entry["email"] for entry in payload] == [
        "bob@company.example",
        "carol@company.example",
    ]
    assert "approved" not in payload[0]


def test_cli_terminal_level_override(tmp_path, capsys) -> None:
    directory_path = _write_directory(tmp_path / "employees.json")

    exit_code = main(
        [str(directory_path), "alice@company.example", "--terminal-level", "2A"]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload[-1]["email"] == "dave@company.example"


def test_cli_policy_file(tmp_path, capsys) -> None:
    directory_path = _write_directory(tmp_path / "employees.json")
    policy_path = tmp_path / "policy.yaml"
    policy_path.write_text(
        "approval_policy:\n  terminal_impact_levels: [4A]\n", encoding="utf-8"
    )

    exit_code = main(
        [str(directory_path), "alice@company.example", "--policy", str(policy_path)]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert [entry["email"] for entry in payload] == ["bob@company.example"]


def test_cli_strict_mode_reports_missing_manager(tmp_path, capsys) -> None:
    directory_path = tmp_path / "employees.json"
    directory_path.write_text(json.dumps(EMPLOYEES[:2]), encoding="utf-8")

    exit_code = main([str(directory_path), "alice@company.example", "--strict"])

    assert exit_code == 1
    assert "carol@company.example" in capsys.readouterr().err


def test_cli_unsupported_directory_returns_error(tmp_path, capsys) -> None:
    directory_path = tmp_path / "employees.csv"
    directory_path.write_text("Email\n", encoding="utf-8")

    exit_code = main([str(directory_path), "alice@company.example"])

    assert exit_code == 1
    assert "Unsupported directory format" in capsys.readouterr().err


def test_cli_missing_directory_returns_error(tmp_path, capsys) -> None:
    exit_code = main([str(tmp_path / "missing.json"), "alice@company.example"])

    assert exit_code == 1
    assert "Error:" in capsys.readouterr().err


def test_cli_help_shows_usage(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])

    assert excinfo.value.code == 0
    stdout = capsys.readouterr().out
    assert "Print the managers who must approve" in stdout
