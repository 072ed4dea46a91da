"""Tests for the command-line entry point."""

import pytest

from outbreak.__main__ import _agent_spec_from_tokens, main, parse_args


def test_parse_args_defaults_to_run():
    args = parse_args([])
    assert args.command == "run"
    assert args.ticks == 10


def test_parse_run_options():
    args = parse_args(["--provider", "ollama", "--seed", "4", "run", "--ticks", "3", "--save", "end"])
    assert (args.provider, args.seed, args.ticks, args.save) == ("ollama", 4, 3, "end")


def test_agent_spec_from_tokens():
    spec = _agent_spec_from_tokens(["Dana", "location=hospital", "energy=40", "job=medic", "salary=50"])
    assert spec.name == "Dana"
    assert spec.location == "hospital"
    assert spec.energy == 40
    assert (spec.job.name, spec.job.salary) == ("medic", 50)

    with pytest.raises(ValueError):
        _agent_spec_from_tokens(["Dana", "hospital"])
    with pytest.raises(ValueError):
        _agent_spec_from_tokens([])


def test_scenarios_command_lists_bundled_files(capsys):
    assert main(["scenarios"]) == 0
    assert "quarantine: Quarantine Zone (3 agents)" in capsys.readouterr().out


def test_unknown_provider_exits_with_error(monkeypatch, capsys):
    monkeypatch.setenv("OUTBREAK_NO_COLOR", "1")
    assert main(["--provider", "carrier-pigeon", "run", "--ticks", "1"]) == 2
    assert "Unknown oracle provider" in capsys.readouterr().out
