"""Command-line entry point: ``python -m outbreak``.

Examples:
    python -m outbreak run --ticks 20
    python -m outbreak run --scenario quarantine --provider openai --model gpt-4o-mini
    python -m outbreak shell
    python -m outbreak scenarios
"""

from __future__ import annotations

import argparse
import asyncio
import random
import shlex
import sys
from typing import List, Optional

from outbreak.config import Config
from outbreak.controller import SimulationController
from outbreak.logging_utils import Color, LOG_TAG_ERROR, LOG_TAG_INFO, colored, log_error, log_info
from outbreak.persistence import JsonSnapshotStore
from outbreak.scenario import AgentSpec, ScenarioLoader, default_scenario
from outbreak.schemas import Job

SHELL_HELP = """Commands:
  start [ticks]          start continuous ticking
  stop                   stop after the current tick
  step [n]               run n ticks (default 1)
  status                 show agents, hostiles and base
  reset                  rebuild the starting world
  add NAME [key=value]   add an agent (location, energy, hunger, happiness, money,
                         weapon, job, salary, personality)
  provider NAME [MODEL]  switch oracle provider
  save [NAME]            save a snapshot (default: autosave)
  load [NAME]            load a snapshot
  snapshots              list saved snapshots
  help                   show this text
  quit                   leave the shell"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="outbreak", description="Outbreak survival simulation")
    parser.add_argument("--provider", default=None, help="Oracle provider (default: ORACLE_PROVIDER)")
    parser.add_argument("--model", default=None, help="Oracle model (default: ORACLE_MODEL)")
    parser.add_argument("--scenario", default=None, help="Scenario name under scenarios/")
    parser.add_argument("--snapshots", default=None, help="Snapshot directory (default: SNAPSHOT_DIR)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for scavenging and spawns")
    parser.add_argument("--delay", type=float, default=None, help="Seconds between ticks")

    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run a fixed number of ticks")
    run.add_argument("--ticks", type=int, default=10, help="Number of ticks to simulate")
    run.add_argument("--load", default=None, help="Start from a saved snapshot")
    run.add_argument("--save", default=None, help="Save a snapshot when finished")

    sub.add_parser("shell", help="Interactive operator shell")
    sub.add_parser("scenarios", help="List bundled scenarios")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
        args.ticks = 10
        args.load = None
        args.save = None
    return args


def build_controller(args: argparse.Namespace) -> SimulationController:
    provider = (args.provider or Config.ORACLE_PROVIDER).lower()
    Config.validate(provider)

    def world_factory():
        if args.scenario:
            return ScenarioLoader().load(args.scenario, oracle_provider=provider)
        return default_scenario(oracle_provider=provider)

    store = JsonSnapshotStore(args.snapshots or Config.SNAPSHOT_DIR)
    return SimulationController(
        world_factory=world_factory,
        model=args.model,
        store=store,
        delay=args.delay,
        rng=random.Random(args.seed),
    )


async def run_command(args: argparse.Namespace) -> int:
    controller = build_controller(args)
    print(colored(Config.display(), Color.CYAN))
    if args.load and not await controller.load(args.load):
        return 1
    reports = await controller.run(args.ticks)
    print(controller.status())
    if args.save:
        await controller.save(args.save)
    failures = sum(len(report.failures) for report in reports)
    if failures:
        log_info(f"{LOG_TAG_INFO} {failures} agent decision(s) failed over {len(reports)} tick(s)")
    return 0


def _agent_spec_from_tokens(tokens: List[str]) -> AgentSpec:
    if not tokens:
        raise ValueError("usage: add NAME [key=value ...]")
    fields = {"name": tokens[0]}
    job_name = None
    salary = 0
    for token in tokens[1:]:
        key, sep, value = token.partition("=")
        if not sep:
            raise ValueError(f"expected key=value, got {token!r}")
        if key == "job":
            job_name = value
        elif key == "salary":
            salary = int(value)
        else:
            fields[key] = value
    if job_name:
        fields["job"] = Job(name=job_name, salary=salary)
    return AgentSpec.model_validate(fields)


async def shell_command(args: argparse.Namespace) -> int:
    controller = build_controller(args)
    print(colored(Config.display(), Color.CYAN))
    print(SHELL_HELP)

    while True:
        try:
            line = await asyncio.to_thread(input, "outbreak> ")
        except EOFError:
            break
        try:
            tokens = shlex.split(line)
        except ValueError as exc:
            log_error(f"{LOG_TAG_ERROR} {exc}")
            continue
        if not tokens:
            continue
        command, rest = tokens[0].lower(), tokens[1:]

        try:
            if command in ("quit", "exit"):
                break
            elif command == "help":
                print(SHELL_HELP)
            elif command == "start":
                controller.start(int(rest[0]) if rest else None)
            elif command == "stop":
                await controller.stop()
            elif command == "step":
                for _ in range(int(rest[0]) if rest else 1):
                    report = await controller.step()
                    if report.halted:
                        break
            elif command == "status":
                print(controller.status())
            elif command == "reset":
                await controller.reset()
            elif command == "add":
                agent = await controller.add_agent(_agent_spec_from_tokens(rest))
                log_info(f"{LOG_TAG_INFO} Added agent {agent.id} ({agent.name})")
            elif command == "provider":
                if not rest:
                    raise ValueError("usage: provider NAME [MODEL]")
                await controller.set_provider(rest[0], rest[1] if len(rest) > 1 else None)
            elif command == "save":
                await controller.save(rest[0] if rest else "autosave")
            elif command == "load":
                await controller.load(rest[0] if rest else "autosave")
            elif command == "snapshots":
                print("\n".join(await controller.list_snapshots()) or "(none)")
            else:
                log_error(f"{LOG_TAG_ERROR} Unknown command '{command}'. Type 'help'.")
        except (ValueError, RuntimeError) as exc:
            log_error(f"{LOG_TAG_ERROR} {exc}")

    await controller.stop()
    return 0


def scenarios_command(args: argparse.Namespace) -> int:
    loader = ScenarioLoader()
    names = loader.list_scenarios()
    if not names:
        print("No scenarios found.")
    for name in names:
        info = loader.get_scenario_info(name)
        print(f"{name}: {info['name']} ({info['num_agents']} agents) - {info['description']}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        if args.command == "scenarios":
            return scenarios_command(args)
        if args.command == "shell":
            return asyncio.run(shell_command(args))
        return asyncio.run(run_command(args))
    except (ValueError, FileNotFoundError) as exc:
        log_error(f"{LOG_TAG_ERROR} {exc}")
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
