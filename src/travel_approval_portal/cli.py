"""Command-line interface for previewing an employee's approval chain."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .chain import build_approval_chain
from .config import ApprovalPolicy
from .directory import load_directory
from .errors import WorkflowError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="approval-chain",
        description=(
            "Print the managers who must approve a travel request for an employee."
        ),
    )
    parser.add_argument(
        "directory", type=Path, help="Employee directory (.xlsx workbook or .json)."
    )
    parser.add_argument("email", help="Email of the requesting employee.")
    parser.add_argument(
        "--policy",
        type=Path,
        default=None,
        help="Approval policy YAML (defaults to config/approval_policy.yaml).",
    )
    parser.add_argument(
        "--terminal-level",
        action="append",
        dest="terminal_levels",
        default=None,
        help="Override terminal impact levels; may be given more than once.",
    )
    parser.add_argument(
        "--strict", action="store_true", help="Fail when a manager record is missing."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log chain building.")
    return parser


def _load_policy(args: argparse.Namespace) -> ApprovalPolicy:
    try:
        policy = ApprovalPolicy.from_file(args.policy)
    except FileNotFoundError:
        if args.policy is not None:
            raise
        policy = ApprovalPolicy()

    overrides: dict[str, object] = {}
    if args.terminal_levels:
        overrides["terminal_impact_levels"] = args.terminal_levels
    if args.strict:
        overrides["strict_directory"] = True
    if overrides:
        policy = ApprovalPolicy.model_validate({**policy.model_dump(), **overrides})
    return policy


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        policy = _load_policy(args)
        directory = load_directory(args.directory)
        chain = build_approval_chain(args.email, directory, policy)
    except ValidationError as exc:
        print("Error: configuration validation failed.", file=sys.stderr)
        print(str(exc), file=sys.stderr)
        return 1
    except WorkflowError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    payload = [entry.model_dump(mode="json", exclude={"approved", "approved_at"}) for entry in chain]
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
