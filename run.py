#!/usr/bin/env python3
"""
QuestChat Engine - launcher

Usage:
  python run.py                        # API server at http://127.0.0.1:8000
  python run.py --tick                 # apply today's rollover once and exit
  python run.py --host 0.0.0.0 --port 8000 --no-reload
"""

from __future__ import annotations

import argparse
import json
import textwrap

import uvicorn

from questchat.jobs import midnight_tick


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="QuestChat Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """
            Runs the QuestChat quest engine.

            Modes:
              (default) API server
              --tick    midnight tick only (for cron)
            """
        ).strip(),
    )
    parser.add_argument("--tick", action="store_true", help="Run the midnight tick and exit")
    parser.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")
    parser.add_argument("--no-reload", action="store_true", help="Disable uvicorn --reload")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.tick:
        print(json.dumps(midnight_tick.main(), indent=2))
        return 0

    uvicorn.run("questchat.main:app", host=args.host, port=args.port, reload=not args.no_reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
