# main.py
"""CLI entry point for the lesson generator."""

from __future__ import annotations

import argparse
import sys

from orchestration.cli_runner import run, serve
from orchestration.lesson_plan import LESSON_TYPES


def main() -> None:
    """Parse command-line arguments and generate a lesson or serve the API."""
    parser = argparse.ArgumentParser(description="Generate a language lesson from text.")
    parser.add_argument("--file", default=None, help="Path to the source text file")
    parser.add_argument("--level", default="B1", help="CEFR level (A1-C1)")
    parser.add_argument(
        "--lesson-type", default="discussion", choices=LESSON_TYPES, help="Kind of lesson"
    )
    parser.add_argument("--language", default="english", help="Lesson language")
    parser.add_argument("--output", default=None, help="Write the lesson JSON here")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API instead")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args()

    if args.serve:
        serve(args.host, args.port)
        return
    if not args.file:
        parser.error("--file is required unless --serve is given")
    sys.exit(run(args.file, args.level, args.lesson_type, args.language, args.output))


if __name__ == "__main__":
    main()
