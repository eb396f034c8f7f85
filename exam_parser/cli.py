"""
Command-line interface for the exam parser.

Usage:
    exam-parser parse FILE [OPTIONS]
    exam-parser serve [--host HOST] [--port PORT]
    python -m exam_parser parse FILE [OPTIONS]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from exam_parser.config import get_settings
from exam_parser.errors import ExamParserError
from exam_parser.logging_config import configure_logging
from exam_parser.services.distribution_auditor import count_questions
from exam_parser.services.file_parser import parse_file


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="exam-parser",
        description="Exam Parser CLI - Extract questions from exam documents"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parse_parser = subparsers.add_parser(
        "parse",
        help="Extract the questions of one document as JSON"
    )
    parse_parser.add_argument("file", type=str, help="Path to a .pdf, .docx, .doc or .txt file")
    parse_parser.add_argument(
        "--ai-extract",
        action="store_true",
        help="Use Gemini structured extraction instead of the heuristic parser"
    )
    parse_parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Never call Gemini to re-categorize questions"
    )
    parse_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write JSON to this file instead of stdout"
    )
    parse_parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: LOG_LEVEL from env or INFO)"
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API with uvicorn"
    )
    serve_parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change"
    )

    return parser



async def parse_command(args: argparse.Namespace) -> int:
    """
    Execute the parse command.

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(args.log_level or settings.log_level)

    if args.ai_extract and args.no_ai:
        print("Error: --ai-extract and --no-ai are mutually exclusive", file=sys.stderr)
        return 1

    try:
        structure = await parse_file(
            args.file,
            use_ai_extraction=args.ai_extract,
            settings=settings,
            allow_ai=False if args.no_ai else None,
        )
    except FileNotFoundError:
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1
    except ExamParserError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output = json.dumps(structure.to_json_dict(), indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
    else:
        print(output)

    counts = count_questions(structure)
    print(f"{counts.total} questions ({counts})", file=sys.stderr)
    return 0


def serve_command(args: argparse.Namespace) -> int:
    """Run the FastAPI app; blocks until the server stops."""
    settings = get_settings()
    uvicorn.run(
        "exam_parser.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "parse":
        return asyncio.run(parse_command(args))

    if args.command == "serve":
        return serve_command(args)

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
