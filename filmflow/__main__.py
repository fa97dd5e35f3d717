"""
Filmflow Main Entry Point

Run the API server, or analyze a screenplay headlessly.
"""

import argparse
import asyncio
import json
import mimetypes
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

from filmflow.core.config import load_config, set_config
from filmflow.core.constants import STAGE_ORDER, BudgetTier
from filmflow.core.env_loader import ensure_env_loaded
from filmflow.core.exceptions import FilmflowError
from filmflow.core.logging_config import get_logger, level_for_flags, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Filmflow - AI-Assisted Film Pre-Production Analysis"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file"
    )

    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host for the API server (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the API server (default: 8000)"
    )

    parser.add_argument(
        "--analyze",
        type=str,
        metavar="SCRIPT",
        help="Analyze a screenplay (text, PDF or image) headlessly instead of serving the API"
    )

    parser.add_argument(
        "--title",
        type=str,
        help="Project title for --analyze (default: file name, or the title read from a PDF or image)"
    )

    parser.add_argument(
        "--budget",
        type=str,
        default="1000000",
        help="Total budget in dollars for --analyze (default: 1000000)"
    )

    parser.add_argument(
        "--tier",
        choices=[t.value for t in BudgetTier],
        default=BudgetTier.MEDIUM.value,
        help="Budget tier for --analyze (default: medium)"
    )

    parser.add_argument(
        "--stages",
        type=str,
        default=",".join(s.value for s in STAGE_ORDER),
        help="Comma-separated stages to run for --analyze (default: all)"
    )

    return parser


def main(argv=None):
    """Main entry point for Filmflow."""
    args = build_parser().parse_args(argv)

    ensure_env_loaded()

    setup_logging(
        level=level_for_flags(args.verbose, args.debug),
        log_file=Path(args.log_file) if args.log_file else None,
        verbose=args.debug,
    )

    logger = get_logger("main")

    try:
        config = load_config(Path(args.config) if args.config else None)
    except FilmflowError as e:
        logger.error(f"Could not load config: {e}")
        sys.exit(2)
    set_config(config)

    if args.analyze:
        sys.exit(run_analysis(args, config))

    logger.info(f"Starting API server on {args.host}:{args.port}")
    from filmflow.api.main import start_server
    start_server(host=args.host, port=args.port, reload=args.debug)


def run_analysis(args, config) -> int:
    """Run the analysis pipeline once and print the result as JSON."""
    from filmflow.analysis.script_document import is_supported_document
    from filmflow.services import FilmflowServices

    logger = get_logger("main")

    script_path = Path(args.analyze)
    if not script_path.exists():
        print(f"Script not found: {script_path}")
        return 1

    try:
        budget = Decimal(args.budget)
    except InvalidOperation:
        print(f"Invalid budget: {args.budget}")
        return 1

    mime_type, _ = mimetypes.guess_type(script_path.name)

    async def analyze():
        services = FilmflowServices(config)
        try:
            fields = dict(total_budget=budget, budget_tier=BudgetTier(args.tier))
            if is_supported_document(mime_type):
                project = await services.create_project_from_document(
                    script_path.read_bytes(), mime_type, title=args.title or "", **fields
                )
            else:
                project = services.create_project(
                    title=args.title or script_path.stem,
                    script_content=script_path.read_text(encoding="utf-8"),
                    **fields,
                )
            result = await services.pipeline.run(project.id, args.stages.split(","))
            return {
                "project_id": project.id,
                "status": result.status.value,
                "completed": result.completed,
                "failed": result.failed,
                "pending": result.pending,
                "percent_complete": result.percent_complete,
                "summary": services.store.get_artifact(project.id, "summary"),
            }
        finally:
            await services.aclose()

    try:
        report = asyncio.run(analyze())
    except FilmflowError as e:
        logger.error(f"Analysis failed: {e}")
        print(f"Error: {e}")
        return 1

    print(json.dumps(report, indent=2))
    return 0 if report["status"] == "completed" else 1


if __name__ == "__main__":
    main()
