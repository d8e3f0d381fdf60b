#!/usr/bin/env python3
"""
WhiteCoat Brief command line.

Usage:
    python -m whitecoat_brief.main generate <submission_id>   # Run brief generation
    python -m whitecoat_brief.main status <submission_id>     # Show generation progress
    python -m whitecoat_brief.main serve [--port 8000]        # Start the web API
"""

import argparse
import asyncio
import logging
import os
import sys

from .config.settings import settings
from .exceptions import BriefError


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="WhiteCoat Brief generation pipeline")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Generate the brief for a submission")
    generate.add_argument("submission_id")
    generate.add_argument(
        "--model",
        default=settings.concept_model,
        help=f"Concept model (default: {settings.concept_model})",
    )

    status = sub.add_parser("status", help="Show generation progress for a submission")
    status.add_argument("submission_id")

    serve = sub.add_parser("serve", help="Start the web API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=int(os.environ.get("PORT", 8000)))

    return parser.parse_args(argv)


async def run_generate(args: argparse.Namespace) -> int:
    from .agents import build_concept_agent
    from .app.pipeline import BriefPipeline
    from .app.storage import get_blob_store
    from .app.store import get_store

    pipeline = BriefPipeline(
        store=get_store(),
        concept_agent=build_concept_agent(args.model),
        blob_store=get_blob_store(),
    )

    print("=" * 60)
    print(f"{settings.brief_title}: generating brief for {args.submission_id}")
    print("=" * 60)
    print(f"Concept model: {args.model}")

    outcome = await pipeline.run(args.submission_id)

    print("\nGeneration complete!")
    print(f"   Brand: {outcome.submission.brand_name}")
    print(f"   Concepts: {outcome.concepts_count}")
    print(f"   Images: {outcome.images_generated} generated, {outcome.images_failed} failed")
    for error in outcome.errors:
        print(f"   - {error}")
    return 0


def run_status(args: argparse.Namespace) -> int:
    from .app.pipeline import BriefPipeline
    from .app.store import get_store

    pipeline = BriefPipeline(store=get_store())
    status = pipeline.get_status(args.submission_id)
    print(status.model_dump_json(indent=2, exclude={"images"}))
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("whitecoat_brief.app.main:app", host=args.host, port=args.port)
        return 0

    try:
        if args.command == "generate":
            return asyncio.run(run_generate(args))
        return run_status(args)
    except BriefError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1


def cli() -> None:
    """CLI entry point."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
