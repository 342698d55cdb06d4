"""CLI entry point for the developer sourcing engine."""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from sourcing.core.config import LLMConfig, Settings
from sourcing.core.errors import SourcingError
from sourcing.llm import available_providers, get_provider
from sourcing.llm.base import CountingProvider
from sourcing.pipeline.orchestrator import PipelineOutcome, export_outcome_json, run_pipeline
from sourcing.platforms.errors import SearchBackendError
from sourcing.platforms.github.adapter import GitHubAdapter

EXIT_ERROR = 1
EXIT_NEEDS_CLARIFICATION = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Developer sourcing engine - find and rank GitHub developers from a hiring query",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- search subcommand (default) ---
    search_parser = subparsers.add_parser("search", help="Run a sourcing query")
    search_parser.add_argument("query", help='Hiring request, e.g. "Go developers in Lima"')
    search_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    search_parser.add_argument(
        "--provider",
        choices=available_providers(),
        help="Override the LLM provider from the config file",
    )
    search_parser.add_argument(
        "--model",
        help="Override the LLM model from the config file",
    )
    search_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )
    search_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_ERROR)
    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    for noisy in ("aiohttp", "anthropic", "httpx", "openai", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def load_settings(args: argparse.Namespace) -> Settings:
    """Load the YAML config (defaults when the file is absent) and apply CLI overrides."""
    try:
        settings = Settings.from_yaml(args.config)
    except FileNotFoundError:
        if args.config != "config/settings.yaml":
            raise
        settings = Settings()

    overrides: dict[str, str] = {}
    if args.provider:
        overrides["provider"] = args.provider
    if args.model:
        overrides["model"] = args.model
    if overrides:
        llm = LLMConfig.model_validate({**settings.llm.model_dump(), **overrides})
        settings = settings.model_copy(update={"llm": llm})
    return settings


def print_outcome(outcome: PipelineOutcome, requests: int, llm_calls: int) -> None:
    result = outcome.result
    candidates = outcome.candidates
    if result is None or candidates is None:
        return

    meta = candidates.search_metadata
    print(
        f"\nSearch complete: {meta.searches_executed} search(es), "
        f"{meta.total_profiles_found} profile(s) found, "
        f"{meta.profiles_analyzed} analyzed.",
    )
    if not result.top_candidates:
        print("No matching developers found. Try a broader query.")
    for c in result.top_candidates:
        print(f"  #{c.rank} {c.username} ({c.name or 'no name'}) score={c.final_match_score:.2f}")
        if c.location:
            print(f"      Location: {c.location}")
        print(f"      {c.github_url}")
        if c.key_qualifications:
            print(f"      Qualifications: {', '.join(c.key_qualifications)}")
        for p in c.top_relevant_projects[:3]:
            print(f"      - {p.name}: {p.why_relevant}")
        if c.match_reasoning:
            print(f"      {c.match_reasoning}")
        if c.potential_concerns:
            print(f"      Concerns: {c.potential_concerns}")

    summary = result.summary
    print(
        f"\nPresented {summary.candidates_presented}, "
        f"average score {summary.average_match_score:.2f}, "
        f"quality: {summary.search_quality}",
    )
    print(f"GitHub requests: {requests}, LLM calls: {llm_calls}")


async def run(query: str, settings: Settings, export_format: str | None) -> int:
    """Run one sourcing query. Returns the process exit code."""
    provider = CountingProvider(
        get_provider(
            settings.llm.provider,
            model=settings.llm.model,
            max_tokens=settings.llm.max_tokens,
            timeout_seconds=settings.llm.timeout_seconds,
        ),
    )

    async with GitHubAdapter(settings.github) as github:
        outcome = await run_pipeline(query, provider, github, settings)
        requests = github.request_count

    if outcome.needs_clarification:
        print(f"Your request needs clarification: {outcome.clarification_question}")
    else:
        print_outcome(outcome, requests, provider.count)

    if export_format == "json":
        print(f"\n{export_outcome_json(outcome)}")

    return EXIT_NEEDS_CLARIFICATION if outcome.needs_clarification else 0


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    try:
        code = asyncio.run(run(args.query, settings, args.export))
    except (ImportError, ValueError, SourcingError, SearchBackendError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    sys.exit(code)


if __name__ == "__main__":
    main()
