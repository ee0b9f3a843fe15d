"""Fathom - iterative web research

Simple CLI for running a research pass and writing a Markdown report.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from fathom.agents.orchestrator import compose_report, run_research
from fathom.config import settings
from fathom.llm_client import get_model


async def print_progress(message: str) -> None:
    print(f"[~] {message}", flush=True)


async def research_and_report(
    query: str,
    *,
    breadth: int,
    depth: int,
    model: str | None = None,
    output: Path | None = None,
) -> str:
    """Run research on the given query and return the final report."""
    model = model or get_model()
    print(f"Research query: {query}")
    print(f"Model: {model} | breadth: {breadth}")
    print("-" * 50)

    result = await run_research(
        query,
        breadth=breadth,
        depth=depth,
        on_progress=print_progress,
        model=model,
    )

    print(f"\n[*] Findings: {len(result.learnings)}")
    print(f"[*] Sources: {len(result.visited_urls)}")
    print("\n[+] Writing report...")

    report = await compose_report(
        query,
        sorted(result.learnings),
        sorted(result.visited_urls),
        model=model,
    )

    if output is not None:
        output.write_text(report, encoding="utf-8")
        print(f"\n[*] Report written to {output}")
    else:
        print(f"\n{'=' * 50}")
        print("REPORT:")
        print(f"{'=' * 50}")
        print(report)
    return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Fathom iterative web research")
    parser.add_argument("--query", "-q", required=True, help="Research query")
    parser.add_argument(
        "--breadth",
        "-b",
        type=int,
        default=settings.research_breadth,
        help="Number of search sub-queries to generate",
    )
    parser.add_argument(
        "--depth",
        "-d",
        type=int,
        default=settings.research_depth,
        help="Research depth (accepted; runs are single-level)",
    )
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")
    parser.add_argument("--output", "-o", type=Path, help="Write the Markdown report to this file")

    args = parser.parse_args(argv)

    try:
        asyncio.run(
            research_and_report(
                args.query,
                breadth=args.breadth,
                depth=args.depth,
                model=args.model,
                output=args.output,
            )
        )
    except KeyboardInterrupt:
        print("\n[!] Interrupted", file=sys.stderr)
        return 130
    except Exception as exc:
        print(f"\n[!] Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
