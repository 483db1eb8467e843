"""SearchScope - multi-provider search and research reports

Simple CLI for searching and running the research agent.
"""

import argparse
import asyncio
from pathlib import Path

from searchscope.agents.orchestrator import AgentOrchestrator
from searchscope.agents.ranker import Ranker
from searchscope.config import load_settings
from searchscope.exceptions import SearchScopeError
from searchscope.llm_client import LLMClient
from searchscope.models.schemas import ProviderId, Report, SearchFilters, TimeWindow
from searchscope.services.aggregator import ResultAggregator
from searchscope.services.exporter import render_txt
from searchscope.services.logger import configure_logging
from searchscope.services.search_session import SearchSession
from searchscope.tools.search_provider import build_adapters


def _providers(args, settings) -> list[str]:
    providers = [args.provider or settings.default_provider]
    if args.pubmed:
        providers.append(ProviderId.PUBMED.value)
    return providers


async def run_search(args, settings):
    """Search, optionally page forward and re-rank the full result set."""
    aggregator = ResultAggregator(settings, build_adapters(settings))
    session = SearchSession(settings, aggregator, ranker=Ranker(settings, LLMClient(settings)))
    filters = SearchFilters(time_window=TimeWindow(args.time), page_size=settings.results_per_page)

    page = await session.search(args.query, filters, _providers(args, settings))
    print(f"Search: {args.query}")
    print(f"Total results: {page.total_results} ({page.total_pages} pages) {page.provider_counts}")
    print("-" * 50)

    results = page.results
    if args.prioritize:
        analysis = await session.prioritize(args.model)
        print(f"\n[*] Prioritized: {analysis}")
        results = session.store.get_page(1) or []
    if args.page > 1:
        results = await session.go_to_page(args.page)

    for i, result in enumerate(results, 1):
        score = f" [{result.score:.2f}]" if result.score is not None else ""
        print(f"{i:>2}. {result.name}{score}")
        print(f"    {result.url}")
        if result.snippet:
            print(f"    {result.snippet[:160]}")


async def run_agent(args, settings):
    """Run the research agent and print its progress."""
    print(f"Research prompt: {args.query}")
    print("-" * 50)

    orchestrator = AgentOrchestrator.build(settings)
    report: Report | None = None

    async for event in orchestrator.run(
        args.query,
        model_id=args.model,
        time_window=TimeWindow(args.time),
        providers=_providers(args, settings),
    ):
        event_type = event.event.value
        data = event.data

        if event_type == "stage_changed":
            print(f"\n[~] {data.get('stage')}...")

        elif event_type == "insight":
            print(f"  [i] {data.get('insight')}")

        elif event_type == "search_result":
            print(f"  [+] {len(data.get('results', []))} results for '{data.get('query')}'")

        elif event_type == "fetch_status":
            print(f"  [+] fetched {data.get('successful')}/{data.get('total')}, {data.get('fallback')} previews")

        elif event_type == "report_ready":
            report = Report.model_validate(data.get("report", {}))
            print(f"\n[*] Report ready in {data.get('runtime_ms')}ms")

        elif event_type == "error":
            print(f"\n[!] Error ({data.get('kind')}): {data.get('message', 'Unknown error')}")

    if report is None:
        return
    text = render_txt(report)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Saved report to {args.output}")
    else:
        print(f"\n{'=' * 50}\n{text}")


def main():
    parser = argparse.ArgumentParser(description="SearchScope search and research CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--query", "-q", required=True, help="Search query or research prompt")
    common.add_argument("--model", "-m", help="Model id as platform__model (default: from config)")
    common.add_argument("--provider", "-p", choices=[p.value for p in ProviderId], help="Search provider")
    common.add_argument("--pubmed", action="store_true", help="Also search PubMed")
    common.add_argument("--time", default=TimeWindow.ALL.value, choices=[w.value for w in TimeWindow])

    search_parser = subparsers.add_parser("search", parents=[common], help="Search and list results")
    search_parser.add_argument("--page", type=int, default=1, help="Page to show")
    search_parser.add_argument("--prioritize", action="store_true", help="Rank the full result set")

    agent_parser = subparsers.add_parser("agent", parents=[common], help="Run the research agent")
    agent_parser.add_argument("--output", "-o", help="Write the txt report to this path")

    args = parser.parse_args()
    settings = load_settings()
    configure_logging(settings, file_sink=False)

    runner = run_search if args.command == "search" else run_agent
    try:
        asyncio.run(runner(args, settings))
    except SearchScopeError as exc:
        print(f"\n[!] Error ({exc.kind.value}): {exc.message}")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
