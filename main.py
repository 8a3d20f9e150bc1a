#!/usr/bin/env python3
"""CLI entry point for the snaprag content retrieval service."""

import argparse
import asyncio
import json

from dotenv import load_dotenv

from snaprag.config import get_settings
from snaprag.llm_client import OpenAIClient
from snaprag.logging_config import configure_logging
from snaprag.models import SearchQuery, SearchType
from snaprag.services import build_services
from snaprag.tagging import TagExtractor, fallback_tags

# Load environment variables from .env file
load_dotenv()


async def index_command(owner_id: str | None, limit: int) -> None:
    """Tag and embed content that is still missing either."""
    services = build_services(get_settings())
    await services.store.create_all()
    try:
        print("Enriching pending content...")
        count = await services.indexer.index_pending(owner_id=owner_id, limit=limit)
        print(f"Enriched {count} content items.")
    finally:
        await services.store.dispose()


async def query_command(
    query: str,
    user_id: str,
    search_type: str,
    max_results: int,
    generate_response: bool,
) -> None:
    """Run one hybrid search for ``user_id`` and print what it returns."""
    services = build_services(get_settings())
    await services.store.create_all()
    try:
        response = await services.pipeline.search(
            SearchQuery(
                query_text=query,
                search_type=SearchType(search_type),
                max_results=max_results,
                generate_response=generate_response,
            ),
            owner_id=user_id,
        )
    finally:
        await services.store.dispose()

    print(f"Querying: {query}\n")
    if not response.results:
        print("No matching content found.")
    for i, result in enumerate(response.results, 1):
        score = f" ({result.similarity:.2f})" if result.similarity is not None else ""
        description = result.user_context or result.caption or "No description"
        print(f"{i}. [{result.file_type}] {description}{score}  tags={', '.join(result.tags)}")

    if response.generated_response:
        print(f"\nAnswer: {response.generated_response}")

    if services.llm_client.last_cost is not None:
        print(f"\n--- Cost ---\n{services.llm_client.last_cost}")


async def tags_command(context: str, max_tags: int, offline: bool) -> None:
    """Print suggested tags for a description."""
    if offline:
        tags = fallback_tags(context, max_tags)
        print(json.dumps({"tags": tags, "confidence": 0.5, "source": "fallback"}))
        return

    settings = get_settings()
    llm_client = OpenAIClient(api_key=settings.OPENAI_API_KEY, model=settings.CHAT_MODEL)
    suggestion = await TagExtractor(llm_client).extract_tags(context, max_tags=max_tags)
    print(suggestion.model_dump_json())


async def serve_command(host: str, port: int) -> None:
    """Run the HTTP API until interrupted."""
    import uvicorn

    from snaprag.api import create_app

    config = uvicorn.Config(create_app(get_settings()), host=host, port=port, log_config=None)
    await uvicorn.Server(config).serve()


async def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="snaprag content retrieval service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(
        dest="command", help="Command to execute"
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    index_parser = subparsers.add_parser("index", help="Enrich pending content")
    index_parser.add_argument(
        "--user-id",
        default=None,
        help="Only enrich this user's content (default: everyone)",
    )
    index_parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum items to enrich (default: 100)",
    )

    query_parser = subparsers.add_parser("query", help="Search a user's content")
    query_parser.add_argument(
        "query",
        type=str,
        help="Query string",
    )
    query_parser.add_argument(
        "--user-id",
        required=True,
        help="User whose content is searched",
    )
    query_parser.add_argument(
        "--search-type",
        choices=[t.value for t in SearchType],
        default=SearchType.HYBRID.value,
        help="semantic, tags or hybrid (default: hybrid)",
    )
    query_parser.add_argument(
        "--max-results",
        type=int,
        default=10,
        help="Number of results to return (default: 10)",
    )
    query_parser.add_argument(
        "--no-answer",
        action="store_true",
        help="Skip the generated answer",
    )

    tags_parser = subparsers.add_parser("tags", help="Suggest tags for a description")
    tags_parser.add_argument("context", type=str, help="Free-text description")
    tags_parser.add_argument("--max-tags", type=int, default=5, help="Number of tags (default: 5)")
    tags_parser.add_argument(
        "--offline",
        action="store_true",
        help="Use the keyword heuristic only, no model call",
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)

    if args.command == "serve":
        await serve_command(args.host, args.port)
    elif args.command == "index":
        await index_command(args.user_id, args.limit)
    elif args.command == "query":
        await query_command(
            args.query, args.user_id, args.search_type, args.max_results, not args.no_answer
        )
    elif args.command == "tags":
        await tags_command(args.context, args.max_tags, args.offline)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
