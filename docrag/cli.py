"""Command-line interface for docrag.

Usage:
    docrag                                   # Interactive menu
    docrag ingest-file notes/guide.pdf       # Add a PDF, DOCX, TXT or MD file
    docrag ingest-url https://example.com    # Add a web page
    docrag ingest-url https://example.com --crawl --max-pages 10
    docrag ask "What is the capital of France?"
    docrag list
    docrag delete 3 --yes
    docrag test-provider
"""
import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from docrag import config
from docrag.db import open_store
from docrag.errors import DocRagError
from docrag.llm_client import OllamaClient, check_provider
from docrag.models import Document
from docrag.rag.pipeline import RetrievalPipeline
from docrag.rag.web import CrawlOptions

logger = structlog.get_logger()

MENU = """
📚 docrag - Main Menu
=====================
1. 📄 Process Document (PDF, DOCX, TXT, MD)
2. 🌐 Process Website
3. 💬 Chat with Documents
4. 📋 List Documents
5. 🗑️  Delete Document
6. 🔧 Test Ollama Connection
Q. ❌ Quit
"""


def configure_logging(level: str = None, json_logs: bool = False) -> None:
    """Configure structlog on top of stdlib logging (stderr)."""
    level = (level or config.LOG_LEVEL).upper()
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def format_documents(documents: List[Document]) -> str:
    """Render the document list as a fixed-width table."""
    if not documents:
        return "No documents found. Add some documents first!"

    lines = [
        f"{'ID':<5} {'Name':<30} {'Type':<10} {'Created':<20}",
        "-" * 70,
    ]
    for doc in documents:
        lines.append(
            f"{doc.id:<5} {doc.filename[:30]:<30} {doc.filetype:<10} "
            f"{doc.created_at:%Y-%m-%d %H:%M}"
        )
    lines.append(f"\nTotal: {len(documents)} documents")
    return "\n".join(lines)


async def cmd_ingest_file(pipeline: RetrievalPipeline, path: str) -> bool:
    path = path.strip().strip('"')
    if not path:
        print("❌ File path cannot be empty.")
        return False

    print("\n🔄 Processing document...")
    result = await pipeline.ingest_file(path)
    print(f"{'✅' if result.success else '❌'} {result.message}")
    return result.success


async def cmd_ingest_url(
    pipeline: RetrievalPipeline,
    url: str,
    crawl: bool = False,
    options: Optional[CrawlOptions] = None,
) -> bool:
    print(f"\n🔄 {'Crawling' if crawl else 'Processing'} website...")
    result = await pipeline.ingest_url(url, crawl=crawl, options=options)
    print(f"{'✅' if result.success else '❌'} {result.message}")
    return result.success


async def cmd_ask(pipeline: RetrievalPipeline, question: str) -> bool:
    print("\n🤔 Thinking...")
    answer = await pipeline.ask(question)
    print(f"\n🤖 Assistant: {answer.content}")
    if answer.sources:
        print(f"\n📚 Sources: {', '.join(answer.sources)}")
    return answer.success


def cmd_list(pipeline: RetrievalPipeline) -> bool:
    try:
        documents = pipeline.list_documents()
    except DocRagError as e:
        print(f"❌ Could not list documents: {e}")
        return False

    print(format_documents(documents))
    return True


def cmd_delete(
    pipeline: RetrievalPipeline,
    document_id: int,
    confirm: Callable[[str], str] = None,
) -> bool:
    if confirm is not None:
        answer = confirm(f"Are you sure you want to delete document ID {document_id}? (y/N): ")
        if answer.strip().lower() not in ("y", "yes"):
            print("❌ Deletion cancelled.")
            return False

    try:
        deleted = pipeline.delete_document(document_id)
    except DocRagError as e:
        print(f"❌ Could not delete document: {e}")
        return False

    if deleted:
        print("✅ Document deleted successfully.")
    else:
        print("❌ Document not found or could not be deleted.")
    return deleted


async def cmd_test_provider(client: OllamaClient) -> bool:
    print(f"📡 Testing connection to Ollama at {client.base_url}...")
    report = await check_provider(client)

    if not report.connected:
        print(f"❌ Failed to connect to Ollama: {report.errors.get('connection')}")
        print(f"Make sure Ollama is running on {client.base_url}")
        return False

    print("✅ Connected to Ollama successfully!")
    print(f"📦 Available models ({len(report.models)}):")
    for model in report.models:
        size_gb = model["size"] / (1024 ** 3)
        print(f"   • {model['name']} ({size_gb:.1f} GB)")

    if "embedding" in report.errors:
        print(f"❌ Embedding model test failed: {report.errors['embedding']}")
        print(f"Make sure '{config.EMBEDDING_MODEL}' is installed: ollama pull {config.EMBEDDING_MODEL}")
    else:
        print(f"✅ Embedding model working! Generated {report.embedding_dimension} dimensions")

    if "chat" in report.errors:
        print(f"❌ Chat model test failed: {report.errors['chat']}")
        print(f"Make sure '{config.CHAT_MODEL}' is installed: ollama pull {config.CHAT_MODEL}")
    else:
        print(f"✅ Chat model working! Response: {report.chat_reply or 'No response'}")

    return report.ok


async def interactive(
    pipeline: RetrievalPipeline,
    client: OllamaClient,
    read: Callable[[str], str] = input,
) -> None:
    """Menu loop; each command runs to completion before the next prompt."""
    while True:
        print(MENU)
        try:
            choice = read("Choose an option: ").strip().lower()
        except EOFError:
            choice = "q"

        try:
            if choice == "1":
                await cmd_ingest_file(pipeline, read("Enter file path: "))
            elif choice == "2":
                url = read("Enter website URL: ").strip()
                crawl = read("Crawl linked pages too? (y/N): ").strip().lower() in ("y", "yes")
                await cmd_ingest_url(pipeline, url, crawl=crawl)
            elif choice == "3":
                print("Ask questions about your documents. Type 'back' to return to main menu.")
                while True:
                    question = read("You: ").strip()
                    if not question:
                        continue
                    if question.lower() == "back":
                        break
                    await cmd_ask(pipeline, question)
            elif choice == "4":
                cmd_list(pipeline)
            elif choice == "5":
                cmd_list(pipeline)
                raw = read("Enter document ID to delete (or 0 to cancel): ").strip()
                if not raw.isdigit() or int(raw) <= 0:
                    print("❌ Invalid document ID.")
                else:
                    cmd_delete(pipeline, int(raw), confirm=read)
            elif choice == "6":
                await cmd_test_provider(client)
            elif choice in ("q", "quit", "exit"):
                print("👋 Goodbye!")
                return
            else:
                print("❌ Invalid option. Please try again.")
        except EOFError:
            print("\n👋 Goodbye!")
            return


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docrag",
        description="Ask questions about your own documents with a local Ollama model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--log-level", default=None, help=f"Log level (default: {config.LOG_LEVEL})")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")

    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("ingest-file", help="Process a PDF, DOCX, TXT or MD file")
    p.add_argument("path")

    p = sub.add_parser("ingest-url", help="Process a web page (or crawl a site)")
    p.add_argument("url")
    p.add_argument("--crawl", action="store_true", help="Follow links from the page")
    p.add_argument("--max-depth", type=int, default=config.CRAWL_MAX_DEPTH)
    p.add_argument("--max-pages", type=int, default=config.CRAWL_MAX_PAGES)
    p.add_argument("--delay-ms", type=int, default=config.CRAWL_DELAY_MS)
    p.add_argument("--any-origin", action="store_true", help="Follow links to other sites")

    p = sub.add_parser("ask", help="Ask a question about your documents")
    p.add_argument("question")

    sub.add_parser("list", help="List stored documents")

    p = sub.add_parser("delete", help="Delete a document and its chunks")
    p.add_argument("document_id", type=int)
    p.add_argument("--yes", "-y", action="store_true", help="Don't ask for confirmation")

    sub.add_parser("test-provider", help="Check Ollama connectivity and models")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, json_logs=args.json_logs)

    client = OllamaClient()

    try:
        store = open_store()
    except DocRagError as e:
        print(f"❌ Database initialization failed: {e}")
        logger.error("store_unavailable", error=str(e))
        return 1

    pipeline = RetrievalPipeline(store, client)

    if args.command is None:
        await interactive(pipeline, client)
        return 0

    if args.command == "ingest-file":
        ok = await cmd_ingest_file(pipeline, args.path)
    elif args.command == "ingest-url":
        try:
            options = CrawlOptions(
                max_depth=args.max_depth,
                max_pages=args.max_pages,
                delay_ms=args.delay_ms,
                same_origin_only=not args.any_origin,
            )
        except PydanticValidationError as e:
            print(f"❌ Invalid crawl options: {e}")
            return 2
        ok = await cmd_ingest_url(pipeline, args.url, crawl=args.crawl, options=options)
    elif args.command == "ask":
        ok = await cmd_ask(pipeline, args.question)
    elif args.command == "list":
        ok = cmd_list(pipeline)
    elif args.command == "test-provider":
        ok = await cmd_test_provider(client)
    else:
        ok = cmd_delete(
            pipeline,
            args.document_id,
            confirm=None if args.yes else input,
        )

    return 0 if ok else 1


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n\n⚠️  Cancelled by user.\n")
        sys.exit(1)


if __name__ == "__main__":
    run()
