import argparse
import asyncio
from collections.abc import Sequence

from docprocessor.config.settings import Settings
from docprocessor.database.connection import close_pool, init_pool
from docprocessor.database.repositories.chunks_repository import ChunksRepository
from docprocessor.database.repositories.external_sources_repository import (
    ExternalSourcesRepository,
)
from docprocessor.database.repositories.processed_documents_repository import (
    ProcessedDocumentsRepository,
)
from docprocessor.database.repositories.registered_documents_repository import (
    RegisteredDocumentsRepository,
)
from docprocessor.database.repositories.summaries_repository import SummariesRepository
from docprocessor.importers.runner import ImportRunner
from docprocessor.importers.web_resources_importer import WebResourcesImporter
from docprocessor.logging.logger import Log
from docprocessor.processor.processor import build_embedder, build_processor
from docprocessor.worker.batch_worker import BatchWorker
from docprocessor.worker.document_runner import DocumentRunner
from docprocessor.worker.regenerator import EmbeddingRegenerator

COMMANDS = (
    "process",
    "reprocess",
    "import",
    "regenerate-embeddings",
    "promote-embeddings",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docprocessor",
        description="Register, extract, summarize and embed government documents.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="process",
        choices=COMMANDS,
        help="pipeline step to run (default: process)",
    )
    return parser


async def process(settings: Settings) -> None:
    processor = build_processor(settings)
    worker = BatchWorker(processor, DocumentRunner(processor), settings)
    await worker.run()


async def reprocess(settings: Settings) -> None:
    """Run the newest registered documents through the pipeline again.

    Attempt history is ignored; each successful document keeps only its new attempt.
    """
    documents = await RegisteredDocumentsRepository().find_latest(settings.max_documents_per_run)
    processor = build_processor(settings)
    runner = DocumentRunner(processor, replace_previous=True)
    await BatchWorker(processor, runner, settings).process(documents)


async def import_documents(settings: Settings) -> None:
    importers = [
        WebResourcesImporter(
            ExternalSourcesRepository(),
            RegisteredDocumentsRepository(),
            allow_deletion=settings.allow_deletion,
        ),
    ]
    await ImportRunner(importers).run()


def build_regenerator(settings: Settings) -> EmbeddingRegenerator:
    return EmbeddingRegenerator(
        ProcessedDocumentsRepository(),
        ChunksRepository(),
        SummariesRepository(),
        build_embedder(settings),
        batch_size=settings.regeneration_batch_size,
    )


async def run(command: str, settings: Settings) -> None:
    """Entry point body: initialize pool -> run one command -> close pool."""
    await init_pool(settings)
    try:
        if command == "process":
            await process(settings)
        elif command == "reprocess":
            await reprocess(settings)
        elif command == "import":
            await import_documents(settings)
        elif command == "regenerate-embeddings":
            await build_regenerator(settings).regenerate()
        elif command == "promote-embeddings":
            await build_regenerator(settings).promote()
    finally:
        await close_pool()


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    Log.info(f"Starting {args.command}", env=settings.app_env)
    asyncio.run(run(args.command, settings))


if __name__ == "__main__":
    main()
