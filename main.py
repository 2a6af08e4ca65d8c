"""Command-line entry point for (re)building the support knowledge base."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from openai import OpenAIError

from supportrag import IngestionPipeline, SupportRAGError
from supportrag.config import config
from supportrag.document_processing import summarize_categories

if TYPE_CHECKING:
    from collections.abc import Sequence

    from supportrag.models import IngestionSummary, KnowledgeChunk


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Chunk, embed and index the support knowledge source.",
    )
    parser.add_argument(
        "--source",
        type=Path,
        default=None,
        help="Knowledge source file (default: KNOWLEDGE_SOURCE_PATH).",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop the existing collection before storing the new documents.",
    )
    parser.add_argument(
        "--preview",
        type=int,
        default=3,
        help="Number of sample chunks to print after the run (default: 3).",
    )
    return parser.parse_args(argv)


def format_summary(
    summary: IngestionSummary,
    chunks: Sequence[KnowledgeChunk],
    preview: int,
) -> str:
    """Render the end-of-run report."""  # noqa: DOC201
    lines = [
        "Summary:",
        f"- Chunks created: {summary.chunks_created}",
        f"- Embeddings generated: {summary.embeddings_generated}",
        f"- Documents stored: {summary.documents_stored}",
    ]

    if preview > 0 and chunks:
        lines.append("")
        lines.append("Sample chunks:")
        for position, chunk in enumerate(chunks[:preview], start=1):
            lines.append(f"{position}. {chunk.question}")
            lines.append(f"   Category: {chunk.category}")
            lines.append(f"   Content length: {len(chunk.content)} characters")

    distribution = summarize_categories(chunks)
    if distribution:
        lines.append("")
        lines.append("Category distribution:")
        lines.extend(
            f"   {category}: {count} chunks" for category, count in distribution.items()
        )

    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and run the ingestion pipeline."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    try:
        pipeline = IngestionPipeline.from_config(source_path=args.source)
        summary = pipeline.run(reset=args.reset)
    except (SupportRAGError, OpenAIError, ValueError):
        logger.exception("Ingestion pipeline failed")
        return 1

    print(format_summary(summary, pipeline.chunks, args.preview))  # noqa: T201
    return 0


if __name__ == "__main__":
    sys.exit(main())
