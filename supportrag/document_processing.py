"""Knowledge-source loading and Q&A chunking functionality."""

from __future__ import annotations

import re
from collections import Counter
from typing import TYPE_CHECKING

from .config import config
from .exceptions import SourceUnavailable
from .models import DEFAULT_CATEGORY, Category, KnowledgeChunk, SourceMetadata

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

logger = config.get_logger(__name__)

DEFAULT_SOURCE_NAME = "knowledge_base.txt"

# Question lines in the support corpus that lack a trailing "?".
KNOWN_QUESTION_PHRASES: tuple[str, ...] = (
    "Do mortgage payments have to be current",
    "What is an Interspousal Transfer Deed",
    "How to Contact Us",
    "Why did I recieve a Form 1099-MISC from Aven",
    '"I received a card in the mail after canceling my account within the '
    "rescission period. Should I be concerned",
)

QUESTION_WORDS: tuple[str, ...] = (
    "what",
    "how",
    "why",
    "when",
    "where",
    "who",
    "which",
    "do",
    "does",
    "can",
    "will",
    "is",
    "are",
    "did",
)

# Plain prefix: "Cancellation ..." opens like "can".
QUESTION_WORD_PATTERN = re.compile(
    r"^(?:" + "|".join(QUESTION_WORDS) + r")",
    re.IGNORECASE,
)

# Ordered: first matching row wins.
CATEGORY_KEYWORDS: tuple[tuple[Category, tuple[str, ...]], ...] = (
    ("fees", ("fee", "cost", "charge")),
    ("rates", ("rate", "apr", "interest")),
    ("application", ("apply", "eligibility", "qualify")),
    ("payments", ("payment", "pay", "due")),
    ("card_features", ("card", "credit", "limit")),
    ("home_equity", ("home", "property", "equity")),
    ("debt_protection", ("debt", "protection", "insurance")),
    ("account_management", ("close", "cancel", "refinance")),
)


def categorize(question: str) -> Category:
    """Assign a category by ordered, case-insensitive keyword match.

    Returns:
        The first category whose keyword occurs in the question, else ``general``.
    """
    lowered = question.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def summarize_categories(chunks: Iterable[KnowledgeChunk]) -> dict[Category, int]:
    """Count chunks per category.

    Returns:
        Mapping of category to chunk count, most common first.
    """
    counts = Counter(chunk.category for chunk in chunks)
    return dict(counts.most_common())


class DocumentLoader:
    """Handles loading of the plain-text knowledge source."""

    @staticmethod
    def load_txt(file_path: Path) -> str:
        """Read the whole knowledge source as UTF-8 text.

        Returns:
            The file contents.

        Raises:
            SourceUnavailable: If the file is missing, unreadable or not UTF-8.
        """
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.exception("Error loading knowledge source %s", file_path)
            raise SourceUnavailable(str(file_path), str(exc)) from exc
        else:
            logger.info("Loaded knowledge source %s (%d chars)", file_path, len(text))
            return text


class QAChunker:
    """Splits FAQ-style text into one chunk per question/answer pair.

    A blank line closes a pair. Every other line either opens a new question
    or is appended to the current answer, as decided by ``classify_line``.
    """

    def __init__(self, known_questions: Iterable[str] = KNOWN_QUESTION_PHRASES) -> None:
        """Initialize the chunker.

        Args:
            known_questions: Exact (case-insensitive) question lines that do not
                end with a question mark.
        """
        self.known_questions = frozenset(
            phrase.strip().lower() for phrase in known_questions
        )

    def classify_line(self, line: str, next_line_is_question: bool | None) -> bool:
        """Decide whether a non-blank line is a question.

        Args:
            line: The stripped line to classify.
            next_line_is_question: Classification of the next non-blank line,
                or None when no non-blank line follows.

        Returns:
            True if the line opens a new question.
        """
        if line.endswith("?"):
            return True

        if line.lower() in self.known_questions:
            return True

        # An interrogative opener only counts when an answer line follows it.
        if QUESTION_WORD_PATTERN.match(line):
            return next_line_is_question is False

        return False

    def classify_lines(self, lines: Sequence[str]) -> list[bool]:
        """Classify every line of a document.

        Lines are visited bottom-up so that each lookahead is already resolved.

        Returns:
            One flag per input line; blank lines are never questions.
        """
        flags = [False] * len(lines)
        next_is_question: bool | None = None

        for index in range(len(lines) - 1, -1, -1):
            stripped = lines[index].strip()
            if not stripped:
                continue
            flags[index] = self.classify_line(stripped, next_is_question)
            next_is_question = flags[index]

        return flags

    def extract_pairs(self, text: str) -> list[tuple[str, str]]:
        """Collect complete (question, answer) pairs in source order.

        Returns:
            Pairs whose question and answer are both non-empty.
        """
        lines = text.splitlines()
        flags = self.classify_lines(lines)

        pairs: list[tuple[str, str]] = []
        question = ""
        answer_lines: list[str] = []

        for line, is_question in zip(lines, flags, strict=True):
            stripped = line.strip()

            if not stripped:
                if question and answer_lines:
                    pairs.append((question, "\n".join(answer_lines)))
                    question = ""
                    answer_lines = []
                continue

            if is_question:
                if question and answer_lines:
                    pairs.append((question, "\n".join(answer_lines)))
                question = stripped
                answer_lines = []
            elif question:
                answer_lines.append(stripped)

        if question and answer_lines:
            pairs.append((question, "\n".join(answer_lines)))

        return pairs

    def chunk_source(
        self,
        raw_text: str,
        source: str = DEFAULT_SOURCE_NAME,
    ) -> list[KnowledgeChunk]:
        """Split knowledge-source text into Q&A chunks.

        Chunk ids are positional (``chunk_<index>``), so identical input always
        produces identical chunks.

        Returns:
            A list of KnowledgeChunk objects in source order.
        """
        pairs = self.extract_pairs(raw_text)
        total = len(pairs)

        chunks = [
            KnowledgeChunk(
                id=f"chunk_{index}",
                content=f"{question}\n\n{answer}",
                category=categorize(question),
                metadata=SourceMetadata(
                    source=source,
                    chunk_index=index,
                    total_chunks=total,
                ),
                question=question,
                answer=answer,
            )
            for index, (question, answer) in enumerate(pairs)
        ]

        logger.info("Text split into %d chunks", len(chunks))
        return chunks

    def chunk_file(self, file_path: Path) -> list[KnowledgeChunk]:
        """Load a knowledge-source file and chunk it.

        Returns:
            Chunks tagged with the file name as their source.
        """
        text = DocumentLoader.load_txt(file_path)
        return self.chunk_source(text, source=file_path.name)
