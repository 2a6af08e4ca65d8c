"""Tests for knowledge-source loading and Q&A chunking."""

import pytest

from supportrag import DocumentLoader, QAChunker, SourceUnavailable, categorize
from supportrag.document_processing import (
    KNOWN_QUESTION_PHRASES,
    summarize_categories,
)

SCENARIO_TEXT = (
    "What is an Interspousal Transfer Deed\n"
    "It's a deed used to transfer property between spouses.\n"
    "\n"
    "How to Contact Us\n"
    "Call 1-800-555-0100 or email support@example.com.\n"
)


def test_exception_phrases_scenario(chunker):
    chunks = chunker.chunk_source(SCENARIO_TEXT)

    assert len(chunks) == 2
    first, second = chunks
    assert first.question == "What is an Interspousal Transfer Deed"
    assert first.answer == "It's a deed used to transfer property between spouses."
    assert second.question == "How to Contact Us"
    assert second.answer == "Call 1-800-555-0100 or email support@example.com."
    assert first.category == "general"
    assert second.category == "general"


def test_faq_chunks_in_source_order(sample_chunks):
    assert [chunk.question for chunk in sample_chunks] == [
        "What fees do you charge?",
        "What is the APR on the card",
        "How do I apply?",
        "Do mortgage payments have to be current",
        "How to Contact Us",
    ]
    assert [chunk.category for chunk in sample_chunks] == [
        "fees",
        "rates",
        "application",
        "payments",
        "general",
    ]
    assert all(chunk.question and chunk.answer for chunk in sample_chunks)


def test_chunk_fields_and_metadata(sample_chunks):
    first = sample_chunks[0]

    assert first.id == "chunk_0"
    assert first.answer == "There is no annual fee.\nLate payments cost $25."
    assert first.content == f"{first.question}\n\n{first.answer}"
    assert first.metadata.source == "faq.txt"
    assert [chunk.metadata.chunk_index for chunk in sample_chunks] == list(range(5))
    assert {chunk.metadata.total_chunks for chunk in sample_chunks} == {5}


def test_chunking_is_deterministic(chunker, faq_text):
    assert chunker.chunk_source(faq_text) == chunker.chunk_source(faq_text)
    assert chunker.chunk_source(faq_text) == QAChunker().chunk_source(faq_text)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "\n\n\n",
        "Just a statement without any question.\nAnother line.\n",
        "What is this?\n\n",
        "Orphan answer line\n\nIs anyone there?\n",
    ],
)
def test_incomplete_pairs_are_dropped(chunker, text):
    assert chunker.chunk_source(text) == []


def test_question_without_answer_is_replaced_by_next_question(chunker):
    text = "First question?\nSecond question?\nSecond answer.\n"

    chunks = chunker.chunk_source(text)

    assert len(chunks) == 1
    assert chunks[0].question == "Second question?"
    assert chunks[0].answer == "Second answer."


def test_question_stays_open_across_blank_line(chunker):
    chunks = chunker.chunk_source("Can I pay early?\n\nYes, at any time.\n")

    assert len(chunks) == 1
    assert chunks[0].answer == "Yes, at any time."


def test_new_question_flushes_previous_pair_without_blank_line(chunker):
    text = "What is a fee?\nA charge.\nWhen is payment due?\nOn the 1st.\n"

    chunks = chunker.chunk_source(text)

    assert [chunk.question for chunk in chunks] == [
        "What is a fee?",
        "When is payment due?",
    ]
    assert [chunk.answer for chunk in chunks] == ["A charge.", "On the 1st."]


def test_prefix_opener_starts_new_pair(chunker):
    text = (
        "Can I pay early?\n"
        "Yes.\n"
        "Cancellation requires a written request\n"
        "Send it by mail.\n"
    )

    chunks = chunker.chunk_source(text)

    assert [chunk.question for chunk in chunks] == [
        "Can I pay early?",
        "Cancellation requires a written request",
    ]
    assert [chunk.answer for chunk in chunks] == ["Yes.", "Send it by mail."]


def test_lines_are_trimmed_and_crlf_handled(chunker):
    text = "  Does it cost anything?  \r\n   No.   \r\n\r\n"

    chunks = chunker.chunk_source(text)

    assert chunks[0].question == "Does it cost anything?"
    assert chunks[0].answer == "No."


class TestClassifyLine:
    """The question heuristic, pinned to the known-phrase list."""

    @pytest.mark.parametrize("phrase", KNOWN_QUESTION_PHRASES)
    def test_known_phrases_are_questions(self, chunker, phrase):
        assert chunker.classify_line(phrase, next_line_is_question=True)
        assert chunker.classify_line(phrase.upper(), next_line_is_question=None)

    def test_known_phrase_list_is_pinned(self):
        assert KNOWN_QUESTION_PHRASES == (
            "Do mortgage payments have to be current",
            "What is an Interspousal Transfer Deed",
            "How to Contact Us",
            "Why did I recieve a Form 1099-MISC from Aven",
            '"I received a card in the mail after canceling my account within '
            "the rescission period. Should I be concerned",
        )

    def test_known_phrase_must_match_whole_line(self, chunker):
        assert not chunker.classify_line(
            "How to Contact Us today", next_line_is_question=True
        )

    def test_question_mark_always_wins(self, chunker):
        assert chunker.classify_line("Really?", next_line_is_question=None)
        assert chunker.classify_line("Really?", next_line_is_question=True)

    @pytest.mark.parametrize(
        "word",
        [
            "What",
            "how",
            "Why",
            "when",
            "Where",
            "who",
            "Which",
            "do",
            "Does",
            "can",
            "Will",
            "is",
            "Are",
            "did",
        ],
    )
    def test_interrogative_needs_answer_line_after(self, chunker, word):
        line = f"{word} something happens"

        assert chunker.classify_line(line, next_line_is_question=False)
        assert not chunker.classify_line(line, next_line_is_question=True)
        assert not chunker.classify_line(line, next_line_is_question=None)

    @pytest.mark.parametrize(
        "line", ["Doing great things", "Cancellation policy", "Isolated line"]
    )
    def test_interrogative_matches_as_plain_prefix(self, chunker, line):
        assert chunker.classify_line(line, next_line_is_question=False)
        assert not chunker.classify_line(line, next_line_is_question=True)

    def test_plain_statement_is_not_question(self, chunker):
        assert not chunker.classify_line(
            "Call us anytime.", next_line_is_question=False
        )

    def test_back_to_back_question_like_lines(self, chunker):
        lines = [
            "What about late fees",
            "How do I pay?",
            "Online or by phone.",
        ]

        assert chunker.classify_lines(lines) == [False, True, False]

    def test_lookahead_skips_blank_lines(self, chunker):
        lines = ["How it works", "", "", "We review your file."]

        assert chunker.classify_lines(lines) == [True, False, False, False]

    def test_back_to_back_line_becomes_part_of_previous_answer(self, chunker):
        text = (
            "Is there a fee?\n"
            "Sometimes.\n"
            "What about late fees\n"
            "How do I pay?\n"
            "Online or by phone.\n"
        )

        chunks = chunker.chunk_source(text)

        assert chunks[0].answer == "Sometimes.\nWhat about late fees"
        assert chunks[1].question == "How do I pay?"

    def test_custom_known_questions(self):
        chunker = QAChunker(known_questions=["Opening hours"])

        chunks = chunker.chunk_source("Opening hours\n9am to 5pm.\n")

        assert chunks[0].question == "Opening hours"


@pytest.mark.parametrize(
    ("question", "expected"),
    [
        ("What fees apply?", "fees"),
        ("Is there a COST to apply?", "fees"),
        ("What is my interest rate?", "rates"),
        ("How do I apply?", "application"),
        ("Am I eligible? Check eligibility", "application"),
        ("When is my payment due?", "payments"),
        ("Can I raise my credit limit?", "card_features"),
        ("Does my home equity matter?", "home_equity"),
        ("What is debt protection?", "debt_protection"),
        ("How do I close my account?", "account_management"),
        ("How to Contact Us", "general"),
        ("", "general"),
    ],
)
def test_categorize(question, expected):
    assert categorize(question) == expected


def test_categorize_first_match_wins():
    # "charge" (fees) is checked before "card" (card_features).
    assert categorize("Is there a charge for a new card?") == "fees"
    # "rate" (rates) is checked before "payment" (payments).
    assert categorize("Does my payment rate change?") == "rates"


def test_summarize_categories(sample_chunks):
    assert summarize_categories(sample_chunks) == {
        "fees": 1,
        "rates": 1,
        "application": 1,
        "payments": 1,
        "general": 1,
    }
    assert summarize_categories([]) == {}


def test_load_txt_success(faq_file, faq_text):
    assert DocumentLoader.load_txt(faq_file) == faq_text


def test_load_txt_missing_file(tmp_path):
    missing = tmp_path / "missing.txt"

    with pytest.raises(SourceUnavailable) as exc_info:
        DocumentLoader.load_txt(missing)

    assert exc_info.value.path == str(missing)
    assert "missing.txt" in str(exc_info.value)


def test_load_txt_invalid_encoding(tmp_path):
    path = tmp_path / "binary.txt"
    path.write_bytes(b"\xff\xfe\x00broken")

    with pytest.raises(SourceUnavailable):
        DocumentLoader.load_txt(path)


def test_chunk_file_uses_file_name_as_source(chunker, faq_file):
    chunks = chunker.chunk_file(faq_file)

    assert len(chunks) == 5
    assert {chunk.metadata.source for chunk in chunks} == {"knowledge_base.txt"}
