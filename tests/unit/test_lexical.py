"""Unit tests for filename (lexical) matching."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from librarian.retrieval.lexical import LexicalMatcher, score_filename, tokenize
from librarian.storage.repository import DocumentRepository


def _store(repository: DocumentRepository, filename: str, catalog_id: str | None = None) -> str:
    doc = repository.create_document(
        filename=f"1700000000000-{filename}",
        original_filename=filename,
        mime_type="text/plain",
        size=10,
        content_text="body",
        catalog_id=catalog_id,
    )
    return doc.id


class TestTokenize:
    def test_lowercases_and_strips_brackets(self) -> None:
        assert tokenize("[Budget] REPORT") == ["budget", "report"]

    def test_drops_short_tokens_and_stopwords(self) -> None:
        assert tokenize("find the document named Q3 roadmap") == ["roadmap"]

    def test_russian_stopwords(self) -> None:
        assert tokenize("найди документ с именем Бюджет") == ["бюджет"]

    def test_deduplicates(self) -> None:
        assert tokenize("plan plan PLAN") == ["plan"]

    def test_nothing_usable(self) -> None:
        assert tokenize("find a document") == []


class TestScoreFilename:
    def test_whole_word_match_is_capped_at_one(self) -> None:
        assert score_filename("Task2_report.pdf", ["task2"]) == 1.0

    def test_substring_without_word_boundary(self) -> None:
        # "port" is inside "report": counted, but no bonus.
        assert score_filename("report.pdf", ["port", "budget"]) == pytest.approx(0.5)

    def test_exact_filename(self) -> None:
        assert score_filename("roadmap", ["roadmap", "2024"]) == pytest.approx(0.75)

    def test_partial_token_coverage(self) -> None:
        # one whole-word hit (1.5) out of three tokens
        assert score_filename("budget-2024.xlsx", ["budget", "forecast", "annual"]) == pytest.approx(0.5)

    def test_no_match(self) -> None:
        assert score_filename("Budget.pdf", ["task2"]) == 0.0

    def test_no_tokens(self) -> None:
        assert score_filename("anything.pdf", []) == 0.0


class TestLexicalMatcher:
    def test_task2_query_matches_only_task2_report(self, repository: DocumentRepository) -> None:
        task_id = _store(repository, "Task2_report.pdf")
        _store(repository, "Budget.pdf")

        matches = LexicalMatcher(repository).match_by_filename("Task2")
        assert [(m.document_id, m.filename, m.score) for m in matches] == [(task_id, "Task2_report.pdf", 1.0)]

    def test_sorted_by_descending_score(self, repository: DocumentRepository) -> None:
        _store(repository, "annual_budget.pdf")
        both = _store(repository, "annual_budget_plan.pdf")

        matches = LexicalMatcher(repository).match_by_filename("annual plan")
        assert matches[0].document_id == both
        assert matches[0].score >= matches[1].score

    def test_case_insensitive(self, repository: DocumentRepository) -> None:
        doc_id = _store(repository, "HACKATHON Rules.md")
        matches = LexicalMatcher(repository).match_by_filename("hackathon")
        assert [m.document_id for m in matches] == [doc_id]

    def test_catalog_filter(self, repository: DocumentRepository) -> None:
        catalog = repository.create_catalog("Finance")
        inside = _store(repository, "budget.pdf", catalog_id=catalog.id)
        _store(repository, "budget-copy.pdf")

        matches = LexicalMatcher(repository).match_by_filename("budget", catalog_id=catalog.id)
        assert [m.document_id for m in matches] == [inside]

    def test_like_wildcards_are_literal(self, repository: DocumentRepository) -> None:
        _store(repository, "plain.txt")
        assert LexicalMatcher(repository).match_by_filename("100%_done") == []

    def test_no_tokens_means_no_repository_call(self) -> None:
        repository = MagicMock()
        assert LexicalMatcher(repository).match_by_filename("find a doc") == []
        repository.find_by_filename.assert_not_called()

    def test_limit_forwarded(self) -> None:
        repository = MagicMock()
        repository.find_by_filename.return_value = []
        LexicalMatcher(repository).match_by_filename("budget", limit=10)
        repository.find_by_filename.assert_called_once_with(["budget"], catalog_id=None, limit=10)
