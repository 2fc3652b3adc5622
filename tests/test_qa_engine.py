"""Tests for Q&A engine."""

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from documentinator.errors import EmbeddingError, GenerationError, RetrievalError
from documentinator.rag.qa_engine import (
    NO_DOCUMENTS_ANSWER,
    AnswerGenerator,
    QAEngine,
    QAResponse,
)
from documentinator.rag.citations import Citation
from documentinator.rag.retriever import METHOD_FALLBACK, RetrievalResult


class TestAnswerGenerator:
    """Tests for prompt assembly and generation."""

    @pytest.fixture
    def generator(self, mock_chat_client):
        return AnswerGenerator(mock_chat_client)

    def test_grounded_prompt(self, generator, mock_chat_client, make_search_result):
        """Grounded answers carry numbered context and low temperature."""
        chunks = [make_search_result(1, title="policy.pdf"), make_search_result(2, title="faq.md")]

        answer = generator.generate("What is covered?", chunks, has_grounding_context=True)

        messages = mock_chat_client.complete.call_args.args[0]
        kwargs = mock_chat_client.complete.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 1000
        assert "ONLY" in messages[0]["content"]
        assert "[Source n]" in messages[0]["content"]
        assert "# Source 1 (policy.pdf)" in messages[1]["content"]
        assert "# Source 2 (faq.md)" in messages[1]["content"]
        assert "What is covered?" in messages[1]["content"]
        assert answer.grounded is True
        assert [c.index for c in answer.citations] == [1, 2]

    def test_conversational_prompt(self, generator, mock_chat_client):
        """Conversational answers have no context and higher temperature."""
        answer = generator.generate("Hello!", [], has_grounding_context=False)

        messages = mock_chat_client.complete.call_args.args[0]
        assert mock_chat_client.complete.call_args.kwargs["temperature"] == 0.7
        assert messages[1] == {"role": "user", "content": "Hello!"}
        assert "Source" not in messages[1]["content"]
        assert answer.grounded is False
        assert answer.citations == []

    def test_grounded_without_chunks(self, generator):
        """Grounded mode needs context."""
        with pytest.raises(ValueError):
            generator.generate("q", [], has_grounding_context=True)


class TestQAEngine:
    """Tests for the question-answering flow."""

    @pytest.fixture
    def retriever(self):
        mock = MagicMock()
        mock.retrieve.return_value = RetrievalResult(chunks=[])
        return mock

    @pytest.fixture
    def mock_repo(self):
        mock = MagicMock()
        mock.record_query.return_value.id = "query-1"
        return mock

    @pytest.fixture
    def engine(self, retriever, mock_chat_client, mock_repo):
        return QAEngine(retriever, AnswerGenerator(mock_chat_client), mock_repo)

    def test_no_documents(self, engine, mock_chat_client, sample_workspace_id, sample_user_id):
        """An empty workspace yields a canned answer without citations."""
        response = engine.answer("What is the budget?", sample_workspace_id, sample_user_id)

        assert response.no_documents is True
        assert response.citations == []
        assert response.answer == NO_DOCUMENTS_ANSWER
        assert response.error is None
        assert response.query_id == "query-1"
        mock_chat_client.complete.assert_not_called()

    def test_records_query_once(self, engine, mock_repo, sample_workspace_id, sample_user_id):
        """Every question is logged, whatever the outcome."""
        engine.answer("Q?", sample_workspace_id, sample_user_id)

        mock_repo.record_query.assert_called_once_with(
            workspace_id=sample_workspace_id,
            user_id=sample_user_id,
            question="Q?",
            model_used="test-model",
        )

    def test_grounded_answer_with_citations(self, engine, retriever, make_search_result, sample_workspace_id, sample_user_id):
        """Citations follow the retrieval order."""
        chunks = [make_search_result(4), make_search_result(1), make_search_result(7)]
        retriever.retrieve.return_value = RetrievalResult(chunks=chunks)

        response = engine.answer("Q?", sample_workspace_id, sample_user_id)

        assert response.answer == "Generated answer [Source 1]."
        assert [(c.index, c.chunk_id) for c in response.citations] == [
            (1, "chunk-4"),
            (2, "chunk-1"),
            (3, "chunk-7"),
        ]
        assert response.no_documents is False
        assert response.degraded is False

    def test_degraded_retrieval_flagged(self, engine, retriever, make_search_result, sample_workspace_id, sample_user_id):
        """Fallback retrieval is surfaced on the response."""
        retriever.retrieve.return_value = RetrievalResult(
            chunks=[make_search_result(1)], method=METHOD_FALLBACK, degraded=True
        )

        response = engine.answer("Q?", sample_workspace_id, sample_user_id)

        assert response.degraded is True
        assert response.retrieval_method == METHOD_FALLBACK

    @pytest.mark.parametrize("error", [EmbeddingError("down"), RetrievalError("offline")])
    def test_retrieval_errors_become_soft_answers(self, engine, retriever, error, sample_workspace_id, sample_user_id):
        """Retrieval failures never raise."""
        retriever.retrieve.side_effect = error

        response = engine.answer("Q?", sample_workspace_id, sample_user_id)

        assert response.error == str(error)
        assert response.citations == []
        assert response.answer

    def test_generation_error_becomes_soft_answer(self, engine, retriever, mock_chat_client, make_search_result, sample_workspace_id, sample_user_id):
        """Generation failures never raise."""
        retriever.retrieve.return_value = RetrievalResult(chunks=[make_search_result(1)])
        mock_chat_client.complete.side_effect = GenerationError("model crashed")

        response = engine.answer("Q?", sample_workspace_id, sample_user_id)

        assert response.error == "model crashed"
        assert response.citations == []

    def test_query_logging_failure_reported(self, engine, mock_repo, make_search_result, retriever, sample_workspace_id, sample_user_id):
        """A failed query log still answers, with the error attached."""
        mock_repo.record_query.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
        retriever.retrieve.return_value = RetrievalResult(chunks=[make_search_result(1)])

        response = engine.answer("Q?", sample_workspace_id, sample_user_id)

        assert response.query_id is None
        assert "query logging failed" in response.error
        assert response.answer == "Generated answer [Source 1]."

    def test_conversational_mode_skips_retrieval(self, engine, retriever, mock_chat_client, sample_workspace_id, sample_user_id):
        """Conversational mode answers without documents."""
        mock_chat_client.complete.return_value = "Hi there!"

        response = engine.answer("Hello", sample_workspace_id, sample_user_id, mode="conversational")

        assert response.answer == "Hi there!"
        assert response.mode == "conversational"
        retriever.retrieve.assert_not_called()

    def test_auto_mode_uses_classifier(self, engine, retriever, sample_workspace_id, sample_user_id):
        """Auto mode routes small talk away from retrieval."""
        engine.answer("hello", sample_workspace_id, sample_user_id, mode="auto")
        retriever.retrieve.assert_not_called()

        engine.answer("What does the contract say about renewals?", sample_workspace_id, sample_user_id, mode="auto")
        retriever.retrieve.assert_called_once()

    def test_unknown_mode(self, engine, sample_workspace_id, sample_user_id):
        """Rejects unknown modes."""
        with pytest.raises(ValueError):
            engine.answer("Q?", sample_workspace_id, sample_user_id, mode="creative")


class TestQAResponse:
    """Tests for QAResponse formatting."""

    def test_formatted_answer_without_citations(self):
        """Plain answer when there are no sources."""
        assert QAResponse(answer="Nothing").formatted_answer == "Nothing"

    def test_formatted_answer_lists_sources(self):
        """Numbered sources are appended."""
        response = QAResponse(
            answer="Answer [Source 1].",
            citations=[Citation(1, "c1", "d1", "policy.pdf", "snippet")],
        )
        assert response.formatted_answer == "Answer [Source 1].\n\nSources:\n  [1] policy.pdf"
