"""Q&A engine using Ollama."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..database import DocumentRepository
from ..errors import EmbeddingError, GenerationError, RetrievalError
from ..logging import get_logger
from .citations import Citation, build_citations, build_context
from .generation import OllamaChatClient
from .intent import CONVERSATIONAL, GROUNDED, classify_question
from .retriever import DocumentRetriever
from .vector_store import SearchResult

logger = get_logger(__name__)

MODE_AUTO = "auto"
MODES = (GROUNDED, CONVERSATIONAL, MODE_AUTO)


GROUNDED_SYSTEM_PROMPT = """You are a knowledge assistant that answers questions using ONLY the provided context from the user's documents.

Rules:
1. ONLY use information from the provided context to answer
2. If the context doesn't contain the answer, say "I don't have enough information in the uploaded documents to answer this question"
3. Be concise but comprehensive
4. Cite sources inline as [Source n], where n is the number of the source in the context
5. Don't make up information not in the context"""

CONVERSATIONAL_SYSTEM_PROMPT = """You are a friendly knowledge assistant. The user is not asking about their documents right now, so reply naturally and helpfully.

If they ask what you can do, explain that you answer questions about their uploaded documents and cite the sources you used."""

NO_DOCUMENTS_ANSWER = (
    "I don't have any relevant information in the uploaded documents to answer this question. "
    "Please make sure you have uploaded documents and they have been processed."
)
SEARCH_ERROR_ANSWER = "I'm having trouble searching through your documents. Please try again later."
GENERATION_ERROR_ANSWER = "I couldn't generate an answer right now. Please try again later."


@dataclass
class GeneratedAnswer:
    """Output of one generation call."""

    answer: str
    citations: List[Citation]
    grounded: bool


class AnswerGenerator:
    """Builds prompts and calls the chat model."""

    def __init__(
        self,
        chat_client: OllamaChatClient,
        grounded_temperature: float = 0.3,
        conversational_temperature: float = 0.7,
        max_tokens: int = 1000,
    ):
        self.chat_client = chat_client
        self.grounded_temperature = grounded_temperature
        self.conversational_temperature = conversational_temperature
        self.max_tokens = max_tokens

    def generate(
        self,
        question: str,
        chunks: Sequence[SearchResult],
        has_grounding_context: bool,
    ) -> GeneratedAnswer:
        """Answer a question, grounded in chunks or conversationally.

        Raises:
            ValueError: Grounded generation requested without chunks
            GenerationError: On provider failure
        """
        if not has_grounding_context:
            answer = self.chat_client.complete(
                [
                    {"role": "system", "content": CONVERSATIONAL_SYSTEM_PROMPT},
                    {"role": "user", "content": question},
                ],
                temperature=self.conversational_temperature,
                max_tokens=self.max_tokens,
            )
            return GeneratedAnswer(answer=answer, citations=[], grounded=False)

        if not chunks:
            raise ValueError("Grounded generation needs at least one chunk")

        prompt = f"""QUESTION: {question}

CONTEXT FROM DOCUMENTS:
{build_context(chunks)}

Answer based only on the context above. Include [Source n] citations for any information you reference."""

        answer = self.chat_client.complete(
            [
                {"role": "system", "content": GROUNDED_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.grounded_temperature,
            max_tokens=self.max_tokens,
        )
        return GeneratedAnswer(
            answer=answer,
            citations=build_citations(chunks),
            grounded=True,
        )


@dataclass
class QAResponse:
    """Response from the Q&A engine."""

    answer: str
    citations: List[Citation] = field(default_factory=list)
    mode: str = GROUNDED
    no_documents: bool = False
    degraded: bool = False
    retrieval_method: Optional[str] = None
    query_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def formatted_answer(self) -> str:
        """Format answer with numbered sources."""
        if not self.citations:
            return self.answer

        lines = [self.answer, "", "Sources:"]
        for citation in self.citations:
            lines.append(f"  [{citation.index}] {citation.document_title}")
        return "\n".join(lines)


class QAEngine:
    """Question-answering engine with RAG.

    answer() never raises for provider or storage failures; they come back
    as a soft answer with `error` set.
    """

    def __init__(
        self,
        retriever: DocumentRetriever,
        generator: AnswerGenerator,
        repository: DocumentRepository,
    ):
        self.retriever = retriever
        self.generator = generator
        self.repository = repository

    def answer(
        self,
        question: str,
        workspace_id: str,
        user_id: str,
        mode: str = GROUNDED,
    ) -> QAResponse:
        """Answer a question for a workspace.

        Args:
            mode: "grounded", "conversational", or "auto" to let the intent
                classifier pick one of the two
        """
        if mode not in MODES:
            raise ValueError(f"Unknown answer mode: {mode}")
        if mode == MODE_AUTO:
            mode = classify_question(question)
            logger.debug(f"Question classified as {mode}")

        query_id, log_error = self._record_query(question, workspace_id, user_id)

        if mode == CONVERSATIONAL:
            return self._conversational(question, query_id, log_error)

        try:
            retrieval = self.retriever.retrieve(question, workspace_id)
        except (EmbeddingError, RetrievalError) as e:
            logger.error(f"Retrieval failed for workspace {workspace_id}: {e}")
            return QAResponse(
                answer=SEARCH_ERROR_ANSWER,
                query_id=query_id,
                error=str(e),
            )

        if not retrieval.has_results:
            logger.info(f"No chunks found in workspace {workspace_id}")
            return QAResponse(
                answer=NO_DOCUMENTS_ANSWER,
                no_documents=True,
                degraded=retrieval.degraded,
                retrieval_method=retrieval.method,
                query_id=query_id,
                error=log_error,
            )

        try:
            generated = self.generator.generate(question, retrieval.chunks, has_grounding_context=True)
        except GenerationError as e:
            logger.error(f"Answer generation failed: {e}")
            return QAResponse(
                answer=GENERATION_ERROR_ANSWER,
                degraded=retrieval.degraded,
                retrieval_method=retrieval.method,
                query_id=query_id,
                error=str(e),
            )

        logger.info(
            f"Answered question in {workspace_id} from {len(retrieval.chunks)} chunks"
            + (" (degraded)" if retrieval.degraded else "")
        )
        return QAResponse(
            answer=generated.answer,
            citations=generated.citations,
            degraded=retrieval.degraded,
            retrieval_method=retrieval.method,
            query_id=query_id,
            error=log_error,
        )

    def _conversational(self, question: str, query_id: Optional[str], log_error: Optional[str]) -> QAResponse:
        try:
            generated = self.generator.generate(question, [], has_grounding_context=False)
        except GenerationError as e:
            logger.error(f"Conversational reply failed: {e}")
            return QAResponse(
                answer=GENERATION_ERROR_ANSWER,
                mode=CONVERSATIONAL,
                query_id=query_id,
                error=str(e),
            )
        return QAResponse(
            answer=generated.answer,
            mode=CONVERSATIONAL,
            query_id=query_id,
            error=log_error,
        )

    def _record_query(self, question: str, workspace_id: str, user_id: str):
        """Log the question. Failure is reported, not raised."""
        try:
            query = self.repository.record_query(
                workspace_id=workspace_id,
                user_id=user_id,
                question=question,
                model_used=self.generator.chat_client.model,
            )
            return query.id, None
        except SQLAlchemyError as e:
            logger.error(f"Failed to record query: {e}")
            return None, f"query logging failed: {e}"
