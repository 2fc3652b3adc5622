"""CLI commands for Documentinator."""

import sys
import uuid
from pathlib import Path

import click

from ..logging import setup_logging, get_logger
from ..database import DocumentRepository, DocumentStatus, create_database_engine
from ..storage import LocalObjectStore, canonical_document_path, migrate_legacy_paths

logger = get_logger(__name__)


def _repository(ctx) -> DocumentRepository:
    if "repository" not in ctx.obj:
        engine = create_database_engine(ctx.obj["database_url"])
        ctx.obj["repository"] = DocumentRepository(engine)
    return ctx.obj["repository"]


def _storage(ctx) -> LocalObjectStore:
    if "storage" not in ctx.obj:
        ctx.obj["storage"] = LocalObjectStore(ctx.obj["storage_root"])
    return ctx.obj["storage"]


def _embeddings(ctx):
    from ..rag import OllamaEmbeddings, RateLimiter

    if "embeddings" not in ctx.obj:
        ctx.obj["embeddings"] = OllamaEmbeddings(rate_limiter=RateLimiter())
    return ctx.obj["embeddings"]


def _vector_store(ctx):
    from ..rag import ChromaVectorStore

    if "vector_store" not in ctx.obj:
        ctx.obj["vector_store"] = ChromaVectorStore(persist_directory=ctx.obj["chromadb_path"])
    return ctx.obj["vector_store"]


def _coordinator(ctx, chunk_size, chunk_overlap, min_chunk_size):
    from ..rag import IngestionCoordinator, TextChunker, TextExtractor

    return IngestionCoordinator(
        repository=_repository(ctx),
        storage=_storage(ctx),
        extractor=TextExtractor(),
        chunker=TextChunker(
            max_chunk_size=chunk_size,
            overlap=chunk_overlap,
            min_chunk_size=min_chunk_size,
        ),
        embeddings=_embeddings(ctx),
        vector_store=_vector_store(ctx),
    )


def chunking_options(f):
    """Shared chunker options."""
    f = click.option('--min-chunk-size', envvar='MIN_CHUNK_SIZE', default=100, type=int)(f)
    f = click.option('--chunk-overlap', envvar='CHUNK_OVERLAP', default=200, type=int)(f)
    f = click.option('--chunk-size', envvar='CHUNK_SIZE', default=1000, type=int)(f)
    return f


def _echo_result(result):
    line = f"{result.document_id}: {result.status}"
    if result.chunk_count:
        line += f" ({result.chunk_count} chunks"
        line += f", {result.failed_chunks} failed)" if result.failed_chunks else ")"
    if result.error:
        line += f" - {result.error}"
    click.echo(line)


@click.group()
@click.option('--database-url', envvar='DATABASE_URL', default=None)
@click.option('--storage-root', envvar='STORAGE_ROOT', default=None)
@click.option('--chromadb-path', envvar='CHROMADB_PATH', default=None)
@click.pass_context
def cli(ctx, database_url, storage_root, chromadb_path):
    """Documentinator - document ingestion and Q&A."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        database_url=database_url,
        storage_root=storage_root,
        chromadb_path=chromadb_path,
    )
    setup_logging()


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--workspace', 'workspace_id', required=True)
@click.option('--owner', 'owner_id', required=True)
@click.option('--title', default=None, help='Defaults to the file name')
@click.pass_context
def upload(ctx, file, workspace_id, owner_id, title):
    """Store a file and register it for ingestion."""
    repository = _repository(ctx)
    storage = _storage(ctx)

    title = title or file.name
    document_id = str(uuid.uuid4())
    path = canonical_document_path(workspace_id, document_id, file.name)

    storage.put(path, file.read_bytes())
    repository.create_document(
        title=title,
        storage_path=path,
        workspace_id=workspace_id,
        owner_id=owner_id,
        document_id=document_id,
    )
    click.echo(f"Uploaded {title} as {document_id}")


@cli.command()
@click.argument('document_id')
@click.option('--force', is_flag=True, help='Re-process even if chunks exist')
@chunking_options
@click.pass_context
def ingest(ctx, document_id, force, chunk_size, chunk_overlap, min_chunk_size):
    """Process one document."""
    coordinator = _coordinator(ctx, chunk_size, chunk_overlap, min_chunk_size)

    def progress(msg):
        click.echo(f"  {msg}")

    result = coordinator.process_document(document_id, force=force, progress_callback=progress)
    _echo_result(result)
    if result.status == DocumentStatus.FAILED:
        sys.exit(1)


@cli.command("ingest-pending")
@click.option('--workspace', 'workspace_id', default=None)
@click.option('--workers', envvar='INGEST_WORKERS', default=2, type=int)
@click.option('--retry-failed/--no-retry-failed', default=True)
@chunking_options
@click.pass_context
def ingest_pending(ctx, workspace_id, workers, retry_failed, chunk_size, chunk_overlap, min_chunk_size):
    """Process every uploaded (and failed) document."""
    coordinator = _coordinator(ctx, chunk_size, chunk_overlap, min_chunk_size)

    results = coordinator.process_pending(
        workspace_id=workspace_id,
        include_failed=retry_failed,
        max_workers=workers,
    )
    for result in results:
        _echo_result(result)

    ready = sum(1 for r in results if r.success)
    chunks = sum(r.chunk_count for r in results if r.success)
    click.echo(f"\nProcessed {ready}/{len(results)} documents ({chunks} chunks)")


@cli.command()
@click.argument('question')
@click.option('--workspace', 'workspace_id', required=True)
@click.option('--user', 'user_id', required=True)
@click.option('--mode', type=click.Choice(['grounded', 'conversational', 'auto']), default='grounded')
@click.option('--top-k', envvar='RAG_TOP_K', default=6, type=int)
@click.pass_context
def ask(ctx, question, workspace_id, user_id, mode, top_k):
    """Ask a question about a workspace's documents."""
    from ..rag import AnswerGenerator, DocumentRetriever, OllamaChatClient, QAEngine

    repository = _repository(ctx)
    retriever = DocumentRetriever(_embeddings(ctx), _vector_store(ctx), repository, top_k=top_k)
    qa_engine = QAEngine(retriever, AnswerGenerator(OllamaChatClient()), repository)

    click.echo(f"Question: {question}\n")

    response = qa_engine.answer(question, workspace_id, user_id, mode=mode)
    click.echo(response.formatted_answer)
    if response.degraded:
        click.echo("\n(Sources were not ranked by relevance: similarity search unavailable)")
    if response.error:
        click.echo(f"\nError: {response.error}", err=True)


@cli.command()
@click.argument('document_id')
@click.pass_context
def summarize(ctx, document_id):
    """Summarize one document."""
    from ..errors import DocumentinatorError
    from ..rag import DocumentSummarizer, OllamaChatClient, TextExtractor

    summarizer = DocumentSummarizer(
        _repository(ctx), _storage(ctx), TextExtractor(), OllamaChatClient()
    )
    try:
        result = summarizer.summarize(document_id)
    except (LookupError, DocumentinatorError) as e:
        click.echo(f"Summary failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"{result.summary}\n\n(from {result.content_source}, {result.content_length} chars)")


@cli.command()
@click.option('--workspace', 'workspace_id', default=None)
@click.pass_context
def status(ctx, workspace_id):
    """Show document processing statistics."""
    summary = _repository(ctx).get_status_summary(workspace_id)

    click.echo(f"Documents: {summary['documents']}")
    for name, count in summary["by_status"].items():
        click.echo(f"  {name}: {count}")
    click.echo(f"Chunks: {summary['chunks']}")
    click.echo(f"Queries: {summary['queries']}")


@cli.command("migrate-paths")
@click.option('--dry-run', is_flag=True)
@click.pass_context
def migrate_paths(ctx, dry_run):
    """Move legacy storage paths to canonical paths."""
    report = migrate_legacy_paths(_repository(ctx), _storage(ctx), dry_run=dry_run)

    for item in report.migrated:
        click.echo(f"  {item.old_path} -> {item.new_path}")
    for item in report.missing:
        click.echo(f"  missing: {item.old_path} ({item.document_id})")

    verb = "Would migrate" if dry_run else "Migrated"
    click.echo(
        f"{verb} {len(report.migrated)}, missing {len(report.missing)}, "
        f"already canonical {report.already_canonical}"
    )


if __name__ == "__main__":
    cli()
