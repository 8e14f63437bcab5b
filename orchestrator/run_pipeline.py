import argparse
import json
import logging
import os

from config import settings
from agents.rag_retriever import retrieve_passages
from agents.rechunker import backfill_since, rechunk_documents
from transcript_rag import (
    CandidateRetriever, Embedder, InMemoryDocumentStore, InMemoryPassageStore, PassageIndexer, Scope,
)

logger = logging.getLogger(__name__)


def _load_passages(store_dir: str, dimension: int) -> InMemoryPassageStore:
    if os.path.exists(os.path.join(store_dir, 'passages.json')):
        return InMemoryPassageStore.load(store_dir)
    return InMemoryPassageStore(dimension)


def rechunk(args):
    documents = InMemoryDocumentStore.load_json(args.documents)
    embedder = Embedder(settings.RAG_EMBEDDING_MODEL)
    passages = _load_passages(args.store_dir, embedder.get_dimension())
    indexer = PassageIndexer(
        passages, documents, embedder,
        batch_size=settings.RAG_EMBED_BATCH_SIZE,
        max_attempts=settings.RAG_EMBED_MAX_ATTEMPTS,
    )

    if args.document_id:
        result = rechunk_documents(args.document_id, documents, indexer)
    else:
        result = backfill_since(args.since, documents, indexer)

    passages.save(args.store_dir)
    print(json.dumps(result.to_dict(), indent=2))


def retrieve(args):
    embedder = Embedder(settings.RAG_EMBEDDING_MODEL)
    passages = InMemoryPassageStore.load(args.store_dir)
    retriever = CandidateRetriever(
        passages,
        embedder,
        per_document_cap=settings.RAG_PER_DOCUMENT_CAP,
        keyword_bonus=settings.RAG_KEYWORD_BONUS,
        overfetch_factor=settings.RAG_OVERFETCH_FACTOR,
        overfetch_max=settings.RAG_OVERFETCH_MAX,
    )
    scope = Scope(
        document_id=args.document_id,
        title_contains=args.title,
        participant_contains=args.participant,
        date_from=args.date_from,
        date_to=args.date_to,
    )

    results = retrieve_passages(args.question, retriever, passages, scope=scope, k=args.k)
    print(json.dumps([r._asdict() for r in results], indent=2, ensure_ascii=False))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Meeting transcript retrieval pipeline')
    parser.add_argument('--store-dir', default=settings.RAG_STORE_DIR)
    sub = parser.add_subparsers(dest='command', required=True)

    p_rechunk = sub.add_parser('rechunk', help='Chunk, index and embed documents')
    p_rechunk.add_argument('--documents', default=settings.RAG_DOCUMENTS_FILE)
    target = p_rechunk.add_mutually_exclusive_group(required=True)
    target.add_argument('--document-id', action='append')
    target.add_argument('--since', help='Backfill documents created since this ISO date')
    p_rechunk.set_defaults(func=rechunk)

    p_retrieve = sub.add_parser('retrieve', help='Retrieve grounding passages for a question')
    p_retrieve.add_argument('question')
    p_retrieve.add_argument('--k', type=int, default=settings.RAG_FINAL_K)
    p_retrieve.add_argument('--document-id')
    p_retrieve.add_argument('--title')
    p_retrieve.add_argument('--participant')
    p_retrieve.add_argument('--date-from')
    p_retrieve.add_argument('--date-to')
    p_retrieve.set_defaults(func=retrieve)

    args = parser.parse_args(argv)
    args.func(args)

    logger.info(f"[run_pipeline] ===== {args.command.upper()} COMPLETE =====")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
