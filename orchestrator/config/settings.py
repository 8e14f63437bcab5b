import os

# Data paths
RAG_DOCUMENTS_FILE = os.getenv('RAG_DOCUMENTS_FILE', '/data/meetings/meetings.json')
RAG_STORE_DIR = os.getenv('RAG_STORE_DIR', '/data/passages')

# Embedding Model
RAG_EMBEDDING_MODEL = os.getenv('RAG_EMBEDDING_MODEL', 'Snowflake/snowflake-arctic-embed-l-v2.0')
RAG_EMBED_BATCH_SIZE = int(os.getenv('RAG_EMBED_BATCH_SIZE', '32'))  # Passages embedded per round trip
RAG_EMBED_MAX_ATTEMPTS = int(os.getenv('RAG_EMBED_MAX_ATTEMPTS', '3'))  # Tries per embedding batch

# Chunking Settings
RAG_CHUNK_TARGET_TOKENS = int(os.getenv('RAG_CHUNK_TARGET_TOKENS', '750'))  # tokens (~3000 chars)
RAG_CHUNK_OVERLAP_TOKENS = int(os.getenv('RAG_CHUNK_OVERLAP_TOKENS', '100'))  # tokens (~400 chars)

# Backfill
RAG_BACKFILL_LIMIT = int(os.getenv('RAG_BACKFILL_LIMIT', '200'))  # Max documents per backfill run

# Retrieval Settings
RAG_KEYWORD_BONUS = float(os.getenv('RAG_KEYWORD_BONUS', '0.05'))  # Per matched scope term
RAG_PER_DOCUMENT_CAP = int(os.getenv('RAG_PER_DOCUMENT_CAP', '6'))  # Max candidates per document
RAG_OVERFETCH_FACTOR = int(os.getenv('RAG_OVERFETCH_FACTOR', '3'))  # Candidates per final passage
RAG_OVERFETCH_MAX = int(os.getenv('RAG_OVERFETCH_MAX', '50'))

# Diversity & Final Selection
RAG_MMR_LAMBDA = float(os.getenv('RAG_MMR_LAMBDA', '0.7'))  # Diversity vs relevance tradeoff
RAG_FINAL_K = int(os.getenv('RAG_FINAL_K', '12'))  # Default passages per answer
RAG_MAX_FINAL_K = int(os.getenv('RAG_MAX_FINAL_K', '20'))  # Upper clamp for caller-supplied k
