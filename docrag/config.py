"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama3.1:8b")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "nomic-embed-text")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "120.0"))

# Role prefixes for asymmetric embedding models (nomic-embed-text style)
DOCUMENT_PREFIX = os.getenv("DOCUMENT_PREFIX", "search_document: ")
QUERY_PREFIX = os.getenv("QUERY_PREFIX", "search_query: ")

# Pause between sequential embedding calls (local Ollama is slow to keep up)
EMBED_DELAY_MS = int(os.getenv("EMBED_DELAY_MS", "100"))

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))
MAX_CONTEXT_CHUNKS = int(os.getenv("MAX_CONTEXT_CHUNKS", "5"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "2000"))           # passed as num_ctx
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.7"))

# Web scraping / crawling
SCRAPE_USER_AGENT = os.getenv(
    "SCRAPE_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
)
SCRAPE_TIMEOUT = float(os.getenv("SCRAPE_TIMEOUT", "30.0"))
CRAWL_MAX_DEPTH = int(os.getenv("CRAWL_MAX_DEPTH", "2"))
CRAWL_MAX_PAGES = int(os.getenv("CRAWL_MAX_PAGES", "5"))
CRAWL_DELAY_MS = int(os.getenv("CRAWL_DELAY_MS", "1000"))
CRAWL_SAME_ORIGIN = os.getenv("CRAWL_SAME_ORIGIN", "true").lower() in ("1", "true", "yes")


def _parse_db_paths(raw: str) -> list[Path]:
    return [Path(p) for p in raw.split(os.pathsep) if p.strip()]


# Database: ordered list of candidate sqlite files, first one that opens wins
DB_PATHS = _parse_db_paths(
    os.getenv("DB_PATHS", str(DATA_DIR / "docrag.sqlite"))
)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
