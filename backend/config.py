"""Configuration management for the Album Guidance search backend."""
import os
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _flag(name: str, default: bool, legacy: Optional[str] = None) -> bool:
    """Read a boolean flag; accepts 1/true/yes/on (case-insensitive)."""
    raw = os.getenv(name)
    if raw is None and legacy:
        raw = os.getenv(legacy)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" | "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:5173,http://localhost:3000"
).split(",")

# Provider Configuration (resolved once at startup)
EMBEDDING_PROVIDER = os.getenv("EMBEDDING_PROVIDER", "huggingface")  # huggingface | local | disabled
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "30"))
EMBEDDING_MAX_RETRIES = int(os.getenv("EMBEDDING_MAX_RETRIES", "2"))

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "groq")  # groq | ollama | disabled
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.1-8b-instant")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "20"))
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")

# Retrieval Configuration
USE_EMBEDDINGS = _flag("USE_EMBEDDINGS", True)
USE_LEXICAL = _flag("USE_LEXICAL", True, legacy="USE_BM25")
USE_LLM_CANONICALIZATION = _flag("USE_LLM_CANONICALIZATION", False)
USE_LLM_RERANK = _flag("USE_LLM_RERANK", False)

SCORE_ALPHA = float(os.getenv("SCORE_ALPHA", "0.7"))  # semantic weight
SCORE_BETA = float(os.getenv("SCORE_BETA", "0.3"))  # lexical weight
SUBJECT_BOOST = float(os.getenv("SUBJECT_BOOST", "1.2"))
PLANE_BOOST = float(os.getenv("PLANE_BOOST", "1.2"))
PHRASE_BOOST = float(os.getenv("PHRASE_BOOST", "1.2"))
LOW_CONFIDENCE_THRESHOLD = float(os.getenv("LOW_CONFIDENCE_THRESHOLD", "0.35"))
MINIMUM_FINAL_SCORE = float(os.getenv("MINIMUM_FINAL_SCORE", "0.01"))
RERANK_TOP_K = int(os.getenv("RERANK_TOP_K", "8"))
DEFAULT_RESULT_COUNT = int(os.getenv("DEFAULT_RESULT_COUNT", "3"))
BM25_CANDIDATE_LIMIT = int(os.getenv("BM25_CANDIDATE_LIMIT", "50"))
LEXICAL_CONFIDENCE_FLOOR = 0.1

# Ingestion Configuration
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "10"))
MAX_PAGES = int(os.getenv("MAX_PAGES", "300"))
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "data/uploads")
CHUNK_MIN_CHARS = 500
CHUNK_MAX_CHARS = 800

# Canonical vocabularies for query canonicalization
ALLOWED_SUBJECTS = ("Math", "Language", "Culture", "Grace & Courtesy")
ALLOWED_PLANES = ("0-6", "6-12", "12-18")


@dataclass(frozen=True)
class RetrievalSettings:
    """Snapshot of the retrieval options used by one engine instance."""
    use_embeddings: bool = USE_EMBEDDINGS
    use_lexical: bool = USE_LEXICAL
    use_llm_canonicalization: bool = USE_LLM_CANONICALIZATION
    use_llm_rerank: bool = USE_LLM_RERANK
    score_alpha: float = SCORE_ALPHA
    score_beta: float = SCORE_BETA
    subject_boost: float = SUBJECT_BOOST
    plane_boost: float = PLANE_BOOST
    phrase_boost: float = PHRASE_BOOST
    low_confidence_threshold: float = LOW_CONFIDENCE_THRESHOLD
    minimum_final_score: float = MINIMUM_FINAL_SCORE
    rerank_top_k: int = RERANK_TOP_K
    default_result_count: int = DEFAULT_RESULT_COUNT
    bm25_candidate_limit: int = BM25_CANDIDATE_LIMIT


# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
