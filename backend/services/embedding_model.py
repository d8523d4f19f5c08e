"""Embedding providers and cosine similarity."""
import time
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
import httpx
import numpy as np

from config import (
    HUGGINGFACE_API_KEY,
    EMBEDDING_MODEL,
    EMBEDDING_TIMEOUT,
    EMBEDDING_MAX_RETRIES,
)
from models.capability import CapabilityResult, Success, Unavailable, Malformed

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Turns texts into fixed-length vectors, one per input, in input order."""

    name: str = "embedding"

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        ...

    def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text string.

        Raises:
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        return self.embed_batch([text])[0]


def _validate_batch(texts: List[str]) -> None:
    if not texts:
        raise ValueError("Texts list cannot be empty")
    if any(not t or not t.strip() for t in texts):
        raise ValueError("Texts cannot contain empty strings")


class EmbeddingModel(EmbeddingProvider):
    """Cloud variant: Hugging Face Inference API feature extraction."""

    name = "huggingface"

    def __init__(
        self,
        api_key: Optional[str] = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        max_retries: int = EMBEDDING_MAX_RETRIES,
        initial_delay: float = 1.0,
        timeout: float = EMBEDDING_TIMEOUT
    ):
        """
        Initialize the embedding model client.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier
            max_retries: Maximum number of attempts for 503 / network errors
            initial_delay: Initial delay in seconds for exponential backoff
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")

        self.api_key = api_key
        self.model_name = model_name
        self.max_retries = max(1, max_retries)
        self.initial_delay = initial_delay
        self.timeout = timeout
        self.api_url = (
            f"https://router.huggingface.co/hf-inference/models/{model_name}"
            "/pipeline/feature-extraction"
        )

        logger.info(f"Initialized EmbeddingModel with model: {model_name}")

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in a single API call.

        Args:
            texts: Non-empty texts to embed

        Returns:
            List of embedding vectors, aligned with `texts`

        Raises:
            ValueError: If the list is empty or contains empty strings
            RuntimeError: If API request fails after all retries
        """
        _validate_batch(texts)
        return self._embed_with_retry(texts)

    def _embed_with_retry(self, texts: List[str]) -> List[List[float]]:
        """
        Call the HF API, backing off while a sleeping model loads (503).

        The attempt count is bounded so a search request never waits
        indefinitely on the provider.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "inputs": texts,
            "options": {"wait_for_model": True}
        }

        delay = self.initial_delay
        last_error = None

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, headers=headers, json=payload)

                elapsed = time.time() - start_time

                if response.status_code == 503:
                    last_error = "Model loading (503)"
                    logger.warning(
                        f"Model loading (503) on attempt {attempt + 1}/{self.max_retries}. "
                        f"Retrying in {delay}s..."
                    )
                    if attempt < self.max_retries - 1:
                        time.sleep(delay)
                        delay = min(delay * 2, 30.0)
                    continue

                if response.status_code == 429:
                    logger.error("Rate limit exceeded for Hugging Face API")
                    raise RuntimeError("Rate limit exceeded. Please try again later.")

                if response.status_code == 401:
                    logger.error("Authentication failed for Hugging Face API")
                    raise RuntimeError("Invalid API key")

                if response.status_code != 200:
                    error_msg = f"API request failed with status {response.status_code}: {response.text}"
                    logger.error(error_msg)
                    raise RuntimeError(error_msg)

                embeddings = response.json()
                logger.debug(f"Generated embeddings for {len(texts)} texts in {elapsed:.2f}s")
                return embeddings

            except httpx.TimeoutException:
                last_error = f"Request timeout after {self.timeout}s"
                logger.error(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")
            except httpx.RequestError as e:
                last_error = f"Network error: {str(e)}"
                logger.error(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")

            if attempt < self.max_retries - 1:
                time.sleep(delay)
                delay = min(delay * 2, 30.0)

        error_msg = f"Failed to generate embeddings after {self.max_retries} attempts. Last error: {last_error}"
        logger.error(error_msg)
        raise RuntimeError(error_msg)


class LocalEmbeddingModel(EmbeddingProvider):
    """Local variant: sentence-transformers model loaded in-process."""

    name = "local"

    def __init__(self, model_name: str = EMBEDDING_MODEL):
        # Deferred so the cloud-only install does not need torch.
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self.model = SentenceTransformer(model_name)
        logger.info(f"Loaded local embedding model: {model_name}")

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        _validate_batch(texts)
        vectors = self.model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        return np.asarray(vectors, dtype="float32").tolist()


def create_embedding_provider(kind: str) -> Optional[EmbeddingProvider]:
    """
    Resolve the configured embedding provider once, at startup.

    Args:
        kind: "huggingface", "local" or "disabled"

    Returns:
        A provider, or None when disabled or when it cannot be constructed
    """
    kind = (kind or "disabled").strip().lower()
    if kind == "disabled":
        logger.info("Embedding provider disabled")
        return None
    try:
        if kind == "huggingface":
            return EmbeddingModel()
        if kind == "local":
            return LocalEmbeddingModel()
    except Exception as e:
        logger.warning(f"Embedding provider '{kind}' unavailable: {e}")
        return None
    logger.warning(f"Unknown embedding provider '{kind}'; semantic search disabled")
    return None


def embed_safely(
    provider: Optional[EmbeddingProvider],
    texts: List[str]
) -> CapabilityResult[List[List[float]]]:
    """Call the provider and classify the outcome instead of raising."""
    if provider is None:
        return Unavailable("no embedding provider configured")
    try:
        vectors = provider.embed_batch(texts)
    except Exception as e:
        logger.warning(f"Embedding via {provider.name} failed: {e}")
        return Unavailable(str(e))

    if not isinstance(vectors, list) or len(vectors) != len(texts):
        return Malformed(
            f"expected {len(texts)} vectors, got "
            f"{len(vectors) if isinstance(vectors, list) else type(vectors).__name__}"
        )
    if any(not isinstance(v, (list, tuple)) or len(v) == 0 for v in vectors):
        return Malformed("provider returned an empty or non-list vector")
    try:
        return Success([[float(x) for x in v] for v in vectors])
    except (TypeError, ValueError) as e:
        return Malformed(f"non-numeric vector component: {e}")


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity over the shared-length prefix of two vectors.

    Returns 0.0 when either prefix is empty or has zero magnitude.
    """
    length = min(len(a), len(b))
    if length == 0:
        return 0.0
    va = np.asarray(a[:length], dtype=np.float64)
    vb = np.asarray(b[:length], dtype=np.float64)
    na = float(np.dot(va, va))
    nb = float(np.dot(vb, vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (np.sqrt(na) * np.sqrt(nb)))
