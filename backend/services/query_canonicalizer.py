"""LLM-assisted query canonicalization."""
import json
import logging
from typing import Optional

from config import ALLOWED_SUBJECTS, ALLOWED_PLANES
from models.capability import CapabilityResult, Success, Unavailable, Malformed
from models.search import CanonicalQuery
from services.llm_client import BaseLLMClient, LLMClientError

logger = logging.getLogger(__name__)

CANONICALIZE_PROMPT = f"""You help normalize teacher queries for a Montessori album search system.
Output strict JSON with keys: normalized_query, subject, plane, keywords.
Allowed subjects: {', '.join(ALLOWED_SUBJECTS)}.
Allowed planes: {', '.join(ALLOWED_PLANES)}.
keywords is a short list of search terms taken from or implied by the query.
If unsure, omit the field. Do not add commentary."""


class QueryCanonicalizer:
    """Normalizes a raw query and may reclassify its subject and plane."""

    def __init__(self, llm_client: Optional[BaseLLMClient]):
        self.llm_client = llm_client

    def canonicalize(
        self,
        query: str,
        subject: Optional[str] = None,
        plane: Optional[str] = None
    ) -> CapabilityResult[CanonicalQuery]:
        """
        Ask the language model for a canonical form of the query.

        Args:
            query: Raw user query
            subject: Caller's subject hint
            plane: Caller's plane hint

        Returns:
            Success(CanonicalQuery) whose subject/plane are already resolved
            (model value if in the allowed set, else the caller's hint),
            Unavailable, or Malformed
        """
        if self.llm_client is None:
            return Unavailable("no language model configured")

        user = json.dumps({"q": query, "subject_hint": subject, "plane_hint": plane})
        try:
            response = self.llm_client.complete_json(CANONICALIZE_PROMPT, user, max_tokens=256)
        except LLMClientError as e:
            logger.warning(f"Canonicalization unavailable: {e.error.code}")
            return Unavailable(e.error.message)

        try:
            parsed = json.loads(response.text)
        except ValueError as e:
            logger.warning(f"Canonicalization returned invalid JSON: {e}")
            return Malformed(str(e), response.text)
        if not isinstance(parsed, dict):
            return Malformed("expected a JSON object", response.text)

        normalized = parsed.get("normalized_query")
        if not isinstance(normalized, str) or not normalized.strip():
            normalized = query

        keywords = parsed.get("keywords")
        if isinstance(keywords, list):
            keywords = [k.strip() for k in keywords if isinstance(k, str) and k.strip()]
        else:
            keywords = []

        canonical = CanonicalQuery(
            normalized_query=normalized.strip(),
            subject=_pick(parsed.get("subject"), ALLOWED_SUBJECTS, subject),
            plane=_pick(parsed.get("plane"), ALLOWED_PLANES, plane),
            keywords=keywords
        )
        logger.info(
            f"Canonicalized query: {canonical.normalized_query[:80]!r} "
            f"subject={canonical.subject!r} plane={canonical.plane!r}"
        )
        return Success(canonical)


def _pick(value, allowed, fallback: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value in allowed:
        return value
    return fallback
