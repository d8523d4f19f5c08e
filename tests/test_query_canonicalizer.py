"""Unit tests for LLM query canonicalization."""
import sys
import json
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from models.capability import Success, Unavailable, Malformed
from services.llm_client import LLMResponse, LLMError, LLMClientError
from services.query_canonicalizer import QueryCanonicalizer


def _llm(text):
    client = Mock()
    client.complete_json.return_value = LLMResponse(
        text=text, tokens_input=10, tokens_output=10, latency_ms=5, model_used="test"
    )
    return client


class TestQueryCanonicalizer:

    def test_no_client_is_unavailable(self):
        result = QueryCanonicalizer(None).canonicalize("golden beads")

        assert isinstance(result, Unavailable)

    def test_valid_answer(self):
        llm = _llm(json.dumps({
            "normalized_query": "golden bead exchange",
            "subject": "Math",
            "plane": "0-6",
            "keywords": ["decimal system", " ", 7, "exchange"]
        }))

        result = QueryCanonicalizer(llm).canonicalize("gold beeds swap", None, None)

        assert isinstance(result, Success)
        canonical = result.value
        assert canonical.normalized_query == "golden bead exchange"
        assert canonical.subject == "Math"
        assert canonical.plane == "0-6"
        assert canonical.keywords == ["decimal system", "exchange"]

    def test_sends_query_and_hints(self):
        llm = _llm("{}")

        QueryCanonicalizer(llm).canonicalize("bead chains", "Math", "6-12")

        system_prompt, user = llm.complete_json.call_args[0][:2]
        assert "Grace & Courtesy" in system_prompt
        assert json.loads(user) == {"q": "bead chains", "subject_hint": "Math", "plane_hint": "6-12"}

    def test_out_of_set_values_keep_caller_hints(self):
        llm = _llm(json.dumps({"normalized_query": "x", "subject": "Science", "plane": "3-6"}))

        canonical = QueryCanonicalizer(llm).canonicalize("x", "Language", "6-12").value

        assert canonical.subject == "Language"
        assert canonical.plane == "6-12"

    def test_missing_fields_fall_back(self):
        canonical = QueryCanonicalizer(_llm("{}")).canonicalize("  sandpaper letters ", None, "0-6").value

        assert canonical.normalized_query == "sandpaper letters"
        assert canonical.subject is None
        assert canonical.plane == "0-6"
        assert canonical.keywords == []

    @pytest.mark.parametrize("text", ["not json", "[1, 2]", "\"string\""])
    def test_malformed_answers(self, text):
        result = QueryCanonicalizer(_llm(text)).canonicalize("q")

        assert isinstance(result, Malformed)
        assert result.raw == text

    def test_client_error_is_unavailable(self):
        llm = Mock()
        llm.complete_json.side_effect = LLMClientError(
            LLMError(code="TIMEOUT_ERROR", message="Request timed out.", details={})
        )

        result = QueryCanonicalizer(llm).canonicalize("q")

        assert result == Unavailable("Request timed out.")
