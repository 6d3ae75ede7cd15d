"""Tests for AI enrichment and its degradation paths."""

from types import SimpleNamespace

import pytest

from errorlytic.errors import EnrichmentUnavailable
from errorlytic.services.enrichment import (
    FALLBACK_TROUBLESHOOTING,
    EnrichmentAdapter,
    EnrichmentResult,
)
from errorlytic.services.fault_classifier import ClassifiedFault
from errorlytic.services.openai_client import OpenAIReasoningClient, describe_vehicle
from tests.conftest import FakeReasoningClient


VEHICLE = {"make": "Volkswagen", "model": "Golf", "year": 2018, "vin": "WVWZZZ1KZ6W000001"}


def _faults(*codes):
    return [
        ClassifiedFault(code=code, description=f"Fault {code}", severity="medium",
                        category="Electrical", estimated_cost=8000, position=index)
        for index, code in enumerate(codes)
    ]


def test_no_client_returns_disabled_result():
    result = EnrichmentAdapter(None).enrich(_faults("P0300"), VEHICLE)

    assert result.enabled is False
    assert result.confidence == 0.0
    assert result.error == "AI provider not configured"


def test_unconfigured_openai_client_is_skipped():
    adapter = EnrichmentAdapter(OpenAIReasoningClient(api_key=""))
    result = adapter.enrich(_faults("P0300"), VEHICLE)

    assert result.enabled is False
    assert result.confidence == 0.0


def test_successful_enrichment():
    client = FakeReasoningClient()
    result = EnrichmentAdapter(client, base_confidence=0.8).enrich(_faults("P0300", "17158"), VEHICLE)

    assert result.enabled is True
    assert result.confidence == 0.8
    assert result.provider == "fake"
    assert result.model == "fake-model"
    assert result.ai_assessment == "Assessment of 2 faults"
    assert [(e.code, e.status) for e in result.error_explanations] == [("P0300", "ok"), ("17158", "ok")]
    assert result.error_explanations[0].troubleshooting == "Troubleshoot P0300"


def test_assessment_failure_disables_enrichment():
    client = FakeReasoningClient(fail_assess=True)
    result = EnrichmentAdapter(client).enrich(_faults("P0300"), VEHICLE)

    assert result.enabled is False
    assert result.confidence == 0.0
    assert "assessment unavailable" in result.error
    assert result.provider == "fake"


def test_assessment_timeout_disables_enrichment():
    client = FakeReasoningClient(delay=0.5)
    result = EnrichmentAdapter(client, timeout=0.05).enrich(_faults("P0300"), VEHICLE)

    assert result.enabled is False
    assert result.error == "AI assessment timed out"


def test_per_fault_failure_falls_back_for_that_fault_only():
    client = FakeReasoningClient(fail_codes={"17158"})
    result = EnrichmentAdapter(client, base_confidence=0.8).enrich(_faults("P0300", "17158"), VEHICLE)

    assert result.enabled is True
    assert result.confidence == pytest.approx(0.4)
    ok, fallback = result.error_explanations
    assert ok.status == "ok"
    assert fallback.status == "fallback"
    assert fallback.explanation == "Error code 17158: Fault 17158"
    assert fallback.troubleshooting == FALLBACK_TROUBLESHOOTING


class _BrokenClient(FakeReasoningClient):
    """Client whose failures are not EnrichmentUnavailable."""

    def assess(self, faults, vehicle_info):
        if self.fail_assess:
            raise RuntimeError("unexpected provider bug")
        return super().assess(faults, vehicle_info)

    def explain(self, fault, vehicle_info):
        if fault.code in self.fail_codes:
            raise KeyError("choices")
        return super().explain(fault, vehicle_info)


def test_unexpected_assessment_error_disables_enrichment():
    result = EnrichmentAdapter(_BrokenClient(fail_assess=True), timeout=2).enrich(_faults("P0300"), VEHICLE)

    assert result.enabled is False
    assert result.confidence == 0.0
    assert "unexpected provider bug" in result.error


def test_unexpected_explanation_error_falls_back_for_that_fault():
    client = _BrokenClient(fail_codes={"P0300"})
    result = EnrichmentAdapter(client, timeout=2, base_confidence=0.8).enrich(_faults("P0300", "17158"), VEHICLE)

    assert result.enabled is True
    assert [e.status for e in result.error_explanations] == ["fallback", "ok"]
    assert result.confidence == pytest.approx(0.4)


def test_explanations_are_capped():
    client = FakeReasoningClient()
    result = EnrichmentAdapter(client, max_explanations=2).enrich(_faults("P0300", "P0171", "P0420"), VEHICLE)

    assert [e.code for e in result.error_explanations] == ["P0300", "P0171"]
    assert sorted(client.explained) == ["P0171", "P0300"]


def test_no_faults_is_disabled():
    result = EnrichmentAdapter(FakeReasoningClient()).enrich([], VEHICLE)
    assert result.enabled is False


def test_disabled_result_requires_zero_confidence():
    with pytest.raises(ValueError):
        EnrichmentResult(enabled=False, confidence=0.5)


def test_payload_excludes_summary_flags():
    result = EnrichmentAdapter(FakeReasoningClient()).enrich(_faults("P0300"), VEHICLE)
    payload = result.payload()

    assert set(payload) == {"ai_assessment", "error_explanations", "model", "timestamp", "error"}
    assert payload["error_explanations"][0]["code"] == "P0300"


class _Completions:
    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _openai_client(completions) -> OpenAIReasoningClient:
    client = OpenAIReasoningClient(api_key="test-key", model="test-model")
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client


def test_openai_client_returns_stripped_content():
    completions = _Completions(content="  Misfire on cylinder 2.  ")
    client = _openai_client(completions)

    assert client.explain(_faults("P0300")[0], VEHICLE) == "Misfire on cylinder 2."
    assert completions.calls[0]["model"] == "test-model"
    assert completions.calls[0]["messages"][0]["role"] == "system"


def test_openai_client_maps_failures_to_enrichment_unavailable():
    client = _openai_client(_Completions(exc=ValueError("bad request")))

    with pytest.raises(EnrichmentUnavailable):
        client.troubleshoot(_faults("P0300")[0], VEHICLE)


def test_openai_client_empty_reply_is_unavailable():
    client = _openai_client(_Completions(content="   "))

    with pytest.raises(EnrichmentUnavailable):
        client.assess(_faults("P0300"), VEHICLE)


def test_openai_client_without_key_is_unavailable():
    client = OpenAIReasoningClient(api_key="")

    assert client.configured is False
    with pytest.raises(EnrichmentUnavailable):
        client.assess(_faults("P0300"), VEHICLE)


def test_describe_vehicle():
    assert describe_vehicle(VEHICLE) == "2018, Volkswagen, Golf, VIN WVWZZZ1KZ6W000001"
    assert describe_vehicle({}) == "unknown vehicle"
