import pytest
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

from bedrockmux.settings import BedrockSettings


class RecordingProgress:
    """Progress sink that records reported parts."""

    def __init__(self):
        self.parts: List[Dict[str, Any]] = []

    def report(self, part):
        self.parts.append(part)

    def of_type(self, part_type: str) -> List[Dict[str, Any]]:
        return [p for p in self.parts if p["type"] == part_type]


async def aiter_events(events):
    for event in events:
        yield event


def text_stream(*chunks: str, stop_reason: str = "end_turn") -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = [
        {"messageStart": {"role": "assistant"}},
        {"contentBlockStart": {"contentBlockIndex": 0, "start": {}}},
    ]
    events += [{"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"text": c}}} for c in chunks]
    events += [
        {"contentBlockStop": {"contentBlockIndex": 0}},
        {"messageStop": {"stopReason": stop_reason}},
        {"metadata": {"usage": {"inputTokens": 10, "outputTokens": 5, "totalTokens": 15}}},
    ]
    return events


def catalog_model(model_id: str, **overrides) -> Dict[str, Any]:
    model = {
        "model_arn": f"arn:aws:bedrock:us-east-1::foundation-model/{model_id}",
        "model_id": model_id,
        "model_name": model_id.split(".", 1)[-1],
        "provider_name": "Anthropic",
        "input_modalities": ["TEXT", "IMAGE"],
        "output_modalities": ["TEXT"],
        "response_streaming_supported": True,
        "inference_types_supported": ["ON_DEMAND"],
        "lifecycle_status": "ACTIVE",
    }
    model.update(overrides)
    return model


def model_entry(model_id: str, base_model_id: str = None, **overrides) -> Dict[str, Any]:
    entry = {
        "id": model_id,
        "name": model_id,
        "family": "bedrock",
        "version": "1.0.0",
        "detail": "AWS Bedrock - Anthropic",
        "provider_name": "Anthropic",
        "base_model_id": base_model_id or model_id,
        "max_input_tokens": 196_000,
        "max_output_tokens": 8192,
        "capabilities": {"image_input": True, "tool_calling": True},
    }
    entry.update(overrides)
    return entry


@pytest.fixture
def progress():
    return RecordingProgress()


@pytest.fixture
def settings():
    return BedrockSettings(region="us-east-1", prompt_caching_enabled=True)


@pytest.fixture
def mock_api():
    """BedrockAPIClient stand-in with async methods."""
    api = MagicMock()
    api.fetch_models = AsyncMock(return_value=[])
    api.fetch_inference_profiles = AsyncMock(return_value=set())
    api.fetch_application_profiles = AsyncMock(return_value=[])
    api.is_model_accessible = AsyncMock(return_value=True)
    api.start_conversation_stream = AsyncMock()
    api.count_tokens = AsyncMock(return_value=0)
    return api


@pytest.fixture
def mock_env(monkeypatch):
    """Clear adapter-related environment variables."""
    for name in (
        "BEDROCK_REGION", "AWS_REGION", "AWS_DEFAULT_REGION",
        "BEDROCK_PROFILE", "AWS_PROFILE",
        "BEDROCK_PROMPT_CACHING", "BEDROCK_CONTEXT_1M",
        "BEDROCK_THINKING", "BEDROCK_THINKING_BUDGET", "BEDROCK_PREFERRED_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
