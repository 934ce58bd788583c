import asyncio

import pytest
from unittest.mock import AsyncMock

from bedrockmux.cancellation import CancellationToken
from bedrockmux.models import ModelResolver, build_candidate, is_eligible

from conftest import catalog_model

SONNET = "anthropic.claude-sonnet-4-20250514-v1:0"
NOVA = "amazon.nova-pro-v1:0"


def allow(*model_ids):
    allowed = set(model_ids)

    async def is_model_accessible(model_id, token=None):
        return model_id in allowed

    return AsyncMock(side_effect=is_model_accessible)


class TestCandidates:
    def test_eligibility(self):
        assert is_eligible(catalog_model(SONNET))
        assert not is_eligible(catalog_model(SONNET, response_streaming_supported=False))
        assert not is_eligible(catalog_model("amazon.titan-embed-text-v2:0", output_modalities=["EMBEDDING"]))

    def test_prefers_global_then_regional_then_bare(self):
        model = catalog_model(SONNET)
        both = {f"global.{SONNET}", f"us.{SONNET}"}

        assert build_candidate(model, both, "us-east-1").preferred_id == f"global.{SONNET}"
        assert build_candidate(model, {f"us.{SONNET}"}, "us-east-1").preferred_id == f"us.{SONNET}"
        assert build_candidate(model, set(), "us-east-1").preferred_id == SONNET

    def test_regional_prefix_follows_region(self):
        candidate = build_candidate(catalog_model(SONNET), {f"eu.{SONNET}", f"us.{SONNET}"}, "eu-west-1")
        assert candidate.preferred_id == f"eu.{SONNET}"

    def test_no_global_alias_in_govcloud(self):
        profiles = {f"global.{SONNET}", f"us-gov-west.{SONNET}"}
        candidate = build_candidate(catalog_model(SONNET), profiles, "us-gov-west-1")

        assert candidate.global_id is None
        assert candidate.preferred_id == f"us-gov-west.{SONNET}"


class TestModelResolver:
    @pytest.mark.asyncio
    async def test_global_denied_falls_back_to_regional(self, mock_api):
        mock_api.is_model_accessible = allow(SONNET, f"us.{SONNET}")
        resolver = ModelResolver(mock_api)

        entries = await resolver.resolve(
            [catalog_model(SONNET)], {f"global.{SONNET}", f"us.{SONNET}"}, [], "us-east-1"
        )

        assert [e["id"] for e in entries] == [f"us.{SONNET}"]
        assert entries[0]["base_model_id"] == SONNET
        assert "(Cross-Region)" in entries[0]["detail"]

    @pytest.mark.asyncio
    async def test_all_aliases_denied_falls_back_to_base(self, mock_api):
        mock_api.is_model_accessible = allow(SONNET)
        resolver = ModelResolver(mock_api)

        entries = await resolver.resolve(
            [catalog_model(SONNET)], {f"global.{SONNET}", f"us.{SONNET}"}, [], "us-east-1"
        )
        assert [e["id"] for e in entries] == [SONNET]

    @pytest.mark.asyncio
    async def test_inaccessible_base_drops_model(self, mock_api):
        mock_api.is_model_accessible = allow(f"global.{SONNET}", f"us.{SONNET}")
        resolver = ModelResolver(mock_api)

        entries = await resolver.resolve(
            [catalog_model(SONNET)], {f"global.{SONNET}", f"us.{SONNET}"}, [], "us-east-1"
        )
        assert entries == []

    @pytest.mark.asyncio
    async def test_global_alias_used_when_accessible(self, mock_api):
        resolver = ModelResolver(mock_api)
        entries = await resolver.resolve([catalog_model(SONNET)], {f"global.{SONNET}"}, [], "us-east-1")

        assert entries[0]["id"] == f"global.{SONNET}"
        assert "(Global)" in entries[0]["detail"]

    @pytest.mark.asyncio
    async def test_profile_only_model_without_alias_dropped(self, mock_api):
        mock_api.is_model_accessible = allow(SONNET)
        model = catalog_model(SONNET, inference_types_supported=["INFERENCE_PROFILE"])
        resolver = ModelResolver(mock_api)

        entries = await resolver.resolve([model], {f"us.{SONNET}"}, [], "us-east-1")
        assert entries == []

    @pytest.mark.asyncio
    async def test_access_check_exception_counts_as_denied(self, mock_api):
        async def flaky(model_id, token=None):
            if model_id.startswith("global."):
                raise RuntimeError("throttled")
            return True

        mock_api.is_model_accessible = AsyncMock(side_effect=flaky)
        resolver = ModelResolver(mock_api)

        entries = await resolver.resolve([catalog_model(SONNET)], {f"global.{SONNET}"}, [], "us-east-1")
        assert [e["id"] for e in entries] == [SONNET]

    @pytest.mark.asyncio
    async def test_ineligible_models_filtered_and_order_kept(self, mock_api):
        catalog = [
            catalog_model(SONNET),
            catalog_model("amazon.titan-embed-text-v2:0", output_modalities=["EMBEDDING"]),
            catalog_model(NOVA, provider_name="Amazon", input_modalities=["TEXT"]),
        ]
        resolver = ModelResolver(mock_api)
        entries = await resolver.resolve(catalog, set(), [], "us-east-1")

        assert [e["id"] for e in entries] == [SONNET, NOVA]
        assert entries[1]["capabilities"] == {"image_input": False, "tool_calling": True}
        assert entries[0]["max_output_tokens"] == 64_000

    @pytest.mark.asyncio
    async def test_1m_context_limits(self, mock_api):
        resolver = ModelResolver(mock_api)
        entries = await resolver.resolve([catalog_model(SONNET)], set(), [], "us-east-1", enable_1m_context=True)
        assert entries[0]["max_input_tokens"] == 936_000

    @pytest.mark.asyncio
    async def test_legacy_models_marked(self, mock_api):
        resolver = ModelResolver(mock_api)
        entries = await resolver.resolve(
            [catalog_model(SONNET, lifecycle_status="LEGACY")], set(), [], "us-east-1"
        )
        assert entries[0]["detail"].endswith("(Legacy)")

    @pytest.mark.asyncio
    async def test_application_profiles_appended(self, mock_api):
        arn = "arn:aws:bedrock:us-east-1:123456789012:application-inference-profile/abc"
        resolver = ModelResolver(mock_api)

        entries = await resolver.resolve(
            [catalog_model(SONNET)],
            set(),
            [{"id": "abc", "arn": arn, "name": "team-sonnet", "base_model_id": SONNET}],
            "us-east-1",
        )

        assert [e["id"] for e in entries] == [SONNET, arn]
        custom = entries[1]
        assert custom["name"] == "team-sonnet"
        assert custom["base_model_id"] == SONNET
        assert custom["detail"].endswith("(Custom)")

    @pytest.mark.asyncio
    async def test_cancelled_resolution_returns_empty(self, mock_api):
        token = CancellationToken()

        async def slow(model_id, token=None):
            await asyncio.sleep(10)
            return True

        mock_api.is_model_accessible = AsyncMock(side_effect=slow)
        resolver = ModelResolver(mock_api)

        task = asyncio.create_task(resolver.resolve([catalog_model(SONNET)], set(), [], "us-east-1", token=token))
        await asyncio.sleep(0)
        token.cancel()

        assert await asyncio.wait_for(task, timeout=1) == []

    @pytest.mark.asyncio
    async def test_refresh_uses_api(self, mock_api):
        mock_api.fetch_models.return_value = [catalog_model(NOVA, provider_name="Amazon")]
        mock_api.fetch_inference_profiles.return_value = {f"us.{NOVA}"}
        resolver = ModelResolver(mock_api)

        entries = await resolver.refresh("us-east-1")

        assert [e["id"] for e in entries] == [f"us.{NOVA}"]
        mock_api.fetch_application_profiles.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_propagates_catalog_failure(self, mock_api):
        mock_api.fetch_models.side_effect = RuntimeError("AccessDenied")
        resolver = ModelResolver(mock_api)

        with pytest.raises(RuntimeError, match="AccessDenied"):
            await resolver.refresh("us-east-1")
