import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .cancellation import CancellationToken
from .types import ApplicationProfile, CatalogModel

logger = logging.getLogger(__name__)

_STREAM_END = object()


class OperationCancelledError(Exception):
    """A paged call was cancelled between pages."""


def _base_model_id_from_arn(arn: str) -> Optional[str]:
    # arn:aws:bedrock:us-east-1::foundation-model/anthropic.claude-...
    if "foundation-model/" not in arn:
        return None
    return arn.rsplit("/", 1)[-1] or None


async def _aiter_events(events: Iterable[Dict[str, Any]]) -> AsyncIterator[Dict[str, Any]]:
    """Pull a blocking botocore event stream one event at a time off the loop."""
    iterator = iter(events)
    try:
        while True:
            event = await asyncio.to_thread(next, iterator, _STREAM_END)
            if event is _STREAM_END:
                return
            yield event
    finally:
        # Releases the HTTP connection when the consumer stops early
        close = getattr(events, "close", None)
        if close is not None:
            close()


class BedrockAPIClient:
    """
    Thin async wrapper over the boto3 `bedrock` and `bedrock-runtime` clients.

    Blocking SDK calls run in worker threads. Credentials come from the named
    profile if one is set, otherwise from boto3's default chain.
    """

    def __init__(self, region: str, profile_name: Optional[str] = None):
        self.region = region
        self.profile_name = profile_name
        self._create_clients()

    def _create_clients(self) -> None:
        session = boto3.Session(profile_name=self.profile_name, region_name=self.region)
        self.bedrock = session.client("bedrock")
        self.runtime = session.client("bedrock-runtime")

    def set_region(self, region: str) -> None:
        if region != self.region:
            self.region = region
            self._create_clients()

    def set_profile(self, profile_name: Optional[str]) -> None:
        if profile_name != self.profile_name:
            self.profile_name = profile_name
            self._create_clients()

    # =========================================================================
    # Catalog
    # =========================================================================

    async def fetch_models(self, token: Optional[CancellationToken] = None) -> List[CatalogModel]:
        """
        List foundation models available in the current region.

        Raises:
            ClientError | BotoCoreError: The catalog could not be fetched.
        """
        try:
            response = await asyncio.to_thread(self.bedrock.list_foundation_models)
        except (ClientError, BotoCoreError) as e:
            logger.error("[Bedrock API Client] Failed to fetch Bedrock models: %s", e)
            raise

        models: List[CatalogModel] = []
        for summary in response.get("modelSummaries", []):
            models.append({
                "model_arn": summary.get("modelArn", ""),
                "model_id": summary.get("modelId", ""),
                "model_name": summary.get("modelName", ""),
                "provider_name": summary.get("providerName", ""),
                "input_modalities": summary.get("inputModalities") or [],
                "output_modalities": summary.get("outputModalities") or [],
                "response_streaming_supported": bool(summary.get("responseStreamingSupported")),
                "inference_types_supported": summary.get("inferenceTypesSupported") or [],
                "lifecycle_status": (summary.get("modelLifecycle") or {}).get("status"),
            })
        return models

    def _paginate_profiles(self, profile_type: str, token: Optional[CancellationToken]) -> List[Dict[str, Any]]:
        paginator = self.bedrock.get_paginator("list_inference_profiles")
        summaries: List[Dict[str, Any]] = []
        for page in paginator.paginate(typeOfInferenceProfile=profile_type):
            if token is not None and token.is_cancellation_requested:
                raise OperationCancelledError("Operation cancelled")
            summaries.extend(page.get("inferenceProfileSummaries", []))
        return summaries

    async def fetch_inference_profiles(self, token: Optional[CancellationToken] = None) -> Set[str]:
        """
        List system-defined (regional and global) inference profile ids.

        Failures are logged and yield an empty set: models then resolve to
        their bare ids.
        """
        try:
            summaries = await asyncio.to_thread(self._paginate_profiles, "SYSTEM_DEFINED", token)
        except (ClientError, BotoCoreError, OperationCancelledError) as e:
            logger.error("[Bedrock API Client] Failed to fetch inference profiles: %s", e)
            return set()
        return {s["inferenceProfileId"] for s in summaries if s.get("inferenceProfileId")}

    async def fetch_application_profiles(
        self, token: Optional[CancellationToken] = None
    ) -> List[ApplicationProfile]:
        """List custom deployment aliases (application inference profiles)."""
        try:
            summaries = await asyncio.to_thread(self._paginate_profiles, "APPLICATION", token)
        except (ClientError, BotoCoreError, OperationCancelledError) as e:
            logger.error("[Bedrock API Client] Failed to fetch application profiles: %s", e)
            return []

        profiles: List[ApplicationProfile] = []
        for summary in summaries:
            arn = summary.get("inferenceProfileArn", "")
            base_model_id = None
            for model in summary.get("models") or []:
                base_model_id = _base_model_id_from_arn(model.get("modelArn", ""))
                if base_model_id:
                    break
            profiles.append({
                "id": summary.get("inferenceProfileId") or arn,
                "arn": arn,
                "name": summary.get("inferenceProfileName") or arn,
                "base_model_id": base_model_id,
            })
        return profiles

    async def is_model_accessible(self, model_id: str, token: Optional[CancellationToken] = None) -> bool:
        """
        Check whether a model or alias is authorized and available in the region.

        Any failure is treated as "not accessible".
        """
        if token is not None and token.is_cancellation_requested:
            return False
        try:
            response = await asyncio.to_thread(
                self.bedrock.get_foundation_model_availability, modelId=model_id
            )
        except (ClientError, BotoCoreError) as e:
            logger.debug("[Bedrock API Client] Availability check failed for %s: %s", model_id, e)
            return False
        return (
            response.get("authorizationStatus") == "AUTHORIZED"
            and response.get("regionAvailability") == "AVAILABLE"
        )

    # =========================================================================
    # Runtime
    # =========================================================================

    async def start_conversation_stream(self, request: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        """
        Open a ConverseStream call.

        Args:
            request (Dict[str, Any]): Keyword arguments for `converse_stream`.

        Returns:
            AsyncIterator[Dict[str, Any]]: Raw stream events.
        """
        response = await asyncio.to_thread(self.runtime.converse_stream, **request)
        stream = response.get("stream")
        if stream is None:
            raise RuntimeError("No stream in response")
        return _aiter_events(stream)

    async def count_tokens(
        self,
        model_id: str,
        messages: List[Dict[str, Any]],
        system: Optional[List[Dict[str, Any]]] = None,
    ) -> int:
        """Count input tokens for a Converse request with the CountTokens API."""
        converse: Dict[str, Any] = {"messages": messages}
        if system:
            converse["system"] = system
        response = await asyncio.to_thread(
            self.runtime.count_tokens, modelId=model_id, input={"converse": converse}
        )
        return int(response.get("inputTokens", 0))
