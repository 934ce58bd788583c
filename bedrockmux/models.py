"""
Model catalog and routing-alias resolution.

For every foundation model that can stream text, the resolver picks the id
the host should use: a global inference profile, a regional one, or the bare
model id. Access is verified separately for the base model and for the
chosen alias, because Bedrock can gate each of them independently.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Optional, Set, TYPE_CHECKING

from .cancellation import CancellationToken
from .partition import get_partition_from_region, get_region_prefix, supports_global_inference_profiles
from .profiles import get_model_profile, get_model_token_limits
from .types import ApplicationProfile, CatalogModel, ModelEntry

if TYPE_CHECKING:
    from .bedrock_api import BedrockAPIClient

logger = logging.getLogger(__name__)

MODEL_FAMILY = "bedrock"
MODEL_VERSION = "1.0.0"


@dataclass(frozen=True)
class RouteCandidate:
    """Routing options for one catalog model."""
    model: CatalogModel
    preferred_id: str
    global_id: Optional[str] = None
    regional_id: Optional[str] = None

    @property
    def base_id(self) -> str:
        return self.model["model_id"]


def is_eligible(model: CatalogModel) -> bool:
    """Streaming models with text output are usable for chat with tools."""
    return bool(model.get("response_streaming_supported")) and "TEXT" in (model.get("output_modalities") or [])


def _supports_on_demand(model: CatalogModel) -> bool:
    # An empty list means the catalog did not say; assume the bare id works
    inference_types = model.get("inference_types_supported") or []
    return not inference_types or "ON_DEMAND" in inference_types


def build_candidate(model: CatalogModel, profile_ids: Set[str], region: str) -> RouteCandidate:
    """
    Compute the preferred id for a model: global, then regional, then bare.

    Global aliases are only considered in the commercial partition.

    Args:
        model (CatalogModel): Catalog entry.
        profile_ids (Set[str]): Known system-defined inference profile ids.
        region (str): Current region.

    Returns:
        RouteCandidate: The preferred id plus any known alias ids.
    """
    model_id = model["model_id"]
    partition = get_partition_from_region(region)

    global_id = None
    if supports_global_inference_profiles(partition):
        candidate = f"global.{model_id}"
        if candidate in profile_ids:
            global_id = candidate

    regional_id = None
    candidate = f"{get_region_prefix(region)}.{model_id}"
    if candidate in profile_ids:
        regional_id = candidate

    return RouteCandidate(
        model=model,
        preferred_id=global_id or regional_id or model_id,
        global_id=global_id,
        regional_id=regional_id,
    )


class ModelResolver:
    """
    Builds the selectable model list from the catalog and routing aliases.
    """

    def __init__(self, api: "BedrockAPIClient"):
        self.api = api

    async def refresh(
        self,
        region: str,
        token: Optional[CancellationToken] = None,
        enable_1m_context: bool = False,
    ) -> List[ModelEntry]:
        """
        Fetch catalog data through the transport and resolve it.

        Raises:
            Exception: When the foundation model catalog cannot be fetched.
        """
        fetched = await self._run_cancellable(
            asyncio.gather(
                self.api.fetch_models(token),
                self.api.fetch_inference_profiles(token),
                self.api.fetch_application_profiles(token),
            ),
            token,
        )
        if fetched is None:
            logger.debug("[Model Resolver] Refresh cancelled")
            return []

        catalog, profile_ids, application_profiles = fetched
        return await self.resolve(
            catalog,
            profile_ids,
            application_profiles,
            region,
            token=token,
            enable_1m_context=enable_1m_context,
        )

    async def resolve(
        self,
        catalog: List[CatalogModel],
        profile_ids: Set[str],
        application_profiles: List[ApplicationProfile],
        region: str,
        token: Optional[CancellationToken] = None,
        enable_1m_context: bool = False,
    ) -> List[ModelEntry]:
        """
        Resolve the accessible model list.

        Accessibility checks run in parallel; a failed check counts as "not
        accessible" and never aborts the pass. Cancellation returns an empty
        list.

        Args:
            catalog (List[CatalogModel]): Foundation model summaries.
            profile_ids (Set[str]): System-defined inference profile ids.
            application_profiles (List[ApplicationProfile]): Custom deployment aliases.
            region (str): Current region.
            token (CancellationToken, optional): Cancellation signal.
            enable_1m_context (bool): Report 1M-context limits where supported.

        Returns:
            List[ModelEntry]: Entries in catalog order, custom deployments last.
        """
        candidates = [
            build_candidate(model, profile_ids, region)
            for model in catalog
            if is_eligible(model)
        ]
        logger.debug("[Model Resolver] Checking access for %d models", len(candidates))

        resolved = await self._run_cancellable(
            asyncio.gather(*(self._resolve_candidate(c, token) for c in candidates)),
            token,
        )
        if resolved is None:
            logger.debug("[Model Resolver] Resolution cancelled")
            return []

        entries: List[ModelEntry] = []
        seen: Set[str] = set()
        for candidate, resolved_id in zip(candidates, resolved):
            if resolved_id is None or resolved_id in seen:
                continue
            seen.add(resolved_id)
            entries.append(self._build_entry(candidate, resolved_id, enable_1m_context))

        catalog_by_id = {model["model_id"]: model for model in catalog}
        for profile in application_profiles:
            entry = self._build_application_entry(profile, catalog_by_id, enable_1m_context)
            if entry is not None and entry["id"] not in seen:
                seen.add(entry["id"])
                entries.append(entry)

        logger.info("[Model Resolver] %d models available", len(entries))
        return entries

    # =========================================================================
    # Access Checks
    # =========================================================================

    async def _run_cancellable(self, awaitable: Awaitable[Any], token: Optional[CancellationToken]) -> Any:
        work = asyncio.ensure_future(awaitable)
        if token is None:
            return await work

        cancelled = asyncio.ensure_future(token.wait())
        done, _ = await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        if work in done:
            cancelled.cancel()
            return work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        return None

    async def _check_many(self, model_ids: List[str], token: Optional[CancellationToken]) -> Dict[str, bool]:
        results = await asyncio.gather(
            *(self.api.is_model_accessible(model_id, token) for model_id in model_ids),
            return_exceptions=True,
        )
        accessible: Dict[str, bool] = {}
        for model_id, result in zip(model_ids, results):
            if isinstance(result, BaseException):
                logger.debug("[Model Resolver] Access check for %s failed: %s", model_id, result)
            accessible[model_id] = result is True
        return accessible

    async def _resolve_candidate(
        self, candidate: RouteCandidate, token: Optional[CancellationToken]
    ) -> Optional[str]:
        """
        Pick the id to expose for a candidate, or None to drop it.

        Fallback order when the preferred alias is denied:
        global -> regional -> bare base id.
        """
        base_id = candidate.base_id
        ids = [base_id] if candidate.preferred_id == base_id else [base_id, candidate.preferred_id]
        accessible = await self._check_many(ids, token)

        if not accessible[base_id]:
            logger.debug("[Model Resolver] %s is not accessible", base_id)
            return None

        if accessible.get(candidate.preferred_id):
            return candidate.preferred_id

        if candidate.preferred_id == candidate.global_id and candidate.regional_id:
            regional = await self._check_many([candidate.regional_id], token)
            if regional[candidate.regional_id]:
                logger.debug("[Model Resolver] %s denied, using %s", candidate.global_id, candidate.regional_id)
                return candidate.regional_id

        if not _supports_on_demand(candidate.model):
            logger.debug("[Model Resolver] %s needs an inference profile, none accessible", base_id)
            return None
        return base_id

    # =========================================================================
    # Entries
    # =========================================================================

    def _build_entry(self, candidate: RouteCandidate, resolved_id: str, enable_1m_context: bool) -> ModelEntry:
        model = candidate.model
        base_id = candidate.base_id
        use_1m = enable_1m_context and get_model_profile(base_id).supports_1m_context
        limits = get_model_token_limits(base_id, use_1m)

        detail = f"AWS Bedrock - {model.get('provider_name', '')}"
        if resolved_id == candidate.global_id:
            detail += " (Global)"
        elif resolved_id == candidate.regional_id:
            detail += " (Cross-Region)"
        if model.get("lifecycle_status") == "LEGACY":
            detail += " (Legacy)"

        return {
            "id": resolved_id,
            "name": model.get("model_name") or base_id,
            "family": MODEL_FAMILY,
            "version": MODEL_VERSION,
            "detail": detail,
            "provider_name": model.get("provider_name", ""),
            "base_model_id": base_id,
            "max_input_tokens": limits.max_input_tokens,
            "max_output_tokens": limits.max_output_tokens,
            "capabilities": {
                "image_input": "IMAGE" in (model.get("input_modalities") or []),
                "tool_calling": True,
            },
        }

    def _build_application_entry(
        self,
        profile: ApplicationProfile,
        catalog_by_id: Dict[str, CatalogModel],
        enable_1m_context: bool,
    ) -> Optional[ModelEntry]:
        base_id = profile.get("base_model_id")
        base_model = catalog_by_id.get(base_id) if base_id else None
        if base_model is not None and not is_eligible(base_model):
            return None

        model_id = profile.get("arn") or profile["id"]
        limits_id = base_id or model_id
        use_1m = enable_1m_context and get_model_profile(limits_id).supports_1m_context
        limits = get_model_token_limits(limits_id, use_1m)
        provider_name = (base_model or {}).get("provider_name", "")

        return {
            "id": model_id,
            "name": profile.get("name") or model_id,
            "family": MODEL_FAMILY,
            "version": MODEL_VERSION,
            "detail": f"AWS Bedrock - {provider_name or 'Application profile'} (Custom)",
            "provider_name": provider_name,
            "base_model_id": limits_id,
            "max_input_tokens": limits.max_input_tokens,
            "max_output_tokens": limits.max_output_tokens,
            "capabilities": {
                "image_input": "IMAGE" in ((base_model or {}).get("input_modalities") or []),
                "tool_calling": True,
            },
        }
