"""
Model capability profiles and token limits.

Bedrock hosts models from many providers, and each family accepts a slightly
different subset of the Converse API (tool choice, cache points, reasoning,
tool result status). Everything here is a pure lookup on the model id.
"""

from dataclasses import dataclass
from typing import Dict, Literal, Optional, Tuple

# Routing prefixes that may precede "<provider>.<model>" in an inference profile id
ROUTING_PREFIXES = ("global", "apac", "us-gov")


@dataclass(frozen=True)
class CapabilityProfile:
    """
    Behavioral flags for a model family.
    """
    supports_prompt_caching: bool = False
    supports_tool_choice: bool = False
    # When False, cache points must only follow messages WITHOUT tool results
    supports_caching_with_tool_results: bool = False
    # Only Claude accepts the "status" field on toolResult blocks
    supports_tool_result_status: bool = False
    supports_reasoning: bool = False
    # Claude 4 models need the interleaved-thinking beta header
    requires_continuity_header: bool = False
    supports_1m_context: bool = False
    tool_result_format: Literal["text", "json"] = "text"


@dataclass(frozen=True)
class ModelTokenLimits:
    max_input_tokens: int
    max_output_tokens: int


DEFAULT_PROFILE = CapabilityProfile()

DEFAULT_TOKEN_LIMITS = ModelTokenLimits(
    max_input_tokens=196_000,  # 200K context - 4K output
    max_output_tokens=4096,
)

# =============================================================================
# Provider Tables
# =============================================================================

_NOVA_PROFILE = CapabilityProfile(
    supports_prompt_caching=True,
    supports_tool_choice=True,
)

_MISTRAL_PROFILE = CapabilityProfile(tool_result_format="json")

_OPENAI_PROFILE = CapabilityProfile(supports_tool_choice=True)

# provider segment -> ordered (model id substring, profile) rules.
# A None substring matches every model of the provider.
_PROVIDER_RULES: Dict[str, Tuple[Tuple[Optional[str], CapabilityProfile], ...]] = {
    "ai21": (),
    "cohere": (),
    "meta": (),
    "amazon": (("nova", _NOVA_PROFILE),),
    "mistral": ((None, _MISTRAL_PROFILE),),
    "openai": ((None, _OPENAI_PROFILE),),
}

# Claude generations that predate extended thinking. Every other Claude model
# is treated as reasoning-capable.
_CLAUDE_LEGACY_MARKERS = (
    "claude-v2", "claude-instant",
    "claude-3-haiku", "claude-3-sonnet", "claude-3-opus", "claude-3-5-",
    "haiku-3", "sonnet-3-5", "sonnet-3.5", "opus-3",
)
# Claude 4 families with interleaved thinking
_CLAUDE_CONTINUITY_MARKERS = ("opus-4", "sonnet-4", "haiku-4")
_CLAUDE_1M_MARKERS = ("sonnet-4",)

# (markers, limits), first match wins. Bedrock ids use both "claude-3-7-sonnet"
# and "claude-sonnet-4" orderings.
_CLAUDE_TOKEN_LIMITS: Tuple[Tuple[Tuple[str, ...], ModelTokenLimits], ...] = (
    (("sonnet-4",), ModelTokenLimits(200_000 - 64_000, 64_000)),
    (("sonnet-3-7", "sonnet-3.7", "3-7-sonnet"), ModelTokenLimits(200_000 - 64_000, 64_000)),
    (("opus-4",), ModelTokenLimits(200_000 - 64_000, 64_000)),
    (("haiku-4-5", "haiku-4.5"), ModelTokenLimits(200_000 - 64_000, 64_000)),
    (("haiku-3-5", "haiku-3.5", "3-5-haiku"), ModelTokenLimits(200_000 - 8192, 8192)),
    (("haiku-3", "3-haiku"), ModelTokenLimits(200_000 - 4096, 4096)),
    (("sonnet-3-5", "sonnet-3.5", "3-5-sonnet"), ModelTokenLimits(200_000 - 8192, 8192)),
    (("opus-3", "3-opus"), ModelTokenLimits(200_000 - 4096, 4096)),
)

_CLAUDE_1M_LIMITS = ModelTokenLimits(1_000_000 - 64_000, 64_000)


def _has_marker(model_id: str, markers: Tuple[str, ...]) -> bool:
    return any(marker in model_id for marker in markers)


def strip_routing_prefix(model_id: str) -> str:
    """
    Remove a regional/global routing prefix from a model id.

    "us.anthropic.claude-..." and "global.anthropic.claude-..." both become
    "anthropic.claude-...". Ids with fewer than three segments are returned
    unchanged.

    Args:
        model_id (str): Bare model id or routing alias id.

    Returns:
        str: The id without its routing prefix.
    """
    parts = model_id.split(".")
    if len(parts) > 2 and (len(parts[0]) == 2 or parts[0] in ROUTING_PREFIXES):
        return ".".join(parts[1:])
    return model_id


def _anthropic_profile(model_id: str) -> CapabilityProfile:
    supports_reasoning = not _has_marker(model_id, _CLAUDE_LEGACY_MARKERS)
    return CapabilityProfile(
        supports_prompt_caching=True,
        supports_tool_choice=True,
        # Claude with extended thinking rejects cache points after tool results
        supports_caching_with_tool_results=not supports_reasoning,
        supports_tool_result_status=True,
        supports_reasoning=supports_reasoning,
        requires_continuity_header=_has_marker(model_id, _CLAUDE_CONTINUITY_MARKERS),
        supports_1m_context=_has_marker(model_id, _CLAUDE_1M_MARKERS),
        tool_result_format="text",
    )


def get_model_profile(model_id: str) -> CapabilityProfile:
    """
    Resolve the capability profile for a Bedrock model id.

    Unknown providers resolve to the conservative default profile
    (no caching, no tool choice, text tool results).

    Args:
        model_id (str): e.g. "anthropic.claude-3-5-sonnet-20241022-v2:0"
                        or "us.amazon.nova-pro-v1:0".

    Returns:
        CapabilityProfile: Flags for the model family.
    """
    normalized = strip_routing_prefix(model_id)
    parts = normalized.split(".")
    if len(parts) < 2:
        return DEFAULT_PROFILE

    provider = parts[0]
    if provider == "anthropic":
        return _anthropic_profile(normalized)

    for marker, profile in _PROVIDER_RULES.get(provider, ()):
        if marker is None or marker in normalized:
            return profile
    return DEFAULT_PROFILE


def get_model_token_limits(model_id: str, enable_1m_context: bool = False) -> ModelTokenLimits:
    """
    Get token limits for a Bedrock model id.

    Args:
        model_id (str): Base model id (a routing prefix is tolerated).
        enable_1m_context (bool): Use the 1M context window where supported.

    Returns:
        ModelTokenLimits: Known limits, or conservative defaults.
    """
    normalized = strip_routing_prefix(model_id)
    if not normalized.startswith("anthropic.claude"):
        return DEFAULT_TOKEN_LIMITS

    if enable_1m_context and _has_marker(normalized, _CLAUDE_1M_MARKERS):
        return _CLAUDE_1M_LIMITS

    for markers, limits in _CLAUDE_TOKEN_LIMITS:
        if _has_marker(normalized, markers):
            return limits
    return DEFAULT_TOKEN_LIMITS
