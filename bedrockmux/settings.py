"""
Settings for the Bedrock adapter, read from the environment and `.env`.
"""

import os
from dataclasses import dataclass
from typing import Optional

import dotenv

DEFAULT_REGION: str = "us-east-1"
DEFAULT_THINKING_BUDGET: int = 4096
# Anthropic rejects thinking budgets below this
MIN_THINKING_BUDGET: int = 1024

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class BedrockSettings:
    region: str = DEFAULT_REGION
    profile: Optional[str] = None
    prompt_caching_enabled: bool = True
    context_1m_enabled: bool = False
    thinking_enabled: bool = False
    thinking_budget_tokens: int = DEFAULT_THINKING_BUDGET
    preferred_model: Optional[str] = None


def _get_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _get_str(*names: str) -> Optional[str]:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def get_bedrock_settings(load_env: bool = True) -> BedrockSettings:
    """
    Read settings, with explicit BEDROCK_* variables taking precedence.

    Set in .env or the environment:
        BEDROCK_REGION / AWS_REGION       (default: us-east-1)
        BEDROCK_PROFILE / AWS_PROFILE     (default: boto3 credential chain)
        BEDROCK_PROMPT_CACHING            (default: true)
        BEDROCK_CONTEXT_1M                (default: false)
        BEDROCK_THINKING                  (default: false)
        BEDROCK_THINKING_BUDGET           (default: 4096, minimum 1024)
        BEDROCK_PREFERRED_MODEL           (optional)

    Args:
        load_env (bool): Load `.env` into the environment first.

    Returns:
        BedrockSettings: Current settings snapshot.
    """
    if load_env:
        dotenv.load_dotenv()

    return BedrockSettings(
        region=_get_str("BEDROCK_REGION", "AWS_REGION", "AWS_DEFAULT_REGION") or DEFAULT_REGION,
        profile=_get_str("BEDROCK_PROFILE", "AWS_PROFILE"),
        prompt_caching_enabled=_get_bool("BEDROCK_PROMPT_CACHING", True),
        context_1m_enabled=_get_bool("BEDROCK_CONTEXT_1M", False),
        thinking_enabled=_get_bool("BEDROCK_THINKING", False),
        thinking_budget_tokens=max(
            MIN_THINKING_BUDGET,
            _get_int("BEDROCK_THINKING_BUDGET", DEFAULT_THINKING_BUDGET),
        ),
        preferred_model=_get_str("BEDROCK_PREFERRED_MODEL"),
    )
