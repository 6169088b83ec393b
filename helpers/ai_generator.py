# helpers/ai_generator.py
"""
Text generation for custom values.
Each provider has its own client and request shape; callers only see generate().
"""
import logging
import os
from typing import Any, Dict, Optional

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from helpers.errors import ProviderError

logger = logging.getLogger("ai")

SUPPORTED_PROVIDERS = ("openai", "anthropic", "openrouter")

_SYSTEM = (
    "You write short marketing copy that is stored as a CRM custom value. "
    "Return ONLY the final text, no quotes, no preamble, no markdown."
)

_DEFAULT_MODELS = {
    "openai": lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
    "anthropic": lambda: os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest"),
    "openrouter": lambda: os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini"),
}

_ENV_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


def resolve_ai_credentials(user: Optional[Any] = None, provider: Optional[str] = None) -> Dict[str, Optional[str]]:
    """
    Profile settings first, then the server's env keys.
    When `provider` overrides the profile's provider, the profile key and model are not reused.
    """
    own = (getattr(user, "ai_provider", None) or os.getenv("AI_DEFAULT_PROVIDER", "openai")).lower()
    provider = (provider or own).lower()
    same = provider == own
    api_key = (getattr(user, "ai_api_key", None) if same else None) or os.getenv(_ENV_KEYS.get(provider, ""), "") or None
    model = (getattr(user, "ai_model", None) if same else None) or None
    return {"provider": provider, "api_key": api_key, "model": model}


async def _call_openai(prompt: str, api_key: str, model: str, base_url: Optional[str] = None) -> str:
    client = AsyncOpenAI(api_key=api_key, base_url=base_url) if base_url else AsyncOpenAI(api_key=api_key)
    resp = await client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": _SYSTEM},
            {"role": "user", "content": prompt},
        ],
        temperature=0.7,
        max_tokens=1024,
    )
    return (resp.choices[0].message.content or "") if resp.choices else ""


async def _call_anthropic(prompt: str, api_key: str, model: str) -> str:
    client = AsyncAnthropic(api_key=api_key)
    resp = await client.messages.create(
        model=model,
        max_tokens=1024,
        temperature=0.7,
        system=_SYSTEM,
        messages=[{"role": "user", "content": prompt}],
    )
    return "".join(getattr(block, "text", "") for block in (resp.content or []))


async def generate(prompt: str, provider: str, api_key: Optional[str], model: Optional[str] = None) -> str:
    provider = (provider or "").lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ProviderError(provider or "unknown", f"unsupported provider, use one of {', '.join(SUPPORTED_PROVIDERS)}")
    if not api_key:
        raise ProviderError(provider, "no API key configured")
    model = model or _DEFAULT_MODELS[provider]()

    try:
        if provider == "openai":
            text = await _call_openai(prompt, api_key, model)
        elif provider == "openrouter":
            text = await _call_openai(prompt, api_key, model, base_url="https://openrouter.ai/api/v1")
        else:
            text = await _call_anthropic(prompt, api_key, model)
    except Exception as e:
        logger.error("provider=%s model=%s failed: %s", provider, model, e)
        raise ProviderError(provider, str(e))

    text = (text or "").strip()
    if not text:
        raise ProviderError(provider, "empty response")
    logger.info("provider=%s model=%s generated %d chars", provider, model, len(text))
    return text
