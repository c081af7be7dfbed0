from typing import Dict, Optional, Tuple, Type

import httpx

from chat_gateway.core.config import settings
from chat_gateway.providers.base import Provider
from chat_gateway.providers.deepseek_provider import DeepSeekProvider
from chat_gateway.providers.gemini_provider import GeminiProvider
from chat_gateway.providers.openai_provider import OpenAIProvider
from chat_gateway.services import registry
from chat_gateway.services.registry import ModelSpec

PROVIDER_CLASSES: Dict[str, Type[Provider]] = {
    registry.OPENAI: OpenAIProvider,
    registry.DEEPSEEK: DeepSeekProvider,
    registry.GOOGLEAI: GeminiProvider,
}


def _credentials(provider: str) -> Tuple[str, str]:
    if provider == registry.OPENAI:
        return settings.OPENAI_API_KEY, settings.OPENAI_BASE_URL
    if provider == registry.DEEPSEEK:
        return settings.DEEPSEEK_API_KEY, settings.DEEPSEEK_BASE_URL
    return settings.GEMINI_API_KEY, settings.GEMINI_BASE_URL


def resolve_provider(
    model_id: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Tuple[Provider, ModelSpec]:
    """
    Resolve the adapter for a public model id (e.g. 'deepseek-v3.1-thinking').
    Returns (provider, model spec). Raises ModelNotFound for unknown ids.
    """
    spec = registry.resolve(model_id)
    api_key, base_url = _credentials(spec.provider)
    return PROVIDER_CLASSES[spec.provider](api_key, base_url, transport=transport), spec
