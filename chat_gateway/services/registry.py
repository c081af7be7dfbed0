"""Static model catalogue.

Built once at import time and never mutated afterwards, so it is safe to
share between concurrent requests.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from chat_gateway.errors import ModelNotFound

OPENAI = "openai"
DEEPSEEK = "deepseek"
GOOGLEAI = "googleai"

PROVIDERS = (OPENAI, DEEPSEEK, GOOGLEAI)


@dataclass(frozen=True)
class TemperatureRestrictions:
    min: Optional[float] = None
    max: Optional[float] = None
    default: Optional[float] = None
    supported_values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class ModelSpec:
    id: str
    name: str
    provider: str
    upstream_model: str
    description: str = ""
    max_tokens: Optional[int] = None
    capabilities: Tuple[str, ...] = field(default_factory=tuple)
    is_latest: bool = False
    temperature: Optional[TemperatureRestrictions] = None

    def coerce_temperature(self, value: Optional[float]) -> Optional[float]:
        """Return a temperature the upstream accepts for this model.

        Unsupported values are replaced by the model default instead of being
        rejected.
        """
        rules = self.temperature
        if rules is None:
            return value
        if value is None:
            # fixed-temperature models always get their value; others leave it to the upstream
            return rules.default if rules.supported_values else None
        if rules.supported_values and value not in rules.supported_values:
            return rules.default
        if rules.min is not None and value < rules.min:
            return rules.default
        if rules.max is not None and value > rules.max:
            return rules.default
        return value

    def coerce_max_tokens(self, value: Optional[int]) -> Optional[int]:
        if value is None or value <= 0:
            return None
        if self.max_tokens is not None and value > self.max_tokens:
            return self.max_tokens
        return value


_STANDARD_TEMPERATURE = TemperatureRestrictions(min=0, max=1, default=0.7)
_FIXED_TEMPERATURE = TemperatureRestrictions(default=1.0, supported_values=(1.0,))


def _openai(
    model_id: str,
    name: str,
    description: str,
    capabilities: Tuple[str, ...],
    *,
    max_tokens: int = 1_000_000,
    is_latest: bool = True,
    temperature: TemperatureRestrictions = _STANDARD_TEMPERATURE,
) -> ModelSpec:
    return ModelSpec(
        id=model_id,
        name=name,
        provider=OPENAI,
        upstream_model=model_id,
        description=description,
        max_tokens=max_tokens,
        capabilities=capabilities,
        is_latest=is_latest,
        temperature=temperature,
    )


OPENAI_MODELS: List[ModelSpec] = [
    _openai(
        "gpt-4o", "GPT-4o", "GPT-4 Omni model with multimodal capabilities",
        ("text", "vision", "function-calling", "multimodal"),
        max_tokens=128_000, is_latest=False,
    ),
    _openai(
        "gpt-4o-mini", "GPT-4o Mini", "Efficient GPT-4o mini for faster responses and lower costs",
        ("text", "vision", "function-calling"),
        max_tokens=128_000, is_latest=False,
    ),
    _openai(
        "gpt-4.1", "GPT-4.1", "GPT-4.1 model with enhanced performance and coding capabilities",
        ("text", "vision", "function-calling", "coding", "long-context"),
    ),
    _openai(
        "gpt-4.1-mini", "GPT-4.1 Mini", "Efficient GPT-4.1 mini for faster responses and lower costs",
        ("text", "vision", "function-calling", "coding"),
    ),
    _openai(
        "gpt-4.1-nano", "GPT-4.1 Nano", "Ultra-light GPT-4.1 nano for high-speed, low-cost tasks",
        ("text", "coding", "fast"),
    ),
    _openai(
        "gpt-5", "GPT-5", "GPT-5 model with superior reasoning and multimodal capabilities",
        ("text", "vision", "audio", "video", "function-calling", "advanced", "multimodal"),
        temperature=_FIXED_TEMPERATURE,
    ),
    _openai(
        "gpt-5-mini", "GPT-5 Mini", "Efficient GPT-5 mini balancing performance and resource efficiency",
        ("text", "vision", "function-calling", "multimodal"),
        temperature=_FIXED_TEMPERATURE,
    ),
    _openai(
        "gpt-5-nano", "GPT-5 Nano", "High-speed GPT-5 nano for minimal resource requirements",
        ("text", "fast", "efficient"),
        temperature=_FIXED_TEMPERATURE,
    ),
]

# Thinking and non-thinking variants share one upstream model
DEEPSEEK_MODELS: List[ModelSpec] = [
    ModelSpec(
        id="deepseek-v3.1",
        name="DeepSeek-V3.1 (Non-thinking Model)",
        provider=DEEPSEEK,
        upstream_model="deepseek-chat",
        description="DeepSeek V3.1 model for general tasks without thinking mode",
        max_tokens=8192,
        capabilities=("text", "code", "general"),
        is_latest=True,
        temperature=_STANDARD_TEMPERATURE,
    ),
    ModelSpec(
        id="deepseek-v3.1-thinking",
        name="DeepSeek-V3.1 (Thinking Mode)",
        provider=DEEPSEEK,
        upstream_model="deepseek-chat",
        description="DeepSeek V3.1 with thinking mode for complex reasoning tasks",
        max_tokens=8192,
        capabilities=("text", "code", "thinking", "reasoning"),
        is_latest=True,
        temperature=_STANDARD_TEMPERATURE,
    ),
]

GOOGLEAI_MODELS: List[ModelSpec] = [
    ModelSpec(
        id="googleai/gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        provider=GOOGLEAI,
        upstream_model="gemini-2.5-flash",
        description="Stable Gemini flash model",
        max_tokens=8192,
        capabilities=("text", "vision", "multimodal"),
        is_latest=True,
        temperature=_STANDARD_TEMPERATURE,
    ),
    ModelSpec(
        id="googleai/gemini-2.0-flash-exp",
        name="Gemini 2.0 Flash (Experimental)",
        provider=GOOGLEAI,
        upstream_model="gemini-2.0-flash-exp",
        description="Experimental Gemini flash model",
        max_tokens=8192,
        capabilities=("text", "vision", "multimodal"),
        temperature=_STANDARD_TEMPERATURE,
    ),
]

ALL_MODELS: Tuple[ModelSpec, ...] = tuple(OPENAI_MODELS + DEEPSEEK_MODELS + GOOGLEAI_MODELS)

_BY_ID: Dict[str, ModelSpec] = {m.id: m for m in ALL_MODELS}


def get_model(model_id: str) -> Optional[ModelSpec]:
    return _BY_ID.get(model_id)


def resolve(model_id: str) -> ModelSpec:
    spec = _BY_ID.get(model_id)
    if spec is None:
        raise ModelNotFound(model_id)
    return spec


def list_models(provider: Optional[str] = None, latest_only: bool = False) -> List[ModelSpec]:
    return [
        m
        for m in ALL_MODELS
        if (provider is None or m.provider == provider) and (not latest_only or m.is_latest)
    ]


def default_model() -> ModelSpec:
    return OPENAI_MODELS[0]
