from chat_gateway.providers.openai_provider import OpenAICompatibleProvider


class DeepSeekProvider(OpenAICompatibleProvider):
    """DeepSeek speaks the Chat Completions protocol.

    Public ids such as ``deepseek-v3.1`` and ``deepseek-v3.1-thinking`` are
    mapped to the upstream ``deepseek-chat`` model by the registry.
    """

    name = "DeepSeek"
    max_tokens_field = "max_tokens"
    default_temperature = 1.0
    default_max_tokens = 1000
