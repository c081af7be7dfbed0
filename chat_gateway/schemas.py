from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    model: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")
    top_p: Optional[float] = Field(default=None, alias="topP")
    top_k: Optional[int] = Field(default=None, alias="topK")
    stop_sequences: List[str] = Field(default_factory=list, alias="stopSequences")
    # prepended to the conversation as its first system turn
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")


class ChatRequest(BaseModel):
    # emptiness is checked by the dispatcher so it can report "Messages are required"
    messages: List[Message] = Field(default_factory=list)
    config: ChatConfig


class ModelPublic(BaseModel):
    id: str
    name: str
    provider: str
    description: str
    max_tokens: Optional[int] = None
    capabilities: List[str] = Field(default_factory=list)
    is_latest: bool = False


class ModelsPublic(BaseModel):
    data: List[ModelPublic]
    count: int
