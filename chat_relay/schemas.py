from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal

class ChatMessage(BaseModel):
    # unknown keys are kept and forwarded to the provider as sent
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant"]
    content: str

class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)

class ErrorBody(BaseModel):
    error: str
