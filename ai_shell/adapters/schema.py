from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """A single role-tagged chat message."""
    role: Literal["user", "assistant", "system"]
    content: str


class CompletionRequest(BaseModel):
    """
    Standardized request object for completion across all providers.

    ``key`` is the credential only. The local provider may still fall back
    to it as a model name when ``model`` is unset; see LocalProvider.
    """
    prompt: Union[str, List[Message]]
    count: int = Field(default=1, ge=1)
    model: Optional[str] = None
    key: Optional[str] = None
    endpoint: Optional[str] = None
    # Pin a single local wire format instead of negotiating
    wire_format: Optional[str] = None

    def to_messages(self) -> list[dict]:
        """OpenAI-format message list; a bare string becomes one user message."""
        if isinstance(self.prompt, str):
            return [{"role": "user", "content": self.prompt}]
        return [m.model_dump() for m in self.prompt]


class ModelDescriptor(BaseModel):
    """One entry of a model listing, in OpenAI `/models` shape."""
    model_config = ConfigDict(extra="ignore")

    id: str
    object: Literal["model"] = "model"
    created: int = 0
    owned_by: str = ""
