"""
Conversation messages exchanged between the agent loop and the memory layer.

Message content is either plain text or a list of typed parts.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..enums.role import Role


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolCallPart(BaseModel):
    type: Literal["tool-call"] = "tool-call"
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_name: Optional[str] = None
    result: Any = None


MessagePart = Annotated[
    Union[TextPart, ToolCallPart, ToolResultPart], Field(discriminator="type")
]


class ConversationMessage(BaseModel):
    """One turn in the conversation history."""

    role: Role
    content: Union[str, List[MessagePart]]

    @classmethod
    def user(cls, text: str) -> "ConversationMessage":
        return cls(role=Role.USER, content=text)

    @classmethod
    def assistant(cls, text: str) -> "ConversationMessage":
        return cls(role=Role.ASSISTANT, content=text)

    def tool_calls(self) -> List[ToolCallPart]:
        if isinstance(self.content, str):
            return []
        return [part for part in self.content if isinstance(part, ToolCallPart)]

    def tool_results(self) -> List[ToolResultPart]:
        if isinstance(self.content, str):
            return []
        return [part for part in self.content if isinstance(part, ToolResultPart)]


def extract_text(message: ConversationMessage) -> Optional[str]:
    """
    Return the textual content of a message.

    Plain-text content is returned as is; text parts are joined with a single
    space. Messages without any text (e.g. tool-call-only turns) yield None.
    """
    if isinstance(message.content, str):
        return message.content

    text_parts = [part.text for part in message.content if isinstance(part, TextPart)]
    return " ".join(text_parts) if text_parts else None
