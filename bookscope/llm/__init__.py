"""
LLM Module

Provider gateways, tool schemas, the conversation transcript, and image
references.
"""

from bookscope.llm.gateway import (
    ChatGateway,
    OpenAIGateway,
    AnthropicGateway,
    MockGateway,
    LLMProvider,
    DEFAULT_MODELS,
    create_gateway,
)
from bookscope.llm.images import (
    ImageSource,
    to_data_uri,
    from_data_uri,
    parse_data_uri,
    sniff_media_type,
)
from bookscope.llm.tools import (
    ToolSchema,
    ToolChoice,
    LOOKUP_BOOK,
    REPORT_FOUND_BOOKS,
    REPORT_CANDIDATES,
    LookupBookArgs,
    FoundBook,
    ReportFoundBooksArgs,
    CandidateArgs,
    ReportCandidatesArgs,
)
from bookscope.llm.transcript import (
    Transcript,
    MessageRole,
    SystemTurn,
    UserImageTurn,
    AssistantTurn,
    ToolResultTurn,
    ToolInvocation,
)

__all__ = [
    # Gateway
    "ChatGateway",
    "OpenAIGateway",
    "AnthropicGateway",
    "MockGateway",
    "LLMProvider",
    "DEFAULT_MODELS",
    "create_gateway",
    # Images
    "ImageSource",
    "to_data_uri",
    "from_data_uri",
    "parse_data_uri",
    "sniff_media_type",
    # Tools
    "ToolSchema",
    "ToolChoice",
    "LOOKUP_BOOK",
    "REPORT_FOUND_BOOKS",
    "REPORT_CANDIDATES",
    "LookupBookArgs",
    "FoundBook",
    "ReportFoundBooksArgs",
    "CandidateArgs",
    "ReportCandidatesArgs",
    # Transcript
    "Transcript",
    "MessageRole",
    "SystemTurn",
    "UserImageTurn",
    "AssistantTurn",
    "ToolResultTurn",
    "ToolInvocation",
]
