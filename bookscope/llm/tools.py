"""
Tool Schemas

Declarative descriptions of the capabilities offered to the LLM. Each tool
pairs a name and description with a pydantic model of its arguments. The
model renders the JSON-schema form the providers expect and validates the
argument payloads the model sends back before anything else reads them.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictStr, ValidationError

from bookscope.errors import ProtocolViolation


# =============================================================================
# Argument Models
# =============================================================================

class LookupBookArgs(BaseModel):
    """Arguments of lookupBook."""

    title: StrictStr = Field(..., description="The title of the book")
    author: StrictStr = Field(
        ...,
        description='The author of the book, or "Unknown" if you are not sure',
    )


class FoundBook(BaseModel):
    """One book in a reportFoundBooks payload."""

    title: StrictStr = Field(..., description="The title of the book")
    authors: Optional[list[StrictStr]] = Field(None, description="The authors of the book")
    average_rating: Optional[StrictFloat] = Field(
        None,
        alias="averageRating",
        description="The average rating of the book",
    )

    model_config = ConfigDict(populate_by_name=True)


class ReportFoundBooksArgs(BaseModel):
    """Arguments of reportFoundBooks."""

    books: list[FoundBook] = Field(..., description="The books found in the image")


class CandidateArgs(BaseModel):
    """One (title, author) guess in a reportCandidates payload."""

    title: StrictStr = Field(..., description="The title of the book")
    author: StrictStr = Field(
        ...,
        description='The author of the book, or "Unknown" if you are not sure',
    )


class ReportCandidatesArgs(BaseModel):
    """Arguments of reportCandidates."""

    books: list[CandidateArgs] = Field(..., description="The books found in the image")


# =============================================================================
# Tool Declarations
# =============================================================================

@dataclass(frozen=True)
class ToolSchema:
    """A named capability the LLM may invoke."""

    name: str
    description: str
    arguments: type[BaseModel]

    @property
    def required(self) -> list[str]:
        return self.parameters_schema().get("required", [])

    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema for the argument object, with nested models inlined."""
        schema = self.arguments.model_json_schema(by_alias=True)
        definitions = schema.pop("$defs", {})
        return _inline(schema, definitions)

    def parse(self, arguments: Any) -> BaseModel:
        """
        Validate an argument payload into the arguments model.

        Raises:
            ProtocolViolation: naming the first offending argument
        """
        if not isinstance(arguments, dict):
            raise ProtocolViolation(
                f"Arguments for '{self.name}' must be an object, got {type(arguments).__name__}"
            )
        try:
            return self.arguments.model_validate(arguments)
        except ValidationError as e:
            error = e.errors()[0]
            path = _error_path(self.name, error["loc"])
            if error["type"] == "missing":
                raise ProtocolViolation(f"Missing required argument '{path}'") from e
            raise ProtocolViolation(f"Argument '{path}': {error['msg']}") from e

    def validate(self, arguments: Any) -> dict[str, Any]:
        """
        Check an argument payload against the arguments model.

        Returns:
            The payload, unchanged, once it is known to be well formed.
        """
        self.parse(arguments)
        return arguments


@dataclass(frozen=True)
class ToolChoice:
    """Forces the model to answer by invoking one named capability."""

    name: str


def _inline(node: Any, definitions: dict[str, Any]) -> Any:
    # Providers get one self-contained schema: $refs resolved, titles dropped
    if isinstance(node, list):
        return [_inline(item, definitions) for item in node]
    if not isinstance(node, dict):
        return node
    if "$ref" in node:
        return _inline(definitions[node["$ref"].split("/")[-1]], definitions)
    return {
        key: _inline(value, definitions)
        for key, value in node.items()
        if not (key == "title" and isinstance(value, str))
    }


def _error_path(name: str, loc: tuple) -> str:
    path = name
    for part in loc:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


# =============================================================================
# Schemas
# =============================================================================

LOOKUP_BOOK = ToolSchema(
    name="lookupBook",
    description=(
        "Get information about a book given the title and author. "
        "Call this whenever you see a book in the image."
    ),
    arguments=LookupBookArgs,
)

REPORT_FOUND_BOOKS = ToolSchema(
    name="reportFoundBooks",
    description="Report all the books that were found in the image",
    arguments=ReportFoundBooksArgs,
)

REPORT_CANDIDATES = ToolSchema(
    name="reportCandidates",
    description="Report the title and author of every book found in the image",
    arguments=ReportCandidatesArgs,
)
