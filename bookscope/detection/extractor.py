"""
Vision Extractor

Request and response shaping for the vision model: building the opening
transcript, asking for (title, author) candidates, parsing the final
book report, and plain image descriptions.
"""

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from bookscope.errors import ProtocolViolation
from bookscope.identification.models import BookRecord, Candidate
from bookscope.llm.gateway import ChatGateway
from bookscope.llm.images import ImageSource
from bookscope.llm.tools import REPORT_CANDIDATES, REPORT_FOUND_BOOKS, ToolChoice, ToolSchema
from bookscope.llm.transcript import AssistantTurn, ToolInvocation, Transcript, UserImageTurn
from bookscope.detection import prompts


@dataclass
class CandidateExtraction:
    """Candidates reported by the model, plus any free text it sent instead."""

    candidates: list[Candidate] = field(default_factory=list)
    text: Optional[str] = None
    declined: bool = False


class VisionExtractor:
    """Shapes requests to, and replies from, the vision model."""

    def __init__(self, gateway: ChatGateway):
        self.gateway = gateway

    @staticmethod
    def initial_transcript(
        system_prompt: str,
        image: ImageSource,
        prompt: Optional[str] = None,
    ) -> Transcript:
        return Transcript.start(system_prompt, image, prompt)

    async def extract_candidates(self, image: ImageSource) -> CandidateExtraction:
        """
        Ask the model for every (title, author) pair in the image.

        The reply is forced through the reportCandidates tool. A reply with
        no invocation means the model declined; that is reported, not raised.
        """
        transcript = self.initial_transcript(prompts.CANDIDATES_SYSTEM_PROMPT, image)
        reply = await self.gateway.complete(
            transcript,
            tools=[REPORT_CANDIDATES],
            tool_choice=ToolChoice(REPORT_CANDIDATES.name),
        )

        invocation = self.forced_invocation(reply, REPORT_CANDIDATES)
        if invocation is None:
            logger.info("Model declined to report candidates")
            return CandidateExtraction(text=reply.text, declined=True)

        payload = REPORT_CANDIDATES.parse(invocation.arguments)
        candidates = [Candidate.from_dict(book.model_dump()) for book in payload.books]
        logger.info(f"Model reported {len(candidates)} candidate(s)")
        return CandidateExtraction(candidates=candidates, text=reply.text)

    @staticmethod
    def forced_invocation(reply: AssistantTurn, schema: ToolSchema) -> Optional[ToolInvocation]:
        """
        The invocation a forced-choice reply must contain.

        Returns None for a text-only reply; raises if the model called
        something other than `schema`.
        """
        if not reply.has_tool_invocations:
            return None
        invocation = reply.invocation_named(schema.name)
        if invocation is None:
            names = [i.name for i in reply.tool_invocations]
            raise ProtocolViolation(f"Expected a '{schema.name}' call, got {names}")
        return invocation

    @staticmethod
    def parse_found_books(invocation: ToolInvocation) -> list[BookRecord]:
        """Validate and parse a reportFoundBooks payload."""
        if invocation.name != REPORT_FOUND_BOOKS.name:
            raise ProtocolViolation(
                f"Expected a '{REPORT_FOUND_BOOKS.name}' call, got '{invocation.name}'"
            )
        payload = REPORT_FOUND_BOOKS.parse(invocation.arguments)
        return [BookRecord.from_dict(book.model_dump(by_alias=True)) for book in payload.books]

    async def describe(self, image: ImageSource) -> str:
        """Free-text description of the image."""
        transcript = Transcript().append(UserImageTurn(image, prompts.DESCRIBE_PROMPT))
        reply = await self.gateway.complete(transcript)
        return reply.text or prompts.DEFAULT_DESCRIPTION
