"""
Detection Orchestrator

Two-phase, tool-mediated detection protocol:

1. The model sees the image and may call lookupBook for each book it wants
   to verify.
2. The lookups run concurrently against Open Library and their results are
   appended to the transcript, one tool-result turn per invocation, in
   invocation order.
3. The model is asked again over the full transcript and must answer by
   calling reportFoundBooks, whose payload becomes the result.

A reply with no tool calls in step 1 ends the protocol with the model's
free-text answer.
"""

from typing import Sequence

from loguru import logger

from bookscope.errors import ProtocolViolation
from bookscope.identification.models import BookRecord
from bookscope.identification.openlibrary import OpenLibraryClient
from bookscope.llm.gateway import ChatGateway
from bookscope.llm.images import ImageSource
from bookscope.llm.tools import LOOKUP_BOOK, REPORT_FOUND_BOOKS, ToolChoice
from bookscope.llm.transcript import AssistantTurn, ToolInvocation, Transcript
from bookscope.detection import prompts
from bookscope.detection.dispatcher import ToolCallDispatcher
from bookscope.detection.extractor import VisionExtractor
from bookscope.detection.models import (
    NO_BOOKS_DETECTED,
    NO_BOOKS_FOUND,
    DetectionResult,
    DetectionState,
)


class DetectionOrchestrator:
    """
    Drives one or two LLM round-trips with concurrent lookups in between.

    Holds no per-call state: every `run` builds and owns its transcript, so
    one orchestrator can serve concurrent detections.
    """

    def __init__(
        self,
        gateway: ChatGateway,
        lookup_client: OpenLibraryClient,
        system_prompt: str = prompts.LOOKUP_SYSTEM_PROMPT,
    ):
        self.gateway = gateway
        self.lookup_client = lookup_client
        self.system_prompt = system_prompt
        self.extractor = VisionExtractor(gateway)
        self.dispatcher = ToolCallDispatcher(self._lookup)

    async def _lookup(self, invocation: ToolInvocation) -> Sequence[BookRecord]:
        return await self.lookup_client.search(
            invocation.arguments["title"],
            invocation.arguments["author"],
        )

    @staticmethod
    def _transition(current: DetectionState, target: DetectionState) -> DetectionState:
        logger.debug(f"Detection protocol: {current.value} -> {target.value}")
        return target

    @staticmethod
    def validate_lookup_invocations(reply: AssistantTurn) -> None:
        """Every invocation must be a well-formed lookupBook call."""
        for invocation in reply.tool_invocations:
            if invocation.name != LOOKUP_BOOK.name:
                raise ProtocolViolation(
                    f"Unexpected tool '{invocation.name}' (only '{LOOKUP_BOOK.name}' is offered)"
                )
            LOOKUP_BOOK.validate(invocation.arguments)

    async def run(self, image: ImageSource) -> DetectionResult:
        """
        Run the protocol for one image.

        Raises:
            ProtocolViolation: the model broke the tool contract
            LLMError: a round-trip failed
        """
        state = DetectionState.INIT
        transcript = self.extractor.initial_transcript(self.system_prompt, image)
        reply = await self.gateway.complete(transcript, tools=[LOOKUP_BOOK])
        state = self._transition(state, DetectionState.FIRST_RESPONSE_RECEIVED)

        if not reply.has_tool_invocations:
            self._transition(state, DetectionState.DONE)
            logger.info("Model made no lookups; returning its reply")
            return DetectionResult(message=reply.text or NO_BOOKS_DETECTED)

        transcript = transcript.append(reply)
        state = self._transition(state, DetectionState.ENRICHING)

        self.validate_lookup_invocations(reply)
        result_turns = await self.dispatcher.dispatch_turns(reply.tool_invocations)
        transcript = transcript.append(*result_turns)

        state = self._transition(state, DetectionState.SECOND_REQUEST)
        transcript.require_settled()
        final_reply = await self.gateway.complete(
            transcript,
            tools=[REPORT_FOUND_BOOKS],
            tool_choice=ToolChoice(REPORT_FOUND_BOOKS.name),
        )

        state = self._transition(state, DetectionState.FINALIZE)
        invocation = self.extractor.forced_invocation(final_reply, REPORT_FOUND_BOOKS)
        if invocation is None:
            raise ProtocolViolation(
                f"Model did not call '{REPORT_FOUND_BOOKS.name}' despite the forced choice"
            )
        records = self.extractor.parse_found_books(invocation)

        self._transition(state, DetectionState.DONE)
        logger.info(f"Model reported {len(records)} book(s) after {len(result_turns)} lookup(s)")
        return DetectionResult.found(records, empty_message=NO_BOOKS_FOUND)
