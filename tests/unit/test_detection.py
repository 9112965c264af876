"""
Unit tests for the detection module.
"""

import json

import httpx
import pytest

from bookscope.errors import FaultKind, LLMError, ProtocolViolation
from bookscope.identification import BookRecord, OpenLibraryClient
from bookscope.llm import AssistantTurn, ImageSource, ToolInvocation, ToolResultTurn
from bookscope.detection import (
    NO_BOOKS_FOUND,
    NO_MATCHES_FOUND,
    BookDetector,
    DetectionOrchestrator,
    DetectionResult,
    DetectorVariant,
    ToolCallDispatcher,
    ToolOrchestratedStrategy,
    create_detector,
)
from tests.fakes import (
    FakeGateway,
    FakeLookupClient,
    lookup_call,
    report_books,
    report_candidates,
    tool_reply,
)


IMAGE_URL = "https://example.com/shelf.jpg"


def search_resolver(client):
    async def resolve(invocation):
        return await client.search(invocation.arguments["title"], invocation.arguments["author"])
    return resolve


class TestDetectionResult:
    """Tests for DetectionResult constructors."""

    def test_found_with_records(self, sapiens_record):
        result = DetectionResult.found([sapiens_record])

        assert result.records == [sapiens_record]
        assert result.message == ""
        assert result.ok

    def test_found_empty_uses_message(self):
        result = DetectionResult.found([], empty_message=NO_BOOKS_FOUND)

        assert result.records == []
        assert result.message == "No books found"

    def test_failed(self):
        result = DetectionResult.failed("LookupFailed: down", FaultKind.LOOKUP_FAILED)

        assert result.message == "Error: LookupFailed: down"
        assert not result.ok


class TestToolCallDispatcher:
    """Tests for concurrent fan-out / fan-in."""

    async def test_outcomes_follow_invocation_order(self, catalog):
        titles = ["Sapiens", "Dune", "1984", "Missing"]
        # the first lookup finishes last
        client = FakeLookupClient(catalog, delays={"Sapiens": 0.05})
        dispatcher = ToolCallDispatcher(search_resolver(client))
        invocations = [lookup_call(f"call_{i}", title) for i, title in enumerate(titles, 1)]

        outcomes = await dispatcher.dispatch(invocations)

        assert client.completed[-1] == "Sapiens"
        assert [o.invocation.id for o in outcomes] == ["call_1", "call_2", "call_3", "call_4"]
        assert outcomes[0].records[0].title == "Sapiens"
        assert len(outcomes[1].records) == 3
        assert outcomes[3].records == ()
        assert outcomes[3].fault == FaultKind.LOOKUP_MISS

    async def test_lookup_failure_is_isolated(self, catalog):
        client = FakeLookupClient(catalog, failures=["Dune"])
        dispatcher = ToolCallDispatcher(search_resolver(client))

        outcomes = await dispatcher.dispatch([
            lookup_call("call_1", "Sapiens"),
            lookup_call("call_2", "Dune"),
            lookup_call("call_3", "1984"),
        ])

        assert outcomes[1].fault == FaultKind.LOOKUP_FAILED
        assert outcomes[1].to_content() == '{"books": []}'
        assert outcomes[0].records and outcomes[2].records

    async def test_unexpected_error_propagates(self, catalog):
        client = FakeLookupClient(catalog, errors={"Dune": RuntimeError("boom")})
        dispatcher = ToolCallDispatcher(search_resolver(client))

        with pytest.raises(RuntimeError, match="boom"):
            await dispatcher.dispatch([lookup_call("call_1", "Sapiens"), lookup_call("call_2", "Dune")])

    async def test_duplicate_ids_rejected(self, catalog):
        dispatcher = ToolCallDispatcher(search_resolver(FakeLookupClient(catalog)))

        with pytest.raises(ProtocolViolation):
            await dispatcher.dispatch([lookup_call("call_1", "Sapiens"), lookup_call("call_1", "Dune")])

    async def test_empty_batch(self, catalog):
        client = FakeLookupClient(catalog)
        dispatcher = ToolCallDispatcher(search_resolver(client))

        assert await dispatcher.dispatch([]) == []
        assert client.calls == []

    async def test_turns_carry_ids_and_json(self, catalog, sapiens_record):
        dispatcher = ToolCallDispatcher(search_resolver(FakeLookupClient(catalog)))

        turns = await dispatcher.dispatch_turns([lookup_call("call_1", "Sapiens")])

        assert turns == [
            ToolResultTurn(
                invocation_id="call_1",
                name="lookupBook",
                content=json.dumps({"books": [sapiens_record.to_dict()]}),
            )
        ]


class TestDetectionOrchestrator:
    """Tests for the two-phase protocol."""

    async def test_no_tool_calls_returns_model_text(self, catalog):
        gateway = FakeGateway([AssistantTurn(text="I don't see any books in this image.")])
        client = FakeLookupClient(catalog)
        orchestrator = DetectionOrchestrator(gateway, client)

        result = await orchestrator.run(ImageSource(IMAGE_URL))

        assert result.records == []
        assert result.message == "I don't see any books in this image."
        assert len(gateway.calls) == 1
        assert client.calls == []

    async def test_empty_reply_without_tool_calls(self, catalog):
        gateway = FakeGateway([AssistantTurn()])

        result = await DetectionOrchestrator(gateway, FakeLookupClient(catalog)).run(ImageSource(IMAGE_URL))

        assert result.message == "No books detected"

    async def test_second_request_carries_results_in_order(self, catalog):
        gateway = FakeGateway([
            tool_reply(
                lookup_call("call_1", "Sapiens", "Yuval Noah Harari"),
                lookup_call("call_2", "Dune"),
            ),
            report_books({"title": "Sapiens", "authors": ["Yuval Noah Harari"], "averageRating": 4.3}),
        ])
        client = FakeLookupClient(catalog, delays={"Sapiens": 0.02})
        orchestrator = DetectionOrchestrator(gateway, client)

        result = await orchestrator.run(ImageSource(IMAGE_URL))

        first, second = gateway.calls
        assert first.tool_names == ["lookupBook"]
        assert first.tool_choice is None
        assert second.tool_names == ["reportFoundBooks"]
        assert second.tool_choice.name == "reportFoundBooks"
        assert [t.invocation_id for t in second.transcript.tool_results] == ["call_1", "call_2"]
        assert len(json.loads(second.transcript.tool_results[1].content)["books"]) == 3
        assert result.records == [BookRecord("Sapiens", ("Yuval Noah Harari",), 4.3)]

    async def test_unknown_author_lookup_against_open_library(self, openlibrary_docs):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"numFound": 5, "docs": openlibrary_docs})

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = OpenLibraryClient(base_url="https://openlibrary.test", client=http_client)
        gateway = FakeGateway([
            tool_reply(lookup_call("call_1", "Dune", "Unknown")),
            report_books({"title": "Dune", "authors": ["Frank Herbert"], "averageRating": 4.23}),
        ])

        result = await DetectionOrchestrator(gateway, client).run(ImageSource(IMAGE_URL))

        assert "author" not in requests[0].url.params
        content = json.loads(gateway.calls[1].transcript.tool_results[0].content)
        assert [book["title"] for book in content["books"]] == ["Dune", "Dune Messiah", "Children of Dune"]
        assert result.records[0].title == "Dune"
        await http_client.aclose()

    async def test_malformed_open_library_doc_does_not_abort_detection(self):
        docs = [{"title": "Dune", "ratings_average": "n/a"}]
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"numFound": 1, "docs": docs})
            )
        )
        client = OpenLibraryClient(base_url="https://openlibrary.test", client=http_client)
        gateway = FakeGateway([
            tool_reply(lookup_call("call_1", "Dune")),
            report_books({"title": "Dune"}),
        ])
        detector = create_detector("tool_orchestrated", gateway, client)

        result = await detector.detect(IMAGE_URL)

        assert result.ok
        assert result.records == [BookRecord("Dune")]
        assert gateway.calls[1].transcript.tool_results[0].content == '{"books": []}'
        await http_client.aclose()

    @pytest.mark.parametrize(
        "arguments",
        [
            {"books": [{"authors": ["X"]}]},
            {"books": "Dune"},
            {"books": [{"title": "Dune", "averageRating": "high"}]},
            {},
        ],
    )
    async def test_malformed_final_report(self, catalog, arguments):
        gateway = FakeGateway([
            tool_reply(lookup_call("call_1", "Dune")),
            tool_reply(ToolInvocation("call_report", "reportFoundBooks", arguments)),
        ])
        detector = create_detector("tool_orchestrated", gateway, FakeLookupClient(catalog))

        result = await detector.detect(IMAGE_URL)

        assert result.records == []
        assert result.message.startswith("Error: ProtocolViolation")
        assert result.fault == FaultKind.PROTOCOL_VIOLATION
        assert len(gateway.calls) == 2

    async def test_report_with_missing_authors(self, catalog):
        gateway = FakeGateway([
            tool_reply(lookup_call("call_1", "Dune"), lookup_call("call_2", "Field Notes")),
            report_books(
                {"title": "Dune", "authors": ["Frank Herbert"], "averageRating": 4.2},
                {"title": "Field Notes"},
            ),
        ])

        result = await DetectionOrchestrator(gateway, FakeLookupClient(catalog)).run(ImageSource(IMAGE_URL))

        assert len(result.records) == 2
        assert result.records[1] == BookRecord("Field Notes")
        assert result.records[1].authors is None

    async def test_empty_report(self, catalog):
        gateway = FakeGateway([tool_reply(lookup_call("call_1", "Missing")), report_books()])

        result = await DetectionOrchestrator(gateway, FakeLookupClient(catalog)).run(ImageSource(IMAGE_URL))

        assert result.records == []
        assert result.message == NO_BOOKS_FOUND

    async def test_unexpected_tool_name(self, catalog):
        gateway = FakeGateway([
            tool_reply(ToolInvocation("call_1", "searchWeb", {"query": "Dune"})),
        ])
        client = FakeLookupClient(catalog)

        with pytest.raises(ProtocolViolation):
            await DetectionOrchestrator(gateway, client).run(ImageSource(IMAGE_URL))
        assert client.calls == []

    async def test_malformed_lookup_arguments(self, catalog):
        gateway = FakeGateway([
            tool_reply(ToolInvocation("call_1", "lookupBook", {"title": "Dune"})),
        ])

        with pytest.raises(ProtocolViolation):
            await DetectionOrchestrator(gateway, FakeLookupClient(catalog)).run(ImageSource(IMAGE_URL))

    async def test_second_reply_without_report(self, catalog):
        gateway = FakeGateway([
            tool_reply(lookup_call("call_1", "Dune")),
            AssistantTurn(text="Here is Dune."),
        ])

        with pytest.raises(ProtocolViolation):
            await DetectionOrchestrator(gateway, FakeLookupClient(catalog)).run(ImageSource(IMAGE_URL))

    async def test_lookup_failure_still_reaches_second_round(self, catalog):
        gateway = FakeGateway([
            tool_reply(lookup_call("call_1", "Sapiens"), lookup_call("call_2", "Dune")),
            report_books({"title": "Sapiens"}),
        ])
        client = FakeLookupClient(catalog, failures=["Dune"])

        result = await DetectionOrchestrator(gateway, client).run(ImageSource(IMAGE_URL))

        assert gateway.calls[1].transcript.tool_results[1].content == '{"books": []}'
        assert result.records == [BookRecord("Sapiens")]


class TestBookDetector:
    """Tests for the detect boundary and both strategies."""

    async def test_simple_strategy_sapiens(self, catalog, sapiens_record, bookshelf_image_bytes):
        gateway = FakeGateway([report_candidates({"title": "Sapiens", "author": "Yuval Noah Harari"})])
        client = FakeLookupClient(catalog)
        detector = create_detector(DetectorVariant.SIMPLE, gateway, client)

        result = await detector.detect(bookshelf_image_bytes)

        assert result.records == [sapiens_record]
        assert client.calls == [("Sapiens", "Yuval Noah Harari")]
        assert gateway.calls[0].tool_choice.name == "reportCandidates"

    async def test_simple_strategy_blank_image(self, catalog, blank_image_bytes):
        gateway = FakeGateway([report_candidates()])
        detector = create_detector("simple", gateway, FakeLookupClient(catalog))

        result = await detector.detect(blank_image_bytes)

        assert result.records == []
        assert result.message == "No books found"

    async def test_simple_strategy_declined(self, catalog):
        gateway = FakeGateway([AssistantTurn(text="That photo is too blurry.")])
        detector = create_detector("simple", gateway, FakeLookupClient(catalog))

        result = await detector.detect(IMAGE_URL)

        assert result.message == "That photo is too blurry."
        assert result.ok

    async def test_simple_strategy_miss_is_isolated(self, catalog):
        gateway = FakeGateway([
            report_candidates(
                {"title": "Not A Real Book", "author": "Nobody"},
                {"title": "1984", "author": "George Orwell"},
            )
        ])
        client = FakeLookupClient(catalog)
        detector = create_detector("simple", gateway, client)

        result = await detector.detect(IMAGE_URL)

        assert [r.title for r in result.records] == ["1984"]
        assert len(client.calls) == 2

    async def test_simple_strategy_all_misses(self, catalog):
        gateway = FakeGateway([report_candidates({"title": "Not A Real Book", "author": "Unknown"})])
        detector = create_detector("simple", gateway, FakeLookupClient(catalog))

        result = await detector.detect(IMAGE_URL)

        assert result.message == NO_MATCHES_FOUND

    async def test_simple_strategy_lookup_failure_is_reported(self, catalog):
        gateway = FakeGateway([report_candidates({"title": "Dune", "author": "Unknown"})])
        detector = create_detector("simple", gateway, FakeLookupClient(catalog, failures=["Dune"]))

        result = await detector.detect(IMAGE_URL)

        assert result.records == []
        assert result.message.startswith("Error: LookupFailed")
        assert result.fault == FaultKind.LOOKUP_FAILED

    async def test_bytes_are_sent_as_data_uri(self, catalog, blank_image_bytes):
        gateway = FakeGateway([AssistantTurn(text="No books here.")])
        detector = create_detector(DetectorVariant.TOOL_ORCHESTRATED, gateway, FakeLookupClient(catalog))

        await detector.detect(blank_image_bytes)

        user_turn = gateway.calls[0].transcript.turns[1]
        assert user_turn.image.url.startswith("data:image/jpeg;base64,")

    async def test_protocol_violation_becomes_error_message(self, catalog):
        gateway = FakeGateway([tool_reply(ToolInvocation("call_1", "searchWeb", {"query": "Dune"}))])
        detector = create_detector("tool_orchestrated", gateway, FakeLookupClient(catalog))

        result = await detector.detect(IMAGE_URL)

        assert result.records == []
        assert result.message.startswith("Error: ProtocolViolation")
        assert result.fault == FaultKind.PROTOCOL_VIOLATION

    async def test_llm_failure_becomes_error_message(self, catalog):
        gateway = FakeGateway([LLMError("OpenAI", detail="rate limited")])
        detector = create_detector("tool_orchestrated", gateway, FakeLookupClient(catalog))

        result = await detector.detect(IMAGE_URL)

        assert result.message == "Error: LLMError: OpenAI request failed: rate limited"
        assert result.fault == FaultKind.LLM_FAILED

    async def test_unexpected_error_becomes_internal_fault(self, catalog):
        gateway = FakeGateway([
            tool_reply(lookup_call("call_1", "Dune")),
        ])
        client = FakeLookupClient(catalog, errors={"Dune": RuntimeError("boom")})
        detector = create_detector("tool_orchestrated", gateway, client)

        result = await detector.detect(IMAGE_URL)

        assert result.message == "Error: RuntimeError: boom"
        assert result.fault == FaultKind.INTERNAL

    async def test_invalid_url_is_reported(self, catalog):
        gateway = FakeGateway([])
        detector = create_detector("simple", gateway, FakeLookupClient(catalog))

        result = await detector.detect("not-a-url")

        assert result.fault == FaultKind.INVALID_INPUT
        assert gateway.calls == []

    async def test_describe(self, catalog):
        gateway = FakeGateway([AssistantTurn(text="A wooden shelf holding paperbacks.")])
        detector = create_detector("tool_orchestrated", gateway, FakeLookupClient(catalog))

        description = await detector.describe(IMAGE_URL)

        assert description == "A wooden shelf holding paperbacks."
        assert gateway.calls[0].tools == []

    async def test_describe_falls_back_when_empty(self, catalog):
        gateway = FakeGateway([AssistantTurn()])
        detector = create_detector("tool_orchestrated", gateway, FakeLookupClient(catalog))

        assert await detector.describe(IMAGE_URL) == "I'm not sure what is in the image."

    def test_factory_selects_strategy(self, catalog):
        detector = create_detector("tool_orchestrated", FakeGateway([]), FakeLookupClient(catalog))

        assert isinstance(detector, BookDetector)
        assert isinstance(detector.strategy, ToolOrchestratedStrategy)
        assert detector.variant == DetectorVariant.TOOL_ORCHESTRATED

    def test_unknown_variant_rejected(self):
        with pytest.raises(ValueError):
            create_detector("ocr", FakeGateway([]), FakeLookupClient())
