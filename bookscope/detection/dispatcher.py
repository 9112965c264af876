"""
Tool Call Dispatcher

Runs the lookups a model requested concurrently and hands back one result
per invocation, in the order the invocations were requested.
"""

import asyncio
from typing import Awaitable, Callable, Sequence

from loguru import logger

from bookscope.errors import FaultKind, LookupFailed, ProtocolViolation
from bookscope.identification.models import BookRecord
from bookscope.llm.transcript import ToolInvocation, ToolResultTurn
from bookscope.detection.models import ToolOutcome


Resolver = Callable[[ToolInvocation], Awaitable[Sequence[BookRecord]]]


class ToolCallDispatcher:
    """
    Fan-out / fan-in executor for tool invocations.

    A resolver raising LookupFailed yields an empty outcome for that
    invocation; the other lookups are still awaited. Any other exception
    propagates and fails the whole batch.
    """

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    async def _resolve(self, invocation: ToolInvocation) -> ToolOutcome:
        try:
            records = await self.resolver(invocation)
        except LookupFailed as e:
            logger.warning(f"Lookup for invocation {invocation.id} failed: {e}")
            return ToolOutcome(invocation=invocation, fault=FaultKind.LOOKUP_FAILED)

        if not records:
            return ToolOutcome(invocation=invocation, fault=FaultKind.LOOKUP_MISS)
        return ToolOutcome(invocation=invocation, records=tuple(records))

    async def dispatch(self, invocations: Sequence[ToolInvocation]) -> list[ToolOutcome]:
        """
        Resolve all invocations concurrently.

        Returns:
            One ToolOutcome per invocation, in input order
        """
        if not invocations:
            return []

        ids = [invocation.id for invocation in invocations]
        if len(set(ids)) != len(ids):
            raise ProtocolViolation(f"Duplicate tool invocation ids: {ids}")

        completed = await asyncio.gather(*(self._resolve(i) for i in invocations))

        # Re-key by id so ordering never depends on completion order
        by_id = {outcome.invocation.id: outcome for outcome in completed}
        outcomes = [by_id[invocation.id] for invocation in invocations]

        misses = sum(1 for o in outcomes if o.fault is not None)
        logger.info(f"Dispatched {len(outcomes)} lookup(s), {misses} without results")
        return outcomes

    async def dispatch_turns(self, invocations: Sequence[ToolInvocation]) -> list[ToolResultTurn]:
        """Resolve all invocations and build their tool-result turns."""
        outcomes = await self.dispatch(invocations)
        return [outcome.to_turn() for outcome in outcomes]
