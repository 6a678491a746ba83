"""
Search Enrichment

Runs the model's suggested search queries and, when real results come back,
asks the model to refine its signal and reasoning in light of them.

Degrades silently: search errors skip the query, refinement errors keep the
unrefined signal and reasoning. enrich() never raises.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence

from huntr.core.config import settings
from huntr.schemas.analysis import AnalysisResult, Reasoning, Signal
from huntr.schemas.search import QueryResults
from huntr.services.base import DegradedEnrichmentError
from huntr.services.llm.client import ModelInvoker
from huntr.services.llm.normalizer import extract_json_object, normalize_reasoning, normalize_signal
from huntr.services.llm.prompts import build_refinement_prompt
from huntr.services.search.service import SearchService

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentOutcome:
    """Search results plus the (possibly refined) signal and reasoning."""

    search_results: list[QueryResults] = field(default_factory=list)
    signal: Optional[Signal] = None
    reasoning: Optional[Reasoning] = None
    refined: bool = False

    @property
    def performed(self) -> bool:
        return any(qr.has_results for qr in self.search_results)

    def apply_to(self, base: AnalysisResult) -> AnalysisResult:
        """Copy of base with search results and refinement merged in."""
        signal = self.signal if self.refined and self.signal is not None else base.signal
        reasoning = base.reasoning
        if self.refined and self.reasoning is not None:
            reasoning = self.reasoning.model_copy(update={"web_search_enhanced": True})
        return base.model_copy(update={
            "signal": signal,
            "reasoning": reasoning,
            "web_search_results": self.search_results,
            "web_search_performed": self.performed,
        })


class SearchEnrichment:
    """Web-search enrichment and second-pass refinement."""

    name = "SearchEnrichment"

    def __init__(
        self,
        search_service: SearchService,
        invoker: ModelInvoker,
        max_queries: Optional[int] = None,
        results_per_query: Optional[int] = None,
        pacing_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.search_service = search_service
        self.invoker = invoker
        self.max_queries = max_queries if max_queries is not None else settings.search_max_queries
        self.results_per_query = (
            results_per_query if results_per_query is not None else settings.search_results_per_query
        )
        self.pacing_seconds = pacing_seconds if pacing_seconds is not None else settings.search_pacing_seconds
        self._sleep = sleep

    async def search(self, queries: Sequence[str]) -> list[QueryResults]:
        """Run up to max_queries searches, pacing between them. Failed queries are skipped."""
        collected: list[QueryResults] = []
        selected = [q for q in queries if q and q.strip()][: self.max_queries]

        for index, query in enumerate(selected):
            if index > 0:
                await self._sleep(self.pacing_seconds)
            try:
                results = await self.search_service.search_market_data(query)
            except Exception as e:
                logger.warning(f"Search failed for query \"{query}\": {e}")
                continue
            collected.append(QueryResults(
                query=query,
                results=results[: self.results_per_query],
                timestamp=datetime.utcnow(),
            ))

        return collected

    async def refine(
        self,
        base: AnalysisResult,
        search_results: list[QueryResults],
        preferred_variant: Optional[str] = None,
    ) -> tuple[Signal, Reasoning]:
        """
        Second model pass over the base analysis plus search snippets.

        Raises:
            DegradedEnrichmentError: model call failed or reply had no JSON object
        """
        prompt = build_refinement_prompt(base, search_results)
        try:
            invocation = await self.invoker.invoke(
                prompt,
                preferred_variant=preferred_variant,
                policy=self.invoker.single_policy(),
            )
        except Exception as e:
            raise DegradedEnrichmentError(self.name, f"Refinement call failed: {e}") from e

        data = extract_json_object(invocation.text)
        if data is None:
            raise DegradedEnrichmentError(self.name, "Refinement response could not be parsed")

        signal = data.get("signal")
        reasoning = data.get("reasoning")
        return (
            normalize_signal(signal) if isinstance(signal, dict) else base.signal,
            normalize_reasoning(reasoning) if isinstance(reasoning, dict) else base.reasoning,
        )

    async def enrich(
        self,
        queries: Sequence[str],
        base: AnalysisResult,
        preferred_variant: Optional[str] = None,
    ) -> EnrichmentOutcome:
        """Search, then refine only if some query produced real results."""
        outcome = EnrichmentOutcome(signal=base.signal, reasoning=base.reasoning)
        try:
            outcome.search_results = await self.search(queries)
            if not outcome.performed:
                logger.info("No usable search results, keeping unrefined analysis")
                return outcome

            outcome.signal, outcome.reasoning = await self.refine(
                base, outcome.search_results, preferred_variant
            )
            outcome.refined = True
        except DegradedEnrichmentError as e:
            logger.warning(f"Web search enhancement degraded: {e.message}")
        except Exception as e:
            logger.error(f"Web search failed, continuing with base analysis: {e}")
        return outcome
