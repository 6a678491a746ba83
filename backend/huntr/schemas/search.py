"""
CONTRACT: Web Search Results

Results returned by the search provider and embedded into the refinement
prompt and into AnalysisResult.web_search_results. Never persisted on their
own.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SearchResultType(str, Enum):
    ORGANIC = "organic"
    NEWS = "news"
    FALLBACK = "fallback"  # Placeholder when the provider timed out


class SearchResult(BaseModel):
    """A single search hit with a computed relevance score."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    link: Optional[str] = None
    snippet: str = ""
    source: str = ""
    relevance_score: int = 0
    timestamp: datetime
    type: SearchResultType = SearchResultType.ORGANIC


class QueryResults(BaseModel):
    """Results collected for one search query."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    timestamp: datetime

    @property
    def has_results(self) -> bool:
        """True when at least one non-placeholder result came back."""
        return any(r.type != SearchResultType.FALLBACK for r in self.results)
