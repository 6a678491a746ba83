"""
Web Search Service

CONTRACT:
    Input:  search queries suggested by the model + base AnalysisResult
    Output: per-query results + optionally refined signal/reasoning

FALLBACK BEHAVIOR:
    - Provider timeout => placeholder result, no refinement
    - Any other failure => unrefined analysis
"""

from huntr.services.search.enrichment import EnrichmentOutcome, SearchEnrichment
from huntr.services.search.service import (
    SearchService,
    enhance_query,
    get_search_service,
    parse_search_results,
)

__all__ = [
    "EnrichmentOutcome",
    "SearchEnrichment",
    "SearchService",
    "enhance_query",
    "get_search_service",
    "parse_search_results",
]
