"""
Knowledge retrieval from the Wikipedia REST summary endpoint.
"""
from .wikipedia_client import (
	KnowledgeSummary,
	fetch_summary,
	summary_url,
	KnowledgeFetchError,
	TopicNotFoundError,
	WikipediaUpstreamError,
)

__all__ = [
	'KnowledgeSummary',
	'fetch_summary',
	'summary_url',
	'KnowledgeFetchError',
	'TopicNotFoundError',
	'WikipediaUpstreamError',
]
