import os
import time
from typing import Optional
from urllib.parse import quote

import requests
from pydantic import BaseModel

from study_assistant.utils import get_logger, log_wikipedia_fetch

LOG = get_logger()

WIKIPEDIA_API_URL = os.getenv('WIKIPEDIA_API_URL', 'https://en.wikipedia.org/api/rest_v1/page/summary')
WIKIPEDIA_TIMEOUT = float(os.getenv('WIKIPEDIA_TIMEOUT', '10'))
WIKIPEDIA_USER_AGENT = os.getenv('WIKIPEDIA_USER_AGENT', 'study-assistant/1.0 (https://github.com/study-assistant)')


class KnowledgeFetchError(Exception):
    pass


class TopicNotFoundError(KnowledgeFetchError):
    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f'Topic "{topic}" not found on Wikipedia')


class WikipediaUpstreamError(KnowledgeFetchError):
    def __init__(self, status_code: Optional[int], detail: str = None):
        self.status_code = status_code
        msg = f'Wikipedia API error: {status_code}' if status_code is not None else 'Wikipedia API unreachable'
        if detail:
            msg = f'{msg} ({detail})'
        super().__init__(msg)


class KnowledgeSummary(BaseModel):
    title: str
    extract: str = ''
    canonical_url: Optional[str] = None


def summary_url(topic: str) -> str:
    # same escaping as JS encodeURIComponent
    encoded = quote(topic, safe="!'()*")
    return WIKIPEDIA_API_URL.rstrip('/') + '/' + encoded


def fetch_summary(topic: str) -> KnowledgeSummary:
    """Fetch the page summary for ``topic``.

    One GET per call, no retry and no caching. Raises TopicNotFoundError on 404
    and WikipediaUpstreamError for any other non-success status or transport
    failure.
    """
    url = summary_url(topic)
    start = time.time()
    try:
        resp = requests.get(url, headers={'User-Agent': WIKIPEDIA_USER_AGENT, 'Accept': 'application/json'}, timeout=WIKIPEDIA_TIMEOUT)
    except requests.RequestException as e:
        LOG.warning('wikipedia_request_failed', extra={'topic': topic, 'error': str(e)})
        raise WikipediaUpstreamError(None, str(e)) from e
    duration_ms = int((time.time() - start) * 1000)
    log_wikipedia_fetch(topic, resp.status_code, duration_ms)

    if resp.status_code == 404:
        raise TopicNotFoundError(topic)
    if not 200 <= resp.status_code < 300:
        raise WikipediaUpstreamError(resp.status_code)

    try:
        data = resp.json()
    except ValueError as e:
        raise WikipediaUpstreamError(resp.status_code, 'invalid JSON body') from e

    content_urls = data.get('content_urls') or {}
    desktop = content_urls.get('desktop') or {}
    return KnowledgeSummary(
        title=data.get('title') or topic,
        extract=data.get('extract') or '',
        canonical_url=desktop.get('page'),
    )
