"""Study packet pipeline.

Routes a raw query by classification (definitional, then math, then general)
and runs each route's ordered list of content strategies until one succeeds.
History is recorded in the background once the packet exists.
"""
from __future__ import annotations

import os
import time
import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from study_assistant.utils import get_logger, get_request_context, log_study_generation, log_content_fallback
from study_assistant.content.models import StudyPacket, StudyMode, PacketSource
from study_assistant.content.classifier import classify, is_math_problem, Classification, QueryKind
from study_assistant.content.framework import build_framework_packet
from study_assistant.content.synthesizer import synthesize
from study_assistant.content.math_solver import solve_basic
from study_assistant.content.ai_generator import AIContentGenerator, AIGeneratorError, AIOverloadedError
from study_assistant.knowledge import fetch_summary, KnowledgeSummary, KnowledgeFetchError
from study_assistant.history import HistoryRecorder, HistoryMode

LOG = get_logger()

MAX_MATH_ATTEMPTS = 3
MATH_RETRY_ATTEMPTS = int(os.getenv('MATH_RETRY_ATTEMPTS', '3'))
MATH_RETRY_MULTIPLIER = float(os.getenv('MATH_RETRY_MULTIPLIER', '2'))
MATH_RETRY_MAX_WAIT = float(os.getenv('MATH_RETRY_MAX_WAIT', '8'))
STUDY_MAX_TOPIC_LENGTH = int(os.getenv('STUDY_MAX_TOPIC_LENGTH', '200'))


class InvalidStudyRequest(Exception):
    pass


class ContentStrategyError(Exception):
    """Raised when every strategy in a chain failed."""


@dataclass
class ContentRequest:
    topic: str
    extract: str = ''
    mode: str = StudyMode.NORMAL.value
    wikipedia_url: Optional[str] = None


@dataclass
class PipelineResult:
    packet: StudyPacket
    route: QueryKind
    history_mode: str
    chain: List[str] = field(default_factory=list)


class ContentStrategy:
    name = 'strategy'

    def produce(self, request: ContentRequest) -> StudyPacket:
        raise NotImplementedError


class AIStudyStrategy(ContentStrategy):
    name = 'ai'

    def __init__(self, generator_factory: Callable[[], AIContentGenerator] = None):
        self._generator_factory = generator_factory or AIContentGenerator.get_instance

    def produce(self, request: ContentRequest) -> StudyPacket:
        generator = self._generator_factory()
        content = generator.generate(request.topic, request.extract, request.mode)
        return StudyPacket(
            topic=request.topic,
            wikipedia_url=request.wikipedia_url,
            summary=content.summary,
            quiz=content.quiz,
            study_tip=content.study_tip,
            math_question=content.math_question,
            source=PacketSource.AI,
        )


class WikipediaStrategy(ContentStrategy):
    name = 'wikipedia'

    def produce(self, request: ContentRequest) -> StudyPacket:
        return synthesize(request.topic, request.extract, request.mode, wikipedia_url=request.wikipedia_url)


class AIMathStrategy(ContentStrategy):
    """Math tutor call retried only on overload, with exponential backoff (2s, 4s)."""

    name = 'ai_math'

    def __init__(self, generator_factory: Callable[[], AIContentGenerator] = None, attempts: int = MATH_RETRY_ATTEMPTS,
                 multiplier: float = MATH_RETRY_MULTIPLIER, max_wait: float = MATH_RETRY_MAX_WAIT, sleep: Callable[[float], None] = time.sleep):
        self._generator_factory = generator_factory or AIContentGenerator.get_instance
        self.attempts = min(MAX_MATH_ATTEMPTS, max(1, attempts))
        self.multiplier = multiplier
        self.max_wait = max_wait
        self._sleep = sleep

    def _log_retry(self, retry_state):
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        LOG.warning('math_tutor_retry', extra={
            'attempt': retry_state.attempt_number,
            'max_attempts': self.attempts,
            'wait_s': retry_state.next_action.sleep if retry_state.next_action else None,
            'error': str(exc),
        })

    def produce(self, request: ContentRequest) -> StudyPacket:
        generator = self._generator_factory()
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.multiplier, max=self.max_wait),
            retry=retry_if_exception_type(AIOverloadedError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(generator.solve_math, request.topic)


class BasicMathStrategy(ContentStrategy):
    name = 'basic_math'

    def produce(self, request: ContentRequest) -> StudyPacket:
        return solve_basic(request.topic)


def run_chain(strategies: Sequence[ContentStrategy], request: ContentRequest) -> Tuple[StudyPacket, List[str]]:
    """Try strategies in order. Errors from all but the last are logged and skipped."""
    chain = []
    last = len(strategies) - 1
    for idx, strategy in enumerate(strategies):
        try:
            packet = strategy.produce(request)
        except AIGeneratorError as e:
            chain.append(f'{strategy.name}_failed')
            LOG.warning('content_strategy_failed', extra={'strategy': strategy.name, 'error_type': type(e).__name__, 'error': str(e)})
            if idx == last:
                raise ContentStrategyError(f'all content strategies failed: {chain}') from e
            continue
        except Exception as e:
            chain.append(f'{strategy.name}_failed')
            LOG.exception('content_strategy_error', exc_info=True, extra={'strategy': strategy.name})
            if idx == last:
                raise ContentStrategyError(f'all content strategies failed: {chain}') from e
            continue
        chain.append(strategy.name)
        return packet, chain
    raise ContentStrategyError('no content strategies configured')


class StudyPipeline:
    def __init__(self, fetcher: Callable[[str], KnowledgeSummary] = None, recorder: HistoryRecorder = None,
                 general_strategies: Sequence[ContentStrategy] = None, math_strategies: Sequence[ContentStrategy] = None):
        self.fetcher = fetcher or fetch_summary
        self.recorder = recorder or HistoryRecorder()
        self.general_strategies = list(general_strategies or (AIStudyStrategy(), WikipediaStrategy()))
        self.math_strategies = list(math_strategies or (AIMathStrategy(), BasicMathStrategy()))

    @staticmethod
    def validate(query: str, mode: str) -> Tuple[str, str]:
        query = (query or '').strip()
        if not query:
            raise InvalidStudyRequest('Topic parameter is required')
        if len(query) > STUDY_MAX_TOPIC_LENGTH:
            raise InvalidStudyRequest(f'Topic must be at most {STUDY_MAX_TOPIC_LENGTH} characters')
        mode = (mode or StudyMode.NORMAL.value).strip().lower()
        if mode not in (StudyMode.NORMAL.value, StudyMode.MATH.value):
            raise InvalidStudyRequest('mode must be one of normal|math')
        return query, mode

    def _definitional(self, topic: str) -> Optional[PipelineResult]:
        try:
            knowledge = self.fetcher(topic)
            packet = build_framework_packet(knowledge.title, knowledge.extract, wikipedia_url=knowledge.canonical_url)
        except KnowledgeFetchError as e:
            LOG.info('framework_path_demoted', extra={'topic': topic, 'reason': str(e)})
            return None
        except Exception:
            LOG.exception('framework_path_error', exc_info=True, extra={'topic': topic})
            return None
        return PipelineResult(packet=packet, route=QueryKind.DEFINITIONAL, history_mode=HistoryMode.FRAMEWORK.value, chain=['framework'])

    def _math(self, problem: str) -> PipelineResult:
        packet, chain = run_chain(self.math_strategies, ContentRequest(topic=problem, mode=StudyMode.MATH.value))
        return PipelineResult(packet=packet, route=QueryKind.MATH, history_mode=HistoryMode.MATH.value, chain=chain)

    def _general(self, query: str, mode: str) -> PipelineResult:
        # fetch errors propagate: not-found and upstream failures are caller-visible
        knowledge = self.fetcher(query)
        request = ContentRequest(topic=knowledge.title, extract=knowledge.extract, mode=mode, wikipedia_url=knowledge.canonical_url)
        packet, chain = run_chain(self.general_strategies, request)
        return PipelineResult(packet=packet, route=QueryKind.GENERAL, history_mode=mode, chain=chain)

    def build(self, query: str, mode: str = StudyMode.NORMAL.value) -> PipelineResult:
        query, mode = self.validate(query, mode)
        request_id = get_request_context().get('request_id')
        start = time.time()

        classification: Classification = classify(query)
        result = None
        if classification.kind is QueryKind.DEFINITIONAL:
            result = self._definitional(classification.extracted_topic)
        if result is None and (classification.kind is QueryKind.MATH or (classification.kind is QueryKind.DEFINITIONAL and is_math_problem(query))):
            result = self._math(query)
        if result is None:
            result = self._general(query, mode)

        if len(result.chain) > 1:
            log_content_fallback(request_id, result.chain, result.chain[-1])
        duration_ms = int((time.time() - start) * 1000)
        log_study_generation(request_id, result.route.value, result.packet.source.value if result.packet.source else None, len(result.packet.quiz), duration_ms, mode=result.history_mode)
        return result

    async def produce(self, query: str, mode: str = StudyMode.NORMAL.value, user_id: Optional[str] = None) -> StudyPacket:
        """Build the packet off the event loop, then schedule the history write without awaiting it."""
        result = await asyncio.to_thread(self.build, query, mode)
        if user_id:
            self.recorder.record_in_background(user_id, result.packet, result.history_mode)
        return result.packet
