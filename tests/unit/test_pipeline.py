import asyncio
import threading

import pytest

from study_assistant.pipeline import (
    StudyPipeline,
    AIMathStrategy,
    BasicMathStrategy,
    InvalidStudyRequest,
    ContentRequest,
    ContentStrategy,
    ContentStrategyError,
    run_chain,
)
from study_assistant.content import PacketSource, QueryKind, AIAuthError, AIOverloadedError
from study_assistant.knowledge import TopicNotFoundError, WikipediaUpstreamError
from study_assistant.history import HistoryRecorder, HistoryStore
from tests.fixtures import mock_openai as mo
from tests.fixtures.mock_wikipedia import FakeWikipedia
from tests.fixtures.sample_data import ENTANGLEMENT_EXTRACT


def _pipeline(sleeps=None):
    sleeps = sleeps if sleeps is not None else []
    return StudyPipeline(
        recorder=HistoryRecorder(enabled=True),
        math_strategies=[AIMathStrategy(sleep=sleeps.append), BasicMathStrategy()],
    )


@pytest.mark.unit
def test_definitional_query_gets_framework_answer(fake_wikipedia):
    result = _pipeline().build('What is photosynthesis?')
    assert result.route == QueryKind.DEFINITIONAL
    assert result.history_mode == 'framework'
    assert result.packet.source == PacketSource.FRAMEWORK
    assert result.packet.summary[0].startswith('WHAT: ')
    assert result.packet.wikipedia_url == 'https://en.wikipedia.org/wiki/Photosynthesis'
    assert fake_wikipedia.calls[0]['url'].endswith('/Photosynthesis')


@pytest.mark.unit
def test_math_without_key_uses_basic_solver(fake_wikipedia):
    result = _pipeline().build('5 + 3')
    assert result.route == QueryKind.MATH
    assert result.history_mode == 'math'
    assert result.packet.math_question.answer == '8'
    assert result.chain == ['ai_math_failed', 'basic_math']
    assert fake_wikipedia.calls == []


@pytest.mark.unit
def test_math_with_ai(fake_wikipedia, mock_openai_client):
    mock_openai_client(mo.MOCK_MATH_RESPONSE)
    result = _pipeline().build('5 + 3', 'math')
    assert result.packet.source == PacketSource.AI_MATH
    assert result.chain == ['ai_math']


@pytest.mark.unit
def test_math_retries_on_overload_with_backoff(mock_openai_client):
    fake = mock_openai_client(mo.overloaded_error(), mo.overloaded_error(), mo.MOCK_MATH_RESPONSE)
    sleeps = []
    result = _pipeline(sleeps).build('5 + 3')
    assert result.packet.source == PacketSource.AI_MATH
    assert sleeps == [2, 4]
    assert len(fake.calls) == 3


@pytest.mark.unit
def test_math_gives_up_after_three_overloads(mock_openai_client):
    fake = mock_openai_client(mo.overloaded_error())
    sleeps = []
    result = _pipeline(sleeps).build('12 + 7')
    assert result.packet.source == PacketSource.BASIC_MATH
    assert result.packet.summary[-1] == 'Answer: 19'
    assert sleeps == [2, 4]
    assert len(fake.calls) == 3


@pytest.mark.unit
def test_math_does_not_retry_other_errors(mock_openai_client):
    fake = mock_openai_client(mo.auth_error())
    sleeps = []
    result = _pipeline(sleeps).build('5 + 3')
    assert result.packet.source == PacketSource.BASIC_MATH
    assert sleeps == []
    assert len(fake.calls) == 1


@pytest.mark.unit
def test_general_with_ai(fake_wikipedia, mock_openai_client):
    mock_openai_client(mo.MOCK_STUDY_RESPONSE)
    result = _pipeline().build('Quantum entanglement')
    assert result.route == QueryKind.GENERAL
    assert result.history_mode == 'normal'
    assert result.packet.source == PacketSource.AI
    assert result.packet.topic == 'Quantum entanglement'
    assert result.packet.math_question is None


@pytest.mark.unit
def test_general_ai_timeout_falls_back_to_synthesizer(fake_wikipedia, mock_openai_client):
    mock_openai_client(mo.timeout_error())
    result = _pipeline().build('Quantum entanglement')
    assert result.packet.source == PacketSource.WIKIPEDIA
    assert result.packet.summary[0] == ENTANGLEMENT_EXTRACT.split('. ')[0] + '.'
    assert result.chain == ['ai_failed', 'wikipedia']
    assert len(fake_wikipedia.calls) == 1


@pytest.mark.unit
def test_general_math_mode_synthesizes_math_question(fake_wikipedia):
    result = _pipeline().build('Quantum entanglement', 'math')
    assert result.history_mode == 'math'
    assert result.packet.math_question is not None


@pytest.mark.unit
def test_general_not_found_propagates(fake_wikipedia):
    with pytest.raises(TopicNotFoundError):
        _pipeline().build('Zzyzx')


@pytest.mark.unit
def test_general_upstream_error_propagates(monkeypatch):
    monkeypatch.setattr('requests.get', FakeWikipedia(status_overrides={'Roman Empire': 500}))
    with pytest.raises(WikipediaUpstreamError):
        _pipeline().build('Roman Empire')


@pytest.mark.unit
def test_failed_definitional_falls_through_to_math(fake_wikipedia):
    result = _pipeline().build('What is 5 + 3?')
    assert result.route == QueryKind.MATH
    assert result.packet.math_question.answer == '8'
    assert len(fake_wikipedia.calls) == 1


@pytest.mark.unit
def test_failed_definitional_falls_through_to_general(fake_wikipedia):
    with pytest.raises(TopicNotFoundError) as exc:
        _pipeline().build('What is zzyzx?')
    assert exc.value.topic == 'What is zzyzx?'
    assert len(fake_wikipedia.calls) == 2


@pytest.mark.unit
@pytest.mark.parametrize('query,mode', [('', 'normal'), ('   ', 'normal'), (None, 'normal'), ('Photosynthesis', 'poetry'), ('x' * 500, 'normal')])
def test_invalid_requests_make_no_calls(fake_wikipedia, query, mode):
    with pytest.raises(InvalidStudyRequest):
        _pipeline().build(query, mode)
    assert fake_wikipedia.calls == []


@pytest.mark.unit
def test_run_chain_raises_when_all_fail():
    class Broken(ContentStrategy):
        name = 'broken'

        def produce(self, request):
            raise AIAuthError('bad key')

    with pytest.raises(ContentStrategyError):
        run_chain([Broken(), Broken()], ContentRequest(topic='x'))


@pytest.mark.unit
def test_produce_records_history_in_background(fake_wikipedia):
    pipeline = _pipeline()

    async def scenario():
        packet = await pipeline.produce('What is photosynthesis?', user_id='u1')
        await pipeline.recorder.drain()
        return packet

    packet = asyncio.run(scenario())
    entries = HistoryStore.get_instance().list_recent('u1')
    assert len(entries) == 1
    assert entries[0].mode.value == 'framework'
    assert entries[0].topic == packet.topic


@pytest.mark.unit
def test_produce_without_user_records_nothing(fake_wikipedia):
    pipeline = _pipeline()

    async def scenario():
        await pipeline.produce('5 + 3')
        await pipeline.recorder.drain()

    asyncio.run(scenario())
    assert HistoryStore.get_instance().list_recent('u1') == []


class GatedStore:
    """Holds every append until the gate opens."""

    def __init__(self):
        self.gate = threading.Event()
        self.started = threading.Event()
        self.entries = []

    def append(self, entry):
        self.started.set()
        self.gate.wait(5)
        self.entries.append(entry)
        return entry


@pytest.mark.unit
def test_produce_returns_before_history_write_finishes(fake_wikipedia):
    store = GatedStore()
    pipeline = StudyPipeline(recorder=HistoryRecorder(store=store, enabled=True),
                             math_strategies=[BasicMathStrategy()])

    async def scenario():
        try:
            packet = await pipeline.produce('5 + 3', user_id='u1')
            assert packet.math_question.answer == '8'
            assert store.entries == []
            assert not store.gate.is_set()
        finally:
            store.gate.set()
        await pipeline.recorder.drain()

    asyncio.run(scenario())
    assert store.started.is_set()
    assert [e.user_id for e in store.entries] == ['u1']
    assert store.entries[0].mode.value == 'math'


@pytest.mark.unit
def test_math_attempts_are_capped_at_three(mock_openai_client):
    fake = mock_openai_client(mo.overloaded_error())
    sleeps = []
    strategy = AIMathStrategy(attempts=10, sleep=sleeps.append)
    assert strategy.attempts == 3
    with pytest.raises(AIOverloadedError):
        strategy.produce(ContentRequest(topic='5 + 3', mode='math'))
    assert len(fake.calls) == 3
    assert sleeps == [2, 4]
