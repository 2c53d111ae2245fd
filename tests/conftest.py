import os
from types import SimpleNamespace
from pathlib import Path

import pytest
from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')
os.environ.setdefault('LOG_TO_FILE', 'false')

from tests.fixtures.mock_openai import FakeOpenAI
from tests.fixtures.mock_redis import MockRedisClient
from tests.fixtures.mock_wikipedia import FakeWikipedia
from tests.fixtures import sample_data


@pytest.fixture(autouse=True)
def isolated_services(monkeypatch):
    """No real OpenAI key, no real Redis and fresh singletons for every test."""
    import study_assistant.content.ai_generator as ai_mod
    import study_assistant.history.store as store_mod

    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    monkeypatch.setattr(store_mod, 'redis', None)
    ai_mod.AIContentGenerator._instance = None
    store_mod.HistoryStore._instance = None
    yield
    ai_mod.AIContentGenerator._instance = None
    store_mod.HistoryStore._instance = None


@pytest.fixture
def mock_openai_client(monkeypatch):
    """Returns an installer: ``install(*replies) -> FakeOpenAI`` with a configured key."""
    import study_assistant.content.ai_generator as ai_mod

    def install(*replies):
        fake = FakeOpenAI(replies or None)

        def factory(**kwargs):
            fake.init_kwargs = kwargs
            return fake

        monkeypatch.setenv('OPENAI_API_KEY', 'sk-test')
        monkeypatch.setattr(ai_mod, 'OpenAI', factory)
        ai_mod.AIContentGenerator._instance = None
        return fake

    return install


@pytest.fixture
def mock_redis_client(monkeypatch):
    import study_assistant.history.store as store_mod

    client = MockRedisClient()
    fake_module = SimpleNamespace(from_url=lambda *a, **k: client, Redis=lambda *a, **k: client)
    monkeypatch.setattr(store_mod, 'redis', fake_module)
    store_mod.HistoryStore._instance = None
    return client


@pytest.fixture
def fake_wikipedia(monkeypatch):
    wiki = FakeWikipedia(sample_data.wikipedia_pages())
    monkeypatch.setattr('requests.get', wiki)
    return wiki


@pytest.fixture
def photosynthesis_extract():
    return sample_data.PHOTOSYNTHESIS_EXTRACT
