import os
import re
import time
import asyncio
from datetime import datetime, timezone
from typing import Optional

import requests
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic_settings import BaseSettings

from study_assistant.utils import get_logger, set_request_context, log_request, log_error
from study_assistant.content import AIContentGenerator, AIConfigError, api_key_configured
from study_assistant.knowledge import TopicNotFoundError, WikipediaUpstreamError, summary_url
from study_assistant.knowledge.wikipedia_client import WIKIPEDIA_USER_AGENT
from study_assistant.history import HistoryStore, HistoryStoreError
from study_assistant.pipeline import StudyPipeline, InvalidStudyRequest

LOG = get_logger()

USER_ID_PATTERN = re.compile(r'^[A-Za-z0-9_\-:.@]{1,128}$')


class Settings(BaseSettings):
    HOST: str = os.getenv('HOST', '0.0.0.0')
    PORT: int = int(os.getenv('PORT', '8000'))
    ENVIRONMENT: str = os.getenv('ENVIRONMENT', 'development')
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    CORS_ORIGIN: str = os.getenv('CORS_ORIGIN', '*')
    REDIS_REQUIRED_FOR_READY: bool = os.getenv('REDIS_REQUIRED_FOR_READY', 'false').lower() in ('1', 'true', 'yes')
    OPENAI_REQUIRED_FOR_READY: bool = os.getenv('OPENAI_REQUIRED_FOR_READY', 'false').lower() in ('1', 'true', 'yes')


settings = Settings()

app = FastAPI(title='Study Assistant Service', version='1.0.0', description='Study packets from Wikipedia summaries and AI tutoring')

# CORS config
origins = [o.strip() for o in settings.CORS_ORIGIN.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

pipeline = StudyPipeline()


def _error(status_code: int, error: str, message: str, request_id: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'error': error, 'message': message, 'request_id': request_id})


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', None) or os.urandom(8).hex()


def _user_id(request: Request) -> Optional[str]:
    return getattr(request.state, 'user_id', None)


@app.middleware('http')
async def add_request_id_and_logging(request: Request, call_next):
    # prefer incoming X-Request-ID header for cross-service tracing
    request_id = request.headers.get('x-request-id') or os.urandom(8).hex()
    request.state.request_id = request_id

    user_id = request.headers.get('x-user-id')
    if user_id is not None and not USER_ID_PATTERN.match(user_id):
        LOG.warning('invalid_user_identity', extra={'request_id': request_id, 'path': request.url.path})
        response = _error(401, 'Unauthorized', 'Invalid user identity', request_id)
        response.headers['X-Request-ID'] = request_id
        return response
    request.state.user_id = user_id
    set_request_context(request_id, user_id)

    start = time.time()
    try:
        response: Response = await call_next(request)
    except Exception:
        LOG.exception('Unhandled exception in request', exc_info=True)
        response = _error(500, 'Internal server error', 'Internal server error', request_id)
    duration = int((time.time() - start) * 1000)
    log_request(request_id, request.method, request.url.path, response.status_code, duration, ip=request.client.host if request.client else None)
    # echo back the request id for downstream tracing
    response.headers['X-Request-ID'] = request_id
    return response


@app.get('/health')
async def health():
    return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat(), 'service': 'study'}


def _check_redis():
    try:
        store = HistoryStore.get_instance()
        if store.backend != 'redis':
            return 'warn: in-memory history store'
        return store.ping()
    except Exception as e:
        return f'error: {str(e)}'


def _check_openai():
    if not api_key_configured():
        if settings.OPENAI_REQUIRED_FOR_READY:
            return 'error: no openai key'
        return 'warn: no openai key'
    return 'ok'


def _check_wikipedia():
    try:
        resp = requests.get(summary_url('Wikipedia'), headers={'User-Agent': WIKIPEDIA_USER_AGENT}, timeout=5)
        if resp.status_code == 200:
            return 'ok'
        return f'error: wikipedia status {resp.status_code}'
    except Exception as e:
        return f'error: {str(e)}'


@app.get('/ready')
async def ready():
    services = {}
    services['redis'] = await asyncio.to_thread(_check_redis)
    services['openai'] = _check_openai()
    services['wikipedia'] = await asyncio.to_thread(_check_wikipedia)

    ready_ok = True
    if settings.REDIS_REQUIRED_FOR_READY and not services['redis'].startswith('ok'):
        ready_ok = False
    if settings.OPENAI_REQUIRED_FOR_READY and services['openai'].startswith('error'):
        ready_ok = False
    if services['wikipedia'].startswith('error'):
        ready_ok = False

    status_code = 200 if ready_ok else 503
    return JSONResponse(status_code=status_code, content={'status': 'ready' if ready_ok else 'not ready', 'services': services})


@app.get('/study')
async def study(request: Request, topic: Optional[str] = None, mode: str = 'normal'):
    request_id = _request_id(request)
    LOG.info('study_start', extra={'request_id': request_id, 'mode': mode})
    try:
        packet = await pipeline.produce(topic, mode, user_id=_user_id(request))
        return JSONResponse(status_code=200, content=packet.to_response())
    except InvalidStudyRequest as e:
        return _error(400, 'Bad request', str(e), request_id)
    except TopicNotFoundError as e:
        return _error(404, 'Topic not found', str(e), request_id)
    except WikipediaUpstreamError as e:
        LOG.warning('study_upstream_failed', extra={'request_id': request_id, 'status_code': e.status_code})
        return _error(502, 'Upstream error', 'Failed to fetch data from Wikipedia', request_id)
    except AIConfigError:
        LOG.exception('study_config_error', exc_info=True)
        return _error(500, 'Server configuration error', 'AI service is not configured', request_id)
    except Exception as e:
        log_error(e, {'request_id': request_id, 'path': '/study'})
        message = str(e) if settings.ENVIRONMENT == 'development' else 'An unexpected error occurred'
        return _error(500, 'Internal server error', message, request_id)


@app.get('/study/history')
async def study_history(request: Request):
    request_id = _request_id(request)
    user_id = _user_id(request)
    if not user_id:
        return _error(401, 'Unauthorized', 'X-User-ID header is required', request_id)
    try:
        entries = await asyncio.to_thread(HistoryStore.get_instance().list_recent, user_id)
    except HistoryStoreError:
        LOG.exception('history_list_failed', exc_info=True)
        return _error(500, 'Internal server error', 'Failed to fetch study history', request_id)
    return {'history': [e.listing() for e in entries]}


@app.delete('/study/history')
async def clear_study_history(request: Request):
    request_id = _request_id(request)
    user_id = _user_id(request)
    if not user_id:
        return _error(401, 'Unauthorized', 'X-User-ID header is required', request_id)
    try:
        deleted = await asyncio.to_thread(HistoryStore.get_instance().clear, user_id)
    except HistoryStoreError:
        LOG.exception('history_clear_failed', exc_info=True)
        return _error(500, 'Internal server error', 'Failed to clear study history', request_id)
    return {'message': 'Study history cleared', 'deleted': deleted}


@app.on_event('startup')
async def on_startup():
    LOG.info('Study service starting', extra={'env': settings.ENVIRONMENT})
    if api_key_configured():
        try:
            AIContentGenerator.get_instance()
            LOG.info('AIContentGenerator warmup triggered')
        except Exception as e:
            LOG.warning('AIContentGenerator warmup failed', extra={'error': str(e)})
    else:
        LOG.warning('OPENAI_API_KEY not set; study content will use Wikipedia and basic math fallbacks')
    try:
        store = HistoryStore.get_instance()
        LOG.info('HistoryStore ready', extra={'backend': store.backend})
    except Exception:
        LOG.exception('historystore_warmup_error', exc_info=True)


@app.on_event('shutdown')
async def on_shutdown():
    LOG.info('Study service shutting down')
    await pipeline.recorder.drain()


if __name__ == '__main__':
    import uvicorn

    workers = int(os.getenv('WORKERS', '1'))
    # uvicorn cannot reload with multiple workers
    if settings.ENVIRONMENT == 'development':
        workers = 1
    reload_enabled = (settings.ENVIRONMENT == 'development') and (workers == 1)

    uvicorn.run(
        'main:app',
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=reload_enabled,
        workers=workers,
    )
