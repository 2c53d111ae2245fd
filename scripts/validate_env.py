import os
import sys
import argparse
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / '.env')

errors = []
warnings = []

parser = argparse.ArgumentParser(description='Validate study service environment')
parser.add_argument('--strict', '-s', action='store_true', help='Convert warnings to failures')
args = parser.parse_args()
STRICT = args.strict

required = {
    'server': ['ENVIRONMENT', 'HOST', 'PORT'],
}
recommended = {
    'openai': ['OPENAI_API_KEY', 'OPENAI_MODEL'],
}

for cat, keys in required.items():
    for k in keys:
        if not os.getenv(k):
            errors.append(f"{cat}: Missing {k}")

for cat, keys in recommended.items():
    for k in keys:
        if not os.getenv(k):
            warnings.append(f"{cat}: {k} not set; AI content falls back to Wikipedia and basic math")

# Format checks
try:
    port = int(os.getenv('PORT', '0'))
    if port < 1 or port > 65535:
        errors.append('PORT must be integer between 1 and 65535')
except ValueError:
    errors.append('PORT must be an integer')

if os.getenv('ENVIRONMENT', 'development') not in ('development', 'test', 'staging', 'production'):
    warnings.append('ENVIRONMENT is not one of development|test|staging|production')

openai_key = os.getenv('OPENAI_API_KEY', '')
if openai_key == 'your_openai_api_key_here':
    warnings.append('OPENAI_API_KEY is still the placeholder value')
    openai_key = ''
elif openai_key and not openai_key.startswith('sk-'):
    warnings.append('OPENAI_API_KEY does not start with sk-; verify provider')

# Validate numeric env ranges
ranges = {
    'OPENAI_TIMEOUT': (float, '20', 1, 120),
    'STUDY_TEMPERATURE': (float, '0.7', 0.0, 2.0),
    'MATH_TEMPERATURE': (float, '0.3', 0.0, 2.0),
    'STUDY_MAX_TOKENS': (int, '2048', 64, 16384),
    'MATH_MAX_TOKENS': (int, '2048', 64, 16384),
    'MATH_RETRY_ATTEMPTS': (int, '3', 1, 3),
    'WIKIPEDIA_TIMEOUT': (float, '10', 1, 60),
    'HISTORY_LIST_LIMIT': (int, '50', 1, 500),
    'HISTORY_MAX_ENTRIES': (int, '500', 1, 100000),
    'STUDY_MAX_TOPIC_LENGTH': (int, '200', 1, 2000),
}
for name, (cast, default, lo, hi) in ranges.items():
    try:
        value = cast(os.getenv(name, default))
        if value < lo or value > hi:
            errors.append(f'{name} must be between {lo} and {hi}')
    except ValueError:
        errors.append(f'{name} must be {"an integer" if cast is int else "a number"}')

# OpenAI check - 1.x client API
if openai_key:
    try:
        from openai import OpenAI
        client = OpenAI(api_key=openai_key, timeout=10, max_retries=0)
        client.models.list()
        print('OpenAI: API reachable')
    except Exception as e:
        warnings.append(f'OpenAI check failed: {e}')

# Wikipedia reachability
try:
    import requests
    api_url = os.getenv('WIKIPEDIA_API_URL', 'https://en.wikipedia.org/api/rest_v1/page/summary').rstrip('/')
    resp = requests.get(f'{api_url}/Wikipedia', headers={'User-Agent': os.getenv('WIKIPEDIA_USER_AGENT', 'study-assistant/1.0')}, timeout=5)
    if resp.status_code == 200:
        print('Wikipedia: OK')
    else:
        errors.append(f'Wikipedia summary endpoint returned {resp.status_code}')
except Exception as e:
    errors.append(f'Wikipedia connectivity check failed: {e}')

# Redis check (optional)
if os.getenv('REDIS_URL') or os.getenv('REDIS_HOST'):
    try:
        import redis
        if os.getenv('REDIS_URL'):
            r = redis.from_url(os.getenv('REDIS_URL'), socket_timeout=3)
        else:
            r = redis.Redis(host=os.getenv('REDIS_HOST'), port=int(os.getenv('REDIS_PORT', '6379')), password=os.getenv('REDIS_PASSWORD') or None, socket_timeout=3)
        if r.ping():
            print('Redis: OK')
    except Exception as e:
        warnings.append(f'Redis check failed, history will be kept in memory: {e}')
else:
    warnings.append('REDIS_URL/REDIS_HOST not set; history will be kept in memory')

# Log directory check
log_dir = Path(os.getenv('LOG_FILE_PATH', 'logs'))
if os.getenv('LOG_TO_FILE', 'true').lower() in ('1', 'true', 'yes'):
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(log_dir, os.W_OK):
            errors.append(f'Log path not writable: {log_dir}')
    except Exception as e:
        errors.append(f'Failed to verify/create log dir: {e}')

if errors:
    print('\nENV validation failed:')
    for e in errors:
        print(' -', e)
    sys.exit(1)

if warnings:
    print('\nWarnings:')
    for w in warnings:
        print(' -', w)
    if STRICT:
        print('\nStrict mode enabled: treating warnings as errors')
        sys.exit(1)

print('\nAll critical validations passed')
sys.exit(0)
