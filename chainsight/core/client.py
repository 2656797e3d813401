from datetime import timedelta
from pathlib import Path

import requests_cache
import structlog
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = structlog.get_logger('client')


def get_http_client(
    cache_name: str | Path = '.cache/requests-cache/db.sqlite3',
    expire_after: int = 86400,
    retries: int = 3,
    pool_size: int = 10,
) -> requests_cache.CachedSession:
    """
    Return a requests session with an sqlite response cache and retries.

    POST is cacheable so identical GraphQL documents with identical
    variables are served locally within the expiry window.
    """
    cache_path = Path(cache_name)
    cache_path.parent.mkdir(parents=True, exist_ok=True)

    session = requests_cache.CachedSession(
        cache_name=str(cache_path),
        backend='sqlite',
        expire_after=timedelta(seconds=expire_after),
        allowable_codes=[200, 404],
        allowable_methods=['GET', 'HEAD', 'POST'],
    )

    def logging_hook(response, *args, **kwargs):
        if getattr(response, '_logged', False):
            return
        response._logged = True

        is_cached = getattr(response, 'from_cache', False)
        log_kwargs = {
            'method': response.request.method,
            'url': response.url,
            'status': response.status_code,
            'content_length': len(response.content) if response.content else 0,
            'elapsed': f"{response.elapsed.total_seconds():.3f}s",
            'cached': is_cached,
        }

        remaining = response.headers.get('X-RateLimit-Remaining')
        limit = response.headers.get('X-RateLimit-Limit')
        if remaining and limit:
            log_kwargs['ratelimit'] = f"{remaining}/{limit}"

        if is_cached:
            logger.debug('HTTP Request', _style='dim', **log_kwargs)
        else:
            logger.debug('HTTP Request', **log_kwargs)
    session.hooks['response'].append(logging_hook)

    retry_strategy = Retry(
        total=retries,
        backoff_factor=1,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=['GET', 'HEAD', 'POST'],
    )

    adapter = HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
        max_retries=retry_strategy,
    )

    session.mount('https://', adapter)
    session.mount('http://', adapter)

    logger.debug(
        'Initialized Cached HTTP Client',
        cache_name=str(cache_path),
        expire_after=expire_after,
    )

    return session
