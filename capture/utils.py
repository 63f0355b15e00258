# utils.py
import asyncio
import re
from typing import List, Optional
from urllib.parse import urlparse

from .constants import logger


def normalize_domain(url: str) -> Optional[str]:
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return re.sub(r'^www\.', '', host.lower())


def sanitize_filename(value: str) -> str:
    value = re.sub(r'[^a-z0-9_-]', '_', (value or '').lower())
    value = re.sub(r'_+', '_', value)
    return value.strip('_')


def safe_label(text: str, fallback: str, limit: int = 15) -> str:
    label = re.sub(r'[^a-zA-Z0-9]', '_', (text or '')[:limit])
    return label if label.strip('_') else fallback


def create_filename(url: str, index: int, suffix: str = '') -> str:
    """Stable PNG filename from the page URL and its position in the run."""
    domain = normalize_domain(url)
    if not domain:
        logger.warning(f"Could not parse URL for filename: {url}")
        return f"{index:03d}_invalid_url{('_' + suffix) if suffix else ''}.png"
    path = urlparse(url).path.strip('/').replace('/', '_')
    path = re.sub(r'[^a-zA-Z0-9_-]', '', path) or 'index'
    name = f"{index:03d}_{domain}_{path[:50]}"
    if suffix:
        name += f"_{sanitize_filename(suffix)}"
    return f"{name}.png"


def format_duration(milliseconds: float) -> str:
    seconds = int(milliseconds // 1000)
    minutes, remaining = divmod(seconds, 60)
    if minutes:
        return f"{minutes}m {remaining}s"
    return f"{remaining}s"


async def gather_with_semaphore(semaphore: asyncio.Semaphore, tasks: List) -> List:
    async def run(coro):
        async with semaphore:
            return await coro

    return await asyncio.gather(*(run(t) for t in tasks), return_exceptions=True)
