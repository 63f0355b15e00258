# session.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playwright.async_api import (
    async_playwright, Browser, Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError,
)

from .constants import *
from .enhancer import ConsentDismisser
from .errors import NavigationError, SessionError
from .models import CaptureResult, PageResult
from .options import CaptureOptions
from .orchestrator import InteractiveContentCapture
from .utils import create_filename, gather_with_semaphore, sanitize_filename

logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    viewport: Dict[str, int] = field(default_factory=lambda: dict(VIEWPORT))
    navigation_timeout: int = NAVIGATION_TIMEOUT
    parallel_tasks: int = PARALLEL_TASKS
    headless: bool = True
    dismiss_consent: bool = True
    user_agent: str = USER_AGENT


class CaptureSession:
    """Owns the browser and runs one engine per URL in its own context."""

    def __init__(self, options: CaptureOptions, sink, config: Optional[SessionConfig] = None):
        self.options = options
        self.sink = sink
        self.config = config or SessionConfig()
        self.semaphore = asyncio.Semaphore(self.config.parallel_tasks)
        self.playwright = None
        self.browser: Optional[Browser] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    async def initialize(self):
        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(
                headless=self.config.headless,
                args=BROWSER_ARGS,
            )
        except PlaywrightError as e:
            await self.cleanup()
            raise SessionError('LAUNCH', 'launch', f"Could not launch browser: {e}", original=e)
        logger.info(f"Browser launched (headless={self.config.headless})")

    async def cleanup(self):
        if self.browser:
            try:
                await self.browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self.browser = None
        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self.playwright = None

    async def _navigate(self, page: Page, url: str):
        try:
            response = await page.goto(url, wait_until='domcontentloaded', timeout=self.config.navigation_timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationError('NAV_TIMEOUT', 'navigate', f"Timed out after {self.config.navigation_timeout}ms", url, e)
        except PlaywrightError as e:
            raise NavigationError('NAV_FAILED', 'navigate', str(e), url, e)
        if response is None:
            raise NavigationError('NAV_NO_RESPONSE', 'navigate', "No response received", url)
        if response.status >= 400:
            raise NavigationError('NAV_STATUS', 'navigate', f"HTTP {response.status}", url)

    def _store(self, url: str, index: int, result: CaptureResult) -> List[str]:
        files = []
        for n, record in enumerate(result.screenshots):
            stem = record.filename[:-4] if record.filename.endswith('.png') else record.filename
            filename = create_filename(url, index, f"{n:02d}_{stem}")
            self.sink.save(filename, record.buffer)
            files.append(filename)
        if hasattr(self.sink, 'write_metadata'):
            self.sink.write_metadata(url, result.screenshots, files)
        if hasattr(self.sink, 'write_report'):
            report: Dict[str, Any] = {'url': url, 'files': files, **result.report.to_dict()}
            self.sink.write_report(f"{index:03d}_{sanitize_filename(url)[:60]}", report)
        return files

    async def capture_url(self, url: str, index: int) -> PageResult:
        if self.browser is None:
            raise SessionError('NO_BROWSER', 'capture', "Session is not initialized", url)
        context = await self.browser.new_context(
            viewport=self.config.viewport,
            user_agent=self.config.user_agent,
        )
        try:
            page = await context.new_page()
            logger.info(f"Capturing [{index}] {url}")
            await self._navigate(page, url)
            if self.config.dismiss_consent:
                await ConsentDismisser(page).dismiss()
            result = await InteractiveContentCapture(page, self.options).run()
            files = self._store(url, index, result)
            logger.info(f"Captured {len(files)} screenshots for {url}")
            return PageResult(url=url, success=True, files=files, report=result.report.to_dict())
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing context for {url}: {e}")

    async def capture_all(self, urls: List[str]) -> List[PageResult]:
        tasks = [self.capture_url(url, index) for index, url in enumerate(urls, 1)]
        results = await gather_with_semaphore(self.semaphore, tasks)
        pages = []
        for url, result in zip(urls, results):
            if isinstance(result, Exception):
                logger.error(f"Capture failed for {url}: {result}")
                pages.append(PageResult(url=url, success=False, error=str(result)))
            else:
                pages.append(result)
        succeeded = sum(1 for p in pages if p.success)
        logger.info(f"Finished {succeeded}/{len(pages)} pages")
        return pages
