# env.py
import logging
from typing import Optional

from playwright.async_api import Page, Route, Request

from .utils import normalize_domain

logger = logging.getLogger(__name__)

EXTERNAL_LINK_JS = """
({ selector, currentDomain }) => {
    const el = document.querySelector(selector);
    if (!el || el.tagName !== 'A') return false;
    const href = el.href;
    if (!href) return false;
    try {
        const url = new URL(href);
        if (!['http:', 'https:'].includes(url.protocol)) return url.protocol !== 'javascript:';
        return url.hostname.toLowerCase().replace(/^www\\./, '') !== currentDomain;
    } catch (e) {
        return true;
    }
}
"""


class EnvironmentGuard:
    """Binds a capture session to the origin the page was opened on."""

    def __init__(self, page: Page):
        self.page = page
        self.current_domain: Optional[str] = None
        self.blocked_navigations = 0

    async def init(self):
        self.current_domain = normalize_domain(self.page.url)
        await self.page.route('**/*', self._route_handler)
        logger.debug(f"Environment bound to {self.current_domain}")

    async def _route_handler(self, route: Route, request: Request):
        # only top-level navigations; embedded frames may load from anywhere
        if (request.is_navigation_request() and request.frame == self.page.main_frame
                and not self.is_same_origin(request.url)):
            self.blocked_navigations += 1
            logger.info(f"Blocked external navigation to: {request.url}")
            await route.abort()
            return
        await route.continue_()

    def is_same_origin(self, url: str) -> bool:
        domain = normalize_domain(url)
        # data:, about: and unparsable URLs stay in-page
        return domain is None or domain == self.current_domain

    async def is_external_link(self, selector: str) -> bool:
        external = await self.page.evaluate(
            EXTERNAL_LINK_JS, {'selector': selector, 'currentDomain': self.current_domain}
        )
        if external:
            logger.debug(f"Detected external link: {selector}")
        return bool(external)
