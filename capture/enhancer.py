# enhancer.py
import logging

from playwright.async_api import Page, Error as PlaywrightError

logger = logging.getLogger(__name__)

ACCEPT_CONSENT_JS = """
() => {
    const CONTAINERS = [
        '#onetrust-banner-sdk', '#CybotCookiebotDialog', '.cc-window', '#cookie-law-info-bar',
        '[id*="cookie" i]', '[class*="cookie" i]', '[id*="consent" i]', '[class*="consent" i]',
        '[id*="gdpr" i]', '[class*="gdpr" i]', '[aria-label*="cookie" i]', '[aria-label*="consent" i]',
        '[role="dialog"]', '[aria-modal="true"]'
    ];
    const ACCEPT = /\\b(accept|agree|allow)\\b|^(ok|okay|got it|i understand)$/;
    const containers = [];
    for (const sel of CONTAINERS) {
        let nodes;
        try { nodes = document.querySelectorAll(sel); } catch (e) { continue; }
        for (const el of nodes) {
            if (el === document.body || el === document.documentElement || containers.includes(el)) continue;
            const text = (el.textContent || '').toLowerCase();
            if (/cookie|consent|gdpr|privacy/.test(text)) containers.push(el);
        }
    }
    for (const box of containers) {
        for (const btn of box.querySelectorAll('button, [role="button"], input[type="button"], input[type="submit"], a')) {
            if (btn.tagName === 'A') {
                const href = (btn.getAttribute('href') || '').trim();
                if (href && !href.startsWith('#') && !href.toLowerCase().startsWith('javascript:')) continue;
            }
            const text = (btn.textContent || btn.value || btn.getAttribute('aria-label') || '').trim().toLowerCase();
            const r = btn.getBoundingClientRect();
            if (r.width === 0 || r.height === 0 || !text || text.length > 40) continue;
            if (ACCEPT.test(text)) {
                btn.click();
                return text;
            }
        }
    }
    return null;
}
"""

REMOVE_CONSENT_JS = """
() => {
    const selectors = [
        '[id*="cookie" i]', '[class*="cookie" i]', '[id*="consent" i]', '[class*="consent" i]',
        '.cookie-banner', '[role="dialog"]', '[aria-modal="true"]'
    ];
    let removed = 0;
    for (const sel of selectors) {
        for (const el of document.querySelectorAll(sel)) {
            if (!el.isConnected || el === document.body) continue;
            const text = (el.textContent || '').toLowerCase();
            if (!text.includes('cookie') && !text.includes('consent')) continue;
            const position = getComputedStyle(el).position;
            if (!['fixed', 'sticky', 'absolute'].includes(position) && el.getAttribute('role') !== 'dialog') continue;
            el.remove();
            removed++;
        }
    }
    return removed;
}
"""


class ConsentDismisser:
    """Gets cookie and consent banners out of the way before the baseline shot."""

    def __init__(self, page: Page):
        self.page = page

    async def dismiss(self) -> bool:
        try:
            clicked = await self.page.evaluate(ACCEPT_CONSENT_JS)
            if clicked:
                logger.info(f"Accepted consent dialog via '{clicked}'")
                await self.page.wait_for_timeout(500)
            removed = await self.page.evaluate(REMOVE_CONSENT_JS)
            if removed:
                logger.info(f"Removed {removed} consent overlays from the DOM")
            return bool(clicked or removed)
        except PlaywrightError as e:
            logger.debug(f"Consent dismissal skipped: {e}")
            return False
