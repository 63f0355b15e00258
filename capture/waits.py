# waits.py
import logging

from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from .constants import *
from .validator import PageValidator, ValidationReport

logger = logging.getLogger(__name__)

WAIT_FOR_ANIMATIONS_JS = """
async (ceiling) => {
    const els = Array.from(document.querySelectorAll('*')).filter(el => {
        const s = getComputedStyle(el);
        const animated = s.animationName && s.animationName !== 'none' && s.animationPlayState === 'running';
        const transitioning = s.transitionDuration && s.transitionDuration.split(',').some(d => parseFloat(d) > 0);
        return animated || transitioning;
    });
    if (!els.length) return 0;
    await Promise.race([
        Promise.all(els.map(el => new Promise(res => {
            el.addEventListener('animationend', res, { once: true });
            el.addEventListener('transitionend', res, { once: true });
            setTimeout(res, ceiling);
        }))),
        new Promise(res => setTimeout(res, ceiling))
    ]);
    return els.length;
}
"""

WAIT_FOR_FONTS_JS = """
async () => {
    if (document.fonts) { try { await document.fonts.ready; } catch (e) {} }
}
"""

STABILITY_SAMPLE_JS = """
() => {
    const visible = Array.from(document.querySelectorAll('*')).filter(el => {
        const r = el.getBoundingClientRect();
        return r.width > 0 && r.height > 0;
    }).length;
    return visible + '_' + (document.body ? document.body.textContent.length : 0);
}
"""


class PageWaits:
    """Load-completion protocol built from validator primitives."""

    def __init__(self, page: Page, validator: PageValidator):
        self.page = page
        self.validator = validator

    async def wait_for_complete_page_load(self):
        try:
            await self.page.wait_for_load_state('networkidle', timeout=NETWORK_IDLE_TIMEOUT)
        except PlaywrightTimeoutError:
            logger.info("networkidle timeout, continuing")
        try:
            await self.page.wait_for_load_state('domcontentloaded', timeout=DOM_CONTENT_TIMEOUT)
        except PlaywrightTimeoutError:
            logger.info("domcontentloaded timeout, continuing")
        try:
            await self.validator.wait_for_images()
            await self.wait_for_fonts()
            await self.wait_for_animations()
            await self.validator.trigger_lazy_loading()
            await self.wait_for_page_stability()
        except PlaywrightError as e:
            logger.warning(f"Page load wait interrupted: {e}")

    async def wait_for_complete_page_load_with_validation(self) -> ValidationReport:
        await self.wait_for_complete_page_load()
        return await self.validator.validate_content_loaded()

    async def wait_for_fonts(self):
        await self.page.evaluate(WAIT_FOR_FONTS_JS)

    async def wait_for_animations(self):
        try:
            await self.page.evaluate(WAIT_FOR_ANIMATIONS_JS, ANIMATION_CEILING)
        except PlaywrightError as e:
            logger.debug(f"Animation wait interrupted: {e}")
        await self.page.wait_for_timeout(200)

    async def wait_for_page_stability(self) -> bool:
        previous = None
        stable = 0
        for _ in range(STABILITY_MAX_SAMPLES):
            sample = await self.page.evaluate(STABILITY_SAMPLE_JS)
            if sample == previous:
                stable += 1
                if stable >= STABILITY_REQUIRED:
                    return True
            else:
                stable = 0
            previous = sample
            await self.page.wait_for_timeout(STABILITY_INTERVAL)
        logger.debug("Page did not stabilise within the sample ceiling")
        return False
