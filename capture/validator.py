# validator.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from playwright.async_api import Page, Error as PlaywrightError

from .constants import IMAGE_LOAD_TIMEOUT, LAZY_SCROLL_STEP, QUALITY_THRESHOLD
from .options import CaptureOptions

logger = logging.getLogger(__name__)

VALIDATE_CONTENT_JS = """
() => {
    const issues = [];
    const images = Array.from(document.querySelectorAll('img'));
    const unloaded = images.filter(i => !i.complete || i.naturalWidth === 0 || i.naturalHeight === 0);
    if (unloaded.length) issues.push({ type: 'unloaded_images', count: unloaded.length });

    const loading = document.querySelectorAll(
        '[class*="loading"], [class*="skeleton"], [class*="placeholder"], [class*="spinner"], [data-loading]'
    );
    if (loading.length) issues.push({ type: 'loading_placeholders', count: loading.length });

    const areas = document.querySelectorAll('main, [role="main"], .content, .main-content, article, section');
    const empties = Array.from(areas).filter(a =>
        a.textContent.trim().length < 50 && a.querySelectorAll('img,video').length === 0);
    if (empties.length) issues.push({ type: 'empty_content_areas', count: empties.length });

    const errors = document.querySelectorAll(
        '[class*="error"], [class*="failed"], [class*="404"], .not-found, [data-error]'
    );
    if (errors.length) issues.push({ type: 'error_elements', count: errors.length });

    const lazy = document.querySelectorAll('[data-lazy], [loading="lazy"], [class*="lazy"]');
    if (lazy.length) issues.push({ type: 'lazy_elements', count: lazy.length });

    return { issues, totalImages: images.length, loadedImages: images.length - unloaded.length };
}
"""

RELOAD_BROKEN_IMAGES_JS = """
() => {
    const bad = Array.from(document.querySelectorAll('img')).filter(i => !i.complete || i.naturalWidth === 0);
    bad.forEach(img => {
        const src = img.src;
        if (src) { img.src = ''; setTimeout(() => (img.src = src), 100); }
    });
    return bad.length;
}
"""

QUALITY_SCORE_JS = """
(opts) => {
    let score = 100;
    const penalties = [];

    const imgs = Array.from(document.querySelectorAll('img'));
    const unloaded = imgs.filter(i => !i.complete || i.naturalWidth === 0 || i.naturalHeight === 0);
    if (imgs.length > 3 && (imgs.length - unloaded.length) / imgs.length < 0.8) {
        score -= 30; penalties.push('unloaded_images');
    }

    const loading = document.querySelectorAll(
        '[class*="loading"], [class*="skeleton"], [class*="spinner"], [data-loading="true"]'
    );
    const visibleLoading = Array.from(loading).filter(el => {
        const r = el.getBoundingClientRect();
        const s = getComputedStyle(el);
        return r.width > 0 && r.height > 0 && s.display !== 'none' && s.visibility !== 'hidden';
    });
    if (visibleLoading.length) { score -= 20; penalties.push('loading_placeholders'); }

    if (opts.avoidOverlay) {
        const vw = innerWidth, vh = innerHeight, viewport = vw * vh;
        let covered = 0;
        for (const el of document.querySelectorAll('body *')) {
            const s = getComputedStyle(el);
            if (!s || s.visibility === 'hidden' || s.display === 'none' || s.opacity === '0') continue;
            if (!['fixed', 'absolute', 'sticky'].includes(s.position)) continue;
            const r = el.getBoundingClientRect();
            if (r.width < vw * 0.4 || r.height < vh * 0.3) continue;
            if (Number(s.zIndex || 0) < 10) continue;
            const backdrop = (s.backdropFilter && s.backdropFilter !== 'none') ||
                /overlay|backdrop|modal|drawer/i.test(String(el.className || '')) ||
                (s.backgroundColor && s.backgroundColor !== 'rgba(0, 0, 0, 0)');
            if (!backdrop) continue;
            covered += Math.min(r.width, vw) * Math.min(r.height, vh);
        }
        if (viewport > 0 && covered / viewport > opts.overlayThreshold) {
            score -= 60; penalties.push('overlay');
        }
    }

    if (document.body.textContent.trim().length < 100) { score -= 25; penalties.push('low_text'); }

    const visible = Array.from(document.querySelectorAll('*')).filter(el => {
        const r = el.getBoundingClientRect();
        const s = getComputedStyle(el);
        return r.width > 0 && r.height > 0 && s.display !== 'none' && s.visibility !== 'hidden';
    });
    if (visible.length < 10) { score -= 50; penalties.push('few_elements'); }

    return { score: Math.max(0, score), penalties };
}
"""

WAIT_FOR_IMAGES_JS = """
async (timeout) => {
    const imgs = Array.from(document.querySelectorAll('img'));
    await Promise.all(imgs.map(img => new Promise(res => {
        if (img.complete) return res();
        img.addEventListener('load', res, { once: true });
        img.addEventListener('error', res, { once: true });
        setTimeout(res, timeout);
    })));
    return imgs.length;
}
"""

PAGE_GEOMETRY_JS = """
() => ({
    height: Math.max(document.body ? document.body.scrollHeight : 0,
                     document.documentElement ? document.documentElement.scrollHeight : 0),
    viewport: window.innerHeight
})
"""


@dataclass
class ValidationReport:
    is_valid: bool
    issues: List[Dict[str, Any]] = field(default_factory=list)
    total_images: int = 0
    loaded_images: int = 0
    recovered: bool = False


class PageValidator:
    """Decides whether the page is ready enough to photograph."""

    def __init__(self, page: Page, options: CaptureOptions):
        self.page = page
        self.options = options

    async def validate_content_loaded(self) -> ValidationReport:
        try:
            raw = await self.page.evaluate(VALIDATE_CONTENT_JS)
        except PlaywrightError as e:
            logger.warning(f"Content validation failed: {e}")
            return ValidationReport(is_valid=False, issues=[{'type': 'evaluation_error', 'count': 1}])

        report = ValidationReport(
            is_valid=not raw['issues'],
            issues=raw['issues'],
            total_images=raw['totalImages'],
            loaded_images=raw['loadedImages'],
        )
        if not report.is_valid:
            logger.debug(f"Content issues: {report.issues}")
            report.recovered = await self._attempt_content_recovery(report.issues)
        return report

    async def _attempt_content_recovery(self, issues: List[Dict[str, Any]]) -> bool:
        attempted = False
        lazy_done = False
        for issue in issues:
            try:
                if issue['type'] == 'unloaded_images':
                    await self.page.evaluate(RELOAD_BROKEN_IMAGES_JS)
                    await self.page.wait_for_timeout(2000)
                    await self.wait_for_images()
                    attempted = True
                elif issue['type'] in ('loading_placeholders', 'lazy_elements') and not lazy_done:
                    await self.trigger_lazy_loading()
                    lazy_done = attempted = True
            except PlaywrightError as e:
                logger.debug(f"Recovery for {issue['type']} failed: {e}")
        return attempted

    async def quality_score(self) -> Dict[str, Any]:
        try:
            return await self.page.evaluate(QUALITY_SCORE_JS, {
                'avoidOverlay': self.options.avoid_overlay_screenshots,
                'overlayThreshold': self.options.overlay_coverage_threshold,
            })
        except PlaywrightError as e:
            logger.warning(f"Quality scoring failed: {e}")
            return {'score': 0, 'penalties': ['evaluation_error']}

    async def should_take_screenshot(self) -> bool:
        result = await self.quality_score()
        if result['score'] < QUALITY_THRESHOLD:
            logger.info(f"Skipping screenshot, quality score {result['score']} ({', '.join(result['penalties'])})")
            return False
        return True

    async def wait_for_images(self, timeout: int = IMAGE_LOAD_TIMEOUT):
        try:
            await self.page.evaluate(WAIT_FOR_IMAGES_JS, timeout)
        except PlaywrightError as e:
            logger.debug(f"Image wait interrupted: {e}")

    async def trigger_lazy_loading(self):
        geometry = await self.page.evaluate(PAGE_GEOMETRY_JS)
        step = max(1, int(geometry['viewport'] * LAZY_SCROLL_STEP))
        y = 0
        while y < geometry['height']:
            await self.page.evaluate('(y) => window.scrollTo(0, y)', y)
            await self.page.wait_for_timeout(250)
            y += step
        await self.page.evaluate('() => window.scrollTo(0, 0)')
        await self.page.wait_for_timeout(300)
        await self.wait_for_images()
