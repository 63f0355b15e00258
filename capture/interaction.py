# interaction.py
import logging
from enum import Enum
from typing import Optional, Tuple

from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from .changes import ChangeDetector
from .constants import *
from .env import EnvironmentGuard
from .models import (
    BaselineState, DiscoveredElement, ElementCategory, InteractionHistoryEntry,
    InteractionOutcome, RunContext, ScreenshotRecord, element_signature,
)
from .options import CaptureOptions
from .regions import RegionLocator, clip_for_rect
from .screenshotter import Screenshotter
from .utils import safe_label
from .waits import PageWaits

logger = logging.getLogger(__name__)

PROBE_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return { exists: false };
    const r = el.getBoundingClientRect();
    const group = el.closest('[role="tablist"], .tabs, .tab-list, .nav-tabs, [class*="tabs"]');
    const siblings = group ? group.querySelectorAll(
        '[role="tab"], .tab, .tab-button, button, a, [data-tab]').length : 0;
    const tabLike =
        el.getAttribute('role') === 'tab' ||
        el.hasAttribute('data-tab') ||
        ['tab', 'pill'].includes(el.getAttribute('data-toggle') || el.getAttribute('data-bs-toggle')) ||
        el.hasAttribute('aria-pressed') ||
        el.getAttribute('data-state') === 'active' ||
        (!!group && siblings >= 2);
    return {
        exists: true,
        visible: r.width > 0 && r.height > 0,
        tag: el.tagName.toLowerCase(),
        tabLike
    };
}
"""

SCROLL_INTO_VIEW_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (el) el.scrollIntoView({ block: 'center', inline: 'nearest' });
}
"""

TOGGLE_DETAILS_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    const details = el.tagName === 'DETAILS' ? el : el.closest('details');
    if (!details) return false;
    details.open = !details.open;
    return true;
}
"""

SELECT_NEXT_OPTION_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el || el.tagName !== 'SELECT' || el.options.length < 2) return false;
    el.selectedIndex = (el.selectedIndex + 1) % el.options.length;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""

DOM_CLICK_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    el.click();
    return true;
}
"""

SCROLL_POSITION_JS = "() => ({ x: window.scrollX, y: window.scrollY })"

SCROLL_TO_JS = "({ x, y }) => window.scrollTo(x, y)"

OPEN_MODAL_JS = """
() => Array.from(document.querySelectorAll('[role="dialog"], [aria-modal="true"], .modal.show, dialog[open]'))
    .some(el => { const r = el.getBoundingClientRect(); return r.width > 0 && r.height > 0; })
"""

REAPPLY_MARKERS_JS = """
({ marker, markers }) => {
    const clean = (t) => (t || '').replace(/\\s+/g, ' ').trim();
    let applied = 0;
    for (const m of markers) {
        if (document.querySelector(`[${marker}="${m.id}"]`)) continue;
        let el = null;
        try { el = document.querySelector(m.path); } catch (e) { el = null; }
        if (el && (el.tagName.toLowerCase() !== m.tag || clean(el.textContent).slice(0, 80) !== m.text)) el = null;
        if (!el) {
            el = Array.from(document.getElementsByTagName(m.tag))
                .find(n => !n.hasAttribute(marker) && clean(n.textContent).slice(0, 80) === m.text) || null;
        }
        if (el) { el.setAttribute(marker, m.id); applied++; }
    }
    return applied;
}
"""


class RetryState(Enum):
    ATTEMPT = 'attempt'
    FAILED = 'failed'
    REFRESH_BASELINE = 'refresh_baseline'
    RETRY = 'retry'
    SUCCESS = 'success'
    ABANDON = 'abandon'


class InteractionEngine:
    """Runs single element interactions and keeps the page at its baseline between them."""

    def __init__(
        self,
        page: Page,
        options: CaptureOptions,
        env: EnvironmentGuard,
        waits: PageWaits,
        changes: ChangeDetector,
        regions: RegionLocator,
        screenshotter: Screenshotter,
        ctx: RunContext,
    ):
        self.page = page
        self.options = options
        self.env = env
        self.waits = waits
        self.changes = changes
        self.regions = regions
        self.screenshotter = screenshotter
        self.ctx = ctx

    # Baseline

    async def capture_baseline_state(self) -> BaselineState:
        position = await self.page.evaluate(SCROLL_POSITION_JS)
        markers = self.ctx.baseline.markers if self.ctx.baseline else {}
        self.ctx.baseline = BaselineState(
            url=self.page.url,
            scroll_x=position['x'],
            scroll_y=position['y'],
            markers=markers,
        )
        logger.debug(f"Baseline captured at {self.ctx.baseline.url} ({position['x']}, {position['y']})")
        return self.ctx.baseline

    def remember_markers(self, elements):
        if self.ctx.baseline is None:
            return
        for element in elements:
            if element.marker_id and element.fingerprint:
                self.ctx.baseline.markers[element.marker_id] = element.fingerprint

    async def reapply_element_identifiers(self) -> int:
        baseline = self.ctx.baseline
        if baseline is None or not baseline.markers:
            return 0
        payload = [dict(fingerprint, id=marker_id) for marker_id, fingerprint in baseline.markers.items()]
        try:
            applied = await self.page.evaluate(REAPPLY_MARKERS_JS, {'marker': MARKER_ATTRIBUTE, 'markers': payload})
        except PlaywrightError as e:
            logger.warning(f"Could not reapply element markers: {e}")
            return 0
        if applied:
            logger.debug(f"Reapplied {applied} element markers")
        return applied

    async def restore_baseline_state(self):
        baseline = self.ctx.baseline
        if baseline is None:
            return
        try:
            if self.page.url != baseline.url:
                logger.info(f"Navigating back to baseline: {baseline.url}")
                await self.page.goto(baseline.url, wait_until='domcontentloaded', timeout=REFRESH_TIMEOUT)
                await self.waits.wait_for_page_stability()
                await self.reapply_element_identifiers()
            elif await self.page.evaluate(OPEN_MODAL_JS):
                await self.page.keyboard.press('Escape')
                await self.page.wait_for_timeout(300)
            await self.page.evaluate(SCROLL_TO_JS, {'x': baseline.scroll_x, 'y': baseline.scroll_y})
        except PlaywrightError as e:
            logger.warning(f"Baseline restore incomplete: {e}")

    async def refresh_to_baseline(self):
        baseline = self.ctx.baseline
        url = baseline.url if baseline else self.page.url
        logger.info(f"Refreshing page to baseline: {url}")
        try:
            await self.page.goto(url, wait_until='domcontentloaded', timeout=REFRESH_TIMEOUT)
            await self.waits.wait_for_page_stability()
            await self.reapply_element_identifiers()
            if baseline is not None:
                await self.page.evaluate(SCROLL_TO_JS, {'x': baseline.scroll_x, 'y': baseline.scroll_y})
            await self.capture_baseline_state()
        except PlaywrightError as e:
            # the retry still runs against whatever the page now shows
            logger.warning(f"Baseline refresh failed, continuing: {e}")

    # Single interaction

    async def _activate(self, element: DiscoveredElement, tag: str) -> bool:
        selector = element.selector
        if tag in ('summary', 'details'):
            if await self.page.evaluate(TOGGLE_DETAILS_JS, selector):
                return True
        if tag == 'select':
            if await self.page.evaluate(SELECT_NEXT_OPTION_JS, selector):
                return True

        locator = self.page.locator(selector)
        try:
            await locator.click(timeout=CLICK_TIMEOUT)
            return True
        except PlaywrightError as e:
            logger.debug(f"Click failed on {selector}, forcing: {e}")
        try:
            await locator.click(timeout=CLICK_TIMEOUT, force=True)
            return True
        except PlaywrightError as e:
            logger.debug(f"Forced click failed on {selector}, using DOM click: {e}")
        try:
            return bool(await self.page.evaluate(DOM_CLICK_JS, selector))
        except PlaywrightError as e:
            logger.warning(f"All click strategies failed on {selector}: {e}")
            return False

    async def _wait_after(self, element: DiscoveredElement, tab_like: bool):
        if tab_like or element.category is ElementCategory.EXPLICIT:
            await self.page.wait_for_timeout(self.options.interaction_delay)
            if tab_like:
                await self.regions.wait_for_tab_activation(element, self.options.change_detection_timeout)
                await self.page.wait_for_timeout(self.options.tab_post_click_wait)
            try:
                await self.page.wait_for_load_state('networkidle', timeout=self.options.change_detection_timeout)
            except PlaywrightTimeoutError:
                pass
        elif element.category is ElementCategory.EXPANDABLE:
            await self.waits.wait_for_animations()
        else:
            await self.page.wait_for_timeout(self.options.interaction_delay)

    async def _capture(self, element: DiscoveredElement, index: int, tab_like: bool, significant: bool) -> Optional[ScreenshotRecord]:
        name = f"interaction_{index:03d}_{element.category.value}_{safe_label(element.text, element.subtype)}"
        region = await self.regions.locate(element, tab_like)
        if region is not None:
            clip = clip_for_rect(region.rect, self.page.viewport_size, self.options)
            return await self.screenshotter.take(
                name, force=True, tags=region.tags, clip=clip, significant_change=significant,
            )
        forced = tab_like and self.options.force_screenshot_on_tabs
        if significant or forced:
            tags = ['tabs'] if tab_like else []
            return await self.screenshotter.take(name, force=forced, tags=tags, significant_change=significant)
        logger.debug(f"No screenshot for {element.selector}, nothing changed")
        return None

    async def interact_with_element(self, element: DiscoveredElement, index: int) -> Tuple[InteractionOutcome, Optional[ScreenshotRecord]]:
        selector = element.selector
        try:
            if element.category is ElementCategory.NAVIGATION and await self.env.is_external_link(selector):
                return InteractionOutcome.EXTERNAL, None

            probe = await self.page.evaluate(PROBE_JS, selector)
            if not probe or not probe.get('exists'):
                return InteractionOutcome.NOT_FOUND, None
            if not probe.get('visible'):
                return InteractionOutcome.NOT_VISIBLE, None
            tab_like = element.category is ElementCategory.TAB or bool(probe.get('tabLike'))

            before = await self.changes.snapshot()
            await self.page.evaluate(SCROLL_INTO_VIEW_JS, selector)
            await self.page.wait_for_timeout(self.options.scroll_pause_time)
            if not await self._activate(element, probe.get('tag', '')):
                return InteractionOutcome.FAILED, None

            await self._wait_after(element, tab_like)
            await self._revalidate()
            report = await self.changes.diff(before, element)
            record = await self._capture(element, index, tab_like, report.significant_change)
        except PlaywrightError as e:
            logger.warning(f"Interaction with {selector} failed: {e}")
            await self.restore_baseline_state()
            return InteractionOutcome.FAILED, None

        await self.restore_baseline_state()
        return InteractionOutcome.SUCCESS, record

    async def _revalidate(self):
        await self.waits.validator.wait_for_images()
        await self.waits.wait_for_animations()

    # Retry

    async def interact_with_retry(self, element: DiscoveredElement, index: int) -> InteractionHistoryEntry:
        signature = element_signature(element)
        state = RetryState.ATTEMPT
        attempts = 0
        outcome = InteractionOutcome.FAILED
        record = None

        while state not in (RetryState.SUCCESS, RetryState.ABANDON):
            if state in (RetryState.ATTEMPT, RetryState.RETRY):
                attempts += 1
                outcome, record = await self.interact_with_element(element, index)
                if outcome is InteractionOutcome.SUCCESS:
                    state = RetryState.SUCCESS
                elif not outcome.retryable:
                    state = RetryState.ABANDON
                elif state is RetryState.RETRY:
                    state = RetryState.ABANDON
                else:
                    state = RetryState.FAILED
            elif state is RetryState.FAILED:
                if signature in self.ctx.failed_signatures:
                    logger.info(f"Not retrying {element.selector}, it already failed once")
                    state = RetryState.ABANDON
                else:
                    self.ctx.failed_signatures.add(signature)
                    state = RetryState.REFRESH_BASELINE
            elif state is RetryState.REFRESH_BASELINE:
                await self.refresh_to_baseline()
                state = RetryState.RETRY

        if outcome.retryable and attempts > 1:
            logger.warning(f"Giving up on {element.selector} after retry ({outcome.value})")
            outcome = InteractionOutcome.ABANDONED

        entry = InteractionHistoryEntry(
            index=index,
            selector=element.selector,
            category=element.category.value,
            text=element.text,
            outcome=outcome,
            attempts=attempts,
            linked_screenshot=record.filename if record else None,
        )
        self.ctx.history.append(entry)
        return entry
