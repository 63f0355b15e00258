# changes.py
import logging
from typing import Any, Dict, Optional

from playwright.async_api import Page

from .models import ChangeReport, DiscoveredElement
from .options import CaptureOptions

logger = logging.getLogger(__name__)

# Absolute thresholds; anything above counts as a real change
DOM_SIZE_THRESHOLD = 50
VISIBLE_COUNT_THRESHOLD = 2
TEXT_LENGTH_THRESHOLD = 50
HIDDEN_COUNT_THRESHOLD = 1
MAIN_CONTENT_THRESHOLD = 100

SNAPSHOT_JS = """
() => {
    const selectedNodes = Array.from(document.querySelectorAll(
        '[aria-selected="true"], [aria-pressed="true"], [aria-expanded="true"], .active, .selected, [data-state="active"], [data-state="open"], details[open]'
    ));
    const main = document.querySelector('main, [role="main"], .main-content, #main, .content');
    return {
        domSize: document.documentElement.innerHTML.length,
        visibleCount: Array.from(document.querySelectorAll('*')).filter(el => {
            const r = el.getBoundingClientRect();
            if (r.width === 0 || r.height === 0) return false;
            const s = getComputedStyle(el);
            return s.display !== 'none' && s.visibility !== 'hidden' && s.opacity !== '0';
        }).length,
        imageCount: document.querySelectorAll('img').length,
        textLength: document.body ? document.body.textContent.length : 0,
        selectedCount: selectedNodes.length,
        selectedSignature: selectedNodes.slice(0, 20).map(el =>
            el.tagName + ':' + (el.textContent || '').trim().slice(0, 30)).join('|'),
        hiddenCount: document.querySelectorAll(
            '[style*="display: none"], [style*="display:none"], [style*="visibility: hidden"], [hidden]'
        ).length,
        mainContentLength: main ? main.textContent.length : 0,
        modalCount: Array.from(document.querySelectorAll(
            '[role="dialog"], [aria-modal="true"], .modal, .overlay, .popup, dialog[open]'
        )).filter(el => {
            const r = el.getBoundingClientRect();
            return r.width > 0 && r.height > 0;
        }).length,
        scrollY: window.scrollY,
        url: location.href
    };
}
"""


def compare_metrics(before: Dict[str, Any], after: Dict[str, Any]) -> ChangeReport:
    """Threshold comparison of two metric snapshots."""
    report = ChangeReport(
        dom_size_delta=after['domSize'] - before['domSize'],
        visible_count_delta=after['visibleCount'] - before['visibleCount'],
        selected_count_delta=after['selectedCount'] - before['selectedCount'],
        text_length_delta=after['textLength'] - before['textLength'],
        new_image_count=max(0, after['imageCount'] - before['imageCount']),
        hidden_count_delta=after['hiddenCount'] - before['hiddenCount'],
        main_content_delta=after.get('mainContentLength', 0) - before.get('mainContentLength', 0),
        modal_count_delta=after.get('modalCount', 0) - before.get('modalCount', 0),
    )
    report.url_changed = after.get('url') != before.get('url')
    report.selection_changed = (
        report.selected_count_delta != 0
        or after.get('selectedSignature') != before.get('selectedSignature')
    )
    report.dom_changed = abs(report.dom_size_delta) > DOM_SIZE_THRESHOLD
    report.visibility_changed = abs(report.visible_count_delta) > VISIBLE_COUNT_THRESHOLD
    report.text_changed = (
        abs(report.text_length_delta) > TEXT_LENGTH_THRESHOLD
        or abs(report.main_content_delta) > MAIN_CONTENT_THRESHOLD
    )
    report.style_changed = abs(report.hidden_count_delta) > HIDDEN_COUNT_THRESHOLD
    report.significant_change = any((
        report.url_changed,
        report.selection_changed,
        report.dom_changed,
        report.visibility_changed,
        report.text_changed,
        report.style_changed,
        report.new_image_count > 0,
    ))
    return report


class ChangeDetector:
    def __init__(self, page: Page, options: CaptureOptions):
        self.page = page
        self.options = options

    async def snapshot(self) -> Dict[str, Any]:
        return await self.page.evaluate(SNAPSHOT_JS)

    async def diff(self, before: Dict[str, Any], element: Optional[DiscoveredElement] = None) -> ChangeReport:
        after = await self.snapshot()
        report = compare_metrics(before, after)
        label = element.selector if element else 'page'
        if report.significant_change:
            logger.info(
                f"Content changed after {label}: dom {report.dom_size_delta:+d}, "
                f"text {report.text_length_delta:+d}, visible {report.visible_count_delta:+d}, "
                f"url_changed={report.url_changed}, selection_changed={report.selection_changed}"
            )
        else:
            logger.debug(f"No significant change after {label}")
        return report
