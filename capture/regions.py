# regions.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from playwright.async_api import Page, Error as PlaywrightError

from .models import DiscoveredElement
from .options import CaptureOptions

logger = logging.getLogger(__name__)

TAB_ACTIVATED_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    const text = (el.textContent || '').trim().toLowerCase();
    const selected =
        el.getAttribute('aria-selected') === 'true' ||
        el.getAttribute('aria-pressed') === 'true' ||
        el.getAttribute('data-state') === 'active' ||
        /(^|\\s)(active|selected)(\\s|$)/i.test(String(el.className || ''));
    const active = document.querySelector(
        '[role="tab"][aria-selected="true"], .tab.active, .tab.selected, .tab-button.active, [aria-pressed="true"], [data-state="active"]'
    );
    const activeText = active ? (active.textContent || '').trim().toLowerCase() : '';
    return selected || (!!activeText && activeText === text);
}
"""

ANCHOR_TARGET_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    let id = null;
    const href = el.getAttribute('href') || '';
    if (href.startsWith('#') && href.length > 1) id = href.slice(1);
    if (!id) id = (el.getAttribute('data-target') || '').replace(/^#/, '') || null;
    if (!id) id = el.getAttribute('aria-controls') || null;
    if (!id) return null;
    const target = document.getElementById(id) || document.querySelector(`[name="${CSS.escape(id)}"]`);
    if (!target) return { id, rect: null };
    const r = target.getBoundingClientRect();
    if (r.width === 0 || r.height === 0) return { id, rect: null };
    return {
        id,
        rect: {
            x: Math.max(0, r.left + window.scrollX),
            y: Math.max(0, r.top + window.scrollY),
            width: r.width,
            height: r.height
        }
    };
}
"""

TAB_PANEL_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    const sizeable = (n) => {
        const s = getComputedStyle(n), r = n.getBoundingClientRect();
        return s.display !== 'none' && s.visibility !== 'hidden' && r.height > 160 && r.width > 200;
    };
    let panel = null;
    let source = null;
    const ctrl = el.getAttribute('aria-controls');
    if (ctrl) {
        const candidate = document.getElementById(ctrl);
        if (candidate && sizeable(candidate)) { panel = candidate; source = 'aria-controls'; }
    }
    if (!panel) {
        panel = Array.from(document.querySelectorAll('[role="tabpanel"]')).find(sizeable) || null;
        if (panel) source = 'tabpanel-role';
    }
    if (!panel) {
        let node = el.closest('section, article, main, div') || el.parentElement;
        for (let i = 0; i < 5 && node && !panel; i++) {
            let sib = node.nextElementSibling;
            while (sib) {
                if (sizeable(sib)) { panel = sib; source = 'sibling'; break; }
                sib = sib.nextElementSibling;
            }
            node = node.parentElement;
        }
    }
    if (!panel) return null;
    const r = panel.getBoundingClientRect();
    return {
        source,
        rect: {
            x: Math.max(0, r.left + window.scrollX),
            y: Math.max(0, r.top + window.scrollY),
            width: r.width,
            height: r.height
        }
    };
}
"""


@dataclass
class Region:
    kind: str  # anchor | tabpanel
    rect: Dict[str, float]
    target: Optional[str] = None

    @property
    def tags(self):
        return ['anchor'] if self.kind == 'anchor' else ['tabs', 'tabpanel']


def clip_for_rect(rect: Dict[str, float], viewport: Optional[Dict[str, int]], options: CaptureOptions) -> Dict[str, int]:
    """Padded clip, width bounded by the viewport and height by the region limits."""
    pad = options.region_padding
    max_width = viewport['width'] if viewport else rect['width'] + pad * 2
    return {
        'x': max(0, int(rect['x']) - pad),
        'y': max(0, int(rect['y']) - pad),
        'width': int(min(max_width, rect['width'] + pad * 2)),
        'height': int(min(options.region_max_height,
                          max(options.region_min_height, rect['height'] + pad * 2))),
    }


class RegionLocator:
    """Finds the DOM region an interacted element is tied to."""

    def __init__(self, page: Page, options: CaptureOptions):
        self.page = page
        self.options = options

    async def wait_for_tab_activation(self, element: DiscoveredElement, timeout: int) -> bool:
        try:
            await self.page.wait_for_function(TAB_ACTIVATED_JS, arg=element.selector, timeout=timeout)
            return True
        except PlaywrightError:
            logger.debug(f"Tab did not report activation: {element.selector}")
            return False

    async def get_anchor_target(self, selector: str) -> Optional[Dict[str, Any]]:
        return await self.page.evaluate(ANCHOR_TARGET_JS, selector)

    async def get_tab_panel(self, selector: str) -> Optional[Dict[str, Any]]:
        return await self.page.evaluate(TAB_PANEL_JS, selector)

    async def locate(self, element: DiscoveredElement, tab_like: bool) -> Optional[Region]:
        anchor = await self.get_anchor_target(element.selector)
        if anchor and anchor.get('rect'):
            logger.debug(f"Anchor target #{anchor['id']} for {element.selector}")
            return Region('anchor', anchor['rect'], anchor['id'])
        if tab_like:
            panel = await self.get_tab_panel(element.selector)
            if panel and panel.get('rect'):
                logger.debug(f"Tab panel ({panel.get('source')}) for {element.selector}")
                return Region('tabpanel', panel['rect'], panel.get('source'))
        return None
