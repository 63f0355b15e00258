# discovery.py
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple

from playwright.async_api import Page

from .constants import MARKER_ATTRIBUTE
from .env import EnvironmentGuard
from .models import DiscoveredElement, ElementCategory
from .options import CaptureOptions

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 1000

CONSENT_NOISE = ('cookie', 'consent', 'gdpr')
SOCIAL_NOISE = (
    'facebook', 'twitter', 'instagram', 'linkedin', 'youtube', 'pinterest', 'tiktok',
    'share', 'tweet', 'follow us', 'subscribe', 'advertisement', 'sponsored', 'promo',
)


@dataclass(frozen=True)
class CategoryRule:
    category: ElementCategory
    priority: int
    selectors: Tuple[str, ...]


# Evaluated in order; the first rule matching an element claims it.
CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(ElementCategory.TAB, 98, (
        '[role="tab"]', '.tab', '.tab-button', '[data-tab]',
        '[data-toggle="tab"]', '[data-bs-toggle="tab"]',
    )),
    CategoryRule(ElementCategory.EXPLICIT, 96, (
        'button', 'input[type="submit"]', 'input[type="button"]', '[role="button"]',
    )),
    CategoryRule(ElementCategory.NAVIGATION, 95, ('a[href]', '[role="link"]')),
    CategoryRule(ElementCategory.EXPANDABLE, 80, (
        'details > summary', '[aria-expanded]', '.accordion', '.collapsible', '.expandable',
        '[data-toggle="collapse"]', '[data-bs-toggle="collapse"]',
    )),
    CategoryRule(ElementCategory.FORM, 75, (
        'select', 'input[type="checkbox"]', 'input[type="radio"]', 'input[type="range"]',
    )),
    CategoryRule(ElementCategory.MODAL_TRIGGER, 70, (
        '[data-toggle="modal"]', '[data-bs-toggle="modal"]', '[data-modal]',
        '.modal-trigger', '[aria-haspopup="dialog"]',
    )),
    CategoryRule(ElementCategory.GENERIC_CLICKABLE, 60, ('[onclick]', '[data-action]', '[data-click]')),
)

TAB_PRIORITY_DEMOTED = 85

DISCOVER_JS = """
(opts) => {
    const MARKER = opts.marker;
    const TEST_ATTRS = ['data-testid', 'data-test', 'data-test-id', 'data-qa', 'data-cy'];
    const STATE_CLASS = /^(active|selected|open|opened|show|shown|hidden|visible|current|focus|focused|hover|disabled|collapsed|expanded|is-|has-)/i;
    const GENERATED_CLASS = /(^css-|^sc-|^jsx-|^_|[0-9a-f]{6,}|__[a-zA-Z0-9]{5,}$|--[a-zA-Z0-9]{5,}$)/;

    const clean = (t) => (t || '').replace(/\\s+/g, ' ').trim();
    const meaningfulClasses = (el) => Array.from(el.classList || [])
        .filter(c => /^[a-zA-Z_-]/.test(c) && !STATE_CLASS.test(c) && !GENERATED_CLASS.test(c));
    const groupKeyOf = (el) => {
        const cls = meaningfulClasses(el).slice(0, 3);
        return el.tagName.toLowerCase() + (cls.length ? '.' + cls.map(c => CSS.escape(c)).join('.') : '');
    };
    const unique = (sel, el) => {
        try {
            const m = document.querySelectorAll(sel);
            return m.length === 1 && m[0] === el;
        } catch (e) { return false; }
    };
    const testIdSelector = (el) => {
        for (const a of TEST_ATTRS) {
            const v = el.getAttribute(a);
            if (v) return `[${a}="${CSS.escape(v)}"]`;
        }
        return null;
    };
    const positionalPath = (el, root) => {
        const segs = [];
        let cur = el;
        while (cur && cur !== root && cur !== document.documentElement) {
            let nth = 1, sib = cur;
            while ((sib = sib.previousElementSibling)) if (sib.tagName === cur.tagName) nth++;
            segs.unshift(`${cur.tagName.toLowerCase()}:nth-of-type(${nth})`);
            cur = cur.parentElement;
        }
        return segs.join(' > ');
    };
    const stableAncestor = (el) => {
        let n = el.parentElement;
        while (n && n !== document.body) {
            if (n.id || TEST_ATTRS.some(a => n.hasAttribute(a))) return n;
            n = n.parentElement;
        }
        return null;
    };
    const fingerprintOf = (el) => ({
        tag: el.tagName.toLowerCase(),
        text: clean(el.textContent).slice(0, 80),
        path: 'body > ' + positionalPath(el, document.body)
    });

    const buildSelector = (el) => {
        const testId = testIdSelector(el);
        if (testId && unique(testId, el)) return { selector: testId, strategy: 'test-id' };
        if (el.id) {
            const s = `#${CSS.escape(el.id)}`;
            if (unique(s, el)) return { selector: s, strategy: 'id' };
        }
        const cls = meaningfulClasses(el);
        for (let n = 1; n <= Math.min(3, cls.length); n++) {
            const s = el.tagName.toLowerCase() + '.' + cls.slice(0, n).map(c => CSS.escape(c)).join('.');
            if (unique(s, el)) return { selector: s, strategy: 'class' };
        }
        const root = stableAncestor(el);
        const rootSel = root ? (testIdSelector(root) || `#${CSS.escape(root.id)}`) : 'body';
        const path = positionalPath(el, root || document.body);
        if (path) {
            const s = `${rootSel} > ${path}`;
            if (unique(s, el)) return { selector: s, strategy: 'path' };
        }
        let id = el.getAttribute(MARKER);
        if (!id) {
            id = 'ic-' + Math.random().toString(36).slice(2, 10);
            el.setAttribute(MARKER, id);
        }
        return { selector: `[${MARKER}="${id}"]`, strategy: 'marker', markerId: id, fingerprint: fingerprintOf(el) };
    };

    const isCandidate = (el) => {
        const r = el.getBoundingClientRect();
        if (r.width === 0 || r.height === 0) return false;
        const s = getComputedStyle(el);
        return s.display !== 'none' && s.visibility !== 'hidden' && s.pointerEvents !== 'none';
    };

    const displayText = (el) => {
        let t = clean(el.innerText || el.textContent);
        if (!t) t = clean(el.getAttribute('aria-label') || el.getAttribute('title') || el.value || '');
        if (!t && ['INPUT', 'SELECT', 'TEXTAREA'].includes(el.tagName)) {
            const label = el.closest('label') || (el.id && document.querySelector(`label[for="${CSS.escape(el.id)}"]`));
            t = label ? clean(label.textContent) : clean(el.getAttribute('name') || '');
        }
        return t.slice(0, 100);
    };

    const isNoise = (el, text) => {
        const hay = [text, el.id, String(el.className || ''), el.getAttribute('aria-label') || '',
                     el.getAttribute('href') || ''].join(' ').toLowerCase();
        if (opts.consentNoise.some(p => hay.includes(p))) return true;
        if (el.closest('[id*="cookie" i], [class*="cookie" i], [id*="consent" i], [class*="consent" i]')) return true;
        return opts.skipSocial && opts.socialNoise.some(p => hay.includes(p));
    };

    const sameOrigin = (href) => {
        try {
            const url = new URL(href, location.href);
            if (!['http:', 'https:'].includes(url.protocol)) return false;
            return url.hostname.toLowerCase().replace(/^www\\./, '') === opts.currentDomain;
        } catch (e) { return false; }
    };

    const subtypeOf = (category, el, text) => {
        const t = text.toLowerCase();
        switch (category) {
            case 'tab':
                return 'tab';
            case 'explicit':
                if (el.hasAttribute('aria-expanded')) return 'disclosure';
                if (t.includes('submit') || t.includes('send')) return 'submit';
                if (t.includes('search')) return 'search';
                if (t.includes('next') || t.includes('continue')) return 'navigation';
                return 'button';
            case 'navigation':
                if (el.tagName === 'A') {
                    const raw = el.getAttribute('href') || '';
                    if (raw.startsWith('#')) return raw.length > 1 ? 'anchor-link' : null;
                    if (raw.toLowerCase().startsWith('javascript:')) return 'script-link';
                    if (!sameOrigin(el.href)) return null;
                }
                return el.closest('nav') ? 'nav-link' : 'link';
            case 'expandable':
                if (el.tagName === 'SUMMARY') return 'details';
                return el.hasAttribute('aria-expanded') ? 'aria-expandable' : 'expandable';
            case 'form':
                return (el.type || el.tagName).toLowerCase();
            case 'modal-trigger':
                return 'modal-trigger';
            default:
                return el.hasAttribute('onclick') ? 'onclick' : 'data-action';
        }
    };

    const out = [];
    const seen = new Set();
    for (const rule of opts.rules) {
        for (const sel of rule.selectors) {
            let nodes;
            try { nodes = document.querySelectorAll(sel); } catch (e) { continue; }
            for (const el of nodes) {
                if (out.length >= opts.maxCandidates) break;
                if (seen.has(el)) continue;
                if (el.closest('[' + MARKER + '-ignore]')) continue;
                if (!isCandidate(el)) continue;
                const text = displayText(el);
                if (isNoise(el, text)) { seen.add(el); continue; }
                const subtype = subtypeOf(rule.category, el, text);
                seen.add(el);
                if (!subtype) continue;
                const built = buildSelector(el);
                out.push(Object.assign({
                    category: rule.category,
                    subtype,
                    text,
                    priority: rule.priority,
                    groupKey: groupKeyOf(el)
                }, built));
            }
        }
    }
    return out;
}
"""


def rank_and_cap(candidates: Iterable[DiscoveredElement], max_per_type: int, limit: int) -> List[DiscoveredElement]:
    """Cap repeated look-alike elements per category, then order by priority and text."""
    counts: Dict[Tuple[ElementCategory, str], int] = defaultdict(int)
    selectors = set()
    kept = []
    for element in candidates:
        # one entry per selector; a repeated selector would act on the same node twice
        if element.selector in selectors:
            logger.debug(f"Dropping duplicate selector {element.selector}")
            continue
        selectors.add(element.selector)
        key = (element.category, element.cap_key)
        if counts[key] >= max_per_type:
            continue
        counts[key] += 1
        kept.append(element)
    kept.sort(key=lambda e: (-e.priority, e.text.lower()))
    return kept[:limit]


class ElementDiscovery:
    def __init__(self, page: Page, options: CaptureOptions, env: EnvironmentGuard):
        self.page = page
        self.options = options
        self.env = env

    def _rules_payload(self) -> List[Dict[str, Any]]:
        payload = []
        for rule in CATEGORY_RULES:
            priority = rule.priority
            if rule.category is ElementCategory.TAB and not self.options.tabs_first:
                priority = TAB_PRIORITY_DEMOTED
            payload.append({
                'category': rule.category.value,
                'priority': priority,
                'selectors': list(rule.selectors),
            })
        return payload

    async def discover_interactive_elements(self) -> List[DiscoveredElement]:
        raw = await self.page.evaluate(DISCOVER_JS, {
            'marker': MARKER_ATTRIBUTE,
            'rules': self._rules_payload(),
            'currentDomain': self.env.current_domain,
            'skipSocial': self.options.skip_social_elements,
            'consentNoise': list(CONSENT_NOISE),
            'socialNoise': list(SOCIAL_NOISE),
            'maxCandidates': MAX_CANDIDATES,
        })
        candidates = [DiscoveredElement.from_dict(item) for item in raw]
        elements = rank_and_cap(
            candidates,
            self.options.max_interactions_per_type,
            self.options.max_interactions,
        )
        by_category = defaultdict(int)
        for element in elements:
            by_category[element.category.value] += 1
        logger.info(f"Discovered {len(candidates)} candidates, kept {len(elements)}: {dict(by_category)}")
        return elements
