# options.py
import re
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .constants import *


@dataclass
class CaptureOptions:
    # Core
    max_interactions: int = MAX_INTERACTIONS
    max_screenshots: int = MAX_SCREENSHOTS
    interaction_delay: int = INTERACTION_DELAY
    change_detection_timeout: int = CHANGE_DETECTION_TIMEOUT
    scroll_pause_time: int = SCROLL_PAUSE_TIME
    skip_social_elements: bool = True
    max_processing_time: int = MAX_PROCESSING_TIME
    max_interactions_per_type: int = MAX_INTERACTIONS_PER_TYPE
    max_discovery_rounds: int = MAX_DISCOVERY_ROUNDS
    final_screenshot_threshold: int = FINAL_SCREENSHOT_THRESHOLD

    # Tabs/sections
    tab_post_click_wait: int = TAB_POST_CLICK_WAIT
    tabs_first: bool = True
    force_screenshot_on_tabs: bool = True

    # Dedupe
    dedupe_similarity_threshold: float = DEDUPE_SIMILARITY_THRESHOLD
    dedupe_keep_policy: str = 'first-captured'
    dedupe_hash_size: int = DEDUPE_HASH_SIZE

    # Overlay/unfinished content guardrails
    avoid_overlay_screenshots: bool = True
    overlay_coverage_threshold: float = OVERLAY_COVERAGE_THRESHOLD

    # Region capture sizing
    region_min_height: int = REGION_MIN_HEIGHT
    region_max_height: int = REGION_MAX_HEIGHT
    region_padding: int = REGION_PADDING

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _snake(key: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def build_options(user: Optional[Dict[str, Any]] = None) -> CaptureOptions:
    """Merge user settings (snake_case or camelCase keys) over the defaults."""
    known = {f.name for f in fields(CaptureOptions)}
    values = {}
    for key, value in (user or {}).items():
        name = _snake(key)
        if name not in known:
            logger.warning(f"Ignoring unknown capture option: {key}")
            continue
        if value is not None:
            values[name] = value
    options = CaptureOptions(**values)
    if options.dedupe_keep_policy not in ('largest', 'first-captured', 'first-found'):
        raise ValueError(f"Unknown dedupe_keep_policy: {options.dedupe_keep_policy}")
    return options


def load_options(path: Union[str, Path], overrides: Optional[Dict[str, Any]] = None) -> CaptureOptions:
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Options file {path} must contain a mapping")
    data = dict(data.get('capture', data))
    data.update(overrides or {})
    return build_options(data)
