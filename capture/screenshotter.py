# screenshotter.py
import logging
from datetime import datetime
from typing import Dict, List, Optional

from playwright.async_api import Page, Error as PlaywrightError

from .models import RunContext, ScreenshotRecord
from .options import CaptureOptions
from .validator import PageValidator

logger = logging.getLogger(__name__)


class Screenshotter:
    """Full-page or clipped capture gated by the validator's quality score."""

    def __init__(self, page: Page, options: CaptureOptions, validator: PageValidator, ctx: RunContext):
        self.page = page
        self.options = options
        self.validator = validator
        self.ctx = ctx

    @property
    def budget_left(self) -> int:
        return max(0, self.options.max_screenshots - len(self.ctx.screenshots))

    async def take(
        self,
        name: str,
        force: bool = False,
        tags: Optional[List[str]] = None,
        clip: Optional[Dict[str, int]] = None,
        significant_change: Optional[bool] = None,
    ) -> Optional[ScreenshotRecord]:
        if not self.budget_left:
            logger.info(f"Screenshot budget exhausted, skipping {name}")
            return None
        if not force and not await self.validator.should_take_screenshot():
            return None
        try:
            if clip:
                # clip is in document coordinates, which requires full_page
                buffer = await self.page.screenshot(type='png', full_page=True, clip=clip)
            else:
                buffer = await self.page.screenshot(type='png', full_page=True)
        except PlaywrightError as e:
            logger.error(f"Failed to take screenshot {name}: {e}")
            return None

        record = ScreenshotRecord(
            filename=f"{name}.png",
            timestamp=datetime.now().isoformat(),
            buffer=buffer,
            size=len(buffer),
            tags=list(tags or []),
            crop_rect=dict(clip) if clip else None,
            significant_change=significant_change,
        )
        self.ctx.screenshots.append(record)
        logger.info(f"Screenshot saved: {record.filename}{' (region)' if clip else ''}")
        return record
