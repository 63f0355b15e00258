# orchestrator.py
import logging
from typing import Any, Dict, Optional, Union

from playwright.async_api import Page

from .changes import ChangeDetector
from .dedupe import ImageDeduplicationService
from .discovery import ElementDiscovery
from .env import EnvironmentGuard
from .interaction import InteractionEngine
from .models import (
    CaptureReport, CaptureResult, CaptureState, InteractionOutcome, RunContext, element_signature,
)
from .options import CaptureOptions, build_options
from .regions import RegionLocator
from .screenshotter import Screenshotter
from .utils import format_duration
from .validator import PageValidator
from .waits import PageWaits

logger = logging.getLogger(__name__)

IDLE_ROUNDS_LIMIT = 2


class InteractiveContentCapture:
    """Captures a page's resting state and its interactive variants.

    One instance per page. The page must already be navigated to the URL
    to capture; the instance owns all per-run state in a RunContext.
    """

    def __init__(self, page: Page, options: Union[CaptureOptions, Dict[str, Any], None] = None):
        self.page = page
        self.options = options if isinstance(options, CaptureOptions) else build_options(options)
        self.ctx = RunContext()
        self.report = CaptureReport()

        self.env = EnvironmentGuard(page)
        self.validator = PageValidator(page, self.options)
        self.waits = PageWaits(page, self.validator)
        self.changes = ChangeDetector(page, self.options)
        self.regions = RegionLocator(page, self.options)
        self.screenshotter = Screenshotter(page, self.options, self.validator, self.ctx)
        self.discovery = ElementDiscovery(page, self.options, self.env)
        self.engine = InteractionEngine(
            page, self.options, self.env, self.waits, self.changes,
            self.regions, self.screenshotter, self.ctx,
        )
        self.deduplicator = ImageDeduplicationService(
            similarity_threshold=self.options.dedupe_similarity_threshold,
            hash_size=self.options.dedupe_hash_size,
            keep_policy=self.options.dedupe_keep_policy,
        )

    def _set_state(self, state: CaptureState):
        if self.ctx.state is not CaptureState.FAILED:
            logger.debug(f"Capture state {self.ctx.state.value} -> {state.value}")
            self.ctx.state = state

    def _budget_exhausted(self) -> Optional[str]:
        if self.ctx.attempted_interactions >= self.options.max_interactions:
            return f"interaction budget of {self.options.max_interactions} reached"
        if len(self.ctx.screenshots) >= self.options.max_screenshots:
            return f"screenshot budget of {self.options.max_screenshots} reached"
        if self.ctx.elapsed_ms() >= self.options.max_processing_time:
            return f"time budget of {format_duration(self.options.max_processing_time)} reached"
        return None

    async def run(self) -> CaptureResult:
        logger.info(f"Starting interactive capture: {self.page.url}")
        try:
            await self.env.init()
            await self.waits.wait_for_complete_page_load_with_validation()
            await self.engine.capture_baseline_state()
            await self.screenshotter.take('baseline', force=True, tags=['baseline'])
            self._set_state(CaptureState.BASELINE_CAPTURED)
            await self._interaction_loop()
        except Exception as e:
            logger.error(f"Interactive capture failed on {self.page.url}: {e}")
            self.ctx.state = CaptureState.FAILED
            self.report.error = str(e)

        await self._finalize()
        return CaptureResult(screenshots=list(self.ctx.screenshots), report=self.report)

    async def _interaction_loop(self):
        idle_rounds = 0
        while True:
            reason = self._budget_exhausted()
            if reason:
                logger.info(f"Stopping: {reason}")
                return
            if self.ctx.discovery_rounds >= self.options.max_discovery_rounds:
                logger.info(f"Stopping after {self.ctx.discovery_rounds} discovery rounds")
                return

            self._set_state(CaptureState.DISCOVERING)
            self.ctx.discovery_rounds += 1
            elements = await self.discovery.discover_interactive_elements()
            if not elements:
                logger.info("No interactive elements found")
                return
            self.engine.remember_markers(elements)

            fresh = [e for e in elements if element_signature(e) not in self.ctx.processed_signatures]
            if not fresh:
                idle_rounds += 1
                logger.info(f"Discovery round {self.ctx.discovery_rounds} found nothing new")
                if idle_rounds >= IDLE_ROUNDS_LIMIT:
                    return
                continue
            idle_rounds = 0
            self.ctx.discovered.extend(fresh)

            self._set_state(CaptureState.INTERACTING)
            for element in fresh:
                reason = self._budget_exhausted()
                if reason:
                    logger.info(f"Stopping: {reason}")
                    return
                signature = element_signature(element)
                if signature in self.ctx.processed_signatures:
                    continue
                self.ctx.processed_signatures.add(signature)
                self.ctx.attempted_interactions += 1
                logger.info(
                    f"Interaction {self.ctx.attempted_interactions}/{self.options.max_interactions}: "
                    f"{element.category.value} '{element.text[:40]}' ({element.selector})"
                )
                entry = await self.engine.interact_with_retry(element, self.ctx.attempted_interactions)
                if entry.outcome is InteractionOutcome.SUCCESS:
                    self.ctx.successful_interactions += 1

    async def _finalize(self):
        self._set_state(CaptureState.FINALIZING)
        if len(self.ctx.screenshots) < self.options.final_screenshot_threshold:
            try:
                await self.engine.restore_baseline_state()
                await self.screenshotter.take('final', force=True, tags=['final'])
            except Exception as e:
                logger.warning(f"Final screenshot failed: {e}")

        before = len(self.ctx.screenshots)
        unique, dedup_report = self.deduplicator.deduplicate(self.ctx.screenshots)
        self.ctx.screenshots[:] = unique
        self._set_state(CaptureState.DEDUPLICATED)

        self.report.discovered_elements = len(self.ctx.discovered)
        self.report.attempted_interactions = self.ctx.attempted_interactions
        self.report.successful_interactions = self.ctx.successful_interactions
        self.report.screenshots_before_dedup = before
        self.report.total_screenshots = len(unique)
        self.report.unique_elements_processed = len(self.ctx.processed_signatures)
        self.report.discovery_rounds = self.ctx.discovery_rounds
        self.report.state = self.ctx.state.value
        self.report.deduplication = dedup_report
        self.report.history = [entry.to_dict() for entry in self.ctx.history]
        logger.info(
            f"Capture finished in {format_duration(self.ctx.elapsed_ms())}: "
            f"{self.report.successful_interactions}/{self.report.attempted_interactions} interactions, "
            f"{before} -> {len(unique)} screenshots"
        )

    def get_capture_report(self) -> CaptureReport:
        return self.report
