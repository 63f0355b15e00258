"""
スクリーンショット撮影と同意ダイアログ処理のテスト
"""
import os
import sys

import pytest

# プロジェクトルートをPythonパスに追加
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def build_screenshotter(page, score=100, **overrides):
    from capture.models import RunContext
    from capture.options import build_options
    from capture.screenshotter import Screenshotter
    from capture.validator import PageValidator, QUALITY_SCORE_JS

    page.responses[QUALITY_SCORE_JS] = {'score': score, 'penalties': [] if score >= 70 else ['overlay']}
    options = build_options(overrides)
    ctx = RunContext()
    return Screenshotter(page, options, PageValidator(page, options), ctx), ctx


class TestScreenshotter:
    """Screenshotterのテスト"""

    @pytest.mark.asyncio
    async def test_full_page(self, make_page):
        """全画面の撮影記録"""
        page = make_page()
        shooter, ctx = build_screenshotter(page)

        record = await shooter.take('baseline', tags=['baseline'])
        assert record.filename == 'baseline.png'
        assert record.size == len(record.buffer)
        assert record.tags == ['baseline']
        assert ctx.screenshots == [record]
        page.screenshot.assert_awaited_with(type='png', full_page=True)

    @pytest.mark.asyncio
    async def test_clipped(self, make_page):
        """領域指定の撮影"""
        page = make_page()
        shooter, ctx = build_screenshotter(page)
        clip = {'x': 0, 'y': 1184, 'width': 832, 'height': 632}

        record = await shooter.take('interaction_001', force=True, tags=['anchor'], clip=clip)
        assert record.crop_rect == clip
        page.screenshot.assert_awaited_with(type='png', full_page=True, clip=clip)

    @pytest.mark.asyncio
    async def test_quality_gate(self, make_page):
        """品質スコアが低ければ撮影しない、強制なら撮影"""
        page = make_page()
        shooter, ctx = build_screenshotter(page, score=30)

        assert await shooter.take('blocked') is None
        assert await shooter.take('forced', force=True) is not None
        assert [s.filename for s in ctx.screenshots] == ['forced.png']

    @pytest.mark.asyncio
    async def test_budget(self, make_page):
        """上限に達したら強制でも撮影しない"""
        page = make_page()
        shooter, ctx = build_screenshotter(page, max_screenshots=2)

        assert await shooter.take('a')
        assert await shooter.take('b')
        assert shooter.budget_left == 0
        assert await shooter.take('c', force=True) is None
        assert len(ctx.screenshots) == 2

    @pytest.mark.asyncio
    async def test_screenshot_error(self, make_page):
        """撮影エラーは記録なし"""
        from playwright.async_api import Error as PlaywrightError

        page = make_page()
        page.screenshot.side_effect = PlaywrightError('Target closed')
        shooter, ctx = build_screenshotter(page)
        assert await shooter.take('broken', force=True) is None
        assert ctx.screenshots == []


class TestConsentDismisser:
    """ConsentDismisserのテスト"""

    @pytest.mark.asyncio
    async def test_accept_button_clicked(self, make_page):
        """同意ボタンをクリック"""
        from capture.enhancer import ConsentDismisser, ACCEPT_CONSENT_JS, REMOVE_CONSENT_JS

        page = make_page({ACCEPT_CONSENT_JS: 'accept all', REMOVE_CONSENT_JS: 0})
        assert await ConsentDismisser(page).dismiss() is True
        page.wait_for_timeout.assert_awaited_with(500)

    @pytest.mark.asyncio
    async def test_nothing_found(self, make_page):
        """ダイアログがなければFalse"""
        from capture.enhancer import ConsentDismisser, ACCEPT_CONSENT_JS, REMOVE_CONSENT_JS

        page = make_page({ACCEPT_CONSENT_JS: None, REMOVE_CONSENT_JS: 0})
        assert await ConsentDismisser(page).dismiss() is False

    @pytest.mark.asyncio
    async def test_evaluation_error(self, make_page):
        """評価エラーは無視"""
        from playwright.async_api import Error as PlaywrightError
        from capture.enhancer import ConsentDismisser

        page = make_page()
        page.evaluate.side_effect = PlaywrightError('Execution context was destroyed')
        assert await ConsentDismisser(page).dismiss() is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
