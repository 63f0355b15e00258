"""
領域キャプチャのテスト
"""
import os
import sys

import pytest

# プロジェクトルートをPythonパスに追加
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class TestClipForRect:
    """clip_for_rectのテスト"""

    def test_padding_and_min_height(self):
        """余白を足し、高さは最小値まで広げる"""
        from capture.options import build_options
        from capture.regions import clip_for_rect

        clip = clip_for_rect({'x': 100, 'y': 2000, 'width': 600, 'height': 100}, {'width': 1440, 'height': 900},
                             build_options())
        assert clip == {'x': 84, 'y': 1984, 'width': 632, 'height': 420}

    def test_width_and_max_height_clamped(self):
        """幅はビューポート、高さは最大値で制限"""
        from capture.options import build_options
        from capture.regions import clip_for_rect

        clip = clip_for_rect({'x': 0, 'y': 5, 'width': 2000, 'height': 5000}, {'width': 1440, 'height': 900},
                             build_options())
        assert clip['x'] == 0
        assert clip['y'] == 0
        assert clip['width'] == 1440
        assert clip['height'] == 1400

    def test_custom_limits(self):
        """オプションで制限値を変更"""
        from capture.options import build_options
        from capture.regions import clip_for_rect

        options = build_options({'region_padding': 0, 'region_min_height': 100, 'region_max_height': 200})
        clip = clip_for_rect({'x': 10, 'y': 10, 'width': 50, 'height': 150}, None, options)
        assert clip == {'x': 10, 'y': 10, 'width': 50, 'height': 150}


class TestRegionLocator:
    """RegionLocatorのテスト"""

    def element(self, category='navigation'):
        from capture.models import DiscoveredElement, ElementCategory

        return DiscoveredElement('a.jump', ElementCategory(category), 'anchor-link', 'Section 2', 95)

    @pytest.mark.asyncio
    async def test_anchor_target_wins(self, make_page):
        """アンカー先の領域を返す"""
        from capture.options import build_options
        from capture.regions import RegionLocator, ANCHOR_TARGET_JS, TAB_PANEL_JS

        rect = {'x': 0, 'y': 1200, 'width': 800, 'height': 600}
        page = make_page({
            ANCHOR_TARGET_JS: {'id': 'section2', 'rect': rect},
            TAB_PANEL_JS: {'source': 'tabpanel-role', 'rect': {'x': 0, 'y': 0, 'width': 10, 'height': 10}},
        })
        region = await RegionLocator(page, build_options()).locate(self.element(), tab_like=True)
        assert region.kind == 'anchor'
        assert region.target == 'section2'
        assert region.rect == rect
        assert region.tags == ['anchor']

    @pytest.mark.asyncio
    async def test_tab_panel_for_tab_like(self, make_page):
        """タブ系要素はタブパネル"""
        from capture.options import build_options
        from capture.regions import RegionLocator, ANCHOR_TARGET_JS, TAB_PANEL_JS

        rect = {'x': 0, 'y': 400, 'width': 1200, 'height': 500}
        page = make_page({ANCHOR_TARGET_JS: None, TAB_PANEL_JS: {'source': 'aria-controls', 'rect': rect}})
        locator = RegionLocator(page, build_options())
        region = await locator.locate(self.element('tab'), tab_like=True)
        assert region.kind == 'tabpanel'
        assert region.tags == ['tabs', 'tabpanel']

        assert await locator.locate(self.element('explicit'), tab_like=False) is None

    @pytest.mark.asyncio
    async def test_anchor_without_rect(self, make_page):
        """アンカー先が見えない場合は領域なし"""
        from capture.options import build_options
        from capture.regions import RegionLocator, ANCHOR_TARGET_JS

        page = make_page({ANCHOR_TARGET_JS: {'id': 'hidden', 'rect': None}})
        assert await RegionLocator(page, build_options()).locate(self.element(), tab_like=False) is None

    @pytest.mark.asyncio
    async def test_tab_activation_timeout(self, make_page):
        """タブの選択状態待ちはタイムアウトでFalse"""
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError
        from capture.options import build_options
        from capture.regions import RegionLocator, TAB_ACTIVATED_JS

        page = make_page()
        locator = RegionLocator(page, build_options())
        assert await locator.wait_for_tab_activation(self.element('tab'), 100) is True
        page.wait_for_function.assert_awaited_with(TAB_ACTIVATED_JS, arg='a.jump', timeout=100)

        page.wait_for_function.side_effect = PlaywrightTimeoutError('timeout')
        assert await locator.wait_for_tab_activation(self.element('tab'), 100) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
