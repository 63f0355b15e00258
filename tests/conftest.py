"""
テスト共通のフィクスチャ
"""
import io
import os
import sys
from unittest.mock import AsyncMock, Mock

import pytest

# プロジェクトルートをPythonパスに追加
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def build_page(responses=None, url='https://example.com/', status=200):
    """page.evaluateをスクリプト定数で振り分けるPlaywright Pageのモック

    responsesの値が呼び出し可能なら引数を渡して結果を返す。
    """
    page = AsyncMock()
    page.url = url
    page.viewport_size = {'width': 1440, 'height': 900}
    page.responses = dict(responses or {})

    async def evaluate(script, arg=None):
        value = page.responses.get(script)
        if callable(value):
            return value(arg)
        return value

    async def goto(target, **kwargs):
        page.url = target
        return Mock(status=status)

    page.evaluate.side_effect = evaluate
    page.goto.side_effect = goto
    page.screenshot.return_value = b'\x89PNG fake'
    page.locator = Mock(return_value=AsyncMock())
    page.keyboard = AsyncMock()
    return page


@pytest.fixture
def make_page():
    """Pageモックのファクトリ"""
    return build_page


def png_bytes(pattern='left', size=64, compress_level=6):
    """パターン画像をPNGにエンコードする"""
    from PIL import Image, ImageDraw

    image = Image.new('RGB', (size, size), 'black')
    draw = ImageDraw.Draw(image)
    if pattern == 'left':
        draw.rectangle([0, 0, size // 2 - 1, size - 1], fill='white')
    elif pattern == 'top':
        draw.rectangle([0, 0, size - 1, size // 2 - 1], fill='white')
    elif pattern == 'center':
        draw.rectangle([size // 4, size // 4, size * 3 // 4 - 1, size * 3 // 4 - 1], fill='white')
    buffer = io.BytesIO()
    image.save(buffer, format='PNG', compress_level=compress_level)
    return buffer.getvalue()


@pytest.fixture
def make_png():
    """PNGバイト列のファクトリ"""
    return png_bytes
