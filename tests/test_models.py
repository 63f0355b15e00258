"""
データモデルとエラー型のテスト
"""
import os
import sys

import pytest

# プロジェクトルートをPythonパスに追加
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class TestDiscoveredElement:
    """DiscoveredElementのテスト"""

    def test_from_dict_camel_case(self):
        """ブラウザ側の結果から生成"""
        from capture.models import DiscoveredElement, ElementCategory

        element = DiscoveredElement.from_dict({
            'selector': '[data-capture-id="ic-abc"]',
            'category': 'modal-trigger',
            'subtype': 'modal-trigger',
            'text': 'x' * 150,
            'priority': 70,
            'groupKey': 'button.open-dialog',
            'markerId': 'ic-abc',
            'fingerprint': {'tag': 'button', 'text': 'Open', 'path': 'body > button:nth-of-type(1)'},
        })
        assert element.category is ElementCategory.MODAL_TRIGGER
        assert len(element.text) == 100
        assert element.group_key == 'button.open-dialog'
        assert element.marker_id == 'ic-abc'
        assert element.fingerprint['tag'] == 'button'

    def test_group_key_defaults_to_selector(self):
        """groupKeyがない場合はセレクタ"""
        from capture.models import DiscoveredElement

        element = DiscoveredElement.from_dict({'selector': '#tab-1', 'category': 'tab', 'text': 'One', 'priority': 98})
        assert element.group_key == '#tab-1'

    def test_cap_key(self):
        """上限のキーはクラスで似て見える要素だけが共有する"""
        from capture.models import DiscoveredElement

        def build(selector, group_key, strategy):
            return DiscoveredElement.from_dict({'selector': selector, 'category': 'explicit', 'text': 'x',
                                                'priority': 96, 'groupKey': group_key, 'strategy': strategy})

        assert build('#posts > article:nth-of-type(2) > button:nth-of-type(1)', 'button.read-more', 'path').cap_key \
            == 'button.read-more'
        assert build('#save', 'button.btn', 'id').cap_key == '#save'
        assert build('[data-qa="buy"]', 'button.btn', 'test-id').cap_key == '[data-qa="buy"]'
        assert build('body > a:nth-of-type(3)', 'a', 'path').cap_key == 'body > a:nth-of-type(3)'


class TestElementSignature:
    """element_signatureのテスト"""

    def test_marker_value_blanked(self):
        """生成マーカーの値はシグネチャに含まれない"""
        from capture.models import DiscoveredElement, ElementCategory, element_signature

        a = DiscoveredElement('[data-capture-id="ic-1"]', ElementCategory.GENERIC_CLICKABLE, 'onclick', 'Show  More', 60)
        b = DiscoveredElement('[data-capture-id="ic-2"]', ElementCategory.GENERIC_CLICKABLE, 'onclick', 'show more', 60)
        assert element_signature(a) == element_signature(b)
        assert element_signature(a) == 'generic-clickable_show more_[data-capture-id="*"]'

    def test_category_distinguishes(self):
        """カテゴリが違えば別シグネチャ"""
        from capture.models import DiscoveredElement, ElementCategory, element_signature

        a = DiscoveredElement('#x', ElementCategory.TAB, 'tab', 'X', 98)
        b = DiscoveredElement('#x', ElementCategory.EXPLICIT, 'button', 'X', 96)
        assert element_signature(a) != element_signature(b)


class TestOutcomes:
    """InteractionOutcomeのテスト"""

    def test_retryable(self):
        """リトライ対象の結果"""
        from capture.models import InteractionOutcome

        assert InteractionOutcome.NOT_FOUND.retryable
        assert InteractionOutcome.FAILED.retryable
        assert not InteractionOutcome.NOT_VISIBLE.retryable
        assert not InteractionOutcome.EXTERNAL.retryable
        assert not InteractionOutcome.SUCCESS.retryable

    def test_history_entry_to_dict(self):
        """履歴エントリの辞書化"""
        from capture.models import InteractionHistoryEntry, InteractionOutcome

        entry = InteractionHistoryEntry(1, '#a', 'tab', 'A', InteractionOutcome.ABANDONED, attempts=2)
        data = entry.to_dict()
        assert data['outcome'] == 'abandoned'
        assert data['attempts'] == 2
        assert data['linked_screenshot'] is None


class TestCaptureError:
    """エラー型のテスト"""

    def test_str(self):
        """メッセージの書式"""
        from capture.errors import NavigationError, CaptureError

        error = NavigationError('NAV_STATUS', 'navigate', 'HTTP 404', 'https://example.com/missing')
        assert isinstance(error, CaptureError)
        assert str(error) == '[NAV_STATUS@navigate] HTTP 404 (url=https://example.com/missing)'

    def test_raise_and_catch(self):
        """例外として送出できる"""
        from capture.errors import SessionError, CaptureError

        with pytest.raises(CaptureError) as exc_info:
            raise SessionError('LAUNCH', 'launch', 'no browser')
        assert exc_info.value.code == 'LAUNCH'
        assert 'url=' not in str(exc_info.value)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
