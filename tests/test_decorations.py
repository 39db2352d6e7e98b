"""Tests for the keyed decoration cache."""

from __future__ import annotations

from conftest import FakeEditor

from symbol_masks.core.decorations import DecorationCache, DecorationRange, DecorationSpec


class TestDecorationCache:
    """Test handle lifetime against a recording host."""

    def test_no_host(self) -> None:
        cache = DecorationCache()
        assert cache.get_or_create("k", DecorationSpec()) is None
        assert "k" not in cache

    def test_get_or_create_reuses_handle(self, fake_editor: FakeEditor) -> None:
        cache = DecorationCache(fake_editor)
        first = cache.get_or_create("k", DecorationSpec(text="≡", hide_source=True))
        second = cache.get_or_create("k", DecorationSpec(text="other"))
        assert first == second
        assert fake_editor.calls.count(("create", first)) == 1
        assert fake_editor.specs[first].text == "≡"

    def test_render(self, fake_editor: FakeEditor) -> None:
        cache = DecorationCache(fake_editor)
        handle = cache.get_or_create("k", DecorationSpec())
        cache.render("k", [DecorationRange(1, 3)])
        assert fake_editor.ranges[handle] == [DecorationRange(1, 3)]

    def test_render_unknown_key_is_noop(self, fake_editor: FakeEditor) -> None:
        DecorationCache(fake_editor).render("missing", [DecorationRange(0, 1)])
        assert fake_editor.calls == []

    def test_evict_clears_then_disposes(self, fake_editor: FakeEditor) -> None:
        cache = DecorationCache(fake_editor)
        handle = cache.get_or_create("k", DecorationSpec())
        cache.render("k", [DecorationRange(0, 1)])
        cache.evict("k")
        assert fake_editor.calls[-2:] == [("set", handle), ("dispose", handle)]
        assert "k" not in cache

    def test_evict_all_except(self, fake_editor: FakeEditor) -> None:
        cache = DecorationCache(fake_editor)
        for key in ("a", "b", "c"):
            cache.get_or_create(key, DecorationSpec())
        evicted = cache.evict_all_except({"b"})
        assert sorted(evicted) == ["a", "c"]
        assert cache.keys() == ["b"]
        assert len(fake_editor.live_handles) == 1

    def test_set_host_clears_old_host(self) -> None:
        old, new = FakeEditor(), FakeEditor()
        cache = DecorationCache(old)
        cache.get_or_create("k", DecorationSpec())
        cache.set_host(new)
        assert old.live_handles == []
        assert len(cache) == 0
        assert cache.host is new

    def test_clear(self, fake_editor: FakeEditor) -> None:
        cache = DecorationCache(fake_editor)
        cache.get_or_create("a", DecorationSpec())
        cache.get_or_create("b", DecorationSpec())
        cache.clear()
        assert list(cache) == []
        assert fake_editor.live_handles == []

    def test_forget_all_skips_host(self, fake_editor: FakeEditor) -> None:
        cache = DecorationCache(fake_editor)
        cache.get_or_create("a", DecorationSpec())
        cache.forget_all()
        assert len(cache) == 0
        assert fake_editor.disposed == []
