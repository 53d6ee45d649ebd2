"""
Tests for the cursor file
"""
import pytest

from indexer.cursor import CursorStore
from indexer.errors import PersistenceError


class TestCursorStore:
    def test_missing_file_loads_none(self, cursor_store):
        assert cursor_store.load() is None

    def test_save_then_load(self, cursor_store):
        cursor_store.save(12345)
        assert cursor_store.load() == 12345
        assert cursor_store.path.read_text() == "12345"

    def test_save_overwrites(self, cursor_store):
        cursor_store.save(1000)
        cursor_store.save(1001)
        assert cursor_store.load() == 1001

    def test_no_temp_file_left_behind(self, cursor_store, tmp_path):
        cursor_store.save(7)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["block.txt"]

    @pytest.mark.parametrize("raw", ["", "abc", "-5", "12x", "1.5"])
    def test_unparsable_loads_none(self, cursor_store, raw):
        cursor_store.path.write_text(raw)
        assert cursor_store.load() is None

    def test_trailing_newline_is_accepted(self, cursor_store):
        cursor_store.path.write_text("99\n")
        assert cursor_store.load() == 99

    def test_negative_value_is_refused(self, cursor_store):
        with pytest.raises(ValueError):
            cursor_store.save(-1)

    def test_unwritable_location_raises(self, tmp_path):
        store = CursorStore(tmp_path / "missing-dir" / "block.txt")
        with pytest.raises(PersistenceError):
            store.save(1)
