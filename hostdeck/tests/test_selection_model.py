from hostdeck.models.selection import SelectionModel
from hostdeck.tests.fakes import file, folder


def _display():
    # 6 rows, a directory at index 3
    return [
        file("/f0"),
        file("/f1"),
        file("/f2"),
        folder("/d3"),
        file("/f4"),
        file("/f5"),
    ]


def test_range_select_skips_directories_and_keeps_outside_items():
    display = _display()
    sel = SelectionModel()
    sel.toggle(display[0])

    added = sel.select_range(display, 2, 5)

    assert [e.path for e in added] == ["/f2", "/f4", "/f5"]
    assert sel.paths == ["/f0", "/f2", "/f4", "/f5"]
    assert "/d3" not in sel


def test_range_select_is_order_independent_and_deduplicates():
    display = _display()
    sel = SelectionModel()
    sel.select_range(display, 4, 1)
    sel.select_range(display, 0, 2)
    assert sorted(sel.paths) == ["/f0", "/f1", "/f2", "/f4"]
    assert len(sel) == 4


def test_extend_to_uses_anchor():
    display = _display()
    sel = SelectionModel()
    sel.toggle(display[1])
    sel.extend_to(display, 4)
    assert sel.paths == ["/f1", "/f2", "/f4"]


def test_select_all_toggles():
    display = [file("/a"), file("/b"), folder("/d"), file("/c")]
    sel = SelectionModel()

    assert sel.select_all(display)
    assert sorted(sel.paths) == ["/a", "/b", "/c"]
    assert sel.all_selected(display)
    assert not sel.some_selected(display)

    assert not sel.select_all(display)
    assert len(sel) == 0


def test_select_all_without_files_is_noop():
    display = [folder("/d1"), folder("/d2")]
    sel = SelectionModel()
    assert not sel.select_all(display)
    assert len(sel) == 0
    assert not sel.all_selected(display)


def test_directories_are_never_selected():
    sel = SelectionModel()
    d = folder("/d")
    assert not sel.toggle(d)
    assert not sel.select_for_details(d)
    assert not sel.is_multi_select_mode


def test_select_for_details_replaces_and_reclick_clears():
    a, b = file("/a"), file("/b")
    sel = SelectionModel()
    sel.toggle(a)
    sel.toggle(b)

    assert sel.select_for_details(a)
    assert sel.paths == ["/a"]

    assert not sel.select_for_details(a)
    assert len(sel) == 0


def test_derived_flags_follow_the_set():
    display = [file("/a"), file("/b")]
    sel = SelectionModel()
    assert not sel.is_multi_select_mode
    sel.toggle(display[0])
    assert sel.is_multi_select_mode
    assert sel.some_selected(display)
    sel.toggle(display[1])
    assert sel.all_selected(display)
    sel.toggle(display[0])
    sel.toggle(display[1])
    assert not sel.is_multi_select_mode


def test_retain_drops_missing_entries():
    sel = SelectionModel()
    sel.toggle(file("/a", size=1))
    sel.toggle(file("/b"))
    sel.retain([file("/a", size=99), folder("/b")])
    assert sel.paths == ["/a"]
    assert sel.entries[0].size == 99


def test_extend_to_without_anchor_toggles_the_row():
    display = _display()
    sel = SelectionModel()

    assert [e.path for e in sel.extend_to(display, 2)] == ["/f2"]
    assert sel.paths == ["/f2"]
    assert sel.anchor == "/f2"

    # A second shift-click now ranges from the first
    sel.extend_to(display, 5)
    assert sel.paths == ["/f2", "/f4", "/f5"]


def test_extend_to_moves_anchor_to_clicked_row():
    display = _display()
    sel = SelectionModel()
    sel.toggle(display[0])
    sel.extend_to(display, 1)
    assert sel.anchor == "/f1"

    sel.extend_to(display, 2)
    assert sel.paths == ["/f0", "/f1", "/f2"]
    assert sel.anchor == "/f2"


def test_extend_to_with_stale_anchor_toggles():
    display = _display()
    sel = SelectionModel()
    sel.anchor = "/gone"
    sel.extend_to(display, 4)
    assert sel.paths == ["/f4"]
