import itertools
import unittest

from drivetriage.models import FilterMode, Mark, Page, RemoteItem, TriageState
from drivetriage.visibility import is_visible, visible


def _page(*ids: str) -> Page:
    return Page(index=0, items=[RemoteItem(id=i, name=i) for i in ids])


# Expected visibility per (item kind, filter mode) when hide_processed is off.
# Kinds: keep, decline, soft (touched, unmarked), fresh (untouched, unmarked),
# keep_soft (soft-touched, then explicitly kept).
_SHOWN = {
    FilterMode.ALL: {"keep", "decline", "soft", "fresh", "keep_soft"},
    FilterMode.KEPT: {"keep", "keep_soft"},
    FilterMode.DECLINED: {"decline"},
    FilterMode.UNMARKED: {"fresh"},
}


class TestVisibility(unittest.TestCase):
    def _state(self, mode: FilterMode, hide: bool) -> TriageState:
        return TriageState(
            marks={"keep": Mark.KEEP, "decline": Mark.DECLINE, "keep_soft": Mark.KEEP},
            soft_touched={"soft", "keep_soft"},
            filter_mode=mode,
            hide_processed=hide,
        )

    def test_every_mode_and_hide_combination(self) -> None:
        page = _page("fresh", "keep", "soft", "decline", "keep_soft")
        for mode, hide in itertools.product(FilterMode, (False, True)):
            with self.subTest(mode=mode, hide=hide):
                shown = [it.id for it in visible(page, self._state(mode, hide))]
                expected = [i for i in page.item_ids if i in _SHOWN[mode]]
                if hide:
                    expected = [i for i in expected if i == "fresh"]
                self.assertEqual(shown, expected)

    def test_order_is_preserved(self) -> None:
        page = _page("z", "a", "m")
        self.assertEqual([it.id for it in visible(page, TriageState())], ["z", "a", "m"])

    def test_kept_item_disappears_when_hiding_processed(self) -> None:
        page = _page("abc", "other")
        state = TriageState(marks={"abc": Mark.KEEP}, filter_mode=FilterMode.KEPT)
        self.assertEqual([it.id for it in visible(page, state)], ["abc"])

        state.hide_processed = True
        self.assertEqual(visible(page, state), [])

    def test_unmark_reevaluates(self) -> None:
        state = TriageState(marks={"a": Mark.DECLINE}, filter_mode=FilterMode.UNMARKED)
        self.assertFalse(is_visible("a", state))
        del state.marks["a"]
        self.assertTrue(is_visible("a", state))


if __name__ == "__main__":
    unittest.main()
