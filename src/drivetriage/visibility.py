"""Which cached items a page view shows under the current triage state."""

from __future__ import annotations

from drivetriage.models import FilterMode, Mark, Page, RemoteItem, TriageState


def passes_filter(item_id: str, state: TriageState) -> bool:
    mode = state.filter_mode
    mark = state.marks.get(item_id)
    if mode is FilterMode.ALL:
        return True
    if mode is FilterMode.KEPT:
        return mark is Mark.KEEP
    if mode is FilterMode.DECLINED:
        return mark is Mark.DECLINE
    if mode is FilterMode.UNMARKED:
        return mark is None and item_id not in state.soft_touched
    return False


def is_visible(item_id: str, state: TriageState) -> bool:
    """Filter-mode predicate first, then the hide-processed predicate."""
    if not passes_filter(item_id, state):
        return False
    if state.hide_processed and state.is_processed(item_id):
        return False
    return True


def visible(page: Page, state: TriageState) -> list[RemoteItem]:
    """
    Order-preserving subsequence of `page.items` shown under `state`.

    Always evaluated from scratch; callers re-run it after every mark,
    filter or hide-toggle change instead of patching a previous result.
    """
    return [item for item in page.items if is_visible(item.id, state)]
