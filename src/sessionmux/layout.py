"""Pane layout policy.

The layout of a window depends only on how many panes it declares:

=====  ==========================================================
count  layout
=====  ==========================================================
1      no split
2      one side-by-side split
3      side-by-side split, right half split top/bottom
4      top/bottom split, each half split side by side (2x2 tiles)
5+     repeated splits, re-tiled after each one
=====  ==========================================================
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Split:
    """Split the pane at ``pane`` (index into the panes created so far)."""
    pane: int
    horizontal: bool
    retile: bool = False


@dataclass
class LayoutPlan:
    pane_count: int
    splits: List[Split] = field(default_factory=list)
    final_layout: Optional[str] = None


def plan_layout(pane_count: int) -> LayoutPlan:
    if pane_count <= 1:
        return LayoutPlan(pane_count)
    if pane_count == 2:
        return LayoutPlan(2, [Split(0, horizontal=True)])
    if pane_count == 3:
        return LayoutPlan(3, [Split(0, horizontal=True), Split(1, horizontal=False)])
    if pane_count == 4:
        # After the first split panes are [top, bottom]; splitting top inserts
        # its right half at index 1, so the bottom pane moves to index 2.
        return LayoutPlan(4, [
            Split(0, horizontal=False),
            Split(0, horizontal=True),
            Split(2, horizontal=True),
        ], final_layout="tiled")
    return LayoutPlan(
        pane_count,
        [Split(0, horizontal=False, retile=True) for _ in range(pane_count - 1)],
        final_layout="tiled",
    )
