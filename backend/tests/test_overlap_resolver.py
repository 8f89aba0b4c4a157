from models.timeline_models import MediaKind, TimelineItem
from operators.overlap_resolver import find_overlaps, resolve_overlaps


def make_item(item_id: str, start: int, duration: int) -> TimelineItem:
    return TimelineItem(
        item_id=item_id,
        kind=MediaKind.VIDEO,
        src=f"media://{item_id}",
        start_frame=start,
        duration_frames=duration,
    )


class TestResolveOverlaps:
    def test_no_collision_no_adjustments(self):
        items = [make_item("a", 0, 10), make_item("b", 20, 10)]

        assert resolve_overlaps(items, make_item("x", 10, 10)) == []

    def test_touching_intervals_do_not_collide(self):
        items = [make_item("a", 0, 10)]

        assert resolve_overlaps(items, make_item("x", 10, 5)) == []

    def test_later_item_is_pushed_to_placed_end(self):
        items = [make_item("a", 20, 30)]

        adjustments = resolve_overlaps(items, make_item("x", 10, 20))

        assert len(adjustments) == 1
        adjustment = adjustments[0]
        assert adjustment.item_id == "a"
        assert (adjustment.old_start, adjustment.old_duration) == (20, 30)
        assert (adjustment.new_start, adjustment.new_duration) == (30, 30)

    def test_earlier_item_is_shrunk_to_placed_start(self):
        items = [make_item("a", 0, 30)]

        adjustments = resolve_overlaps(items, make_item("x", 10, 10))

        assert adjustments[0].new_start == 0
        assert adjustments[0].new_duration == 10

    def test_shrink_never_goes_below_one_frame(self):
        items = [make_item("a", 10, 30)]

        adjustments = resolve_overlaps(items, make_item("x", 10, 5))

        assert adjustments[0].new_start == 10
        assert adjustments[0].new_duration == 1

    def test_placed_item_is_ignored(self):
        placed = make_item("x", 0, 10)

        assert resolve_overlaps([placed], placed) == []

    def test_is_pure(self):
        items = [make_item("a", 0, 30), make_item("b", 40, 10)]
        before = [item.model_dump() for item in items]

        resolve_overlaps(items, make_item("x", 5, 40))

        assert [item.model_dump() for item in items] == before

    def test_single_pass_can_leave_residual_overlap(self):
        items = [make_item("a", 10, 10), make_item("b", 20, 10)]

        adjustments = resolve_overlaps(items, make_item("x", 0, 15))

        assert [a.item_id for a in adjustments] == ["a"]
        assert adjustments[0].new_start == 15

        pushed = make_item("a", 15, 10)
        assert find_overlaps([pushed, items[1]]) == [("a", "b")]


class TestFindOverlaps:
    def test_empty(self):
        assert find_overlaps([]) == []

    def test_adjacent_items_do_not_overlap(self):
        items = [make_item("a", 0, 10), make_item("b", 10, 10)]

        assert find_overlaps(items) == []

    def test_reports_pairs_in_start_order(self):
        items = [make_item("c", 25, 10), make_item("a", 0, 30), make_item("b", 20, 10)]

        assert find_overlaps(items) == [("a", "b"), ("a", "c"), ("b", "c")]
