"""Keyframe animation of item properties.

Keyframes are stored per item id, sorted by frame. Numeric values are
interpolated between the surrounding keyframes using the easing of the
earlier one; string values step.
"""

from __future__ import annotations

from models.timeline_models import Easing, Keyframe


def apply_easing(t: float, easing: Easing) -> float:
    if easing == Easing.EASE_IN:
        return t * t
    if easing == Easing.EASE_OUT:
        return 1 - (1 - t) * (1 - t)
    if easing == Easing.EASE_IN_OUT:
        return 2 * t * t if t < 0.5 else -1 + (4 - 2 * t) * t
    return t


def interpolate(start: float | str, end: float | str, progress: float, easing: Easing) -> float | str:
    if isinstance(start, str) or isinstance(end, str):
        return start
    return start + (end - start) * apply_easing(progress, easing)


class KeyframeManager:
    def __init__(self) -> None:
        self._keyframes: dict[str, list[Keyframe]] = {}

    def add_keyframe(self, item_id: str, keyframe: Keyframe) -> None:
        """Add a keyframe, replacing one on the same frame and property."""
        frames = [
            kf for kf in self._keyframes.get(item_id, [])
            if not (kf.frame == keyframe.frame and kf.property == keyframe.property)
        ]
        frames.append(keyframe)
        frames.sort(key=lambda kf: kf.frame)
        self._keyframes[item_id] = frames

    def remove_keyframe(self, item_id: str, frame: int, property: str) -> bool:
        frames = self._keyframes.get(item_id)
        if not frames:
            return False
        for index, kf in enumerate(frames):
            if kf.frame == frame and kf.property == property:
                frames.pop(index)
                return True
        return False

    def get_keyframes(self, item_id: str, property: str | None = None) -> list[Keyframe]:
        frames = self._keyframes.get(item_id, [])
        if property is None:
            return list(frames)
        return [kf for kf in frames if kf.property == property]

    def clear_item(self, item_id: str) -> None:
        self._keyframes.pop(item_id, None)

    def item_ids(self) -> list[str]:
        return list(self._keyframes.keys())

    def export(self) -> dict[str, list[Keyframe]]:
        """Copy of every item's keyframes, keyed by item id."""
        return {
            item_id: [kf.model_copy() for kf in frames]
            for item_id, frames in self._keyframes.items()
            if frames
        }

    def load(self, keyframes: dict[str, list[Keyframe]]) -> None:
        """Replace all keyframes with `keyframes`."""
        self._keyframes = {}
        for item_id, frames in keyframes.items():
            for kf in frames:
                self.add_keyframe(item_id, kf.model_copy())

    def get_value(self, item_id: str, frame: int, property: str) -> float | str | None:
        """Value of `property` at `frame`, or None when it is not animated."""
        frames = self.get_keyframes(item_id, property)
        if not frames:
            return None

        before = [kf for kf in frames if kf.frame <= frame]
        after = [kf for kf in frames if kf.frame > frame]
        if not before:
            return after[0].value
        if before[-1].frame == frame or not after:
            return before[-1].value

        previous, following = before[-1], after[0]
        progress = (frame - previous.frame) / (following.frame - previous.frame)
        return interpolate(previous.value, following.value, progress, previous.easing)
