from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from reptrack.common.config import TrackerSettings
from reptrack.counter.pose_core import LandmarkFrame


def ema_alpha(window: int) -> float:
    """alpha = 2/(N+1), clamped so windows of 0 or 1 pass values through unchanged."""
    return min(1.0, 2.0 / (max(0, window) + 1))


@dataclass(frozen=True)
class SignalSample:
    raw_value: Optional[float]
    smoothed_value: Optional[float]
    timestamp: float


@dataclass(frozen=True)
class VisibilityResult:
    all_visible: bool
    min_visibility: float


ALL_VISIBLE = VisibilityResult(True, 1.0)
NOT_VISIBLE = VisibilityResult(False, 0.0)


@dataclass(frozen=True)
class GateResult:
    primary: VisibilityResult
    secondary: VisibilityResult
    allowed: bool


class SignalConditioner:
    """
    Per-signal EMA smoothing. A None sample yields None and clears that signal's history,
    so the next real value seeds the average again instead of being dragged toward
    a pre-occlusion value.
    """

    def __init__(self, settings: TrackerSettings):
        self.settings = settings
        self._ema: Dict[str, float] = {}

    def condition(self, signal_id: str, raw: Optional[float], ts: float = 0.0) -> SignalSample:
        if raw is None:
            self._ema.pop(signal_id, None)
            return SignalSample(None, None, ts)
        if not self.settings.is_smoothing_enabled:
            return SignalSample(raw, raw, ts)
        prev = self._ema.get(signal_id)
        if prev is None:
            smoothed = raw
        else:
            alpha = ema_alpha(self.settings.smoothing_window)
            smoothed = alpha * raw + (1 - alpha) * prev
        self._ema[signal_id] = smoothed
        return SignalSample(raw, smoothed, ts)

    def reset(self, signal_id: Optional[str] = None):
        if signal_id is None:
            self._ema.clear()
        else:
            self._ema.pop(signal_id, None)


def check_visibility(frame: Optional[LandmarkFrame], names: Iterable[str], cutoff: float) -> VisibilityResult:
    """Unknown or missing joints make the whole set invisible with min_visibility 0."""
    names = list(names)
    if not names:
        return ALL_VISIBLE
    if frame is None:
        return NOT_VISIBLE
    lowest = 1.0
    for name in names:
        vis = frame.visibility(name)
        if vis is None:
            return NOT_VISIBLE
        lowest = min(lowest, vis)
    return VisibilityResult(lowest >= cutoff, lowest)


def visibility_gate(
    frame: Optional[LandmarkFrame],
    primary: Iterable[str],
    secondary: Iterable[str],
    settings: TrackerSettings,
) -> GateResult:
    cutoff = settings.visibility_cutoff
    primary = list(primary)
    if settings.require_all_landmarks and not primary:
        prim = NOT_VISIBLE
    else:
        prim = check_visibility(frame, primary, cutoff)
    if settings.require_secondary_landmarks:
        sec = check_visibility(frame, secondary, cutoff)
    else:
        sec = ALL_VISIBLE
    allowed = True
    if settings.require_all_landmarks and not prim.all_visible:
        allowed = False
    if settings.require_secondary_landmarks and not sec.all_visible:
        allowed = False
    return GateResult(prim, sec, allowed)
