"""
Circular Value Selector.

Maps pointer geometry on a circular dial to a bounded, quantized value and back.

Angles are degrees with 0 at the top of the dial, increasing clockwise, in
screen coordinates (y grows downward):

    pointer above centre -> 0
    pointer right        -> 90
    pointer below        -> 180
    pointer left         -> 270

The displayed needle angle is always re-derived from the quantized value, so
what is drawn and what is reported can never disagree.
"""

import asyncio
import logging
import math
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

Point = tuple[float, float]

FULL_TURN = 360.0


# =============================================================================
# Pure Geometry
# =============================================================================


def round_half_away(x: float) -> int:
    """Round to nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def validate_dial(max_value: int, step_size: int, min_value: int = 0) -> None:
    """Raise ValueError unless step_size evenly divides the dial range."""
    span = max_value - min_value
    if span <= 0:
        raise ValueError(f"max_value ({max_value}) must be greater than min_value ({min_value})")
    if step_size <= 0:
        raise ValueError(f"step_size must be positive, got {step_size}")
    if span % step_size:
        raise ValueError(f"step_size {step_size} does not divide range {min_value}..{max_value}")


def angle_from_pointer(pointer: Point, center: Point) -> float:
    """Dial angle in [0, 360) for a pointer position relative to the dial centre."""
    dx = pointer[0] - center[0]
    dy = pointer[1] - center[1]
    if dx == 0 and dy == 0:
        return 0.0

    degrees = math.degrees(math.atan2(dy, dx)) + 90.0
    if degrees < 0:
        degrees += FULL_TURN
    # -1e-14 + 360 rounds to exactly 360.0
    if degrees >= FULL_TURN:
        degrees = 0.0
    return degrees


def quantize(angle_degrees: float, max_value: int, step_size: int, min_value: int = 0) -> int:
    """
    Snap a dial angle to the nearest step value.

    A full turn covers min_value..max_value. The result saturates at the
    bounds: an angle just under 360 gives max_value, a tiny positive angle
    gives min_value, never a wrapped or negative value.
    """
    span = max_value - min_value
    steps = round_half_away(angle_degrees / FULL_TURN * span / step_size)
    value = min_value + steps * step_size
    return max(min_value, min(max_value, value))


def angle_from_value(value: int, max_value: int, min_value: int = 0) -> float:
    """
    Needle angle for a value. Inverse of quantize on the step grid.

    max_value maps to 360.0, which is drawn at the top like 0.
    """
    clamped = max(min_value, min(max_value, value))
    return (clamped - min_value) / (max_value - min_value) * FULL_TURN


def snap_value(value: int, max_value: int, step_size: int, min_value: int = 0) -> int:
    """Clamp a value into range and onto the step grid."""
    clamped = max(min_value, min(max_value, value))
    steps = round_half_away((clamped - min_value) / step_size)
    return min(max_value, min_value + steps * step_size)


def signed_delta(current: float, previous: float) -> float:
    """Smallest signed rotation from previous to current, in (-180, 180]."""
    return ((current - previous + 540.0) % FULL_TURN) - 180.0


# =============================================================================
# Stateful Selector
# =============================================================================


class SelectorState(BaseModel):
    """Snapshot of a dial for renderers."""

    model_config = ConfigDict(frozen=True)

    raw_angle_degrees: float = Field(ge=0.0, le=FULL_TURN)
    quantized_value: int
    step_size: int
    min_value: int = 0
    max_value: int
    interaction_enabled: bool = True


SelectorListener = Callable[[SelectorState], None]


class CircularValueSelector:
    """
    Transient input state for one dial while its step is displayed.

    Drag events are ignored until interaction is enabled. Hosts usually
    construct the selector disabled and call enable_after() so the dial does
    not move while the screen transition is still running.
    """

    def __init__(
        self,
        max_value: int,
        step_size: int,
        min_value: int = 0,
        value: int | None = None,
        center: Point = (0.0, 0.0),
        hard_stops: bool = False,
        interaction_enabled: bool = True,
    ):
        validate_dial(max_value, step_size, min_value)
        self.max_value = max_value
        self.step_size = step_size
        self.min_value = min_value
        self.center = center
        self.hard_stops = hard_stops

        self._enabled = interaction_enabled
        self._dismissed = False
        self._pending_enable: asyncio.TimerHandle | None = None
        self._listeners: list[SelectorListener] = []

        # Hard-stop tracking: continuous angle in [0, 360] and last raw pointer angle
        self._cumulative = 0.0
        self._last_raw: float | None = None

        initial = min_value if value is None else value
        self.quantized_value = snap_value(initial, max_value, step_size, min_value)
        self.raw_angle_degrees = angle_from_value(self.quantized_value, max_value, min_value)
        self._cumulative = self.raw_angle_degrees

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def interaction_enabled(self) -> bool:
        return self._enabled

    @property
    def state(self) -> SelectorState:
        return SelectorState(
            raw_angle_degrees=self.raw_angle_degrees,
            quantized_value=self.quantized_value,
            step_size=self.step_size,
            min_value=self.min_value,
            max_value=self.max_value,
            interaction_enabled=self._enabled,
        )

    def subscribe(self, listener: SelectorListener) -> Callable[[], None]:
        """Register a state-changed listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    def _apply(self, value: int) -> bool:
        changed = value != self.quantized_value
        self.quantized_value = value
        self.raw_angle_degrees = angle_from_value(value, self.max_value, self.min_value)
        return changed

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def on_drag(self, pointer: Point) -> int:
        """Update from a pointer position. Returns the (possibly unchanged) value."""
        if not self._enabled:
            logger.debug("Drag ignored, dial interaction not enabled yet")
            return self.quantized_value

        raw = angle_from_pointer(pointer, self.center)
        if self.hard_stops:
            previous = self._last_raw if self._last_raw is not None else self._cumulative % FULL_TURN
            self._cumulative = max(0.0, min(FULL_TURN, self._cumulative + signed_delta(raw, previous)))
            self._last_raw = raw
            dial_degrees = self._cumulative
        else:
            dial_degrees = raw

        value = quantize(dial_degrees, self.max_value, self.step_size, self.min_value)
        if self._apply(value):
            logger.debug(f"Dial value -> {value} (pointer angle {raw:.1f})")
            self._notify()
        return self.quantized_value

    def end_drag(self) -> None:
        """Gesture finished. The next drag starts its delta from the needle."""
        self._last_raw = None
        self._cumulative = self.raw_angle_degrees

    def set_value(self, value: int) -> int:
        """Programmatic set (e.g. a loaded answer). Snaps and re-derives the angle."""
        snapped = snap_value(value, self.max_value, self.step_size, self.min_value)
        changed = self._apply(snapped)
        self._cumulative = self.raw_angle_degrees
        self._last_raw = None
        if changed:
            self._notify()
        return snapped

    # -------------------------------------------------------------------------
    # Interaction gate
    # -------------------------------------------------------------------------

    def enable_after(self, delay: float, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Enable drag interaction once, after `delay` seconds.

        Uses loop.call_later; without an explicit loop the running loop is used.
        A delay of zero or less enables immediately.
        """
        self.cancel_pending_enable()
        if self._dismissed:
            return
        if delay <= 0:
            self._enable()
            return
        loop = loop or asyncio.get_running_loop()
        self._pending_enable = loop.call_later(delay, self._enable)

    def _enable(self) -> None:
        self._pending_enable = None
        if self._dismissed or self._enabled:
            return
        self._enabled = True
        self._notify()

    def cancel_pending_enable(self) -> None:
        if self._pending_enable is not None:
            self._pending_enable.cancel()
            self._pending_enable = None

    def dismiss(self) -> None:
        """The step was left. Drops any pending enable and stops accepting drags."""
        self.cancel_pending_enable()
        self._dismissed = True
        self._enabled = False
        self._listeners.clear()
