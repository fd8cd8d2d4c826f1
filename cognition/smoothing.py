"""Hysteretic smoothing shared by both emotion classifiers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from memory.scoring import clamp_unit

SmoothingKind = Literal["blend", "hold", "switch"]


@dataclass
class SmoothingOutcome:
    label: str
    intensity: float
    kind: SmoothingKind


def smooth(
    held_label: str,
    held_intensity: float,
    new_label: str,
    new_intensity: float,
    alpha: float,
    threshold: float = 0.5,
    hold_decay: float = 0.95,
    switch_floor: float = 0.5,
) -> SmoothingOutcome:
    """Blend same-label readings; only switch labels on a strong enough reading.

    A different label below ``threshold`` keeps the held label and decays it.
    A switch always lands at ``switch_floor`` or above.
    """
    if new_label == held_label:
        blended = held_intensity * (1.0 - alpha) + new_intensity * alpha
        return SmoothingOutcome(held_label, clamp_unit(blended), "blend")
    if new_intensity < threshold:
        return SmoothingOutcome(held_label, clamp_unit(held_intensity * hold_decay), "hold")
    switched = max(switch_floor, 0.5 * held_intensity + 0.5 * new_intensity)
    return SmoothingOutcome(new_label, clamp_unit(switched), "switch")
