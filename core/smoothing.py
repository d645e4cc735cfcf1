"""
Temporal smoothing for posture channels.

Each channel runs its raw value through an EMA low-pass filter and then a
dead-zone (jitter) filter that holds the output until the EMA moves by more
than the channel's dead zone. Channels never share state.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Mapping, Optional

from config.defaults import CHANNEL_SETTINGS, DRIFT_SETTINGS
from core.types import CHANNELS, PostureAngles


class EMAFilter:
    """Exponential moving average: state = alpha * x + (1 - alpha) * state."""

    def __init__(self, alpha: float):
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"alpha must be between 0 and 1, got {alpha}")
        self.alpha = alpha
        self._value: Optional[float] = None

    def update(self, value: float) -> float:
        if self._value is None:
            self._value = value
        else:
            self._value = self.alpha * value + (1.0 - self.alpha) * self._value
        return self._value

    def reset(self) -> None:
        self._value = None

    @property
    def value(self) -> Optional[float]:
        return self._value


class JitterFilter:
    """Hold the previous output unless the input moves by more than deadzone."""

    def __init__(self, deadzone: float):
        if deadzone < 0:
            raise ValueError(f"deadzone must be non-negative, got {deadzone}")
        self.deadzone = deadzone
        self._value: Optional[float] = None

    def update(self, value: float) -> float:
        if self._value is None or abs(value - self._value) > self.deadzone:
            self._value = value
        return self._value

    def reset(self) -> None:
        self._value = None

    @property
    def value(self) -> Optional[float]:
        return self._value


class ChannelUnit(Enum):
    """Unit family of a channel; decides how far its baseline may drift."""
    ANGLE = "angle"
    RATIO = "ratio"

    @property
    def max_drift(self) -> float:
        return DRIFT_SETTINGS['max_drift'][self.value]


class Channel:
    """One posture channel: Jitter(EMA(x)) with its own state."""

    def __init__(self, name: str, unit: ChannelUnit, alpha: float, deadzone: float):
        self.name = name
        self.unit = unit
        self.ema = EMAFilter(alpha)
        self.jitter = JitterFilter(deadzone)

    @classmethod
    def from_settings(cls, name: str, settings: Mapping[str, object]) -> "Channel":
        return cls(
            name=name,
            unit=ChannelUnit(settings['unit']),
            alpha=float(settings['alpha']),
            deadzone=float(settings['deadzone']),
        )

    def update(self, value: float) -> float:
        return self.jitter.update(self.ema.update(value))

    def reset(self) -> None:
        self.ema.reset()
        self.jitter.reset()

    def __repr__(self) -> str:
        return f"Channel({self.name!r}, {self.unit.value}, alpha={self.ema.alpha}, deadzone={self.jitter.deadzone})"


def channel_units(settings: Mapping[str, Mapping[str, object]] = CHANNEL_SETTINGS) -> Dict[str, ChannelUnit]:
    return {name: ChannelUnit(settings[name]['unit']) for name in CHANNELS}


class ChannelFilterSet:
    """The full set of per-channel filters owned by one analyzer."""

    def __init__(self, settings: Mapping[str, Mapping[str, object]] = CHANNEL_SETTINGS):
        self.channels: Dict[str, Channel] = {
            name: Channel.from_settings(name, settings[name]) for name in CHANNELS
        }

    def update(self, angles: PostureAngles) -> PostureAngles:
        return PostureAngles(**{
            name: channel.update(angles.get(name))
            for name, channel in self.channels.items()
        })

    def reset(self) -> None:
        for channel in self.channels.values():
            channel.reset()
