import itertools
import logging
import random
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from commit_gateway.app.core.config import Channel
from commit_gateway.app.core.errors import ChannelNotFoundError

logger = logging.getLogger(__name__)


def _eligible(channels: Sequence[Channel]) -> Sequence[Channel]:
    return [c for c in channels if c.load_balance] or channels


class ChannelSelectionStrategy(ABC):
    @abstractmethod
    def pick(self, channels: Sequence[Channel]) -> Channel:  # pragma: no cover - interface
        raise NotImplementedError


class FirstChannelStrategy(ChannelSelectionStrategy):
    def pick(self, channels: Sequence[Channel]) -> Channel:
        return channels[0]


class RandomChannelStrategy(ChannelSelectionStrategy):
    def __init__(self, chooser: Callable[[Sequence[Channel]], Channel] = random.choice):
        self.chooser = chooser

    def pick(self, channels: Sequence[Channel]) -> Channel:
        return self.chooser(_eligible(channels))


class RoundRobinChannelStrategy(ChannelSelectionStrategy):
    def __init__(self):
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def pick(self, channels: Sequence[Channel]) -> Channel:
        with self._lock:
            position = next(self._counter)
        eligible = _eligible(channels)
        return eligible[position % len(eligible)]


_STRATEGIES = {
    "first": FirstChannelStrategy,
    "random": RandomChannelStrategy,
    "round_robin": RoundRobinChannelStrategy,
}


def strategy_for(name: str) -> ChannelSelectionStrategy:
    try:
        return _STRATEGIES[name]()
    except KeyError:
        logger.warning("Unknown channel strategy %r; using first channel", name)
        return FirstChannelStrategy()


def select_channel(
    channels: Sequence[Channel],
    strategy: ChannelSelectionStrategy,
    channel_name: Optional[str] = None,
) -> Channel:
    """Resolve exactly one usable channel or raise ``ChannelNotFoundError``."""
    if not channels:
        raise ChannelNotFoundError("No HuggingFace channel configured")

    if channel_name:
        channel = next((c for c in channels if c.name == channel_name), None)
        if channel is None:
            raise ChannelNotFoundError(f"HuggingFace channel not found: {channel_name}")
    else:
        channel = strategy.pick(channels)

    if not channel.token or not channel.repo:
        raise ChannelNotFoundError("HuggingFace channel not properly configured")
    return channel
