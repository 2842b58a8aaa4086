"""平滑滤波模块：最近 W 个采样中达到 T 票一致才切换对外状态，抑制单帧抖动"""

from collections import deque
from typing import Iterable, Tuple

from models.data_models import (
    INITIAL_ATTENTION,
    AttentionReason,
    AttentionSample,
    AttentionState,
)

SMOOTHING_WINDOW = 5
SMOOTHING_THRESHOLD = 3


def smooth(
    history: Iterable[AttentionSample],
    previous: AttentionState,
    threshold: int = SMOOTHING_THRESHOLD,
) -> AttentionState:
    """
    根据采样历史决定对外发布的状态。

    Args:
        history: 最近的采样，按时间从旧到新
        previous: 当前已发布的状态
        threshold: 切换所需的一致票数

    Returns:
        新的 AttentionState；未达成共识时原样返回 previous
    """
    samples = list(history)
    focused_count = sum(1 for s in samples if s.focused)
    distracted_count = len(samples) - focused_count

    if focused_count >= threshold:
        return AttentionState(focused=True, status=AttentionReason.FOCUSED.value)

    if distracted_count >= threshold:
        # 取最近一次分心采样的原因
        latest = next(s for s in reversed(samples) if not s.focused)
        return AttentionState(focused=False, status=latest.reason.value)

    return previous


class SmoothingFilter:
    """维护有界采样历史并发布平滑后的注意力状态"""

    def __init__(self, window: int = SMOOTHING_WINDOW, threshold: int = SMOOTHING_THRESHOLD):
        if window <= 0 or threshold <= 0:
            raise ValueError("窗口大小和阈值必须为正数")
        if threshold > window:
            raise ValueError(f"阈值 {threshold} 不能大于窗口大小 {window}")
        self.window = window
        self.threshold = threshold
        self._history = deque(maxlen=window)
        self._state = INITIAL_ATTENTION

    @property
    def state(self) -> AttentionState:
        return self._state

    @property
    def history(self) -> Tuple[AttentionSample, ...]:
        return tuple(self._history)

    def ingest(self, sample: AttentionSample) -> AttentionState:
        """追加一个采样（超出窗口时淘汰最旧的），返回当前发布状态"""
        self._history.append(sample)
        self._state = smooth(self._history, self._state, self.threshold)
        return self._state

    def reset(self):
        self._history.clear()
        self._state = INITIAL_ATTENTION
