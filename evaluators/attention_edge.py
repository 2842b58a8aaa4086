"""注意力边沿检测：秒表和番茄钟共用的专注→分心跳变判断"""

from enum import Enum
from typing import Optional


class AttentionEdge(Enum):
    FOCUS_LOST = "focus_lost"
    FOCUS_REGAINED = "focus_regained"


def detect_edge(previous: Optional[bool], current: bool) -> Optional[AttentionEdge]:
    """比较前后两次观测；没有前一次观测时不算跳变"""
    if previous is None or previous == current:
        return None
    return AttentionEdge.FOCUS_REGAINED if current else AttentionEdge.FOCUS_LOST


class AttentionEdgeDetector:
    """记住上一次观测的专注状态，每次 update 返回跳变（或 None）"""

    def __init__(self):
        self._previous: Optional[bool] = None

    @property
    def previous(self) -> Optional[bool]:
        return self._previous

    def update(self, focused: bool) -> Optional[AttentionEdge]:
        edge = detect_edge(self._previous, focused)
        self._previous = focused
        return edge

    def reset(self):
        self._previous = None
