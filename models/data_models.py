"""核心数据模型定义"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

Point = Tuple[float, float]


class AttentionReason(Enum):
    """单帧注意力判定原因，值即界面显示文字"""
    FOCUSED = "Focused"
    LOOKING_LEFT = "Looking Left"
    LOOKING_RIGHT = "Looking Right"
    LOOKING_DOWN = "Looking Down"
    NO_FACE = "No face detected"


class TimerMode(Enum):
    STOPWATCH = "stopwatch"
    POMODORO = "pomodoro"


class PomodoroPhase(Enum):
    FOCUS = "focus"
    BREAK = "break"


class TimerEvent(Enum):
    """计时器状态边沿上发出的通知"""
    DISTRACTION = "distraction"
    FOCUS_COMPLETE = "focus_complete"
    BREAK_COMPLETE = "break_complete"


class LoopStatus(Enum):
    """采样循环自身的状态，值为显示文字"""
    LOADING = "Loading models..."
    WAITING = "Waiting for camera..."
    RUNNING = "Ready - Look at the camera"
    MODEL_ERROR = "Error loading models"
    STOPPED = "Stopped"


@dataclass(frozen=True)
class LandmarkSet:
    """单帧人脸关键点：全部点 + 注意力判定所需的五个关键点（像素坐标）"""
    nose_tip: Point
    left_jaw: Point
    right_jaw: Point
    chin: Point
    nose_bridge: Point
    all_landmarks: Tuple[Point, ...] = ()


@dataclass(frozen=True)
class AttentionSample:
    """单次采样的原始注意力判定"""
    focused: bool
    reason: AttentionReason

    @classmethod
    def no_face(cls) -> "AttentionSample":
        return cls(focused=False, reason=AttentionReason.NO_FACE)


@dataclass(frozen=True)
class AttentionState:
    """对外发布的平滑后注意力状态"""
    focused: bool
    status: str


INITIAL_ATTENTION = AttentionState(focused=False, status="Initializing...")


@dataclass(frozen=True)
class TimerState:
    """计时器状态快照，状态转移返回新实例"""
    mode: TimerMode
    running: bool
    elapsed_focus_seconds: int
    distraction_count: int
    pomodoro_phase: PomodoroPhase
    pomodoro_remaining_seconds: int
    completed_pomodoros: int = 0


@dataclass
class SessionSummary:
    """会话统计汇总"""
    focus_seconds: int
    distraction_count: int
    completed_pomodoros: int
    breaks_completed: int
    productivity_score: int
    goal_progress: float

