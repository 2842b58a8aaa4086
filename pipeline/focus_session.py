"""专注会话控制器：一个调度入口同时驱动采样循环和计时器"""

import time
from typing import Callable, List, Optional

from detectors.attention_classifier import compute_ratios
from evaluators.session_stats import SessionStats
from models.data_models import TimerEvent, TimerMode
from pipeline.sampling_loop import SamplingLoop
from timers.focus_timer import FocusTimer


class FocusSession:
    """
    每个会话一个实例，持有采样循环、计时器和统计。

    update() 由唯一的调度循环反复调用：先采样，再用发布的注意力状态推进计时器。
    用户操作通过 dispatch() 进入，须在同一调度线程上调用。
    """

    def __init__(
        self,
        sampling_loop: SamplingLoop,
        timer: FocusTimer,
        stats: Optional[SessionStats] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sampling_loop = sampling_loop
        self.timer = timer
        self.stats = stats or SessionStats()
        self._clock = clock
        self.timer.subscribe(self.stats.record)

    def subscribe(self, callback: Callable[[TimerEvent], None]):
        self.timer.subscribe(callback)

    def start(self):
        self.sampling_loop.start()

    def replace_sampling_loop(self, sampling_loop: SamplingLoop):
        """
        换上新的采样循环，计时器和统计保持不变。

        已取消的采样循环无法重新启动，重新打开摄像头时用这个方法接续会话。
        """
        if not self.sampling_loop.cancelled:
            self.sampling_loop.cancel()
        self.sampling_loop = sampling_loop

    def update(self, now: Optional[float] = None) -> List[TimerEvent]:
        now = self._clock() if now is None else now
        attention = self.sampling_loop.tick(now)
        return self.timer.poll(attention.focused, now)

    def dispatch(self, action: str, now: Optional[float] = None):
        """
        执行用户操作。

        Args:
            action: "start" | "stop" | "pause" | "toggle" | "reset" | "mode:stopwatch" | "mode:pomodoro"

        Raises:
            ValueError: 未知操作或未知模式
        """
        if action == "start":
            self.timer.start(now)
        elif action in ("stop", "pause"):
            self.timer.stop()
        elif action == "toggle":
            self.timer.toggle(now)
        elif action == "reset":
            self.timer.reset()
        elif action.startswith("mode:"):
            self.timer.switch_mode(TimerMode(action[len("mode:"):]))
        else:
            raise ValueError(f"未知操作: {action}")

    def close(self, wait: bool = False):
        """取消采样循环并停止计时"""
        self.sampling_loop.cancel(wait=wait)
        self.timer.stop()

    def snapshot(self) -> dict:
        """当前对外发布数据的只读快照"""
        attention = self.sampling_loop.attention
        timer_state = self.timer.state
        summary = self.stats.summary(timer_state)

        yaw_ratio, pitch_ratio = None, None
        landmarks = self.sampling_loop.last_landmarks
        if landmarks is not None:
            yaw_ratio, pitch_ratio = compute_ratios(landmarks)
        sample = self.sampling_loop.last_sample

        return {
            "focused": attention.focused,
            "status": self.sampling_loop.display_status,
            "loop_status": self.sampling_loop.status.name.lower(),
            "raw_reason": sample.reason.value if sample is not None else None,
            "face_detected": landmarks is not None,
            "yaw_ratio": None if yaw_ratio is None else round(yaw_ratio, 3),
            "pitch_ratio": None if pitch_ratio is None else round(pitch_ratio, 3),
            "timer_mode": timer_state.mode.value,
            "running": timer_state.running,
            "elapsed_focus_seconds": timer_state.elapsed_focus_seconds,
            "distraction_count": timer_state.distraction_count,
            "pomodoro_phase": timer_state.pomodoro_phase.value,
            "pomodoro_remaining_seconds": timer_state.pomodoro_remaining_seconds,
            "completed_pomodoros": summary.completed_pomodoros,
            "breaks_completed": summary.breaks_completed,
            "productivity_score": summary.productivity_score,
            "goal_progress": round(summary.goal_progress, 3),
        }
