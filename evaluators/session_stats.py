"""会话统计：完成的番茄钟数和休息数、效率分和每日目标进度（仅内存）"""

from models.data_models import SessionSummary, TimerEvent, TimerState

DAILY_GOAL = 2 * 60 * 60


def productivity_score(focus_seconds: int, distractions: int) -> int:
    """
    效率分 (0-100)：每次分心对应的专注分钟数 × 10，上限 100。

    无专注时间时为 0。
    """
    if focus_seconds <= 0:
        return 0
    return min(100, round(focus_seconds / max(1, distractions) / 60 * 10))


class SessionStats:
    """订阅计时器事件并汇总本次会话统计"""

    def __init__(self, daily_goal: int = DAILY_GOAL):
        if daily_goal <= 0:
            raise ValueError("每日目标必须为正数")
        self.daily_goal = daily_goal
        self.completed_pomodoros = 0
        self.breaks_completed = 0

    def record(self, event: TimerEvent):
        if event is TimerEvent.FOCUS_COMPLETE:
            self.completed_pomodoros += 1
        elif event is TimerEvent.BREAK_COMPLETE:
            self.breaks_completed += 1

    def summary(self, timer_state: TimerState) -> SessionSummary:
        focus = timer_state.elapsed_focus_seconds
        return SessionSummary(
            focus_seconds=focus,
            distraction_count=timer_state.distraction_count,
            completed_pomodoros=self.completed_pomodoros,
            breaks_completed=self.breaks_completed,
            productivity_score=productivity_score(focus, timer_state.distraction_count),
            goal_progress=min(1.0, focus / self.daily_goal),
        )
