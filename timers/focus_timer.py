"""专注计时器状态机：秒表模式和番茄钟模式，由平滑后的注意力状态驱动"""

import logging
import time
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from evaluators.attention_edge import AttentionEdge, AttentionEdgeDetector
from models.data_models import PomodoroPhase, TimerEvent, TimerMode, TimerState
from timers.second_ticker import SecondTicker

logger = logging.getLogger(__name__)

POMODORO_FOCUS_TIME = 25 * 60
POMODORO_BREAK_TIME = 5 * 60

Transition = Tuple[TimerState, List[TimerEvent]]


def initial_state(mode: TimerMode, focus_duration: int = POMODORO_FOCUS_TIME) -> TimerState:
    """停止状态：番茄钟回到专注阶段，计数清零"""
    return TimerState(
        mode=mode,
        running=False,
        elapsed_focus_seconds=0,
        distraction_count=0,
        pomodoro_phase=PomodoroPhase.FOCUS,
        pomodoro_remaining_seconds=focus_duration,
        completed_pomodoros=0,
    )


def _count_distraction(state: TimerState, edge: Optional[AttentionEdge], events: List[TimerEvent]) -> int:
    if edge is AttentionEdge.FOCUS_LOST:
        events.append(TimerEvent.DISTRACTION)
        return state.distraction_count + 1
    return state.distraction_count


def stopwatch_tick(state: TimerState, focused: bool, edge: Optional[AttentionEdge]) -> Transition:
    """
    秒表模式推进一秒。

    专注的秒数累加到 elapsed_focus_seconds；每次专注→分心跳变只计一次分心。
    """
    if not state.running:
        return state, []

    events: List[TimerEvent] = []
    distractions = _count_distraction(state, edge, events)
    elapsed = state.elapsed_focus_seconds + (1 if focused else 0)
    return replace(state, elapsed_focus_seconds=elapsed, distraction_count=distractions), events


def pomodoro_tick(
    state: TimerState,
    focused: bool,
    edge: Optional[AttentionEdge],
    focus_duration: int = POMODORO_FOCUS_TIME,
    break_duration: int = POMODORO_BREAK_TIME,
) -> Transition:
    """
    番茄钟模式推进一秒。

    专注阶段只在专注时倒计时（同时累加专注秒数）；休息阶段无论是否专注都倒计时。
    倒计时归零时切换阶段并发出对应的完成事件。
    """
    if not state.running:
        return state, []

    if state.pomodoro_phase is PomodoroPhase.BREAK:
        remaining = state.pomodoro_remaining_seconds - 1
        if remaining <= 0:
            new_state = replace(
                state,
                pomodoro_phase=PomodoroPhase.FOCUS,
                pomodoro_remaining_seconds=focus_duration,
            )
            return new_state, [TimerEvent.BREAK_COMPLETE]
        return replace(state, pomodoro_remaining_seconds=remaining), []

    events: List[TimerEvent] = []
    distractions = _count_distraction(state, edge, events)
    if not focused:
        return replace(state, distraction_count=distractions), events

    remaining = state.pomodoro_remaining_seconds - 1
    elapsed = state.elapsed_focus_seconds + 1
    if remaining <= 0:
        events.append(TimerEvent.FOCUS_COMPLETE)
        new_state = replace(
            state,
            elapsed_focus_seconds=elapsed,
            distraction_count=distractions,
            pomodoro_phase=PomodoroPhase.BREAK,
            pomodoro_remaining_seconds=break_duration,
            completed_pomodoros=state.completed_pomodoros + 1,
        )
        return new_state, events

    new_state = replace(
        state,
        elapsed_focus_seconds=elapsed,
        distraction_count=distractions,
        pomodoro_remaining_seconds=remaining,
    )
    return new_state, events


class FocusTimer:
    """
    计时器控制器，持有唯一的计时状态、边沿检测器和节拍源。

    任何停止计数的操作（暂停、停止、重置、切换模式）都会取消节拍源，
    保证运行状态下始终只有一个节拍源。
    """

    def __init__(
        self,
        mode: TimerMode = TimerMode.STOPWATCH,
        focus_duration: int = POMODORO_FOCUS_TIME,
        break_duration: int = POMODORO_BREAK_TIME,
        clock: Callable[[], float] = time.monotonic,
    ):
        if focus_duration <= 0 or break_duration <= 0:
            raise ValueError("番茄钟时长必须为正数")
        self.focus_duration = focus_duration
        self.break_duration = break_duration
        self._clock = clock
        self._state = initial_state(mode, focus_duration)
        self._edges = AttentionEdgeDetector()
        self._ticker = SecondTicker()
        self._listeners: List[Callable[[TimerEvent], None]] = []

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def ticking(self) -> bool:
        return self._ticker.active

    def subscribe(self, callback: Callable[[TimerEvent], None]):
        """注册事件回调，回调只收到事件类型"""
        self._listeners.append(callback)

    def start(self, now: Optional[float] = None):
        if self._state.running:
            return
        self._state = replace(self._state, running=True)
        self._edges.reset()
        self._ticker.start(self._now(now))

    def stop(self):
        """停止计数但保留计数值（番茄钟下即暂停）"""
        self._ticker.cancel()
        self._edges.reset()
        if self._state.running:
            self._state = replace(self._state, running=False)

    pause = stop

    def toggle(self, now: Optional[float] = None):
        if self._state.running:
            self.stop()
        else:
            self.start(now)

    def reset(self):
        self._ticker.cancel()
        self._edges.reset()
        self._state = initial_state(self._state.mode, self.focus_duration)

    def switch_mode(self, mode: TimerMode):
        """切换模式：阶段回到专注，计数清零，停止计时"""
        self._ticker.cancel()
        self._edges.reset()
        self._state = initial_state(mode, self.focus_duration)

    def tick(self, focused: bool) -> List[TimerEvent]:
        """按当前模式推进一秒，返回本秒产生的事件"""
        if not self._state.running:
            return []

        edge = self._edges.update(focused)
        if self._state.mode is TimerMode.STOPWATCH:
            self._state, events = stopwatch_tick(self._state, focused, edge)
        else:
            self._state, events = pomodoro_tick(
                self._state, focused, edge,
                focus_duration=self.focus_duration,
                break_duration=self.break_duration,
            )
        self._emit(events)
        return events

    def poll(self, focused: bool, now: Optional[float] = None) -> List[TimerEvent]:
        """由调度循环调用，按到期的节拍数推进"""
        events: List[TimerEvent] = []
        for _ in range(self._ticker.poll(self._now(now))):
            events.extend(self.tick(focused))
        return events

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _emit(self, events: List[TimerEvent]):
        for event in events:
            for callback in self._listeners:
                try:
                    callback(event)
                except Exception:
                    logger.exception("计时器事件回调出错: %s", event.value)
