"""界面渲染模块 - 在视频帧上绘制专注状态边框、状态文字和计时器。"""

from typing import Optional

import cv2
import numpy as np

from models.data_models import (
    AttentionReason,
    LandmarkSet,
    PomodoroPhase,
    TimerMode,
    TimerState,
)

_GREEN = (0, 200, 0)
_RED = (0, 0, 230)
_YELLOW = (0, 255, 255)

# 这些状态下显示 "分心" 大字提示
_ALERT_STATUSES = {
    AttentionReason.LOOKING_LEFT.value,
    AttentionReason.LOOKING_RIGHT.value,
    AttentionReason.LOOKING_DOWN.value,
}


def format_time(seconds: int) -> str:
    """格式化为 mm:ss。"""
    mins, secs = divmod(int(seconds), 60)
    return f"{mins:02d}:{secs:02d}"


def format_full_time(seconds: int) -> str:
    """超过一小时时格式化为 hh:mm:ss，否则 mm:ss。"""
    seconds = int(seconds)
    if seconds >= 3600:
        hours, rest = divmod(seconds, 3600)
        mins, secs = divmod(rest, 60)
        return f"{hours:02d}:{mins:02d}:{secs:02d}"
    return format_time(seconds)


def pomodoro_progress(state: TimerState, focus_duration: int, break_duration: int) -> float:
    """当前番茄钟阶段已完成的百分比 (0-100)。"""
    total = focus_duration if state.pomodoro_phase is PomodoroPhase.FOCUS else break_duration
    if total <= 0:
        return 0.0
    return (total - state.pomodoro_remaining_seconds) / total * 100


class DisplayRenderer:
    """在视频帧上绘制专注状态和计时信息。"""

    _PHASE_NAMES = {
        PomodoroPhase.FOCUS: "专注",
        PomodoroPhase.BREAK: "休息",
    }

    def __init__(self, font_path: str = "SimHei", border: int = 8):
        """初始化中文字体，字体不存在时回退到 OpenCV 默认英文字体。"""
        self.border = border
        self._pil_font = None
        self._pil_font_large = None
        self._use_pil = False

        try:
            from PIL import ImageFont

            font = self._try_load_font(font_path)
            if font is not None:
                self._pil_font = font
                self._pil_font_large = ImageFont.truetype(font.path, 48)
                self._use_pil = True
        except (ImportError, OSError):
            self._use_pil = False

    @staticmethod
    def _try_load_font(font_path: str):
        """尝试加载字体文件，返回 PIL ImageFont 或 None。"""
        from PIL import ImageFont

        try:
            return ImageFont.truetype(font_path, 20)
        except (OSError, IOError):
            pass

        common_paths = [
            "/usr/share/fonts/truetype/simhei/SimHei.ttf",
            "/usr/share/fonts/SimHei.ttf",
            "C:\\Windows\\Fonts\\simhei.ttf",
            "/System/Library/Fonts/STHeiti Medium.ttc",
        ]
        for path in common_paths:
            try:
                return ImageFont.truetype(path, 20)
            except (OSError, IOError):
                continue

        return None

    def render(
        self,
        frame: np.ndarray,
        focused: bool,
        status: str,
        timer_state: TimerState,
        landmarks: Optional[LandmarkSet] = None,
        focus_duration: int = 25 * 60,
        break_duration: int = 5 * 60,
    ) -> np.ndarray:
        """渲染专注状态和计时器到视频帧，返回新帧。"""
        output = frame.copy()

        if landmarks is not None:
            self._draw_keypoints(output, landmarks)

        self._draw_border(output, focused)
        self._draw_status(output, focused, status)
        self._draw_timer(output, timer_state, focus_duration, break_duration)

        if not focused and status in _ALERT_STATUSES:
            self._draw_distracted_alert(output)

        return output

    @staticmethod
    def _draw_keypoints(frame: np.ndarray, landmarks: LandmarkSet) -> None:
        """绘制判定用的五个关键点。"""
        for x, y in (
            landmarks.nose_tip, landmarks.left_jaw, landmarks.right_jaw,
            landmarks.chin, landmarks.nose_bridge,
        ):
            cv2.circle(frame, (int(x), int(y)), 3, _YELLOW, -1)

    def _draw_border(self, frame: np.ndarray, focused: bool) -> None:
        h, w = frame.shape[:2]
        color = _GREEN if focused else _RED
        cv2.rectangle(frame, (0, 0), (w - 1, h - 1), color, self.border)

    def _draw_status(self, frame: np.ndarray, focused: bool, status: str) -> None:
        """左上角绘制状态文字。"""
        color = _GREEN if focused else _RED
        cv2.putText(
            frame, status, (20, 40),
            cv2.FONT_HERSHEY_SIMPLEX, 0.8, color, 2,
        )

    def _draw_timer(
        self,
        frame: np.ndarray,
        state: TimerState,
        focus_duration: int,
        break_duration: int,
    ) -> None:
        """左下角绘制计时器，番茄钟模式附带阶段和进度。"""
        h = frame.shape[0]

        if state.mode is TimerMode.POMODORO:
            progress = pomodoro_progress(state, focus_duration, break_duration)
            lines = [
                f"{format_time(state.pomodoro_remaining_seconds)} ({progress:.0f}%)",
                f"Total: {format_full_time(state.elapsed_focus_seconds)}",
            ]
            phase_label = self._PHASE_NAMES[state.pomodoro_phase]
            phase_en = state.pomodoro_phase.value.upper()
        else:
            lines = [
                format_full_time(state.elapsed_focus_seconds),
                f"Distractions: {state.distraction_count}",
            ]
            phase_label = "计时"
            phase_en = "STOPWATCH"

        if not state.running:
            lines.append("PAUSED" if state.elapsed_focus_seconds else "Press Start to begin")

        if self._use_pil:
            self._draw_pil_lines(
                frame, [phase_label] + lines,
                x=20, y_start=h - 40 - 28 * (len(lines) + 1), color=(255, 255, 255),
            )
        else:
            y = h - 30 * (len(lines) + 1)
            for text in [phase_en] + lines:
                cv2.putText(
                    frame, text, (20, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2,
                )
                y += 30

    def _draw_distracted_alert(self, frame: np.ndarray) -> None:
        """画面中央显示红色分心提示。"""
        h, w = frame.shape[:2]

        if self._use_pil:
            from PIL import Image, ImageDraw

            warning = "分心了！"
            img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            draw = ImageDraw.Draw(img_pil)
            bbox = draw.textbbox((0, 0), warning, font=self._pil_font_large)
            x = (w - (bbox[2] - bbox[0])) // 2
            y = (h - (bbox[3] - bbox[1])) // 2
            draw.text((x, y), warning, font=self._pil_font_large, fill=(255, 0, 0))
            frame[:] = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
        else:
            warning_en = "Distracted!"
            font_scale = 1.5
            thickness = 3
            (text_w, text_h), _ = cv2.getTextSize(
                warning_en, cv2.FONT_HERSHEY_SIMPLEX, font_scale, thickness
            )
            cv2.putText(
                frame, warning_en, ((w - text_w) // 2, (h + text_h) // 2),
                cv2.FONT_HERSHEY_SIMPLEX, font_scale, _RED, thickness,
            )

    def _draw_pil_lines(
        self,
        frame: np.ndarray,
        lines: list,
        x: int,
        y_start: int,
        color: tuple,
    ) -> None:
        """使用 PIL 在帧上绘制多行文字（BGR color -> RGB fill）。"""
        from PIL import Image, ImageDraw

        img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(img_pil)
        fill = (color[2], color[1], color[0])
        y = y_start
        for line in lines:
            draw.text((x, y), line, font=self._pil_font, fill=fill)
            y += 28
        frame[:] = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
