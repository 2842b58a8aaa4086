"""专注检测计时系统入口文件"""

import argparse
import json
import logging
import sys
import time

import cv2

from detectors.attention_classifier import AttentionClassifier
from detectors.face_detector import FaceDetector
from display.renderer import DisplayRenderer
from evaluators.session_stats import SessionStats
from evaluators.smoothing_filter import SmoothingFilter
from models.data_models import TimerEvent, TimerMode
from pipeline.focus_session import FocusSession
from pipeline.sampling_loop import SamplingLoop
from pipeline.video_source import VideoSource
from timers.focus_timer import FocusTimer

logger = logging.getLogger(__name__)

# 默认参数
_DEFAULTS = {
    "yaw_min": 0.30,
    "yaw_max": 0.70,
    "pitch_threshold": 0.5,
    "smoothing_window": 5,
    "smoothing_threshold": 3,
    "detection_interval": 0.1,
    "pomodoro_focus_time": 25 * 60,
    "pomodoro_break_time": 5 * 60,
    "daily_goal": 2 * 60 * 60,
    "timer_mode": "stopwatch",
}

# 键位 → 用户操作
_KEY_ACTIONS = {
    ord("s"): "toggle",
    ord("r"): "reset",
}

# 只在番茄钟模式下生效的键位
_POMODORO_KEY_ACTIONS = {
    ord("p"): "toggle",
}

_EVENT_MESSAGES = {
    TimerEvent.DISTRACTION: "检测到分心",
    TimerEvent.FOCUS_COMPLETE: "专注阶段完成，开始休息",
    TimerEvent.BREAK_COMPLETE: "休息结束，开始专注",
}


def build_sampling_loop(config: dict, detector, video_source, executor=None) -> SamplingLoop:
    """按配置组装分类器、平滑滤波器和采样循环。"""
    classifier = AttentionClassifier(
        yaw_min=config["yaw_min"],
        yaw_max=config["yaw_max"],
        pitch_threshold=config["pitch_threshold"],
    )
    smoothing_filter = SmoothingFilter(
        window=config["smoothing_window"],
        threshold=config["smoothing_threshold"],
    )
    return SamplingLoop(
        detector, video_source, smoothing_filter,
        classifier=classifier,
        interval=config["detection_interval"],
        executor=executor,
    )


def build_session(config: dict, detector, video_source, executor=None) -> FocusSession:
    """按配置组装采样循环、计时器和统计。"""
    sampling_loop = build_sampling_loop(config, detector, video_source, executor)
    timer = FocusTimer(
        mode=TimerMode(config["timer_mode"]),
        focus_duration=config["pomodoro_focus_time"],
        break_duration=config["pomodoro_break_time"],
    )
    stats = SessionStats(daily_goal=config["daily_goal"])
    return FocusSession(sampling_loop, timer, stats)


class FocusTrackingSystem:
    """专注检测计时系统主程序，管理摄像头、会话和窗口主循环。"""

    def __init__(self, config_path=None, timer_mode=None, camera_index=0):
        config = self._load_config(config_path)
        if timer_mode is not None:
            config["timer_mode"] = timer_mode
        self.config = config

        self.face_detector = FaceDetector()
        self.video_source = VideoSource(camera_index)
        self.session = build_session(config, self.face_detector, self.video_source)
        self.session.subscribe(self._on_timer_event)
        self.renderer = DisplayRenderer()

    @staticmethod
    def _load_config(config_path):
        """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
        config = dict(_DEFAULTS)

        if config_path is None:
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            print(f"警告: 配置文件不存在 {config_path}，使用默认参数")
            return config
        except json.JSONDecodeError:
            print(f"警告: 配置文件格式错误 {config_path}，使用默认参数")
            return config

        for key in _DEFAULTS:
            if key in data and data[key] is not None:
                config[key] = data[key]

        return config

    @staticmethod
    def _on_timer_event(event: TimerEvent):
        logger.info(_EVENT_MESSAGES[event])

    def handle_key(self, key: int) -> bool:
        """处理按键，返回 False 表示退出。"""
        if key == ord("q"):
            return False
        if key == ord("m"):
            current = self.session.timer.state.mode
            target = TimerMode.POMODORO if current is TimerMode.STOPWATCH else TimerMode.STOPWATCH
            self.session.dispatch(f"mode:{target.value}")
            logger.info("切换到%s模式", "番茄钟" if target is TimerMode.POMODORO else "秒表")
        elif key in _KEY_ACTIONS:
            self.session.dispatch(_KEY_ACTIONS[key])
        elif key in _POMODORO_KEY_ACTIONS:
            if self.session.timer.state.mode is TimerMode.POMODORO:
                self.session.dispatch(_POMODORO_KEY_ACTIONS[key])
            else:
                logger.info("p 键仅在番茄钟模式下可用，按 m 切换模式")
        return True

    def run(self):
        """启动主循环。"""
        if not self.video_source.open():
            print("无法打开摄像头")
            sys.exit(1)

        self.session.start()
        try:
            self._main_loop()
        finally:
            self.stop()

    def _main_loop(self):
        """视频流处理主循环：读帧、调度会话、渲染。"""
        while True:
            frame = self.video_source.read()
            self.session.update(time.monotonic())

            if frame is not None:
                loop = self.session.sampling_loop
                attention = loop.attention
                rendered = self.renderer.render(
                    frame, attention.focused, loop.display_status,
                    self.session.timer.state,
                    landmarks=loop.last_landmarks,
                    focus_duration=self.config["pomodoro_focus_time"],
                    break_duration=self.config["pomodoro_break_time"],
                )
                cv2.imshow("专注检测计时", rendered)

            key = cv2.waitKey(1) & 0xFF
            if key != 0xFF and not self.handle_key(key):
                break

    def stop(self):
        """取消采样循环、释放摄像头、关闭窗口和人脸检测器。"""
        self.session.close(wait=True)
        self.video_source.release()
        cv2.destroyAllWindows()
        self.face_detector.close()


def main():
    parser = argparse.ArgumentParser(description="专注检测计时系统")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 参数配置文件路径",
    )
    parser.add_argument(
        "--timer-mode",
        choices=[m.value for m in TimerMode],
        default=None,
        help="计时模式: stopwatch(秒表), pomodoro(番茄钟)",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=0,
        help="摄像头编号",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    system = FocusTrackingSystem(
        config_path=args.config, timer_mode=args.timer_mode, camera_index=args.camera,
    )
    system.run()


if __name__ == "__main__":
    main()
