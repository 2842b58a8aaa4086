"""Flask Web 前端 - 专注检测计时系统"""

import datetime
import logging
import queue
import threading
import time

import cv2
from flask import Flask, Response, jsonify, render_template, request

from detectors.face_detector import FaceDetector
from display.renderer import DisplayRenderer
from main import _DEFAULTS, build_sampling_loop, build_session
from models.data_models import TimerEvent
from pipeline.video_source import VideoSource

logger = logging.getLogger(__name__)

app = Flask(__name__, template_folder="web/templates", static_folder="web/static")

_EVENT_LOGS = {
    TimerEvent.DISTRACTION: ("warning", "检测到分心"),
    TimerEvent.FOCUS_COMPLETE: ("info", "专注阶段完成，开始休息"),
    TimerEvent.BREAK_COMPLETE: ("info", "休息结束，开始专注"),
}

_THRESHOLD_KEYS = ("yaw_min", "yaw_max", "pitch_threshold")


class WebFocusSystem:
    """
    Web 版检测系统，支持 MJPEG 视频流推送和实时数据 API。

    会话只在后台调度线程上更新；请求线程通过队列提交用户操作，通过锁读取快照。
    """

    MAX_LOG_ENTRIES = 200

    def __init__(self, config=None):
        self.config = dict(config or _DEFAULTS)
        self._thread = None
        self._running = False
        self._lock = threading.Lock()
        self._actions = queue.SimpleQueue()
        self._latest_frame = None
        self._latest_data = {}
        self._logs = []
        self._log_lock = threading.Lock()
        self._prev_status = None
        self.face_detector = FaceDetector()
        self.video_source = VideoSource()
        self.renderer = DisplayRenderer()
        self.session = build_session(self.config, self.face_detector, self.video_source)
        self.session.subscribe(self._on_timer_event)
        self._latest_data = self.session.snapshot()

    def start(self):
        """打开摄像头并启动调度线程。"""
        if self._running:
            return True
        if self.session.sampling_loop.cancelled:
            # 停止后重新启动：只换采样循环，计时和统计延续
            self.session.replace_sampling_loop(
                build_sampling_loop(self.config, self.face_detector, self.video_source)
            )
        if not self.video_source.open():
            self._add_log("danger", "无法打开摄像头")
            return False
        self.session.start()
        self._running = True
        self._add_log("info", "系统启动，摄像头已开启")
        self._thread = threading.Thread(target=self._process_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """停止调度线程，取消采样循环，释放摄像头。"""
        if not self._running:
            return
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self.session.close(wait=True)
        self.video_source.release()
        with self._lock:
            self._latest_data = self.session.snapshot()
        self._add_log("info", "系统已停止")

    def submit_action(self, action: str):
        """请求线程调用：把用户操作排入调度线程执行。"""
        self._actions.put(action)

    def _process_loop(self):
        """后台调度循环，单次迭代出错只记录日志。"""
        while self._running:
            try:
                self._process_once()
            except Exception:
                logger.exception("调度循环迭代出错")
                time.sleep(0.01)

    def _process_once(self):
        self._drain_actions()
        frame = self.video_source.read()
        self.session.update(time.monotonic())

        data = self.session.snapshot()
        self._check_status_change(data)

        jpeg_bytes = None
        if frame is not None:
            loop = self.session.sampling_loop
            rendered = self.renderer.render(
                frame, data["focused"], data["status"], self.session.timer.state,
                landmarks=loop.last_landmarks,
                focus_duration=self.config["pomodoro_focus_time"],
                break_duration=self.config["pomodoro_break_time"],
            )
            ok, jpeg = cv2.imencode(".jpg", rendered, [cv2.IMWRITE_JPEG_QUALITY, 80])
            if ok:
                jpeg_bytes = jpeg.tobytes()
        else:
            time.sleep(0.01)

        with self._lock:
            self._latest_data = data
            if jpeg_bytes is not None:
                self._latest_frame = jpeg_bytes

    def _drain_actions(self):
        while True:
            try:
                action = self._actions.get_nowait()
            except queue.Empty:
                return
            if isinstance(action, dict):
                self._apply_thresholds(action)
                continue
            try:
                self.session.dispatch(action)
            except ValueError as e:
                self._add_log("warning", str(e))
            else:
                self._add_log("info", f"操作: {action}")

    def _on_timer_event(self, event: TimerEvent):
        level, message = _EVENT_LOGS[event]
        self._add_log(level, message)

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def _check_status_change(self, data):
        """发布状态变化时记录日志。"""
        status = data["status"]
        if status == self._prev_status:
            return
        if data["loop_status"] == "model_error":
            self._add_log("danger", "人脸检测模型加载失败")
        elif data["focused"]:
            self._add_log("info", "恢复专注")
        elif data["loop_status"] == "running":
            self._add_log("warning", f"注意力状态: {status}")
        self._prev_status = status

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)

    def get_frame(self):
        with self._lock:
            return self._latest_frame

    def get_data(self):
        with self._lock:
            return dict(self._latest_data)

    def update_config(self, config):
        """
        校验分类阈值并排入调度线程应用。

        Args:
            config: 可含 yaw_min / yaw_max / pitch_threshold，缺省项沿用当前值

        Raises:
            ValueError: 阈值不是 [0, 1] 内的数值，或 yaw_min 不小于 yaw_max
        """
        if not isinstance(config, dict):
            raise ValueError("配置必须为 JSON 对象")
        with self._lock:
            current = {key: self.config[key] for key in _THRESHOLD_KEYS}

        thresholds = {}
        for key in _THRESHOLD_KEYS:
            value = config.get(key, current[key])
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ValueError(f"阈值 {key} 必须为数值: {value!r}") from None
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"阈值 {key} 超出范围 [0, 1]: {value}")
            thresholds[key] = value

        if not thresholds["yaw_min"] < thresholds["yaw_max"]:
            raise ValueError(
                f"偏航阈值无效: yaw_min={thresholds['yaw_min']}, yaw_max={thresholds['yaw_max']}"
            )
        self._actions.put(thresholds)

    def _apply_thresholds(self, thresholds):
        """调度线程上把已校验的阈值写入分类器。"""
        classifier = self.session.sampling_loop.classifier
        for key, value in thresholds.items():
            setattr(classifier, key, value)
        with self._lock:
            self.config.update(thresholds)
        self._add_log("info", "分类阈值已更新")


# 全局检测系统实例
system = WebFocusSystem()


# ---- Flask 路由 ----

@app.route("/")
def index():
    return render_template("index.html")


@app.route("/api/start", methods=["POST"])
def api_start():
    ok = system.start()
    return jsonify({"success": ok, "message": "摄像头启动成功" if ok else "无法打开摄像头"})


@app.route("/api/stop", methods=["POST"])
def api_stop():
    system.stop()
    return jsonify({"success": True, "message": "检测已停止"})


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/timer", methods=["POST"])
def api_timer():
    data = request.get_json(force=True)
    action = data.get("action", "")
    if action not in ("start", "stop", "pause", "toggle", "reset"):
        return jsonify({"success": False, "message": f"未知操作: {action}"}), 400
    system.submit_action(action)
    return jsonify({"success": True, "action": action})


@app.route("/api/mode", methods=["POST"])
def api_mode():
    data = request.get_json(force=True)
    new_mode = data.get("mode", "stopwatch")
    if new_mode not in ("stopwatch", "pomodoro"):
        return jsonify({"success": False, "message": f"未知模式: {new_mode}"}), 400
    mode_names = {"stopwatch": "秒表模式", "pomodoro": "番茄钟模式"}
    system._add_log("info", f"切换到{mode_names[new_mode]}")
    system.submit_action(f"mode:{new_mode}")
    return jsonify({"success": True, "mode": new_mode})


@app.route("/api/config", methods=["POST"])
def api_config():
    data = request.get_json(force=True)
    try:
        system.update_config(data)
    except ValueError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    return jsonify({"success": True, "message": "配置已提交"})


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


@app.route("/video_feed")
def video_feed():
    def generate():
        while True:
            frame = system.get_frame()
            if frame is not None:
                yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n")
            time.sleep(0.03)
    return Response(generate(), mimetype="multipart/x-mixed-replace; boundary=frame")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="127.0.0.1", port=5000, debug=False, threaded=True)
