"""Flask Web 前端测试（不打开摄像头）"""

import sys
from unittest.mock import MagicMock

import pytest

# Mock mediapipe before importing web_app to avoid hanging
_mp_mock = MagicMock()
sys.modules.setdefault("mediapipe", _mp_mock)
sys.modules.setdefault("mediapipe.solutions", _mp_mock.solutions)
sys.modules.setdefault("mediapipe.solutions.face_mesh", _mp_mock.solutions.face_mesh)

import web_app  # noqa: E402
from conftest import make_landmarks  # noqa: E402
from models.data_models import TimerMode  # noqa: E402
from web_app import WebFocusSystem  # noqa: E402


@pytest.fixture
def system(monkeypatch):
    fresh = WebFocusSystem()
    monkeypatch.setattr(web_app, "system", fresh)
    return fresh


@pytest.fixture
def client(system):
    web_app.app.config["TESTING"] = True
    with web_app.app.test_client() as client:
        yield client


def _messages(system):
    logs, _ = system.get_logs()
    return [entry["message"] for entry in logs]


class TestPages:
    def test_index(self, client):
        response = client.get("/")
        assert response.status_code == 200


class TestDataApi:
    def test_initial_snapshot(self, client):
        data = client.get("/api/data").get_json()
        assert data["status"] == "Stopped"
        assert data["focused"] is False
        assert data["timer_mode"] == "stopwatch"
        assert data["running"] is False
        assert data["elapsed_focus_seconds"] == 0


class TestTimerApi:
    def test_unknown_action_rejected(self, client, system):
        response = client.post("/api/timer", json={"action": "jump"})
        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_toggle_applied_on_scheduler_thread(self, client, system):
        response = client.post("/api/timer", json={"action": "toggle"})
        assert response.status_code == 200
        # 操作只入队，由调度循环执行
        assert not system.session.timer.state.running
        system._drain_actions()
        assert system.session.timer.state.running
        assert "操作: toggle" in _messages(system)

    def test_invalid_queued_action_logged(self, system):
        system.submit_action("mode:egg")
        system._drain_actions()
        logs, _ = system.get_logs()
        assert logs[-1]["level"] == "warning"


class TestModeApi:
    def test_switch_mode(self, client, system):
        response = client.post("/api/mode", json={"mode": "pomodoro"})
        assert response.get_json() == {"success": True, "mode": "pomodoro"}
        system._drain_actions()
        assert system.session.timer.state.mode is TimerMode.POMODORO
        assert "切换到番茄钟模式" in _messages(system)

    def test_unknown_mode_rejected(self, client):
        response = client.post("/api/mode", json={"mode": "egg"})
        assert response.status_code == 400


class TestConfigApi:
    def test_update_thresholds(self, client, system):
        response = client.post("/api/config", json={"yaw_min": 0.2, "yaw_max": 0.8})
        assert response.status_code == 200
        classifier = system.session.sampling_loop.classifier
        # 阈值由调度循环应用
        assert classifier.yaw_min == 0.30
        system._drain_actions()
        assert classifier.yaw_min == 0.2
        assert classifier.yaw_max == 0.8
        assert system.config["yaw_max"] == 0.8

    def test_numeric_strings_converted(self, client, system):
        response = client.post("/api/config", json={"yaw_min": "0.1", "yaw_max": "0.9"})
        assert response.status_code == 200
        system._drain_actions()
        classifier = system.session.sampling_loop.classifier
        assert classifier.yaw_min == 0.1
        assert classifier.yaw_max == 0.9
        assert classifier.classify(make_landmarks()).focused is True

    @pytest.mark.parametrize("payload", [
        {"yaw_min": "abc"},
        {"pitch_threshold": None},
        {"yaw_max": [0.7]},
        {"yaw_min": -0.1},
        {"yaw_max": 1.5},
        {"yaw_min": "nan"},
        {"yaw_min": 0.8, "yaw_max": 0.2},
    ])
    def test_invalid_thresholds_rejected(self, client, system, payload):
        response = client.post("/api/config", json=payload)
        assert response.status_code == 400
        assert response.get_json()["success"] is False
        system._drain_actions()
        classifier = system.session.sampling_loop.classifier
        assert (classifier.yaw_min, classifier.yaw_max, classifier.pitch_threshold) == (0.30, 0.70, 0.5)

    def test_non_object_body_rejected(self, client):
        response = client.post("/api/config", json=[0.2, 0.8])
        assert response.status_code == 400


class TestLogsApi:
    def test_since_index(self, client, system):
        system._add_log("info", "first")
        system._add_log("info", "second")
        body = client.get("/api/logs?since=1").get_json()
        assert body["total"] == 2
        assert [entry["message"] for entry in body["logs"]] == ["second"]

    def test_log_capacity(self, system):
        for i in range(WebFocusSystem.MAX_LOG_ENTRIES + 10):
            system._add_log("info", str(i))
        logs, total = system.get_logs()
        assert total == WebFocusSystem.MAX_LOG_ENTRIES
        assert logs[-1]["message"] == str(WebFocusSystem.MAX_LOG_ENTRIES + 9)


class TestLifecycleApi:
    def test_start_without_camera(self, client, system, monkeypatch):
        monkeypatch.setattr(system.video_source, "open", lambda: False)
        body = client.post("/api/start").get_json()
        assert body["success"] is False
        assert "无法打开摄像头" in _messages(system)

    def test_stop_when_not_running(self, client):
        body = client.post("/api/stop").get_json()
        assert body["success"] is True

    def test_restart_keeps_timer_and_stats(self, system, monkeypatch):
        monkeypatch.setattr(system.video_source, "open", lambda: True)
        monkeypatch.setattr(system.face_detector, "load", lambda: None)
        monkeypatch.setattr(system, "_process_loop", lambda: None)
        timer, stats = system.session.timer, system.session.stats

        assert system.start()
        system.session.dispatch("start", now=0.0)
        for _ in range(7):
            system.session.timer.tick(True)
        first_loop = system.session.sampling_loop
        system.stop()
        assert system.start()

        assert system.session.timer is timer
        assert system.session.stats is stats
        assert system.session.timer.state.elapsed_focus_seconds == 7
        assert not system.session.timer.state.running
        assert system.session.sampling_loop is not first_loop
        assert not system.session.sampling_loop.cancelled
        system.stop()

    def test_config_survives_restart(self, system, monkeypatch):
        monkeypatch.setattr(system.video_source, "open", lambda: True)
        monkeypatch.setattr(system.face_detector, "load", lambda: None)
        monkeypatch.setattr(system, "_process_loop", lambda: None)
        system.update_config({"yaw_min": 0.25})
        system._drain_actions()
        system.start()
        system.stop()
        system.start()
        assert system.session.sampling_loop.classifier.yaw_min == 0.25
        system.stop()


class TestSchedulerLoop:
    def test_failed_iteration_does_not_stop_loop(self, system, monkeypatch, caplog):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise TypeError("bad threshold")
            system._running = False

        monkeypatch.setattr(system, "_process_once", flaky)
        system._running = True
        system._process_loop()
        assert len(calls) == 2
        assert "调度循环迭代出错" in caplog.text


class TestStatusLog:
    def test_status_changes_logged_once(self, system):
        focused = {"status": "Focused", "focused": True, "loop_status": "running"}
        down = {"status": "Looking Down", "focused": False, "loop_status": "running"}
        for data in (focused, focused, down, down):
            system._check_status_change(data)
        messages = _messages(system)
        assert messages.count("恢复专注") == 1
        assert messages.count("注意力状态: Looking Down") == 1
