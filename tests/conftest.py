import sys
import os
from concurrent.futures import Future

# Add project root to sys.path so tests can import from all modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np  # noqa: E402
import pytest  # noqa: E402
from hypothesis import settings  # noqa: E402

from models.data_models import LandmarkSet  # noqa: E402

# CI profile: more examples for thorough testing
settings.register_profile("ci", max_examples=200)
# Dev profile: fewer examples for faster iteration
settings.register_profile("dev", max_examples=100)
# Default to dev profile
settings.load_profile("dev")


def make_landmarks(nose_x=200.0, chin_y=300.0, left_x=100.0, right_x=300.0,
                   nose_y=200.0, bridge_y=150.0):
    """构造 LandmarkSet：默认正视（偏航比 0.5，俯仰比 2.0）"""
    return LandmarkSet(
        nose_tip=(nose_x, nose_y),
        left_jaw=(left_x, 200.0),
        right_jaw=(right_x, 200.0),
        chin=(nose_x, chin_y),
        nose_bridge=(nose_x, bridge_y),
    )


class ImmediateExecutor:
    """提交即在当前线程执行的执行器"""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args):
        self.submitted.append(fn)
        future = Future()
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)
        return future


class ManualExecutor:
    """提交后挂起，由测试调用 run_next() 完成"""

    def __init__(self):
        self.queue = []
        self.submitted = []

    def submit(self, fn, *args):
        future = Future()
        self.queue.append((fn, args, future))
        self.submitted.append(fn)
        return future

    def run_next(self):
        fn, args, future = self.queue.pop(0)
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeDetector:
    """按脚本返回检测结果；元素为异常实例时抛出"""

    def __init__(self, results=None, load_error=None):
        self.results = list(results or [])
        self.load_error = load_error
        self.loaded = False
        self.detect_calls = 0
        self.default = make_landmarks()

    def load(self):
        if self.load_error is not None:
            raise self.load_error
        self.loaded = True

    def detect(self, frame):
        self.detect_calls += 1
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.loaded = False


class FakeVideoSource:
    def __init__(self, ready=True):
        self.ready = ready
        self.latest_frame = np.zeros((480, 640, 3), dtype=np.uint8)

    def is_ready(self):
        return self.ready


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def fake_detector():
    return FakeDetector()


@pytest.fixture
def fake_video():
    return FakeVideoSource()
