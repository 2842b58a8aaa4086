"""采样循环：节流调用人脸检测，把分类结果送入平滑滤波器"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Optional

from detectors.attention_classifier import AttentionClassifier
from evaluators.smoothing_filter import SmoothingFilter
from models.data_models import (
    INITIAL_ATTENTION,
    AttentionSample,
    AttentionState,
    LandmarkSet,
    LoopStatus,
)

logger = logging.getLogger(__name__)

# 约 10 次/秒
DETECTION_INTERVAL = 0.1


class SamplingLoop:
    """
    由外部调度循环逐帧调用 tick(now)。

    - 模型加载中：状态为 LOADING，不采样；加载失败：MODEL_ERROR，永久停止采样
    - 视频未就绪：状态为 WAITING，每次 tick 重试
    - 同一时刻最多一个检测请求在执行，前一个完成并处理后才发起下一个
    - 检测或分类异常记录日志后按未检测到人脸处理，不会终止循环
    - cancel() 之后不再发起检测，迟到的检测结果直接丢弃

    所有状态更新都发生在调用 tick 的线程上，检测本身在单工作线程中执行。
    """

    def __init__(
        self,
        detector,
        video_source,
        smoothing_filter: SmoothingFilter,
        classifier: Optional[AttentionClassifier] = None,
        interval: float = DETECTION_INTERVAL,
        executor: Optional[Executor] = None,
    ):
        if interval < 0:
            raise ValueError("采样间隔不能为负数")
        self._detector = detector
        self._video = video_source
        self._filter = smoothing_filter
        self.classifier = classifier or AttentionClassifier()
        self.interval = interval

        self._executor = executor
        self._owns_executor = executor is None
        self._load_future: Optional[Future] = None
        self._pending: Optional[Future] = None
        self._last_issue: Optional[float] = None
        self._status = LoopStatus.STOPPED
        self._cancelled = False

        self.last_sample: Optional[AttentionSample] = None
        self.last_landmarks: Optional[LandmarkSet] = None
        self.detection_errors = 0

    @property
    def status(self) -> LoopStatus:
        return self._status

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def attention(self) -> AttentionState:
        return self._filter.state

    @property
    def display_status(self) -> str:
        """界面显示文字：循环未运行时显示循环状态，否则显示注意力状态"""
        if self._status is not LoopStatus.RUNNING or self._filter.state == INITIAL_ATTENTION:
            return self._status.value
        return self._filter.state.status

    def start(self):
        """异步加载检测模型，加载完成前 tick 只报告 LOADING"""
        if self._cancelled:
            raise RuntimeError("采样循环已取消，无法重新启动")
        if self._load_future is not None:
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="face-detector")
        self._status = LoopStatus.LOADING
        self._load_future = self._executor.submit(self._detector.load)

    def tick(self, now: float) -> AttentionState:
        """执行一次采样调度，返回当前发布的注意力状态"""
        if self._cancelled or self._load_future is None:
            return self._filter.state
        if not self._model_ready():
            return self._filter.state

        if self._pending is not None:
            if not self._pending.done():
                return self._filter.state
            self._harvest()

        if not self._video.is_ready():
            self._status = LoopStatus.WAITING
            return self._filter.state
        self._status = LoopStatus.RUNNING

        if self._last_issue is not None and now - self._last_issue < self.interval:
            return self._filter.state
        self._last_issue = now

        self._pending = self._executor.submit(self._detector.detect, self._video.latest_frame)
        if self._pending.done():
            self._harvest()
        return self._filter.state

    def cancel(self, wait: bool = False):
        """停止循环：取消未完成的请求，不再发起新的检测；wait 为真时等待执行中的检测结束"""
        if self._cancelled:
            return
        self._cancelled = True
        self._status = LoopStatus.STOPPED
        for future in (self._pending, self._load_future):
            if future is not None:
                future.cancel()
        self._pending = None
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)

    def _model_ready(self) -> bool:
        if self._status is LoopStatus.MODEL_ERROR:
            return False
        if not self._load_future.done():
            self._status = LoopStatus.LOADING
            return False
        error = self._load_future.exception()
        if error is not None:
            logger.error("人脸检测模型加载失败: %s", error)
            self._status = LoopStatus.MODEL_ERROR
            return False
        return True

    def _harvest(self):
        """取出已完成的检测结果，分类后送入滤波器"""
        future, self._pending = self._pending, None
        try:
            landmarks = future.result()
        except Exception as e:
            self.detection_errors += 1
            logger.warning("人脸检测出错，本次按未检测到人脸处理: %s", e)
            landmarks = None

        self.last_landmarks = landmarks
        sample = AttentionSample.no_face()
        if landmarks is not None:
            try:
                sample = self.classifier.classify(landmarks)
            except Exception as e:
                self.detection_errors += 1
                logger.warning("注意力分类出错，本次按未检测到人脸处理: %s", e)
        self.last_sample = sample
        self._filter.ingest(sample)
