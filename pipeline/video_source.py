"""摄像头视频源，封装 cv2.VideoCapture 并提供就绪判断"""

import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class VideoSource:
    """读取摄像头帧，保存最近一帧供采样循环使用"""

    def __init__(self, camera_index: int = 0, width: int = 640, height: int = 480):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self._cap = None
        self._latest_frame: Optional[np.ndarray] = None

    @property
    def latest_frame(self) -> Optional[np.ndarray]:
        return self._latest_frame

    def open(self) -> bool:
        """打开摄像头，失败返回 False"""
        self._cap = cv2.VideoCapture(self.camera_index)
        if not self._cap.isOpened():
            logger.error("无法打开摄像头 %s", self.camera_index)
            return False
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        return True

    def read(self) -> Optional[np.ndarray]:
        """读取一帧；读取失败时保留上一帧并返回 None"""
        if self._cap is None:
            return None
        ret, frame = self._cap.read()
        if not ret:
            return None
        self._latest_frame = frame
        return frame

    def is_ready(self) -> bool:
        """已有一帧尺寸非零的图像"""
        frame = self._latest_frame
        return frame is not None and frame.ndim >= 2 and frame.shape[0] > 0 and frame.shape[1] > 0

    def release(self):
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self._cap = None
        self._latest_frame = None
