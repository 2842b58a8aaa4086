"""人脸关键点检测模块，基于 MediaPipe FaceMesh"""

import logging
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from models.data_models import LandmarkSet

logger = logging.getLogger(__name__)

# 注意力判定所需关键点索引（FaceMesh 468 点拓扑，左右按图像坐标）
ATTENTION_INDICES = {
    "nose_tip": 1,
    "left_jaw": 234,
    "right_jaw": 454,
    "chin": 152,
    "nose_bridge": 168,
}


class FaceDetector:
    """使用 MediaPipe FaceMesh 检测人脸关键点，模型在 load() 时才创建"""

    def __init__(
        self,
        max_num_faces: int = 1,
        min_detection_confidence: float = 0.5,
    ):
        self.max_num_faces = max_num_faces
        self.min_detection_confidence = min_detection_confidence
        self._face_mesh = None

    @property
    def is_ready(self) -> bool:
        return self._face_mesh is not None

    def load(self) -> None:
        """
        创建 FaceMesh 实例。

        Raises:
            RuntimeError: MediaPipe 初始化失败时抛出
        """
        if self.is_ready:
            return
        try:
            self._face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=self.max_num_faces,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=0.5,
                refine_landmarks=False,
            )
        except (AttributeError, OSError, RuntimeError) as e:
            raise RuntimeError(f"无法初始化 MediaPipe FaceMesh: {e}") from e
        logger.info("FaceMesh 模型加载完成")

    def detect(self, frame: np.ndarray) -> Optional[LandmarkSet]:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            LandmarkSet；未检测到人脸时返回 None

        Raises:
            RuntimeError: 模型尚未加载
        """
        if self._face_mesh is None:
            raise RuntimeError("FaceMesh 模型尚未加载")

        h, w = frame.shape[:2]

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return None

        # 只处理第一张人脸
        face = results.multi_face_landmarks[0]

        all_landmarks = tuple(
            (lm.x * w, lm.y * h) for lm in face.landmark
        )

        keypoints = {
            name: all_landmarks[idx] for name, idx in ATTENTION_INDICES.items()
        }
        return LandmarkSet(all_landmarks=all_landmarks, **keypoints)

    def close(self):
        """释放 MediaPipe 资源"""
        if self._face_mesh is not None:
            self._face_mesh.close()
            self._face_mesh = None
