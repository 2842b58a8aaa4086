"""注意力分类模块，根据关键点几何比例判断是否注视屏幕"""

from typing import Optional, Tuple

from models.data_models import AttentionReason, AttentionSample, LandmarkSet

YAW_THRESHOLD_MIN = 0.30
YAW_THRESHOLD_MAX = 0.70
PITCH_THRESHOLD = 0.5


def compute_ratios(landmarks: LandmarkSet) -> Tuple[Optional[float], Optional[float]]:
    """
    计算偏航比和俯仰比。

    偏航比 = 鼻尖到左下颌的水平距离 / 脸宽；
    俯仰比 = 鼻尖到下巴的垂直距离 / 鼻梁到鼻尖的垂直距离。

    Returns:
        (yaw_ratio, pitch_ratio)，分母不为正时对应项为 None
    """
    face_width = landmarks.right_jaw[0] - landmarks.left_jaw[0]
    yaw_ratio = None
    if face_width != 0:
        yaw_ratio = (landmarks.nose_tip[0] - landmarks.left_jaw[0]) / face_width

    nose_to_chin = landmarks.chin[1] - landmarks.nose_tip[1]
    bridge_to_nose = landmarks.nose_tip[1] - landmarks.nose_bridge[1]
    pitch_ratio = None
    if bridge_to_nose > 0:
        pitch_ratio = nose_to_chin / bridge_to_nose

    return yaw_ratio, pitch_ratio


def classify_attention(
    landmarks: LandmarkSet,
    yaw_min: float = YAW_THRESHOLD_MIN,
    yaw_max: float = YAW_THRESHOLD_MAX,
    pitch_threshold: float = PITCH_THRESHOLD,
) -> AttentionSample:
    """
    对单帧关键点做注意力判定，纯函数。

    脸宽为零时视为未检测到人脸；俯仰比分母不为正时跳过低头判断。
    """
    yaw_ratio, pitch_ratio = compute_ratios(landmarks)

    if yaw_ratio is None:
        return AttentionSample.no_face()
    # 阈值两端包含在专注区间内
    if yaw_ratio < yaw_min:
        return AttentionSample(focused=False, reason=AttentionReason.LOOKING_RIGHT)
    if yaw_ratio > yaw_max:
        return AttentionSample(focused=False, reason=AttentionReason.LOOKING_LEFT)

    if pitch_ratio is not None and pitch_ratio < pitch_threshold:
        return AttentionSample(focused=False, reason=AttentionReason.LOOKING_DOWN)

    return AttentionSample(focused=True, reason=AttentionReason.FOCUSED)


class AttentionClassifier:
    """持有判定阈值的注意力分类器"""

    def __init__(
        self,
        yaw_min: float = YAW_THRESHOLD_MIN,
        yaw_max: float = YAW_THRESHOLD_MAX,
        pitch_threshold: float = PITCH_THRESHOLD,
    ):
        if not yaw_min < yaw_max:
            raise ValueError(f"偏航阈值无效: yaw_min={yaw_min}, yaw_max={yaw_max}")
        self.yaw_min = yaw_min
        self.yaw_max = yaw_max
        self.pitch_threshold = pitch_threshold

    def classify(self, landmarks: LandmarkSet) -> AttentionSample:
        return classify_attention(
            landmarks,
            yaw_min=self.yaw_min,
            yaw_max=self.yaw_max,
            pitch_threshold=self.pitch_threshold,
        )
