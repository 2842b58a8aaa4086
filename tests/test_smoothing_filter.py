"""SmoothingFilter 单元测试"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from evaluators.smoothing_filter import SmoothingFilter, smooth
from models.data_models import (
    INITIAL_ATTENTION,
    AttentionReason,
    AttentionSample,
    AttentionState,
)

FOCUSED = AttentionSample(focused=True, reason=AttentionReason.FOCUSED)
DOWN = AttentionSample(focused=False, reason=AttentionReason.LOOKING_DOWN)
LEFT = AttentionSample(focused=False, reason=AttentionReason.LOOKING_LEFT)
NO_FACE = AttentionSample.no_face()


@pytest.fixture
def smoothing_filter():
    return SmoothingFilter(window=5, threshold=3)


class TestConsensus:
    def test_initial_state(self, smoothing_filter):
        assert smoothing_filter.state == INITIAL_ATTENTION
        assert smoothing_filter.history == ()

    def test_three_focused_publishes_focused(self, smoothing_filter):
        for _ in range(3):
            state = smoothing_filter.ingest(FOCUSED)
        assert state == AttentionState(focused=True, status="Focused")

    def test_two_focused_not_enough(self, smoothing_filter):
        smoothing_filter.ingest(FOCUSED)
        state = smoothing_filter.ingest(FOCUSED)
        assert state == INITIAL_ATTENTION

    def test_split_history_holds_previous_state(self, smoothing_filter):
        """2 专注 + 2 低头未达成共识，保持之前的状态"""
        for sample in (FOCUSED, FOCUSED, DOWN, DOWN):
            state = smoothing_filter.ingest(sample)
        assert state == INITIAL_ATTENTION

    def test_split_history_holds_published_focused(self, smoothing_filter):
        for _ in range(3):
            smoothing_filter.ingest(FOCUSED)
        smoothing_filter.ingest(DOWN)
        state = smoothing_filter.ingest(DOWN)
        # 窗口内 3 专注 2 低头
        assert state.focused is True

    def test_distracted_consensus_uses_latest_reason(self, smoothing_filter):
        for sample in (LEFT, DOWN, LEFT):
            state = smoothing_filter.ingest(sample)
        assert state == AttentionState(focused=False, status="Looking Left")

    def test_latest_non_focused_reason_skips_trailing_focused(self, smoothing_filter):
        for sample in (LEFT, LEFT, DOWN, FOCUSED):
            state = smoothing_filter.ingest(sample)
        assert state == AttentionState(focused=False, status="Looking Down")


class TestNoFace:
    def test_single_missed_frame_does_not_report_no_face(self, smoothing_filter):
        for _ in range(5):
            smoothing_filter.ingest(FOCUSED)
        state = smoothing_filter.ingest(NO_FACE)
        assert state.focused is True

    def test_consistent_no_face_reported(self, smoothing_filter):
        for _ in range(3):
            state = smoothing_filter.ingest(NO_FACE)
        assert state == AttentionState(focused=False, status="No face detected")

    def test_no_face_counts_as_distracted(self, smoothing_filter):
        for sample in (DOWN, NO_FACE, DOWN):
            state = smoothing_filter.ingest(sample)
        assert state.focused is False
        assert state.status == "Looking Down"


class TestBuffer:
    def test_buffer_bounded_after_many_ingests(self, smoothing_filter):
        samples = [FOCUSED if i % 3 else DOWN for i in range(100)]
        for sample in samples:
            smoothing_filter.ingest(sample)
        assert len(smoothing_filter.history) == 5
        assert smoothing_filter.history == tuple(samples[-5:])

    @given(st.lists(st.sampled_from([FOCUSED, DOWN, LEFT, NO_FACE]), max_size=60))
    def test_buffer_never_exceeds_window(self, samples):
        smoothing_filter = SmoothingFilter(window=5, threshold=3)
        for sample in samples:
            smoothing_filter.ingest(sample)
            assert len(smoothing_filter.history) <= 5

    def test_reset_restores_initial_state(self, smoothing_filter):
        for _ in range(3):
            smoothing_filter.ingest(FOCUSED)
        smoothing_filter.reset()
        assert smoothing_filter.state == INITIAL_ATTENTION
        assert smoothing_filter.history == ()


class TestSmoothFunction:
    def test_pure_function_holds_previous(self):
        previous = AttentionState(focused=True, status="Focused")
        assert smooth([DOWN, DOWN, FOCUSED], previous, threshold=3) is previous

    def test_empty_history_holds_previous(self):
        assert smooth([], INITIAL_ATTENTION) is INITIAL_ATTENTION


class TestValidation:
    def test_threshold_larger_than_window(self):
        with pytest.raises(ValueError, match="不能大于窗口大小"):
            SmoothingFilter(window=3, threshold=4)

    def test_non_positive_values(self):
        with pytest.raises(ValueError):
            SmoothingFilter(window=0, threshold=0)
