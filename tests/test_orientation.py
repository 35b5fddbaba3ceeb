from __future__ import annotations

from trenchsight.capture.orientation import OrientationSample, OrientationTracker
from trenchsight.capture.sources import PushSource


def _tracker():
    source = PushSource("orientation")
    tracker = OrientationTracker(source, tolerance_deg=5.0)
    tracker.start()
    return source, tracker


def test_samples_overwrite_heading_and_pitch():
    source, tracker = _tracker()

    source.push(OrientationSample(heading=10.0, pitch=40.0))
    source.push(OrientationSample(heading=12.0, pitch=41.0))

    assert tracker.heading == 12.0
    assert tracker.pitch == 41.0


def test_no_baseline_and_no_warning_before_arming():
    source, tracker = _tracker()

    source.push(OrientationSample(heading=0.0, pitch=80.0))

    assert tracker.baseline is None
    assert tracker.angle_warning is False


def test_baseline_taken_from_first_sample_after_arming():
    source, tracker = _tracker()
    source.push(OrientationSample(heading=0.0, pitch=30.0))

    tracker.arm_baseline()
    assert tracker.baseline is None

    source.push(OrientationSample(heading=0.0, pitch=45.0))
    source.push(OrientationSample(heading=0.0, pitch=47.0))

    assert tracker.baseline == 45.0
    assert tracker.deviation == 2.0
    assert tracker.angle_warning is False


def test_warning_iff_deviation_exceeds_tolerance():
    source, tracker = _tracker()
    tracker.arm_baseline()
    source.push(OrientationSample(pitch=45.0))

    source.push(OrientationSample(pitch=50.0))
    assert tracker.angle_warning is False

    source.push(OrientationSample(pitch=50.5))
    assert tracker.angle_warning is True

    source.push(OrientationSample(pitch=39.0))
    assert tracker.angle_warning is True

    source.push(OrientationSample(pitch=44.0))
    assert tracker.angle_warning is False


def test_unknown_pitch_does_not_set_baseline():
    source, tracker = _tracker()
    tracker.arm_baseline()

    source.push(OrientationSample(heading=None, pitch=None))
    assert tracker.baseline is None
    assert tracker.heading is None

    source.push(OrientationSample(heading=None, pitch=12.0))
    assert tracker.baseline == 12.0


def test_unknown_pitch_after_baseline_raises_warning():
    source, tracker = _tracker()
    tracker.arm_baseline()
    source.push(OrientationSample(pitch=12.0))

    source.push(OrientationSample(pitch=None))

    assert tracker.angle_warning is True


def test_clear_baseline_disarms():
    source, tracker = _tracker()
    tracker.arm_baseline()
    source.push(OrientationSample(pitch=12.0))

    tracker.clear_baseline()
    source.push(OrientationSample(pitch=30.0))

    assert tracker.baseline is None
    assert tracker.angle_warning is False
