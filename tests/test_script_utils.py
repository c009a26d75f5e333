"""Tests for the application wiring, with a fake camera and landmark detector."""

import numpy as np
import pytest

from gesturefield.hand_features import TrackingInitError
from gesturefield.script_utils import (
    ESCAPE_KEY_ASCII,
    GestureFieldApp,
    KeyboardBreakSignal,
    check_keyboard,
    gesturefield_cli,
    print_json_if_possible,
    run_gesturefield,
)
from gesturefield.tracking import TrackingStatus


@pytest.fixture
def make_app(fake_clock, fake_capture, fake_detector):
    """Build a headless app around a fake camera and detector."""

    def _make_app(hands=(None,), n_frames=1000, **kwargs):
        capture = fake_capture(n_frames=n_frames)
        detector = fake_detector(hands)
        kwargs = {
            'n_particles': 32,
            'draw_on_screen': None,
            'open_capture': lambda index: capture,
            'make_detector': lambda model_path: detector,
            'log_status': None,
            'clock': fake_clock,
            'sleep': fake_clock.sleep,
            'max_frames': 10,
            **kwargs,
        }
        app = GestureFieldApp(**kwargs)
        return app, capture, detector

    return _make_app


class TestGestureFieldApp:
    """Test suite for GestureFieldApp.run."""

    def test_headless_run(self, make_app, make_hand):
        app, capture, detector = make_app(hands=[make_hand()])
        status = app.run()
        assert status is TrackingStatus.READY
        assert app.frames_rendered == 10
        assert capture.released
        assert detector.closed
        assert detector.timestamps == sorted(detector.timestamps)

    def test_inference_runs_at_half_the_render_rate(self, make_app):
        app, capture, detector = make_app(max_frames=60)
        app.run()
        assert 29 <= len(detector.timestamps) <= 31

    def test_pinch_changes_the_rendered_formation(self, make_app, make_hand):
        app, _, _ = make_app(hands=[make_hand(pinch=0.01)])
        app.run()
        assert app.processor.control_state.shape_index == 1
        assert app.last_particle_frame.template_name == 'blossom'

    def test_no_hand_goes_stale(self, make_app):
        app, _, _ = make_app(hands=[None], max_frames=60, render_fps=30.0)
        assert app.run() is TrackingStatus.NO_HANDS

    def test_camera_failure_stops_cleanly(self, make_app):
        app, capture, detector = make_app(n_frames=3, max_frames=None)
        app.run()
        assert capture.reads == 3
        assert capture.released
        assert detector.closed

    def test_camera_init_failure_is_terminal_error(self, make_app):
        def refuse(index):
            raise TrackingInitError("permission denied")

        app, _, _ = make_app(open_capture=refuse)
        assert app.run() is TrackingStatus.ERROR
        assert app.frames_rendered == 0

    def test_model_init_failure_releases_camera(self, make_app):
        def broken_model(model_path):
            raise TrackingInitError("no model")

        app, capture, _ = make_app(make_detector=broken_model)
        assert app.run() is TrackingStatus.ERROR
        assert capture.released

    def test_logging_callbacks(self, make_app, make_hand):
        features, controls, statuses = [], [], []
        app, _, _ = make_app(
            hands=[make_hand(), None],
            log_hand_features=features.append,
            log_control_state=controls.append,
            log_status=statuses.append,
        )
        app.run()
        assert 'pinch_distance' in features[0]
        assert features[1] == {}
        assert set(controls[0]) == {
            'shape_index', 'expansion', 'swirl', 'hue', 'intensity', 'burst'
        }
        assert statuses[0] is TrackingStatus.READY

    def test_windowed_run_stops_on_escape(self, make_app, make_hand):
        shown = []
        keys = iter([255, 255, ESCAPE_KEY_ASCII])
        closed = []
        from gesturefield.display import draw_on_screen

        app, capture, _ = make_app(
            hands=[make_hand()],
            draw_on_screen=draw_on_screen,
            canvas_size=(160, 120),
            show=lambda name, img: shown.append(img),
            read_key=lambda: next(keys),
            close_windows=lambda: closed.append(True),
            max_frames=None,
        )
        app.run()
        assert len(shown) == 3
        assert shown[0].shape == (120, 160, 3)
        assert capture.released
        assert closed == [True]


class TestRunGesturefield:
    """Test suite for run_gesturefield."""

    def test_unknown_shape(self):
        with pytest.raises(ValueError):
            run_gesturefield(shapes=['sphere', 'cube'], n_particles=8)

    @pytest.mark.parametrize('fps_arg', ['inference_fps', 'render_fps'])
    def test_non_positive_rate(self, fps_arg):
        with pytest.raises(ValueError):
            run_gesturefield(n_particles=8, **{fps_arg: 0})
        with pytest.raises(ValueError):
            run_gesturefield(n_particles=8, **{fps_arg: -5.0})

    def test_unknown_step_policy(self):
        with pytest.raises(ValueError):
            run_gesturefield(step_policy='rk4', n_particles=8)


class TestCli:
    """Test suite for the command-line helpers."""

    def test_list_shapes(self, capsys):
        gesturefield_cli(list_shapes=True)
        out = capsys.readouterr().out
        assert 'nebula' in out
        assert 'sphere' in out

    def test_list_step_policies(self, capsys):
        gesturefield_cli(list_step_policies=True)
        out = capsys.readouterr().out
        assert 'clamped' in out
        assert 'fixed' in out

    def test_check_keyboard(self):
        assert check_keyboard(255) == 255
        with pytest.raises(KeyboardBreakSignal):
            check_keyboard(ord('q'))

    def test_print_json_if_possible(self, capsys):
        print_json_if_possible({'a': 1})
        print_json_if_possible(np.float32)
        out = capsys.readouterr().out
        assert '{"a": 1}' in out
        assert 'numpy.float32' in out
