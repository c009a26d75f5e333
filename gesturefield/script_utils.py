"""Utility functions for running gesturefield."""

import json
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterable, Optional, Tuple, Union

import cv2
import numpy as np

from gesturefield.display import DFLT_CANVAS_SIZE, draw_on_screen, make_starfield
from gesturefield.gesture import (
    NEUTRAL_CONTROL_STATE,
    NO_HAND_DEBUG_METRICS,
    ControlState,
    DebugMetrics,
    GestureProcessor,
)
from gesturefield.hand_features import (
    HandFrame,
    HandLandmarkDetector,
    TrackingInitError,
    hand_features_dict,
)
from gesturefield.particles import DFLT_STEP_POLICY, ParticleEngine, step_policies
from gesturefield.scheduler import CooperativeScheduler, LatestValue, PeriodicTask
from gesturefield.shapes import (
    DFLT_PARTICLE_COUNT,
    DFLT_SHAPE_NAMES,
    make_shape_templates,
    shape_template_funcs,
)
from gesturefield.tracking import StatusMonitor, TrackingStatus
from gesturefield.util import (
    current_time_string_with_milliseconds,
    resolve_object,
    return_none as do_nothing,
)

resolve_step_policy = partial(resolve_object, object_map=step_policies)


# -------------------------------------------------------------------------------
# Logging utilities
# -------------------------------------------------------------------------------


def print_json_if_possible(x):
    """Prints the input as JSON when it can be serialized, and adds a newline."""
    try:
        x = json.dumps(x)
    except (TypeError, ValueError):
        pass
    print(x)
    print()


def log_status_change(status: TrackingStatus):
    print(f"[{current_time_string_with_milliseconds()}] status: {status.value}")


# -------------------------------------------------------------------------------
# Keyboard handling functions
# -------------------------------------------------------------------------------

ESCAPE_KEY_ASCII = 27
BREAK_KEYS = {ESCAPE_KEY_ASCII, ord('q')}


class KeyboardBreakSignal(Exception):
    """Exception raised when a break key is pressed."""

    pass


def read_keyboard(wait_time: int = 1) -> int:
    """
    Read keyboard input with the specified wait time.

    Args:
        wait_time: Time to wait for keyboard input in milliseconds

    Returns:
        The key code, or 255 if no key was pressed
    """
    return cv2.waitKey(wait_time) & 0xFF


def check_keyboard(key_code: int, break_keys=BREAK_KEYS) -> int:
    """
    Raise ``KeyboardBreakSignal`` if ``key_code`` asks to quit.

    Raises:
        KeyboardBreakSignal: If a key that signals program termination is pressed
    """
    if key_code in break_keys:
        raise KeyboardBreakSignal(f"Break key pressed: {key_code}")
    return key_code


# -------------------------------------------------------------------------------
# Camera handling functions
# -------------------------------------------------------------------------------

DFLT_CAPTURE_SIZE = (960, 720)


class CameraReadError(Exception):
    """Exception raised when camera read fails."""

    pass


def open_camera(camera_index: int = 0, *, capture_size=DFLT_CAPTURE_SIZE):
    """
    Open a camera for capture.

    Raises:
        TrackingInitError: If the camera cannot be opened (missing or denied)
    """
    cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        cap.release()
        raise TrackingInitError(f"Could not open camera {camera_index}")
    width, height = capture_size
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    return cap


def read_camera(cap) -> Any:
    """
    Read a frame from the camera and flip it horizontally.

    Args:
        cap: OpenCV video capture object

    Returns:
        The flipped image if successful

    Raises:
        CameraReadError: If the camera read operation fails
    """
    success, img = cap.read()
    if not success:
        raise CameraReadError("Failed to read from camera")

    # Flip image horizontally for a more natural interaction
    return cv2.flip(img, 1)


# -------------------------------------------------------------------------------
# Application
# -------------------------------------------------------------------------------

DFLT_INFERENCE_FPS = 30.0
DFLT_RENDER_FPS = 60.0
DFLT_WINDOW_NAME = 'Gesture Reactive Particles'


@dataclass(frozen=True)
class InferenceSnapshot:
    """What the inference loop publishes for the render loop."""

    control: ControlState
    debug: DebugMetrics
    hand: Optional[HandFrame] = None
    camera_img: Optional[np.ndarray] = None


class GestureFieldApp:
    """
    Wires camera, landmark detector, gesture processor and particle engine.

    Two periodic tasks share one thread. The inference task reads a camera
    frame, detects the hand and publishes a new ``InferenceSnapshot``. The
    render task advances the particles from the latest snapshot, whatever its
    age, and shows the result. ``stop()`` ends both; camera and detector are
    released on every exit path.

    Args:
        n_particles: Number of particles
        shapes: Names of the shape templates to cycle through with pinches
        step_policy: Name or function of the particle integration step policy
        camera_index: Index of the camera to open
        model_path: Path to the hand landmarker model (downloaded if None)
        inference_fps: Maximum rate of the inference task
        render_fps: Maximum rate of the render task
        canvas_size: (width, height) of the rendered image
        log_hand_features: Called with the hand feature dict on every inference
        log_control_state: Called with the control state dict on every inference
        log_status: Called with the new status whenever it changes
        draw_on_screen: Composes the displayed image (None to render headless)
        show: Displays an image in a window
        read_key: Returns the last key code pressed
        open_capture: Opens the camera (raises TrackingInitError on failure)
        make_detector: Creates the landmark detector (raises TrackingInitError)
        max_frames: Stop after this many render ticks (None to run until stopped)
        clock: Callable returning the current time in seconds
        sleep: Callable used to wait between ticks
    """

    def __init__(
        self,
        *,
        n_particles: int = DFLT_PARTICLE_COUNT,
        shapes: Iterable[str] = DFLT_SHAPE_NAMES,
        step_policy: Union[str, Callable] = DFLT_STEP_POLICY,
        camera_index: int = 0,
        model_path: Optional[str] = None,
        inference_fps: float = DFLT_INFERENCE_FPS,
        render_fps: float = DFLT_RENDER_FPS,
        canvas_size: Tuple[int, int] = DFLT_CANVAS_SIZE,
        log_hand_features: Optional[Callable] = None,
        log_control_state: Optional[Callable] = None,
        log_status: Optional[Callable] = log_status_change,
        draw_on_screen: Optional[Callable] = draw_on_screen,
        window_name: str = DFLT_WINDOW_NAME,
        show: Callable = cv2.imshow,
        read_key: Callable = read_keyboard,
        close_windows: Callable = cv2.destroyAllWindows,
        open_capture: Callable = open_camera,
        make_detector: Callable = HandLandmarkDetector,
        max_frames: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        for name, fps in [('inference_fps', inference_fps), ('render_fps', render_fps)]:
            if not fps > 0:
                raise ValueError(f"{name} must be positive, got {fps}")
        self.camera_index = camera_index
        self.model_path = model_path
        self.canvas_size = canvas_size
        self.log_hand_features = log_hand_features or do_nothing
        self.log_control_state = log_control_state or do_nothing
        self.draw_on_screen = draw_on_screen
        self.window_name = window_name
        self.show = show
        self.read_key = read_key
        self.close_windows = close_windows
        self.open_capture = open_capture
        self.make_detector = make_detector
        self.max_frames = max_frames
        self.clock = clock

        self.status = StatusMonitor(clock=clock, on_change=log_status)
        self.processor = GestureProcessor()
        self.engine = ParticleEngine(
            make_shape_templates(n_particles, shapes),
            step_policy=resolve_step_policy(step_policy),
        )
        self.particles = self.engine.new_state()
        self.published = LatestValue(
            InferenceSnapshot(NEUTRAL_CONTROL_STATE, NO_HAND_DEBUG_METRICS)
        )
        self.scheduler = CooperativeScheduler(clock=clock, sleep=sleep)
        self.scheduler.add(PeriodicTask('inference', self._inference_tick, 1 / inference_fps))
        self.scheduler.add(PeriodicTask('render', self._render_tick, 1 / render_fps))

        self.cap = None
        self.detector = None
        self.background = None
        self.start_time = None
        self.last_render_time = None
        self.frames_rendered = 0
        self.last_particle_frame = None

    # ---------------------------------------------------------------------------
    # Ticks

    def _inference_tick(self, now: float):
        img = read_camera(self.cap)
        hand = self.detector.detect(img, int((now - self.start_time) * 1000))
        self.status.observe(hand is not None)

        control, debug = self.processor(hand)
        self.log_hand_features(hand_features_dict(hand))
        self.log_control_state(control.to_dict())

        self.published.publish(InferenceSnapshot(control, debug, hand, img))

    def _render_tick(self, now: float):
        if self.last_render_time is None:
            delta_time = 0.0
        else:
            delta_time = now - self.last_render_time
        self.last_render_time = now

        snapshot = self.published.get()
        particle_frame = self.engine.tick(
            snapshot.control, now - self.start_time, delta_time, self.particles
        )
        self.last_particle_frame = particle_frame
        self.frames_rendered += 1

        if self.draw_on_screen:
            img = self.draw_on_screen(
                self.background,
                particle_frame,
                control=snapshot.control,
                debug=snapshot.debug,
                status_label=self.status.label,
                tracking_ready=self.status.tracking_ready,
                camera_img=snapshot.camera_img,
                hand=snapshot.hand,
            )
            self.show(self.window_name, img)
            check_keyboard(self.read_key())

        if self.max_frames is not None and self.frames_rendered >= self.max_frames:
            self.stop()

    # ---------------------------------------------------------------------------
    # Lifecycle

    def stop(self):
        """Ask both loops to stop after the current tick."""
        self.scheduler.stop()

    def _run_loops(self):
        try:
            self.scheduler.run()
        except (CameraReadError, KeyboardBreakSignal) as e:
            print(f"Stopping: {e}")
            self.stop()
        except KeyboardInterrupt:
            print("Stopping: interrupted")
            self.stop()

    def run(self) -> TrackingStatus:
        """
        Run until stopped. Returns the final tracking status.

        Initialization failures (camera or model) are reported as the terminal
        ``error`` status; there is no retry.
        """
        try:
            try:
                self.cap = self.open_capture(self.camera_index)
                self.detector = self.make_detector(self.model_path)
            except TrackingInitError as e:
                print(f"Hand tracking failed to initialize: {e}")
                self.status.mark_error()
                return self.status.status

            template_names = [t.name for t in self.engine.templates]
            print(
                f"\nAnimating {self.engine.n_particles} particles "
                f"through shapes: {template_names}\n"
            )
            self.status.mark_ready()
            width, height = self.canvas_size
            self.background = make_starfield(width, height)
            self.start_time = self.clock()
            self._run_loops()
        finally:
            self.release()
            print(f"\n---> Rendered {self.frames_rendered} frames\n")

        return self.status.status

    def release(self):
        """Release the camera, the detector and any window. Safe to call twice."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        if self.detector is not None:
            self.detector.close()
            self.detector = None
        if self.draw_on_screen:
            self.close_windows()


def run_gesturefield(**kwargs) -> TrackingStatus:
    """
    Run the gesture-driven particle field. See ``GestureFieldApp`` for arguments.
    """
    return GestureFieldApp(**kwargs).run()


# -------------------------------------------------------------------------------
# Command line
# -------------------------------------------------------------------------------


def gesturefield_cli(
    # Simulation
    n_particles: int = DFLT_PARTICLE_COUNT,
    shapes: str = ','.join(DFLT_SHAPE_NAMES),
    step_policy: str = DFLT_STEP_POLICY,
    # Capture and inference
    camera: int = 0,
    model_path: str = None,
    inference_fps: float = DFLT_INFERENCE_FPS,
    render_fps: float = DFLT_RENDER_FPS,
    # Logging options
    log_hand_features: bool = False,
    log_control_state: bool = False,
    # Display options
    window_name: str = DFLT_WINDOW_NAME,
    headless: bool = False,
    max_frames: int = None,
    # List available components
    list_shapes: bool = False,
    list_step_policies: bool = False,
):
    """
    Run the gesture-driven particle field with the specified parameters.

    Args:
        n_particles: Number of particles
        shapes: Comma-separated shape template names, in pinch-cycling order
        step_policy: Name of the particle integration step policy
        camera: Index of the camera to use
        model_path: Path to a hand_landmarker.task model (downloaded if omitted)
        inference_fps: Maximum hand detection rate
        render_fps: Maximum render rate
        log_hand_features: Whether to log hand features
        log_control_state: Whether to log the control state
        window_name: Title for the display window
        headless: Run without a window (stop with Ctrl-C or max_frames)
        max_frames: Stop after this many rendered frames
        list_shapes: List available shape templates and exit
        list_step_policies: List available step policies and exit
    """

    if list_shapes:
        print("Available shape templates:")
        for name in shape_template_funcs:
            print(f"  - {name}")
        return

    if list_step_policies:
        print("Available step policies:")
        for name in sorted(step_policies):
            print(f"  - {name}")
        return

    status = run_gesturefield(
        n_particles=n_particles,
        shapes=[s.strip() for s in shapes.split(',') if s.strip()],
        step_policy=step_policy,
        camera_index=camera,
        model_path=model_path,
        inference_fps=inference_fps,
        render_fps=render_fps,
        log_hand_features=print_json_if_possible if log_hand_features else None,
        log_control_state=print_json_if_possible if log_control_state else None,
        window_name=window_name,
        draw_on_screen=None if headless else draw_on_screen,
        max_frames=None if max_frames is None else int(max_frames),
    )
    if status is TrackingStatus.ERROR:
        raise SystemExit(1)
