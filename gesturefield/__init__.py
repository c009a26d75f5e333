"""
A particle field you play with your hand.

A webcam feed goes through a hand landmark detector. The geometry of the hand
(how far thumb and index are apart, how spread and open the fingers are, how
tilted and high the palm is, how much depth it has) is turned into a handful of
smoothed control parameters, and those drive a few thousand particles that
gather into formations, swirl, change color and burst.

Pinching (thumb to index) cycles through the formations. Taking the hand away
lets everything relax back to a calm resting state.

Here's what's in here:

* hand_features.py: landmark detection (MediaPipe HandLandmarker) and the
    scalar hand features computed from the 21 landmarks.
* gesture.py: from hand features to a smoothed, bounded ``ControlState``,
    with the hysteresis pinch latch that picks the formation.
* shapes.py: the formation templates (nebula, blossom, rings, supernova, sphere).
* particles.py: the particle engine, advancing positions and velocities
    toward the active formation every render tick.
* tracking.py: the user-facing tracking status.
* scheduler.py: runs the inference and render loops cooperatively, handing off
    the latest control state between them.
* display.py: OpenCV rendering of the particles, legend, status and camera inset.
* script_utils.py: wires everything together (``run_gesturefield``) and the CLI.

Run it with ``gesturefield`` (or ``python -m gesturefield.main``).
"""

from gesturefield.gesture import (
    ControlState,
    DebugMetrics,
    GestureProcessor,
    LatchState,
    NEUTRAL_CONTROL_STATE,
    process,
)
from gesturefield.hand_features import (
    HandFeatures,
    HandFrame,
    HandLandmarkDetector,
    TrackingInitError,
    extract_hand_features,
)
from gesturefield.particles import ParticleEngine, ParticleFrame, ParticleState
from gesturefield.shapes import ShapeTemplate, make_shape_templates
from gesturefield.tracking import StatusMonitor, TrackingStatus
from gesturefield.script_utils import GestureFieldApp, run_gesturefield
