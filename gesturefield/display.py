"""Display utilities for gesturefield visualization."""

import math
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from gesturefield.hand_features import HandFrame
from gesturefield.particles import ParticleFrame, rotation_matrix
from gesturefield.util import HAND_CONNECTIONS

# -------------------------------------------------------------------------------
# Types and defaults
# -------------------------------------------------------------------------------

Color = Union[Tuple[int, int, int], Tuple[int, int, int, int]]  # BGR or BGRA

DFLT_CANVAS_SIZE = (1280, 720)  # width, height
DFLT_CAMERA_DISTANCE = 6.0
DFLT_FOV_DEGREES = 55.0
DFLT_NEAR = 0.1
DFLT_PARTICLE_SIZE = 0.25  # world units per unit of particle scale
BACKGROUND_BGR = (13, 1, 4)  # 0x04010d
READY_OPACITY = 0.95
NOT_READY_OPACITY = 0.6


# -------------------------------------------------------------------------------
# Background
# -------------------------------------------------------------------------------


def make_starfield(
    width: int = DFLT_CANVAS_SIZE[0],
    height: int = DFLT_CANVAS_SIZE[1],
    *,
    n_stars: int = 600,
    seed: int = 0,
    bg_color: Color = BACKGROUND_BGR,
) -> np.ndarray:
    """A dark background sprinkled with faint, fixed stars."""
    rng = np.random.default_rng(seed)
    img = np.empty((height, width, 3), dtype=np.uint8)
    img[:] = bg_color
    xs = rng.integers(0, width, size=n_stars)
    ys = rng.integers(0, height, size=n_stars)
    brightness = rng.integers(60, 200, size=n_stars)
    for x, y, b in zip(xs, ys, brightness):
        img[y, x] = (int(b), int(b), int(b))
    return img


# -------------------------------------------------------------------------------
# Particles
# -------------------------------------------------------------------------------


def focal_length(height: int, fov_degrees: float = DFLT_FOV_DEGREES) -> float:
    """Focal length in pixels for a vertical field of view."""
    return (height / 2) / math.tan(math.radians(fov_degrees) / 2)


def project_points(
    points: np.ndarray,
    width: int,
    height: int,
    *,
    camera_distance: float = DFLT_CAMERA_DISTANCE,
    fov_degrees: float = DFLT_FOV_DEGREES,
):
    """
    Perspective projection for a camera on the +z axis looking at the origin.

    Args:
        points: (n, 3) world positions
        width, height: Canvas size in pixels

    Returns:
        tuple: ((n, 2) float pixel coordinates, (n,) depths, focal length)
    """
    f = focal_length(height, fov_degrees)
    depth = camera_distance - points[:, 2]
    safe_depth = np.where(depth > DFLT_NEAR, depth, DFLT_NEAR)
    x = width / 2 + points[:, 0] * f / safe_depth
    y = height / 2 - points[:, 1] * f / safe_depth
    return np.stack([x, y], axis=-1), depth, f


def draw_particles(
    img: np.ndarray,
    frame: ParticleFrame,
    *,
    opacity: float = READY_OPACITY,
    particle_size: float = DFLT_PARTICLE_SIZE,
    camera_distance: float = DFLT_CAMERA_DISTANCE,
    fov_degrees: float = DFLT_FOV_DEGREES,
):
    """
    Draw a particle frame onto ``img``, far particles first.

    Args:
        img: The BGR image to draw on (modified in place)
        frame: The particle frame to draw
        opacity: Blend weight of the particle layer over ``img``

    Returns:
        img: The image with particles drawn
    """
    h, w = img.shape[:2]
    pitch, yaw = frame.group_rotation
    points = frame.positions @ rotation_matrix(yaw, pitch).T
    xy, depth, f = project_points(
        points, w, h, camera_distance=camera_distance, fov_degrees=fov_degrees
    )
    visible = depth > DFLT_NEAR
    radii = np.maximum(
        1, np.round(frame.scales * particle_size * f / np.maximum(depth, DFLT_NEAR))
    ).astype(int)
    bgr = np.clip(frame.colors[:, ::-1] * 255, 0, 255).astype(int)

    layer = img.copy()
    for i in np.argsort(-depth):
        if not visible[i]:
            continue
        center = (int(round(xy[i, 0])), int(round(xy[i, 1])))
        cv2.circle(layer, center, int(radii[i]), tuple(int(c) for c in bgr[i]), -1)

    cv2.addWeighted(layer, opacity, img, 1 - opacity, 0, img)
    return img


# -------------------------------------------------------------------------------
# Overlays
# -------------------------------------------------------------------------------


def display_features_on_image(
    img: np.ndarray,
    features: dict,
    *,
    font=cv2.FONT_HERSHEY_SIMPLEX,
    font_scale: float = 0.6,
    color: Color = (255, 255, 255),
    thickness: float = 1,
    float_format: str = ".2f",
    x_pos=10,
    y_pos=60,
    y_increment=24,
    bg_color: Color = (
        60,
        30,
        40,
        150,
    ),  # Dark violet, semi-transparent (BGR + alpha)
):
    """
    Display a dict of named values on the image with a semi-transparent background.

    Args:
        img: The image to draw on
        features: Dictionary of values to display
        font: Font type to use
        font_scale: Size of the font
        color: Text color in BGR format
        thickness: Line thickness of text
        float_format: Format string for float values
        x_pos: Starting x position for text
        y_pos: Starting y position for text
        y_increment: Vertical space between lines
        bg_color: Background color (BGR + alpha) where alpha is 0-255
    """
    if not features:
        return img

    overlay = img.copy()

    if len(bg_color) == 4:
        bg_rgb = bg_color[:3]
        alpha = bg_color[3] / 255.0
    else:
        bg_rgb = bg_color
        alpha = 0.5

    lines = []
    for key, value in features.items():
        if isinstance(value, float):
            formatted_value = f"{value:{float_format}}"
        else:
            formatted_value = str(value)
        lines.append(f"{key}: {formatted_value}")

    padding = 5
    for idx, text in enumerate(lines):
        (text_width, text_height), _ = cv2.getTextSize(
            text, font, font_scale, thickness
        )
        cv2.rectangle(
            overlay,
            (x_pos - padding, y_pos + idx * y_increment - text_height - padding),
            (x_pos + text_width + padding, y_pos + idx * y_increment + padding),
            bg_rgb,
            -1,
        )

    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, img)

    for idx, text in enumerate(lines):
        cv2.putText(
            img,
            text,
            (x_pos, y_pos + idx * y_increment),
            font,
            font_scale,
            color,
            thickness,
        )

    return img


def control_overlay_values(control, debug, template_name: str = '') -> dict:
    """The values listed in the on-screen legend."""
    return {
        'template': f"{template_name} (pinches: {control.shape_index})",
        'energy': control.intensity,
        'hue': f"{control.hue:.0f} deg",
        'expansion': control.expansion,
        'burst': control.burst,
        'swirl': control.swirl,
        'pinch': f"{debug.pinch:.3f}",
        'spread': f"{debug.spread:.3f}",
        'openness': f"{debug.openness:.3f}",
    }


def draw_status_pill(
    img: np.ndarray,
    label: str,
    *,
    ready: bool,
    x_pos=10,
    y_pos=28,
    font=cv2.FONT_HERSHEY_SIMPLEX,
    font_scale: float = 0.6,
):
    """Draw the tracking status with a colored dot."""
    dot_color = (120, 220, 80) if ready else (60, 160, 240)
    cv2.circle(img, (x_pos + 6, y_pos - 5), 6, dot_color, -1)
    cv2.putText(
        img, label, (x_pos + 20, y_pos), font, font_scale, (255, 255, 255), 1
    )
    return img


def draw_hand_landmarks(
    img: np.ndarray,
    hand: HandFrame,
    *,
    color: Color = (0, 255, 0),
    thickness: int = 2,
):
    """
    Draw the hand skeleton from its image-normalized landmarks.

    Args:
        img: The image to draw on (the camera image the hand was detected in)
        hand: The detected hand

    Returns:
        img: The image with landmarks drawn
    """
    h, w = img.shape[:2]
    pts = [(int(x * w), int(y * h)) for x, y, _ in hand.image]
    for a, b in HAND_CONNECTIONS:
        cv2.line(img, pts[a], pts[b], color, thickness)
    for pt in pts:
        cv2.circle(img, pt, 3, (255, 0, 255), -1)
    return img


def draw_hand_feed_inset(
    img: np.ndarray,
    camera_img: np.ndarray,
    hand: Optional[HandFrame] = None,
    *,
    width_fraction: float = 0.22,
    margin: int = 12,
):
    """Paste a small copy of the camera feed in the bottom-right corner."""
    h, w = img.shape[:2]
    inset_w = max(1, int(w * width_fraction))
    ch, cw = camera_img.shape[:2]
    inset_h = max(1, int(ch * inset_w / cw))
    if inset_h + margin > h or inset_w + margin > w:
        return img
    feed = camera_img.copy()
    if hand is not None:
        feed = draw_hand_landmarks(feed, hand)
    feed = cv2.resize(feed, (inset_w, inset_h))
    y0, x0 = h - inset_h - margin, w - inset_w - margin
    img[y0 : y0 + inset_h, x0 : x0 + inset_w] = feed
    return img


# -------------------------------------------------------------------------------
# Scene
# -------------------------------------------------------------------------------


def draw_on_screen(
    background: np.ndarray,
    particle_frame: ParticleFrame,
    *,
    control=None,
    debug=None,
    status_label: str = '',
    tracking_ready: bool = False,
    camera_img: Optional[np.ndarray] = None,
    hand: Optional[HandFrame] = None,
    draw_overlay: bool = True,
):
    """
    Compose one displayed frame: particles, legend, status and camera inset.

    Args:
        background: The background image (not modified)
        particle_frame: Output of the particle engine
        control: The ControlState the frame was rendered from
        debug: The latest DebugMetrics
        status_label: Text of the tracking status
        tracking_ready: Whether tracking is live (sets particle opacity)
        camera_img: Latest camera image, for the inset (None to skip it)
        hand: The hand detected in ``camera_img``, drawn in the inset
        draw_overlay: Whether to draw the legend and the status

    Returns:
        img: The composed image
    """
    img = background.copy()
    opacity = READY_OPACITY if tracking_ready else NOT_READY_OPACITY
    img = draw_particles(img, particle_frame, opacity=opacity)

    if draw_overlay:
        if status_label:
            img = draw_status_pill(img, status_label, ready=tracking_ready)
        if control is not None and debug is not None:
            img = display_features_on_image(
                img,
                control_overlay_values(control, debug, particle_frame.template_name),
            )

    if camera_img is not None and tracking_ready:
        img = draw_hand_feed_inset(img, camera_img, hand)

    return img
