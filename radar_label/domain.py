# radar_label/domain.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Union


# -----------------------------
# Editor constants
# -----------------------------

PROJECT_VERSION = 1

KEY_PAN_STEP = 40
DEFAULT_BBOX_SIZE = 80
MIN_BBOX_SIDE = 5
CLICK_DRAG_THRESHOLD = 5

ZOOM_MIN = 0.2
ZOOM_MAX = 32.0
WHEEL_ZOOM_FACTOR = 1.1
KEY_ZOOM_FACTOR = 1.2

ROTATION_MIN = -10.0
ROTATION_MAX = 10.0
ROTATION_STEP = 0.1

SAVE_DEBOUNCE_MS = 400

# Hit-test thresholds (image units for points, screen units for handles)
POINT_HIT_RADIUS = 10.0
HANDLE_SIZE = 8.0

LABEL_BOAT = "boat"
LABEL_BUOY = "buoy"
LABELS = (LABEL_BOAT, LABEL_BUOY)

KIND_POINT = "point"
KIND_BBOX = "bbox"

SPACE_FRAME = "frame"    # boats: frame-local, rotate with their frame
SPACE_GLOBAL = "global"  # buoys: one list, never rotated

HANDLE_NAMES = ("nw", "n", "ne", "w", "e", "sw", "s", "se")


# -----------------------------
# Errors
# -----------------------------

class RadarLabelError(Exception):
    """Base class for editor errors."""


class ProjectFormatError(RadarLabelError, ValueError):
    """Project JSON is structurally invalid; nothing was loaded."""


class ImageLoadError(RadarLabelError, OSError):
    """An image file could not be decoded."""


# -----------------------------
# Small helpers
# -----------------------------

def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(float(value), hi))


def clamp_zoom(zoom: float) -> float:
    return clamp(zoom, ZOOM_MIN, ZOOM_MAX)


def clamp_rotation(deg: float) -> float:
    # round away float drift from repeated 0.1 steps
    return round(clamp(deg, ROTATION_MIN, ROTATION_MAX), 6)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


_NUM_RE = re.compile(r"(\d+)")


def natural_sort_key(name: str) -> List[Tuple[int, int, str]]:
    """Case-insensitive key where "img2" sorts before "img10"."""
    parts = _NUM_RE.split((name or "").lower())
    return [(0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts if p]


# -----------------------------
# Annotations (tagged union)
# -----------------------------

@dataclass(frozen=True)
class PointAnnotation:
    id: str
    label: str
    x: float
    y: float

    kind = KIND_POINT

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": KIND_POINT,
            "label": self.label,
            "x": float(self.x),
            "y": float(self.y),
        }


@dataclass(frozen=True)
class BoxAnnotation:
    """
    Axis-aligned box in its owning space's image coordinates.
    (x, y) is the top-left corner; w/h never drop below MIN_BBOX_SIDE.
    """
    id: str
    label: str
    x: float
    y: float
    w: float = DEFAULT_BBOX_SIZE
    h: float = DEFAULT_BBOX_SIZE

    kind = KIND_BBOX

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": KIND_BBOX,
            "label": self.label,
            "x": float(self.x),
            "y": float(self.y),
            "w": float(self.w),
            "h": float(self.h),
        }


Annotation = Union[PointAnnotation, BoxAnnotation]


def unknown_annotation(ann: object) -> TypeError:
    return TypeError(f"Unknown annotation type: {type(ann).__name__}")


def annotation_from_dict(d: Dict) -> Annotation:
    if not isinstance(d, dict):
        raise ValueError(f"Annotation must be an object, got {type(d).__name__}")
    kind = str(d.get("type", ""))
    label = str(d.get("label", LABEL_BOAT))
    if label not in LABELS:
        raise ValueError(f"Unknown annotation label '{label}'")
    ann_id = str(d["id"])
    x = float(d["x"])
    y = float(d["y"])
    if kind == KIND_POINT:
        return PointAnnotation(id=ann_id, label=label, x=x, y=y)
    if kind == KIND_BBOX:
        return BoxAnnotation(
            id=ann_id,
            label=label,
            x=x,
            y=y,
            w=max(float(MIN_BBOX_SIDE), float(d.get("w", DEFAULT_BBOX_SIZE))),
            h=max(float(MIN_BBOX_SIDE), float(d.get("h", DEFAULT_BBOX_SIZE))),
        )
    raise ValueError(f"Unknown annotation type '{kind}'")


def annotations_from_list(items, where: str) -> Tuple[Annotation, ...]:
    """Parses an annotation list; ids must be unique within it."""
    if not isinstance(items, list):
        raise ValueError(f"{where} must be a list")
    anns = tuple(annotation_from_dict(a) for a in items)
    seen = set()
    for a in anns:
        if a.id in seen:
            raise ValueError(f"Duplicate annotation id '{a.id}' in {where}")
        seen.add(a.id)
    return anns


def annotation_summary(ann: Annotation) -> str:
    """Short list text, e.g. 'boat bbox'."""
    if isinstance(ann, (PointAnnotation, BoxAnnotation)):
        return f"{ann.label} {ann.kind}"
    raise unknown_annotation(ann)


# -----------------------------
# Frames / viewport / project
# -----------------------------

@dataclass(frozen=True)
class Viewport:
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def to_dict(self) -> Dict:
        return {"zoom": float(self.zoom), "panX": float(self.pan_x), "panY": float(self.pan_y)}

    @staticmethod
    def from_dict(d: Optional[Dict]) -> "Viewport":
        d = d or {}
        if not isinstance(d, dict):
            raise ValueError(f"Viewport must be an object, got {type(d).__name__}")
        return Viewport(
            zoom=clamp_zoom(float(d.get("zoom", 1.0))),
            pan_x=float(d.get("panX", 0.0)),
            pan_y=float(d.get("panY", 0.0)),
        )


@dataclass(frozen=True)
class Frame:
    """
    One image in the sequence.

    url is the opaque image reference (local path or data URL).
    width/height are fixed when the frame is imported.
    """
    name: str
    url: str
    width: int
    height: int
    rotation_deg: float = 0.0
    annotations: Tuple[Annotation, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "url": self.url,
            "width": int(self.width),
            "height": int(self.height),
            "rotationDeg": float(self.rotation_deg),
            "annotations": [a.to_dict() for a in self.annotations],
        }

    @staticmethod
    def from_dict(d: Dict) -> "Frame":
        if not isinstance(d, dict):
            raise ValueError(f"Frame must be an object, got {type(d).__name__}")
        width = int(d["width"])
        height = int(d["height"])
        if width <= 0 or height <= 0:
            raise ValueError(f"Frame size must be positive, got {width}x{height}")
        anns = annotations_from_list(d.get("annotations") or [], "frame annotations")
        return Frame(
            name=str(d.get("name", "")),
            url=str(d.get("url", "")),
            width=width,
            height=height,
            rotation_deg=clamp_rotation(float(d.get("rotationDeg", 0.0))),
            annotations=anns,
        )


@dataclass(frozen=True)
class Selection:
    """
    Transient reference to one annotation. index is only a hint;
    ann_id is authoritative. Also used as the hit-test result.
    """
    space: str  # "frame" | "global"
    ann_id: str
    index: Optional[int] = None

    @property
    def is_global(self) -> bool:
        return self.space == SPACE_GLOBAL


@dataclass(frozen=True)
class Project:
    version: int = PROJECT_VERSION
    created_at: str = field(default_factory=now_iso)
    viewport: Viewport = field(default_factory=Viewport)
    current_index: int = 0
    frames: Tuple[Frame, ...] = ()
    global_buoys: Tuple[Annotation, ...] = ()

    def current_frame(self) -> Optional[Frame]:
        if 0 <= self.current_index < len(self.frames):
            return self.frames[self.current_index]
        return None

    def frame_count(self) -> int:
        return len(self.frames)

    def to_dict(self) -> Dict:
        return {
            "version": int(self.version),
            "createdAt": self.created_at,
            "viewport": self.viewport.to_dict(),
            "currentIndex": int(self.current_index),
            "frames": [f.to_dict() for f in self.frames],
            "globalBuoys": [b.to_dict() for b in self.global_buoys],
        }

    @staticmethod
    def from_dict(d: Dict) -> "Project":
        frames = tuple(Frame.from_dict(f) for f in d["frames"])
        buoys = annotations_from_list(d.get("globalBuoys") or [], "globalBuoys")
        idx = int(d.get("currentIndex", 0) or 0)
        if frames:
            idx = max(0, min(idx, len(frames) - 1))
        else:
            idx = 0
        return Project(
            version=int(d["version"]),
            created_at=str(d.get("createdAt") or now_iso()),
            viewport=Viewport.from_dict(d.get("viewport")),
            current_index=idx,
            frames=frames,
            global_buoys=buoys,
        )


def space_for_label(label: str) -> str:
    return SPACE_GLOBAL if label == LABEL_BUOY else SPACE_FRAME
