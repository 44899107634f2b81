"""
Orientation-Aware Coordinate Transform
======================================

Pure functions mapping rectangles between a rotated device frame and the
canonical portrait frame. No state, no I/O.

All callers see coordinates in the canonical (portrait) frame; the device
reports them in whatever frame matches its current rotation. ``screen_w`` and
``screen_h`` are always the root frame dimensions *as reported* by the device.

Usage:
    from simsessions.core.geometry import Orientation, Rect, transform_rect

    rect = transform_rect(Rect(10, 20, 30, 40), 844, 390, Orientation.LANDSCAPE_RIGHT)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class Orientation(Enum):
    """Stored orientation setting of a device handle."""

    AUTO = "auto"
    PORTRAIT = "portrait"
    LANDSCAPE_RIGHT = "landscape_right"
    UPSIDE_DOWN = "upside_down"
    LANDSCAPE_LEFT = "landscape_left"


_INVERSES = {
    Orientation.PORTRAIT: Orientation.PORTRAIT,
    Orientation.LANDSCAPE_RIGHT: Orientation.LANDSCAPE_LEFT,
    Orientation.LANDSCAPE_LEFT: Orientation.LANDSCAPE_RIGHT,
    Orientation.UPSIDE_DOWN: Orientation.UPSIDE_DOWN,
}

Number = Union[int, float]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in points."""

    x: Number
    y: Number
    width: Number
    height: Number

    @property
    def is_degenerate(self) -> bool:
        """True for a 0x0 frame."""
        return self.width == 0 and self.height == 0

    @classmethod
    def from_frame(cls, frame: dict[str, Any]) -> "Rect":
        """Build from an accessibility ``frame`` mapping."""
        return cls(
            x=frame.get("x", 0),
            y=frame.get("y", 0),
            width=frame.get("width", 0),
            height=frame.get("height", 0),
        )

    def to_frame(self) -> dict[str, Number]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def resolve_orientation(stored: Orientation, screen_w: Number, screen_h: Number) -> Orientation:
    """
    Resolve the effective orientation for one query.

    ``AUTO`` is inferred from the reported root frame: wider than tall means
    landscape right, anything else portrait. Every other value is an explicit
    override and is returned verbatim.
    """
    if stored is not Orientation.AUTO:
        return stored
    if screen_w > screen_h:
        return Orientation.LANDSCAPE_RIGHT
    return Orientation.PORTRAIT


def inverse_orientation(orientation: Orientation) -> Orientation:
    """Orientation whose transform undoes ``orientation``'s transform."""
    if orientation is Orientation.AUTO:
        raise ValueError("AUTO must be resolved before transforming")
    return _INVERSES[orientation]


def transform_rect(
    rect: Rect,
    screen_w: Number,
    screen_h: Number,
    orientation: Orientation,
) -> Rect:
    """
    Map a rectangle from the reported device frame into the canonical frame.

    Args:
        rect: Rectangle in the device's currently reported frame.
        screen_w: Reported root frame width.
        screen_h: Reported root frame height.
        orientation: Effective orientation (never ``AUTO``).

    Returns:
        The rectangle in the canonical portrait frame.

    Raises:
        ValueError: If ``orientation`` is ``AUTO``.
    """
    if orientation is Orientation.PORTRAIT:
        return rect
    if orientation is Orientation.LANDSCAPE_RIGHT:
        return Rect(
            x=rect.y,
            y=screen_w - rect.x - rect.width,
            width=rect.height,
            height=rect.width,
        )
    if orientation is Orientation.LANDSCAPE_LEFT:
        return Rect(
            x=screen_h - rect.y - rect.height,
            y=rect.x,
            width=rect.height,
            height=rect.width,
        )
    if orientation is Orientation.UPSIDE_DOWN:
        return Rect(
            x=screen_w - rect.x - rect.width,
            y=screen_h - rect.y - rect.height,
            width=rect.width,
            height=rect.height,
        )
    raise ValueError("AUTO must be resolved before transforming")


def to_device_point(
    x: Number,
    y: Number,
    screen_w: Number,
    screen_h: Number,
    orientation: Orientation,
) -> tuple[Number, Number]:
    """
    Map a canonical point back into the reported device frame.

    A point is treated as a zero-sized rectangle and pushed through the
    inverse transform. The canonical screen has the reported dimensions
    swapped when the device is in landscape.
    """
    if orientation in (Orientation.LANDSCAPE_RIGHT, Orientation.LANDSCAPE_LEFT):
        canonical_w, canonical_h = screen_h, screen_w
    else:
        canonical_w, canonical_h = screen_w, screen_h
    mapped = transform_rect(
        Rect(x, y, 0, 0), canonical_w, canonical_h, inverse_orientation(orientation)
    )
    return mapped.x, mapped.y


def _format_number(value: Number) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_frame(rect: Rect) -> str:
    """Serialize a rectangle as ``{{x, y}, {width, height}}``."""
    return (
        f"{{{{{_format_number(rect.x)}, {_format_number(rect.y)}}}, "
        f"{{{_format_number(rect.width)}, {_format_number(rect.height)}}}}}"
    )


def root_frame(snapshot: Union[list[Any], dict[str, Any]]) -> Optional[Rect]:
    """
    Locate the frame of the outermost element of a UI snapshot.

    Returns:
        The root frame, or None if the snapshot has no framed root.
    """
    root: Any = snapshot
    if isinstance(snapshot, list):
        root = snapshot[0] if snapshot else None
    if not isinstance(root, dict) or not isinstance(root.get("frame"), dict):
        return None
    return Rect.from_frame(root["frame"])


def transform_node(
    node: dict[str, Any],
    screen_w: Number,
    screen_h: Number,
    orientation: Orientation,
) -> dict[str, Any]:
    """
    Rewrite a single node's frame (children untouched).

    Nodes without a frame or with a 0x0 frame are returned unmodified.
    """
    frame = node.get("frame")
    if not isinstance(frame, dict):
        return node
    rect = Rect.from_frame(frame)
    if rect.is_degenerate:
        return node

    canonical = transform_rect(rect, screen_w, screen_h, orientation)
    rewritten = dict(node)
    rewritten["frame"] = {**frame, **canonical.to_frame()}
    rewritten["AXFrame"] = format_frame(canonical)
    return rewritten


def transform_tree(
    nodes: Union[list[Any], dict[str, Any]],
    screen_w: Number,
    screen_h: Number,
    orientation: Orientation,
) -> Union[list[Any], dict[str, Any]]:
    """
    Rewrite every framed node of an accessibility snapshot.

    Traversal order and every field other than ``frame`` / ``AXFrame`` are
    preserved. The input is not mutated.
    """
    if isinstance(nodes, list):
        return [transform_tree(node, screen_w, screen_h, orientation) for node in nodes]
    if not isinstance(nodes, dict):
        return nodes

    rewritten = transform_node(nodes, screen_w, screen_h, orientation)
    children = nodes.get("children")
    if isinstance(children, list):
        if rewritten is nodes:
            rewritten = dict(nodes)
        rewritten["children"] = [
            transform_tree(child, screen_w, screen_h, orientation) for child in children
        ]
    return rewritten
