# Images subpackage - Screenshot rendering helpers
from .processor import (
    detect_media_type,
    extension_for,
    draw_labeled_frame,
    compose_side_by_side,
    encode_png,
    encode_gif,
    loading_frames,
)

__all__ = [
    "detect_media_type",
    "extension_for",
    "draw_labeled_frame",
    "compose_side_by_side",
    "encode_png",
    "encode_gif",
    "loading_frames",
]
