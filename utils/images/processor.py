"""
Image processing utilities for ToolTip Companion.

This module contains the Pillow helpers used to turn before/after screenshots
into preview artifacts: labelled frames, side-by-side composites, animated
GIFs and the loading spinner.
"""

import io
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

BEFORE_COLOR = "#4CAF50"
AFTER_COLOR = "#2196F3"
CLICK_COLOR = "#FF5722"
BACKGROUND_COLOR = "#F5F5F5"
TEXT_COLOR = "#333333"
SPINNER_COLOR = "#2196F3"
SPINNER_TRACK_COLOR = "#E0E0E0"

# Magic bytes -> media type
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png", "png"),
    (b"GIF87a", "image/gif", "gif"),
    (b"GIF89a", "image/gif", "gif"),
    (b"\xff\xd8\xff", "image/jpeg", "jpg"),
)

EXTENSIONS = {media_type: ext for _, media_type, ext in _SIGNATURES}


def detect_media_type(data: bytes) -> str:
    """Detect image media type from its leading bytes (defaults to octet-stream)"""
    for signature, media_type, _ in _SIGNATURES:
        if data.startswith(signature):
            return media_type
    return "application/octet-stream"


def extension_for(media_type: str) -> str:
    return EXTENSIONS.get(media_type, "bin")


def load_image(data: bytes) -> Image.Image:
    """Open screenshot bytes as an RGB image"""
    image = Image.open(io.BytesIO(data))
    if image.mode == "RGBA":
        rgb_image = Image.new("RGB", image.size, (255, 255, 255))
        rgb_image.paste(image, mask=image.split()[3])
        return rgb_image
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _font(size: int):
    return ImageFont.load_default(size=size)


def _draw_centered_text(draw: ImageDraw.ImageDraw, center: Tuple[float, float], text: str, size: int, fill: str):
    font = _font(size)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = center[0] - (right - left) / 2
    y = center[1] - (bottom - top) / 2
    draw.text((x, y), text, font=font, fill=fill)


def fit_image(image: Image.Image, width: int, height: int) -> Image.Image:
    """
    Scale an image to fit inside width x height, keeping its aspect ratio,
    and centre it on a background canvas of exactly that size.
    """
    scale = min(width / image.width, height / image.height)
    new_size = (max(1, int(image.width * scale)), max(1, int(image.height * scale)))
    resized = image.resize(new_size, Image.Resampling.LANCZOS)

    canvas = Image.new("RGB", (width, height), BACKGROUND_COLOR)
    canvas.paste(resized, ((width - new_size[0]) // 2, (height - new_size[1]) // 2))
    return canvas


def draw_labeled_frame(
    screenshot: bytes,
    label: str,
    color: str,
    width: int,
    height: int,
    click_point: Optional[Tuple[int, int]] = None,
) -> Image.Image:
    """
    Render a screenshot as a labelled frame.

    The frame gets a coloured 3px border, a bold label on a coloured banner at
    the top, and optionally a red circle marking the click.

    Args:
        screenshot: PNG/JPEG bytes
        label: Text shown at the top ("Before Click" / "After Click")
        color: Border and banner colour
        width: Frame width
        height: Frame height
        click_point: Click indicator position in frame coordinates

    Returns:
        PIL Image of exactly width x height
    """
    frame = fit_image(load_image(screenshot), width, height)
    draw = ImageDraw.Draw(frame)

    draw.rectangle([0, 0, width - 1, height - 1], outline=color, width=3)

    banner_height = 60
    draw.rectangle([3, 3, width - 4, min(banner_height, height - 4)], fill=color)
    _draw_centered_text(draw, (width / 2, 30), label, 24, "white")

    if click_point is not None:
        x, y = click_point
        radius = 10
        draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill=CLICK_COLOR, outline="white", width=2)

    return frame


def compose_side_by_side(
    before: Image.Image,
    after: Image.Image,
    width: int,
    height: int,
) -> Image.Image:
    """
    Place two frames next to each other on one canvas with a separator line
    and BEFORE / AFTER captions.
    """
    half_width = width // 2
    caption_height = 50

    canvas = Image.new("RGB", (width, height), BACKGROUND_COLOR)
    panel_height = height - caption_height

    canvas.paste(fit_image(before, half_width, panel_height), (0, caption_height))
    canvas.paste(fit_image(after, width - half_width, panel_height), (half_width, caption_height))

    draw = ImageDraw.Draw(canvas)
    draw.line([(half_width, 0), (half_width, height)], fill=TEXT_COLOR, width=2)
    _draw_centered_text(draw, (half_width / 2, 30), "BEFORE", 20, BEFORE_COLOR)
    _draw_centered_text(draw, (half_width + (width - half_width) / 2, 30), "AFTER", 20, AFTER_COLOR)

    return canvas


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def encode_gif(frames: Sequence[Image.Image], delay_ms: int, loop: int = 0) -> bytes:
    """
    Encode frames as an animated GIF.

    Args:
        frames: Frames in display order (at least one)
        delay_ms: Display time of each frame in milliseconds
        loop: Loop count (0 = forever)

    Returns:
        GIF bytes
    """
    if not frames:
        raise ValueError("At least one frame is required")

    palette_frames = [frame.convert("P", palette=Image.Palette.ADAPTIVE) for frame in frames]
    buffer = io.BytesIO()
    palette_frames[0].save(
        buffer,
        format="GIF",
        save_all=True,
        append_images=palette_frames[1:],
        duration=delay_ms,
        loop=loop,
        disposal=2,
    )
    return buffer.getvalue()


def loading_frames(width: int = 200, height: int = 200, frame_count: int = 8) -> List[Image.Image]:
    """
    Draw the frames of the "Generating preview..." spinner.

    Each frame shows a grey track circle, a blue arc rotated by 360/frame_count
    degrees per frame, the caption and three pulsing dots.
    """
    frames = []
    center_x, center_y = width / 2, height / 2 - 15
    radius = 30

    for i in range(frame_count):
        frame = Image.new("RGB", (width, height), BACKGROUND_COLOR)
        draw = ImageDraw.Draw(frame)

        box = [center_x - radius, center_y - radius, center_x + radius, center_y + radius]
        draw.ellipse(box, outline=SPINNER_TRACK_COLOR, width=4)

        start = (i * 360 / frame_count) - 90
        draw.arc(box, start=start, end=start + 90, fill=SPINNER_COLOR, width=4)

        _draw_centered_text(draw, (center_x, center_y + radius + 25), "Generating preview...", 14, TEXT_COLOR)

        for dot in range(3):
            active = dot == i % 3
            dot_radius = 4 if active else 3
            dot_x = center_x - 12 + dot * 12
            dot_y = center_y + radius + 45
            draw.ellipse(
                [dot_x - dot_radius, dot_y - dot_radius, dot_x + dot_radius, dot_y + dot_radius],
                fill=SPINNER_COLOR if active else SPINNER_TRACK_COLOR,
            )

        frames.append(frame)

    return frames

