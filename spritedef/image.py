"""
RGBA bitmaps and the pixel-level operations sprite deduction and output need.

Pixels are held as a numpy [height, width, 4] uint8 array. Decoding and
encoding go through pygame, imported lazily so the analysis functions work
on in-memory images without it.
"""
import os
from collections import Counter, deque

import numpy as np

from spritedef.data_model import Rect, ExtrudeMode, TRANSPARENT

# np.pad modes for each extrusion mode
_PAD_MODES = {
    ExtrudeMode.CLAMP: 'edge',
    ExtrudeMode.MIRROR: 'symmetric',
    ExtrudeMode.REPEAT: 'wrap',
}

_NEIGHBOURS_4 = ((0, -1), (-1, 0), (1, 0), (0, 1))
_NEIGHBOURS_8 = _NEIGHBOURS_4 + ((-1, -1), (1, -1), (-1, 1), (1, 1))


class Image:
    def __init__(self, pixels, filename=''):
        pixels = np.asarray(pixels, dtype=np.uint8)
        assert pixels.ndim == 3 and pixels.shape[2] == 4, \
            f"expected [H, W, 4] pixels, got {pixels.shape}"
        self.pixels = pixels
        self.filename = filename

    @classmethod
    def blank(cls, width, height, background=TRANSPARENT):
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[...] = background
        return cls(pixels)

    @property
    def width(self):
        return self.pixels.shape[1]

    @property
    def height(self):
        return self.pixels.shape[0]

    def bounds(self):
        return Rect(0, 0, self.width, self.height)

    def clone(self):
        return Image(self.pixels.copy(), self.filename)

    def rgba_at(self, x, y):
        return tuple(int(c) for c in self.pixels[y, x])


# ── Codec ─────────────────────────────────────────────────────────────

def load_image(filename):
    """Decode an image file into an RGBA Image."""
    import pygame
    if not os.path.exists(filename):
        raise FileNotFoundError(f"reading file '{filename}' failed")
    surface = pygame.image.load(filename)
    width, height = surface.get_size()
    data = pygame.image.tobytes(surface, 'RGBA')
    pixels = np.frombuffer(data, dtype=np.uint8).reshape(height, width, 4).copy()
    return Image(pixels, filename)


def save_image(image, filename):
    """Encode an Image; the format follows the file extension."""
    import pygame
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)
    surface = pygame.image.frombytes(
        np.ascontiguousarray(image.pixels).tobytes(),
        (image.width, image.height), 'RGBA')
    pygame.image.save(surface, filename)


# ── Analysis ──────────────────────────────────────────────────────────

def _clipped(image, rect):
    """`rect` (default: whole image) intersected with the image bounds."""
    if rect is None:
        return image.bounds()
    return rect.intersect(image.bounds())


def _alpha(image, rect):
    return image.pixels[rect.y:rect.y1, rect.x:rect.x1, 3]


def is_opaque(image, rect=None):
    rect = _clipped(image, rect)
    return bool(np.all(_alpha(image, rect) == 255))


def is_fully_transparent(image, rect=None, threshold=1):
    rect = _clipped(image, rect)
    return not np.any(_alpha(image, rect) >= threshold)


def get_used_bounds(image, rect=None, threshold=1):
    """Smallest rect enclosing all pixels with alpha >= threshold, or Rect()."""
    rect = _clipped(image, rect)
    used = _alpha(image, rect) >= threshold
    rows = np.flatnonzero(used.any(axis=1))
    cols = np.flatnonzero(used.any(axis=0))
    if rows.size == 0:
        return Rect()
    return Rect(rect.x + int(cols[0]), rect.y + int(rows[0]),
                int(cols[-1] - cols[0]) + 1, int(rows[-1] - rows[0]) + 1)


def guess_colorkey(image):
    """Most common corner colour; ties go to the first corner, clockwise from top-left."""
    w, h = image.width, image.height
    corners = [image.rgba_at(0, 0), image.rgba_at(w - 1, 0),
               image.rgba_at(w - 1, h - 1), image.rgba_at(0, h - 1)]
    return Counter(corners).most_common(1)[0][0]


def replace_color(image, original, color):
    """Replace every pixel equal to `original` in place."""
    mask = np.all(image.pixels == np.asarray(original, dtype=np.uint8), axis=-1)
    image.pixels[mask] = color


def find_islands(image, rect=None, connectivity=8):
    """Bounding rects of connected non-transparent regions.

    Regions are reported in the order their first pixel is met scanning
    rows top to bottom, each row left to right.
    """
    rect = _clipped(image, rect)
    solid = _alpha(image, rect) > 0
    h, w = solid.shape
    neighbours = _NEIGHBOURS_8 if connectivity == 8 else _NEIGHBOURS_4
    visited = np.zeros_like(solid)
    islands = []

    for sy, sx in np.argwhere(solid):
        if visited[sy, sx]:
            continue
        visited[sy, sx] = True
        x0 = x1 = int(sx)
        y0 = y1 = int(sy)
        queue = deque([(int(sx), int(sy))])
        while queue:
            x, y = queue.popleft()
            x0, x1 = min(x0, x), max(x1, x)
            y0, y1 = min(y0, y), max(y1, y)
            for dx, dy in neighbours:
                nx, ny = x + dx, y + dy
                if 0 <= nx < w and 0 <= ny < h and solid[ny, nx] and not visited[ny, nx]:
                    visited[ny, nx] = True
                    queue.append((nx, ny))
        islands.append(Rect(rect.x + x0, rect.y + y0, x1 - x0 + 1, y1 - y0 + 1))
    return islands


# ── Copying ───────────────────────────────────────────────────────────

def _check_inside(image, rect, what):
    if not image.bounds().contains(rect):
        raise ValueError(f"{what} rect ({rect.x}, {rect.y}, {rect.w}, {rect.h}) "
                         f"exceeds image bounds ({image.width}x{image.height})")


def _polygon_mask(width, height, vertices):
    """Even-odd fill of a polygon, sampled at pixel centres."""
    ys, xs = np.mgrid[0:height, 0:width]
    px, py = xs + 0.5, ys + 0.5
    inside = np.zeros((height, width), dtype=bool)
    n = len(vertices)
    for i in range(n):
        ax, ay = vertices[i]
        bx, by = vertices[(i + 1) % n]
        if ay == by:
            continue
        crosses = (ay > py) != (by > py)
        x_at = ax + (py - ay) * (bx - ax) / (by - ay)
        inside ^= crosses & (px < x_at)
    return inside


def _blit(dest, block, dx, dy, mask=None):
    h, w = block.shape[:2]
    _check_inside(dest, Rect(dx, dy, w, h), 'target')
    region = dest.pixels[dy:dy + h, dx:dx + w]
    if mask is None:
        region[...] = block
    else:
        region[mask] = block[mask]


def copy_rect(source, source_rect, dest, dx, dy, vertices=None):
    """Copy `source_rect` of `source` to (dx, dy) of `dest`.

    With `vertices` (points relative to the rect) only pixels inside the
    polygon are copied.
    """
    _check_inside(source, source_rect, 'source')
    block = source.pixels[source_rect.y:source_rect.y1, source_rect.x:source_rect.x1]
    mask = None
    if vertices:
        mask = _polygon_mask(source_rect.w, source_rect.h, vertices)
    _blit(dest, block, dx, dy, mask)


def copy_rect_rotated_cw(source, source_rect, dest, dx, dy, vertices=None):
    """Like copy_rect, but the block is turned 90 degrees clockwise."""
    _check_inside(source, source_rect, 'source')
    block = source.pixels[source_rect.y:source_rect.y1, source_rect.x:source_rect.x1]
    mask = None
    if vertices:
        mask = np.rot90(_polygon_mask(source_rect.w, source_rect.h, vertices), k=-1)
    _blit(dest, np.rot90(block, k=-1), dx, dy, mask)


def extrude_rect(image, rect, count, mode=ExtrudeMode.CLAMP,
                 left=True, top=True, right=True, bottom=True):
    """Replicate the pixels at the chosen edges of `rect` outward by `count`.

    Pixels that would land outside the image are dropped.
    """
    _check_inside(image, rect, 'extrude')
    if count <= 0 or rect.empty():
        return
    block = image.pixels[rect.y:rect.y1, rect.x:rect.x1]
    pad_left, pad_right = (count if left else 0), (count if right else 0)
    pad_top, pad_bottom = (count if top else 0), (count if bottom else 0)
    padded = np.pad(block, ((pad_top, pad_bottom), (pad_left, pad_right), (0, 0)),
                    mode=_PAD_MODES[ExtrudeMode(mode)])

    x0, y0 = rect.x - pad_left, rect.y - pad_top
    target = Rect(x0, y0, padded.shape[1], padded.shape[0]).intersect(image.bounds())
    if target.empty():
        return
    image.pixels[target.y:target.y1, target.x:target.x1] = \
        padded[target.y - y0:target.y1 - y0, target.x - x0:target.x1 - x0]
