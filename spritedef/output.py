"""
Compositing of packed sprites into output texture images.

Runs after the packing stage has set each sprite's `trimmed_rect`,
`rotated` and optional `vertices`, and decided every texture's size.
"""
import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from spritedef.alpha import process_alpha
from spritedef.data_model import Rect
from spritedef.image import Image, copy_rect, copy_rect_rotated_cw, extrude_rect


def has_rect_vertices(sprite, width, height):
    """True when the outline is missing or just the corners of the sprite rect."""
    v = sprite.vertices
    if not v:
        return True
    return (len(v) == 4 and
            tuple(v[0]) == (0, 0) and
            tuple(v[1]) == (width, 0) and
            tuple(v[2]) == (width, height) and
            tuple(v[3]) == (0, height))


def _extrude_sides(sprite, source_rect):
    """Edges (left, top, right, bottom) of the placed sprite that were not trimmed away."""
    full = sprite.source_rect
    left = full.x == source_rect.x
    top = full.y == source_rect.y
    right = full.x1 == source_rect.x1
    bottom = full.y1 == source_rect.y1
    if sprite.rotated:
        # turning clockwise moves left to top, top to right, ...
        left, top, right, bottom = bottom, left, top, right
    return left, top, right, bottom


def copy_sprite(target, sprite):
    """Copy one sprite into the texture image, then extrude its untrimmed edges."""
    if sprite.trimmed_rect is None:
        raise ValueError("sprite has not been placed")
    source_rect = sprite.trimmed_source_rect or sprite.source_rect
    placed = sprite.trimmed_rect
    vertices = None
    if not has_rect_vertices(sprite, source_rect.w, source_rect.h):
        vertices = sprite.vertices

    copy = copy_rect_rotated_cw if sprite.rotated else copy_rect
    copy(sprite.source, source_rect, target, placed.x, placed.y, vertices)

    if sprite.extrude.count:
        sides = _extrude_sides(sprite, source_rect)
        if any(sides):
            w, h = source_rect.w, source_rect.h
            if sprite.rotated:
                w, h = h, w
            extrude_rect(target, Rect(placed.x, placed.y, w, h),
                         sprite.extrude.count, sprite.extrude.mode, *sides)


def get_output_texture(packed, strict=True):
    """
    Render one packed texture.

    A sprite that fails to copy raises when `strict`, otherwise it is reported
    with a warning and left out. Returns None when no sprite was copied.
    """
    target = Image.blank(packed.width, packed.height)

    copied_sprite = False
    for sprite in packed.sprites:
        try:
            copy_sprite(target, sprite)
        except ValueError as e:
            if strict:
                raise
            warnings.warn(f"copying sprite '{sprite.id}' failed: {e}")
            continue
        copied_sprite = True
    if not copied_sprite:
        return None

    texture = packed.texture
    target.pixels = np.array(process_alpha(target.pixels, texture.alpha, texture.colorkey))
    return target


def get_output_textures(packed_textures, strict=True, max_workers=None):
    """Render several textures; each owns its image, so they run concurrently."""
    packed_textures = list(packed_textures)
    if max_workers == 1 or len(packed_textures) <= 1:
        return [get_output_texture(p, strict) for p in packed_textures]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(lambda p: get_output_texture(p, strict), packed_textures))
