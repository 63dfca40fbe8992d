from spritedef.data_model import Rect, Trim
from spritedef.image import get_used_bounds


def trim_sprite(sprite):
    """Set `trimmed_source_rect` from the sprite's trim mode, threshold and margin."""
    rect = sprite.source_rect
    if sprite.trim == Trim.NONE:
        sprite.trimmed_source_rect = rect
        return sprite

    bounds = get_used_bounds(sprite.source, rect, sprite.trim_threshold)
    if bounds.empty():
        sprite.trimmed_source_rect = Rect(rect.x, rect.y, 0, 0)
        return sprite

    margin = sprite.trim_margin
    grown = Rect(bounds.x - margin, bounds.y - margin,
                 bounds.w + 2 * margin, bounds.h + 2 * margin)
    sprite.trimmed_source_rect = grown.intersect(rect)
    return sprite


def trim_sprites(sprites):
    for sprite in sprites:
        trim_sprite(sprite)
    return sprites
