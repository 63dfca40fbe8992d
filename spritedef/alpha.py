"""
Atlas-wide alpha post-processing.

All transforms are pure jax.numpy functions over a [H, W, 4] uint8 array and
return a new array, so they can be jitted and run on whatever device jax
picks. `process_alpha` dispatches on the texture's Alpha mode.
"""
import jax
import jax.numpy as jnp

from spritedef.data_model import Alpha


def clear_alpha(pixels):
    """Zero the colour of every fully transparent pixel."""
    transparent = pixels[..., 3:4] == 0
    return jnp.where(transparent, jnp.zeros_like(pixels), pixels)


def premultiply_alpha(pixels):
    """Scale RGB by alpha (rounded), alpha unchanged."""
    rgb = pixels[..., :3].astype(jnp.int32)
    alpha = pixels[..., 3:4].astype(jnp.int32)
    rgb = (rgb * alpha + 127) // 255
    return jnp.concatenate([rgb.astype(jnp.uint8), pixels[..., 3:4]], axis=-1)


def make_opaque(pixels, colorkey):
    """Fill fully transparent pixels with `colorkey` and force alpha to 255."""
    transparent = pixels[..., 3:4] == 0
    key = jnp.asarray(colorkey[:3], dtype=jnp.uint8)
    rgb = jnp.where(transparent, key, pixels[..., :3])
    alpha = jnp.full(pixels.shape[:2] + (1,), 255, dtype=jnp.uint8)
    return jnp.concatenate([rgb, alpha], axis=-1)


def _neighbour_sums(rgb, known):
    """Sum of RGB and count over the known pixels of each 8-neighbourhood."""
    h, w = known.shape
    weights = known.astype(jnp.int32)
    padded_rgb = jnp.pad(rgb * weights[..., None], ((1, 1), (1, 1), (0, 0)))
    padded_w = jnp.pad(weights, 1)
    total = jnp.zeros_like(rgb)
    count = jnp.zeros_like(weights)
    for dy in range(3):
        for dx in range(3):
            if dy == 1 and dx == 1:
                continue
            total = total + padded_rgb[dy:dy + h, dx:dx + w]
            count = count + padded_w[dy:dy + h, dx:dx + w]
    return total, count


@jax.jit
def bleed_alpha(pixels):
    """
    Spread colour from visible pixels into neighbouring transparent ones,
    ring by ring, until every transparent pixel reachable from a visible one
    has a colour. Alpha is unchanged, so filtering at sprite edges samples a
    plausible colour instead of black.
    """
    rgb = pixels[..., :3].astype(jnp.int32)
    known = pixels[..., 3] > 0

    def cond(carry):
        return carry[2]

    def body(carry):
        rgb, known, _ = carry
        total, count = _neighbour_sums(rgb, known)
        grow = ~known & (count > 0)
        average = total // jnp.maximum(count, 1)[..., None]
        rgb = jnp.where(grow[..., None], average, rgb)
        return rgb, known | grow, jnp.any(grow)

    rgb, _, _ = jax.lax.while_loop(cond, body, (rgb, known, jnp.array(True)))
    return jnp.concatenate([rgb.astype(jnp.uint8), pixels[..., 3:4]], axis=-1)


def process_alpha(pixels, alpha, colorkey=(0, 0, 0, 0)):
    pixels = jnp.asarray(pixels, dtype=jnp.uint8)
    if alpha == Alpha.CLEAR:
        return clear_alpha(pixels)
    if alpha == Alpha.BLEED:
        return bleed_alpha(pixels)
    if alpha == Alpha.PREMULTIPLY:
        return premultiply_alpha(pixels)
    if alpha == Alpha.COLORKEY:
        return make_opaque(pixels, colorkey)
    return pixels
