"""
Path-keyed caches for output textures and source sheets.

Each parser owns one of each, so independent parses never share entries.
Keys are canonical paths; two spellings of the same file resolve to the same
Texture / Image instance.
"""
import os
import threading

from spritedef.data_model import Texture, TRANSPARENT
from spritedef.image import load_image, is_opaque, guess_colorkey, replace_color
from spritedef.sequence import FilenameSequence


def canonical_path(path):
    return os.path.normcase(os.path.realpath(path))


class TextureCache:
    def __init__(self):
        self._textures = {}

    def get(self, state):
        """Texture for the state's texture path, created from the state on first use."""
        key = canonical_path(state.texture)
        texture = self._textures.get(key)
        if texture is None:
            texture = Texture(
                filename=FilenameSequence.from_pattern(state.texture),
                width=state.width,
                height=state.height,
                max_width=state.max_width,
                max_height=state.max_height,
                power_of_two=state.power_of_two,
                square=state.square,
                align_width=state.align_width,
                allow_rotate=state.allow_rotate,
                border_padding=state.border_padding,
                shape_padding=state.shape_padding,
                deduplicate=state.deduplicate,
                alpha=state.alpha,
                colorkey=state.alpha_colorkey,
            )
            self._textures[key] = texture
        return texture

    def textures(self):
        return list(self._textures.values())

    def __len__(self):
        return len(self._textures)


class SheetCache:
    """
    Decoded sheets keyed by canonical (path / filename).

    A fully opaque sheet gets transparency on first load: pixels matching the
    colorkey (or a guessed one when the colorkey's alpha is 0) are cleared.
    First loads are serialized so a sheet is decoded at most once even when
    compositing runs on several threads.
    """

    def __init__(self, loader=load_image):
        self._loader = loader
        self._sheets = {}
        self._lock = threading.Lock()

    def get(self, path, filename, colorkey=TRANSPARENT):
        full_path = os.path.join(path, filename)
        key = canonical_path(full_path)
        with self._lock:
            sheet = self._sheets.get(key)
            if sheet is None:
                sheet = self._loader(full_path)
                if is_opaque(sheet):
                    if not colorkey[3]:
                        colorkey = guess_colorkey(sheet)
                    replace_color(sheet, colorkey, TRANSPARENT)
                self._sheets[key] = sheet
        return sheet

    def __len__(self):
        return len(self._sheets)
