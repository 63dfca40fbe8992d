"""Shared test helpers for spritedef tests."""
import os

import numpy as np

from spritedef.data_model import Settings
from spritedef.image import Image
from spritedef.parser import InputParser

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
MAGENTA = (255, 0, 255, 255)


def make_image(width, height, color=(0, 0, 0, 0), filename=''):
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[...] = color
    return Image(pixels, filename)


def fill(image, x, y, w, h, color):
    image.pixels[y:y + h, x:x + w] = color
    return image


def make_parser(images, **settings):
    """Parser whose sheets come from `images` (basename → Image) instead of disk."""
    def loader(path):
        name = os.path.basename(path)
        if name not in images:
            raise FileNotFoundError(f"reading file '{path}' failed")
        image = images[name].clone()
        image.filename = path
        return image

    def exists(path):
        return os.path.basename(path) in images

    return InputParser(Settings(**settings), sheet_loader=loader, file_exists=exists)


def parse(text, images=None, **settings):
    return make_parser(images or {}, **settings).parse(text)


def rects(parser):
    return [(s.source_rect.x, s.source_rect.y, s.source_rect.w, s.source_rect.h)
            for s in parser.sprites]
