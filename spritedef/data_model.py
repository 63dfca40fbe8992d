import enum
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from spritedef.sequence import FilenameSequence

# Named constants
DEFAULT_TEXTURE_NAME = 'spritedef-{0-}.png'  # output atlas when no texture is declared
DEFAULT_INDENTATION = '  '                   # autocomplete indent unit for flat input
DEFAULT_SHAPE_PADDING = 1                    # `padding` without arguments
DEFAULT_TRIM_THRESHOLD = 1                   # alpha values below count as transparent
MAX_TRIM_THRESHOLD = 255

RGBA = Tuple[int, int, int, int]
Size = Tuple[int, int]

TRANSPARENT = (0, 0, 0, 0)


class Definition(enum.IntEnum):
    NONE = 0
    TEXTURE = 1
    WIDTH = 2
    HEIGHT = 3
    MAX_WIDTH = 4
    MAX_HEIGHT = 5
    POWER_OF_TWO = 6
    SQUARE = 7
    ALIGN_WIDTH = 8
    ALLOW_ROTATE = 9
    PADDING = 10
    DEDUPLICATE = 11
    ALPHA = 12
    BEGIN = 13
    PATH = 14
    SHEET = 15
    COLORKEY = 16
    TAG = 17
    GRID = 18
    GRID_OFFSET = 19
    GRID_SPACING = 20
    OFFSET = 21
    SPRITE = 22
    SKIP = 23
    SPAN = 24
    RECT = 25
    PIVOT = 26
    TRIM = 27
    TRIM_THRESHOLD = 28
    TRIM_MARGIN = 29
    EXTRUDE = 30
    COMMON_DIVISOR = 31


# Enumerations below are stored by the ordinal of their keyword in the
# matching *_VALUES tuple, so the order of both must agree.

class Alpha(enum.IntEnum):
    KEEP = 0
    CLEAR = 1
    BLEED = 2
    PREMULTIPLY = 3
    COLORKEY = 4


class Trim(enum.IntEnum):
    NONE = 0
    TRIM = 1
    CROP = 2


class PivotX(enum.IntEnum):
    LEFT = 0
    CENTER = 1
    RIGHT = 2
    CUSTOM = 3


class PivotY(enum.IntEnum):
    TOP = 0
    MIDDLE = 1
    BOTTOM = 2
    CUSTOM = 3


class ExtrudeMode(enum.IntEnum):
    CLAMP = 0
    MIRROR = 1
    REPEAT = 2


ALPHA_VALUES = ('keep', 'clear', 'bleed', 'premultiply', 'colorkey')
TRIM_VALUES = ('none', 'trim', 'crop')
PIVOT_X_VALUES = ('left', 'center', 'right')
PIVOT_Y_VALUES = ('top', 'middle', 'bottom')
EXTRUDE_MODE_VALUES = ('clamp', 'mirror', 'repeat')


@dataclass(frozen=True)
class Rect:
    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0

    @property
    def x1(self) -> int:
        return self.x + self.w

    @property
    def y1(self) -> int:
        return self.y + self.h

    def empty(self) -> bool:
        return self.w <= 0 or self.h <= 0

    def contains(self, other: 'Rect') -> bool:
        return (other.x >= self.x and other.y >= self.y and
                other.x1 <= self.x1 and other.y1 <= self.y1)

    def intersect(self, other: 'Rect') -> 'Rect':
        x0, y0 = max(self.x, other.x), max(self.y, other.y)
        x1, y1 = min(self.x1, other.x1), min(self.y1, other.y1)
        if x1 <= x0 or y1 <= y0:
            return Rect()
        return Rect(x0, y0, x1 - x0, y1 - y0)


@dataclass(frozen=True)
class Extrude:
    count: int = 0
    mode: int = ExtrudeMode.CLAMP


@dataclass
class State:
    """Configuration accumulated at one nesting level of a definition file.

    Child scopes start from a copy of their parent (see `copy`), so every
    field set further out is inherited and can be overridden without the
    change leaking back.
    """
    definition: int = Definition.NONE
    level: int = 0
    indent: str = ''

    # texture
    texture: str = ''
    width: int = 0
    height: int = 0
    max_width: int = 0
    max_height: int = 0
    power_of_two: bool = False
    square: bool = False
    align_width: int = 0
    allow_rotate: bool = False
    shape_padding: int = 0
    border_padding: int = 0
    deduplicate: bool = False
    alpha: int = Alpha.KEEP
    alpha_colorkey: RGBA = TRANSPARENT

    # sheet
    path: str = ''
    sheet: FilenameSequence = field(default_factory=FilenameSequence)
    colorkey: RGBA = TRANSPARENT      # alpha 0 = guess when the sheet is opaque
    grid: Size = (0, 0)
    grid_offset: Size = (0, 0)
    grid_spacing: Size = (0, 0)

    # sprite
    sprite: str = ''
    span: Size = (1, 1)
    rect: Rect = field(default_factory=Rect)
    pivot: Tuple[int, int] = (PivotX.CENTER, PivotY.MIDDLE)
    pivot_point: Tuple[float, float] = (0.0, 0.0)
    trim: int = Trim.TRIM
    trim_threshold: int = DEFAULT_TRIM_THRESHOLD
    trim_margin: int = 0
    extrude: Extrude = field(default_factory=Extrude)
    common_divisor: Size = (1, 1)
    tags: Dict[str, str] = field(default_factory=dict)

    def copy(self) -> 'State':
        return replace(self, tags=dict(self.tags))

    def has_grid(self) -> bool:
        return self.grid[0] > 0 and self.grid[1] > 0

    @property
    def grid_stride(self) -> Size:
        return (self.grid[0] + self.grid_spacing[0],
                self.grid[1] + self.grid_spacing[1])


@dataclass(eq=False)
class Texture:
    filename: FilenameSequence
    width: int = 0
    height: int = 0
    max_width: int = 0
    max_height: int = 0
    power_of_two: bool = False
    square: bool = False
    align_width: int = 0
    allow_rotate: bool = False
    border_padding: int = 0
    shape_padding: int = 0
    deduplicate: bool = False
    alpha: int = Alpha.KEEP
    colorkey: RGBA = TRANSPARENT


@dataclass(eq=False)
class Sprite:
    id: str
    texture: Texture
    source: Any               # image.Image, shared through the sheet cache
    source_rect: Rect
    pivot: Tuple[int, int] = (PivotX.CENTER, PivotY.MIDDLE)
    pivot_point: Tuple[float, float] = (0.0, 0.0)
    trim: int = Trim.TRIM
    trim_margin: int = 0
    trim_threshold: int = DEFAULT_TRIM_THRESHOLD
    extrude: Extrude = field(default_factory=Extrude)
    common_divisor: Size = (1, 1)
    tags: Dict[str, str] = field(default_factory=dict)
    # Filled in after parsing (trimming and packing)
    trimmed_source_rect: Optional[Rect] = None
    trimmed_rect: Optional[Rect] = None   # placement in the texture, unrotated w/h
    rotated: bool = False
    vertices: List[Tuple[float, float]] = field(default_factory=list)


@dataclass
class PackedTexture:
    """One output atlas as decided by the packing stage."""
    texture: Texture
    width: int
    height: int
    sprites: List[Sprite] = field(default_factory=list)


@dataclass
class Settings:
    autocomplete: bool = False
    strict: bool = True          # re-raise compositing failures instead of skipping
    connectivity: int = 8        # island extraction neighbourhood, 4 or 8
