"""
Sprite definition parser: reads an indentation-scoped description of sprite
sheets and produces Sprites and Textures.

Every line is `keyword [arguments...]`. Indentation opens nested scopes that
inherit everything set further out. `texture`, `sheet` and `sprite` always
open a scope of their own, and closing one triggers its handler: a closed
sprite is emitted, a closed sheet without explicit sprites has its sprites
deduced (sequence, grid or islands), a closed texture is registered.
"""
import os
from typing import List

from spritedef.cache import SheetCache, TextureCache
from spritedef.data_model import (
    Definition, Alpha, Trim, PivotX, PivotY, ExtrudeMode,
    ALPHA_VALUES, TRIM_VALUES, PIVOT_X_VALUES, PIVOT_Y_VALUES, EXTRUDE_MODE_VALUES,
    DEFAULT_TEXTURE_NAME, DEFAULT_INDENTATION, DEFAULT_SHAPE_PADDING, MAX_TRIM_THRESHOLD,
    Extrude, Rect, Settings, Sprite, State,
)
from spritedef.image import load_image, get_used_bounds, is_fully_transparent, find_islands
from spritedef.sequence import FilenameSequence
from spritedef.tokenizer import indentation_of, tokenize, evaluate_expression


# ── Keyword → Definition mapping ──────────────────────────────────────

DEFINITION_MAP = {
    'texture': Definition.TEXTURE,
    'width': Definition.WIDTH,
    'height': Definition.HEIGHT,
    'max-width': Definition.MAX_WIDTH,
    'max-height': Definition.MAX_HEIGHT,
    'power-of-two': Definition.POWER_OF_TWO,
    'square': Definition.SQUARE,
    'align-width': Definition.ALIGN_WIDTH,
    'allow-rotate': Definition.ALLOW_ROTATE,
    'padding': Definition.PADDING,
    'deduplicate': Definition.DEDUPLICATE,
    'alpha': Definition.ALPHA,
    'begin': Definition.BEGIN,
    'path': Definition.PATH,
    'sheet': Definition.SHEET,
    'colorkey': Definition.COLORKEY,
    'tag': Definition.TAG,
    'grid': Definition.GRID,
    'grid-offset': Definition.GRID_OFFSET,
    'grid-spacing': Definition.GRID_SPACING,
    'offset': Definition.OFFSET,
    'sprite': Definition.SPRITE,
    'skip': Definition.SKIP,
    'span': Definition.SPAN,
    'rect': Definition.RECT,
    'pivot': Definition.PIVOT,
    'trim': Definition.TRIM,
    'trim-threshold': Definition.TRIM_THRESHOLD,
    'trim-margin': Definition.TRIM_MARGIN,
    'extrude': Definition.EXTRUDE,
    'common-divisor': Definition.COMMON_DIVISOR,
    # aliases
    'in': Definition.SHEET,
    'out': Definition.TEXTURE,
}

# Definitions that open a scope even without an indentation increase
IMPLICIT_SCOPES = frozenset({Definition.TEXTURE, Definition.SHEET, Definition.SPRITE})


def get_definition(keyword):
    return DEFINITION_MAP.get(keyword, Definition.NONE)


class ParseError(ValueError):
    def __init__(self, message, line_number=0):
        if line_number:
            message += f" in line {line_number}"
        super().__init__(message)
        self.line_number = line_number


# ── Argument reader ───────────────────────────────────────────────────

class _Arguments:
    """Consumes the arguments of one definition line, raising ParseError on misuse."""

    def __init__(self, arguments, error):
        self._arguments = arguments
        self._index = 0
        self._error = error

    def left(self):
        return self._index < len(self._arguments)

    def check(self, condition, message):
        if not condition:
            self._error(message)

    def string(self):
        self.check(self.left(), "invalid argument count")
        value = self._arguments[self._index]
        self._index += 1
        return value

    def path(self):
        return self.string().replace('\\', '/')

    def is_number_following(self):
        if not self.left():
            return False
        try:
            evaluate_expression(self._arguments[self._index], float)
        except ValueError:
            return False
        return True

    def uint(self):
        text = self.string()
        try:
            value = evaluate_expression(text, int)
        except ValueError:
            value = -1
        self.check(value >= 0, "invalid number")
        return value

    def float(self):
        text = self.string()
        try:
            return float(evaluate_expression(text, float))
        except ValueError:
            self._error(f"invalid number '{text}'")

    def bool(self, default_to_true):
        if default_to_true and not self.left():
            return True
        text = self.string()
        if text == 'true':
            return True
        if text == 'false':
            return False
        self._error(f"invalid boolean value '{text}'")

    def size(self, default_to_square):
        x = self.uint()
        y = self.uint() if self.left() or not default_to_square else x
        return (x, y)

    def rect(self):
        return Rect(self.uint(), self.uint(), self.uint(), self.uint())

    def color(self):
        """'#RRGGBB' or '#RRGGBBAA'; a missing or zero alpha becomes 255."""
        text = self.string()
        self.check(text.startswith('#'), "color in HTML notation expected")
        digits = text[1:]
        self.check(len(digits) in (6, 8), f"invalid color '{text}'")
        try:
            channels = [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]
        except ValueError:
            self._error(f"invalid color '{text}'")
        if len(channels) == 3 or channels[3] == 0:
            channels = channels[:3] + [255]
        return tuple(channels)

    def choice(self, values, what):
        text = self.string()
        if text not in values:
            self._error(f"invalid {what} value '{text}'")
        return values.index(text)


# ── Parser ────────────────────────────────────────────────────────────

class InputParser:
    """
    Interprets a sprite definition text.

    Usage:
        parser = InputParser(Settings(autocomplete=True))
        parser.parse(text)
        parser.sprites                 # List[Sprite] in definition order
        parser.textures.textures()     # List[Texture]
        parser.autocomplete_output     # input with deduced sprites written out

    `sheet_loader` decodes a sheet path into an Image and `file_exists`
    probes for unbounded sequence members; both default to the filesystem.
    """

    def __init__(self, settings=None, sheet_loader=load_image, file_exists=os.path.exists):
        self.settings = settings or Settings()
        self.textures = TextureCache()
        self.sheets = SheetCache(sheet_loader)
        self._file_exists = file_exists
        self.sprites: List[Sprite] = []
        self.autocomplete_output = ''
        self._line_number = 0
        self._sprites_in_current_sheet = 0
        self._current_offset = (0, 0)
        self._current_sequence_index = 0
        self._detected_indentation = ''

    @property
    def indentation(self):
        return self._detected_indentation or DEFAULT_INDENTATION

    def error(self, message):
        raise ParseError(message, self._line_number)

    # ── Caches ──

    def get_texture(self, state):
        return self.textures.get(state)

    def get_sheet(self, state, index=None):
        if index is None:
            index = self._current_sequence_index
        return self.sheets.get(state.path, state.sheet.get_nth_filename(index), state.colorkey)

    # ── Main loop ──

    def parse(self, text):
        self.autocomplete_output = ''
        self._sprites_in_current_sheet = 0
        self._current_offset = (0, 0)
        self._current_sequence_index = 0
        self._detected_indentation = ''

        root = State(level=-1, texture=DEFAULT_TEXTURE_NAME)
        self._scope_stack = [root]
        autocomplete = self.settings.autocomplete
        pending_space = ''

        for self._line_number, line in enumerate(text.splitlines(), 1):
            stripped = line.lstrip()
            if not stripped or stripped.startswith('#'):
                if autocomplete:
                    pending_space += line + '\n'
                continue

            keyword, arguments = tokenize(stripped)
            definition = get_definition(keyword)
            if definition == Definition.NONE:
                self.error(f"invalid definition '{keyword}'")

            level = indentation_of(line)
            self._pop_scope_stack(level)

            if level > self._scope_stack[-1].level or definition in IMPLICIT_SCOPES:
                self._scope_stack.append(self._scope_stack[-1].copy())

            state = self._scope_stack[-1]
            state.definition = definition
            state.level = level
            state.indent = line[:level]
            if not self._detected_indentation and state.indent:
                self._detected_indentation = state.indent

            self.apply_definition(state, definition, arguments)

            if autocomplete:
                self.autocomplete_output += pending_space + line + '\n'
                pending_space = ''

        if autocomplete:
            self.autocomplete_output += pending_space
        self._pop_scope_stack(-1)
        return self

    def _pop_scope_stack(self, level):
        """
        Close every scope deeper than `level`.

        Implicit scopes at or below the new line's level run their handler
        on the innermost state, which holds everything set inside them.
        A closing texture scope hands its texture to the enclosing scope so
        following siblings keep targeting it.
        """
        stack = self._scope_stack
        for index in range(len(stack) - 1, -1, -1):
            last = stack[index]
            if last.definition in IMPLICIT_SCOPES and level <= last.level:
                state = stack[-1]
                state.definition = last.definition
                # deduced definitions go one level below an implicit scope line
                if index == len(stack) - 1:
                    state.indent += self.indentation
                self._scope_ends(state)
            elif level >= last.level:
                top = index + 1
                if top < len(stack) and stack[top].definition == Definition.TEXTURE:
                    stack[index].texture = stack[top].texture
                del stack[top:]
                return

    def _scope_ends(self, state):
        if state.definition == Definition.TEXTURE:
            self.texture_ends(state)
        elif state.definition == Definition.SHEET:
            self.sheet_ends(state)
        elif state.definition == Definition.SPRITE:
            self.sprite_ends(state)

    # ── Definitions ──

    def apply_definition(self, state, definition, arguments):
        args = _Arguments(arguments, self.error)

        if definition == Definition.BEGIN:
            pass  # only opens a scope
        elif definition == Definition.TEXTURE:
            state.texture = args.path()
        elif definition == Definition.WIDTH:
            state.width = args.uint()
        elif definition == Definition.HEIGHT:
            state.height = args.uint()
        elif definition == Definition.MAX_WIDTH:
            state.max_width = args.uint()
        elif definition == Definition.MAX_HEIGHT:
            state.max_height = args.uint()
        elif definition == Definition.POWER_OF_TWO:
            state.power_of_two = args.bool(True)
        elif definition == Definition.SQUARE:
            state.square = args.bool(True)
        elif definition == Definition.ALIGN_WIDTH:
            state.align_width = args.uint()
        elif definition == Definition.ALLOW_ROTATE:
            state.allow_rotate = args.bool(True)
        elif definition == Definition.PADDING:
            state.shape_padding = args.uint() if args.left() else DEFAULT_SHAPE_PADDING
            state.border_padding = args.uint() if args.left() else state.shape_padding
        elif definition == Definition.DEDUPLICATE:
            state.deduplicate = args.bool(True)
        elif definition == Definition.ALPHA:
            state.alpha = Alpha(args.choice(ALPHA_VALUES, 'alpha'))
            if state.alpha == Alpha.COLORKEY:
                state.alpha_colorkey = args.color()
        elif definition == Definition.PATH:
            state.path = args.path()
        elif definition == Definition.SHEET:
            try:
                state.sheet = FilenameSequence.from_pattern(args.path())
            except ValueError as e:
                self.error(str(e))
            self._current_offset = (0, 0)
            self._current_sequence_index = 0
        elif definition == Definition.COLORKEY:
            state.colorkey = args.color()
        elif definition == Definition.TAG:
            key = args.string()
            state.tags[key] = args.string() if args.left() else ''
        elif definition == Definition.GRID:
            state.grid = args.size(True)
        elif definition == Definition.GRID_OFFSET:
            state.grid_offset = args.size(True)
        elif definition == Definition.GRID_SPACING:
            state.grid_spacing = args.size(True)
        elif definition == Definition.OFFSET:
            args.check(state.has_grid(), "offset is only valid in grid")
            stride_x, stride_y = state.grid_stride
            x, y = args.float(), args.float()
            self._current_offset = (int(x * stride_x), int(y * stride_y))
        elif definition == Definition.SKIP:
            args.check(state.has_grid(), "skip is only valid in grid")
            count = args.uint() if args.left() else 1
            x, y = self._current_offset
            self._current_offset = (x + count * state.grid_stride[0], y)
        elif definition == Definition.SPAN:
            state.span = args.size(False)
            args.check(state.span[0] > 0 and state.span[1] > 0, "invalid span")
        elif definition == Definition.SPRITE:
            if args.left():
                state.sprite = args.string()
        elif definition == Definition.RECT:
            state.rect = args.rect()
        elif definition == Definition.PIVOT:
            self._apply_pivot(state, args)
        elif definition == Definition.TRIM:
            state.trim = Trim(args.choice(TRIM_VALUES, 'trim')) if args.left() else Trim.TRIM
        elif definition == Definition.TRIM_MARGIN:
            state.trim_margin = args.uint()
        elif definition == Definition.TRIM_THRESHOLD:
            state.trim_threshold = args.uint()
            args.check(1 <= state.trim_threshold <= MAX_TRIM_THRESHOLD, "invalid threshold")
        elif definition == Definition.EXTRUDE:
            count = args.uint() if args.left() else 1
            mode = ExtrudeMode.CLAMP
            if args.left():
                mode = ExtrudeMode(args.choice(EXTRUDE_MODE_VALUES, 'extrude'))
            state.extrude = Extrude(count, mode)
        elif definition == Definition.COMMON_DIVISOR:
            state.common_divisor = args.size(True)
            args.check(state.common_divisor[0] >= 1 and state.common_divisor[1] >= 1,
                       "invalid divisor")

        args.check(not args.left(), "invalid argument count")

    def _apply_pivot(self, state, args):
        if args.is_number_following():
            state.pivot = (PivotX.CUSTOM, PivotY.CUSTOM)
            state.pivot_point = (args.float(), args.float())
            return
        pivot_x, pivot_y = state.pivot
        # one or two axis words, in either order
        for i in range(2):
            if i and not args.left():
                break
            word = args.string()
            if word in PIVOT_X_VALUES:
                pivot_x = PivotX(PIVOT_X_VALUES.index(word))
            elif word in PIVOT_Y_VALUES:
                pivot_y = PivotY(PIVOT_Y_VALUES.index(word))
            else:
                self.error(f"invalid pivot value '{word}'")
        state.pivot = (pivot_x, pivot_y)

    # ── Scope handlers ──

    def texture_ends(self, state):
        self.get_texture(state)

    def sheet_ends(self, state):
        if not self._sprites_in_current_sheet:
            if state.sheet.is_sequence():
                self.deduce_sequence_sprites(state)
            elif state.has_grid():
                self.deduce_grid_sprites(state)
            else:
                self.deduce_unaligned_sprites(state)
        self._sprites_in_current_sheet = 0

    def sprite_ends(self, state):
        if state.sheet.empty():
            self.error("sprite not on sheet")

        # next grid cell after the previous sprite / offset / skip
        if state.rect.empty() and state.has_grid():
            (grid_x, grid_y), (span_x, span_y) = state.grid, state.span
            (stride_x, stride_y) = state.grid_stride
            x, y = self._current_offset
            state.rect = Rect(
                state.grid_offset[0] + x, state.grid_offset[1] + y,
                grid_x * span_x + state.grid_spacing[0] * (span_x - 1),
                grid_y * span_y + state.grid_spacing[1] * (span_y - 1))
            self._current_offset = (x + stride_x * span_x, y)

        source = self.get_sheet(state)
        sprite = Sprite(
            id=state.sprite or f"sprite_{len(self.sprites)}",
            texture=self.get_texture(state),
            source=source,
            source_rect=state.rect if not state.rect.empty() else source.bounds(),
            pivot=state.pivot,
            pivot_point=state.pivot_point,
            trim=state.trim,
            trim_margin=state.trim_margin,
            trim_threshold=state.trim_threshold,
            extrude=state.extrude,
            common_divisor=state.common_divisor,
            tags=dict(state.tags),
        )
        self.sprites.append(sprite)

        if state.sheet.is_sequence():
            self._current_sequence_index += 1
        self._sprites_in_current_sheet += 1

    # ── Sprite deduction ──

    def _autocomplete(self, line):
        if self.settings.autocomplete:
            self.autocomplete_output += line + '\n'

    def deduce_sequence_sprites(self, state):
        """One sprite per sequence member; unbounded sequences end at the first missing file."""
        if state.sheet.is_infinite_sequence():
            count = 0
            while self._file_exists(os.path.join(state.path, state.sheet.get_nth_filename(count))):
                count += 1
            state.sheet = state.sheet.with_count(count)

        # a bare `sprite` would read back as a grid cell or the inherited rect
        write_rect = state.has_grid() or not state.rect.empty()
        for index in range(state.sheet.count):
            rect = self.get_sheet(state, index).bounds()
            self._autocomplete(f"{state.indent}sprite")
            if write_rect:
                self._autocomplete(f"{state.indent}{self.indentation}rect "
                                   f"{rect.x} {rect.y} {rect.w} {rect.h}")
            state.rect = rect
            self.sprite_ends(state)

    def deduce_grid_sprites(self, state):
        """One sprite per non-transparent grid cell inside the sheet's used bounds."""
        sheet = self.get_sheet(state)
        bounds = get_used_bounds(sheet)
        stride_x, stride_y = state.grid_stride
        offset_x, offset_y = state.grid_offset

        x0 = max(0, (bounds.x - offset_x) // stride_x)
        y0 = max(0, (bounds.y - offset_y) // stride_y)
        # last cell must fit the sheet; with no spacing or offset this is width // cell
        x1 = min(-(-(bounds.x1 - offset_x) // stride_x),
                 (sheet.width - offset_x - state.grid[0]) // stride_x + 1)
        y1 = min(-(-(bounds.y1 - offset_y) // stride_y),
                 (sheet.height - offset_y - state.grid[1]) // stride_y + 1)

        # deduced cells are single cells; a bare `sprite` would read back spanned
        reset_span = state.span != (1, 1)
        state.span = (1, 1)

        for y in range(y0, y1):
            output_offset = False
            skipped = 0
            for x in range(x0, x1):
                state.rect = Rect(offset_x + x * stride_x, offset_y + y * stride_y,
                                  state.grid[0], state.grid[1])
                if is_fully_transparent(sheet, state.rect):
                    skipped += 1
                    continue

                if reset_span:
                    reset_span = False
                    self._autocomplete(f"{state.indent}span 1 1")
                if not output_offset:
                    output_offset = True
                    if x0 or y:
                        self._autocomplete(f"{state.indent}offset {x0} {y}")
                if skipped:
                    self._autocomplete(f"{state.indent}skip" +
                                       (f" {skipped}" if skipped > 1 else ""))
                    skipped = 0
                self._autocomplete(f"{state.indent}sprite")

                self.sprite_ends(state)

    def deduce_unaligned_sprites(self, state):
        """One sprite per island of connected non-transparent pixels."""
        sheet = self.get_sheet(state)
        area = state.rect if not state.rect.empty() else None
        for rect in find_islands(sheet, area, self.settings.connectivity):
            self._autocomplete(f"{state.indent}sprite")
            if rect != sheet.bounds():
                self._autocomplete(f"{state.indent}{self.indentation}rect "
                                   f"{rect.x} {rect.y} {rect.w} {rect.h}")
            state.rect = rect
            self.sprite_ends(state)


# ── Entry points ──────────────────────────────────────────────────────

def parse_definition_text(text, settings=None, **kwargs):
    """Parse definition text; returns the InputParser holding sprites and textures."""
    return InputParser(settings, **kwargs).parse(text)


def parse_definition(filename, settings=None, **kwargs):
    with open(filename, encoding='utf-8') as f:
        text = f.read()
    return parse_definition_text(text, settings, **kwargs)


def update_textfile(filename, text):
    """Write `text` unless the file already holds exactly that."""
    if os.path.exists(filename):
        with open(filename, encoding='utf-8', newline='') as f:
            if f.read() == text:
                return False
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filename, 'w', encoding='utf-8', newline='') as f:
        f.write(text)
    return True
