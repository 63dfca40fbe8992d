import os

from spritedef.image import save_image
from spritedef.parser import parse_definition_text
from spritedef.data_model import Settings
from conftest import make_image, fill, parse, rects, RED, GREEN, BLUE, MAGENTA


def _two_tile_sheet():
    """32x16: left tile transparent, right tile opaque."""
    return fill(make_image(32, 16), 16, 0, 16, 16, RED)


def _grid_sheet():
    """4x2 cells of 8 px; cells (1,0), (3,0) and (2,1) are used."""
    img = make_image(32, 16)
    fill(img, 9, 1, 6, 6, RED)
    fill(img, 24, 0, 8, 8, GREEN)
    fill(img, 17, 10, 2, 2, BLUE)
    return img


def _island_sheet():
    img = make_image(20, 12)
    fill(img, 2, 1, 3, 3, RED)
    fill(img, 10, 2, 4, 2, GREEN)
    fill(img, 4, 8, 2, 3, BLUE)
    return img


# ── Grid ──

def test_grid_scenario():
    p = parse('grid 16 16\nsheet "a.png"\n', {'a.png': _two_tile_sheet()})
    assert rects(p) == [(16, 0, 16, 16)]
    assert p.sprites[0].id == 'sprite_0'


def test_grid_skips_transparent_cells():
    p = parse('sheet s.png\n  grid 8\n', {'s.png': _grid_sheet()})
    assert rects(p) == [(8, 0, 8, 8), (24, 0, 8, 8), (16, 8, 8, 8)]


def test_grid_is_repeatable():
    images = {'s.png': _grid_sheet()}
    first = rects(parse('sheet s.png\n  grid 8\n', images))
    second = rects(parse('sheet s.png\n  grid 8\n', images))
    assert first == second


def test_grid_with_spacing():
    img = make_image(20, 9)
    fill(img, 0, 0, 9, 9, RED)
    fill(img, 11, 0, 9, 9, GREEN)
    p = parse('sheet s.png\n  grid 9\n  grid-spacing 2\n', {'s.png': img})
    assert rects(p) == [(0, 0, 9, 9), (11, 0, 9, 9)]


def test_fully_transparent_sheet_gives_no_sprites():
    p = parse('sheet s.png\n  grid 8\n', {'s.png': make_image(32, 32)})
    assert p.sprites == []


def test_grid_not_deduced_with_explicit_sprites():
    p = parse('sheet s.png\n'
              '  grid 8\n'
              '  sprite\n', {'s.png': _grid_sheet()})
    assert rects(p) == [(0, 0, 8, 8)]


def test_opaque_sheet_gets_colorkey():
    img = make_image(16, 8, MAGENTA)
    fill(img, 8, 0, 8, 8, RED)
    p = parse('sheet s.png\n  grid 8\n', {'s.png': img})
    assert rects(p) == [(8, 0, 8, 8)]
    assert p.sprites[0].source.rgba_at(0, 0) == (0, 0, 0, 0)


def test_explicit_colorkey():
    img = make_image(16, 8, MAGENTA)
    fill(img, 0, 0, 8, 8, RED)
    fill(img, 0, 7, 16, 1, GREEN)   # two corners green, so a guess would key green
    p = parse('sheet s.png\n  colorkey #FF00FF\n  grid 8\n', {'s.png': img})
    assert rects(p) == [(0, 0, 8, 8), (8, 0, 8, 8)]
    assert p.sprites[1].source.rgba_at(8, 0) == (0, 0, 0, 0)


# ── Islands ──

def test_islands():
    p = parse('sheet s.png\n', {'s.png': _island_sheet()})
    assert rects(p) == [(2, 1, 3, 3), (10, 2, 4, 2), (4, 8, 2, 3)]


def test_single_pixel_island():
    img = fill(make_image(16, 16), 7, 9, 1, 1, RED)
    p = parse('sheet s.png\n', {'s.png': img})
    assert rects(p) == [(7, 9, 1, 1)]


def test_islands_inside_rect():
    p = parse('sheet s.png\n  rect 8 0 12 12\n', {'s.png': _island_sheet()})
    assert rects(p) == [(10, 2, 4, 2)]


def test_island_sprites_share_state():
    p = parse('sheet s.png\n  tag enemy\n', {'s.png': _island_sheet()})
    assert [s.id for s in p.sprites] == ['sprite_0', 'sprite_1', 'sprite_2']
    assert all(s.tags == {'enemy': ''} for s in p.sprites)


# ── Sequences ──

def test_sequence_scenario(tmp_path):
    for i, color in enumerate((RED, GREEN, BLUE)):
        img = fill(make_image(4 + i, 4), 0, 0, 1, 1, color)
        save_image(img, str(tmp_path / f'seq-{i}.png'))

    text = f'path "{tmp_path.as_posix()}"\nsheet "seq-{{0-}}.png"\n'
    p = parse_definition_text(text)
    assert len(p.sprites) == 3
    assert [os.path.basename(s.source.filename) for s in p.sprites] == \
        ['seq-0.png', 'seq-1.png', 'seq-2.png']
    assert rects(p) == [(0, 0, 4, 4), (0, 0, 5, 4), (0, 0, 6, 4)]


def test_bounded_sequence():
    images = {f'f{i}.png': make_image(2, 2, RED) for i in range(5)}
    p = parse('sheet f{1-3}.png\n', images)
    assert [os.path.basename(s.source.filename) for s in p.sprites] == \
        ['f1.png', 'f2.png', 'f3.png']
    assert len(p.sprites) == 3
    sources = [s.source for s in p.sprites]
    assert len({id(s) for s in sources}) == 3


def test_sequence_with_explicit_sprites():
    images = {f'f{i}.png': make_image(2 + i, 2, RED) for i in range(2)}
    p = parse('sheet f{0-}.png\n'
              '  sprite a\n'
              '  sprite b\n', images)
    assert [s.id for s in p.sprites] == ['a', 'b']
    assert rects(p) == [(0, 0, 2, 2), (0, 0, 3, 2)]


# ── Autocomplete ──

def test_autocomplete_grid():
    p = parse('grid 16 16\nsheet "a.png"\n', {'a.png': _two_tile_sheet()},
              autocomplete=True)
    assert p.autocomplete_output == ('grid 16 16\n'
                                     'sheet "a.png"\n'
                                     '  offset 1 0\n'
                                     '  sprite\n')


def test_autocomplete_grid_skip_and_rows():
    p = parse('sheet s.png\n  grid 8\n', {'s.png': _grid_sheet()}, autocomplete=True)
    assert p.autocomplete_output == ('sheet s.png\n'
                                     '  grid 8\n'
                                     '  offset 1 0\n'
                                     '  sprite\n'
                                     '  skip\n'
                                     '  sprite\n'
                                     '  offset 1 1\n'
                                     '  skip\n'
                                     '  sprite\n')


def test_autocomplete_islands_use_detected_indentation():
    p = parse('texture t.png\n'
              '    sheet s.png\n', {'s.png': _island_sheet()}, autocomplete=True)
    assert p.autocomplete_output == ('texture t.png\n'
                                     '    sheet s.png\n'
                                     '        sprite\n'
                                     '            rect 2 1 3 3\n'
                                     '        sprite\n'
                                     '            rect 10 2 4 2\n'
                                     '        sprite\n'
                                     '            rect 4 8 2 3\n')


def test_autocomplete_keeps_blank_and_comment_lines():
    text = ('# sprites\n'
            '\n'
            'sheet s.png\n'
            '  sprite\n'
            '\n'
            '  # last one\n'
            '  sprite\n'
            '# trailing\n')
    p = parse(text, {'s.png': _island_sheet()}, autocomplete=True)
    assert p.autocomplete_output == text


def test_autocomplete_off_by_default():
    p = parse('sheet s.png\n', {'s.png': _island_sheet()})
    assert p.autocomplete_output == ''


def _roundtrip(text, images):
    first = parse(text, images, autocomplete=True)
    second = parse(first.autocomplete_output, images, autocomplete=True)
    return first, second


def test_roundtrip_grid():
    images = {'s.png': _grid_sheet()}
    first, second = _roundtrip('sheet s.png\n  grid 8\n', images)
    assert rects(second) == rects(first)
    assert [s.id for s in second.sprites] == [s.id for s in first.sprites]
    assert second.autocomplete_output == first.autocomplete_output


def test_roundtrip_grid_with_offset_and_spacing():
    img = make_image(30, 30)
    fill(img, 12, 2, 3, 3, RED)
    fill(img, 22, 12, 8, 8, GREEN)
    images = {'s.png': img}
    first, second = _roundtrip('sheet s.png\n'
                               '  grid 8\n'
                               '  grid-offset 2\n'
                               '  grid-spacing 2\n', images)
    assert rects(first) == [(12, 2, 8, 8), (22, 12, 8, 8)]
    assert rects(second) == rects(first)


def test_roundtrip_islands():
    images = {'s.png': _island_sheet()}
    first, second = _roundtrip('sheet s.png\n', images)
    assert rects(second) == rects(first)
    assert second.autocomplete_output == first.autocomplete_output


def test_roundtrip_sequence():
    images = {f'f{i}.png': make_image(3, 3, RED) for i in range(3)}
    first, second = _roundtrip('sheet f{0-}.png\n', images)
    assert first.autocomplete_output == ('sheet f{0-}.png\n'
                                         '  sprite\n'
                                         '  sprite\n'
                                         '  sprite\n')
    assert rects(second) == rects(first)
    assert [s.source.filename for s in second.sprites] == \
        [s.source.filename for s in first.sprites]


def test_roundtrip_sequence_under_grid():
    images = {f'f{i}.png': make_image(16, 16, RED) for i in range(3)}
    first, second = _roundtrip('sheet f{0-}.png\n  grid 8\n', images)
    assert rects(first) == [(0, 0, 16, 16)] * 3
    assert first.autocomplete_output == ('sheet f{0-}.png\n'
                                         '  grid 8\n'
                                         '  sprite\n'
                                         '    rect 0 0 16 16\n'
                                         '  sprite\n'
                                         '    rect 0 0 16 16\n'
                                         '  sprite\n'
                                         '    rect 0 0 16 16\n')
    assert rects(second) == rects(first)
    assert second.autocomplete_output == first.autocomplete_output


def test_roundtrip_sequence_under_rect():
    images = {f'f{i}.png': make_image(3, 3, RED) for i in range(2)}
    first, second = _roundtrip('sheet f{0-}.png\n  rect 0 0 2 2\n', images)
    assert rects(first) == [(0, 0, 3, 3)] * 2
    assert rects(second) == rects(first)


def test_roundtrip_grid_with_span():
    img = fill(make_image(32, 8), 0, 0, 31, 8, RED)
    first, second = _roundtrip('sheet s.png\n  grid 8\n  span 2 1\n', {'s.png': img})
    assert rects(first) == [(0, 0, 8, 8), (8, 0, 8, 8), (16, 0, 8, 8), (24, 0, 8, 8)]
    assert first.autocomplete_output == ('sheet s.png\n'
                                         '  grid 8\n'
                                         '  span 2 1\n'
                                         '  span 1 1\n'
                                         '  sprite\n'
                                         '  sprite\n'
                                         '  sprite\n'
                                         '  sprite\n')
    assert rects(second) == rects(first)


def test_grid_offset_shifts_scanned_cells():
    img = fill(make_image(30, 8), 12, 0, 1, 8, RED)
    first, second = _roundtrip('sheet s.png\n  grid 8\n  grid-offset 6 0\n', {'s.png': img})
    assert rects(first) == [(6, 0, 8, 8)]
    assert rects(second) == rects(first)


def test_settings_connectivity():
    img = make_image(4, 4)
    fill(img, 0, 0, 1, 1, RED)
    fill(img, 1, 1, 1, 1, RED)
    assert len(parse('sheet s.png\n', {'s.png': img}).sprites) == 1
    assert len(parse('sheet s.png\n', {'s.png': img}, connectivity=4).sprites) == 2
    assert Settings().connectivity == 8
