#!/usr/bin/env python
"""
Parse a sprite definition file and list the sprites it produces.

Usage:
    python scripts/extract_sprites.py sprites.conf                 # list sprites
    python scripts/extract_sprites.py sprites.conf --autocomplete  # write deduced sprites back
    python scripts/extract_sprites.py sprites.conf --autocomplete --output out.conf
"""

import argparse
import os
import sys

from spritedef.data_model import Settings
from spritedef.parser import ParseError, parse_definition, update_textfile
from spritedef.trimming import trim_sprites


def print_sprites(parser):
    for sprite in parser.sprites:
        r = sprite.trimmed_source_rect or sprite.source_rect
        tags = ' '.join(f'{k}={v}' if v else k for k, v in sprite.tags.items())
        print(f"  {sprite.id:<24} {os.path.basename(sprite.source.filename):<24} "
              f"{r.x:>5} {r.y:>5} {r.w:>5} {r.h:>5}  {tags}")


def main():
    parser = argparse.ArgumentParser(description="Extract sprites from a definition file")
    parser.add_argument("input", help="sprite definition file")
    parser.add_argument("--autocomplete", action="store_true",
                        help="write deduced sprites back into the definition")
    parser.add_argument("--output", default=None,
                        help="autocomplete destination (default: overwrite input)")
    parser.add_argument("--trim", action="store_true",
                        help="list trimmed source rects")
    parser.add_argument("--connectivity", type=int, choices=(4, 8), default=8,
                        help="pixel neighbourhood for island detection")
    args = parser.parse_args()

    settings = Settings(autocomplete=args.autocomplete,
                        connectivity=args.connectivity)
    try:
        result = parse_definition(args.input, settings)
    except (ParseError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if args.trim:
        trim_sprites(result.sprites)

    print(f"{len(result.sprites)} sprite(s), {len(result.textures)} texture(s)")
    print_sprites(result)

    if args.autocomplete:
        output = args.output or args.input
        if update_textfile(output, result.autocomplete_output):
            print(f"Wrote {output}")
        else:
            print(f"{output} is up to date")


if __name__ == "__main__":
    main()
