"""
Filename sequences: `frame-{0-}.png`, `walk{01-12}.png`, or a plain filename.

The placeholder is `{first-[last]}`. The digit count of `first` sets the zero
padding of generated indices; leaving out `last` makes the sequence unbounded
until its count is fixed (see `with_count`).
"""
import re
from dataclasses import dataclass, replace
from typing import Optional

_PLACEHOLDER = re.compile(r'\{(\d+)-(\d*)\}')


@dataclass(frozen=True)
class FilenameSequence:
    prefix: str = ''
    suffix: str = ''
    first: int = 0
    digits: int = 0
    count: Optional[int] = None
    sequence: bool = False

    @classmethod
    def from_pattern(cls, pattern: str) -> 'FilenameSequence':
        match = _PLACEHOLDER.search(pattern)
        if match is None:
            return cls(prefix=pattern, count=1 if pattern else 0)

        first_text, last_text = match.group(1), match.group(2)
        first = int(first_text)
        count = None
        if last_text:
            last = int(last_text)
            if last < first:
                raise ValueError(f"invalid sequence range '{match.group(0)}'")
            count = last - first + 1
        return cls(
            prefix=pattern[:match.start()],
            suffix=pattern[match.end():],
            first=first,
            digits=len(first_text),
            count=count,
            sequence=True,
        )

    def empty(self) -> bool:
        return not self.sequence and not self.prefix

    def is_sequence(self) -> bool:
        return self.sequence

    def is_infinite_sequence(self) -> bool:
        return self.sequence and self.count is None

    def with_count(self, count: int) -> 'FilenameSequence':
        return replace(self, count=count)

    def get_nth_filename(self, index: int) -> str:
        if not self.sequence:
            return self.prefix
        number = str(self.first + index).zfill(self.digits)
        return self.prefix + number + self.suffix

    def __str__(self):
        if not self.sequence:
            return self.prefix
        first = str(self.first).zfill(self.digits)
        last = ''
        if self.count is not None:
            last = str(self.first + self.count - 1)
        return f'{self.prefix}{{{first}-{last}}}{self.suffix}'
