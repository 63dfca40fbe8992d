"""
Line splitting for sprite definition files.

A line is split on whitespace outside of quotes; the first token is the
keyword. Neighbouring argument tokens joined by `+`/`-` are merged back into
one expression token (`3 + 1`, `3+ 1`, ...) which `evaluate_expression`
can later reduce to a number.
"""
from typing import Callable, List, Tuple

QUOTES = ('"', "'")
OPERATORS = '+-'


def indentation_of(line):
    """Number of leading whitespace characters of a raw line."""
    return len(line) - len(line.lstrip())


def _split_spans(line) -> List[Tuple[int, int]]:
    """(start, end) of each token's text inside `line`, quotes excluded."""
    spans = []
    i, n = 0, len(line)
    while True:
        while i < n and line[i].isspace():
            i += 1
        if i >= n:
            break
        if line[i] in QUOTES:
            # an unterminated quote runs to the end of the line
            end = line.find(line[i], i + 1)
            if end < 0:
                end = n
            spans.append((i + 1, end))
            i = end + 1
        else:
            start = i
            while i < n and not line[i].isspace():
                i += 1
            spans.append((start, i))
    return spans


def _join_expression_spans(line, spans):
    spans = list(spans)
    i = 0
    while i + 1 < len(spans):
        current = line[spans[i][0]:spans[i][1]]
        following = line[spans[i + 1][0]:spans[i + 1][1]]
        if current.endswith(tuple(OPERATORS)) or following.startswith(tuple(OPERATORS)):
            spans[i] = (spans[i][0], spans[i + 1][1])
            del spans[i + 1]
        else:
            i += 1
    return spans


def join_expressions(line, tokens_from=0) -> List[str]:
    """Tokens of `line` with `+`/`-` expressions merged, from token index `tokens_from` on."""
    spans = _split_spans(line)
    head, tail = spans[:tokens_from], spans[tokens_from:]
    spans = head + _join_expression_spans(line, tail)
    return [line[start:end] for start, end in spans]


def tokenize(line) -> Tuple[str, List[str]]:
    """Split a stripped definition line into (keyword, arguments)."""
    tokens = join_expressions(line, tokens_from=1)
    if not tokens:
        return '', []
    return tokens[0], tokens[1:]


def split_expression(text) -> List[str]:
    """'3 + 1-2' -> ['3', '+', '1', '-', '2']"""
    parts = []
    current = ''
    for c in text:
        if c in OPERATORS:
            parts.append(current.strip())
            parts.append(c)
            current = ''
        else:
            current += c
    parts.append(current.strip())
    return parts


def evaluate_expression(text, convert: Callable = int):
    """Evaluate a left-to-right sum/difference of numbers.

    A leading sign is allowed ('-2'); any other empty operand or a
    non-numeric operand raises ValueError.
    """
    parts = split_expression(text)
    if parts[0] == '' and len(parts) > 1:
        parts[0] = '0'
    result = convert(parts[0])
    for operator, operand in zip(parts[1::2], parts[2::2]):
        value = convert(operand)
        result = result + value if operator == '+' else result - value
    return result
