"""PHP lexer.

Turns PHP source into a flat token stream for the option-map parser. It is
not a complete PHP tokenizer: it understands exactly what is needed to find
array literals, calls and class bodies, and keeps both ``raw_text`` (the
literal as written) and ``text`` (the unescaped value) for strings.

Ordinary comments are dropped, doc comments (``/** ... */``) are kept as
tokens so the parser can attach them to the following node.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional


OPEN_TAG_RE = re.compile(r'<\?php\b|<\?=|<\?(?![a-zA-Z])', re.IGNORECASE)
WHITESPACE_RE = re.compile(r'\s+')
VARIABLE_RE = re.compile(r'\$[A-Za-z_\x80-\uffff][\w\x80-\uffff]*')
NAME_RE = re.compile(r'\\?[A-Za-z_\x80-\uffff][\w\x80-\uffff]*(?:\\[A-Za-z_\x80-\uffff][\w\x80-\uffff]*)*')
NUMBER_RE = re.compile(
    r'0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO][0-7_]+'
    r'|(?:\d[\d_]*)?\.\d[\d_]*(?:[eE][+-]?\d+)?|\d[\d_]*\.?(?:[eE][+-]?\d+)?'
)
HEREDOC_START_RE = re.compile(r'<<<[ \t]*(?P<quote>["\']?)(?P<label>[A-Za-z_]\w*)(?P=quote)\r?\n')
SIMPLE_INTERPOLATION_RE = re.compile(r'(?<!\\)(?:\$[A-Za-z_{]|\{\$)')

# longest first
OPERATORS = (
    '<<=', '>>=', '**=', '...', '<=>', '===', '!==', '??=', '?->',
    '::', '->', '=>', '++', '--', '==', '!=', '<>', '<=', '>=', '&&', '||',
    '??', '+=', '-=', '*=', '/=', '.=', '%=', '&=', '|=', '^=', '<<', '>>', '**',
    '+', '-', '*', '/', '%', '=', '<', '>', '!', '.', '&', '|', '^', '~', '?', ':', '@',
)
PUNCTUATION = '()[]{},;#'

ESCAPES = {
    'n': '\n', 't': '\t', 'r': '\r', 'v': '\v', 'e': '\x1b', 'f': '\f',
    '\\': '\\', '$': '$', '"': '"', '0': '\0',
}


def _unescape_single(body: str) -> str:
    return body.replace("\\\\", "\x00").replace("\\'", "'").replace("\x00", "\\")


def _unescape_double(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == '\\' and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt == 'u' and body[i + 2:i + 3] == '{':
                end = body.find('}', i + 3)
                if end != -1:
                    try:
                        out.append(chr(int(body[i + 3:end], 16)))
                        i = end + 1
                        continue
                    except ValueError:
                        pass
            if nxt == 'x':
                m = re.match(r'[0-9a-fA-F]{1,2}', body[i + 2:])
                if m:
                    out.append(chr(int(m.group(0), 16)))
                    i += 2 + len(m.group(0))
                    continue
            if nxt in ESCAPES and not (nxt == '0' and re.match(r'[0-7]{2}', body[i + 2:i + 4])):
                out.append(ESCAPES[nxt])
                i += 2
                continue
            m = re.match(r'[0-7]{1,3}', body[i + 1:])
            if m:
                out.append(chr(int(m.group(0), 8) & 0xFF))
                i += 1 + len(m.group(0))
                continue
        out.append(ch)
        i += 1
    return ''.join(out)


@dataclass
class Token:
    type: str
    text: str
    raw_text: str
    line_number: int
    interpolated: bool = False


class PhpTokenStream:
    """Token stream API over a PHP source string.

    Methods:
    - peek(n=1): lookahead without advancing
    - next(): consume and return current token
    - current: last returned token or None
    - __iter__(): iterate over remaining tokens
    """

    def __init__(self, content: str, file_path: str = '') -> None:
        self.content = content or ''
        self.file_path = file_path
        self._tokens: List[Token] = []
        self._pos = 0
        self._line = 1
        self._tokenize()
        self._current: Optional[Token] = None

    # -- tokenizer ---------------------------------------------------------

    def _emit(self, type_: str, text: str, raw: str, line: int, interpolated: bool = False) -> None:
        self._tokens.append(Token(type_, text, raw, line, interpolated))

    def _tokenize(self) -> None:
        src = self.content
        i = 0
        line = 1
        in_php = False
        n = len(src)

        while i < n:
            if not in_php:
                m = OPEN_TAG_RE.search(src, i)
                end = m.start() if m else n
                if end > i:
                    self._emit('INLINE_HTML', src[i:end], src[i:end], line)
                    line += src.count('\n', i, end)
                if not m:
                    break
                self._emit('OPEN_TAG', m.group(0), m.group(0), line)
                i = m.end()
                in_php = True
                continue

            ch = src[i]

            m = WHITESPACE_RE.match(src, i)
            if m:
                line += m.group(0).count('\n')
                i = m.end()
                continue

            if src.startswith('?>', i):
                self._emit('CLOSE_TAG', '?>', '?>', line)
                i += 2
                in_php = False
                continue

            # comments
            if src.startswith('/*', i):
                end = src.find('*/', i + 2)
                end = n if end == -1 else end + 2
                raw = src[i:end]
                if raw.startswith('/**') and len(raw) > 4:
                    self._emit('DOC_COMMENT', raw, raw, line)
                line += raw.count('\n')
                i = end
                continue
            if ch == '#' and not src.startswith('#[', i) or src.startswith('//', i):
                end = i
                while end < n and src[end] != '\n' and not src.startswith('?>', end):
                    end += 1
                i = end
                continue

            # strings
            if ch == "'":
                end = self._scan_quoted(src, i, "'")
                raw = src[i:end]
                self._emit('STRING', _unescape_single(raw[1:-1]), raw, line)
                line += raw.count('\n')
                i = end
                continue
            if ch == '"':
                end = self._scan_quoted(src, i, '"')
                raw = src[i:end]
                body = raw[1:-1]
                interpolated = bool(SIMPLE_INTERPOLATION_RE.search(body))
                self._emit('STRING', _unescape_double(body), raw, line, interpolated)
                line += raw.count('\n')
                i = end
                continue
            if ch == '`':
                end = self._scan_quoted(src, i, '`')
                raw = src[i:end]
                self._emit('STRING', raw[1:-1], raw, line, True)
                line += raw.count('\n')
                i = end
                continue
            m = HEREDOC_START_RE.match(src, i)
            if m:
                end, body = self._scan_heredoc(src, m)
                raw = src[i:end]
                nowdoc = m.group('quote') == "'"
                if nowdoc:
                    self._emit('STRING', body, raw, line)
                else:
                    interpolated = bool(SIMPLE_INTERPOLATION_RE.search(body))
                    self._emit('STRING', _unescape_double(body), raw, line, interpolated)
                line += raw.count('\n')
                i = end
                continue

            m = VARIABLE_RE.match(src, i)
            if m:
                self._emit('VARIABLE', m.group(0)[1:], m.group(0), line)
                i = m.end()
                continue

            if ch.isdigit() or (ch == '.' and i + 1 < n and src[i + 1].isdigit()):
                m = NUMBER_RE.match(src, i)
                if m and m.end() > i:
                    self._emit('NUMBER', m.group(0), m.group(0), line)
                    i = m.end()
                    continue

            m = NAME_RE.match(src, i)
            if m:
                self._emit('NAME', m.group(0), m.group(0), line)
                i = m.end()
                continue

            if src.startswith('#[', i):
                self._emit('PUNCT', '#[', '#[', line)
                i += 2
                continue

            for op in OPERATORS:
                if src.startswith(op, i):
                    self._emit('OPERATOR', op, op, line)
                    i += len(op)
                    break
            else:
                if ch in PUNCTUATION:
                    self._emit('PUNCT', ch, ch, line)
                else:
                    self._emit('UNKNOWN', ch, ch, line)
                i += 1

    @staticmethod
    def _scan_quoted(src: str, start: int, quote: str) -> int:
        k = start + 1
        while k < len(src):
            c = src[k]
            if c == '\\':
                k += 2
                continue
            if c == quote:
                return k + 1
            k += 1
        return len(src)

    @staticmethod
    def _scan_heredoc(src: str, match: re.Match) -> tuple:
        label = match.group('label')
        body_start = match.end()
        closing = re.compile(r'^[ \t]*' + re.escape(label) + r'\b', re.MULTILINE)
        m = closing.search(src, body_start)
        if not m:
            return len(src), src[body_start:]
        body = src[body_start:m.start()]
        if body.endswith('\n'):
            body = body[:-1]
            if body.endswith('\r'):
                body = body[:-1]
        indent = m.group(0)[:len(m.group(0)) - len(label)]
        if indent:
            body = '\n'.join(
                l[len(indent):] if l.startswith(indent) else l.lstrip(' \t')
                for l in body.split('\n')
            )
        return m.end(), body

    # -- stream API ----------------------------------------------------------

    def peek(self, n: int = 1) -> Optional[Token]:
        pos = self._pos + (n - 1)
        if 0 <= pos < len(self._tokens):
            return self._tokens[pos]
        return None

    def next(self) -> Optional[Token]:
        if self._pos >= len(self._tokens):
            return None
        tok = self._tokens[self._pos]
        self._pos += 1
        self._current = tok
        return tok

    @property
    def current(self) -> Optional[Token]:
        return self._current

    @property
    def position(self) -> int:
        return self._pos

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Token]:
        while True:
            t = self.next()
            if t is None:
                break
            yield t
