"""
Doc-comment annotation resolver.

Reads the translation annotations that can be attached to an option value::

    /** @Desc("Your e-mail address") @Meaning("login form") */
    'label' => 'form.email',

    /** @Ignore */
    'label' => $this->computeLabel(),

    /** @AltTrans("Courriel", locale="fr") */

Unknown annotations are ignored; they belong to other tools.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ignore:
    pass


@dataclass(frozen=True)
class Desc:
    text: str


@dataclass(frozen=True)
class Meaning:
    text: str


@dataclass(frozen=True)
class AltTrans:
    text: str
    locale: str


Directive = Union[Ignore, Desc, Meaning, AltTrans]


# @Name or @Namespace\Name, optionally followed by an argument list
ANNOTATION_RE = re.compile(r'@(?P<name>[A-Za-z_][\w\\]*)\s*(?P<args>\()?')
ARG_RE = re.compile(
    r'\s*(?:(?P<key>[A-Za-z_]\w*)\s*=\s*)?'
    r'(?P<value>"(?:[^"\\]|\\.|"")*"|\'(?:[^\'\\]|\\.)*\'|[^,)\s]+)\s*'
)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        inner = value[1:-1]
        quote = value[0]
        # doctrine escapes a double quote by doubling it
        inner = inner.replace(quote * 2, quote)
        return inner.replace('\\' + quote, quote).replace('\\\\', '\\')
    return value


def _clean_comment(comment: str) -> str:
    """Strip the comment delimiters and leading asterisks."""
    text = comment.strip()
    if text.startswith('/**'):
        text = text[3:]
    elif text.startswith('/*'):
        text = text[2:]
    if text.endswith('*/'):
        text = text[:-2]
    lines = [re.sub(r'^\s*\*\s?', '', line) for line in text.splitlines()]
    return '\n'.join(lines)


def _read_arguments(text: str, start: int) -> Tuple[List[str], Dict[str, str], int]:
    """Parse ``(...)`` starting right after the opening parenthesis."""
    positional: List[str] = []
    named: Dict[str, str] = {}
    pos = start
    while pos < len(text):
        if text[pos] == ')':
            return positional, named, pos + 1
        if text[pos] in ', \t\r\n':
            pos += 1
            continue
        m = ARG_RE.match(text, pos)
        if not m or m.end() == pos:
            break
        value = _unquote(m.group('value'))
        if m.group('key'):
            named[m.group('key').lower()] = value
        else:
            positional.append(value)
        pos = m.end()
    raise ValueError("unterminated annotation arguments")


class AnnotationResolver:
    """Turns a raw doc comment into translation directives."""

    KNOWN = ('ignore', 'desc', 'meaning', 'alttrans')

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def resolve(self, comment: Optional[str], location: str = "") -> List[Directive]:
        if not comment:
            return []

        text = _clean_comment(comment)
        directives: List[Directive] = []
        pos = 0
        while True:
            m = ANNOTATION_RE.search(text, pos)
            if not m:
                break
            name = m.group('name').rsplit('\\', 1)[-1].lower()
            pos = m.end()
            positional: List[str] = []
            named: Dict[str, str] = {}
            if m.group('args'):
                try:
                    positional, named, pos = _read_arguments(text, m.end())
                except ValueError as e:
                    if name in self.KNOWN:
                        self.logger.debug(f"Skipping malformed @{m.group('name')} in {location}: {e}")
                    continue

            directive = self._build(name, positional, named)
            if directive is not None:
                directives.append(directive)
            elif name in self.KNOWN:
                self.logger.debug(f"Skipping @{m.group('name')} without text in {location}")
        return directives

    @staticmethod
    def _build(name: str, positional: List[str], named: Dict[str, str]) -> Optional[Directive]:
        if name == 'ignore':
            return Ignore()

        text = positional[0] if positional else named.get('text', named.get('value'))
        if name == 'desc' and text is not None:
            return Desc(text)
        if name == 'meaning' and text is not None:
            return Meaning(text)
        if name == 'alttrans' and text is not None:
            locale = named.get('locale') or (positional[1] if len(positional) > 1 else None)
            if locale:
                return AltTrans(text, locale)
        return None
