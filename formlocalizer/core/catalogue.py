"""
Message Catalogue
=================

In-memory catalogue of extracted messages, keyed by ``(id, domain)``.

A message found several times keeps a single entry: its sources accumulate
and later non-empty metadata (description, meaning, alternate translations)
is applied on top of what was already known.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = "messages"


@dataclass(frozen=True)
class FileSource:
    """A place in a source file where a message was found."""
    path: str
    line: int = 0

    def __str__(self) -> str:
        return f"{self.path}:{self.line}" if self.line else self.path


@dataclass
class Message:
    """A single translatable message."""
    id: str
    domain: Optional[str] = None
    sources: List[FileSource] = field(default_factory=list)
    desc: Optional[str] = None
    meaning: Optional[str] = None
    alternative_translations: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return (self.id, self.domain)

    @property
    def output_domain(self) -> str:
        """Domain used when writing files; messages without one go to ``messages``."""
        return self.domain or DEFAULT_DOMAIN

    def add_source(self, source: FileSource) -> None:
        if source not in self.sources:
            self.sources.append(source)

    def merge(self, other: "Message") -> None:
        """Fold ``other`` (same identity) into this message."""
        for source in other.sources:
            self.add_source(source)
        if other.desc:
            self.desc = other.desc
        if other.meaning:
            self.meaning = other.meaning
        self.alternative_translations.update(other.alternative_translations)

    def copy(self) -> "Message":
        return Message(
            id=self.id,
            domain=self.domain,
            sources=list(self.sources),
            desc=self.desc,
            meaning=self.meaning,
            alternative_translations=dict(self.alternative_translations),
        )

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'domain': self.domain,
            'sources': [str(s) for s in self.sources],
            'desc': self.desc,
            'meaning': self.meaning,
            'alternative_translations': dict(self.alternative_translations),
        }


class MessageCatalogue:
    """Deduplicated collection of messages keyed by ``(id, domain)``."""

    def __init__(self, locale: Optional[str] = None):
        self.locale = locale
        self._messages: Dict[Tuple[str, Optional[str]], Message] = {}

    def add(self, message: Message) -> Message:
        """Insert ``message`` or merge it into the entry with the same identity.

        Returns the entry stored in the catalogue.
        """
        existing = self._messages.get(message.key)
        if existing is None:
            stored = message.copy()
            self._messages[message.key] = stored
            return stored
        existing.merge(message)
        return existing

    def get(self, id: str, domain: Optional[str] = None) -> Optional[Message]:
        return self._messages.get((id, domain))

    def has(self, id: str, domain: Optional[str] = None) -> bool:
        return (id, domain) in self._messages

    def domains(self) -> List[Optional[str]]:
        """Distinct domains in insertion order."""
        seen: List[Optional[str]] = []
        for _, domain in self._messages:
            if domain not in seen:
                seen.append(domain)
        return seen

    def messages_for(self, domain: Optional[str]) -> List[Message]:
        return [m for m in self._messages.values() if m.domain == domain]

    def filter_domains(
        self,
        include: Iterable[str] = (),
        exclude: Iterable[str] = (),
    ) -> "MessageCatalogue":
        """Return a new catalogue restricted to the given output domains."""
        include = set(include)
        exclude = set(exclude)
        filtered = MessageCatalogue(self.locale)
        for message in self._messages.values():
            domain = message.output_domain
            if include and domain not in include:
                continue
            if domain in exclude:
                continue
            filtered.add(message)
        logger.debug(f"Domain filter kept {len(filtered)} of {len(self)} messages")
        return filtered

    def merge(self, other: "MessageCatalogue") -> None:
        for message in other:
            self.add(message)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages.values()))

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, key) -> bool:
        return key in self._messages
