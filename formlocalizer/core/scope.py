"""
Class-scoped default translation domain.

Form types usually declare their domain once, in ``configureOptions``::

    $resolver->setDefaults(['translation_domain' => 'account']);

and every field of the class without its own ``translation_domain`` option
uses it, even fields built before the defaults call in source order. Messages
without an explicit domain are therefore buffered per class and only
finalized when the class has been fully visited.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .catalogue import FileSource
from .nodes import ArrayLiteral, MethodCall, Variable, is_string, string_value

TRANSLATION_DOMAIN_KEY = 'translation_domain'

DEFAULTS_METHODS = frozenset({'setdefaults', 'replacedefaults'})

# OptionsResolver methods returning the resolver itself, so they may be
# chained in front of setDefaults()
RETURNING_METHODS = frozenset({
    'setdefaults', 'replacedefaults', 'setoptional', 'setrequired',
    'setallowedvalues', 'addallowedvalues', 'setallowedtypes',
    'addallowedtypes', 'setfilters',
})


@dataclass
class RawEntry:
    """A message read from the source whose domain may not be known yet."""
    id: str
    source: FileSource
    desc: Optional[str] = None
    meaning: Optional[str] = None
    alternative_translations: Dict[str, str] = field(default_factory=dict)


@dataclass
class ScopeState:
    default_domain: Optional[str] = None
    pending: List[RawEntry] = field(default_factory=list)


def find_translation_domain(array: ArrayLiteral) -> Optional[str]:
    """Last string ``translation_domain`` option of an array literal, if any."""
    domain = None
    for item in array.items:
        if string_value(item.key) != TRANSLATION_DOMAIN_KEY:
            continue
        if not is_string(item.value):
            continue
        domain = item.value.value
    return domain


def is_defaults_call(node: MethodCall) -> bool:
    return node.name.lower() in DEFAULTS_METHODS


class DomainScopeTracker:
    """Stack of :class:`ScopeState`, one per class being visited.

    The bottom entry is the file-level scope, for option arrays written
    outside of any class.
    """

    def __init__(self):
        self._stack: List[ScopeState] = [ScopeState()]

    @property
    def current(self) -> ScopeState:
        return self._stack[-1]

    @property
    def depth(self) -> int:
        return len(self._stack) - 1

    def on_enter_class(self) -> None:
        self._stack.append(ScopeState())

    def on_leave_class(self) -> ScopeState:
        """Pop the innermost class scope; the caller finalizes its entries."""
        if len(self._stack) == 1:
            raise RuntimeError("on_leave_class() without matching on_enter_class()")
        return self._stack.pop()

    def finish(self) -> ScopeState:
        """Return the file-level scope once the traversal is over."""
        return self._stack[0]

    def defer(self, entry: RawEntry) -> None:
        self.current.pending.append(entry)

    def on_chained_defaults_call(self, node: MethodCall) -> bool:
        """Read ``translation_domain`` from a ``setDefaults()`` style call.

        Returns True when the default domain of the current scope was set.
        Calls whose receiver chain does not start at a plain variable, or
        whose options are not an array literal, are ignored.
        """
        if not is_defaults_call(node):
            return False

        receiver = node.receiver
        while isinstance(receiver, MethodCall):
            if receiver.name.lower() not in RETURNING_METHODS:
                return False
            receiver = receiver.receiver

        if not isinstance(receiver, Variable):
            return False
        if not node.args or not isinstance(node.args[0], ArrayLiteral):
            return False

        domain = find_translation_domain(node.args[0])
        if domain is None:
            return False
        self.current.default_domain = domain
        return True
