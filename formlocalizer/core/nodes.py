"""
Syntax tree nodes for PHP option-map extraction.

The node set is closed: the parser only ever produces the classes below and
the extractor dispatches over them with ``match`` statements. Every node
carries the 1-based ``line`` it starts on and the raw ``doc_comment``
(``/** ... */``) that directly preceded it, if any.

Nodes belong to the parser. The extractor reads them and never writes back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union


@dataclass
class Variable:
    """``$name``"""
    name: str
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class StringLiteral:
    """Quoted string. ``interpolated`` is set for double-quoted strings and
    heredocs that embed variables, whose value cannot be read statically."""
    value: str
    interpolated: bool = False
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class NumberLiteral:
    value: Union[int, float]
    raw: str = ""
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class ArrayItem:
    key: Optional["Node"]
    value: Optional["Node"]
    by_ref: bool = False
    unpack: bool = False
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class ArrayLiteral:
    items: List[ArrayItem] = field(default_factory=list)
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class MethodCall:
    """``$receiver->name(args)``, also used for nullsafe calls."""
    receiver: "Node"
    name: str
    args: List["Node"] = field(default_factory=list)
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class FuncCall:
    """``name(args)``. ``callee`` is set when the called thing is an expression."""
    name: str
    args: List["Node"] = field(default_factory=list)
    callee: Optional["Node"] = None
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class StaticCall:
    class_name: str
    name: str
    args: List["Node"] = field(default_factory=list)
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class New:
    class_name: str
    args: List["Node"] = field(default_factory=list)
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class ConstFetch:
    """Bare constant such as ``true``, ``false``, ``null`` or ``PHP_EOL``."""
    name: str
    line: int = 0
    doc_comment: Optional[str] = None

    @property
    def lowered(self) -> str:
        return self.name.lower()


@dataclass
class ClassConstFetch:
    """``Foo::BAR`` and ``Foo::class``"""
    class_name: str
    name: str
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class PropertyFetch:
    receiver: "Node"
    name: str
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class Closure:
    """Anonymous function or arrow function body."""
    body: List["Node"] = field(default_factory=list)
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class Expression:
    """Any other expression: operators, ternaries, assignments, casts...

    ``kind`` names the construct (``"."``, ``"??"``, ``"ternary"``, ``"="``...).
    """
    kind: str
    operands: List["Node"] = field(default_factory=list)
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class ClassBody:
    """Class, interface, trait, enum or anonymous class declaration."""
    name: str
    body: List["Node"] = field(default_factory=list)
    line: int = 0
    doc_comment: Optional[str] = None


@dataclass
class SourceUnit:
    """The parsed nodes of one PHP file."""
    file_path: str
    nodes: List["Node"] = field(default_factory=list)


Node = Union[
    Variable, StringLiteral, NumberLiteral, ArrayLiteral, ArrayItem,
    MethodCall, FuncCall, StaticCall, New, ConstFetch, ClassConstFetch,
    PropertyFetch, Closure, Expression, ClassBody,
]

CALL_LIKE = (MethodCall, FuncCall, StaticCall, New)


def is_call_like(node: Optional[Node]) -> bool:
    return isinstance(node, CALL_LIKE)


def is_string(node: Optional[Node]) -> bool:
    """True for string literals whose value is known without evaluation."""
    return isinstance(node, StringLiteral) and not node.interpolated


def string_value(node: Optional[Node]) -> Optional[str]:
    return node.value if is_string(node) else None


def is_const(node: Optional[Node], name: str) -> bool:
    return isinstance(node, ConstFetch) and node.lowered == name


def node_kind(node: Optional[Node]) -> str:
    """Readable kind name used in diagnostics."""
    if node is None:
        return "None"
    if isinstance(node, StringLiteral) and node.interpolated:
        return "InterpolatedString"
    return type(node).__name__


def children(node: Node) -> Iterator[Node]:
    """Yield the direct children of ``node`` in source order."""
    match node:
        case ArrayLiteral(items=items):
            yield from items
        case ArrayItem(key=key, value=value):
            if key is not None:
                yield key
            if value is not None:
                yield value
        case MethodCall(receiver=receiver, args=args):
            yield receiver
            yield from args
        case FuncCall(callee=callee, args=args):
            if callee is not None:
                yield callee
            yield from args
        case StaticCall(args=args) | New(args=args):
            yield from args
        case PropertyFetch(receiver=receiver):
            yield receiver
        case Closure(body=body) | ClassBody(body=body):
            yield from body
        case Expression(operands=operands):
            yield from operands
        case Variable() | StringLiteral() | NumberLiteral() | ConstFetch() | ClassConstFetch():
            return
        case _:
            raise TypeError(f"Unsupported node type: {type(node)!r}")


def walk(node: Node) -> Iterator[Node]:
    """Pre-order iteration over ``node`` and all its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(children(current))))
