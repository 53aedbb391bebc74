"""
PHP parser used by FormLocalizer.

Builds the syntax tree (see ``nodes.py``) from PHP source. The parser is
tolerant: anything it does not understand is skipped token by token so one
exotic construct never costs the rest of the file. What it must get right is
the shape the form extractor looks at: array literals with their keys and
doc comments, call chains, ``new`` expressions and class bodies.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .exceptions import ParseError
from .nodes import (
    ArrayItem, ArrayLiteral, ClassBody, ClassConstFetch, Closure, ConstFetch,
    Expression, FuncCall, MethodCall, New, Node, NumberLiteral, PropertyFetch,
    SourceUnit, StaticCall, StringLiteral, Variable,
)
from .php_lexer import PhpTokenStream, Token


ASSIGNMENT_OPERATORS = {
    '=', '+=', '-=', '*=', '/=', '.=', '%=', '**=', '??=', '&=', '|=', '^=', '<<=', '>>=',
}
ASSIGNMENT_PRECEDENCE = 4
TERNARY_PRECEDENCE = 5

# operator -> (precedence, right associative)
BINARY_OPERATORS = {
    'or': (1, False), 'xor': (2, False), 'and': (3, False),
    '??': (6, True),
    '||': (7, False), '&&': (8, False),
    '|': (9, False), '^': (10, False), '&': (11, False),
    '==': (12, False), '!=': (12, False), '===': (12, False), '!==': (12, False),
    '<>': (12, False), '<=>': (12, False),
    '<': (13, False), '<=': (13, False), '>': (13, False), '>=': (13, False),
    '.': (14, False),
    '<<': (15, False), '>>': (15, False),
    '+': (16, False), '-': (16, False),
    '*': (17, False), '/': (17, False), '%': (17, False),
    'instanceof': (18, False),
    '**': (20, True),
}
WORD_OPERATORS = {'or', 'xor', 'and', 'instanceof'}
UNARY_OPERATORS = {'!', '-', '+', '~', '@'}

CAST_TYPES = {
    'int', 'integer', 'float', 'double', 'real', 'string', 'bool', 'boolean',
    'array', 'object', 'unset', 'binary',
}
MODIFIERS = {'public', 'private', 'protected', 'abstract', 'final', 'var', 'readonly'}
CLASS_KEYWORDS = {'class', 'interface', 'trait', 'enum'}
# keywords whose statement continues as an ordinary expression or block
LEADING_KEYWORDS = {
    'if', 'elseif', 'else', 'while', 'do', 'for', 'foreach', 'switch', 'try', 'catch',
    'finally', 'return', 'echo', 'print', 'throw', 'global', 'break', 'continue', 'goto',
    'endif', 'endwhile', 'endfor', 'endforeach', 'endswitch', 'enddeclare', 'declare',
}
PREFIX_KEYWORDS = {
    'clone', 'print', 'yield', 'throw', 'include', 'include_once', 'require', 'require_once',
}
# a pending doc comment is dropped once one of these is consumed
DOC_BARRIERS = {'{', '}', ';'}
DOC_BARRIER_KEYWORDS = MODIFIERS | CLASS_KEYWORDS | {'function', 'const', 'namespace', 'use'}


class _TokenCursor:
    """Index based cursor over the significant tokens of a file."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.pending_doc: Optional[str] = None

    def _skip_docs(self) -> None:
        while self.pos < len(self.tokens) and self.tokens[self.pos].type == 'DOC_COMMENT':
            self.pending_doc = self.tokens[self.pos].text
            self.pos += 1

    def peek(self, n: int = 1) -> Optional[Token]:
        self._skip_docs()
        pos = self.pos
        seen = 0
        while pos < len(self.tokens):
            if self.tokens[pos].type != 'DOC_COMMENT':
                seen += 1
                if seen == n:
                    return self.tokens[pos]
            pos += 1
        return None

    def advance(self) -> Optional[Token]:
        tok = self.peek()
        if tok is None:
            return None
        self.pos += 1
        if tok.text in DOC_BARRIERS and tok.type == 'PUNCT':
            self.pending_doc = None
        elif tok.type == 'NAME' and tok.text.lower() in DOC_BARRIER_KEYWORDS:
            self.pending_doc = None
        return tok

    def take_doc(self) -> Optional[str]:
        self._skip_docs()
        doc, self.pending_doc = self.pending_doc, None
        return doc


def _is(tok: Optional[Token], text: str) -> bool:
    return tok is not None and tok.type in ('PUNCT', 'OPERATOR') and tok.text == text


def _is_name(tok: Optional[Token], *names: str) -> bool:
    return tok is not None and tok.type == 'NAME' and tok.text.lower() in names


def _number(raw: str):
    text = raw.replace('_', '')
    lowered = text.lower()
    try:
        if lowered.startswith('0x'):
            return int(text, 16)
        if lowered.startswith('0b'):
            return int(text, 2)
        if lowered.startswith('0o'):
            return int(text[2:], 8)
        if any(c in lowered for c in '.e'):
            return float(text)
        if len(text) > 1 and text.startswith('0'):
            return int(text, 8)
        return int(text)
    except ValueError:
        return 0


class PhpParser:
    """Parses PHP source into a :class:`SourceUnit`."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._cur: Optional[_TokenCursor] = None
        self._skipped = 0

    def parse(self, content: str, file_path: str = '') -> SourceUnit:
        stream = PhpTokenStream(content, file_path=file_path)
        tokens: List[Token] = []
        for tok in stream:
            if tok.type in ('OPEN_TAG', 'INLINE_HTML'):
                continue
            if tok.type == 'CLOSE_TAG':
                tok = Token('PUNCT', ';', tok.raw_text, tok.line_number)
            tokens.append(tok)

        self._cur = _TokenCursor(tokens)
        self._skipped = 0
        try:
            nodes = self._parse_statements(until=None)
        except RecursionError as e:
            line = self._cur.peek().line_number if self._cur.peek() else 0
            raise ParseError(f"Nesting too deep in {file_path} near line {line}", file_path, line) from e
        finally:
            self._cur = None

        if self._skipped:
            self.logger.debug(f"Skipped {self._skipped} unrecognised tokens in {file_path}")
        return SourceUnit(file_path=file_path, nodes=nodes)

    # ------------------------------------------------------------------
    # statements
    # ------------------------------------------------------------------

    def _skip(self) -> None:
        if self._cur.advance() is not None:
            self._skipped += 1

    def _parse_statements(self, until: Optional[str]) -> List[Node]:
        nodes: List[Node] = []
        cur = self._cur
        while True:
            tok = cur.peek()
            if tok is None:
                break
            if until is not None and _is(tok, until):
                cur.advance()
                break
            start = cur.pos
            nodes.extend(self._parse_statement())
            if cur.pos == start:
                self._skip()
        return nodes

    def _parse_statement(self) -> List[Node]:
        cur = self._cur
        tok = cur.peek()

        if _is(tok, ';'):
            cur.advance()
            return []
        if _is(tok, '{'):
            cur.advance()
            return self._parse_statements(until='}')
        if _is(tok, '}'):
            # unbalanced closing brace at this level
            self._skip()
            return []
        if _is(tok, '#['):
            self._skip_attribute()
            return []

        if tok.type == 'NAME':
            word = tok.text.lower()
            nxt = cur.peek(2)

            if word == 'namespace' and not _is(nxt, '\\'):
                cur.advance()
                if cur.peek() is not None and cur.peek().type == 'NAME':
                    cur.advance()
                if _is(cur.peek(), '{'):
                    cur.advance()
                    return self._parse_statements(until='}')
                return []
            if word == 'use' and not _is(nxt, '('):
                self._skip_use()
                return []
            if word in CLASS_KEYWORDS and nxt is not None and nxt.type == 'NAME':
                return [self._parse_class_declaration()]
            if word in MODIFIERS:
                cur.advance()
                return []
            if word == 'static':
                third = cur.peek(3)
                if _is_name(nxt, 'function') and third is not None and (third.type == 'NAME' or _is(third, '&')):
                    # static method declaration
                    cur.advance()
                    return []
                if nxt is not None and not (
                    _is(nxt, '::') or _is(nxt, '(') or _is_name(nxt, 'function', 'fn')
                ):
                    cur.advance()
                    return []
            if word == 'function' and (
                (nxt is not None and nxt.type == 'NAME') or (_is(nxt, '&') and cur.peek(3) is not None and cur.peek(3).type == 'NAME')
            ):
                return self._parse_function_declaration()
            if word == 'const':
                cur.advance()
                return []
            if word == 'case':
                cur.advance()
                return []
            if word == 'default' and _is(nxt, ':'):
                cur.advance()
                cur.advance()
                return []
            if word in LEADING_KEYWORDS:
                cur.advance()
                return []

        expr = self._parse_expression()
        if expr is None:
            return []
        return [expr]

    def _skip_attribute(self) -> None:
        cur = self._cur
        cur.advance()
        depth = 1
        while depth and cur.peek() is not None:
            tok = cur.advance()
            if _is(tok, '[') or _is(tok, '#['):
                depth += 1
            elif _is(tok, ']'):
                depth -= 1

    def _skip_use(self) -> None:
        cur = self._cur
        cur.advance()
        depth = 0
        while cur.peek() is not None:
            tok = cur.advance()
            if _is(tok, '{'):
                depth += 1
            elif _is(tok, '}'):
                depth -= 1
                if depth <= 0:
                    if _is(cur.peek(), ';'):
                        cur.advance()
                    return
            elif _is(tok, ';') and depth == 0:
                return

    def _skip_until(self, *stops: str) -> None:
        """Skip a type declaration up to (not including) one of ``stops``."""
        cur = self._cur
        depth = 0
        while cur.peek() is not None:
            tok = cur.peek()
            if depth == 0 and any(_is(tok, s) for s in stops):
                return
            if _is(tok, '('):
                depth += 1
            elif _is(tok, ')'):
                if depth == 0:
                    return
                depth -= 1
            cur.advance()

    def _parse_class_declaration(self) -> ClassBody:
        cur = self._cur
        keyword = cur.advance()
        name_tok = cur.advance()
        self._skip_until('{', ';')
        body: List[Node] = []
        if _is(cur.peek(), '{'):
            cur.advance()
            body = self._parse_statements(until='}')
        return ClassBody(name=name_tok.text, body=body, line=keyword.line_number)

    def _parse_function_declaration(self) -> List[Node]:
        cur = self._cur
        cur.advance()
        if _is(cur.peek(), '&'):
            cur.advance()
        cur.advance()
        nodes: List[Node] = []
        if _is(cur.peek(), '('):
            cur.advance()
            nodes.extend(self._parse_list(')'))
        if _is(cur.peek(), ':'):
            cur.advance()
            self._skip_until('{', ';')
        if _is(cur.peek(), '{'):
            cur.advance()
            nodes.extend(self._parse_statements(until='}'))
        return nodes

    # ------------------------------------------------------------------
    # expressions
    # ------------------------------------------------------------------

    def _parse_list(self, close: str, separators: Tuple[str, ...] = (',', ';', '=>')) -> List[Node]:
        """Parse loosely separated expressions up to and including ``close``."""
        cur = self._cur
        nodes: List[Node] = []
        while True:
            tok = cur.peek()
            if tok is None:
                break
            if _is(tok, close):
                cur.advance()
                break
            if any(_is(tok, s) for s in separators) or _is_name(tok, 'as'):
                cur.advance()
                continue
            if _is(tok, '...') or _is(tok, '&'):
                cur.advance()
                continue
            if tok.type == 'NAME' and _is(cur.peek(2), ':') and not _is(cur.peek(2), '::'):
                # named argument
                cur.advance()
                cur.advance()
                continue
            expr = self._parse_expression()
            if expr is None:
                self._skip()
            else:
                nodes.append(expr)
        return nodes

    def _parse_args(self) -> List[Node]:
        """Arguments of a call; the opening parenthesis is next."""
        self._cur.advance()
        return self._parse_list(')', separators=(',',))

    def _parse_expression(self, min_prec: int = 0) -> Optional[Node]:
        cur = self._cur
        left = self._parse_unary()
        if left is None:
            return None

        while True:
            tok = cur.peek()
            if tok is None:
                break

            if tok.type == 'OPERATOR' and tok.text in ASSIGNMENT_OPERATORS:
                if min_prec > ASSIGNMENT_PRECEDENCE:
                    break
                cur.advance()
                if _is(cur.peek(), '&'):
                    cur.advance()
                right = self._parse_expression(ASSIGNMENT_PRECEDENCE)
                left = Expression(tok.text, [left] + ([right] if right else []), line=left.line)
                continue

            if _is(tok, '?'):
                if min_prec > TERNARY_PRECEDENCE:
                    break
                cur.advance()
                if _is(cur.peek(), ':'):
                    cur.advance()
                    right = self._parse_expression(TERNARY_PRECEDENCE + 1)
                    left = Expression('?:', [left] + ([right] if right else []), line=left.line)
                    continue
                middle = self._parse_expression()
                operands = [left] + ([middle] if middle else [])
                if _is(cur.peek(), ':'):
                    cur.advance()
                    right = self._parse_expression(TERNARY_PRECEDENCE + 1)
                    if right is not None:
                        operands.append(right)
                left = Expression('ternary', operands, line=left.line)
                continue

            op = None
            if tok.type == 'OPERATOR' and tok.text in BINARY_OPERATORS:
                op = tok.text
            elif tok.type == 'NAME' and tok.text.lower() in WORD_OPERATORS:
                op = tok.text.lower()
            if op is None:
                break
            prec, right_assoc = BINARY_OPERATORS[op]
            if prec < min_prec:
                break
            cur.advance()
            right = self._parse_expression(prec if right_assoc else prec + 1)
            left = Expression(op, [left] + ([right] if right else []), line=left.line)

        return left

    def _parse_unary(self) -> Optional[Node]:
        cur = self._cur
        tok = cur.peek()
        if tok is None:
            return None

        if tok.type == 'OPERATOR' and tok.text in UNARY_OPERATORS:
            cur.advance()
            operand = self._parse_unary()
            if tok.text == '-' and isinstance(operand, NumberLiteral):
                return NumberLiteral(-operand.value, '-' + operand.raw, line=tok.line_number,
                                     doc_comment=operand.doc_comment)
            if tok.text == '+' and isinstance(operand, NumberLiteral):
                return operand
            return Expression('unary' + tok.text, [operand] if operand else [], line=tok.line_number)

        if _is(tok, '++') or _is(tok, '--') or _is(tok, '&'):
            cur.advance()
            operand = self._parse_unary()
            if tok.text == '&':
                return operand
            return Expression('pre' + tok.text, [operand] if operand else [], line=tok.line_number)

        if _is(tok, '(') and _is_name(cur.peek(2), *CAST_TYPES) and _is(cur.peek(3), ')'):
            cur.advance()
            cast = cur.advance()
            cur.advance()
            operand = self._parse_unary()
            return Expression('(' + cast.text.lower() + ')', [operand] if operand else [],
                              line=tok.line_number)

        if tok.type == 'NAME':
            word = tok.text.lower()
            if word in PREFIX_KEYWORDS and not _is(cur.peek(2), '('):
                cur.advance()
                if word == 'yield' and _is_name(cur.peek(), 'from'):
                    cur.advance()
                operand = self._parse_expression(ASSIGNMENT_PRECEDENCE)
                return Expression(word, [operand] if operand else [], line=tok.line_number)
            if word == 'static' and _is_name(cur.peek(2), 'function', 'fn'):
                cur.advance()

        node = self._parse_primary()
        if node is None:
            return None
        return self._parse_postfix(node)

    def _parse_primary(self) -> Optional[Node]:
        cur = self._cur
        tok = cur.peek()
        if tok is None:
            return None
        doc = cur.take_doc()
        line = tok.line_number

        if tok.type == 'VARIABLE':
            cur.advance()
            return Variable(tok.text, line=line, doc_comment=doc)
        if tok.type == 'STRING':
            cur.advance()
            return StringLiteral(tok.text, interpolated=tok.interpolated, line=line, doc_comment=doc)
        if tok.type == 'NUMBER':
            cur.advance()
            return NumberLiteral(_number(tok.text), tok.text, line=line, doc_comment=doc)
        if _is(tok, '['):
            cur.advance()
            return self._parse_array(']', line, doc)
        if _is(tok, '('):
            cur.advance()
            inner = self._parse_list(')')
            if len(inner) == 1:
                node = inner[0]
                if doc and node.doc_comment is None:
                    node.doc_comment = doc
                return node
            return Expression('()', inner, line=line, doc_comment=doc)
        if _is(tok, '#['):
            self._skip_attribute()
            cur.pending_doc = doc
            return self._parse_unary()
        if tok.type == 'UNKNOWN' and tok.text == '$':
            cur.advance()
            inner = self._parse_primary()
            return Expression('$', [inner] if inner else [], line=line, doc_comment=doc)

        if tok.type != 'NAME':
            cur.pending_doc = doc
            return None

        word = tok.text.lower()
        nxt = cur.peek(2)

        if word in ('array', 'list') and _is(nxt, '('):
            cur.advance()
            cur.advance()
            return self._parse_array(')', line, doc)
        if word in ('function', 'fn'):
            return self._parse_closure(doc)
        if word == 'new':
            return self._parse_new(doc)
        if word == 'match' and _is(nxt, '('):
            cur.advance()
            cur.advance()
            operands = self._parse_list(')')
            if _is(cur.peek(), '{'):
                cur.advance()
                operands.extend(self._parse_list('}', separators=(',', '=>')))
            return Expression('match', operands, line=line, doc_comment=doc)

        cur.advance()
        if _is(nxt, '('):
            return FuncCall(tok.text, self._parse_args(), line=line, doc_comment=doc)
        if _is(nxt, '::'):
            return self._parse_static_access(tok.text, line, doc)
        return ConstFetch(tok.text, line=line, doc_comment=doc)

    def _parse_static_access(self, class_name: str, line: int, doc: Optional[str]) -> Node:
        cur = self._cur
        cur.advance()
        member = cur.peek()
        if member is None:
            return ClassConstFetch(class_name, '', line=line, doc_comment=doc)
        if member.type == 'NAME':
            cur.advance()
            if _is(cur.peek(), '('):
                return StaticCall(class_name, member.text, self._parse_args(), line=line, doc_comment=doc)
            return ClassConstFetch(class_name, member.text, line=line, doc_comment=doc)
        if member.type == 'VARIABLE':
            cur.advance()
            return PropertyFetch(ConstFetch(class_name, line=line), '$' + member.text,
                                 line=line, doc_comment=doc)
        if _is(member, '{'):
            cur.advance()
            inner = self._parse_list('}')
            return Expression('::{}', [ConstFetch(class_name, line=line)] + inner,
                              line=line, doc_comment=doc)
        return ClassConstFetch(class_name, '', line=line, doc_comment=doc)

    def _parse_postfix(self, node: Node) -> Node:
        cur = self._cur
        while True:
            tok = cur.peek()
            if tok is None:
                return node

            if _is(tok, '->') or _is(tok, '?->'):
                cur.advance()
                member = cur.peek()
                if member is None:
                    return node
                if member.type == 'NAME':
                    cur.advance()
                    name = member.text
                elif member.type == 'VARIABLE':
                    cur.advance()
                    name = '$' + member.text
                elif _is(member, '{'):
                    cur.advance()
                    self._parse_list('}')
                    name = '{}'
                else:
                    return node
                if _is(cur.peek(), '('):
                    node = MethodCall(node, name, self._parse_args(), line=member.line_number)
                else:
                    node = PropertyFetch(node, name, line=member.line_number)
                continue

            if _is(tok, '::'):
                cur.advance()
                member = cur.peek()
                if member is not None and member.type == 'NAME':
                    cur.advance()
                    if _is(cur.peek(), '('):
                        node = MethodCall(node, member.text, self._parse_args(), line=member.line_number)
                    else:
                        node = Expression('::', [node, ConstFetch(member.text, line=member.line_number)],
                                          line=member.line_number)
                    continue
                if member is not None and member.type == 'VARIABLE':
                    cur.advance()
                    node = PropertyFetch(node, '$' + member.text, line=member.line_number)
                    continue
                return node

            if _is(tok, '['):
                cur.advance()
                index = self._parse_list(']')
                node = Expression('[]', [node] + index, line=tok.line_number)
                continue

            if _is(tok, '('):
                line = node.line
                node = FuncCall('', self._parse_args(), callee=node, line=line)
                continue

            if _is(tok, '++') or _is(tok, '--'):
                cur.advance()
                node = Expression('post' + tok.text, [node], line=tok.line_number)
                continue

            return node

    def _parse_array(self, close: str, line: int, doc: Optional[str]) -> ArrayLiteral:
        cur = self._cur
        items: List[ArrayItem] = []
        while True:
            tok = cur.peek()
            if tok is None:
                break
            if _is(tok, close):
                cur.advance()
                break
            if _is(tok, ','):
                cur.advance()
                continue

            by_ref = unpack = False
            if _is(tok, '...'):
                cur.advance()
                unpack = True
            elif _is(tok, '&'):
                cur.advance()
                by_ref = True

            first = self._parse_expression()
            if first is None:
                self._skip()
                continue

            if _is(cur.peek(), '=>'):
                cur.advance()
                if _is(cur.peek(), '&'):
                    cur.advance()
                    by_ref = True
                value = self._parse_expression()
                items.append(ArrayItem(first, value, by_ref=by_ref, unpack=unpack, line=first.line))
            else:
                items.append(ArrayItem(None, first, by_ref=by_ref, unpack=unpack, line=first.line))

        return ArrayLiteral(items, line=line, doc_comment=doc)

    def _parse_closure(self, doc: Optional[str]) -> Closure:
        cur = self._cur
        keyword = cur.advance()
        arrow = keyword.text.lower() == 'fn'
        if _is(cur.peek(), '&'):
            cur.advance()
        body: List[Node] = []
        if _is(cur.peek(), '('):
            cur.advance()
            body.extend(self._parse_list(')'))
        if _is_name(cur.peek(), 'use') and _is(cur.peek(2), '('):
            cur.advance()
            cur.advance()
            self._parse_list(')')
        if _is(cur.peek(), ':'):
            cur.advance()
            self._skip_until('=>', '{', ';')

        if arrow:
            if _is(cur.peek(), '=>'):
                cur.advance()
                expr = self._parse_expression(ASSIGNMENT_PRECEDENCE)
                if expr is not None:
                    body.append(expr)
        elif _is(cur.peek(), '{'):
            cur.advance()
            body.extend(self._parse_statements(until='}'))
        return Closure(body, line=keyword.line_number, doc_comment=doc)

    def _parse_new(self, doc: Optional[str]) -> Node:
        cur = self._cur
        keyword = cur.advance()
        line = keyword.line_number
        tok = cur.peek()

        if _is_name(tok, 'class'):
            cur.advance()
            args = self._parse_args() if _is(cur.peek(), '(') else []
            self._skip_until('{', ';')
            body: List[Node] = []
            if _is(cur.peek(), '{'):
                cur.advance()
                body = self._parse_statements(until='}')
            return Expression('new class', [
                New('class@anonymous', args, line=line, doc_comment=doc),
                ClassBody('class@anonymous', body, line=line),
            ], line=line, doc_comment=doc)

        class_name = ''
        if tok is not None and tok.type == 'NAME':
            cur.advance()
            class_name = tok.text
        elif tok is not None and tok.type == 'VARIABLE':
            cur.advance()
            class_name = '$' + tok.text
            # new $this->formClass(...)
            while (_is(cur.peek(), '->') or _is(cur.peek(), '::')) and cur.peek(2) is not None \
                    and cur.peek(2).type in ('NAME', 'VARIABLE'):
                cur.advance()
                class_name += '->' + cur.advance().text
        elif _is(tok, '('):
            cur.advance()
            self._parse_list(')')
            class_name = '(expression)'

        args = self._parse_args() if _is(cur.peek(), '(') else []
        return New(class_name, args, line=line, doc_comment=doc)
