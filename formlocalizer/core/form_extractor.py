"""
Form option extractor for FormLocalizer.

Walks the syntax tree of a PHP file and collects the translatable strings
found in form field options::

    $builder->add('email', EmailType::class, [
        /** @Desc("E-mail address") */
        'label' => 'form.email',
        'attr' => ['placeholder' => 'form.email.placeholder'],
        'constraints' => [new NotBlank(['message' => 'email.blank'])],
    ]);

Every array literal in the file is inspected; the keys below decide what is
read from it:

- ``label``, ``title`` and custom keys: the string value
- ``placeholder`` / ``empty_value``: the string, or each string of an array
- ``invalid_message`` and constraint ``message``: always in ``validators``
- ``choices``: the labels, inverted according to :class:`ChoiceConvention`
- ``attr``: its ``placeholder`` and ``title``, also through helper calls
  such as ``array_merge()``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .annotations import AltTrans, AnnotationResolver, Desc, Ignore, Meaning
from .catalogue import FileSource, Message, MessageCatalogue
from .exceptions import ExtractionError
from .nodes import (
    ArrayItem, ArrayLiteral, ClassBody, MethodCall, Node, NumberLiteral, SourceUnit,
    children, is_call_like, is_const, is_string, node_kind, string_value,
)
from .scope import DomainScopeTracker, RawEntry, ScopeState, find_translation_domain, is_defaults_call

logger = logging.getLogger(__name__)

VALIDATORS_DOMAIN = 'validators'

BUILTIN_TRANSLATED_FIELDS = (
    'label',
    'empty_value',
    'placeholder',
    'choices',
    'invalid_message',
    'attr',
    'constraints',
    'title',
)

ATTR_TRANSLATED_KEYS = ('placeholder', 'title')


class ChoiceConvention(Enum):
    """How the key/value pairs of a ``choices`` array are read.

    LEGACY: values are the labels, unless ``choices_as_values`` is true.
    CURRENT: keys are always the labels.
    """
    LEGACY = "legacy"
    CURRENT = "current"


class DiagnosticPolicy(Enum):
    """What to do with an option value that cannot be read."""
    CONTINUE = "continue"
    ABORT = "abort"


@dataclass(frozen=True)
class Diagnostic:
    file_path: str
    line: int
    node_kind: str
    message: str


@dataclass
class ExtractionResult:
    """Outcome of one :meth:`FormExtractor.extract` call."""
    file_path: str
    messages: int = 0
    deferred: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)
    complete: bool = True

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.diagnostics)


Outcome = Union[RawEntry, Diagnostic, None]


def invert_item(item: ArrayItem) -> ArrayItem:
    """Return a copy of ``item`` with key and value swapped. The tree is untouched."""
    return ArrayItem(
        key=item.value,
        value=item.key,
        by_ref=item.by_ref,
        unpack=item.unpack,
        line=item.line,
        doc_comment=item.doc_comment,
    )


def choices_as_values(node: ArrayLiteral) -> bool:
    flag = False
    for item in node.items:
        if string_value(item.key) == 'choices_as_values':
            flag = is_const(item.value, 'true')
    return flag


def _is_false_sentinel(value: Optional[Node]) -> bool:
    if value is None:
        return True
    if is_const(value, 'false') or is_const(value, 'true') or is_const(value, 'null'):
        return True
    return is_string(value) and value.value == 'false'


class FormExtractor:
    """Extracts form option messages from parsed PHP files.

    One instance holds configuration only (custom keys, conventions, error
    policy). Each :meth:`extract` call runs its own traversal with its own
    scope stack, so an instance can be reused for any number of files.
    """

    def __init__(
        self,
        annotation_resolver: Optional[AnnotationResolver] = None,
        choice_convention: ChoiceConvention = ChoiceConvention.CURRENT,
        custom_fields: Iterable[str] = (),
        diagnostic_policy: Optional[DiagnosticPolicy] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.annotation_resolver = annotation_resolver or AnnotationResolver()
        self.choice_convention = choice_convention
        self.diagnostic_policy = diagnostic_policy
        self._diagnostic_logger: Optional[logging.Logger] = None
        self._custom_fields: List[str] = []
        self._custom_fields_cache: Optional[Tuple[str, ...]] = None
        self.add_custom_translation_fields(custom_fields)

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------

    def set_logger(self, logger: logging.Logger) -> None:
        """Attach a logger; unreadable values are then logged instead of raised."""
        self._diagnostic_logger = logger

    @property
    def effective_policy(self) -> DiagnosticPolicy:
        if self.diagnostic_policy is not None:
            return self.diagnostic_policy
        if self._diagnostic_logger is not None:
            return DiagnosticPolicy.CONTINUE
        return DiagnosticPolicy.ABORT

    def add_custom_translation_fields(self, fields: Iterable[str]) -> None:
        """Register extra option keys whose value (or values) are messages.

        e.g. ``'help'`` or ``'labels' => ['first', 'second']``
        """
        for name in fields:
            if name not in self._custom_fields:
                self._custom_fields.append(name)
        self._custom_fields_cache = None

    def get_custom_translated_fields(self) -> Tuple[str, ...]:
        if self._custom_fields_cache is None:
            merged = dict.fromkeys(BUILTIN_TRANSLATED_FIELDS)
            merged.update(dict.fromkeys(self._custom_fields))
            self._custom_fields_cache = tuple(merged)
        return self._custom_fields_cache

    def is_custom_translated_field(self, name: str) -> bool:
        return name in self.get_custom_translated_fields()

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------

    def extract(
        self,
        source_unit: SourceUnit,
        catalogue: MessageCatalogue,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ExtractionResult:
        """Run the extraction over one parsed file, writing into ``catalogue``.

        Args:
            source_unit: Parsed file.
            catalogue: Catalogue receiving the messages.
            should_stop: Optional callable polled between node visits; when it
                returns True the traversal ends early and the result is
                marked incomplete.

        Raises:
            ExtractionError: an unreadable option value was found and the
                effective policy is ``ABORT``.
        """
        traversal = _Traversal(self, source_unit.file_path, catalogue, should_stop)
        return traversal.run(source_unit.nodes)

    def visit_php_file(self, file_path: str, catalogue: MessageCatalogue, nodes: List[Node]) -> ExtractionResult:
        return self.extract(SourceUnit(file_path=str(file_path), nodes=list(nodes)), catalogue)

    def report(self, diagnostic: Diagnostic) -> None:
        """Apply the diagnostic policy to one diagnostic."""
        if self.effective_policy is DiagnosticPolicy.ABORT:
            raise ExtractionError(diagnostic.message, diagnostic)
        (self._diagnostic_logger or self.logger).error(diagnostic.message)


class _StopTraversal(Exception):
    pass


class _Traversal:
    """State of one extraction run over one file."""

    def __init__(
        self,
        extractor: FormExtractor,
        file_path: str,
        catalogue: MessageCatalogue,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        self.extractor = extractor
        self.file_path = file_path
        self.catalogue = catalogue
        self.should_stop = should_stop
        self.scope = DomainScopeTracker()
        self.result = ExtractionResult(file_path=file_path)

    def run(self, nodes: List[Node]) -> ExtractionResult:
        try:
            for node in nodes:
                self._visit(node)
        except _StopTraversal:
            self.result.complete = False
            logger.debug(f"Extraction of {self.file_path} stopped early")
            return self.result

        self._flush(self.scope.finish())
        return self.result

    # ------------------------------------------------------------------
    # traversal
    # ------------------------------------------------------------------

    def _visit(self, node: Node) -> None:
        if self.should_stop is not None and self.should_stop():
            raise _StopTraversal()

        match node:
            case ClassBody(body=body):
                self.scope.on_enter_class()
                for child in body:
                    self._visit(child)
                self._flush(self.scope.on_leave_class())
                return
            case MethodCall() if is_defaults_call(node):
                self.scope.on_chained_defaults_call(node)
            case ArrayLiteral():
                self._dispatch(node)

        for child in children(node):
            self._visit(child)

    def _flush(self, state: ScopeState) -> None:
        for entry in state.pending:
            self._finalize(entry, state.default_domain)
        state.pending.clear()

    # ------------------------------------------------------------------
    # option dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, node: ArrayLiteral) -> None:
        domain = find_translation_domain(node)

        for item in node.items:
            key = string_value(item.key)
            if key is None:
                continue

            match key:
                case 'label':
                    self._extract_item(item, domain)
                case 'invalid_message':
                    self._extract_item(item, VALIDATORS_DOMAIN)
                case 'placeholder' | 'empty_value':
                    if not self._parse_empty_value(item, domain):
                        self._extract_item(item, domain)
                case 'choices':
                    self._parse_choices(item, node, domain)
                case 'constraints':
                    self._parse_constraints(item)
                case 'attr':
                    self._parse_attr(item.value, domain)
                case _ if self.extractor.is_custom_translated_field(key):
                    if isinstance(item.value, ArrayLiteral):
                        for sub_item in item.value.items:
                            if is_string(sub_item.value):
                                self._extract_item(sub_item, domain)
                    else:
                        self._extract_item(item, domain)

    def _parse_empty_value(self, item: ArrayItem, domain: Optional[str]) -> bool:
        """Returns True when the item was dealt with here."""
        # 'placeholder' => false turns the placeholder off
        if is_const(item.value, 'false'):
            return True

        if isinstance(item.value, ArrayLiteral):
            for sub_item in item.value.items:
                self._extract_item(sub_item, domain)
            return True

        return False

    def _parse_choices(self, item: ArrayItem, node: ArrayLiteral, domain: Optional[str]) -> None:
        # choice loaders, closures and iterators cannot be read statically
        if not isinstance(item.value, ArrayLiteral):
            return

        invert = (
            self.extractor.choice_convention is ChoiceConvention.CURRENT
            or choices_as_values(node)
        )

        for sub_item in item.value.items:
            if invert:
                sub_item = invert_item(sub_item)

            # grouped choices: 'Group' => ['Label' => 'value', ...]
            if isinstance(sub_item.key, ArrayLiteral):
                for nested in sub_item.key.items:
                    self._extract_choice(invert_item(nested) if invert else nested, domain)
            elif isinstance(sub_item.value, ArrayLiteral):
                for nested in sub_item.value.items:
                    self._extract_choice(nested, domain)
                continue

            self._extract_choice(sub_item, domain)

    def _extract_choice(self, item: ArrayItem, domain: Optional[str]) -> None:
        # choice values are often constants or booleans; only literals are labels
        if is_string(item.value) or isinstance(item.value, NumberLiteral):
            self._extract_item(item, domain)

    def _parse_constraints(self, item: ArrayItem) -> None:
        if not isinstance(item.value, ArrayLiteral):
            return

        for sub_item in item.value.items:
            constraint = sub_item.value
            if not is_call_like(constraint) or not constraint.args:
                continue
            options = constraint.args[0]
            if not isinstance(options, ArrayLiteral):
                continue
            for option in options.items:
                if string_value(option.key) == 'message':
                    self._extract_item(option, VALIDATORS_DOMAIN)

    def _parse_attr(self, value: Optional[Node], domain: Optional[str]) -> None:
        # helper calls such as array_merge($defaults, ['placeholder' => ...])
        if is_call_like(value) and value.args:
            for arg in value.args:
                self._parse_attr(arg, domain)
        elif isinstance(value, ArrayLiteral):
            for sub_item in value.items:
                if string_value(sub_item.key) in ATTR_TRANSLATED_KEYS:
                    self._extract_item(sub_item, domain)

    # ------------------------------------------------------------------
    # literal extraction
    # ------------------------------------------------------------------

    def _extract_item(self, item: ArrayItem, domain: Optional[str]) -> None:
        outcome = self._read_item(item)
        if isinstance(outcome, Diagnostic):
            self.result.diagnostics.append(outcome)
            self.extractor.report(outcome)
        elif isinstance(outcome, RawEntry):
            if domain is None:
                self.scope.defer(outcome)
                self.result.deferred += 1
            else:
                self._finalize(outcome, domain)

    def _read_item(self, item: ArrayItem) -> Outcome:
        value = item.value
        line = value.line if value is not None else item.line

        doc_comment = item.key.doc_comment if item.key is not None else None
        if not doc_comment and value is not None:
            doc_comment = value.doc_comment

        ignore = False
        desc = meaning = None
        alternatives: Dict[str, str] = {}
        if doc_comment:
            location = f"file {self.file_path} near line {line}"
            for directive in self.extractor.annotation_resolver.resolve(doc_comment, location):
                if isinstance(directive, Ignore):
                    ignore = True
                elif isinstance(directive, Desc):
                    desc = directive.text
                elif isinstance(directive, Meaning):
                    meaning = directive.text
                elif isinstance(directive, AltTrans):
                    alternatives[directive.locale] = directive.text

        # 'label' => false renders a field without label
        ignore = ignore or _is_false_sentinel(value)

        if isinstance(value, NumberLiteral):
            message_id = value.raw or str(value.value)
        elif is_string(value):
            message_id = value.value
        else:
            if ignore:
                return None
            return Diagnostic(
                file_path=self.file_path,
                line=line,
                node_kind=node_kind(value),
                message=(
                    'Unable to extract translation id for form label/title/placeholder from '
                    f'non-string values, but got "{node_kind(value)}" in {self.file_path} on line {line}. '
                    'Please refactor your code to pass a string, or add "/** @Ignore */".'
                ),
            )

        return RawEntry(
            id=message_id,
            source=FileSource(self.file_path, line),
            desc=desc,
            meaning=meaning,
            alternative_translations=alternatives,
        )

    def _finalize(self, entry: RawEntry, domain: Optional[str]) -> None:
        message = Message(
            id=entry.id,
            domain=domain,
            sources=[entry.source],
            desc=entry.desc,
            meaning=entry.meaning,
            alternative_translations=dict(entry.alternative_translations),
        )
        self.catalogue.add(message)
        self.result.messages += 1
