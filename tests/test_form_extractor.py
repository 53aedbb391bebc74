import logging
import textwrap

import pytest

from formlocalizer.core.catalogue import FileSource, MessageCatalogue
from formlocalizer.core.exceptions import ExtractionError
from formlocalizer.core.form_extractor import (
    BUILTIN_TRANSLATED_FIELDS, ChoiceConvention, DiagnosticPolicy, FormExtractor, invert_item,
)
from formlocalizer.core.nodes import (
    ArrayItem, ArrayLiteral, ClassBody, ConstFetch, MethodCall, NumberLiteral, StringLiteral, Variable,
)
from formlocalizer.core.php_parser import PhpParser

FILE = "src/Form/TestType.php"


def extract(source, extractor=None, catalogue=None):
    extractor = extractor or FormExtractor()
    if catalogue is None:
        catalogue = MessageCatalogue()
    unit = PhpParser().parse(textwrap.dedent(source), file_path=FILE)
    result = extractor.extract(unit, catalogue)
    return catalogue, result


def identities(catalogue):
    return {(m.id, m.domain) for m in catalogue}


def form_type(build: str, configure: str = '') -> str:
    return textwrap.dedent('''\
        <?php
        class TestType extends AbstractType
        {
            public function buildForm(FormBuilderInterface $builder, array $options)
            {
        %s
            }

            public function configureOptions(OptionsResolver $resolver)
            {
        %s
            }
        }
    ''') % (textwrap.indent(textwrap.dedent(build), ' ' * 8), textwrap.indent(textwrap.dedent(configure), ' ' * 8))


# ----------------------------------------------------------------------
# domains
# ----------------------------------------------------------------------

def test_label_with_explicit_domain():
    catalogue, result = extract('''\
        <?php
        $builder->add('name', TextType::class, ['label' => 'Full name', 'translation_domain' => 'forms']);
    ''')
    assert identities(catalogue) == {('Full name', 'forms')}
    assert result.messages == 1
    assert result.deferred == 0


def test_default_domain_declared_after_the_field():
    catalogue, result = extract(form_type(
        "$builder->add('email', EmailType::class, ['label' => 'Email']);",
        "$resolver->setDefaults(['translation_domain' => 'account']);",
    ))
    assert identities(catalogue) == {('Email', 'account')}
    assert result.deferred == 1


def test_default_domain_declared_before_the_field():
    source = textwrap.dedent('''\
        <?php
        class TestType extends AbstractType
        {
            public function configureOptions(OptionsResolver $resolver)
            {
                $resolver->setDefaults(['translation_domain' => 'account']);
            }

            public function buildForm(FormBuilderInterface $builder, array $options)
            {
                $builder->add('email', EmailType::class, ['label' => 'Email']);
            }
        }
    ''')
    catalogue, _ = extract(source)
    assert identities(catalogue) == {('Email', 'account')}


def test_chained_defaults_call_sets_domain():
    catalogue, _ = extract(form_type(
        "$builder->add('email', EmailType::class, ['label' => 'Email']);",
        "$resolver->setRequired(['x'])->setDefaults(['translation_domain' => 'chained']);",
    ))
    assert identities(catalogue) == {('Email', 'chained')}


def test_last_defaults_call_wins():
    catalogue, _ = extract(form_type(
        "$builder->add('email', EmailType::class, ['label' => 'Email']);",
        """\
        $resolver->setDefaults(['translation_domain' => 'first']);
        $resolver->setDefaults(['translation_domain' => 'second']);
        """,
    ))
    assert identities(catalogue) == {('Email', 'second')}


def test_field_without_any_domain():
    catalogue, _ = extract(form_type("$builder->add('email', EmailType::class, ['label' => 'Email']);"))
    assert identities(catalogue) == {('Email', None)}


def test_local_domain_beats_class_default():
    catalogue, _ = extract(form_type(
        "$builder->add('email', EmailType::class, ['label' => 'Email', 'translation_domain' => 'local']);",
        "$resolver->setDefaults(['translation_domain' => 'account']);",
    ))
    assert identities(catalogue) == {('Email', 'local')}


def test_each_class_keeps_its_own_default_domain():
    source = textwrap.dedent('''\
        <?php
        class FirstType extends AbstractType
        {
            public function buildForm(FormBuilderInterface $builder, array $options)
            {
                $builder->add('a', null, ['label' => 'First label']);
            }
            public function configureOptions(OptionsResolver $resolver)
            {
                $resolver->setDefaults(['translation_domain' => 'first']);
            }
        }

        class SecondType extends AbstractType
        {
            public function buildForm(FormBuilderInterface $builder, array $options)
            {
                $builder->add('b', null, ['label' => 'Second label']);
            }
        }
    ''')
    catalogue, _ = extract(source)
    assert identities(catalogue) == {('First label', 'first'), ('Second label', None)}


def test_validation_messages_always_use_validators_domain():
    catalogue, _ = extract(form_type(
        """\
        $builder->add('age', IntegerType::class, [
            'invalid_message' => 'age.invalid',
            'translation_domain' => 'forms',
            'constraints' => [
                new NotBlank(['message' => 'Required']),
                new Assert\\Length(['min' => 3, 'minMessage' => 'ignored']),
            ],
        ]);
        """,
        "$resolver->setDefaults(['translation_domain' => 'account']);",
    ))
    assert identities(catalogue) == {('age.invalid', 'validators'), ('Required', 'validators')}


def test_constraints_from_static_factories_are_read():
    catalogue, _ = extract('''\
        <?php
        $x = ['constraints' => [Constraints::notBlank(['message' => 'From factory'])]];
    ''')
    assert identities(catalogue) == {('From factory', 'validators')}


# ----------------------------------------------------------------------
# choices
# ----------------------------------------------------------------------

def test_current_convention_reads_keys_as_labels():
    catalogue, _ = extract('''\
        <?php
        $x = ['choices' => ['Yes' => true, 'No' => false], 'translation_domain' => 'forms'];
    ''')
    assert identities(catalogue) == {('Yes', 'forms'), ('No', 'forms')}


def test_current_convention_ignores_choices_as_values_flag():
    catalogue, _ = extract('''\
        <?php
        $x = ['choices' => ['Yes' => 'y'], 'choices_as_values' => false, 'translation_domain' => 'forms'];
    ''')
    assert identities(catalogue) == {('Yes', 'forms')}


def test_legacy_convention_reads_values_as_labels():
    extractor = FormExtractor(choice_convention=ChoiceConvention.LEGACY)
    catalogue, _ = extract('''\
        <?php
        $x = ['choices' => ['m' => 'Male', 'f' => 'Female'], 'translation_domain' => 'forms'];
    ''', extractor)
    assert identities(catalogue) == {('Male', 'forms'), ('Female', 'forms')}


def test_legacy_convention_with_choices_as_values_inverts():
    extractor = FormExtractor(choice_convention=ChoiceConvention.LEGACY)
    catalogue, _ = extract('''\
        <?php
        $x = ['choices' => ['Yes' => 1, 'No' => 0], 'choices_as_values' => true];
    ''', extractor)
    assert {m.id for m in catalogue} == {'Yes', 'No'}


def test_legacy_convention_number_values_become_ids():
    extractor = FormExtractor(choice_convention=ChoiceConvention.LEGACY)
    catalogue, _ = extract('''\
        <?php
        $x = ['choices' => ['Yes' => 1, 'No' => 0]];
    ''', extractor)
    assert {m.id for m in catalogue} == {'1', '0'}


def test_grouped_choices_under_current_convention():
    catalogue, _ = extract('''\
        <?php
        $x = ['choices' => ['Europe' => ['France' => 'fr', 'Spain' => 'es']], 'translation_domain' => 'c'];
    ''')
    assert identities(catalogue) == {('Europe', 'c'), ('France', 'c'), ('Spain', 'c')}


def test_grouped_choices_under_legacy_convention():
    extractor = FormExtractor(choice_convention=ChoiceConvention.LEGACY)
    catalogue, _ = extract('''\
        <?php
        $x = ['choices' => ['Europe' => ['fr' => 'France', 'es' => 'Spain']], 'translation_domain' => 'c'];
    ''', extractor)
    assert identities(catalogue) == {('France', 'c'), ('Spain', 'c')}


def test_choice_loaders_and_constant_values_are_skipped():
    extractor = FormExtractor(choice_convention=ChoiceConvention.LEGACY)
    extractor.set_logger(logging.getLogger("test"))
    catalogue, result = extract('''\
        <?php
        $a = ['choices' => $this->getChoices()];
        $b = ['choices' => ['x' => Status::ACTIVE]];
    ''', extractor)
    assert len(catalogue) == 0
    assert result.diagnostics == []


# ----------------------------------------------------------------------
# placeholders and attr
# ----------------------------------------------------------------------

def test_placeholder_false_produces_nothing():
    catalogue, result = extract("<?php $x = ['placeholder' => false, 'empty_value' => false];")
    assert len(catalogue) == 0
    assert result.diagnostics == []


def test_placeholder_array_produces_one_entry_per_item():
    catalogue, _ = extract('''\
        <?php
        $x = ['placeholder' => ['year' => 'Year', 'month' => 'Month', 'day' => 'Day'], 'translation_domain' => 'd'];
    ''')
    assert identities(catalogue) == {('Year', 'd'), ('Month', 'd'), ('Day', 'd')}


def test_placeholder_string_produces_one_entry():
    catalogue, _ = extract("<?php $x = ['placeholder' => 'Choose one', 'translation_domain' => 'd'];")
    assert identities(catalogue) == {('Choose one', 'd')}


def test_empty_value_string_is_read_like_placeholder():
    catalogue, _ = extract("<?php $x = ['empty_value' => 'Pick', 'translation_domain' => 'd'];")
    assert identities(catalogue) == {('Pick', 'd')}


def test_attr_placeholder_and_title():
    catalogue, _ = extract('''\
        <?php
        $x = ['attr' => ['placeholder' => 'Type here', 'title' => 'Hint', 'class' => 'wide'], 'translation_domain' => 'd'];
    ''')
    assert ('Type here', 'd') in identities(catalogue)
    assert ('Hint', 'd') in identities(catalogue)
    assert 'wide' not in {m.id for m in catalogue}


def test_attr_through_array_merge():
    catalogue, _ = extract('''\
        <?php
        $x = ['attr' => array_merge($defaults, ['placeholder' => 'Merged']), 'translation_domain' => 'd'];
    ''')
    assert ('Merged', 'd') in identities(catalogue)


def test_attr_variable_is_not_a_diagnostic():
    catalogue, result = extract("<?php $x = ['attr' => $attributes];")
    assert len(catalogue) == 0
    assert result.diagnostics == []


def test_title_is_extracted():
    catalogue, _ = extract("<?php $x = ['title' => 'Page title', 'translation_domain' => 'd'];")
    assert identities(catalogue) == {('Page title', 'd')}


# ----------------------------------------------------------------------
# literals, annotations and diagnostics
# ----------------------------------------------------------------------

def test_label_false_and_null_are_ignored():
    catalogue, result = extract("<?php $x = ['label' => false]; $y = ['label' => null]; $z = ['label' => TRUE];")
    assert len(catalogue) == 0
    assert result.diagnostics == []


def test_annotations_fill_message_metadata():
    catalogue, _ = extract('''\
        <?php
        $x = [
            /** @Desc("Your e-mail") @Meaning("login") @AltTrans("Courriel", locale="fr") */
            'label' => 'form.email',
            'translation_domain' => 'forms',
        ];
    ''')
    message = catalogue.get('form.email', 'forms')
    assert message.desc == 'Your e-mail'
    assert message.meaning == 'login'
    assert message.alternative_translations == {'fr': 'Courriel'}
    assert message.sources == [FileSource(FILE, 4)]


def test_annotation_on_the_value():
    catalogue, _ = extract("<?php $x = ['label' => /** @Desc(\"On value\") */ 'v', 'translation_domain' => 'd'];")
    assert catalogue.get('v', 'd').desc == 'On value'


def test_non_literal_label_aborts_without_logger():
    source = "<?php\n$x = ['label' => $label];\n"
    with pytest.raises(ExtractionError) as exc:
        extract(source)
    diagnostic = exc.value.diagnostic
    assert diagnostic.file_path == FILE
    assert diagnostic.line == 2
    assert diagnostic.node_kind == 'Variable'
    assert 'Unable to extract translation id' in str(exc.value)
    assert f'in {FILE} on line 2' in str(exc.value)


def test_non_literal_label_is_logged_with_logger(caplog):
    extractor = FormExtractor()
    extractor.set_logger(logging.getLogger("formlocalizer.test"))
    with caplog.at_level(logging.ERROR, logger="formlocalizer.test"):
        catalogue, result = extract('''\
            <?php
            $x = ['label' => 'ok', 'title' => 'Prefix ' . $name, 'translation_domain' => 'd'];
        ''', extractor)
    assert identities(catalogue) == {('ok', 'd')}
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].node_kind == 'Expression'
    assert 'Unable to extract translation id' in caplog.text


def test_explicit_continue_policy_without_logger():
    extractor = FormExtractor(diagnostic_policy=DiagnosticPolicy.CONTINUE)
    _, result = extract('<?php $x = ["label" => "Hello $name"];', extractor)
    assert result.has_diagnostics
    assert result.diagnostics[0].node_kind == 'InterpolatedString'


def test_explicit_abort_policy_beats_logger():
    extractor = FormExtractor(diagnostic_policy=DiagnosticPolicy.ABORT)
    extractor.set_logger(logging.getLogger("formlocalizer.test"))
    assert extractor.effective_policy is DiagnosticPolicy.ABORT
    with pytest.raises(ExtractionError):
        extract("<?php $x = ['label' => $label];", extractor)


def test_ignore_annotation_silences_non_literal():
    catalogue, result = extract('''\
        <?php
        $x = [
            /** @Ignore */
            'label' => $this->computeLabel(),
        ];
    ''')
    assert len(catalogue) == 0
    assert result.diagnostics == []


def test_ignore_annotation_does_not_drop_string_literal():
    catalogue, _ = extract('''\
        <?php
        $x = [
            /** @Ignore */
            'label' => 'Still here',
            'translation_domain' => 'd',
        ];
    ''')
    assert identities(catalogue) == {('Still here', 'd')}


def test_number_label_uses_raw_text():
    catalogue, _ = extract("<?php $x = ['label' => 404, 'translation_domain' => 'd'];")
    assert identities(catalogue) == {('404', 'd')}


# ----------------------------------------------------------------------
# custom fields
# ----------------------------------------------------------------------

def test_custom_field_is_only_read_when_registered():
    source = "<?php $x = ['help' => 'Help text', 'translation_domain' => 'd'];"
    catalogue, _ = extract(source)
    assert len(catalogue) == 0

    catalogue, _ = extract(source, FormExtractor(custom_fields=['help']))
    assert identities(catalogue) == {('Help text', 'd')}


def test_custom_field_with_array_value():
    extractor = FormExtractor()
    extractor.add_custom_translation_fields(['labels'])
    catalogue, _ = extract('''\
        <?php
        $x = ['labels' => ['first' => 'First', 'second' => $dynamic], 'translation_domain' => 'd'];
    ''', extractor)
    assert identities(catalogue) == {('First', 'd')}


def test_custom_field_list_is_cached_and_refreshed():
    extractor = FormExtractor()
    fields = extractor.get_custom_translated_fields()
    assert fields == BUILTIN_TRANSLATED_FIELDS
    assert extractor.get_custom_translated_fields() is fields

    extractor.add_custom_translation_fields(['help', 'label'])
    refreshed = extractor.get_custom_translated_fields()
    assert refreshed[-1] == 'help'
    assert refreshed.count('label') == 1
    assert extractor.is_custom_translated_field('help')
    assert not extractor.is_custom_translated_field('class')


# ----------------------------------------------------------------------
# traversal
# ----------------------------------------------------------------------

def test_running_twice_is_idempotent():
    source = form_type(
        "$builder->add('email', EmailType::class, ['label' => 'Email', 'constraints' => [new Email(['message' => 'Bad'])]]);",
        "$resolver->setDefaults(['translation_domain' => 'account']);",
    )
    extractor = FormExtractor()
    catalogue, _ = extract(source, extractor)
    before = identities(catalogue)
    extract(source, extractor, catalogue)
    assert identities(catalogue) == before
    assert len(catalogue) == 2
    assert len(catalogue.get('Email', 'account').sources) == 1


def test_should_stop_ends_traversal_without_flushing():
    unit = PhpParser().parse(form_type(
        "$builder->add('email', EmailType::class, ['label' => 'Email']);",
        "$resolver->setDefaults(['translation_domain' => 'account']);",
    ), file_path=FILE)
    catalogue = MessageCatalogue()
    visits = []

    def should_stop():
        visits.append(1)
        # past the buildForm() options, before the end of the class
        return len(visits) > 15

    result = FormExtractor().extract(unit, catalogue, should_stop=should_stop)
    assert result.complete is False
    assert result.deferred == 1
    assert len(catalogue) == 0


def test_hand_built_tree():
    options = ArrayLiteral([
        ArrayItem(StringLiteral('label', line=7), StringLiteral('Hand built', line=7), line=7),
    ], line=7)
    defaults = MethodCall(Variable('resolver'), 'setDefaults', [ArrayLiteral([
        ArrayItem(StringLiteral('translation_domain'), StringLiteral('manual')),
    ])])
    nodes = [ClassBody('ManualType', [
        MethodCall(Variable('builder'), 'add', [StringLiteral('x'), ConstFetch('null'), options]),
        defaults,
    ])]
    catalogue = MessageCatalogue()
    result = FormExtractor().visit_php_file('Manual.php', catalogue, nodes)
    assert identities(catalogue) == {('Hand built', 'manual')}
    assert catalogue.get('Hand built', 'manual').sources == [FileSource('Manual.php', 7)]
    assert result.complete is True


def test_extractor_does_not_mutate_the_tree():
    key = StringLiteral('Yes')
    value = NumberLiteral(1, '1')
    item = ArrayItem(key, value)
    choices = ArrayLiteral([ArrayItem(StringLiteral('choices'), ArrayLiteral([item]))])
    FormExtractor().visit_php_file('x.php', MessageCatalogue(), [choices])
    assert item.key is key
    assert item.value is value


def test_invert_item_returns_new_item():
    item = ArrayItem(StringLiteral('k'), StringLiteral('v'), line=3, doc_comment='/** @Desc("d") */')
    inverted = invert_item(item)
    assert inverted is not item
    assert inverted.key is item.value
    assert inverted.value is item.key
    assert inverted.line == 3
    assert inverted.doc_comment == item.doc_comment
    assert item.key.value == 'k'
