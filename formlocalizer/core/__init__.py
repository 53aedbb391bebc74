"""
Core module for FormLocalizer
=============================
"""

from .exceptions import FormLocalizerError, ExtractionError, ParseError, ConfigError, OutputError
from .catalogue import FileSource, Message, MessageCatalogue
from .php_parser import PhpParser
from .form_extractor import (
    FormExtractor, ChoiceConvention, DiagnosticPolicy, Diagnostic, ExtractionResult
)
from .output_formatter import CatalogueWriter

__all__ = [
    'FormLocalizerError', 'ExtractionError', 'ParseError', 'ConfigError', 'OutputError',
    'FileSource', 'Message', 'MessageCatalogue',
    'PhpParser',
    'FormExtractor', 'ChoiceConvention', 'DiagnosticPolicy', 'Diagnostic', 'ExtractionResult',
    'CatalogueWriter'
]
