"""
Custom exceptions for FormLocalizer.
"""

class FormLocalizerError(Exception):
    """Base exception for FormLocalizer."""
    pass

class ExtractionError(FormLocalizerError):
    """Raised when a translatable option cannot be extracted and the policy is to abort."""

    def __init__(self, message: str, diagnostic=None):
        super().__init__(message)
        self.diagnostic = diagnostic

class ParseError(FormLocalizerError):
    """Raised when a PHP source file cannot be turned into a syntax tree."""

    def __init__(self, message: str, file_path: str = "", line: int = 0):
        super().__init__(message)
        self.file_path = file_path
        self.line = line

class ConfigError(FormLocalizerError):
    """Raised when configuration-related errors occur."""
    pass

class OutputError(FormLocalizerError):
    """Raised when a catalogue cannot be written."""
    pass
