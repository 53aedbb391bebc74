"""
FormLocalizer - translation extraction for PHP form types
=========================================================

Scans PHP sources for form field options and collects the translatable
strings they carry:
- labels, titles, placeholders and custom option keys
- choice labels, under the current and the legacy choices convention
- validation messages (``invalid_message``, constraint ``message``)
- ``@Desc``, ``@Meaning``, ``@AltTrans`` and ``@Ignore`` doc comments
- XLIFF 1.2 or JSON catalogues, one file per domain and locale
"""

__version__ = "1.0.0"

from . import core
from . import utils

__all__ = ['core', 'utils', '__version__']
