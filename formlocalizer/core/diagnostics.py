"""Extraction report for FormLocalizer runs.

Small helper to collect per-file extraction events (messages found, values
that could not be read, files skipped) and emit a JSON report summarizing
counts and per-file details.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class FileReport:
    file_path: str
    extracted: int = 0
    deferred: int = 0
    skipped: int = 0
    diagnostics: int = 0
    entries: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DiagnosticReport:
    project: str = ''
    locales: List[str] = field(default_factory=list)
    total_files: int = 0
    total_extracted: int = 0
    total_skipped: int = 0
    total_diagnostics: int = 0
    files: Dict[str, FileReport] = field(default_factory=dict)

    def _file(self, file_path: str) -> FileReport:
        fr = self.files.get(file_path)
        if not fr:
            fr = FileReport(file_path=file_path)
            self.files[file_path] = fr
            self.total_files += 1
        return fr

    def add_result(self, result) -> None:
        """Record an :class:`~formlocalizer.core.form_extractor.ExtractionResult`."""
        fr = self._file(result.file_path)
        fr.extracted += result.messages
        fr.deferred += result.deferred
        self.total_extracted += result.messages
        for diagnostic in result.diagnostics:
            self.add_diagnostic(diagnostic)
        if not result.complete:
            fr.entries.append({'status': 'incomplete'})

    def add_diagnostic(self, diagnostic) -> None:
        fr = self._file(diagnostic.file_path)
        fr.diagnostics += 1
        fr.entries.append({
            'status': 'diagnostic',
            'line': diagnostic.line,
            'node_kind': diagnostic.node_kind,
            'message': diagnostic.message,
        })
        self.total_diagnostics += 1

    def mark_skipped(self, file_path: str, reason: str, entry: Optional[Dict[str, Any]] = None):
        fr = self._file(file_path)
        fr.skipped += 1
        rec = {'status': 'skipped', 'reason': reason}
        if entry:
            rec.update(entry)
        fr.entries.append(rec)
        self.total_skipped += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'project': self.project,
            'locales': list(self.locales),
            'totals': {
                'files': self.total_files,
                'extracted': self.total_extracted,
                'skipped': self.total_skipped,
                'diagnostics': self.total_diagnostics,
            },
            'files': {p: {
                'extracted': fr.extracted,
                'deferred': fr.deferred,
                'skipped': fr.skipped,
                'diagnostics': fr.diagnostics,
                'entries': fr.entries,
            } for p, fr in self.files.items()}
        }

    def write(self, path: str) -> bool:
        p = Path(path)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(json.dumps(self.to_dict(), ensure_ascii=False, indent=2), encoding='utf-8')
            return True
        except OSError as e:
            logger.error(f"Could not write report {p}: {e}")
            return False
