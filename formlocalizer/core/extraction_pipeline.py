"""
Extraction Pipeline
===================

Scan -> Read -> Parse -> Extract -> Filter -> Write

Runs the form extractor over a project tree and writes one catalogue per
domain and locale.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from formlocalizer.core.catalogue import MessageCatalogue
from formlocalizer.core.diagnostics import DiagnosticReport
from formlocalizer.core.exceptions import ExtractionError, OutputError, ParseError
from formlocalizer.core.form_extractor import ChoiceConvention, DiagnosticPolicy, FormExtractor
from formlocalizer.core.output_formatter import CatalogueWriter
from formlocalizer.core.php_parser import PhpParser
from formlocalizer.utils.config import ExtractionSettings, OutputSettings
from formlocalizer.utils.encoding import read_text_safely
from formlocalizer.utils.file_finder import find_source_files


class PipelineStage(Enum):
    """Pipeline stages"""
    IDLE = "idle"
    SCANNING = "scanning"
    EXTRACTING = "extracting"
    SAVING = "saving"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class PipelineResult:
    """Pipeline result"""
    success: bool
    message: str
    stage: PipelineStage
    stats: Optional[Dict] = None
    output_paths: Optional[List[str]] = None
    error: Optional[str] = None


class ExtractionPipeline:
    """
    Extraction pipeline.

    Flow:
    1. Find source files under the scan directories
    2. Read and parse each file
    3. Extract form messages into one catalogue
    4. Keep the requested domains
    5. Write ``<domain>.<locale>.<ext>`` for every locale (unless dry run)
    """

    def __init__(
        self,
        settings: ExtractionSettings,
        output_settings: OutputSettings,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
        dry_run: bool = False,
    ):
        self.logger = logging.getLogger(__name__)
        self.settings = settings
        self.output_settings = output_settings
        self.progress_callback = progress_callback
        self.dry_run = dry_run

        self.parser = PhpParser()
        self.extractor = self._build_extractor()
        self.report = DiagnosticReport(locales=list(settings.locales))
        self.catalogue = MessageCatalogue()

        # State
        self.current_stage = PipelineStage.IDLE
        self.should_stop = False

    def _build_extractor(self) -> FormExtractor:
        extractor = FormExtractor(
            choice_convention=ChoiceConvention(self.settings.choice_convention),
            custom_fields=self.settings.custom_fields,
            diagnostic_policy=DiagnosticPolicy.ABORT if self.settings.strict else None,
        )
        if not self.settings.strict:
            extractor.set_logger(self.logger)
        return extractor

    def stop(self):
        """Stop the pipeline after the node being visited."""
        self.should_stop = True
        self.logger.warning("Stop requested")

    def _set_stage(self, stage: PipelineStage, message: str = ""):
        self.current_stage = stage
        self.logger.info(f"[{stage.value.upper()}] {message}")

    def _stopped_result(self) -> PipelineResult:
        return PipelineResult(
            success=False,
            message="Extraction stopped by user",
            stage=self.current_stage,
            stats=self._stats(),
        )

    def _stats(self) -> Dict:
        totals = self.report.to_dict()['totals']
        totals['messages'] = len(self.catalogue)
        totals['domains'] = sorted({m.output_domain for m in self.catalogue})
        return totals

    def run(self) -> PipelineResult:
        """Run the pipeline; never raises."""
        self.should_stop = False
        try:
            return self._run_pipeline()
        except Exception as e:
            self.logger.exception("Pipeline error")
            return PipelineResult(
                success=False,
                message=f"Unexpected error: {e}",
                stage=PipelineStage.ERROR,
                error=str(e),
            )

    def _run_pipeline(self) -> PipelineResult:
        # 1. Scan
        self._set_stage(PipelineStage.SCANNING, ", ".join(self.settings.scan_dirs))
        files = list(find_source_files(
            self.settings.scan_dirs,
            self.settings.excluded_dirs,
            self.settings.excluded_names,
            self.settings.file_extensions,
        ))
        if not files:
            return PipelineResult(
                success=False,
                message="No source files found",
                stage=PipelineStage.ERROR,
                stats=self._stats(),
            )

        # 2. Extract
        self._set_stage(PipelineStage.EXTRACTING, f"{len(files)} files")
        for index, path in enumerate(files, start=1):
            if self.should_stop:
                return self._stopped_result()
            if self.progress_callback:
                self.progress_callback(index, len(files), str(path))
            try:
                self.extract_file(path)
            except ExtractionError as e:
                return PipelineResult(
                    success=False,
                    message=str(e),
                    stage=PipelineStage.ERROR,
                    stats=self._stats(),
                    error=str(e),
                )

        if self.should_stop:
            return self._stopped_result()

        catalogue = self.catalogue.filter_domains(self.settings.domains, self.settings.ignored_domains)

        # 3. Save
        if self.dry_run:
            self._set_stage(PipelineStage.COMPLETED, "dry run, nothing written")
            return PipelineResult(
                success=True,
                message=f"Found {len(catalogue)} messages (dry run)",
                stage=PipelineStage.COMPLETED,
                stats=self._stats(),
                output_paths=[],
            )

        self._set_stage(PipelineStage.SAVING, self.output_settings.output_dir)
        writer = CatalogueWriter(
            output_format=self.output_settings.output_format,
            source_language=self.output_settings.source_language,
            add_date=self.output_settings.add_date,
            add_filerefs=self.output_settings.add_filerefs,
        )
        written: List[str] = []
        try:
            for locale in self.settings.locales:
                written.extend(str(p) for p in writer.write(catalogue, Path(self.output_settings.output_dir), locale))
        except OutputError as e:
            return PipelineResult(
                success=False,
                message=str(e),
                stage=PipelineStage.ERROR,
                stats=self._stats(),
                output_paths=written,
                error=str(e),
            )

        self._set_stage(PipelineStage.COMPLETED, f"{len(written)} files written")
        return PipelineResult(
            success=True,
            message=f"Extracted {len(catalogue)} messages into {len(written)} files",
            stage=PipelineStage.COMPLETED,
            stats=self._stats(),
            output_paths=written,
        )

    def extract_file(self, path: Path) -> None:
        """Read, parse and extract one file into the pipeline catalogue.

        Unreadable or unparsable files are recorded as skipped.
        """
        content = read_text_safely(path)
        if content is None:
            self.logger.warning(f"Could not read {path}")
            self.report.mark_skipped(str(path), "unreadable")
            return

        try:
            unit = self.parser.parse(content, str(path))
        except ParseError as e:
            self.logger.warning(f"Skipping {path}: {e}")
            self.report.mark_skipped(str(path), "parse error", {'error': str(e), 'line': e.line})
            return

        try:
            result = self.extractor.extract(unit, self.catalogue, should_stop=lambda: self.should_stop)
        except ExtractionError as e:
            if e.diagnostic is not None:
                self.report.add_diagnostic(e.diagnostic)
            raise
        self.report.add_result(result)
        self.logger.debug(f"{path}: {result.messages} messages, {len(result.diagnostics)} diagnostics")
