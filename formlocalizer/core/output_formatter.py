"""
Output Formatter
===============

Writes message catalogues to translation files, one file per domain and
locale: ``<domain>.<locale>.xlf`` (XLIFF 1.2) or ``<domain>.<locale>.json``.
"""

import json
import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from formlocalizer.core.catalogue import Message, MessageCatalogue
from formlocalizer.core.exceptions import OutputError

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
JMS_NS = "urn:jms:translation"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

ET.register_namespace('', XLIFF_NS)
ET.register_namespace('jms', JMS_NS)

FORMAT_EXTENSIONS = {
    'xlf': 'xlf',
    'json': 'json',
}


def _q(tag: str, ns: str = XLIFF_NS) -> str:
    return f"{{{ns}}}{tag}"


class CatalogueWriter:
    """Writes a :class:`MessageCatalogue` to disk."""

    def __init__(
        self,
        output_format: str = "xlf",
        source_language: str = "en",
        add_date: bool = True,
        add_filerefs: bool = True,
    ):
        self.logger = logging.getLogger(__name__)
        if output_format not in FORMAT_EXTENSIONS:
            raise OutputError(f"Unsupported output format: {output_format}")
        self.output_format = output_format
        self.source_language = source_language
        self.add_date = add_date
        self.add_filerefs = add_filerefs

    def file_name(self, domain: str, locale: str) -> str:
        return f"{domain}.{locale}.{FORMAT_EXTENSIONS[self.output_format]}"

    def group_by_domain(self, catalogue: MessageCatalogue) -> Dict[str, List[Message]]:
        """Messages per output domain, each list sorted by id."""
        grouped: Dict[str, List[Message]] = {}
        for message in catalogue:
            grouped.setdefault(message.output_domain, []).append(message)
        return {d: sorted(msgs, key=lambda m: m.id) for d, msgs in sorted(grouped.items())}

    def write(self, catalogue: MessageCatalogue, output_dir: Path, locale: str) -> List[Path]:
        """Write every domain of ``catalogue`` for ``locale``.

        Returns the written paths.

        Raises:
            OutputError: a file could not be written.
        """
        output_dir = Path(output_dir)
        written = []
        for domain, messages in self.group_by_domain(catalogue).items():
            path = output_dir / self.file_name(domain, locale)
            if self.output_format == 'xlf':
                content = self.format_xliff(messages, locale)
            else:
                content = self.format_json(messages)
            self._save(path, content)
            written.append(path)
        return written

    def _save(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            raise OutputError(f"Error saving translation file {path}: {e}") from e
        self.logger.info(f"Saved translation file: {path}")

    # ------------------------------------------------------------------
    # XLIFF
    # ------------------------------------------------------------------

    def format_xliff(self, messages: List[Message], locale: str) -> str:
        root = ET.Element(_q('xliff'), {'version': '1.2'})
        file_attrs = {
            'source-language': self.source_language,
            'target-language': locale,
            'datatype': 'plaintext',
            'original': 'not.available',
        }
        if self.add_date:
            file_attrs['date'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')
        file_el = ET.SubElement(root, _q('file'), file_attrs)

        header = ET.SubElement(file_el, _q('header'))
        ET.SubElement(header, _q('tool'), {'tool-id': 'FormLocalizer', 'tool-name': 'FormLocalizer'})
        note = ET.SubElement(header, _q('note'))
        note.text = 'The source node in most cases contains the sample message as written by the developer.'

        body = ET.SubElement(file_el, _q('body'))
        for message in messages:
            self._trans_unit(body, message)

        ET.indent(root, space='  ')
        xml = ET.tostring(root, encoding='unicode')
        return '<?xml version="1.0" encoding="utf-8"?>\n' + xml + '\n'

    def _trans_unit(self, body: ET.Element, message: Message) -> None:
        unit = ET.SubElement(body, _q('trans-unit'), {'id': message.id, 'resname': message.id})
        source = ET.SubElement(unit, _q('source'))
        source.text = message.desc or message.id
        target = ET.SubElement(unit, _q('target'), {'state': 'new'})
        target.text = message.desc or message.id

        for locale, text in sorted(message.alternative_translations.items()):
            alt = ET.SubElement(unit, _q('alt-trans'), {XML_LANG: locale})
            alt_target = ET.SubElement(alt, _q('target'))
            alt_target.text = text

        if self.add_filerefs:
            for src in message.sources:
                attrs = {'path': src.path}
                if src.line:
                    attrs['line'] = str(src.line)
                ET.SubElement(unit, _q('reference-file', JMS_NS), attrs)

        if message.desc:
            note = ET.SubElement(unit, _q('note'))
            note.text = message.desc
        if message.meaning:
            note = ET.SubElement(unit, _q('note'), {'extradata': f"meaning: {message.meaning}"})
            note.text = message.meaning

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def format_json(self, messages: List[Message]) -> str:
        data = {}
        for message in messages:
            entry: Dict[str, Optional[object]] = {
                'desc': message.desc,
                'meaning': message.meaning,
            }
            if message.alternative_translations:
                entry['alternative_translations'] = dict(sorted(message.alternative_translations.items()))
            if self.add_filerefs:
                entry['sources'] = [str(s) for s in message.sources]
            data[message.id] = entry
        return json.dumps(data, ensure_ascii=False, indent=2) + '\n'
