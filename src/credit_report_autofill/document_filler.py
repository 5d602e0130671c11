"""
Document Filler - writes report data into a Word (.docx) template

Two strategies, picked by looking at the raw body markup:
- Templates with {placeholder} markers are rendered by substituting every
  marker with its context value (python-docx, run by run).
- Templates without markers are patched heuristically: blank table cells next
  to known labels, "label：____" blanks, and finally a summary section with all
  supplied data is appended to the body.

The heuristic passes work on the document.xml text with regular expressions
rather than on a parsed tree, so every inserted value is XML-escaped and every
label is regex-escaped before it is used in a pattern.
"""

import io
import logging
import re
import zipfile
from datetime import date
from numbers import Real
from typing import Any, Dict, Iterator, List, Mapping, Tuple
from xml.sax.saxutils import unescape

from docx import Document
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn

from .errors import (CreditReportError, DocumentGenerationError, DocumentStructureError,
                     TemplateFormatError, TemplateRenderError)
from .number_parser import format_date, format_number, is_blank, to_display_text
from .report_fields import (COLON_LABELS, SUMMARY_GROUPS, TABLE_LABELS, TEXT_SECTIONS,
                            UNDERSCORE_LABELS, field_text)

DOCX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
DOCUMENT_PART = 'word/document.xml'
SUMMARY_TITLE = '授信报告填写数据汇总'

PLACEHOLDER_MARKUP = re.compile(r'\{[a-zA-Z_][a-zA-Z0-9_]*\}')
PLACEHOLDER_TAG = re.compile(r'\{([^{}]+)\}')

_CELL = re.compile(r'<w:tc(?:\s[^>]*)?>.*?</w:tc>', re.S)
_TEXT_NODE = re.compile(r'<w:t(?:\s[^>]*)?>([^<]*)</w:t>')
_TEXT_ELEMENT = re.compile(r'(<w:t(?:\s[^>]*)?>)([^<]*)(</w:t>)')
_EMPTY_PARAGRAPH = re.compile(r'<w:p(\s[^>]*)?/>')
_BLANK_TEXT = re.compile(r'[_\s　]*')
_RUN_TEXT_XPATH = ('./w:r/w:t | ./w:hyperlink/w:r/w:t | ./w:smartTag/w:r/w:t'
                   ' | ./w:ins/w:r/w:t | ./w:fldSimple/w:r/w:t')

_XML_ESCAPES = [('&', '&amp;'), ('<', '&lt;'), ('>', '&gt;'), ('"', '&quot;'), ("'", '&apos;')]


def escape_xml(text: Any) -> str:
    text = '' if text is None else str(text)
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def unescape_xml(text: str) -> str:
    return unescape(text, {'&quot;': '"', '&apos;': "'"})


def has_placeholder_markup(document_xml: str) -> bool:
    return bool(PLACEHOLDER_MARKUP.search(document_xml))


def _label_pattern(label: str) -> str:
    # Labels are matched against markup, so escape for XML first, then for regex
    return re.escape(escape_xml(label))


# ---------------------------------------------------------------------------
# Heuristic passes (pure str -> str functions over document.xml)
# ---------------------------------------------------------------------------

def _cell_text(cell_xml: str) -> str:
    return ''.join(unescape_xml(t) for t in _TEXT_NODE.findall(cell_xml))


def _write_cell(cell_xml: str, escaped_value: str) -> str:
    """Put the value into a blank cell, keeping its cell and run properties."""
    if _TEXT_NODE.search(cell_xml):
        first = True

        def replace_text(match):
            nonlocal first
            if first:
                first = False
                return f'<w:t xml:space="preserve">{escaped_value}</w:t>'
            return '<w:t></w:t>'

        return _TEXT_NODE.sub(replace_text, cell_xml)

    run = f'<w:r><w:t xml:space="preserve">{escaped_value}</w:t></w:r>'
    match = _EMPTY_PARAGRAPH.search(cell_xml)
    if match:
        return (cell_xml[:match.start()] + f'<w:p{match.group(1) or ""}>{run}</w:p>'
                + cell_xml[match.end():])
    end = cell_xml.find('</w:p>')
    if end != -1:
        return cell_xml[:end] + run + cell_xml[end:]
    end = cell_xml.rfind('</w:tc>')
    return cell_xml[:end] + f'<w:p>{run}</w:p>' + cell_xml[end:]


def fill_table_cells(xml: str, context: Mapping[str, Any], labels=TABLE_LABELS) -> str:
    """
    Fill the cell right after a cell containing a known label.
    Only cells that are empty or hold nothing but underscores are touched.
    """
    cells = list(_CELL.finditer(xml))
    if len(cells) < 2:
        return xml

    texts = [_cell_text(m.group(0)) for m in cells]
    rewritten: Dict[int, str] = {}

    for label, name in labels:
        value = field_text(context, name)
        if not value:
            continue
        for i in range(len(cells) - 1):
            if label not in texts[i]:
                continue
            # Siblings only: nothing but whitespace between the two cells
            if xml[cells[i].end():cells[i + 1].start()].strip():
                continue
            if not _BLANK_TEXT.fullmatch(texts[i + 1]):
                continue
            current = rewritten.get(i + 1, cells[i + 1].group(0))
            rewritten[i + 1] = _write_cell(current, escape_xml(value))
            texts[i + 1] = value

    if not rewritten:
        return xml

    pieces = []
    pos = 0
    for i, match in enumerate(cells):
        if i in rewritten:
            pieces.append(xml[pos:match.start()])
            pieces.append(rewritten[i])
            pos = match.end()
    pieces.append(xml[pos:])
    return ''.join(pieces)


def fill_colon_labels(xml: str, context: Mapping[str, Any], labels=COLON_LABELS) -> str:
    """Replace the blank after 'label：' inside one text run with the value."""
    for label, name in labels:
        value = field_text(context, name)
        if not value:
            continue
        escaped = escape_xml(value)
        # Underscores anywhere after the colon; blank spaces only up to the end of the run
        blank = re.compile('(' + _label_pattern(label) + r'[：:][ \t　]*?)(_+|[ \t]{2,}$|　+$)')

        def fill_node(match, blank=blank, escaped=escaped):
            text = blank.sub(lambda b: b.group(1) + escaped, match.group(2))
            return match.group(1) + text + match.group(3)

        xml = _TEXT_ELEMENT.sub(fill_node, xml)
    return xml


def fill_underscore_blanks(xml: str, context: Mapping[str, Any], labels=UNDERSCORE_LABELS) -> str:
    """
    Replace an underscore run right after 'label：'. The underscores may sit in
    the next text run of the same paragraph.
    """
    for label, name in labels:
        value = field_text(context, name)
        if not value:
            continue
        escaped = escape_xml(value)
        pattern = re.compile(
            '(' + _label_pattern(label) + r'[：:][ \t　]*)'
            r'((?:</w:t>(?:\s*<(?!/w:p>)[^>]+>)*?\s*<w:t(?:\s[^>]*)?>)?)'
            r'(_+)'
        )
        xml = pattern.sub(lambda m, escaped=escaped: m.group(1) + m.group(2) + escaped, xml)
    return xml


def make_paragraph(text: str, bold: bool = False, align: str = 'left') -> str:
    """One Word paragraph in SimSun, 14pt bold for headings, 12pt otherwise."""
    bold_xml = '<w:b/><w:bCs/>' if bold else ''
    size = 28 if bold else 24
    return (
        f'<w:p><w:pPr><w:jc w:val="{align}"/></w:pPr>'
        f'<w:r><w:rPr><w:rFonts w:ascii="宋体" w:hAnsi="宋体" w:eastAsia="宋体"/>'
        f'{bold_xml}<w:sz w:val="{size}"/><w:szCs w:val="{size}"/></w:rPr>'
        f'<w:t xml:space="preserve">{escape_xml(text)}</w:t></w:r></w:p>'
    )


def build_summary_section(context: Mapping[str, Any], today: date = None) -> str:
    """Summary of every supplied value, placed on a new page."""
    today = today or date.today()
    parts = ['<w:p><w:r><w:br w:type="page"/></w:r></w:p>',
             make_paragraph(SUMMARY_TITLE, bold=True, align='center'),
             make_paragraph('')]

    for heading, items in SUMMARY_GROUPS:
        lines = []
        for label, name, unit in items:
            value = field_text(context, name)
            if value:
                lines.append(f"{label}：{value}{unit}")
        if not lines:
            continue
        parts.append(make_paragraph(heading, bold=True))
        parts.append(make_paragraph(''))
        parts.extend(make_paragraph(line) for line in lines)
        parts.append(make_paragraph(''))

    for name, heading in TEXT_SECTIONS:
        content = field_text(context, name)
        if not content:
            continue
        parts.append(make_paragraph(heading, bold=True))
        parts.append(make_paragraph(''))
        for line in to_display_text(context[name]).split('\n'):
            if line.strip():
                parts.append(make_paragraph('    ' + line.rstrip()))
        parts.append(make_paragraph(''))

    parts.append(make_paragraph(''))
    parts.append(make_paragraph(f"报告日期：{format_date(today)}", align='right'))
    return ''.join(parts)


def _body_insert_position(xml: str) -> int:
    body_end = xml.rfind('</w:body>')
    if body_end == -1:
        raise DocumentStructureError('文档结构异常：未找到 </w:body>')

    # The body-level sectPr has to stay the last child of <w:body>
    sect = xml.rfind('<w:sectPr', 0, body_end)
    if sect != -1:
        tail = xml[sect:body_end]
        if '</w:p>' not in tail and '</w:pPr>' not in tail and '</w:tbl>' not in tail:
            return sect
    return body_end


def append_summary_section(xml: str, context: Mapping[str, Any], today: date = None) -> str:
    position = _body_insert_position(xml)
    return xml[:position] + build_summary_section(context, today) + xml[position:]


# ---------------------------------------------------------------------------
# Placeholder rendering
# ---------------------------------------------------------------------------

def prepare_template_data(context: Mapping[str, Any], today: date = None) -> Dict[str, str]:
    """Every context value as display text, plus currentDate and reportDate."""
    today = today or date.today()
    prepared = {}
    for key, value in context.items():
        if value is None:
            prepared[key] = ''
        elif isinstance(value, bool):
            prepared[key] = str(value)
        elif isinstance(value, Real):
            prepared[key] = format_number(value)
        elif isinstance(value, date):
            prepared[key] = format_date(value)
        else:
            prepared[key] = str(value)

    prepared['currentDate'] = format_date(today)
    prepared['reportDate'] = format_date(today)
    return prepared


def _iter_paragraphs(doc) -> Iterator:
    yield from doc.element.body.iter(qn('w:p'))
    for rel in doc.part.rels.values():
        if rel.reltype in (RT.HEADER, RT.FOOTER):
            yield from rel.target_part.element.iter(qn('w:p'))


def _split_lines(t_node, text: str):
    """Write text into a w:t node; newlines become w:br siblings in the run."""
    lines = text.split('\n')
    t_node.text = lines[0]
    t_node.set(qn('xml:space'), 'preserve')
    anchor = t_node
    for line in lines[1:]:
        br = OxmlElement('w:br')
        anchor.addnext(br)
        new_t = OxmlElement('w:t')
        new_t.text = line
        new_t.set(qn('xml:space'), 'preserve')
        br.addnext(new_t)
        anchor = new_t


def render_paragraph(p_element, values: Mapping[str, str]) -> int:
    """
    Substitute {name} tags in one paragraph. Tags may be split across runs;
    each replacement is written into the run where its tag starts.
    Returns the number of substituted tags.
    """
    nodes = p_element.xpath(_RUN_TEXT_XPATH)
    if not nodes:
        return 0

    texts = [node.text or '' for node in nodes]
    full = ''.join(texts)
    if '{' not in full and '}' not in full:
        return 0

    matches = list(PLACEHOLDER_TAG.finditer(full))
    residue = PLACEHOLDER_TAG.sub('', full)
    if '{' in residue or '}' in residue:
        raise TemplateRenderError(f"模板标签不完整: '{full.strip()[:80]}'")
    if not matches:
        return 0

    offset = 0
    for node, text in zip(nodes, texts):
        start, end = offset, offset + len(text)
        offset = end
        pieces = []
        pos = start
        for match in matches:
            if match.end() <= pos or match.start() >= end:
                continue
            if match.start() > pos:
                pieces.append(full[pos:match.start()])
            if match.start() >= start:
                pieces.append(values.get(match.group(1).strip(), ''))
            pos = min(match.end(), end)
        if pos < end:
            pieces.append(full[pos:end])

        new_text = ''.join(pieces)
        if new_text != text:
            _split_lines(node, new_text)

    return len(matches)


class DocumentFiller:
    """Fills a .docx template with a document context and returns new bytes"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def generate_document(self, package: bytes, context: Mapping[str, Any],
                          today: date = None) -> bytes:
        """
        Produce a filled copy of the template. The template bytes are never
        modified; any failure raises and no partial document is returned.
        """
        today = today or date.today()
        try:
            entries = self._read_package(package)
            document_xml = self._document_xml(entries)

            if has_placeholder_markup(document_xml):
                self.logger.info("Template has placeholders, rendering tags")
                return self.render_placeholders(package, context, today)

            self.logger.info("Template has no placeholders, using heuristic filling")
            filled = self.fill_heuristically(document_xml, context, today)
            self.logger.info(f"Document XML length: {len(document_xml)} -> {len(filled)}")
            return self._write_package(entries, {DOCUMENT_PART: filled.encode('utf-8')})
        except CreditReportError:
            raise
        except Exception as e:
            raise DocumentGenerationError(f"生成文档失败：{e}") from e

    def fill_heuristically(self, document_xml: str, context: Mapping[str, Any],
                           today: date = None) -> str:
        xml = fill_table_cells(document_xml, context)
        xml = fill_colon_labels(xml, context)
        xml = fill_underscore_blanks(xml, context)
        return append_summary_section(xml, context, today)

    def render_placeholders(self, package: bytes, context: Mapping[str, Any],
                            today: date = None) -> bytes:
        try:
            doc = Document(io.BytesIO(package))
        except Exception as e:
            raise TemplateFormatError(f"无法解析Word文档，请确保文件格式正确 ({e})") from e

        values = prepare_template_data(context, today)
        substituted = sum(render_paragraph(p, values) for p in _iter_paragraphs(doc))
        missing = [k for k, v in values.items() if is_blank(v)]
        self.logger.info(f"Substituted {substituted} placeholder tags ({len(missing)} blank values)")

        output = io.BytesIO()
        doc.save(output)
        return output.getvalue()

    @staticmethod
    def _read_package(package: bytes) -> List[Tuple[zipfile.ZipInfo, bytes]]:
        try:
            with zipfile.ZipFile(io.BytesIO(package)) as archive:
                return [(info, archive.read(info)) for info in archive.infolist()]
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, TypeError) as e:
            raise TemplateFormatError(f"无法打开Word文档: {e}") from e

    @staticmethod
    def _document_xml(entries: List[Tuple[zipfile.ZipInfo, bytes]]) -> str:
        for info, data in entries:
            if info.filename == DOCUMENT_PART:
                return data.decode('utf-8')
        raise DocumentStructureError(f"文档结构异常：缺少 {DOCUMENT_PART}")

    @staticmethod
    def _write_package(entries: List[Tuple[zipfile.ZipInfo, bytes]],
                       replacements: Mapping[str, bytes]) -> bytes:
        output = io.BytesIO()
        with zipfile.ZipFile(output, 'w', zipfile.ZIP_DEFLATED) as archive:
            for info, data in entries:
                archive.writestr(info, replacements.get(info.filename, data))
        return output.getvalue()
