"""
Template analysis - decides whether a Word template already carries explicit
{placeholder} markers or has to be filled heuristically.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from typing import List

from docx import Document
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml.ns import qn

from .errors import TemplateFormatError

PLACEHOLDER_PATTERN = re.compile(r'\{([^{}]+)\}')
# Only tags with identifier names are substituted when the document is generated
FIELD_NAME_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')


@dataclass
class TemplateAnalysis:
    content: str = ''
    placeholders: List[str] = field(default_factory=list)

    @property
    def has_existing_placeholders(self) -> bool:
        return bool(self.placeholders)

    @property
    def field_placeholders(self) -> List[str]:
        return [name for name in self.placeholders if FIELD_NAME_PATTERN.fullmatch(name)]


def find_placeholders(content: str) -> List[str]:
    """Distinct placeholder names in order of first occurrence"""
    placeholders = []
    for match in PLACEHOLDER_PATTERN.finditer(content or ''):
        name = match.group(1).strip()
        if name and name not in placeholders:
            placeholders.append(name)
    return placeholders


def _paragraph_text(p) -> str:
    return ''.join(node.text or '' for node in p.iter(qn('w:t')))


def _block_lines(container):
    """Text lines of paragraphs and tables in document order, nested tables included"""
    for child in container.iterchildren():
        if child.tag == qn('w:p'):
            yield _paragraph_text(child)
        elif child.tag == qn('w:tbl'):
            for row in child.iterchildren(qn('w:tr')):
                cells = []
                for cell in row.iterchildren(qn('w:tc')):
                    text = '\n'.join(line for line in _block_lines(cell) if line.strip()).strip()
                    if text and text not in cells:
                        cells.append(text)
                if cells:
                    yield ' | '.join(cells)
        elif child.tag == qn('w:sdt'):
            for content in child.iterchildren(qn('w:sdtContent')):
                yield from _block_lines(content)


def extract_template_text(package: bytes) -> str:
    """Full text of a .docx package: headers, then the body in document order, then footers"""
    try:
        doc = Document(io.BytesIO(package))
    except Exception as e:
        raise TemplateFormatError(f"无法解析Word文档，请确保文件格式正确 ({e})") from e

    lines = []
    for rel in doc.part.rels.values():
        if rel.reltype == RT.HEADER:
            lines.extend(_block_lines(rel.target_part.element))
    lines.extend(_block_lines(doc.element.body))
    for rel in doc.part.rels.values():
        if rel.reltype == RT.FOOTER:
            lines.extend(_block_lines(rel.target_part.element))

    return '\n'.join(line for line in lines if line.strip())


class TemplateAnalyzer:

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def analyze(self, content: str) -> TemplateAnalysis:
        analysis = TemplateAnalysis(content=content or '', placeholders=find_placeholders(content))
        self.logger.info(
            f"Template analysis: {len(analysis.placeholders)} placeholders "
            f"({'placeholder' if analysis.field_placeholders else 'heuristic'} mode)"
        )
        ignored = [name for name in analysis.placeholders if name not in analysis.field_placeholders]
        if ignored:
            self.logger.warning(
                f"Tags that are not field names will not be substituted: {', '.join(ignored)}"
            )
        return analysis

    def parse_word_template(self, package: bytes) -> TemplateAnalysis:
        return self.analyze(extract_template_text(package))


def parse_word_template(package: bytes) -> TemplateAnalysis:
    return TemplateAnalyzer().parse_word_template(package)
