import io
import logging

import pytest
from docx import Document

from credit_report_autofill.errors import TemplateFormatError
from credit_report_autofill.template_analyzer import (TemplateAnalyzer, extract_template_text,
                                                      find_placeholders, parse_word_template)


def test_find_placeholders():
    content = '企业名称：{companyName}\n授信金额：{ creditAmount }万元\n{companyName}'
    assert find_placeholders(content) == ['companyName', 'creditAmount']


def test_nested_braces_are_not_placeholders():
    assert find_placeholders('{{a}') == ['a']
    assert find_placeholders('{}') == []


def test_analyze():
    analysis = TemplateAnalyzer().analyze('企业名称：{companyName}，金额：{creditAmount}')
    assert analysis.placeholders == ['companyName', 'creditAmount']
    assert analysis.has_existing_placeholders

    analysis = TemplateAnalyzer().analyze('企业名称：________')
    assert analysis.placeholders == []
    assert not analysis.has_existing_placeholders


def test_extract_template_text(heuristic_template):
    text = extract_template_text(heuristic_template)
    assert '企业名称：____' in text
    assert '法定代表人 | 李四' in text


def test_parse_word_template(placeholder_template):
    analysis = parse_word_template(placeholder_template)
    assert analysis.has_existing_placeholders
    assert analysis.placeholders[0] == 'reportTitle'
    assert 'companyName' in analysis.placeholders
    assert 'creditAmount' in analysis.placeholders
    assert 'reportDate' in analysis.placeholders


def test_unreadable_template():
    with pytest.raises(TemplateFormatError):
        parse_word_template(b'not a docx')


def _docx_bytes(doc) -> bytes:
    output = io.BytesIO()
    doc.save(output)
    return output.getvalue()


def test_placeholders_follow_document_order():
    doc = Document()
    doc.add_table(rows=1, cols=1).cell(0, 0).text = '{companyName}'
    doc.add_paragraph('授信金额：{creditAmount}')
    assert parse_word_template(_docx_bytes(doc)).placeholders == ['companyName', 'creditAmount']


def test_nested_table_text_is_included():
    doc = Document()
    outer = doc.add_table(rows=1, cols=2)
    outer.cell(0, 0).text = '企业名称'
    outer.cell(0, 1).add_table(rows=1, cols=1).cell(0, 0).text = '{companyName}'
    doc.add_paragraph('{reportDate}')

    analysis = parse_word_template(_docx_bytes(doc))
    assert analysis.placeholders == ['companyName', 'reportDate']
    assert '企业名称 | {companyName}' in analysis.content


def test_non_field_tags_are_reported(caplog):
    with caplog.at_level(logging.WARNING, logger='credit_report_autofill.template_analyzer'):
        analysis = TemplateAnalyzer().analyze('企业名称：{公司名称}')

    assert analysis.has_existing_placeholders
    assert analysis.field_placeholders == []
    assert '公司名称' in caplog.text
