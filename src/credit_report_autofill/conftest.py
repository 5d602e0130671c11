import io
from datetime import date

import pytest
from docx import Document
from openpyxl import Workbook


def _docx_bytes(doc) -> bytes:
    output = io.BytesIO()
    doc.save(output)
    return output.getvalue()


@pytest.fixture
def heuristic_template() -> bytes:
    """Bank-style form without placeholders: a label table and blank lines"""
    doc = Document()
    doc.add_paragraph('企业授信调查报告')
    doc.add_paragraph('企业名称：______________')

    p = doc.add_paragraph()
    p.add_run('法定代表人：')
    p.add_run('__________')

    doc.add_paragraph('授信期限：    ')

    table = doc.add_table(rows=3, cols=2)
    table.cell(0, 0).text = '企业名称'
    table.cell(1, 0).text = '法定代表人'
    table.cell(1, 1).text = '李四'
    table.cell(2, 0).text = '注册资本'
    table.cell(2, 1).text = '____'

    doc.add_paragraph('调查人员签字：')
    return _docx_bytes(doc)


@pytest.fixture
def placeholder_template() -> bytes:
    doc = Document()
    doc.sections[0].header.paragraphs[0].text = '{reportTitle}'
    doc.add_paragraph('企业名称：{companyName}')

    p = doc.add_paragraph()
    p.add_run('授信金额：{credit')
    p.add_run('Amount}万元')

    doc.add_paragraph('成立日期：{establishDate}')
    doc.add_paragraph('备注：{unknownField}')
    doc.add_paragraph('{basicSituation}')

    table = doc.add_table(rows=1, cols=2)
    table.cell(0, 0).text = '报告日期'
    table.cell(0, 1).text = '{reportDate}'
    return _docx_bytes(doc)


@pytest.fixture
def report_context():
    return {
        'companyName': '测试科技有限公司',
        'legalRep': '张三',
        'registeredCapital': '1000万元',
        'establishDate': date(2015, 3, 8),
        'totalAssetsEnd': 1500,
        'debtRatioEnd': '40.00',
        'creditAmount': 1234567.5,
        'creditPeriod': 12,
        'basicSituation': '公司成立于2015年。\n主营软件开发。',
        'creditSuggestion': '建议给予授信。',
        'reportTitle': '企业授信调查报告',
    }


@pytest.fixture
def statement_workbook() -> bytes:
    """Two-sheet workbook laid out the way customers usually send statements"""
    wb = Workbook()
    ws = wb.active
    ws.title = '资产负债表'
    ws.append(['资产负债表', None, None])
    ws.append(['项目', '期末余额', '期初余额'])
    ws.append(['流动资产合计', 800, 700])
    ws.append(['存货', 200, 150])
    ws.append(['资产总计', None, 1500])
    ws.append(['流动负债合计', 400, 300])
    ws.append(['负债合计', 600, 500])
    ws.append(['负债和所有者权益总计', 1500, 1400])

    income = wb.create_sheet('利润表')
    income.append(['项目', '本期金额'])
    income.append(['营业收入', '3,000'])
    income.append(['净利润', 90])

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
