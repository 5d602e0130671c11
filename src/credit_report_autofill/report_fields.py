"""
Field definitions for the credit investigation report.

The document context is a flat dict keyed by the names below. Labels are the
Chinese captions used on bank templates and in the generated summary section.
"""

from typing import Any, Dict, List, Mapping, Optional

from .number_parser import is_blank, to_display_text

COMPANY_FIELDS = ['companyName', 'creditCode', 'legalRep', 'registeredCapital',
                  'establishDate', 'industry', 'registeredAddress', 'businessScope',
                  'companySize', 'employeeCount']

FINANCIAL_FIELDS = ['totalAssetsLastYear', 'totalAssetsBeginning', 'totalAssetsEnd',
                    'totalLiabilitiesLastYear', 'totalLiabilitiesBeginning', 'totalLiabilitiesEnd',
                    'ownerEquityLastYear', 'ownerEquityBeginning', 'ownerEquityEnd',
                    'revenueLastYear', 'revenueCurrent',
                    'netProfitLastYear', 'netProfitCurrent',
                    'debtRatioLastYear', 'debtRatioBeginning', 'debtRatioEnd']

CREDIT_FIELDS = ['creditType', 'creditAmount', 'creditPeriod', 'creditPurpose']

# (field, heading) in report order
TEXT_SECTIONS = [
    ('basicSituation', '四、企业基本情况'),
    ('controllerSituation', '五、实际控制人情况'),
    ('businessStatus', '六、经营状况分析'),
    ('marketAnalysis', '七、市场分析'),
    ('financialOverview', '八、财务状况概述'),
    ('financialIndicators', '九、财务指标分析'),
    ('creditRisk', '十、信用风险分析'),
    ('marketRisk', '十一、市场风险分析'),
    ('overallEvaluation', '十二、总体评价'),
    ('creditSuggestion', '十三、授信建议'),
]
TEXT_FIELDS = [name for name, _ in TEXT_SECTIONS]

DEFAULT_REPORT_TITLE = '企业授信调查报告'

# (label, field) pairs for the heuristic fill passes; order is match order
TABLE_LABELS = [
    ('企业名称', 'companyName'), ('客户名称', 'companyName'),
    ('借款人名称', 'companyName'), ('借款人', 'companyName'),
    ('统一社会信用代码', 'creditCode'), ('社会信用代码', 'creditCode'), ('组织机构代码', 'creditCode'),
    ('法定代表人', 'legalRep'), ('法人代表', 'legalRep'), ('负责人', 'legalRep'),
    ('注册资本', 'registeredCapital'), ('注册资金', 'registeredCapital'),
    ('成立日期', 'establishDate'), ('成立时间', 'establishDate'), ('注册日期', 'establishDate'),
    ('所属行业', 'industry'), ('行业分类', 'industry'), ('主营行业', 'industry'),
    ('注册地址', 'registeredAddress'), ('住所', 'registeredAddress'), ('公司地址', 'registeredAddress'),
    ('经营范围', 'businessScope'),
    ('员工人数', 'employeeCount'), ('职工人数', 'employeeCount'),
    ('企业规模', 'companySize'),
    ('资产总额', 'totalAssetsEnd'), ('资产总计', 'totalAssetsEnd'),
    ('负债总额', 'totalLiabilitiesEnd'), ('负债总计', 'totalLiabilitiesEnd'),
    ('所有者权益', 'ownerEquityEnd'), ('净资产', 'ownerEquityEnd'),
    ('营业收入', 'revenueCurrent'),
    ('净利润', 'netProfitCurrent'), ('利润总额', 'netProfitCurrent'),
    ('资产负债率', 'debtRatioEnd'),
    ('授信金额', 'creditAmount'), ('贷款金额', 'creditAmount'), ('申请金额', 'creditAmount'),
    ('授信期限', 'creditPeriod'), ('贷款期限', 'creditPeriod'),
    ('授信类型', 'creditType'), ('贷款类型', 'creditType'), ('贷款品种', 'creditType'),
    ('授信用途', 'creditPurpose'), ('贷款用途', 'creditPurpose'), ('资金用途', 'creditPurpose'),
]

COLON_LABELS = [
    ('企业名称', 'companyName'), ('客户名称', 'companyName'),
    ('统一社会信用代码', 'creditCode'),
    ('法定代表人', 'legalRep'),
    ('注册资本', 'registeredCapital'),
    ('成立日期', 'establishDate'),
    ('所属行业', 'industry'),
    ('注册地址', 'registeredAddress'),
    ('授信金额', 'creditAmount'),
    ('授信期限', 'creditPeriod'),
]

UNDERSCORE_LABELS = [
    ('企业名称', 'companyName'), ('客户名称', 'companyName'),
    ('法定代表人', 'legalRep'),
    ('注册资本', 'registeredCapital'),
    ('成立日期', 'establishDate'),
    ('授信金额', 'creditAmount'),
    ('授信期限', 'creditPeriod'),
]

# Summary section items: (label, field, unit)
COMPANY_ITEMS = [
    ('企业名称', 'companyName', ''),
    ('统一社会信用代码', 'creditCode', ''),
    ('法定代表人', 'legalRep', ''),
    ('注册资本', 'registeredCapital', ''),
    ('成立日期', 'establishDate', ''),
    ('所属行业', 'industry', ''),
    ('企业规模', 'companySize', ''),
    ('员工人数', 'employeeCount', ''),
    ('注册地址', 'registeredAddress', ''),
    ('经营范围', 'businessScope', ''),
]

FINANCIAL_ITEMS = [
    ('资产总额', 'totalAssetsEnd', '万元'),
    ('负债总额', 'totalLiabilitiesEnd', '万元'),
    ('所有者权益', 'ownerEquityEnd', '万元'),
    ('营业收入', 'revenueCurrent', '万元'),
    ('净利润', 'netProfitCurrent', '万元'),
    ('资产负债率', 'debtRatioEnd', '%'),
]

CREDIT_ITEMS = [
    ('授信类型', 'creditType', ''),
    ('授信金额', 'creditAmount', '万元'),
    ('授信期限', 'creditPeriod', '个月'),
    ('授信用途', 'creditPurpose', ''),
]

SUMMARY_GROUPS = [
    ('一、企业基本信息', COMPANY_ITEMS),
    ('二、财务信息', FINANCIAL_ITEMS),
    ('三、授信信息', CREDIT_ITEMS),
]

PREVIEW_COMPANY_ITEMS = [item for item in COMPANY_ITEMS
                         if item[1] not in ('companySize', 'employeeCount', 'businessScope')]


def build_document_context(business_info: Optional[Mapping[str, Any]] = None,
                           financial_summary: Optional[Mapping[str, Any]] = None,
                           credit_info: Optional[Mapping[str, Any]] = None,
                           narratives: Optional[Mapping[str, Any]] = None,
                           report_title: str = None,
                           report_format: str = 'docx',
                           **extra) -> Dict[str, Any]:
    """Assemble a fresh flat context for one generation call."""
    context = {}
    for source, fields in ((business_info, COMPANY_FIELDS),
                           (financial_summary, FINANCIAL_FIELDS),
                           (credit_info, CREDIT_FIELDS),
                           (narratives, TEXT_FIELDS)):
        for name in fields:
            if source and source.get(name) is not None:
                context[name] = source[name]

    context.update({k: v for k, v in extra.items() if v is not None})
    context['reportTitle'] = report_title or DEFAULT_REPORT_TITLE
    context['reportFormat'] = report_format
    return context


def field_text(context: Mapping[str, Any], name: str) -> str:
    """Display text for a context field, '' when absent or blank"""
    value = context.get(name)
    if is_blank(value):
        return ''
    return to_display_text(value).strip()


def build_preview(context: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Preview-ready summary: sections of label/value items, then narratives."""
    preview = []
    for title, items in (('企业基本信息', PREVIEW_COMPANY_ITEMS),
                         ('财务数据', FINANCIAL_ITEMS),
                         ('授信信息', CREDIT_ITEMS)):
        rows = []
        for label, name, unit in items:
            text = field_text(context, name)
            if text:
                if unit and unit != '%':
                    text = f"{text} {unit}"
                elif unit:
                    text = f"{text}{unit}"
                rows.append({'label': label, 'value': text})
        preview.append({'title': title, 'items': rows})

    for name, heading in TEXT_SECTIONS:
        text = field_text(context, name)
        if text:
            preview.append({'title': heading.split('、', 1)[1], 'content': text})
    return preview
