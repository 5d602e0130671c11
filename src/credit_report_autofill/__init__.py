"""
Credit Report Autofill

This package extracts financial statement figures and business license data and
fills them into Word credit investigation report templates.
"""

from .document_filler import DOCX_CONTENT_TYPE, DocumentFiller
from .financial_extractor import FinancialStatementExtractor
from .financial_summary import get_financial_summary, parse_financial_files
from .session import ReportSession
from .template_analyzer import TemplateAnalyzer

__version__ = '0.1.0'
__all__ = ['DOCX_CONTENT_TYPE', 'DocumentFiller', 'FinancialStatementExtractor',
           'get_financial_summary', 'parse_financial_files', 'ReportSession', 'TemplateAnalyzer']
