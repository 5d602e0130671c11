"""
Report session - holds everything loaded for one report until it is cleared:
the template, the parsed financial statements and the business profile.
Each generation call builds its own context and works on a copy of the template.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .business_info_parser import BusinessInfoParser
from .document_filler import DocumentFiller
from .errors import DocumentGenerationError
from .financial_extractor import FinancialStatementExtractor
from .financial_summary import FileInput, FinancialDataset, get_financial_summary, parse_financial_files
from .report_fields import build_document_context, build_preview
from .template_analyzer import TemplateAnalysis, TemplateAnalyzer


class ReportSession:

    def __init__(self, extractor: FinancialStatementExtractor = None,
                 filler: DocumentFiller = None):
        self.logger = logging.getLogger(__name__)
        self.extractor = extractor or FinancialStatementExtractor()
        self.filler = filler or DocumentFiller()
        self.analyzer = TemplateAnalyzer()
        self.business_parser = BusinessInfoParser()
        self.clear()

    def clear(self):
        """Forget every loaded input"""
        self.template: Optional[bytes] = None
        self.template_name: Optional[str] = None
        self.template_analysis: Optional[TemplateAnalysis] = None
        self.financial_data = FinancialDataset()
        self.business_info: Dict[str, Any] = {}

    def load_template(self, package: bytes, name: str = None) -> TemplateAnalysis:
        analysis = self.analyzer.parse_word_template(package)
        self.template = bytes(package)
        self.template_name = name
        self.template_analysis = analysis
        return analysis

    def load_financial_files(self, files: Iterable[FileInput]) -> FinancialDataset:
        """Parse statement files; the new batch replaces any previously loaded one"""
        parsed = parse_financial_files(files, self.extractor)
        self.financial_data = parsed

        self.logger.info(f"Loaded {len(parsed.balance_sheet)} statement files "
                         f"({len(parsed.errors)} failed)")
        return parsed

    def load_business_info_text(self, transcript: str) -> Dict[str, Any]:
        self.business_info = self.business_parser.parse(transcript)
        return self.business_info

    def load_business_license(self, image: bytes, ocr_client, mime_type: str = 'image/jpeg') -> Dict[str, Any]:
        """Recognize a license image and parse the transcript"""
        transcript = ocr_client.recognize(image, mime_type=mime_type)
        return self.load_business_info_text(transcript)

    def financial_summary(self) -> Dict[str, Any]:
        if self.financial_data.is_empty:
            return {}
        return get_financial_summary(self.financial_data)

    def build_context(self, credit_info: Mapping[str, Any] = None,
                      narratives: Mapping[str, Any] = None,
                      report_title: str = None,
                      business_overrides: Mapping[str, Any] = None,
                      financial_overrides: Mapping[str, Any] = None,
                      **extra) -> Dict[str, Any]:
        """Fresh document context from the session data; overrides win over parsed values"""
        business_info = {**self.business_info, **(business_overrides or {})}
        financial = {**self.financial_summary(), **(financial_overrides or {})}
        return build_document_context(business_info, financial, credit_info, narratives,
                                      report_title=report_title, **extra)

    def generate_report(self, context: Mapping[str, Any], today: date = None) -> bytes:
        if not self.template:
            raise DocumentGenerationError('模板文件未加载，请重新上传模板')
        return self.filler.generate_document(self.template, context, today)

    def preview(self, context: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return build_preview(context)

    @staticmethod
    def report_file_name(context: Mapping[str, Any], today: date = None) -> str:
        today = today or date.today()
        company = str(context.get('companyName') or '').strip() or '企业'
        return f"{company}_授信调查报告_{today.strftime('%Y%m%d')}.docx"
