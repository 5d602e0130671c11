import json
import logging
import re
from typing import Any, Dict


class BusinessInfoParser:
    """
    Turns an OCR transcript of a business license into a company profile.
    The recognizer is asked for JSON; when it answers in prose instead, the
    labelled lines are picked out with regular expressions.
    """

    JSON_SPAN = re.compile(r'\{[\s\S]*\}')

    FIELD_PATTERNS = [
        ('companyName', re.compile(r'(?:企业名称|公司名称|名称)[：:]\s*([^\n]+)')),
        ('creditCode', re.compile(r'(?:统一社会信用代码|信用代码)[：:]\s*([A-Z0-9]+)', re.IGNORECASE)),
        ('legalRep', re.compile(r'(?:法定代表人|法人代表|负责人)[：:]\s*([^\n]+)')),
        ('registeredCapital', re.compile(r'(?:注册资本|注册资金)[：:]\s*([^\n]+)')),
        ('establishDate', re.compile(r'(?:成立日期|注册日期|成立时间)[：:]\s*(\d{4}[-/年]\d{1,2}[-/月]\d{1,2})')),
        ('registeredAddress', re.compile(r'(?:注册地址|住所|经营场所)[：:]\s*([^\n]+)')),
        ('businessScope', re.compile(r'(?:经营范围)[：:]\s*([^\n]+)')),
        ('industry', re.compile(r'(?:行业|所属行业)[：:]\s*([^\n]+)')),
        ('companyType', re.compile(r'(?:企业类型|公司类型)[：:]\s*([^\n]+)')),
    ]

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse(self, transcript: str) -> Dict[str, Any]:
        """Parse a transcript; a JSON object wins, labelled text is the fallback"""
        if not transcript:
            return {}

        match = self.JSON_SPAN.search(transcript)
        if match:
            try:
                info = json.loads(match.group(0))
                if isinstance(info, dict):
                    return info
            except json.JSONDecodeError as e:
                self.logger.warning(f"Business info is not valid JSON, falling back to text: {e}")

        return self.parse_text(transcript)

    def parse_text(self, text: str) -> Dict[str, Any]:
        info = {}
        for key, pattern in self.FIELD_PATTERNS:
            match = pattern.search(text)
            if match:
                value = match.group(1).strip()
                if value:
                    info[key] = value
        self.logger.info(f"Parsed {len(info)} business info fields from text")
        return info
