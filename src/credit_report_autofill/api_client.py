"""
Clients for the two external services the report workflow relies on:
- a DeepSeek-compatible chat completion API that writes the narrative sections
- a SiliconFlow vision model that transcribes business license images
"""

import base64
import json
import logging
import re
import time
from typing import Any, Dict, List, Mapping, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from .config import ServiceSettings
from .errors import CollaboratorError, ConfigurationError
from .report_fields import TEXT_FIELDS

logger = logging.getLogger(__name__)

_RETRYABLE = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)
_JSON_SPAN = re.compile(r'\{[\s\S]*\}')

REPORT_WRITER_PROMPT = """你是一个专业的银行授信报告撰写助手。请根据提供的企业信息和财务数据，撰写专业、客观、符合银行授信报告规范的内容。
注意：
1. 使用专业的银行术语
2. 数据引用准确
3. 分析要有逻辑性
4. 结论要客观谨慎
5. 只返回正文内容，不要包含标题"""

TEMPLATE_ANALYSIS_PROMPT = """你是一个专业的银行授信报告分析助手。你的任务是分析给定的授信报告模板文本，识别其中需要填写的字段和位置。

请分析模板内容，返回一个JSON对象，包含以下结构：
{
    "fields": [
        {
            "name": "字段名称（英文，如companyName）",
            "label": "字段标签（中文，如企业名称）",
            "type": "字段类型（text/date/number/textarea）",
            "category": "分类（company/financial/credit/text）",
            "context": "在模板中出现的上下文位置描述"
        }
    ],
    "sections": [
        {
            "name": "章节名称（英文）",
            "label": "章节标题（中文）",
            "type": "章节类型（overview/analysis/risk/conclusion）"
        }
    ]
}

请确保：
1. 识别所有需要填写的数据字段（企业信息、财务数据、授信信息等）
2. 识别所有需要撰写的文本章节
3. 字段名使用驼峰命名法
4. 返回纯JSON，不要包含其他文本"""

FIELD_PROMPTS = {
    'basicSituation': '请根据以下企业信息，撰写一段关于企业基本情况的描述（约300字），包括企业历史沿革、组织架构、股权结构、主营业务等：',
    'controllerSituation': '请根据以下信息，撰写一段关于实际控制人情况的描述（约200字）：',
    'businessStatus': '请根据以下企业信息和财务数据，撰写一段关于企业经营状况的分析（约300字）：',
    'marketAnalysis': '请根据以下企业信息，撰写一段关于行业和市场分析的内容（约250字）：',
    'financialOverview': '请根据以下财务数据，撰写一段财务状况概述（约300字），分析资产负债结构、盈利能力、偿债能力等：',
    'financialIndicators': '请根据以下财务指标数据，撰写关键财务指标分析（约250字）：',
    'creditRisk': '请根据以下企业信息和财务数据，分析信用风险（约200字）：',
    'marketRisk': '请根据以下企业和行业信息，分析市场风险（约200字）：',
    'overallEvaluation': '请根据以下所有信息，撰写对该企业的总体评价（约300字）：',
    'creditSuggestion': '请根据以下信息，提出具体的授信建议（约250字），包括授信额度、期限、利率、担保方式等建议：',
}
DEFAULT_FIELD_PROMPT = '请根据以下信息撰写相关内容：'

OCR_PROMPT = ('请仔细识别图片中的所有文字内容，提取企业工商信息。请以JSON格式返回以下字段（如有）：'
              'companyName(企业名称), creditCode(统一社会信用代码), legalRep(法定代表人), '
              'registeredCapital(注册资本), establishDate(成立日期), industry(所属行业), '
              'registeredAddress(注册地址), businessScope(经营范围), companyType(企业类型), '
              'employeeCount(员工人数), companySize(企业规模)。如果某个字段在图片中找不到，请设为null。')


@retry(stop=stop_after_attempt(3), wait=wait_random_exponential(min=1, max=10),
       retry=retry_if_exception_type(_RETRYABLE), reraise=True)
def _post_json(url: str, api_key: str, payload: Dict[str, Any], timeout: int) -> requests.Response:
    return requests.post(
        url,
        headers={'Content-Type': 'application/json', 'Authorization': f'Bearer {api_key}'},
        json=payload,
        timeout=timeout,
    )


def _error_message(response: requests.Response) -> Optional[str]:
    try:
        error = response.json().get('error')
    except ValueError:
        return None
    if isinstance(error, dict):
        return error.get('message')
    return error if isinstance(error, str) else None


def chat_completion(url: str, api_key: str, payload: Dict[str, Any], timeout: int,
                    service: str) -> str:
    """POST an OpenAI-style chat completion request and return the reply text"""
    try:
        response = _post_json(url, api_key, payload, timeout)
    except requests.exceptions.RequestException as e:
        logger.error(f"{service} request failed: {e}")
        raise CollaboratorError(f"{service} 请求失败: {e}") from e

    if response.status_code != 200:
        message = _error_message(response) or f"API请求失败: {response.status_code}"
        logger.error(f"{service} API error: {response.status_code} - {message}")
        raise CollaboratorError(message, status_code=response.status_code)

    try:
        data = response.json()
    except ValueError as e:
        raise CollaboratorError(f"{service} 返回了无法解析的响应") from e

    choices = data.get('choices') or [{}]
    return (choices[0].get('message') or {}).get('content') or ''


def describe_context(context: Mapping[str, Any]) -> str:
    """Company, financial and credit facts as prompt text"""
    def get(name):
        value = context.get(name)
        return value if value not in (None, '') else '未提供'

    return f"""
企业信息：
- 企业名称：{get('companyName')}
- 成立日期：{get('establishDate')}
- 注册资本：{get('registeredCapital')}
- 所属行业：{get('industry')}
- 企业规模：{get('companySize')}
- 经营范围：{get('businessScope')}

财务数据：
- 资产总额：{get('totalAssetsEnd')} 万元
- 负债总额：{get('totalLiabilitiesEnd')} 万元
- 所有者权益：{get('ownerEquityEnd')} 万元
- 营业收入：{get('revenueCurrent')} 万元
- 净利润：{get('netProfitCurrent')} 万元
- 资产负债率：{get('debtRatioEnd')}%

授信信息：
- 授信类型：{get('creditType')}
- 授信金额：{get('creditAmount')} 万元
- 授信期限：{get('creditPeriod')} 个月
- 授信用途：{get('creditPurpose')}
"""


class LLMClient:
    """Chat completion client used for narrative sections and template analysis"""

    def __init__(self, settings: ServiceSettings = None):
        self.settings = settings or ServiceSettings.from_env()
        self.logger = logging.getLogger(__name__)

    def chat(self, messages: List[Dict[str, Any]], temperature: float = 0.7,
             max_tokens: int = 4096, model: str = None) -> str:
        if not self.settings.deepseek_api_key:
            raise ConfigurationError('DeepSeek API Key 未配置，请在设置中配置')

        payload = {
            'model': model or self.settings.deepseek_model,
            'messages': messages,
            'temperature': temperature,
            'max_tokens': max_tokens,
            'stream': False,
        }
        url = f"{self.settings.deepseek_base_url.rstrip('/')}/chat/completions"
        return chat_completion(url, self.settings.deepseek_api_key, payload,
                               self.settings.request_timeout, 'DeepSeek')

    def analyze_template(self, template_content: str) -> Dict[str, Any]:
        """Ask the model which fields and sections a template expects (optional metadata)"""
        messages = [
            {'role': 'system', 'content': TEMPLATE_ANALYSIS_PROMPT},
            {'role': 'user', 'content': f"请分析以下授信报告模板：\n\n{template_content}"},
        ]
        response = self.chat(messages, temperature=0.3)
        match = _JSON_SPAN.search(response)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                pass
        raise CollaboratorError('无法解析模板分析结果')

    def generate_content(self, field_name: str, context: Mapping[str, Any]) -> str:
        base_prompt = FIELD_PROMPTS.get(field_name, DEFAULT_FIELD_PROMPT)
        messages = [
            {'role': 'system', 'content': REPORT_WRITER_PROMPT},
            {'role': 'user', 'content': f"{base_prompt}\n{describe_context(context)}"},
        ]
        return self.chat(messages, temperature=0.7).strip()

    def generate_all_content(self, context: Mapping[str, Any], fields: List[str] = None,
                             delay: float = 0.5) -> Dict[str, str]:
        """
        Generate every narrative field one after another.
        A field that fails is logged and left empty; the others still run.
        """
        results = {}
        for field_name in (TEXT_FIELDS if fields is None else fields):
            try:
                results[field_name] = self.generate_content(field_name, context)
                self.logger.info(f"Generated {field_name} ({len(results[field_name])} chars)")
            except (CollaboratorError, ConfigurationError) as e:
                self.logger.error(f"Error generating {field_name}: {e}")
                results[field_name] = ''
            if delay:
                time.sleep(delay)
        return results


class OCRClient:
    """Vision model client that reads business license images"""

    def __init__(self, settings: ServiceSettings = None):
        self.settings = settings or ServiceSettings.from_env()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def to_data_url(image: bytes, mime_type: str = 'image/jpeg') -> str:
        return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"

    def recognize(self, image, mime_type: str = 'image/jpeg') -> str:
        """Return the model's transcript; expected to contain a JSON object of fields"""
        if not self.settings.siliconflow_api_key:
            raise ConfigurationError('SiliconFlow API Key 未配置，请在设置中配置')

        if isinstance(image, str):
            image_url = image if image.startswith('data:') else f"data:{mime_type};base64,{image}"
        else:
            image_url = self.to_data_url(image, mime_type)

        payload = {
            'model': self.settings.ocr_model,
            'messages': [{
                'role': 'user',
                'content': [
                    {'type': 'image_url', 'image_url': {'url': image_url}},
                    {'type': 'text', 'text': OCR_PROMPT},
                ],
            }],
            'max_tokens': 4096,
        }
        url = f"{self.settings.siliconflow_base_url.rstrip('/')}/chat/completions"
        text = chat_completion(url, self.settings.siliconflow_api_key, payload,
                               self.settings.request_timeout, 'SiliconFlow OCR')
        self.logger.info(f"OCR returned {len(text)} characters")
        return text
