import os
from dataclasses import dataclass


@dataclass
class ServiceSettings:
    """Endpoints and credentials for the OCR and language-generation services"""
    deepseek_api_key: str = ''
    deepseek_base_url: str = 'https://api.deepseek.com'
    deepseek_model: str = 'deepseek-chat'
    siliconflow_api_key: str = ''
    siliconflow_base_url: str = 'https://api.siliconflow.cn/v1'
    ocr_model: str = 'Qwen/Qwen3-VL-8B-Instruct'
    request_timeout: int = 60

    @classmethod
    def from_env(cls) -> 'ServiceSettings':
        defaults = cls()
        return cls(
            deepseek_api_key=os.getenv('DEEPSEEK_API_KEY', ''),
            deepseek_base_url=os.getenv('DEEPSEEK_BASE_URL', defaults.deepseek_base_url),
            deepseek_model=os.getenv('DEEPSEEK_MODEL', defaults.deepseek_model),
            siliconflow_api_key=os.getenv('SILICONFLOW_API_KEY', ''),
            siliconflow_base_url=os.getenv('SILICONFLOW_BASE_URL', defaults.siliconflow_base_url),
            ocr_model=os.getenv('OCR_MODEL', defaults.ocr_model),
            request_timeout=int(os.getenv('REQUEST_TIMEOUT', defaults.request_timeout)),
        )
