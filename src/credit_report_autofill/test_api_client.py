from unittest import mock

import pytest
import requests

from credit_report_autofill import api_client
from credit_report_autofill.api_client import LLMClient, OCRClient, describe_context
from credit_report_autofill.config import ServiceSettings
from credit_report_autofill.errors import CollaboratorError, ConfigurationError


@pytest.fixture
def settings():
    return ServiceSettings(deepseek_api_key='sk-deepseek', siliconflow_api_key='sk-silicon')


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    monkeypatch.setattr(api_client._post_json.retry, 'sleep', lambda seconds: None)


def _response(status_code=200, payload=None):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


def _completion(content):
    return _response(payload={'choices': [{'message': {'role': 'assistant', 'content': content}}]})


def test_chat_posts_to_deepseek(settings):
    with mock.patch('credit_report_autofill.api_client.requests.post',
                    return_value=_completion('你好')) as post:
        reply = LLMClient(settings).chat([{'role': 'user', 'content': 'hi'}], temperature=0.3)

    assert reply == '你好'
    args, kwargs = post.call_args
    assert args[0] == 'https://api.deepseek.com/chat/completions'
    assert kwargs['headers']['Authorization'] == 'Bearer sk-deepseek'
    assert kwargs['json']['model'] == 'deepseek-chat'
    assert kwargs['json']['temperature'] == 0.3
    assert kwargs['json']['max_tokens'] == 4096


def test_chat_requires_api_key():
    with mock.patch('credit_report_autofill.api_client.requests.post') as post:
        with pytest.raises(ConfigurationError):
            LLMClient(ServiceSettings()).chat([{'role': 'user', 'content': 'hi'}])
    post.assert_not_called()


def test_error_status_raises_collaborator_error(settings):
    response = _response(401, {'error': {'message': 'Authentication Fails'}})
    with mock.patch('credit_report_autofill.api_client.requests.post', return_value=response):
        with pytest.raises(CollaboratorError) as excinfo:
            LLMClient(settings).chat([{'role': 'user', 'content': 'hi'}])

    assert excinfo.value.status_code == 401
    assert 'Authentication Fails' in str(excinfo.value)


def test_connection_errors_are_retried(settings):
    with mock.patch('credit_report_autofill.api_client.requests.post',
                    side_effect=requests.exceptions.ConnectionError('refused')) as post:
        with pytest.raises(CollaboratorError):
            LLMClient(settings).chat([{'role': 'user', 'content': 'hi'}])
    assert post.call_count == 3


def test_timeout_then_success(settings):
    with mock.patch('credit_report_autofill.api_client.requests.post',
                    side_effect=[requests.exceptions.Timeout('slow'), _completion('ok')]) as post:
        assert LLMClient(settings).chat([{'role': 'user', 'content': 'hi'}]) == 'ok'
    assert post.call_count == 2


def test_analyze_template(settings):
    content = '分析结果：{"fields": [{"name": "companyName"}], "sections": []}'
    with mock.patch('credit_report_autofill.api_client.requests.post', return_value=_completion(content)):
        result = LLMClient(settings).analyze_template('企业名称：____')
    assert result['fields'][0]['name'] == 'companyName'


def test_analyze_template_without_json(settings):
    with mock.patch('credit_report_autofill.api_client.requests.post', return_value=_completion('无法分析')):
        with pytest.raises(CollaboratorError):
            LLMClient(settings).analyze_template('模板')


def test_describe_context_marks_missing_values():
    text = describe_context({'companyName': '测试科技有限公司', 'creditAmount': 500})
    assert '企业名称：测试科技有限公司' in text
    assert '授信金额：500 万元' in text
    assert '成立日期：未提供' in text


def test_generate_content_prompt(settings):
    with mock.patch('credit_report_autofill.api_client.requests.post',
                    return_value=_completion('  授信建议正文  ')) as post:
        text = LLMClient(settings).generate_content('creditSuggestion', {'companyName': '测试科技有限公司'})

    assert text == '授信建议正文'
    messages = post.call_args.kwargs['json']['messages']
    assert messages[0]['role'] == 'system'
    assert messages[1]['content'].startswith(api_client.FIELD_PROMPTS['creditSuggestion'])


def test_generate_all_content_isolates_failures(settings):
    client = LLMClient(settings)
    with mock.patch.object(client, 'generate_content',
                           side_effect=[CollaboratorError('boom'), '第二段']) as generate:
        results = client.generate_all_content({}, fields=['basicSituation', 'creditRisk'], delay=0)

    assert results == {'basicSituation': '', 'creditRisk': '第二段'}
    assert generate.call_count == 2


def test_ocr_recognize(settings):
    with mock.patch('credit_report_autofill.api_client.requests.post',
                    return_value=_completion('{"companyName": "测试科技有限公司"}')) as post:
        text = OCRClient(settings).recognize(b'img', mime_type='image/png')

    assert 'companyName' in text
    args, kwargs = post.call_args
    assert args[0] == 'https://api.siliconflow.cn/v1/chat/completions'
    assert kwargs['headers']['Authorization'] == 'Bearer sk-silicon'
    payload = kwargs['json']
    assert payload['model'] == 'Qwen/Qwen3-VL-8B-Instruct'
    image_part, text_part = payload['messages'][0]['content']
    assert image_part['image_url']['url'] == 'data:image/png;base64,aW1n'
    assert text_part['text'] == api_client.OCR_PROMPT


def test_ocr_requires_api_key():
    with pytest.raises(ConfigurationError):
        OCRClient(ServiceSettings()).recognize(b'img')


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv('DEEPSEEK_API_KEY', 'sk-env')
    monkeypatch.setenv('REQUEST_TIMEOUT', '15')
    monkeypatch.delenv('OCR_MODEL', raising=False)
    settings = ServiceSettings.from_env()
    assert settings.deepseek_api_key == 'sk-env'
    assert settings.request_timeout == 15
    assert settings.ocr_model == 'Qwen/Qwen3-VL-8B-Instruct'
