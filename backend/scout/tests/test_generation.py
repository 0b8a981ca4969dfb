"""
Generation gateway: provider calls, error mapping, usage and history recording.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from django.test import override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from scout.exceptions import (
    GenerationFailed,
    ProviderOverloaded,
    ProviderRateLimited,
    ProviderServerError,
)
from scout.generation import ClaudeProvider, GenerationResult, error_for_status, parse_message
from scout.models import GenerationHistory, UsageLog
from scout.pricing import PricingTable
from scout.tests.fixtures import JobTypeFactory, OutputRuleFactory, TemplateFactory, UserFactory

FAKE_PROVIDER = 'scout.tests.test_generation.FakeProvider'


class FakeProvider:
    calls = []
    result = GenerationResult(text='粘り強さ', input_tokens=1000, output_tokens=500, model='fake-model')
    error = None

    def generate(self, system_prompt, user_prompt, *, model, max_tokens):
        FakeProvider.calls.append({
            'system_prompt': system_prompt,
            'user_prompt': user_prompt,
            'model': model,
            'max_tokens': max_tokens,
        })
        if FakeProvider.error is not None:
            raise FakeProvider.error
        return FakeProvider.result


def _response(status_code, body):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = ''
    return response


class TestPricing:
    def test_reference_cost(self):
        pricing = PricingTable(Decimal('3.00'), Decimal('15.00'))
        assert pricing.cost(1000, 500) == Decimal('0.0105')

    def test_zero_tokens_cost_nothing(self):
        assert PricingTable.from_settings().cost(0, 0) == 0

    @override_settings(SCOUT_PRICING={'input_per_million': '1.00', 'output_per_million': '2.00'})
    def test_rates_from_settings(self):
        assert PricingTable.from_settings().cost(1_000_000, 1_000_000) == Decimal('3.00')


class TestErrorMapping:
    def test_overloaded(self):
        exc = error_for_status(529)
        assert isinstance(exc, ProviderOverloaded)
        assert exc.status_code == 503
        assert exc.provider_status == 529

    def test_rate_limited(self):
        exc = error_for_status(429)
        assert isinstance(exc, ProviderRateLimited)
        assert exc.status_code == 429

    def test_server_error(self):
        exc = error_for_status(500)
        assert isinstance(exc, ProviderServerError)
        assert exc.status_code == 502
        assert exc.provider_status == 500

    def test_other_client_errors_are_generic(self):
        exc = error_for_status(400, 'bad model')
        assert isinstance(exc, GenerationFailed)
        assert exc.status_code == 500
        assert exc.detail_message == 'bad model'


class TestClaudeProvider:
    def setup_method(self):
        self.provider = ClaudeProvider(api_key='test-key', api_url='https://example.test/v1/messages', timeout=5)

    @patch('scout.generation.requests.post')
    def test_sends_system_and_user_prompt(self, mock_post):
        mock_post.return_value = _response(200, {
            'model': 'claude-test',
            'content': [{'type': 'text', 'text': '結果'}],
            'usage': {'input_tokens': 12, 'output_tokens': 3},
        })
        result = self.provider.generate('SYS', 'USER', model='claude-test', max_tokens=1024)

        assert result == GenerationResult(text='結果', input_tokens=12, output_tokens=3, model='claude-test')
        _, kwargs = mock_post.call_args
        assert kwargs['json']['system'] == 'SYS'
        assert kwargs['json']['messages'] == [{'role': 'user', 'content': 'USER'}]
        assert kwargs['json']['max_tokens'] == 1024
        assert kwargs['headers']['x-api-key'] == 'test-key'
        assert kwargs['timeout'] == 5

    @patch('scout.generation.requests.post')
    def test_overloaded_status(self, mock_post):
        mock_post.return_value = _response(529, {'error': {'type': 'overloaded_error', 'message': 'Overloaded'}})
        with pytest.raises(ProviderOverloaded) as excinfo:
            self.provider.generate('s', 'u', model='m', max_tokens=10)
        assert excinfo.value.provider_status == 529

    @patch('scout.generation.requests.post')
    def test_network_failure_is_generation_failed(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('connection refused')
        with pytest.raises(GenerationFailed) as excinfo:
            self.provider.generate('s', 'u', model='m', max_tokens=10)
        assert 'connection refused' in excinfo.value.detail_message

    @patch('scout.generation.requests.post')
    def test_missing_api_key_never_calls_out(self, mock_post):
        provider = ClaudeProvider(api_key='', api_url='https://example.test', timeout=5)
        with pytest.raises(GenerationFailed):
            provider.generate('s', 'u', model='m', max_tokens=10)
        mock_post.assert_not_called()

    def test_non_text_block_yields_empty_text(self):
        result = parse_message({
            'content': [{'type': 'tool_use', 'id': 'x', 'name': 'n', 'input': {}}],
            'usage': {'input_tokens': 5, 'output_tokens': 1},
        }, default_model='m')
        assert result.text == ''
        assert result.input_tokens == 5
        assert result.model == 'm'


@pytest.mark.django_db
class TestGenerateEndpoint:
    @pytest.fixture(autouse=True)
    def fake_provider(self, settings):
        settings.SCOUT_GENERATION_PROVIDER = FAKE_PROVIDER

    def setup_method(self):
        FakeProvider.calls = []
        FakeProvider.error = None
        self.client = APIClient()
        self.user = UserFactory(username='recruiter')
        self.client.force_authenticate(user=self.user)
        self.job_type = JobTypeFactory(name='営業職', definition='関係の輪を広げる')
        self.rule = OutputRuleFactory(name='短文', rule_text='100文字以内')
        self.url = reverse('scout:generate')
        self.payload = {
            'job_type_id': self.job_type.id,
            'industry': '小売',
            'company_requirement': '行動力',
            'offer_template': '【】に惹かれました。',
            'student_profile': '飲食店のアルバイトで売上を伸ばしました。',
            'output_rule_id': self.rule.id,
        }

    def test_success_returns_comment_and_records_usage_and_history(self):
        response = self.client.post(self.url, self.payload, format='json')
        assert response.status_code == 200
        assert response.data['success'] is True
        assert response.data['comment'] == '粘り強さ'
        assert response.data['usage']['total_tokens'] == 1500

        assert len(FakeProvider.calls) == 1
        call = FakeProvider.calls[0]
        assert '【今回の指定職種】\n営業職：関係の輪を広げる' in call['system_prompt']
        assert '100文字以内' in call['system_prompt']
        assert call['max_tokens'] == 1024

        usage = UsageLog.objects.get()
        assert usage.user == self.user
        assert usage.total_tokens == 1500
        assert usage.total_cost == Decimal('0.0105')

        history = GenerationHistory.objects.get()
        assert history.username == 'recruiter'
        assert history.job_type == '営業職'
        assert history.output_rule_name == '短文'
        assert history.generated_comment == '粘り強さ'

    @pytest.mark.parametrize('field', [
        'job_type_id', 'industry', 'company_requirement', 'offer_template', 'student_profile', 'output_rule_id',
    ])
    def test_missing_field_never_reaches_provider(self, field):
        payload = dict(self.payload)
        payload.pop(field)
        response = self.client.post(self.url, payload, format='json')
        assert response.status_code == 400
        assert response.data['error']['code'] == 'validation_error'
        assert FakeProvider.calls == []
        assert GenerationHistory.objects.count() == 0
        assert UsageLog.objects.count() == 0

    def test_blank_profile_is_rejected(self):
        response = self.client.post(self.url, {**self.payload, 'student_profile': ''}, format='json')
        assert response.status_code == 400
        assert FakeProvider.calls == []

    def test_missing_output_rule_is_404(self):
        rule_id = self.rule.id
        self.rule.delete()
        response = self.client.post(self.url, {**self.payload, 'output_rule_id': rule_id}, format='json')
        assert response.status_code == 404
        assert FakeProvider.calls == []
        assert GenerationHistory.objects.count() == 0

    def test_missing_job_type_is_404(self):
        response = self.client.post(self.url, {**self.payload, 'job_type_id': self.job_type.id + 999}, format='json')
        assert response.status_code == 404
        assert FakeProvider.calls == []

    def test_deleted_template_is_404(self):
        template = TemplateFactory(name='新卒営業', job_type=self.job_type, output_rule=self.rule)
        template_id = template.id
        template.delete()
        response = self.client.post(self.url, {**self.payload, 'template_id': template_id}, format='json')
        assert response.status_code == 404
        assert FakeProvider.calls == []
        assert GenerationHistory.objects.count() == 0
        assert UsageLog.objects.count() == 0

    def test_inactive_rule_still_generates(self):
        self.rule.is_active = False
        self.rule.save()
        response = self.client.post(self.url, self.payload, format='json')
        assert response.status_code == 200

    def test_overloaded_provider_maps_to_503(self):
        FakeProvider.error = ProviderOverloaded(provider_status=529)
        response = self.client.post(self.url, self.payload, format='json')
        assert response.status_code == 503
        assert response.data['error']['code'] == 'provider_overloaded'
        assert response.data['error']['provider_status'] == 529
        assert len(FakeProvider.calls) == 1
        assert GenerationHistory.objects.count() == 0
        assert UsageLog.objects.count() == 0

    def test_unexpected_provider_error_is_generation_failed(self):
        FakeProvider.error = ValueError('boom')
        response = self.client.post(self.url, self.payload, format='json')
        assert response.status_code == 500
        assert response.data['error']['code'] == 'generation_failed'
        assert response.data['error']['details']['reason'] == 'boom'

    def test_history_failure_does_not_change_response(self):
        with patch('scout.audit.GenerationHistory') as mock_history:
            mock_history.objects.create.side_effect = RuntimeError('db unavailable')
            response = self.client.post(self.url, self.payload, format='json')
        assert response.status_code == 200
        assert response.data['comment'] == '粘り強さ'
        assert UsageLog.objects.count() == 1

    def test_usage_failure_does_not_change_response(self):
        with patch('scout.generation.UsageLog') as mock_usage:
            mock_usage.objects.create.side_effect = RuntimeError('db unavailable')
            response = self.client.post(self.url, self.payload, format='json')
        assert response.status_code == 200
        assert response.data['comment'] == '粘り強さ'
        assert GenerationHistory.objects.count() == 1

    def test_history_is_a_snapshot(self):
        template = TemplateFactory(name='新卒営業', job_type=self.job_type, output_rule=self.rule)
        self.client.post(self.url, {**self.payload, 'template_id': template.id}, format='json')
        self.job_type.name = '営業職（改）'
        self.job_type.save()
        template.delete()
        self.rule.delete()

        history = GenerationHistory.objects.get()
        assert history.job_type == '営業職'
        assert history.template_name == '新卒営業'
        assert history.output_rule_name == '短文'

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(self.url, self.payload, format='json')
        assert response.status_code == 401
        assert FakeProvider.calls == []


@pytest.mark.django_db
class TestMyGenerationHistory:
    def setup_method(self):
        self.client = APIClient()
        self.user = UserFactory()
        self.other = UserFactory()
        self.client.force_authenticate(user=self.user)

    def test_lists_only_own_rows(self):
        GenerationHistory.objects.create(user=self.user, username=self.user.username, job_type='a', industry='b', student_profile='c')
        GenerationHistory.objects.create(user=self.other, username=self.other.username, job_type='a', industry='b', student_profile='c')
        response = self.client.get(reverse('scout:my-generation-history'))
        assert response.status_code == 200
        assert [row['username'] for row in response.data] == [self.user.username]

    def test_cannot_delete_someone_elses_row(self):
        row = GenerationHistory.objects.create(user=self.other, username=self.other.username, job_type='a', industry='b', student_profile='c')
        url = reverse('scout:my-generation-history-detail', kwargs={'history_id': row.id})
        assert self.client.delete(url).status_code == 404
        assert GenerationHistory.objects.filter(pk=row.pk).exists()

    def test_delete_own_row(self):
        row = GenerationHistory.objects.create(user=self.user, username=self.user.username, job_type='a', industry='b', student_profile='c')
        url = reverse('scout:my-generation-history-detail', kwargs={'history_id': row.id})
        assert self.client.delete(url).status_code == 200
        assert self.client.delete(url).status_code == 404
