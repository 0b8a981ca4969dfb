"""
Generation gateway: submits an assembled prompt to the text-generation
provider and translates its answer and failures.

The provider class is configured with ``SCOUT_GENERATION_PROVIDER``; exactly
one provider call is made per generate request and nothing is retried.
"""
import logging
from dataclasses import dataclass

import requests
from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

from scout.audit import record_generation
from scout.exceptions import (
    GenerationFailed,
    ProviderOverloaded,
    ProviderRateLimited,
    ProviderServerError,
)
from scout.models import UsageLog
from scout.pricing import PricingTable
from scout.prompts import (
    GenerationSnapshot,
    build_scout_prompt,
    load_job_type_definitions,
    resolve_reference,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = '2023-06-01'


@dataclass(frozen=True)
class GenerationResult:
    text: str
    input_tokens: int
    output_tokens: int
    model: str = ''

    @property
    def total_tokens(self):
        return self.input_tokens + self.output_tokens


class GenerationProvider:
    def generate(self, system_prompt: str, user_prompt: str, *, model: str, max_tokens: int) -> GenerationResult:
        raise NotImplementedError


def error_for_status(status_code, message=''):
    """Map a provider HTTP status to the API error raised to the caller."""
    if status_code == 529:
        return ProviderOverloaded(provider_status=status_code)
    if status_code == 429:
        return ProviderRateLimited(provider_status=status_code)
    if status_code >= 500:
        return ProviderServerError(provider_status=status_code)
    return GenerationFailed(provider_status=status_code, detail_message=message or f'HTTP {status_code}')


class ClaudeProvider(GenerationProvider):
    """Anthropic Messages API over plain HTTP."""

    def __init__(self, api_key=None, api_url=None, timeout=None):
        self.api_key = api_key if api_key is not None else settings.CLAUDE_API_KEY
        self.api_url = api_url or settings.CLAUDE_API_URL
        self.timeout = timeout or settings.CLAUDE_TIMEOUT

    def generate(self, system_prompt, user_prompt, *, model, max_tokens):
        if not self.api_key:
            raise GenerationFailed(detail_message='CLAUDE_API_KEY is not configured.')
        payload = {
            'model': model,
            'max_tokens': max_tokens,
            'system': system_prompt,
            'messages': [
                {'role': 'user', 'content': user_prompt},
            ],
        }
        headers = {
            'x-api-key': self.api_key,
            'anthropic-version': ANTHROPIC_VERSION,
            'content-type': 'application/json',
        }
        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error('Claude API request failed: %s', exc)
            raise GenerationFailed(detail_message=str(exc)) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error('Claude API returned %s: %s', response.status_code, message)
            raise error_for_status(response.status_code, message)

        try:
            data = response.json()
        except ValueError as exc:
            logger.error('Claude API returned a non-JSON body')
            raise GenerationFailed(detail_message='Malformed provider response.') from exc

        return parse_message(data, default_model=model)


def _error_message(response):
    try:
        body = response.json()
    except ValueError:
        return (response.text or '')[:500]
    error = body.get('error') if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get('message') or error.get('type') or '')
    return ''


def parse_message(data, default_model=''):
    """Extract text and usage counters from a Messages API body.

    Only the first content block is read; a non-text block yields ``""``.
    """
    if not isinstance(data, dict):
        raise GenerationFailed(detail_message='Malformed provider response.')
    content = data.get('content') or []
    text = ''
    if content and isinstance(content[0], dict) and content[0].get('type') == 'text':
        text = content[0].get('text') or ''
    usage = data.get('usage') or {}
    return GenerationResult(
        text=text,
        input_tokens=int(usage.get('input_tokens') or 0),
        output_tokens=int(usage.get('output_tokens') or 0),
        model=data.get('model') or default_model,
    )


def get_provider() -> GenerationProvider:
    provider_cls = import_string(settings.SCOUT_GENERATION_PROVIDER)
    return provider_cls()


def call_provider(system_prompt, user_prompt):
    provider = get_provider()
    try:
        return provider.generate(
            system_prompt,
            user_prompt,
            model=settings.CLAUDE_MODEL,
            max_tokens=settings.CLAUDE_MAX_TOKENS,
        )
    except (ProviderOverloaded, ProviderRateLimited, ProviderServerError, GenerationFailed):
        raise
    except Exception as exc:
        logger.exception('Generation provider raised an unexpected error')
        raise GenerationFailed(detail_message=str(exc)) from exc


def record_usage(user, result, pricing=None):
    pricing = pricing or PricingTable.from_settings()
    try:
        with transaction.atomic():
            return UsageLog.objects.create(
                user=user,
                model=result.model or '',
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
                total_tokens=result.total_tokens,
                total_cost=pricing.cost(result.input_tokens, result.output_tokens),
            )
    except Exception:
        logger.exception("Failed to record usage for user_id=%s", getattr(user, 'id', None))
        return None


def generate_scout_comment(user, reference, inputs):
    """Resolve references, build the prompt, call the provider once and
    record usage and history. Returns the GenerationResult.
    """
    resolved = resolve_reference(reference)
    job_type = resolved.job_type
    prompt = build_scout_prompt(
        load_job_type_definitions(),
        (job_type.name, job_type.definition),
        resolved.output_rule.rule_text,
        inputs,
    )

    result = call_provider(prompt.system_prompt, prompt.user_prompt)
    logger.info(
        "Generated scout comment user_id=%s job_type=%s input_tokens=%s output_tokens=%s",
        user.id, job_type.name, result.input_tokens, result.output_tokens
    )

    record_usage(user, result)
    snapshot = GenerationSnapshot(
        job_type=job_type.name,
        industry=inputs.industry,
        company_requirement=inputs.company_requirement,
        student_profile=inputs.student_profile,
        output_rule_name=resolved.output_rule.name,
        template_name=resolved.template.name if resolved.template else '',
    )
    record_generation(user, snapshot, result.text)
    return result
