"""
Test fixtures and factories for creating test data.
Uses factory_boy for consistent test data generation.
"""
import factory
from factory.django import DjangoModelFactory
from django.contrib.auth import get_user_model

from scout.models import (
    GenerationHistory,
    JobType,
    OutputRule,
    Team,
    TeamMember,
    Template,
    UsageLog,
)

User = get_user_model()

DEFAULT_PASSWORD = 'secret123'


class UserFactory(DjangoModelFactory):
    """Factory for users; pass ``role='manager'`` etc. to set the account role."""
    class Meta:
        model = User
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f'user{n}')
    password = factory.django.Password(DEFAULT_PASSWORD)
    is_active = True

    @factory.post_generation
    def role(obj, create, extracted, **kwargs):
        if not create or not extracted:
            return
        # The account row is created by the post_save signal
        account = obj.account
        account.role = extracted
        account.save()


class JobTypeFactory(DjangoModelFactory):
    class Meta:
        model = JobType

    name = factory.Sequence(lambda n: f'職種{n}')
    definition = factory.Sequence(lambda n: f'定義{n}')


class OutputRuleFactory(DjangoModelFactory):
    class Meta:
        model = OutputRule

    name = factory.Sequence(lambda n: f'ルール{n}')
    rule_text = '200文字以内で、です・ます調で書くこと。'
    description = ''
    is_active = True


class TemplateFactory(DjangoModelFactory):
    class Meta:
        model = Template

    name = factory.Sequence(lambda n: f'テンプレート{n}')
    job_type = factory.SubFactory(JobTypeFactory)
    industry = 'IT'
    company_requirement = '主体性のある人'
    offer_template = 'あなたの【】という点に惹かれました。'
    output_rule = factory.SubFactory(OutputRuleFactory)


class TeamFactory(DjangoModelFactory):
    class Meta:
        model = Team

    name = factory.Sequence(lambda n: f'チーム{n}')
    description = ''


class TeamMemberFactory(DjangoModelFactory):
    class Meta:
        model = TeamMember

    team = factory.SubFactory(TeamFactory)
    user = factory.SubFactory(UserFactory)
    is_manager = False


class GenerationHistoryFactory(DjangoModelFactory):
    class Meta:
        model = GenerationHistory

    user = factory.SubFactory(UserFactory)
    username = factory.LazyAttribute(lambda obj: obj.user.username if obj.user else 'deleted')
    template_name = 'テンプレートA'
    job_type = '営業職'
    industry = 'IT'
    company_requirement = '主体性'
    output_rule_name = 'ルールA'
    student_profile = 'サークルの代表を務めました。'
    generated_comment = 'リーダーシップを発揮した経験'


class UsageLogFactory(DjangoModelFactory):
    class Meta:
        model = UsageLog

    user = factory.SubFactory(UserFactory)
    model = 'claude-sonnet-4-20250514'
    input_tokens = 1000
    output_tokens = 500
    total_tokens = 1500
    total_cost = '0.010500'
