"""
Template CRUD, visibility, duplication and assignment.
"""
import re
from unittest.mock import patch

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from scout.models import Template, TemplateAssignment
from scout.tests.fixtures import (
    JobTypeFactory,
    OutputRuleFactory,
    TeamMemberFactory,
    TemplateFactory,
    UserFactory,
)


@pytest.mark.django_db
class TestTemplateCrud:
    def setup_method(self):
        self.client = APIClient()
        self.manager = UserFactory(role='manager')
        self.client.force_authenticate(user=self.manager)
        self.job_type = JobTypeFactory(name='企画職')
        self.rule = OutputRuleFactory()
        self.payload = {
            'template_name': '企画職向け',
            'job_type_id': self.job_type.id,
            'industry': '広告',
            'company_requirement': '発想力, 実行力',
            'offer_template': '【】という姿勢に惹かれました。',
            'output_rule_id': self.rule.id,
        }

    def test_create_then_read_round_trip(self):
        response = self.client.post(reverse('scout:templates'), self.payload, format='json')
        assert response.status_code == 201
        template_id = response.data['id']

        detail = self.client.get(reverse('scout:template-detail', kwargs={'template_id': template_id}))
        assert detail.status_code == 200
        for key, value in self.payload.items():
            assert detail.data[key] == value
        assert detail.data['job_type'] == '企画職'

    def test_creator_without_unscoped_is_assigned(self):
        response = self.client.post(reverse('scout:templates'), self.payload, format='json')
        template = Template.objects.get(pk=response.data['id'])
        assert list(template.assigned_users.all()) == [self.manager]

    def test_duplicate_name_is_conflict(self):
        TemplateFactory(name='企画職向け')
        response = self.client.post(reverse('scout:templates'), self.payload, format='json')
        assert response.status_code == 409
        assert Template.objects.filter(name='企画職向け').count() == 1

    def test_unknown_job_type_is_rejected(self):
        payload = {**self.payload, 'job_type_id': self.job_type.id + 100}
        response = self.client.post(reverse('scout:templates'), payload, format='json')
        assert response.status_code == 400
        assert 'job_type_id' in response.data['error']['details']

    def test_update_template(self):
        template = TemplateFactory()
        TemplateAssignment.objects.create(template=template, user=self.manager)
        url = reverse('scout:template-detail', kwargs={'template_id': template.id})
        response = self.client.put(url, {'industry': '金融'}, format='json')
        assert response.status_code == 200
        template.refresh_from_db()
        assert template.industry == '金融'

    def test_delete_missing_is_404_every_time(self):
        template = TemplateFactory()
        TemplateAssignment.objects.create(template=template, user=self.manager)
        url = reverse('scout:template-detail', kwargs={'template_id': template.id})
        assert self.client.delete(url).status_code == 200
        assert self.client.delete(url).status_code == 404
        assert self.client.delete(url).status_code == 404

    def test_deleting_job_type_keeps_template(self):
        template = TemplateFactory(job_type=self.job_type)
        self.job_type.delete()
        template.refresh_from_db()
        assert template.job_type is None

    def test_plain_user_cannot_create(self):
        self.client.force_authenticate(user=UserFactory())
        response = self.client.post(reverse('scout:templates'), self.payload, format='json')
        assert response.status_code == 403


@pytest.mark.django_db
class TestTemplateVisibility:
    def setup_method(self):
        self.client = APIClient()
        self.user = UserFactory()
        self.client.force_authenticate(user=self.user)

    def test_user_sees_direct_and_team_assignments_only(self):
        direct = TemplateFactory(name='direct')
        via_team = TemplateFactory(name='team')
        TemplateFactory(name='hidden')
        TemplateAssignment.objects.create(template=direct, user=self.user)
        membership = TeamMemberFactory(user=self.user)
        membership.team.templates.add(via_team)

        response = self.client.get(reverse('scout:templates'))
        assert response.status_code == 200
        assert {row['template_name'] for row in response.data} == {'direct', 'team'}

    def test_hidden_template_is_404(self):
        hidden = TemplateFactory()
        url = reverse('scout:template-detail', kwargs={'template_id': hidden.id})
        assert self.client.get(url).status_code == 404

    def test_admin_sees_everything(self):
        TemplateFactory.create_batch(3)
        self.client.force_authenticate(user=UserFactory(role='admin'))
        response = self.client.get(reverse('scout:templates'))
        assert len(response.data) == 3


@pytest.mark.django_db
class TestTemplateDuplication:
    def setup_method(self):
        self.client = APIClient()
        self.admin = UserFactory(role='admin')
        self.alice = UserFactory()
        self.bob = UserFactory()
        self.source = TemplateFactory(name='元テンプレート', industry='物流')
        TemplateAssignment.objects.create(template=self.source, user=self.alice)
        TemplateAssignment.objects.create(template=self.source, user=self.bob)
        self.url = reverse('scout:template-duplicate', kwargs={'template_id': self.source.id})

    def test_admin_copy_carries_all_assignments(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self.url, {}, format='json')
        assert response.status_code == 201
        assert re.fullmatch(r'元テンプレート_\d{14}', response.data['template_name'])

        copy = Template.objects.get(pk=response.data['id'])
        assert copy.industry == '物流'
        assert copy.job_type_id == self.source.job_type_id
        assert copy.output_rule_id == self.source.output_rule_id
        assert set(copy.assigned_users.all()) == {self.alice, self.bob}

    def test_user_copy_is_assigned_only_to_caller(self):
        self.client.force_authenticate(user=self.alice)
        response = self.client.post(self.url, {'template_name': 'わたしのコピー'}, format='json')
        assert response.status_code == 201
        copy = Template.objects.get(name='わたしのコピー')
        assert list(copy.assigned_users.all()) == [self.alice]

    def test_name_clash_is_conflict(self):
        TemplateFactory(name='既存')
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self.url, {'template_name': '既存'}, format='json')
        assert response.status_code == 409

    def test_failure_while_copying_assignments_rolls_back(self):
        self.client.force_authenticate(user=self.admin)
        before = Template.objects.count()
        with patch.object(TemplateAssignment.objects, 'bulk_create', side_effect=RuntimeError('write failed')):
            response = self.client.post(self.url, {'template_name': 'コピー'}, format='json')
        assert response.status_code == 500
        assert response.data['error']['code'] == 'internal_server_error'
        assert Template.objects.count() == before
        assert not Template.objects.filter(name='コピー').exists()

    def test_cannot_duplicate_invisible_template(self):
        outsider = UserFactory()
        self.client.force_authenticate(user=outsider)
        assert self.client.post(self.url, {}, format='json').status_code == 404


@pytest.mark.django_db
class TestTemplateAssignments:
    def setup_method(self):
        self.client = APIClient()
        self.client.force_authenticate(user=UserFactory(role='admin'))
        self.template = TemplateFactory()

    def test_replace_and_list_users(self):
        first, second = UserFactory(), UserFactory()
        assign_url = reverse('scout:template-assign-users', kwargs={'template_id': self.template.id})
        response = self.client.put(assign_url, {'user_ids': [first.id, second.id]}, format='json')
        assert response.status_code == 200

        response = self.client.put(assign_url, {'user_ids': [second.id]}, format='json')
        assert response.status_code == 200

        users_url = reverse('scout:template-users', kwargs={'template_id': self.template.id})
        listed = self.client.get(users_url)
        assert [row['id'] for row in listed.data] == [second.id]

    def test_unknown_user_is_rejected(self):
        assign_url = reverse('scout:template-assign-users', kwargs={'template_id': self.template.id})
        response = self.client.put(assign_url, {'user_ids': [99999]}, format='json')
        assert response.status_code == 400
        assert TemplateAssignment.objects.count() == 0
