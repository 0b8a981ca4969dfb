"""
URL configuration for the scout API.
"""
from django.urls import path

from scout import admin_views, team_views, views

app_name = 'scout'

urlpatterns = [
    path('health', views.health, name='health'),

    # Authentication
    path('auth/login', views.login, name='login'),
    path('auth/me', views.me, name='me'),

    # Users
    path('users', views.users, name='users'),
    path('users/<int:user_id>', views.user_detail, name='user-detail'),

    # Configuration
    path('job-types', views.job_types, name='job-types'),
    path('job-types/<int:job_type_id>', views.job_type_detail, name='job-type-detail'),
    path('output-rules', views.output_rules, name='output-rules'),
    path('output-rules/<int:rule_id>', views.output_rule_detail, name='output-rule-detail'),
    path('output-rules/<int:rule_id>/assign-users', views.output_rule_users, name='output-rule-users'),
    path('templates', views.templates, name='templates'),
    path('templates/<int:template_id>', views.template_detail, name='template-detail'),
    path('templates/<int:template_id>/duplicate', views.template_duplicate, name='template-duplicate'),
    path('templates/<int:template_id>/users', views.template_users, name='template-users'),
    path('templates/<int:template_id>/assign-users', views.template_assign_users, name='template-assign-users'),

    # Generation
    path('generate', views.generate, name='generate'),
    path('my-generation-history', views.my_generation_history, name='my-generation-history'),
    path('my-generation-history/<int:history_id>', views.my_generation_history_detail, name='my-generation-history-detail'),

    # Admin / manager audit
    path('admin/login-logs', admin_views.login_logs, name='admin-login-logs'),
    path('admin/activity-logs', admin_views.activity_logs, name='admin-activity-logs'),
    path('admin/generation-history', admin_views.generation_history, name='admin-generation-history'),
    path(
        'admin/generation-history/download-csv',
        admin_views.download_generation_history_csv,
        name='admin-generation-history-csv',
    ),
    path('admin/usage-stats', admin_views.usage_stats, name='admin-usage-stats'),

    # Teams
    path('admin/teams', team_views.teams, name='teams'),
    path('admin/teams/<int:team_id>', team_views.team_detail, name='team-detail'),
    path('admin/teams/<int:team_id>/members', team_views.team_members, name='team-members'),
    path('admin/teams/<int:team_id>/members/<int:user_id>', team_views.team_member_detail, name='team-member-detail'),
    path('admin/teams/<int:team_id>/templates', team_views.team_templates, name='team-templates'),
    path('admin/teams/<int:team_id>/output-rules', team_views.team_output_rules, name='team-output-rules'),
]
