from django.contrib import admin

from .models import (
    ActivityLog,
    GenerationHistory,
    JobType,
    LoginLog,
    OutputRule,
    Team,
    TeamMember,
    Template,
    UsageLog,
    UserAccount,
)


@admin.register(UserAccount)
class UserAccountAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'created_at']
    list_filter = ['role']
    search_fields = ['user__username']


# Configuration
@admin.register(JobType)
class JobTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']


@admin.register(OutputRule)
class OutputRuleAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_by', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'rule_text']


@admin.register(Template)
class TemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'job_type', 'industry', 'output_rule', 'created_at']
    search_fields = ['name', 'industry']
    list_select_related = ['job_type', 'output_rule']


class TeamMemberInline(admin.TabularInline):
    model = TeamMember
    extra = 0


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']
    inlines = [TeamMemberInline]
    filter_horizontal = ['templates', 'output_rules']


# Audit trail (read-only)
class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(GenerationHistory)
class GenerationHistoryAdmin(ReadOnlyAdmin):
    list_display = ['username', 'template_name', 'job_type', 'industry', 'created_at']
    search_fields = ['username', 'template_name']


@admin.register(UsageLog)
class UsageLogAdmin(ReadOnlyAdmin):
    list_display = ['user', 'model', 'total_tokens', 'total_cost', 'created_at']


@admin.register(LoginLog)
class LoginLogAdmin(ReadOnlyAdmin):
    list_display = ['username', 'ip_address', 'login_at']
    search_fields = ['username']


@admin.register(ActivityLog)
class ActivityLogAdmin(ReadOnlyAdmin):
    list_display = ['username', 'action', 'created_at']
    list_filter = ['action']
