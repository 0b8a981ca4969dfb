"""
Read-only audit endpoints for managers and admins, plus usage statistics
and the generation-history CSV export.
"""
import csv
import io
import logging
from decimal import Decimal

from django.db.models import Count, Sum
from django.db.models.functions import TruncMonth
from django.http import HttpResponse
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from scout import policies
from scout.models import ActivityLog, GenerationHistory, LoginLog, UsageLog
from scout.permissions import requires
from scout.serializers import ActivityLogSerializer, GenerationHistorySerializer, LoginLogSerializer

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500
USAGE_MONTHS = 12

CSV_HEADER = [
    'ID', 'ユーザー名', 'テンプレート名', '職種', '業種', '企業が望むこと',
    '出力ルール', '学生のプロフィール', '生成コメント', '作成日時',
]


def _limit(request):
    try:
        value = int(request.query_params.get('limit', DEFAULT_LIMIT))
    except (TypeError, ValueError):
        value = DEFAULT_LIMIT
    return max(1, min(value, MAX_LIMIT))


def _filtered(request, queryset):
    queryset = policies.scope_user_rows(request, queryset)
    user_id = request.query_params.get('user_id')
    if user_id:
        try:
            queryset = queryset.filter(user_id=int(user_id))
        except ValueError:
            return queryset.none()
    return queryset[:_limit(request)]


@api_view(['GET'])
@permission_classes([requires(policies.VIEW_AUDIT)])
def login_logs(request):
    qs = _filtered(request, LoginLog.objects.order_by('-login_at', '-id'))
    return Response(LoginLogSerializer(qs, many=True).data)


@api_view(['GET'])
@permission_classes([requires(policies.VIEW_AUDIT)])
def activity_logs(request):
    qs = ActivityLog.objects.order_by('-created_at', '-id')
    action = request.query_params.get('action')
    if action:
        qs = qs.filter(action=action)
    return Response(ActivityLogSerializer(_filtered(request, qs), many=True).data)


@api_view(['GET'])
@permission_classes([requires(policies.VIEW_AUDIT)])
def generation_history(request):
    qs = _filtered(request, GenerationHistory.objects.order_by('-created_at', '-id'))
    return Response(GenerationHistorySerializer(qs, many=True).data)


def _money(value):
    return float(value or Decimal('0'))


@api_view(['GET'])
@permission_classes([requires(policies.VIEW_USAGE)])
def usage_stats(request):
    """Totals across all usage rows and per-month buckets, newest first."""
    totals = UsageLog.objects.aggregate(
        total_requests=Count('id'),
        total_tokens=Sum('total_tokens'),
        total_cost=Sum('total_cost'),
    )
    monthly_rows = (
        UsageLog.objects.annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(requests=Count('id'), tokens=Sum('total_tokens'), cost=Sum('total_cost'))
        .order_by('-month')[:USAGE_MONTHS]
    )
    monthly = [
        {
            'month': row['month'].strftime('%Y-%m'),
            'requests': row['requests'],
            'tokens': row['tokens'] or 0,
            'cost': _money(row['cost']),
        }
        for row in monthly_rows
    ]
    return Response({
        'total': {
            'total_requests': totals['total_requests'] or 0,
            'total_tokens': totals['total_tokens'] or 0,
            'total_cost': _money(totals['total_cost']),
        },
        'monthly': monthly,
    })


def render_history_csv(rows):
    """Header plus one record per row, UTF-8 with a byte-order mark."""
    buffer = io.StringIO()
    buffer.write('\ufeff')
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator='\r\n')
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([
            row.id,
            row.username,
            row.template_name,
            row.job_type,
            row.industry,
            row.company_requirement,
            row.output_rule_name,
            row.student_profile,
            row.generated_comment,
            timezone.localtime(row.created_at).strftime('%Y-%m-%d %H:%M:%S'),
        ])
    return buffer.getvalue()


@api_view(['GET'])
@permission_classes([requires(policies.EXPORT_HISTORY)])
def download_generation_history_csv(request):
    rows = policies.scope_user_rows(request, GenerationHistory.objects.order_by('-created_at', '-id'))
    body = render_history_csv(rows.iterator())
    filename = f"generation_history_{timezone.localdate().strftime('%Y%m%d')}.csv"
    response = HttpResponse(body.encode('utf-8'), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    logger.info("Exported generation history CSV user_id=%s", request.user.id)
    return response
