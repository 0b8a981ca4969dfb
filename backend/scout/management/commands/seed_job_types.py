from django.core.management.base import BaseCommand

from scout.models import JobType

# Inserted in this order; prompts list job types by creation time.
DEFAULT_JOB_TYPES = [
    ('営業職', '相手の懐に臆さず飛び込み、多くの人との関係の輪を広げていく'),
    ('サービス職', 'その場の状況や相手に応じて臨機応変に対応し、相手の期待に応えていく'),
    ('企画職', '自ら現場に問いを投げ、何が求められているのかを考え抜き、必要な施策を起案する'),
    ('事務職', '物事を曖昧なままにすることなく、細かなことも素早く着実に推進する'),
    ('技術職', '物事を極める集中力に長け、向上心を持って新たなスキルや知識を磨き続ける'),
    ('研究職', '一つの物事を継続的に考え抜くと共に、様々な角度から見つめられる視野の広さを持つ'),
]


class Command(BaseCommand):
    help = "Load the default job-type definitions. Existing names are left untouched unless --overwrite."

    def add_arguments(self, parser):
        parser.add_argument('--overwrite', action='store_true', help='Replace definitions of existing job types')

    def handle(self, *args, **options):
        created_count = 0
        updated_count = 0
        for name, definition in DEFAULT_JOB_TYPES:
            job_type, created = JobType.objects.get_or_create(name=name, defaults={'definition': definition})
            if created:
                created_count += 1
            elif options['overwrite'] and job_type.definition != definition:
                job_type.definition = definition
                job_type.save(update_fields=['definition', 'updated_at'])
                updated_count += 1

        self.stdout.write(self.style.SUCCESS(
            f"Job types seeded: created={created_count} updated={updated_count}"
        ))
