from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from apps.core.schools.models import School
from apps.core.schools.services import normalize_school_code
from apps.finance.accounts.backfill import run_backfill


class Command(BaseCommand):
    help = 'Posts historical fee transactions, income and expenses into the ledger, one school at a time.'

    def add_arguments(self, parser):
        target = parser.add_mutually_exclusive_group(required=True)
        target.add_argument('--school', help='Code of the school to backfill.')
        target.add_argument('--all', action='store_true', help='Backfill every active school.')
        parser.add_argument('--batch-size', type=int, default=None, help='Maximum link updates per write batch.')
        parser.add_argument('--posted-by', default=None, help='Username recorded as the poster of new entries.')

    def handle(self, *args, **options):
        posted_by = None
        if options['posted_by']:
            posted_by = get_user_model().objects.filter(username=options['posted_by']).first()
            if posted_by is None:
                raise CommandError(f"Unknown user: {options['posted_by']}")

        if options['batch_size'] is not None and options['batch_size'] < 1:
            raise CommandError('--batch-size must be at least 1.')

        if options['all']:
            schools = School.objects.filter(is_active=True).order_by('code')
        else:
            schools = School.objects.filter(code=normalize_school_code(options['school']))
            if not schools.exists():
                raise CommandError(f"Unknown school code: {options['school']}")

        failed = False
        for school in schools:
            report = run_backfill(school, posted_by=posted_by, batch_limit=options['batch_size'])
            style = self.style.SUCCESS if not report.errors else self.style.WARNING
            self.stdout.write(style(f'[{school.code}] {report.summary}'))
            for error in report.errors:
                self.stdout.write(f'  - {error}')
            failed = failed or bool(report.errors)

        if failed:
            self.stdout.write(self.style.WARNING('Some records were not posted. Fix the reported mappings and re-run.'))
