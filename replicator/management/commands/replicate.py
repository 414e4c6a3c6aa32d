"""
Management command to replicate one source table into a warehouse
"""

from django.core.management.base import BaseCommand, CommandError

from replicator.config import RunMode
from replicator.connectors import CONNECTORS
from replicator.exceptions import ReplicationError
from replicator.runner import run_replication


class Command(BaseCommand):
    help = 'Replicate a source table into a warehouse: snapshot, then change log (resumable)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--table',
            required=True,
            help='Source table to replicate, as <schema>.<table>',
        )
        parser.add_argument(
            '--mode',
            choices=[m.value for m in RunMode],
            default=RunMode.FULL.value,
            help='Which stages to run (default: full)',
        )
        parser.add_argument(
            '--storage',
            help="Workspace URI (default: REPLICATION_CONFIG['STORAGE_URI'])",
        )
        parser.add_argument(
            '--target',
            choices=sorted(CONNECTORS),
            help="Warehouse type (default: REPLICATION_CONFIG['TARGET'])",
        )
        parser.add_argument(
            '--target-url',
            help="SQLAlchemy URL of the warehouse (default: REPLICATION_CONFIG['TARGET_URL'])",
        )
        parser.add_argument(
            '--target-schema',
            help='Target schema/dataset (default: the source schema name)',
        )

    def handle(self, *args, **options):
        table_name = options['table']
        self.stdout.write(self.style.SUCCESS(f'Replicating {table_name} ({options["mode"]})'))

        try:
            stage = run_replication(
                table_name,
                mode=options['mode'],
                storage_uri=options['storage'],
                target=options['target'],
                target_url=options['target_url'],
                target_schema=options['target_schema'],
            )
        except ValueError as e:
            raise CommandError(str(e)) from e
        except ReplicationError as e:
            message = str(e)
            if e.__cause__ is not None:
                message = f"{message}\nCaused by: {e.__cause__}"
            raise CommandError(f'Replication failed: {message}') from e

        self.stdout.write(self.style.SUCCESS(f'✅ Replication of {table_name} finished (started from {stage.value})'))
