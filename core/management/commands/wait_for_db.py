"""
Block until the database accepts connections.

Usage:
    python manage.py wait_for_db
    python manage.py wait_for_db --attempts 30 --delay 2
"""
import time

from django.core.management.base import BaseCommand, CommandError
from django.db import OperationalError, connections


class Command(BaseCommand):
    help = 'Wait for the default database to become available (connect with retry)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--attempts',
            type=int,
            default=10,
            help='Number of connection attempts (default: 10)',
        )
        parser.add_argument(
            '--delay',
            type=float,
            default=3.0,
            help='Seconds between attempts (default: 3)',
        )

    def handle(self, *args, **options):
        attempts = options['attempts']
        delay = options['delay']
        connection = connections['default']

        for attempt in range(1, attempts + 1):
            try:
                connection.ensure_connection()
            except OperationalError as e:
                self.stdout.write(
                    self.style.WARNING(f'Database unavailable (attempt {attempt}/{attempts}): {e}')
                )
                if attempt < attempts:
                    time.sleep(delay)
                continue
            self.stdout.write(self.style.SUCCESS('Database available'))
            return

        raise CommandError(f'Database still unavailable after {attempts} attempts')
