# app/common/management/commands/expire_idle_users.py
from django.conf import settings
from django.core.management.base import BaseCommand

from app.users.services import expire_idle_users


class Command(BaseCommand):
    help = "Mark idle users offline and drop them from the waiting queue"

    def add_arguments(self, parser):
        parser.add_argument(
            "--idle-seconds",
            type=int,
            default=None,
            help="heartbeat 없이 이 시간(초)이 지나면 오프라인 처리",
        )

    def handle(self, *args, **options):
        idle_seconds = options["idle_seconds"] or settings.CHAT_IDLE_TIMEOUT_SEC
        count = expire_idle_users(idle_seconds)
        self.stdout.write(
            self.style.SUCCESS(f"expired {count} idle users (idle > {idle_seconds}s)")
        )
