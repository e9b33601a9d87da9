"""Delete temp files left behind by decided upload sessions."""

import logging
import uuid

from django.core.management.base import BaseCommand, CommandError

from src.smart_upload.cleanup import reconcile_session_storage
from src.smart_upload.models import UploadSession

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = (
        "Reconcile temporary storage for approved and rejected upload sessions. "
        "Keys referenced by catalog files and original uploads are never deleted."
    )

    def add_arguments(self, parser):
        parser.add_argument("--session", help="Only reconcile this session id")
        parser.add_argument("--dry-run", action="store_true", help="Report what would be deleted")

    def handle(self, *args, **options):
        sessions = UploadSession.objects.exclude(status=UploadSession.Status.PENDING_REVIEW)
        if options["session"]:
            try:
                session_id = uuid.UUID(options["session"])
            except ValueError:
                raise CommandError(f"Invalid session id: {options['session']}")
            sessions = sessions.filter(id=session_id)

        deleted = failed = 0
        for session in sessions.iterator():
            if not session.temp_files:
                continue
            report = reconcile_session_storage(session, dry_run=options["dry_run"])
            deleted += len(report.deleted)
            failed += len(report.failed)
            for key in report.deleted:
                verb = "Would delete" if options["dry_run"] else "Deleted"
                self.stdout.write(f"{verb} {key} (session {session.id})")

        summary = f"{deleted} orphaned files {'to delete' if options['dry_run'] else 'deleted'}, {failed} failed"
        logger.info(summary)
        self.stdout.write(self.style.SUCCESS(summary))
