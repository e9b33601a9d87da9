"""
Temporary storage reconciliation.

Only keys outside the final set are ever deleted. Each delete is attempted on
its own so one failure never stops the rest, and failures are only logged.
"""

import logging

from src.library.models import CatalogFile
from src.tools.storage import StorageError, delete_file
from .models import UploadSession
from .schemas import CleanupReport

logger = logging.getLogger(__name__)


def delete_orphaned_files(session_id, temp_keys, final_keys, protected_keys=()) -> CleanupReport:
    """
    Delete every temp key that is not final.

    Args:
        session_id: For log context
        temp_keys: Keys written while processing the session
        final_keys: Keys referenced by committed catalog files
        protected_keys: Extra keys that must survive (the original upload)

    Returns:
        CleanupReport listing deleted, failed and kept keys
    """
    keep = set(final_keys) | {k for k in protected_keys if k}
    report = CleanupReport()

    for key in dict.fromkeys(temp_keys or []):
        if not key:
            continue
        if key in keep:
            report.kept.append(key)
            continue
        try:
            delete_file(key)
            report.deleted.append(key)
        except StorageError as e:
            logger.warning(f"Session {session_id}: could not delete orphaned file {key}: {e}")
            report.failed.append(key)
        except Exception as e:
            logger.exception(f"Session {session_id}: unexpected error deleting {key}: {e}")
            report.failed.append(key)

    if report.deleted or report.failed:
        logger.info(
            f"Session {session_id}: cleanup deleted {len(report.deleted)}, "
            f"failed {len(report.failed)}, kept {len(report.kept)}"
        )
    return report


def committed_keys(session: UploadSession) -> set[str]:
    """Storage keys of catalog files created from this session."""
    return set(
        CatalogFile.objects.filter(original_upload=session).values_list("storage_key", flat=True)
    )


def reconcile_session_storage(session: UploadSession, dry_run: bool = False) -> CleanupReport:
    """
    Re-run cleanup for a terminal session whose temp files were left behind.

    The final set is rebuilt from the catalog, so this is safe after a crash
    between commit and cleanup. Pending sessions are skipped. temp_files is
    narrowed to the keys that could not be deleted.
    """
    if session.is_pending:
        return CleanupReport(kept=list(session.temp_files or []))

    final = committed_keys(session)
    if dry_run:
        keep = final | {session.storage_key}
        return CleanupReport(
            deleted=[k for k in session.temp_files or [] if k not in keep],
            kept=[k for k in session.temp_files or [] if k in keep],
        )

    report = delete_orphaned_files(
        session.id, session.temp_files, final, protected_keys=[session.storage_key]
    )
    session.temp_files = report.failed
    session.save(update_fields=["temp_files", "updated_at"])
    return report
