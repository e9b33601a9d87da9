"""
API views for Smart Upload intake and review.

Mutating endpoints answer {"success": true, ...} or
{"success": false, "error": <code>, "message": <text>}.
"""

import logging
import uuid

from rest_framework import status
from rest_framework.parsers import MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from src.api.permissions import CanCreateCatalogEntries, CanReviewUploads
from src.library.fingerprints import content_hash
from src.tools.storage import StorageError, upload_file
from . import review
from .analysis import original_key
from .duplicates import duplicate_payload
from .exceptions import (
    DependencyError,
    PartNotFound,
    PreviewError,
    SessionNotFound,
    SessionStateError,
    SmartUploadError,
)
from .models import UploadSession
from .serializers import (
    ApproveSerializer,
    BulkApproveSerializer,
    PartPreviewQuerySerializer,
    PreviewQuerySerializer,
    RejectSerializer,
    ReviewListQuerySerializer,
    SecondPassSerializer,
    UploadIntakeSerializer,
    UploadSessionSerializer,
)
from .tasks import process_upload

logger = logging.getLogger(__name__)


def validation_error(errors) -> Response:
    return Response(
        {"success": False, "error": "validation_error", "message": "Invalid request", "details": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def error_response(exc: SmartUploadError) -> Response:
    """Map a pipeline error to its HTTP status."""
    if isinstance(exc, (SessionNotFound, PartNotFound)):
        http_status = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, SessionStateError):
        http_status = status.HTTP_409_CONFLICT
    elif isinstance(exc, PreviewError):
        http_status = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, DependencyError):
        http_status = status.HTTP_502_BAD_GATEWAY
    else:
        http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    body = {"success": False, "error": exc.code, "message": str(exc)}
    if isinstance(exc, SessionStateError) and exc.current_status:
        body["current_status"] = exc.current_status
    return Response(body, status=http_status)


class UploadView(APIView):
    """POST /api/uploads/ — store a PDF and queue analysis."""

    permission_classes = [CanCreateCatalogEntries]
    parser_classes = [MultiPartParser]

    def post(self, request):
        serializer = UploadIntakeSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer.errors)

        upload = serializer.validated_data["file"]
        session_id = uuid.uuid4()
        data = upload.read()

        try:
            key = upload_file(
                original_key(session_id, upload.name),
                data,
                content_type="application/pdf",
                metadata={"session_id": str(session_id), "uploaded_by": request.user.username},
            )
        except StorageError as e:
            logger.exception(f"Failed to store upload {upload.name}: {e}")
            return error_response(DependencyError("Could not store upload"))

        session = UploadSession.objects.create(
            id=session_id,
            file_name=upload.name,
            file_size=upload.size,
            mime_type="application/pdf",
            storage_key=key,
            source_sha256=content_hash(data),
            temp_files=[key],
            uploaded_by=request.user,
        )
        session.duplicate_check = duplicate_payload(session)
        if session.duplicate_check:
            session.save(update_fields=["duplicate_check", "updated_at"])

        try:
            process_upload.delay(str(session.id))
        except Exception as e:
            # Session stays pending with nothing parsed; a second pass can recover it
            logger.warning(f"Could not queue analysis for session {session.id}: {e}")
            session.parse_status = UploadSession.ParseStatus.PARSE_FAILED
            session.second_pass_status = UploadSession.SecondPassStatus.QUEUED
            session.parse_error = "Could not queue analysis"
            session.save(update_fields=["parse_status", "second_pass_status", "parse_error", "updated_at"])

        return Response(
            {"success": True, "session": UploadSessionSerializer(session).data},
            status=status.HTTP_202_ACCEPTED,
        )


class ReviewListView(APIView):
    """GET /api/uploads/review/?status= — sessions plus counts per status."""

    permission_classes = [CanReviewUploads]

    def get(self, request):
        query = ReviewListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return validation_error(query.errors)

        sessions = review.list_sessions(query.validated_data["status"])
        return Response({
            "sessions": UploadSessionSerializer(sessions, many=True).data,
            "stats": review.session_stats(),
        })


class ApproveView(APIView):
    """POST /api/uploads/review/{id}/approve/ — commit with reviewer overrides."""

    permission_classes = [CanCreateCatalogEntries]

    def post(self, request, session_id):
        serializer = ApproveSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer.errors)

        try:
            result = review.approve_session(session_id, serializer.to_overrides(), request.user)
        except SmartUploadError as e:
            return error_response(e)
        except Exception as e:
            logger.exception(f"Approve failed for session {session_id}: {e}")
            return Response(
                {"success": False, "error": "commit_failed", "message": "Failed to commit upload"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response({
            "success": True,
            "piece_id": result.piece_id,
            "piece_title": result.piece_title,
            "file_id": result.file_id,
            "parts_committed": result.parts_committed,
            "duplicate": result.duplicate.model_dump() if result.duplicate else None,
        })


class RejectView(APIView):
    """POST /api/uploads/review/{id}/reject/ — close without committing."""

    permission_classes = [CanCreateCatalogEntries]

    def post(self, request, session_id):
        serializer = RejectSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer.errors)

        try:
            session = review.reject_session(session_id, serializer.validated_data["reason"], request.user)
        except SmartUploadError as e:
            return error_response(e)

        return Response({"success": True, "session": UploadSessionSerializer(session).data})


class BulkApproveView(APIView):
    """POST /api/uploads/review/bulk-approve/ — approve many, one outcome each."""

    permission_classes = [CanCreateCatalogEntries]

    def post(self, request):
        serializer = BulkApproveSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer.errors)

        summary = review.bulk_approve(serializer.validated_data["session_ids"], request.user)
        return Response({"success": True, **summary})


class SecondPassView(APIView):
    """POST /api/uploads/second-pass/ — re-run analysis synchronously."""

    permission_classes = [CanCreateCatalogEntries]

    def post(self, request):
        serializer = SecondPassSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer.errors)

        try:
            session = review.trigger_second_pass(serializer.validated_data["session_id"], request.user)
        except SmartUploadError as e:
            return error_response(e)

        return Response({"success": True, "session": UploadSessionSerializer(session).data})


class PreviewView(APIView):
    """GET /api/uploads/review/{id}/preview/?page= — render a page of the original."""

    permission_classes = [CanReviewUploads]

    def get(self, request, session_id):
        query = PreviewQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return validation_error(query.errors)

        try:
            preview = review.render_session_page(session_id, query.validated_data["page"])
        except SmartUploadError as e:
            return error_response(e)
        return Response(preview)


class PartPreviewView(APIView):
    """GET /api/uploads/review/{id}/part-preview/?part_storage_key=&page= — render a part page."""

    permission_classes = [CanReviewUploads]

    def get(self, request, session_id):
        params = request.query_params.copy()
        if "part_storage_key" not in params and "partStorageKey" in params:
            params["part_storage_key"] = params["partStorageKey"]

        query = PartPreviewQuerySerializer(data=params)
        if not query.is_valid():
            return validation_error(query.errors)

        try:
            preview = review.render_part_page(
                session_id, query.validated_data["part_storage_key"], query.validated_data["page"]
            )
        except SmartUploadError as e:
            return error_response(e)
        return Response(preview)
