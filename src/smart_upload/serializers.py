"""Request validation and response shapes for the Smart Upload API."""

from rest_framework import serializers

from src.library.models import CatalogPiece
from .models import UploadSession
from .schemas import CommitOverrides, check_part_number


class UploadSessionSerializer(serializers.ModelSerializer):
    uploaded_by = serializers.CharField(source="uploaded_by.username", default=None, read_only=True)
    reviewed_by = serializers.CharField(source="reviewed_by.username", default=None, read_only=True)
    has_gaps = serializers.BooleanField(read_only=True)

    class Meta:
        model = UploadSession
        fields = [
            "id",
            "file_name",
            "file_size",
            "mime_type",
            "storage_key",
            "extracted_metadata",
            "confidence_score",
            "parsed_parts",
            "cutting_instructions",
            "has_gaps",
            "source_sha256",
            "duplicate_check",
            "status",
            "parse_status",
            "second_pass_status",
            "parse_error",
            "auto_approved",
            "uploaded_by",
            "reviewed_by",
            "reviewed_at",
            "rejection_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReviewListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=UploadSession.Status.choices, default=UploadSession.Status.PENDING_REVIEW
    )


class ApproveSerializer(serializers.Serializer):
    """Reviewer overrides; blank optional fields mean "use the extracted value"."""

    title = serializers.CharField(max_length=500, allow_blank=False, trim_whitespace=True)
    composer = serializers.CharField(max_length=300, required=False, allow_blank=True, allow_null=True)
    publisher = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    instrument = serializers.CharField(max_length=150, required=False, allow_blank=True, allow_null=True)
    part_number = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    difficulty = serializers.ChoiceField(
        choices=CatalogPiece.Difficulty.choices, required=False, allow_blank=True, allow_null=True
    )
    ensemble_type = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    key_signature = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    time_signature = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    tempo = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)

    def validate_part_number(self, value):
        try:
            check_part_number(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))
        return value

    def to_overrides(self) -> CommitOverrides:
        return CommitOverrides.model_validate(self.validated_data)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")


class BulkApproveSerializer(serializers.Serializer):
    session_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=100)


class SecondPassSerializer(serializers.Serializer):
    session_id = serializers.UUIDField()


class PreviewQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=0, default=0)


class PartPreviewQuerySerializer(PreviewQuerySerializer):
    part_storage_key = serializers.CharField(max_length=500)


class UploadIntakeSerializer(serializers.Serializer):
    file = serializers.FileField()

    def validate_file(self, value):
        content_type = getattr(value, "content_type", "") or ""
        if content_type != "application/pdf" and not value.name.lower().endswith(".pdf"):
            raise serializers.ValidationError("Only PDF files are accepted")
        return value
