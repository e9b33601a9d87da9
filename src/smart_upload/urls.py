"""URL routing for Smart Upload intake and review."""

from django.urls import path
from . import views

urlpatterns = [
    path("uploads/", views.UploadView.as_view(), name="smart-upload-create"),
    path("uploads/review/", views.ReviewListView.as_view(), name="smart-upload-review-list"),
    path("uploads/review/bulk-approve/", views.BulkApproveView.as_view(), name="smart-upload-bulk-approve"),
    path("uploads/review/<uuid:session_id>/approve/", views.ApproveView.as_view(), name="smart-upload-approve"),
    path("uploads/review/<uuid:session_id>/reject/", views.RejectView.as_view(), name="smart-upload-reject"),
    path("uploads/review/<uuid:session_id>/preview/", views.PreviewView.as_view(), name="smart-upload-preview"),
    path(
        "uploads/review/<uuid:session_id>/part-preview/",
        views.PartPreviewView.as_view(),
        name="smart-upload-part-preview",
    ),
    path("uploads/second-pass/", views.SecondPassView.as_view(), name="smart-upload-second-pass"),
]
