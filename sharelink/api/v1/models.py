"""
API Models for request/response validation and Swagger documentation
"""

from flask_restx import fields
from werkzeug.datastructures import FileStorage

from . import api

# =============================================================================
# Request Models
# =============================================================================

upload_parser = api.parser()
upload_parser.add_argument(
    "file", location="files", type=FileStorage, required=True, help="File to share"
)
upload_parser.add_argument(
    "password", location="form", type=str, required=False, help="Optional download password"
)
upload_parser.add_argument(
    "ttlMinutes", location="form", type=int, required=False, help="Link lifetime in minutes"
)
upload_parser.add_argument(
    "encrypted", location="form", type=str, required=False, help="Content is client-side encrypted"
)

update_request = api.model(
    "UpdateFileRequest",
    {
        "originalName": fields.String(description="New display name", example="report-final.pdf"),
        "expiresAt": fields.DateTime(description="New expiry timestamp (ISO8601)"),
    },
)

extend_request = api.model(
    "ExtendFileRequest",
    {
        "minutes": fields.Integer(
            required=True, description="Minutes to add to the current expiry", min=1, example=10
        ),
    },
)

verify_password_request = api.model(
    "VerifyPasswordRequest",
    {
        "password": fields.String(required=True, description="Password to check"),
    },
)

# =============================================================================
# Response Models
# =============================================================================

file_response = api.model(
    "FileRecord",
    {
        "id": fields.String(description="Share id", example="a1b2"),
        "filename": fields.String(description="Storage-side name", example="a1b2.pdf"),
        "originalName": fields.String(description="Display name", example="report.pdf"),
        "size": fields.Integer(description="Size in bytes"),
        "mimeType": fields.String(description="Content type", example="application/pdf"),
        "url": fields.String(description="Blob fetch URL"),
        "uploadedAt": fields.DateTime(description="Upload time"),
        "downloadCount": fields.Integer(description="Number of downloads"),
        "ownerId": fields.String(description="Uploader session id"),
        "expiresAt": fields.DateTime(description="Expiry time", allow_null=True),
        "passwordProtected": fields.Boolean(description="Download requires a password"),
        "encrypted": fields.Boolean(description="Content is client-side encrypted"),
        "shareUrl": fields.String(description="Link to share"),
        "remainingSeconds": fields.Integer(description="Seconds until expiry"),
        "expiringSoon": fields.Boolean(description="Less than a minute left"),
        "timeRemaining": fields.String(description="Remaining time for display", example="4m 59s"),
    },
)

upload_response = api.inherit(
    "UploadResponse",
    file_response,
    {
        "sessionId": fields.String(description="Owner session id to send as X-Session-Id"),
    },
)

file_list_response = api.model(
    "FileList",
    {
        "files": fields.List(fields.Nested(file_response)),
        "count": fields.Integer(description="Number of files"),
    },
)

download_count_response = api.model(
    "DownloadCount",
    {
        "id": fields.String(description="Share id"),
        "downloadCount": fields.Integer(description="Updated download count"),
    },
)

verify_password_response = api.model(
    "VerifyPasswordResponse",
    {
        "valid": fields.Boolean(description="Password matched"),
    },
)

error_response = api.model(
    "Error",
    {
        "error": fields.String(description="Error category", example="file_not_found"),
        "title": fields.String(description="Short title"),
        "message": fields.String(description="User-facing message"),
        "action": fields.String(description="Suggested action"),
    },
)
