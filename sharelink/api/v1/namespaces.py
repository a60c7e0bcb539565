"""
API Namespaces - Organized endpoint groups
"""

from urllib.parse import quote

from flask import current_app, redirect, request
from flask_restx import Namespace, Resource

from ...application.file_service import FileService
from ...application.upload_service import UploadService
from ...config.settings import ShareConfig
from ...domain.errors import InvalidPasswordError, UnauthorizedError, ValidationError
from ...domain.file_sharing import generate_session_id
from ..errors import handles_errors
from ..rate_limit_decorator import rate_limit
from .models import (
    download_count_response,
    error_response,
    extend_request,
    file_list_response,
    file_response,
    update_request,
    upload_parser,
    upload_response,
    verify_password_request,
    verify_password_response,
)

SESSION_HEADER = "X-Session-Id"
PASSWORD_HEADER = "X-File-Password"

files_ns = Namespace("files", description="Shared file operations")


def _file_service() -> FileService:
    return current_app.container.resolve(FileService)


def _require_session() -> str:
    session_id = (request.headers.get(SESSION_HEADER) or "").strip()
    if not session_id:
        raise UnauthorizedError(f"Missing {SESSION_HEADER} header")
    return session_id


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _parse_bool(value) -> bool:
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# Files Namespace
# =============================================================================


@files_ns.route("")
class FileCollection(Resource):
    """Upload and list files"""

    @files_ns.doc("upload_file")
    @files_ns.expect(upload_parser)
    @files_ns.response(201, "Created", upload_response)
    @files_ns.response(400, "Invalid upload", error_response)
    @files_ns.response(429, "Rate limited", error_response)
    @files_ns.response(503, "Storage unavailable", error_response)
    @rate_limit("upload")
    @handles_errors
    def post(self):
        """
        Upload a file

        Returns the stored record, the share URL and the owner session id.
        A new session id is issued when the X-Session-Id header is absent.
        """
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            raise ValidationError("Multipart field 'file' is required")

        session_id = (request.headers.get(SESSION_HEADER) or "").strip() or generate_session_id()
        password = request.form.get("password") or None

        upload_service = current_app.container.resolve(UploadService)
        record = upload_service.upload(
            content=upload.read(),
            original_name=upload.filename,
            owner_id=session_id,
            mime_type=upload.mimetype,
            password=password,
            ttl_minutes=request.form.get("ttlMinutes"),
            encrypted=_parse_bool(request.form.get("encrypted")),
        )

        body = _file_service().describe(record, viewer_id=session_id)
        body["sessionId"] = session_id
        return body, 201, {SESSION_HEADER: session_id}

    @files_ns.doc("list_files", params={"ownerId": "Owner session id; must match X-Session-Id"})
    @files_ns.response(200, "Success", file_list_response)
    @files_ns.response(403, "Listing another session", error_response)
    @rate_limit()
    @handles_errors
    def get(self):
        """List the caller's live files, newest first"""
        owner_id = _require_session()
        requested = (request.args.get("ownerId") or "").strip()
        if requested and requested != owner_id:
            raise UnauthorizedError("Files of another session cannot be listed")
        service = _file_service()
        files = [
            service.describe(record, viewer_id=owner_id)
            for record in service.list_files(owner_id)
        ]
        return {"files": files, "count": len(files)}, 200


@files_ns.route("/<string:file_id>")
@files_ns.param("file_id", "The share id")
class FileItem(Resource):
    """Single file operations"""

    @files_ns.doc("get_file")
    @files_ns.response(200, "Success", file_response)
    @files_ns.response(404, "File Not Found", error_response)
    @rate_limit()
    @handles_errors
    def get(self, file_id):
        """Fetch a file's public metadata"""
        service = _file_service()
        viewer_id = (request.headers.get(SESSION_HEADER) or "").strip() or None
        return service.describe(service.get_file(file_id), viewer_id=viewer_id), 200

    @files_ns.doc("update_file")
    @files_ns.expect(update_request)
    @files_ns.response(200, "Updated", file_response)
    @files_ns.response(400, "Invalid fields", error_response)
    @files_ns.response(403, "Not the owner", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @rate_limit()
    @handles_errors
    def patch(self, file_id):
        """Rename a file or change its expiry (owner only)"""
        owner_id = _require_session()
        service = _file_service()
        record = service.update_file(file_id, _json_body(), owner_id)
        return service.describe(record, viewer_id=owner_id), 200

    @files_ns.doc("delete_file")
    @files_ns.response(204, "Deleted")
    @files_ns.response(403, "Not the owner", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @rate_limit()
    @handles_errors
    def delete(self, file_id):
        """Delete a file and its content (owner only)"""
        owner_id = _require_session()
        _file_service().delete_file(file_id, owner_id)
        return "", 204


@files_ns.route("/<string:file_id>/verify-password")
@files_ns.param("file_id", "The share id")
class FilePassword(Resource):
    @files_ns.doc("verify_password")
    @files_ns.expect(verify_password_request)
    @files_ns.response(200, "Password accepted", verify_password_response)
    @files_ns.response(401, "Wrong password", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @rate_limit()
    @handles_errors
    def post(self, file_id):
        """Check a file's download password"""
        secret = _json_body().get("password")
        if not _file_service().verify_password(file_id, secret):
            raise InvalidPasswordError(f"Wrong password for file {file_id}")
        return {"valid": True}, 200


@files_ns.route("/<string:file_id>/downloads")
@files_ns.param("file_id", "The share id")
class FileDownloadCount(Resource):
    @files_ns.doc("increment_download_count")
    @files_ns.response(200, "Counted", download_count_response)
    @files_ns.response(404, "File Not Found", error_response)
    @rate_limit()
    @handles_errors
    def post(self, file_id):
        """Record one download"""
        count = _file_service().record_download(file_id)
        return {"id": file_id, "downloadCount": count}, 200


@files_ns.route("/<string:file_id>/extend")
@files_ns.param("file_id", "The share id")
class FileExtension(Resource):
    @files_ns.doc("extend_file")
    @files_ns.expect(extend_request)
    @files_ns.response(200, "Extended", file_response)
    @files_ns.response(400, "Invalid extension", error_response)
    @files_ns.response(403, "Not the owner", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @rate_limit()
    @handles_errors
    def post(self, file_id):
        """Push a file's expiry back (owner only)"""
        owner_id = _require_session()
        minutes = _json_body().get("minutes")
        if minutes is None:
            raise ValidationError("Field 'minutes' is required")
        service = _file_service()
        record = service.extend_file(file_id, minutes, owner_id)
        return service.describe(record, viewer_id=owner_id), 200


@files_ns.route("/<string:file_id>/download")
@files_ns.param("file_id", "The share id")
class FileDownload(Resource):
    @files_ns.doc("download_file", params={PASSWORD_HEADER: {"in": "header", "description": "File password"}})
    @files_ns.response(302, "Redirect to the file content")
    @files_ns.response(401, "Wrong password", error_response)
    @files_ns.response(404, "File Not Found", error_response)
    @rate_limit()
    @handles_errors
    def get(self, file_id):
        """
        Download a file

        Checks the password gate, counts the download and redirects to the
        stored content.
        """
        record = _file_service().prepare_download(file_id, request.headers.get(PASSWORD_HEADER))
        target = record.url
        config = current_app.container.resolve(ShareConfig)
        local_prefix = f"{config.public_base_url.rstrip('/')}/blobs/"
        if target.startswith(local_prefix):
            target = f"{target}?name={quote(record.original_name)}"
        return redirect(target, code=302)
