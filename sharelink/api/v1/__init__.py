"""
API v1 - Sharelink REST API

Versioned file-sharing endpoints with OpenAPI/Swagger documentation.
"""

import os

from flask import Blueprint
from flask_restx import Api

API_VERSION = os.getenv("API_VERSION", "v1")

api_v1_bp = Blueprint("api_v1", __name__, url_prefix=f"/api/{API_VERSION}")

api = Api(
    api_v1_bp,
    version="1.0",
    title="Sharelink API",
    description="Ephemeral file sharing: upload a file, share the link, it expires on its own",
    doc="/docs",
    license="MIT",
)

# Imported after api is created to avoid circular imports
from .namespaces import files_ns  # noqa: E402

api.add_namespace(files_ns, path="/files")
