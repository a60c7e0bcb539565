"""
main.py

Development server for the Sharelink backend.

Notes:
  - Redis is the primary metadata store; without it the local fallback is used
  - API v1 endpoints available at /api/v1/ with Swagger docs at /api/v1/docs
  - Uses application factory pattern for better testability
"""

import os

from sharelink.app_factory import create_app

app = create_app()

if __name__ == "__main__":
    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", 8000))
    debug = os.getenv("FLASK_DEBUG", "false").lower() == "true"
    # The reloader would start the background timers twice
    app.run(host=host, port=port, debug=debug, use_reloader=False)
