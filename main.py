"""
Production entrypoint for the PropertyFlow API.

Serves the property-file workflow API (files, users, master data,
notifications, audit and stats) on 0.0.0.0:$PORT. The record store comes
from DATABASE_URL and bearer tokens are signed with TOKEN_SECRET. When
ADMIN_EMAIL and ADMIN_PASSWORD are set and no admin exists yet, the first
admin account is created on startup.

Use run.py for local development with auto-reload.
"""

import os
import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting PropertyFlow on port {port}")

    # Import app here to ensure clean module loading
    from web.app import app

    uvicorn.run(app, host="0.0.0.0", port=port)
