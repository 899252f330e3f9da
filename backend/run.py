#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Uses the SQLite database from DATABASE_URL (default ./coursebook.db), which
the app creates on startup. Meetings fall back to the fake client unless
Google service account credentials are configured.
"""
import os
from pathlib import Path

import uvicorn

backend_dir = Path(__file__).parent
os.chdir(backend_dir)

if __name__ == "__main__":
    print("Starting Coursebook development server")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run("coursebook.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
