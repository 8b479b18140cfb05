#!/usr/bin/env python3
# backend/run.py
"""
Development server runner that uses the test database.
For local development only - forces is_testing=True
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

# Force test database for local development
os.environ["IS_TESTING"] = "true"

import uvicorn

if __name__ == "__main__":
    print("Starting InSkate API with TEST database...")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
