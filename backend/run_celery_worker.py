#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Development Celery worker runner for booking reminders and sweeps.
"""
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

if __name__ == "__main__":
    print("Starting Celery worker for spa_booking tasks")
    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "spa_booking.tasks.celery_app",
        "worker",
        "--loglevel=info",
        "--concurrency=2",
    ]
    subprocess.run(cmd, cwd=backend_dir)
