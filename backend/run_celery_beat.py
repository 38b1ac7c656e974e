#!/usr/bin/env python3
# backend/run_celery_beat.py
"""
Development Celery beat runner (daily reminders, optional expiry sweep).
"""
from pathlib import Path
import subprocess
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

if __name__ == "__main__":
    print("Starting Celery beat for spa_booking tasks")
    cmd = [sys.executable, "-m", "celery", "-A", "spa_booking.tasks.celery_app", "beat", "--loglevel=info"]
    subprocess.run(cmd, cwd=backend_dir)
