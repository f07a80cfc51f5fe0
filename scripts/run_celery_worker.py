"""
Run Celery worker for long-running solve tasks.
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courtplan.core.celery_app import celery_app
from courtplan.core.logging_config import setup_logging

if __name__ == "__main__":
    setup_logging()

    print("=" * 60)
    print("courtplan - Celery Worker")
    print("=" * 60)
    print("Starting Celery worker...")
    print("Worker will process generate_schedule and reoptimize_schedule tasks")
    print("=" * 60)

    # Start Celery worker
    celery_app.worker_main([
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        "--pool=solo" if os.name == "nt" else "--pool=prefork"  # Use solo pool on Windows
    ])
