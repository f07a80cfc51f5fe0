"""
Configuration constants for the courtplan scheduling core.
All configurable settings are defined here.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Redis connection URL for the Celery broker/backend
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

LOG_LEVEL = os.getenv("COURTPLAN_LOG_LEVEL", "INFO")

# Default soft-objective weights (each in [0.0, 1.0])
DEFAULT_WEIGHTS = {
    "skill_balance": 0.5,
    "seed_balance": 0.3,
    "teammate_repetition": 0.6,
    "opponent_repetition": 0.8,
    "sit_out_equity": 0.7,
    "rest_variance": 0.5,
    "court_utilization": 0.3,
    "gender_balance": 0.4,
}

# Annealing defaults
INITIAL_TEMPERATURE = float(os.getenv("COURTPLAN_INITIAL_TEMPERATURE", "1.0"))
COOLING_STRATEGY = os.getenv("COURTPLAN_COOLING_STRATEGY", "exponential")
COOLING_RATE = float(os.getenv("COURTPLAN_COOLING_RATE", "0.995"))
MIN_TEMPERATURE = 1e-6  # Floor that absorbs temperature underflow
MAX_ITERATIONS = int(os.getenv("COURTPLAN_MAX_ITERATIONS", "5000"))
PLATEAU_WINDOW = int(os.getenv("COURTPLAN_PLATEAU_WINDOW", "1000"))
PROGRESS_INTERVAL = int(os.getenv("COURTPLAN_PROGRESS_INTERVAL", "100"))

# Neighbor generation
NEIGHBOR_RETRIES = 8

# Adaptive cooling: acceptance ratio bounds outside of which cooling speeds up
ADAPTIVE_WINDOW = 50
ADAPTIVE_HIGH_ACCEPTANCE = 0.8
ADAPTIVE_LOW_ACCEPTANCE = 0.05

# Polling interval for external cancellation checks (seconds)
CANCEL_POLL_SECONDS = 1.0

# Celery task limits
TASK_TIME_LIMIT_SECONDS = 600  # 10 minutes max
TASK_SOFT_TIME_LIMIT_SECONDS = 540
