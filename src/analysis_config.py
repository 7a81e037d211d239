"""Runtime settings loaded from .env"""

import os

from dotenv import load_dotenv

load_dotenv()

# Correlation gating
MIN_SAMPLES = int(os.getenv("WELLBEING_MIN_SAMPLES", "5"))
MATRIX_MIN_SAMPLES = int(os.getenv("WELLBEING_MATRIX_MIN_SAMPLES", "10"))

# Logging
LOG_LEVEL = os.getenv("WELLBEING_LOG_LEVEL", "INFO").upper()
