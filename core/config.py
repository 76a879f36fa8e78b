"""Application configuration.

Values are read from the environment (optionally populated from a `.env`
file). Policy numbers such as review thresholds live with the services that
own them.
"""

import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# In production point READ_DATABASE_URL at a replica; by default both engines share one file.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///macro_programs.db")
READ_DATABASE_URL = os.getenv("READ_DATABASE_URL", DATABASE_URL)

AI_API_KEY = os.getenv("AI_API_KEY") or os.getenv("GEMINI_API_KEY")
AI_BASE_URL = os.getenv("AI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/")
AI_MODEL = os.getenv("AI_MODEL", "gemini-2.0-flash")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))

# Shared secret for operator-only endpoints; unset disables them.
OPERATOR_TOKEN = os.getenv("OPERATOR_TOKEN")
