import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Backend
API_URL = os.environ.get("TASKDESK_API_URL", "http://localhost:8000/api")
REQUEST_TIMEOUT = float(os.environ.get("TASKDESK_TIMEOUT", "15"))

# Persisted client storage (token + user id)
DATABASE_URL = os.environ.get("TASKDESK_DB_URL", f"sqlite:///{BASE_DIR}/taskdesk.db")
CREDENTIAL_KEY = "default"

# Word limits (server enforces the same numbers)
SUBMISSION_WORD_LIMIT = 150
DESCRIPTION_WORD_LIMIT = 100
INSTRUCTIONS_WORD_LIMIT = 200
REMARKS_WORD_LIMIT = 60

# Upload limits per request
MAX_SUBMISSION_FILES = 3
MAX_TASK_ATTACHMENTS = 5
MAX_GROUP_ATTACHMENTS = 5

# Classifier
DUE_SOON_WINDOW = timedelta(days=3)

# Polling (seconds)
SUBMISSION_POLL_INTERVAL = 20.0
GROUP_CHAT_POLL_INTERVAL = 5.0
DASHBOARD_POLL_INTERVAL = 10.0
