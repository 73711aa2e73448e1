# config.py
import os
from dotenv import load_dotenv

load_dotenv()

# SQLite by default so the API runs without extra setup
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./labs.db")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Undo/redo snapshots kept by the authoring history
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "50"))

# Learner notes are cut at this many characters
MAX_NOTES_LENGTH = int(os.getenv("MAX_NOTES_LENGTH", "20000"))

# Identity-provider user ids that act as admins (comma separated)
ADMIN_USER_IDS = {u.strip() for u in os.getenv("ADMIN_USER_IDS", "").split(",") if u.strip()}

# Forum comments longer than this are rejected
MAX_COMMENT_LENGTH = int(os.getenv("MAX_COMMENT_LENGTH", "4000"))
