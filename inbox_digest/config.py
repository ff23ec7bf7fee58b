"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"
MOCK_INBOX_PATH = DATA_DIR / "inbox.json"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'inbox_digest.db'}")

# OpenAI (read by pydantic-ai's OpenAI provider)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

# Logging
LOG_DIR = OUTPUT_DIR / "logs"
LOG_FILE = LOG_DIR / "app.jsonl"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

# Ensure log directory exists
LOG_DIR.mkdir(parents=True, exist_ok=True)

# OpenTelemetry
TRACING_ENABLED = os.getenv("TRACING_ENABLED", "false").lower() == "true"
OTLP_TRACES_ENDPOINT = os.getenv("OTLP_TRACES_ENDPOINT", "http://localhost:4318/v1/traces")
OTLP_API_KEY = os.getenv("OTLP_API_KEY", "")
SERVICE_NAME = os.getenv("SERVICE_NAME", "inbox-digest")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "development")

# Google OAuth / Gmail
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_TOKEN_URL = os.getenv("GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token")
GMAIL_API_BASE_URL = os.getenv(
    "GMAIL_API_BASE_URL",
    "https://gmail.googleapis.com/gmail/v1/users/me",
).rstrip("/")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# Tokens are treated as expired this many seconds before their real expiry
TOKEN_EXPIRY_BUFFER_SECONDS = int(os.getenv("TOKEN_EXPIRY_BUFFER_SECONDS", "300"))

# Message retrieval
INITIAL_SETUP_DAYS = int(os.getenv("INITIAL_SETUP_DAYS", "2"))
FETCH_PAGE_SIZE = int(os.getenv("FETCH_PAGE_SIZE", "100"))
FETCH_MAX_PAGES = int(os.getenv("FETCH_MAX_PAGES", "20"))
FETCH_MAX_RESULTS = int(os.getenv("FETCH_MAX_RESULTS", "500"))
FETCH_BATCH_SIZE = int(os.getenv("FETCH_BATCH_SIZE", "20"))
# Upper bound on in-flight detail requests; the only rate-limiting knob
FETCH_MAX_CONCURRENCY = int(os.getenv("FETCH_MAX_CONCURRENCY", "10"))

# Summarization
SUMMARIZER_AGENT_ID = os.getenv("SUMMARIZER_AGENT_ID", "digest_summarizer")
PROMPT_CONTENT_MAX_CHARS = int(os.getenv("PROMPT_CONTENT_MAX_CHARS", "1000"))
PREVIEW_CHARS = int(os.getenv("PREVIEW_CHARS", "200"))

# Orchestration: 0 disables the per-account deadline
ACCOUNT_TIMEOUT_SECONDS = float(os.getenv("ACCOUNT_TIMEOUT_SECONDS", "0"))

# Notifications: SMTP
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", "") or SMTP_USER
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "Inbox Digest")

# Notifications: Twilio WhatsApp
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_WHATSAPP_FROM = os.getenv("TWILIO_WHATSAPP_FROM", "")
TWILIO_API_BASE_URL = os.getenv("TWILIO_API_BASE_URL", "https://api.twilio.com/2010-04-01").rstrip("/")
