import os

# ----- Database -----
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./roombook.db")

# ----- Auth / JWT -----
SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_THIS_SECRET_IN_REAL_DEPLOYMENT")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# ----- HTTP -----
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "100"))

# ----- Logging -----
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ----- Notifications -----
NOTIFY_BREAKER_FAIL_MAX = int(os.getenv("NOTIFY_BREAKER_FAIL_MAX", "3"))
NOTIFY_BREAKER_RESET_TIMEOUT = int(os.getenv("NOTIFY_BREAKER_RESET_TIMEOUT", "60"))
