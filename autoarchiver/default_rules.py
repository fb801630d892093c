# Simple, conservative defaults. Anything here can be overridden by the
# JSON config file or the command line.
DEFAULT_INCLUDE = ["*"]
DEFAULT_EXCLUDE = ["desktop.ini", "thumbs.db", "*.tmp", "*.crdownload", "*.part"]

DEFAULT_ARCHIVE_PATTERNS = [
    "*.zip", "*.7z", "*.rar",
    "*.tar", "*.tar.gz", "*.tgz", "*.tar.bz2", "*.tar.xz",
]
DEFAULT_ARCHIVE_GRACE_MINUTES = 30

DEFAULT_FILE_RULE = {"untouched_days": 14, "age_days": 30, "combine": "and", "age_basis": "created"}
DEFAULT_FOLDER_RULE = {"untouched_days": 30, "age_days": None, "combine": "and", "age_basis": "created"}

DEFAULT_CONFLICT_POLICY = "rename"
DEFAULT_LARGE_FILE_MB = 1024
DEFAULT_COPY_ATTEMPTS = 3
DEFAULT_COPY_WAIT_SECONDS = 5
DEFAULT_MAX_OPERATIONS = 500
DEFAULT_MIN_FREE_MB = 1024

LOG_BASENAME = "autoarchiver"
DEFAULT_CONFIG_NAME = "autoarchiver.json"
