"""Default values for finding symlinks."""

BUILD_NUMBER = ""
COLOR = "auto"
HIDDEN = True
IGNORE_FILES = None
IGNORES = None
INCLUDE_HEAVY = False
JSON = False
LOG_LEVEL = "WARNING"
MAX_DEPTH = None
NO_STREAM = False
NO_TUI = False
ONE_FILESYSTEM = False
RESPECT_GITIGNORE = False
ROOT = "."
THREADS = 0  # 0 => one worker per CPU
