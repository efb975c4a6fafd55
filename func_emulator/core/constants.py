"""Constants used throughout the function emulator."""


# Open runtimes images
OPEN_RUNTIMES_VERSION = "v4"
IMAGE_REPOSITORY = "openruntimes"
CONTAINER_PORT = 3000
CODE_MOUNT = "/mnt/code"
CODE_ARCHIVE_IN_CONTAINER = "/mnt/code/code.tar.gz"
LOGS_MOUNT = "/mnt/logs/dev_logs.log"
ERRORS_MOUNT = "/mnt/logs/dev_errors.log"

# Container configuration
CONTAINER_PREFIX = "func-emulator"
LABEL_ENV = "func-emulator-env"
LABEL_ENV_VALUE = "dev"
LABEL_FUNCTION = "func-emulator-function"
LABEL_CACHE_KEY = "func-emulator-cache-key"

# Per-function working files
DATA_DIR_NAME = ".func-emulator"
BUILD_ARCHIVE_NAME = "build.tar.gz"
TEMP_ARCHIVE_NAME = "code.tar.gz"
LOGS_FILE_NAME = "logs.txt"
ERRORS_FILE_NAME = "errors.txt"

# Project configuration
PROJECT_CONFIG_FILE = "functions.json"
API_KEY_ENV = "FUNC_EMULATOR_API_KEY"

# Port search range used when no port is requested
DEFAULT_PORT = 3000
PORT_SEARCH_LIMIT = 3100

# Timing defaults (seconds)
DEBOUNCE_SECONDS = 0.3
STOP_GRACE_SECONDS = 10
START_GRACE_SECONDS = 1.0
TOKEN_LIFETIME_SECONDS = 60 * 60
TOKEN_WARN_RATIO = 0.8
POLL_INTERVAL_SECONDS = 0.5
HTTP_TIMEOUT = 30

# Environment passed to every runtime container
RUNTIME_BASE_ENVIRONMENT = {
    "OPEN_RUNTIMES_ENV": "development",
    "OPEN_RUNTIMES_SECRET": "",
}
