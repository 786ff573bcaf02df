LATEST_ENV_TEMPLATE_VERSION = "v1.0.0"
LEGACY_ENV_TEMPLATE_VERSION = "v0.0.0"

DEFAULT_STACK_NAME_TEMPLATE = "{app}-{env}"
DEFAULT_STORE_FILE = ".envupgrader-store.yml"
DEFAULT_CONFIG_FILE = ".envupgrader.yml"

DEFAULT_POLL_INITIAL_INTERVAL = 5.0
DEFAULT_POLL_MULTIPLIER = 2.0
DEFAULT_POLL_MAX_INTERVAL = 60.0
DEFAULT_POLL_TIMEOUT = 1800.0
