"""Constants used throughout the devcontainer runner."""


# Configuration files
DEVCONTAINER_DIR_NAME = ".devcontainer"
CONFIG_FILE_NAME = "devcontainer.json"
USER_SETTINGS_FILE_NAME = "devcontainer.json"
USER_SETTINGS_ENV = "DEVCONTAINER_USER_SETTINGS"

# Container defaults
DEFAULT_WORKSPACE_FOLDER = "/workspace"
DEFAULT_SERVICE_NAME = "default"
KEEP_ALIVE_COMMAND = ["/bin/sh", "-c", "while sleep 1000; do :; done"]
SHELL = ["/bin/sh", "-c"]
LOCAL_ADDRESS = "localhost"

# Labels used to recognise resources created for an environment
LABEL_MARKER = "devcontainer"
LABEL_ENVIRONMENT = "devcontainer.environment"
LABEL_PROJECT = "devcontainer.project"
LABEL_SERVICE = "devcontainer.service"
LABEL_APPLICATION_PORT = "devcontainer.application-port"
IMAGE_PREFIX = "devcontainer"

# postCreate completion marker, kept inside the primary container
MARKER_DIR = "/var/lib/devcontainer"
MARKER_USER = "root"

# Compose
COMPOSE_COMMAND = ["docker", "compose"]
COMPOSE_COMMAND_ENV = "DEVCONTAINER_COMPOSE_COMMAND"

# Readiness polling
DEFAULT_READY_TIMEOUT = 60.0
DEFAULT_POLL_INTERVAL = 1.0

# Timeout values
BUILD_TIMEOUT = 600  # 10 minutes
COMPOSE_TIMEOUT = 600

# Logging
LOG_LEVEL_ENV = "LOG_LEVEL"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Hook phases, in execution order
POST_CREATE = "postCreate"
POST_START = "postStart"
POST_ATTACH = "postAttach"
HOOK_PHASES = (POST_CREATE, POST_START, POST_ATTACH)

# Environment given to the container and the application
ENV_PROJECT = "DEVCONTAINER_PROJECT"
ENV_CONTAINER_ID = "DEVCONTAINER_CONTAINER_ID"
ENV_APPLICATION_PORT = "DEVCONTAINER_APPLICATION_PORT"

# shutdownAction values
SHUTDOWN_NONE = "none"
SHUTDOWN_STOP_CONTAINER = "stopContainer"
SHUTDOWN_STOP_COMPOSE = "stopCompose"
SHUTDOWN_ACTIONS = (SHUTDOWN_NONE, SHUTDOWN_STOP_CONTAINER, SHUTDOWN_STOP_COMPOSE)

# What ended an attached session
WAIT_APPLICATION = "application"
WAIT_CONTAINER = "container"

# Exit code for an interrupted invocation
EXIT_INTERRUPTED = 130
