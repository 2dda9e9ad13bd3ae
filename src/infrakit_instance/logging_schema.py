"""Log event types for structured logging."""

from enum import StrEnum


class LogEvent(StrEnum):
    """Log event types for instance plugins.

    Used with logger.info/warning/error extra dict:
        logger.info("message", extra={"event": LogEvent.INSTANCE_PROVISIONED, ...})
    """

    # Application lifecycle
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"

    # Plugin lifecycle
    PLUGIN_STARTED = "plugin_started"
    PLUGIN_STOPPED = "plugin_stopped"

    # Instance events
    INSTANCE_PROVISIONED = "instance_provisioned"
    INSTANCE_TAGGED = "instance_tagged"
    INSTANCE_DESTROYED = "instance_destroyed"
    INSTANCE_STOPPED = "instance_stopped"
    INSTANCES_DESCRIBED = "instances_described"

    # Defaults discovery
    DEFAULTS_DISCOVERED = "defaults_discovered"
    DISCOVERY_FAILED = "discovery_failed"

    # Side-record events
    SPEC_RECORD_WRITTEN = "spec_record_written"
    SPEC_RECORD_UNREADABLE = "spec_record_unreadable"

    # Cleanup events
    CLEANUP_QUEUED = "cleanup_queued"
    CLEANUP_COMPLETED = "cleanup_completed"
    CLEANUP_FAILED = "cleanup_failed"
    CLEANUP_DRAINED = "cleanup_drained"

    # Error events
    PARTIAL_FAILURE = "partial_failure"
    BACKEND_ERROR = "backend_error"
    PLUGIN_ERROR = "plugin_error"
    UNHANDLED_EXCEPTION = "unhandled_exception"
