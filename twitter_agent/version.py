# twitter_agent/version.py

SERVICE_NAME = "twitter-agent-api"
SERVICE_VERSION = "0.1.0"


def version_payload() -> dict:
    """Used by /version."""
    return {
        "service": f"{SERVICE_NAME}:{SERVICE_VERSION}",
        "service_version": SERVICE_VERSION,
    }
