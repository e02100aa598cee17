"""Environment-driven settings for the coordination server.

Values come from the process environment, after a ``.env`` file next to the
package has been loaded. Nothing here talks to the network.
"""
from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import time

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

logger = logging.getLogger(__name__)

BASE_DIR = os.path.join(os.path.dirname(__file__), "..")

# Used when UUID_NAMESPACE is not configured. Ids stay stable across restarts
# but are predictable, so production deployments should set their own.
DEFAULT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "studysync")
DEFAULT_STUN_URL = "stun:stun.l.google.com:19302"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_clock(value: str) -> time:
    """Parse ``HH:MM`` into a ``datetime.time``."""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except ValueError:
        raise ValueError(f"Expected HH:MM, got {value!r}") from None


def parse_namespace(value: str) -> uuid.UUID:
    if not value:
        logger.warning("UUID_NAMESPACE not set - using the built-in namespace")
        return DEFAULT_NAMESPACE
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValueError(f"UUID_NAMESPACE is not a valid UUID: {value!r}") from None


@dataclass
class Settings:
    uuid_namespace: uuid.UUID = DEFAULT_NAMESPACE

    # Access gate for the lab-only pages
    auth_user: str = ""
    auth_pass: str = ""
    private_prefix: str = "/private"

    public_dir: str = os.path.join(BASE_DIR, "public")
    private_dir: str = os.path.join(BASE_DIR, "private")

    # Snapshot destination: SFTP when save_host is set, else local_save_dir
    save_host: str = ""
    save_port: int = 22
    save_user: str = ""
    save_pass: str = ""
    save_path: str = ""
    local_save_dir: str = os.path.join(BASE_DIR, "data")

    force_https: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Browser-side connection settings handed out by /api/client-config
    peerjs_host: str = ""
    peerjs_path: str = ""
    host_peer_id: str = "HostPeer"
    stun_url: str = DEFAULT_STUN_URL
    turn_url: str = ""
    turn_user: str = ""
    turn_pass: str = ""
    survey_url: str = ""

    maintenance_start: time = time(23, 0)
    maintenance_end: time = time(0, 5)
    study_timezone: str = "America/New_York"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        port = os.getenv("SAVE_PORT", "22")
        try:
            save_port = int(port)
        except ValueError:
            raise ValueError(f"SAVE_PORT must be an integer, got {port!r}") from None

        origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

        return cls(
            uuid_namespace=parse_namespace(os.getenv("UUID_NAMESPACE", "").strip()),
            auth_user=os.getenv("SERVER_AUTH_USER", ""),
            auth_pass=os.getenv("SERVER_AUTH_PASS", ""),
            private_prefix="/" + os.getenv("PRIVATE_PREFIX", "/private").strip("/"),
            public_dir=os.getenv("PUBLIC_DIR") or defaults.public_dir,
            private_dir=os.getenv("PRIVATE_DIR") or defaults.private_dir,
            save_host=os.getenv("SAVE_HOST", ""),
            save_port=save_port,
            save_user=os.getenv("SAVE_USER", ""),
            save_pass=os.getenv("SAVE_PASS", ""),
            save_path=os.getenv("SAVE_PATH", ""),
            local_save_dir=os.getenv("LOCAL_SAVE_DIR") or defaults.local_save_dir,
            force_https=_env_bool("FORCE_HTTPS"),
            cors_origins=origins or ["*"],
            peerjs_host=os.getenv("PEERJS_HOST", ""),
            peerjs_path=os.getenv("PEERJS_PATH", ""),
            host_peer_id=os.getenv("HOST_PEER_ID", "HostPeer"),
            stun_url=os.getenv("STUN_URL", DEFAULT_STUN_URL),
            turn_url=os.getenv("TURN_URL", ""),
            turn_user=os.getenv("TURN_USER", ""),
            turn_pass=os.getenv("TURN_PASS", ""),
            survey_url=os.getenv("SURVEY_URL", ""),
            maintenance_start=parse_clock(os.getenv("MAINTENANCE_START", "23:00")),
            maintenance_end=parse_clock(os.getenv("MAINTENANCE_END", "00:05")),
            study_timezone=os.getenv("STUDY_TIMEZONE", "America/New_York"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
