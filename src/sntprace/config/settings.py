import os
from typing import List

from pydantic_settings import BaseSettings

from sntprace.net.query import ServerDescriptor
from sntprace.protocol.packet import SNTP_DEFAULT_PORT


class Settings(BaseSettings):
    """Client settings with environment variable support"""

    # Servers raced against each other, comma separated
    SNTP_SERVERS: str = os.getenv(
        "SNTP_SERVERS", "time.windows.com,pool.ntp.org,time-a.nist.gov"
    )
    SNTP_PORT: int = int(os.getenv("SNTP_PORT", str(SNTP_DEFAULT_PORT)))

    # Per-server receive bound in seconds
    SNTP_TIMEOUT: float = float(os.getenv("SNTP_TIMEOUT", "3.0"))

    # Also require server mode and an echoed originate timestamp
    SNTP_STRICT_VALIDATION: bool = False

    SNTP_LOG_LEVEL: str = os.getenv("SNTP_LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def server_list(self) -> List[str]:
        return [s.strip() for s in self.SNTP_SERVERS.split(",") if s.strip()]

    def descriptors(self) -> List[ServerDescriptor]:
        return [ServerDescriptor.parse(host, self.SNTP_PORT) for host in self.server_list]


# Global settings instance
settings = Settings()
