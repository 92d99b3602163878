"""Service configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    # HTTP surface
    host: str = "0.0.0.0"
    port: int = 8020

    # Where network definitions are saved
    workspace_path: str = "/var/lib/lnsim"
    persist_networks: bool = True

    # Default images per node kind
    bitcoind_image: str = "polarlightning/bitcoind:26.0"
    lnd_image: str = "polarlightning/lnd:0.17.4-beta"

    # Default topology (1 bitcoind, 2 LND)
    default_bitcoin_nodes: int = 1
    default_lightning_nodes: int = 2

    # Node readiness (seconds)
    node_ready_timeout: float = 120.0
    node_ready_poll_interval: float = 2.0

    # Container operations
    container_stop_timeout: int = 10

    # Refuse to start a network whose images are not available locally
    require_images: bool = True

    # Per-subscriber buffer for change notifications
    event_queue_size: int = 256

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    class Config:
        env_prefix = "LNSIM_"


settings = Settings()
