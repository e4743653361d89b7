"""Certchain configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

CERTIFICATE_STORE_BACKENDS = ("database", "json", "none")


class CertchainSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CERTCHAIN_", env_file=".env", extra="ignore")

    environment: str = "development"
    log_level: str = "INFO"

    # API
    api_title: str = "Certchain API"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 3001
    api_prefix: str = ""
    cors_origins: list[str] = ["*"]
    max_upload_bytes: int = 50 * 1024 * 1024

    # Issuer / chain
    issuer: str = "CertiFi"
    chain_id: str = "84532"  # Base Sepolia
    contract_address: str = ZERO_ADDRESS
    rpc_url: str = ""
    chain_private_key: str = ""
    explorer_tx_url: str = "https://sepolia.basescan.org/tx/"

    # Object storage (S3 / R2, private bucket)
    storage_enabled: bool = False
    s3_endpoint: str = ""
    s3_region: str = "auto"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_bucket: str = "certifi-uploads"
    presign_ttl: int = 300  # seconds

    # Server signing key pair (PEM)
    server_private_key: str = ""
    server_public_key: str = ""

    # Persistence
    db_url: str = "sqlite+aiosqlite:///./data/certchain.db"
    certificate_store: str = "database"
    certificate_json_path: str = "./data/certificates.json"

    # AI analysis service
    ai_service_url: str = ""
    ai_model_version: str = "v1"

    # Outbound calls
    outbound_timeout: float = 15.0  # seconds
    receipt_timeout: float = 120.0  # seconds
    read_retries: int = 1

    @property
    def ai_enabled(self) -> bool:
        return bool(self.ai_service_url)

    @property
    def signing_keys_configured(self) -> bool:
        return bool(self.server_private_key and self.server_public_key)

    def validate_for_production(self) -> None:
        """Raise if required secrets are missing in non-development environments."""
        if self.certificate_store not in CERTIFICATE_STORE_BACKENDS:
            raise RuntimeError(
                f"CERTCHAIN_CERTIFICATE_STORE must be one of {', '.join(CERTIFICATE_STORE_BACKENDS)}, "
                f"got: {self.certificate_store!r}"
            )

        if self.signing_keys_configured:
            return
        missing = [
            f"CERTCHAIN_{field.upper()}"
            for field in ("server_private_key", "server_public_key")
            if not getattr(self, field)
        ]
        if self.environment != "development":
            raise RuntimeError(
                f"Missing signing keys in '{self.environment}' environment: {', '.join(missing)}. "
                "Generate a pair with: certchain keygen"
            )

        warnings.warn(
            "Server signing keys are not set; certification will fail until "
            "CERTCHAIN_SERVER_PRIVATE_KEY and CERTCHAIN_SERVER_PUBLIC_KEY are configured",
            UserWarning,
            stacklevel=2,
        )


@lru_cache
def get_settings() -> CertchainSettings:
    settings = CertchainSettings()
    settings.validate_for_production()
    return settings
