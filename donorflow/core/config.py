"""Service configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. SECRET_KEY is validated at load time; Firestore,
DocuSign and storage settings are validated for internal consistency.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment and .env.

    Firestore and DocuSign are optional at load time: without credentials the
    service starts and the endpoints that need them answer 503.
    """

    # App
    app_name: str = "donorflow"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Security: bearer JWTs minted by the platform's auth gateway (sub + role claims)
    secret_key: SecretStr = SecretStr("")
    algorithm: str = "HS256"
    role_claim: str = "role"
    access_token_expire_minutes: int = 60

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Request / middleware
    request_id_header: str = "X-Request-ID"
    correlation_id_header: str = "X-Correlation-ID"

    # Firebase / Firestore: use key (env) or path (file).
    firebase_service_account_key: SecretStr | None = None
    firebase_service_account_path: str | None = None
    firestore_timeout_seconds: float = 30.0
    # Read-check-write attempts for conditional status transitions before giving up.
    conditional_write_attempts: int = 5
    # Whole-build attempts for instantiate/reset when the generation marker moved underneath.
    instantiation_attempts: int = 3

    # Workflow templates
    default_template: str = "donation"

    # DocuSign (JWT grant). Base URLs default to the demo environment.
    docusign_integration_key: str | None = None
    docusign_user_id: str | None = None
    docusign_private_key: SecretStr | None = None
    docusign_account_id: str | None = None
    docusign_oauth_base_url: str = "https://account-d.docusign.com"
    docusign_base_url: str = "https://demo.docusign.net/restapi"
    docusign_timeout_seconds: float = 30.0
    # If set, POST /docusign/webhook must carry a valid X-DocuSign-Signature-1.
    docusign_connect_hmac_key: SecretStr | None = None

    # Signing: artifact fetch retry and correlation fallback scan
    artifact_retry_attempts: int = 3
    artifact_retry_base_delay: float = 0.5
    artifact_retry_max_delay: float = 8.0
    correlation_scan_limit: int = 200
    reconcile_batch_limit: int = 100

    # Storage for signed artifacts
    storage_backend: str = "local"
    storage_root: str = "/var/donorflow/storage"
    s3_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: SecretStr | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def docusign_configured(self) -> bool:
        """True when every credential needed for the JWT grant is present."""
        return bool(
            self.docusign_integration_key
            and self.docusign_user_id
            and self.docusign_private_key
            and self.docusign_private_key.get_secret_value()
        )

    @model_validator(mode="after")
    def validate_required_and_storage(self) -> "Settings":
        """Validate required env and the storage backend."""
        if not self.secret_key.get_secret_value():
            raise ValueError(
                "SECRET_KEY is required. Generate with: openssl rand -hex 32."
            )
        if self.conditional_write_attempts < 1:
            raise ValueError("CONDITIONAL_WRITE_ATTEMPTS must be >= 1")
        if self.instantiation_attempts < 1:
            raise ValueError("INSTANTIATION_ATTEMPTS must be >= 1")
        if self.artifact_retry_attempts < 1:
            raise ValueError("ARTIFACT_RETRY_ATTEMPTS must be >= 1")
        if self.storage_backend == "s3":
            if not self.s3_bucket:
                raise ValueError(
                    "s3_bucket is required when storage_backend is 's3'. "
                    "Set S3_BUCKET environment variable or update .env file."
                )
        elif self.storage_backend != "local":
            raise ValueError(
                f"Invalid storage_backend '{self.storage_backend}'. "
                "Must be one of: 'local', 's3'"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars.
    """
    return Settings()
