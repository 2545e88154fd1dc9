from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Shadow IT Sync"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    server_host: str = "localhost"
    server_port: int = 8000

    database_host: str = "localhost"
    database_port: int = 5432
    database_user: str = "postgres"
    database_password: str = ""
    database_name: str = "shadowit"
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10

    jwt_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    # bearer secret for cron and operator endpoints
    cron_secret: str = ""

    encryption_key: str = ""

    google_client_id: str = ""
    google_client_secret: str = ""
    microsoft_client_id: str = ""
    microsoft_client_secret: str = ""

    # Vendor API budget (Google documents 2400/min, stay below it)
    rate_limit_requests_per_minute: int = 1800
    rate_limit_max_retries: int = 3
    rate_limit_backoff_multiplier: float = 2.0
    rate_limit_base_delay_seconds: float = 1.0
    rate_limit_adaptive_threshold: float = 0.8

    resource_max_heap_mb: int = 1600
    resource_max_rss_mb: int = 1600
    resource_emergency_mb: int = 1800
    resource_max_concurrency: int = 2
    resource_wait_timeout_seconds: float = 30.0
    resource_poll_interval_seconds: float = 1.0

    max_tokens_in_memory: int = 8000
    max_applications: int = 1500
    max_relations: int = 12000
    max_users_in_memory: int = 20000

    user_batch_size: int = 25
    application_batch_size: int = 25
    relation_batch_size: int = 50
    batch_delay_seconds: float = 0.1
    google_user_group_concurrency: int = 5
    google_batch_stagger_seconds: float = 0.5
    google_group_pause_seconds: float = 2.0

    cleanup_safety_threshold: float = 0.9
    cleanup_edge_batch_size: int = 50
    cleanup_user_batch_size: int = 25
    cleanup_org_retries: int = 2
    cleanup_retry_delay_seconds: float = 5.0
    cleanup_org_delay_seconds: float = 60.0

    suspicious_min_users: int = 20
    suspicious_org_ratio: float = 0.5
    suspicious_sample_size: int = 5
    suspicious_legitimacy_ratio: float = 0.3
    verification_delete_batch_size: int = 100

    sync_stale_after_minutes: int = 30

    job_queue_max_attempts: int = 3
    job_queue_max_size: int = 1000
    job_queue_retry_delay_seconds: float = 2.0

    loops_api_url: str = "https://app.loops.so/api/v1/transactional"
    loops_api_key: str = ""
    loops_sync_completed_template_id: str = ""
    categorization_url: str = ""
    signup_webhook_url: str = ""
    signup_webhook_username: str = ""
    signup_webhook_password: str = ""
    collaborator_timeout_seconds: float = 15.0

    allowed_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    @property
    def allowed_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",")]


settings = Settings()
