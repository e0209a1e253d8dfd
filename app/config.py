from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Lesson Scheduling'
    app_env: str = 'local'
    app_timezone: str = 'Australia/Sydney'
    database_url: str = 'sqlite:///./scheduling.db'
    tenant_base_domain: str = ''
    dev_default_school_slug: str = 'default-school'
    booking_notice_hours: int = 24
    calendar_default_window_days: int = 90
    calendar_default_page_size: int = 100
    calendar_max_page_size: int = 500
    enable_booking_notifications: bool = True
    communication_service_url: str = 'http://127.0.0.1:8010'
    notification_batch_size: int = 50
    notification_max_attempts: int = 5
    notification_poll_seconds: int = 10
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
