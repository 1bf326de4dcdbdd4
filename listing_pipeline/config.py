from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": (".env", ".env.local"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    supabase_url: str
    supabase_service_role_key: str
    listings_table: str = "restaurants"
    page_size: int = 100
    confidence_threshold: int = 70
    full_scan: bool = False
    logs_dir: str = "logs"
    log_level: str = "INFO"
    link_check_timeout: float = 10.0
    max_reported_errors: int = 10
