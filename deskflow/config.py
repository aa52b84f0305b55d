from pydantic_settings import BaseSettings


def _split_csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./deskflow.db"
    debug: bool = False
    log_level: str = "INFO"

    # Chat identity and commands
    bot_identity: str = ""
    command_prefix: str = "!"
    supported_message_types: str = "text,chat"
    cancel_keywords: str = "cancel,cancelar,salir"
    pause_keyword: str = "stop"
    resume_keyword: str = "start"
    dedup_cache_size: int = 1000

    # Generative providers
    openai_api_key: str = ""
    openai_model: str = "gpt-5-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"
    llm_timeout_seconds: float = 20.0

    # Business rules
    business_timezone: str = "America/Mexico_City"
    business_open_hour: int = 9
    business_close_hour: int = 17
    business_days: str = "0,1,2,3,4"
    strike_threshold: int = 3

    # Sessions and scheduler
    session_ttl_minutes: int = 0
    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = 60.0

    # Spreadsheets
    spreadsheet_id: str = ""
    google_service_account_file: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"

    def cancel_words(self) -> set[str]:
        return set(_split_csv(self.cancel_keywords))

    def message_types(self) -> set[str]:
        return set(_split_csv(self.supported_message_types))

    def open_weekdays(self) -> set[int]:
        return {int(day) for day in _split_csv(self.business_days)}


settings = Settings()
