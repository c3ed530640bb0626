from pydantic import PrivateAttr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Loan Marketplace API"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./loan_marketplace.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    host: str = "0.0.0.0"
    port: int = 3005

    log_level: str = "INFO"
    log_json: bool = True

    # Workflow tunables
    distribution_due_hours: int = 48
    offer_validity_days: int = 7
    application_number_prefix: str = "LMS"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    _is_sqlite: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: object) -> None:
        _scheme = self.database_url.split(":")[0].lower()
        self._is_sqlite = "sqlite" in _scheme

    @property
    def is_sqlite(self) -> bool:
        return self._is_sqlite


settings = Settings()
