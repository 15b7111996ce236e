from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "ABDash"
    API_V1_PREFIX: str = "/api/v1"

    # Bayesian estimator
    MONTE_CARLO_SAMPLES: int = 10_000
    NORMAL_APPROX_MIN_VISITS: int = 30  # both arms must exceed this

    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
