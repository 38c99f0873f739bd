from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PW_",
    )

    # Parallelization
    max_workers: int = 4
    paths_per_chunk: int = 1000

    # Analysis parameters
    risk_free_rate: float = 0.0  # per-horizon rate, not annualised

    # Validation tolerances
    weight_tolerance: float = 1e-6
    symmetry_tolerance: float = 1e-6

    # Logging
    log_dir: str = "logs"
    log_file: str = "pathwise.log"
    log_level: str = "INFO"
