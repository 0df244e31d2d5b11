from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VC_",
    )

    # Monte Carlo (GBM) simulation
    simulation_default_iterations: int = 10000
    simulation_max_iterations: int = 1_000_000
    simulation_max_horizon_months: int = 600
    simulation_raw_sample_size: int = 1000
    simulation_progress_steps: int = 100

    # Correlated scenario analysis
    analysis_iterations: int = 10000
    analysis_sample_size: int = 100
    analysis_confidence_level: float = 0.95

    # Risk
    var_confidence_level: float = 0.95

    # Option pricing
    binomial_default_steps: int = 200
    implied_vol_tolerance: float = 1e-4
    implied_vol_max_iterations: int = 100
    option_mc_default_simulations: int = 100000
    option_mc_max_simulations: int = 5_000_000

    # Randomness (None = fresh OS entropy per task)
    random_seed: int | None = None

    # Worker
    worker_queue_size: int = 100
    worker_shutdown_timeout: float = 5.0  # seconds

    # Task status store
    task_ttl: int = 3600  # seconds
    task_store_size: int = 1024

    # API Server
    cors_origins: list[str] = ["http://localhost:3000"]

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"
