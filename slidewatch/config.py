from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "SLIDEWATCH_",
        "case_sensitive": False,
    }

    # Deck API
    base_url: str = "http://localhost:5000"
    request_timeout: float = 30.0

    # Polling (seconds)
    poll_interval: float = 5.0
    outline_timeout: float = 90.0
    descriptions_timeout: float = 180.0
    images_timeout: float = 300.0
    settle_timeout: float = 10.0  # project status catching up after a task completes

    # Flow
    idea_prompt: str = (
        "A short deck on AI basics with 3 pages: what AI is, "
        "where AI is used, and the future of AI"
    )
    export_filename: str = "slidewatch.pptx"
    aspect_ratio: str = "16:9"
    resolution: str = "1080p"
    cleanup_projects: bool = True

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
