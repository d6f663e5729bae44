from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenAI-compatible completion endpoint
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    default_model: str = "gpt-4o-mini"
    classifier_model: str = ""  # optional override for the search-necessity check
    planner_model: str = ""  # optional override for Pro-mode planning only
    completion_max_tokens: int = 4096

    # Tavily (empty key disables web search)
    tavily_api_key: str = ""
    search_depth: str = "advanced"  # basic | advanced
    search_max_results: int = 5

    # Streaming
    update_interval_ms: int = 50
    related_questions_count: int = 5

    # App
    cors_origins: str = "http://localhost:5173"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    log_to_file: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def search_enabled(self) -> bool:
        return bool(self.tavily_api_key.strip())

    @property
    def update_interval(self) -> float:
        return max(self.update_interval_ms, 0) / 1000

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
