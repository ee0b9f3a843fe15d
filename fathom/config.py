from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    openrouter_model: str = ""  # optional override of default_model
    llm_max_tokens: int = 4096

    # Firecrawl (search + crawl)
    firecrawl_api_key: str = ""  # optional for self-hosted deployments
    firecrawl_base_url: str = "https://api.firecrawl.dev"
    search_timeout_ms: int = 60000
    search_max_results: int = 5
    crawl_enabled: bool = True
    crawl_formats: list[str] = ["markdown"]

    # Research run
    research_breadth: int = 3
    research_depth: int = 2  # accepted, single-level runs only
    research_concurrency: int = 1
    max_findings: int = 3
    findings_content_char_budget: int = 100000
    findings_snippet_chars: int = 3000

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    log_to_file: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
