from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used by PlanBot writes (system messages bypass RLS)

    # Persistence backend: "supabase" for deployments, "memory" for local runs
    persistence_backend: str = "supabase"

    # External lookups (places / movies)
    lookup_timeout_seconds: float = 10.0
    google_places_api_key: Optional[str] = None  # When unset, places come from OpenStreetMap
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    places_radius_meters: int = 5000
    tmdb_api_key: Optional[str] = None
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    lookup_user_agent: str = "FriendFlow/1.0"

    # Optional LLM re-ranking of search results
    llm_provider: str = "openai"  # openai | openrouter
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None

    # PlanBot
    planbot_max_results: int = 5
    command_prefixes: str = "/,!"

    # App
    app_name: str = "friendflow-plans"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_command_prefixes(self) -> List[str]:
        return [p.strip() for p in self.command_prefixes.split(",") if p.strip()]

    def get_llm_model(self) -> str:
        if self.llm_model:
            return self.llm_model
        if self.llm_provider == "openrouter":
            return "anthropic/claude-3.5-sonnet"
        return "gpt-4o-mini"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
