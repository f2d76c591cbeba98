from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LUMEN_", case_sensitive=False)

    # content store
    store_backend: str = "sqlite"  # "sqlite" or "strapi"
    db_path: str = "./data/lumen.db"
    strapi_url: str = "http://localhost:1337"
    strapi_token: str | None = None
    http_timeout_seconds: float = 15.0

    # query handling
    min_query_length: int = 2
    result_cap: int = 20  # per category per request
    excerpt_max_length: int = 150
    suggestion_limit: int = 5
    default_page_size: int = 20
    max_page_size: int = 100

    # fan-out
    partial_results: bool = False
    source_timeout_seconds: float | None = None

    # response cache
    cache_ttl_seconds: float = 60.0

    # segmentation
    user_dict_path: str | None = None


settings = Settings()
