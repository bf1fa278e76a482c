from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_version: str = "5.0.2"
    origin_url: str = "http://localhost:8080"
    redis_url: str = "redis://localhost:6379/0"
    cache_prefix: str = "resseltrafiken"
    root_document: str = "/index.html"
    manifest_path: str = "/manifest.json"
    data_path: str = "/data"
    line_configs: dict[str, str] = {
        "sjo": "/data/ressel-sjo-config.json",
        "city": "/data/ressel-city-config.json",
    }
    precache_static: list[str] = [
        "/",
        "/index.html",
        "/css/styles.css",
        "/js/init.js",
        "/js/app.js",
        "/icons/boat.png",
        "/manifest.json",
    ]
    precache_data: list[str] = [
        "/data/ressel-sjo-config.json",
        "/data/ressel-city-config.json",
    ]
    max_visible_departures: int = 7
    # direction (or line for direct lines) -> stop highlighted on the board
    highlight_stops: dict[str, str] = {
        "direct": "Lumabryggan",
        "to_city": "Lumabryggan",
        "from_city": "Nybroplan",
    }
    timezone: str = "Europe/Stockholm"
    display_interval_seconds: int = 60
    data_refresh_seconds: int = 1800
    midnight_check_seconds: int = 60
    version_check_seconds: int = 3600
    fetch_timeout_seconds: float = 30.0

    model_config = {"env_prefix": "", "case_sensitive": False}


settings = Settings()
