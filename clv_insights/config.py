"""
Configuration management for CLV Insights
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "CLV Insights"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database (report presets only)
    database_url: str = "sqlite:///./clv_insights.db"

    # Shopify
    shopify_shop_url: str = ""
    shopify_access_token: str = ""
    shopify_api_version: str = "2025-01"

    # Analytics pipeline
    page_size: int = 250  # Max allowed by Shopify
    max_customers: int = 2000
    max_orders: int = 2000
    default_range_days: int = 30

    # Customer report
    report_default_page_size: int = 250

    # Dashboard Basic Auth (gate for the whole app)
    dash_user: str = ""
    dash_pass: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
