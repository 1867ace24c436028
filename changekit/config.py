"""
Library configuration management.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from CHANGEKIT_* environment variables."""
    
    # Logging
    log_level: str = "INFO"
    
    # Diff engine
    default_granularity: str = "lines"
    ignore_whitespace: bool = False
    
    # Hunk grouping
    context_lines: int = 3
    
    # Change set
    high_confidence_threshold: float = 0.8
    
    # Applicator
    batch_size: int = 5
    batch_delay_seconds: float = 0.1
    enforce_dependency_order: bool = True
    
    # Export
    export_indent: int = 2
    
    class Config:
        env_prefix = "CHANGEKIT_"
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
