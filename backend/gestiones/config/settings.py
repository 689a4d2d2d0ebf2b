"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "gestiones_dev"
    mongo_timeout_ms: int = 5000
    
    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    log_to_file: bool = False
    
    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"
    
    # Frontend URL (for request links in notifications)
    frontend_url: str = "http://localhost:5173"
    
    # Roles with special meaning for the workflow
    admin_role: str = "administrador"
    executor_role: str = "ejecutor"
    # Roles that only hear about requests of their own group
    group_scoped_roles: str = "gerencia,revisor"
    
    # Environment
    environment: str = "development"
    debug: bool = True
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]
    
    @property
    def group_scoped_roles_list(self) -> List[str]:
        return [role.strip() for role in self.group_scoped_roles.split(",") if role.strip()]
    
    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
