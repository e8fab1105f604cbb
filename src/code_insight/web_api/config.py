"""
Configuration settings for the API.
Environment variables override defaults.
"""
import os
from dataclasses import dataclass, field
from typing import List


@dataclass
class Settings:
    """API Configuration"""

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # CORS
    CORS_ORIGINS: List[str] = field(default_factory=lambda: ["*"])

    # code_insight config file used to build the tool manager ("" = default lookup)
    CODE_INSIGHT_CONFIG: str = ""

    # Test generation over HTTP never writes files unless enabled
    ALLOW_WRITE: bool = False

    def __post_init__(self):
        """Load from environment variables"""
        for key in self.__dataclass_fields__:
            env_value = os.getenv(key)
            if env_value is not None:
                field_type = self.__dataclass_fields__[key].type
                if field_type in (bool, "bool"):
                    setattr(self, key, env_value.lower() in ("true", "1", "yes"))
                elif field_type in (int, "int"):
                    setattr(self, key, int(env_value))
                elif field_type in (List[str], "List[str]"):
                    setattr(self, key, [v.strip() for v in env_value.split(",") if v.strip()])
                else:
                    setattr(self, key, env_value)


# Global settings instance
settings = Settings()
