import os


class Settings:
    PROJECT_NAME: str = "logicmaster"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "logicmaster.log"
    API_BASE_URL: str = os.getenv("LOGICMASTER_API_URL", "http://127.0.0.1:3000/api")
    REDIS_URL: str = os.getenv("LOGICMASTER_REDIS_URL", "redis://localhost:6379/0")
    TOKEN_KEY: str = "auth_token"
    HOST: str = "127.0.0.1"
    PORT: int = 8000


settings = Settings()
