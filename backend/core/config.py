from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = "MindMate Backend"

    # Identity provider tokens (verified only, never issued here)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # Database
    DATABASE_URL: str

    # Remote assistant (chatbot service)
    CHATBOT_URL: str = "http://localhost:8001/chatbot"
    CHATBOT_API_KEY: str = ""
    CHATBOT_TIMEOUT_SECONDS: float = 30.0
    CRISIS_FAST_PATH: bool = False

    # Rate limiting
    REDIS_URL: str = "redis://localhost:6379/0"
    CHAT_RATE_LIMIT: int = 30
    CHAT_RATE_WINDOW: int = 60

    class Config:
        env_file = ".env"

settings = Settings()
