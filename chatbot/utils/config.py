from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Empty key means every request is answered by the local fallback
    GOOGLE_API_KEY: str = ""
    LLM_MODEL: str = "gemini-2.5-flash"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_OUTPUT_TOKENS: int = 512
    LLM_TIMEOUT_SECONDS: float = 25.0

    class Config:
        env_file = ".env"

settings = Settings()
