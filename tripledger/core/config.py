import os
from dotenv import load_dotenv, set_key

# 1. This line finds the local .env file and loads it into memory
load_dotenv()

# Environment variable holding the API key for each vision provider
OCR_KEY_NAMES = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


def _parse_bool(value: str, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    PROJECT_NAME: str = "TripLedger"
    PROJECT_VERSION: str = "0.1.0"

    # 2. Infrastructure Config (Loaded from .env with defaults)
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "tripledger")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "tripledger")
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "db")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "tripledger")
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    ENV_FILE: str = os.getenv("ENV_FILE", ".env")
    CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # 3. Security Config
    SECRET_KEY: str = os.getenv("SECRET_KEY", "super_secret_default_key")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
    COOKIE_SECURE: bool = _parse_bool(os.getenv("COOKIE_SECURE"), False)

    # 4. OCR Config
    DEFAULT_OCR_METHOD: str = os.getenv("DEFAULT_OCR_METHOD", "gemini")
    OCR_TEMPLATE: str = os.getenv("OCR_TEMPLATE", "general")
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")

    # 5. Construct the Database URL dynamically (DATABASE_URL wins when set)
    @property
    def DATABASE_URL(self) -> str:
        explicit = os.getenv("DATABASE_URL")
        if explicit:
            return explicit
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    def api_key_for(self, method: str) -> str:
        key_name = OCR_KEY_NAMES.get(method)
        if not key_name:
            return ""
        return getattr(self, key_name, "") or ""

    def configured_providers(self) -> dict:
        return {method: bool(self.api_key_for(method)) for method in OCR_KEY_NAMES}

    def update_ocr_settings(self, method: str = None, api_key: str = None, template: str = None) -> None:
        """
        Persists the chosen OCR provider, its key and the prompt template to the
        .env file and applies them to the running process.
        """
        updates = {}
        if method:
            updates["DEFAULT_OCR_METHOD"] = method
            if api_key and method in OCR_KEY_NAMES:
                updates[OCR_KEY_NAMES[method]] = api_key
        if template:
            updates["OCR_TEMPLATE"] = template

        if not updates:
            return

        env_dir = os.path.dirname(os.path.abspath(self.ENV_FILE))
        os.makedirs(env_dir, exist_ok=True)
        if not os.path.exists(self.ENV_FILE):
            open(self.ENV_FILE, "a").close()

        for key, value in updates.items():
            set_key(self.ENV_FILE, key, value)
            os.environ[key] = value
            setattr(self, key, value)


settings = Settings()
