import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()  # loads .env for local dev

@dataclass(frozen=True)
class Settings:
    env: str = os.getenv("ENV", "local")
    service_name: str = os.getenv("SERVICE_NAME", "weddingplan-web")
    database_url: str = os.getenv("DATABASE_URL", "")
    db_pool_min_size: int = int(os.getenv("DB_POOL_MIN_SIZE", "1"))
    db_pool_max_size: int = int(os.getenv("DB_POOL_MAX_SIZE", "10"))

    # Sessions are issued by the hosted auth provider; we only verify them
    auth_jwt_secret: str = os.getenv("AUTH_JWT_SECRET", "dev-secret-change-in-prod")
    auth_login_url: str = os.getenv("AUTH_LOGIN_URL", "/login")
    app_base_url: str = os.getenv("APP_BASE_URL", "http://127.0.0.1:8000")

    # Guest map geocoding (Nominatim usage policy: max 1 req/s)
    geocoder_url: str = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/search")
    geocoder_user_agent: str = os.getenv("GEOCODER_USER_AGENT", "WeddingPlanner/1.0 (guest map feature)")
    geocoder_country_codes: str = os.getenv("GEOCODER_COUNTRY_CODES", "us")
    geocoder_min_interval_ms: int = int(os.getenv("GEOCODER_MIN_INTERVAL_MS", "1100"))

    # Guest CSV import
    csv_import_max_rows: int = int(os.getenv("CSV_IMPORT_MAX_ROWS", "500"))

settings = Settings()
