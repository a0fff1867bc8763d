"""
Application settings loaded from the environment
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Runtime configuration"""
    db_path: str = "ordering.db"
    order_cache_ttl: float = 30.0
    cancellation_window_minutes: int = 15
    max_cancellations_per_day: int = 3
    currency_symbol: str = "₱"
    secret_key: str = "your-secret-key-here"
    port: int = 5000
    debug: bool = False

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        # .env 파일이 있으면 먼저 읽고, 이미 설정된 환경변수가 우선
        load_dotenv(env_file)

        return cls(
            db_path=os.getenv("ORDERING_DB_PATH", cls.db_path),
            order_cache_ttl=float(os.getenv("ORDER_CACHE_TTL", cls.order_cache_ttl)),
            cancellation_window_minutes=int(
                os.getenv("CANCELLATION_WINDOW_MINUTES", cls.cancellation_window_minutes)
            ),
            max_cancellations_per_day=int(
                os.getenv("MAX_CANCELLATIONS_PER_DAY", cls.max_cancellations_per_day)
            ),
            currency_symbol=os.getenv("CURRENCY_SYMBOL", cls.currency_symbol),
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
            port=int(os.getenv("PORT", cls.port)),
            debug=_env_bool("DEBUG"),
        )
