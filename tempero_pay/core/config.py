from pydantic import BaseModel
import os


class Settings(BaseModel):
    ENV: str = os.getenv("ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./tempero.db")

    # URL pública do backend (webhooks) e da loja (retorno dos gateways)
    PUBLIC_API_URL: str = os.getenv("PUBLIC_API_URL", "http://localhost:8000/api/v1")
    STORE_URL: str = os.getenv("STORE_URL", "http://localhost:5173")
    STORE_NAME: str = os.getenv("STORE_NAME", "Temperos Naturais")

    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-change-me")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    # Gateways
    INFINITEPAY_HANDLE: str = os.getenv("INFINITEPAY_HANDLE", "")
    INFINITEPAY_API_URL: str = os.getenv(
        "INFINITEPAY_API_URL", "https://api.infinitepay.io/invoices/public/checkout/links"
    )
    PAGSEGURO_EMAIL: str = os.getenv("PAGSEGURO_EMAIL", "")
    PAGSEGURO_TOKEN: str = os.getenv("PAGSEGURO_TOKEN", "")
    PAGSEGURO_ENV: str = os.getenv("PAGSEGURO_ENV", "production")
    ASAAS_ACCESS_TOKEN: str = os.getenv("ASAAS_ACCESS_TOKEN", "")
    ASAAS_ENV: str = os.getenv("ASAAS_ENV", "")

    # Notificações
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "Temperos Naturais <pedidos@temperosnaturais.com.br>")
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "")
    ZAPI_INSTANCE_ID: str = os.getenv("ZAPI_INSTANCE_ID", "")
    ZAPI_TOKEN: str = os.getenv("ZAPI_TOKEN", "")
    ADMIN_WHATSAPP: str = os.getenv("ADMIN_WHATSAPP", "")
    NOTIFY_TIMEOUT_SECONDS: float = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10"))

    # Conciliação
    RECONCILIATION_WINDOW_DAYS: int = int(os.getenv("RECONCILIATION_WINDOW_DAYS", "7"))
    RECONCILIATION_AUTO_CONFIRM_THRESHOLD: int = int(
        os.getenv("RECONCILIATION_AUTO_CONFIRM_THRESHOLD", "80")
    )
    RECONCILIATION_MISMATCH_TOLERANCE: float = float(
        os.getenv("RECONCILIATION_MISMATCH_TOLERANCE", "0.10")
    )
    # datas do extrato são locais da loja
    STORE_TZ: str = os.getenv("STORE_TZ", "America/Sao_Paulo")

    # Polling PIX (cliente)
    PIX_POLL_INTERVAL_SECONDS: float = float(os.getenv("PIX_POLL_INTERVAL_SECONDS", "5"))
    PIX_POLL_MAX_SECONDS: float = float(os.getenv("PIX_POLL_MAX_SECONDS", "1800"))


settings = Settings()
