# carebook/config/payment_config.py

import os
from dotenv import load_dotenv

load_dotenv()


class PaymentConfig:
    """Midtrans gateway configuration settings"""

    MIDTRANS_SERVER_KEY = os.getenv("MIDTRANS_SERVER_KEY", "")
    MIDTRANS_CLIENT_KEY = os.getenv("MIDTRANS_CLIENT_KEY", "")
    MIDTRANS_IS_PRODUCTION = os.getenv("MIDTRANS_IS_PRODUCTION", "false").lower() == "true"
    MIDTRANS_TIMEOUT_SECONDS = float(os.getenv("MIDTRANS_TIMEOUT_SECONDS", 15))

    # Gateway-facing order ids look like CAREBOOK-1a2b3c4d-1734312000000
    ORDER_ID_PREFIX = os.getenv("ORDER_ID_PREFIX", "CAREBOOK")
    MARKETPLACE_MARKER = "MKT"

    PAYMENT_EXPIRY_HOURS = int(os.getenv("PAYMENT_EXPIRY_HOURS", 24))
    MARKETPLACE_ADMIN_FEE_RATE = float(os.getenv("MARKETPLACE_ADMIN_FEE_RATE", 0.05))

    APP_URL = os.getenv("APP_URL", "http://localhost:8000")

    @property
    def snap_base_url(self) -> str:
        if self.MIDTRANS_IS_PRODUCTION:
            return "https://app.midtrans.com/snap/v1"
        return "https://app.sandbox.midtrans.com/snap/v1"

    @property
    def core_base_url(self) -> str:
        if self.MIDTRANS_IS_PRODUCTION:
            return "https://api.midtrans.com/v2"
        return "https://api.sandbox.midtrans.com/v2"


payment_config = PaymentConfig()
