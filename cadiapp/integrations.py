# cadiapp/integrations.py
"""
Third-party integrations for CadiApp
- Mercado Pago: Mock (checkout preferences)
"""

import os
import random
import string
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")


class MockMercadoPago:
    """Mock Mercado Pago integration - Replace with the real SDK client when credentials exist"""

    def __init__(self):
        # preference id -> external_reference
        self.preferences = {}

    def create_preference(self, title: str, amount: float, external_reference: str, payer_email: str = None) -> dict:
        """
        Simulate creating a checkout preference.
        `external_reference` carries our payment id so the webhook can map back.
        """
        preference_id = f"PREF-{datetime.now().strftime('%Y%m%d')}-{''.join(random.choices(string.ascii_uppercase + string.digits, k=10))}"
        self.preferences[preference_id] = external_reference

        print(f"[MERCADOPAGO] Preference {preference_id} for {title}: {amount} (ref={external_reference})")

        return {
            "id": preference_id,
            "init_point": f"{FRONTEND_URL}/checkout/{preference_id}",
            "notification_url": f"{BACKEND_URL}/api/payments/webhook",
            "external_reference": external_reference,
            "payer_email": payer_email,
        }


# Singleton instances
mercadopago = MockMercadoPago()
