from datetime import UTC, datetime

import pytest


@pytest.fixture()
def paid_order():
    """A stored order document as the webhook leaves it."""
    return {
        "userId": "uid-001",
        "status": "paid",
        "currency": "aed",
        "subtotalAmount": 24000,
        "vatAmount": 1200,
        "totalAmount": 25200,
        "vatPercentage": "5%",
        "taxRegistrationNumber": "100123456789003",
        "createdAt": datetime(2025, 3, 1, 20, 30, tzinfo=UTC),
        "metadata": {"email": "layla@example.com", "customerName": "Layla Haddad"},
        "shipping": {
            "name": "Layla Haddad",
            "phone": "+971500000000",
            "address": {
                "line1": "1 Beach Road",
                "line2": "Villa 4",
                "city": "Dubai",
                "state": "Dubai",
                "postal_code": "00000",
                "country": "AE",
            },
        },
        "items": [
            {
                "productId": "kaftan-01",
                "name": "Silk Kaftan",
                "price": 120.0,
                "quantity": 2,
                "size": "M",
                "displayColor": "#e6c9a8",
            }
        ],
        "isGuestOrder": False,
    }
