from datetime import datetime

from booking_ledger import BusinessDirectory, BusinessProfile

# 2026-03-02 is a Monday; the salon is closed on weekends.
MONDAY = "2026-03-02"
SATURDAY = "2026-03-07"
NOW = datetime(2026, 3, 1, 12, 0)

SALON = {
    "business_id": "salon-1",
    "name": "Downtown Salon",
    "owner_id": "owner-7",
    "hours": {
        "monday": ["09:00", "17:00"],
        "tuesday": ["09:00", "17:00"],
        "wednesday": ["09:00", "17:00"],
        "thursday": ["09:00", "17:00"],
        "friday": ["09:00", "17:00"],
        "saturday": None,
        "sunday": None,
    },
    "services": [
        {"service_id": "cut", "name": "Haircut", "duration_minutes": 30, "price": 25},
        {"service_id": "color", "name": "Coloring", "duration_minutes": 90},
    ],
}


def salon_directory() -> BusinessDirectory:
    return BusinessDirectory([BusinessProfile.from_dict(SALON)])
