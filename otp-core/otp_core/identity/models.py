"""
Identity Models
===============
User identity bound to a verified phone number.
"""

import copy
from datetime import datetime
from typing import Any, Dict, Optional
from dataclasses import dataclass, field


@dataclass
class Identity:
    """A durable user account keyed by canonical phone number."""
    id: str
    phone_number: str
    created_at: datetime
    phone_verified: bool = False
    last_login_at: Optional[datetime] = None
    profile: Dict[str, Any] = field(default_factory=dict)


# Profile scaffolding for identities created on first verification
DEFAULT_PROFILE: Dict[str, Any] = {
    "is_verified": True,
    "is_active": True,
    "auth_method": "phone",
    "preferences": {
        "language": "en",
        "theme": "system",
        "notifications": {
            "safety_alerts": True,
            "journey_updates": True,
            "emergency_alerts": True,
            "system_announcements": True,
        },
    },
    "stats": {
        "today_trips": 0,
        "total_trips": 0,
        "carbon_saved": 0.0,
        "points_earned": 0,
        "safety_score": 5.0,
    },
}


def default_profile() -> Dict[str, Any]:
    """A fresh, independent copy of the default profile."""
    return copy.deepcopy(DEFAULT_PROFILE)
