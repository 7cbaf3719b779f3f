"""Ads configuration defaults."""

from typing import Any

# Google's public test ad unit ids
DEFAULT_AD_UNITS = {
    "BANNER": "ca-app-pub-3940256099942544/6300978111",
    "INTERSTITIAL": "ca-app-pub-3940256099942544/1033173712",
    "REWARDED": "ca-app-pub-3940256099942544/5224354917",
}


def default_ads_config(chapter_lock_duration_ms: int) -> dict[str, Any]:
    """Config served until an admin stores one."""
    return {
        "enabled": True,
        "adUnits": dict(DEFAULT_AD_UNITS),
        "adFrequency": {
            "TAB_SWITCH": 0.3,
            "SCROLL_THRESHOLD": 1500,
            "INTERSTITIAL_COOLDOWN": 120000,
        },
        "rewardAdTimeout": 30000,
        "chapterLockDuration": chapter_lock_duration_ms,
        "debugMode": False,
    }
