"""
Telephony Provider Factory
"""
from typing import Dict, Type

from pharmacall.core.config import Settings
from pharmacall.domain.interfaces.telephony_provider import TelephonyProvider
from pharmacall.infrastructure.telephony.vonage_voice import VonageVoiceBridge


class TelephonyFactory:
    """Factory for creating Telephony provider instances"""

    _providers: Dict[str, Type[TelephonyProvider]] = {
        "vonage": VonageVoiceBridge,
    }

    @classmethod
    def create(cls, provider_name: str, settings: Settings, grant_ttl_seconds: int = 3600) -> TelephonyProvider:
        """Create Telephony provider instance"""
        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys()) if cls._providers else "None"
            raise ValueError(f"Unknown Telephony provider: {provider_name}. Available: {available}")

        provider_class = cls._providers[provider_name]
        return provider_class(settings, grant_ttl_seconds=grant_ttl_seconds)
