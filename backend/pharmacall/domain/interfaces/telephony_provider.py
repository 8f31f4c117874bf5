"""
Telephony Provider Interface
Abstract base class for the voice grant / call routing bridge
"""
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from pharmacall.domain.models.call_request import CallStatus
from pharmacall.domain.models.telephony import RoutingInstruction, TelephonyGrant


class TelephonyProvider(ABC):
    """Abstract base class for telephony providers"""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials for minting grants are present"""
        pass

    @property
    @abstractmethod
    def pharmacist_identity(self) -> str:
        """Default routing identity of the pharmacist console"""
        pass

    @abstractmethod
    def mint_grant(self, identity: str) -> TelephonyGrant:
        """
        Issue a short-lived voice grant scoped to `identity`.

        Raises:
            TelephonyNotConfigured: If credentials are missing
        """
        pass

    @abstractmethod
    def route_incoming(self, params: Mapping[str, Any]) -> RoutingInstruction:
        """
        Decide which identity an inbound leg is bridged to.

        Args:
            params: Raw leg parameters posted by the provider

        Returns:
            Routing instruction with correlation metadata attached
        """
        pass

    @abstractmethod
    def map_leg_status(self, provider_status: str) -> Optional[CallStatus]:
        """Translate a provider leg event into a call status, or None to ignore it"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass
