"""
Caller Identity Model
"""
from pydantic import BaseModel


class CallerIdentity(BaseModel):
    """Verified caller, as produced by the identity resolver"""
    uid: str
    identity: str  # telephony-safe address the caller is dialed back at
    caller_name: str
    first_name: str
    last_name: str = ""
    user_email: str = ""
