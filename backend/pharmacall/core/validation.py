"""
Capability Validation Module
Checks which call-queue paths are configured on startup
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pharmacall.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""
    capability: str
    setting: str
    level: str  # ok, warning or error
    message: str
    is_valid: bool = True


class ProviderValidator:
    """
    Validates capability configuration at startup.

    A missing capability only disables its own path (admission without
    telephony, console without basic-auth credentials), so problems are
    warnings unless strict mode is on.
    """

    def __init__(self, settings: Settings, strict: bool = False):
        """
        Initialize validator.

        Args:
            settings: Settings to inspect
            strict: If True, treat warnings as errors
        """
        self.settings = settings
        self.strict = strict
        self.results: List[ValidationResult] = []

    def validate_all(self) -> Tuple[bool, List[ValidationResult]]:
        """
        Validate every capability.

        Returns:
            Tuple of (all_valid, list of results)
        """
        self.results = []
        self._check_database()
        self._check_telephony()
        self._check_console()

        all_valid = all(r.is_valid for r in self.results)
        return all_valid, self.results

    def capabilities(self) -> Dict[str, bool]:
        """Capability name -> configured, for health reporting"""
        return {
            "database": self.settings.store_backend.lower() == "memory" or self.settings.supabase_configured,
            "auth": self.settings.supabase_configured,
            "telephony": bool(
                self.settings.vonage_application_id
                and (self.settings.vonage_private_key or self.settings.vonage_private_key_path)
            ),
            "console": self.settings.console_configured,
        }

    def _check_database(self):
        backend = self.settings.store_backend.lower()
        if backend == "memory":
            self._record("warning", "database", "STORE_BACKEND",
                "In-memory store selected (queue state is lost on restart)")
        elif backend != "supabase":
            self._record("error", "database", "STORE_BACKEND", f"Unknown store backend '{backend}'")
        elif not self.settings.supabase_configured:
            self._record("warning", "database", "SUPABASE_URL",
                "Supabase not configured: call queue endpoints will return 503")
        else:
            self._record("ok", "database", "SUPABASE_URL", "Supabase database configured")

        if not self.settings.supabase_configured:
            self._record("warning", "auth", "SUPABASE_SERVICE_KEY",
                "Supabase Auth not configured: bearer tokens cannot be verified")

    def _check_telephony(self):
        if not self.settings.vonage_application_id:
            self._record("warning", "telephony", "VONAGE_APPLICATION_ID",
                "Vonage application id not configured: voice calls disabled")
        elif not (self.settings.vonage_private_key or self.settings.vonage_private_key_path):
            self._record("warning", "telephony", "VONAGE_PRIVATE_KEY",
                "Vonage private key not configured: voice calls disabled")
        else:
            self._record("ok", "telephony", "VONAGE_APPLICATION_ID", "Vonage voice configured")

        if not self.settings.webhook_secret:
            self._record("warning", "telephony", "WEBHOOK_SECRET",
                "Webhook secret not configured: Vonage webhooks are unauthenticated")

    def _check_console(self):
        if not self.settings.console_configured:
            self._record("warning", "console", "PHARMACIST_USER",
                "Pharmacist console credentials not configured: console disabled")
        else:
            self._record("ok", "console", "PHARMACIST_USER", "Pharmacist console configured")

    def _record(self, level: str, capability: str, setting: str, message: str):
        # Strict mode turns warnings into failures
        is_valid = level == "ok" or (level == "warning" and not self.strict)
        self.results.append(ValidationResult(capability, setting, level, message, is_valid))

    def log_results(self):
        """Log one line per check at a level matching its outcome."""
        log_levels = {"ok": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}
        for r in self.results:
            level = log_levels[r.level] if r.is_valid else logging.ERROR
            logger.log(level, f"[{r.capability}] {r.setting}: {r.message}")

    def get_error_summary(self) -> Optional[str]:
        """Summary of failed checks for the startup exception, or None."""
        failed = [f"  - {r.setting}: {r.message}" for r in self.results if not r.is_valid]
        if not failed:
            return None
        return "\n".join(["Capability configuration errors:", *failed])


def validate_providers_on_startup(settings: Optional[Settings] = None, strict: bool = False) -> None:
    """
    Validate all capabilities at startup.

    Args:
        settings: Settings to inspect (defaults to the cached settings)
        strict: If True, fail on warnings too

    Raises:
        RuntimeError: If required configuration is missing
    """
    validator = ProviderValidator(settings or get_settings(), strict=strict)
    all_valid, _ = validator.validate_all()
    validator.log_results()

    if not all_valid:
        raise RuntimeError(validator.get_error_summary())

    logger.info("All capability configurations validated successfully")
