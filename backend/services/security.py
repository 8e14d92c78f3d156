"""
Security configuration and primitives shared by the gallery services.
Holds the environment-driven settings, opaque token generation, and security event logging.
"""
import os
import secrets
from typing import Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

# Byte lengths for every kind of opaque token the application issues
SESSION_TOKEN_BYTES = 32
INVITE_TOKEN_BYTES = 24
SHARE_TOKEN_BYTES = 20
SLUG_SUFFIX_BYTES = 3

SESSION_COOKIE_NAME = "photoapp_session"
INTERNAL_MEDIA_PREFIX = "/internal/media"

MEDIA_DELIVERY_MODES = ("x-accel", "direct")

class SecurityConfig:
    """Centralized application configuration with validation."""

    def __init__(self):
        # Session and link lifetimes
        self.session_expires_days = int(os.getenv("SESSION_EXPIRES_DAYS", "14"))
        self.share_expires_hours = int(os.getenv("SHARE_EXPIRES_HOURS", "24"))
        self.invite_expires_days = int(os.getenv("INVITE_EXPIRES_DAYS", "7"))
        self.cookie_secure = os.getenv("COOKIE_SECURE", "false").lower() == "true"

        # Password policy for invite redemption
        self.password_min_length = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))

        # Media storage and delivery
        self.media_root = os.getenv("MEDIA_ROOT", "./media")
        self.media_delivery = os.getenv("MEDIA_DELIVERY", "x-accel").lower()
        self.max_upload_mb = int(os.getenv("MAX_UPLOAD_MB", "25"))

        # Outbound email
        self.app_url = os.getenv("APP_URL", "http://localhost:5173").rstrip("/")
        self.email_from = os.getenv("EMAIL_FROM", "no-reply@localhost")
        self.sendgrid_api_key = os.getenv("SENDGRID_API_KEY", "")

        # Rate limiting settings
        self.rate_limit_requests_per_minute = int(os.getenv("RATE_LIMIT_REQUESTS_PER_MINUTE", "100"))
        self.rate_limit_login_per_minute = int(os.getenv("RATE_LIMIT_LOGIN_PER_MINUTE", "5"))
        self.rate_limit_invites_per_minute = int(os.getenv("RATE_LIMIT_INVITES_PER_MINUTE", "3"))
        self.rate_limit_share_per_minute = int(os.getenv("RATE_LIMIT_SHARE_PER_MINUTE", "30"))

        # HTTP surface
        self.cors_origin = os.getenv("CORS_ORIGIN", "http://localhost:5173")
        self.enable_security_headers = os.getenv("ENABLE_SECURITY_HEADERS", "true").lower() == "true"

        self._validate_config()

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def _validate_config(self):
        """Validate configuration; fatal problems raise, weak settings only warn."""
        if self.media_delivery not in MEDIA_DELIVERY_MODES:
            raise ValueError(
                f"MEDIA_DELIVERY must be one of {', '.join(MEDIA_DELIVERY_MODES)}, got {self.media_delivery!r}"
            )

        if self.session_expires_days <= 0 or self.share_expires_hours <= 0 or self.invite_expires_days <= 0:
            raise ValueError("Session, share and invite lifetimes must be positive")

        issues = []

        if not self.cookie_secure:
            issues.append("COOKIE_SECURE is disabled; session cookies will be sent over plain HTTP")

        if self.password_min_length < 6:
            issues.append("Password minimum length too short (<6 characters)")

        if not self.sendgrid_api_key:
            issues.append("SENDGRID_API_KEY not set; invite emails will only be logged")

        if issues:
            logger.warning("Configuration issues detected:")
            for issue in issues:
                logger.warning(f"  - {issue}")

class SecurityUtils:
    """Security utility functions shared across the gallery."""

    @staticmethod
    def generate_token(byte_length: int = SESSION_TOKEN_BYTES) -> str:
        """
        Generate an opaque lookup token of ``2 * byte_length`` hex characters.
        Tokens carry no embedded data and are never decoded.
        """
        if byte_length <= 0:
            raise ValueError("Token byte length must be positive")
        return secrets.token_hex(byte_length)

    @staticmethod
    def get_client_ip(request) -> str:
        """Extract client IP address handling proxies and load balancers."""
        forwarded_ips = request.headers.get("X-Forwarded-For")
        if forwarded_ips:
            # Take the first IP (original client)
            return forwarded_ips.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    @staticmethod
    def sanitize_email(email: str) -> str:
        """Normalize email address for lookups."""
        if not email:
            return ""
        return email.lower().strip()

    @staticmethod
    def mask_token(token: Optional[str]) -> str:
        """Shorten a token for logs so full credentials never reach log storage."""
        if not token:
            return ""
        return token[:6] + "..."

    @staticmethod
    def log_security_event(event_type: str, details: dict, user_email: Optional[str] = None,
                          client_ip: Optional[str] = None):
        """Log security events for monitoring and analysis."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "user_email": user_email,
            "client_ip": client_ip,
            "details": details
        }

        logger.info(f"SECURITY_EVENT: {log_entry}")

    @staticmethod
    def get_utc_now() -> datetime:
        """Get current UTC datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(value: datetime) -> datetime:
        """SQLite hands back naive datetimes; treat them as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @staticmethod
    def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
        """A missing expiry counts as expired so checks fail closed."""
        if expires_at is None:
            return True
        now = now or SecurityUtils.get_utc_now()
        return SecurityUtils.ensure_utc(expires_at) < now

# Global configuration instance
security_config = SecurityConfig()
