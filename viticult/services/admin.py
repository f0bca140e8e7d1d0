"""Admin accounts: login, password changes, recovery and bootstrap."""
import hashlib
import secrets
from typing import Any, Dict, Optional, Tuple

from pymongo.database import Database

from viticult.core.auth import create_access_token, hash_password, verify_password
from viticult.core.config import Settings, settings as default_settings
from viticult.core.errors import AuthenticationError, BadRequestError
from viticult.core.logging import get_logger
from viticult.core.security import LoginAttemptTracker
from viticult.domain.admin import AdminPrincipal
from viticult.infrastructure.redis import TokenStore
from viticult.services.notifications import NotificationService
from viticult.utils.dates import utcnow

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8
RESET_REQUESTED_MESSAGE = "If an admin account exists for that email, a reset link has been sent."


def _token_key(token: str) -> str:
    return f"recovery:{hashlib.sha256(token.encode('utf-8')).hexdigest()}"


class AdminService:
    """Operations on the ``admins`` collection."""

    collection_name = "admins"

    def __init__(self, db: Database, store: TokenStore, config: Optional[Settings] = None):
        self.db = db
        self.store = store
        self.config = config or default_settings

    @property
    def collection(self):
        return self.db[self.collection_name]

    def _find(self, email: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"email": email.strip().lower()})

    def authenticate(self, email: str, password: str, ip_address: str, tracker: LoginAttemptTracker) -> Tuple[str, AdminPrincipal]:
        """Check credentials and issue a JWT.

        Raises:
            AccountLockedError: Too many recent failures for this email/IP
            AuthenticationError: Wrong email or password
        """
        email = email.strip().lower()
        tracker.check(email, ip_address)

        admin = self._find(email)
        if not admin or not admin.get("isActive", True) or not verify_password(password, admin.get("passwordHash")):
            tracker.record_failure(email, ip_address)
            logger.warning(
                f"Failed admin login for {email}",
                extra={"admin_email": email, "client_ip": ip_address}
            )
            raise AuthenticationError("Invalid email or password")

        tracker.clear(email, ip_address)
        self.collection.update_one({"_id": admin["_id"]}, {"$set": {"lastLogin": utcnow()}})

        principal = AdminPrincipal(id=str(admin["_id"]), email=admin["email"])
        logger.info(f"Admin logged in: {email}", extra={"admin_email": email, "client_ip": ip_address})
        return create_access_token(principal), principal

    def _set_password(self, email: str, new_password: str) -> None:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        now = utcnow()
        self.collection.update_one(
            {"email": email},
            {"$set": {
                "passwordHash": hash_password(new_password),
                "passwordChangedAt": now,
                "updatedAt": now,
            }},
        )

    def change_password(self, principal: AdminPrincipal, current_password: str, new_password: str) -> str:
        """Replace the admin's password and return a fresh token.

        Tokens issued before the change stop working.
        """
        admin = self._find(principal.email)
        if not admin or not verify_password(current_password, admin.get("passwordHash")):
            raise AuthenticationError("Current password is incorrect")
        if current_password == new_password:
            raise BadRequestError("New password must be different from the current password")

        self._set_password(admin["email"], new_password)
        logger.info("Admin password changed", extra={"admin_email": admin["email"]})
        return create_access_token(AdminPrincipal(id=str(admin["_id"]), email=admin["email"]))

    def create_admin(self, email: str, password: str) -> Dict[str, Any]:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        now = utcnow()
        document = {
            "email": email.strip().lower(),
            "passwordHash": hash_password(password),
            "role": "admin",
            "isActive": True,
            "createdAt": now,
            "updatedAt": now,
        }
        result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info(f"Admin account created: {document['email']}", extra={"admin_email": document["email"]})
        return document

    def reset_admin(self, email: str, password: str) -> bool:
        """Set a new password for an existing admin; False if none exists."""
        admin = self._find(email)
        if admin is None:
            return False
        self._set_password(admin["email"], password)
        self.collection.update_one({"_id": admin["_id"]}, {"$set": {"isActive": True}})
        return True

    def ensure_default_admin(self) -> bool:
        """Create the configured admin when no admin exists yet."""
        if self.collection.count_documents({}) > 0:
            return False
        self.create_admin(self.config.admin_email, self.config.admin_password)
        return True

    def request_password_reset(self, email: str, notifications: NotificationService) -> Dict[str, Any]:
        """Start password recovery.

        The response is identical whether or not the email belongs to an
        admin. In development, if the link could not be mailed, the token is
        returned as ``devToken``.
        """
        response: Dict[str, Any] = {"success": True, "message": RESET_REQUESTED_MESSAGE}
        admin = self._find(email)
        if admin is None or not admin.get("isActive", True):
            logger.info("Password reset requested for unknown admin email")
            return response

        token = secrets.token_hex(32)
        self.store.set_json(
            _token_key(token),
            {"email": admin["email"], "used": False, "createdAt": utcnow().isoformat()},
            ttl_seconds=self.config.recovery_token_ttl_seconds,
        )

        link = f"{self.config.frontend_url.rstrip('/')}/admin/reset-password/{token}"
        sent = notifications.password_reset(admin["email"], link)
        logger.info(
            f"Password reset issued (mail sent: {sent})",
            extra={"admin_email": admin["email"]}
        )
        if not sent and self.config.environment == "development":
            response["devToken"] = token
        return response

    def verify_reset_token(self, token: str) -> str:
        """Return the admin email behind a reset token.

        Raises:
            BadRequestError: Token unknown, expired or already used
        """
        record = self.store.get_json(_token_key(token))
        if record is None:
            raise BadRequestError("Invalid or expired reset token")
        if record.get("used"):
            raise BadRequestError("Reset token has already been used")
        return record["email"]

    def reset_password(self, token: str, new_password: str) -> None:
        email = self.verify_reset_token(token)
        self._set_password(email, new_password)

        key = _token_key(token)
        record = self.store.get_json(key) or {"email": email}
        record["used"] = True
        self.store.set_json(key, record, ttl_seconds=self.config.recovery_token_ttl_seconds)
        logger.info("Admin password reset via recovery token", extra={"admin_email": email})
