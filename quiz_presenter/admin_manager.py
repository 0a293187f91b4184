"""
Admin account management and the admin access check.
"""
import logging
from typing import Any, Dict, List, Optional

from .data_manager import ADMINS, DataAccessError, DataStore, parse_admin
from .models import AdminAccount


class AdminManager:
    """Admin accounts are plain email records; a matching record grants access."""

    def __init__(self, store: DataStore):
        self.logger = logging.getLogger(__name__)
        self.store = store

    def list_admins(self) -> List[AdminAccount]:
        """All admins, oldest first."""
        records = self.store.read(ADMINS, order=[("created_at", True)])
        return [parse_admin(record) for record in records]

    def add_admin(self, email: str) -> Dict[str, Any]:
        """
        Grant admin access to an email address.

        Returns:
            Dictionary with success status, the account, and user-facing message
        """
        email = (email or "").strip()
        if not email:
            return self._failure("add_admin", "Email address is required.")

        try:
            if self._find(email) is not None:
                return self._failure("add_admin", f"{email} is already an admin.")
            account = parse_admin(self.store.insert(ADMINS, {"email": email}))
        except DataAccessError as e:
            return self._failure("add_admin", str(e))

        self.logger.info(f"Admin added: {email}")
        return {
            'success': True,
            'admin': account,
            'message': "Admin Added",
            'user_message': f"✅ Admin Added: {email}"
        }

    def remove_admin(self, admin_id: str) -> Dict[str, Any]:
        """Revoke admin access by record id."""
        try:
            removed = self.store.delete(ADMINS, admin_id)
        except DataAccessError as e:
            return self._failure("remove_admin", str(e))

        if not removed:
            return self._failure("remove_admin", "Admin not found.")

        self.logger.info(f"Admin removed: {admin_id}")
        return {
            'success': True,
            'message': "Admin Removed",
            'user_message': "✅ Admin Removed"
        }

    def is_admin(self, email: Optional[str]) -> bool:
        """
        Check whether an email has admin access.

        A missing email or a failed lookup denies access.
        """
        if not email:
            return False
        try:
            return self._find(email) is not None
        except DataAccessError as e:
            self.logger.error(f"Admin lookup failed for {email}: {e}")
            return False

    def _find(self, email: str) -> Optional[AdminAccount]:
        email = email.strip()
        records = self.store.read(ADMINS, filters={"email": email}, limit=1)
        if records:
            return parse_admin(records[0])

        # Stored addresses may differ in case from the linked one
        wanted = email.lower()
        for account in self.list_admins():
            if account.email.strip().lower() == wanted:
                return account
        return None

    def _failure(self, operation: str, error: str) -> Dict[str, Any]:
        self.logger.error(f"{operation} failed: {error}")
        return {
            'success': False,
            'error': error,
            'user_message': f"❌ {error}"
        }
