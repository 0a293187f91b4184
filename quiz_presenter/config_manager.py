"""
Configuration manager for Quiz Presenter settings.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .data_manager import DataStore, JsonDataStore


class ConfigurationError(Exception):
    """Raised when the configuration cannot be used to start the bot."""
    pass


class ConfigManager:
    """Manages bot configuration: backend, storage, timers and linked accounts."""

    # Default configuration values
    DEFAULT_BACKEND_TYPE = "json"
    DEFAULT_DATA_DIRECTORY = "./data/"
    DEFAULT_TIMER_DURATION = 30
    DEFAULT_IMAGE_BUCKET = "images"
    DEFAULT_WINNER_PHOTO_BUCKET = "winner-photos"
    DEFAULT_MAX_UPLOAD_MB = 5

    # Validation limits
    MIN_TIMER_DURATION = 5
    MAX_TIMER_DURATION = 300  # 5 minutes
    MIN_UPLOAD_MB = 1
    MAX_UPLOAD_MB = 50
    BACKEND_TYPES = ("json", "rest")

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self.reset_to_defaults()

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._backend_type = self.DEFAULT_BACKEND_TYPE
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self._backend_url = ""
        self._api_key = ""
        self._public_url_base = ""
        self._timer_duration = self.DEFAULT_TIMER_DURATION
        self._image_bucket = self.DEFAULT_IMAGE_BUCKET
        self._winner_photo_bucket = self.DEFAULT_WINNER_PHOTO_BUCKET
        self._max_upload_mb = self.DEFAULT_MAX_UPLOAD_MB
        self._linked_accounts: Dict[str, str] = {}
        self.logger.info("All settings reset to default values")

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply a parsed ``config.json`` dictionary.

        Invalid values are logged and skipped so the defaults stay in effect.

        Returns:
            List of user-facing messages for the values that were rejected
        """
        rejected = []

        backend = config.get('backend', {})
        storage = config.get('storage', {})
        quiz = config.get('quiz', {})
        auth = config.get('auth', {})

        results = [
            self.set_backend(
                backend.get('type', self.DEFAULT_BACKEND_TYPE),
                url=os.getenv('QUIZ_BACKEND_URL') or backend.get('url', ''),
                api_key=os.getenv('QUIZ_BACKEND_KEY') or backend.get('api_key', '')
            ),
            self.set_data_directory(backend.get('data_directory', self.DEFAULT_DATA_DIRECTORY)),
            self.set_timer_duration(quiz.get('default_timer_duration', self.DEFAULT_TIMER_DURATION)),
            self.set_max_upload_mb(storage.get('max_upload_mb', self.DEFAULT_MAX_UPLOAD_MB)),
        ]
        self._public_url_base = backend.get('public_url_base', '') or ''
        self._image_bucket = storage.get('image_bucket', self.DEFAULT_IMAGE_BUCKET)
        self._winner_photo_bucket = storage.get('winner_photo_bucket', self.DEFAULT_WINNER_PHOTO_BUCKET)

        for user_id, email in (auth.get('linked_accounts') or {}).items():
            results.append(self.link_account(user_id, email))

        for result in results:
            if not result['success']:
                rejected.append(result['user_message'])

        if rejected:
            self.logger.warning(f"Configuration applied with {len(rejected)} rejected values")
        else:
            self.logger.info("Configuration applied successfully")
        return rejected

    def set_backend(self, backend_type: str, url: str = "", api_key: str = "") -> Dict[str, Any]:
        """
        Select the data backend.

        Args:
            backend_type: ``json`` for local files or ``rest`` for the hosted backend
            url: Hosted backend base URL (``rest`` only)
            api_key: Hosted backend API key (``rest`` only)

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if backend_type not in self.BACKEND_TYPES:
            error_msg = f"Backend type must be one of {', '.join(self.BACKEND_TYPES)}, got {backend_type!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Unknown backend: {backend_type}"
            }

        if backend_type == "rest" and (not url or not api_key):
            error_msg = "REST backend requires both a URL and an API key"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Set backend.url and backend.api_key (or QUIZ_BACKEND_URL / QUIZ_BACKEND_KEY)"
            }

        self._backend_type = backend_type
        self._backend_url = url
        self._api_key = api_key
        self.logger.info(f"Backend set to {backend_type}")
        return {
            'success': True,
            'message': f"Backend set to {backend_type}",
            'user_message': f"✅ Using the {backend_type} backend"
        }

    def get_backend_type(self) -> str:
        return self._backend_type

    def set_data_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory used by the JSON backend.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str) or not directory.strip():
            error_msg = "Data directory must be a non-empty string"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Data directory path cannot be empty"
            }

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid directory path format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {directory}"
            }

        system_dirs = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']
        if any(normalized_path.startswith(sys_dir) for sys_dir in system_dirs):
            error_msg = f"Cannot use system directory: {normalized_path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Cannot use system directory: {directory}"
            }

        self._data_directory = normalized_path
        self.logger.info(f"Data directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Data directory set to {normalized_path}",
            'user_message': f"✅ Data directory set to {normalized_path}"
        }

    def get_data_directory(self) -> str:
        return self._data_directory

    def set_timer_duration(self, duration: int) -> Dict[str, Any]:
        """
        Set the default timer for newly added questions.

        Args:
            duration: Timer duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(duration, int) or isinstance(duration, bool):
            error_msg = f"Timer duration must be an integer, got {type(duration).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(duration).__name__}"
            }

        if duration < self.MIN_TIMER_DURATION:
            error_msg = f"Timer duration must be at least {self.MIN_TIMER_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too short: Minimum is {self.MIN_TIMER_DURATION} seconds"
            }

        if duration > self.MAX_TIMER_DURATION:
            error_msg = f"Timer duration cannot exceed {self.MAX_TIMER_DURATION} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too long: Maximum is {self.MAX_TIMER_DURATION} seconds ({self.MAX_TIMER_DURATION // 60} minutes)"
            }

        self._timer_duration = duration
        self.logger.info(f"Default timer duration set to {duration} seconds")
        return {
            'success': True,
            'message': f"Timer duration set to {duration} seconds",
            'user_message': f"✅ New questions default to {duration} seconds"
        }

    def get_timer_duration(self) -> int:
        return self._timer_duration

    def set_max_upload_mb(self, megabytes: int) -> Dict[str, Any]:
        """Set the upload size ceiling in megabytes."""
        if not isinstance(megabytes, int) or isinstance(megabytes, bool) or not (
            self.MIN_UPLOAD_MB <= megabytes <= self.MAX_UPLOAD_MB
        ):
            error_msg = f"Upload limit must be an integer between {self.MIN_UPLOAD_MB} and {self.MAX_UPLOAD_MB} MB"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self._max_upload_mb = megabytes
        return {
            'success': True,
            'message': f"Upload limit set to {megabytes} MB",
            'user_message': f"✅ Upload limit set to {megabytes} MB"
        }

    def get_max_upload_bytes(self) -> int:
        return self._max_upload_mb * 1024 * 1024

    def get_image_bucket(self) -> str:
        return self._image_bucket

    def get_winner_photo_bucket(self) -> str:
        return self._winner_photo_bucket

    def link_account(self, user_id: Any, email: str) -> Dict[str, Any]:
        """
        Record the email the identity provider reports for a Discord user.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(email, str) or "@" not in email:
            error_msg = f"Invalid email for user {user_id}: {email!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid email address for user {user_id}"
            }

        self._linked_accounts[str(user_id)] = email.strip()
        return {
            'success': True,
            'message': f"Linked user {user_id}",
            'user_message': f"✅ Linked user {user_id} to {email.strip()}"
        }

    def get_linked_email(self, user_id: Any) -> Optional[str]:
        return self._linked_accounts.get(str(user_id))

    def create_data_store(self) -> DataStore:
        """Build the configured DataStore."""
        if self._backend_type == "rest":
            from .rest_store import RestDataStore
            return RestDataStore(self._backend_url, self._api_key)
        return JsonDataStore(self._data_directory, self._public_url_base or None)

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        if self._backend_type not in self.BACKEND_TYPES:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid backend type: {self._backend_type}")

        if self._backend_type == "rest" and not (self._backend_url and self._api_key):
            validation_result["valid"] = False
            validation_result["issues"].append("Invalid backend credentials: URL and API key are required")

        if (not isinstance(self._timer_duration, int) or
                self._timer_duration < self.MIN_TIMER_DURATION or
                self._timer_duration > self.MAX_TIMER_DURATION):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid timer duration: {self._timer_duration}")

        if not self._image_bucket or not self._winner_photo_bucket:
            validation_result["valid"] = False
            validation_result["issues"].append("Invalid storage bucket: bucket names cannot be empty")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        backend = (
            f"rest ({self._backend_url})" if self._backend_type == "rest"
            else f"json ({self._data_directory})"
        )
        return (
            f"Presenter Settings:\n"
            f"• Backend: {backend}\n"
            f"• Default timer: {self._timer_duration} seconds\n"
            f"• Buckets: {self._image_bucket}, {self._winner_photo_bucket}\n"
            f"• Upload limit: {self._max_upload_mb} MB\n"
            f"• Linked accounts: {len(self._linked_accounts)}"
        )

    def get_user_friendly_validation_errors(self) -> List[str]:
        """Translate validation issues into messages for the bot owner."""
        user_friendly_errors = []

        for issue in self.validate_settings().get("issues", []):
            if "timer duration" in issue.lower():
                user_friendly_errors.append(
                    f"❌ Timer Duration Issue: {issue}. "
                    f"Please set a value between {self.MIN_TIMER_DURATION} and {self.MAX_TIMER_DURATION} seconds."
                )
            elif "backend" in issue.lower():
                user_friendly_errors.append(
                    f"❌ Backend Issue: {issue}. "
                    "Please check the backend section of config.json."
                )
            else:
                user_friendly_errors.append(f"❌ Configuration Issue: {issue}")

        return user_friendly_errors

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Perform a health check of the configuration.

        Returns:
            Dictionary with health status and recommendations
        """
        health_check = {
            'healthy': True,
            'warnings': [],
            'errors': [],
            'recommendations': []
        }

        validation_result = self.validate_settings()
        if not validation_result['valid']:
            health_check['healthy'] = False
            health_check['errors'].extend(self.get_user_friendly_validation_errors())

        if self._backend_type == "json":
            data_dir = Path(self._data_directory)
            if not data_dir.exists():
                health_check['warnings'].append(
                    f"⚠️ Data directory does not exist: {self._data_directory}"
                )
                health_check['recommendations'].append(
                    "The data directory will be created on the first write."
                )
            elif not os.access(data_dir, os.W_OK):
                health_check['healthy'] = False
                health_check['errors'].append(
                    f"❌ Cannot write to data directory: {self._data_directory}"
                )

        if not self._linked_accounts:
            health_check['warnings'].append("⚠️ No Discord accounts are linked to an email address")
            health_check['recommendations'].append(
                "Add auth.linked_accounts to config.json so admins can use management commands."
            )

        return health_check
