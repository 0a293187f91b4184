"""
Seasonal leaderboard management.
"""
import logging
from collections import Counter, OrderedDict
from typing import Any, Dict, List

from .config_manager import ConfigManager
from .data_manager import (
    LEADERBOARD,
    SEASONS,
    DataAccessError,
    DataStore,
    parse_leaderboard_entry,
    parse_season,
)
from .models import LeaderboardEntry, Season
from .uploads import UploadValidationError, upload_image

WINNER_PHOTO_PREFIX = "winner-photos"


class LeaderboardManager:
    """Seasons and their winners."""

    def __init__(self, store: DataStore, config_manager: ConfigManager):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.config_manager = config_manager

    def list_seasons(self) -> List[Season]:
        """All seasons, newest first."""
        records = self.store.read(SEASONS, order=[("created_at", False)])
        return [parse_season(record) for record in records]

    def create_season(self, name: str) -> Dict[str, Any]:
        """
        Create a season with a unique name.

        Returns:
            Dictionary with success status, the season, and user-facing message
        """
        name = (name or "").strip()
        if not name:
            return self._failure("create_season", "Season name is required.")

        try:
            if any(season.name == name for season in self.list_seasons()):
                return self._failure("create_season", "This season already exists.", title="Season Exists")
            season = parse_season(self.store.insert(SEASONS, {"name": name}))
        except DataAccessError as e:
            return self._failure("create_season", str(e))

        self.logger.info(f"Season created: {name}")
        return {
            'success': True,
            'season': season,
            'message': "Season Created",
            'user_message': f"✅ Season Created: **{name}**"
        }

    def get_entries(self, season: str) -> List[LeaderboardEntry]:
        """Winners of a season by position."""
        records = self.store.read(LEADERBOARD, filters={"season": season}, order=[("position", True)])
        return [parse_leaderboard_entry(record) for record in records]

    def add_entry(self, entry: LeaderboardEntry) -> Dict[str, Any]:
        """Save a single new winner."""
        return self.save_entries(entry.season, [entry])

    def save_entries(self, season: str, entries: List[LeaderboardEntry]) -> Dict[str, Any]:
        """
        Save a season's winners.

        New photos are validated and uploaded first; entries with an id are
        updated, the rest inserted. The first failure stops the save.

        Returns:
            Dictionary with success status, saved entries, and any duplicate positions
        """
        if not season:
            return self._failure("save_entries", "Select a season first.")

        for entry in entries:
            if not entry.winner_name or not entry.winner_name.strip():
                return self._failure("save_entries", "Winner name is required.")
            if not isinstance(entry.position, int) or isinstance(entry.position, bool) or entry.position < 1:
                return self._failure("save_entries", "Position must be a positive number.")

        saved = []
        try:
            for entry in entries:
                photo_url = entry.winner_photo
                if entry.photo is not None:
                    photo_url = upload_image(
                        self.store,
                        self.config_manager.get_winner_photo_bucket(),
                        WINNER_PHOTO_PREFIX,
                        season,
                        entry.photo,
                        self.config_manager.get_max_upload_bytes()
                    )

                record = {
                    "winner_name": entry.winner_name.strip(),
                    "winner_photo": photo_url,
                    "position": entry.position,
                    "score": entry.score
                }
                if entry.id:
                    stored = self.store.update(LEADERBOARD, entry.id, record)
                else:
                    stored = self.store.insert(LEADERBOARD, {"season": season, **record})
                saved.append(parse_leaderboard_entry(stored))

        except UploadValidationError as e:
            return self._failure("save_entries", str(e))
        except DataAccessError as e:
            return self._failure("save_entries", str(e))

        try:
            duplicates = self.find_duplicate_positions(self.get_entries(season))
        except DataAccessError as e:
            self.logger.warning(f"Could not re-read season {season} after save: {e}")
            duplicates = []
        if duplicates:
            self.logger.warning(f"Season {season} has shared positions: {duplicates}")

        user_message = "✅ Leaderboard Updated: all changes saved successfully."
        if duplicates:
            user_message += f"\n⚠️ Positions shared by more than one winner: {', '.join(map(str, duplicates))}"
        return {
            'success': True,
            'entries': saved,
            'duplicate_positions': duplicates,
            'message': "Leaderboard Updated",
            'user_message': user_message
        }

    def remove_entry(self, entry_id: str) -> Dict[str, Any]:
        """Delete a winner."""
        try:
            removed = self.store.delete(LEADERBOARD, entry_id)
        except DataAccessError as e:
            return self._failure("remove_entry", str(e))

        if not removed:
            return self._failure("remove_entry", "Winner not found.")
        return {
            'success': True,
            'message': "Winner Deleted",
            'user_message': "✅ Winner Deleted: entry removed successfully."
        }

    def get_public_leaderboard(self) -> "OrderedDict[str, List[LeaderboardEntry]]":
        """All winners grouped by season: seasons descending, positions ascending."""
        records = self.store.read(LEADERBOARD, order=[("season", False), ("position", True)])
        grouped: "OrderedDict[str, List[LeaderboardEntry]]" = OrderedDict()
        for record in records:
            entry = parse_leaderboard_entry(record)
            grouped.setdefault(entry.season, []).append(entry)
        return grouped

    @staticmethod
    def find_duplicate_positions(entries: List[LeaderboardEntry]) -> List[int]:
        """Positions held by more than one entry, in ascending order."""
        counts = Counter(entry.position for entry in entries)
        return sorted(position for position, count in counts.items() if count > 1)

    def _failure(self, operation: str, error: str, title: str = "Error") -> Dict[str, Any]:
        self.logger.error(f"{operation} failed: {error}")
        return {
            'success': False,
            'error': error,
            'title': title,
            'user_message': f"❌ {error}"
        }
