"""File-backed therapy profile store.

Each profile is one JSON file in the profiles directory, named after
the local time it was saved (``yyyy-MM-dd-HH-mm-ss.json``). Sorting
the file names therefore lists profiles in creation order without an
index file. The store keeps no cache: every listing re-reads the
directory.

The store holds no locks. Callers must not run two saves, or a save
and a delete, for the same profile name concurrently.
"""

import os
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from therapy_profiles.config import settings
from therapy_profiles.core.exceptions import ProfileError
from therapy_profiles.logging_config import get_logger
from therapy_profiles.schemas.profile import Profile, ProfileReference

logger = get_logger(__name__)

STORAGE_KEY_FORMAT = "%Y-%m-%d-%H-%M-%S"
PROFILE_FILE_EXTENSION = ".json"
_TEMP_FILE_SUFFIX = ".tmp"


class ProfileStoreError(ProfileError):
    """Base exception for profile storage errors."""

    pass


class StorageUnavailableError(ProfileStoreError):
    """The profiles directory cannot be created, read or written."""

    pass


class ProfileNotFoundError(ProfileStoreError):
    """No stored profile exists for the reference."""

    pass


class CorruptProfileError(ProfileStoreError):
    """A stored profile exists but cannot be parsed."""

    pass


def make_storage_key(moment: datetime) -> str:
    """Return the file name for a profile saved at ``moment``."""
    return moment.strftime(STORAGE_KEY_FORMAT) + PROFILE_FILE_EXTENSION


class ProfileStore:
    """Durable CRUD over therapy profiles in a single directory."""

    def __init__(
        self,
        directory: Path | str,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        self._directory = Path(directory)
        self._clock = clock or datetime.now

    @classmethod
    def from_settings(cls) -> "ProfileStore":
        """Build a store for the configured profiles directory."""
        return cls(settings.profiles_directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def ensure_storage_ready(self) -> None:
        """Create the profiles directory if it does not exist.

        Raises:
            StorageUnavailableError: If the path is occupied by something
                other than a directory, or cannot be created.
        """
        if self._directory.exists() and not self._directory.is_dir():
            msg = f"Profiles path {self._directory} exists and is not a directory"
            raise StorageUnavailableError(msg)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create profiles directory {self._directory}: {e}"
            raise StorageUnavailableError(msg) from e

    def list_profiles(self) -> list[ProfileReference]:
        """List references to every readable stored profile.

        Profiles are returned in creation order. Files that cannot be
        read or parsed are logged and skipped so one bad record does
        not hide the rest. Never raises.
        """
        if not self._directory.is_dir():
            return []

        try:
            paths = sorted(
                path
                for path in self._directory.iterdir()
                if path.suffix == PROFILE_FILE_EXTENSION
                and not path.name.startswith(".")
                and path.is_file()
            )
        except OSError as e:
            logger.warning(
                "Cannot list profiles directory",
                directory=str(self._directory),
                error=str(e),
            )
            return []

        references: list[ProfileReference] = []
        for path in paths:
            try:
                profile = self._read(path)
            except ProfileStoreError as e:
                logger.warning(
                    "Skipping unreadable profile",
                    storage_key=path.name,
                    error=str(e),
                )
                continue
            references.append(ProfileReference(name=profile.name, storage_key=path.name))

        return references

    def find(self, name: str) -> ProfileReference | None:
        """Return the first stored profile reference named ``name``."""
        return next((ref for ref in self.list_profiles() if ref.name == name), None)

    def exists(self, name: str) -> bool:
        return self.find(name) is not None

    def save(self, profile: Profile) -> ProfileReference:
        """Store ``profile``, replacing any stored profile with its name.

        The new record is written to a temporary file and renamed into
        place before the old record is removed, so an interrupted save
        leaves either the old or the new record on disk, never neither.

        Args:
            profile: The profile to store.

        Returns:
            Reference to the newly written record.

        Raises:
            StorageUnavailableError: If the record cannot be written.
        """
        reference, _ = self._save(profile)
        return reference

    def save_and_list(self, profile: Profile) -> list[ProfileReference]:
        """Store ``profile`` like ``save`` and return the resulting listing."""
        _, references = self._save(profile)
        return references

    def _save(self, profile: Profile) -> tuple[ProfileReference, list[ProfileReference]]:
        self.ensure_storage_ready()

        existing = self.list_profiles()
        replaced_keys = [ref.storage_key for ref in existing if ref.name == profile.name]
        storage_key = self._allocate_storage_key(replaced_keys)
        path = self._directory / storage_key

        self._write_atomic(path, profile.to_json())

        # Keys no longer on disk: the overwritten one plus each removed record
        gone_keys = {storage_key}
        for old_key in replaced_keys:
            if old_key == storage_key:
                continue
            try:
                (self._directory / old_key).unlink()
            except FileNotFoundError:
                logger.debug("Replaced profile already removed", storage_key=old_key)
            except OSError as e:
                # The new record is in place; a leftover old record only
                # duplicates the name in listings.
                logger.error(
                    "Could not remove replaced profile",
                    storage_key=old_key,
                    error=str(e),
                )
                continue
            gone_keys.add(old_key)

        reference = ProfileReference(name=profile.name, storage_key=storage_key)
        references = sorted(
            [ref for ref in existing if ref.storage_key not in gone_keys] + [reference],
            key=lambda ref: ref.storage_key,
        )
        logger.info(
            "Saved profile",
            name=profile.name,
            storage_key=storage_key,
            replaced=replaced_keys,
            profile_count=len(references),
        )
        return reference, references

    def load(self, reference: ProfileReference) -> Profile:
        """Read the full profile behind ``reference``.

        Raises:
            ProfileNotFoundError: If the record no longer exists.
            CorruptProfileError: If the record cannot be parsed.
        """
        profile = self._read(self._path_for(reference.storage_key))
        logger.debug("Loaded profile", name=profile.name, storage_key=reference.storage_key)
        return profile

    def delete(self, reference: ProfileReference) -> None:
        """Remove the record behind ``reference``.

        Raises:
            ProfileNotFoundError: If the record no longer exists.
            StorageUnavailableError: If the record cannot be removed.
        """
        path = self._path_for(reference.storage_key)
        try:
            path.unlink()
        except FileNotFoundError as e:
            msg = f"Profile {reference} not found"
            raise ProfileNotFoundError(msg) from e
        except OSError as e:
            msg = f"Cannot delete profile {reference}: {e}"
            raise StorageUnavailableError(msg) from e

        logger.info("Deleted profile", name=reference.name, storage_key=reference.storage_key)

    def _path_for(self, storage_key: str) -> Path:
        """Resolve a storage key to a path inside the profiles directory."""
        if (
            Path(storage_key).name != storage_key
            or storage_key.startswith(".")
            or not storage_key.endswith(PROFILE_FILE_EXTENSION)
        ):
            msg = f"No profile stored under {storage_key!r}"
            raise ProfileNotFoundError(msg)
        return self._directory / storage_key

    def _read(self, path: Path) -> Profile:
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            msg = f"No profile stored under {path.name!r}"
            raise ProfileNotFoundError(msg) from e
        except OSError as e:
            msg = f"Cannot read profile {path.name!r}: {e}"
            raise StorageUnavailableError(msg) from e

        try:
            return Profile.from_json(data)
        except ValidationError as e:
            msg = f"Profile {path.name!r} is corrupt: {e.error_count()} error(s)"
            raise CorruptProfileError(msg) from e

    def _allocate_storage_key(self, replaced_keys: list[str]) -> str:
        """Pick a free timestamp key, moving forward a second on collision.

        A key held by a record being replaced counts as free: the atomic
        rename overwrites it.
        """
        moment = self._clock()
        storage_key = make_storage_key(moment)
        while (self._directory / storage_key).exists() and storage_key not in replaced_keys:
            moment += timedelta(seconds=1)
            storage_key = make_storage_key(moment)
        return storage_key

    def _write_atomic(self, path: Path, content: str) -> None:
        tmp_path = path.with_name(f".{path.name}{_TEMP_FILE_SUFFIX}")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            # Atomic replace
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            msg = f"Cannot write profile {path.name!r}: {e}"
            raise StorageUnavailableError(msg) from e
