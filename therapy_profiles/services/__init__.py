# Profile Services
from therapy_profiles.services.profile_loader import (
    ActiveConfiguration,
    BasalScheduleSynchronizer,
    BasalSyncError,
    CallbackBasalSyncAdapter,
    LoadProfileResult,
    LoadState,
    ProfileCommitError,
    ProfileLoadAbortedError,
    ProfileLoadPipeline,
)
from therapy_profiles.services.profile_manager import (
    DeviceCapabilities,
    IncompleteTherapySettingsError,
    ProfileManager,
)
from therapy_profiles.services.profile_store import (
    CorruptProfileError,
    ProfileNotFoundError,
    ProfileStore,
    ProfileStoreError,
    StorageUnavailableError,
)

__all__ = [
    "ActiveConfiguration",
    "BasalScheduleSynchronizer",
    "BasalSyncError",
    "CallbackBasalSyncAdapter",
    "CorruptProfileError",
    "DeviceCapabilities",
    "IncompleteTherapySettingsError",
    "LoadProfileResult",
    "LoadState",
    "ProfileCommitError",
    "ProfileLoadAbortedError",
    "ProfileLoadPipeline",
    "ProfileManager",
    "ProfileNotFoundError",
    "ProfileStore",
    "ProfileStoreError",
    "StorageUnavailableError",
]
