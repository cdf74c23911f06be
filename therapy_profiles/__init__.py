"""Therapy profiles: named snapshots of insulin therapy schedules.

Stores correction range, carb ratio, basal rate and insulin sensitivity
schedules as named profiles on disk, validates a profile against
clinical guardrails and the connected pump's capabilities, and loads it
back by syncing the basal schedule to the pump before committing all
four schedules to the active configuration.

Usage:
    from therapy_profiles import ProfileManager, ProfileStore, TherapySettings

    manager = ProfileManager(
        ProfileStore.from_settings(),
        therapy_settings,
        device=pump_manager,
        pump=pump_manager,
    )
    manager.save_profile("Weekday")
    profile = manager.get_profile(manager.list_profiles()[0])
    manager.load_profile(profile, on_loaded)
"""

from therapy_profiles.core.exceptions import ProfileError
from therapy_profiles.core.guardrails import (
    DEFAULT_GUARDRAILS,
    Guardrails,
    ProfileValidationError,
    ProfileValidationFailedError,
    ProfileValidationResult,
    ProfileValidator,
    validate_profile,
)
from therapy_profiles.schemas import (
    BasalRateSchedule,
    CarbRatioSchedule,
    DoubleRange,
    GlucoseRangeSchedule,
    GlucoseUnit,
    InsulinSensitivitySchedule,
    Profile,
    ProfileReference,
    ScheduleItem,
    SupportedIncrements,
    TherapySettings,
)
from therapy_profiles.services import (
    BasalSyncError,
    CallbackBasalSyncAdapter,
    CorruptProfileError,
    IncompleteTherapySettingsError,
    LoadProfileResult,
    LoadState,
    ProfileCommitError,
    ProfileLoadAbortedError,
    ProfileLoadPipeline,
    ProfileManager,
    ProfileNotFoundError,
    ProfileStore,
    ProfileStoreError,
    StorageUnavailableError,
)

__version__ = "1.0.0"

__all__ = [
    # Schedules and profiles
    "BasalRateSchedule",
    "CarbRatioSchedule",
    "DoubleRange",
    "GlucoseRangeSchedule",
    "GlucoseUnit",
    "InsulinSensitivitySchedule",
    "Profile",
    "ProfileReference",
    "ScheduleItem",
    "SupportedIncrements",
    "TherapySettings",
    # Validation
    "DEFAULT_GUARDRAILS",
    "Guardrails",
    "ProfileValidationError",
    "ProfileValidationResult",
    "ProfileValidator",
    "validate_profile",
    # Services
    "CallbackBasalSyncAdapter",
    "LoadProfileResult",
    "LoadState",
    "ProfileLoadPipeline",
    "ProfileManager",
    "ProfileStore",
    # Exceptions
    "BasalSyncError",
    "CorruptProfileError",
    "IncompleteTherapySettingsError",
    "ProfileCommitError",
    "ProfileLoadAbortedError",
    "ProfileError",
    "ProfileNotFoundError",
    "ProfileStoreError",
    "ProfileValidationFailedError",
    "StorageUnavailableError",
]
