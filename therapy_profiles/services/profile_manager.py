"""Profile manager.

The entry point host applications (settings screens, pump managers)
use to save the active therapy settings as a named profile, browse and
delete stored profiles, and load one back onto the pump.
"""

import asyncio
from typing import Protocol

from therapy_profiles.core.exceptions import ProfileError
from therapy_profiles.core.guardrails import (
    DEFAULT_GUARDRAILS,
    Guardrails,
    ProfileValidationResult,
    ProfileValidator,
)
from therapy_profiles.logging_config import get_logger
from therapy_profiles.schemas.profile import Profile, ProfileReference
from therapy_profiles.schemas.schedule import GlucoseUnit
from therapy_profiles.schemas.therapy_settings import SupportedIncrements
from therapy_profiles.services.profile_loader import (
    ActiveConfiguration,
    BasalScheduleSynchronizer,
    LoadCompletion,
    LoadProfileResult,
    ProfileLoadPipeline,
)
from therapy_profiles.services.profile_store import ProfileNotFoundError, ProfileStore

logger = get_logger(__name__)


class IncompleteTherapySettingsError(ProfileError):
    """The active configuration is missing a schedule a profile needs."""

    pass


class DeviceCapabilities(Protocol):
    """Reports what the connected pump can be programmed with."""

    def supported_increments(self) -> SupportedIncrements | None:
        """Return the pump's increments, or None when no pump is connected."""
        ...


class ProfileManager:
    """Saves, lists, validates, loads and deletes therapy profiles.

    The manager holds no profile state of its own: listings come fresh
    from the store on every call, and the active schedules are read
    from and committed to ``therapy_settings``.
    """

    def __init__(
        self,
        store: ProfileStore,
        therapy_settings: ActiveConfiguration,
        device: DeviceCapabilities,
        pump: BasalScheduleSynchronizer,
        *,
        guardrails: Guardrails = DEFAULT_GUARDRAILS,
    ):
        self.store = store
        self.therapy_settings = therapy_settings
        self.device = device
        self.pump = pump
        self.guardrails = guardrails
        self._validator = ProfileValidator()

    def list_profiles(self) -> list[ProfileReference]:
        return self.store.list_profiles()

    def profile_exists(self, name: str) -> bool:
        return self.store.exists(name)

    def get_profile(self, reference: ProfileReference) -> Profile:
        """Load the full profile behind ``reference`` for preview."""
        return self.store.load(reference)

    def snapshot(self, name: str) -> Profile:
        """Build a profile named ``name`` from the active therapy settings.

        Glucose schedules are stored in mg/dL regardless of the unit
        they are configured in.

        Raises:
            IncompleteTherapySettingsError: If any of the four schedules
                is not configured.
        """
        current = self.therapy_settings
        missing = [
            field
            for field in (
                "correction_range",
                "carb_ratio_schedule",
                "basal_rate_schedule",
                "insulin_sensitivity_schedule",
            )
            if getattr(current, field) is None
        ]
        if missing:
            msg = f"Cannot save profile {name!r}: not configured: {', '.join(missing)}"
            raise IncompleteTherapySettingsError(msg)

        return Profile(
            name=name,
            correction_range=current.correction_range.in_unit(GlucoseUnit.mg_dl),
            carb_ratio_schedule=current.carb_ratio_schedule,
            basal_rate_schedule=current.basal_rate_schedule,
            insulin_sensitivity_schedule=current.insulin_sensitivity_schedule.in_unit(
                GlucoseUnit.mg_dl
            ),
        )

    def save_profile(self, name: str) -> list[ProfileReference]:
        """Save the active therapy settings as profile ``name``.

        An existing profile with the same name is replaced.

        Returns:
            The refreshed list of stored profiles.
        """
        return self.store.save_and_list(self.snapshot(name))

    def delete_profile(self, target: ProfileReference | Profile) -> list[ProfileReference]:
        """Delete a stored profile, by reference or by the profile's name.

        Returns:
            The refreshed list of stored profiles.

        Raises:
            ProfileNotFoundError: If no stored profile matches.
        """
        if isinstance(target, Profile):
            reference = self.store.find(target.name)
            if reference is None:
                msg = f"No stored profile named {target.name!r}"
                raise ProfileNotFoundError(msg)
        else:
            reference = target

        self.store.delete(reference)
        return self.store.list_profiles()

    def supported_increments(self) -> SupportedIncrements | None:
        """Return the pump's increments, or None when they cannot be read."""
        try:
            return self.device.supported_increments()
        except Exception as e:
            logger.warning(
                "Cannot read pump capabilities",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    def validate_profile(self, profile: Profile) -> ProfileValidationResult:
        """Check ``profile`` against guardrails and the connected pump."""
        increments = self.supported_increments()
        return self._validator.validate(
            profile,
            supported_basal_rates=None if increments is None else increments.basal_rates,
            maximum_basal_rate_per_hour=self.therapy_settings.maximum_basal_rate_per_hour,
            guardrails=self.guardrails,
        )

    def _pipeline(self, profile: Profile) -> ProfileLoadPipeline:
        return ProfileLoadPipeline(
            profile,
            validate=self.validate_profile,
            synchronizer=self.pump,
            configuration=self.therapy_settings,
        )

    def load_profile(self, profile: Profile, completion: LoadCompletion) -> asyncio.Task:
        """Start loading ``profile`` onto the pump without blocking.

        Must be called from the event loop that owns the therapy
        settings. ``completion`` receives exactly one LoadProfileResult.
        """
        logger.info("Loading profile", profile=profile.name)
        return self._pipeline(profile).start(completion)

    async def load_profile_async(self, profile: Profile) -> LoadProfileResult:
        """Load ``profile`` onto the pump and return the outcome."""
        logger.info("Loading profile", profile=profile.name)
        return await self._pipeline(profile).run()
