"""Profile load pipeline.

Activates a stored profile in four steps:

1. Validate the profile (no pump contact on failure).
2. Send the basal schedule to the pump and wait for the pump to confirm
   it. The pump may snap rates to its own increments, so the schedule it
   returns is the one that gets committed.
3. Commit correction range, carb ratio, the confirmed basal schedule and
   insulin sensitivity to the active configuration, in that order. If
   one of them is rejected, the schedules already applied are restored.
4. Report exactly one LoadProfileResult.

The pipeline runs on an asyncio event loop, which is the single context
allowed to mutate the active configuration. The commit step performs no
awaits, so no other coroutine on the loop observes a partly applied
profile. Nothing is retried; the caller decides whether to load again.
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Protocol

from therapy_profiles.core.exceptions import ProfileError
from therapy_profiles.core.guardrails import (
    ProfileValidationFailedError,
    ProfileValidationResult,
)
from therapy_profiles.logging_config import correlation_scope, get_logger
from therapy_profiles.schemas.profile import Profile
from therapy_profiles.schemas.schedule import (
    BasalRateSchedule,
    CarbRatioSchedule,
    GlucoseRangeSchedule,
    InsulinSensitivitySchedule,
    ScheduleItem,
)

logger = get_logger(__name__)

BasalItems = Sequence[ScheduleItem[float]]
BasalSyncCompletion = Callable[[BasalItems | BaseException], None]

# Background load tasks, kept referenced until they finish.
_background_tasks: set[asyncio.Task] = set()


class BasalSyncError(ProfileError):
    """The pump could not synchronize the basal schedule."""

    def __init__(self, error: BaseException):
        super().__init__(f"Basal schedule sync failed: {error}")
        self.error = error


class ProfileCommitError(ProfileError):
    """The active configuration rejected a profile schedule.

    Schedules applied before the failure have been restored.
    """

    pass


class ProfileLoadAbortedError(ProfileError):
    """The load stopped on an unexpected error outside sync and commit."""

    pass


class LoadState(StrEnum):
    """States of a single profile load."""

    idle = auto()
    validating = auto()
    syncing_basal = auto()
    committing = auto()
    succeeded = auto()
    failed = auto()


_TRANSITIONS: dict[LoadState, frozenset[LoadState]] = {
    LoadState.idle: frozenset({LoadState.validating}),
    LoadState.validating: frozenset({LoadState.syncing_basal, LoadState.failed}),
    LoadState.syncing_basal: frozenset({LoadState.committing, LoadState.failed}),
    LoadState.committing: frozenset({LoadState.succeeded, LoadState.failed}),
    LoadState.succeeded: frozenset(),
    LoadState.failed: frozenset(),
}


@dataclass(frozen=True)
class LoadProfileResult:
    """Outcome of a profile load."""

    profile_name: str
    error: ProfileError | None = None
    basal_rate_schedule: BasalRateSchedule | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(
        cls, profile_name: str, basal_rate_schedule: BasalRateSchedule
    ) -> "LoadProfileResult":
        return cls(profile_name=profile_name, basal_rate_schedule=basal_rate_schedule)

    @classmethod
    def failure(cls, profile_name: str, error: ProfileError) -> "LoadProfileResult":
        return cls(profile_name=profile_name, error=error)


LoadCompletion = Callable[[LoadProfileResult], None]


class BasalScheduleSynchronizer(Protocol):
    """Pump-side delegate that programs a basal schedule.

    Returns the schedule as confirmed by the pump, either as a
    BasalRateSchedule or as its items. Raises on failure.
    """

    async def sync_basal_rate_schedule(
        self, items: BasalItems
    ) -> BasalRateSchedule | BasalItems: ...


class ActiveConfiguration(Protocol):
    """The live therapy configuration a loaded profile is committed to."""

    correction_range: GlucoseRangeSchedule | None
    carb_ratio_schedule: CarbRatioSchedule | None
    basal_rate_schedule: BasalRateSchedule | None
    insulin_sensitivity_schedule: InsulinSensitivitySchedule | None
    maximum_basal_rate_per_hour: float | None

    # None clears a schedule; a failed load restores earlier values this way.
    def apply_correction_range(self, schedule: GlucoseRangeSchedule | None) -> None: ...

    def apply_carb_ratio_schedule(self, schedule: CarbRatioSchedule | None) -> None: ...

    def apply_basal_rate_schedule(self, schedule: BasalRateSchedule | None) -> None: ...

    def apply_insulin_sensitivity_schedule(
        self, schedule: InsulinSensitivitySchedule | None
    ) -> None: ...


class CallbackBasalSyncAdapter:
    """Adapts a callback-style pump delegate to BasalScheduleSynchronizer.

    The wrapped function receives the basal items and a completion
    callable, and must call it once with either the confirmed items or
    an exception. The completion may be called from any thread: the
    result is handed back to the event loop with
    ``call_soon_threadsafe`` before the pipeline continues. Repeated
    completions are ignored.
    """

    def __init__(self, sync: Callable[[BasalItems, BasalSyncCompletion], None]):
        self._sync = sync

    async def sync_basal_rate_schedule(self, items: BasalItems) -> BasalItems:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def complete(result: BasalItems | BaseException) -> None:
            loop.call_soon_threadsafe(_resolve_sync_future, future, result)

        self._sync(items, complete)
        return await future


def _resolve_sync_future(
    future: asyncio.Future, result: BasalItems | BaseException
) -> None:
    if future.done():
        logger.warning("Ignoring repeated basal sync completion")
        return
    if isinstance(result, BaseException):
        future.set_exception(result)
    else:
        future.set_result(result)


def _as_basal_schedule(confirmed: BasalRateSchedule | BasalItems) -> BasalRateSchedule:
    if isinstance(confirmed, BasalRateSchedule):
        return confirmed
    return BasalRateSchedule.from_pairs(
        (item.start_time, item.value) for item in confirmed
    )


class ProfileLoadPipeline:
    """Runs one profile load through its state machine.

    Each instance loads one profile once. Calling ``run`` or ``start`` a
    second time raises RuntimeError, so a load can never report two
    outcomes. Cancellation is not supported: once the basal sync has
    been requested the load runs to success or failure, and a caller
    that no longer cares should ignore the result.
    """

    def __init__(
        self,
        profile: Profile,
        *,
        validate: Callable[[Profile], ProfileValidationResult],
        synchronizer: BasalScheduleSynchronizer,
        configuration: ActiveConfiguration,
    ):
        self.profile = profile
        self._validate = validate
        self._synchronizer = synchronizer
        self._configuration = configuration
        self._state = LoadState.idle
        self._started = False
        self._result: LoadProfileResult | None = None

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def result(self) -> LoadProfileResult | None:
        """The outcome, once the pipeline has finished."""
        return self._result

    def _transition(self, new_state: LoadState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            msg = f"Invalid profile load transition {self._state} -> {new_state}"
            raise RuntimeError(msg)
        logger.debug(
            "Profile load state changed",
            profile=self.profile.name,
            old_state=str(self._state),
            new_state=str(new_state),
        )
        self._state = new_state

    def _claim(self) -> None:
        if self._started:
            msg = f"Profile load already started (state: {self._state})"
            raise RuntimeError(msg)
        self._started = True

    def _finish(self, result: LoadProfileResult) -> LoadProfileResult:
        self._transition(LoadState.succeeded if result.succeeded else LoadState.failed)
        self._result = result
        return result

    def _fail(self, error: ProfileError) -> LoadProfileResult:
        return self._finish(LoadProfileResult.failure(self.profile.name, error))

    async def run(self) -> LoadProfileResult:
        """Validate, sync the basal schedule, and commit the profile.

        Returns:
            LoadProfileResult with the confirmed basal schedule on
            success, or the validation, sync or commit error.
        """
        self._claim()
        return await self._execute()

    async def _execute(self) -> LoadProfileResult:
        with correlation_scope():
            self._transition(LoadState.validating)
            try:
                validation = self._validate(self.profile)
            except Exception as e:
                logger.exception("Profile validation raised", profile=self.profile.name)
                return self._abort(e)
            if not validation.valid:
                logger.warning(
                    "Profile failed validation",
                    profile=self.profile.name,
                    error=str(validation.error),
                    reason=validation.message,
                )
                return self._fail(ProfileValidationFailedError(validation.error))

            self._transition(LoadState.syncing_basal)
            logger.info(
                "Syncing basal schedule to pump",
                profile=self.profile.name,
                items=len(self.profile.basal_rate_schedule.items),
            )
            try:
                confirmed = await self._synchronizer.sync_basal_rate_schedule(
                    self.profile.basal_rate_schedule.items
                )
                basal_schedule = _as_basal_schedule(confirmed)
            except Exception as e:
                logger.warning(
                    "Basal schedule sync failed",
                    profile=self.profile.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return self._fail(BasalSyncError(e))

            self._transition(LoadState.committing)
            try:
                self._commit(basal_schedule)
            except Exception as e:
                logger.exception(
                    "Committing profile to active configuration failed",
                    profile=self.profile.name,
                )
                msg = f"Could not apply profile {self.profile.name!r}: {e}"
                error = ProfileCommitError(msg)
                error.__cause__ = e
                return self._fail(error)

            logger.info(
                "Profile loaded",
                profile=self.profile.name,
                basal_total_units=round(basal_schedule.total(), 2),
            )
            return self._finish(
                LoadProfileResult.success(self.profile.name, basal_schedule)
            )

    def _commit(self, basal_schedule: BasalRateSchedule) -> None:
        """Apply the four schedules, restoring the applied ones on failure."""
        config = self._configuration
        steps = [
            (
                "correction_range",
                config.apply_correction_range,
                self.profile.correction_range,
            ),
            (
                "carb_ratio_schedule",
                config.apply_carb_ratio_schedule,
                self.profile.carb_ratio_schedule,
            ),
            ("basal_rate_schedule", config.apply_basal_rate_schedule, basal_schedule),
            (
                "insulin_sensitivity_schedule",
                config.apply_insulin_sensitivity_schedule,
                self.profile.insulin_sensitivity_schedule,
            ),
        ]
        applied = []
        try:
            for field, apply, schedule in steps:
                # Recorded before applying so a half-applied step is restored too
                applied.append((field, apply, getattr(config, field)))
                apply(schedule)
        except Exception:
            self._rollback(applied)
            raise

    def _rollback(self, applied: list) -> None:
        for field, apply, previous in reversed(applied):
            try:
                apply(previous)
            except Exception:
                logger.exception(
                    "Could not restore schedule after failed commit",
                    profile=self.profile.name,
                    schedule=field,
                )

    def _abort(self, error: Exception) -> LoadProfileResult:
        if self._result is not None:
            return self._result
        msg = f"Loading profile {self.profile.name!r} stopped: {error}"
        aborted = ProfileLoadAbortedError(msg)
        aborted.__cause__ = error
        return self._fail(aborted)

    def start(self, completion: LoadCompletion) -> asyncio.Task:
        """Run the load in the background and report to ``completion``.

        Must be called from the event loop that owns the active
        configuration. ``completion`` is invoked exactly once, on that
        loop, with the LoadProfileResult.

        Returns:
            The background task, for callers that want to await it.
        """
        self._claim()
        task = asyncio.get_running_loop().create_task(self._run_and_complete(completion))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return task

    async def _run_and_complete(self, completion: LoadCompletion) -> LoadProfileResult:
        try:
            result = await self._execute()
        except Exception as e:
            logger.exception("Profile load failed unexpectedly", profile=self.profile.name)
            result = self._abort(e)
        try:
            completion(result)
        except Exception:
            logger.exception(
                "Profile load completion callback raised", profile=self.profile.name
            )
        return result
