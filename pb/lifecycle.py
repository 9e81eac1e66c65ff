"""Pre/post hook chain wrapped around every leaf command.

    PRE_RUN ──> EXECUTING ──> POST_RUN ──> DONE
       │                        │
       └────────> FAILED <──────┘  (body raised)

Pre-hooks run in order and any failure stops the command before its body
runs. Post-hooks run after the body whatever its outcome, and their own
failures are logged and dropped so they can never change the exit code.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Sequence

from pb.models import Profile, TelemetryTask

if TYPE_CHECKING:
    from pb.context import AppContext

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    PRE_RUN = "pre_run"
    EXECUTING = "executing"
    POST_RUN = "post_run"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Invocation:
    """One run of one leaf command."""
    command: str
    category: str
    args: tuple[str, ...] = ()
    flags: tuple[str, ...] = ()
    requested_profile: str | None = None
    requires_profile: bool = True
    profile: Profile | None = None
    stage: Stage = Stage.PRE_RUN
    error: BaseException | None = None
    history: list[Stage] = field(default_factory=list)

    def enter(self, stage: Stage) -> None:
        self.stage = stage
        self.history.append(stage)

    def telemetry_task(self) -> TelemetryTask:
        return TelemetryTask(
            command=self.command,
            category=self.category,
            args=self.args,
            flags=self.flags,
        )


Hook = Callable[["AppContext", Invocation], None]


# ── Default hooks ─────────────────────────────────────────────────────


def bootstrap_hook(app: AppContext, invocation: Invocation) -> None:
    app.store.ensure_bootstrapped()


def session_hook(app: AppContext, invocation: Invocation) -> None:
    app.session.ensure()


def resolve_hook(app: AppContext, invocation: Invocation) -> None:
    if invocation.requires_profile:
        invocation.profile = app.resolver.resolve(invocation.requested_profile)


def telemetry_hook(app: AppContext, invocation: Invocation) -> None:
    app.telemetry.dispatch(invocation.telemetry_task())


DEFAULT_PRE_HOOKS: tuple[Hook, ...] = (bootstrap_hook, session_hook, resolve_hook)
DEFAULT_POST_HOOKS: tuple[Hook, ...] = (telemetry_hook,)


class CommandLifecycle:
    def __init__(
        self,
        pre_hooks: Sequence[Hook] = DEFAULT_PRE_HOOKS,
        post_hooks: Sequence[Hook] = DEFAULT_POST_HOOKS,
    ) -> None:
        self.pre_hooks = list(pre_hooks)
        self.post_hooks = list(post_hooks)

    def run(self, app: AppContext, invocation: Invocation, body: Callable[[Invocation], Any]) -> Any:
        """Run ``body`` between the hooks and return its result.

        Exceptions from pre-hooks and from the body propagate to the caller.
        """
        invocation.enter(Stage.PRE_RUN)
        try:
            for hook in self.pre_hooks:
                hook(app, invocation)
        except BaseException as e:
            invocation.error = e
            invocation.enter(Stage.FAILED)
            raise

        invocation.enter(Stage.EXECUTING)
        try:
            result = body(invocation)
        except BaseException as e:
            invocation.error = e
            invocation.enter(Stage.POST_RUN)
            self._post_run(app, invocation)
            invocation.enter(Stage.FAILED)
            raise

        invocation.enter(Stage.POST_RUN)
        self._post_run(app, invocation)
        invocation.enter(Stage.DONE)
        return result

    def _post_run(self, app: AppContext, invocation: Invocation) -> None:
        for hook in self.post_hooks:
            try:
                hook(app, invocation)
            except Exception as e:
                logger.debug("Post-run hook %s failed for '%s': %s",
                             getattr(hook, "__name__", hook), invocation.command, e)
