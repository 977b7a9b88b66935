"""Deciding when content changes require a new static build, and running it.

``on_save`` is a pure function of the stored and the saved post. The
dispatcher turns an ``EnqueueRegeneration`` effect into a background job on a
single worker thread, so saves never block on a build and builds never
interleave.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Union

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)
from tenacity.wait import wait_base

from .errors import RegenerationDispatchError
from .models import Post, PostStatus, SiteConfig

logger = logging.getLogger(__name__)

TRACKED_FIELDS = ("title", "body_md", "excerpt", "slug", "published_at")
JOB_ATTEMPTS = 3
DISPATCH_ATTEMPTS = 3
# submitting runs on the caller's thread, so its retries stay short
DISPATCH_WAIT = wait_fixed(0.05)


@dataclass(frozen=True)
class NoOp:
    pass


@dataclass(frozen=True)
class EnqueueRegeneration:
    reason: str


Effect = Union[NoOp, EnqueueRegeneration]


def on_save(old: Optional[Post], new: Post) -> Effect:
    old_status = old.status if old is not None else None
    if old is None:
        if new.status == PostStatus.PUBLISHED:
            return EnqueueRegeneration(f"post '{new.slug}' created published")
        return NoOp()
    if old_status != new.status:
        return EnqueueRegeneration(f"post '{new.slug}' status {old_status.value} -> {new.status.value}")
    if new.status != PostStatus.PUBLISHED:
        return NoOp()
    changed = [name for name in TRACKED_FIELDS if getattr(old, name) != getattr(new, name)]
    if changed:
        return EnqueueRegeneration(f"post '{new.slug}' changed: {', '.join(changed)}")
    return NoOp()


def on_delete(post: Post) -> Effect:
    if post.status == PostStatus.PUBLISHED:
        return EnqueueRegeneration(f"post '{post.slug}' deleted")
    return NoOp()


def on_site_config_save(old: Optional[SiteConfig], new: SiteConfig) -> Effect:
    if old is None:
        return EnqueueRegeneration("site configuration created")
    changed = sorted(new.changed_fields(old))
    if changed:
        return EnqueueRegeneration(f"site configuration changed: {', '.join(changed)}")
    return NoOp()


class RegenerationDispatcher:
    def __init__(
        self,
        job: Callable[[], object],
        *,
        attempts: int = JOB_ATTEMPTS,
        wait: wait_base | None = None,
        dispatch_wait: wait_base = DISPATCH_WAIT,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._job = job
        self._attempts = attempts
        self._wait = wait if wait is not None else wait_exponential(multiplier=1, min=1, max=30)
        self._dispatch_wait = dispatch_wait
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="regenerate")

    def dispatch(self, effect: Effect) -> Future | None:
        if not isinstance(effect, EnqueueRegeneration):
            return None
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(DISPATCH_ATTEMPTS),
                wait=self._dispatch_wait,
                retry=retry_if_exception_type(RegenerationDispatchError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    future = self._enqueue(effect.reason)
        except RegenerationDispatchError:
            logger.critical("Could not queue static site generation (%s)", effect.reason, exc_info=True)
            return None
        logger.info("Queued static site generation (%s)", effect.reason)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _enqueue(self, reason: str) -> Future:
        try:
            return self._executor.submit(self._run, reason)
        except RuntimeError as exc:
            raise RegenerationDispatchError(str(exc)) from exc

    def _run(self, reason: str) -> object:
        logger.info("Starting static site generation (%s)", reason)
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._attempts),
                wait=self._wait,
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    result = self._job()
        except Exception:
            # nobody waits on this future for an exception
            logger.critical(
                "Static site generation failed after %d attempts (%s)", self._attempts, reason, exc_info=True
            )
            return None
        logger.info("Static site generation completed (%s)", reason)
        return result


class RegenerationTrigger:
    """Store hook that evaluates the save effect and hands it to the dispatcher."""

    def __init__(self, dispatcher: RegenerationDispatcher) -> None:
        self.dispatcher = dispatcher

    def __call__(self, old: Optional[Post], new: Post) -> Effect:
        effect = on_save(old, new)
        self.dispatcher.dispatch(effect)
        return effect

    def deleted(self, post: Post) -> Effect:
        effect = on_delete(post)
        self.dispatcher.dispatch(effect)
        return effect

    def site_config_saved(self, old: Optional[SiteConfig], new: SiteConfig) -> Effect:
        effect = on_site_config_save(old, new)
        self.dispatcher.dispatch(effect)
        return effect

    def attach(self, store) -> None:
        store.add_save_hook(self)
        store.add_delete_hook(self.deleted)
        store.add_site_config_hook(self.site_config_saved)
