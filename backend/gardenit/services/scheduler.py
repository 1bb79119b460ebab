"""Periodic notification sweep and the loop that drives it."""
import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime

from sqlalchemy.orm import Session

from gardenit.config import get_settings
from gardenit.exceptions import RuleEvaluationError
from gardenit.models.user import User
from gardenit.services.email import SendEmail, send_email
from gardenit.services.notification_rules import ensure_built_in_rules, get_rules_by_user
from gardenit.services.reminders import deliver_due_reminders
from gardenit.services.rule_context import build_user_context
from gardenit.services.rule_evaluators import RuleRun, evaluate_rule
from gardenit.services.weather import WeatherClient

logger = logging.getLogger(__name__)


def evaluate_user_rules(
    db: Session,
    reference: datetime,
    user: User,
    weather_client: WeatherClient,
    send: SendEmail = send_email,
) -> dict:
    """Provision, build context once, then evaluate every enabled rule.

    A failing rule is logged and skipped; the remaining rules still run.
    """
    ensure_built_in_rules(db, user.id)
    rules = get_rules_by_user(db, user.id, enabled_only=True)
    context = build_user_context(db, user, weather_client)
    run = RuleRun(db=db, reference=reference, user=user, context=context, send=send)

    fired = 0
    failed = 0
    for rule in rules:
        rule_name = rule.name
        try:
            if evaluate_rule(run, rule):
                fired += 1
        except Exception as e:
            db.rollback()
            error = RuleEvaluationError(rule_name, user.id, e)
            logger.error("%s", error, exc_info=e)
            failed += 1
    return {"rules": len(rules), "fired": fired, "failed": failed}


def evaluate_notification_rules(
    db: Session,
    reference: datetime,
    weather_client: WeatherClient,
    send: SendEmail = send_email,
) -> dict:
    """Evaluate rules for every user with an email address."""
    users = db.query(User).filter(User.email.isnot(None)).order_by(User.created_at.asc()).all()

    evaluated = 0
    fired = 0
    failed = 0
    for user in users:
        user_id = user.id
        try:
            result = evaluate_user_rules(db, reference, user, weather_client, send)
        except Exception:
            db.rollback()
            logger.exception("Notification sweep failed for user %s", user_id)
            failed += 1
            continue
        evaluated += 1
        fired += result["fired"]
        failed += result["failed"]

    return {"users": evaluated, "fired": fired, "failed": failed}


def run_tick(
    session_factory: Callable[[], AbstractContextManager[Session]],
    reference: datetime,
    weather_client: WeatherClient,
    send: SendEmail = send_email,
) -> dict:
    """One full tick: deliver due reminders, then evaluate notification rules."""
    delivered = 0
    with session_factory() as db:
        if get_settings().deliver_reminders:
            delivered = deliver_due_reminders(db, reference, send)
        summary = evaluate_notification_rules(db, reference, weather_client, send)
    summary["reminders_delivered"] = delivered
    return summary


class NotificationScheduler:
    """Runs ``run_tick`` on a fixed interval until stopped.

    Ticks never overlap: the loop waits for a sweep to finish before sleeping
    again, and ``tick`` is guarded so a manual trigger during a running sweep
    is skipped rather than run concurrently.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]],
        weather_client: WeatherClient,
        interval_seconds: float,
        send: SendEmail = send_email,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.weather_client = weather_client
        self.interval_seconds = interval_seconds
        self.send = send
        self.clock = clock
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> dict | None:
        """Run one sweep; returns None if a sweep is already in flight."""
        if self._lock.locked():
            logger.warning("Notification sweep still running, skipping tick")
            return None
        async with self._lock:
            reference = self.clock()
            summary = await asyncio.to_thread(
                run_tick, self.session_factory, reference, self.weather_client, self.send
            )
            logger.info("Notification sweep at %s: %s", reference.isoformat(), summary)
            return summary

    async def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Notification sweep crashed")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="notification-scheduler")
        logger.info("Notification scheduler started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Signal the loop and wait for the in-flight sweep to finish."""
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Notification scheduler stopped")
