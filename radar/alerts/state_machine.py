"""Alert transition function and dispatch."""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from ..core.interfaces import Notifier, Storage
from ..core.types import (
    AlertAction,
    AlertState,
    AlertThresholds,
    AlertVerdict,
    HolderSnapshot,
    MetricsSnapshot,
    ScoreResult,
    TokenRecord,
)
from ..scoring.rules import HARD_FLAGS
from .format import format_new_token_alert, format_update_alert

logger = structlog.get_logger(__name__)


def decide(
    current: ScoreResult,
    prior: AlertState | None,
    thresholds: AlertThresholds,
) -> AlertVerdict:
    """Decide whether a score warrants a new alert, an update, or silence.

    A token without a prior alerted score is Unalerted; otherwise Alerted.

    Args:
        current: Freshly computed score
        prior: Alert state for the token, if any
        thresholds: Alert tuning constants

    Returns:
        Verdict with the chosen action and a reason code
    """
    score = current.score

    if prior is None or prior.last_score is None:
        has_hard_flags = any(flag in HARD_FLAGS for flag in current.risk_flags)
        if score >= thresholds.score_threshold and not has_hard_flags:
            return AlertVerdict(action=AlertAction.SEND, reason="NEW_HIGH_SCORE")
        if score >= thresholds.score_threshold_with_flags:
            return AlertVerdict(action=AlertAction.SEND, reason="NEW_VERY_HIGH_SCORE")
        return AlertVerdict(action=AlertAction.SUPPRESS, reason="SCORE_BELOW_THRESHOLD")

    if abs(score - prior.last_score) >= thresholds.score_change_threshold:
        return AlertVerdict(action=AlertAction.UPDATE, reason="SCORE_CHANGE_SIGNIFICANT")

    flags_changed = set(current.risk_flags) != set(prior.last_risk_flags)
    if flags_changed and score >= thresholds.score_threshold:
        return AlertVerdict(action=AlertAction.UPDATE, reason="FLAGS_CHANGED")

    return AlertVerdict(action=AlertAction.SUPPRESS, reason="NO_SIGNIFICANT_CHANGE")


class AlertDispatcher:
    """Runs the alert state machine for a scored token and delivers the result."""

    def __init__(
        self,
        storage: Storage,
        notifier: Notifier | None,
        chat_id: str | None,
        thresholds: AlertThresholds,
        enabled: bool = True,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize alert dispatcher.

        Args:
            storage: Storage holding alert state
            notifier: Notification channel (None disables delivery)
            chat_id: Destination chat for alerts
            thresholds: Alert tuning constants
            enabled: Whether alerts are delivered at all
            now_fn: Optional clock (for testing)
        """
        self.storage = storage
        self.notifier = notifier
        self.chat_id = chat_id
        self.thresholds = thresholds
        self.enabled = enabled
        self._now_fn = now_fn or (lambda: datetime.now(UTC))

    async def process(
        self,
        token: TokenRecord,
        result: ScoreResult,
        metrics: MetricsSnapshot | None = None,
        holders: HolderSnapshot | None = None,
    ) -> AlertVerdict:
        """Decide and deliver an alert for a freshly scored token.

        Alert state is only written after a message was actually delivered;
        suppressed verdicts and failed sends leave it untouched so the same
        transition is re-evaluated on the next cycle.
        """
        prior = await self.storage.get_or_create_alert(token.mint)
        verdict = decide(result, prior, self.thresholds)

        if verdict.action == AlertAction.SUPPRESS:
            logger.debug(
                "Alert suppressed",
                token_mint=token.mint,
                score=result.score,
                reason=verdict.reason,
            )
            return verdict

        if not self.enabled or self.notifier is None or not self.chat_id:
            logger.info(
                "Alert delivery disabled, skipping",
                token_mint=token.mint,
                score=result.score,
                action=verdict.action.value,
            )
            return verdict

        logger.info(
            "Sending alert",
            token_mint=token.mint,
            score=result.score,
            action=verdict.action.value,
            reason=verdict.reason,
            previous_score=prior.last_score,
        )

        message_id = await self._deliver(verdict, token, result, prior, metrics, holders)
        if message_id is None:
            logger.error(
                "Alert delivery failed", token_mint=token.mint, score=result.score
            )
            return verdict

        await self.storage.update_alert(
            AlertState(
                token_mint=token.mint,
                last_score=result.score,
                last_sent_at=self._now_fn(),
                message_id=message_id,
                chat_id=self.chat_id,
                alert_count=prior.alert_count + 1,
                last_risk_flags=list(result.risk_flags),
            )
        )

        logger.info(
            "Alert sent",
            token_mint=token.mint,
            score=result.score,
            message_id=message_id,
            is_update=verdict.action == AlertAction.UPDATE,
        )
        return verdict

    async def _deliver(
        self,
        verdict: AlertVerdict,
        token: TokenRecord,
        result: ScoreResult,
        prior: AlertState,
        metrics: MetricsSnapshot | None,
        holders: HolderSnapshot | None,
    ) -> str | None:
        """Edit the previous message on update, otherwise (or on failure) send new."""
        if verdict.action == AlertAction.UPDATE and prior.message_id:
            text = format_update_alert(token, result, prior.last_score, metrics)
            try:
                if await self.notifier.edit(self.chat_id, prior.message_id, text):
                    return prior.message_id
            except Exception as e:
                logger.warning(
                    "Failed to edit alert, sending new message",
                    token_mint=token.mint,
                    message_id=prior.message_id,
                    error=str(e),
                )

        text = format_new_token_alert(token, result, metrics, holders)
        try:
            return await self.notifier.send(self.chat_id, text)
        except Exception as e:
            logger.error("Failed to send alert", token_mint=token.mint, error=str(e))
            return None
