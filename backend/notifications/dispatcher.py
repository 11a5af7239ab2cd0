"""
Push dispatcher: resolves members to device tokens, hands them to the push
gateway and prunes tokens the gateway reports as dead.

Delivery is best effort with one attempt per call. Nothing raised by the
registry or the gateway leaves this module.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from django.conf import settings

from core.exceptions import PermanentTokenError, TransientDispatchError
from .gateways import PushGateway, PushMessage, TokenOutcome, get_push_gateway, mask_token
from .models import Notification
from .registry import DeviceRegistry

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Summary of one dispatch call."""
    sent: int = 0
    failed: int = 0
    errors: Set[str] = field(default_factory=set)
    deactivated: List[str] = field(default_factory=list)


class PushDispatcher:
    """
    Fans a message out to every active device of one or many members.

    One token is sent directly; several tokens go out as multicast calls of
    at most PUSH_MULTICAST_CHUNK_SIZE tokens. Chunks fail independently.
    """

    def __init__(self, gateway: Optional[PushGateway] = None,
                 registry: Optional[DeviceRegistry] = None,
                 chunk_size: Optional[int] = None):
        self.gateway = gateway or get_push_gateway()
        self.registry = registry or DeviceRegistry()
        self.chunk_size = chunk_size or settings.PUSH_MULTICAST_CHUNK_SIZE

    def dispatch_to_member(self, member_id, notification) -> DispatchResult:
        """
        Sends a notification to all active devices of one member.

        Args:
            member_id: id of the recipient
            notification: Notification instance or PushMessage
        """
        return self.dispatch_to_members([member_id], notification)

    def dispatch_to_members(self, member_ids: Iterable, notification) -> DispatchResult:
        """
        Sends one message to all active devices of many members.

        Returns:
            DispatchResult: sent/failed counts; sent=0 without error when no
            member has a usable device
        """
        message = self._as_message(notification)
        member_ids = list(member_ids)
        result = DispatchResult()

        try:
            tokens_by_member = self.registry.list_active_tokens(member_ids)
        except Exception as e:
            logger.error(f"Could not load device tokens for {len(member_ids)} member(s): {str(e)}")
            result.errors.add('registry-unavailable')
            return result

        tokens = self._unique_tokens(tokens_by_member)
        if not tokens:
            logger.info(f"No deliverable device tokens for {len(member_ids)} member(s)")
            return result

        if len(tokens) == 1:
            self._send_single(tokens[0], message, result)
        else:
            for start in range(0, len(tokens), self.chunk_size):
                self._send_chunk(tokens[start:start + self.chunk_size], message, result)

        logger.info(
            f"Push '{message.title}' to {len(member_ids)} member(s): "
            f"{result.sent} sent, {result.failed} failed, {len(result.deactivated)} token(s) pruned"
        )
        return result

    def _send_single(self, token: str, message: PushMessage, result: DispatchResult) -> None:
        try:
            self.gateway.send_one(token, message)
            result.sent += 1
        except PermanentTokenError as e:
            result.failed += 1
            result.errors.add(e.reason)
            self._prune([token], result)
        except TransientDispatchError as e:
            logger.warning(f"Transient push failure for {mask_token(token)}: {e.reason}")
            result.failed += 1
            result.errors.add(e.reason)
        except Exception as e:
            logger.error(f"Error sending push to {mask_token(token)}: {str(e)}")
            result.failed += 1
            result.errors.add('gateway-error')

    def _send_chunk(self, tokens: List[str], message: PushMessage, result: DispatchResult) -> None:
        try:
            outcomes = self.gateway.send_multicast(tokens, message)
        except TransientDispatchError as e:
            logger.warning(f"Multicast of {len(tokens)} token(s) failed: {e.reason}")
            result.failed += len(tokens)
            result.errors.add(e.reason)
            return
        except Exception as e:
            logger.error(f"Error sending multicast of {len(tokens)} token(s): {str(e)}")
            result.failed += len(tokens)
            result.errors.add('gateway-error')
            return

        dead = []
        for outcome in self._align(tokens, outcomes):
            if outcome.success:
                result.sent += 1
                continue
            result.failed += 1
            result.errors.add(outcome.error or 'unknown')
            if outcome.is_permanent_failure:
                dead.append(outcome.token)

        self._prune(dead, result)

    def _prune(self, tokens: List[str], result: DispatchResult) -> None:
        if not tokens:
            return
        try:
            self.registry.deactivate_many(tokens)
            result.deactivated.extend(tokens)
        except Exception as e:
            logger.error(f"Error deactivating {len(tokens)} dead token(s): {str(e)}")

    @staticmethod
    def _align(tokens: List[str], outcomes: List[TokenOutcome]) -> List[TokenOutcome]:
        """Tokens the gateway gave no outcome for count as failed."""
        reported = {outcome.token: outcome for outcome in outcomes}
        return [
            reported.get(token) or TokenOutcome(token=token, success=False, error='no-response')
            for token in tokens
        ]

    @staticmethod
    def _unique_tokens(tokens_by_member) -> List[str]:
        seen = set()
        tokens = []
        for member_tokens in tokens_by_member.values():
            for token in member_tokens:
                if token not in seen:
                    seen.add(token)
                    tokens.append(token)
        return tokens

    @staticmethod
    def _as_message(notification) -> PushMessage:
        if isinstance(notification, PushMessage):
            return notification
        if isinstance(notification, Notification):
            return PushMessage.from_notification(notification)
        raise TypeError(f"Cannot dispatch {type(notification).__name__}")
