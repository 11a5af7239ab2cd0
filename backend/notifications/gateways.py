"""
Push gateway adapters.

The dispatcher only depends on the PushGateway capability: deliver one
message to one token, or to a batch of tokens with a per-token outcome.
FirebasePushGateway wraps the Firebase Admin SDK (FCM); NullPushGateway is
used when no credentials are configured.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import firebase_admin
from django.conf import settings
from django.utils.module_loading import import_string
from firebase_admin import credentials, exceptions, messaging

from core.exceptions import PermanentTokenError, TransientDispatchError

logger = logging.getLogger(__name__)

# Outcomes meaning the token will never work again
PERMANENT_TOKEN_ERRORS = frozenset({
    'unregistered',
    'not-found',
    'invalid-registration-token',
    'sender-id-mismatch',
})


def mask_token(token: str) -> str:
    return f"{token[:12]}..." if token and len(token) > 12 else token


@dataclass
class PushMessage:
    """Provider independent push payload."""
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_notification(cls, notification) -> "PushMessage":
        return cls(
            title=notification.title,
            body=notification.body,
            data=notification.get_push_data(),
        )

    def string_data(self) -> Dict[str, str]:
        return {key: str(value) for key, value in self.data.items() if value is not None}


@dataclass
class TokenOutcome:
    """Delivery result for a single device token."""
    token: str
    success: bool
    error: Optional[str] = None

    @property
    def is_permanent_failure(self) -> bool:
        return not self.success and self.error in PERMANENT_TOKEN_ERRORS


class PushGateway(ABC):
    """Abstract base class for push providers"""

    @abstractmethod
    def send_one(self, token: str, message: PushMessage) -> None:
        """
        Deliver to a single token.

        Raises:
            PermanentTokenError: the token is dead
            TransientDispatchError: any other delivery failure
        """
        pass

    @abstractmethod
    def send_multicast(self, tokens: List[str], message: PushMessage) -> List[TokenOutcome]:
        """
        Deliver to many tokens in one gateway call. Returns one outcome per
        token, in input order.

        Raises:
            TransientDispatchError: the call as a whole failed
        """
        pass


class NullPushGateway(PushGateway):
    """Gateway used when push delivery is not configured. Delivers nothing."""

    REASON = 'gateway-disabled'

    def send_one(self, token, message):
        logger.debug(f"Push disabled; dropping '{message.title}' for {mask_token(token)}")
        raise TransientDispatchError(self.REASON, token)

    def send_multicast(self, tokens, message):
        logger.debug(f"Push disabled; dropping '{message.title}' for {len(tokens)} tokens")
        return [TokenOutcome(token=token, success=False, error=self.REASON) for token in tokens]


def classify_firebase_error(error: Exception) -> str:
    """Maps a Firebase Admin SDK error to a delivery classification string."""
    if isinstance(error, messaging.UnregisteredError):
        return 'unregistered'
    if isinstance(error, messaging.SenderIdMismatchError):
        return 'sender-id-mismatch'
    if isinstance(error, messaging.QuotaExceededError):
        return 'rate-limited'
    if isinstance(error, exceptions.NotFoundError):
        return 'not-found'
    if isinstance(error, exceptions.InvalidArgumentError):
        # FCM also answers INVALID_ARGUMENT for malformed payloads; only a
        # complaint about the token itself marks the token dead.
        if 'registration token' in str(error).lower():
            return 'invalid-registration-token'
        return 'invalid-argument'
    if isinstance(error, exceptions.ResourceExhaustedError):
        return 'rate-limited'
    if isinstance(error, exceptions.DeadlineExceededError):
        return 'timeout'
    if isinstance(error, exceptions.UnavailableError):
        return 'unavailable'
    if isinstance(error, (exceptions.InternalError, exceptions.UnknownError)):
        return 'internal'
    return 'unknown'


class FirebasePushGateway(PushGateway):
    """
    Firebase Cloud Messaging (FCM) gateway built on the Firebase Admin SDK.
    """

    def __init__(self, credentials_path: Optional[str] = None, timeout: Optional[int] = None):
        """
        Args:
            credentials_path: Path to Firebase service account JSON file.
                If not provided, uses FIREBASE_CREDENTIALS or default
                credential discovery.
            timeout: HTTP timeout in seconds for calls to FCM
        """
        credentials_path = credentials_path or settings.FIREBASE_CREDENTIALS
        timeout = timeout or settings.PUSH_GATEWAY_TIMEOUT

        try:
            self.app = firebase_admin.get_app()
        except ValueError:
            if credentials_path:
                cred = credentials.Certificate(credentials_path)
            else:
                cred = credentials.ApplicationDefault()
            self.app = firebase_admin.initialize_app(cred, options={'httpTimeout': timeout})
        logger.info("Firebase Admin SDK initialized successfully")

    def _platform_config(self):
        android = messaging.AndroidConfig(
            priority='high',
            notification=messaging.AndroidNotification(
                sound='default',
                channel_id=settings.PUSH_ANDROID_CHANNEL_ID,
            ),
        )
        apns = messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound='default', badge=1)),
        )
        return android, apns

    def send_one(self, token, message):
        android, apns = self._platform_config()
        fcm_message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=message.string_data(),
            android=android,
            apns=apns,
        )
        try:
            message_id = messaging.send(fcm_message, app=self.app)
        except exceptions.FirebaseError as e:
            reason = classify_firebase_error(e)
            if reason in PERMANENT_TOKEN_ERRORS:
                raise PermanentTokenError(reason, token) from e
            raise TransientDispatchError(reason, token) from e
        logger.debug(f"Sent push to {mask_token(token)}. Message ID: {message_id}")

    def send_multicast(self, tokens, message):
        android, apns = self._platform_config()
        fcm_message = messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(title=message.title, body=message.body),
            data=message.string_data(),
            android=android,
            apns=apns,
        )
        try:
            batch = messaging.send_each_for_multicast(fcm_message, app=self.app)
        except exceptions.FirebaseError as e:
            raise TransientDispatchError(classify_firebase_error(e)) from e

        outcomes = []
        for token, response in zip(tokens, batch.responses):
            if response.success:
                outcomes.append(TokenOutcome(token=token, success=True))
            else:
                outcomes.append(TokenOutcome(
                    token=token,
                    success=False,
                    error=classify_firebase_error(response.exception),
                ))
        return outcomes


# Global instance for easy access
_push_gateway = None


def get_push_gateway() -> PushGateway:
    """
    Get or create the process-wide gateway named by PUSH_GATEWAY_CLASS.
    A gateway that fails to initialize is replaced by NullPushGateway so
    callers keep working without push.
    """
    global _push_gateway
    if _push_gateway is None:
        gateway_class = import_string(settings.PUSH_GATEWAY_CLASS)
        try:
            _push_gateway = gateway_class()
        except Exception as e:
            logger.error(f"Failed to initialize push gateway {settings.PUSH_GATEWAY_CLASS}: {str(e)}")
            _push_gateway = NullPushGateway()
    return _push_gateway
