import uuid
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from firebase_admin import exceptions, messaging
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import PermanentTokenError, TransientDispatchError, ValidationError
from members.models import Member
from .dispatcher import PushDispatcher
from .gateways import (
    FirebasePushGateway,
    NullPushGateway,
    PushGateway,
    PushMessage,
    TokenOutcome,
    classify_firebase_error,
    get_push_gateway,
)
from .models import DevicePlatform, DeviceRegistration, Notification, NotificationKind
from .registry import DeviceRegistry
from .services import BroadcastService, NotificationOutbox
from .tasks import deliver_notification, schedule_push


def create_member(username, **fields):
    User = get_user_model()
    user = User.objects.create_user(username=username, password='testpass123')
    return Member.objects.create(user=user, **fields)


class FakePushGateway(PushGateway):
    """Records every call; tokens listed in `dead` answer as unregistered."""

    def __init__(self, dead=(), transient=()):
        self.dead = set(dead)
        self.transient = set(transient)
        self.single_calls = []
        self.multicast_calls = []

    def send_one(self, token, message):
        self.single_calls.append((token, message))
        if token in self.dead:
            raise PermanentTokenError('unregistered', token)
        if token in self.transient:
            raise TransientDispatchError('unavailable', token)

    def send_multicast(self, tokens, message):
        self.multicast_calls.append((list(tokens), message))
        outcomes = []
        for token in tokens:
            if token in self.dead:
                outcomes.append(TokenOutcome(token=token, success=False, error='unregistered'))
            elif token in self.transient:
                outcomes.append(TokenOutcome(token=token, success=False, error='unavailable'))
            else:
                outcomes.append(TokenOutcome(token=token, success=True))
        return outcomes


class BrokenGateway(PushGateway):

    def __init__(self):
        raise RuntimeError("no credentials")

    def send_one(self, token, message):
        pass

    def send_multicast(self, tokens, message):
        return []


class NotificationModelTest(TestCase):
    """Test cases for Notification model"""

    def setUp(self):
        self.recipient = create_member('recipient')
        self.sender = create_member('sender')

    def test_push_data_is_strings(self):
        notification = Notification.objects.create(
            recipient=self.recipient,
            sender=self.sender,
            kind=NotificationKind.SHORTLISTED,
            title='Profile Shortlisted',
            body='sender has shortlisted your profile.',
            related_id='abc',
        )

        data = notification.get_push_data()
        self.assertEqual(data['notification_id'], str(notification.id))
        self.assertEqual(data['sender_id'], str(self.sender.id))
        self.assertEqual(data['related_id'], 'abc')
        self.assertTrue(all(isinstance(value, str) for value in data.values()))

    def test_system_notification_without_sender(self):
        notification = Notification.objects.create(
            recipient=self.recipient,
            kind=NotificationKind.SYSTEM,
            title='Maintenance',
            body='Back soon',
        )
        self.assertNotIn('sender_id', notification.get_push_data())

    def test_set_null_on_sender_delete(self):
        notification = Notification.objects.create(
            recipient=self.recipient,
            sender=self.sender,
            kind=NotificationKind.INTEREST_RECEIVED,
            title='New Interest Received',
            body='sender has sent you an interest.',
        )

        self.sender.user.delete()
        notification.refresh_from_db()
        self.assertIsNone(notification.sender)


class NotificationOutboxTest(TestCase):
    """Test cases for NotificationOutbox"""

    def setUp(self):
        self.outbox = NotificationOutbox()
        self.alice = create_member('alice')
        self.bob = create_member('bob')

    def emit(self, recipient, title='Hello'):
        return self.outbox.emit(
            recipient_id=recipient.id,
            sender_id=None,
            kind=NotificationKind.SYSTEM,
            title=title,
            body='Body',
        )

    def test_emit_schedules_push_after_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            notification = self.emit(self.alice)

        self.assertFalse(notification.is_read)
        self.assertEqual(len(callbacks), 1)

    def test_emit_rejects_unknown_kind(self):
        with self.assertRaises(ValidationError):
            self.outbox.emit(self.alice.id, None, 'poke', 'Hi', 'There')
        self.assertFalse(Notification.objects.exists())

    @override_settings(PUSH_DISPATCH_ASYNC=False)
    def test_emit_pushes_to_devices(self):
        DeviceRegistry().register(self.alice, DevicePlatform.MOBILE, 'alice-phone-token')
        gateway = FakePushGateway()

        with patch('notifications.dispatcher.get_push_gateway', return_value=gateway):
            with self.captureOnCommitCallbacks(execute=True):
                notification = self.emit(self.alice)

        self.assertEqual(len(gateway.single_calls), 1)
        token, message = gateway.single_calls[0]
        self.assertEqual(token, 'alice-phone-token')
        self.assertEqual(message.data['notification_id'], str(notification.id))

    def test_list_is_scoped_and_limited(self):
        for index in range(3):
            self.emit(self.alice, title=f"n{index}")
        self.emit(self.bob)

        self.assertEqual(len(self.outbox.list_for_recipient(self.alice.id)), 3)
        self.assertEqual(len(self.outbox.list_for_recipient(self.alice.id, limit=2)), 2)
        self.assertEqual(len(self.outbox.list_for_recipient(self.bob.id)), 1)

    @override_settings(NOTIFICATION_LIST_MAX_LIMIT=2)
    def test_list_limit_is_capped(self):
        for index in range(3):
            self.emit(self.alice, title=f"n{index}")
        self.assertEqual(len(self.outbox.list_for_recipient(self.alice.id, limit=1000)), 2)

    def test_mark_read_round_trip(self):
        first = self.emit(self.alice)
        self.emit(self.alice)
        self.assertEqual(self.outbox.unread_count(self.alice.id), 2)

        self.assertTrue(self.outbox.mark_read(first.id, self.alice.id))
        self.assertEqual(self.outbox.unread_count(self.alice.id), 1)

        self.assertEqual(self.outbox.mark_all_read(self.alice.id), 1)
        self.assertEqual(self.outbox.unread_count(self.alice.id), 0)
        self.assertEqual(self.outbox.mark_all_read(self.alice.id), 0)

    def test_mark_all_read_shows_in_list(self):
        for index in range(3):
            self.emit(self.alice, title=f"n{index}")
        self.emit(self.bob)

        self.assertEqual(self.outbox.mark_all_read(self.alice.id), 3)

        notifications = self.outbox.list_for_recipient(self.alice.id)
        self.assertEqual(len(notifications), 3)
        self.assertTrue(all(notification.is_read for notification in notifications))
        self.assertFalse(self.outbox.list_for_recipient(self.bob.id)[0].is_read)

    def test_mark_read_malformed_id(self):
        notification = self.emit(self.alice)
        self.assertFalse(self.outbox.mark_read('0' * 36, self.alice.id))
        self.assertFalse(self.outbox.mark_read('not-a-uuid', self.alice.id))

        notification.refresh_from_db()
        self.assertFalse(notification.is_read)

    def test_mark_read_of_someone_else(self):
        notification = self.emit(self.alice)

        self.assertFalse(self.outbox.mark_read(notification.id, self.bob.id))
        self.assertFalse(self.outbox.mark_read(uuid.uuid4(), self.alice.id))

        notification.refresh_from_db()
        self.assertFalse(notification.is_read)

    def test_emit_bulk(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            count = self.outbox.emit_bulk([self.alice.id, self.bob.id], title='News', body='Body')

        self.assertEqual(count, 2)
        self.assertEqual(callbacks, [])
        self.assertEqual(Notification.objects.filter(kind=NotificationKind.SYSTEM, sender=None).count(), 2)


class DeviceRegistryTest(TestCase):
    """Test cases for DeviceRegistry"""

    def setUp(self):
        self.registry = DeviceRegistry()
        self.member = create_member('member')
        self.other = create_member('other')

    def active_tokens(self, member):
        return self.registry.list_active_tokens([member.id]).get(member.id, [])

    def test_new_token_replaces_old_on_same_platform(self):
        self.registry.register(self.member, DevicePlatform.MOBILE, 'tok1')
        self.registry.register(self.member, DevicePlatform.MOBILE, 'tok2')

        self.assertEqual(self.active_tokens(self.member), ['tok2'])
        self.assertFalse(DeviceRegistration.objects.get(push_token='tok1').is_active)

    def test_reregistering_old_token_reactivates_row(self):
        first = self.registry.register(self.member, DevicePlatform.MOBILE, 'tok1')
        self.registry.register(self.member, DevicePlatform.MOBILE, 'tok2')
        again = self.registry.register(self.member, DevicePlatform.MOBILE, 'tok1')

        self.assertEqual(again.id, first.id)
        self.assertEqual(self.active_tokens(self.member), ['tok1'])
        self.assertEqual(DeviceRegistration.objects.filter(member=self.member).count(), 2)

    def test_refresh_keeps_single_row(self):
        self.registry.register(self.member, DevicePlatform.MOBILE, 'tok1', ip='10.0.0.1')
        registration = self.registry.register(
            self.member, DevicePlatform.MOBILE, ' tok1 ', device_label='Pixel', ip='10.0.0.2'
        )

        self.assertEqual(DeviceRegistration.objects.count(), 1)
        self.assertEqual(registration.device_label, 'Pixel')
        self.assertEqual(registration.last_known_ip, '10.0.0.2')

    def test_platforms_are_independent(self):
        self.registry.register(self.member, DevicePlatform.MOBILE, 'phone')
        self.registry.register(self.member, DevicePlatform.WEB, 'browser')

        self.assertEqual(set(self.active_tokens(self.member)), {'phone', 'browser'})

    def test_token_moves_between_members(self):
        self.registry.register(self.other, DevicePlatform.MOBILE, 'shared')
        self.registry.register(self.member, DevicePlatform.MOBILE, 'shared')

        self.assertEqual(self.active_tokens(self.member), ['shared'])
        self.assertEqual(self.active_tokens(self.other), [])

    def test_placeholders_are_not_deliverable(self):
        self.registry.register(self.member, DevicePlatform.MOBILE, 'fcm_token_placeholder')
        self.registry.register(self.member, DevicePlatform.WEB, 'web_fcm_token')

        self.assertEqual(self.registry.list_active_tokens([self.member.id]), {})
        stats = self.registry.stats()
        self.assertEqual(stats['placeholder_tokens'], 2)
        self.assertEqual(stats['valid_device_tokens'], 0)

    def test_invalid_registrations(self):
        with self.assertRaises(ValidationError):
            self.registry.register(self.member, DevicePlatform.MOBILE, '   ')
        with self.assertRaises(ValidationError):
            self.registry.register(self.member, 'pager', 'tok')
        self.assertFalse(DeviceRegistration.objects.exists())

    def test_deactivate(self):
        self.registry.register(self.member, DevicePlatform.MOBILE, 'tok1')

        self.assertEqual(self.registry.deactivate('tok1'), 1)
        self.assertEqual(self.registry.deactivate('tok1'), 0)
        self.assertEqual(self.registry.deactivate('never-seen'), 0)
        self.assertEqual(self.active_tokens(self.member), [])

    def test_deactivate_for_member_is_scoped(self):
        registration = self.registry.register(self.member, DevicePlatform.MOBILE, 'tok1')

        self.assertFalse(self.registry.deactivate_for_member(self.other.id, registration.id))
        self.assertTrue(self.registry.deactivate_for_member(self.member.id, registration.id))
        self.assertFalse(self.registry.deactivate_for_member(self.member.id, registration.id))

    def test_deactivate_for_member_malformed_id(self):
        self.registry.register(self.member, DevicePlatform.MOBILE, 'tok1')
        self.assertFalse(self.registry.deactivate_for_member(self.member.id, '0' * 36))
        self.assertEqual(self.active_tokens(self.member), ['tok1'])

    def test_stats(self):
        self.registry.register(self.member, DevicePlatform.MOBILE, 'phone')
        self.registry.register(self.member, DevicePlatform.WEB, 'browser')
        self.registry.register(self.other, DevicePlatform.MOBILE, 'other-phone')

        self.assertEqual(self.registry.stats(), {
            'total_device_tokens': 3,
            'placeholder_tokens': 0,
            'valid_device_tokens': 3,
            'mobile_tokens': 2,
            'web_tokens': 1,
        })


class PushDispatcherTest(TestCase):
    """Test cases for PushDispatcher"""

    def setUp(self):
        self.registry = DeviceRegistry()
        self.message = PushMessage(title='Hi', body='There', data={'kind': 'system'})

    def member_with_token(self, username, token, platform=DevicePlatform.MOBILE):
        member = create_member(username)
        self.registry.register(member, platform, token)
        return member

    def test_prunes_unregistered_tokens(self):
        members = [self.member_with_token(f"m{index}", f"tok{index}") for index in range(5)]
        gateway = FakePushGateway(dead={'tok1', 'tok3'})
        dispatcher = PushDispatcher(gateway=gateway)

        result = dispatcher.dispatch_to_members([member.id for member in members], self.message)

        self.assertEqual(result.sent, 3)
        self.assertEqual(result.failed, 2)
        self.assertEqual(result.errors, {'unregistered'})
        self.assertEqual(sorted(result.deactivated), ['tok1', 'tok3'])
        self.assertEqual(
            set(DeviceRegistration.objects.filter(is_active=True).values_list('push_token', flat=True)),
            {'tok0', 'tok2', 'tok4'}
        )

        # Pruned tokens are not attempted again
        second = dispatcher.dispatch_to_members([member.id for member in members], self.message)
        self.assertEqual(second.sent, 3)
        self.assertEqual(second.failed, 0)

    def test_member_without_devices(self):
        member = create_member('lonely')
        gateway = FakePushGateway()

        result = PushDispatcher(gateway=gateway).dispatch_to_member(member.id, self.message)

        self.assertEqual((result.sent, result.failed), (0, 0))
        self.assertEqual(result.errors, set())
        self.assertEqual(gateway.single_calls + gateway.multicast_calls, [])

    def test_single_dead_token(self):
        member = self.member_with_token('single', 'dead-token')
        result = PushDispatcher(gateway=FakePushGateway(dead={'dead-token'})).dispatch_to_member(
            member.id, self.message
        )

        self.assertEqual(result.failed, 1)
        self.assertEqual(result.deactivated, ['dead-token'])
        self.assertFalse(DeviceRegistration.objects.get(push_token='dead-token').is_active)

    def test_transient_failure_keeps_token(self):
        member = self.member_with_token('flaky', 'flaky-token')
        result = PushDispatcher(gateway=FakePushGateway(transient={'flaky-token'})).dispatch_to_member(
            member.id, self.message
        )

        self.assertEqual(result.failed, 1)
        self.assertEqual(result.errors, {'unavailable'})
        self.assertEqual(result.deactivated, [])
        self.assertTrue(DeviceRegistration.objects.get(push_token='flaky-token').is_active)

    def test_gateway_exception_is_contained(self):
        member = self.member_with_token('phone', 'phone-token')
        self.registry.register(member, DevicePlatform.WEB, 'web-token')
        gateway = MagicMock(spec=PushGateway)
        gateway.send_multicast.side_effect = RuntimeError("connection reset")

        result = PushDispatcher(gateway=gateway).dispatch_to_member(member.id, self.message)

        self.assertEqual(result.sent, 0)
        self.assertEqual(result.failed, 2)
        self.assertEqual(result.errors, {'gateway-error'})
        self.assertEqual(DeviceRegistration.objects.filter(is_active=True).count(), 2)

    def test_multicast_is_chunked(self):
        members = [self.member_with_token(f"c{index}", f"chunk{index}") for index in range(5)]
        gateway = FakePushGateway()

        result = PushDispatcher(gateway=gateway, chunk_size=2).dispatch_to_members(
            [member.id for member in members], self.message
        )

        self.assertEqual(result.sent, 5)
        self.assertEqual([len(tokens) for tokens, _ in gateway.multicast_calls], [2, 2, 1])

    def test_duplicate_tokens_sent_once(self):
        registry = MagicMock()
        registry.list_active_tokens.return_value = {'a': ['same', 'other'], 'b': ['same']}
        gateway = FakePushGateway()

        result = PushDispatcher(gateway=gateway, registry=registry).dispatch_to_members(['a', 'b'], self.message)

        self.assertEqual(result.sent, 2)
        self.assertEqual(gateway.multicast_calls[0][0], ['same', 'other'])

    def test_missing_outcomes_count_as_failed(self):
        registry = MagicMock()
        registry.list_active_tokens.return_value = {'a': ['t1', 't2']}
        gateway = MagicMock(spec=PushGateway)
        gateway.send_multicast.return_value = [TokenOutcome(token='t1', success=True)]

        result = PushDispatcher(gateway=gateway, registry=registry).dispatch_to_members(['a'], self.message)

        self.assertEqual((result.sent, result.failed), (1, 1))
        self.assertEqual(result.errors, {'no-response'})
        registry.deactivate_many.assert_not_called()

    def test_registry_failure(self):
        registry = MagicMock()
        registry.list_active_tokens.side_effect = Exception("database is locked")

        result = PushDispatcher(gateway=FakePushGateway(), registry=registry).dispatch_to_members(
            ['a'], self.message
        )

        self.assertEqual((result.sent, result.failed), (0, 0))
        self.assertEqual(result.errors, {'registry-unavailable'})

    def test_null_gateway(self):
        member = self.member_with_token('nopush', 'some-token')
        result = PushDispatcher(gateway=NullPushGateway()).dispatch_to_member(member.id, self.message)

        self.assertEqual(result.failed, 1)
        self.assertEqual(result.errors, {'gateway-disabled'})
        self.assertEqual(result.deactivated, [])


class PushTasksTest(TestCase):
    """Test cases for fire-and-forget scheduling"""

    def setUp(self):
        self.member = create_member('member')
        self.notification = Notification.objects.create(
            recipient=self.member,
            kind=NotificationKind.SYSTEM,
            title='Hello',
            body='World',
        )

    @override_settings(PUSH_DISPATCH_ASYNC=False)
    @patch('notifications.tasks.deliver_notification')
    def test_inline_when_async_disabled(self, mock_deliver):
        schedule_push(self.notification.id)
        mock_deliver.assert_called_once_with(self.notification.id)

    @override_settings(PUSH_DISPATCH_ASYNC=True)
    @patch('notifications.tasks._get_executor')
    def test_submitted_to_pool(self, mock_get_executor):
        schedule_push(self.notification.id)
        executor = mock_get_executor.return_value
        self.assertEqual(executor.submit.call_count, 1)
        self.assertEqual(executor.submit.call_args[0][1], self.notification.id)

    @patch('notifications.tasks.PushDispatcher')
    def test_deliver_swallows_errors(self, mock_dispatcher):
        mock_dispatcher.return_value.dispatch_to_member.side_effect = Exception("boom")
        self.assertIsNone(deliver_notification(self.notification.id))

    def test_deliver_missing_notification(self):
        self.assertIsNone(deliver_notification(uuid.uuid4()))


class FirebaseGatewayTest(TestCase):
    """Test cases for the FCM gateway adapter"""

    def setUp(self):
        patcher = patch('notifications.gateways.firebase_admin.get_app', return_value=MagicMock())
        patcher.start()
        self.addCleanup(patcher.stop)
        self.gateway = FirebasePushGateway()
        self.message = PushMessage(title='Hi', body='There', data={'kind': 'system', 'count': 3})

    def test_classification(self):
        cases = [
            (messaging.UnregisteredError('gone'), 'unregistered'),
            (messaging.SenderIdMismatchError('wrong sender'), 'sender-id-mismatch'),
            (messaging.QuotaExceededError('slow down'), 'rate-limited'),
            (exceptions.NotFoundError('missing'), 'not-found'),
            (exceptions.InvalidArgumentError('The registration token is not a valid FCM registration token'),
             'invalid-registration-token'),
            (exceptions.InvalidArgumentError('Invalid JSON payload'), 'invalid-argument'),
            (exceptions.DeadlineExceededError('too slow'), 'timeout'),
            (exceptions.UnavailableError('down'), 'unavailable'),
            (exceptions.InternalError('oops'), 'internal'),
            (ValueError('what'), 'unknown'),
        ]
        for error, expected in cases:
            self.assertEqual(classify_firebase_error(error), expected)

    @patch('notifications.gateways.messaging.send')
    def test_send_one_stringifies_data(self, mock_send):
        mock_send.return_value = 'projects/x/messages/1'
        self.gateway.send_one('token-1', self.message)

        sent = mock_send.call_args[0][0]
        self.assertEqual(sent.token, 'token-1')
        self.assertEqual(sent.data, {'kind': 'system', 'count': '3'})
        self.assertEqual(sent.android.priority, 'high')

    @patch('notifications.gateways.messaging.send')
    def test_send_one_dead_token(self, mock_send):
        mock_send.side_effect = messaging.UnregisteredError('Requested entity was not found.')
        with self.assertRaises(PermanentTokenError) as ctx:
            self.gateway.send_one('token-1', self.message)
        self.assertEqual(ctx.exception.reason, 'unregistered')

    @patch('notifications.gateways.messaging.send')
    def test_send_one_transient(self, mock_send):
        mock_send.side_effect = exceptions.UnavailableError('Service unavailable')
        with self.assertRaises(TransientDispatchError) as ctx:
            self.gateway.send_one('token-1', self.message)
        self.assertEqual(ctx.exception.reason, 'unavailable')

    @patch('notifications.gateways.messaging.send_each_for_multicast')
    def test_send_multicast_outcomes(self, mock_send_each):
        ok = MagicMock(success=True, exception=None)
        dead = MagicMock(success=False, exception=messaging.UnregisteredError('gone'))
        mock_send_each.return_value = MagicMock(responses=[ok, dead])

        outcomes = self.gateway.send_multicast(['a', 'b'], self.message)

        self.assertTrue(outcomes[0].success)
        self.assertEqual(outcomes[1].error, 'unregistered')
        self.assertTrue(outcomes[1].is_permanent_failure)

    @override_settings(PUSH_GATEWAY_CLASS='notifications.tests.BrokenGateway')
    def test_broken_gateway_falls_back_to_null(self):
        with patch('notifications.gateways._push_gateway', None):
            self.assertIsInstance(get_push_gateway(), NullPushGateway)


class NotificationAPITest(APITestCase):
    """Test cases for notification endpoints"""

    def setUp(self):
        self.member = create_member('member')
        self.other = create_member('other')
        self.client.force_authenticate(user=self.member.user)
        self.outbox = NotificationOutbox()
        self.notification = self.outbox.emit(self.member.id, self.other.id, NotificationKind.SHORTLISTED,
                                              'Profile Shortlisted', 'other has shortlisted your profile.')
        self.foreign = self.outbox.emit(self.other.id, None, NotificationKind.SYSTEM, 'Hi', 'There')

    def test_list_own_notifications(self):
        response = self.client.get(reverse('notification-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['sender_name'], 'other')
        self.assertFalse(response.data[0]['is_read'])

    @override_settings(NOTIFICATION_LIST_MAX_LIMIT=2)
    def test_list_caps_large_limit(self):
        for index in range(3):
            self.outbox.emit(self.member.id, None, NotificationKind.SYSTEM, f"n{index}", 'Body')

        response = self.client.get(reverse('notification-list'), {'limit': 500})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_list_rejects_non_positive_limit(self):
        response = self.client.get(reverse('notification-list'), {'limit': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_read_malformed_id(self):
        response = self.client.put(reverse('notification-read', args=['0' * 36]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['found'])

    def test_mark_read_and_unread_count(self):
        response = self.client.get(reverse('notification-unread-count'))
        self.assertEqual(response.data['unread_count'], 1)

        response = self.client.put(reverse('notification-read', args=[self.notification.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['found'])

        response = self.client.get(reverse('notification-unread-count'))
        self.assertEqual(response.data['unread_count'], 0)

    def test_mark_read_foreign_notification(self):
        response = self.client.put(reverse('notification-read', args=[self.foreign.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['found'])

    def test_read_all(self):
        response = self.client.put(reverse('notification-read-all'))
        self.assertEqual(response.data['count'], 1)


class DeviceAPITest(APITestCase):
    """Test cases for device endpoints"""

    def setUp(self):
        self.member = create_member('member')
        self.client.force_authenticate(user=self.member.user)

    def test_register_list_and_remove(self):
        response = self.client.post(
            reverse('device-register'),
            {'push_token': 'abc123xyz', 'platform': 'mobile', 'device_label': 'Pixel 8'},
            format='json',
            HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['last_known_ip'], '203.0.113.7')
        self.assertNotIn('push_token', response.data)

        response = self.client.get(reverse('device-list'))
        self.assertEqual(response.data['count'], 1)
        registration_id = response.data['results'][0]['id']

        response = self.client.delete(reverse('device-detail', args=[registration_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.delete(reverse('device-detail', args=[registration_id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_remove_malformed_id(self):
        response = self.client.delete(reverse('device-detail', args=['0' * 36]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'NOT_FOUND')

    def test_register_for_another_member_forbidden(self):
        response = self.client.post(
            reverse('device-register'),
            {'member_id': str(uuid.uuid4()), 'push_token': 'abc123xyz'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(DeviceRegistration.objects.exists())

    def test_register_blank_token(self):
        response = self.client.post(reverse('device-register'), {'push_token': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AdminNotificationAPITest(APITestCase):
    """Test cases for staff broadcast endpoints"""

    def setUp(self):
        User = get_user_model()
        self.admin = User.objects.create_user(username='admin', password='testpass123', is_staff=True)
        self.members = [create_member(f"m{index}") for index in range(3)]
        registry = DeviceRegistry()
        registry.register(self.members[0], DevicePlatform.MOBILE, 'tok0')
        registry.register(self.members[1], DevicePlatform.MOBILE, 'tok1')
        self.gateway = FakePushGateway(dead={'tok1'})

    def test_broadcast(self):
        self.client.force_authenticate(user=self.admin)
        with patch('notifications.dispatcher.get_push_gateway', return_value=self.gateway):
            response = self.client.post(
                reverse('admin-notification-broadcast'),
                {'title': 'Festival offer', 'body': 'Half price plans', 'target_segment': 'all'},
                format='json',
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {
            'target_segment': 'all',
            'total_members': 3,
            'sent_count': 1,
            'failed_count': 1,
        })
        self.assertEqual(Notification.objects.filter(kind=NotificationKind.SYSTEM).count(), 3)
        self.assertFalse(DeviceRegistration.objects.get(push_token='tok1').is_active)

    def test_broadcast_empty_segment(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            reverse('admin-notification-broadcast'),
            {'title': 'Premium news', 'body': 'Body', 'target_segment': 'premium'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Notification.objects.exists())

    def test_broadcast_requires_staff(self):
        self.client.force_authenticate(user=self.members[0].user)
        response = self.client.post(
            reverse('admin-notification-broadcast'),
            {'title': 'Hi', 'body': 'There', 'target_segment': 'all'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_stats(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('admin-notification-stats'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['valid_device_tokens'], 2)
        self.assertEqual(response.data['total_members'], 3)


class BroadcastServiceTest(TestCase):

    def test_unknown_segment(self):
        with self.assertRaises(ValidationError):
            BroadcastService(dispatcher=PushDispatcher(gateway=FakePushGateway())).broadcast(
                'Hi', 'There', 'everyone'
            )
