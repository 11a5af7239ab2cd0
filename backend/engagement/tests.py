import threading
import uuid
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.db import connections
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import InsufficientTokens, NotFoundError, ValidationError
from members.models import Member
from notifications.models import Notification, NotificationKind
from .ledger import ViewTokenLedger
from .models import ActionKind, EngagementAction, ViewRecord
from .notifier import EngagementNotifier
from .services import EngagementStore, ProfileUnlockService


def create_member(username, **fields):
    User = get_user_model()
    user = User.objects.create_user(username=username, password='testpass123')
    return Member.objects.create(user=user, **fields)


class ViewTokenLedgerTest(TestCase):
    """Test cases for ViewTokenLedger"""

    def setUp(self):
        self.ledger = ViewTokenLedger()
        self.viewer = create_member('viewer', view_tokens=2)
        self.a = create_member('a')
        self.b = create_member('b')
        self.c = create_member('c')

    def balance(self):
        self.viewer.refresh_from_db()
        return self.viewer.view_tokens

    def test_spend_sequence(self):
        """Viewing A, B, A, C, B with two tokens"""
        result = self.ledger.spend_view_token(self.viewer.id, self.a.id)
        self.assertTrue(result.spent)
        self.assertFalse(result.already_unlocked)
        self.assertEqual(self.balance(), 1)

        result = self.ledger.spend_view_token(self.viewer.id, self.b.id)
        self.assertTrue(result.spent)
        self.assertEqual(self.balance(), 0)

        result = self.ledger.spend_view_token(self.viewer.id, self.a.id)
        self.assertFalse(result.spent)
        self.assertTrue(result.already_unlocked)
        self.assertEqual(self.balance(), 0)

        with self.assertRaises(InsufficientTokens):
            self.ledger.spend_view_token(self.viewer.id, self.c.id)
        self.assertEqual(self.balance(), 0)

        result = self.ledger.spend_view_token(self.viewer.id, self.b.id)
        self.assertTrue(result.already_unlocked)
        self.assertEqual(self.balance(), 0)

        self.assertEqual(ViewRecord.objects.filter(viewer=self.viewer).count(), 2)
        self.assertFalse(self.ledger.has_unlocked(self.viewer.id, self.c.id))

    def test_spend_sequence_with_three_tokens(self):
        """Viewing A, B, A, C, B with three tokens leaves one"""
        viewer = create_member('wealthy', view_tokens=3)
        spent = [
            self.ledger.spend_view_token(viewer.id, target.id).spent
            for target in (self.a, self.b, self.a, self.c, self.b)
        ]

        self.assertEqual(spent, [True, True, False, True, False])
        viewer.refresh_from_db()
        self.assertEqual(viewer.view_tokens, 1)
        self.assertEqual(ViewRecord.objects.filter(viewer=viewer).count(), 3)

    def test_self_view_is_free(self):
        result = self.ledger.spend_view_token(self.viewer.id, self.viewer.id)
        self.assertTrue(result.already_unlocked)
        self.assertFalse(result.spent)
        self.assertEqual(self.balance(), 2)
        self.assertFalse(ViewRecord.objects.exists())

    def test_self_view_with_zero_tokens(self):
        poor = create_member('poor', view_tokens=0)
        result = self.ledger.spend_view_token(str(poor.id), poor.id)
        self.assertTrue(result.already_unlocked)

    def test_insufficient_tokens_leaves_no_record(self):
        poor = create_member('poor', view_tokens=0)
        with self.assertRaises(InsufficientTokens) as ctx:
            self.ledger.spend_view_token(poor.id, self.a.id)

        self.assertEqual(ctx.exception.code, 'INSUFFICIENT_TOKENS')
        self.assertFalse(ViewRecord.objects.filter(viewer=poor).exists())

    def test_inactive_target_spends_nothing(self):
        hidden = create_member('hidden', is_active=False)
        with self.assertRaises(NotFoundError):
            self.ledger.spend_view_token(self.viewer.id, hidden.id)
        self.assertEqual(self.balance(), 2)

    def test_unknown_viewer(self):
        with self.assertRaises(NotFoundError):
            self.ledger.spend_view_token(uuid.uuid4(), self.a.id)

    def test_concurrent_insert_of_same_pair_refunds(self):
        """Losing the insert race rolls the decrement back"""
        ViewRecord.objects.create(viewer=self.viewer, viewed=self.a)

        with patch.object(ViewTokenLedger, 'has_unlocked', return_value=False):
            result = self.ledger.spend_view_token(self.viewer.id, self.a.id)

        self.assertTrue(result.already_unlocked)
        self.assertFalse(result.spent)
        self.assertEqual(self.balance(), 2)

    def test_credit_view_tokens(self):
        balance = self.ledger.credit_view_tokens(self.viewer.id, 5)
        self.assertEqual(balance, 7)
        self.assertEqual(self.ledger.remaining_view_tokens(self.viewer.id), 7)

    def test_credit_rejects_non_positive(self):
        for amount in (0, -3, 1.5, True):
            with self.assertRaises(ValidationError):
                self.ledger.credit_view_tokens(self.viewer.id, amount)
        self.assertEqual(self.balance(), 2)


class ConcurrentSpendTest(TransactionTestCase):
    """Two simultaneous first views with a single token left"""

    def test_one_token_two_targets(self):
        viewer = create_member('racer', view_tokens=1)
        targets = [create_member('t1'), create_member('t2')]
        barrier = threading.Barrier(len(targets))
        outcomes = []
        lock = threading.Lock()

        def spend(target):
            try:
                barrier.wait()
                result = ViewTokenLedger().spend_view_token(viewer.id, target.id)
                outcome = 'spent' if result.spent else 'free'
            except InsufficientTokens:
                outcome = 'insufficient'
            finally:
                connections.close_all()
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=spend, args=(target,)) for target in targets]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ['insufficient', 'spent'])
        viewer.refresh_from_db()
        self.assertEqual(viewer.view_tokens, 0)
        self.assertEqual(ViewRecord.objects.filter(viewer=viewer).count(), 1)


class EngagementStoreTest(TestCase):
    """Test cases for EngagementStore"""

    def setUp(self):
        self.store = EngagementStore()
        self.alice = create_member('alice')
        self.bob = create_member('bob')

    def notifications_for(self, member):
        return Notification.objects.filter(recipient=member)

    def test_interest_creates_action_and_notification(self):
        result = self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.INTEREST)

        self.assertTrue(result.created)
        self.assertEqual(result.action.kind, ActionKind.INTEREST)

        notification = self.notifications_for(self.bob).get()
        self.assertEqual(notification.kind, NotificationKind.INTEREST_RECEIVED)
        self.assertEqual(notification.title, 'New Interest Received')
        self.assertEqual(notification.body, 'alice has sent you an interest.')
        self.assertEqual(notification.sender, self.alice)
        self.assertEqual(notification.related_id, str(result.action.id))

    def test_upsert_is_idempotent(self):
        first = self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.SHORTLIST)
        second = self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.SHORTLIST)

        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertEqual(first.action.id, second.action.id)
        self.assertGreaterEqual(second.action.updated_at, first.action.updated_at)
        self.assertEqual(EngagementAction.objects.count(), 1)
        self.assertEqual(self.notifications_for(self.bob).count(), 1)

    def test_accept_notification_text(self):
        self.store.upsert_action(self.bob.id, self.alice.id, ActionKind.ACCEPT)
        notification = self.notifications_for(self.alice).get()
        self.assertEqual(notification.kind, NotificationKind.INTEREST_ACCEPTED)
        self.assertEqual(notification.body, 'bob has accepted your interest!')

    def test_reject_is_silent(self):
        result = self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.REJECT)
        self.assertTrue(result.created)
        self.assertFalse(self.notifications_for(self.bob).exists())

    def test_kinds_coexist(self):
        for kind in (ActionKind.INTEREST, ActionKind.SHORTLIST, ActionKind.REJECT):
            self.store.upsert_action(self.alice.id, self.bob.id, kind)

        kinds = set(self.store.list_between(self.alice.id, self.bob.id).values_list('kind', flat=True))
        self.assertEqual(kinds, {ActionKind.INTEREST, ActionKind.SHORTLIST, ActionKind.REJECT})

    def test_invalid_requests(self):
        with self.assertRaises(ValidationError):
            self.store.upsert_action(self.alice.id, self.bob.id, 'wink')
        with self.assertRaises(ValidationError):
            self.store.upsert_action(self.alice.id, self.alice.id, ActionKind.INTEREST)
        with self.assertRaises(NotFoundError):
            self.store.upsert_action(self.alice.id, uuid.uuid4(), ActionKind.INTEREST)

        hidden = create_member('hidden', is_active=False)
        with self.assertRaises(NotFoundError):
            self.store.upsert_action(self.alice.id, hidden.id, ActionKind.INTEREST)

        self.assertFalse(EngagementAction.objects.exists())

    def test_notification_failure_does_not_fail_action(self):
        outbox = MagicMock()
        outbox.emit.side_effect = Exception("outbox down")
        store = EngagementStore(notifier=EngagementNotifier(outbox=outbox))

        result = store.upsert_action(self.alice.id, self.bob.id, ActionKind.INTEREST)

        self.assertTrue(result.created)
        self.assertTrue(EngagementAction.objects.filter(id=result.action.id).exists())
        outbox.emit.assert_called_once()

    def test_withdraw(self):
        self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.INTEREST)

        self.assertTrue(self.store.withdraw_action(self.alice.id, self.bob.id, ActionKind.INTEREST))
        self.assertFalse(self.store.withdraw_action(self.alice.id, self.bob.id, ActionKind.INTEREST))
        self.assertFalse(EngagementAction.objects.exists())

    def test_withdraw_then_upsert_notifies_again(self):
        self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.INTEREST)
        self.store.withdraw_action(self.alice.id, self.bob.id, ActionKind.INTEREST)
        result = self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.INTEREST)

        self.assertTrue(result.created)
        self.assertEqual(self.notifications_for(self.bob).count(), 2)

    def test_lists_by_actor_and_target(self):
        carol = create_member('carol')
        self.store.upsert_action(self.alice.id, self.bob.id, ActionKind.INTEREST)
        self.store.upsert_action(self.alice.id, carol.id, ActionKind.SHORTLIST)
        self.store.upsert_action(carol.id, self.bob.id, ActionKind.INTEREST)

        self.assertEqual(self.store.list_by_actor(self.alice.id).count(), 2)
        self.assertEqual(self.store.list_by_actor(self.alice.id, ActionKind.SHORTLIST).count(), 1)
        self.assertEqual(self.store.list_by_target(self.bob.id, ActionKind.INTEREST).count(), 2)
        self.assertEqual(self.store.list_by_target(self.bob.id, ActionKind.ACCEPT).count(), 0)

        with self.assertRaises(ValidationError):
            self.store.list_by_actor(self.alice.id, 'wink')


class ProfileUnlockServiceTest(TestCase):
    """Test cases for the profile view flow"""

    def setUp(self):
        self.viewer = create_member('viewer', view_tokens=1)
        self.target = create_member('target')

    @override_settings(NOTIFY_ON_PROFILE_VIEW=True)
    def test_first_view_notifies_target(self):
        service = ProfileUnlockService()
        service.unlock(self.viewer, self.target.id)
        service.unlock(self.viewer, self.target.id)

        notification = Notification.objects.get(recipient=self.target)
        self.assertEqual(notification.kind, NotificationKind.PROFILE_VIEWED)
        self.assertEqual(notification.body, 'viewer viewed your profile.')

    @override_settings(NOTIFY_ON_PROFILE_VIEW=False)
    def test_profile_view_notification_disabled(self):
        result = ProfileUnlockService().unlock(self.viewer, self.target.id)
        self.assertTrue(result.spend.spent)
        self.assertFalse(Notification.objects.exists())

    def test_profile_not_read_without_tokens(self):
        directory = MagicMock()
        ledger = MagicMock()
        ledger.spend_view_token.side_effect = InsufficientTokens()
        service = ProfileUnlockService(ledger=ledger, directory=directory)

        with self.assertRaises(InsufficientTokens):
            service.unlock(self.viewer, self.target.id)
        directory.get_member.assert_not_called()


class ProfileViewAPITest(APITestCase):
    """Test cases for POST /api/profile-view/"""

    def setUp(self):
        self.viewer = create_member('viewer', view_tokens=1)
        self.target = create_member('target', is_verified=True)
        self.other = create_member('other')
        self.client.force_authenticate(user=self.viewer.user)
        self.url = reverse('profile-view')

    def test_unlock_profile(self):
        response = self.client.post(self.url, {'target_id': str(self.target.id)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['unlocked'])
        self.assertTrue(response.data['spent'])
        self.assertEqual(response.data['remaining_tokens'], 0)
        self.assertEqual(response.data['profile']['id'], str(self.target.id))

        response = self.client.post(self.url, {'target_id': str(self.target.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['spent'])

    def test_out_of_tokens(self):
        self.client.post(self.url, {'target_id': str(self.target.id)}, format='json')
        response = self.client.post(self.url, {'target_id': str(self.other.id)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED)
        self.assertEqual(response.data['code'], 'INSUFFICIENT_TOKENS')
        self.assertNotIn('profile', response.data)

    def test_viewer_mismatch_forbidden(self):
        response = self.client.post(
            self.url,
            {'viewer_id': str(self.other.id), 'target_id': str(self.target.id)},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.viewer.refresh_from_db()
        self.assertEqual(self.viewer.view_tokens, 1)

    def test_unknown_target(self):
        response = self.client.post(self.url, {'target_id': str(uuid.uuid4())}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'NOT_FOUND')

    def test_missing_target(self):
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class EngagementActionAPITest(APITestCase):
    """Test cases for /api/engagement-actions/"""

    def setUp(self):
        self.alice = create_member('alice')
        self.bob = create_member('bob')
        self.client.force_authenticate(user=self.alice.user)
        self.url = reverse('engagement-actions')

    def test_create_then_refresh(self):
        payload = {'target_id': str(self.bob.id), 'kind': 'interest'}

        response = self.client.post(self.url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['created'])
        self.assertEqual(response.data['action']['actor_id'], str(self.alice.id))

        response = self.client.post(self.url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['created'])

    def test_self_action_rejected(self):
        response = self.client.post(
            self.url, {'target_id': str(self.alice.id), 'kind': 'interest'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VALIDATION_ERROR')

    def test_invalid_kind_rejected(self):
        response = self.client.post(
            self.url, {'target_id': str(self.bob.id), 'kind': 'wink'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_withdraw(self):
        payload = {'target_id': str(self.bob.id), 'kind': 'shortlist'}
        self.client.post(self.url, payload, format='json')

        response = self.client.delete(self.url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['found'])

        response = self.client.delete(self.url, payload, format='json')
        self.assertFalse(response.data['found'])

    def test_sent_received_and_with(self):
        self.client.post(self.url, {'target_id': str(self.bob.id), 'kind': 'interest'}, format='json')
        self.client.post(self.url, {'target_id': str(self.bob.id), 'kind': 'shortlist'}, format='json')

        response = self.client.get(reverse('engagement-actions-sent'), {'kind': 'interest'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['target']['id'], str(self.bob.id))

        response = self.client.get(reverse('engagement-actions-with', args=[self.bob.id]))
        self.assertEqual(set(response.data['kinds']), {'interest', 'shortlist'})

        self.client.force_authenticate(user=self.bob.user)
        response = self.client.get(reverse('engagement-actions-received'))
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['actor']['id'], str(self.alice.id))

    def test_list_invalid_kind(self):
        response = self.client.get(reverse('engagement-actions-sent'), {'kind': 'wink'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
