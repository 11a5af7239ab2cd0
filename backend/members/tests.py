from datetime import timedelta
import uuid

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import NotFoundError, ValidationError
from .directory import MemberDirectory, Segment
from .models import Member


def create_member(username, **fields):
    User = get_user_model()
    user = User.objects.create_user(username=username, password='testpass123')
    return Member.objects.create(user=user, **fields)


class MemberModelTest(TestCase):
    """Test cases for Member model"""

    @override_settings(DEFAULT_VIEW_TOKENS=7)
    def test_default_view_tokens_from_settings(self):
        member = create_member('alice')
        self.assertEqual(member.view_tokens, 7)

    def test_display_name_prefers_full_name(self):
        member = create_member('bob')
        self.assertEqual(member.display_name, 'bob')

        member.user.first_name = 'Bob'
        member.user.last_name = 'Builder'
        member.user.save()
        self.assertEqual(member.display_name, 'Bob Builder')

    def test_is_premium(self):
        member = create_member('carol')
        self.assertFalse(member.is_premium)

        member.premium_until = timezone.now() + timedelta(days=1)
        self.assertTrue(member.is_premium)

        member.premium_until = timezone.now() - timedelta(days=1)
        self.assertFalse(member.is_premium)

    def test_negative_balance_rejected_by_database(self):
        """The non-negative check holds even for raw updates"""
        member = create_member('dave', view_tokens=0)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Member.objects.filter(id=member.id).update(view_tokens=-1)


class MemberDirectoryTest(TestCase):
    """Test cases for MemberDirectory"""

    def setUp(self):
        self.directory = MemberDirectory()
        self.active = create_member('active')
        self.inactive = create_member('inactive', is_active=False)

    def test_get_member(self):
        self.assertEqual(self.directory.get_member(self.active.id), self.active)
        self.assertEqual(self.directory.get_member(str(self.active.id)), self.active)

    def test_get_member_unknown_or_malformed(self):
        with self.assertRaises(NotFoundError):
            self.directory.get_member(uuid.uuid4())
        with self.assertRaises(NotFoundError):
            self.directory.get_member('not-a-uuid')

    def test_get_member_inactive(self):
        with self.assertRaises(NotFoundError):
            self.directory.get_member(self.inactive.id)
        member = self.directory.get_member(self.inactive.id, require_active=False)
        self.assertEqual(member, self.inactive)

    def test_for_user(self):
        self.assertEqual(self.directory.for_user(self.active.user), self.active)

        User = get_user_model()
        orphan = User.objects.create_user(username='orphan', password='testpass123')
        with self.assertRaises(NotFoundError):
            self.directory.for_user(orphan)


class SegmentResolutionTest(TestCase):
    """Test cases for broadcast segment resolution"""

    def setUp(self):
        now = timezone.now()
        self.directory = MemberDirectory()
        self.premium = create_member('premium', premium_until=now + timedelta(days=30))
        self.lapsed = create_member('lapsed', premium_until=now - timedelta(days=1))
        self.recent = create_member('recent', last_active_at=now - timedelta(days=2))
        self.stale = create_member('stale', last_active_at=now - timedelta(days=90))
        create_member('gone', is_active=False, premium_until=now + timedelta(days=30))

    def test_all_segment_excludes_inactive(self):
        ids = set(self.directory.resolve_segment(Segment.ALL))
        self.assertEqual(ids, {self.premium.id, self.lapsed.id, self.recent.id, self.stale.id})

    def test_premium_segment(self):
        self.assertEqual(self.directory.resolve_segment(Segment.PREMIUM), [self.premium.id])

    @override_settings(RECENTLY_ACTIVE_DAYS=30)
    def test_recently_active_segment(self):
        self.assertEqual(self.directory.resolve_segment(Segment.RECENTLY_ACTIVE), [self.recent.id])

    def test_unknown_segment(self):
        with self.assertRaises(ValidationError):
            self.directory.resolve_segment('everyone')


class MeViewTest(APITestCase):
    """Test cases for the current member endpoint"""

    def test_me_returns_token_balance(self):
        member = create_member('me', view_tokens=2)
        self.client.force_authenticate(user=member.user)

        response = self.client.get(reverse('member-me'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], str(member.id))
        self.assertEqual(response.data['view_tokens'], 2)
        self.assertFalse(response.data['is_premium'])

    def test_me_requires_authentication(self):
        response = self.client.get(reverse('member-me'))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_me_without_member_record(self):
        User = get_user_model()
        user = User.objects.create_user(username='staffonly', password='testpass123')
        self.client.force_authenticate(user=user)

        response = self.client.get(reverse('member-me'))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'NOT_FOUND')
