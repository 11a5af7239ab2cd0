from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from members.directory import MemberDirectory
from members.serializers import MemberSerializer
from .serializers import (
    ActionListParamsSerializer,
    EngagementActionRequestSerializer,
    EngagementActionSerializer,
    ProfileViewRequestSerializer,
    ReceivedActionSerializer,
    SentActionSerializer,
)
from .services import EngagementStore, ProfileUnlockService


def forbidden(message):
    return Response(
        {'code': 'FORBIDDEN', 'message': message},
        status=status.HTTP_403_FORBIDDEN
    )


class ProfileViewView(APIView):
    """
    POST /api/profile-view/ - Unlock a full profile, spending one view token
    on the first view of that profile.

    Expected payload:
    {
        "target_id": "<member uuid>"
    }
    """

    def post(self, request):
        serializer = ProfileViewRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        viewer = MemberDirectory().for_user(request.user)
        if data.get('viewer_id') and data['viewer_id'] != viewer.id:
            return forbidden('viewer_id does not match authenticated member')

        service = ProfileUnlockService()
        result = service.unlock(viewer, data['target_id'])

        return Response({
            'unlocked': True,
            'spent': result.spend.spent,
            'remaining_tokens': service.ledger.remaining_view_tokens(viewer.id),
            'profile': MemberSerializer(result.profile).data,
        }, status=status.HTTP_200_OK)


class EngagementActionView(APIView):
    """
    POST /api/engagement-actions/ - Record interest/shortlist/reject/accept
    DELETE /api/engagement-actions/ - Withdraw an action

    Expected payload:
    {
        "target_id": "<member uuid>",
        "kind": "interest" | "shortlist" | "reject" | "accept"
    }
    """

    def _parse(self, request):
        serializer = EngagementActionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        actor = MemberDirectory().for_user(request.user)
        return actor, data

    def post(self, request):
        actor, data = self._parse(request)
        if data.get('actor_id') and data['actor_id'] != actor.id:
            return forbidden('actor_id does not match authenticated member')

        result = EngagementStore().upsert_action(actor.id, data['target_id'], data['kind'])
        return Response(
            {
                'created': result.created,
                'action': EngagementActionSerializer(result.action).data,
            },
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        )

    def delete(self, request):
        actor, data = self._parse(request)
        if data.get('actor_id') and data['actor_id'] != actor.id:
            return forbidden('actor_id does not match authenticated member')

        found = EngagementStore().withdraw_action(actor.id, data['target_id'], data['kind'])
        return Response({'found': found}, status=status.HTTP_200_OK)


class SentActionsView(APIView):
    """GET /api/engagement-actions/sent/?kind= - Actions the member has sent"""

    def get(self, request):
        params = ActionListParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        actor = MemberDirectory().for_user(request.user)
        actions = EngagementStore().list_by_actor(actor.id, params.validated_data.get('kind'))
        serializer = SentActionSerializer(actions, many=True)
        return Response({'count': len(serializer.data), 'results': serializer.data})


class ReceivedActionsView(APIView):
    """GET /api/engagement-actions/received/?kind= - Actions the member has received"""

    def get(self, request):
        params = ActionListParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        target = MemberDirectory().for_user(request.user)
        actions = EngagementStore().list_by_target(target.id, params.validated_data.get('kind'))
        serializer = ReceivedActionSerializer(actions, many=True)
        return Response({'count': len(serializer.data), 'results': serializer.data})


class ActionsWithMemberView(APIView):
    """GET /api/engagement-actions/with/{target_id}/ - Toggle states for one profile"""

    def get(self, request, target_id):
        actor = MemberDirectory().for_user(request.user)
        actions = EngagementStore().list_between(actor.id, target_id)
        serializer = EngagementActionSerializer(actions, many=True)
        return Response({
            'target_id': str(target_id),
            'kinds': [item['kind'] for item in serializer.data],
            'results': serializer.data,
        })
