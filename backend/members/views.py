from rest_framework.response import Response
from rest_framework.views import APIView

from .directory import MemberDirectory
from .serializers import MeSerializer


class MeView(APIView):
    """
    GET /api/members/me/ - Current member, including the remaining
    profile view tokens.
    """

    def get(self, request):
        member = MemberDirectory().for_user(request.user)
        serializer = MeSerializer(member)
        return Response(serializer.data)
