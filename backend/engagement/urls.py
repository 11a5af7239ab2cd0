from django.urls import path
from .views import (
    ActionsWithMemberView,
    EngagementActionView,
    ProfileViewView,
    ReceivedActionsView,
    SentActionsView,
)

urlpatterns = [
    path("profile-view/", ProfileViewView.as_view(), name="profile-view"),
    path("engagement-actions/", EngagementActionView.as_view(), name="engagement-actions"),
    path("engagement-actions/sent/", SentActionsView.as_view(), name="engagement-actions-sent"),
    path("engagement-actions/received/", ReceivedActionsView.as_view(), name="engagement-actions-received"),
    path(
        "engagement-actions/with/<uuid:target_id>/",
        ActionsWithMemberView.as_view(),
        name="engagement-actions-with",
    ),
]
