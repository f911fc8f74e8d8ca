from rest_framework import generics, permissions

from users.models import User
from users.services import EntitlementService
from .serializers import MeSerializer


class MeView(generics.RetrieveUpdateAPIView):
    """
    GET/PATCH /api/users/me/
    Current user's profile and purchased credits
    """
    serializer_class = MeSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        EntitlementService.get_for_user(self.request.user)
        # credits change through F() updates, so read them fresh
        return User.objects.select_related("entitlement").get(pk=self.request.user.pk)
