import django_filters

from ..models import Order


class OrderFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    role = django_filters.ChoiceFilter(
        choices=[('buyer', 'Buyer'), ('seller', 'Seller')],
        method='filter_role'
    )

    class Meta:
        model = Order
        fields = ['status', 'payment_status']

    def filter_role(self, queryset, name, value):
        user = self.request.user
        if value == 'buyer':
            return queryset.for_buyer(user)
        return queryset.for_seller(user)
