from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.finance.urls import fee_urlpatterns, payment_urlpatterns, expense_urlpatterns

api_urlpatterns = [
    # Auth
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    path('attendance/', include('apps.attendance.urls', namespace='attendance')),
    path('holidays/', include('apps.academics.urls', namespace='holidays')),
    path('fees/', include((fee_urlpatterns, 'fees'), namespace='fees')),
    path('payments/', include((payment_urlpatterns, 'payments'), namespace='payments')),
    path('expenses/', include((expense_urlpatterns, 'expenses'), namespace='expenses')),
    path('transportation/', include('apps.transportation.urls', namespace='transportation')),
]

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include(api_urlpatterns)),
]
