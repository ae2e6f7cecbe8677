from django.urls import path, include
from rest_framework.routers import SimpleRouter

from . import views

app_name = 'holidays'

router = SimpleRouter()
router.register('', views.HolidayViewSet, basename='holiday')

urlpatterns = [
    path('', include(router.urls)),
]
