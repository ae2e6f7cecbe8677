from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import views

app_name = 'transportation'

router = DefaultRouter()
router.register('area-pricing', views.TransportationAreaPricingViewSet, basename='area_pricing')

urlpatterns = [
    path('', include(router.urls)),
]
