from django.urls import path, include
from rest_framework.routers import SimpleRouter

from . import views

fee_router = SimpleRouter()
fee_router.register('categories', views.FeeCategoryViewSet, basename='fee_category')
fee_router.register('class-pricing', views.ClassFeePricingViewSet, basename='class_fee_pricing')

fee_urlpatterns = [
    path('', views.monthly_fee_list_view, name='monthly_fee_list'),
    path('resolve/', views.resolve_fee_view, name='resolve'),
    path('generate/', views.generate_fee_view, name='generate'),
    path('dashboard/', views.fee_dashboard_view, name='dashboard'),
    path('dues/', views.fee_dues_view, name='dues'),
    path('timeline/<uuid:student_id>/', views.fee_timeline_view, name='timeline'),
    path('<uuid:fee_id>/', views.monthly_fee_detail_view, name='monthly_fee_detail'),
    path('<uuid:fee_id>/regenerate/', views.regenerate_fee_view, name='regenerate'),
    path('', include(fee_router.urls)),
]

payment_urlpatterns = [
    path('', views.payments_view, name='payments'),
    path('summary/', views.payment_summary_view, name='summary'),
    path('<uuid:payment_id>/verify/', views.verify_payment_view, name='verify'),
]

expense_router = SimpleRouter()
expense_router.register('categories', views.ExpenseCategoryViewSet, basename='expense_category')
expense_router.register('', views.ExpenseViewSet, basename='expense')

expense_urlpatterns = [
    path('report/', views.income_expense_report_view, name='report'),
    path('', include(expense_router.urls)),
]
