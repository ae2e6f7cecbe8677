from django.urls import path

from . import views

app_name = 'attendance'

urlpatterns = [
    path('', views.attendance_view, name='attendance'),
    path('stats/', views.attendance_stats_view, name='stats'),
    path('stats/all/', views.all_class_stats_view, name='stats_all'),
    path('calendar/<uuid:student_id>/', views.student_calendar_view, name='student_calendar'),
    path(
        'students/<uuid:class_id>/<uuid:section_id>/',
        views.students_with_attendance_view,
        name='students_with_attendance'
    ),
    path('<uuid:record_id>/', views.attendance_detail_view, name='attendance_detail'),
]
