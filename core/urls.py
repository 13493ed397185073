from django.urls import path
from . import views

urlpatterns = [
    # --- WEEKLY RECORDS ---
    path('api/enrollments/<int:enrollment_id>/weeks/', views.enrollment_week_api, name='enrollment_week_api'),
    path('api/courses/<int:course_id>/weeks/', views.course_week_api, name='course_week_api'),

    # --- GRADES ---
    path('api/enrollments/<int:enrollment_id>/grade/', views.calculate_grade_api, name='calculate_grade_api'),
    path('api/enrollments/<int:enrollment_id>/report/', views.enrollment_report_api, name='enrollment_report_api'),
    path('api/students/me/progress/', views.student_progress_api, name='student_progress_api'),
]
