from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import SAFE_METHODS

from apps.core.pagination import clean_page_params
from apps.core.permissions import IsAttendanceStaff, IsSchoolMember
from apps.core.responses import success_response
from apps.core.utils.tenant import TenantContext
from .serializers import (
    BulkAttendanceSerializer, AttendanceUpdateSerializer, AttendanceRecordSerializer
)
from .services import AttendanceLedger


@api_view(['GET', 'POST'])
@permission_classes([IsSchoolMember])
def attendance_view(request):
    """
    GET lists attendance records, POST marks a batch for one date
    """
    ctx = TenantContext.from_request(request)

    if request.method in SAFE_METHODS:
        page, limit = clean_page_params(request.query_params.get('page'), request.query_params.get('limit'))
        params = request.query_params
        result = AttendanceLedger.get_attendance(ctx, {
            'date': params.get('date'),
            'student': params.get('studentId'),
            'school_class': params.get('classId'),
            'section': params.get('sectionId'),
            'status': params.get('status'),
        }, page, limit)
        return success_response({
            'records': AttendanceRecordSerializer(result['records'], many=True).data,
            'pagination': result['pagination'],
        }, 'Attendance records retrieved successfully')

    ctx.require_role(
        *IsAttendanceStaff.allowed_roles, message='Only teachers and administrators can mark attendance.'
    )
    serializer = BulkAttendanceSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = AttendanceLedger.bulk_mark_attendance(ctx, serializer.validated_data.get('date'), serializer.entries())

    data = {
        'date': result.date,
        'success': result.success,
        'failed': result.failed,
        'attendances': AttendanceRecordSerializer(result.records, many=True).data,
        'errors': result.errors,
    }
    return success_response(
        data,
        f'Attendance marked for {result.success} students, {result.failed} failed',
        status.HTTP_200_OK,
    )


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAttendanceStaff])
def attendance_detail_view(request, record_id):
    serializer = AttendanceUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    record = AttendanceLedger.update_attendance(
        TenantContext.from_request(request), record_id,
        status=serializer.validated_data.get('status'),
        remarks=serializer.validated_data.get('remarks'),
    )
    return success_response(AttendanceRecordSerializer(record).data, 'Attendance updated successfully')


@api_view(['GET'])
@permission_classes([IsSchoolMember])
def students_with_attendance_view(request, class_id, section_id):
    rows = AttendanceLedger.get_students_with_attendance(
        TenantContext.from_request(request), class_id, section_id, request.query_params.get('date')
    )
    return success_response(rows, 'Students with attendance retrieved successfully')


@api_view(['GET'])
@permission_classes([IsSchoolMember])
def attendance_stats_view(request):
    stats = AttendanceLedger.attendance_stats(
        TenantContext.from_request(request),
        request.query_params.get('date'),
        class_id=request.query_params.get('classId'),
        section_id=request.query_params.get('sectionId'),
    )
    return success_response(stats, 'Attendance statistics retrieved successfully')


@api_view(['GET'])
@permission_classes([IsSchoolMember])
def all_class_stats_view(request):
    stats = AttendanceLedger.all_class_stats(TenantContext.from_request(request), request.query_params.get('date'))
    return success_response(stats, 'All attendance statistics retrieved successfully')


@api_view(['GET'])
@permission_classes([IsSchoolMember])
def student_calendar_view(request, student_id):
    data = AttendanceLedger.student_calendar(TenantContext.from_request(request), student_id)
    return success_response(data, 'Student attendance calendar retrieved successfully')
