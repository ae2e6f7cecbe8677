from rest_framework import serializers

from apps.academics.models import StudentAttendance


class BulkAttendanceSerializer(serializers.Serializer):
    """
    Batch envelope only. Entries are checked one by one by the ledger so a
    bad entry is reported without failing the batch.
    """
    date = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    attendances = serializers.ListField(child=serializers.DictField(), allow_empty=True)

    def entries(self):
        return [
            {
                'student_id': entry.get('studentId', entry.get('student_id')),
                'status': entry.get('status'),
                'remarks': entry.get('remarks'),
            }
            for entry in self.validated_data['attendances']
        ]


class AttendanceUpdateSerializer(serializers.Serializer):
    status = serializers.CharField(required=False)
    remarks = serializers.CharField(required=False, allow_blank=True)


class AttendanceRecordSerializer(serializers.ModelSerializer):
    studentId = serializers.UUIDField(source='student_id', read_only=True)
    studentName = serializers.CharField(source='student.full_name', read_only=True)
    markedBy = serializers.SerializerMethodField()
    academicYear = serializers.CharField(source='academic_year.name', read_only=True, default=None)

    class Meta:
        model = StudentAttendance
        fields = ['id', 'studentId', 'studentName', 'date', 'status', 'remarks', 'markedBy', 'academicYear']

    def get_markedBy(self, obj):
        return obj.marked_by.display_name if obj.marked_by else None
