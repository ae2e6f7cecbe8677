from rest_framework import viewsets

from apps.core.permissions import ReadOnlyOrSchoolAdmin
from apps.core.responses import success_response, created_response
from apps.core.utils.tenant import TenantContext


class TenantContextMixin:
    """
    Builds the request's TenantContext once and hands it to services
    """

    def get_tenant_context(self):
        if not hasattr(self, '_tenant_context'):
            self._tenant_context = TenantContext.from_request(self.request)
        return self._tenant_context


class TenantModelViewSet(TenantContextMixin, viewsets.ModelViewSet):
    """
    CRUD over a school-owned model. Querysets are scoped to the caller's
    school and new rows are stamped with it. Deletes are soft.
    """
    permission_classes = [ReadOnlyOrSchoolAdmin]
    model = None

    def get_queryset(self):
        return self.get_tenant_context().scope(self.model.objects.all())

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.request is not None and self.request.user.is_authenticated:
            context['ctx'] = self.get_tenant_context()
        return context

    def perform_create(self, serializer):
        ctx = self.get_tenant_context()
        serializer.save(tenant=ctx.tenant, created_by=ctx.acting_user)

    def perform_update(self, serializer):
        serializer.save(updated_by=self.get_tenant_context().acting_user)

    def perform_destroy(self, instance):
        instance.delete(user=self.get_tenant_context().acting_user)

    def retrieve(self, request, *args, **kwargs):
        response = super().retrieve(request, *args, **kwargs)
        return success_response(response.data)

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        return created_response(response.data, f'{self.model._meta.verbose_name} created successfully')

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return success_response(response.data, f'{self.model._meta.verbose_name} updated successfully')

    def destroy(self, request, *args, **kwargs):
        super().destroy(request, *args, **kwargs)
        return success_response(None, f'{self.model._meta.verbose_name} deleted successfully')

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        serializer = self.get_serializer(queryset, many=True)
        return success_response(serializer.data)
