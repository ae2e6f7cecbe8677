import logging


class TenantContextFilter(logging.Filter):
    """
    Logging filter to add tenant context to log records.

    Services pass the schema explicitly through `extra={'tenant': ...}`;
    records without it fall back to the connection's tenant.
    """
    def filter(self, record):
        if getattr(record, 'tenant', None):
            return True

        from django.db import connection

        try:
            # Get current tenant from connection
            if hasattr(connection, 'tenant') and connection.tenant:
                record.tenant = connection.tenant.schema_name
            else:
                record.tenant = 'public'
        except Exception:
            record.tenant = 'unknown'

        return True


class TenantAwareLogger:
    """
    Tenant-aware logger for multi-tenant applications
    """

    @staticmethod
    def get_logger(name):
        """
        Get a logger instance with tenant context
        """
        logger = logging.getLogger(name)

        # Add tenant context filter if not already present
        if not any(isinstance(f, TenantContextFilter) for f in logger.filters):
            logger.addFilter(TenantContextFilter())

        return logger
