# app/core/context.py

import contextvars

correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
company_id_ctx = contextvars.ContextVar("company_id", default=None)
