"""Prometheus metrics for the storefront API."""

from prometheus_fastapi_instrumentator import Instrumentator, metrics
from fastapi import FastAPI

# Probes and the scrape endpoint itself would drown out real traffic
EXCLUDED_HANDLERS = ["/metrics", "/health", "/favicon.ico"]


def setup_monitoring(app: FastAPI) -> Instrumentator:
    """Instrument every route and expose ``/metrics``.

    Set ``ENABLE_METRICS=true`` to turn collection on; without it the endpoint
    is not mounted.
    """
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=EXCLUDED_HANDLERS,
        env_var_name="ENABLE_METRICS",
        inprogress_name="storefront_http_requests_inprogress",
        inprogress_labels=True,
    )
    instrumentator.add(metrics.default(metric_namespace="storefront"))

    instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=True)
    return instrumentator
