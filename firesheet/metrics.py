from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQS = Counter(
    "firesheet_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "firesheet_latency_seconds",
    "Latency",
    ["method", "path"],
)
DOCS_LOADED = Counter(
    "firesheet_documents_loaded_total",
    "Documents loaded into the sheet",
)
ROW_WRITES = Counter(
    "firesheet_row_writes_total",
    "Row write attempts against the document store",
    ["outcome"],
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
