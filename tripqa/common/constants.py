"""Application constants."""

STAGES = (
    "zones",
    "ingest",
    "top-zones",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "dataset",
    "event",
    "status",
    "batch",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)

LOOKUP_DATASET = "taxi_zone_lookup.csv"
GEOMETRY_DATASET = "taxi_zones.dbf"

MAPPABLE = "mappable"
MISSING_GEOMETRY = "missing_geometry"

SPECIAL_BOROUGHS = ("EWR", "Unknown", "N/A")

SEVERITY_SUSPICIOUS = "suspicious"

ACTION_EXCLUDED = "excluded"
ACTION_RETAINED = "retained"
ACTION_RETAINED_NON_MAPPABLE = "retained_non_mappable"
ACTION_FLAGGED = "flagged"

PAYMENT_TYPE_GROUPS = {
    1: "credit_card",
    2: "cash",
    3: "no_charge",
}
