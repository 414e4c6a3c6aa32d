"""
Prometheus metrics for warehouse replication monitoring
"""
from prometheus_client import Counter, Histogram, Gauge

# ====================================
# STAGE METRICS
# ====================================
replication_stage = Gauge(
    'dwsync_replication_stage',
    'Index of the stage the replication run entered (0=init .. 3=snapshot-loaded)',
    ['table_name']
)

stage_action_duration = Histogram(
    'dwsync_stage_action_duration_seconds',
    'Time taken by each stage action',
    ['stage'],
    buckets=(1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 600.0, 1800.0, 3600.0, float("inf"))
)

# ====================================
# SNAPSHOT METRICS
# ====================================
snapshot_rows_dumped = Gauge(
    'dwsync_snapshot_rows_dumped',
    'Rows written by the snapshot dump tool so far',
    ['table_name']
)

# ====================================
# INCREMENTAL METRICS
# ====================================
ddl_statements_total = Counter(
    'dwsync_ddl_statements_total',
    'Total number of DDL statements applied to the warehouse',
    ['dialect', 'status']  # status: success/failed
)

merged_batches_total = Counter(
    'dwsync_merged_batches_total',
    'Total number of change-log files merged into the warehouse',
    ['dialect', 'table_name']
)

# ====================================
# ERROR METRICS
# ====================================
replication_errors_total = Counter(
    'dwsync_replication_errors_total',
    'Total number of replication errors',
    ['stage', 'error_type']
)
