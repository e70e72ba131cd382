"""Database schema DDL for the order queue."""

ORDER_JOBS_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS order_jobs (
  id               UUID PRIMARY KEY,
  type             TEXT NOT NULL,

  status           TEXT NOT NULL CHECK (status IN ('waiting', 'active', 'completed', 'failed')),
  payload          JSONB NOT NULL,

  priority         INT NOT NULL DEFAULT 0,
  run_at           TIMESTAMP NOT NULL,

  attempts         INT NOT NULL DEFAULT 0,
  max_attempts     INT NOT NULL,
  backoff_policy   JSONB NOT NULL,

  lease_expires_at TIMESTAMP,
  result           JSONB,
  last_error       JSONB,

  seq              BIGSERIAL,
  created_at       TIMESTAMP NOT NULL DEFAULT (now() AT TIME ZONE 'utc'),
  updated_at       TIMESTAMP NOT NULL DEFAULT (now() AT TIME ZONE 'utc'),
  finished_at      TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_order_jobs_runnable
ON order_jobs (priority DESC, run_at, seq)
WHERE status = 'waiting';

CREATE INDEX IF NOT EXISTS idx_order_jobs_type_status
ON order_jobs (type, status);

-- History pruning and grace-period cleaning
CREATE INDEX IF NOT EXISTS idx_order_jobs_finished
ON order_jobs (status, finished_at)
WHERE status IN ('completed', 'failed');

-- Stalled job detection
CREATE INDEX IF NOT EXISTS idx_order_jobs_expired_leases
ON order_jobs (lease_expires_at)
WHERE status = 'active' AND lease_expires_at IS NOT NULL;
"""
