"""
Global constants for the enrichment pipeline.

Centralizes magic numbers used by the LLM client, rate limiter and
record synthesis so they can be tuned in one place.
"""

# Generation Service
PRIMARY_MODEL = "gpt-4o"
FALLBACK_MODEL = "gpt-3.5-turbo"
GENERATION_TEMPERATURE = 0.3
DEFAULT_REQUEST_TIMEOUT_SECONDS = 120  # Per-call timeout handed to LiteLLM

# Retry Configuration
ENRICH_MAX_ATTEMPTS = 3  # Total attempts per record, primary included
ENRICH_INITIAL_BACKOFF_SECONDS = 2.0  # Doubles per fallback failure: 2s, 4s, ...

# Rate Limiting
DEFAULT_REQUEST_DELAY_SECONDS = 1.0  # Minimum gap between enrichment calls

# Record Shape
CREATED_AT_FIELD = "createdAt"
UPDATED_AT_FIELD = "updatedAt"
TIMESTAMP_FIELDS = (CREATED_AT_FIELD, UPDATED_AT_FIELD)

# Values the model uses to mean "unknown" (treated like an empty cell)
EMPTY_SENTINELS = {"null", "n/a"}

# Fallback text used when a prompt placeholder has no value
UNKNOWN_PLACEHOLDER = "Unknown"

# Backups
BACKUP_SUFFIX = "_backup_"
