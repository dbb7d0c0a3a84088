"""
Snowflake persistence for message records.

Snowflake serves as the keyed document store: one VARIANT document per
message id. Includes mock mode for local development without credentials.
"""
