"""
Core business logic for SayWith messages.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
boto3 or any infrastructure concerns. The workflows talk to storage only
through the protocols declared in core.messages.workflow.
"""
