"""
Core business logic for the video sharing service.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
boto3 or any infrastructure concerns. Storage backends are reached
through protocols, so the video and comment rules can be tested in
isolation.
"""
