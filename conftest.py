"""Pytest configuration: keep test runs on an in-memory database."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEFAULT_CLUB_TIMEZONE", "America/Argentina/Buenos_Aires")
