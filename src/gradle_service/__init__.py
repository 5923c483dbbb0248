"""Dagger pipeline for a Gradle built Spring service."""

from .main import GradleService as GradleService
