"""Property repositories: the abstract interface and the HTTP API adapter."""

from gazetteer_multiedit.repository.base import PropertyRepository, SaveResult
from gazetteer_multiedit.repository.http import HttpPropertyRepository

__all__ = ["HttpPropertyRepository", "PropertyRepository", "SaveResult"]
