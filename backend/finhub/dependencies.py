"""
FastAPI dependencies for the process-wide handles.

The settings, repository and extraction oracle live on app.state. They are
created by the application (lifespan, or on first use) and injected into
endpoints; tests swap them via app.dependency_overrides.
"""

from fastapi import Request

from finhub.config import PipelineSettings, load_settings
from finhub.db import create_supabase_client
from finhub.services.extractor import AnthropicFactExtractor, FactExtractor
from finhub.services.repository import FinancialRepository


def get_settings(request: Request) -> PipelineSettings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = load_settings()
        request.app.state.settings = settings
    return settings


def get_repository(request: Request) -> FinancialRepository:
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        repository = FinancialRepository(create_supabase_client())
        request.app.state.repository = repository
    return repository


def get_extractor(request: Request) -> FactExtractor:
    extractor = getattr(request.app.state, "extractor", None)
    if extractor is None:
        extractor = AnthropicFactExtractor(get_settings(request))
        request.app.state.extractor = extractor
    return extractor
