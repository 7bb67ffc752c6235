"""Agents module - AI backend routing and topic prompts."""

from .model_router import (
    AIResult,
    BackendHandler,
    BackendHealth,
    ModelRouter,
    SelectionPolicy,
    TopicPreferencePolicy,
    build_backend_handlers,
    build_selection_policy,
    get_model_router,
    init_model_router,
)
from .prompts import build_system_prompt, build_user_prompt

__all__ = [
    'AIResult',
    'BackendHandler',
    'BackendHealth',
    'ModelRouter',
    'SelectionPolicy',
    'TopicPreferencePolicy',
    'build_backend_handlers',
    'build_selection_policy',
    'get_model_router',
    'init_model_router',
    'build_system_prompt',
    'build_user_prompt',
]
