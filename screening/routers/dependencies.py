from fastapi import Request

from screening.services.evaluator import ProfileEvaluator
from screening.services.state import AppState


def get_state(request: Request) -> AppState:
    return request.app.state.screening


def get_evaluator(request: Request) -> ProfileEvaluator:
    return request.app.state.evaluator
