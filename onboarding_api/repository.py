from __future__ import annotations

from onboarding_engine.navigation import NavigationController


class SessionRepository:
    def __init__(self) -> None:
        self.sessions: dict[str, NavigationController] = {}

    def add(self, controller: NavigationController) -> None:
        self.sessions[controller.session_id] = controller

    def get(self, session_id: str) -> NavigationController | None:
        return self.sessions.get(session_id)
