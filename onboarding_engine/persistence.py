from __future__ import annotations

from typing import Any

import structlog
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import BaseStorage, StorageKey

from .models import OnboardingSnapshot
from .navigation import NavigationController

SNAPSHOT_DATA_KEY = "onboarding"


def dump_snapshot(controller: NavigationController) -> str:
    return controller.snapshot().model_dump_json()


def load_snapshot(payload: str | bytes, **context_kwargs: Any) -> NavigationController:
    return NavigationController.restore(OnboardingSnapshot.model_validate_json(payload), **context_kwargs)


class FSMSessionStore:
    """Keeps onboarding sessions in an aiogram FSM storage.

    The FSM state mirrors the current step id; the FSM data holds the full
    snapshot, so any aiogram storage backend (memory, redis) can resume a
    session after a restart.
    """

    def __init__(self, storage: BaseStorage, *, bot_id: int = 0) -> None:
        self.storage = storage
        self.bot_id = bot_id
        self.logger = structlog.get_logger("fsm_session_store")

    def key_for(self, user_id: int, chat_id: int | None = None) -> StorageKey:
        return StorageKey(bot_id=self.bot_id, chat_id=chat_id if chat_id is not None else user_id, user_id=user_id)

    async def save(self, key: StorageKey, controller: NavigationController) -> None:
        state = FSMContext(storage=self.storage, key=key)
        snapshot = controller.snapshot()
        await state.set_state(snapshot.current_step.value)
        await state.update_data({SNAPSHOT_DATA_KEY: snapshot.model_dump(mode="json")})
        self.logger.info("session_saved", session_id=snapshot.session_id, step=snapshot.current_step.value)

    async def load(self, key: StorageKey, **context_kwargs: Any) -> NavigationController | None:
        state = FSMContext(storage=self.storage, key=key)
        data = await state.get_data()
        payload = data.get(SNAPSHOT_DATA_KEY)
        if not payload:
            return None
        snapshot = OnboardingSnapshot.model_validate(payload)
        fsm_state = await state.get_state()
        if fsm_state is not None and fsm_state != snapshot.current_step.value:
            self.logger.warning(
                "session_state_mismatch",
                session_id=snapshot.session_id,
                fsm_state=fsm_state,
                snapshot_step=snapshot.current_step.value,
            )
        return NavigationController.restore(snapshot, **context_kwargs)

    async def clear(self, key: StorageKey) -> None:
        await FSMContext(storage=self.storage, key=key).clear()
