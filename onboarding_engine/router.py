from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .exceptions import StepNotOnBranchError, TerminalStepError
from .models import WELCOME_STAGES, AccountType, FieldGroup, StepId
from .record import AggregateFormRecord

COMMON_PREFIX: tuple[StepId, ...] = (*WELCOME_STAGES, StepId.ACCOUNT)

BRANCH_STEPS: dict[AccountType, tuple[StepId, ...]] = {
    AccountType.INDIVIDUAL: (StepId.PERSONAL, StepId.EMPLOYMENT, StepId.INCOME),
    AccountType.LEGAL: (
        StepId.COMPANY_REPRESENTATIVE,
        StepId.COMPANY_INFORMATION,
        StepId.UBO_LIST,
        StepId.CLIENT_TYPE,
        StepId.REGULATORY_STATUS,
        StepId.TRANSACTION_DETAILS,
    ),
}

COMMON_SUFFIX: tuple[StepId, ...] = (
    StepId.DOCUMENT_VERIFICATION,
    StepId.EMAIL_CODE,
    StepId.IDENTITY_HANDOFF,
    StepId.WALLET_SETUP,
    StepId.COMPLETE,
)

STEP_GROUPS: dict[StepId, FieldGroup] = {
    StepId.ACCOUNT: FieldGroup.ACCOUNT,
    StepId.PERSONAL: FieldGroup.PERSONAL,
    StepId.EMPLOYMENT: FieldGroup.EMPLOYMENT,
    StepId.INCOME: FieldGroup.INCOME,
    StepId.COMPANY_REPRESENTATIVE: FieldGroup.COMPANY_REPRESENTATIVE,
    StepId.COMPANY_INFORMATION: FieldGroup.COMPANY_INFORMATION,
    StepId.UBO_LIST: FieldGroup.UBO_LIST,
    StepId.CLIENT_TYPE: FieldGroup.CLIENT_TYPE,
    StepId.REGULATORY_STATUS: FieldGroup.REGULATORY_STATUS,
    StepId.TRANSACTION_DETAILS: FieldGroup.TRANSACTION_DETAILS,
    StepId.DOCUMENT_VERIFICATION: FieldGroup.DOCUMENTS,
    StepId.EMAIL_CODE: FieldGroup.VERIFICATION_CODE,
    StepId.IDENTITY_HANDOFF: FieldGroup.IDENTITY,
    StepId.WALLET_SETUP: FieldGroup.WALLET,
}

INITIAL_STEP = StepId.WELCOME_KYC
TERMINAL_STEP = StepId.COMPLETE


def owner_group(step: StepId) -> FieldGroup | None:
    return STEP_GROUPS.get(StepId(step))


@dataclass
class TraversalStack:
    """Steps visited before the current one, most recent last."""

    steps: list[StepId] = field(default_factory=list)

    def push(self, step: StepId) -> None:
        self.steps.append(StepId(step))

    def pop(self) -> StepId | None:
        if not self.steps:
            return None
        return self.steps.pop()

    def peek(self) -> StepId | None:
        return self.steps[-1] if self.steps else None

    def to_list(self) -> list[str]:
        return [step.value for step in self.steps]

    @classmethod
    def from_list(cls, steps: Iterable[str | StepId]) -> TraversalStack:
        return cls(steps=[StepId(step) for step in steps])

    def __len__(self) -> int:
        return len(self.steps)

    def __contains__(self, step: object) -> bool:
        return step in self.steps


class StepGraph:
    """Branch-aware step ordering.

    ``next`` depends only on the current step and the record's account type.
    Backward navigation never consults the graph; it pops the traversal stack.
    """

    def path_for(self, account_type: AccountType) -> tuple[StepId, ...]:
        return (*COMMON_PREFIX, *BRANCH_STEPS[AccountType(account_type)], *COMMON_SUFFIX)

    def branch_steps(self, account_type: AccountType) -> tuple[StepId, ...]:
        return BRANCH_STEPS[AccountType(account_type)]

    def next(self, current: StepId, record: AggregateFormRecord) -> StepId:
        current = StepId(current)
        if current is TERMINAL_STEP:
            raise TerminalStepError("Complete has no further transitions")
        path = self.path_for(record.account_type)
        if current not in path:
            raise StepNotOnBranchError(
                f"Step '{current.value}' is not part of the {record.account_type.value} path"
            )
        return path[path.index(current) + 1]

    @staticmethod
    def previous(stack: TraversalStack) -> StepId | None:
        return stack.pop()

    def is_on_path(self, step: StepId, account_type: AccountType) -> bool:
        return StepId(step) in self.path_for(account_type)
