from __future__ import annotations

import copy
from typing import Any, Mapping

from .exceptions import EmptyUBOListError, UnknownFieldError
from .models import AccountType, FieldGroup, UBOEntry

GROUP_FIELDS: dict[FieldGroup, frozenset[str]] = {
    FieldGroup.ACCOUNT: frozenset({"email", "password", "confirm_password", "account_type", "terms_accepted"}),
    FieldGroup.PERSONAL: frozenset({"first_name", "last_name", "nationality", "address"}),
    FieldGroup.COMPANY_REPRESENTATIVE: frozenset({"first_name", "last_name", "nationality", "address"}),
    FieldGroup.COMPANY_INFORMATION: frozenset(
        {"company_name", "place_of_incorporation", "date_of_establishment", "registration_number"}
    ),
    FieldGroup.UBO_LIST: frozenset({"owners"}),
    FieldGroup.CLIENT_TYPE: frozenset({"industry", "organization_type"}),
    FieldGroup.EMPLOYMENT: frozenset({"occupation", "profession"}),
    FieldGroup.INCOME: frozenset({"source_of_wealth", "annual_income", "net_worth", "annual_transactions"}),
    FieldGroup.REGULATORY_STATUS: frozenset(
        {
            "is_financially_supervised",
            "financial_authority_name",
            "financial_authority_country",
            "is_listed_on_exchange",
            "stock_exchange_name",
            "stock_exchange_country",
        }
    ),
    FieldGroup.TRANSACTION_DETAILS: frozenset({"anticipated_annual_amount"}),
    FieldGroup.DOCUMENTS: frozenset({"selected_type", "uploads"}),
    FieldGroup.VERIFICATION_CODE: frozenset({"digits"}),
    FieldGroup.IDENTITY: frozenset({"handoff_reference", "status"}),
    FieldGroup.WALLET: frozenset({"wallet_id"}),
}

UBO_FIELDS = frozenset(UBOEntry.model_fields)


def _default_group(group: FieldGroup) -> dict[str, Any]:
    if group is FieldGroup.ACCOUNT:
        return {"account_type": AccountType.INDIVIDUAL.value, "terms_accepted": False}
    if group is FieldGroup.UBO_LIST:
        return {"owners": [UBOEntry().model_dump()]}
    return {}


class AggregateFormRecord:
    """The single growing record of every onboarding field, split into field groups.

    A merge only ever touches the group it names and never drops keys that are
    absent from the partial update, so re-submitting a step is idempotent.
    """

    def __init__(self, groups: Mapping[FieldGroup, Mapping[str, Any]] | None = None) -> None:
        self._groups: dict[FieldGroup, dict[str, Any]] = {group: _default_group(group) for group in FieldGroup}
        for group, fields in (groups or {}).items():
            self.merge(FieldGroup(group), fields)

    def get(self, group: FieldGroup) -> dict[str, Any]:
        return copy.deepcopy(self._groups[FieldGroup(group)])

    def value(self, group: FieldGroup, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._groups[FieldGroup(group)].get(key, default))

    def merge(self, group: FieldGroup, partial: Mapping[str, Any]) -> None:
        group = FieldGroup(group)
        unknown = set(partial) - GROUP_FIELDS[group]
        if unknown:
            raise UnknownFieldError(f"Fields {sorted(unknown)} do not belong to group '{group.value}'")
        updates = {key: copy.deepcopy(value) for key, value in partial.items()}
        if "account_type" in updates:
            updates["account_type"] = AccountType(updates["account_type"]).value
        if "owners" in updates:
            if not updates["owners"]:
                raise EmptyUBOListError("The UBO list must keep at least one entry")
            updates["owners"] = [UBOEntry.model_validate(owner).model_dump() for owner in updates["owners"]]
        self._groups[group].update(updates)

    @property
    def account_type(self) -> AccountType:
        return AccountType(self._groups[FieldGroup.ACCOUNT]["account_type"])

    @property
    def email(self) -> str:
        return str(self._groups[FieldGroup.ACCOUNT].get("email") or "")

    # UBO list editing. The list always holds at least one entry.

    @property
    def ubo_entries(self) -> list[UBOEntry]:
        return [UBOEntry.model_validate(owner) for owner in self._groups[FieldGroup.UBO_LIST]["owners"]]

    def add_ubo(self) -> int:
        owners = self._groups[FieldGroup.UBO_LIST]["owners"]
        owners.append(UBOEntry().model_dump())
        return len(owners) - 1

    def remove_ubo(self, index: int) -> bool:
        owners = self._groups[FieldGroup.UBO_LIST]["owners"]
        _check_owner_index(owners, index)
        if len(owners) == 1:
            return False
        del owners[index]
        return True

    def update_ubo(self, index: int, partial: Mapping[str, Any]) -> None:
        unknown = set(partial) - UBO_FIELDS
        if unknown:
            raise UnknownFieldError(f"Fields {sorted(unknown)} do not belong to a UBO entry")
        owners = self._groups[FieldGroup.UBO_LIST]["owners"]
        _check_owner_index(owners, index)
        owners[index] = UBOEntry.model_validate({**owners[index], **partial}).model_dump()

    def reset_branch(self) -> None:
        """Clear everything written after the Account step, keeping the account group."""
        for group in FieldGroup:
            if group is not FieldGroup.ACCOUNT:
                self._groups[group] = _default_group(group)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {group.value: copy.deepcopy(fields) for group, fields in self._groups.items()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Mapping[str, Any]]) -> AggregateFormRecord:
        return cls({FieldGroup(group): fields for group, fields in payload.items()})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AggregateFormRecord):
            return NotImplemented
        return self._groups == other._groups

    def __repr__(self) -> str:
        return f"AggregateFormRecord(account_type={self.account_type.value!r})"


def _check_owner_index(owners: list[dict[str, Any]], index: int) -> None:
    if not 0 <= index < len(owners):
        raise IndexError(f"UBO entry {index} does not exist")
