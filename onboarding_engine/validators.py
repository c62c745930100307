from __future__ import annotations

import re
from typing import Any, Callable

from .catalog import is_known_option
from .documents import DocumentPolicyRegistry, DocumentUploadTracker, build_default_registry
from .models import FieldGroup, StepId, ValidationResult
from .record import AggregateFormRecord
from .settings import OnboardingSettings

StepValidator = Callable[[AggregateFormRecord], list[str]]

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PERSON_FIELDS = ("first_name", "last_name", "nationality", "address")
COMPANY_FIELDS = ("company_name", "place_of_incorporation", "date_of_establishment", "registration_number")
UBO_FIELDS = ("first_name", "last_name", "nationality", "date_of_birth", "address")
CLIENT_TYPE_FIELDS = ("industry", "organization_type")
EMPLOYMENT_FIELDS = ("occupation", "profession")
INCOME_FIELDS = ("source_of_wealth", "annual_income", "net_worth", "annual_transactions")
TRANSACTION_FIELDS = ("anticipated_annual_amount",)


def _blank(fields: dict[str, Any], names: tuple[str, ...]) -> list[str]:
    return [name for name in names if not fields.get(name)]


class StepValidators:
    """Side-effect free gates for forward transitions, one per step.

    Each gate reads only the group owned by its step (plus the account type),
    and reports the names of the fields that keep it closed.
    """

    def __init__(
        self,
        settings: OnboardingSettings | None = None,
        registry: DocumentPolicyRegistry | None = None,
    ) -> None:
        self.settings = settings or OnboardingSettings()
        self.registry = registry or build_default_registry(self.settings)
        self._validators: dict[StepId, StepValidator] = {
            StepId.ACCOUNT: self._account,
            StepId.PERSONAL: self._required(FieldGroup.PERSONAL, PERSON_FIELDS),
            StepId.COMPANY_REPRESENTATIVE: self._required(FieldGroup.COMPANY_REPRESENTATIVE, PERSON_FIELDS),
            StepId.COMPANY_INFORMATION: self._required(FieldGroup.COMPANY_INFORMATION, COMPANY_FIELDS),
            StepId.UBO_LIST: self._ubo_list,
            StepId.CLIENT_TYPE: self._selected(FieldGroup.CLIENT_TYPE, CLIENT_TYPE_FIELDS),
            StepId.REGULATORY_STATUS: self._regulatory_status,
            StepId.TRANSACTION_DETAILS: self._selected(FieldGroup.TRANSACTION_DETAILS, TRANSACTION_FIELDS),
            StepId.EMPLOYMENT: self._selected(FieldGroup.EMPLOYMENT, EMPLOYMENT_FIELDS),
            StepId.INCOME: self._selected(FieldGroup.INCOME, INCOME_FIELDS),
            StepId.DOCUMENT_VERIFICATION: self._document_verification,
            StepId.EMAIL_CODE: self._email_code,
            StepId.WALLET_SETUP: self._wallet_setup,
            StepId.COMPLETE: lambda _record: ["complete"],
        }

    def for_step(self, step: StepId) -> Callable[[AggregateFormRecord], bool]:
        validator = self._validators.get(StepId(step))
        if validator is None:
            return lambda _record: True
        return lambda record: not validator(record)

    def check(self, step: StepId, record: AggregateFormRecord) -> ValidationResult:
        step = StepId(step)
        validator = self._validators.get(step)
        missing = validator(record) if validator is not None else []
        return ValidationResult(step=step, is_valid=not missing, missing=missing)

    def is_valid(self, step: StepId, record: AggregateFormRecord) -> bool:
        return self.check(step, record).is_valid

    def _required(self, group: FieldGroup, names: tuple[str, ...]) -> StepValidator:
        def validate(record: AggregateFormRecord) -> list[str]:
            return _blank(record.get(group), names)

        return validate

    def _selected(self, group: FieldGroup, names: tuple[str, ...]) -> StepValidator:
        def validate(record: AggregateFormRecord) -> list[str]:
            fields = record.get(group)
            missing = _blank(fields, names)
            if self.settings.enforce_option_catalog:
                missing.extend(
                    name
                    for name in names
                    if name not in missing and not is_known_option(group, name, str(fields[name]))
                )
            return missing

        return validate

    def _account(self, record: AggregateFormRecord) -> list[str]:
        fields = record.get(FieldGroup.ACCOUNT)
        missing = [] if fields.get("terms_accepted") is True else ["terms_accepted"]
        if self.settings.strict_account_checks:
            if not EMAIL_PATTERN.match(str(fields.get("email") or "")):
                missing.append("email")
            if not fields.get("password"):
                missing.append("password")
            if fields.get("password") != fields.get("confirm_password"):
                missing.append("confirm_password")
        return missing

    def _ubo_list(self, record: AggregateFormRecord) -> list[str]:
        owners = record.get(FieldGroup.UBO_LIST).get("owners") or []
        if not owners:
            return ["owners"]
        return [f"owners[{index}].{name}" for index, owner in enumerate(owners) for name in _blank(owner, UBO_FIELDS)]

    def _regulatory_status(self, record: AggregateFormRecord) -> list[str]:
        fields = record.get(FieldGroup.REGULATORY_STATUS)
        missing = _blank(fields, ("is_financially_supervised", "is_listed_on_exchange"))
        if fields.get("is_financially_supervised") == "yes":
            missing.extend(_blank(fields, ("financial_authority_name", "financial_authority_country")))
        if fields.get("is_listed_on_exchange") == "yes":
            missing.extend(_blank(fields, ("stock_exchange_name", "stock_exchange_country")))
        if self.settings.enforce_option_catalog:
            missing.extend(
                name
                for name in ("is_financially_supervised", "is_listed_on_exchange")
                if name not in missing and not is_known_option(FieldGroup.REGULATORY_STATUS, name, str(fields[name]))
            )
        return missing

    def _document_verification(self, record: AggregateFormRecord) -> list[str]:
        tracker = DocumentUploadTracker.from_group(
            self.registry.policies_for(record.account_type),
            record.get(FieldGroup.DOCUMENTS),
        )
        satisfied = tracker.is_satisfied(
            self.settings.document_completion_rule,
            require_clean=self.settings.require_clean_category,
        )
        if satisfied:
            return []
        completed = set(tracker.completed_categories(require_clean=self.settings.require_clean_category))
        return [f"documents.{document_type.value}" for document_type in tracker.policies if document_type not in completed]

    def _email_code(self, record: AggregateFormRecord) -> list[str]:
        digits = list(record.get(FieldGroup.VERIFICATION_CODE).get("digits") or [])
        digits += [""] * (self.settings.code_length - len(digits))
        return [f"digits[{index}]" for index, digit in enumerate(digits[: self.settings.code_length]) if not digit]

    def _wallet_setup(self, record: AggregateFormRecord) -> list[str]:
        return [] if record.value(FieldGroup.WALLET, "wallet_id") else ["wallet_id"]
