from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found while validating a request.

    ``item_id`` is ``None`` for structural issues, which reject the whole
    batch; item-level issues only fail the item they name.
    """

    message: str
    code: str
    item_id: str | None = None
    field: str | None = None


@dataclass
class BatchValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    item_count: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def structural_errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.errors if issue.item_id is None]

    @property
    def item_errors(self) -> dict[str, str]:
        return {
            issue.item_id: issue.message
            for issue in self.errors
            if issue.item_id is not None
        }

    def add(
        self,
        message: str,
        code: str,
        *,
        item_id: str | None = None,
        field: str | None = None,
    ) -> None:
        self.errors.append(
            ValidationIssue(message=message, code=code, item_id=item_id, field=field)
        )
