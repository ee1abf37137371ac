"""API errors and validation helpers."""

from app.models.refresh import RefreshScope


class ValidationError(Exception):
    """Validation error."""

    def __init__(self, message: str = "Validation error"):
        self.message = message
        super().__init__(self.message)


def validate_scope(sheet: str | None = None, range_ref: str | None = None) -> RefreshScope:
    """Build a refresh scope from user input."""
    if range_ref is not None:
        range_ref = range_ref.strip()
        if not range_ref:
            raise ValidationError("Empty range reference")
        if "!" not in range_ref and not (sheet and sheet.strip()):
            raise ValidationError(f"Range {range_ref} needs a sheet (Sheet!A1:B2)")
        return RefreshScope.for_range(range_ref, sheet=sheet.strip() if sheet else None)

    if sheet is not None:
        if not sheet.strip():
            raise ValidationError("Empty sheet name")
        return RefreshScope.for_sheet(sheet.strip())

    return RefreshScope.workbook()
