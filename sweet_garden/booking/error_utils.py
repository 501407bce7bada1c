# Custom exceptions to be used throughout the project.

class ValidationError(Exception):
    """
    To be raised when request input fails validation at the API boundary.
    Carries the list of user-facing messages so the route can return them all at once.
    """
    def __init__(self, messages):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class SlotUnavailableError(Exception):
    """
    Raised when the requested slot is no longer free at commit time.
    This is an expected outcome of two visitors racing for the same slot, not a bug.
    """
    def __init__(self, date: str, slot: dict):
        self.date = date
        self.slot = slot
        super().__init__(f"Slot {slot.get('start')}-{slot.get('end')} on {date} is no longer available")


class ServiceNotConfiguredError(Exception):
    """
    Raised when a Google service handle or one of its identifiers was not configured.
    """
    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"{service_name} not configured")


class SheetSchemaError(Exception):
    """
    Raised when a spreadsheet header row is missing a column the ledger depends on.
    """
    def __init__(self, sheet_type: str, column: str):
        self.sheet_type = sheet_type
        self.column = column
        super().__init__(f"Column '{column}' not found in {sheet_type} sheet header")


class AuthenticationError(Exception):
    """
    Raised when a Google identity credential or a session token cannot be verified.
    """
