class CirculationError(Exception):
    """Base exception for circulation errors."""


class NotFoundError(CirculationError):
    """Unknown title, member, loan or reservation id."""


class ValidationError(CirculationError):
    """Input failed a field rule (name length, phone format, counts)."""


class DuplicateTitleError(CirculationError):
    """Trying to add a title whose ISBN is already in the catalog."""


class BorrowerIneligible(CirculationError):
    """Membership expired or the member is at their loan limit."""


class TitleUnavailable(CirculationError):
    """No copies on the shelf, or the title is held by a reservation."""


class DuplicateReservation(CirculationError):
    """Member already holds an active reservation for this title."""


class AlreadyReturned(CirculationError):
    """Loan is already closed."""


class AlreadyCancelled(CirculationError):
    """Reservation is no longer active."""


class RenewalLimitExceeded(CirculationError):
    """Renewal would push the loan span past the maximum."""


class InvariantViolation(CirculationError):
    """Copy counts would leave the 0 <= available <= total range."""
