"""Errors raised by the IPD services.

Views turn these into user-facing messages; none of them are fatal.
"""


class IPDError(RuntimeError):
    """Base class for IPD service failures."""


class SequenceUnavailable(IPDError):
    """The UHID counter could not be incremented."""


class BedError(IPDError):
    pass


class BedNotFound(BedError):
    def __init__(self, room_type, bed_id):
        self.room_type = room_type
        self.bed_id = bed_id
        super().__init__(f"Bed {bed_id} not found in room type '{room_type}'")


class BedAlreadyOccupied(BedError):
    def __init__(self, bed, occupant=None):
        self.bed = bed
        self.occupant = occupant
        holder = f" by IPD {occupant.pk}" if occupant is not None else ""
        super().__init__(f"{bed} is already occupied{holder}")


class BedOccupantMismatch(BedError):
    def __init__(self, bed, occupant):
        self.bed = bed
        self.occupant = occupant
        super().__init__(f"{bed} is held by IPD {occupant.pk}, not the releasing admission")


class LedgerError(IPDError):
    pass


class PaymentNotFound(LedgerError):
    pass


class StaleRecordError(IPDError):
    """The record changed since the editor loaded it."""

    def __init__(self, record, expected_version, current_version):
        self.record = record
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"{record} was modified by someone else "
            f"(loaded version {expected_version}, current version {current_version})"
        )
