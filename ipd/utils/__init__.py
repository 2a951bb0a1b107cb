from .audit import log_admission_change
