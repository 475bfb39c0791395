"""Item discovery: enumerators and the launch capability."""

from .enumerator import BundleEnumerator, Enumerator, read_bundle_identifier
from .errors import EnumerationError
from .launcher import launch
from .models import CandidateItem

__all__ = [
    "BundleEnumerator",
    "CandidateItem",
    "EnumerationError",
    "Enumerator",
    "launch",
    "read_bundle_identifier",
]
