"""Per-jurisdiction licensing board verifiers."""

from licensecheck.engines.verify.boards.form import BoardFormVerifier
from licensecheck.engines.verify.boards.alaska import AlaskaVerifier
from licensecheck.engines.verify.boards.arizona import ArizonaVerifier
from licensecheck.engines.verify.boards.california import CaliforniaVerifier
from licensecheck.engines.verify.boards.florida import FloridaVerifier
from licensecheck.engines.verify.boards.idaho import IdahoVerifier
from licensecheck.engines.verify.boards.montana import MontanaVerifier
from licensecheck.engines.verify.boards.new_york import NewYorkVerifier
from licensecheck.engines.verify.boards.north_carolina import NorthCarolinaVerifier
from licensecheck.engines.verify.boards.oregon import OregonVerifier
from licensecheck.engines.verify.boards.texas import TexasVerifier
from licensecheck.engines.verify.boards.washington import WashingtonVerifier

__all__ = [
    "BoardFormVerifier",
    "AlaskaVerifier",
    "ArizonaVerifier",
    "CaliforniaVerifier",
    "FloridaVerifier",
    "IdahoVerifier",
    "MontanaVerifier",
    "NewYorkVerifier",
    "NorthCarolinaVerifier",
    "OregonVerifier",
    "TexasVerifier",
    "WashingtonVerifier",
]
