"""fleetinv — CI worker fleet inventory: classify nodes by labels and report."""

__version__ = "0.1.0"
