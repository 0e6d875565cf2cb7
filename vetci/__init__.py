"""vet-ci: differential open-source dependency scanning in GitHub Actions."""

__version__ = "0.1.0"
