"""vet scanner binary handling and process invocation."""

from vetci.scanner.binary import VetInstaller, verify_binary
from vetci.scanner.process import VetProcess

__all__ = ["VetInstaller", "VetProcess", "verify_binary"]
