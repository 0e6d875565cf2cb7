"""Scan pipeline engines: change detection, baseline, differential scan."""

from vetci.engines.baseline import BaselineExceptionBuilder
from vetci.engines.changeset import ChangeSetResolver
from vetci.engines.differential import DifferentialScanRunner

__all__ = ["BaselineExceptionBuilder", "ChangeSetResolver", "DifferentialScanRunner"]
