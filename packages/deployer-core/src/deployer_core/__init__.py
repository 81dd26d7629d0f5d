"""deployer-core: container image promotion for the deployment pipeline.

This package provides:
- PromotionCoordinator: The promote-images pipeline step
- PromotionRequest, PromotionResult: Wire contract of the step
- DeployerSettings: Environment-driven runtime configuration
- Errors: PromotionError hierarchy with CLI exit codes
- Telemetry: structlog and OpenTelemetry helpers (deployer_core.telemetry)
- Entry points: Lambda handler (deployer_core.handlers) and the
  ``deployer`` CLI (deployer_core.cli)

Example:
    >>> from deployer_core import PromotionCoordinator, PromotionRequest, get_settings
    >>> coordinator = PromotionCoordinator.from_settings(get_settings())
    >>> coordinator.promote(PromotionRequest.model_validate(event)).to_output()
    {'images_promoted': 1, 'images': ['myapp/api:1.0.0'], 'skipped': False}
"""

from __future__ import annotations

__version__ = "0.1.0"

from deployer_core.config import DeployerSettings, get_settings
from deployer_core.promotion import PromotionCoordinator, PromotionError
from deployer_core.schemas import PromotionRequest, PromotionResult

__all__ = [
    "DeployerSettings",
    "PromotionCoordinator",
    "PromotionError",
    "PromotionRequest",
    "PromotionResult",
    "__version__",
    "get_settings",
]
