"""Configuration module for the audit settlement engine.

Available Configurations:
- EngineConfig: Aggregate of every component config
- MatchingConfig, AssignmentConfig, QualityGateConfig,
  SettlementConfig, CompensationConfig, InterestConfig
"""

from audit_settlement.config.engine_config import (
    DEFAULT_AUDIT_CRITERIA,
    DEFAULT_ENGINE_CONFIG,
    TEST_ENGINE_CONFIG,
    AssignmentConfig,
    CompensationConfig,
    EngineConfig,
    InterestConfig,
    MatchingConfig,
    QualityGateConfig,
    SettlementConfig,
)

__all__ = [
    "AssignmentConfig",
    "CompensationConfig",
    "DEFAULT_AUDIT_CRITERIA",
    "DEFAULT_ENGINE_CONFIG",
    "EngineConfig",
    "InterestConfig",
    "MatchingConfig",
    "QualityGateConfig",
    "SettlementConfig",
    "TEST_ENGINE_CONFIG",
]
