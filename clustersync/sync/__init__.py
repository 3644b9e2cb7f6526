"""
Sync module for continuous, idempotent index replication.

This module provides the replication engine: scroll-based extraction from the
source cluster, payload decoding, optional change detection, bulk writes with
exponential backoff, single-pass orchestration and the perpetual scheduler.
"""

from .config import (
    SyncSettings, RetrySettings, MappingAdjustments,
    ScheduleMode, BatchFailurePolicy
)

from .models import (
    SourceRecord, SyncDocument, Cursor, DocumentError, BatchResult,
    PassMetrics, PassResult, PassStage, PassStatus
)

from .error_tracker import (
    ErrorTracker, ErrorSeverity, SyncException, ConfigurationError,
    ProvisioningError, DocumentTransformError, CursorError, BatchWriteError,
    ExternalServiceError, DocumentNotFound
)

from .resilience import RetryPolicy, RetryState, with_retry
from .clients import SourceCluster, TargetCluster
from .extractor import CursorExtractor
from .transformer import DocumentTransformer
from .change_detector import ChangeDetector
from .batch_writer import BatchWriter
from .provisioning import IndexProvisioner, adjust_mapping
from .orchestrator import SyncOrchestrator, create_sync_orchestrator, run_single_pass
from .scheduler import SchedulerLoop, run_sync_forever

__all__ = [
    # Configuration
    'SyncSettings',
    'RetrySettings',
    'MappingAdjustments',
    'ScheduleMode',
    'BatchFailurePolicy',

    # Data model
    'SourceRecord',
    'SyncDocument',
    'Cursor',
    'DocumentError',
    'BatchResult',
    'PassMetrics',
    'PassResult',
    'PassStage',
    'PassStatus',

    # Errors
    'ErrorTracker',
    'ErrorSeverity',
    'SyncException',
    'ConfigurationError',
    'ProvisioningError',
    'DocumentTransformError',
    'CursorError',
    'BatchWriteError',
    'ExternalServiceError',
    'DocumentNotFound',

    # Engine
    'RetryPolicy',
    'RetryState',
    'with_retry',
    'SourceCluster',
    'TargetCluster',
    'CursorExtractor',
    'DocumentTransformer',
    'ChangeDetector',
    'BatchWriter',
    'IndexProvisioner',
    'adjust_mapping',
    'SyncOrchestrator',
    'create_sync_orchestrator',
    'run_single_pass',
    'SchedulerLoop',
    'run_sync_forever',
]
