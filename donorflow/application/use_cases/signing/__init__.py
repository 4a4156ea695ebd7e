"""Signing use cases: envelope event handling, correlation and reconciliation."""

from donorflow.application.use_cases.signing.correlation import (
    Correlation,
    CorrelationChain,
    MetadataFieldLookup,
    OpenSignatureTaskScan,
    default_chain,
)
from donorflow.application.use_cases.signing.handle_envelope_event import (
    WEBHOOK_ACTOR,
    EnvelopeEventHandler,
    signed_artifact_ref,
)
from donorflow.application.use_cases.signing.reconcile import SigningReconciler

__all__ = [
    "WEBHOOK_ACTOR",
    "Correlation",
    "CorrelationChain",
    "EnvelopeEventHandler",
    "MetadataFieldLookup",
    "OpenSignatureTaskScan",
    "SigningReconciler",
    "default_chain",
    "signed_artifact_ref",
]
