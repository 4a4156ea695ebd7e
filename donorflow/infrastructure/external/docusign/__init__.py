"""DocuSign eSignature REST adapter (JWT grant)."""

from donorflow.infrastructure.external.docusign.client import DocuSignClient

__all__ = ["DocuSignClient"]
