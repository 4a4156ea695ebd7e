"""Built-in workflow templates and the registry that serves them.

donation (v2): the full equity donation chain across donor, nonprofit and
appraiser lanes. campaign_participant (v1): the shorter chain used when a
donor joins a campaign.
"""

from typing import Any

from donorflow.domain.entities.template import (
    InstantiationContext,
    TaskBlueprint,
    WorkflowTemplate,
)
from donorflow.domain.enums import AssignedRole, TaskType
from donorflow.domain.exceptions import ResourceNotFoundException

COMMITMENT_OPTIONS: tuple[dict[str, str], ...] = (
    {
        "id": "commit_now",
        "label": "Make Commitment Now",
        "description": "I'm ready to commit to a donation amount now and proceed with the workflow.",
    },
    {
        "id": "commit_after_appraisal",
        "label": "Make Commitment After Appraisal",
        "description": "I want to see the appraisal results before making my commitment decision.",
    },
)


def _signature_metadata(document_path: str, document_name: str) -> dict[str, Any]:
    return {
        "document_path": document_path,
        "document_name": document_name,
        "docusign_envelope_id": None,
        "signed_at": None,
        "signing_url": None,
        "signed_document_ref": None,
        "automated_reminders": True,
    }


def _commitment_metadata(context: InstantiationContext) -> dict[str, Any]:
    return {
        "options": [dict(o) for o in COMMITMENT_OPTIONS],
        "campaign_title": context.campaign_title,
        "organization_name": context.organization_name,
    }


def _participant_upload_path(folder: str):
    def factory(context: InstantiationContext) -> dict[str, Any]:
        owner = context.campaign_id or context.donor_id
        return {"document_path": f"participants/{owner}/{folder}/"}

    return factory


DONATION_TEMPLATE = WorkflowTemplate(
    name="donation",
    version=2,
    description="Equity donation: NDAs, appraisal, document exchange, agreement signatures.",
    blueprints=(
        TaskBlueprint(
            key="donor_sign_nda",
            title="Donor: Sign NDA",
            description="Review and digitally sign the Non-Disclosure Agreement before proceeding with the donation process.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.SIGNATURE,
            metadata=_signature_metadata("/public/nda-general.pdf", "General NDA"),
        ),
        TaskBlueprint(
            key="nonprofit_sign_nda",
            title="NonProfit: Sign NDA",
            description="Review and digitally sign the Non-Disclosure Agreement for this donation.",
            assigned_role=AssignedRole.NONPROFIT_ADMIN,
            type=TaskType.SIGNATURE,
            depends_on=("donor_sign_nda",),
            metadata=_signature_metadata("/public/nda-general.pdf", "General NDA"),
        ),
        TaskBlueprint(
            key="appraiser_sign_nda",
            title="Appraiser: Sign NDA",
            description="Review and digitally sign the Non-Disclosure Agreement to access donor information.",
            assigned_role=AssignedRole.APPRAISER,
            type=TaskType.SIGNATURE,
            depends_on=("nonprofit_sign_nda",),
            metadata=_signature_metadata("/public/nda-appraiser.pdf", "Appraiser NDA"),
        ),
        TaskBlueprint(
            key="invite_appraiser",
            title="Donor: Invite Appraiser or AI Appraisal",
            description="Choose your preferred appraisal method: invite a professional appraiser or use our AI-powered appraisal service.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.INVITATION,
            depends_on=("appraiser_sign_nda",),
            metadata={"invitation_type": "appraiser", "role": "appraiser"},
        ),
        TaskBlueprint(
            key="donor_upload_company_info",
            title="Donor: Upload Company Information",
            description="Upload your company information and financial documents for the appraisal process.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.DOCUMENT_UPLOAD,
            depends_on=("invite_appraiser",),
            metadata={
                "document_types": ["company_info", "financial_statements"],
                "upload_role": "donor",
                "requires_approval": False,
            },
        ),
        TaskBlueprint(
            key="nonprofit_upload",
            title="NonProfit: Upload Documents",
            description="Upload donation agreements and nonprofit documentation.",
            assigned_role=AssignedRole.NONPROFIT_ADMIN,
            type=TaskType.DOCUMENT_UPLOAD,
            depends_on=("donor_upload_company_info",),
            metadata={
                "document_types": ["donation_agreement", "nonprofit_docs"],
                "upload_role": "nonprofit",
                "requires_approval": False,
            },
        ),
        TaskBlueprint(
            key="appraiser_upload",
            title="Appraiser: Upload Documents",
            description="Upload appraisal documents and valuation reports.",
            assigned_role=AssignedRole.APPRAISER,
            type=TaskType.DOCUMENT_UPLOAD,
            depends_on=("nonprofit_upload",),
            metadata={
                "document_types": ["appraisal_report", "valuation_documents"],
                "upload_role": "appraiser",
                "requires_approval": False,
            },
        ),
        TaskBlueprint(
            key="donor_review",
            title="Donor: Review Documents",
            description="Review documents uploaded by the nonprofit and appraiser.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.DOCUMENT_REVIEW,
            depends_on=("appraiser_upload",),
            metadata={
                "review_roles": ["nonprofit", "appraiser"],
                "approval_required": True,
                "automated_reminders": True,
            },
        ),
        TaskBlueprint(
            key="commitment_decision",
            title="Donor: Commitment",
            description="Choose when you want to make your donation commitment: now or after appraisal.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.DECISION,
            depends_on=("donor_review",),
            metadata_factory=_commitment_metadata,
        ),
        TaskBlueprint(
            key="donor_sign_document",
            title="Donor: Sign Donation Agreement",
            description="Review and digitally sign the final donation agreement.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.SIGNATURE,
            depends_on=("commitment_decision",),
            metadata=_signature_metadata("/public/donation-agreement.pdf", "Donation Agreement"),
        ),
        TaskBlueprint(
            key="nonprofit_review",
            title="NonProfit: Review Documents",
            description="Review documents uploaded by the donor and appraiser.",
            assigned_role=AssignedRole.NONPROFIT_ADMIN,
            type=TaskType.DOCUMENT_REVIEW,
            depends_on=("donor_sign_document",),
            metadata={
                "review_roles": ["donor", "appraiser"],
                "approval_required": True,
                "automated_reminders": True,
            },
        ),
        TaskBlueprint(
            key="nonprofit_sign_document",
            title="NonProfit: Sign Donation Agreement",
            description="Review and digitally sign the final donation agreement.",
            assigned_role=AssignedRole.NONPROFIT_ADMIN,
            type=TaskType.SIGNATURE,
            depends_on=("nonprofit_review",),
            metadata=_signature_metadata("/public/donation-agreement.pdf", "Donation Agreement"),
        ),
    ),
)


CAMPAIGN_PARTICIPANT_TEMPLATE = WorkflowTemplate(
    name="campaign_participant",
    version=1,
    description="Donor joining a campaign: NDA, commitment, appraisal and approvals.",
    blueprints=(
        TaskBlueprint(
            key="sign_nda",
            title="Donor: Sign NDA",
            description="Review and digitally sign the Non-Disclosure Agreement before proceeding with the donation process.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.SIGNATURE,
            metadata=_signature_metadata("/public/nda-general.pdf", "General NDA"),
        ),
        TaskBlueprint(
            key="commitment_decision",
            title="Donor: Commitment",
            description="Choose when you want to make your donation commitment: now or after appraisal.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.DECISION,
            depends_on=("sign_nda",),
            metadata_factory=_commitment_metadata,
        ),
        TaskBlueprint(
            key="invite_appraiser",
            title="Donor: Invite Appraiser",
            description="Invite a professional appraiser to join the platform and conduct your equity valuation.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.INVITATION,
            depends_on=("commitment_decision",),
            metadata={"invitation_type": "appraiser", "role": "appraiser"},
        ),
        TaskBlueprint(
            key="company_info",
            title="Donor: Upload Company Information",
            description="Upload your company information and financial documents for the appraisal process.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.DOCUMENT_UPLOAD,
            depends_on=("invite_appraiser",),
            metadata={"document_types": ["company_info", "financial_statements"]},
            metadata_factory=_participant_upload_path("financial"),
        ),
        TaskBlueprint(
            key="appraiser_nda",
            title="Appraiser: Sign NDA",
            description="Review and digitally sign the Non-Disclosure Agreement to access donor information.",
            assigned_role=AssignedRole.APPRAISER,
            type=TaskType.SIGNATURE,
            depends_on=("company_info",),
            metadata=_signature_metadata("/public/nda-appraiser.pdf", "Appraiser NDA"),
        ),
        TaskBlueprint(
            key="appraiser_upload",
            title="Appraiser: Upload Documents",
            description="Upload appraisal documents and valuation reports.",
            assigned_role=AssignedRole.APPRAISER,
            type=TaskType.DOCUMENT_UPLOAD,
            depends_on=("appraiser_nda",),
            metadata={"document_types": ["appraisal_report", "valuation_documents"]},
            metadata_factory=_participant_upload_path("appraisals"),
        ),
        TaskBlueprint(
            key="donor_approve",
            title="Donor: Approve Documents",
            description="Review and approve the appraisal documents and valuation reports.",
            assigned_role=AssignedRole.DONOR,
            type=TaskType.DOCUMENT_REVIEW,
            depends_on=("appraiser_upload",),
            metadata={"document_ids": [], "approval_required": True, "automated_reminders": True},
        ),
        TaskBlueprint(
            key="nonprofit_approve",
            title="Nonprofit: Approve Documents",
            description="Review and approve all donation documentation and appraisal reports.",
            assigned_role=AssignedRole.NONPROFIT_ADMIN,
            type=TaskType.DOCUMENT_REVIEW,
            depends_on=("donor_approve",),
            metadata={"document_ids": [], "approval_required": True, "automated_reminders": True},
        ),
        TaskBlueprint(
            key="nonprofit_upload",
            title="Nonprofit: Upload Documents",
            description="Upload final donation receipt and acknowledgement documents.",
            assigned_role=AssignedRole.NONPROFIT_ADMIN,
            type=TaskType.DOCUMENT_UPLOAD,
            depends_on=("nonprofit_approve",),
            metadata={"document_types": ["donation_receipt", "acknowledgement"]},
            metadata_factory=_participant_upload_path("signed-documents"),
        ),
    ),
)


class TemplateRegistry:
    """Lookup of templates by name (latest version registered wins)."""

    def __init__(self, templates: list[WorkflowTemplate] | None = None) -> None:
        self._templates: dict[str, WorkflowTemplate] = {}
        for template in templates or []:
            self.register(template)

    def register(self, template: WorkflowTemplate) -> None:
        current = self._templates.get(template.name)
        if current is None or template.version >= current.version:
            self._templates[template.name] = template

    def get(self, name: str) -> WorkflowTemplate:
        """Raises ResourceNotFoundException for unknown names."""
        template = self._templates.get(name)
        if template is None:
            raise ResourceNotFoundException("workflow template", name)
        return template

    def names(self) -> list[str]:
        return sorted(self._templates)


def default_registry() -> TemplateRegistry:
    return TemplateRegistry([DONATION_TEMPLATE, CAMPAIGN_PARTICIPANT_TEMPLATE])
