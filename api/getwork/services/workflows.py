"""Multi-step writes behind applying, reviewing and referring.

Every step is its own write. A failing step is logged and surfaced to the
caller; the steps that already ran stay applied.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Iterator

from getwork.core.normalize import normalize_phone
from getwork.schemas.referrals import CandidateDetails, ReferralCreateRequest, ReferredWorkerCreateRequest
from getwork.services.repository import (
    RepositoryError,
    RepositoryForbiddenError,
    RepositoryValidationError,
)
from getwork.services.supabase import AuthServiceError, AuthServiceUnavailableError, SupabaseAuthClient

logger = logging.getLogger(__name__)


class WorkflowStepError(Exception):
    """A step of the referred-worker flow failed after earlier steps were written."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@contextmanager
def _logged_step(step: str, **context: Any) -> Iterator[None]:
    try:
        yield
    except RepositoryError as exc:
        logger.warning("workflow step failed step=%s context=%s error=%s", step, context, exc)
        raise


async def apply_to_job(repository, *, job: dict[str, Any], worker_id: str) -> dict[str, Any]:
    worker = await repository.get_profile("worker", worker_id)
    worker_name = (worker or {}).get("name") or "A worker"

    with _logged_step("insert_application", job_id=job["id"], worker_id=worker_id):
        application = await repository.create_application(job_id=job["id"], worker_id=worker_id)

    with _logged_step("notify_worker", job_id=job["id"], worker_id=worker_id):
        await repository.create_notification(
            recipient_id=worker_id,
            recipient_role="worker",
            message=f"You successfully applied for {job['title']} at {job['organization_name']}",
            type="info",
            related_job_id=job["id"],
        )

    with _logged_step("notify_organization", job_id=job["id"], worker_id=worker_id):
        await repository.create_notification(
            recipient_id=job["organization_user_id"],
            recipient_role="organization",
            message=f"{worker_name} has applied for {job['title']}",
            type="application",
            related_job_id=job["id"],
            related_user_id=worker_id,
            action_status="pending",
        )

    logger.info("application created job_id=%s worker_id=%s", job["id"], worker_id)
    return application


async def decide_application(repository, *, application: dict[str, Any], status: str) -> dict[str, Any]:
    with _logged_step("update_application", application_id=application["id"], status=status):
        updated = await repository.update_application_status(application_id=application["id"], status=status)

    if status == "accepted":
        message = f'Your application for "{application["job_title"]}" was accepted 🎉'
    else:
        message = f'Your application for "{application["job_title"]}" was rejected'

    with _logged_step("notify_worker", application_id=application["id"], status=status):
        await repository.create_notification(
            recipient_id=application["worker_id"],
            recipient_role="worker",
            message=message,
            type="info",
            related_job_id=application["job_id"],
        )
    return updated


async def act_on_notification(
    repository,
    *,
    notification: dict[str, Any],
    org_id: str,
    status: str,
) -> dict[str, Any]:
    """Accept or reject the application a notification points at, then record the action on it."""
    if notification.get("type") != "application" or not notification.get("related_job_id") or not notification.get(
        "related_user_id"
    ):
        raise RepositoryValidationError("notification has no application attached")

    application = await repository.find_application(
        job_id=notification["related_job_id"],
        worker_id=notification["related_user_id"],
    )
    if application["org_id"] != org_id:
        raise RepositoryForbiddenError("application belongs to another organization")

    await decide_application(repository, application=application, status=status)

    with _logged_step("update_notification", notification_id=notification["id"], status=status):
        return await repository.set_notification_action(notification_id=notification["id"], action_status=status)


def build_candidate_details(payload: ReferralCreateRequest, **extra: Any) -> dict[str, Any]:
    details = CandidateDetails.model_validate(
        {
            "name": payload.name,
            "phone": payload.phone,
            "age": payload.age,
            "skills": payload.skills,
            "location": payload.location,
            "experience": payload.experience,
            **extra,
        }
    )
    return details.model_dump(exclude_none=True)


async def submit_referral(repository, *, partner_id: str, payload: ReferralCreateRequest) -> dict[str, Any]:
    with _logged_step("insert_referral", partner_id=partner_id, job_id=payload.job_id):
        referral = await repository.create_referral(
            partner_id=partner_id,
            job_id=payload.job_id,
            candidate_name=payload.name,
            candidate_phone=normalize_phone(payload.phone),
            candidate_details=build_candidate_details(payload),
        )
    logger.info("referral submitted partner_id=%s job_id=%s", partner_id, payload.job_id)
    return referral


async def create_referred_worker(
    repository,
    supabase: SupabaseAuthClient,
    *,
    partner_id: str,
    payload: ReferredWorkerCreateRequest,
) -> str:
    """Create the candidate's account, worker profile, application and referral, in that order."""
    phone = normalize_phone(payload.phone)
    try:
        user = await supabase.admin_create_user(
            email=payload.email,
            password=payload.password,
            user_metadata={"full_name": payload.name, "phone": phone, "role": "worker"},
        )
    except AuthServiceUnavailableError:
        raise
    except AuthServiceError as exc:
        raise WorkflowStepError(exc.message, status_code=400) from exc

    new_user_id = user.get("id")
    if not isinstance(new_user_id, str) or not new_user_id:
        raise WorkflowStepError("user creation returned no id", status_code=502)

    details = build_candidate_details(payload, email=payload.email, generated_user_id=new_user_id)

    try:
        await repository.ensure_profile(
            "worker",
            new_user_id,
            {
                "name": payload.name,
                "email": payload.email,
                "phone": phone,
                "age": details.get("age"),
                "skills": details.get("skills", []),
                "location": payload.location,
                "experience": payload.experience,
            },
        )
    except RepositoryError as exc:
        logger.warning("referred worker profile failed user_id=%s error=%s", new_user_id, exc)
        raise WorkflowStepError(f"Failed to create worker profile: {exc}") from exc

    try:
        await repository.create_application(job_id=payload.job_id, worker_id=new_user_id)
    except RepositoryError as exc:
        logger.warning("referred worker application failed user_id=%s error=%s", new_user_id, exc)
        raise WorkflowStepError(f"Failed to apply for job: {exc}") from exc

    try:
        await repository.create_referral(
            partner_id=partner_id,
            job_id=payload.job_id,
            candidate_name=payload.name,
            candidate_phone=phone,
            candidate_details=details,
        )
    except RepositoryError as exc:
        logger.warning("referral record failed user_id=%s error=%s", new_user_id, exc)
        raise WorkflowStepError(f"Failed to create referral record: {exc}") from exc

    logger.info("referred worker created partner_id=%s user_id=%s", partner_id, new_user_id)
    return new_user_id
