"""Identifier search: the alternate entry that starts from an insurer's
published policy instead of a document."""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from policy_intake.core.exceptions import DatabaseError
from policy_intake.schemas.draft import PolicyDraft
from policy_intake.services.intake.normalizer import clean_text, merge_partial
from policy_intake.services.intake.policy_store import PolicyDirectory
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PolicyLookupService:
    """Finds a published policy by (insurer id, policy number).

    A miss is an explicit ``None``; no placeholder policy is made up.
    """

    def __init__(self, directory: PolicyDirectory):
        self.directory = directory

    async def search(self, insurer_id: str, policy_number: str) -> Optional[PolicyDraft]:
        """Look up a policy and return it as a draft.

        Args:
            insurer_id: Insurer identifier
            policy_number: Policy number

        Returns:
            Draft seeded with the searched identifiers and the published
            fields, or None when the insurer does not publish the policy
        """
        insurer_id = clean_text(insurer_id)
        policy_number = clean_text(policy_number)
        if not insurer_id or not policy_number:
            return None

        try:
            partial = await self.directory.find(insurer_id, policy_number)
        except SQLAlchemyError as e:
            LOGGER.error(f"Policy directory lookup failed: {e}", exc_info=True)
            raise DatabaseError(f"Policy directory lookup failed: {e}", original_error=e)

        if partial is None:
            LOGGER.info(
                "No published policy found",
                extra={"insurer_id": insurer_id, "policy_number": policy_number}
            )
            return None

        seed = PolicyDraft(insurer_id=insurer_id, policy_number=policy_number)
        return merge_partial(seed, partial)
