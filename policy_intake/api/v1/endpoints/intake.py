from functools import lru_cache
from typing import Annotated, Any, Dict, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from policy_intake.core.config import settings
from policy_intake.core.database import get_async_session as get_session
from policy_intake.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    DraftValidationError,
    ExtractionFailure,
    IngestionError,
    InvalidTransitionError,
    PayloadTooLarge,
    PersistenceError,
    UnsupportedMediaType,
)
from policy_intake.core.llm_client import UnifiedLLMClient, create_llm_client
from policy_intake.schemas.common import ApiResponse
from policy_intake.schemas.intake import (
    CommitRequest,
    ConfirmRequest,
    DocumentIntakeRequest,
    IntakeHints,
    ManualIntakeRequest,
    ResubmitRequest,
)
from policy_intake.services.intake.analysis_service import AnalysisService
from policy_intake.services.intake.extraction_adapter import ExtractionAdapter
from policy_intake.services.intake.lookup_service import PolicyLookupService
from policy_intake.services.intake.pipeline import IntakePipeline
from policy_intake.services.intake.policy_store import SqlAlchemyPolicyDirectory, SqlAlchemyPolicyStore
from policy_intake.services.intake.reconciliation import ReconciliationOrchestrator
from policy_intake.utils.logging import get_logger
from policy_intake.utils.responses import create_api_response, create_error_detail

LOGGER = get_logger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_llm_client() -> Optional[UnifiedLLMClient]:
    """Shared LLM client; None when no provider is configured."""
    try:
        # Single attempt: retries are the caller's decision
        return create_llm_client(settings.llm, timeout=settings.http_timeout, max_retries=1)
    except ConfigurationError as e:
        LOGGER.warning(f"Document understanding service unavailable: {e}")
        return None


async def get_intake_pipeline(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> IntakePipeline:
    llm_client = get_llm_client()
    return IntakePipeline(
        extractor=ExtractionAdapter(llm_client) if llm_client else None,
        analyzer=AnalysisService(llm_client) if llm_client else None,
        orchestrator=ReconciliationOrchestrator(SqlAlchemyPolicyStore(db_session)),
        lookup=PolicyLookupService(SqlAlchemyPolicyDirectory(db_session)),
    )


def _dump(model: Any) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _raise_http(
    request: Request,
    error: Exception,
    hints: Optional[IntakeHints] = None,
) -> NoReturn:
    """Translate a pipeline error into an RFC 7807 HTTPException."""
    context: Optional[Dict[str, Any]] = None
    errors = None

    if isinstance(error, PayloadTooLarge):
        code, title = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Payload Too Large"
        context = {"size": error.size, "limit": error.limit, "kind": error.kind}
    elif isinstance(error, UnsupportedMediaType):
        code, title = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "Unsupported Media Type"
        context = {"mimeType": error.mime_type, "allowed": settings.intake.allowed_mime_types}
    elif isinstance(error, IngestionError):
        code, title = status.HTTP_400_BAD_REQUEST, "Invalid Document"
    elif isinstance(error, ExtractionFailure):
        code, title = status.HTTP_502_BAD_GATEWAY, "Extraction Failed"
        # Lets the client fall back to search/manual entry with the same selections
        context = {
            "reason": error.reason,
            "hints": _dump(hints or IntakeHints()),
            "fallbacks": ["search", "manual"],
        }
    elif isinstance(error, DraftValidationError):
        code, title = status.HTTP_422_UNPROCESSABLE_ENTITY, "Draft Validation Failed"
        errors = error.errors
    elif isinstance(error, InvalidTransitionError):
        code, title = status.HTTP_409_CONFLICT, "Invalid Intake Step"
        context = {"state": error.state, "event": error.event}
    elif isinstance(error, ConfigurationError):
        code, title = status.HTTP_503_SERVICE_UNAVAILABLE, "Service Not Configured"
    elif isinstance(error, PersistenceError):
        code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Policy Not Saved"
    elif isinstance(error, DatabaseError):
        code, title = status.HTTP_503_SERVICE_UNAVAILABLE, "Storage Unavailable"
    else:
        raise error

    error_detail = create_error_detail(
        title=title,
        status=code,
        detail=str(error),
        request=request,
        errors=errors,
        context=context,
    )
    raise HTTPException(status_code=code, detail=error_detail.model_dump(mode="json"))


@router.post(
    "/documents/extract",
    response_model=ApiResponse,
    summary="Extract and validate a policy document",
    operation_id="extract_policy_document",
)
async def extract_document(
    request: Request,
    body: DocumentIntakeRequest,
    pipeline: Annotated[IntakePipeline, Depends(get_intake_pipeline)],
) -> ApiResponse:
    """Run an uploaded document through gate, extraction and validation."""
    try:
        outcome = await pipeline.extract_document(body.document, mime_type=body.mime_type, hints=body.hints)
    except (IngestionError, ExtractionFailure, ConfigurationError) as e:
        LOGGER.warning(f"Document intake failed: {e}")
        _raise_http(request, e, hints=body.hints)

    return create_api_response(
        data=outcome,
        message="Document extracted" if outcome.state.kind == "valid" else "Document extracted, corrections needed",
        request=request
    )


@router.get(
    "/search/{insurer_id}/{policy_number}",
    response_model=ApiResponse,
    summary="Find a published policy by insurer and policy number",
    operation_id="search_policy",
)
async def search_policy(
    request: Request,
    insurer_id: str,
    policy_number: str,
    pipeline: Annotated[IntakePipeline, Depends(get_intake_pipeline)],
) -> ApiResponse:
    """Identifier search entry."""
    try:
        found = await pipeline.search_policy(insurer_id, policy_number)
    except DatabaseError as e:
        _raise_http(request, e)

    if found is None:
        return create_api_response(data={"found": False}, message="Policy not found", request=request)

    draft, state = found
    return create_api_response(
        data={"found": True, "policy": _dump(draft), "state": _dump(state)},
        message="Policy found",
        request=request
    )


@router.post(
    "/manual",
    response_model=ApiResponse,
    summary="Submit a manually entered policy",
    operation_id="submit_manual_policy",
)
async def submit_manual(
    request: Request,
    body: ManualIntakeRequest,
    pipeline: Annotated[IntakePipeline, Depends(get_intake_pipeline)],
) -> ApiResponse:
    state = pipeline.submit_manual(body.draft, hints=body.hints, children=body.children)
    return create_api_response(data={"state": _dump(state)}, message="Manual entry validated", request=request)


@router.post(
    "/resubmit",
    response_model=ApiResponse,
    summary="Apply corrections and re-validate a draft",
    operation_id="resubmit_policy_draft",
)
async def resubmit(
    request: Request,
    body: ResubmitRequest,
    pipeline: Annotated[IntakePipeline, Depends(get_intake_pipeline)],
) -> ApiResponse:
    state = pipeline.resubmit(
        body.draft,
        edits=body.edits,
        confidence=body.confidence,
        added_method=body.added_method,
        children=body.children,
    )
    return create_api_response(data={"state": _dump(state)}, message="Draft re-validated", request=request)


@router.post(
    "/confirm",
    response_model=ApiResponse,
    summary="Confirm a valid draft and request its plain-language analysis",
    operation_id="confirm_policy_draft",
)
async def confirm(
    request: Request,
    body: ConfirmRequest,
    pipeline: Annotated[IntakePipeline, Depends(get_intake_pipeline)],
) -> ApiResponse:
    outcome = await pipeline.confirm(
        body.draft,
        skip_analysis=body.skip_analysis,
        locale=body.locale,
        confidence=body.confidence,
        added_method=body.added_method,
    )
    if outcome.analysis_warning:
        message = "Draft confirmed without analysis"
    else:
        message = "Draft confirmed"
    return create_api_response(data=outcome, message=message, request=request)


@router.post(
    "/commit",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Commit a verified policy and its child records",
    operation_id="commit_policy",
)
async def commit(
    request: Request,
    body: CommitRequest,
    pipeline: Annotated[IntakePipeline, Depends(get_intake_pipeline)],
) -> ApiResponse:
    """Persist the policy; child failures come back as warnings."""
    try:
        result = await pipeline.commit(
            body.draft,
            children=body.children,
            analysis=body.analysis,
            added_method=body.added_method,
            document_parsed_data=body.document_parsed_data,
        )
    except (DraftValidationError, PersistenceError) as e:
        _raise_http(request, e)

    message = "Policy saved"
    if result.warnings:
        message = f"Policy saved with {len(result.warnings)} warning(s)"
    return create_api_response(data=result, message=message, request=request)
