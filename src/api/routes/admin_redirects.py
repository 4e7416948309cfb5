"""
Admin Redirects API Routes.

Admin endpoints for editing the redirect rule collection: list, replace-all
(form save), add/update one rule, delete, import/export and dry-run test.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from src.api.deps import get_redirect_service, require_admin
from src.components.redirects import (
    RedirectRule,
    RedirectService,
    RedirectValidationError,
    StaleRulesError,
)

router = APIRouter(dependencies=[Depends(require_admin)])


class RuleResponse(BaseModel):
    """One redirect rule in interchange shape."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from", description="Source path, may include *")
    target: str = Field(..., alias="to", description="Target path or URL, may use $1..")
    status_code: int = Field(..., alias="type", description="HTTP status code")


class RuleListResponse(BaseModel):
    """Rule collection response."""

    rules: list[RuleResponse]
    version: int
    count: int


class AddRuleRequest(BaseModel):
    """Request to add or update a rule."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from", description="Source path (e.g., /old/*)")
    target: str = Field(..., alias="to", description="Target (e.g., /new/$1)")
    status_code: int | None = Field(None, alias="type", description="HTTP status code")


class RuleChangeResponse(BaseModel):
    """Result of adding a rule."""

    rule: RuleResponse
    replaced: bool


class ReplaceRulesRequest(BaseModel):
    """Request to replace the whole collection (admin form save)."""

    rules: list[Any] = Field(default_factory=list)
    version: int | None = Field(None, description="Version the edit is based on")


class ValidationErrorResponse(BaseModel):
    """Validation error response."""

    errors: list[dict[str, Any]]


# --- Helper Functions ---


def _rule_to_response(rule: RedirectRule) -> RuleResponse:
    return RuleResponse.model_validate(rule.to_dict())


def _serialize_errors(
    errors: list[RedirectValidationError],
) -> list[dict[str, Any]]:
    """Serialize validation errors."""
    return [
        {
            "code": e.code,
            "message": e.message,
            "field": e.field,
        }
        for e in errors
    ]


def _list_response(
    rules: tuple[RedirectRule, ...] | list[RedirectRule],
    version: int,
) -> RuleListResponse:
    return RuleListResponse(
        rules=[_rule_to_response(r) for r in rules],
        version=version,
        count=len(rules),
    )


# --- Routes ---


@router.get("/redirects", response_model=RuleListResponse)
def list_redirects(
    service: RedirectService = Depends(get_redirect_service),
) -> RuleListResponse:
    """List all rules in stored order."""
    snapshot = service.list_rules()
    return _list_response(snapshot.rules, snapshot.version)


@router.put(
    "/redirects",
    response_model=RuleListResponse,
    responses={409: {"description": "Rules changed since the given version"}},
)
def replace_redirects(
    request: ReplaceRulesRequest,
    service: RedirectService = Depends(get_redirect_service),
) -> RuleListResponse:
    """
    Replace all rules.

    Rows with an empty source or target are dropped and unknown status codes
    fall back to the default.
    """
    try:
        snapshot = service.replace(request.rules, expected_version=request.version)
    except StaleRulesError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _list_response(snapshot.rules, snapshot.version)


@router.post(
    "/redirects",
    response_model=RuleChangeResponse,
    responses={400: {"model": ValidationErrorResponse}},
)
def add_redirect(
    request: AddRuleRequest,
    service: RedirectService = Depends(get_redirect_service),
) -> RuleChangeResponse:
    """Add a rule, or update the rule with the same source."""
    change, errors = service.add(request.source, request.target, request.status_code)

    if errors:
        raise HTTPException(
            status_code=400,
            detail={"errors": _serialize_errors(errors)},
        )

    assert change is not None
    return RuleChangeResponse(rule=_rule_to_response(change.rule), replaced=change.replaced)


@router.delete(
    "/redirects",
    responses={404: {"description": "Redirect not found"}},
)
def delete_redirect(
    source: str = Query(..., alias="from"),
    service: RedirectService = Depends(get_redirect_service),
) -> dict[str, bool]:
    """Delete every rule with the given source."""
    if not service.delete(source):
        raise HTTPException(status_code=404, detail="Redirect not found")
    return {"deleted": True}


@router.get("/redirects/export")
def export_redirects(
    service: RedirectService = Depends(get_redirect_service),
) -> list[dict[str, Any]]:
    """Export rules in interchange format."""
    return [r.to_dict() for r in service.export_rules()]


@router.post("/redirects/import", response_model=RuleListResponse)
def import_redirects(
    entries: list[Any] = Body(...),
    service: RedirectService = Depends(get_redirect_service),
) -> RuleListResponse:
    """Replace all rules with an interchange array."""
    snapshot = service.import_rules(entries)
    return _list_response(snapshot.rules, snapshot.version)


@router.get("/redirects/test")
def test_redirect(
    url: str = Query(..., description="Path or URL, e.g. /old/abc?x=1"),
    service: RedirectService = Depends(get_redirect_service),
) -> dict[str, Any]:
    """Dry-run: show which rule would match and the resulting target."""
    resolution = service.test(url)
    if resolution is None:
        return {"matched": False, "matched_from": None, "type": None, "target": None}

    return {
        "matched": True,
        "matched_from": resolution.matched_from,
        "type": resolution.status_code,
        "target": resolution.target,
    }
